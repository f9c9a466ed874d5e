"""Tests for the subscription lifecycle state machine."""

from __future__ import annotations

import logging

import pytest

from remindkit.core.state import (
    LIFECYCLE_ORDER,
    TERMINAL_STATES,
    can_advance,
    log_transition,
    normalize_state,
)
from remindkit.core.types import LifecycleState as S


class TestNormalize:
    def test_null_is_active(self):
        assert normalize_state(None) is S.ACTIVE

    def test_string_value(self):
        assert normalize_state("PRE_EXPIRE_1D") is S.PRE_EXPIRE_1D

    def test_unknown_value_raises(self):
        with pytest.raises(ValueError):
            normalize_state("SOMETHING_ELSE")


class TestCanAdvance:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (None, S.PRE_EXPIRE_3D),
            (S.ACTIVE, S.PRE_EXPIRE_3D),
            (S.ACTIVE, S.PRE_EXPIRE_1D),
            (S.PRE_EXPIRE_3D, S.PRE_EXPIRE_1D),
            (S.PRE_EXPIRE_1D, S.EXPIRED_GRACE),
            (None, S.EXPIRED_GRACE),
        ],
    )
    def test_forward_moves_allowed(self, current, target):
        assert can_advance(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (S.PRE_EXPIRE_1D, S.PRE_EXPIRE_3D),
            (S.EXPIRED_GRACE, S.PRE_EXPIRE_1D),
            (S.PRE_EXPIRE_3D, S.PRE_EXPIRE_3D),
            (S.EXPIRED_GRACE, S.ACTIVE),
        ],
    )
    def test_backward_and_sideways_rejected(self, current, target):
        assert not can_advance(current, target)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATES))
    def test_nothing_leaves_a_terminal_state(self, terminal):
        for target in LIFECYCLE_ORDER:
            assert not can_advance(terminal, target)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATES))
    def test_scheduler_never_enters_a_terminal_state(self, terminal):
        assert not can_advance(S.ACTIVE, terminal)


class TestLogTransition:
    def test_structured_fields(self, caplog):
        with caplog.at_level(logging.INFO, logger="remindkit.core.state"):
            log_transition("t1", None, S.PRE_EXPIRE_3D, applied=True)
        record = caplog.records[-1]
        assert record.tenant_id == "t1"
        assert record.from_state == "ACTIVE"
        assert record.to_state == "PRE_EXPIRE_3D"
        assert record.applied is True
        assert "advanced" in record.getMessage()
