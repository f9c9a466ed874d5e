"""Tests for the static rule table."""

from __future__ import annotations

from datetime import timedelta

import pytest

from remindkit.core.rules import (
    ALL_RULES,
    GRACE_RULE,
    MANDATORY_RULE_TYPES,
    PRE_EXPIRE_RULES,
    REMINDER_RULES,
    TASK_RULES,
    get_rule,
)
from remindkit.core.types import (
    CandidateSource,
    ChannelKind,
    DayComparison,
    LifecycleState,
    Precision,
    RuleType,
)


class TestRuleTable:
    def test_rule_types_unique(self):
        types = [r.rule_type for r in ALL_RULES]
        assert len(types) == len(set(types))

    def test_reminders_are_windowed_whatsapp(self):
        for rule in REMINDER_RULES:
            assert rule.precision == Precision.WINDOWED
            assert rule.channel == ChannelKind.WHATSAPP
            assert rule.source == CandidateSource.UPCOMING_APPOINTMENTS
            assert not rule.mandatory

    def test_reminder_offsets(self):
        offsets = {r.rule_type: r.offset for r in REMINDER_RULES}
        assert offsets[RuleType.REMINDER_24H] == timedelta(hours=24)
        assert offsets[RuleType.REMINDER_2H] == timedelta(hours=2)
        assert offsets[RuleType.REMINDER_30MIN] == timedelta(minutes=30)

    def test_pre_expire_rules(self):
        by_type = {r.rule_type: r for r in PRE_EXPIRE_RULES}
        assert by_type[RuleType.PRE_EXPIRE_3D].day_offset == 3
        assert by_type[RuleType.PRE_EXPIRE_1D].day_offset == 1
        assert by_type[RuleType.PRE_EXPIRE_3D].lifecycle_target == LifecycleState.PRE_EXPIRE_3D
        for rule in PRE_EXPIRE_RULES:
            assert rule.comparison == DayComparison.EQUAL
            assert rule.channel == ChannelKind.EMAIL

    def test_grace_rule_is_at_most(self):
        assert GRACE_RULE.comparison == DayComparison.AT_MOST
        assert GRACE_RULE.day_offset == -2
        assert GRACE_RULE.source == CandidateSource.LAPSED_SUBSCRIPTIONS

    def test_subscription_rules_are_mandatory(self):
        assert RuleType.PRE_EXPIRE_3D in MANDATORY_RULE_TYPES
        assert RuleType.EXPIRE_GRACE in MANDATORY_RULE_TYPES
        assert RuleType.REMINDER_24H not in MANDATORY_RULE_TYPES

    def test_every_rule_belongs_to_one_task(self):
        owned = [r.rule_type for rules in TASK_RULES.values() for r in rules]
        assert sorted(owned) == sorted(r.rule_type for r in ALL_RULES)


class TestGetRule:
    def test_by_enum(self):
        assert get_rule(RuleType.REMINDER_12H).offset == timedelta(hours=12)

    def test_by_string(self):
        assert get_rule("expire_grace") is GRACE_RULE

    def test_unknown(self):
        with pytest.raises(KeyError):
            get_rule("reminder_5min")
