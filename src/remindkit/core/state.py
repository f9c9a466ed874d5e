"""Subscription lifecycle state machine.

The scheduler only ever moves ``last_notification_state`` forward along
``ACTIVE -> PRE_EXPIRE_3D -> PRE_EXPIRE_1D -> EXPIRED_GRACE``.  The
webhook-owned states ``EXPIRED_WEBHOOK`` and ``CANCELED`` are terminal
for scheduled transitions.

Usage::

    from remindkit.core.state import can_advance
    from remindkit.core.types import LifecycleState

    can_advance(LifecycleState.PRE_EXPIRE_1D, LifecycleState.PRE_EXPIRE_3D)  # False
"""

from __future__ import annotations

import logging

from remindkit.core.types import LifecycleState

log = logging.getLogger(__name__)

LIFECYCLE_ORDER: dict[LifecycleState, int] = {
    LifecycleState.ACTIVE: 0,
    LifecycleState.PRE_EXPIRE_3D: 1,
    LifecycleState.PRE_EXPIRE_1D: 2,
    LifecycleState.EXPIRED_GRACE: 3,
}

TERMINAL_STATES: frozenset[LifecycleState] = frozenset(
    {LifecycleState.EXPIRED_WEBHOOK, LifecycleState.CANCELED},
)


def normalize_state(value: str | LifecycleState | None) -> LifecycleState:
    """Map a stored column value to a :class:`LifecycleState`.

    ``NULL`` means no notice was ever sent, i.e. ``ACTIVE``.
    """
    if value is None:
        return LifecycleState.ACTIVE
    return LifecycleState(value)


def can_advance(current: LifecycleState | None, target: LifecycleState) -> bool:
    """Return whether a scheduled transition *current* -> *target* is allowed."""
    current = normalize_state(current)
    if current in TERMINAL_STATES or target in TERMINAL_STATES:
        return False
    return LIFECYCLE_ORDER[target] > LIFECYCLE_ORDER[current]


def log_transition(
    tenant_id,
    from_state: LifecycleState | None,
    to_state: LifecycleState,
    *,
    applied: bool,
) -> None:
    """Emit a structured log entry for a lifecycle transition attempt."""
    log.info(
        "Lifecycle %s for tenant %s: %s -> %s",
        "advanced" if applied else "unchanged",
        tenant_id,
        normalize_state(from_state).value,
        to_state.value,
        extra={
            "tenant_id": str(tenant_id),
            "from_state": normalize_state(from_state).value,
            "to_state": to_state.value,
            "applied": applied,
        },
    )
