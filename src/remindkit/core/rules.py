"""Static notification rule table.

Rules are evaluated in the order they appear here.  Each scheduled task
owns a slice of the table (see :data:`TASK_RULES`).

A rule is *mandatory* when tenants cannot switch it off: the automation
gate is bypassed for every type in :data:`MANDATORY_RULE_TYPES`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from remindkit.core.types import (
    CandidateSource,
    ChannelKind,
    DayComparison,
    EntityKind,
    LifecycleState,
    Precision,
    RuleType,
)


@dataclass(frozen=True)
class NotificationRule:
    rule_type: RuleType
    entity_kind: EntityKind
    source: CandidateSource
    channel: ChannelKind
    precision: Precision
    template: str
    label: str = ""
    offset: timedelta = timedelta(0)
    tolerance: timedelta | None = None
    day_offset: int = 0
    comparison: DayComparison = DayComparison.EQUAL
    lifecycle_target: LifecycleState | None = None
    mandatory: bool = False


def _reminder(rule_type: RuleType, offset: timedelta, label: str) -> NotificationRule:
    return NotificationRule(
        rule_type=rule_type,
        entity_kind=EntityKind.APPOINTMENT,
        source=CandidateSource.UPCOMING_APPOINTMENTS,
        channel=ChannelKind.WHATSAPP,
        precision=Precision.WINDOWED,
        template="appointment_reminder",
        label=label,
        offset=offset,
    )


REMINDER_RULES: tuple[NotificationRule, ...] = (
    _reminder(RuleType.REMINDER_24H, timedelta(hours=24), "24 hours"),
    _reminder(RuleType.REMINDER_12H, timedelta(hours=12), "12 hours"),
    _reminder(RuleType.REMINDER_2H, timedelta(hours=2), "2 hours"),
    _reminder(RuleType.REMINDER_1H, timedelta(hours=1), "1 hour"),
    _reminder(RuleType.REMINDER_30MIN, timedelta(minutes=30), "30 minutes"),
)

PRE_EXPIRE_RULES: tuple[NotificationRule, ...] = (
    NotificationRule(
        rule_type=RuleType.PRE_EXPIRE_3D,
        entity_kind=EntityKind.SUBSCRIPTION,
        source=CandidateSource.ACTIVE_SUBSCRIPTIONS,
        channel=ChannelKind.EMAIL,
        precision=Precision.CALENDAR_DAY,
        template="subscription_pre_expire",
        label="3 days",
        day_offset=3,
        lifecycle_target=LifecycleState.PRE_EXPIRE_3D,
        mandatory=True,
    ),
    NotificationRule(
        rule_type=RuleType.PRE_EXPIRE_1D,
        entity_kind=EntityKind.SUBSCRIPTION,
        source=CandidateSource.ACTIVE_SUBSCRIPTIONS,
        channel=ChannelKind.EMAIL,
        precision=Precision.CALENDAR_DAY,
        template="subscription_pre_expire",
        label="tomorrow",
        day_offset=1,
        lifecycle_target=LifecycleState.PRE_EXPIRE_1D,
        mandatory=True,
    ),
)

# ``day_offset`` is replaced with ``-subscriptions.grace_days`` at startup.
GRACE_RULE = NotificationRule(
    rule_type=RuleType.EXPIRE_GRACE,
    entity_kind=EntityKind.SUBSCRIPTION,
    source=CandidateSource.LAPSED_SUBSCRIPTIONS,
    channel=ChannelKind.EMAIL,
    precision=Precision.CALENDAR_DAY,
    template="subscription_expired",
    day_offset=-2,
    comparison=DayComparison.AT_MOST,
    lifecycle_target=LifecycleState.EXPIRED_GRACE,
    mandatory=True,
)

TRIAL_RULES: tuple[NotificationRule, ...] = (
    NotificationRule(
        rule_type=RuleType.TRIAL_ENDING_2D,
        entity_kind=EntityKind.SUBSCRIPTION,
        source=CandidateSource.TRIAL_SUBSCRIPTIONS,
        channel=ChannelKind.EMAIL,
        precision=Precision.CALENDAR_DAY,
        template="trial_ending",
        label="2 days",
        day_offset=2,
        mandatory=True,
    ),
    NotificationRule(
        rule_type=RuleType.TRIAL_LAST_DAY,
        entity_kind=EntityKind.SUBSCRIPTION,
        source=CandidateSource.TRIAL_SUBSCRIPTIONS,
        channel=ChannelKind.EMAIL,
        precision=Precision.CALENDAR_DAY,
        template="trial_last_day",
        day_offset=0,
        mandatory=True,
    ),
    NotificationRule(
        rule_type=RuleType.TRIAL_MISS_YOU,
        entity_kind=EntityKind.SUBSCRIPTION,
        source=CandidateSource.LAPSED_TRIALS,
        channel=ChannelKind.EMAIL,
        precision=Precision.CALENDAR_DAY,
        template="trial_miss_you",
        day_offset=-2,
        mandatory=True,
    ),
)

ALL_RULES: tuple[NotificationRule, ...] = (
    *REMINDER_RULES,
    *PRE_EXPIRE_RULES,
    GRACE_RULE,
    *TRIAL_RULES,
)

MANDATORY_RULE_TYPES: frozenset[RuleType] = frozenset(
    rule.rule_type for rule in ALL_RULES if rule.mandatory
)

TASK_RULES: dict[str, tuple[NotificationRule, ...]] = {
    "appointment_reminders": REMINDER_RULES,
    "subscription_pre_expire": PRE_EXPIRE_RULES,
    "subscription_grace": (GRACE_RULE,),
    "trial_reminders": TRIAL_RULES,
}


def get_rule(rule_type: RuleType | str) -> NotificationRule:
    """Return the rule for *rule_type*; raises :class:`KeyError` if unknown."""
    for rule in ALL_RULES:
        if rule.rule_type == rule_type:
            return rule
    raise KeyError(rule_type)
