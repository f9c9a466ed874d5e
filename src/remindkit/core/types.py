"""Enumerated types for the remindkit persistence layer.

All enums inherit from :class:`enum.StrEnum` so their ``.value`` is a
plain string that psycopg serialises as TEXT and that round-trips
through the ``delivery_records`` and ``tenants`` tables unchanged.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Appointment
# ---------------------------------------------------------------------------


class AppointmentStatus(StrEnum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# ---------------------------------------------------------------------------
# Tenant / subscription
# ---------------------------------------------------------------------------


class SubscriptionStatus(StrEnum):
    ACTIVE = "ACTIVE"
    TRIAL = "TRIAL"
    INACTIVE = "INACTIVE"


class LifecycleState(StrEnum):
    """Last subscription notice sent to a tenant.

    ``EXPIRED_WEBHOOK`` and ``CANCELED`` are written by the billing
    webhook path, never by the scheduler.
    """

    ACTIVE = "ACTIVE"
    PRE_EXPIRE_3D = "PRE_EXPIRE_3D"
    PRE_EXPIRE_1D = "PRE_EXPIRE_1D"
    EXPIRED_GRACE = "EXPIRED_GRACE"
    EXPIRED_WEBHOOK = "EXPIRED_WEBHOOK"
    CANCELED = "CANCELED"


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


class RuleType(StrEnum):
    REMINDER_24H = "reminder_24h"
    REMINDER_12H = "reminder_12h"
    REMINDER_2H = "reminder_2h"
    REMINDER_1H = "reminder_1h"
    REMINDER_30MIN = "reminder_30min"
    PRE_EXPIRE_3D = "pre_expire_3d"
    PRE_EXPIRE_1D = "pre_expire_1d"
    EXPIRE_GRACE = "expire_grace"
    TRIAL_ENDING_2D = "trial_ending_2d"
    TRIAL_LAST_DAY = "trial_last_day"
    TRIAL_MISS_YOU = "trial_miss_you"


class Precision(StrEnum):
    WINDOWED = "windowed"
    CALENDAR_DAY = "calendar_day"


class DayComparison(StrEnum):
    EQUAL = "eq"
    AT_MOST = "le"


class EntityKind(StrEnum):
    APPOINTMENT = "appointment"
    SUBSCRIPTION = "subscription"


class CandidateSource(StrEnum):
    UPCOMING_APPOINTMENTS = "upcoming_appointments"
    ACTIVE_SUBSCRIPTIONS = "active_subscriptions"
    LAPSED_SUBSCRIPTIONS = "lapsed_subscriptions"
    TRIAL_SUBSCRIPTIONS = "trial_subscriptions"
    LAPSED_TRIALS = "lapsed_trials"


class ChannelKind(StrEnum):
    WHATSAPP = "whatsapp"
    EMAIL = "email"
