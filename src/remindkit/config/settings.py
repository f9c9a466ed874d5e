"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders are
what the scheduler actually reads.

Access pattern::

    from remindkit.config import get_config

    sched = get_config().settings.scheduler
    print(sched.tasks.appointment_reminders.cron)
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Business
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BusinessSettings:
    """Timezone every calendar-day comparison is made in."""

    timezone: str


def _build_business(data: dict | None) -> BusinessSettings:
    d = data or {}
    return BusinessSettings(timezone=d.get("timezone", "America/Sao_Paulo"))


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection and pool settings."""

    host: str
    port: int
    database: str
    user: str
    password: str
    sslmode: str
    min_connections: int
    max_connections: int
    connection_timeout: float
    auto_setup: bool


def _build_database(data: dict | None) -> DatabaseSettings:
    d = data or {}
    return DatabaseSettings(
        host=d.get("host", "localhost"),
        port=d.get("port", 5432),
        database=d["database"],
        user=d["user"],
        password=d.get("password", ""),
        sslmode=d.get("sslmode", "prefer"),
        min_connections=d.get("min_connections", 1),
        max_connections=d.get("max_connections", 4),
        connection_timeout=d.get("connection_timeout", 10.0),
        auto_setup=d.get("auto_setup", False),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
    )


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskSettings:
    """One scheduled task: a cron expression in the business timezone."""

    enabled: bool
    cron: str


@dataclass(frozen=True)
class TaskScheduleSettings:
    appointment_reminders: TaskSettings
    trial_expiration: TaskSettings
    subscription_pre_expire: TaskSettings
    subscription_grace: TaskSettings
    trial_reminders: TaskSettings

    def items(self) -> list[tuple[str, TaskSettings]]:
        return [
            ("appointment_reminders", self.appointment_reminders),
            ("trial_expiration", self.trial_expiration),
            ("subscription_pre_expire", self.subscription_pre_expire),
            ("subscription_grace", self.subscription_grace),
            ("trial_reminders", self.trial_reminders),
        ]


_DEFAULT_CRONS = {
    "appointment_reminders": "*/5 * * * *",
    "trial_expiration": "2 0 * * *",
    "subscription_pre_expire": "5 0 * * *",
    "subscription_grace": "10 0 * * *",
    "trial_reminders": "0 9 * * *",
}


def _build_task(name: str, data: dict | None) -> TaskSettings:
    d = data or {}
    return TaskSettings(
        enabled=d.get("enabled", True),
        cron=d.get("cron", _DEFAULT_CRONS[name]),
    )


@dataclass(frozen=True)
class SchedulerSettings:
    """Daemon loop and per-task timers."""

    loop_interval_seconds: int
    dispatch_delay_seconds: float
    leader_election: bool
    catch_up_on_start: bool
    graceful_timeout_seconds: int
    tasks: TaskScheduleSettings


def _build_scheduler(data: dict | None) -> SchedulerSettings:
    d = data or {}
    t = d.get("tasks") or {}
    return SchedulerSettings(
        loop_interval_seconds=d.get("loop_interval_seconds", 30),
        dispatch_delay_seconds=d.get("dispatch_delay_seconds", 1.0),
        leader_election=d.get("leader_election", True),
        catch_up_on_start=d.get("catch_up_on_start", True),
        graceful_timeout_seconds=d.get("graceful_timeout_seconds", 30),
        tasks=TaskScheduleSettings(
            **{name: _build_task(name, t.get(name)) for name in _DEFAULT_CRONS},
        ),
    )


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReminderSettings:
    """Appointment reminder rules."""

    tolerance_minutes: int
    rules: tuple[str, ...]


def _build_reminders(data: dict | None) -> ReminderSettings:
    d = data or {}
    return ReminderSettings(
        tolerance_minutes=d.get("tolerance_minutes", 5),
        rules=tuple(
            d.get(
                "rules",
                ["reminder_24h", "reminder_12h", "reminder_2h", "reminder_1h", "reminder_30min"],
            ),
        ),
    )


@dataclass(frozen=True)
class SubscriptionSettings:
    grace_days: int
    trial_notices: bool


def _build_subscriptions(data: dict | None) -> SubscriptionSettings:
    d = data or {}
    return SubscriptionSettings(
        grace_days=d.get("grace_days", 2),
        trial_notices=d.get("trial_notices", True),
    )


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WhatsAppSettings:
    """Evolution-style WhatsApp HTTP gateway."""

    enabled: bool
    api_url: str
    api_key: str
    timeout_seconds: int


def _build_whatsapp(data: dict | None) -> WhatsAppSettings:
    d = data or {}
    return WhatsAppSettings(
        enabled=d.get("enabled", False),
        api_url=d.get("api_url", "").rstrip("/"),
        api_key=d.get("api_key", ""),
        timeout_seconds=d.get("timeout_seconds", 10),
    )


@dataclass(frozen=True)
class SmtpSettings:
    """SMTP outbound email delivery settings."""

    enabled: bool
    host: str
    port: int
    username: str
    password: str
    use_tls: bool
    from_address: str
    timeout_seconds: int


def _build_smtp(data: dict | None) -> SmtpSettings:
    d = data or {}
    return SmtpSettings(
        enabled=d.get("enabled", False),
        host=d.get("host", ""),
        port=d.get("port", 587),
        username=d.get("username", ""),
        password=d.get("password", ""),
        use_tls=d.get("use_tls", True),
        from_address=d.get("from_address", ""),
        timeout_seconds=d.get("timeout_seconds", 10),
    )


@dataclass(frozen=True)
class NotificationSettings:
    """Message composition."""

    templates_path: str | None
    portal_url: str
    product_name: str


def _build_notifications(data: dict | None) -> NotificationSettings:
    d = data or {}
    return NotificationSettings(
        templates_path=d.get("templates_path"),
        portal_url=d.get("portal_url", "").rstrip("/"),
        product_name=d.get("product_name", "remindkit"),
    )


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RemindkitSettings:
    business: BusinessSettings
    database: DatabaseSettings
    logging: LoggingSettings
    scheduler: SchedulerSettings
    reminders: ReminderSettings
    subscriptions: SubscriptionSettings
    whatsapp: WhatsAppSettings
    smtp: SmtpSettings
    notifications: NotificationSettings


def build_settings(data: dict) -> RemindkitSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`RemindkitConfig` initialisation after
    schema validation and environment-variable resolution.
    """
    return RemindkitSettings(
        business=_build_business(data.get("business")),
        database=_build_database(data.get("database")),
        logging=_build_logging(data.get("logging")),
        scheduler=_build_scheduler(data.get("scheduler")),
        reminders=_build_reminders(data.get("reminders")),
        subscriptions=_build_subscriptions(data.get("subscriptions")),
        whatsapp=_build_whatsapp(data.get("whatsapp")),
        smtp=_build_smtp(data.get("smtp")),
        notifications=_build_notifications(data.get("notifications")),
    )
