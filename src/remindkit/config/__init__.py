"""Configuration subsystem for remindkit.

Public API::

    from remindkit.config import get_config, RemindkitConfig

    # At startup (CLI only):
    RemindkitConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    tz = cfg.settings.business.timezone
"""

from remindkit.config.remindkit_config import (
    ConfigValidationError,
    RemindkitConfig,
    get_config,
)
from remindkit.config.settings import (
    BusinessSettings,
    DatabaseSettings,
    LoggingSettings,
    NotificationSettings,
    ReminderSettings,
    RemindkitSettings,
    SchedulerSettings,
    SmtpSettings,
    SubscriptionSettings,
    TaskScheduleSettings,
    TaskSettings,
    WhatsAppSettings,
    build_settings,
)

__all__ = [
    "BusinessSettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "LoggingSettings",
    "NotificationSettings",
    "ReminderSettings",
    "RemindkitConfig",
    "RemindkitSettings",
    "SchedulerSettings",
    "SmtpSettings",
    "SubscriptionSettings",
    "TaskScheduleSettings",
    "TaskSettings",
    "WhatsAppSettings",
    "build_settings",
    "get_config",
]
