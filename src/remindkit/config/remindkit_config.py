"""remindkit configuration loader built on ConfigKit.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    RemindkitConfig(config_file="/etc/remindkit/config.yaml")

    # 2. Any module retrieves it afterwards
    from remindkit.config import get_config
    cfg = get_config()
    cfg.settings.scheduler.dispatch_delay_seconds  # typed access
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from configkit import ConfigKit, ConfigKitMeta
from croniter import croniter

from remindkit.config.settings import RemindkitSettings, build_settings
from remindkit.core.rules import REMINDER_RULES

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_REMINDER_RULE_NAMES = frozenset(rule.rule_type.value for rule in REMINDER_RULES)

log = logging.getLogger(__name__)

_instance: RemindkitConfig | None = None


def get_config() -> RemindkitConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`RemindkitConfig` has not
    been created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "RemindkitConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


class ConfigValidationError(Exception):
    """Raised when cross-field validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with the env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(data: Any, path: str = "") -> None:  # noqa: ANN401
    """Walk *data* in-place and resolve ``${VAR}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class RemindkitConfig(ConfigKit):
    """Central configuration for the notification scheduler.

    Subclasses :class:`configkit.ConfigKit`.  The JSON schema is
    bundled at ``config/schema.json``; users supply only ``config_file``.
    """

    def __init__(
        self,
        *,
        config_file: str | Path,
        schema_file: str | Path | None = None,  # noqa: ARG002
    ) -> None:
        """Load, validate and materialise the settings tree.

        ``schema_file`` is ignored; it only satisfies the
        :class:`ConfigKitMeta` singleton guard.
        """
        global _instance  # noqa: PLW0603

        super().__init__(
            config_file=config_file,
            schema_file=_SCHEMA_PATH,
        )
        self._settings: RemindkitSettings = build_settings(self.data)
        _instance = self

    def _load(self) -> None:
        """Load the file, then resolve env-var references before schema validation."""
        super()._load()
        _resolve_env_vars(self._data)

    @property
    def settings(self) -> RemindkitSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    def additional_checks(self) -> None:  # noqa: C901, PLR0912
        """Semantic & cross-field validation, run after schema validation."""
        errors: list[str] = []
        warnings: list[str] = []

        business = self.data.get("business") or {}
        scheduler = self.data.get("scheduler") or {}
        reminders = self.data.get("reminders") or {}
        whatsapp = self.data.get("whatsapp") or {}
        smtp = self.data.get("smtp") or {}

        # -- business --
        tz_name = business.get("timezone", "America/Sao_Paulo")
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"business.timezone '{tz_name}' is not a known IANA timezone")

        # -- scheduler --
        tasks = scheduler.get("tasks") or {}
        for name, task in tasks.items():
            cron = (task or {}).get("cron")
            if cron is not None and not croniter.is_valid(cron):
                errors.append(
                    f"scheduler.tasks.{name}.cron '{cron}' is not a valid cron expression",
                )

        if scheduler.get("dispatch_delay_seconds", 1.0) == 0:
            warnings.append(
                "scheduler.dispatch_delay_seconds is 0; outbound calls will not be throttled",
            )
        if not scheduler.get("leader_election", True):
            warnings.append(
                "scheduler.leader_election is disabled; every replica will evaluate every tick",
            )

        # -- reminders --
        for rule_name in reminders.get("rules", []):
            if rule_name not in _REMINDER_RULE_NAMES:
                errors.append(
                    f"reminders.rules: unknown reminder rule '{rule_name}' "
                    f"(known: {sorted(_REMINDER_RULE_NAMES)})",
                )

        # -- channels --
        if whatsapp.get("enabled"):
            if not whatsapp.get("api_url"):
                errors.append("whatsapp.api_url is required when whatsapp.enabled is true")
            if not whatsapp.get("api_key"):
                errors.append("whatsapp.api_key is required when whatsapp.enabled is true")
        if smtp.get("enabled"):
            if not smtp.get("host"):
                errors.append("smtp.host is required when smtp.enabled is true")
            if not smtp.get("from_address"):
                errors.append("smtp.from_address is required when smtp.enabled is true")
        if not whatsapp.get("enabled") and not smtp.get("enabled"):
            warnings.append(
                "Neither whatsapp nor smtp is enabled; every dispatch will be skipped",
            )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None
        ConfigKitMeta.reset()

    def __repr__(self) -> str:
        source = self.data.get("_source", "?")
        return f"<RemindkitConfig config_file={source}>"
