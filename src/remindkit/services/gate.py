"""Per-tenant automation gate.

Answers "may this tenant receive this rule's notification right now".
The answer is read from storage on every call so a toggle takes effect
on the next tick.  Anything other than an explicit ``true`` denies.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remindkit.core.rules import MANDATORY_RULE_TYPES

if TYPE_CHECKING:
    from remindkit.core.types import RuleType
    from remindkit.repositories.automation import AutomationSettingRepository

log = logging.getLogger(__name__)


class TenantAutomationGate:
    def __init__(self, settings_repo: AutomationSettingRepository) -> None:
        self._settings = settings_repo

    def is_enabled(self, tenant_id: str, rule_type: RuleType | str) -> bool:
        if rule_type in MANDATORY_RULE_TYPES:
            return True
        enabled = self._settings.is_enabled(tenant_id, str(rule_type))
        if enabled is None:
            log.debug("No automation setting for tenant %s / %s; denying", tenant_id, rule_type)
            return False
        return enabled is True
