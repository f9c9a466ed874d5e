"""Per-tenant automation toggle."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AutomationSetting:
    tenant_id: str
    automation_type: str
    is_enabled: bool
