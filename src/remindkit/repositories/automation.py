"""Automation settings repository (tenant-owned toggles)."""

from __future__ import annotations

from pypgkit import BaseRepository, Database

from remindkit.db.errors import storage_errors
from remindkit.models.automation import AutomationSetting


class AutomationSettingRepository(BaseRepository[AutomationSetting]):
    table_name = "automation_settings"
    primary_key = "tenant_id"

    def _row_to_entity(self, row: dict) -> AutomationSetting:
        return AutomationSetting(
            tenant_id=str(row["tenant_id"]),
            automation_type=row["automation_type"],
            is_enabled=bool(row.get("is_enabled")),
        )

    def _entity_to_row(self, entity: AutomationSetting) -> dict:
        return {
            "tenant_id": entity.tenant_id,
            "automation_type": entity.automation_type,
            "is_enabled": entity.is_enabled,
        }

    def is_enabled(self, tenant_id: str, automation_type: str) -> bool | None:
        """Return the stored toggle, or ``None`` when no row exists."""
        db = Database.get_instance()
        with storage_errors("automation setting lookup"):
            row = db.fetch_one(
                "SELECT is_enabled FROM automation_settings "
                "WHERE tenant_id = %s AND automation_type = %s",
                (tenant_id, automation_type),
                as_dict=True,
            )
        if row is None:
            return None
        return row["is_enabled"]
