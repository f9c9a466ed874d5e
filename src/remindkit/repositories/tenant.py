"""Tenant / subscription repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pypgkit import BaseRepository, Database

from remindkit.core.types import LifecycleState, RuleType, SubscriptionStatus
from remindkit.db.errors import storage_errors
from remindkit.db.unit_of_work import UnitOfWork
from remindkit.models.tenant import Tenant

if TYPE_CHECKING:
    from datetime import datetime


class TenantRepository(BaseRepository[Tenant]):
    table_name = "tenants"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Tenant:
        state = row.get("last_notification_state")
        return Tenant(
            id=str(row["id"]),
            name=row["name"],
            email=row.get("email"),
            subscription_end=row.get("subscription_end"),
            is_active=row.get("is_active", True),
            subscription_status=SubscriptionStatus(
                row.get("subscription_status") or SubscriptionStatus.ACTIVE,
            ),
            business_plan=row.get("business_plan") or "",
            last_notification_state=LifecycleState(state) if state else None,
            webhook_processed=row.get("webhook_processed", False),
            whatsapp_instance=row.get("whatsapp_instance"),
        )

    def _entity_to_row(self, entity: Tenant) -> dict:
        return {
            "id": entity.id,
            "name": entity.name,
            "email": entity.email,
            "subscription_end": entity.subscription_end,
            "is_active": entity.is_active,
            "subscription_status": entity.subscription_status.value,
            "business_plan": entity.business_plan,
            "last_notification_state": (
                entity.last_notification_state.value
                if entity.last_notification_state
                else None
            ),
            "webhook_processed": entity.webhook_processed,
            "whatsapp_instance": entity.whatsapp_instance,
        }

    def _find(self, where: str, params: tuple, operation: str) -> list[Tenant]:
        db = Database.get_instance()
        with storage_errors(operation):
            rows = db.fetch_all(
                f"SELECT * FROM tenants WHERE subscription_end IS NOT NULL AND {where} "
                "ORDER BY subscription_end",
                params,
                as_dict=True,
            )
        return [self._row_to_entity(r) for r in rows]

    # -- candidate queries ---------------------------------------------------

    def find_active_ending_between(self, start: datetime, end: datetime) -> list[Tenant]:
        """Active tenants whose subscription ends in ``[start, end)``."""
        return self._find(
            "is_active AND subscription_end >= %s AND subscription_end < %s",
            (start, end),
            "active subscription query",
        )

    def find_lapsed(self, cutoff: datetime) -> list[Tenant]:
        """Tenants past *cutoff* whose period has no expiry notice yet.

        Graced tenants stay candidates until their notice is recorded so
        a failed send is retried.  The period key is rebuilt in SQL the
        same way as :attr:`Tenant.entity_id` (UTC date of the end).
        """
        return self._find(
            "subscription_end < %s AND (is_active OR last_notification_state = %s) "
            "AND NOT EXISTS (SELECT 1 FROM delivery_records d WHERE d.rule_type = %s "
            "AND d.entity_id = tenants.id || ':' || "
            "to_char(tenants.subscription_end AT TIME ZONE 'UTC', 'YYYY-MM-DD'))",
            (cutoff, LifecycleState.EXPIRED_GRACE.value, RuleType.EXPIRE_GRACE.value),
            "lapsed subscription query",
        )

    def find_trials_ending_between(self, start: datetime, end: datetime) -> list[Tenant]:
        return self._find(
            "subscription_status = %s AND subscription_end >= %s AND subscription_end < %s",
            (SubscriptionStatus.TRIAL.value, start, end),
            "trial subscription query",
        )

    def find_lapsed_trials_between(self, start: datetime, end: datetime) -> list[Tenant]:
        return self._find(
            "subscription_status = %s AND business_plan = %s "
            "AND subscription_end >= %s AND subscription_end < %s",
            (SubscriptionStatus.INACTIVE.value, SubscriptionStatus.TRIAL.value, start, end),
            "lapsed trial query",
        )

    def find_expired_trials(self, now: datetime) -> list[Tenant]:
        return self._find(
            "subscription_status = %s AND subscription_end < %s",
            (SubscriptionStatus.TRIAL.value, now),
            "expired trial query",
        )

    # -- lifecycle writes ----------------------------------------------------

    def read_state(self, tenant_id: str) -> str | None:
        """Return the raw ``last_notification_state`` column value."""
        db = Database.get_instance()
        with storage_errors("lifecycle state read"):
            return db.fetch_value(
                "SELECT last_notification_state FROM tenants WHERE id = %s",
                (tenant_id,),
            )

    def compare_and_set_state(
        self,
        tenant_id: str,
        expected: str | None,
        new_state: LifecycleState | None,
        *,
        deactivate: bool = False,
    ) -> bool:
        """Set the lifecycle state only if it still equals *expected*.

        With *deactivate* the tenant is switched off in the same
        transaction.  A ``None`` *new_state* only deactivates.  Returns
        whether the state was written.
        """
        with storage_errors("lifecycle state update"), UnitOfWork() as uow:
            if deactivate:
                uow.execute(
                    "UPDATE tenants SET is_active = false, updated_at = now() WHERE id = %s",
                    (tenant_id,),
                )
            if new_state is None:
                return False
            rowcount = uow.execute(
                "UPDATE tenants SET last_notification_state = %s, updated_at = now() "
                "WHERE id = %s AND last_notification_state IS NOT DISTINCT FROM %s::text",
                (new_state.value, tenant_id, expected),
            )
        return rowcount == 1

    def expire_trial(self, tenant_id: str) -> bool:
        """Deactivate a trial tenant; returns False if it is no longer a trial."""
        db = Database.get_instance()
        with storage_errors("trial expiration"):
            rowcount = db.execute(
                "UPDATE tenants SET is_active = false, subscription_status = %s, "
                "updated_at = now() WHERE id = %s AND subscription_status = %s",
                (SubscriptionStatus.INACTIVE.value, tenant_id, SubscriptionStatus.TRIAL.value),
            )
        return rowcount == 1
