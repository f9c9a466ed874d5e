"""Tenant entity, which also carries its subscription."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from remindkit.core.types import LifecycleState, SubscriptionStatus


@dataclass(frozen=True)
class Tenant:
    id: str
    name: str
    email: str | None
    subscription_end: datetime | None
    is_active: bool = True
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    business_plan: str = ""
    last_notification_state: LifecycleState | None = None
    webhook_processed: bool = False
    whatsapp_instance: str | None = None

    @property
    def reference_time(self) -> datetime | None:
        return self.subscription_end

    @property
    def entity_id(self) -> str:
        """Ledger key of the current subscription period.

        A renewal moves ``subscription_end`` and so opens a new period
        whose notices have not been sent yet.  The date is the UTC date of
        the end instant; :meth:`TenantRepository.find_lapsed` rebuilds the
        same key in SQL.
        """
        end = self.subscription_end
        if not isinstance(end, datetime):
            return f"{self.id}:none"
        if end.tzinfo is not None:
            end = end.astimezone(UTC)
        return f"{self.id}:{end.date().isoformat()}"

    @property
    def tenant_id(self) -> str:
        return self.id
