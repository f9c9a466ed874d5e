"""Appointment entity (read-only view joined with its tenant)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from remindkit.core.types import AppointmentStatus


@dataclass(frozen=True)
class Appointment:
    id: str
    tenant_id: str
    start_time: datetime | None
    status: AppointmentStatus
    client_name: str = ""
    client_phone: str | None = None
    professional_name: str = ""
    service_summary: str = ""
    total_price: Decimal | None = None
    business_name: str = ""
    business_phone: str | None = None
    whatsapp_instance: str | None = None

    @property
    def entity_id(self) -> str:
        return str(self.id)

    @property
    def reference_time(self) -> datetime | None:
        return self.start_time
