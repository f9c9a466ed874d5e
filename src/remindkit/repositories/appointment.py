"""Appointment repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pypgkit import BaseRepository, Database

from remindkit.core.types import AppointmentStatus
from remindkit.db.errors import storage_errors
from remindkit.models.appointment import Appointment

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

_SELECT = (
    "SELECT a.*, t.name AS business_name, t.business_phone, t.whatsapp_instance "
    "FROM appointments a JOIN tenants t ON t.id = a.tenant_id "
)


class AppointmentRepository(BaseRepository[Appointment]):
    table_name = "appointments"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Appointment:
        return Appointment(
            id=str(row["id"]),
            tenant_id=str(row["tenant_id"]),
            start_time=row.get("start_time"),
            status=AppointmentStatus(row["status"]),
            client_name=row.get("client_name") or "",
            client_phone=row.get("client_phone"),
            professional_name=row.get("professional_name") or "",
            service_summary=row.get("service_summary") or "",
            total_price=row.get("total_price"),
            business_name=row.get("business_name") or "",
            business_phone=row.get("business_phone"),
            whatsapp_instance=row.get("whatsapp_instance"),
        )

    def _entity_to_row(self, entity: Appointment) -> dict:
        return {
            "id": entity.id,
            "tenant_id": entity.tenant_id,
            "start_time": entity.start_time,
            "status": entity.status.value,
            "client_name": entity.client_name,
            "client_phone": entity.client_phone,
            "professional_name": entity.professional_name,
            "service_summary": entity.service_summary,
            "total_price": entity.total_price,
        }

    def find_starting_between(
        self,
        start: datetime,
        end: datetime,
        statuses: Iterable[AppointmentStatus] = (
            AppointmentStatus.SCHEDULED,
            AppointmentStatus.CONFIRMED,
        ),
    ) -> list[Appointment]:
        """Appointments of active tenants starting in ``[start, end]``."""
        db = Database.get_instance()
        with storage_errors("appointment window query"):
            rows = db.fetch_all(
                _SELECT + "WHERE a.start_time BETWEEN %s AND %s "
                "AND a.status = ANY(%s) AND t.is_active "
                "ORDER BY a.start_time",
                (start, end, [s.value for s in statuses]),
                as_dict=True,
            )
        return [self._row_to_entity(r) for r in rows]
