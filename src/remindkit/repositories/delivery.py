"""Delivery record repository (the idempotency ledger's storage)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from psycopg import errors as pg_errors
from pypgkit import BaseRepository, Database

from remindkit.core.errors import DuplicateDeliveryConflict
from remindkit.core.types import RuleType
from remindkit.db.errors import storage_errors
from remindkit.models.delivery import DeliveryRecord

if TYPE_CHECKING:
    from datetime import datetime


class DeliveryRecordRepository(BaseRepository[DeliveryRecord]):
    table_name = "delivery_records"
    primary_key = "entity_id"

    def _row_to_entity(self, row: dict) -> DeliveryRecord:
        return DeliveryRecord(
            entity_id=row["entity_id"],
            rule_type=RuleType(row["rule_type"]),
            sent_at=row["sent_at"],
            created_at=row["created_at"],
        )

    def _entity_to_row(self, entity: DeliveryRecord) -> dict:
        return {
            "entity_id": entity.entity_id,
            "rule_type": entity.rule_type.value,
            "sent_at": entity.sent_at,
        }

    def exists(self, entity_id: str, rule_type: RuleType) -> bool:
        db = Database.get_instance()
        with storage_errors("delivery record lookup"):
            return bool(
                db.fetch_value(
                    "SELECT EXISTS (SELECT 1 FROM delivery_records "
                    "WHERE entity_id = %s AND rule_type = %s)",
                    (entity_id, rule_type.value),
                ),
            )

    def insert_if_absent(
        self,
        entity_id: str,
        rule_type: RuleType,
        sent_at: datetime,
    ) -> bool:
        """Insert the record unless it exists.

        Returns True when this call created the row (rowcount == 1) and
        False when another writer got there first.  A unique violation
        that slips past ``ON CONFLICT`` is raised as
        :class:`DuplicateDeliveryConflict`.
        """
        db = Database.get_instance()
        try:
            with storage_errors("delivery record insert"):
                rowcount = db.execute(
                    "INSERT INTO delivery_records (entity_id, rule_type, sent_at) "
                    "VALUES (%s, %s, %s) "
                    "ON CONFLICT (entity_id, rule_type) DO NOTHING",
                    (entity_id, rule_type.value, sent_at),
                )
        except pg_errors.UniqueViolation as exc:
            raise DuplicateDeliveryConflict(entity_id, rule_type.value) from exc
        return rowcount == 1

    def find_for_entity(self, entity_id: str) -> list[DeliveryRecord]:
        db = Database.get_instance()
        with storage_errors("delivery record listing"):
            rows = db.fetch_all(
                "SELECT * FROM delivery_records WHERE entity_id = %s ORDER BY sent_at",
                (entity_id,),
                as_dict=True,
            )
        return [self._row_to_entity(r) for r in rows]
