"""Tests for the PostgreSQL repositories against a mocked Database."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

import psycopg
import pytest

from remindkit.core.errors import DuplicateDeliveryConflict, RepositoryUnavailable
from remindkit.core.types import AppointmentStatus, LifecycleState, RuleType, SubscriptionStatus
from remindkit.repositories import (
    AppointmentRepository,
    AutomationSettingRepository,
    DeliveryRecordRepository,
    TenantRepository,
)

SP = ZoneInfo("America/Sao_Paulo")
START = datetime(2025, 8, 8, 7, 57, tzinfo=SP)
END = datetime(2025, 8, 8, 8, 7, tzinfo=SP)


@pytest.fixture()
def db():
    mock_db = MagicMock()
    with (
        patch("remindkit.repositories.appointment.Database") as appt_cls,
        patch("remindkit.repositories.automation.Database") as auto_cls,
        patch("remindkit.repositories.delivery.Database") as delivery_cls,
        patch("remindkit.repositories.tenant.Database") as tenant_cls,
        patch("remindkit.db.unit_of_work.Database") as uow_cls,
    ):
        for cls in (appt_cls, auto_cls, delivery_cls, tenant_cls, uow_cls):
            cls.get_instance.return_value = mock_db
        yield mock_db


def _tenant_row(**overrides):
    row = {
        "id": "t1",
        "name": "Salon",
        "email": "owner@example.com",
        "subscription_end": datetime(2025, 8, 10, tzinfo=SP),
        "is_active": True,
        "subscription_status": "ACTIVE",
        "business_plan": "PRO",
        "last_notification_state": None,
        "webhook_processed": False,
        "whatsapp_instance": "salon",
    }
    row.update(overrides)
    return row


class TestAppointmentRepository:
    def test_window_query(self, db):
        db.fetch_all.return_value = [
            {
                "id": "a1",
                "tenant_id": "t1",
                "start_time": datetime(2025, 8, 8, 8, 0, tzinfo=SP),
                "status": "CONFIRMED",
                "client_name": "Maria",
                "client_phone": "11987654321",
                "business_name": "Salon",
                "whatsapp_instance": "salon",
            },
        ]
        appointments = AppointmentRepository(db).find_starting_between(START, END)

        sql, params = db.fetch_all.call_args.args
        assert "BETWEEN %s AND %s" in sql
        assert "t.is_active" in sql
        assert params == (START, END, ["SCHEDULED", "CONFIRMED"])
        assert appointments[0].status is AppointmentStatus.CONFIRMED
        assert appointments[0].business_name == "Salon"
        assert appointments[0].professional_name == ""

    def test_outage_raises_repository_unavailable(self, db):
        db.fetch_all.side_effect = psycopg.OperationalError("down")
        with pytest.raises(RepositoryUnavailable):
            AppointmentRepository(db).find_starting_between(START, END)


class TestAutomationSettingRepository:
    def test_missing_row_is_none(self, db):
        db.fetch_one.return_value = None
        assert AutomationSettingRepository(db).is_enabled("t1", "reminder_24h") is None

    def test_stored_value(self, db):
        db.fetch_one.return_value = {"is_enabled": False}
        assert AutomationSettingRepository(db).is_enabled("t1", "reminder_24h") is False
        assert db.fetch_one.call_args.args[1] == ("t1", "reminder_24h")


class TestDeliveryRecordRepository:
    def test_exists(self, db):
        db.fetch_value.return_value = True
        assert DeliveryRecordRepository(db).exists("a1", RuleType.REMINDER_24H)
        assert db.fetch_value.call_args.args[1] == ("a1", "reminder_24h")

    def test_insert_created(self, db):
        db.execute.return_value = 1
        assert DeliveryRecordRepository(db).insert_if_absent("a1", RuleType.REMINDER_24H, END)
        assert "ON CONFLICT (entity_id, rule_type) DO NOTHING" in db.execute.call_args.args[0]

    def test_insert_conflict(self, db):
        db.execute.return_value = 0
        assert not DeliveryRecordRepository(db).insert_if_absent(
            "a1",
            RuleType.REMINDER_24H,
            END,
        )

    def test_unique_violation_raised_as_conflict(self, db):
        db.execute.side_effect = psycopg.errors.UniqueViolation("duplicate key")
        with pytest.raises(DuplicateDeliveryConflict) as exc_info:
            DeliveryRecordRepository(db).insert_if_absent("a1", RuleType.REMINDER_24H, END)
        assert exc_info.value.entity_id == "a1"
        assert exc_info.value.rule_type == "reminder_24h"

    def test_find_for_entity(self, db):
        db.fetch_all.return_value = [
            {"entity_id": "a1", "rule_type": "reminder_24h", "sent_at": END, "created_at": END},
        ]
        records = DeliveryRecordRepository(db).find_for_entity("a1")
        assert records[0].rule_type is RuleType.REMINDER_24H


class TestTenantRepository:
    def test_row_mapping(self, db):
        db.fetch_all.return_value = [
            _tenant_row(last_notification_state="PRE_EXPIRE_3D", subscription_status="TRIAL"),
        ]
        (tenant,) = TenantRepository(db).find_active_ending_between(START, END)
        assert tenant.last_notification_state is LifecycleState.PRE_EXPIRE_3D
        assert tenant.subscription_status is SubscriptionStatus.TRIAL
        assert tenant.entity_id == "t1:2025-08-10"

    def test_lapsed_includes_graced_until_notified(self, db):
        db.fetch_all.return_value = []
        TenantRepository(db).find_lapsed(START)
        sql, params = db.fetch_all.call_args.args
        assert "is_active OR last_notification_state = %s" in sql
        assert "NOT EXISTS (SELECT 1 FROM delivery_records d" in sql
        assert "AT TIME ZONE 'UTC'" in sql
        assert params == (START, "EXPIRED_GRACE", "expire_grace")

    def test_compare_and_set(self, db):
        conn = db.transaction.return_value.__enter__.return_value
        cursor = conn.cursor.return_value.__enter__.return_value
        cursor.rowcount = 1

        applied = TenantRepository(db).compare_and_set_state(
            "t1",
            "PRE_EXPIRE_3D",
            LifecycleState.PRE_EXPIRE_1D,
            deactivate=True,
        )

        assert applied
        statements = [c.args[0] for c in cursor.execute.call_args_list]
        assert "is_active = false" in statements[0]
        assert "IS NOT DISTINCT FROM" in statements[1]
        assert cursor.execute.call_args_list[1].args[1] == ("PRE_EXPIRE_1D", "t1", "PRE_EXPIRE_3D")

    def test_compare_and_set_lost_race(self, db):
        conn = db.transaction.return_value.__enter__.return_value
        conn.cursor.return_value.__enter__.return_value.rowcount = 0
        assert not TenantRepository(db).compare_and_set_state(
            "t1",
            None,
            LifecycleState.PRE_EXPIRE_3D,
        )

    def test_deactivate_only(self, db):
        conn = db.transaction.return_value.__enter__.return_value
        cursor = conn.cursor.return_value.__enter__.return_value
        repo = TenantRepository(db)
        assert not repo.compare_and_set_state("t1", "CANCELED", None, deactivate=True)
        assert cursor.execute.call_count == 1

    def test_expire_trial(self, db):
        db.execute.return_value = 1
        assert TenantRepository(db).expire_trial("t1")
        assert db.execute.call_args.args[1] == ("INACTIVE", "t1", "TRIAL")
