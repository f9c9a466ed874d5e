"""Root conftest for the remindkit test suite."""

from __future__ import annotations

import dataclasses
import logging
import sys
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from remindkit.core.clock import BusinessClock  # noqa: E402
from remindkit.core.types import LifecycleState, SubscriptionStatus  # noqa: E402

SAO_PAULO = ZoneInfo("America/Sao_Paulo")


# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "database": {"database": "remindkit_test", "user": "testuser"},
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# ConfigKit singleton cleanup (autouse)
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the RemindkitConfig singleton before and after every test."""
    from remindkit.config.remindkit_config import RemindkitConfig

    RemindkitConfig.reset()
    yield
    RemindkitConfig.reset()


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FrozenClock(BusinessClock):
    """BusinessClock whose "now" is set by the test."""

    def __init__(self, now: datetime, timezone: str = "America/Sao_Paulo") -> None:
        super().__init__(timezone, now_func=lambda: self.current)
        self.current = now

    def set(self, now: datetime) -> None:
        self.current = now


@pytest.fixture()
def clock() -> FrozenClock:
    """Frozen at 2025-08-07 08:02 in São Paulo."""
    return FrozenClock(datetime(2025, 8, 7, 8, 2, tzinfo=SAO_PAULO))


# ---------------------------------------------------------------------------
# In-memory repositories
#
# They honour the two storage contracts the services rely on: at most one
# delivery record per (entity, rule type), and compare-and-set lifecycle
# writes.
# ---------------------------------------------------------------------------


class InMemoryDeliveryRepo:
    def __init__(self) -> None:
        self.records: dict[tuple[str, str], datetime] = {}
        self.insert_calls = 0

    def exists(self, entity_id, rule_type) -> bool:
        return (entity_id, str(rule_type)) in self.records

    def insert_if_absent(self, entity_id, rule_type, sent_at) -> bool:
        self.insert_calls += 1
        key = (entity_id, str(rule_type))
        if key in self.records:
            return False
        self.records[key] = sent_at
        return True

    def find_for_entity(self, entity_id):
        return [
            (rule_type, sent_at)
            for (eid, rule_type), sent_at in sorted(self.records.items())
            if eid == entity_id
        ]


class InMemoryTenantRepo:
    def __init__(self, tenants=(), delivery_repo=None) -> None:
        self.tenants = {t.id: t for t in tenants}
        self.delivery_repo = delivery_repo
        self.cas_calls: list[tuple] = []

    def add(self, tenant) -> None:
        self.tenants[tenant.id] = tenant

    def get(self, tenant_id):
        return self.tenants[tenant_id]

    def _where(self, predicate):
        return sorted(
            (t for t in self.tenants.values() if t.subscription_end and predicate(t)),
            key=lambda t: t.subscription_end,
        )

    def find_active_ending_between(self, start, end):
        return self._where(lambda t: t.is_active and start <= t.subscription_end < end)

    def find_lapsed(self, cutoff):
        notified = set()
        if self.delivery_repo is not None:
            notified = {
                eid for eid, rule_type in self.delivery_repo.records if rule_type == "expire_grace"
            }
        return self._where(
            lambda t: t.subscription_end < cutoff
            and (t.is_active or t.last_notification_state == LifecycleState.EXPIRED_GRACE)
            and t.entity_id not in notified,
        )

    def find_trials_ending_between(self, start, end):
        return self._where(
            lambda t: t.subscription_status == SubscriptionStatus.TRIAL
            and start <= t.subscription_end < end,
        )

    def find_lapsed_trials_between(self, start, end):
        return self._where(
            lambda t: t.subscription_status == SubscriptionStatus.INACTIVE
            and t.business_plan == "TRIAL"
            and start <= t.subscription_end < end,
        )

    def find_expired_trials(self, now):
        return self._where(
            lambda t: t.subscription_status == SubscriptionStatus.TRIAL
            and t.subscription_end < now,
        )

    def read_state(self, tenant_id):
        state = self.tenants[tenant_id].last_notification_state
        return state.value if state is not None else None

    def compare_and_set_state(self, tenant_id, expected, new_state, *, deactivate=False):
        self.cas_calls.append((tenant_id, expected, new_state, deactivate))
        tenant = self.tenants[tenant_id]
        if deactivate:
            tenant = dataclasses.replace(tenant, is_active=False)
            self.tenants[tenant_id] = tenant
        if new_state is None:
            return False
        if self.read_state(tenant_id) != expected:
            return False
        self.tenants[tenant_id] = dataclasses.replace(tenant, last_notification_state=new_state)
        return True

    def expire_trial(self, tenant_id):
        tenant = self.tenants[tenant_id]
        if tenant.subscription_status != SubscriptionStatus.TRIAL:
            return False
        self.tenants[tenant_id] = dataclasses.replace(
            tenant,
            is_active=False,
            subscription_status=SubscriptionStatus.INACTIVE,
        )
        return True


class InMemoryAppointmentRepo:
    def __init__(self, appointments=()) -> None:
        self.appointments = list(appointments)
        self.queries: list[tuple[datetime, datetime]] = []

    def find_starting_between(self, start, end, statuses=None):
        self.queries.append((start, end))
        return [
            a
            for a in self.appointments
            if isinstance(a.start_time, datetime) and start <= a.start_time <= end
        ]


class InMemoryAutomationRepo:
    def __init__(self, settings: dict | None = None) -> None:
        self.settings = dict(settings or {})

    def is_enabled(self, tenant_id, automation_type):
        return self.settings.get((tenant_id, automation_type))


@pytest.fixture()
def delivery_repo() -> InMemoryDeliveryRepo:
    return InMemoryDeliveryRepo()


@pytest.fixture()
def tenant_repo(delivery_repo) -> InMemoryTenantRepo:
    return InMemoryTenantRepo(delivery_repo=delivery_repo)


@pytest.fixture()
def appointment_repo() -> InMemoryAppointmentRepo:
    return InMemoryAppointmentRepo()


@pytest.fixture()
def automation_repo() -> InMemoryAutomationRepo:
    return InMemoryAutomationRepo()


@pytest.fixture(autouse=True)
def _restore_remindkit_logger():
    """Undo ``configure_logging`` so caplog keeps seeing remindkit records."""
    logger = logging.getLogger("remindkit")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
