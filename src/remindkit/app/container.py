"""Dependency container for the scheduler daemon.

Created once at startup by the CLI; every collaborator shares the one
:class:`BusinessClock` and the :class:`Database` connection pool.

Usage::

    c = build_container(db, settings)
    c.scheduler.start()
"""

from __future__ import annotations

import dataclasses
import threading
from datetime import timedelta
from typing import TYPE_CHECKING

from remindkit.core.clock import BusinessClock
from remindkit.core.rules import GRACE_RULE, PRE_EXPIRE_RULES, REMINDER_RULES, TRIAL_RULES
from remindkit.core.types import ChannelKind
from remindkit.db.advisory_lock import AdvisoryLock
from remindkit.db.init import database_conninfo
from remindkit.metrics.collector import MetricsCollector
from remindkit.notifications.channels import EmailChannel, WhatsAppChannel
from remindkit.notifications.renderer import TemplateRenderer
from remindkit.repositories import (
    AppointmentRepository,
    AutomationSettingRepository,
    DeliveryRecordRepository,
    TenantRepository,
)
from remindkit.services.dispatcher import NotificationDispatcher
from remindkit.services.engine import NotificationEngine
from remindkit.services.gate import TenantAutomationGate
from remindkit.services.ledger import DeliveryLedger
from remindkit.services.lifecycle import SubscriptionLifecycle
from remindkit.services.matcher import TimeWindowMatcher
from remindkit.services.scheduler import ScheduledTask, SchedulerLoop

if TYPE_CHECKING:
    from collections.abc import Callable

    from pypgkit import Database

    from remindkit.app.shutdown import ShutdownCoordinator
    from remindkit.config.settings import RemindkitSettings
    from remindkit.core.rules import NotificationRule


class Container:
    """Holds the wired-up repositories and services."""

    def __init__(
        self,
        db: Database,
        settings: RemindkitSettings,
        *,
        clock: BusinessClock | None = None,
        coordinator: ShutdownCoordinator | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.db = db
        self.settings = settings
        self.clock = clock or BusinessClock(settings.business.timezone)
        self.metrics = metrics or MetricsCollector()
        self.stop_event = threading.Event()

        # Repositories
        self.appointments = AppointmentRepository(db)
        self.tenants = TenantRepository(db)
        self.automation_settings = AutomationSettingRepository(db)
        self.delivery_records = DeliveryRecordRepository(db)

        # Services
        self.ledger = DeliveryLedger(self.delivery_records, self.tenants)
        self.gate = TenantAutomationGate(self.automation_settings)
        self.matcher = TimeWindowMatcher(
            self.clock,
            self.appointments,
            self.tenants,
            tolerance=timedelta(minutes=settings.reminders.tolerance_minutes),
        )
        self.dispatcher = NotificationDispatcher(
            TemplateRenderer(settings.notifications.templates_path),
            {
                ChannelKind.WHATSAPP: WhatsAppChannel(settings.whatsapp),
                ChannelKind.EMAIL: EmailChannel(settings.smtp),
            },
            self.clock,
            settings.notifications,
        )
        self.lifecycle = SubscriptionLifecycle(
            self.ledger,
            self.dispatcher,
            self.tenants,
            self.clock,
        )
        self.engine = NotificationEngine(
            self.matcher,
            self.gate,
            self.ledger,
            self.dispatcher,
            self.clock,
            lifecycle=self.lifecycle,
            dispatch_delay=settings.scheduler.dispatch_delay_seconds,
            stop_event=self.stop_event,
            metrics=self.metrics,
        )
        self.scheduler = SchedulerLoop(
            self.clock,
            self.build_tasks(),
            loop_interval=settings.scheduler.loop_interval_seconds,
            lock=self._scheduler_lock(settings),
            catch_up_on_start=settings.scheduler.catch_up_on_start,
            stop_event=self.stop_event,
            coordinator=coordinator,
            metrics=self.metrics,
        )

    @staticmethod
    def _scheduler_lock(settings: RemindkitSettings) -> AdvisoryLock | None:
        if not settings.scheduler.leader_election:
            return None
        return AdvisoryLock(
            database_conninfo(settings.database),
            SchedulerLoop.ADVISORY_LOCK_ID,
        )

    def task_rules(self) -> dict[str, tuple[NotificationRule, ...]]:
        """Rules evaluated by each rule-driven task, after config is applied."""
        enabled = set(self.settings.reminders.rules)
        grace = dataclasses.replace(
            GRACE_RULE,
            day_offset=-self.settings.subscriptions.grace_days,
        )
        rules: dict[str, tuple[NotificationRule, ...]] = {
            "appointment_reminders": tuple(
                r for r in REMINDER_RULES if r.rule_type.value in enabled
            ),
            "subscription_pre_expire": PRE_EXPIRE_RULES,
            "subscription_grace": (grace,),
        }
        if self.settings.subscriptions.trial_notices:
            rules["trial_reminders"] = TRIAL_RULES
        return rules

    def build_tasks(self) -> list[ScheduledTask]:
        rules = self.task_rules()
        funcs: dict[str, Callable[[], object]] = {
            name: self._tick(name, task_rules) for name, task_rules in rules.items()
        }
        funcs["trial_expiration"] = self.lifecycle.expire_trials

        return [
            ScheduledTask(name, task.cron, funcs[name])
            for name, task in self.settings.scheduler.tasks.items()
            if task.enabled and name in funcs
        ]

    def _tick(self, name: str, rules: tuple[NotificationRule, ...]) -> Callable[[], object]:
        return lambda: self.engine.run_tick(name, rules)


def build_container(
    db: Database,
    settings: RemindkitSettings,
    **kwargs,
) -> Container:
    return Container(db, settings, **kwargs)
