"""Subscription lifecycle on top of the notification engine.

Pre-expire notices advance ``last_notification_state`` forward only.
The grace rule deactivates the tenant and sends the expiry notice,
except where the billing webhook already handled the expiry.  Trial
tenants past their end date are switched off by :meth:`expire_trials`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remindkit.core.errors import RepositoryUnavailable
from remindkit.core.state import TERMINAL_STATES, can_advance
from remindkit.core.types import LifecycleState, RuleType
from remindkit.services.engine import Outcome

if TYPE_CHECKING:
    from datetime import datetime

    from remindkit.core.clock import BusinessClock
    from remindkit.core.rules import NotificationRule
    from remindkit.models.tenant import Tenant
    from remindkit.repositories.tenant import TenantRepository
    from remindkit.services.dispatcher import NotificationDispatcher
    from remindkit.services.ledger import DeliveryLedger

log = logging.getLogger(__name__)


class SubscriptionLifecycle:
    def __init__(
        self,
        ledger: DeliveryLedger,
        dispatcher: NotificationDispatcher,
        tenant_repo: TenantRepository,
        clock: BusinessClock,
    ) -> None:
        self._ledger = ledger
        self._dispatcher = dispatcher
        self._tenants = tenant_repo
        self._clock = clock

    def process(self, rule: NotificationRule, tenant: Tenant, now: datetime) -> Outcome:
        if self._ledger.has_delivered(tenant.entity_id, rule.rule_type):
            return Outcome.ALREADY_DELIVERED
        if rule.rule_type == RuleType.EXPIRE_GRACE:
            return self._expire_after_grace(rule, tenant)
        return self._pre_expire(rule, tenant)

    def expire_trials(self) -> int:
        """Deactivate trial tenants whose trial has ended; returns how many."""
        now = self._clock.now()
        expired = 0
        for tenant in self._tenants.find_expired_trials(now):
            try:
                if self._tenants.expire_trial(tenant.id):
                    expired += 1
                    log.info(
                        "Trial of tenant %s ended on %s; deactivated",
                        tenant.id,
                        tenant.subscription_end,
                    )
            except RepositoryUnavailable:
                raise
            except Exception:
                log.exception("Failed to expire trial of tenant %s", tenant.id)
        if expired:
            log.info("Expired %d trial(s)", expired)
        return expired

    # -- rules ---------------------------------------------------------------

    def _pre_expire(self, rule: NotificationRule, tenant: Tenant) -> Outcome:
        target = rule.lifecycle_target
        current = self._ledger.read_lifecycle_state(tenant.id)
        if not can_advance(current, target):
            log.debug(
                "Tenant %s already at %s; %s not sent",
                tenant.id,
                current.value if current else LifecycleState.ACTIVE.value,
                rule.rule_type.value,
            )
            return Outcome.REJECTED

        if not self._dispatcher.send(tenant, rule):
            return Outcome.FAILED

        self._ledger.record_delivered(tenant.entity_id, rule.rule_type, self._clock.now())
        self._ledger.advance_lifecycle_state(tenant.id, target)
        return Outcome.SENT

    def _expire_after_grace(self, rule: NotificationRule, tenant: Tenant) -> Outcome:
        current = self._ledger.read_lifecycle_state(tenant.id)

        if tenant.webhook_processed and current in TERMINAL_STATES:
            log.info(
                "Tenant %s expiry already handled by webhook (%s); leaving untouched",
                tenant.id,
                current.value,
            )
            return Outcome.SUPPRESSED

        if tenant.is_active or can_advance(current, LifecycleState.EXPIRED_GRACE):
            self._ledger.advance_lifecycle_state(
                tenant.id,
                LifecycleState.EXPIRED_GRACE,
                deactivate=True,
            )
            log.info("Tenant %s deactivated after grace period", tenant.id)

        if current == LifecycleState.EXPIRED_WEBHOOK:
            log.info("Tenant %s was notified by the webhook; no expiry email", tenant.id)
            self._ledger.record_delivered(tenant.entity_id, rule.rule_type, self._clock.now())
            return Outcome.SUPPRESSED

        if not self._dispatcher.send(tenant, rule):
            return Outcome.FAILED

        self._ledger.record_delivered(tenant.entity_id, rule.rule_type, self._clock.now())
        return Outcome.SENT
