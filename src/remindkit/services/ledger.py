"""Delivery ledger: the idempotency store.

Guarantees at most one :class:`DeliveryRecord` per (entity, rule type)
through the table's primary key, not through in-process locking, so the
guarantee holds across overlapping ticks and replicas.  Also owns the
per-tenant lifecycle state slot, which only moves forward.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remindkit.core.errors import DuplicateDeliveryConflict
from remindkit.core.state import can_advance, log_transition, normalize_state

if TYPE_CHECKING:
    from datetime import datetime

    from remindkit.core.types import LifecycleState, RuleType
    from remindkit.repositories.delivery import DeliveryRecordRepository
    from remindkit.repositories.tenant import TenantRepository

log = logging.getLogger(__name__)


class DeliveryLedger:
    """Records confirmed deliveries and lifecycle progress."""

    def __init__(
        self,
        delivery_repo: DeliveryRecordRepository,
        tenant_repo: TenantRepository,
    ) -> None:
        self._records = delivery_repo
        self._tenants = tenant_repo

    def has_delivered(self, entity_id: str, rule_type: RuleType) -> bool:
        return self._records.exists(entity_id, rule_type)

    def record_delivered(
        self,
        entity_id: str,
        rule_type: RuleType,
        sent_at: datetime,
    ) -> bool:
        """Persist a confirmed delivery.

        Returns True if this call created the record and False if it
        already existed.  An existing record is not an error: a
        concurrent tick or replica recorded the same delivery first.
        """
        try:
            created = self._records.insert_if_absent(entity_id, rule_type, sent_at)
        except DuplicateDeliveryConflict:
            created = False
        if not created:
            log.info(
                "Delivery of %s to %s was already recorded",
                rule_type.value,
                entity_id,
            )
        return created

    def read_lifecycle_state(self, tenant_id: str) -> LifecycleState | None:
        raw = self._tenants.read_state(tenant_id)
        return normalize_state(raw) if raw is not None else None

    def advance_lifecycle_state(
        self,
        tenant_id: str,
        new_state: LifecycleState,
        *,
        deactivate: bool = False,
    ) -> bool:
        """Move the tenant's state to *new_state* if that is a forward step.

        Backward or sideways moves, and any move out of a webhook-set
        terminal state, are rejected and leave the stored value as is.
        The write is a compare-and-set against the value read here, so a
        concurrent writer (another replica, the webhook) is never
        overwritten.  With *deactivate* the tenant is switched off in
        the same transaction whether or not the state moves.
        """
        raw = self._tenants.read_state(tenant_id)
        current = normalize_state(raw)
        allowed = can_advance(current, new_state)

        if not allowed:
            log.info(
                "Rejected lifecycle transition %s -> %s for tenant %s",
                current.value,
                new_state.value,
                tenant_id,
            )
            if deactivate:
                self._tenants.compare_and_set_state(tenant_id, raw, None, deactivate=True)
            return False

        applied = self._tenants.compare_and_set_state(
            tenant_id,
            raw,
            new_state,
            deactivate=deactivate,
        )
        if not applied:
            log.warning(
                "Lifecycle state of tenant %s changed concurrently; %s not applied",
                tenant_id,
                new_state.value,
            )
        log_transition(tenant_id, current, new_state, applied=applied)
        return applied
