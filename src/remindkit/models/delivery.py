"""Delivery ledger record."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from remindkit.core.types import RuleType

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class DeliveryRecord:
    entity_id: str
    rule_type: RuleType
    sent_at: datetime
    created_at: datetime = _EPOCH
