"""Exception taxonomy for the notification engine.

Every error is caught at the smallest unit it affects (a single entity
or a single rule) except :class:`RepositoryUnavailable`, which aborts
the whole tick.
"""

from __future__ import annotations


class RemindkitError(Exception):
    """Base class for remindkit errors."""


class TransientChannelError(RemindkitError):
    """A transport call failed or timed out.

    No ledger record is written; the entity is retried next tick.
    """

    def __init__(self, channel: str, detail: str, *, status: int | None = None) -> None:
        self.channel = channel
        self.detail = detail
        self.status = status
        suffix = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"{channel} delivery failed{suffix}: {detail}")


class DuplicateDeliveryConflict(RemindkitError):
    """A delivery record for (entity, rule type) already exists."""

    def __init__(self, entity_id: str, rule_type: str) -> None:
        self.entity_id = entity_id
        self.rule_type = rule_type
        super().__init__(f"Delivery already recorded for {entity_id} / {rule_type}")


class ConfigurationMissing(RemindkitError):
    """A tenant or entity lacks what a channel needs (phone, email, instance)."""


class MalformedEntityData(RemindkitError):
    """An entity's reference time is missing, mistyped or ambiguous."""


class RepositoryUnavailable(RemindkitError):
    """Storage could not be reached; the current tick is abandoned."""
