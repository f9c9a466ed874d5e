"""Time-window matcher: which entities crossed a rule's threshold now.

Two precisions:

* **windowed** (appointment reminders): the entity matches when
  ``now`` is within ``tolerance`` of ``reference - offset``.  Ticks run
  more often than the window is wide, so every entity is seen by at
  least one tick; the ledger removes the repeats.
* **calendar-day** (subscription notices): the entity matches when the
  whole-day distance from today to the reference date satisfies the
  rule, regardless of the time of day.

Entities with a missing, mistyped or ambiguous reference time are
dropped with a warning.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from remindkit.core.errors import MalformedEntityData
from remindkit.core.types import CandidateSource, DayComparison, Precision

if TYPE_CHECKING:
    from remindkit.core.clock import BusinessClock
    from remindkit.core.rules import NotificationRule
    from remindkit.models.appointment import Appointment
    from remindkit.models.tenant import Tenant
    from remindkit.repositories.appointment import AppointmentRepository
    from remindkit.repositories.tenant import TenantRepository

log = logging.getLogger(__name__)

_DEFAULT_TOLERANCE = timedelta(minutes=5)


class TimeWindowMatcher:
    def __init__(
        self,
        clock: BusinessClock,
        appointment_repo: AppointmentRepository,
        tenant_repo: TenantRepository,
        tolerance: timedelta = _DEFAULT_TOLERANCE,
    ) -> None:
        self._clock = clock
        self._appointments = appointment_repo
        self._tenants = tenant_repo
        self._tolerance = tolerance

    def tolerance_for(self, rule: NotificationRule) -> timedelta:
        return rule.tolerance if rule.tolerance is not None else self._tolerance

    # -- public API ----------------------------------------------------------

    def candidates(
        self,
        rule: NotificationRule,
        now: datetime,
    ) -> list[Appointment] | list[Tenant]:
        """Return the entities for which *rule* fires at *now*."""
        fetched = self._fetch(rule, now)
        matched = [entity for entity in fetched if self._safe_matches(rule, now, entity)]
        log.debug(
            "Rule %s: %d fetched, %d matched",
            rule.rule_type.value,
            len(fetched),
            len(matched),
        )
        return matched

    def matches(self, rule: NotificationRule, now: datetime, entity) -> bool:
        """Return whether *entity* satisfies *rule* at *now*.

        Raises :class:`MalformedEntityData` when the entity's reference
        time cannot be interpreted.
        """
        reference = entity.reference_time
        if not isinstance(reference, datetime):
            msg = f"Entity {entity.entity_id} has no usable reference time ({reference!r})"
            raise MalformedEntityData(msg)
        reference = self._clock.localize(reference)

        if rule.precision == Precision.WINDOWED:
            target = reference - rule.offset
            tolerance = self.tolerance_for(rule)
            return target - tolerance <= now <= target + tolerance

        days = self._clock.day_difference(now, reference)
        if rule.comparison == DayComparison.AT_MOST:
            hit = days <= rule.day_offset
        else:
            hit = days == rule.day_offset
        if hit and rule.day_offset == 0 and rule.comparison == DayComparison.EQUAL:
            # Same-day rules fire only while the reference is still ahead.
            return reference > now
        return hit

    # -- internals -----------------------------------------------------------

    def _safe_matches(self, rule: NotificationRule, now: datetime, entity) -> bool:
        try:
            return self.matches(rule, now, entity)
        except MalformedEntityData as exc:
            log.warning(
                "Skipping %s for rule %s: %s",
                entity.entity_id,
                rule.rule_type.value,
                exc,
            )
            return False

    def _fetch(self, rule: NotificationRule, now: datetime) -> list:
        source = rule.source
        today = self._clock.local_date(now)

        if source == CandidateSource.UPCOMING_APPOINTMENTS:
            tolerance = self.tolerance_for(rule)
            centre = now + rule.offset
            return self._appointments.find_starting_between(centre - tolerance, centre + tolerance)

        if source == CandidateSource.ACTIVE_SUBSCRIPTIONS:
            start, end = self._clock.day_range(today + timedelta(days=rule.day_offset), 1)
            return self._tenants.find_active_ending_between(start, end)

        if source == CandidateSource.LAPSED_SUBSCRIPTIONS:
            # day_difference(today, end) <= day_offset  <=>  end < start of the next day
            cutoff = self._clock.start_of_day(today + timedelta(days=rule.day_offset + 1))
            return self._tenants.find_lapsed(cutoff)

        if source == CandidateSource.TRIAL_SUBSCRIPTIONS:
            start, end = self._clock.day_range(today + timedelta(days=rule.day_offset), 1)
            return self._tenants.find_trials_ending_between(start, end)

        if source == CandidateSource.LAPSED_TRIALS:
            start, end = self._clock.day_range(today + timedelta(days=rule.day_offset), 1)
            return self._tenants.find_lapsed_trials_between(start, end)

        msg = f"Unknown candidate source {source!r}"
        raise ValueError(msg)
