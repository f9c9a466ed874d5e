"""Notification engine: one tick over a set of rules.

For each rule, in rule-table order, the engine asks the matcher for
candidates and runs every candidate through

    gate -> ledger check -> dispatch -> ledger write

Each entity is isolated: an exception aborts that entity only, and a
failed candidate query aborts that rule only.  The single exception is
:class:`RepositoryUnavailable`, which abandons the whole tick; the next
scheduled tick starts over from the persisted ledger.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from remindkit.core.errors import RepositoryUnavailable

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from remindkit.core.clock import BusinessClock
    from remindkit.core.rules import NotificationRule
    from remindkit.metrics.collector import MetricsCollector
    from remindkit.services.dispatcher import NotificationDispatcher
    from remindkit.services.gate import TenantAutomationGate
    from remindkit.services.ledger import DeliveryLedger
    from remindkit.services.lifecycle import SubscriptionLifecycle
    from remindkit.services.matcher import TimeWindowMatcher

log = logging.getLogger(__name__)


class Outcome(StrEnum):
    SENT = "sent"
    GATED = "gated"
    ALREADY_DELIVERED = "already_delivered"
    REJECTED = "rejected"
    SUPPRESSED = "suppressed"
    FAILED = "failed"
    ERROR = "error"


# Outcomes that made an outbound call and so count against the throttle.
_DISPATCHED = frozenset({Outcome.SENT, Outcome.FAILED})


@dataclass
class RuleSummary:
    rule_type: str
    candidates: int = 0
    outcomes: Counter = field(default_factory=Counter)
    query_failed: bool = False

    def count(self, outcome: Outcome) -> int:
        return self.outcomes[outcome]


@dataclass
class TickSummary:
    task: str
    started_at: datetime
    rules: list[RuleSummary] = field(default_factory=list)
    interrupted: bool = False

    def total(self, outcome: Outcome) -> int:
        return sum(r.count(outcome) for r in self.rules)

    def rule(self, rule_type: str) -> RuleSummary:
        for summary in self.rules:
            if summary.rule_type == rule_type:
                return summary
        raise KeyError(rule_type)


class NotificationEngine:
    """Runs ticks.  Holds no state between ticks."""

    def __init__(  # noqa: PLR0913
        self,
        matcher: TimeWindowMatcher,
        gate: TenantAutomationGate,
        ledger: DeliveryLedger,
        dispatcher: NotificationDispatcher,
        clock: BusinessClock,
        *,
        lifecycle: SubscriptionLifecycle | None = None,
        dispatch_delay: float = 1.0,
        stop_event: threading.Event | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._matcher = matcher
        self._gate = gate
        self._ledger = ledger
        self._dispatcher = dispatcher
        self._clock = clock
        self._lifecycle = lifecycle
        self._dispatch_delay = dispatch_delay
        self._stop_event = stop_event or threading.Event()
        self._metrics = metrics

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    def run_tick(self, task: str, rules: Iterable[NotificationRule]) -> TickSummary:
        """Evaluate *rules* once against the current time."""
        now = self._clock.now()
        summary = TickSummary(task=task, started_at=now)

        for rule in rules:
            if self._stop_event.is_set():
                summary.interrupted = True
                break
            rule_summary = RuleSummary(rule_type=rule.rule_type.value)
            summary.rules.append(rule_summary)
            self._run_rule(rule, now, rule_summary)
            if self._stop_event.is_set():
                summary.interrupted = True
                break

        self._report(summary)
        return summary

    def process_entity(self, rule: NotificationRule, entity, now: datetime) -> Outcome:
        """Run one candidate through gate, ledger and dispatch."""
        if not self._gate.is_enabled(entity.tenant_id, rule.rule_type):
            return Outcome.GATED

        if rule.lifecycle_target is not None and self._lifecycle is not None:
            return self._lifecycle.process(rule, entity, now)

        if self._ledger.has_delivered(entity.entity_id, rule.rule_type):
            return Outcome.ALREADY_DELIVERED

        if not self._dispatcher.send(entity, rule):
            return Outcome.FAILED

        self._ledger.record_delivered(entity.entity_id, rule.rule_type, self._clock.now())
        return Outcome.SENT

    # -- internals -----------------------------------------------------------

    def _run_rule(self, rule: NotificationRule, now: datetime, summary: RuleSummary) -> None:
        try:
            candidates = self._matcher.candidates(rule, now)
        except RepositoryUnavailable:
            raise
        except Exception:
            summary.query_failed = True
            log.exception("Candidate query for rule %s failed", rule.rule_type.value)
            return

        summary.candidates = len(candidates)
        for entity in candidates:
            if self._stop_event.is_set():
                log.info(
                    "Stop requested; leaving rule %s with %d candidates unprocessed",
                    rule.rule_type.value,
                    summary.candidates - sum(summary.outcomes.values()),
                )
                return

            try:
                outcome = self.process_entity(rule, entity, now)
            except RepositoryUnavailable:
                raise
            except Exception:
                log.exception(
                    "Processing %s for %s failed",
                    rule.rule_type.value,
                    getattr(entity, "entity_id", entity),
                )
                outcome = Outcome.ERROR

            summary.outcomes[outcome] += 1
            if self._metrics:
                self._metrics.increment(
                    "remindkit_notifications_total",
                    labels={"rule": rule.rule_type.value, "outcome": outcome.value},
                )
            if outcome in _DISPATCHED and self._dispatch_delay > 0:
                self._stop_event.wait(timeout=self._dispatch_delay)

    def _report(self, summary: TickSummary) -> None:
        for rule_summary in summary.rules:
            if not rule_summary.candidates and not rule_summary.query_failed:
                continue
            log.info(
                "Rule %s: %d candidates, %s",
                rule_summary.rule_type,
                rule_summary.candidates,
                ", ".join(f"{k}={v}" for k, v in sorted(rule_summary.outcomes.items()))
                or "nothing processed",
                extra={
                    "rule_type": rule_summary.rule_type,
                    "candidates": rule_summary.candidates,
                    "outcomes": dict(rule_summary.outcomes),
                },
            )
        log.info(
            "Tick %s finished: sent=%d failed=%d errors=%d%s",
            summary.task,
            summary.total(Outcome.SENT),
            summary.total(Outcome.FAILED),
            summary.total(Outcome.ERROR),
            " (interrupted)" if summary.interrupted else "",
        )
