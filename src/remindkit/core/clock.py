"""Business-timezone clock.

One :class:`BusinessClock` is built at startup from
``business.timezone`` and handed to every component that needs "now"
or a calendar-day comparison.  Tests inject a fixed ``now`` source.

Usage::

    clock = BusinessClock("America/Sao_Paulo")
    clock.day_difference(clock.now(), tenant.subscription_end)  # -> 3
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from remindkit.core.errors import MalformedEntityData

if TYPE_CHECKING:
    from collections.abc import Callable


class BusinessClock:
    """Current time and calendar arithmetic in the business timezone."""

    def __init__(
        self,
        timezone: str = "America/Sao_Paulo",
        now_func: Callable[[], datetime] | None = None,
    ) -> None:
        self._tz = ZoneInfo(timezone)
        self._now_func = now_func

    @property
    def tz(self) -> ZoneInfo:
        return self._tz

    def now(self) -> datetime:
        """Return the current instant as an aware business-local datetime."""
        current = self._now_func() if self._now_func is not None else datetime.now(UTC)
        return self.localize(current)

    def today(self) -> date:
        return self.now().date()

    def localize(self, value: datetime) -> datetime:
        """Express *value* in the business timezone.

        Naive datetimes are business-local wall time.  A naive wall time
        that falls in a DST gap or fold has no single meaning and raises
        :class:`MalformedEntityData`.
        """
        if value.tzinfo is not None:
            return value.astimezone(self._tz)
        first = value.replace(tzinfo=self._tz, fold=0)
        second = value.replace(tzinfo=self._tz, fold=1)
        if first.utcoffset() != second.utcoffset():
            msg = f"Local time {value.isoformat()} is ambiguous in {self._tz.key}"
            raise MalformedEntityData(msg)
        return first

    def local_date(self, value: date | datetime) -> date:
        if isinstance(value, datetime):
            return self.localize(value).date()
        return value

    def day_difference(self, a: date | datetime, b: date | datetime) -> int:
        """Return ``local_date(b) - local_date(a)`` in whole calendar days.

        Hour and minute are ignored: 23:59 today and 00:01 tomorrow are
        one day apart.
        """
        return (self.local_date(b) - self.local_date(a)).days

    def start_of_day(self, day: date) -> datetime:
        """Return local midnight of *day* as an aware datetime."""
        return datetime.combine(day, time.min, tzinfo=self._tz)

    def day_range(self, first: date, days: int) -> tuple[datetime, datetime]:
        """Return ``[start_of_day(first), start_of_day(first + days))``."""
        return self.start_of_day(first), self.start_of_day(first + timedelta(days=days))
