"""Tests for the Tenant subscription period key."""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from remindkit.models import Tenant

SP = ZoneInfo("America/Sao_Paulo")


def _tenant(end):
    return Tenant(id="t1", name="Salon", email=None, subscription_end=end)


class TestEntityId:
    def test_uses_utc_date_of_end(self):
        # 22:30 in Sao Paulo is 01:30 UTC on the next day.
        assert _tenant(datetime(2025, 8, 10, 22, 30, tzinfo=SP)).entity_id == "t1:2025-08-11"

    def test_daytime_end_keeps_calendar_date(self):
        assert _tenant(datetime(2025, 8, 10, 18, 0, tzinfo=SP)).entity_id == "t1:2025-08-10"

    def test_naive_end_taken_as_is(self):
        assert _tenant(datetime(2025, 8, 10, 23, 0)).entity_id == "t1:2025-08-10"

    def test_renewal_changes_key(self):
        old = _tenant(datetime(2025, 8, 10, 12, 0, tzinfo=SP))
        renewed = _tenant(datetime(2025, 9, 10, 12, 0, tzinfo=SP))
        assert old.entity_id != renewed.entity_id

    def test_missing_end(self):
        assert _tenant(None).entity_id == "t1:none"
