import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.dedup import DedupCache
from core.models import Listing, NotificationEvent, QueryJob
from core.query import parse_query


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_notifies_once_per_window():
    clock = FakeClock()
    cache = DedupCache(ttl_seconds=60, clock=clock)

    assert cache.should_notify("chat1/abc/80.00-100.00") is True
    assert cache.should_notify("chat1/abc/80.00-100.00") is False
    clock.now += 59
    assert cache.should_notify("chat1/abc/80.00-100.00") is False

    clock.now += 1
    assert cache.should_notify("chat1/abc/80.00-100.00") is True
    assert cache.should_notify("chat1/abc/80.00-100.00") is False


def test_distinct_fingerprints_are_independent():
    cache = DedupCache(ttl_seconds=60, clock=FakeClock())
    assert cache.should_notify("chat1/abc/80.00-100.00") is True
    assert cache.should_notify("chat2/abc/80.00-100.00") is True
    assert cache.should_notify("chat1/abc/70.00-80.00") is True
    assert len(cache) == 3


def test_purge_drops_only_expired():
    clock = FakeClock()
    cache = DedupCache(ttl_seconds=60, clock=clock)
    cache.should_notify("old")
    clock.now += 30
    cache.should_notify("fresh")
    clock.now += 30

    assert cache.purge() == 1
    assert len(cache) == 1
    assert cache.should_notify("fresh") is False


def test_event_fingerprint():
    job = QueryJob.from_parsed(parse_query("chat1/phone"))
    listing = Listing(id="abc", title="Phone", price=Decimal("80"), link="x")
    assert NotificationEvent.from_listing(job, listing).fingerprint == "chat1/abc/80.00-new"

    listing.previous_price = Decimal("100")
    assert NotificationEvent.from_listing(job, listing).fingerprint == "chat1/abc/80.00-100.00"
