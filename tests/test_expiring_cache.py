"""
Brief: Tests for xkcdns.cache.expiring.ExpiringCache.

Inputs:
  - None

Outputs:
  - None
"""

import threading
import time

import pytest

from xkcdns.cache.expiring import ExpiringCache
from xkcdns.comics.models import Comic


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _comic(n=614, title="Woodpecker"):
    return Comic(number=n, title=title, image_url=f"https://img/{n}.png", alt_text="alt")


def test_set_then_get_returns_identical_record():
    """
    Brief: A record stored with set() comes back unchanged from get().

    Inputs:
      - key: comic number
      - value: Comic record

    Outputs:
      - None: Asserts equality of every field
    """
    c = ExpiringCache()
    comic = _comic()
    c.set(614, comic)
    got = c.get(614)
    assert got == comic
    assert (got.title, got.image_url, got.alt_text) == (
        "Woodpecker",
        "https://img/614.png",
        "alt",
    )


def test_get_missing_returns_none_and_counts_miss():
    c = ExpiringCache()
    assert c.get(1) is None
    assert c.cache_misses == 1
    assert c.cache_hits == 0
    assert c.calls_total == 1


def test_set_overwrites_existing_entry():
    c = ExpiringCache()
    c.set(1, _comic(1, "old"))
    c.set(1, _comic(1, "new"))
    assert c.get(1).title == "new"
    assert len(c) == 1


def test_sweep_removes_entries_idle_past_expiry():
    """
    Brief: Entries untouched for longer than the expiry window are swept.

    Inputs:
      - expiry_seconds: 300

    Outputs:
      - None: Asserts the idle entry is gone after sweep()
    """
    clock = FakeClock()
    c = ExpiringCache(expiry_seconds=300, clock=clock)
    c.set(1, _comic(1))
    clock.advance(301)
    assert c.sweep() == 1
    assert c.get(1) is None
    assert c.evictions_total == 1


def test_sweep_keeps_entries_within_window():
    clock = FakeClock()
    c = ExpiringCache(expiry_seconds=300, clock=clock)
    c.set(1, _comic(1))
    clock.advance(300)
    assert c.sweep() == 0
    assert 1 in c


def test_get_refreshes_recency():
    """
    Brief: Reading an entry resets its idle timer.

    Inputs:
      - a read at t=200 of an entry written at t=0

    Outputs:
      - None: Asserts entry survives a sweep at t=400 and expires at t=501
    """
    clock = FakeClock()
    c = ExpiringCache(expiry_seconds=300, clock=clock)
    c.set(1, _comic(1))
    clock.advance(200)
    assert c.get(1) is not None
    clock.advance(200)
    assert c.sweep() == 0
    assert 1 in c
    clock.advance(101)
    assert c.sweep() == 1
    assert 1 not in c


def test_contains_does_not_refresh_recency():
    clock = FakeClock()
    c = ExpiringCache(expiry_seconds=10, clock=clock)
    c.set(1, _comic(1))
    clock.advance(8)
    assert 1 in c
    clock.advance(3)
    assert c.sweep() == 1


def test_sweep_only_removes_expired_entries():
    clock = FakeClock()
    c = ExpiringCache(expiry_seconds=60, clock=clock)
    c.set(1, _comic(1))
    clock.advance(50)
    c.set(2, _comic(2))
    clock.advance(20)
    assert c.sweep() == 1
    assert 1 not in c
    assert 2 in c


def test_get_or_set_inserts_when_absent():
    c = ExpiringCache()
    comic = _comic(5)
    stored, inserted = c.get_or_set(5, comic)
    assert inserted is True
    assert stored is comic
    assert c.get(5) is comic


def test_get_or_set_keeps_existing_value():
    """
    Brief: get_or_set never replaces a value that is already cached.

    Inputs:
      - an existing record and a competing record for the same key

    Outputs:
      - None: Asserts the first record is returned and retained
    """
    c = ExpiringCache()
    first = _comic(5, "first")
    second = _comic(5, "second")
    c.set(5, first)
    stored, inserted = c.get_or_set(5, second)
    assert inserted is False
    assert stored is first
    assert c.get(5).title == "first"


def test_get_or_set_refreshes_recency_of_existing():
    clock = FakeClock()
    c = ExpiringCache(expiry_seconds=10, clock=clock)
    c.set(5, _comic(5))
    clock.advance(9)
    c.get_or_set(5, _comic(5, "other"))
    clock.advance(9)
    assert c.sweep() == 0


def test_invalid_sweep_interval_rejected():
    with pytest.raises(ValueError):
        ExpiringCache(sweep_interval_seconds=0)


def test_background_sweeper_evicts_and_stops():
    """
    Brief: The sweeper thread evicts idle entries on its own schedule and stops on request.

    Inputs:
      - expiry_seconds: 1 with the fake clock advanced past it
      - sweep_interval_seconds: 0.05

    Outputs:
      - None: Asserts eviction happens without explicit sweep() and thread exits
    """
    clock = FakeClock()
    c = ExpiringCache(expiry_seconds=1, sweep_interval_seconds=0.05, clock=clock)
    c.set(1, _comic(1))
    clock.advance(5)
    c.start()
    try:
        assert c.running
        deadline = time.monotonic() + 3.0
        while 1 in c and time.monotonic() < deadline:
            time.sleep(0.01)
        assert 1 not in c
    finally:
        c.stop()
    assert not c.running


def test_start_is_idempotent():
    c = ExpiringCache(sweep_interval_seconds=0.05)
    c.start()
    first = c._thread
    c.start()
    assert c._thread is first
    c.stop()


def test_concurrent_access_with_sweeps_is_consistent():
    """
    Brief: Concurrent set/get/sweep calls never raise and leave only whole records.

    Inputs:
      - writer, reader, and sweeper threads

    Outputs:
      - None: Asserts no exceptions and surviving values are intact Comics
    """
    c = ExpiringCache(expiry_seconds=0.001)
    errors = []

    def writer():
        try:
            for i in range(300):
                c.set(i % 20, _comic(i % 20 + 1))
        except Exception as e:  # pragma: no cover - failure path
            errors.append(e)

    def reader():
        try:
            for i in range(300):
                v = c.get(i % 20)
                assert v is None or isinstance(v, Comic)
        except Exception as e:  # pragma: no cover - failure path
            errors.append(e)

    def sweeper():
        try:
            for _ in range(100):
                c.sweep()
        except Exception as e:  # pragma: no cover - failure path
            errors.append(e)

    threads = [threading.Thread(target=f) for f in (writer, reader, sweeper, writer)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    for key in range(20):
        v = c.get(key)
        assert v is None or v.number == key + 1
