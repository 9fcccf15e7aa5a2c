"""Test the bounded-concurrency fetch scheduler."""

import threading

import pytest

from clutter_cleaner.core.models import Asset, FetchTier
from clutter_cleaner.core.scheduler import FetchScheduler


def _assets(count):
    return [Asset(id=f"asset-{i}") for i in range(count)]


def _contents(count):
    return {f"asset-{i}": f"data-{i}".encode() for i in range(count)}


@pytest.mark.parametrize(
    "count,limit",
    [(0, 5), (1, 5), (3, 5), (5, 5), (20, 5), (12, 1), (9, 3)],
)
def test_never_exceeds_limit(make_source, count, limit):
    """Every asset is fetched once and in-flight work stays within the limit."""
    source = make_source(_contents(count), delay=0.01)
    scheduler = FetchScheduler(source, limit=limit)

    outcomes = list(scheduler.schedule_all(_assets(count)))

    assert len(outcomes) == count
    assert sorted(o.asset.id for o in outcomes) == sorted(_contents(count))
    assert sorted(source.fetch_calls) == sorted(_contents(count))
    assert source.max_in_flight <= limit
    assert scheduler.peak_in_flight <= limit
    assert scheduler.in_flight == 0


def test_reaches_limit_under_load(make_source):
    """With slow fetches the scheduler actually runs several at once."""
    source = make_source(_contents(15), delay=0.05)
    scheduler = FetchScheduler(source, limit=5)

    list(scheduler.schedule_all(_assets(15)))

    assert source.max_in_flight > 1
    assert source.max_in_flight <= 5


def test_failures_are_reported_and_release_slots(make_source):
    """Failing fetches never stall the remaining ones."""
    source = make_source(_contents(10), fail={"asset-0", "asset-1", "asset-2"})
    scheduler = FetchScheduler(source, limit=2)

    outcomes = list(scheduler.schedule_all(_assets(10)))

    assert len(outcomes) == 10
    failed = {o.asset.id for o in outcomes if not o.ok}
    assert failed == {"asset-0", "asset-1", "asset-2"}
    for outcome in outcomes:
        if not outcome.ok:
            assert "simulated failure" in outcome.error


def test_missing_data_is_a_failed_outcome(make_source):
    contents = {"asset-0": None, "asset-1": b"x"}
    scheduler = FetchScheduler(make_source(contents), limit=5)

    outcomes = {o.asset.id: o for o in scheduler.schedule_all(_assets(2))}

    assert not outcomes["asset-0"].ok
    assert outcomes["asset-0"].error == "no data"
    assert outcomes["asset-1"].data == b"x"


def test_passes_tier_and_network_flag(make_source):
    seen = []

    source = make_source(_contents(1))
    original = source.fetch_content

    def recording_fetch(asset, tier, allow_network):
        seen.append((tier, allow_network))
        return original(asset, tier, allow_network)

    source.fetch_content = recording_fetch
    scheduler = FetchScheduler(
        source, limit=1, tier=FetchTier.FAST, allow_network=True
    )
    list(scheduler.schedule_all(_assets(1)))

    assert seen == [(FetchTier.FAST, True)]


@pytest.mark.parametrize("limit", [0, -1])
def test_invalid_limit(make_source, limit):
    with pytest.raises(ValueError):
        FetchScheduler(make_source({}), limit=limit)


def test_should_stop_halts_dispatch(make_source):
    """After cancellation no new fetches start, running ones still report."""
    source = make_source(_contents(50), delay=0.01)
    scheduler = FetchScheduler(source, limit=2)
    stop = threading.Event()

    outcomes = []
    for outcome in scheduler.schedule_all(_assets(50), should_stop=stop.is_set):
        outcomes.append(outcome)
        if len(outcomes) == 3:
            stop.set()

    assert 3 <= len(outcomes) < 50
    assert len(outcomes) == len(source.fetch_calls)
    assert scheduler.in_flight == 0


def test_abandoned_iteration_drains_in_flight(make_source):
    """Closing the iterator early waits for running fetches to finish."""
    source = make_source(_contents(30), delay=0.01)
    scheduler = FetchScheduler(source, limit=3)

    iterator = scheduler.schedule_all(_assets(30))
    next(iterator)
    iterator.close()

    assert source.in_flight == 0
    assert scheduler.in_flight == 0
    assert len(source.fetch_calls) < 30


def test_dispatch_error_is_raised(make_source):
    """An asset iterable that blows up surfaces after in-flight work drains."""
    source = make_source(_contents(2))

    def broken_assets():
        yield from _assets(2)
        raise RuntimeError("listing broke")

    scheduler = FetchScheduler(source, limit=2)
    received = []
    with pytest.raises(RuntimeError, match="listing broke"):
        for outcome in scheduler.schedule_all(broken_assets()):
            received.append(outcome)

    assert len(received) == 2
