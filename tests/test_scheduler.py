import time

import pytest

from guildwatch.errors import StoreError
from guildwatch.guard import CheckGuard
from guildwatch.health import Component, HealthState, HealthStatus
from guildwatch.models import ChannelConfig, Track
from guildwatch.scheduler import PollScheduler


def _scheduler(store, source, sink, **kwargs):
    kwargs.setdefault("base_interval", 30)
    kwargs.setdefault("failure_retry", 60)
    return PollScheduler(store, source, sink, **kwargs)


def test_delay_scales_with_guild_count(store, source, sink):
    scheduler = _scheduler(store, source, sink)
    assert scheduler.compute_delay(0) == 30
    assert scheduler.compute_delay(1) == 30
    assert scheduler.compute_delay(4) == 120


@pytest.mark.asyncio
async def test_cycle_notifies_new_items_in_track_order(tracked, source, sink, make_video):
    source.items = {
        ("UC1", Track.UPLOAD): make_video("v1"),
        ("UC1", Track.LIVE): make_video("l1"),
        ("UC1", Track.SCHEDULED): make_video("s1"),
    }
    report = await _scheduler(tracked, source, sink).run_cycle()

    assert [c[1] for c in source.calls] == [Track.UPLOAD, Track.LIVE, Track.SCHEDULED]
    assert [e[3] for e in sink.events] == ["v1", "l1", "s1"]
    assert all(e[4] == "100" for e in sink.events)
    assert report.guilds == 1
    assert report.channels_checked == 1
    assert report.notifications == 3
    assert report.delay == 30


@pytest.mark.asyncio
async def test_second_cycle_does_not_repeat(tracked, source, sink, make_video):
    source.items = {("UC1", Track.UPLOAD): make_video("v1")}
    scheduler = _scheduler(tracked, source, sink)
    await scheduler.run_cycle()
    await scheduler.run_cycle()
    assert len(sink.events) == 1


@pytest.mark.asyncio
async def test_live_promotion_within_one_cycle(tracked, source, sink, make_video):
    tracked.set_track_state("g1", "UC1", Track.SCHEDULED, "s1")
    # The stream is live but the search index still lists it as upcoming
    source.items = {
        ("UC1", Track.LIVE): make_video("s1"),
        ("UC1", Track.SCHEDULED): make_video("s1"),
    }
    await _scheduler(tracked, source, sink).run_cycle()

    assert [(e[2], e[3]) for e in sink.events] == [(Track.LIVE, "s1")]
    assert tracked.get_track_state("g1", "UC1", Track.SCHEDULED) is None


@pytest.mark.asyncio
async def test_disabled_track_is_not_fetched(tracked, source, sink, make_video):
    tracked.set_track_enabled("g1", "UC1", Track.LIVE, False)
    source.items = {("UC1", Track.LIVE): make_video("l1")}
    await _scheduler(tracked, source, sink).run_cycle()

    assert ("UC1", Track.LIVE) not in source.calls
    assert sink.events == []
    assert tracked.get_track_state("g1", "UC1", Track.LIVE) is None


@pytest.mark.asyncio
async def test_mentions_are_passed_to_sink(tracked, source, sink, make_video):
    tracked.set_track_mentions("g1", "UC1", Track.UPLOAD, ["42", "43"])
    source.items = {("UC1", Track.UPLOAD): make_video("v1")}
    await _scheduler(tracked, source, sink).run_cycle()
    assert sink.events[0][5] == ("42", "43")


@pytest.mark.asyncio
async def test_empty_destination_drops_but_records_state(store, source, sink, make_video):
    store.add_channel("g1", ChannelConfig("UC1"))
    source.items = {("UC1", Track.UPLOAD): make_video("v1")}
    report = await _scheduler(store, source, sink).run_cycle()

    assert sink.events == []
    assert report.notifications == 0
    assert store.get_track_state("g1", "UC1", Track.UPLOAD) == "v1"


@pytest.mark.asyncio
async def test_held_guard_skips_channel(tracked, source, sink):
    guard = CheckGuard()
    guard.try_acquire("g1", "UC1")
    report = await _scheduler(tracked, source, sink, guard=guard).run_cycle()

    assert source.calls == []
    assert report.channels_skipped == 1
    assert report.channels_checked == 0
    assert guard.is_held("g1", "UC1")


@pytest.mark.asyncio
async def test_guard_released_after_check(tracked, source, sink):
    guard = CheckGuard()
    await _scheduler(tracked, source, sink, guard=guard).run_cycle()
    assert len(guard) == 0


@pytest.mark.asyncio
async def test_channel_error_does_not_abort_cycle(store, source, sink, make_video):
    store.add_channel("g1", ChannelConfig.for_destination("UCbad", "100"))
    store.add_channel("g1", ChannelConfig.for_destination("UCgood", "100"))
    source.items = {
        ("UCbad", Track.UPLOAD): RuntimeError("boom"),
        ("UCgood", Track.UPLOAD): make_video("v2"),
    }
    guard = CheckGuard()
    report = await _scheduler(store, source, sink, guard=guard).run_cycle()

    assert [e[1] for e in sink.events] == ["UCgood"]
    assert len(report.errors) == 1
    assert "UCbad" in report.errors[0]
    assert len(guard) == 0


@pytest.mark.asyncio
async def test_enumeration_failure_uses_retry_delay(store, source, sink, monkeypatch):
    def broken():
        raise StoreError("disk on fire")

    monkeypatch.setattr(store, "get_all_guild_configs", broken)
    health = HealthStatus()
    report = await _scheduler(store, source, sink, health=health).run_cycle()

    assert report.delay == 60
    assert report.errors
    assert health.component(Component.STORE) == HealthState.UNHEALTHY


@pytest.mark.asyncio
async def test_guild_without_channels_is_counted_but_not_scanned(store, source, sink):
    store.set_poll_interval("g1", 10)
    report = await _scheduler(store, source, sink).run_cycle()
    assert report.guilds == 1
    assert report.delay == 30
    assert source.calls == []


@pytest.mark.asyncio
async def test_guild_poll_interval_spaces_scans(tracked, source, sink):
    tracked.set_poll_interval("g1", 300)
    now = [1000.0]
    scheduler = _scheduler(tracked, source, sink, clock=lambda: now[0])

    await scheduler.run_cycle()
    assert len(source.calls) == 3

    now[0] += 60
    await scheduler.run_cycle()
    assert len(source.calls) == 3

    now[0] += 300
    await scheduler.run_cycle()
    assert len(source.calls) == 6


@pytest.mark.asyncio
async def test_slow_fetch_counts_as_no_item(tracked, sink, make_video):
    class SlowSource:
        def fetch_latest(self, channel_id, track):
            time.sleep(0.3)
            return make_video("late")

    health = HealthStatus()
    scheduler = _scheduler(tracked, SlowSource(), sink, fetch_timeout=0.05, health=health)
    report = await scheduler.run_cycle()

    assert sink.events == []
    assert report.notifications == 0
    assert health.component(Component.YOUTUBE) == HealthState.DEGRADED


@pytest.mark.asyncio
async def test_failing_sink_is_isolated(tracked, source, make_video):
    class BrokenSink:
        def notify(self, *args):
            raise RuntimeError("discord down")

    source.items = {("UC1", Track.UPLOAD): make_video("v1")}
    report = await _scheduler(tracked, source, BrokenSink()).run_cycle()
    assert report.notifications == 0
    assert report.errors == []


@pytest.mark.asyncio
async def test_concurrent_mode_checks_every_channel(store, source, sink, make_video):
    for cid in ("UC1", "UC2", "UC3"):
        store.add_channel("g1", ChannelConfig.for_destination(cid, "100"))
        source.items[(cid, Track.UPLOAD)] = make_video(f"v-{cid}")
    report = await _scheduler(store, source, sink, concurrent=True).run_cycle()
    assert report.channels_checked == 3
    assert sorted(e[3] for e in sink.events) == ["v-UC1", "v-UC2", "v-UC3"]


@pytest.mark.asyncio
async def test_removed_guild_is_forgotten(tracked, source, sink):
    scheduler = _scheduler(tracked, source, sink)
    await scheduler.run_cycle()
    assert "g1" in scheduler._last_scanned

    tracked.remove_guild("g1")
    report = await scheduler.run_cycle()

    assert report.guilds == 0
    assert "g1" not in scheduler._last_scanned


@pytest.mark.asyncio
async def test_cycle_records_health(tracked, source, sink, make_video):
    source.items = {("UC1", Track.UPLOAD): make_video("v1")}
    health = HealthStatus()
    await _scheduler(tracked, source, sink, health=health).run_cycle()

    assert health.cycles_completed == 1
    assert health.last_cycle_at is not None
    assert health.last_cycle_notifications == 1
    assert health.component(Component.STORE) == HealthState.HEALTHY
