from guildwatch.engine import DedupEngine
from guildwatch.models import Track


def _state(store, track):
    return store.get_track_state("g1", "UC1", track)


def test_no_candidate_is_noop(tracked):
    engine = DedupEngine(tracked)
    for track in Track:
        decision = engine.evaluate("g1", "UC1", track, None)
        assert decision.notify is False
        assert _state(tracked, track) is None


def test_new_upload_notifies_once(tracked, make_video):
    engine = DedupEngine(tracked)
    first = engine.evaluate("g1", "UC1", Track.UPLOAD, make_video("v1"))
    second = engine.evaluate("g1", "UC1", Track.UPLOAD, make_video("v1"))

    assert first.notify is True
    assert first.item_id == "v1"
    assert second.notify is False
    assert _state(tracked, Track.UPLOAD) == "v1"


def test_newer_upload_replaces_state(tracked, make_video):
    engine = DedupEngine(tracked)
    engine.evaluate("g1", "UC1", Track.UPLOAD, make_video("v1"))
    decision = engine.evaluate("g1", "UC1", Track.UPLOAD, make_video("v2"))
    assert decision.notify is True
    assert _state(tracked, Track.UPLOAD) == "v2"


def test_upload_of_finished_stream_is_suppressed(tracked, make_video):
    tracked.set_track_state("g1", "UC1", Track.LIVE, "s1")
    decision = DedupEngine(tracked).evaluate("g1", "UC1", Track.UPLOAD, make_video("s1"))
    assert decision.notify is False
    assert _state(tracked, Track.UPLOAD) is None


def test_scheduled_then_live_promotes(tracked, make_video):
    engine = DedupEngine(tracked)
    scheduled = engine.evaluate("g1", "UC1", Track.SCHEDULED, make_video("s1"))
    assert scheduled.notify is True
    assert _state(tracked, Track.SCHEDULED) == "s1"

    live = engine.evaluate("g1", "UC1", Track.LIVE, make_video("s1"))
    assert live.notify is True
    assert _state(tracked, Track.LIVE) == "s1"
    assert _state(tracked, Track.SCHEDULED) is None

    # Same item still listed as upcoming must not notify again
    again = engine.evaluate("g1", "UC1", Track.SCHEDULED, make_video("s1"))
    assert again.notify is False
    assert _state(tracked, Track.SCHEDULED) is None


def test_live_without_schedule_leaves_scheduled_state(tracked, make_video):
    tracked.set_track_state("g1", "UC1", Track.SCHEDULED, "s2")
    decision = DedupEngine(tracked).evaluate("g1", "UC1", Track.LIVE, make_video("l1"))
    assert decision.notify is True
    assert _state(tracked, Track.SCHEDULED) == "s2"
    assert _state(tracked, Track.LIVE) == "l1"


def test_repeated_live_is_noop(tracked, make_video):
    engine = DedupEngine(tracked)
    engine.evaluate("g1", "UC1", Track.LIVE, make_video("l1"))
    assert engine.evaluate("g1", "UC1", Track.LIVE, make_video("l1")).notify is False


def test_state_is_scoped_per_guild(tracked, make_video):
    engine = DedupEngine(tracked)
    assert engine.evaluate("g1", "UC1", Track.UPLOAD, make_video("v1")).notify
    assert engine.evaluate("g2", "UC1", Track.UPLOAD, make_video("v1")).notify
