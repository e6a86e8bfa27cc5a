"""Shared fixtures for GuildWatch tests."""

import pytest

from guildwatch.models import ChannelConfig, VideoItem
from guildwatch.store import GuildStore


class FakeSource:
    """Video source returning canned items per (channel, track)."""

    def __init__(self, items=None):
        self.items = dict(items or {})
        self.calls = []

    def fetch_latest(self, channel_id, track):
        self.calls.append((channel_id, track))
        result = self.items.get((channel_id, track))
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        pass


class RecordingSink:
    def __init__(self):
        self.events = []

    def notify(self, guild_id, channel_id, track, item, destination, mention_targets):
        self.events.append((guild_id, channel_id, track, item.video_id, destination, tuple(mention_targets)))


@pytest.fixture
def store(tmp_path):
    return GuildStore(tmp_path / "guildwatch.db")


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def tracked(store):
    """Guild g1 tracking channel UC1, all tracks posting to Discord channel 100."""
    store.add_channel("g1", ChannelConfig.for_destination("UC1", "100"))
    return store


@pytest.fixture
def make_video():
    def _make(video_id, title="A video"):
        return VideoItem(video_id=video_id, title=title, channel_id="UC1", channel_title="Some Channel")

    return _make
