import asyncio

import pytest

discord = pytest.importorskip("discord")

from guildwatch.discord.delivery import DiscordDelivery  # noqa: E402
from guildwatch.models import Track, VideoItem  # noqa: E402

ITEM = VideoItem(video_id="abc", title="New video", channel_title="Chan")


class FakeRole:
    def __init__(self, role_id):
        self.id = role_id


class FakeGuild:
    def __init__(self, roles):
        self.roles = {r: FakeRole(r) for r in roles}

    def get_role(self, role_id):
        return self.roles.get(role_id)


class FakeChannel:
    def __init__(self, guild):
        self.guild = guild
        self.sent = []

    async def send(self, content, embed=None, allowed_mentions=None):
        self.sent.append((content, embed, allowed_mentions))
        return "message"


class FakeClient:
    def __init__(self, channels):
        self.channels = channels

    def get_channel(self, channel_id):
        return self.channels.get(channel_id)

    async def fetch_channel(self, channel_id):
        raise discord.NotFound(type("R", (), {"status": 404, "reason": "Not Found"})(), "unknown channel")


@pytest.mark.asyncio
async def test_deliver_posts_with_mentions():
    channel = FakeChannel(FakeGuild([7]))
    delivery = DiscordDelivery(FakeClient({100: channel}))

    result = await delivery.deliver("g1", Track.UPLOAD, ITEM, "100", ("7",))

    assert result == "message"
    content, embed, allowed = channel.sent[0]
    assert content.startswith("<@&7>")
    assert embed.url == ITEM.url
    assert allowed.roles is True


@pytest.mark.asyncio
async def test_unknown_role_drops_notification():
    channel = FakeChannel(FakeGuild([7]))
    delivery = DiscordDelivery(FakeClient({100: channel}))

    assert await delivery.deliver("g1", Track.LIVE, ITEM, "100", ("7", "8")) is None
    assert channel.sent == []


@pytest.mark.asyncio
async def test_invalid_destination_drops_notification():
    delivery = DiscordDelivery(FakeClient({}))
    assert await delivery.deliver("g1", Track.LIVE, ITEM, "not-a-number", ()) is None


@pytest.mark.asyncio
async def test_notify_schedules_without_waiting():
    channel = FakeChannel(FakeGuild([]))
    delivery = DiscordDelivery(FakeClient({100: channel}))

    delivery.notify("g1", "UC1", Track.SCHEDULED, ITEM, "100", ())
    assert channel.sent == []

    await asyncio.gather(*list(delivery._pending))
    assert len(channel.sent) == 1
