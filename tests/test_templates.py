from guildwatch.discord.templates import (
    build_notification_embed,
    build_notification_text,
    format_mentions,
    statbot_reply_text,
)
from guildwatch.models import Track, VideoItem

ITEM = VideoItem(
    video_id="abc",
    title="Big Stream",
    description="x" * 500,
    published_at="2025-01-01T00:00:00Z",
    channel_title="Chan",
)


def test_format_mentions():
    assert format_mentions(["1", "", "2"]) == "<@&1> <@&2>"
    assert format_mentions([]) == ""


def test_notification_text_mentions_first():
    text = build_notification_text(Track.LIVE, ITEM, ["9"])
    lines = text.splitlines()
    assert lines[0] == "<@&9>"
    assert "is live now" in lines[1]
    assert lines[-1] == "https://www.youtube.com/watch?v=abc"


def test_notification_text_without_mentions():
    text = build_notification_text(Track.UPLOAD, ITEM)
    assert not text.startswith("<@&")
    assert "uploaded a new video" in text


def test_embed_truncates_description():
    embed = build_notification_embed(Track.SCHEDULED, ITEM)
    assert embed["url"] == ITEM.url
    assert len(embed["description"]) == 300
    assert embed["description"].endswith("...")
    assert embed["footer"]["text"].endswith("Schedule")
    assert embed["author"] == {"name": "Chan"}


def test_statbot_reply_text():
    assert statbot_reply_text("voice", "sums") == "Here's your Statbot data for `voice/sums`"
