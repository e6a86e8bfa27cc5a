from __future__ import annotations

import pytest

try:
    from guildwatch.discord.cogs import notifier, statbot
except Exception:
    pytest.skip("discord not available or guildwatch package not importable", allow_module_level=True)

from guildwatch.models import ChannelConfig, Track


class DummyBot:
    store = None
    statbot = None


def test_notifier_cog_setup():
    cog = notifier.NotifierCog(DummyBot())
    names = {c.qualified_name for c in cog.walk_commands()}
    assert {"channel add", "channel list", "poll set", "upload roles", "live enable", "scheduled channel"} <= names


def test_statbot_cog_setup():
    cog = statbot.StatbotCog(DummyBot())
    names = {c.name for c in cog.get_commands()}
    assert {"statbot-messages", "statbot-voice", "statbot-test", "statbot-full"} <= names


@pytest.mark.parametrize(
    "raw,expected",
    [("true", True), ("On", True), ("enable", True), ("false", False), ("nope", False)],
)
def test_parse_bool(raw, expected):
    assert notifier._parse_bool(raw) is expected


def test_split_roles_strips_mentions():
    assert notifier._split_roles("<@&1>, 2 ,,3") == ["1", "2", "3"]


def test_describe_channel():
    channel = ChannelConfig.for_destination("UC1", "100").with_settings(Track.LIVE, enabled=False, mention_targets=("5",))
    text = notifier.describe_channel(channel)
    assert "**UC1**" in text
    assert "Live: off" in text
    assert "<@&5>" in text
    assert "Upload: on → <#100>" in text
