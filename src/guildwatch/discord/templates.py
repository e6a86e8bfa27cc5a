"""Discord message templates for GuildWatch notifications.

Small templating helpers to keep notification formatting consistent.
"""
from __future__ import annotations

from typing import Dict, Iterable, Optional

from ..models import Track, VideoItem

_DESCRIPTION_CHAR_LIMIT = 300  # keep announcements compact; Discord allows 4096 in embeds

_HEADLINES = {
    Track.UPLOAD: "📺 **{channel}** uploaded a new video!",
    Track.LIVE: "🔴 **{channel}** is live now!",
    Track.SCHEDULED: "🗓️ **{channel}** scheduled a stream!",
}

_COLORS = {
    Track.UPLOAD: 0xFF0000,
    Track.LIVE: 0xE91E63,
    Track.SCHEDULED: 0x3498DB,
}


def _truncate(text: str, limit: int = _DESCRIPTION_CHAR_LIMIT) -> str:
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def format_mentions(role_ids: Iterable[str]) -> str:
    """Render role ids as Discord role mentions; empty string when none."""
    return " ".join(f"<@&{r}>" for r in role_ids if r)


def build_notification_text(track: Track, item: VideoItem, mention_targets: Iterable[str] = ()) -> str:
    channel = item.channel_title or "A tracked channel"
    lines = []
    mentions = format_mentions(mention_targets)
    if mentions:
        lines.append(mentions)
    lines.append(_HEADLINES[track].format(channel=channel))
    if item.title:
        lines.append(f"**{item.title}**")
    lines.append(item.url)
    return "\n".join(lines)


def build_notification_embed(track: Track, item: VideoItem) -> Dict[str, object]:
    """Return a Discord embed dict for one notification."""
    embed: Dict[str, object] = {
        "title": item.title or item.video_id,
        "url": item.url,
        "color": _COLORS[track],
        "fields": [],
    }
    description = _truncate(item.description)
    if description:
        embed["description"] = description
    if item.channel_title:
        embed["author"] = {"name": item.channel_title}
    if item.published_at:
        embed["timestamp"] = item.published_at
    embed["footer"] = {"text": f"YouTube • {track.label}"}
    return embed


def statbot_reply_text(group: str, sub: Optional[str]) -> str:
    return f"Here's your Statbot data for `{group}/{sub}`"
