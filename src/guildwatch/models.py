#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - Data Model
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Value types for guild notification configuration and polling results.

Guild configuration is owned by the store; everything here is an immutable
snapshot handed to the polling core.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Track(str, Enum):
    """The three independent notification kinds tracked per channel."""

    UPLOAD = "upload"
    LIVE = "live"
    SCHEDULED = "scheduled"

    @property
    def event_type(self) -> Optional[str]:
        """YouTube search ``eventType`` for this track (None for plain uploads)."""
        return {Track.UPLOAD: None, Track.LIVE: "live", Track.SCHEDULED: "upcoming"}[self]

    @property
    def label(self) -> str:
        return {Track.UPLOAD: "Upload", Track.LIVE: "Live", Track.SCHEDULED: "Schedule"}[self]


# Evaluation order within one channel check; live must run before scheduled
TRACK_ORDER: Tuple[Track, ...] = (Track.UPLOAD, Track.LIVE, Track.SCHEDULED)


@dataclass(frozen=True)
class TrackSettings:
    """Delivery settings for one track of one channel."""

    enabled: bool = True
    destination: str = ""
    mention_targets: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ChannelConfig:
    """A tracked YouTube channel and its per-track delivery settings."""

    channel_id: str
    upload: TrackSettings = field(default_factory=TrackSettings)
    live: TrackSettings = field(default_factory=TrackSettings)
    scheduled: TrackSettings = field(default_factory=TrackSettings)

    @classmethod
    def for_destination(cls, channel_id: str, destination: str) -> "ChannelConfig":
        """Track every kind of item and post all of them to one Discord channel."""
        settings = TrackSettings(destination=destination)
        return cls(channel_id=channel_id, upload=settings, live=settings, scheduled=settings)

    def settings(self, track: Track) -> TrackSettings:
        return getattr(self, track.value)

    def with_settings(self, track: Track, **changes) -> "ChannelConfig":
        return replace(self, **{track.value: replace(self.settings(track), **changes)})


@dataclass(frozen=True)
class GuildConfig:
    """Notification configuration for one Discord guild."""

    guild_id: str
    poll_interval_seconds: Optional[int] = None
    channels: Tuple[ChannelConfig, ...] = ()

    def find_channel(self, channel_id: str) -> Optional[ChannelConfig]:
        for channel in self.channels:
            if channel.channel_id == channel_id:
                return channel
        return None


@dataclass(frozen=True)
class VideoItem:
    """The newest item returned by the video source for one track."""

    video_id: str
    title: str = ""
    description: str = ""
    published_at: str = ""
    channel_id: str = ""
    channel_title: str = ""

    @property
    def url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"

    @classmethod
    def from_search_item(cls, item: Dict) -> Optional["VideoItem"]:
        """Build from one ``search.list`` result, or None if it is not a usable video entry."""
        if not isinstance(item, dict) or not isinstance(item.get("id"), dict):
            return None
        video_id = item["id"].get("videoId")
        if not video_id or not isinstance(video_id, str):
            return None
        snippet = item.get("snippet")
        if not isinstance(snippet, dict):
            snippet = {}
        return cls(
            video_id=video_id,
            title=snippet.get("title", ""),
            description=snippet.get("description", ""),
            published_at=snippet.get("publishedAt", ""),
            channel_id=snippet.get("channelId", ""),
            channel_title=snippet.get("channelTitle", ""),
        )


@dataclass(frozen=True)
class NotificationDecision:
    """Outcome of evaluating one candidate against stored track state."""

    track: Track
    item: Optional[VideoItem] = None
    notify: bool = False

    @classmethod
    def noop(cls, track: Track, item: Optional[VideoItem] = None) -> "NotificationDecision":
        return cls(track=track, item=item, notify=False)

    @property
    def item_id(self) -> Optional[str]:
        return self.item.video_id if self.item else None


@dataclass
class StoreResponse:
    """Result of a configuration write, with a user-facing message."""

    success: bool
    message: str


@dataclass
class CycleReport:
    """Counters for one scan cycle."""

    guilds: int = 0
    channels_checked: int = 0
    channels_skipped: int = 0
    notifications: int = 0
    errors: List[str] = field(default_factory=list)
    delay: float = 0.0
