#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - YouTube Notifications for Discord
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
GuildWatch: per-guild YouTube upload and stream notifications for Discord.

Polls the newest upload, live stream and scheduled stream of every tracked
YouTube channel, posts each new item once, and proxies Statbot statistics.

Usage:
    python -m guildwatch run
    python -m guildwatch poll-once
    python -m guildwatch check
"""

__version__ = "1.0.0"
__author__ = "SIRIUS Alpha"

from .config import Config, get_config
from .engine import DedupEngine
from .errors import GuildWatchError, StoreError
from .guard import CheckGuard
from .models import ChannelConfig, CycleReport, GuildConfig, NotificationDecision, Track, TrackSettings, VideoItem
from .scheduler import LoggingSink, PollScheduler
from .store import GuildStore
from .youtube import YouTubeSource

__all__ = [
    # Version
    "__version__",
    "__author__",
    # Config
    "Config",
    "get_config",
    # Errors
    "GuildWatchError",
    "StoreError",
    # Model
    "Track",
    "TrackSettings",
    "ChannelConfig",
    "GuildConfig",
    "VideoItem",
    "NotificationDecision",
    "CycleReport",
    # Core
    "GuildStore",
    "CheckGuard",
    "DedupEngine",
    "YouTubeSource",
    "PollScheduler",
    "LoggingSink",
]
