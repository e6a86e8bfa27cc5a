#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - Dedup / Promotion Engine
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Decides whether a freshly fetched video is new for its track.

Rules per track:
- upload: skip ids already notified as an upload or as a live stream, so a
  finished broadcast that reappears as a regular video does not re-notify
- live: skip the last live id; if the id was the pending scheduled stream,
  clear the scheduled state (the stream has started)
- scheduled: skip ids already notified as scheduled or already live

Stored state changes only when a notify decision is produced. Because every
check compares by value, replaying the same candidate is harmless.
"""

import logging
from typing import Optional

from .models import NotificationDecision, Track, VideoItem
from .store import GuildStore

logger = logging.getLogger(__name__)


class DedupEngine:
    """Evaluates candidates against per-track state held in the store."""

    def __init__(self, store: GuildStore):
        self.store = store

    def evaluate(
        self,
        guild_id: str,
        channel_id: str,
        track: Track,
        candidate: Optional[VideoItem],
    ) -> NotificationDecision:
        if candidate is None:
            return NotificationDecision.noop(track)

        if track is Track.UPLOAD:
            decision = self._evaluate_upload(guild_id, channel_id, candidate)
        elif track is Track.LIVE:
            decision = self._evaluate_live(guild_id, channel_id, candidate)
        else:
            decision = self._evaluate_scheduled(guild_id, channel_id, candidate)

        if decision.notify:
            logger.info(
                "New %s detected: %s in guild %s (channel %s)", track.value, candidate.video_id, guild_id, channel_id
            )
        return decision

    def _evaluate_upload(self, guild_id: str, channel_id: str, item: VideoItem) -> NotificationDecision:
        last_upload = self.store.get_track_state(guild_id, channel_id, Track.UPLOAD)
        last_live = self.store.get_track_state(guild_id, channel_id, Track.LIVE)

        if item.video_id in (last_upload, last_live):
            return NotificationDecision.noop(Track.UPLOAD, item)

        self.store.set_track_state(guild_id, channel_id, Track.UPLOAD, item.video_id)
        return NotificationDecision(track=Track.UPLOAD, item=item, notify=True)

    def _evaluate_live(self, guild_id: str, channel_id: str, item: VideoItem) -> NotificationDecision:
        last_live = self.store.get_track_state(guild_id, channel_id, Track.LIVE)
        if item.video_id == last_live:
            return NotificationDecision.noop(Track.LIVE, item)

        last_scheduled = self.store.get_track_state(guild_id, channel_id, Track.SCHEDULED)
        if item.video_id == last_scheduled:
            # Promotion: the scheduled stream went live
            self.store.clear_track_state(guild_id, channel_id, Track.SCHEDULED)
            logger.debug("Scheduled stream %s promoted to live", item.video_id)

        self.store.set_track_state(guild_id, channel_id, Track.LIVE, item.video_id)
        return NotificationDecision(track=Track.LIVE, item=item, notify=True)

    def _evaluate_scheduled(self, guild_id: str, channel_id: str, item: VideoItem) -> NotificationDecision:
        last_scheduled = self.store.get_track_state(guild_id, channel_id, Track.SCHEDULED)
        last_live = self.store.get_track_state(guild_id, channel_id, Track.LIVE)

        if item.video_id in (last_scheduled, last_live):
            return NotificationDecision.noop(Track.SCHEDULED, item)

        self.store.set_track_state(guild_id, channel_id, Track.SCHEDULED, item.video_id)
        return NotificationDecision(track=Track.SCHEDULED, item=item, notify=True)
