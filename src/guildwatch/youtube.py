#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - YouTube Video Source
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Looks up the newest upload, live stream or scheduled stream of a channel
through the YouTube Data API ``search.list`` endpoint.

Upstream failures are absorbed: the caller only ever sees "an item" or
"no item". An outage therefore never produces a notification, it just
delays one until the next cycle. Failures are still logged and reported
to the health tracker so they stay visible.
"""

import logging
from typing import Optional

import requests

from .health import Component, HealthState, HealthStatus
from .models import Track, VideoItem

logger = logging.getLogger(__name__)

COMPONENT = Component.YOUTUBE


class YouTubeSource:
    """Blocking YouTube client; run it off the event loop."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://www.googleapis.com/youtube/v3",
        timeout: float = 10.0,
        health: Optional[HealthStatus] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.health = health
        self._session: Optional[requests.Session] = None

    def _get_session(self) -> requests.Session:
        """Get or create HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"Accept": "application/json"})
        return self._session

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def build_params(self, channel_id: str, track: Track) -> dict:
        params = {
            "key": self.api_key,
            "channelId": channel_id,
            "part": "snippet",
            "order": "date",
            "maxResults": 1,
            "type": "video",
        }
        if track.event_type:
            params["eventType"] = track.event_type
        return params

    def _report(self, ok: bool, channel_id: str = "", reason: str = "") -> None:
        if ok:
            if self.health is not None:
                self.health.set_component_health(COMPONENT, HealthState.HEALTHY)
            return
        logger.warning("YouTube lookup failed for channel %s: %s", channel_id, reason)
        if self.health is not None:
            self.health.set_component_health(COMPONENT, HealthState.DEGRADED)

    def fetch_latest(self, channel_id: str, track: Track) -> Optional[VideoItem]:
        """
        Return the newest item of the given kind for a channel.

        Args:
            channel_id: YouTube channel ID
            track: Which kind of item to look for

        Returns:
            The newest item, or None when nothing was found or the lookup failed
        """
        if not channel_id:
            return None

        url = f"{self.base_url}/search"
        try:
            response = self._get_session().get(url, params=self.build_params(channel_id, track), timeout=self.timeout)
        except requests.RequestException as e:
            self._report(False, channel_id, f"{type(e).__name__}: {e}")
            return None

        if not response.ok:
            self._report(False, channel_id, f"HTTP {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError as e:
            self._report(False, channel_id, f"invalid JSON body: {e}")
            return None

        if not isinstance(data, dict):
            self._report(False, channel_id, "response body is not an object")
            return None

        items = data.get("items")
        if items is None:
            items = []
        if not isinstance(items, list):
            self._report(False, channel_id, "'items' is not a list")
            return None
        if not items:
            self._report(True)
            logger.debug("No %s item for channel %s", track.value, channel_id)
            return None

        item = VideoItem.from_search_item(items[0])
        if item is None:
            self._report(False, channel_id, "first search result has no video id")
            return None

        self._report(True)
        return item
