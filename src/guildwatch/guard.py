#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - In-Flight Check Guard
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Per-(guild, channel) mutual exclusion for channel checks.

Process-local only: the held set lives in memory and is empty after a restart.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Set, Tuple

logger = logging.getLogger(__name__)


class CheckGuard:
    """Tracks which (guild, channel) pairs currently have a check in flight."""

    def __init__(self):
        self._held: Set[Tuple[str, str]] = set()
        self._lock = threading.Lock()

    def try_acquire(self, guild_id: str, channel_id: str) -> bool:
        """Claim the key; False (and no change) if it is already claimed."""
        key = (guild_id, channel_id)
        with self._lock:
            if key in self._held:
                return False
            self._held.add(key)
            return True

    def release(self, guild_id: str, channel_id: str) -> None:
        """Drop the key if present. Releasing an unheld key is a no-op."""
        with self._lock:
            self._held.discard((guild_id, channel_id))

    def is_held(self, guild_id: str, channel_id: str) -> bool:
        with self._lock:
            return (guild_id, channel_id) in self._held

    @contextmanager
    def hold(self, guild_id: str, channel_id: str) -> Iterator[bool]:
        """
        Scoped acquisition.

        Yields whether the key was acquired; when it was, it is released on
        every exit path including exceptions and cancellation.
        """
        acquired = self.try_acquire(guild_id, channel_id)
        if not acquired:
            logger.debug("Check already in flight for guild %s channel %s", guild_id, channel_id)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(guild_id, channel_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._held)
