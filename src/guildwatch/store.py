#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - Guild Configuration Store
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
SQLite-backed store for guild notification settings and track state.

Holds three tables:
- guilds: one row per configured guild (poll interval override)
- channels: tracked YouTube channels with per-track delivery settings
- track_state: last notified video id per (guild, channel, track)

Every public method is a single short transaction; callers running on the
event loop should dispatch through ``asyncio.to_thread``.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import StoreError
from .models import ChannelConfig, GuildConfig, StoreResponse, Track, TrackSettings

logger = logging.getLogger(__name__)


def _track_columns(track: Track) -> tuple:
    prefix = track.value
    return (f"{prefix}_enabled", f"{prefix}_destination", f"{prefix}_mentions")


class GuildStore:
    """
    Persists guild configuration and per-track notification state.

    A guild row is created lazily on the first configuration write; a guild
    without a row is inert for the poller.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}", operation="connect") from e
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON;")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"Database operation failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self) -> None:
        """Initialize database schema."""
        channel_columns = []
        for track in Track:
            enabled, destination, mentions = _track_columns(track)
            channel_columns.extend(
                [
                    f"{enabled} INTEGER NOT NULL DEFAULT 1",
                    f"{destination} TEXT NOT NULL DEFAULT ''",
                    f"{mentions} TEXT NOT NULL DEFAULT '[]'",
                ]
            )

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA journal_mode = WAL;")
            cursor.execute("PRAGMA busy_timeout = 5000;")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS guilds (
                    guild_id TEXT PRIMARY KEY,
                    poll_interval_seconds INTEGER,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS channels (
                    guild_id TEXT NOT NULL REFERENCES guilds(guild_id) ON DELETE CASCADE,
                    channel_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    {", ".join(channel_columns)},
                    PRIMARY KEY (guild_id, channel_id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS track_state (
                    guild_id TEXT NOT NULL,
                    channel_id TEXT NOT NULL,
                    track TEXT NOT NULL,
                    last_seen_id TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (guild_id, channel_id, track)
                )
            """)

        logger.debug("Store initialized at %s", self.db_path)

    def copy_to(self, path: Path) -> "GuildStore":
        """Snapshot the whole database into ``path`` and open a store on the copy."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._get_connection() as conn:
            target = sqlite3.connect(str(path))
            try:
                conn.backup(target)
            finally:
                target.close()
        return GuildStore(path)

    # ══════════════════════════════════════════════════════════════════════════
    # READS
    # ══════════════════════════════════════════════════════════════════════════

    @staticmethod
    def _row_to_channel(row: sqlite3.Row) -> ChannelConfig:
        settings = {}
        for track in Track:
            enabled, destination, mentions = _track_columns(track)
            settings[track.value] = TrackSettings(
                enabled=bool(row[enabled]),
                destination=row[destination] or "",
                mention_targets=tuple(json.loads(row[mentions] or "[]")),
            )
        return ChannelConfig(channel_id=row["channel_id"], **settings)

    def _load_channels(self, conn: sqlite3.Connection, guild_id: str) -> tuple:
        rows = conn.execute(
            "SELECT * FROM channels WHERE guild_id = ? ORDER BY position", (guild_id,)
        ).fetchall()
        return tuple(self._row_to_channel(r) for r in rows)

    def get_all_guild_configs(self) -> List[GuildConfig]:
        """Return every configured guild with its tracked channels."""
        with self._get_connection() as conn:
            guilds = conn.execute(
                "SELECT guild_id, poll_interval_seconds FROM guilds ORDER BY created_at, rowid"
            ).fetchall()
            return [
                GuildConfig(
                    guild_id=g["guild_id"],
                    poll_interval_seconds=g["poll_interval_seconds"],
                    channels=self._load_channels(conn, g["guild_id"]),
                )
                for g in guilds
            ]

    def get_guild_config(self, guild_id: str) -> Optional[GuildConfig]:
        """Fetch the full guild configuration, or None if never configured."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT guild_id, poll_interval_seconds FROM guilds WHERE guild_id = ?", (guild_id,)
            ).fetchone()
            if row is None:
                return None
            return GuildConfig(
                guild_id=row["guild_id"],
                poll_interval_seconds=row["poll_interval_seconds"],
                channels=self._load_channels(conn, guild_id),
            )

    def get_channels(self, guild_id: str) -> Optional[List[ChannelConfig]]:
        cfg = self.get_guild_config(guild_id)
        return list(cfg.channels) if cfg else None

    def get_channel_config(self, guild_id: str, channel_id: str) -> Optional[ChannelConfig]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM channels WHERE guild_id = ? AND channel_id = ?", (guild_id, channel_id)
            ).fetchone()
            return self._row_to_channel(row) if row else None

    def get_poll_interval(self, guild_id: str) -> Optional[int]:
        cfg = self.get_guild_config(guild_id)
        return cfg.poll_interval_seconds if cfg else None

    # ══════════════════════════════════════════════════════════════════════════
    # TRACK STATE
    # ══════════════════════════════════════════════════════════════════════════

    def get_track_state(self, guild_id: str, channel_id: str, track: Track) -> Optional[str]:
        """Return the last notified video id for a track, or None."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT last_seen_id FROM track_state WHERE guild_id = ? AND channel_id = ? AND track = ?",
                (guild_id, channel_id, track.value),
            ).fetchone()
            return row["last_seen_id"] if row else None

    def set_track_state(self, guild_id: str, channel_id: str, track: Track, video_id: str) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO track_state (guild_id, channel_id, track, last_seen_id, updated_at)
                VALUES (?, ?, ?, ?, datetime('now'))
                ON CONFLICT(guild_id, channel_id, track)
                DO UPDATE SET last_seen_id = excluded.last_seen_id, updated_at = excluded.updated_at
                """,
                (guild_id, channel_id, track.value, video_id),
            )

    def clear_track_state(self, guild_id: str, channel_id: str, track: Track) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "DELETE FROM track_state WHERE guild_id = ? AND channel_id = ? AND track = ?",
                (guild_id, channel_id, track.value),
            )

    # ══════════════════════════════════════════════════════════════════════════
    # GUILD-LEVEL WRITES
    # ══════════════════════════════════════════════════════════════════════════

    @staticmethod
    def _ensure_guild(conn: sqlite3.Connection, guild_id: str) -> None:
        conn.execute("INSERT OR IGNORE INTO guilds (guild_id) VALUES (?)", (guild_id,))

    def remove_guild(self, guild_id: str) -> StoreResponse:
        """Drop the whole notification block for a guild, including track state."""
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM guilds WHERE guild_id = ?", (guild_id,))
            if cursor.rowcount == 0:
                return StoreResponse(False, "Notifications are not set.")
            conn.execute("DELETE FROM track_state WHERE guild_id = ?", (guild_id,))
        logger.info("Removed notification config for guild %s", guild_id)
        return StoreResponse(True, "Notifications cleared.")

    def set_poll_interval(self, guild_id: str, seconds: int) -> StoreResponse:
        """Set the per-guild poll interval override, in seconds."""
        if seconds < 1:
            return StoreResponse(False, "Poll interval must be at least 1 second.")
        with self._get_connection() as conn:
            self._ensure_guild(conn, guild_id)
            row = conn.execute(
                "SELECT poll_interval_seconds FROM guilds WHERE guild_id = ?", (guild_id,)
            ).fetchone()
            if row["poll_interval_seconds"] == seconds:
                return StoreResponse(False, "Poll interval is already that value.")
            conn.execute("UPDATE guilds SET poll_interval_seconds = ? WHERE guild_id = ?", (seconds, guild_id))
        return StoreResponse(True, f"Poll interval set to {seconds} second(s).")

    def unset_poll_interval(self, guild_id: str) -> StoreResponse:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE guilds SET poll_interval_seconds = NULL "
                "WHERE guild_id = ? AND poll_interval_seconds IS NOT NULL",
                (guild_id,),
            )
            if cursor.rowcount == 0:
                return StoreResponse(False, "Poll interval is not set.")
        return StoreResponse(True, "Poll interval cleared.")

    # ══════════════════════════════════════════════════════════════════════════
    # CHANNEL WRITES
    # ══════════════════════════════════════════════════════════════════════════

    def add_channel(self, guild_id: str, channel: ChannelConfig) -> StoreResponse:
        """Start tracking a YouTube channel; creates the guild row if needed."""
        if not channel.channel_id:
            return StoreResponse(False, "Channel ID must not be empty.")

        columns = ["guild_id", "channel_id", "position"]
        for track in Track:
            columns.extend(_track_columns(track))

        with self._get_connection() as conn:
            self._ensure_guild(conn, guild_id)
            existing = conn.execute(
                "SELECT 1 FROM channels WHERE guild_id = ? AND channel_id = ?", (guild_id, channel.channel_id)
            ).fetchone()
            if existing:
                return StoreResponse(False, "Channel is already being tracked.")

            row = conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 AS next_pos FROM channels WHERE guild_id = ?", (guild_id,)
            ).fetchone()
            values: list = [guild_id, channel.channel_id, row["next_pos"]]
            for track in Track:
                settings = channel.settings(track)
                values.extend(
                    [int(settings.enabled), settings.destination, json.dumps(list(settings.mention_targets))]
                )

            conn.execute(
                f"INSERT INTO channels ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                values,
            )

        logger.info("Guild %s now tracks channel %s", guild_id, channel.channel_id)
        return StoreResponse(True, "Channel added successfully.")

    def remove_channel(self, guild_id: str, channel_id: str) -> StoreResponse:
        """Stop tracking a channel and forget its notification state."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM channels WHERE guild_id = ? AND channel_id = ?", (guild_id, channel_id)
            )
            if cursor.rowcount == 0:
                return StoreResponse(False, "Channel not found.")
            conn.execute(
                "DELETE FROM track_state WHERE guild_id = ? AND channel_id = ?", (guild_id, channel_id)
            )
        logger.info("Guild %s stopped tracking channel %s", guild_id, channel_id)
        return StoreResponse(True, "Channel removed successfully.")

    def clear_channels(self, guild_id: str) -> StoreResponse:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM channels WHERE guild_id = ?", (guild_id,))
            conn.execute("DELETE FROM track_state WHERE guild_id = ?", (guild_id,))
        return StoreResponse(True, "All channels cleared.")

    def _update_track_field(
        self,
        guild_id: str,
        channel_id: str,
        column: str,
        value,
        same_message: str,
        ok_message: str,
    ) -> StoreResponse:
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT {column} FROM channels WHERE guild_id = ? AND channel_id = ?", (guild_id, channel_id)
            ).fetchone()
            if row is None:
                return StoreResponse(False, "Channel not found.")
            if row[column] == value:
                return StoreResponse(False, same_message)
            conn.execute(
                f"UPDATE channels SET {column} = ? WHERE guild_id = ? AND channel_id = ?",
                (value, guild_id, channel_id),
            )
        return StoreResponse(True, ok_message)

    def set_track_enabled(self, guild_id: str, channel_id: str, track: Track, enabled: bool) -> StoreResponse:
        state = "enabled" if enabled else "disabled"
        return self._update_track_field(
            guild_id,
            channel_id,
            _track_columns(track)[0],
            int(enabled),
            f"{track.label} alerts already {state}.",
            f"{track.label} alerts {state}.",
        )

    def set_track_destination(self, guild_id: str, channel_id: str, track: Track, destination: str) -> StoreResponse:
        return self._update_track_field(
            guild_id,
            channel_id,
            _track_columns(track)[1],
            destination,
            f"{track.label} Discord channel is already set to that ID.",
            f"{track.label} Discord channel updated.",
        )

    def set_track_mentions(
        self, guild_id: str, channel_id: str, track: Track, roles: Iterable[str]
    ) -> StoreResponse:
        cleaned = [r.strip() for r in roles if r and r.strip()]
        return self._update_track_field(
            guild_id,
            channel_id,
            _track_columns(track)[2],
            json.dumps(cleaned),
            f"{track.label} mention roles already set.",
            f"{track.label} mention roles updated.",
        )
