#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - Poll Scheduler
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Poll cycles over every configured guild and tracked channel.

One cycle:
1. Read all guild configurations (failure -> short fixed retry delay)
2. Compute the next delay: base interval x number of guilds
3. For each channel, under the in-flight guard, check upload, live and
   scheduled in that order and hand new items to the delivery sink
4. Report the delay before the next cycle

Errors in one channel are logged and never abort the cycle. The scheduler
has no timer of its own: the bot drives it from a discord.py task loop and
feeds each report's delay back as the next interval.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Dict, Optional, Protocol, Tuple

from .engine import DedupEngine
from .guard import CheckGuard
from .health import Component, HealthState, HealthStatus
from .models import TRACK_ORDER, ChannelConfig, CycleReport, GuildConfig, NotificationDecision, Track, VideoItem
from .store import GuildStore
from .youtube import YouTubeSource

logger = logging.getLogger(__name__)


class DeliverySink(Protocol):
    """Receives notify events; must return without waiting for delivery."""

    def notify(
        self,
        guild_id: str,
        channel_id: str,
        track: Track,
        item: VideoItem,
        destination: str,
        mention_targets: Tuple[str, ...],
    ) -> None: ...


class LoggingSink:
    """Sink that only logs; used for dry runs from the CLI."""

    def __init__(self):
        self.events = []

    def notify(self, guild_id, channel_id, track, item, destination, mention_targets) -> None:
        self.events.append((guild_id, channel_id, track, item.video_id, destination, tuple(mention_targets)))
        logger.info(
            "[dry-run] %s %s for guild %s -> #%s (mentions: %s)",
            track.value,
            item.url,
            guild_id,
            destination,
            ", ".join(mention_targets) or "none",
        )


class SchedulerState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"


class PollScheduler:
    """Drives the YouTube polling loop."""

    def __init__(
        self,
        store: GuildStore,
        source: YouTubeSource,
        sink: DeliverySink,
        *,
        guard: Optional[CheckGuard] = None,
        engine: Optional[DedupEngine] = None,
        base_interval: float = 30.0,
        failure_retry: float = 60.0,
        fetch_timeout: float = 15.0,
        concurrent: bool = False,
        health: Optional[HealthStatus] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.source = source
        self.sink = sink
        self.guard = guard or CheckGuard()
        self.engine = engine or DedupEngine(store)
        self.base_interval = base_interval
        self.failure_retry = failure_retry
        self.fetch_timeout = fetch_timeout
        self.concurrent = concurrent
        self.health = health
        self._clock = clock

        self.state = SchedulerState.IDLE
        self.last_report: Optional[CycleReport] = None
        self._last_scanned: Dict[str, float] = {}

    @classmethod
    def from_config(cls, config, store: GuildStore, sink: DeliverySink, health: Optional[HealthStatus] = None):
        """Build a scheduler wired from a :class:`~guildwatch.config.Config`."""
        source = YouTubeSource(
            api_key=config.youtube.api_key,
            base_url=config.youtube.base_url,
            timeout=config.youtube.timeout,
            health=health,
        )
        return cls(
            store,
            source,
            sink,
            base_interval=config.poll.base_interval_sec,
            failure_retry=config.poll.failure_retry_sec,
            fetch_timeout=config.poll.fetch_timeout_sec,
            concurrent=config.poll.concurrent_channels,
            health=health,
        )

    def compute_delay(self, guild_count: int) -> float:
        """Cadence stretches with guild count to bound the upstream call rate."""
        return self.base_interval * max(1, guild_count)

    def _guild_due(self, guild: GuildConfig, now: float) -> bool:
        if not guild.poll_interval_seconds:
            return True
        last = self._last_scanned.get(guild.guild_id)
        return last is None or now - last >= guild.poll_interval_seconds

    # ══════════════════════════════════════════════════════════════════════════
    # CYCLE
    # ══════════════════════════════════════════════════════════════════════════

    async def run_cycle(self) -> CycleReport:
        """Scan every guild once and return the report, including the next delay."""
        report = CycleReport()
        self.state = SchedulerState.SCANNING
        try:
            try:
                guilds = await asyncio.to_thread(self.store.get_all_guild_configs)
            except Exception as e:
                logger.exception("Error in YouTube polling loop: cannot list guilds")
                report.errors.append(f"enumeration: {e}")
                report.delay = self.failure_retry
                if self.health is not None:
                    self.health.record_enumeration_failure(str(e))
                return report

            report.guilds = len(guilds)
            report.delay = self.compute_delay(len(guilds))

            now = self._clock()
            # Forget guilds that were removed since the last cycle
            current = {g.guild_id for g in guilds}
            for guild_id in list(self._last_scanned):
                if guild_id not in current:
                    del self._last_scanned[guild_id]

            checks = []
            for guild in guilds:
                if not guild.channels:
                    continue
                if not self._guild_due(guild, now):
                    logger.debug("Guild %s not due yet (interval %ss)", guild.guild_id, guild.poll_interval_seconds)
                    continue
                self._last_scanned[guild.guild_id] = now
                for channel in guild.channels:
                    checks.append(self._safe_check_channel(guild.guild_id, channel, report))

            if self.concurrent:
                await asyncio.gather(*checks)
            else:
                for check in checks:
                    await check

            if self.health is not None:
                self.health.record_cycle(report)

            logger.info(
                "Poll cycle done: %d guild(s), %d channel(s) checked, %d skipped, %d notification(s); next in %.0fs",
                report.guilds,
                report.channels_checked,
                report.channels_skipped,
                report.notifications,
                report.delay,
            )
            return report
        finally:
            self.last_report = report
            self.state = SchedulerState.IDLE

    async def _safe_check_channel(self, guild_id: str, channel: ChannelConfig, report: CycleReport) -> None:
        try:
            await self.check_channel(guild_id, channel, report)
        except Exception as e:
            logger.exception("Error checking YouTube for guild %s, channel %s", guild_id, channel.channel_id)
            report.errors.append(f"{guild_id}/{channel.channel_id}: {e}")

    async def check_channel(self, guild_id: str, channel: ChannelConfig, report: Optional[CycleReport] = None) -> None:
        """Check all enabled tracks of one channel while holding its guard."""
        report = report if report is not None else CycleReport()

        with self.guard.hold(guild_id, channel.channel_id) as acquired:
            if not acquired:
                report.channels_skipped += 1
                return

            report.channels_checked += 1
            for track in TRACK_ORDER:
                settings = channel.settings(track)
                if not settings.enabled:
                    continue

                candidate = await self._fetch(channel.channel_id, track)
                decision = await asyncio.to_thread(
                    self.engine.evaluate, guild_id, channel.channel_id, track, candidate
                )
                if decision.notify and self._deliver(guild_id, channel, decision):
                    report.notifications += 1

    async def _fetch(self, channel_id: str, track: Track) -> Optional[VideoItem]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.source.fetch_latest, channel_id, track),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("YouTube %s lookup for channel %s timed out", track.value, channel_id)
            if self.health is not None:
                self.health.set_component_health(Component.YOUTUBE, HealthState.DEGRADED)
            return None

    def _deliver(self, guild_id: str, channel: ChannelConfig, decision: NotificationDecision) -> bool:
        settings = channel.settings(decision.track)
        if not settings.destination:
            logger.warning(
                "Dropping %s notification %s for guild %s: no Discord channel configured",
                decision.track.value,
                decision.item_id,
                guild_id,
            )
            return False

        try:
            self.sink.notify(
                guild_id,
                channel.channel_id,
                decision.track,
                decision.item,
                settings.destination,
                settings.mention_targets,
            )
        except Exception:
            logger.exception("Delivery sink rejected %s notification %s", decision.track.value, decision.item_id)
            return False
        return True

