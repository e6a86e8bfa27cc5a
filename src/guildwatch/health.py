#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - Health & Self-Healing
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Health tracking for the bot and its poller, plus Discord reconnect pacing.

Three components feed the overall state: the Discord session, the YouTube
source and the guild store. Poll cycles report in after every scan so
/health can show when the poller last ran and whether the store is readable.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Dict, Optional

from .models import CycleReport

logger = logging.getLogger(__name__)

# Consecutive failed guild enumerations before the poller counts as down
ENUMERATION_FAILURES_CRITICAL = 3


class HealthState(Enum):
    HEALTHY = auto()
    DEGRADED = auto()
    UNHEALTHY = auto()
    RECOVERING = auto()
    CRITICAL = auto()


class Component(str, Enum):
    """Parts of GuildWatch that report their own health."""

    DISCORD = "discord"
    YOUTUBE = "youtube"
    STORE = "store"


@dataclass
class HealthStatus:
    """
    Aggregated health of the running bot.

    Component states and the error streak combine into ``state``. A degraded
    YouTube source (timeouts, bad responses) degrades the whole bot, since
    notifications are late while it lasts.
    """

    state: HealthState = HealthState.HEALTHY
    components: Dict[Component, HealthState] = field(default_factory=dict)
    started_at: datetime = field(default_factory=datetime.now)
    last_heartbeat: Optional[datetime] = None
    last_error: Optional[str] = None
    consecutive_errors: int = 0
    total_errors: int = 0
    reconnect_count: int = 0

    # Poll cycle facts
    last_cycle_at: Optional[datetime] = None
    last_cycle_notifications: int = 0
    cycles_completed: int = 0
    enumeration_failures: int = 0

    @property
    def uptime_str(self) -> str:
        total = int((datetime.now() - self.started_at).total_seconds())
        minutes, seconds = divmod(total, 60)
        hours, minutes = divmod(minutes, 60)
        days, hours = divmod(hours, 24)
        if days:
            return f"{days}d {hours}h {minutes}m"
        if hours:
            return f"{hours}h {minutes}m"
        return f"{minutes}m {seconds}s"

    def component(self, component: Component) -> HealthState:
        return self.components.get(Component(component), HealthState.HEALTHY)

    def set_component_health(self, component: Component, state: HealthState) -> None:
        component = Component(component)
        if self.components.get(component) != state:
            logger.debug("Component %s -> %s", component.value, state.name)
        self.components[component] = state
        self._update_state()

    def record_heartbeat(self) -> None:
        self.last_heartbeat = datetime.now()
        if self.consecutive_errors:
            logger.info("Recovered after %d consecutive errors", self.consecutive_errors)
        self.consecutive_errors = 0
        self._update_state()

    def record_error(self, error: str) -> None:
        self.last_error = error
        self.consecutive_errors += 1
        self.total_errors += 1
        logger.warning("Error recorded (%d in a row): %s", self.consecutive_errors, error)
        self._update_state()

    def record_reconnect(self) -> None:
        self.reconnect_count += 1

    def record_cycle(self, report: CycleReport) -> None:
        """A poll cycle listed the guilds and scanned them."""
        self.last_cycle_at = datetime.now()
        self.last_cycle_notifications = report.notifications
        self.cycles_completed += 1
        self.enumeration_failures = 0
        self.components[Component.STORE] = HealthState.HEALTHY
        self.record_heartbeat()

    def record_enumeration_failure(self, error: str) -> None:
        """A poll cycle could not list guilds from the store."""
        self.enumeration_failures += 1
        self.components[Component.STORE] = HealthState.UNHEALTHY
        self.record_error(f"Guild enumeration failed: {error}")

    def _update_state(self) -> None:
        states = list(self.components.values())
        unhealthy = sum(1 for s in states if s in (HealthState.UNHEALTHY, HealthState.CRITICAL))

        if self.enumeration_failures >= ENUMERATION_FAILURES_CRITICAL or unhealthy >= 2:
            self.state = HealthState.CRITICAL
        elif unhealthy or self.consecutive_errors >= 5:
            self.state = HealthState.UNHEALTHY
        elif HealthState.DEGRADED in states or self.consecutive_errors >= 2:
            self.state = HealthState.DEGRADED
        elif self.consecutive_errors:
            self.state = HealthState.RECOVERING
        else:
            self.state = HealthState.HEALTHY


class SelfHealer:
    """
    Paces Discord reconnect attempts.

    Delay doubles per failed attempt from ``base_delay`` up to ``max_delay``,
    with +/-10% jitter, and resets once a session is ready again.
    """

    def __init__(
        self,
        health: Optional[HealthStatus] = None,
        base_delay: float = 2.0,
        max_delay: float = 300.0,
    ):
        self.health = health or HealthStatus()
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.attempts = 0
        self._shutdown = asyncio.Event()

    def next_delay(self) -> float:
        delay = min(self.max_delay, self.base_delay * (2**self.attempts))
        self.attempts += 1
        return delay * random.uniform(0.9, 1.1)

    def reset_backoff(self) -> None:
        self.attempts = 0

    async def wait_before_reconnect(self) -> float:
        """Sleep before the next attempt; returns 0 early if shutdown was requested."""
        delay = self.next_delay()
        self.health.record_reconnect()
        logger.info("Reconnect attempt %d in %.1fs", self.attempts, delay)
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=delay)
            return 0
        except asyncio.TimeoutError:
            return delay

    def request_shutdown(self) -> None:
        self._shutdown.set()

    def is_shutting_down(self) -> bool:
        return self._shutdown.is_set()
