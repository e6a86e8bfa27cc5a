#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - Discord Integration
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Discord bot hosting the poller, notification settings and Statbot commands.
"""

from .bot import GuildWatchBot, run_discord_bot
from .delivery import DiscordDelivery

__all__ = [
    "GuildWatchBot",
    "DiscordDelivery",
    "run_discord_bot",
]
