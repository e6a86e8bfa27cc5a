#!/usr/bin/env python3
from __future__ import annotations

# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - Discord Bot Core
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Discord bot hosting the YouTube poller and the Statbot proxy.

Features:
- Auto-reconnect with exponential backoff
- Background poll scheduler posting new uploads and streams
- Prefix commands for notification settings and Statbot queries
- /health and /statbot slash commands
"""

import asyncio
import logging
import sys
import traceback
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands, tasks

from ..config import Config, get_config
from ..health import Component, HealthState, SelfHealer
from ..models import CycleReport
from ..scheduler import PollScheduler
from ..statbot import ENDPOINTS, StatbotClient, parse_key_value_args
from ..store import GuildStore
from .delivery import DiscordDelivery
from .templates import statbot_reply_text

logger = logging.getLogger(__name__)

BOT_DESCRIPTION = "YouTube upload and stream notifications, plus Statbot server statistics."


class GuildWatchBot(commands.Bot):
    """
    Discord bot for per-guild YouTube notifications.

    Combines:
    - discord.py Bot functionality
    - Self-healing reconnects
    - The poll scheduler, started once the bot is set up
    """

    def __init__(self, config: Optional[Config] = None, store: Optional[GuildStore] = None):
        """
        Initialize the bot.

        Args:
            config: Bot configuration
            store: Guild configuration store (built from config if None)
        """
        self.config = config or get_config()

        intents = discord.Intents.default()
        # Prefix commands need message content
        intents.message_content = self.config.discord.enable_message_content
        intents.guilds = True

        super().__init__(
            command_prefix=self.config.discord.command_prefix,
            intents=intents,
            description=BOT_DESCRIPTION,
        )

        self.healer = SelfHealer()
        self.store = store or GuildStore(self.config.paths.database_path)
        self.statbot = StatbotClient(
            api_key=self.config.statbot.api_key,
            base_url=self.config.statbot.base_url,
            timeout=self.config.statbot.timeout,
            full_check_pause=self.config.statbot.full_check_pause_sec,
        )
        self.delivery = DiscordDelivery(self)
        self.scheduler = PollScheduler.from_config(self.config, self.store, self.delivery, health=self.healer.health)

        self._ready = asyncio.Event()

    # ══════════════════════════════════════════════════════════════════════════
    # LIFECYCLE EVENTS
    # ══════════════════════════════════════════════════════════════════════════

    async def setup_hook(self) -> None:
        """Called when the bot is starting up."""
        logger.info("Setting up bot...")

        await self._register_commands()

        from .cogs import notifier, statbot

        # Idempotent across reconnects
        for cog_cls in (notifier.NotifierCog, statbot.StatbotCog):
            try:
                if not self.get_cog(cog_cls.__name__):
                    await self.add_cog(cog_cls(self))
            except Exception:
                logger.exception("Failed to add cog %s", cog_cls.__name__)

        # Start background tasks
        if not self.poll_loop.is_running():
            self.poll_loop.start()

    async def on_ready(self) -> None:
        """Called when the bot is fully connected."""
        logger.info(f"Bot connected as {self.user}")
        logger.info(f"Connected to {len(self.guilds)} guild(s)")

        self.healer.health.record_heartbeat()
        self.healer.health.set_component_health(Component.DISCORD, HealthState.HEALTHY)
        self.healer.reset_backoff()

        try:
            sync_id = self.config.discord.sync_guild_id
            if sync_id:
                guild = discord.Object(id=sync_id)
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
                logger.info(f"Synced {len(synced)} commands to guild {sync_id}")
            else:
                synced = await self.tree.sync()
                logger.info(f"Synced {len(synced)} commands globally")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync commands: {e}")

        self._ready.set()

    async def on_disconnect(self) -> None:
        """Called when the bot disconnects."""
        logger.warning("Bot disconnected!")
        self.healer.health.record_error("Disconnected from Discord")
        self.healer.health.set_component_health(Component.DISCORD, HealthState.UNHEALTHY)
        self._ready.clear()

    async def on_resumed(self) -> None:
        """Called when the bot resumes a session."""
        logger.info("Bot resumed session")
        self.healer.health.record_heartbeat()
        self.healer.health.set_component_health(Component.DISCORD, HealthState.HEALTHY)
        self._ready.set()

    async def on_error(self, event: str, *args, **kwargs) -> None:
        """Global error handler."""
        logger.error(f"Error in {event}: {traceback.format_exc()}")
        self.healer.health.record_error(f"Event error: {event}")

    async def on_command_error(self, ctx, error) -> None:
        if isinstance(error, (commands.CommandNotFound, commands.CheckFailure)):
            if isinstance(error, commands.MissingPermissions):
                await ctx.send("You need the Manage Server permission to use this command.")
            elif isinstance(error, commands.NoPrivateMessage):
                await ctx.send("This command only works inside a server.")
            return
        if isinstance(error, commands.UserInputError):
            await ctx.send(f"Invalid arguments: {error}")
            return
        logger.error("Command %s failed", ctx.command, exc_info=error)
        await ctx.send("Something went wrong while running that command.")

    # ══════════════════════════════════════════════════════════════════════════
    # BACKGROUND TASKS
    # ══════════════════════════════════════════════════════════════════════════

    @tasks.loop(seconds=30)
    async def poll_loop(self) -> None:
        """Run one poll cycle, then wait as long as the cycle asked for."""
        await self.run_poll_cycle()

    @poll_loop.before_loop
    async def before_poll(self) -> None:
        """Wait for bot to be ready before polling."""
        await self.wait_until_ready()

    async def run_poll_cycle(self) -> CycleReport:
        try:
            report = await self.scheduler.run_cycle()
        except Exception as e:
            logger.exception("Poll cycle failed")
            self.healer.health.record_error(f"Poll cycle: {e}")
            report = CycleReport(delay=self.scheduler.failure_retry)

        self.poll_loop.change_interval(seconds=report.delay)
        logger.debug("Next poll cycle in %.0fs", report.delay)
        return report

    # ══════════════════════════════════════════════════════════════════════════
    # COMMANDS
    # ══════════════════════════════════════════════════════════════════════════

    async def _register_commands(self) -> None:
        """Register slash commands."""
        if self.tree.get_command("health") is not None:
            return

        @self.tree.command(name="health", description="Show bot health status")
        async def health_command(interaction: discord.Interaction):
            status = self.healer.health

            state_emoji = {
                HealthState.HEALTHY: "🟢",
                HealthState.DEGRADED: "🟡",
                HealthState.UNHEALTHY: "🟠",
                HealthState.RECOVERING: "🔵",
                HealthState.CRITICAL: "🔴",
            }

            embed = discord.Embed(
                title=f"{state_emoji.get(status.state, '⚪')} Bot Health Status",
                color=discord.Color.green() if status.state == HealthState.HEALTHY else discord.Color.orange(),
            )

            embed.add_field(name="State", value=status.state.name, inline=True)
            embed.add_field(name="Uptime", value=status.uptime_str, inline=True)
            embed.add_field(name="Latency", value=f"{self.latency*1000:.0f}ms", inline=True)
            embed.add_field(name="Reconnects", value=str(status.reconnect_count), inline=True)
            embed.add_field(name="Total Errors", value=str(status.total_errors), inline=True)

            report = self.scheduler.last_report
            if report is not None:
                embed.add_field(
                    name="Last Poll",
                    value=(
                        f"{report.guilds} guild(s), {report.channels_checked} checked, "
                        f"{report.notifications} sent, next in {report.delay:.0f}s"
                        + (f" (at {status.last_cycle_at:%H:%M:%S})" if status.last_cycle_at else "")
                    ),
                    inline=False,
                )

            if status.enumeration_failures:
                embed.add_field(name="Store Failures", value=str(status.enumeration_failures), inline=True)

            if status.components:
                components_str = "\n".join(f"{k.value}: {v.name}" for k, v in status.components.items())
                embed.add_field(name="Components", value=components_str, inline=False)

            await interaction.response.send_message(embed=embed)

        @self.tree.command(name="statbot", description="Query Statbot statistics for this server")
        @app_commands.describe(
            group="Statistic group",
            sub="Endpoint within the group (e.g. series, sums, tops-members)",
            options="Space separated key=value options (e.g. interval=day limit=10)",
        )
        @app_commands.choices(group=[app_commands.Choice(name=g, value=g) for g in ENDPOINTS])
        @app_commands.checks.has_permissions(manage_guild=True)
        @app_commands.guild_only()
        async def statbot_command(
            interaction: discord.Interaction,
            group: app_commands.Choice[str],
            sub: str,
            options: Optional[str] = None,
        ):
            await interaction.response.defer()
            opts = parse_key_value_args((options or "").split())
            result = await asyncio.to_thread(
                self.statbot.query, group.value, sub, str(interaction.guild_id), opts
            )
            if not result.success:
                await interaction.followup.send(result.error)
                return

            from .cogs.statbot import result_file

            await interaction.followup.send(
                statbot_reply_text(group.value, sub), file=result_file(result, group.value, sub)
            )

    # ══════════════════════════════════════════════════════════════════════════
    # RUNNING
    # ══════════════════════════════════════════════════════════════════════════

    async def close(self) -> None:
        self.poll_loop.cancel()
        self.statbot.close()
        self.scheduler.source.close()
        await super().close()

    async def start_with_healing(self) -> None:
        """
        Start the bot with self-healing reconnection.

        Automatically handles disconnections and errors.
        """
        token = self.config.discord.bot_token

        if not token:
            raise ValueError("Discord bot token not configured. Set DISCORD_BOT_TOKEN environment variable.")

        while not self.healer.is_shutting_down():
            try:
                await self.start(token)
                # Clean return means close() was called
                break
            except discord.LoginFailure:
                logger.error("Invalid Discord token!")
                raise
            except Exception as e:
                logger.error(f"Bot crashed: {e}")
                self.healer.health.record_error(str(e))

                if not self.healer.is_shutting_down():
                    await self.healer.wait_before_reconnect()

    def run_forever(self) -> None:
        """Run the bot with event loop management."""
        try:
            asyncio.run(self.start_with_healing())
        except KeyboardInterrupt:
            logger.info("Shutdown requested")
            self.healer.request_shutdown()


# ══════════════════════════════════════════════════════════════════════════════
# CLI ENTRY POINT
# ══════════════════════════════════════════════════════════════════════════════


def run_discord_bot(config: Optional[Config] = None) -> None:
    """
    Run the Discord bot.

    Args:
        config: Configuration (uses global if None)
    """
    config = config or get_config()

    if not config.discord.bot_token:
        print("ERROR: DISCORD_BOT_TOKEN environment variable not set.")
        sys.exit(1)

    bot = GuildWatchBot(config)
    bot.run_forever()
