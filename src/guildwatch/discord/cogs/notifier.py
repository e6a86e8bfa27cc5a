from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands

from ...models import ChannelConfig, StoreResponse, Track

LOG = logging.getLogger("guildwatch.discord.notifier")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on", "enable", "enabled")


def _split_roles(value: str) -> list[str]:
    return [r.strip().strip("<@&>") for r in value.split(",") if r.strip()]


def describe_channel(channel: ChannelConfig) -> str:
    """One line per track: state, destination and mentions."""
    lines = [f"**{channel.channel_id}**"]
    for track in Track:
        s = channel.settings(track)
        dest = f"<#{s.destination}>" if s.destination else "unset"
        roles = ", ".join(f"<@&{r}>" for r in s.mention_targets) or "none"
        lines.append(f"- {track.label}: {'on' if s.enabled else 'off'} → {dest} (mentions: {roles})")
    return "\n".join(lines)


class NotifierCog(commands.Cog):
    """Manage tracked YouTube channels and their notification settings."""

    def __init__(self, bot):
        self.bot = bot

    @property
    def store(self):
        return self.bot.store

    async def _reply(self, ctx, result: StoreResponse) -> None:
        await ctx.send(result.message)

    async def cog_check(self, ctx) -> bool:
        if ctx.guild is None:
            raise commands.NoPrivateMessage()
        if not ctx.author.guild_permissions.manage_guild:
            raise commands.MissingPermissions(["manage_guild"])
        return True

    # ── Channels ─────────────────────────────────────────────────────────────

    @commands.group(name="channel", invoke_without_command=True)
    async def channel_group(self, ctx):
        """Add or remove tracked YouTube channels for this guild."""
        await ctx.send("Usage: `channel add <youtube_id> <#discord>` | `channel remove <youtube_id>` | `channel clear` | `channel list`")

    @channel_group.command(name="add")
    async def cmd_channel_add(self, ctx, youtube_id: str, discord_channel: discord.TextChannel):
        """Track a YouTube channel and post every alert kind to one Discord channel."""
        config = ChannelConfig.for_destination(youtube_id, str(discord_channel.id))
        result = await asyncio.to_thread(self.store.add_channel, str(ctx.guild.id), config)
        await self._reply(ctx, result)

    @channel_group.command(name="remove")
    async def cmd_channel_remove(self, ctx, youtube_id: str):
        result = await asyncio.to_thread(self.store.remove_channel, str(ctx.guild.id), youtube_id)
        await self._reply(ctx, result)

    @channel_group.command(name="clear")
    async def cmd_channel_clear(self, ctx):
        result = await asyncio.to_thread(self.store.clear_channels, str(ctx.guild.id))
        await self._reply(ctx, result)

    @channel_group.command(name="list")
    async def cmd_channel_list(self, ctx):
        channels = await asyncio.to_thread(self.store.get_channels, str(ctx.guild.id))
        if not channels:
            await ctx.send("No YouTube channels are tracked in this server.")
            return
        await ctx.send("\n\n".join(describe_channel(c) for c in channels)[:2000])

    # ── Per-track settings ───────────────────────────────────────────────────

    async def _set_enabled(self, ctx, track: Track, youtube_id: str, enabled: str) -> None:
        result = await asyncio.to_thread(
            self.store.set_track_enabled, str(ctx.guild.id), youtube_id, track, _parse_bool(enabled)
        )
        await self._reply(ctx, result)

    async def _set_destination(self, ctx, track: Track, youtube_id: str, channel: discord.TextChannel) -> None:
        result = await asyncio.to_thread(
            self.store.set_track_destination, str(ctx.guild.id), youtube_id, track, str(channel.id)
        )
        await self._reply(ctx, result)

    async def _set_roles(self, ctx, track: Track, youtube_id: str, roles: str) -> None:
        result = await asyncio.to_thread(
            self.store.set_track_mentions, str(ctx.guild.id), youtube_id, track, _split_roles(roles)
        )
        await self._reply(ctx, result)

    @commands.group(name="upload", invoke_without_command=True)
    async def upload_group(self, ctx):
        """Configure upload alerts for a YouTube channel."""
        await ctx.send("Usage: `upload enable <youtube_id> <true|false>` | `upload channel <youtube_id> <#discord>` | `upload roles <youtube_id> <id,id>`")

    @upload_group.command(name="enable")
    async def cmd_upload_enable(self, ctx, youtube_id: str, enabled: str):
        await self._set_enabled(ctx, Track.UPLOAD, youtube_id, enabled)

    @upload_group.command(name="channel")
    async def cmd_upload_channel(self, ctx, youtube_id: str, discord_channel: discord.TextChannel):
        await self._set_destination(ctx, Track.UPLOAD, youtube_id, discord_channel)

    @upload_group.command(name="roles")
    async def cmd_upload_roles(self, ctx, youtube_id: str, *, roles: str):
        await self._set_roles(ctx, Track.UPLOAD, youtube_id, roles)

    @commands.group(name="live", invoke_without_command=True)
    async def live_group(self, ctx):
        """Configure live alerts for a YouTube channel."""
        await ctx.send("Usage: `live enable <youtube_id> <true|false>` | `live channel <youtube_id> <#discord>` | `live roles <youtube_id> <id,id>`")

    @live_group.command(name="enable")
    async def cmd_live_enable(self, ctx, youtube_id: str, enabled: str):
        await self._set_enabled(ctx, Track.LIVE, youtube_id, enabled)

    @live_group.command(name="channel")
    async def cmd_live_channel(self, ctx, youtube_id: str, discord_channel: discord.TextChannel):
        await self._set_destination(ctx, Track.LIVE, youtube_id, discord_channel)

    @live_group.command(name="roles")
    async def cmd_live_roles(self, ctx, youtube_id: str, *, roles: str):
        await self._set_roles(ctx, Track.LIVE, youtube_id, roles)

    @commands.group(name="scheduled", invoke_without_command=True)
    async def scheduled_group(self, ctx):
        """Configure scheduled-stream alerts for a YouTube channel."""
        await ctx.send("Usage: `scheduled enable <youtube_id> <true|false>` | `scheduled channel <youtube_id> <#discord>` | `scheduled roles <youtube_id> <id,id>`")

    @scheduled_group.command(name="enable")
    async def cmd_scheduled_enable(self, ctx, youtube_id: str, enabled: str):
        await self._set_enabled(ctx, Track.SCHEDULED, youtube_id, enabled)

    @scheduled_group.command(name="channel")
    async def cmd_scheduled_channel(self, ctx, youtube_id: str, discord_channel: discord.TextChannel):
        await self._set_destination(ctx, Track.SCHEDULED, youtube_id, discord_channel)

    @scheduled_group.command(name="roles")
    async def cmd_scheduled_roles(self, ctx, youtube_id: str, *, roles: str):
        await self._set_roles(ctx, Track.SCHEDULED, youtube_id, roles)

    # ── Poll interval ────────────────────────────────────────────────────────

    @commands.group(name="poll", invoke_without_command=True)
    async def poll_group(self, ctx):
        """Show or change how often this guild's channels are checked."""
        await ctx.send("Usage: `poll set <seconds>` | `poll clear` | `poll show`")

    @poll_group.command(name="set")
    async def cmd_poll_set(self, ctx, seconds: int):
        result = await asyncio.to_thread(self.store.set_poll_interval, str(ctx.guild.id), seconds)
        await self._reply(ctx, result)

    @poll_group.command(name="clear")
    async def cmd_poll_clear(self, ctx):
        result = await asyncio.to_thread(self.store.unset_poll_interval, str(ctx.guild.id))
        await self._reply(ctx, result)

    @poll_group.command(name="show")
    async def cmd_poll_show(self, ctx):
        seconds = await asyncio.to_thread(self.store.get_poll_interval, str(ctx.guild.id))
        if seconds is None:
            await ctx.send("Poll interval is not set; the global cadence applies.")
        else:
            await ctx.send(f"Poll interval: {seconds} second(s).")

    @commands.command(name="notifications-reset")
    async def cmd_notifications_reset(self, ctx):
        """Remove every notification setting for this guild."""
        result = await asyncio.to_thread(self.store.remove_guild, str(ctx.guild.id))
        LOG.info("Notification config reset for guild %s by %s", ctx.guild.id, ctx.author)
        await self._reply(ctx, result)


async def setup(bot):
    await bot.add_cog(NotifierCog(bot))
