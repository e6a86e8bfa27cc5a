from __future__ import annotations

import asyncio
import logging
from io import BytesIO
from typing import Optional

import discord
from discord.ext import commands

from ...statbot import ENDPOINTS, StatbotResult, parse_key_value_args
from ..templates import statbot_reply_text

LOG = logging.getLogger("guildwatch.discord.statbot")


def result_file(result: StatbotResult, group: str, sub: Optional[str]) -> discord.File:
    """Wrap a successful result as a JSON attachment."""
    return discord.File(BytesIO(result.to_json_bytes()), filename=f"{group}-{sub or 'data'}.json")


class StatbotCog(commands.Cog):
    """Proxy commands for the Statbot statistics API."""

    def __init__(self, bot):
        self.bot = bot

    @property
    def client(self):
        return self.bot.statbot

    async def cog_check(self, ctx) -> bool:
        if ctx.guild is None:
            raise commands.NoPrivateMessage()
        if not ctx.author.guild_permissions.manage_guild:
            raise commands.MissingPermissions(["manage_guild"])
        return True

    async def _run_query(self, ctx, group: str, sub: Optional[str], args) -> None:
        if not sub:
            subs = ", ".join(ENDPOINTS.get(group, {}))
            await ctx.send(f"Usage: `statbot-{group} <sub> key=value ...` (sub: {subs})")
            return

        options = parse_key_value_args(list(args))
        async with ctx.typing():
            result = await asyncio.to_thread(self.client.query, group, sub, str(ctx.guild.id), options)

        if not result.success:
            await ctx.send(result.error)
            return
        await ctx.send(statbot_reply_text(group, sub), file=result_file(result, group, sub))

    @commands.command(name="statbot-messages")
    async def cmd_messages(self, ctx, sub: str = None, *args):
        """Message statistics: series, tops-members, tops-channels, sums."""
        await self._run_query(ctx, "messages", sub, args)

    @commands.command(name="statbot-voice")
    async def cmd_voice(self, ctx, sub: str = None, *args):
        """Voice statistics: series, tops-members, tops-channels, sums."""
        await self._run_query(ctx, "voice", sub, args)

    @commands.command(name="statbot-activities")
    async def cmd_activities(self, ctx, sub: str = None, *args):
        await self._run_query(ctx, "activities", sub, args)

    @commands.command(name="statbot-members")
    async def cmd_members(self, ctx, sub: str = None, *args):
        await self._run_query(ctx, "members", sub, args)

    @commands.command(name="statbot-channels")
    async def cmd_channels(self, ctx, sub: str = None, *args):
        await self._run_query(ctx, "channels", sub, args)

    @commands.command(name="statbot-statuses")
    async def cmd_statuses(self, ctx, sub: str = None, *args):
        await self._run_query(ctx, "statuses", sub, args)

    @commands.command(name="statbot-test")
    async def cmd_test(self, ctx, url: str):
        """Request a raw Statbot URL (or a path relative to this guild)."""
        async with ctx.typing():
            result = await asyncio.to_thread(self.client.run_raw, url, str(ctx.guild.id))
        if not result.success:
            await ctx.send(result.error)
            return
        await ctx.send("Here's your Statbot data", file=result_file(result, "test", None))

    @commands.command(name="statbot-full")
    async def cmd_full(self, ctx):
        """Run every sample endpoint once and report failures."""
        status = await ctx.send("Running full Statbot check...")
        loop = asyncio.get_running_loop()

        def progress(index: int, total: int) -> None:
            LOG.debug("Statbot full check %d/%d for guild %s", index, total, ctx.guild.id)
            if index == 1 or index % 5 == 0:
                asyncio.run_coroutine_threadsafe(
                    status.edit(content=f"Running request {index}/{total}..."), loop
                )

        report = await asyncio.to_thread(self.client.run_full_check, str(ctx.guild.id), progress)
        summary = report.summary()
        await ctx.send(summary[:2000])


async def setup(bot):
    await bot.add_cog(StatbotCog(bot))
