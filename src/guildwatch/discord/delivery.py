#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - Discord Delivery
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Delivery sink that posts poller notifications into Discord channels.

``notify`` only schedules the send; the poller never waits on Discord.
Unresolvable destinations are logged and the notification is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set, Tuple

import discord

from ..models import Track, VideoItem
from .templates import build_notification_embed, build_notification_text

logger = logging.getLogger(__name__)


class DiscordDelivery:
    """Posts notifications through a connected discord.py client."""

    def __init__(self, client: discord.Client):
        self.client = client
        self._pending: Set[asyncio.Task] = set()

    def notify(
        self,
        guild_id: str,
        channel_id: str,
        track: Track,
        item: VideoItem,
        destination: str,
        mention_targets: Tuple[str, ...],
    ) -> None:
        task = asyncio.get_running_loop().create_task(
            self.deliver(guild_id, track, item, destination, mention_targets),
            name=f"notify-{guild_id}-{channel_id}-{track.value}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _resolve_channel(self, destination: str) -> Optional[discord.abc.Messageable]:
        try:
            channel_id = int(destination)
        except (TypeError, ValueError):
            return None

        channel = self.client.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self.client.fetch_channel(channel_id)
        except (discord.NotFound, discord.Forbidden, discord.HTTPException) as e:
            logger.warning("Cannot fetch Discord channel %s: %s", destination, e)
            return None

    async def deliver(
        self,
        guild_id: str,
        track: Track,
        item: VideoItem,
        destination: str,
        mention_targets: Tuple[str, ...],
    ) -> Optional[discord.Message]:
        channel = await self._resolve_channel(destination)
        if channel is None or not hasattr(channel, "send"):
            logger.warning(
                "Dropping %s notification %s for guild %s: channel %s not found",
                track.value,
                item.video_id,
                guild_id,
                destination,
            )
            return None

        guild = getattr(channel, "guild", None)
        roles = []
        for role_id in mention_targets:
            role = guild.get_role(int(role_id)) if guild is not None and str(role_id).isdigit() else None
            if role is None:
                logger.warning(
                    "Dropping %s notification %s for guild %s: mention role %s not found",
                    track.value,
                    item.video_id,
                    guild_id,
                    role_id,
                )
                return None
            roles.append(str(role.id))

        content = build_notification_text(track, item, roles)
        embed = discord.Embed.from_dict(build_notification_embed(track, item))
        try:
            message = await channel.send(
                content,
                embed=embed,
                allowed_mentions=discord.AllowedMentions(roles=True, everyone=False, users=False),
            )
        except (discord.Forbidden, discord.HTTPException) as e:
            logger.error("Failed to post %s notification to %s: %s", track.value, destination, e)
            return None

        logger.info("Posted %s notification %s to channel %s", track.value, item.video_id, destination)
        return message
