"""
forumxp.bot.cogs.pings — Role-Ping Triggers
===========================================

Mentioning a configured trigger role posts a single spoilered message
pinging that trigger's target roles.  Message building lives in
:mod:`forumxp.services.ping_service`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from forumxp.services.ping_service import build_ping_message, configured_ping_roles, matching_triggers

if TYPE_CHECKING:
    from forumxp.bot.core import ForumXPBot

logger = logging.getLogger(__name__)


class Pings(commands.Cog, name="Pings"):
    """Fans a trigger-role mention out to the configured roles."""

    def __init__(self, bot: ForumXPBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        try:
            await self._handle_message(message)
        except Exception:
            logger.exception("Error processing role-ping triggers on message %s", message.id)

    async def _handle_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return

        triggers = self.bot.cfg.role_ping_triggers
        if not triggers:
            return

        channel_name = getattr(message.channel, "name", "unknown")
        for trigger in matching_triggers(triggers, (r.id for r in message.role_mentions)):
            logger.info(
                "%s trigger role mentioned by %s in #%s", trigger.name, message.author, channel_name,
            )
            await self.bot.audit(
                f"\U0001f514 **{message.author}** triggered **{trigger.name}** role ping in #{channel_name}"
            )

            content = build_ping_message(trigger)
            if content is None:
                logger.info("No roles configured to ping for %s", trigger.name)
                continue

            try:
                await message.channel.send(content)
            except discord.HTTPException:
                logger.exception("Error sending %s role ping message", trigger.name)
                continue
            logger.info(
                "Sent spoilered ping for %d roles (%s)",
                len(configured_ping_roles(trigger)), trigger.name,
            )


async def setup(bot: ForumXPBot) -> None:
    await bot.add_cog(Pings(bot))
