"""
forumxp.bot.cogs.pins — Pin Reaction XP
=======================================

Adding the pin emoji to the starter message of a post in the monitored
forum earns the reactor ``xp_per_pin``; removing it takes the XP back
(never the level).

Uses raw events so reactions on uncached messages still count.  In a
forum, the starter message id equals the thread id, which is how the
starter message is recognised without fetching it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from forumxp.constants import format_progress
from forumxp.database.engine import run_db
from forumxp.services.ledger_service import add_xp, remove_xp

if TYPE_CHECKING:
    from forumxp.bot.core import ForumXPBot

logger = logging.getLogger(__name__)


class Pins(commands.Cog, name="Pins"):
    """Awards XP for pinning forum posts."""

    def __init__(self, bot: ForumXPBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        """Fire when any reaction is added, even on uncached messages."""
        try:
            await self._handle_pin_added(payload)
        except Exception:
            logger.exception(
                "Error processing pin on message %s from user %s",
                payload.message_id, payload.user_id,
            )

    @commands.Cog.listener()
    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        """Fire when any reaction is removed, even on uncached messages."""
        try:
            await self._handle_pin_removed(payload)
        except Exception:
            logger.exception(
                "Error processing pin removal on message %s from user %s",
                payload.message_id, payload.user_id,
            )

    # -------------------------------------------------------------------
    # Gates
    # -------------------------------------------------------------------
    async def _resolve_pinned_post(
        self, payload: discord.RawReactionActionEvent
    ) -> discord.Thread | None:
        """The forum post whose starter message got the pin emoji, if any."""
        if payload.guild_id is None:
            return None
        if payload.emoji.name != self.bot.cfg.pin_emoji:
            return None
        if payload.message_id != payload.channel_id:
            return None

        channel = self.bot.get_channel(payload.channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(payload.channel_id)
            except (discord.NotFound, discord.Forbidden, discord.HTTPException):
                return None

        if not isinstance(channel, discord.Thread):
            return None
        if channel.parent_id != self.bot.cfg.forum_channel_id:
            return None
        return channel

    # -------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------
    async def _handle_pin_added(self, payload: discord.RawReactionActionEvent) -> None:
        member = payload.member
        if member is None or member.bot:
            return

        thread = await self._resolve_pinned_post(payload)
        if thread is None:
            return

        cfg = self.bot.cfg
        logger.info("Pin reaction from %s on forum post: %s", member, thread.name)
        result = await run_db(add_xp, self.bot.engine, cfg.thresholds, member.id, cfg.xp_per_pin)

        progress = format_progress(result.new_xp, result.current_level, cfg.thresholds)
        logger.info(
            "User %s now has %d XP%s - Level %d",
            member, result.new_xp, progress, result.current_level,
        )
        await self.bot.audit(
            f"\U0001f4cc **{member}** pinned a post in \"{thread.name}\" → +{cfg.xp_per_pin} XP "
            f"(Total: {result.new_xp} XP, Level {result.current_level})"
        )

        if result.leveled_up:
            logger.info("%s leveled up to Level %d!", member, result.current_level)
            await self.bot.audit(f"\U0001f389 **{member}** leveled up to **Level {result.current_level}**!")
            await self.bot.reconciler.apply_level_up(member, result.old_level, result.current_level)

    async def _handle_pin_removed(self, payload: discord.RawReactionActionEvent) -> None:
        thread = await self._resolve_pinned_post(payload)
        if thread is None:
            return

        user = self.bot.get_user(payload.user_id)
        if user is None:
            try:
                user = await self.bot.fetch_user(payload.user_id)
            except (discord.NotFound, discord.HTTPException):
                return
        if user.bot:
            return

        cfg = self.bot.cfg
        logger.info("Pin reaction removed by %s on forum post: %s", user, thread.name)
        result = await run_db(remove_xp, self.bot.engine, user.id, cfg.xp_per_pin)

        if result is None:
            logger.info("User %s not found in database (no XP to remove)", user)
            return

        progress = format_progress(result.new_xp, result.current_level, cfg.thresholds)
        logger.info(
            "User %s now has %d XP%s - Level %d",
            user, result.new_xp, progress, result.current_level,
        )
        await self.bot.audit(
            f"\U0001f4cc **{user}** removed pin from \"{thread.name}\" → -{cfg.xp_per_pin} XP "
            f"(Total: {result.new_xp} XP, Level {result.current_level})"
        )


async def setup(bot: ForumXPBot) -> None:
    await bot.add_cog(Pins(bot))
