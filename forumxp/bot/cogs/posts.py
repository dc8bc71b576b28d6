"""
forumxp.bot.cogs.posts — Forum Post XP & Auto-Reply
===================================================

Creating a post in the monitored forum earns its owner ``xp_per_post``.
When ``auto_reply_message`` is configured the bot also replies in the new
post after a short delay, so the reply lands after the starter message.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from forumxp.constants import AUTO_REPLY_DELAY_SECONDS, USER_PLACEHOLDER, format_progress
from forumxp.database.engine import run_db
from forumxp.services.ledger_service import add_xp
from forumxp.services.role_service import resolve_member

if TYPE_CHECKING:
    from forumxp.bot.core import ForumXPBot

logger = logging.getLogger(__name__)


def render_auto_reply(template: str, owner_id: int) -> str:
    return template.replace(USER_PLACEHOLDER, f"<@{owner_id}>")


class Posts(commands.Cog, name="Posts"):
    """Awards XP for creating forum posts."""

    auto_reply_delay: float = AUTO_REPLY_DELAY_SECONDS

    def __init__(self, bot: ForumXPBot) -> None:
        self.bot = bot
        self._reply_tasks: set[asyncio.Task] = set()

    @commands.Cog.listener()
    async def on_thread_create(self, thread: discord.Thread) -> None:
        """Award XP for creating a new forum post."""
        try:
            await self._handle_thread_create(thread)
        except Exception:
            logger.exception("Error processing new forum post %s", thread.id)

    async def _handle_thread_create(self, thread: discord.Thread) -> None:
        """Inner thread create handler (separated for error isolation)."""
        cfg = self.bot.cfg
        if thread.parent_id != cfg.forum_channel_id:
            return

        owner_id = thread.owner_id
        if not owner_id:
            return

        owner = thread.owner or await resolve_member(thread.guild, owner_id)
        if owner is None or owner.bot:
            return

        logger.info("New forum post \"%s\" created by %s", thread.name, owner)
        await self.bot.audit(f"\U0001f4dd **{owner}** created new forum post: \"{thread.name}\"")

        if cfg.auto_reply_message:
            self._schedule_auto_reply(thread, owner_id, cfg.auto_reply_message)

        result = await run_db(add_xp, self.bot.engine, cfg.thresholds, owner_id, cfg.xp_per_post)
        progress = format_progress(result.new_xp, result.current_level, cfg.thresholds)
        logger.info(
            "User %s now has %d XP%s - Level %d",
            owner, result.new_xp, progress, result.current_level,
        )

        if result.leveled_up:
            logger.info("%s leveled up to Level %d!", owner, result.current_level)
            await self.bot.audit(f"\U0001f389 **{owner}** leveled up to **Level {result.current_level}**!")
            await self.bot.reconciler.apply_level_up(owner, result.old_level, result.current_level)

    # -------------------------------------------------------------------
    # Auto-reply (fire-and-forget)
    # -------------------------------------------------------------------
    def _schedule_auto_reply(self, thread: discord.Thread, owner_id: int, template: str) -> None:
        task = asyncio.create_task(self._send_auto_reply(thread, owner_id, template))
        self._reply_tasks.add(task)
        task.add_done_callback(self._reply_tasks.discard)

    async def _send_auto_reply(self, thread: discord.Thread, owner_id: int, template: str) -> None:
        await asyncio.sleep(self.auto_reply_delay)
        try:
            await thread.send(render_auto_reply(template, owner_id))
            logger.info("Auto-reply sent to thread \"%s\"", thread.name)
        except Exception:
            logger.exception("Failed to send auto-reply to \"%s\"", thread.name)

    async def cog_unload(self) -> None:
        for task in list(self._reply_tasks):
            task.cancel()


async def setup(bot: ForumXPBot) -> None:
    await bot.add_cog(Posts(bot))
