"""
forumxp.bot.cogs.role_sync — Manual Level Role Detection
========================================================

Listens for member role changes.  When a level role shows up that the
bot didn't grant itself, the member's ledger entry is pinned to that
level and any lower level roles are removed.  Requires the GUILD_MEMBERS
privileged intent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

if TYPE_CHECKING:
    from forumxp.bot.core import ForumXPBot

logger = logging.getLogger(__name__)


class RoleSync(commands.Cog, name="RoleSync"):
    """Treats hand-granted level roles as authoritative level overrides."""

    def __init__(self, bot: ForumXPBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        """Capture GUILD_MEMBER_UPDATE and look for added level roles."""
        try:
            if after.bot:
                return
            if {r.id for r in before.roles} == {r.id for r in after.roles}:
                return

            await self.bot.reconciler.handle_roles_changed(before, after)
        except Exception:
            logger.exception(
                "Error processing role change for %s", after.id,
                extra={"event_type": "member_update", "user_id": after.id},
            )


async def setup(bot: ForumXPBot) -> None:
    await bot.add_cog(RoleSync(bot))
