"""
forumxp.bot.cogs.admin — Admin Slash Commands
=============================================

- /check-xp — read a member's XP, level and progress to the next level
- /set-xp   — overwrite a member's XP and resync their level role

Both require the Administrator permission (or the configured
``admin_role_id``).  Replies are ephemeral.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from forumxp.constants import format_progress
from forumxp.database.engine import run_db
from forumxp.services.ledger_service import get_level

if TYPE_CHECKING:
    from forumxp.bot.core import ForumXPBot

logger = logging.getLogger(__name__)


def has_admin_access(interaction: discord.Interaction) -> bool:
    """Administrator permission, or the configured admin role."""
    if interaction.permissions.administrator:
        return True
    bot: ForumXPBot = interaction.client  # type: ignore[assignment]
    admin_role_id = bot.cfg.admin_role_id
    if admin_role_id is None or not hasattr(interaction.user, "roles"):
        return False
    return any(role.id == admin_role_id for role in interaction.user.roles)


def is_admin():
    """Decorator that gates a command behind :func:`has_admin_access`."""
    async def predicate(interaction: discord.Interaction) -> bool:
        return has_admin_access(interaction)
    return app_commands.check(predicate)


class Admin(commands.Cog, name="Admin"):
    """Operator commands for inspecting and correcting XP."""

    def __init__(self, bot: ForumXPBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # /check-xp
    # -------------------------------------------------------------------
    @app_commands.command(name="check-xp", description="Check a user's XP and level (Admin only)")
    @app_commands.describe(user="The user to check")
    @app_commands.default_permissions(administrator=True)
    @is_admin()
    async def check_xp(self, interaction: discord.Interaction, user: discord.User) -> None:
        """Report XP, level and distance to the next level."""
        data = await run_db(get_level, self.bot.engine, user.id)

        if data.xp == 0 and data.level == 0:
            await interaction.response.send_message(
                f"{user} hasn't earned any XP yet.", ephemeral=True,
            )
            return

        next_threshold = self.bot.cfg.thresholds.next_threshold(data.level)
        response = f"\U0001f4ca **{user}**\nLevel: {data.level}\nXP: {data.xp}"
        if next_threshold is not None:
            xp_needed = max(0, next_threshold - data.xp)
            response += f" / {next_threshold} ({xp_needed} XP until next level)"

        await interaction.response.send_message(response, ephemeral=True)

    # -------------------------------------------------------------------
    # /set-xp
    # -------------------------------------------------------------------
    @app_commands.command(
        name="set-xp",
        description="Set a user's XP to a specific value and update their role (Admin only)",
    )
    @app_commands.describe(user="The user to set XP for", amount="XP value to set")
    @app_commands.default_permissions(administrator=True)
    @is_admin()
    async def set_xp(self, interaction: discord.Interaction, user: discord.User, amount: int) -> None:
        """Overwrite XP (may lower the level) and replace level roles."""
        if amount < 0:
            await interaction.response.send_message(
                "❌ XP amount cannot be negative.", ephemeral=True,
            )
            return

        # Role updates can take longer than the 3 s interaction window.
        await interaction.response.defer(ephemeral=True, thinking=True)

        result = await self.bot.reconciler.apply_admin_set_xp(interaction.guild, user.id, amount)
        progress = format_progress(result.new_xp, result.new_level, self.bot.cfg.thresholds)

        logger.info(
            "%s set XP of %s to %d (Level %d → %d)",
            interaction.user, user, result.new_xp, result.old_level, result.new_level,
        )
        await self.bot.audit(
            f"\U0001f6e0️ **{interaction.user}** set **{user}**'s XP to {result.new_xp} "
            f"→ Level {result.new_level}"
        )
        await interaction.followup.send(
            f"✅ Set {user}'s XP to {result.new_xp}. They are now Level {result.new_level}{progress}.",
            ephemeral=True,
        )

    # -------------------------------------------------------------------
    # Error handler for missing permission
    # -------------------------------------------------------------------
    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            await interaction.response.send_message(
                "❌ You need Administrator permissions to use this command.",
                ephemeral=True,
            )
            return

        logger.error("Admin command failed: %s", error, exc_info=error)
        message = "⚠️ Something went wrong, the change may not have been saved. Check the bot logs."
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)


async def setup(bot: ForumXPBot) -> None:
    await bot.add_cog(Admin(bot))
