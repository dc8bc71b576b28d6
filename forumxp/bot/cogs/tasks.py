"""
forumxp.bot.cogs.tasks — Periodic Background Tasks
==================================================

- **Thread maintenance** — every 5 minutes (first run as soon as the bot
  is ready), closes and locks forum posts past ``close_time_hours`` /
  ``lock_time_hours``.  Only started when at least one is configured.

The sweep itself lives in :mod:`forumxp.services.maintenance_service`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from forumxp.constants import MAINTENANCE_INTERVAL_MINUTES
from forumxp.services.maintenance_service import SweepReport, fetch_forum_threads, sweep_threads

if TYPE_CHECKING:
    from forumxp.bot.core import ForumXPBot

logger = logging.getLogger(__name__)


class MaintenanceTasks(commands.Cog):
    """Cog for scheduled forum maintenance."""

    def __init__(self, bot: ForumXPBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        """Start the sweep loop when maintenance is configured."""
        cfg = self.bot.cfg
        if not cfg.maintenance_enabled:
            logger.info("Thread maintenance disabled (no close/lock time configured)")
            return
        logger.info(
            "Thread maintenance enabled - Close: %s, Lock: %s",
            f"{cfg.close_time_hours}h" if cfg.close_time_hours else "disabled",
            f"{cfg.lock_time_hours}h" if cfg.lock_time_hours else "disabled",
        )
        self.maintenance_loop.start()

    async def cog_unload(self) -> None:
        self.maintenance_loop.cancel()

    async def run_sweep(self) -> SweepReport | None:
        """One maintenance pass over the monitored forum's active threads."""
        cfg = self.bot.cfg
        guild = self.bot.primary_guild()
        if guild is None:
            logger.warning("Thread maintenance skipped: no guild available")
            return None

        threads = await fetch_forum_threads(guild, cfg.forum_channel_id)
        report = await sweep_threads(
            threads,
            lock_after_hours=cfg.lock_time_hours,
            close_after_hours=cfg.close_time_hours,
            excluded_ids=cfg.exclude_thread_ids,
            on_action=self.bot.audit,
        )
        if report.locked or report.archived or report.errors:
            logger.info(
                "Thread maintenance: checked=%d locked=%d archived=%d errors=%d",
                report.checked, len(report.locked), len(report.archived), len(report.errors),
            )
        return report

    # -------------------------------------------------------------------
    # Thread maintenance, every 5 minutes
    # -------------------------------------------------------------------
    @tasks.loop(minutes=MAINTENANCE_INTERVAL_MINUTES)
    async def maintenance_loop(self):
        """Close / lock aged forum posts."""
        try:
            await self.run_sweep()
        except Exception:
            logger.exception("Error in thread maintenance", extra={"task": "maintenance"})

    @maintenance_loop.before_loop
    async def _wait_maintenance(self):
        await self.bot.wait_until_ready()


async def setup(bot: ForumXPBot) -> None:
    await bot.add_cog(MaintenanceTasks(bot))
