"""
forumxp.bot.core — Bot Instance & Cog Loader
============================================

Defines :class:`ForumXPBot`, a ``commands.Bot`` subclass that:

1. Stores the shared config (``bot.cfg``), DB engine (``bot.engine``) and
   the :class:`RoleReconciler` (``bot.reconciler``) so every Cog reaches
   them through ``self.bot``.
2. Loads every Cog listed in :data:`EXTENSIONS`.
3. Syncs the slash-command tree on startup (guild-scoped when
   ``DEV_GUILD_ID`` is set, global otherwise).
4. Starts the audit-log backlog flush and announces startup in the log
   channel.

The reconciler owns the pending self-assignment set, so exactly one
instance exists per bot process.
"""

from __future__ import annotations

import asyncio
import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from forumxp.config import ForumXPConfig
from forumxp.services.audit_service import log_to_channel, start_queue, stop_queue
from forumxp.services.role_service import RoleReconciler

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "forumxp.bot.cogs.pins",
    "forumxp.bot.cogs.posts",
    "forumxp.bot.cogs.role_sync",
    "forumxp.bot.cogs.pings",
    "forumxp.bot.cogs.admin",
    "forumxp.bot.cogs.tasks",
]


class ForumXPBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`ForumXPConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` for the XP database.
    """

    def __init__(self, cfg: ForumXPConfig, engine: Engine) -> None:
        # Privileged intents (must be enabled in the Developer Portal):
        #   GUILD_MEMBERS:   role change notifications, member lookups
        #   MESSAGE_CONTENT: role mentions for ping triggers
        intents = discord.Intents.default()
        intents.members = True
        intents.message_content = True
        intents.presences = False

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            description="ForumXP — forum activity levels",
        )

        self.cfg = cfg
        self.engine = engine
        self.reconciler = RoleReconciler(
            engine,
            cfg.thresholds,
            cfg.level_roles,
            audit=self.audit,
        )

    async def audit(self, message: str) -> None:
        """Send a line to the configured log channel (best-effort)."""
        await log_to_channel(self, message)

    def primary_guild(self) -> discord.Guild | None:
        """The configured guild, or the first guild the bot is in."""
        if self.cfg.guild_id:
            return self.get_guild(self.cfg.guild_id)
        return self.guilds[0] if self.guilds else None

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load all Cog extensions before connecting.

        A broken Cog is logged and skipped rather than taking the bot down.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)
        logger.info("Monitoring forum channel: %s", self.cfg.forum_channel_id)

        # --- Slash-command sync ---------------------------------------------
        try:
            dev_guild_id = os.getenv("DEV_GUILD_ID")
            if dev_guild_id:
                guild = discord.Object(id=int(dev_guild_id))
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
                logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
            else:
                synced = await self.tree.sync()
                logger.info("Synced %d commands globally", len(synced))
        except discord.HTTPException:
            logger.exception("Error registering slash commands")

        # --- Audit log backlog flush ---------------------------------------
        start_queue(asyncio.get_running_loop())

        await self.audit("✅ **Bot started!** Monitoring forum channel and ready for action.")

    async def close(self) -> None:
        """Graceful shutdown — stop background tasks."""
        logger.info("Bot shutting down…")
        stop_queue()
        await super().close()
