"""
forumxp.services.audit_service — Audit Log Channel
==================================================

Mirrors the human-readable activity trail (pins, level-ups, manual role
overrides, thread maintenance) into the optional ``log_channel_id``
channel so moderators can remediate drift by hand.

Delivery is best-effort: failures are logged and never propagate into
the XP flow.  Per-channel rate limiting lives in
:mod:`forumxp.services.throttle`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import discord
from discord.abc import Messageable

from forumxp.services.throttle import MessageThrottle

if TYPE_CHECKING:
    from forumxp.bot.core import ForumXPBot

logger = logging.getLogger(__name__)

# Module-level throttle instance
_throttle = MessageThrottle()


def start_queue(loop: asyncio.AbstractEventLoop) -> None:
    """Start the backlog flush task. Call from on_ready."""
    _throttle.start(loop)


def stop_queue() -> None:
    """Stop the backlog flush task. Call from bot close."""
    _throttle.stop()


async def resolve_log_channel(bot: ForumXPBot) -> Messageable | None:
    """Return the configured log channel, fetching it if it isn't cached."""
    channel_id = bot.cfg.log_channel_id
    if not channel_id:
        return None

    channel = bot.get_channel(channel_id)
    if channel is None:
        try:
            channel = await bot.fetch_channel(channel_id)
        except (discord.NotFound, discord.Forbidden, discord.HTTPException):
            logger.warning("Log channel %d could not be fetched", channel_id)
            return None

    if not isinstance(channel, Messageable):
        logger.warning("Log channel %d is not a text channel", channel_id)
        return None
    return channel


async def log_to_channel(bot: ForumXPBot, message: str) -> None:
    """Send *message* to the audit log channel, if one is configured."""
    channel = await resolve_log_channel(bot)
    if channel is None:
        return

    channel_id = getattr(channel, "id", 0)
    # Held lines go out first so the channel keeps event order.
    if _throttle.backlog_size(channel_id) or not _throttle.try_acquire(channel_id):
        _throttle.defer(channel_id, message, channel)
        return

    try:
        await channel.send(message)
    except Exception:
        logger.exception("Failed to log to Discord channel %d", channel_id)
