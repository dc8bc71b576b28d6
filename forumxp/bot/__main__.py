"""
forumxp.bot.__main__ — Entry point for ``python -m forumxp.bot``
================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (thresholds, roles, forum, maintenance windows).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Create the ForumXPBot and hand it config + engine.
5. Start the bot (blocking — runs the asyncio event loop).

Run with::

    python -m forumxp.bot
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from forumxp.bot.core import ForumXPBot
from forumxp.config import load_config
from forumxp.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("forumxp")


def main() -> None:
    """Bootstrap and run the ForumXP bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Configuration.
    cfg = load_config(os.getenv("FORUMXP_CONFIG", "config.yaml"))
    logger.info(
        "Config loaded — forum %s, %d levels, %d level roles",
        cfg.forum_channel_id, len(cfg.thresholds.levels), len(cfg.level_roles.role_ids),
    )

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Bot.
    bot = ForumXPBot(cfg=cfg, engine=engine)

    # 5. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting ForumXP bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
