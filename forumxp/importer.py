"""
forumxp.importer — Bulk XP Import CLI
=====================================

Run with::

    python -m forumxp.importer [import.csv] [--config config.yaml]

Logs into Discord with the bot token from ``.env``, loads every guild
member, applies each CSV row through the admin ``set-xp`` path (XP,
level and level role), and writes unresolved usernames to
``import-failures.csv``.  The row handling lives in
:mod:`forumxp.services.import_service`.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

import discord
from dotenv import load_dotenv

from forumxp.config import load_config
from forumxp.database.engine import create_db_engine, init_db
from forumxp.services.import_service import (
    FAILURES_FILE,
    ImportReport,
    load_import_file,
    run_import,
    write_failures,
)
from forumxp.services.role_service import RoleReconciler

logger = logging.getLogger("forumxp.importer")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bulk-import XP from a CSV file.")
    parser.add_argument("csv_file", nargs="?", default="import.csv", help="userId,xp or username,xp CSV")
    parser.add_argument("--config", default=os.getenv("FORUMXP_CONFIG", "config.yaml"))
    parser.add_argument("--failures", default=FAILURES_FILE, help="where to write unresolved rows")
    return parser.parse_args(argv)


def _log_summary(report: ImportReport) -> None:
    logger.info("=" * 50)
    logger.info("Import Summary")
    logger.info("=" * 50)
    logger.info("   Successful: %d", report.success)
    logger.info("   Skipped (not in guild): %d", report.skipped_not_in_guild)
    logger.info("   Failed (not found): %d", len(report.failed))
    logger.info("   Total: %d", report.total)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )
    args = _parse_args(argv)
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token:
        logger.critical("DISCORD_TOKEN is not set.")
        return 1

    try:
        rows = load_import_file(args.csv_file)
    except FileNotFoundError as exc:
        logger.critical("%s", exc)
        return 1
    logger.info("Found %d users to import in %s", len(rows), args.csv_file)

    cfg = load_config(args.config)
    engine = create_db_engine()
    init_db(engine)

    intents = discord.Intents.default()
    intents.members = True
    client = discord.Client(intents=intents)
    outcome: dict[str, ImportReport] = {}

    @client.event
    async def on_ready() -> None:
        try:
            guild = client.get_guild(cfg.guild_id) if cfg.guild_id else next(iter(client.guilds), None)
            if guild is None:
                logger.critical("No guild found.")
                return

            logger.info("Fetching members from %s…", guild.name)
            await guild.chunk()
            logger.info("Found %d members", guild.member_count or len(guild.members))

            reconciler = RoleReconciler(engine, cfg.thresholds, cfg.level_roles)
            outcome["report"] = await run_import(guild, rows, reconciler)
        except Exception:
            logger.exception("Fatal error during import")
        finally:
            await client.close()

    client.run(token, log_handler=None)

    report = outcome.get("report")
    if report is None:
        return 1

    if report.failed:
        write_failures(args.failures, report.failed)
        logger.warning("%d users not found - saved to %s", len(report.failed), args.failures)
    _log_summary(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
