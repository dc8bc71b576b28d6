"""
forumxp.services.import_service — Bulk XP Import
================================================

Seeds the ledger from a CSV export of another leveling bot.  Two formats
are accepted, auto-detected from the header and from the identifiers:

    userId,xp        — Discord ids (fast path)
    username,xp      — usernames / display names / global names

Any identifier that looks like a snowflake (17–19 digits) is treated as
an id regardless of the header.  Each resolved row goes through the same
admin ``set-xp`` path as the slash command, so XP, level and level role
all end up consistent.  Usernames that can't be resolved are collected
for :func:`write_failures`.
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import discord

if TYPE_CHECKING:
    from forumxp.services.role_service import RoleReconciler

logger = logging.getLogger(__name__)

RATE_LIMIT_SECONDS = 1.5
FAILURES_FILE = "import-failures.csv"

_SNOWFLAKE_RE = re.compile(r"^\d{17,19}$")


@dataclass(frozen=True, slots=True)
class ImportRow:
    identifier: str
    xp: int
    is_id: bool


@dataclass
class ImportReport:
    success: int = 0
    skipped_not_in_guild: int = 0
    failed: list[ImportRow] = field(default_factory=list)
    total: int = 0


def looks_like_snowflake(value: str) -> bool:
    return bool(_SNOWFLAKE_RE.match(value))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
def parse_import_csv(text: str) -> list[ImportRow]:
    """Parse CSV *text* into :class:`ImportRow` objects.

    Rows with an empty identifier or a non-integer XP value are dropped.
    """
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if header is None:
        return []

    header_text = ",".join(header).lower()
    id_format = "userid" in header_text or "user_id" in header_text

    rows: list[ImportRow] = []
    for parts in reader:
        if len(parts) < 2:
            continue
        identifier = parts[0].strip().strip('"')
        try:
            xp = int(parts[1].strip().strip('"'))
        except ValueError:
            continue
        if not identifier:
            continue
        rows.append(ImportRow(
            identifier=identifier,
            xp=xp,
            # A userId header does not make a name column numeric.
            is_id=identifier.isdigit() and (id_format or looks_like_snowflake(identifier)),
        ))
    return rows


def load_import_file(path: str | Path) -> list[ImportRow]:
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Import file not found: {csv_path.resolve()}")
    return parse_import_csv(csv_path.read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Member resolution
# ---------------------------------------------------------------------------
def build_member_index(members: Iterable[discord.Member]) -> dict[str, discord.Member]:
    """Case-insensitive username / display name / global name → member."""
    index: dict[str, discord.Member] = {}
    for member in members:
        for name in (member.name, member.display_name, getattr(member, "global_name", None)):
            if name:
                index.setdefault(name.lower(), member)
    return index


def resolve_row(
    guild: discord.Guild, row: ImportRow, index: dict[str, discord.Member]
) -> discord.Member | None:
    if row.is_id:
        if not row.identifier.isdigit():
            return None
        return guild.get_member(int(row.identifier))
    return index.get(row.identifier.lower())


# ---------------------------------------------------------------------------
# Import run
# ---------------------------------------------------------------------------
async def run_import(
    guild: discord.Guild,
    rows: list[ImportRow],
    reconciler: RoleReconciler,
    *,
    delay_seconds: float = RATE_LIMIT_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ImportReport:
    """Apply every row in *rows* to *guild*'s members.

    Members must already be cached (``await guild.chunk()``).
    """
    report = ImportReport(total=len(rows))
    index = build_member_index(guild.members)

    for position, row in enumerate(rows, start=1):
        progress = f"[{position}/{len(rows)}]"
        member = resolve_row(guild, row, index)

        if member is None:
            if row.is_id:
                logger.info("%s ID %s - not in guild (skipping)", progress, row.identifier)
                report.skipped_not_in_guild += 1
            else:
                logger.info("%s \"%s\" - not found", progress, row.identifier)
                report.failed.append(row)
            continue

        try:
            result = await reconciler.apply_admin_set_xp(guild, member.id, row.xp)
        except ValueError:
            logger.warning("%s %s - invalid XP value %d", progress, member, row.xp)
            report.failed.append(row)
            continue

        logger.info("%s %s (XP: %d, Level: %d)", progress, member, result.new_xp, result.new_level)
        report.success += 1
        await sleep(delay_seconds)

    return report


def write_failures(path: str | Path, failures: list[ImportRow]) -> None:
    """Write unresolved rows back out as ``username,xp`` for a retry."""
    with open(path, "w", encoding="utf-8", newline="") as fh:
        writer = csv.writer(fh)
        writer.writerow(["username", "xp"])
        for row in failures:
            writer.writerow([row.identifier, row.xp])
