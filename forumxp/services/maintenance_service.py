"""
forumxp.services.maintenance_service — Forum Thread Sweep
=========================================================

Closes (archives) and locks forum posts once they pass a configured age.
Independent of XP; it only shares the Discord boundary and the
log-and-continue error style.

Rules per active thread (excluded ids are never touched):

1. ``age ≥ lock_after_hours`` and not locked → lock it, then archive it if
   it isn't archived yet.
2. otherwise ``age ≥ close_after_hours`` and not archived → archive it.

Lock takes precedence over close.  A failure on one thread is logged and
the sweep moves on to the next.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import discord

logger = logging.getLogger(__name__)

ActionSink = Callable[[str], Awaitable[None]]


@dataclass
class SweepReport:
    """What one sweep did."""

    checked: int = 0
    locked: list[int] = field(default_factory=list)
    archived: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    errors: list[int] = field(default_factory=list)


def thread_created_at(thread: discord.Thread) -> datetime:
    """Creation time, falling back to the snowflake for pre-2022 threads."""
    created = thread.created_at
    if created is None:
        created = discord.utils.snowflake_time(thread.id)
    if created.tzinfo is None:
        created = created.replace(tzinfo=UTC)
    return created


def thread_age_hours(thread: discord.Thread, now: datetime) -> float:
    return (now - thread_created_at(thread)).total_seconds() / 3600


async def sweep_threads(
    threads: Iterable[discord.Thread],
    *,
    now: datetime | None = None,
    lock_after_hours: float | None = None,
    close_after_hours: float | None = None,
    excluded_ids: frozenset[int] | set[int] = frozenset(),
    on_action: ActionSink | None = None,
) -> SweepReport:
    """Lock or archive every thread in *threads* that has aged out."""
    now = now or datetime.now(UTC)
    report = SweepReport()

    for thread in threads:
        if thread.id in excluded_ids:
            report.skipped.append(thread.id)
            continue

        report.checked += 1
        try:
            await _maintain_thread(
                thread, now, lock_after_hours, close_after_hours, report, on_action,
            )
        except Exception:
            report.errors.append(thread.id)
            logger.exception("Error maintaining thread %s (%s)", thread.id, thread.name)

    return report


async def _maintain_thread(
    thread: discord.Thread,
    now: datetime,
    lock_after_hours: float | None,
    close_after_hours: float | None,
    report: SweepReport,
    on_action: ActionSink | None,
) -> None:
    age = thread_age_hours(thread, now)

    if lock_after_hours is not None and age >= lock_after_hours and not thread.locked:
        await thread.edit(locked=True)
        report.locked.append(thread.id)
        logger.info("Locked thread \"%s\" (age: %dh)", thread.name, int(age))
        await _notify(on_action, f"\U0001f512 **Locked thread** \"{thread.name}\" (age: {int(age)}h)")

        if not thread.archived:
            await thread.edit(archived=True)
            report.archived.append(thread.id)
            logger.info("Closed thread \"%s\"", thread.name)
            await _notify(on_action, f"\U0001f4c1 **Closed thread** \"{thread.name}\"")

    elif close_after_hours is not None and age >= close_after_hours and not thread.archived:
        await thread.edit(archived=True)
        report.archived.append(thread.id)
        logger.info("Closed thread \"%s\" (age: %dh)", thread.name, int(age))
        await _notify(on_action, f"\U0001f4c1 **Closed thread** \"{thread.name}\" (age: {int(age)}h)")


async def _notify(on_action: ActionSink | None, line: str) -> None:
    if on_action is None:
        return
    try:
        await on_action(line)
    except Exception:
        logger.exception("Maintenance audit callback failed")


async def fetch_forum_threads(guild: discord.Guild, forum_channel_id: int) -> list[discord.Thread]:
    """Active threads whose parent is the monitored forum."""
    active = await guild.active_threads()
    return [t for t in active if t.parent_id == forum_channel_id]
