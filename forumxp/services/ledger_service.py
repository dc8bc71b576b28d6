"""
forumxp.services.ledger_service — XP Ledger
===========================================

The durable per-user ``(xp, level)`` store and the only code allowed to
write it.  Every function here is synchronous (call it through
:func:`forumxp.database.engine.run_db`) and performs one read-modify-write
inside a single transaction.

Level semantics:

* ``add_xp`` only ever raises the level.  A level kept after XP was removed
  is not lost when more XP arrives.
* ``remove_xp`` never touches the level — un-pinning doesn't demote.
* ``set_xp`` recomputes the level from scratch and is the one path that
  can lower it.
* ``set_level`` pins a user to a level and snaps XP to that level's floor.

Concurrency: ``run_db`` executes on worker threads, so two notifications
for the same user could otherwise interleave their read and write.  A
process-wide lock wraps every mutation.  SQLAlchemy errors roll back and
propagate — a failed write is never reported as success.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from forumxp.database.engine import get_session
from forumxp.database.models import UserRecord

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from forumxp.engine.levels import ThresholdTable

logger = logging.getLogger(__name__)

# Serialises every read-modify-write span against the users table.
_ledger_lock = threading.Lock()


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class XpAddResult:
    new_xp: int
    current_level: int
    leveled_up: bool
    old_level: int = 0


@dataclass(frozen=True, slots=True)
class XpRemoveResult:
    new_xp: int
    current_level: int


@dataclass(frozen=True, slots=True)
class XpSetResult:
    new_xp: int
    new_level: int
    old_level: int = 0


@dataclass(frozen=True, slots=True)
class LevelSetResult:
    level: int
    xp: int


@dataclass(frozen=True, slots=True)
class LevelSnapshot:
    xp: int
    level: int


def _require_non_negative(name: str, value: int) -> None:
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
def add_xp(
    engine: Engine,
    thresholds: ThresholdTable,
    user_id: int | str,
    amount: int,
) -> XpAddResult:
    """Add *amount* XP, creating the record on first contact."""
    _require_non_negative("amount", amount)
    key = str(user_id)

    with _ledger_lock, get_session(engine) as session:
        record = session.get(UserRecord, key)
        if record is None:
            record = UserRecord(user_id=key, current_xp=0, current_level=0)
            session.add(record)

        old_level = record.current_level
        new_xp = record.current_xp + amount
        new_level = max(old_level, thresholds.level_of(new_xp))

        record.current_xp = new_xp
        record.current_level = new_level

    return XpAddResult(
        new_xp=new_xp,
        current_level=new_level,
        leveled_up=new_level > old_level,
        old_level=old_level,
    )


def remove_xp(engine: Engine, user_id: int | str, amount: int) -> XpRemoveResult | None:
    """Subtract *amount* XP (floored at 0); ``None`` for unknown users."""
    _require_non_negative("amount", amount)
    key = str(user_id)

    with _ledger_lock, get_session(engine) as session:
        record = session.get(UserRecord, key)
        if record is None:
            return None

        new_xp = max(0, record.current_xp - amount)
        level = record.current_level
        record.current_xp = new_xp

    return XpRemoveResult(new_xp=new_xp, current_level=level)


def set_xp(
    engine: Engine,
    thresholds: ThresholdTable,
    user_id: int | str,
    amount: int,
) -> XpSetResult:
    """Overwrite XP and recompute the level from scratch (may lower it)."""
    _require_non_negative("amount", amount)
    key = str(user_id)
    new_level = thresholds.level_of(amount)

    with _ledger_lock, get_session(engine) as session:
        record = session.get(UserRecord, key)
        if record is None:
            old_level = 0
            session.add(UserRecord(user_id=key, current_xp=amount, current_level=new_level))
        else:
            old_level = record.current_level
            record.current_xp = amount
            record.current_level = new_level

    return XpSetResult(new_xp=amount, new_level=new_level, old_level=old_level)


def set_level(
    engine: Engine,
    thresholds: ThresholdTable,
    user_id: int | str,
    level: int,
) -> LevelSetResult | None:
    """Pin a user to *level* with XP at that level's threshold.

    A level-0 assignment for a user with no record is not persisted and
    returns ``None``.
    """
    _require_non_negative("level", level)
    key = str(user_id)
    xp = thresholds.threshold_for(level)

    with _ledger_lock, get_session(engine) as session:
        record = session.get(UserRecord, key)
        if record is None:
            if level == 0:
                return None
            session.add(UserRecord(user_id=key, current_xp=xp, current_level=level))
        else:
            record.current_xp = xp
            record.current_level = level

    return LevelSetResult(level=level, xp=xp)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_level(engine: Engine, user_id: int | str) -> LevelSnapshot:
    """Current ``(xp, level)``; ``(0, 0)`` for users never seen."""
    with get_session(engine) as session:
        record = session.get(UserRecord, str(user_id))
        if record is None:
            return LevelSnapshot(xp=0, level=0)
        return LevelSnapshot(xp=record.current_xp, level=record.current_level)
