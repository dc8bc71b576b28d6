"""
forumxp.services.role_service — Level Role Reconciliation
=========================================================

Keeps the single visible level role on a member in step with the level
held in the XP ledger.  Three entry points:

- :meth:`RoleReconciler.apply_level_up` — after ``add_xp`` reports a
  level-up: drop the old level's role, grant the new one.
- :meth:`RoleReconciler.handle_roles_changed` — a member update added a
  level role.  Either it is the echo of our own grant (swallowed), or a
  moderator handed it out by hand, which pins the ledger to that level.
- :meth:`RoleReconciler.apply_admin_set_xp` — ``/set-xp``: overwrite XP,
  then replace whatever level roles the member holds with the right one.

The ledger is the source of truth.  Discord failures while adding or
removing roles are logged with user, role and level and never roll back
an XP write; the next admin ``/set-xp`` brings roles back in line.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import discord

from forumxp.database.engine import run_db
from forumxp.engine.pending import PendingRoleGrants
from forumxp.services.ledger_service import XpSetResult, set_level, set_xp

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from forumxp.engine.levels import ThresholdTable
    from forumxp.engine.roles import RoleBinding

logger = logging.getLogger(__name__)

AuditSink = Callable[[str], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class ManualOverride:
    """Outcome of a moderator granting a level role by hand."""

    user_id: int
    role_id: int
    level: int
    xp: int
    persisted: bool


# ---------------------------------------------------------------------------
# Member helpers
# ---------------------------------------------------------------------------
def holds_role(member: discord.Member, role_id: int) -> bool:
    return any(role.id == role_id for role in member.roles)


async def resolve_member(guild: discord.Guild, user_id: int) -> discord.Member | None:
    """Cached member lookup with an API fallback; ``None`` if not in the guild."""
    member = guild.get_member(user_id)
    if member is not None:
        return member
    try:
        return await guild.fetch_member(user_id)
    except discord.NotFound:
        return None
    except discord.HTTPException:
        logger.warning("Could not fetch member %s in guild %s", user_id, guild.id)
        return None


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------
class RoleReconciler:
    """Computes and applies level-role deltas, suppressing its own echoes.

    Parameters
    ----------
    engine:
        SQLAlchemy engine backing the XP ledger.
    thresholds / level_roles:
        The immutable level tables from ``config.yaml``.
    pending:
        Grants issued but not yet echoed back.  Owned by this reconciler.
    audit:
        Optional coroutine receiving human-readable audit lines.
    """

    def __init__(
        self,
        engine: Engine,
        thresholds: ThresholdTable,
        level_roles: RoleBinding,
        *,
        pending: PendingRoleGrants | None = None,
        audit: AuditSink | None = None,
    ) -> None:
        self.engine = engine
        self.thresholds = thresholds
        self.level_roles = level_roles
        self.pending = pending if pending is not None else PendingRoleGrants()
        self._audit = audit

    # -------------------------------------------------------------------
    # Level-up path
    # -------------------------------------------------------------------
    async def apply_level_up(self, member: discord.Member, old_level: int, new_level: int) -> None:
        """Swap the old level's role for the new level's role."""
        old_role_id = self.level_roles.role_for(old_level)
        new_role_id = self.level_roles.role_for(new_level)

        if old_role_id is not None and old_role_id != new_role_id and holds_role(member, old_role_id):
            await self._revoke(member, old_role_id, level=old_level, reason="Level up")

        if new_role_id is not None:
            await self._grant(member, new_role_id, level=new_level, reason="Level up")

    # -------------------------------------------------------------------
    # Manual override path
    # -------------------------------------------------------------------
    async def handle_roles_changed(
        self, before: discord.Member, after: discord.Member
    ) -> ManualOverride | None:
        """React to a member update that may have added a level role.

        Only the first level-bound role among the added ones (in
        ``after.roles`` order) is honoured.  Returns ``None`` when nothing
        authoritative happened (no level role added, or our own echo).
        """
        before_ids = {role.id for role in before.roles}
        added = [role.id for role in after.roles if role.id not in before_ids]
        match = self.level_roles.first_bound(added)
        if match is None:
            return None

        role_id, level = match
        if self.pending.consume(after.id, role_id):
            logger.debug("Ignoring echo of bot-assigned role %s on %s", role_id, after.id)
            return None

        logger.info("Role %s (Level %d) manually assigned to %s", role_id, level, after)
        result = await run_db(set_level, self.engine, self.thresholds, after.id, level)
        xp = result.xp if result is not None else 0

        next_threshold = self.thresholds.next_threshold(level)
        progress = f" ({xp}/{next_threshold} XP to next level)" if next_threshold else " (Max level reached)"
        logger.info("Set %s to Level %d with %d XP.%s", after, level, xp, progress)
        await self._emit(
            f"\U0001f504 **{after}** manually assigned level role <@&{role_id}> "
            f"→ Set to Level {level} with {xp} XP"
        )

        for lower_level, lower_role_id in self.level_roles.roles_below(level):
            if holds_role(after, lower_role_id):
                await self._revoke(after, lower_role_id, level=lower_level, reason="Manual level override")

        return ManualOverride(
            user_id=after.id,
            role_id=role_id,
            level=level,
            xp=xp,
            persisted=result is not None,
        )

    # -------------------------------------------------------------------
    # Administrative path
    # -------------------------------------------------------------------
    async def apply_admin_set_xp(
        self, guild: discord.Guild | None, user_id: int, amount: int
    ) -> XpSetResult:
        """Overwrite XP, then make the member hold exactly the matching level role.

        Raises
        ------
        ValueError
            If *amount* is negative (nothing is written).
        """
        if amount < 0:
            raise ValueError("XP amount cannot be negative.")

        result = await run_db(set_xp, self.engine, self.thresholds, user_id, amount)

        member = await resolve_member(guild, user_id) if guild is not None else None
        if member is None:
            logger.info("Set XP for %s without role sync (member not resolvable)", user_id)
            return result

        await self.sync_member_roles(member, result.new_level, reason="Admin set-xp")
        return result

    async def sync_member_roles(self, member: discord.Member, level: int, *, reason: str) -> None:
        """Remove every held level role except *level*'s, then grant *level*'s."""
        target_role_id = self.level_roles.role_for(level)
        for bound_level, role_id in self.level_roles.items():
            if role_id != target_role_id and holds_role(member, role_id):
                await self._revoke(member, role_id, level=bound_level, reason=reason)

        if target_role_id is not None:
            await self._grant(member, target_role_id, level=level, reason=reason)

    # -------------------------------------------------------------------
    # Discord writes
    # -------------------------------------------------------------------
    async def _grant(self, member: discord.Member, role_id: int, *, level: int, reason: str) -> bool:
        if holds_role(member, role_id):
            return True

        role = member.guild.get_role(role_id)
        if role is None:
            logger.warning("Level %d role %s not found in guild %s", level, role_id, member.guild.id)
            return False

        # Recorded before the request so the echo can never beat it.
        self.pending.mark(member.id, role_id)
        try:
            await member.add_roles(role, reason=f"ForumXP: {reason}")
        except discord.HTTPException:
            self.pending.discard(member.id, role_id)
            logger.exception(
                "Failed to assign role %s (Level %d) to user %s", role_id, level, member.id,
            )
            return False

        logger.info("Assigned role \"%s\" to %s", role.name, member)
        return True

    async def _revoke(self, member: discord.Member, role_id: int, *, level: int, reason: str) -> bool:
        role = member.guild.get_role(role_id)
        if role is None:
            logger.warning("Level %d role %s not found in guild %s", level, role_id, member.guild.id)
            return False

        try:
            await member.remove_roles(role, reason=f"ForumXP: {reason}")
        except discord.HTTPException:
            logger.exception(
                "Failed to remove role %s (Level %d) from user %s", role_id, level, member.id,
            )
            return False

        logger.info("Removed role \"%s\" (Level %d) from %s", role.name, level, member)
        return True

    async def _emit(self, line: str) -> None:
        if self._audit is not None:
            await self._audit(line)
