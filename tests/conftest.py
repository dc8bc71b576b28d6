"""
tests/conftest.py — Shared Test Fixtures
========================================
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from forumxp.config import ForumXPConfig, config_from_dict
from forumxp.database.models import Base
from forumxp.engine.levels import ThresholdTable
from forumxp.engine.roles import RoleBinding

THRESHOLDS = {1: 5, 2: 15, 3: 35, 4: 80, 5: 140}
LEVEL_ROLES = {0: 900, 1: 901, 2: 902, 3: 903, 4: 904, 5: 905}
FORUM_ID = 4242
GUILD_ID = 100


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a fresh event loop."""
    return asyncio.run(coro)


def make_config(**overrides) -> ForumXPConfig:
    raw = {
        "forum_channel_id": FORUM_ID,
        "xp_per_pin": 1,
        "xp_per_post": 1,
        "level_thresholds": THRESHOLDS,
        "level_roles": LEVEL_ROLES,
    }
    raw.update(overrides)
    return config_from_dict(raw)


# ---------------------------------------------------------------------------
# Discord doubles
# ---------------------------------------------------------------------------
def make_role(role_id: int, name: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(id=role_id, name=name or f"Level role {role_id}")


def make_guild(role_ids=tuple(LEVEL_ROLES.values()), members=()) -> MagicMock:
    """A guild whose role cache holds *role_ids* and member cache *members*."""
    guild = MagicMock()
    guild.id = GUILD_ID
    roles = {rid: make_role(rid) for rid in role_ids}
    by_id = {m.id: m for m in members}
    guild.get_role = lambda rid: roles.get(rid)
    guild.get_member = lambda uid: by_id.get(uid)
    guild.members = list(members)
    guild.fetch_member = AsyncMock(return_value=None)
    guild._members_by_id = by_id
    return guild


def make_member(
    user_id: int = 1001,
    role_ids=(),
    *,
    guild: MagicMock | None = None,
    bot: bool = False,
    name: str = "alice",
) -> MagicMock:
    """A member whose ``add_roles`` / ``remove_roles`` mutate ``roles``."""
    member = MagicMock()
    member.id = user_id
    member.bot = bot
    member.name = name
    member.display_name = name
    member.global_name = None
    member.guild = guild if guild is not None else make_guild()
    member.roles = [make_role(rid) for rid in role_ids]
    member.__str__ = lambda self: name

    async def _add(*roles, reason=None):
        member.roles.extend(roles)

    async def _remove(*roles, reason=None):
        gone = {r.id for r in roles}
        member.roles = [r for r in member.roles if r.id not in gone]

    member.add_roles = AsyncMock(side_effect=_add)
    member.remove_roles = AsyncMock(side_effect=_remove)
    return member


def http_error(cls=discord.HTTPException, status: int = 500) -> discord.HTTPException:
    return cls(MagicMock(status=status, reason="error"), "boom")


def add_member_to_guild(guild: MagicMock, member: MagicMock) -> None:
    guild._members_by_id[member.id] = member
    guild.members.append(member)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all ForumXP tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def thresholds() -> ThresholdTable:
    return ThresholdTable(THRESHOLDS)


@pytest.fixture
def level_roles() -> RoleBinding:
    return RoleBinding(LEVEL_ROLES)


@pytest.fixture
def cfg() -> ForumXPConfig:
    return make_config()
