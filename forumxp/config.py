"""
forumxp.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` once at startup.  Everything here is immutable for
the lifetime of the process: the monitored forum, XP awards, the level
threshold table, the level → role bindings, thread maintenance windows,
the auto-reply template, and the role-ping triggers.

Secrets (the bot token, the database URL) live in ``.env`` instead.

Usage::

    from forumxp.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.forum_channel_id)
    print(cfg.thresholds.level_of(42))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from forumxp.constants import DEFAULT_PIN_EMOJI, is_placeholder_id
from forumxp.engine.levels import ThresholdTable
from forumxp.engine.roles import RoleBinding

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Role-ping trigger definition
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RolePingTrigger:
    """A role whose mention fans out into a ping for other roles."""

    trigger_role_id: int
    name: str
    ping_roles: tuple[str, ...] = ()
    message: str | None = None


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ForumXPConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Monitored forum
    forum_channel_id: int

    # XP economy
    xp_per_pin: int
    xp_per_post: int
    thresholds: ThresholdTable
    level_roles: RoleBinding

    pin_emoji: str = DEFAULT_PIN_EMOJI

    # Thread maintenance (hours; None disables)
    close_time_hours: float | None = None
    lock_time_hours: float | None = None
    exclude_thread_ids: frozenset[int] = frozenset()

    # Optional features
    guild_id: int | None = None  # Defaults to the first guild the bot is in
    auto_reply_message: str | None = None
    role_ping_triggers: tuple[RolePingTrigger, ...] = ()
    log_channel_id: int | None = None
    admin_role_id: int | None = None

    @property
    def maintenance_enabled(self) -> bool:
        return self.close_time_hours is not None or self.lock_time_hours is not None


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------
def _optional_int(value) -> int | None:
    if value is None or value == "" or is_placeholder_id(str(value)):
        return None
    return int(value)


def _optional_hours(value) -> float | None:
    if value is None or value == "" or value is False:
        return None
    hours = float(value)
    return hours if hours > 0 else None


def _parse_thresholds(raw: dict) -> ThresholdTable:
    return ThresholdTable({int(level): int(xp) for level, xp in (raw or {}).items()})


def _parse_level_roles(raw: dict) -> RoleBinding:
    bindings: dict[int, int] = {}
    for level, role_id in (raw or {}).items():
        if role_id is None or is_placeholder_id(str(role_id)):
            logger.warning("Level %s has no usable role id (%r), skipping", level, role_id)
            continue
        bindings[int(level)] = int(role_id)
    return RoleBinding(bindings)


def _parse_triggers(raw: list | None) -> tuple[RolePingTrigger, ...]:
    if not raw:
        return ()
    if not isinstance(raw, list):
        raise ValueError("role_ping_triggers must be a list")

    triggers: list[RolePingTrigger] = []
    for entry in raw:
        trigger_id = _optional_int(entry.get("trigger_role_id"))
        if trigger_id is None:
            logger.warning("Role-ping trigger %r has no trigger role, skipping", entry.get("name"))
            continue
        triggers.append(RolePingTrigger(
            trigger_role_id=trigger_id,
            name=str(entry.get("name", trigger_id)),
            ping_roles=tuple(str(r) for r in entry.get("ping_roles") or ()),
            message=entry.get("message") or None,
        ))
    return tuple(triggers)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> ForumXPConfig:
    """Read *path* and return a :class:`ForumXPConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If the threshold table is not strictly increasing, or a value
        can't be converted.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return config_from_dict(raw)


def config_from_dict(raw: dict) -> ForumXPConfig:
    """Build a :class:`ForumXPConfig` from an already-parsed mapping."""
    xp_per_pin = int(raw["xp_per_pin"])
    xp_per_post = int(raw["xp_per_post"])
    if xp_per_pin < 0 or xp_per_post < 0:
        raise ValueError("xp_per_pin and xp_per_post must be non-negative")

    return ForumXPConfig(
        forum_channel_id=int(raw["forum_channel_id"]),
        xp_per_pin=xp_per_pin,
        xp_per_post=xp_per_post,
        thresholds=_parse_thresholds(raw["level_thresholds"]),
        level_roles=_parse_level_roles(raw.get("level_roles")),
        pin_emoji=raw.get("pin_emoji") or DEFAULT_PIN_EMOJI,
        close_time_hours=_optional_hours(raw.get("close_time_hours")),
        lock_time_hours=_optional_hours(raw.get("lock_time_hours")),
        exclude_thread_ids=frozenset(
            int(t) for t in raw.get("exclude_thread_ids") or () if not is_placeholder_id(str(t))
        ),
        auto_reply_message=raw.get("auto_reply_message") or None,
        role_ping_triggers=_parse_triggers(raw.get("role_ping_triggers")),
        log_channel_id=_optional_int(raw.get("log_channel_id")),
        admin_role_id=_optional_int(raw.get("admin_role_id")),
        guild_id=_optional_int(raw.get("guild_id")),
    )
