"""
forumxp.services.ping_service — Role-Ping Fan-Out
=================================================

Mentioning a configured "trigger" role makes the bot post one message
that pings a list of other roles, hidden behind a spoiler so the mention
list doesn't flood the channel.  Not XP-related.
"""

from __future__ import annotations

from collections.abc import Iterable

from forumxp.config import RolePingTrigger
from forumxp.constants import DEFAULT_PING_MESSAGE, is_placeholder_id


def matching_triggers(
    triggers: Iterable[RolePingTrigger], mentioned_role_ids: Iterable[int]
) -> list[RolePingTrigger]:
    """Triggers whose role appears among *mentioned_role_ids*, in config order."""
    mentioned = set(mentioned_role_ids)
    return [t for t in triggers if t.trigger_role_id in mentioned]


def configured_ping_roles(trigger: RolePingTrigger) -> list[str]:
    """Ping targets with placeholder / unconfigured entries dropped."""
    return [role_id.strip() for role_id in trigger.ping_roles if not is_placeholder_id(role_id)]


def build_ping_message(trigger: RolePingTrigger) -> str | None:
    """Render the broadcast, or ``None`` if the trigger has nothing to ping."""
    role_ids = configured_ping_roles(trigger)
    if not role_ids:
        return None
    mentions = " ".join(f"<@&{role_id}>" for role_id in role_ids)
    return f"{trigger.message or DEFAULT_PING_MESSAGE}{mentions} ||"
