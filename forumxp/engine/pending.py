"""
forumxp.engine.pending — Pending Self-Assigned Role Grants
==========================================================

When the bot grants a level role, Discord echoes the change back as a
GUILD_MEMBER_UPDATE that looks exactly like a moderator handing out the
role.  Before each grant the reconciler records ``(user, role)`` here;
the first matching member update consumes the entry and is ignored.

Entries that are never consumed (the grant failed, the echo was lost)
expire after ``horizon_seconds`` and the set is capped at ``max_entries``.
Nothing here awaits, so it is safe to touch from any coroutine.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable

from forumxp.constants import PENDING_GRANT_HORIZON_SECONDS, PENDING_GRANT_MAX_ENTRIES

__all__ = ["PendingRoleGrants"]


class PendingRoleGrants:
    """Bounded ``(user_id, role_id)`` set with a time-based eviction horizon."""

    def __init__(
        self,
        horizon_seconds: float = PENDING_GRANT_HORIZON_SECONDS,
        max_entries: int = PENDING_GRANT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.horizon_seconds = horizon_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[tuple[str, int], float] = OrderedDict()

    def __len__(self) -> int:
        self._prune()
        return len(self._entries)

    def __contains__(self, key: tuple[int | str, int]) -> bool:
        self._prune()
        user_id, role_id = key
        return (str(user_id), role_id) in self._entries

    def mark(self, user_id: int | str, role_id: int) -> None:
        """Record a grant the bot is about to issue."""
        self._prune()
        key = (str(user_id), role_id)
        self._entries.pop(key, None)
        self._entries[key] = self._clock()
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def consume(self, user_id: int | str, role_id: int) -> bool:
        """Remove a pending grant; True if it was there (i.e. the bot's own echo)."""
        self._prune()
        return self._entries.pop((str(user_id), role_id), None) is not None

    def discard(self, user_id: int | str, role_id: int) -> None:
        self._entries.pop((str(user_id), role_id), None)

    def _prune(self) -> None:
        cutoff = self._clock() - self.horizon_seconds
        while self._entries:
            key, stamp = next(iter(self._entries.items()))
            if stamp > cutoff:
                break
            del self._entries[key]
