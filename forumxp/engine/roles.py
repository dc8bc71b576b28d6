"""
forumxp.engine.roles — Level ↔ Role Binding
===========================================

Pure lookups between levels and the Discord role that marks them.  The
binding doesn't have to be dense: a level may have no role at all.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

__all__ = ["RoleBinding"]


class RoleBinding:
    """Immutable level → role-id mapping with a reverse index."""

    __slots__ = ("_by_level", "_by_role")

    def __init__(self, bindings: Mapping[int, int] | None = None) -> None:
        self._by_level: dict[int, int] = dict(sorted((bindings or {}).items()))
        self._by_role: dict[int, int] = {}
        for level, role_id in self._by_level.items():
            # A role bound twice resolves to its lowest level.
            self._by_role.setdefault(role_id, level)

    def __repr__(self) -> str:
        return f"RoleBinding({self._by_level!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RoleBinding):
            return NotImplemented
        return self._by_level == other._by_level

    def __hash__(self) -> int:
        return hash(tuple(self._by_level.items()))

    def __bool__(self) -> bool:
        return bool(self._by_level)

    def items(self):
        return self._by_level.items()

    @property
    def role_ids(self) -> frozenset[int]:
        return frozenset(self._by_role)

    def role_for(self, level: int) -> int | None:
        return self._by_level.get(level)

    def level_for(self, role_id: int) -> int | None:
        return self._by_role.get(role_id)

    def roles_below(self, level: int) -> list[tuple[int, int]]:
        """``(level, role_id)`` pairs bound to levels strictly below *level*."""
        return [(lvl, rid) for lvl, rid in self._by_level.items() if lvl < level]

    def first_bound(self, role_ids: Iterable[int]) -> tuple[int, int] | None:
        """First ``(role_id, level)`` in *role_ids* order that is level-bound."""
        for role_id in role_ids:
            level = self._by_role.get(role_id)
            if level is not None:
                return role_id, level
        return None
