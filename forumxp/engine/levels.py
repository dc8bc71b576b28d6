"""
forumxp.engine.levels — Threshold Table & Level Derivation
==========================================================

Pure level math.  No Discord I/O, no DB I/O.

A level is held once cumulative XP reaches that level's threshold.  Level 0
has no explicit floor.  Thresholds must rise strictly with the level so
``level_of`` never has to break a tie.
"""

from __future__ import annotations

from collections.abc import Mapping

__all__ = ["ThresholdTable"]


class ThresholdTable:
    """Immutable level → minimum cumulative XP mapping.

    Parameters
    ----------
    thresholds:
        Level (non-negative int) → XP required.  Levels may be sparse.

    Raises
    ------
    ValueError
        If a level or threshold is negative, or thresholds don't strictly
        increase with level.
    """

    __slots__ = ("_levels", "_thresholds")

    def __init__(self, thresholds: Mapping[int, int]) -> None:
        levels = sorted(thresholds)
        previous: int | None = None
        for level in levels:
            xp = thresholds[level]
            if level < 0 or xp < 0:
                raise ValueError(f"Level {level} has a negative level or threshold ({xp})")
            if previous is not None and xp <= previous:
                raise ValueError(
                    f"Thresholds must strictly increase with level: "
                    f"level {level} needs {xp} XP, not more than the level below ({previous})"
                )
            previous = xp

        self._levels: tuple[int, ...] = tuple(levels)
        self._thresholds: dict[int, int] = {lvl: thresholds[lvl] for lvl in levels}

    def __repr__(self) -> str:
        return f"ThresholdTable({self._thresholds!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ThresholdTable):
            return NotImplemented
        return self._thresholds == other._thresholds

    def __hash__(self) -> int:
        return hash(tuple(self._thresholds.items()))

    @property
    def levels(self) -> tuple[int, ...]:
        """Configured levels in ascending order."""
        return self._levels

    @property
    def max_level(self) -> int:
        return self._levels[-1] if self._levels else 0

    def level_of(self, xp: int) -> int:
        """Highest level whose threshold is ≤ *xp* (0 when none is reached)."""
        level = 0
        for candidate in self._levels:
            if xp >= self._thresholds[candidate]:
                level = candidate
            else:
                break
        return level

    def threshold_for(self, level: int) -> int:
        """XP floor for *level*; 0 for level 0 or an unconfigured level."""
        return self._thresholds.get(level, 0)

    def next_threshold(self, level: int) -> int | None:
        """Threshold of ``level + 1``, or ``None`` once the max level is reached."""
        return self._thresholds.get(level + 1)
