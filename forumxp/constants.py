"""
forumxp.constants — Shared Constants & Helpers
==============================================

Single source of truth for timing constants, the default pin marker, and
the small formatting helpers shared by cogs and services.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from forumxp.engine.levels import ThresholdTable

# ---------------------------------------------------------------------------
# Activity markers
# ---------------------------------------------------------------------------
DEFAULT_PIN_EMOJI = "\U0001f4cc"  # 📌

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------
MAINTENANCE_INTERVAL_MINUTES = 5

# Forum posts get their starter message slightly after THREAD_CREATE fires.
AUTO_REPLY_DELAY_SECONDS = 2.0

# Seconds a pending self-assignment stays eligible to swallow its echo.
PENDING_GRANT_HORIZON_SECONDS = 300.0
PENDING_GRANT_MAX_ENTRIES = 1000

# ---------------------------------------------------------------------------
# Role-ping defaults
# ---------------------------------------------------------------------------
DEFAULT_PING_MESSAGE = "Notifying roles:\n\n||"
PLACEHOLDER_PREFIXES: tuple[str, ...] = ("YOUR_", "LFKIN_ROLE_")

USER_PLACEHOLDER = "{user}"


def is_placeholder_id(value: str | None) -> bool:
    """True when *value* is an unconfigured id rather than a snowflake."""
    if not value:
        return True
    value = value.strip()
    if value.startswith(PLACEHOLDER_PREFIXES):
        return True
    return not value.isdigit()


def format_progress(xp: int, level: int, thresholds: ThresholdTable) -> str:
    """Render ``" (12/15 XP to next level)"`` or ``" (Max level)"``."""
    next_threshold = thresholds.next_threshold(level)
    if next_threshold is None:
        return " (Max level)"
    return f" ({xp}/{next_threshold} XP to next level)"
