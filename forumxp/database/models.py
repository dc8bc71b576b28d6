"""
forumxp.database.models — SQLAlchemy 2.0 Data Models
====================================================

Tables:
- users — one row per member who has ever earned XP or been pinned to a
  level by a manual role grant.  ``current_level`` is a cached projection
  of ``current_xp`` through the threshold table, rewritten on every
  mutation together with the XP.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all ForumXP ORM models."""


# ---------------------------------------------------------------------------
# Users: one row per Discord member with XP
# ---------------------------------------------------------------------------
class UserRecord(Base):
    __tablename__ = "users"

    # Discord snowflake stored as text; treated as an opaque identifier.
    user_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    current_xp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_users_xp_desc", "current_xp"),
    )

    def __repr__(self) -> str:
        return f"<UserRecord id={self.user_id} xp={self.current_xp} lvl={self.current_level}>"
