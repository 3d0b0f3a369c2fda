"""ORM models for the FamBam schema.

Timestamps are written as UTC. SQLite (tests) hands them back naive, so readers
normalise through ``fambam.gamification.week_index.ensure_utc``.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fambam.db.base import Base


# ---------------------------------------------------------------------------
# Families & Users
# ---------------------------------------------------------------------------


class Family(Base):
    """A family groups users; membership is managed outside the gamification core."""

    __tablename__ = "families"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class User(Base):
    """Family member profile with denormalized points/streak counters."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    family_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("families.id", ondelete="SET NULL"), nullable=True, index=True
    )
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    points_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_active: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_challenge_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


class Challenge(Base):
    """Weekly challenge definition. The title decides whether it is a visit/call."""

    __tablename__ = "challenges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    points_value: Mapped[int] = mapped_column(Integer, nullable=False)
    max_completions_per_week: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default="1"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


class CompletedChallenge(Base):
    """Append-only completion log, one row per completion event."""

    __tablename__ = "completed_challenges"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "challenge_id",
            "week_number",
            "completion_number",
            name="completed_challenges_user_challenge_week_number_key",
        ),
        Index("idx_completed_challenges_week", "week_number", "user_id"),
        Index("idx_completed_challenges_target", "user_id", "target_user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    challenge_id: Mapped[int] = mapped_column(Integer, ForeignKey("challenges.id"), nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    completion_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    target_user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    challenge: Mapped[Challenge] = relationship("Challenge", lazy="joined")


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------


class Post(Base):
    """Family feed post (text/photo/video/audio)."""

    __tablename__ = "posts"
    __table_args__ = (Index("idx_posts_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    family_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("families.id", ondelete="CASCADE"), nullable=True
    )
    content_type: Mapped[str] = mapped_column(String(16), nullable=False, default="text", server_default="text")
    content_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------


class Badge(Base):
    """Static badge catalog, seeded on startup."""

    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(16), nullable=False)
    badge_type: Mapped[str] = mapped_column(String(16), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


class UserBadge(Base):
    """Badges earned by users.

    Weekly badges are unique per (user, badge, week). All-time badges carry a NULL
    week, which a plain UNIQUE does not guard, hence the partial index.
    """

    __tablename__ = "user_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", "week_number", name="user_badges_user_badge_week_key"),
        Index(
            "user_badges_all_time_key",
            "user_id",
            "badge_id",
            unique=True,
            postgresql_where=text("week_number IS NULL"),
            sqlite_where=text("week_number IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    badge_id: Mapped[int] = mapped_column(Integer, ForeignKey("badges.id"), nullable=False)
    week_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    badge: Mapped[Badge] = relationship("Badge", lazy="joined")
