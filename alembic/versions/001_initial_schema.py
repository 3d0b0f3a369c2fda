"""Initial schema: families, users, challenges, completion log, posts, badges.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Families & Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS families (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            name VARCHAR(64) NOT NULL,
            family_id INTEGER REFERENCES families(id) ON DELETE SET NULL,
            avatar_url TEXT,
            points_total INTEGER NOT NULL DEFAULT 0,
            streak_days INTEGER NOT NULL DEFAULT 0,
            last_active TIMESTAMPTZ,
            last_challenge_week INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_users_family_id ON users(family_id)")

    # --- Challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenges (
            id SERIAL PRIMARY KEY,
            title VARCHAR(128) UNIQUE NOT NULL,
            description TEXT,
            points_value INTEGER NOT NULL,
            max_completions_per_week INTEGER NOT NULL DEFAULT 1,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS completed_challenges (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            challenge_id INTEGER NOT NULL REFERENCES challenges(id),
            week_number INTEGER NOT NULL,
            completion_number INTEGER NOT NULL DEFAULT 1,
            completed_at TIMESTAMPTZ NOT NULL,
            target_user_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
            CONSTRAINT completed_challenges_user_challenge_week_number_key
                UNIQUE (user_id, challenge_id, week_number, completion_number)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_completed_challenges_week
        ON completed_challenges(week_number, user_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_completed_challenges_target
        ON completed_challenges(user_id, target_user_id)
    """)

    # --- Feed ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS posts (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            family_id INTEGER REFERENCES families(id) ON DELETE CASCADE,
            content_type VARCHAR(16) NOT NULL DEFAULT 'text',
            content_url TEXT,
            message TEXT,
            created_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_posts_user_created ON posts(user_id, created_at)")

    # --- Badges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS badges (
            id SERIAL PRIMARY KEY,
            name VARCHAR(64) UNIQUE NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(16) NOT NULL,
            badge_type VARCHAR(16) NOT NULL,
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            badge_id INTEGER NOT NULL REFERENCES badges(id),
            week_number INTEGER,
            earned_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT user_badges_user_badge_week_key UNIQUE (user_id, badge_id, week_number)
        )
    """)
    # NULL weeks are distinct under UNIQUE; all-time badges need their own guard
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS user_badges_all_time_key
        ON user_badges(user_id, badge_id)
        WHERE week_number IS NULL
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_badges CASCADE")
    op.execute("DROP TABLE IF EXISTS badges CASCADE")
    op.execute("DROP TABLE IF EXISTS posts CASCADE")
    op.execute("DROP TABLE IF EXISTS completed_challenges CASCADE")
    op.execute("DROP TABLE IF EXISTS challenges CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
    op.execute("DROP TABLE IF EXISTS families CASCADE")
