"""Baseline schema: users, presenters, sessions, registrations, progression.

Revision ID: 001_baseline
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            first_name VARCHAR(100) NOT NULL DEFAULT '',
            last_name VARCHAR(100) NOT NULL DEFAULT '',
            role VARCHAR(16) NOT NULL DEFAULT 'staff',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_users_role CHECK (role IN ('admin', 'manager', 'staff'))
        )
    """)

    # --- Presenters ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS presenters (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(200) NOT NULL,
            email VARCHAR(320),
            bio TEXT
        )
    """)

    # --- PD Sessions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS pd_sessions (
            id BIGSERIAL PRIMARY KEY,
            title VARCHAR(255) NOT NULL,
            description TEXT,
            presenter_id BIGINT REFERENCES presenters(id) ON DELETE SET NULL,
            location VARCHAR(255),
            session_date DATE NOT NULL,
            start_time TIME NOT NULL,
            end_time TIME NOT NULL,
            capacity INTEGER,
            status VARCHAR(16) NOT NULL DEFAULT 'draft',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_pd_sessions_capacity_positive CHECK (capacity IS NULL OR capacity > 0)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_pd_sessions_date
        ON pd_sessions(session_date)
    """)

    # --- Registrations ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS registrations (
            id BIGSERIAL PRIMARY KEY,
            session_id BIGINT NOT NULL REFERENCES pd_sessions(id) ON DELETE CASCADE,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL DEFAULT 'registered',
            registered_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_registrations_active_user_session
        ON registrations(user_id, session_id)
        WHERE status = 'registered'
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_registrations_session_status
        ON registrations(session_id, status)
    """)

    # --- Pets ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_pets (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            name VARCHAR(100) NOT NULL,
            pet_type VARCHAR(50) NOT NULL,
            level INTEGER NOT NULL DEFAULT 1,
            experience BIGINT NOT NULL DEFAULT 0,
            total_sessions_attended INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            CONSTRAINT ck_user_pets_experience_non_negative CHECK (experience >= 0),
            CONSTRAINT ck_user_pets_level_range CHECK (level BETWEEN 1 AND 10)
        )
    """)

    # --- Experience Log ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS pet_experience_log (
            id BIGSERIAL PRIMARY KEY,
            pet_id BIGINT NOT NULL REFERENCES user_pets(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            reason VARCHAR(32) NOT NULL,
            session_id BIGINT REFERENCES pd_sessions(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_pet_experience_log_pet
        ON pet_experience_log(pet_id, created_at)
    """)

    # --- Streaks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_streaks (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_session_date DATE,
            updated_at TIMESTAMPTZ,
            CONSTRAINT ck_user_streaks_current_non_negative CHECK (current_streak >= 0),
            CONSTRAINT ck_user_streaks_longest_ge_current CHECK (longest_streak >= current_streak)
        )
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_type VARCHAR(50) NOT NULL,
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_achievements_user_type UNIQUE (user_id, achievement_type)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS user_streaks CASCADE")
    op.execute("DROP TABLE IF EXISTS pet_experience_log CASCADE")
    op.execute("DROP TABLE IF EXISTS user_pets CASCADE")
    op.execute("DROP TABLE IF EXISTS registrations CASCADE")
    op.execute("DROP TABLE IF EXISTS pd_sessions CASCADE")
    op.execute("DROP TABLE IF EXISTS presenters CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
