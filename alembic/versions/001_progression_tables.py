"""Progression tables.

Creates the authored content tables (courses, modules, exercises, games,
rewards), players, and the progression records written by this service:
player_registrations, submissions, player_unlocks and player_rewards.

Revision ID: 001_progression_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_progression_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Courses ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS courses (
            id BIGSERIAL PRIMARY KEY,
            title VARCHAR(255) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            languages TEXT NOT NULL,
            programming_languages TEXT NOT NULL DEFAULT '',
            gamification_rule_conditions TEXT NOT NULL DEFAULT '',
            gamification_complex_rules TEXT NOT NULL DEFAULT '',
            gamification_rule_results TEXT NOT NULL DEFAULT '',
            public BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Modules ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS modules (
            id BIGSERIAL PRIMARY KEY,
            course_id BIGINT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            "order" INTEGER NOT NULL,
            title VARCHAR(255) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            language VARCHAR(10) NOT NULL,
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ NOT NULL
        )
    """)

    # --- Exercises ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS exercises (
            id BIGSERIAL PRIMARY KEY,
            module_id BIGINT NOT NULL REFERENCES modules(id) ON DELETE CASCADE,
            "order" INTEGER NOT NULL,
            title VARCHAR(255) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            language VARCHAR(10) NOT NULL,
            programming_language VARCHAR(100) NOT NULL,
            init_code TEXT NOT NULL DEFAULT '',
            pre_code TEXT NOT NULL DEFAULT '',
            post_code TEXT NOT NULL DEFAULT '',
            test_code TEXT NOT NULL DEFAULT '',
            check_source TEXT NOT NULL DEFAULT '',
            hidden BOOLEAN NOT NULL DEFAULT false,
            locked BOOLEAN NOT NULL DEFAULT false,
            mode VARCHAR(50) NOT NULL DEFAULT 'normal',
            mode_parameters JSONB NOT NULL DEFAULT '{}',
            difficulty VARCHAR(50) NOT NULL DEFAULT 'easy'
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_exercises_module_id
        ON exercises(module_id)
    """)

    # --- Games ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS games (
            id BIGSERIAL PRIMARY KEY,
            title VARCHAR(255) NOT NULL,
            public BOOLEAN NOT NULL DEFAULT false,
            active BOOLEAN NOT NULL DEFAULT true,
            description TEXT NOT NULL DEFAULT '',
            course_id BIGINT NOT NULL REFERENCES courses(id) ON DELETE RESTRICT,
            programming_language VARCHAR(100) NOT NULL,
            module_lock DOUBLE PRECISION NOT NULL DEFAULT 0,
            exercise_lock BOOLEAN NOT NULL DEFAULT false,
            total_exercises INTEGER NOT NULL DEFAULT 0,
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ NOT NULL
        )
    """)

    # --- Rewards ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS rewards (
            id BIGSERIAL PRIMARY KEY,
            course_id BIGINT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            message_when_won TEXT NOT NULL DEFAULT '',
            image_url TEXT,
            valid_period INTERVAL
        )
    """)

    # --- Players ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS players (
            id BIGSERIAL PRIMARY KEY,
            email VARCHAR(255) UNIQUE NOT NULL,
            display_name VARCHAR(100) NOT NULL,
            display_avatar TEXT,
            points INTEGER NOT NULL DEFAULT 0,
            disabled BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Player Registrations ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS player_registrations (
            id BIGSERIAL PRIMARY KEY,
            player_id BIGINT NOT NULL REFERENCES players(id) ON DELETE CASCADE,
            game_id BIGINT NOT NULL REFERENCES games(id) ON DELETE CASCADE,
            language VARCHAR(10) NOT NULL,
            progress INTEGER NOT NULL DEFAULT 0,
            game_state JSONB NOT NULL DEFAULT '{}',
            saved_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            left_at TIMESTAMPTZ,
            CONSTRAINT uq_player_registrations_player_game UNIQUE(player_id, game_id)
        )
    """)

    # --- Submissions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS submissions (
            id BIGSERIAL PRIMARY KEY,
            exercise_id BIGINT NOT NULL REFERENCES exercises(id) ON DELETE CASCADE,
            game_id BIGINT NOT NULL REFERENCES games(id) ON DELETE CASCADE,
            player_id BIGINT NOT NULL REFERENCES players(id) ON DELETE CASCADE,
            client VARCHAR(255) NOT NULL DEFAULT '',
            submitted_code TEXT NOT NULL,
            metrics JSONB NOT NULL,
            result NUMERIC NOT NULL,
            result_description JSONB NOT NULL,
            first_solution BOOLEAN NOT NULL DEFAULT false,
            feedback TEXT NOT NULL,
            earned_rewards JSONB NOT NULL,
            idempotency_key VARCHAR(128),
            entered_at TIMESTAMPTZ NOT NULL,
            submitted_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_submissions_player_game_idempotency_key UNIQUE(player_id, game_id, idempotency_key)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_submissions_player_exercise_game
        ON submissions(player_id, exercise_id, game_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_submissions_game_id
        ON submissions(game_id)
    """)

    # --- Player Unlocks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS player_unlocks (
            player_id BIGINT NOT NULL REFERENCES players(id) ON DELETE CASCADE,
            exercise_id BIGINT NOT NULL REFERENCES exercises(id) ON DELETE CASCADE,
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (player_id, exercise_id)
        )
    """)

    # --- Player Rewards ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS player_rewards (
            id BIGSERIAL PRIMARY KEY,
            player_id BIGINT NOT NULL REFERENCES players(id) ON DELETE CASCADE,
            reward_id BIGINT NOT NULL REFERENCES rewards(id) ON DELETE CASCADE,
            game_id BIGINT NOT NULL REFERENCES games(id) ON DELETE CASCADE,
            count INTEGER NOT NULL DEFAULT 1,
            used_count INTEGER NOT NULL DEFAULT 0,
            obtained_at TIMESTAMPTZ NOT NULL,
            expires_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_player_rewards_player_reward_game UNIQUE(player_id, reward_id, game_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS player_rewards CASCADE")
    op.execute("DROP TABLE IF EXISTS player_unlocks CASCADE")
    op.execute("DROP TABLE IF EXISTS submissions CASCADE")
    op.execute("DROP TABLE IF EXISTS player_registrations CASCADE")
    op.execute("DROP TABLE IF EXISTS players CASCADE")
    op.execute("DROP TABLE IF EXISTS rewards CASCADE")
    op.execute("DROP TABLE IF EXISTS games CASCADE")
    op.execute("DROP TABLE IF EXISTS exercises CASCADE")
    op.execute("DROP TABLE IF EXISTS modules CASCADE")
    op.execute("DROP TABLE IF EXISTS courses CASCADE")
