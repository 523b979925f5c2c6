"""ORM models for courses, games, players and their progression records.

Course, module, exercise, game and reward rows are authored by instructor
tooling; this service only reads them. Registrations, submissions, unlocks and
player rewards are written by the progression services.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Interval,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from fgpe.db.base import Base, BigIntPK, JSONType


# ---------------------------------------------------------------------------
# Authored content
# ---------------------------------------------------------------------------


class Course(Base):
    """Maps to the 'courses' table."""

    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Comma-separated language codes, e.g. "en,pt"
    languages: Mapped[str] = mapped_column(Text, nullable=False)
    programming_languages: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Rule definitions consumed by the game client; opaque to this service
    gamification_rule_conditions: Mapped[str] = mapped_column(Text, nullable=False, default="")
    gamification_complex_rules: Mapped[str] = mapped_column(Text, nullable=False, default="")
    gamification_rule_results: Mapped[str] = mapped_column(Text, nullable=False, default="")
    public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Module(Base):
    """Maps to the 'modules' table."""

    __tablename__ = "modules"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    language: Mapped[str] = mapped_column(String(10), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Exercise(Base):
    """Maps to the 'exercises' table.

    ``hidden`` and ``locked`` are authoring-time flags, independent of any game.
    """

    __tablename__ = "exercises"
    __table_args__ = (Index("idx_exercises_module_id", "module_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    module_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    language: Mapped[str] = mapped_column(String(10), nullable=False)
    programming_language: Mapped[str] = mapped_column(String(100), nullable=False)
    init_code: Mapped[str] = mapped_column(Text, nullable=False, default="")
    pre_code: Mapped[str] = mapped_column(Text, nullable=False, default="")
    post_code: Mapped[str] = mapped_column(Text, nullable=False, default="")
    test_code: Mapped[str] = mapped_column(Text, nullable=False, default="")
    check_source: Mapped[str] = mapped_column(Text, nullable=False, default="")
    hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mode: Mapped[str] = mapped_column(String(50), nullable=False, default="normal")
    mode_parameters: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    difficulty: Mapped[str] = mapped_column(String(50), nullable=False, default="easy")


class Game(Base):
    """Maps to the 'games' table.

    ``module_lock`` is the solved fraction in [0, 1] a module must reach before its
    remaining exercises open (0 disables the gate). ``exercise_lock`` enforces
    in-order solving inside a module.
    """

    __tablename__ = "games"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    course_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False)
    programming_language: Mapped[str] = mapped_column(String(100), nullable=False)
    module_lock: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    exercise_lock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_exercises: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Reward(Base):
    """Catalog entry. A NULL ``valid_period`` is a configuration error, not "never expires"."""

    __tablename__ = "rewards"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    message_when_won: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    valid_period: Mapped[timedelta | None] = mapped_column(Interval, nullable=True)


# ---------------------------------------------------------------------------
# Players and progression
# ---------------------------------------------------------------------------


class Player(Base):
    """Maps to the 'players' table."""

    __tablename__ = "players"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    display_avatar: Mapped[str | None] = mapped_column(Text, nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PlayerRegistration(Base):
    """A player's membership in a game; ``progress`` is only changed by the submission processor."""

    __tablename__ = "player_registrations"
    __table_args__ = (UniqueConstraint("player_id", "game_id", name="uq_player_registrations_player_game"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    game_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    language: Mapped[str] = mapped_column(String(10), nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    game_state: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    saved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    left_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Submission(Base):
    """Append-only record of a solution attempt. ``first_solution`` is fixed at insert time."""

    __tablename__ = "submissions"
    __table_args__ = (
        Index("idx_submissions_player_exercise_game", "player_id", "exercise_id", "game_id"),
        Index("idx_submissions_game_id", "game_id"),
        UniqueConstraint(
            "player_id", "game_id", "idempotency_key", name="uq_submissions_player_game_idempotency_key"
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    exercise_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("exercises.id", ondelete="CASCADE"), nullable=False
    )
    game_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    player_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    client: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    submitted_code: Mapped[str] = mapped_column(Text, nullable=False)
    metrics: Mapped[Any] = mapped_column(JSONType, nullable=False)
    result: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    result_description: Mapped[Any] = mapped_column(JSONType, nullable=False)
    first_solution: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    feedback: Mapped[str] = mapped_column(Text, nullable=False)
    earned_rewards: Mapped[Any] = mapped_column(JSONType, nullable=False)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    entered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PlayerUnlock(Base):
    """Permanent override: the exercise is neither hidden nor locked for this player."""

    __tablename__ = "player_unlocks"

    player_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("players.id", ondelete="CASCADE"), primary_key=True
    )
    exercise_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("exercises.id", ondelete="CASCADE"), primary_key=True
    )
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PlayerReward(Base):
    """Per (player, reward, game) grant counter; each grant refreshes ``expires_at``."""

    __tablename__ = "player_rewards"
    __table_args__ = (
        UniqueConstraint("player_id", "reward_id", "game_id", name="uq_player_rewards_player_reward_game"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    reward_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("rewards.id", ondelete="CASCADE"), nullable=False)
    game_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    obtained_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
