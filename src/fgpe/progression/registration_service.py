"""Progress ledger: game registrations, saved state, progress counters and history."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError

from fgpe.database import transaction
from fgpe.db.models import Course, Exercise, Game, Player, PlayerRegistration, Submission
from fgpe.errors import (
    ConflictError,
    InvalidRequestError,
    InvariantError,
    NotFoundError,
    classify_integrity_error,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


def _expect_one_row(rowcount: int, not_found: str, what: str) -> None:
    if rowcount == 0:
        raise NotFoundError(not_found)
    if rowcount != 1:
        logger.error("unexpected_rowcount", operation=what, rowcount=rowcount)
        raise InvariantError(f"{what} affected {rowcount} rows, expected 1")


async def join_game(db: AsyncSession, player_id: int, game_id: int, language: str) -> int:
    """Register a player in a game. Returns the new registration id.

    Raises:
        NotFoundError: If the player or game does not exist.
        ConflictError: If the player is already registered in the game.
    """
    registration = PlayerRegistration(
        player_id=player_id,
        game_id=game_id,
        language=language,
        progress=0,
        game_state={},
    )
    try:
        async with transaction(db):
            db.add(registration)
            await db.flush()
    except IntegrityError as e:
        kind = classify_integrity_error(e)
        if kind == "foreign_key":
            logger.warning("join_game_missing_reference", player_id=player_id, game_id=game_id)
            raise NotFoundError(f"Player with ID {player_id} or Game with ID {game_id} not found.") from e
        if kind == "unique":
            logger.warning("join_game_duplicate", player_id=player_id, game_id=game_id)
            raise ConflictError(f"Player {player_id} is already registered in game {game_id}.") from e
        raise

    logger.info("player_joined_game", player_id=player_id, game_id=game_id, registration_id=registration.id)
    return registration.id


async def leave_game(db: AsyncSession, player_id: int, game_id: int) -> None:
    """Soft-leave: stamp ``left_at`` on the player's active registration."""
    async with transaction(db):
        result = await db.execute(
            update(PlayerRegistration)
            .where(
                PlayerRegistration.player_id == player_id,
                PlayerRegistration.game_id == game_id,
                PlayerRegistration.left_at.is_(None),
            )
            .values(left_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        _expect_one_row(
            result.rowcount,
            f"Active player registration not found for player ID {player_id} and game ID {game_id}",
            "leave_game",
        )
    logger.info("player_left_game", player_id=player_id, game_id=game_id)


async def save_game(db: AsyncSession, registration_id: int, game_state: Any) -> None:
    """Replace the opaque game-state blob of a registration."""
    async with transaction(db):
        result = await db.execute(
            update(PlayerRegistration)
            .where(PlayerRegistration.id == registration_id)
            .values(game_state=game_state, saved_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        _expect_one_row(
            result.rowcount,
            f"Player registration with ID {registration_id} not found",
            "save_game",
        )


async def load_game(db: AsyncSession, registration_id: int) -> Any:
    """Return the saved game-state blob of a registration."""
    result = await db.execute(
        select(PlayerRegistration.game_state).where(PlayerRegistration.id == registration_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError(f"Player registration with ID {registration_id} not found")
    return row.game_state


async def set_game_language(db: AsyncSession, player_id: int, game_id: int, language: str) -> None:
    """Switch a registration's language to one the game's course offers.

    Raises:
        NotFoundError: If the player is not registered in the game.
        InvalidRequestError: If the course does not offer ``language``.
    """
    result = await db.execute(
        select(Course.languages)
        .select_from(PlayerRegistration)
        .join(Game, PlayerRegistration.game_id == Game.id)
        .join(Course, Game.course_id == Course.id)
        .where(PlayerRegistration.player_id == player_id, PlayerRegistration.game_id == game_id)
    )
    languages = result.scalar_one_or_none()
    if languages is None:
        raise NotFoundError(f"Player registration not found for player ID {player_id} in game ID {game_id}.")

    allowed = [code.strip() for code in languages.split(",") if code.strip()]
    if language not in allowed:
        logger.warning("invalid_game_language", player_id=player_id, game_id=game_id, language=language)
        raise InvalidRequestError(
            f"Language '{language}' is not valid for the course associated with game ID {game_id}. "
            f"Allowed languages: {allowed}"
        )

    async with transaction(db):
        result = await db.execute(
            update(PlayerRegistration)
            .where(PlayerRegistration.player_id == player_id, PlayerRegistration.game_id == game_id)
            .values(language=language)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvariantError(f"set_game_language affected {result.rowcount} rows, expected 1")


async def _require_player(db: AsyncSession, player_id: int) -> None:
    found = await db.execute(select(exists().where(Player.id == player_id)))
    if not found.scalar():
        raise NotFoundError(f"Player with ID {player_id} not found.")


async def list_player_games(db: AsyncSession, player_id: int, active_only: bool = False) -> list[int]:
    """List registration ids of a player, optionally only active ones in active games."""
    await _require_player(db, player_id)

    query = select(PlayerRegistration.id).where(PlayerRegistration.player_id == player_id)
    if active_only:
        query = (
            query.join(Game, PlayerRegistration.game_id == Game.id)
            .where(PlayerRegistration.left_at.is_(None))
            .where(Game.active.is_(True))
        )
    result = await db.execute(query.order_by(PlayerRegistration.id))
    return list(result.scalars().all())


async def get_game_metadata(db: AsyncSession, registration_id: int) -> dict:
    """Registration details combined with a summary of its game."""
    result = await db.execute(
        select(PlayerRegistration, Game)
        .join(Game, PlayerRegistration.game_id == Game.id)
        .where(PlayerRegistration.id == registration_id)
        .execution_options(populate_existing=True)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError(f"Player registration with ID {registration_id} not found")

    reg, game = row.PlayerRegistration, row.Game
    return {
        "registration_id": reg.id,
        "progress": reg.progress,
        "joined_at": reg.joined_at,
        "left_at": reg.left_at,
        "language": reg.language,
        "game_id": game.id,
        "game_title": game.title,
        "game_active": game.active,
        "game_description": game.description,
        "game_programming_language": game.programming_language,
        "game_total_exercises": game.total_exercises,
        "game_start_date": game.start_date,
        "game_end_date": game.end_date,
    }


async def get_progress(db: AsyncSession, player_id: int, game_id: int) -> int:
    """Current progress counter of a registration."""
    result = await db.execute(
        select(PlayerRegistration.progress).where(
            PlayerRegistration.player_id == player_id,
            PlayerRegistration.game_id == game_id,
        )
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        raise NotFoundError(f"Player registration not found for player ID {player_id} in game ID {game_id}.")
    return progress


async def get_last_solution(db: AsyncSession, player_id: int, exercise_id: int) -> Submission | None:
    """Most recent correct submission, else the most recent submission, else None."""
    await _require_player(db, player_id)
    found = await db.execute(select(exists().where(Exercise.id == exercise_id)))
    if not found.scalar():
        raise NotFoundError(f"Exercise with ID {exercise_id} not found.")

    base = (
        select(Submission)
        .where(Submission.player_id == player_id, Submission.exercise_id == exercise_id)
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .limit(1)
    )
    result = await db.execute(base.where(Submission.result > 0))
    correct = result.scalar_one_or_none()
    if correct is not None:
        return correct

    result = await db.execute(base)
    return result.scalar_one_or_none()
