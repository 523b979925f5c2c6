"""Player unlock ledger: permanent per-exercise overrides of hidden/locked."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fgpe.database import transaction
from fgpe.db.models import PlayerUnlock
from fgpe.db.upsert import insert_for
from fgpe.errors import NotFoundError, classify_integrity_error

logger = logging.getLogger(__name__)


class Unlocker(Protocol):
    """Insert-if-absent unlock capability, run inside the caller's transaction."""

    async def __call__(self, db: AsyncSession, player_id: int, exercise_id: int) -> None: ...


async def insert_unlock(db: AsyncSession, player_id: int, exercise_id: int) -> None:
    """Record an unlock for (player, exercise). No-op when already present.

    Does not commit. Raises NotFoundError if the player or exercise is absent.
    """
    stmt = (
        insert_for(db, PlayerUnlock)
        .values(player_id=player_id, exercise_id=exercise_id)
        .on_conflict_do_nothing(index_elements=["player_id", "exercise_id"])
    )
    try:
        await db.execute(stmt)
    except IntegrityError as e:
        if classify_integrity_error(e) == "foreign_key":
            logger.error("Unlock references a missing player %s or exercise %s", player_id, exercise_id)
            raise NotFoundError(
                f"Player with ID {player_id} or Exercise with ID {exercise_id} not found."
            ) from e
        raise


async def unlock_exercise(db: AsyncSession, player_id: int, exercise_id: int) -> None:
    """Explicitly unlock (and unhide) an exercise for a player in its own transaction."""
    logger.info("Unlocking exercise %s for player %s", exercise_id, player_id)
    async with transaction(db):
        await insert_unlock(db, player_id, exercise_id)


async def has_unlock(db: AsyncSession, player_id: int, exercise_id: int) -> bool:
    """Check whether the player holds an unlock for the exercise."""
    result = await db.execute(
        select(
            exists().where(
                PlayerUnlock.player_id == player_id,
                PlayerUnlock.exercise_id == exercise_id,
            )
        )
    )
    return bool(result.scalar())
