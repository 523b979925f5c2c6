"""Submission processor: first-correct detection, progress, rewards and unlocks.

One submission is one transaction. The registration row is locked first, so
concurrent attempts by the same player in the same game queue up behind each
other and at most one of them can be judged first-correct for an exercise.
Nothing is committed unless every step succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import Select, exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fgpe.database import transaction
from fgpe.db.models import Game, PlayerRegistration, Submission
from fgpe.errors import ConflictError, InvariantError, NotFoundError, classify_integrity_error
from fgpe.progression.rewards import grant_claimed_rewards, parse_claimed_rewards
from fgpe.progression.unlock_service import Unlocker, insert_unlock

logger = logging.getLogger(__name__)


def registration_lock_query(player_id: int, game_id: int) -> Select:
    """Select a registration id with a row lock held until the transaction ends."""
    return (
        select(PlayerRegistration.id)
        .where(
            PlayerRegistration.player_id == player_id,
            PlayerRegistration.game_id == game_id,
        )
        .with_for_update()
    )


@dataclass
class SolutionAttempt:
    """A graded solution attempt as reported by a client."""

    player_id: int
    exercise_id: int
    game_id: int
    submitted_code: str
    result: Decimal
    metrics: Any = field(default_factory=dict)
    result_description: Any = field(default_factory=dict)
    feedback: str = ""
    earned_rewards: Any = field(default_factory=list)
    entered_at: datetime | None = None
    client: str = ""
    idempotency_key: str | None = None

    @property
    def is_correct(self) -> bool:
        return self.result > 0


class SubmissionProcessor:
    """Records solution attempts and applies their first-correct side effects."""

    def __init__(self, db: AsyncSession, unlocker: Unlocker = insert_unlock) -> None:
        self.db = db
        self.unlocker = unlocker

    async def submit(self, attempt: SolutionAttempt) -> bool:
        """Record an attempt. Returns True only for the first correct submission.

        Raises:
            NotFoundError: Registration, exercise, game or a claimed reward is missing.
            InvariantError: Stored state is inconsistent (progress row count, reward period).
        """
        logger.info(
            "Submission for exercise %s, player %s, game %s",
            attempt.exercise_id, attempt.player_id, attempt.game_id,
        )
        async with transaction(self.db):
            return await self._submit(attempt)

    async def _submit(self, attempt: SolutionAttempt) -> bool:
        await self._lock_registration(attempt.player_id, attempt.game_id)

        if attempt.idempotency_key is not None:
            replayed = await self._replay(attempt)
            if replayed is not None:
                logger.info("Replayed submission with idempotency key %s", attempt.idempotency_key)
                return replayed

        is_first_correct = attempt.is_correct and not await self._was_previously_solved(attempt)

        await self._insert_submission(attempt, is_first_correct)
        if not is_first_correct:
            return False

        logger.info(
            "First correct submission for exercise %s, player %s, game %s",
            attempt.exercise_id, attempt.player_id, attempt.game_id,
        )
        await self._increment_progress(attempt.player_id, attempt.game_id)
        await grant_claimed_rewards(
            self.db,
            attempt.player_id,
            attempt.game_id,
            parse_claimed_rewards(attempt.earned_rewards),
        )
        await self._unlock_if_game_gated(attempt)
        return True

    async def _lock_registration(self, player_id: int, game_id: int) -> int:
        result = await self.db.execute(registration_lock_query(player_id, game_id))
        registration_id = result.scalar_one_or_none()
        if registration_id is None:
            logger.warning("No registration for player %s in game %s", player_id, game_id)
            raise NotFoundError(f"Player registration not found for player ID {player_id} in game ID {game_id}.")
        return registration_id

    async def _replay(self, attempt: SolutionAttempt) -> bool | None:
        """Stored outcome of an earlier attempt with the same key, or None if the key is new.

        Keys are scoped to the player and game. Reusing one for another exercise is a conflict.
        """
        result = await self.db.execute(
            select(Submission.exercise_id, Submission.first_solution).where(
                Submission.player_id == attempt.player_id,
                Submission.game_id == attempt.game_id,
                Submission.idempotency_key == attempt.idempotency_key,
            )
        )
        row = result.one_or_none()
        if row is None:
            return None
        if row.exercise_id != attempt.exercise_id:
            logger.warning(
                "Idempotency key %s reused for exercise %s (stored for exercise %s)",
                attempt.idempotency_key, attempt.exercise_id, row.exercise_id,
            )
            raise ConflictError(
                f"Idempotency key {attempt.idempotency_key!r} was already used for exercise {row.exercise_id}."
            )
        return row.first_solution

    async def _was_previously_solved(self, attempt: SolutionAttempt) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    Submission.player_id == attempt.player_id,
                    Submission.exercise_id == attempt.exercise_id,
                    Submission.game_id == attempt.game_id,
                    Submission.result > 0,
                )
            )
        )
        return bool(result.scalar())

    async def _insert_submission(self, attempt: SolutionAttempt, first_solution: bool) -> None:
        self.db.add(
            Submission(
                player_id=attempt.player_id,
                exercise_id=attempt.exercise_id,
                game_id=attempt.game_id,
                client=attempt.client,
                submitted_code=attempt.submitted_code,
                metrics=attempt.metrics,
                result=attempt.result,
                result_description=attempt.result_description,
                first_solution=first_solution,
                feedback=attempt.feedback,
                earned_rewards=attempt.earned_rewards,
                idempotency_key=attempt.idempotency_key,
                entered_at=attempt.entered_at or datetime.now(timezone.utc),
            )
        )
        try:
            await self.db.flush()
        except IntegrityError as e:
            kind = classify_integrity_error(e)
            if kind == "foreign_key":
                logger.error("Submission references a missing player, game or exercise")
                raise NotFoundError("Referenced player, game, or exercise not found.") from e
            if kind == "unique":
                logger.warning("Concurrent submission with idempotency key %s", attempt.idempotency_key)
                raise ConflictError(
                    f"Idempotency key {attempt.idempotency_key!r} is already in use for this game."
                ) from e
            raise

    async def _increment_progress(self, player_id: int, game_id: int) -> None:
        result = await self.db.execute(
            update(PlayerRegistration)
            .where(
                PlayerRegistration.player_id == player_id,
                PlayerRegistration.game_id == game_id,
            )
            .values(progress=PlayerRegistration.progress + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.error(
                "Progress update for player %s game %s affected %s rows",
                player_id, game_id, result.rowcount,
            )
            raise InvariantError("Failed to update progress, inconsistent state.")

    async def _unlock_if_game_gated(self, attempt: SolutionAttempt) -> None:
        result = await self.db.execute(
            select(Game.module_lock, Game.exercise_lock).where(Game.id == attempt.game_id)
        )
        row = result.one_or_none()
        if row is None:
            logger.error("Game %s disappeared during unlock check", attempt.game_id)
            raise NotFoundError(f"Game with ID {attempt.game_id} not found.")

        if row.module_lock > 0 or row.exercise_lock:
            logger.info("Game %s is gated; unlocking exercise %s", attempt.game_id, attempt.exercise_id)
            await self.unlocker(self.db, attempt.player_id, attempt.exercise_id)
