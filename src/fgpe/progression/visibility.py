"""Exercise visibility: derive hidden/locked for (exercise, game, player) from live state.

Nothing here is cached or written. The result is a display hint computed from
a current snapshot; the gate rules themselves are plain functions over counts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Row, distinct, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fgpe.db.models import Exercise, Game, Submission
from fgpe.errors import NotFoundError
from fgpe.progression.unlock_service import has_unlock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Visibility:
    hidden: bool
    locked: bool


def module_gate_locks(solved: int, total: int, threshold: float) -> bool:
    """True when the module's solved fraction is still below ``threshold``.

    Reaching the threshold exactly opens the gate. An empty module or a zero
    threshold never locks.
    """
    if threshold <= 0 or total <= 0:
        return False
    return solved / total < threshold


def sequential_gate_locks(order: int, predecessor_exists: bool, predecessor_solved: bool) -> bool:
    """True when the exercise right before this one in its module is unsolved."""
    if order <= 1 or not predecessor_exists:
        return False
    return not predecessor_solved


def combine(authored_hidden: bool, locked_by_rule: bool, unlocked: bool) -> Visibility:
    """An unlock clears both flags."""
    return Visibility(
        hidden=authored_hidden and not unlocked,
        locked=locked_by_rule and not unlocked,
    )


class VisibilityResolver:
    """Computes hidden/locked flags for one player's view of an exercise in a game."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def resolve(self, exercise_id: int, game_id: int, player_id: int) -> Visibility:
        """Resolve visibility of an exercise.

        Raises:
            NotFoundError: If the exercise or the game does not exist.
        """
        exercise = await self.get_exercise(exercise_id)
        return await self.resolve_for(exercise, game_id, player_id)

    async def resolve_for(self, exercise: Exercise, game_id: int, player_id: int) -> Visibility:
        """Same as :meth:`resolve` for an already loaded exercise."""
        game = await self._get_game_locks(game_id)
        unlocked = await has_unlock(self.db, player_id, exercise.id)

        locked = exercise.locked
        if not locked and game.module_lock > 0:
            total = await self._count_module_exercises(exercise.module_id)
            if total > 0:
                solved = await self._count_solved_in_module(exercise.module_id, game_id, player_id)
                locked = module_gate_locks(solved, total, game.module_lock)

        if not locked and game.exercise_lock and exercise.order > 1:
            predecessor_id = await self._find_predecessor(exercise.module_id, exercise.order)
            predecessor_solved = predecessor_id is not None and await self._has_correct_submission(
                predecessor_id, game_id, player_id
            )
            locked = sequential_gate_locks(exercise.order, predecessor_id is not None, predecessor_solved)

        visibility = combine(exercise.hidden, locked, unlocked)
        logger.debug(
            "Exercise %s for player %s in game %s: hidden=%s locked=%s",
            exercise.id, player_id, game_id, visibility.hidden, visibility.locked,
        )
        return visibility

    async def get_exercise(self, exercise_id: int) -> Exercise:
        exercise = await self.db.get(Exercise, exercise_id)
        if exercise is None:
            raise NotFoundError(f"Exercise with ID {exercise_id} not found.")
        return exercise

    async def _get_game_locks(self, game_id: int) -> Row[tuple[float, bool]]:
        result = await self.db.execute(
            select(Game.module_lock, Game.exercise_lock).where(Game.id == game_id)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError(f"Game with ID {game_id} not found.")
        return row

    async def _count_module_exercises(self, module_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Exercise.id)).where(Exercise.module_id == module_id)
        )
        return result.scalar() or 0

    async def _count_solved_in_module(self, module_id: int, game_id: int, player_id: int) -> int:
        result = await self.db.execute(
            select(func.count(distinct(Submission.exercise_id)))
            .join(Exercise, Submission.exercise_id == Exercise.id)
            .where(
                Submission.player_id == player_id,
                Submission.game_id == game_id,
                Submission.result > 0,
                Exercise.module_id == module_id,
            )
        )
        return result.scalar() or 0

    async def _find_predecessor(self, module_id: int, order: int) -> int | None:
        result = await self.db.execute(
            select(Exercise.id)
            .where(Exercise.module_id == module_id, Exercise.order == order - 1)
            .order_by(Exercise.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _has_correct_submission(self, exercise_id: int, game_id: int, player_id: int) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    Submission.player_id == player_id,
                    Submission.game_id == game_id,
                    Submission.exercise_id == exercise_id,
                    Submission.result > 0,
                )
            )
        )
        return bool(result.scalar())
