"""Read-only views of the authored catalog that players browse before opening an exercise."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fgpe.db.models import Course, Exercise, Game, Module
from fgpe.errors import NotFoundError

logger = logging.getLogger(__name__)


async def list_available_games(db: AsyncSession) -> list[int]:
    """Ids of games that are both public and active."""
    result = await db.execute(
        select(Game.id).where(Game.public.is_(True), Game.active.is_(True)).order_by(Game.id)
    )
    game_ids = list(result.scalars().all())
    logger.info("Found %d available games", len(game_ids))
    return game_ids


async def get_course_data(db: AsyncSession, game_id: int, language: str) -> dict:
    """Gamification rules of the game's course and its module ids in ``language``.

    Raises:
        NotFoundError: If the game does not exist.
    """
    result = await db.execute(
        select(
            Course.id,
            Course.gamification_rule_conditions,
            Course.gamification_complex_rules,
            Course.gamification_rule_results,
        )
        .join(Game, Game.course_id == Course.id)
        .where(Game.id == game_id)
    )
    course = result.one_or_none()
    if course is None:
        raise NotFoundError(f"Game with ID {game_id} not found.")

    modules = await db.execute(
        select(Module.id)
        .where(Module.course_id == course.id, Module.language == language)
        .order_by(Module.order, Module.id)
    )
    return {
        "gamification_rule_conditions": course.gamification_rule_conditions,
        "gamification_complex_rules": course.gamification_complex_rules,
        "gamification_rule_results": course.gamification_rule_results,
        "module_ids": list(modules.scalars().all()),
    }


async def get_module_data(db: AsyncSession, module_id: int, language: str, programming_language: str) -> dict:
    """Module details with the ids of its exercises in the given language pair."""
    module = await db.get(Module, module_id)
    if module is None:
        raise NotFoundError(f"Module with ID {module_id} not found.")

    exercises = await db.execute(
        select(Exercise.id)
        .where(
            Exercise.module_id == module_id,
            Exercise.language == language,
            Exercise.programming_language == programming_language,
        )
        .order_by(Exercise.order, Exercise.id)
    )
    exercise_ids = list(exercises.scalars().all())
    logger.debug("Module %s has %d exercises for %s/%s", module_id, len(exercise_ids), language, programming_language)
    return {
        "order": module.order,
        "title": module.title,
        "description": module.description,
        "start_date": module.start_date,
        "end_date": module.end_date,
        "exercise_ids": exercise_ids,
    }
