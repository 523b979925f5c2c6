"""Student progression API endpoints.

Handlers only translate between HTTP and the services; ProgressionError
subclasses are rendered by the global error handlers.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fgpe.database import get_session
from fgpe.progression import catalog_service, registration_service
from fgpe.progression.schemas import (
    CourseDataResponse,
    ExerciseDataResponse,
    GameMetadataResponse,
    JoinGameRequest,
    LastSolutionResponse,
    LeaveGameRequest,
    LoadGameRequest,
    ModuleDataResponse,
    SaveGameRequest,
    SetGameLangRequest,
    SubmitSolutionRequest,
    SubmitSolutionResponse,
    UnlockRequest,
)
from fgpe.progression.submission_service import SolutionAttempt, SubmissionProcessor
from fgpe.progression.unlock_service import unlock_exercise
from fgpe.progression.visibility import VisibilityResolver

router = APIRouter(prefix="/api/v1/student", tags=["Student"])


# ── Registrations ──


@router.post("/join_game")
async def join_game(body: JoinGameRequest, db: AsyncSession = Depends(get_session)) -> dict[str, int]:
    """Register a player in a game."""
    registration_id = await registration_service.join_game(db, body.player_id, body.game_id, body.language)
    return {"registration_id": registration_id}


@router.post("/leave_game")
async def leave_game(body: LeaveGameRequest, db: AsyncSession = Depends(get_session)) -> dict[str, bool]:
    """Mark the player's registration as left."""
    await registration_service.leave_game(db, body.player_id, body.game_id)
    return {"left": True}


@router.post("/save_game")
async def save_game(body: SaveGameRequest, db: AsyncSession = Depends(get_session)) -> dict[str, bool]:
    """Store the client's game state blob."""
    await registration_service.save_game(db, body.player_registrations_id, body.game_state)
    return {"saved": True}


@router.post("/load_game")
async def load_game(body: LoadGameRequest, db: AsyncSession = Depends(get_session)) -> dict:
    """Return the stored game state blob."""
    game_state = await registration_service.load_game(db, body.player_registrations_id)
    return {"game_state": game_state}


@router.post("/set_game_lang")
async def set_game_lang(body: SetGameLangRequest, db: AsyncSession = Depends(get_session)) -> dict[str, bool]:
    """Change the registration language to one offered by the course."""
    await registration_service.set_game_language(db, body.player_id, body.game_id, body.language)
    return {"updated": True}


@router.get("/get_player_games")
async def get_player_games(
    player_id: int,
    active: bool = False,
    db: AsyncSession = Depends(get_session),
) -> dict[str, list[int]]:
    """List the player's registration ids."""
    ids = await registration_service.list_player_games(db, player_id, active_only=active)
    return {"registration_ids": ids}


@router.get("/get_game_metadata/{registration_id}", response_model=GameMetadataResponse)
async def get_game_metadata(registration_id: int, db: AsyncSession = Depends(get_session)):
    """Registration and game summary."""
    return GameMetadataResponse(**await registration_service.get_game_metadata(db, registration_id))


@router.get("/get_last_solution", response_model=LastSolutionResponse | None)
async def get_last_solution(
    player_id: int,
    exercise_id: int,
    db: AsyncSession = Depends(get_session),
):
    """Last correct submission, falling back to the last submission of any result."""
    submission = await registration_service.get_last_solution(db, player_id, exercise_id)
    if submission is None:
        return None
    return LastSolutionResponse(
        submitted_code=submission.submitted_code,
        metrics=submission.metrics,
        result=submission.result,
        result_description=submission.result_description,
        feedback=submission.feedback,
        submitted_at=submission.submitted_at,
    )


# ── Catalog ──


@router.get("/get_available_games")
async def get_available_games(db: AsyncSession = Depends(get_session)) -> dict[str, list[int]]:
    """Public, active games a player may join."""
    return {"game_ids": await catalog_service.list_available_games(db)}


@router.get("/get_course_data", response_model=CourseDataResponse)
async def get_course_data(
    game_id: int,
    language: str,
    db: AsyncSession = Depends(get_session),
) -> CourseDataResponse:
    """Course gamification rules and module ids for a game."""
    return CourseDataResponse(**await catalog_service.get_course_data(db, game_id, language))


@router.get("/get_module_data", response_model=ModuleDataResponse)
async def get_module_data(
    module_id: int,
    language: str,
    programming_language: str,
    db: AsyncSession = Depends(get_session),
) -> ModuleDataResponse:
    """Module details and its exercise ids."""
    data = await catalog_service.get_module_data(db, module_id, language, programming_language)
    return ModuleDataResponse(**data)


# ── Exercises ──


@router.get("/get_exercise_data", response_model=ExerciseDataResponse)
async def get_exercise_data(
    exercise_id: int = Query(...),
    game_id: int = Query(...),
    player_id: int = Query(...),
    db: AsyncSession = Depends(get_session),
) -> ExerciseDataResponse:
    """Exercise content with hidden/locked computed for this player and game."""
    resolver = VisibilityResolver(db)
    exercise = await resolver.get_exercise(exercise_id)
    visibility = await resolver.resolve_for(exercise, game_id, player_id)
    return ExerciseDataResponse(
        order=exercise.order,
        title=exercise.title,
        description=exercise.description,
        init_code=exercise.init_code,
        pre_code=exercise.pre_code,
        post_code=exercise.post_code,
        test_code=exercise.test_code,
        check_source=exercise.check_source,
        mode=exercise.mode,
        mode_parameters=exercise.mode_parameters,
        difficulty=exercise.difficulty,
        hidden=visibility.hidden,
        locked=visibility.locked,
    )


@router.post("/submit_solution", response_model=SubmitSolutionResponse)
async def submit_solution(
    body: SubmitSolutionRequest,
    db: AsyncSession = Depends(get_session),
) -> SubmitSolutionResponse:
    """Record a solution attempt; ``first_correct`` is True only for the first correct one."""
    processor = SubmissionProcessor(db)
    first_correct = await processor.submit(SolutionAttempt(**body.model_dump()))
    return SubmitSolutionResponse(first_correct=first_correct)


@router.post("/unlock")
async def unlock(body: UnlockRequest, db: AsyncSession = Depends(get_session)) -> dict[str, bool]:
    """Unlock (and unhide) an exercise for a player. Repeating it is a no-op."""
    await unlock_exercise(db, body.player_id, body.exercise_id)
    return {"unlocked": True}
