"""Pydantic request/response models for student progression endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


# --- Registration ---


class JoinGameRequest(BaseModel):
    player_id: int
    game_id: int
    language: str = Field(min_length=1, max_length=10)


class LeaveGameRequest(BaseModel):
    player_id: int
    game_id: int


class SaveGameRequest(BaseModel):
    player_registrations_id: int
    game_state: Any


class LoadGameRequest(BaseModel):
    player_registrations_id: int


class SetGameLangRequest(BaseModel):
    player_id: int
    game_id: int
    language: str = Field(min_length=1, max_length=10)


class GameMetadataResponse(BaseModel):
    registration_id: int
    progress: int
    joined_at: datetime | None = None
    left_at: datetime | None = None
    language: str
    game_id: int
    game_title: str
    game_active: bool
    game_description: str
    game_programming_language: str
    game_total_exercises: int
    game_start_date: datetime
    game_end_date: datetime


# --- Catalog ---


class CourseDataResponse(BaseModel):
    gamification_rule_conditions: str
    gamification_complex_rules: str
    gamification_rule_results: str
    module_ids: list[int]


class ModuleDataResponse(BaseModel):
    order: int
    title: str
    description: str
    start_date: datetime
    end_date: datetime
    exercise_ids: list[int]


# --- Submissions ---


class SubmitSolutionRequest(BaseModel):
    player_id: int
    exercise_id: int
    game_id: int
    client: str = ""
    submitted_code: str
    metrics: Any = Field(default_factory=dict)
    result: Decimal
    result_description: Any = Field(default_factory=dict)
    feedback: str = ""
    entered_at: datetime
    # Loosely typed on purpose: non-integer entries are skipped, not rejected
    earned_rewards: Any = Field(default_factory=list)
    idempotency_key: str | None = Field(default=None, max_length=128)


class SubmitSolutionResponse(BaseModel):
    first_correct: bool


class LastSolutionResponse(BaseModel):
    submitted_code: str
    metrics: Any
    result: Decimal
    result_description: Any
    feedback: str
    submitted_at: datetime | None = None


# --- Exercises ---


class UnlockRequest(BaseModel):
    player_id: int
    exercise_id: int


class ExerciseDataResponse(BaseModel):
    order: int
    title: str
    description: str
    init_code: str
    pre_code: str
    post_code: str
    test_code: str
    check_source: str
    mode: str
    mode_parameters: Any
    difficulty: str
    hidden: bool
    locked: bool
