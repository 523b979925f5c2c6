"""Student progression endpoints over HTTP."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

PREFIX = "/api/v1/student"


def submission(world, exercise_id=None, game_id=None, result=1.0, **extra) -> dict:
    body = {
        "player_id": world.player,
        "exercise_id": exercise_id if exercise_id is not None else world.e1,
        "game_id": game_id if game_id is not None else world.open_game,
        "client": "pytest",
        "submitted_code": "print('hi')",
        "metrics": {},
        "result": result,
        "result_description": {},
        "feedback": "",
        "entered_at": datetime.now(timezone.utc).isoformat(),
        "earned_rewards": [],
    }
    body.update(extra)
    return body


class TestSubmitSolution:
    @pytest.mark.asyncio
    async def test_first_correct_flow(self, client: AsyncClient, world):
        response = await client.post(f"{PREFIX}/submit_solution", json=submission(world))
        assert response.status_code == 200
        assert response.json() == {"first_correct": True}

        response = await client.post(f"{PREFIX}/submit_solution", json=submission(world))
        assert response.json() == {"first_correct": False}

        response = await client.get(f"{PREFIX}/get_game_metadata/{world.open_registration}")
        assert response.status_code == 200
        assert response.json()["progress"] == 1

    @pytest.mark.asyncio
    async def test_unregistered_player_is_404(self, client: AsyncClient, world):
        response = await client.post(f"{PREFIX}/submit_solution", json=submission(world, player_id=world.outsider))
        assert response.status_code == 404
        assert "registration" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_null_reward_period_is_generic_500(self, client: AsyncClient, world):
        response = await client.post(
            f"{PREFIX}/submit_solution",
            json=submission(world, earned_rewards=[world.broken_reward]),
        )
        assert response.status_code == 500
        assert response.json() == {"detail": "An internal server error occurred"}

    @pytest.mark.asyncio
    async def test_missing_fields_is_422(self, client: AsyncClient, world):
        response = await client.post(f"{PREFIX}/submit_solution", json={"player_id": world.player})
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"


class TestExerciseData:
    @pytest.mark.asyncio
    async def test_returns_content_and_flags(self, client: AsyncClient, world):
        response = await client.get(
            f"{PREFIX}/get_exercise_data",
            params={"exercise_id": world.e3, "game_id": world.open_game, "player_id": world.player},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Secret loop"
        assert data["hidden"] is True
        assert data["locked"] is True

    @pytest.mark.asyncio
    async def test_unlock_endpoint_clears_flags(self, client: AsyncClient, world):
        response = await client.post(f"{PREFIX}/unlock", json={"player_id": world.player, "exercise_id": world.e3})
        assert response.status_code == 200
        assert response.json() == {"unlocked": True}

        response = await client.get(
            f"{PREFIX}/get_exercise_data",
            params={"exercise_id": world.e3, "game_id": world.open_game, "player_id": world.player},
        )
        data = response.json()
        assert data["hidden"] is False
        assert data["locked"] is False

    @pytest.mark.asyncio
    async def test_sequential_gate_over_http(self, client: AsyncClient, world):
        params = {"exercise_id": world.e2, "game_id": world.sequential_game, "player_id": world.player}
        response = await client.get(f"{PREFIX}/get_exercise_data", params=params)
        assert response.json()["locked"] is True

        await client.post(f"{PREFIX}/submit_solution", json=submission(world, game_id=world.sequential_game))
        response = await client.get(f"{PREFIX}/get_exercise_data", params=params)
        assert response.json()["locked"] is False

    @pytest.mark.asyncio
    async def test_unknown_exercise_is_404(self, client: AsyncClient, world):
        response = await client.get(
            f"{PREFIX}/get_exercise_data",
            params={"exercise_id": 999_999, "game_id": world.open_game, "player_id": world.player},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unlock_unknown_exercise_is_404(self, client: AsyncClient, world):
        response = await client.post(f"{PREFIX}/unlock", json={"player_id": world.player, "exercise_id": 999_999})
        assert response.status_code == 404


class TestRegistrations:
    @pytest.mark.asyncio
    async def test_join_save_load(self, client: AsyncClient, world):
        response = await client.post(
            f"{PREFIX}/join_game",
            json={"player_id": world.outsider, "game_id": world.open_game, "language": "en"},
        )
        assert response.status_code == 200
        registration_id = response.json()["registration_id"]

        state = {"level": 3}
        response = await client.post(
            f"{PREFIX}/save_game",
            json={"player_registrations_id": registration_id, "game_state": state},
        )
        assert response.json() == {"saved": True}

        response = await client.post(f"{PREFIX}/load_game", json={"player_registrations_id": registration_id})
        assert response.json() == {"game_state": state}

    @pytest.mark.asyncio
    async def test_join_twice_is_409(self, client: AsyncClient, world):
        response = await client.post(
            f"{PREFIX}/join_game",
            json={"player_id": world.player, "game_id": world.open_game, "language": "en"},
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_bad_language_is_422(self, client: AsyncClient, world):
        response = await client.post(
            f"{PREFIX}/set_game_lang",
            json={"player_id": world.player, "game_id": world.open_game, "language": "de"},
        )
        assert response.status_code == 422
        assert "Allowed languages" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_leave_and_list_active(self, client: AsyncClient, world):
        response = await client.post(
            f"{PREFIX}/leave_game",
            json={"player_id": world.player, "game_id": world.open_game},
        )
        assert response.json() == {"left": True}

        response = await client.get(f"{PREFIX}/get_player_games", params={"player_id": world.player, "active": True})
        ids = response.json()["registration_ids"]
        assert world.open_registration not in ids
        assert len(ids) == 2

    @pytest.mark.asyncio
    async def test_last_solution(self, client: AsyncClient, world):
        params = {"player_id": world.player, "exercise_id": world.e1}
        response = await client.get(f"{PREFIX}/get_last_solution", params=params)
        assert response.status_code == 200
        assert response.json() is None

        await client.post(f"{PREFIX}/submit_solution", json=submission(world, submitted_code="answer = 42"))
        response = await client.get(f"{PREFIX}/get_last_solution", params=params)
        data = response.json()
        assert data["submitted_code"] == "answer = 42"
        assert float(data["result"]) == 1.0


class TestCatalog:
    @pytest.mark.asyncio
    async def test_available_games(self, client: AsyncClient, world):
        response = await client.get(f"{PREFIX}/get_available_games")
        assert response.status_code == 200
        assert response.json() == {"game_ids": [world.open_game]}

    @pytest.mark.asyncio
    async def test_course_then_module_then_exercise(self, client: AsyncClient, world):
        response = await client.get(f"{PREFIX}/get_course_data", params={"game_id": world.open_game, "language": "en"})
        assert response.status_code == 200
        course = response.json()
        assert course["module_ids"] == [world.module_1, world.module_2]

        response = await client.get(
            f"{PREFIX}/get_module_data",
            params={"module_id": course["module_ids"][0], "language": "en", "programming_language": "python"},
        )
        assert response.status_code == 200
        module = response.json()
        assert module["exercise_ids"] == [world.e1, world.e2]
        assert "start_date" in module

        response = await client.get(
            f"{PREFIX}/get_exercise_data",
            params={"exercise_id": module["exercise_ids"][0], "game_id": world.open_game, "player_id": world.player},
        )
        assert response.json()["title"] == "Assign"

    @pytest.mark.asyncio
    async def test_unknown_module_is_404(self, client: AsyncClient, world):
        response = await client.get(
            f"{PREFIX}/get_module_data",
            params={"module_id": 999_999, "language": "en", "programming_language": "python"},
        )
        assert response.status_code == 404


class TestIdempotencyOverHttp:
    @pytest.mark.asyncio
    async def test_key_reused_for_other_exercise_is_409(self, client: AsyncClient, world):
        response = await client.post(f"{PREFIX}/submit_solution", json=submission(world, idempotency_key="k"))
        assert response.json() == {"first_correct": True}

        response = await client.post(
            f"{PREFIX}/submit_solution",
            json=submission(world, exercise_id=world.e2, idempotency_key="k"),
        )
        assert response.status_code == 409
        assert "already used" in response.json()["detail"]
