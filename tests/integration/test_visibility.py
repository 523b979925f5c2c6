"""Visibility resolver against live submission and unlock state."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from fgpe.errors import NotFoundError
from fgpe.progression.submission_service import SolutionAttempt, SubmissionProcessor
from fgpe.progression.unlock_service import unlock_exercise
from fgpe.progression.visibility import Visibility, VisibilityResolver


async def solve(db, world, exercise_id, game_id, result="1") -> None:
    await SubmissionProcessor(db).submit(
        SolutionAttempt(
            player_id=world.player,
            exercise_id=exercise_id,
            game_id=game_id,
            submitted_code="pass",
            result=Decimal(result),
            entered_at=datetime.now(timezone.utc),
        )
    )


class TestAuthoredFlags:
    @pytest.mark.asyncio
    async def test_open_game_shows_plain_exercise(self, db_session, world):
        resolver = VisibilityResolver(db_session)
        assert await resolver.resolve(world.e2, world.open_game, world.player) == Visibility(False, False)

    @pytest.mark.asyncio
    async def test_authored_hidden_and_locked(self, db_session, world):
        resolver = VisibilityResolver(db_session)
        assert await resolver.resolve(world.e3, world.open_game, world.player) == Visibility(True, True)

    @pytest.mark.asyncio
    async def test_unlock_overrides_both_flags(self, db_session, world):
        await unlock_exercise(db_session, world.player, world.e3)
        resolver = VisibilityResolver(db_session)
        assert await resolver.resolve(world.e3, world.open_game, world.player) == Visibility(False, False)

    @pytest.mark.asyncio
    async def test_unlock_is_per_player(self, db_session, world):
        await unlock_exercise(db_session, world.player, world.e3)
        resolver = VisibilityResolver(db_session)
        assert await resolver.resolve(world.e3, world.open_game, world.outsider) == Visibility(True, True)


class TestModuleGate:
    @pytest.mark.asyncio
    async def test_nothing_solved_locks(self, db_session, world):
        resolver = VisibilityResolver(db_session)
        visibility = await resolver.resolve(world.e2, world.module_game, world.player)
        assert visibility.locked is True
        assert visibility.hidden is False

    @pytest.mark.asyncio
    async def test_reaching_threshold_opens(self, db_session, world):
        await solve(db_session, world, world.e1, world.module_game)
        resolver = VisibilityResolver(db_session)
        # 1 of 2 solved meets module_lock = 0.5
        assert (await resolver.resolve(world.e2, world.module_game, world.player)).locked is False

    @pytest.mark.asyncio
    async def test_incorrect_submission_does_not_count(self, db_session, world):
        await solve(db_session, world, world.e1, world.module_game, result="0")
        resolver = VisibilityResolver(db_session)
        assert (await resolver.resolve(world.e2, world.module_game, world.player)).locked is True

    @pytest.mark.asyncio
    async def test_solutions_in_other_games_do_not_count(self, db_session, world):
        await solve(db_session, world, world.e1, world.open_game)
        resolver = VisibilityResolver(db_session)
        assert (await resolver.resolve(world.e2, world.module_game, world.player)).locked is True

    @pytest.mark.asyncio
    async def test_unlock_wins_over_module_gate(self, db_session, world):
        await unlock_exercise(db_session, world.player, world.e2)
        resolver = VisibilityResolver(db_session)
        assert (await resolver.resolve(world.e2, world.module_game, world.player)).locked is False


class TestSequentialGate:
    @pytest.mark.asyncio
    async def test_first_exercise_is_open(self, db_session, world):
        resolver = VisibilityResolver(db_session)
        assert (await resolver.resolve(world.e1, world.sequential_game, world.player)).locked is False

    @pytest.mark.asyncio
    async def test_second_waits_for_first(self, db_session, world):
        resolver = VisibilityResolver(db_session)
        assert (await resolver.resolve(world.e2, world.sequential_game, world.player)).locked is True

        await solve(db_session, world, world.e1, world.sequential_game)
        assert (await resolver.resolve(world.e2, world.sequential_game, world.player)).locked is False

    @pytest.mark.asyncio
    async def test_predecessor_solved_elsewhere_does_not_count(self, db_session, world):
        await solve(db_session, world, world.e1, world.module_game)
        resolver = VisibilityResolver(db_session)
        assert (await resolver.resolve(world.e2, world.sequential_game, world.player)).locked is True


class TestMissing:
    @pytest.mark.asyncio
    async def test_unknown_exercise(self, db_session, world):
        with pytest.raises(NotFoundError, match="Exercise"):
            await VisibilityResolver(db_session).resolve(999_999, world.open_game, world.player)

    @pytest.mark.asyncio
    async def test_unknown_game(self, db_session, world):
        with pytest.raises(NotFoundError, match="Game"):
            await VisibilityResolver(db_session).resolve(world.e1, 999_999, world.player)
