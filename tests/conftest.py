"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from fgpe.database import close_db, get_engine, get_session_factory, init_db
from fgpe.db.base import Base
from fgpe.db.models import (
    Course,
    Exercise,
    Game,
    Module,
    Player,
    PlayerRegistration,
    Reward,
)
from fgpe.main import create_app

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database with the full schema, disposed after the test."""
    await init_db(TEST_DATABASE_URL)
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await close_db()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session bound to the test database."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def world(db_session: AsyncSession) -> SimpleNamespace:
    """Seed a course with three modules, three games and one registered player.

    Module 1 holds E1 (order 1) and E2 (order 2). Module 2 holds E3, which is
    authored hidden and locked. A Portuguese module has no exercises. Only the
    open game is public. The player is registered in every game; the
    outsider exists but is registered nowhere. Only ids are returned.
    """
    db = db_session
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    end = datetime(2027, 1, 1, tzinfo=timezone.utc)

    course = Course(
        title="Python Basics",
        languages="en,pt",
        programming_languages="python",
        gamification_rule_conditions="solved(E1)",
        gamification_complex_rules="",
        gamification_rule_results="award(hint)",
    )
    db.add(course)
    await db.flush()

    def make_module(order: int, title: str, language: str = "en") -> Module:
        return Module(course_id=course.id, order=order, title=title, language=language, start_date=start, end_date=end)

    module_1 = make_module(1, "Variables")
    module_2 = make_module(2, "Loops")
    module_pt = make_module(1, "Variaveis", language="pt")
    db.add_all([module_1, module_2, module_pt])
    await db.flush()

    e1 = Exercise(module_id=module_1.id, order=1, title="Assign", language="en", programming_language="python")
    e2 = Exercise(module_id=module_1.id, order=2, title="Swap", language="en", programming_language="python")
    e3 = Exercise(
        module_id=module_2.id,
        order=1,
        title="Secret loop",
        language="en",
        programming_language="python",
        hidden=True,
        locked=True,
    )
    db.add_all([e1, e2, e3])

    def make_game(title: str, module_lock: float = 0.0, exercise_lock: bool = False) -> Game:
        return Game(
            title=title,
            course_id=course.id,
            programming_language="python",
            module_lock=module_lock,
            exercise_lock=exercise_lock,
            total_exercises=3,
            start_date=start,
            end_date=end,
        )

    open_game = make_game("Open")
    open_game.public = True
    module_game = make_game("Module gated", module_lock=0.5)
    sequential_game = make_game("Sequential", exercise_lock=True)
    db.add_all([open_game, module_game, sequential_game])

    player = Player(email="ana@example.com", display_name="Ana")
    outsider = Player(email="rui@example.com", display_name="Rui")
    db.add_all([player, outsider])

    reward = Reward(course_id=course.id, name="Hint token", valid_period=timedelta(hours=24))
    broken_reward = Reward(course_id=course.id, name="Broken", valid_period=None)
    db.add_all([reward, broken_reward])
    await db.flush()

    registrations = [
        PlayerRegistration(player_id=player.id, game_id=game.id, language="en", progress=0, game_state={})
        for game in (open_game, module_game, sequential_game)
    ]
    db.add_all(registrations)
    await db.flush()

    ids = SimpleNamespace(
        course=course.id,
        module_1=module_1.id,
        module_2=module_2.id,
        module_pt=module_pt.id,
        e1=e1.id,
        e2=e2.id,
        e3=e3.id,
        open_game=open_game.id,
        module_game=module_game.id,
        sequential_game=sequential_game.id,
        player=player.id,
        outsider=outsider.id,
        reward=reward.id,
        broken_reward=broken_reward.id,
        open_registration=registrations[0].id,
    )
    await db.commit()
    return ids


@pytest_asyncio.fixture
async def client(db_engine: AsyncEngine) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app; the database is already initialized by ``db_engine``."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
