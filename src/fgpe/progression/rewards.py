"""Reward catalog lookups and reward grants."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fgpe.db.models import PlayerReward, Reward
from fgpe.db.upsert import insert_for
from fgpe.errors import InvariantError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidRewardId:
    reward_id: int


@dataclass(frozen=True)
class MalformedReward:
    raw: Any


ClaimedReward = ValidRewardId | MalformedReward


def parse_claimed_rewards(payload: Any) -> list[ClaimedReward]:
    """Split a client-supplied ``earned_rewards`` value into well-formed ids and junk.

    Only JSON integers count as reward ids; booleans, floats and numeric
    strings are malformed. A non-list payload yields no entries.
    """
    if payload is None:
        return []
    if not isinstance(payload, list):
        logger.warning("earned_rewards is not a JSON array: %r", payload)
        return []

    claimed: list[ClaimedReward] = []
    for raw in payload:
        if isinstance(raw, int) and not isinstance(raw, bool):
            claimed.append(ValidRewardId(raw))
        else:
            claimed.append(MalformedReward(raw))
    return claimed


async def get_valid_period(db: AsyncSession, reward_id: int) -> timedelta:
    """Resolve a reward id to its validity duration.

    Raises:
        NotFoundError: If the reward does not exist.
        InvariantError: If the reward has no validity duration configured.
    """
    result = await db.execute(select(Reward.id, Reward.valid_period).where(Reward.id == reward_id))
    row = result.one_or_none()
    if row is None:
        logger.error("Reward %s named in earned_rewards does not exist", reward_id)
        raise NotFoundError(f"Reward ID {reward_id} not found")
    if row.valid_period is None:
        logger.error("Reward %s has a NULL valid_period", reward_id)
        raise InvariantError(f"Reward ID {reward_id} has invalid period configuration")
    return row.valid_period


async def grant_reward(
    db: AsyncSession,
    player_id: int,
    reward_id: int,
    game_id: int,
    now: datetime | None = None,
) -> datetime:
    """Grant a reward once more. Returns the new expiry.

    The first grant inserts count=1; later grants increment the count and reset
    ``expires_at`` to ``now + valid_period`` (expiry is refreshed, never summed).
    """
    valid_period = await get_valid_period(db, reward_id)
    if now is None:
        now = datetime.now(timezone.utc)
    expires_at = now + valid_period

    stmt = insert_for(db, PlayerReward).values(
        player_id=player_id,
        reward_id=reward_id,
        game_id=game_id,
        count=1,
        used_count=0,
        obtained_at=now,
        expires_at=expires_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["player_id", "reward_id", "game_id"],
        set_={
            "count": PlayerReward.count + 1,
            "expires_at": stmt.excluded.expires_at,
        },
    )
    await db.execute(stmt)
    return expires_at


async def grant_claimed_rewards(
    db: AsyncSession,
    player_id: int,
    game_id: int,
    claimed: list[ClaimedReward],
    now: datetime | None = None,
) -> list[int]:
    """Grant every well-formed claimed reward; malformed entries are logged and skipped."""
    if now is None:
        now = datetime.now(timezone.utc)

    granted: list[int] = []
    for entry in claimed:
        match entry:
            case ValidRewardId(reward_id=reward_id):
                await grant_reward(db, player_id, reward_id, game_id, now=now)
                granted.append(reward_id)
            case MalformedReward(raw=raw):
                logger.warning("Skipping non-integer reward id in earned_rewards: %r", raw)
    return granted
