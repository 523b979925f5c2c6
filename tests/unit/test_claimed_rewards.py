"""Claimed-reward payload parsing: well-formed ids vs. junk entries."""

from __future__ import annotations

import logging

from fgpe.progression.rewards import MalformedReward, ValidRewardId, parse_claimed_rewards


class TestParseClaimedRewards:
    def test_integers_are_valid_ids(self):
        assert parse_claimed_rewards([7, 12]) == [ValidRewardId(7), ValidRewardId(12)]

    def test_non_integers_are_malformed(self):
        parsed = parse_claimed_rewards([7, "8", 2.5, None, {"id": 3}])
        assert parsed == [
            ValidRewardId(7),
            MalformedReward("8"),
            MalformedReward(2.5),
            MalformedReward(None),
            MalformedReward({"id": 3}),
        ]

    def test_booleans_are_not_reward_ids(self):
        assert parse_claimed_rewards([True, False]) == [MalformedReward(True), MalformedReward(False)]

    def test_none_and_empty_yield_nothing(self):
        assert parse_claimed_rewards(None) == []
        assert parse_claimed_rewards([]) == []

    def test_non_list_payload_is_ignored_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="fgpe.progression.rewards"):
            assert parse_claimed_rewards({"7": 1}) == []
        assert "not a JSON array" in caplog.text
