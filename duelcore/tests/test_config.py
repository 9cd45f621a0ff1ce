"""
Tests for CombatConfig.
"""

import pytest

from ..engine_core.config import CombatConfig
from ..engine_core.errors import InvalidArgumentError
from ..engine_core.turns import TurnType


class TestCombatConfig:

    def test_defaults(self):
        config = CombatConfig()
        assert config.hand_size == 3
        assert config.player_max_health == 30
        assert config.first_turn is TurnType.PLAYER
        assert config.recycle_discard_pile

    @pytest.mark.parametrize("hand_size", [0, 6, -1])
    def test_hand_size_bounds(self, hand_size):
        with pytest.raises(InvalidArgumentError):
            CombatConfig(hand_size=hand_size)

    def test_rejects_negative_values(self):
        with pytest.raises(InvalidArgumentError):
            CombatConfig(resource_regen_per_turn=-1)
        with pytest.raises(InvalidArgumentError):
            CombatConfig(player_max_health=0)


class TestFromEnv:

    def test_empty_environment_gives_defaults(self):
        assert CombatConfig.from_env({}) == CombatConfig()

    def test_reads_variables(self):
        config = CombatConfig.from_env({
            "DUELCORE_HAND_SIZE": "5",
            "DUELCORE_RESOURCE_REGEN": "2",
            "DUELCORE_RECYCLE_DISCARD": "off",
            "DUELCORE_FIRST_TURN": "Enemy",
            "DUELCORE_PLAYER_HEALTH": "12",
            "DUELCORE_PLAYER_RESOURCE": " ",
        })
        assert config.hand_size == 5
        assert config.resource_regen_per_turn == 2
        assert config.recycle_discard_pile is False
        assert config.first_turn is TurnType.ENEMY
        assert config.player_max_health == 12
        assert config.player_resource_max == 3

    @pytest.mark.parametrize("key,value", [
        ("DUELCORE_HAND_SIZE", "three"),
        ("DUELCORE_RECYCLE_DISCARD", "maybe"),
        ("DUELCORE_FIRST_TURN", "nobody"),
        ("DUELCORE_HAND_SIZE", "9"),
    ])
    def test_bad_values(self, key, value):
        with pytest.raises(InvalidArgumentError):
            CombatConfig.from_env({key: value})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("DUELCORE_PLAYER_HEALTH", "44")
        assert CombatConfig.from_env().player_max_health == 44
