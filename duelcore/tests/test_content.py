"""
Tests for the content catalog, the enemy spawner and catalog validation.
"""

import pytest

from ..content.catalog import CatalogEnemySpawner, ContentCatalog
from ..content.starter import STARTER_DECK
from ..content.validation import CatalogValidationError, validate_catalog
from ..engine_core.effect_dsl import CardDefinition, EffectKind, EffectSpec, EffectTarget, damage, guard
from ..engine_core.errors import InvalidArgumentError
from ..engine_core.providers import EnemyDefinition
from ..engine_core.stage import Stage, StageDefinition


class TestContentCatalog:
    """Tests for ContentCatalog."""

    def test_starter_catalog_is_valid(self, starter_catalog):
        """The shipped content passes validation with the starter deck."""
        result = validate_catalog(starter_catalog, player_deck=STARTER_DECK)
        assert result.valid, result.errors

    def test_lookups(self, starter_catalog):
        assert starter_catalog.get_card("slash").name == "Slash"
        assert starter_catalog.get_card("missing") is None
        assert starter_catalog.get_enemy("troll").max_health == 28

    def test_stages_in_play_order(self, starter_catalog):
        assert [s.stage_id for s in starter_catalog.list_stages()] == ["outskirts", "old_bridge"]
        assert starter_catalog.next_stage("outskirts").stage_id == "old_bridge"
        assert starter_catalog.next_stage("old_bridge") is None

    def test_require_stage(self, starter_catalog):
        with pytest.raises(InvalidArgumentError):
            starter_catalog.require_stage("moon")

    def test_duplicates_rejected(self):
        catalog = ContentCatalog()
        catalog.add_card(CardDefinition("jab", "Jab", effects=(damage(1),)))
        with pytest.raises(InvalidArgumentError):
            catalog.add_card(CardDefinition("jab", "Other Jab", effects=(damage(2),)))


class TestEnemySpawner:
    """Tests for CatalogEnemySpawner."""

    def test_follows_stage_index(self, test_catalog):
        spawner = CatalogEnemySpawner(test_catalog)
        stage = Stage(test_catalog.require_stage("trial"))

        assert spawner.peek_next_enemy_data(stage).enemy_id == "imp"
        assert spawner.spawn_next_enemy(stage).enemy_id == "imp"
        assert stage.current_index == 0

        stage.advance_to_next_enemy()
        assert spawner.spawn_next_enemy(stage).enemy_id == "dummy"
        stage.advance_to_next_enemy()
        assert spawner.spawn_next_enemy(stage) is None

    def test_unknown_enemy_raises(self):
        catalog = ContentCatalog()
        stage = Stage(StageDefinition("s", 1, "S", ("ghost",)))
        with pytest.raises(InvalidArgumentError):
            CatalogEnemySpawner(catalog).spawn_next_enemy(stage)


class TestValidation:
    """Tests for validate_catalog."""

    def test_unknown_references(self):
        catalog = ContentCatalog().extend(
            enemies=[EnemyDefinition("rat", "Rat", 5, card_ids=("bite",))],
            stages=[StageDefinition("s", 1, "S", ("rat", "bat"))],
        )
        result = validate_catalog(catalog, player_deck=["slash"])

        assert not result.valid
        assert any("unknown card 'bite'" in e for e in result.errors)
        assert any("unknown enemy 'bat'" in e for e in result.errors)
        assert any("Player deck" in e for e in result.errors)

    def test_zero_magnitude_is_an_error(self):
        catalog = ContentCatalog().extend(cards=[CardDefinition("fizz", "Fizz", effects=(damage(0),))])
        result = validate_catalog(catalog)
        assert any("has no value" in e for e in result.errors)

    def test_warnings(self):
        catalog = ContentCatalog().extend(cards=[
            CardDefinition("blank", "Blank"),
            CardDefinition("odd_guard", "Odd Guard", effects=(EffectSpec(EffectKind.GUARD, value=3),)),
            CardDefinition("self_hit", "Self Hit",
                           effects=(EffectSpec(EffectKind.DAMAGE, value=1, target=EffectTarget.SELF),)),
            CardDefinition("shield", "Shield", effects=(guard(),)),
        ])
        result = validate_catalog(catalog)

        assert result.valid
        assert any("'blank' has no effects" in w for w in result.warnings)
        assert any("guard ignores its value" in w for w in result.warnings)
        assert any("damage targets its own caster" in w for w in result.warnings)
        assert any("No stages defined" in w for w in result.warnings)

    def test_shared_stage_numbers_warn(self):
        catalog = ContentCatalog().extend(
            enemies=[EnemyDefinition("rat", "Rat", 5)],
            stages=[StageDefinition("a", 1, "A", ("rat",)), StageDefinition("b", 1, "B", ("rat",))],
        )
        result = validate_catalog(catalog)
        assert any("share number 1" in w for w in result.warnings)

    def test_raise_if_invalid(self):
        catalog = ContentCatalog().extend(stages=[StageDefinition("s", 1, "S", ("ghost",))])
        with pytest.raises(CatalogValidationError) as excinfo:
            validate_catalog(catalog).raise_if_invalid()
        assert excinfo.value.errors
