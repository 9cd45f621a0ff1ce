"""
Pytest fixtures for Duelcore tests.
"""

import pytest

from ..content.catalog import CatalogEnemySpawner, ContentCatalog
from ..content.starter import create_starter_catalog
from ..engine_core.combat import CombatSession
from ..engine_core.config import CombatConfig
from ..engine_core.effect_dsl import (
    CardDefinition,
    EffectKind,
    EffectSpec,
    attack_buff,
    bleed,
    counter,
    damage,
    guard,
    heal,
    invincibility,
    stun,
)
from ..engine_core.events import EventBus
from ..engine_core.providers import EnemyDefinition
from ..engine_core.stage import Stage, StageDefinition
from ..engine_core.state import Character, CharacterStats, Resource, Side


class IdentityRandom:
    """randbelow(n) -> n - 1, which leaves every Fisher-Yates shuffle in its original order."""

    def randbelow(self, n):
        return n - 1


TEST_CARDS = [
    CardDefinition("jab", "Jab", effects=(damage(2),)),
    CardDefinition("heavy", "Heavy Blow", effects=(damage(5),), resource_cost=2),
    CardDefinition("mend", "Mend", effects=(heal(3),), base_cooldown=1),
    CardDefinition("brace", "Brace", effects=(guard(duration=1),)),
    CardDefinition("rend", "Rend", effects=(bleed(2, duration=2),)),
    CardDefinition("thorns", "Thorns", effects=(counter(duration=1),)),
    CardDefinition("rally", "Rally", effects=(attack_buff(1, duration=2),)),
    CardDefinition("daze", "Daze", effects=(stun(duration=1),)),
    CardDefinition("ward", "Ward", effects=(invincibility(duration=1),)),
    CardDefinition(
        "drain", "Drain",
        effects=(
            EffectSpec(EffectKind.DAMAGE, value=2, order=1),
            EffectSpec(EffectKind.HEAL, value=2, order=0),
        ),
    ),
    CardDefinition("poke", "Poke", effects=(damage(1),)),
]

TEST_ENEMIES = [
    EnemyDefinition("dummy", "Training Dummy", max_health=10, card_ids=("poke", "poke", "poke")),
    EnemyDefinition("imp", "Imp", max_health=3, card_ids=("poke",)),
]

TEST_STAGES = [
    StageDefinition("trial", 1, "Trial", ("imp", "dummy")),
]


@pytest.fixture
def test_catalog() -> ContentCatalog:
    """Small catalog with one card per effect kind."""
    return ContentCatalog(name="test").extend(cards=TEST_CARDS, enemies=TEST_ENEMIES, stages=TEST_STAGES)


@pytest.fixture
def starter_catalog() -> ContentCatalog:
    return create_starter_catalog()


@pytest.fixture
def make_combat(test_catalog):
    """
    Factory for combat sessions over the test catalog.

    Shuffles are the identity, so the deck order is the order of
    deck_card_ids and draws come off the end of that list.
    """
    def factory(
        deck=("jab",) * 5,
        enemy_id="dummy",
        config=None,
        with_stage=False,
        auto_advance=True,
        rng=None,
    ) -> CombatSession:
        stage = Stage(test_catalog.require_stage("trial")) if with_stage else None
        session = CombatSession(
            content=test_catalog,
            config=config or CombatConfig(),
            rng=rng or IdentityRandom(),
            bus=EventBus(),
            stage=stage,
            spawner=CatalogEnemySpawner(test_catalog) if stage else None,
            auto_advance=auto_advance,
        )
        session.add_player("Tester", list(deck))
        if enemy_id is not None:
            session.spawn_enemy(test_catalog.get_enemy(enemy_id))
        return session

    return factory


@pytest.fixture
def started_combat(make_combat) -> CombatSession:
    """Combat on the player's first turn: five jabs against the training dummy."""
    session = make_combat()
    session.start_combat()
    return session


@pytest.fixture
def hero() -> Character:
    return Character(
        character_id="hero",
        name="Hero",
        side=Side.PLAYER,
        stats=CharacterStats.full(20),
        resource=Resource.full("mana", 3),
        bus=EventBus(),
    )


@pytest.fixture
def brute() -> Character:
    return Character(
        character_id="brute",
        name="Brute",
        side=Side.ENEMY,
        stats=CharacterStats.full(10),
        bus=EventBus(),
    )


def card_in_hand(session: CombatSession, card_id: str, side: Side = Side.PLAYER):
    """First hand card of the given definition."""
    for card in session.hand(side):
        if card.card_id == card_id:
            return card
    raise AssertionError(f"{card_id} not in {side.value} hand")
