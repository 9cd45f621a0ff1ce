"""
Starter Content - A small playable card set.

Two stages, four enemies and enough cards for a player deck. Used by
the CLI, the API's default catalog and the tests.

Card structure:
- Resource cost (mana)
- Cooldown in the owner's turns (0 means the card is discarded after use)
- Effects (resolved in `order`)
"""

from ..engine_core.effect_dsl import (
    CardDefinition,
    attack_buff,
    bleed,
    counter,
    damage,
    guard,
    heal,
    invincibility,
    stun,
)
from ..engine_core.providers import EnemyDefinition
from ..engine_core.stage import StageDefinition
from .catalog import ContentCatalog


# =============================================================================
# Player cards
# =============================================================================

SLASH = CardDefinition(
    card_id="slash",
    name="Slash",
    description="Deal 4 damage.",
    effects=(damage(4),),
    tags={"attack"},
)

TWIN_STRIKE = CardDefinition(
    card_id="twin_strike",
    name="Twin Strike",
    description="Deal 2 damage twice.",
    effects=(damage(2, hits=2),),
    resource_cost=1,
    base_cooldown=1,
    tags={"attack"},
)

SHIELD_UP = CardDefinition(
    card_id="shield_up",
    name="Shield Up",
    description="Block the next hit until your next turn.",
    effects=(guard(duration=1),),
    base_cooldown=2,
    tags={"defense"},
)

SECOND_WIND = CardDefinition(
    card_id="second_wind",
    name="Second Wind",
    description="Restore 5 health.",
    effects=(heal(5),),
    resource_cost=1,
    base_cooldown=2,
    tags={"support"},
)

RENDING_CUT = CardDefinition(
    card_id="rending_cut",
    name="Rending Cut",
    description="Deal 2 damage, then inflict 2 bleed for 3 turns.",
    effects=(damage(2), bleed(2, duration=3, order=1)),
    resource_cost=1,
    tags={"attack"},
)

RIPOSTE = CardDefinition(
    card_id="riposte",
    name="Riposte",
    description="Reflect damage taken until your next turn.",
    effects=(counter(duration=1),),
    resource_cost=1,
    base_cooldown=3,
    tags={"defense"},
)

BATTLE_CRY = CardDefinition(
    card_id="battle_cry",
    name="Battle Cry",
    description="Your attacks deal 2 more damage for 2 turns.",
    effects=(attack_buff(2, duration=2),),
    resource_cost=2,
    base_cooldown=3,
    tags={"support"},
)

SHIELD_BASH = CardDefinition(
    card_id="shield_bash",
    name="Shield Bash",
    description="Deal 3 damage and stun for a turn.",
    effects=(damage(3), stun(duration=1, order=1)),
    resource_cost=2,
    base_cooldown=3,
    tags={"attack", "control"},
)

AEGIS = CardDefinition(
    card_id="aegis",
    name="Aegis",
    description="Ignore harmful effects and damage until your next turn.",
    effects=(invincibility(duration=1),),
    resource_cost=3,
    base_cooldown=4,
    tags={"defense"},
)


# =============================================================================
# Enemy cards
# =============================================================================

GNAW = CardDefinition(
    card_id="gnaw",
    name="Gnaw",
    description="Deal 3 damage.",
    effects=(damage(3),),
    tags={"attack"},
)

CLAW_FLURRY = CardDefinition(
    card_id="claw_flurry",
    name="Claw Flurry",
    description="Deal 1 damage three times.",
    effects=(damage(1, hits=3),),
    base_cooldown=1,
    tags={"attack"},
)

HARDEN = CardDefinition(
    card_id="harden",
    name="Harden",
    description="Block the next hit.",
    effects=(guard(duration=1),),
    base_cooldown=2,
    tags={"defense"},
)

SERRATED_BITE = CardDefinition(
    card_id="serrated_bite",
    name="Serrated Bite",
    description="Inflict 1 bleed for 3 turns.",
    effects=(bleed(1, duration=3),),
    base_cooldown=2,
    tags={"attack"},
)

CRUSHING_BLOW = CardDefinition(
    card_id="crushing_blow",
    name="Crushing Blow",
    description="Deal 6 damage that ignores guard.",
    effects=(damage(6, ignore_guard=True),),
    base_cooldown=2,
    tags={"attack"},
)

REGENERATE = CardDefinition(
    card_id="regenerate",
    name="Regenerate",
    description="Restore 4 health.",
    effects=(heal(4),),
    base_cooldown=3,
    tags={"support"},
)


PLAYER_CARDS = [
    SLASH, TWIN_STRIKE, SHIELD_UP, SECOND_WIND, RENDING_CUT,
    RIPOSTE, BATTLE_CRY, SHIELD_BASH, AEGIS,
]

ENEMY_CARDS = [GNAW, CLAW_FLURRY, HARDEN, SERRATED_BITE, CRUSHING_BLOW, REGENERATE]

STARTER_DECK = [
    "slash", "slash", "slash", "twin_strike", "shield_up",
    "second_wind", "rending_cut", "riposte", "battle_cry", "shield_bash",
]


# =============================================================================
# Enemies and stages
# =============================================================================

ENEMIES = [
    EnemyDefinition("rat", "Sewer Rat", max_health=10, card_ids=("gnaw", "gnaw", "claw_flurry")),
    EnemyDefinition("wolf", "Grey Wolf", max_health=16, card_ids=("gnaw", "claw_flurry", "serrated_bite", "harden")),
    EnemyDefinition("troll", "Bridge Troll", max_health=28,
                    card_ids=("crushing_blow", "gnaw", "regenerate", "harden")),
    EnemyDefinition("wraith", "Marsh Wraith", max_health=22,
                    card_ids=("serrated_bite", "claw_flurry", "regenerate", "gnaw")),
]

STAGES = [
    StageDefinition("outskirts", 1, "Town Outskirts", ("rat", "wolf"),
                    description="Vermin and strays at the edge of town.", auto_progress_to_next=True),
    StageDefinition("old_bridge", 2, "The Old Bridge", ("wraith", "troll"),
                    description="Something waits under the bridge."),
]


def create_starter_catalog() -> ContentCatalog:
    """Fresh catalog holding every starter definition."""
    return ContentCatalog(name="starter").extend(
        cards=PLAYER_CARDS + ENEMY_CARDS,
        enemies=ENEMIES,
        stages=STAGES,
    )
