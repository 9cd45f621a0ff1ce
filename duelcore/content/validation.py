"""
Catalog Validation - Consistency checks for content.

Validates that:
1. Ids are present and match the keys they are registered under
2. References are valid (enemy decks name known cards, stages name known enemies)
3. Effects make sense for their kind
4. Stage numbering is unambiguous
"""

from __future__ import annotations
from dataclasses import dataclass, field

from ..engine_core.effect_dsl import CardDefinition, EffectKind, EffectSpec, EffectTarget
from .catalog import ContentCatalog


class CatalogValidationError(Exception):
    """Raised when catalog validation fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Catalog validation failed with {len(errors)} error(s)")


@dataclass
class ValidationResult:
    """Result of validation, with errors and warnings."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def raise_if_invalid(self):
        if not self.valid:
            raise CatalogValidationError(self.errors)


def validate_catalog(catalog: ContentCatalog, player_deck: list[str] | None = None) -> ValidationResult:
    """
    Validate a complete content catalog.

    player_deck, when given, is checked for unknown card ids too.
    """
    errors: list[str] = []
    warnings: list[str] = []

    for key, card in catalog.cards.items():
        if key != card.card_id:
            errors.append(f"Card registered as '{key}' has id '{card.card_id}'")
        errors.extend(_validate_card(card))
        warnings.extend(_card_warnings(card))

    for key, enemy in catalog.enemies.items():
        if key != enemy.enemy_id:
            errors.append(f"Enemy registered as '{key}' has id '{enemy.enemy_id}'")
        if not enemy.name:
            errors.append(f"Enemy '{enemy.enemy_id}' has empty name")
        if not enemy.card_ids:
            warnings.append(f"Enemy '{enemy.enemy_id}' has no cards and can never act")
        for card_id in enemy.card_ids:
            if card_id not in catalog.cards:
                errors.append(f"Enemy '{enemy.enemy_id}' references unknown card '{card_id}'")

    numbers: dict[int, str] = {}
    for key, stage in catalog.stages.items():
        if key != stage.stage_id:
            errors.append(f"Stage registered as '{key}' has id '{stage.stage_id}'")
        for enemy_id in stage.enemy_ids:
            if enemy_id not in catalog.enemies:
                errors.append(f"Stage '{stage.stage_id}' references unknown enemy '{enemy_id}'")
        if stage.number in numbers:
            warnings.append(
                f"Stages '{numbers[stage.number]}' and '{stage.stage_id}' share number {stage.number}"
            )
        numbers.setdefault(stage.number, stage.stage_id)

    for card_id in player_deck or []:
        if card_id not in catalog.cards:
            errors.append(f"Player deck references unknown card '{card_id}'")

    # Warnings for incomplete catalogs
    if not catalog.cards:
        warnings.append("No cards defined - catalog may be incomplete")
    if not catalog.stages:
        warnings.append("No stages defined")

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def _validate_card(card: CardDefinition) -> list[str]:
    """Validate a single card definition."""
    errors = []
    if not card.name:
        errors.append(f"Card '{card.card_id}' has empty name")
    for effect in card.effects:
        if effect.uses_magnitude and effect.value == 0:
            errors.append(f"Card '{card.card_id}': {effect.kind.value} effect has no value")
    return errors


def _card_warnings(card: CardDefinition) -> list[str]:
    warnings = []
    if not card.effects:
        warnings.append(f"Card '{card.card_id}' has no effects")
    for effect in card.effects:
        warnings.extend(f"Card '{card.card_id}': {w}" for w in _effect_warnings(effect))
    return warnings


def _effect_warnings(effect: EffectSpec) -> list[str]:
    warnings = []
    kind = effect.kind.value
    if not effect.uses_magnitude and effect.value:
        warnings.append(f"{kind} ignores its value ({effect.value})")
    if effect.kind is not EffectKind.DAMAGE:
        if effect.hits > 1:
            warnings.append(f"{kind} ignores hits ({effect.hits})")
        if effect.ignore_guard or effect.ignore_counter:
            warnings.append(f"{kind} ignores guard/counter flags")
    if effect.kind is EffectKind.DAMAGE and effect.resolved_target is EffectTarget.SELF:
        warnings.append("damage targets its own caster")
    if effect.kind is EffectKind.HEAL and effect.resolved_target is EffectTarget.OPPONENT:
        warnings.append("heal targets the opponent")
    return warnings
