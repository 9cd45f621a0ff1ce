"""
Content - Static card, enemy and stage data.

This module contains:
- ContentCatalog, the default card content provider
- CatalogEnemySpawner for stage-driven enemy spawning
- Catalog validation
- A starter content set
"""

from .catalog import ContentCatalog, CatalogEnemySpawner
from .validation import CatalogValidationError, ValidationResult, validate_catalog
from .starter import STARTER_DECK, create_starter_catalog

__all__ = [
    "ContentCatalog",
    "CatalogEnemySpawner",
    "CatalogValidationError",
    "ValidationResult",
    "validate_catalog",
    "STARTER_DECK",
    "create_starter_catalog",
]
