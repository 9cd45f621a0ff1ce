"""
Combat errors.

Two kinds of faults are raised by the engine:
- InvalidArgumentError: a missing reference or an out-of-range value
- InvalidOperationError: a call made in the wrong sequence

Expected outcomes (empty deck, dead target, card on cooldown) are
never raised - they come back as return values.
"""

from __future__ import annotations


class CombatError(Exception):
    """Base class for all combat engine faults."""

    error_code = "COMBAT_ERROR"


class InvalidArgumentError(CombatError, ValueError):
    """Raised when a required reference is missing or a value is out of range."""

    error_code = "INVALID_ARGUMENT"


class InvalidOperationError(CombatError, RuntimeError):
    """Raised when an operation is called in an illegal sequence."""

    error_code = "INVALID_OPERATION"


def require(value, name: str):
    """Return value, raising InvalidArgumentError if it is None."""
    if value is None:
        raise InvalidArgumentError(f"{name} is required")
    return value


def require_positive(amount: int, name: str = "amount") -> int:
    """Return amount, raising InvalidArgumentError unless it is > 0."""
    if amount <= 0:
        raise InvalidArgumentError(f"{name} must be > 0 (got {amount})")
    return amount
