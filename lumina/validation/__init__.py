"""Validation package."""

from lumina.validation.validator import (
    LedgerError,
    StateValidator,
    TransactionValidator,
    ValidationError,
    issues_from_pydantic,
    parse_draft,
)

__all__ = [
    "LedgerError",
    "StateValidator",
    "TransactionValidator",
    "ValidationError",
    "issues_from_pydantic",
    "parse_draft",
]
