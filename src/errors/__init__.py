"""Error types for the auto-reply engine.

Expected outcomes (skips, generation failures) are values, not
exceptions. The exceptions here are for caller errors and for the
generation backend boundary.
"""

from src.errors.domain import (
    DomainError,
    GenerationError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "GenerationError",
]
