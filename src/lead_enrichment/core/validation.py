"""
Typed validation results for entity construction and updates.

Entities validate their invariants when they are created or changed and hand
back a ValidationResult instead of raising, so callers can collect several
failures before deciding what to do with them.
"""

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from .exceptions import ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class ValidationResult(Generic[T]):
    """Outcome of a validating constructor or update"""
    value: Optional[T] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @classmethod
    def success(cls, value: T) -> "ValidationResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, *errors: str) -> "ValidationResult[T]":
        return cls(errors=list(errors))

    def unwrap(self) -> T:
        """Return the value or raise ValidationError with the collected errors"""
        if not self.ok:
            raise ValidationError("; ".join(self.errors), self.errors)
        return self.value


class Checks:
    """Accumulates invariant violations for a single entity"""

    def __init__(self):
        self.errors: List[str] = []

    def require(self, condition: bool, message: str) -> None:
        if not condition:
            self.errors.append(message)

    def in_unit_interval(self, value: float, name: str) -> None:
        self.require(
            isinstance(value, (int, float)) and 0.0 <= value <= 1.0,
            f"{name} must be between 0 and 1",
        )

    def non_negative(self, value: float, name: str) -> None:
        self.require(isinstance(value, (int, float)) and value >= 0, f"{name} must be >= 0")

    def result(self, value: T) -> ValidationResult[T]:
        if self.errors:
            return ValidationResult(errors=list(self.errors))
        return ValidationResult.success(value)
