"""
Explicit result type for maintenance phases.

Uses the Railway-oriented pattern: every phase returns an Outcome carrying
either a value or an error, plus any non-fatal warnings collected on the way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Iterable, TypeVar

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    """Value or error of a phase, plus warnings."""

    value: T | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls, value: T | None = None, warnings: Iterable[str] = ()) -> "Outcome[T]":
        return cls(value=value, error=None, warnings=list(warnings))

    @classmethod
    def failed(cls, error: str, warnings: Iterable[str] = (), value: T | None = None) -> "Outcome[T]":
        return cls(value=value, error=error, warnings=list(warnings))

    @property
    def succeeded(self) -> bool:
        """Check if the phase's primary action succeeded."""
        return self.error is None

    def warn(self, message: str) -> None:
        self.warnings.append(message)
