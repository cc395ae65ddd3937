"""
Outcome types for calls that can degrade.

External calls (specialist API, language model, calendar provider, semantic
search) report through an ``Outcome`` instead of raising, so the fallback
branch taken by the caller is visible in the signature.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    DEGRADED = "degraded"  # usable value, but a dependency was unavailable
    FATAL = "fatal"  # no usable value; caller must take its fallback


@dataclass
class Outcome(Generic[T]):
    status: OutcomeStatus
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(OutcomeStatus.SUCCESS, value)

    @classmethod
    def degraded(cls, value: T, error: str) -> "Outcome[T]":
        return cls(OutcomeStatus.DEGRADED, value, error)

    @classmethod
    def fatal(cls, error: str) -> "Outcome[T]":
        return cls(OutcomeStatus.FATAL, None, error)

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @property
    def usable(self) -> bool:
        """True when ``value`` can be used, even if degraded."""
        return self.status != OutcomeStatus.FATAL
