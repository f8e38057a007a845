"""
Explicit result type for chat operations.

WHAT: Success-with-value or tagged business error
WHY: Expected conditions (agency unavailable, not a participant) are values,
     not exceptions, at the facade boundary
HOW: Small generic dataclass wrapping a BusinessException
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from ..utils.exceptions import BusinessException

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a chat operation."""
    value: Optional[T] = None
    error: Optional[BusinessException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error else None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BusinessException) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or re-raise the business error."""
        if self.error is not None:
            raise self.error
        return self.value
