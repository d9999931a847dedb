from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

# Failure codes returned by the flow engine, router and session operations
UNKNOWN = "unknown"
UNKNOWN_STEP = "unknown_step"
INVALID_TRANSITION = "invalid_transition"
FLOW_DISABLED = "flow_disabled"
INVALID_RATING = "invalid_rating"
NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an operation whose failures are expected, e.g. a stale flow choice."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str, code: str = UNKNOWN) -> "Result[T]":
        return cls(ok=False, error=error, error_code=code)

    def failed_with(self, code: str) -> bool:
        return not self.ok and self.error_code == code
