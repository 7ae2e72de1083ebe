from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

# Error codes used across services
FETCH_ERROR = "fetch_error"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an operation whose failure is expected and handled by the caller."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown") -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default
