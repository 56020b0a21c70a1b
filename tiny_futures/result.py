"""Success and Failure values describing how a TinyFuture completed."""

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """A computation that finished with a value."""

    value: T

    @property
    def is_success(self) -> bool:
        return True

    @property
    def is_failure(self) -> bool:
        return False

    def get(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    """A computation that raised. The exception is kept, not raised."""

    error: Exception

    @property
    def is_success(self) -> bool:
        return False

    @property
    def is_failure(self) -> bool:
        return True

    def get(self) -> Any:
        """Re-raise the stored exception."""
        raise self.error


Result = Success[T] | Failure


def capture(func: Callable[..., T], *args: Any, **kwargs: Any) -> "Result[T]":
    """Run func and turn its outcome into a Result.

    Only Exception subclasses are captured; KeyboardInterrupt and friends still
    propagate to the caller.
    """
    try:
        return Success(func(*args, **kwargs))
    except Exception as e:
        return Failure(e)
