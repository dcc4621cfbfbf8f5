from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure categories, valued by the code reported to API clients."""

    NOT_FOUND = "TASK_NOT_FOUND"
    VALIDATION = "BAD_REQUEST"


_STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
}


@dataclass(frozen=True)
class TaskError:
    kind: ErrorKind
    message: str

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.kind]


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a manager operation: either a value or a TaskError.

    Callers check `ok` (or `error`) before using `value`.
    """

    value: Optional[T] = None
    error: Optional[TaskError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "Result[T]":
        return cls(error=TaskError(kind, message))


def not_found(task_id: int) -> Result:
    return Result.fail(ErrorKind.NOT_FOUND, f"Task with id {task_id} not found")


def invalid(message: str) -> Result:
    return Result.fail(ErrorKind.VALIDATION, message)


class TaskApiError(Exception):
    """Raised by the HTTP layer to turn a TaskError into an error response."""

    def __init__(self, error: TaskError) -> None:
        super().__init__(error.message)
        self.error = error
