"""Error types for Versa.

Engine operations signal validation failures with None/False sentinels.
File-level operations (atomic writes, config, import/export files) return a
Result so callers can report *why* something failed.

Usage:
    result = atomic_write_json(path, data)
    if result.is_err():
        console.print(format_error(result.unwrap_err()))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class VersaError:
    """A structured error with a stable code."""

    code: str  # e.g. ATOMIC_WRITE_FAILED, IMPORT_INVALID
    message: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self):
        raise ValueError("Called unwrap_err() on Ok")


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        raise ValueError(f"Called unwrap() on Err: {self.error}")

    def unwrap_err(self) -> E:
        return self.error


Result = Union[Ok[T], Err[E]]


def format_error(error: VersaError) -> str:
    """Format an error for display to a user."""
    return f"{error.message} [{error.code}]"
