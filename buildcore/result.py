"""
Result type for operations that report failure as a value.

Used where a caller has to branch on the outcome instead of catching an
exception: the tree URL decoder returns the offending format version inside
an ``Err``, and ``import_build`` folds every failure class of an import into
one outcome.

Usage:
    from buildcore.result import Ok, Err, Result

    result = decode_tree_url(url)
    if result.is_ok():
        nodes = result.unwrap().nodes
    else:
        print(f"Bad tree: {result.error}")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, NoReturn, TypeVar, Union

T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Return the contained value."""
        return self.value

    @property
    def error(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failed outcome carrying an error value."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        """Raise, since there is no success value.

        Raises:
            ValueError: Always.
        """
        raise ValueError(f"Called unwrap on Err: {self.error}")

    @property
    def value(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Union[Ok[T], Err[E]]
