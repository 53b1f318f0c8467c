"""
Quota limit values.

A limit is either ``Finite(n)`` (at most ``n`` uses per period) or the
``UNLIMITED`` singleton.  The unlimited value supports no arithmetic or
ordering; code that needs a number must check ``is_unlimited`` first.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Finite:
    """A hard cap on the number of uses per period."""

    value: int

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"Finite limit must be an int, got {type(self.value).__name__}")
        if self.value < 0:
            raise ValueError(f"Finite limit must be non-negative, got {self.value}")

    def __str__(self) -> str:
        return str(self.value)


class Unlimited:
    """No cap. Use the ``UNLIMITED`` instance rather than constructing new ones."""

    _instance: Optional["Unlimited"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNLIMITED"

    def __str__(self) -> str:
        return "unlimited"

    def __reduce__(self):
        return (Unlimited, ())


UNLIMITED = Unlimited()

Limit = Union[Finite, Unlimited]


def is_unlimited(limit: Limit) -> bool:
    """Return True if *limit* is the unlimited value."""
    return limit is UNLIMITED


def coerce_limit(value: Union[Limit, int]) -> Limit:
    """
    Normalise a limit given either as a ``Limit`` or a plain non-negative int.

    Raises:
        ValueError: For negative ints (the legacy ``-1`` sentinel is not accepted)
        TypeError: For anything else
    """
    if isinstance(value, (Finite, Unlimited)):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return Finite(value)
    raise TypeError(f"Expected a Limit or int, got {type(value).__name__}")


def limit_to_json(limit: Limit) -> Optional[int]:
    """Serialise a limit for API responses: the int cap, or None when unlimited."""
    if is_unlimited(limit):
        return None
    return limit.value
