"""
The result composition protocol.
"""

from __future__ import annotations
from typing import Any, Final, Literal, Self
from collections.abc import Iterable


class Values(tuple):
    """
    The ordered, fixed-shape output of a successful rule.

    Always truthy, so an empty success can't be mistaken for a `Mismatch`.
    Concatenation keeps declaration order, which lets `And(a, And(b, c))` and
    `And(a, b, c)` hand the same flat parameter list to a mapping function.
    """

    def __new__(cls, items: Iterable[Any] = ()) -> Self:
        return super().__new__(cls, items)

    def concat(self, other: Iterable[Any]) -> Values:
        return Values((*self, *other))

    def __bool__(self) -> Literal[True]:
        return True

    def __repr__(self) -> str:
        return f"Values{tuple.__repr__(self)}"


EMPTY: Final[Values] = Values()

def single(value: Any) -> Values:
    """Wraps one value into a one-element `Values`."""
    return Values((value,))
