"""
The error model.

Recoverable failures are returned, fatal ones are raised:

```
r = rule.evaluate(cursor, arg)
if r:
    ...     # `r` is a `Values` tuple
else:
    ...     # `r` is a `Mismatch`, try something else
```

A `HardError` means the input was committed to a branch and turned out malformed.
It is an exception, so it travels through every combinator untouched until the
caller of `parse` handles it.
"""

from __future__ import annotations
from typing import Any, Final, Literal


class Mismatch:
    """
    Nothing matched here. Falsy, so it can be checked like the result of any rule.

    Use the `MISMATCH` instance instead of creating new ones.
    """

    label: str | None = None

    def error(self, position: int | None = None) -> MismatchError:
        """Converts this to a raisable `MismatchError`."""
        return MismatchError(self, position)

    def __bool__(self) -> Literal[False]:
        return False

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.label == self.label

    def __hash__(self) -> int:
        return hash((type(self), self.label))

    def __repr__(self) -> str:
        return "Mismatch"

class NamedMismatch(Mismatch):
    """
    Nothing matched here, labelled with what was being looked for.

    An enclosing `Expected` reports the label as the missing component.
    """

    def __init__(self, label: str) -> None:
        self.label: str = label

    def __repr__(self) -> str:
        return f"NamedMismatch({self.label!r})"

MISMATCH: Final[Mismatch] = Mismatch()


class ParseError(Exception):
    """Base class of everything a top-level parse can raise."""

class MismatchError(ParseError):
    """
    Raised by the top-level entry points when the grammar did not match at all.
    """

    def __init__(self, failure: Mismatch, position: int | None = None) -> None:
        self.failure: Mismatch = failure
        self.position: int | None = position
        msg = "mismatch" if failure.label is None else f"mismatching {failure.label}"
        if position is not None:
            msg += f" at {position}"
        super().__init__(msg)

class HardError(ParseError):
    """
    A fatal, non-backtrackable failure.

    No combinator converts it back into a `Mismatch`.
    """

class Incomplete(HardError):
    """A structure named `name` was started but could not be completed."""

    def __init__(self, position: int, name: str) -> None:
        self.position: int = position
        self.name: str = name
        super().__init__(f"incomplete {name} at {position}")

    def __eq__(self, other: object) -> bool:
        return (
            type(other) is type(self)
            and (other.position, other.name) == (self.position, self.name)
        )

    def __hash__(self) -> int:
        return hash((type(self), self.position, self.name))

class NamedIncomplete(HardError):
    """Like `Incomplete`, also naming the inner component that was missing."""

    def __init__(self, position: int, name: str, component_name: str) -> None:
        self.position: int = position
        self.name: str = name
        self.component_name: str = component_name
        super().__init__(f"incomplete {name} at {position}, expecting {component_name}")

    def __eq__(self, other: object) -> bool:
        return (
            type(other) is type(self)
            and (other.position, other.name, other.component_name)
            == (self.position, self.name, self.component_name)
        )

    def __hash__(self) -> int:
        return hash((type(self), self.position, self.name, self.component_name))

class Other(HardError):
    """
    Wraps an error produced outside the engine, e.g. by a `TryMap` conversion.

    The wrapped value is not inspected, only its text is used for the message.
    """

    def __init__(self, error: Any) -> None:
        self.error: Any = error
        super().__init__(str(error))
