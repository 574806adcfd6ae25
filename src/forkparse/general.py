"""
General purpose rules for text input, built from the combinators.

They work on anything that yields single characters: a `str` in memory, or a
stream of `str` chunks read with `chunked=True`.
"""

from __future__ import annotations
from typing import Any, Final

from collections.abc import Mapping

import forkparse.const as const
from forkparse.ops import (
    Rule,
    Is,
    Not,
    AnyOf,
    One,
    Seq,
    And,
    Or,
    Repeat,
    Optional,
    Map,
    TryMap,
    Discard,
    Expected,
    Name,
)


def _text(*parts: Any) -> str:
    """Joins strings, lists of strings and `None`s into one string."""
    return "".join("".join(part) for part in parts if part is not None)


anything: Final[Rule] = Is(lambda item, arg: True)
"""Any single item."""

ws0: Final[Rule] = Discard(Repeat(AnyOf(const.WHITESPACES)))
"""Zero or more whitespaces."""

ws1: Final[Rule] = Discard(Repeat(AnyOf(const.WHITESPACES), 1))
"""One or more whitespaces."""

digit: Final[Rule] = AnyOf(const.DECIMAL)

digits: Final[Rule] = Map(Repeat(digit, 1), _text)

identifier: Final[Rule] = Map(And(AnyOf(const.IDENTIFIER_START), Repeat(AnyOf(const.IDENTIFIER))), _text)


# numbers

def _prefixed_digits(prefix: str, members: frozenset[str], base: int, name: str) -> Rule:
    # once the prefix matched, digits are mandatory
    return Map(
        And(Discard(Seq(prefix)), Expected(Name(Repeat(AnyOf(members), 1), "digit"), name)),
        lambda found: int(_text(found), base),
    )

def _signed(sign: str | None, value: int | float) -> int | float:
    return -value if sign == "-" else value

# wrapped in `Or` for a fork of its own, so a lone `-` is never consumed
integer: Final[Rule] = Or(Map(
    And(
        Optional(One("-")),
        Or(
            _prefixed_digits("0b", const.BINARY, 2, "binary integer"),
            _prefixed_digits("0o", const.OCTAL, 8, "octal integer"),
            _prefixed_digits("0x", const.HEXADECIMAL, 16, "hexadecimal integer"),
            TryMap(digits, int),
        ),
    ),
    _signed,
))
"""
An integer, with an optional `-`.

`0b`, `0o` and `0x` prefixes select binary, octal and hexadecimal. A prefix
without digits after it is a hard error.
"""

# in its own fork, so a dangling `e` isn't consumed
_exponent: Final[Rule] = Or(Map(And(AnyOf("eE"), Optional(AnyOf(const.SIGNS)), digits), _text))

float_number: Final[Rule] = Or(Map(
    And(
        Optional(One("-")),
        TryMap(
            Or(
                And(Map(And(digits, One("."), digits), _text), Optional(_exponent)),
                And(Map(And(One("."), digits), _text), Optional(_exponent)),
                And(digits, _exponent),
            ),
            lambda mantissa, exponent: float(_text(mantissa, exponent)),
        ),
    ),
    _signed,
))
"""A float. Needs either a fraction or an exponent, plain integers don't match."""


# quoted strings

GENERAL_ESCAPES: Final[Mapping[str, str]] = {
    'b': '\b',
    'f': '\f',
    'n': '\n',
    'r': '\r',
    't': '\t',
}

unicode_escape: Final[Rule] = Map(
    And(Discard(One("u")), Expected(Repeat(AnyOf(const.HEXADECIMAL), 4, 4), "unicode escape")),
    lambda code: chr(int(_text(code), base=16)),
)
"""`uXXXX`, after the escape character."""

def quoted_string(
    quotes: str = '"\'',
    *,
    escape: str = '\\',
    escapes: Mapping[str, str] = GENERAL_ESCAPES,
    advanced_escapes: tuple[Rule, ...] = (unicode_escape,),
) -> Rule:
    """
    A string between a pair of the same quote, producing its unescaped content.

    After `escape` comes a key of `escapes`, one of `advanced_escapes`, or any
    other character which is taken literally. A missing closing quote is a hard
    error.
    """
    if len(quotes) <= 0:
        raise ValueError("At least one quote required.")
    escaped = And(
        Discard(One(escape)),
        Expected(
            Or(Map(AnyOf(escapes), escapes.__getitem__), *advanced_escapes, anything),
            "escape sequence",
        ),
    )
    alternatives = []
    for quote in quotes:
        alternatives.append(Map(
            And(
                Discard(One(quote)),
                Expected(
                    And(
                        Repeat(Or(escaped, Not(AnyOf((quote, escape))))),
                        Discard(Name(One(quote), "closing quote")),
                    ),
                    "quoted string",
                ),
            ),
            _text,
        ))
    return Or(*alternatives)

def raw_quoted_string(quotes: str = '"\'', *, prefix: str = "r") -> Rule:
    """Like `quoted_string()`, without escapes, starting with `prefix`."""
    if len(quotes) <= 0:
        raise ValueError("At least one quote required.")
    alternatives = []
    for quote in quotes:
        alternatives.append(Map(
            And(
                Discard(Seq(prefix + quote)),
                Expected(
                    And(Repeat(Not(One(quote))), Discard(Name(One(quote), "closing quote"))),
                    "raw quoted string",
                ),
            ),
            _text,
        ))
    return Or(*alternatives)
