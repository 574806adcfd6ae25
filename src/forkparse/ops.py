"""
The combinators.

Every rule is built once and reused for every parse. Evaluating a rule returns
`Values` on success and a `Mismatch` on a recoverable failure, or raises a
`HardError`:

```
r = rule.evaluate(cursor, arg)
if r:
    ...     # `r` is a `Values` tuple with exactly `rule.arity` items
else:
    ...     # `r` is a `Mismatch`
```

`evaluate_async()` makes the same decisions, but reads through
`read_async()`, the only place where it may suspend.
"""

from __future__ import annotations
from typing import Any, Final, Callable

from collections.abc import Sequence, Iterable
import inspect
import logging

from forkparse.errors import (
    MISMATCH,
    Mismatch,
    NamedMismatch,
    ParseError,
    HardError,
    Incomplete,
    NamedIncomplete,
    Other,
)
from forkparse.source import Cursor
from forkparse.values import EMPTY, Values, single

logger = logging.getLogger(__name__)

Outcome = Values | Mismatch
Predicate = Callable[[Any, Any], bool]
"""`(item, arg) -> bool`"""


def _require_single(rule: Rule, combinator: str) -> None:
    if rule.arity != 1:
        raise ValueError(f"{combinator} needs a rule producing exactly one value, got {rule.arity}.")

def _require_rule(rule: object, combinator: str) -> None:
    if not isinstance(rule, Rule):
        raise TypeError(f"{combinator} expects rules, got {type(rule).__name__!r}.")

def _check_mapper(fn: Callable[..., Any], count: int, combinator: str) -> None:
    """Checks at construction time that `fn` accepts `count` positional arguments."""
    if not callable(fn):
        raise TypeError(f"{combinator} expects a callable, got {type(fn).__name__!r}.")
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return # some builtins have no signature, nothing to check
    try:
        signature.bind(*([None] * count))
    except TypeError as exc:
        raise TypeError(f"{combinator}: {fn!r} can't take {count} positional argument(s).") from exc


class Rule:
    """
    Base of all combinators. Immutable once constructed.

    `a + b` is `And(a, b)` and `a | b` is `Or(a, b)`.
    """

    arity: int = 1
    """How many values a success produces."""

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        raise NotImplementedError

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        raise NotImplementedError

    def __add__(self, other: Rule) -> And:
        left = self.rules if isinstance(self, And) else (self,)
        return And(*left, other)

    def __or__(self, other: Rule) -> Or:
        left = self.rules if isinstance(self, Or) else (self,)
        return Or(*left, other)


# primitives

class ItemRule(Rule):
    """
    A rule matching a single item by a predicate. Can also be used as a predicate itself.
    """

    arity = 1

    def test(self, item: Any, arg: Any) -> bool:
        raise NotImplementedError

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        items = cursor.read(1)
        if items and self.test(items[0], arg):
            cursor.consume(1)
            return single(items[0])
        return MISMATCH

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        items = await cursor.read_async(1)
        if items and self.test(items[0], arg):
            cursor.consume(1)
            return single(items[0])
        return MISMATCH

def _as_predicate(predicate: Predicate | ItemRule) -> Predicate:
    if isinstance(predicate, ItemRule):
        return predicate.test
    if callable(predicate):
        return predicate
    raise TypeError(f"Expected a predicate, got {type(predicate).__name__!r}.")

class Is(ItemRule):
    """Matches one item accepted by `predicate(item, arg)`."""

    def __init__(self, predicate: Predicate | ItemRule) -> None:
        self.predicate: Final[Predicate] = _as_predicate(predicate)

    def test(self, item: Any, arg: Any) -> bool:
        return bool(self.predicate(item, arg))

    def __repr__(self) -> str:
        return f"Is({self.predicate!r})"

class Not(ItemRule):
    """Matches one item rejected by the predicate."""

    def __init__(self, predicate: Predicate | ItemRule) -> None:
        self.inner: Final[Predicate | ItemRule] = predicate
        self.predicate: Final[Predicate] = _as_predicate(predicate)

    def test(self, item: Any, arg: Any) -> bool:
        return not self.predicate(item, arg)

    def __repr__(self) -> str:
        return f"Not({self.inner!r})"

class AnyOf(ItemRule):
    """
    Matches one item equal to any of `members`.

    ```
    AnyOf("abc")            # str input
    AnyOf(b" \\t\\r\\n")       # bytes input, the items are ints
    AnyOf(const.DECIMAL)
    ```
    """

    def __init__(self, members: Iterable[Any]) -> None:
        members = tuple(members)
        if len(members) <= 0:
            raise ValueError("At least one member required.")
        self.members: frozenset[Any] | tuple[Any, ...]
        try:
            self.members = frozenset(members)
        except TypeError:
            # unhashable members, compare one by one
            self.members = members

    def test(self, item: Any, arg: Any) -> bool:
        try:
            return item in self.members
        except TypeError:
            return False

    def __repr__(self) -> str:
        return f"AnyOf({sorted(self.members, key=repr)!r})"

class One(AnyOf):
    """Matches exactly the given item."""

    def __init__(self, item: Any) -> None:
        super().__init__((item,))
        self.item: Final[Any] = item

    def __repr__(self) -> str:
        return f"One({self.item!r})"

class Seq(Rule):
    """
    Matches a fixed literal.

    Compares by looking ahead one more item at a time and consumes everything
    at once on a full match. Produces the literal itself, whatever the source.
    """

    arity = 1

    def __init__(self, literal: Sequence[Any]) -> None:
        if len(literal) <= 0:
            raise ValueError("The literal can't be empty.")
        self.literal: Final[Sequence[Any]] = literal

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        for count, expected in enumerate(self.literal):
            items = cursor.read(count + 1)
            if len(items) <= count or items[count] != expected:
                return MISMATCH
        cursor.consume(len(self.literal))
        return single(self.literal)

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        for count, expected in enumerate(self.literal):
            items = await cursor.read_async(count + 1)
            if len(items) <= count or items[count] != expected:
                return MISMATCH
        cursor.consume(len(self.literal))
        return single(self.literal)

    def __repr__(self) -> str:
        return f"Seq({self.literal!r})"

class Start(Rule):
    """Zero width. Matches only at position 0."""

    arity = 0

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        return EMPTY if cursor.position == 0 else MISMATCH

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        return EMPTY if cursor.position == 0 else MISMATCH

    def __repr__(self) -> str:
        return "Start()"

class End(Rule):
    """Zero width. Matches only when no items are left."""

    arity = 0

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        return EMPTY if not cursor.read(1) else MISMATCH

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        return EMPTY if not await cursor.read_async(1) else MISMATCH

    def __repr__(self) -> str:
        return "End()"

class NoOp(Rule):
    """Always succeeds without consuming or producing anything."""

    arity = 0

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        return EMPTY

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        return EMPTY

    def __repr__(self) -> str:
        return "NoOp()"

class Never(Rule):
    """Always mismatches. Takes the arity of whatever it stands in for."""

    def __init__(self, arity: int = 1) -> None:
        self.arity = arity

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        return MISMATCH

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        return MISMATCH

    def __repr__(self) -> str:
        return f"Never({self.arity})"

class Define(Rule):
    """
    A forward reference, for recursive grammars.

    ```
    value = Define()
    array = And(Discard(One("[")), Punctuated(value, One(",")), Discard(One("]")))
    value.define(Or(Map(array, ...), number))
    ```
    """

    def __init__(self, arity: int = 1) -> None:
        self.arity = arity
        self.rule: Rule | None = None

    def define(self, rule: Rule) -> None:
        """Binds the reference. Can only be done once."""
        _require_rule(rule, "Define")
        if self.rule is not None:
            raise RuntimeError("The rule was already defined.")
        if rule.arity != self.arity:
            raise ValueError(f"Declared with arity {self.arity}, got a rule with arity {rule.arity}.")
        self.rule = rule

    def _bound(self) -> Rule:
        if self.rule is None:
            raise RuntimeError("Evaluated a `Define` before `define()` was called.")
        return self.rule

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        return self._bound().evaluate(cursor, arg)

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        return await self._bound().evaluate_async(cursor, arg)

    def __repr__(self) -> str:
        return f"Define({'unbound' if self.rule is None else 'bound'})"


# structural

class And(Rule):
    """
    Matches all rules in sequence, concatenating their values.

    Every rule gets the same argument. Stops at the first failure, and doesn't
    roll back what the earlier rules consumed; the enclosing fork (usually an
    `Or`) takes care of that.
    """

    def __init__(self, *rules: Rule) -> None:
        self.rules: Final[tuple[Rule, ...]] = rules
        if len(rules) <= 0:
            raise ValueError("At least one rule required.")
        for rule in rules:
            _require_rule(rule, "And")
        self.arity = sum(rule.arity for rule in rules)

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        values: list[Any] = []
        for rule in self.rules:
            r = rule.evaluate(cursor, arg)
            if not r:
                return r
            values.extend(r)
        return Values(values)

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        values: list[Any] = []
        for rule in self.rules:
            r = await rule.evaluate_async(cursor, arg)
            if not r:
                return r
            values.extend(r)
        return Values(values)

    def __repr__(self) -> str:
        return f"And{self.rules!r}"

class Or(Rule):
    """
    Ordered choice. Tries the rules in order, each in its own fork.

    - Success: joins the fork and returns.
    - `HardError`: joins the fork, so the position stays meaningful, and
      re-raises. Later rules are never tried.
    - Mismatch: drops the fork and tries the next rule.

    All rules must produce the same number of values.
    """

    def __init__(self, *rules: Rule) -> None:
        self.rules: Final[tuple[Rule, ...]] = rules
        if len(rules) <= 0:
            raise ValueError("At least one rule required.")
        for rule in rules:
            _require_rule(rule, "Or")
        arities = {rule.arity for rule in rules}
        if len(arities) > 1:
            raise ValueError(f"All alternatives must produce the same number of values, got {sorted(arities)}.")
        self.arity = rules[0].arity

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        for rule in self.rules:
            fork = cursor.fork()
            try:
                r = rule.evaluate(fork, arg)
            except HardError as exc:
                fork.join()
                logger.debug("%r failed hard, skipping the remaining alternatives: %s", rule, exc)
                raise
            if r:
                fork.join()
                return r
            fork.close()
        return MISMATCH

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        for rule in self.rules:
            fork = cursor.fork()
            try:
                r = await rule.evaluate_async(fork, arg)
            except HardError as exc:
                fork.join()
                logger.debug("%r failed hard, skipping the remaining alternatives: %s", rule, exc)
                raise
            if r:
                fork.join()
                return r
            fork.close()
        return MISMATCH

    def __repr__(self) -> str:
        return f"Or{self.rules!r}"

def _check_bounds(min: int, max: int | None) -> None:
    if min < 0:
        raise ValueError("`min` can't be negative.")
    if max is not None and max < min:
        raise ValueError("`max` can't be lower than `min`.")

class Repeat(Rule):
    """
    Matches `rule` between `min` and `max` times (`None` for no limit), producing a list.

    A mismatch stops the loop without rolling back, so `rule` must not consume
    when it fails. Hard errors propagate. With fewer than `min` matches, the
    last failure is returned.
    """

    arity = 1

    def __init__(self, rule: Rule, min: int = 0, max: int | None = None) -> None:
        _require_rule(rule, "Repeat")
        _require_single(rule, "Repeat")
        _check_bounds(min, max)
        self.rule: Final[Rule] = rule
        self.min: Final[int] = min
        self.max: Final[int | None] = max

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        result: list[Any] = []
        last: Mismatch | None = None
        while self.max is None or len(result) < self.max:
            r = self.rule.evaluate(cursor, arg)
            if not r:
                last = r
                break
            result.append(r[0])
        if len(result) < self.min:
            return MISMATCH if last is None else last
        return single(result)

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        result: list[Any] = []
        last: Mismatch | None = None
        while self.max is None or len(result) < self.max:
            r = await self.rule.evaluate_async(cursor, arg)
            if not r:
                last = r
                break
            result.append(r[0])
        if len(result) < self.min:
            return MISMATCH if last is None else last
        return single(result)

    def __repr__(self) -> str:
        return f"Repeat({self.rule!r}, {self.min}, {self.max})"

class Optional(Rule):
    """Produces the value of `rule`, or `None` if it mismatched. Hard errors propagate."""

    arity = 1

    def __init__(self, rule: Rule) -> None:
        _require_rule(rule, "Optional")
        _require_single(rule, "Optional")
        self.rule: Final[Rule] = rule

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        r = self.rule.evaluate(cursor, arg)
        return single(r[0] if r else None)

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        r = await self.rule.evaluate_async(cursor, arg)
        return single(r[0] if r else None)

    def __repr__(self) -> str:
        return f"Optional({self.rule!r})"

class Punctuated(Rule):
    """
    Matches `item (separator item)*`, producing `(items, separators)`.

    Each `separator item` pair is parsed in a fresh fork which is only joined
    if both match. A trailing separator is therefore never part of the result
    and stays unconsumed, an enclosing rule may still match it:

    ```
    And(Punctuated(value, comma), Discard(Optional(comma)))
    ```

    `max` counts items.
    """

    arity = 2

    def __init__(self, item: Rule, separator: Rule, min: int = 0, max: int | None = None) -> None:
        _require_rule(item, "Punctuated")
        _require_rule(separator, "Punctuated")
        _require_single(item, "Punctuated")
        _require_single(separator, "Punctuated")
        _check_bounds(min, max)
        if max is not None and max < 1:
            raise ValueError("`max` must be at least 1.")
        self.item: Final[Rule] = item
        self.separator: Final[Rule] = separator
        self.min: Final[int] = min
        self.max: Final[int | None] = max

    def _finish(self, items: list[Any], separators: list[Any], last: Mismatch | None) -> Outcome:
        if len(items) < self.min:
            return MISMATCH if last is None else last
        return Values((items, separators))

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        items: list[Any] = []
        separators: list[Any] = []

        r = self.item.evaluate(cursor, arg)
        if not r:
            return self._finish(items, separators, r)
        items.append(r[0])

        last: Mismatch | None = None
        while self.max is None or len(items) < self.max:
            fork = cursor.fork()
            separator = self.separator.evaluate(fork, arg)
            if not separator:
                fork.close()
                last = separator
                break
            item = self.item.evaluate(fork, arg)
            if not item:
                fork.close()
                last = item
                break
            fork.join()
            separators.append(separator[0])
            items.append(item[0])
        return self._finish(items, separators, last)

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        items: list[Any] = []
        separators: list[Any] = []

        r = await self.item.evaluate_async(cursor, arg)
        if not r:
            return self._finish(items, separators, r)
        items.append(r[0])

        last: Mismatch | None = None
        while self.max is None or len(items) < self.max:
            fork = cursor.fork()
            separator = await self.separator.evaluate_async(fork, arg)
            if not separator:
                fork.close()
                last = separator
                break
            item = await self.item.evaluate_async(fork, arg)
            if not item:
                fork.close()
                last = item
                break
            fork.join()
            separators.append(separator[0])
            items.append(item[0])
        return self._finish(items, separators, last)

    def __repr__(self) -> str:
        return f"Punctuated({self.item!r}, {self.separator!r}, {self.min}, {self.max})"

class AndWithArg(Rule):
    """
    Matches `first`, then `second` with the value of `first` as its argument.

    Produces the value of `first` followed by the values of `second`.
    """

    def __init__(self, first: Rule, second: Rule) -> None:
        _require_rule(first, "AndWithArg")
        _require_rule(second, "AndWithArg")
        _require_single(first, "AndWithArg")
        self.first: Final[Rule] = first
        self.second: Final[Rule] = second
        self.arity = 1 + second.arity

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        r = self.first.evaluate(cursor, arg)
        if not r:
            return r
        s = self.second.evaluate(cursor, r[0])
        if not s:
            return s
        return r.concat(s)

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        r = await self.first.evaluate_async(cursor, arg)
        if not r:
            return r
        s = await self.second.evaluate_async(cursor, r[0])
        if not s:
            return s
        return r.concat(s)

    def __repr__(self) -> str:
        return f"AndWithArg({self.first!r}, {self.second!r})"


# transforms

class Wrapper(Rule):
    """A rule that post-processes the outcome of a single inner rule."""

    def __init__(self, rule: Rule) -> None:
        _require_rule(rule, type(self).__name__)
        self.rule: Final[Rule] = rule
        self.arity = rule.arity

    def after(self, outcome: Outcome, cursor: Cursor, arg: Any) -> Outcome:
        return outcome

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        return self.after(self.rule.evaluate(cursor, arg), cursor, arg)

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        return self.after(await self.rule.evaluate_async(cursor, arg), cursor, arg)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.rule!r})"

class Map(Wrapper):
    """
    Applies `fn(*values)` to a success, producing its return value.

    With `with_arg`, the argument is passed as an extra last parameter.
    The number of parameters is checked when the rule is constructed.
    """

    def __init__(self, rule: Rule, fn: Callable[..., Any], *, with_arg: bool = False) -> None:
        super().__init__(rule)
        _check_mapper(fn, rule.arity + with_arg, type(self).__name__)
        self.fn: Final[Callable[..., Any]] = fn
        self.with_arg: Final[bool] = with_arg
        self.arity = 1

    def call(self, values: Values, arg: Any) -> Any:
        if self.with_arg:
            return self.fn(*values, arg)
        return self.fn(*values)

    def after(self, outcome: Outcome, cursor: Cursor, arg: Any) -> Outcome:
        if not outcome:
            return outcome
        return single(self.call(outcome, arg))

class TryMap(Map):
    """
    Like `Map`, but the conversion may fail.

    `fn` can return a `Mismatch`, which is propagated as-is, or raise a
    `HardError`. Exceptions of the types in `wrap` are re-raised as `Other`:

    ```
    TryMap(Repeat(digit, 1), lambda digits: int("".join(digits)))
    ```
    """

    def __init__(
        self,
        rule: Rule,
        fn: Callable[..., Any],
        *,
        with_arg: bool = False,
        wrap: tuple[type[Exception], ...] = (ValueError,),
    ) -> None:
        super().__init__(rule, fn, with_arg=with_arg)
        self.wrap: Final[tuple[type[Exception], ...]] = wrap

    def after(self, outcome: Outcome, cursor: Cursor, arg: Any) -> Outcome:
        if not outcome:
            return outcome
        try:
            value = self.call(outcome, arg)
        except ParseError:
            raise
        except self.wrap as exc:
            raise Other(exc) from exc
        if isinstance(value, Mismatch):
            return value
        return single(value)

class IsMap(Map):
    """Like `Map`, but a `None` from `fn` counts as a mismatch."""

    def after(self, outcome: Outcome, cursor: Cursor, arg: Any) -> Outcome:
        if not outcome:
            return outcome
        value = self.call(outcome, arg)
        if value is None:
            return MISMATCH
        return single(value)

class Discard(Wrapper):
    """Matches `rule` and drops its values."""

    def __init__(self, rule: Rule) -> None:
        super().__init__(rule)
        self.arity = 0

    def after(self, outcome: Outcome, cursor: Cursor, arg: Any) -> Outcome:
        return outcome if not outcome else EMPTY

class MapRange(Rule):
    """
    Passes the range of positions `rule` consumed to `fn(*values, span)`.

    Without `fn`, the range is appended to the values.
    """

    def __init__(self, rule: Rule, fn: Callable[..., Any] | None = None) -> None:
        _require_rule(rule, "MapRange")
        if fn is not None:
            _check_mapper(fn, rule.arity + 1, "MapRange")
        self.rule: Final[Rule] = rule
        self.fn: Final[Callable[..., Any] | None] = fn
        self.arity = rule.arity + 1 if fn is None else 1

    def _apply(self, outcome: Values, start: int, end: int) -> Values:
        span = range(start, end)
        if self.fn is None:
            return outcome.concat((span,))
        return single(self.fn(*outcome, span))

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        start = cursor.position
        r = self.rule.evaluate(cursor, arg)
        if not r:
            return r
        return self._apply(r, start, cursor.position)

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        start = cursor.position
        r = await self.rule.evaluate_async(cursor, arg)
        if not r:
            return r
        return self._apply(r, start, cursor.position)

    def __repr__(self) -> str:
        return f"MapRange({self.rule!r})"


# diagnostics

class Expected(Wrapper):
    """
    Turns a mismatch of `rule` into a hard error. No backtracking past this point.

    - `Mismatch` -> `Incomplete(position, name)`
    - `NamedMismatch(component)` -> `NamedIncomplete(position, name, component)`

    ```
    And(Discard(One("{")), Expected(And(members, Discard(One("}"))), "Object"))
    ```
    """

    def __init__(self, rule: Rule, name: str) -> None:
        super().__init__(rule)
        self.name: Final[str] = name

    def after(self, outcome: Outcome, cursor: Cursor, arg: Any) -> Outcome:
        if outcome:
            return outcome
        logger.debug("expected %s at %d, failing hard", self.name, cursor.position)
        if isinstance(outcome, NamedMismatch):
            raise NamedIncomplete(cursor.position, self.name, outcome.label)
        raise Incomplete(cursor.position, self.name)

    def __repr__(self) -> str:
        return f"Expected({self.rule!r}, {self.name!r})"

class Name(Wrapper):
    """Labels a plain mismatch of `rule`, for the diagnostics of an enclosing `Expected`."""

    def __init__(self, rule: Rule, label: str) -> None:
        super().__init__(rule)
        self.label: Final[str] = label

    def after(self, outcome: Outcome, cursor: Cursor, arg: Any) -> Outcome:
        if not outcome and not isinstance(outcome, NamedMismatch):
            return NamedMismatch(self.label)
        return outcome

    def __repr__(self) -> str:
        return f"Name({self.rule!r}, {self.label!r})"

class Peek(Rule):
    """Matches `rule` without consuming anything, whatever the outcome."""

    def __init__(self, rule: Rule) -> None:
        _require_rule(rule, "Peek")
        self.rule: Final[Rule] = rule
        self.arity = rule.arity

    def evaluate(self, cursor: Cursor, arg: Any) -> Outcome:
        with cursor.fork() as fork:
            return self.rule.evaluate(fork, arg)

    async def evaluate_async(self, cursor: Cursor, arg: Any) -> Outcome:
        with cursor.fork() as fork:
            return await self.rule.evaluate_async(fork, arg)

    def __repr__(self) -> str:
        return f"Peek({self.rule!r})"
