"""
Top-level entry points.

```
value = parse(rule, "input text")
value = parse_with_argument(rule, b"input", argument)
value = await parse_async(rule, stream)
```

Each call creates one root cursor and evaluates the grammar against it. A
grammar that doesn't match raises `MismatchError`, hard errors propagate as
they are. There are no partial results.
"""

from __future__ import annotations
from typing import Any

import logging

from forkparse.errors import HardError
from forkparse.ops import Rule, Outcome
from forkparse.source import Cursor, to_source

logger = logging.getLogger(__name__)


def _output(rule: Rule, cursor: Cursor, outcome: Outcome) -> Any:
    if not outcome:
        logger.debug("%r did not match at %d", rule, cursor.position)
        raise outcome.error(cursor.position)
    logger.debug("%r matched up to %d", rule, cursor.position)
    if rule.arity == 1:
        return outcome[0]
    return outcome

def parse_with_argument(rule: Rule, source: Any, argument: Any) -> Any:
    """
    Parses `source` with `rule`, passing `argument` to every predicate and mapping that asks for it.

    Returns the single value of a one-value rule, otherwise the `Values` tuple.
    """
    cursor = to_source(source)
    logger.debug("parsing %r from %d", rule, cursor.position)
    try:
        outcome = rule.evaluate(cursor, argument)
    except HardError as exc:
        logger.debug("%r failed hard: %s", rule, exc)
        raise
    return _output(rule, cursor, outcome)

def parse(rule: Rule, source: Any) -> Any:
    """`parse_with_argument()` with `None` as the argument."""
    return parse_with_argument(rule, source, None)

async def parse_with_argument_async(rule: Rule, source: Any, argument: Any) -> Any:
    """
    Same as `parse_with_argument()`, but may suspend while a streaming source waits for items.

    `source` can also be an async iterable.
    """
    cursor = to_source(source)
    logger.debug("parsing %r asynchronously from %d", rule, cursor.position)
    try:
        outcome = await rule.evaluate_async(cursor, argument)
    except HardError as exc:
        logger.debug("%r failed hard: %s", rule, exc)
        raise
    return _output(rule, cursor, outcome)

async def parse_async(rule: Rule, source: Any) -> Any:
    """`parse_with_argument_async()` with `None` as the argument."""
    return await parse_with_argument_async(rule, source, None)
