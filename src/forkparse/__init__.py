"""
Backtracking parser combinators, evaluated directly over in-memory or streaming input.

See the objects for more explanations.

See the `forkparse.general` module for general purpose rules you can use as examples.

Defining grammars:
```
digit = AnyOf(const.DECIMAL)
number = TryMap(Repeat(digit, 1), lambda digits: int("".join(digits)))
numbers = Map(
    And(Discard(One("[")), Expected(And(Punctuated(number, One(",")), Discard(One("]"))), "list")),
    lambda items, separators: items,
)
```

Using grammars:
```
parse(numbers, "[1,2,3]")                       # [1, 2, 3]
parse_with_argument(rule, source, argument)     # threads `argument` through the grammar
await parse_async(numbers, stream)              # suspends while the stream is waiting
```

A grammar that doesn't match raises `MismatchError`. A grammar that matched far
enough to commit (past an `Expected`) and then broke raises a `HardError`.
"""

import forkparse.const as const
from forkparse.errors import (
    Mismatch,
    NamedMismatch,
    MISMATCH,
    ParseError,
    MismatchError,
    HardError,
    Incomplete,
    NamedIncomplete,
    Other,
)
from forkparse.values import Values, EMPTY
from forkparse.source import (
    Source,
    Fork,
    Cursor,
    SequenceBuffer,
    StreamBuffer,
    from_sequence,
    from_iterable,
    from_stream,
    to_source,
)
from forkparse.ops import (
    Rule,
    ItemRule,
    Is,
    Not,
    AnyOf,
    One,
    Seq,
    Start,
    End,
    NoOp,
    Never,
    Define,
    And,
    Or,
    Repeat,
    Optional,
    Punctuated,
    AndWithArg,
    Map,
    TryMap,
    IsMap,
    Discard,
    MapRange,
    Expected,
    Name,
    Peek,
)
from forkparse.parse import (
    parse,
    parse_with_argument,
    parse_async,
    parse_with_argument_async,
)
import forkparse.general as general
