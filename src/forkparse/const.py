"""
Constant item sets, meant to be bound into `AnyOf` at grammar construction time.

```
digit = AnyOf(const.DECIMAL)
spaces = Discard(Repeat(AnyOf(const.WHITESPACES)))
```

The `*_BYTES` variants hold the integer items you get when parsing `bytes`.
"""

from __future__ import annotations
from typing import Final

WHITESPACES: Final[frozenset[str]] = frozenset({" ", "\t", "\n", "\r", "\f"})
BINARY: Final[frozenset[str]] = frozenset("01")
OCTAL: Final[frozenset[str]] = frozenset("01234567")
DECIMAL: Final[frozenset[str]] = frozenset("0123456789")
HEXADECIMAL: Final[frozenset[str]] = DECIMAL | frozenset("abcdefABCDEF")
ALPHABETIC: Final[frozenset[str]] = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ")
ALNUM: Final[frozenset[str]] = ALPHABETIC | DECIMAL
IDENTIFIER_START: Final[frozenset[str]] = ALPHABETIC | {"_"}
IDENTIFIER: Final[frozenset[str]] = ALNUM | {"_"}
SIGNS: Final[frozenset[str]] = frozenset("+-")

WHITESPACES_BYTES: Final[frozenset[int]] = frozenset(b" \t\n\r\f")
DECIMAL_BYTES: Final[frozenset[int]] = frozenset(b"0123456789")
HEXADECIMAL_BYTES: Final[frozenset[int]] = DECIMAL_BYTES | frozenset(b"abcdefABCDEF")
