"""
General use character classes, for `one_of()`.

The `*_BYTES` variants hold the byte values of the same characters, for
grammars over byte streams.
"""

from __future__ import annotations
from typing import Final

WHITESPACES: Final[frozenset[str]] = frozenset({" ", "\t", "\n", "\r", "\f"})
BINARY: Final[frozenset[str]] = frozenset("01")
OCTAL: Final[frozenset[str]] = frozenset("01234567")
DECIMAL: Final[frozenset[str]] = frozenset("0123456789")
HEXADECIMAL: Final[frozenset[str]] = DECIMAL | frozenset("abcdefABCDEF")
LOWERCASE: Final[frozenset[str]] = frozenset("abcdefghijklmnopqrstuvwxyz")
UPPERCASE: Final[frozenset[str]] = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ")
ALPHABETIC: Final[frozenset[str]] = LOWERCASE | UPPERCASE
ALNUM: Final[frozenset[str]] = ALPHABETIC | DECIMAL
IDENTIFIER_START: Final[frozenset[str]] = ALPHABETIC | {"_"}
IDENTIFIER_CONTINUE: Final[frozenset[str]] = ALNUM | {"_"}

WHITESPACES_BYTES: Final[frozenset[int]] = frozenset(ord(c) for c in WHITESPACES)
DECIMAL_BYTES: Final[frozenset[int]] = frozenset(ord(c) for c in DECIMAL)
ALPHABETIC_BYTES: Final[frozenset[int]] = frozenset(ord(c) for c in ALPHABETIC)
ALNUM_BYTES: Final[frozenset[int]] = frozenset(ord(c) for c in ALNUM)
