from __future__ import annotations
from typing import Any

from collections.abc import Mapping, Sequence

import ebbparse.const as const
from ebbparse.main import ParseError
from ebbparse.combinators import (
    Parser,
    choice,
    deny,
    exact,
    one_of,
    not_,
    any_,
)

# whitespace and words

def whitespace() -> Parser[str, str, ParseError]:
    """A single whitespace character."""
    return one_of(const.WHITESPACES)

def ws0() -> Parser[str, None, ParseError]:
    """Zero or more whitespaces."""
    return whitespace().repeated().discard()

def ws1() -> Parser[str, None, ParseError]:
    """One or more whitespaces."""
    return whitespace().repeated(1).discard()

def identifier() -> Parser[str, str, ParseError]:
    """A letter or `_`, followed by letters, digits or `_`."""
    return (
        one_of(const.IDENTIFIER_START)
        .then(one_of(const.IDENTIFIER_CONTINUE).repeated())
        .map(lambda r: r[0] + "".join(r[1]))
    )

def keyword(word: str) -> Parser[str, str, ParseError]:
    """Matches `word`, unless it's only the start of a longer identifier."""
    return exact(word).then_peek(not_(one_of(const.IDENTIFIER_CONTINUE)))

# integer

_PREFIXES: tuple[tuple[str, frozenset[str], int, str], ...] = (
    ("0b", const.BINARY, 2, "binary"),
    ("0o", const.OCTAL, 8, "octal"),
    ("0x", const.HEXADECIMAL, 16, "hexadecimal"),
)

_BASE_DIGITS: dict[int, frozenset[str]] = {
    2: const.BINARY,
    8: const.OCTAL,
    10: const.DECIMAL,
    16: const.HEXADECIMAL,
}

def _digits(charset: frozenset[str], base: int) -> Parser[str, int, ParseError]:
    return one_of(charset).repeated(1).map(lambda digits: int("".join(digits), base))

def _prefixed(prefix: str, charset: frozenset[str], base: int, name: str) -> Parser[str, int, ParseError]:
    return exact(prefix).then(
        _digits(charset, base).or_error(
            lambda span: span.expand_before(len(prefix)).error(f"Expected a {name} digit after {prefix}.")
        )
    ).map(lambda r: r[1])

def integer_number(base: int = 0) -> Parser[str, int, ParseError]:
    """
    An integer, with an optional `-` sign.

    If `base` is 0, the base is interpreted from the string.
    - `0b`: Binary
    - `0o`: Octal
    - `0x`: Hexadecimal

    A number directly followed by a letter is an error.
    """
    if base == 0:
        unsigned = choice(
            *(_prefixed(prefix, charset, prefix_base, name) for prefix, charset, prefix_base, name in _PREFIXES),
            _digits(const.DECIMAL, 10),
        )
    elif base in _BASE_DIGITS:
        unsigned = _digits(_BASE_DIGITS[base], base)
    else:
        raise ValueError(f"Unsupported base: {base}")
    return (
        exact("-").opt()
        .then(unsigned)
        .map(lambda r: -r[1] if r[0] is not None else r[1])
        .then_peek(_no_letter_after())
    )

def _no_letter_after() -> Parser[str, None, ParseError]:
    return deny(
        one_of(const.IDENTIFIER_START),
        lambda span, char: span.error(f"Unexpected character `{char}` after a number."),
    )

# float

def float_number() -> Parser[str, float, ParseError]:
    """
    A decimal number with a fractional part, an exponent or both, with an optional `-` sign.

    `1.5`, `.5`, `1.e3`, `-2.5E-3`

    Plain integers don't match, use `integer_number()` for those.
    """
    digits = one_of(const.DECIMAL).repeated(1).map("".join)
    exponent = (one_of("eE") + one_of("+-").opt() + digits).map(lambda r: f"e{r[0][1] or ''}{r[1]}")
    unsigned = choice(
        (digits + exact(".") + digits + exponent.opt()).map(lambda r: f"{r[0][0][0]}.{r[0][1]}{r[1] or ''}"),
        (digits + exact(".").opt() + exponent).map(lambda r: f"{r[0][0]}{r[1]}"),
        (exact(".") + digits + exponent.opt()).map(lambda r: f".{r[0][1]}{r[1] or ''}"),
    )
    return (
        exact("-").opt()
        .then(unsigned)
        .map(lambda r: float(f"{r[0] or ''}{r[1]}"))
        .then_peek(_no_letter_after())
    )

# quoted string

GENERAL_ESCAPES = {
    'b': '\b',
    'f': '\f',
    'n': '\n',
    'r': '\r',
    't': '\t',
}

def unicode_escape() -> Parser[str, str, ParseError]:
    """`u` followed by 4 hexadecimal characters."""
    return exact("u").then(
        one_of(const.HEXADECIMAL).repeated(4, 4).or_error(
            lambda span: span.expand_before(1).error("Expected 4 hexadecimal characters after unicode escape sequence.")
        )
    ).map(lambda r: chr(int("".join(r[1]), base=16)))

def _constant(value: str) -> Any:
    return lambda _: value

def quoted_string(
    *,
    quotes: Sequence[str] = ('"', "'"),
    escape: str = '\\',
    custom_escapes: Mapping[str, str] = GENERAL_ESCAPES,
    advanced_escapes: Sequence[Parser[str, str, ParseError]] = (),
) -> Parser[str, str, ParseError]:
    """
    A string between quotes, with escape sequences.

    `\\uXXXX` unicode escapes are always supported, `advanced_escapes` are tried before them.
    Escaping any other character results in that character.
    """
    escape_sequences: list[Parser[str, str, ParseError]] = [
        exact(sequence).map(_constant(result)) for sequence, result in custom_escapes.items()
    ]
    escape_sequences.extend(advanced_escapes)
    escape_sequences.append(unicode_escape())
    escape_sequences.append(any_())
    escaped = exact(escape).then(
        choice(escape_sequences).or_error(
            lambda span: span.expand_before(len(escape)).error(f"Expected a character to escape after `{escape}`.")
        )
    ).map(lambda r: r[1])

    def quoted(quote: str) -> Parser[str, str, ParseError]:
        plain = not_(choice(quote, escape)).then(any_()).map(lambda r: r[1])
        content = choice(escaped, plain).repeated().map("".join)
        return exact(quote).spanned().then_with(
            lambda opening: content.then(
                exact(quote).or_error(
                    lambda span: span.error(f"Expected closing quote `{quote}` for the quote opened at {opening[0]}.")
                )
            )
        ).map(lambda r: r[1][0])

    return choice([quoted(quote) for quote in quotes])

def raw_quoted_string(
    *,
    quotes: Sequence[str] = ('"', "'"),
    prefix: str = "r",
) -> Parser[str, str, ParseError]:
    """A quoted string without escape sequences, prefixed by `prefix`: `r"C:\\path"`"""
    def quoted(quote: str) -> Parser[str, str, ParseError]:
        content = not_(quote).then(any_()).map(lambda r: r[1]).repeated().map("".join)
        return exact(prefix + quote).then(content).then(
            exact(quote).or_error(lambda span: span.error(f"Expected closing quote `{quote}`."))
        ).map(lambda r: r[0][1])

    return choice([quoted(quote) for quote in quotes])
