"""
The `Parser` base class and the combinators.

Every combinator is built only from `Parser.parse()`, `Stream.next()` and
`Stream.transaction()`. A combinator that does not match leaves the stream as
it was, and a `Failed` result is returned as soon as it's encountered, without
trying further alternatives.

| PEG       | Equivalent
|:----------|:----
| `a b`     | `a.then(b)` or `a + b`
| `a / b`   | `a.or_(b)`, `a | b` or `choice(a, b)`
| `a &b`    | `a.then_peek(b)`
| `a !b`    | `a.then_peek(not_(b))`
| `a?`      | `a.opt()`
| `a*`      | `a.repeated()`
| `a+`      | `a.repeated(1)`
| `.`       | `any_()`
| `[chars]` | `one_of(chars)`
"""

from __future__ import annotations
from typing import Any, Self, TypeVar, Generic, Callable

from abc import ABC, abstractmethod
from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass
import logging

from ebbparse.main import (
    repeat,
    Span,
    InfiniteParsingLoop,
    UninitializedParserError,
    ParserAlreadyDefinedError,
    Matched,
    NOT_MATCHED,
    Failed,
    ParseResult,
    Stream,
    as_items,
)

logger = logging.getLogger(__name__)

_I = TypeVar("_I")
_O = TypeVar("_O")
_O2 = TypeVar("_O2")
_E = TypeVar("_E")


class Parser(ABC, Generic[_I, _O, _E]):
    """
    Parses from a `Stream` of `_I` items, producing an `_O` output or an `_E` error.

    When used for typing: `Parser[ItemType, OutputType, ErrorType]`

    Parsers are immutable, so one parser can be reused in many compositions.
    """

    @abstractmethod
    def parse(self, stream: Stream[_I]) -> ParseResult[_O, _E]:
        """
        Parses 0 to many items from `stream`.

        Returns `Matched(output)`, `NOT_MATCHED` (the stream is left as it was)
        or `Failed(error)`, which should be reported to the user.
        """

    def then(self, other: ParserParameter) -> Then[_I, _O, Any, _E]:
        """
        Parses `self` then `other`. Returns both outputs as a tuple.

        Rolls back if either of them doesn't match.
        """
        return Then(self, convert_parser_parameter(other))

    def __add__(self, other: ParserParameter) -> Then[_I, _O, Any, _E]:
        return self.then(other)

    def __radd__(self, other: ParserParameter) -> Then[_I, Any, _O, _E]:
        return convert_parser_parameter(other).then(self)

    def or_(self, other: ParserParameter) -> Choice[_I, _O, _E]:
        """
        Parses `self`, or `other` if `self` doesn't match.

        Both must have the same output type. An error from `self` is returned
        without trying `other`. Prefer `choice()` when chaining many.
        """
        return Choice((self, convert_parser_parameter(other)))

    def __or__(self, other: ParserParameter) -> Choice[_I, _O, _E]:
        return self.or_(other)

    def __ror__(self, other: ParserParameter) -> Choice[_I, _O, _E]:
        return convert_parser_parameter(other).or_(self)

    def opt(self) -> Opt[_I, _O, _E]:
        """Always matches. The output is `None` if `self` didn't match."""
        return Opt(self)

    def repeated(self, at_least: int | range = 0, at_most: int | None = None) -> Repeated[_I, _O, _E]:
        """
        Parses `self` as many times as it matches, up to `at_most` times (inclusive),
        and returns a list of the outputs.

        Doesn't match if `self` matched less than `at_least` times. Stops when
        reaching `at_most` **even if it could match more**.

        The bounds can also be given as a `range`: `repeated(range(2, 5))` is
        `repeated(2, 4)`.
        """
        if isinstance(at_least, range):
            if at_most is not None:
                raise TypeError("`at_most` can't be given along with a range.")
            if at_least.step != 1:
                raise ValueError("Repetition ranges must have a step of 1.")
            at_least, at_most = at_least.start, at_least.stop - 1
        return Repeated(self, at_least, at_most)

    def map(self, function: Callable[[_O], _O2]) -> Map[_I, _O, _O2, _E]:
        """Transforms the output with `function`."""
        return Map(self, function)

    def discard(self) -> Map[_I, _O, None, _E]:
        """Replaces the output with `None`."""
        return Map(self, _discard)

    def spanned(self) -> Spanned[_I, _O, _E]:
        """Returns the output along with the span of what `self` consumed: `(span, output)`"""
        return Spanned(self)

    def then_peek(self, other: ParserParameter) -> ThenPeek[_I, _O, _E]:
        """
        Parses `self` then checks that `other` matches after it, without consuming it.

        Returns only the output of `self`.
        """
        return ThenPeek(self, convert_parser_parameter(other))

    def then_with(self, function: Callable[[_O], ParserParameter]) -> ThenWith[_I, _O, _E]:
        """
        Parses `self`, then passes its output to `function` which returns the
        next parser to use.

        Returns both outputs as a tuple. The output of `self` is shared between
        `function` and the result, so it shouldn't be mutated.
        """
        return ThenWith(self, function)

    def then_peek_with(self, function: Callable[[_O], ParserParameter]) -> ThenPeekWith[_I, _O, _E]:
        """Mix of `then_peek()` and `then_with()`."""
        return ThenPeekWith(self, function)

    def or_error(self, error: Callable[[Span], _E]) -> OrError[_I, _O, _E]:
        """
        If `self` doesn't match, fails with the error produced by `error(span)`.

        The span is the empty span at the position where `self` was tried.
        """
        return OrError(self, error)

    def then_error(self, error: Callable[[Span, _O], _E]) -> ThenError[_I, _O, _E]:
        """
        If `self` matches, fails with the error produced by `error(span, output)`.

        For rejecting patterns that are recognized as invalid. Never consumes.
        Doesn't match if `self` doesn't match.

        Better than `not_(b).or_error(...)` since the error can use the output:
        ```
        a.then_peek(b.then_error(lambda span, out: ...))
        ```
        """
        return ThenError(self, error)

    def discard_error(self) -> DiscardError[_I, _O, _E]:
        """
        Turns errors from `self` into non-matches.

        This hides errors from the user, so use sparingly. Every discarded error
        is logged at the DEBUG level.
        """
        return DiscardError(self)

    def dbg(self, title: str) -> Dbg[_I, _O, _E]:
        """Logs the span and the result of `self` at the DEBUG level. Returns what `self` returns."""
        return Dbg(self, title)


ParserParameter = Parser[Any, Any, Any] | str | bytes | Callable[[Stream[Any]], ParseResult[Any, Any]]

def convert_parser_parameter(parser: ParserParameter) -> Parser[Any, Any, Any]:
    """
    `str` and `bytes` become `exact(...)`, callables become `FnParser`s.
    """
    if isinstance(parser, Parser):
        return parser
    elif isinstance(parser, (str, bytes)):
        return exact(parser)
    elif callable(parser):
        return FnParser(parser)
    else:
        raise TypeError(f"Can't use {parser!r} as a parser.")

def convert_parser_parameters(parsers: Iterable[ParserParameter]) -> tuple[Parser[Any, Any, Any], ...]:
    return tuple(convert_parser_parameter(parser) for parser in parsers)

def _discard(value: object) -> None:
    return None



@dataclass(frozen=True, eq=False)
class FnParser(Parser[_I, _O, _E]):
    """
    A `Parser` made from a plain function.

    The function runs inside a transaction, so it doesn't have to roll back
    by itself when it doesn't match.
    """
    function: Callable[[Stream[_I]], ParseResult[_O, _E]]

    def parse(self, stream: Stream[_I]) -> ParseResult[_O, _E]:
        return stream.transaction(self.function)

def rule(function: Callable[[Stream[_I]], ParseResult[_O, _E]]) -> FnParser[_I, _O, _E]:
    """
    Decorator for writing a parser as a function.

    ```
    @rule
    def digit(stream: Stream[str]) -> ParseResult[int, ParseError]:
        if (r := stream.next()) and r.value.isdigit():
            return Matched(int(r.value))
        return NOT_MATCHED
    ```
    """
    return FnParser(function)


@dataclass(frozen=True, eq=False)
class Then(Parser[_I, tuple[_O, _O2], _E]):
    """See `Parser.then()`."""
    first: Parser[_I, _O, _E]
    second: Parser[_I, _O2, _E]

    def parse(self, stream: Stream[_I]) -> ParseResult[tuple[_O, _O2], _E]:
        with stream.transaction() as tx:
            if not (first := self.first.parse(tx)):
                return first
            if not (second := self.second.parse(tx)):
                return second
            return tx.matched((first.value, second.value))


@dataclass(frozen=True, eq=False)
class Choice(Parser[_I, _O, _E]):
    """See `choice()`."""
    parsers: tuple[Parser[_I, _O, _E], ...]

    def __post_init__(self) -> None:
        if len(self.parsers) <= 0:
            raise ValueError("At least one parser required.")

    def parse(self, stream: Stream[_I]) -> ParseResult[_O, _E]:
        with stream.transaction() as tx:
            for parser in self.parsers:
                result = tx.transaction(parser.parse)
                if result:
                    return tx.matched(result.value)
                if isinstance(result, Failed):
                    return result
            return NOT_MATCHED

    def or_(self, other: ParserParameter) -> Choice[_I, _O, _E]:
        # flattens `a | b | c` into a single choice
        return Choice((*self.parsers, convert_parser_parameter(other)))

def choice(*parsers: ParserParameter | Iterable[ParserParameter]) -> Choice[Any, Any, Any]:
    """
    Tries each parser in order and returns the output of the first one that matches.

    Returns the error as soon as one of them fails. Doesn't match if none of
    them match.

    Accepts the parsers either as arguments or as a single list or tuple:
    `choice(a, b, c)`, `choice([a, b, c])`
    """
    if len(parsers) == 1 and isinstance(parsers[0], (list, tuple)):
        members = parsers[0]
    else:
        members = parsers
    return Choice(convert_parser_parameters(members))


@dataclass(frozen=True, eq=False)
class Opt(Parser[_I, _O | None, _E]):
    """See `Parser.opt()`."""
    parser: Parser[_I, _O, _E]

    def parse(self, stream: Stream[_I]) -> ParseResult[_O | None, _E]:
        result = stream.transaction(self.parser.parse)
        if isinstance(result, Failed):
            return result
        return Matched(result.value if result else None)


@dataclass(frozen=True, eq=False)
class Not(Parser[_I, None, _E]):
    """See `not_()`."""
    parser: Parser[_I, Any, _E]

    def parse(self, stream: Stream[_I]) -> ParseResult[None, _E]:
        with stream.transaction() as tx:
            result = self.parser.parse(tx)
        if isinstance(result, Failed):
            return result
        return NOT_MATCHED if result else Matched(None)

def not_(parser: ParserParameter) -> Not[Any, Any]:
    """
    Matches (with `None` as the output) only if `parser` doesn't match. Never consumes.

    Errors from `parser` are returned.
    """
    return Not(convert_parser_parameter(parser))


@dataclass(frozen=True, eq=False)
class Repeated(Parser[_I, list[_O], _E]):
    """See `Parser.repeated()`."""
    parser: Parser[_I, _O, _E]
    at_least: int = 0
    at_most: int | None = None

    def __post_init__(self) -> None:
        if self.at_least < 0:
            raise ValueError("The minimum amount of repetitions can't be negative.")
        if self.at_most is not None and self.at_most < self.at_least:
            raise ValueError("The maximum amount of repetitions can't be less than the minimum.")

    def parse(self, stream: Stream[_I]) -> ParseResult[list[_O], _E]:
        with stream.transaction() as tx:
            outputs: list[_O] = []
            for count in repeat():
                if self.at_most is not None and count >= self.at_most:
                    break
                start_pos = tx.position
                result = tx.transaction(self.parser.parse)
                if isinstance(result, Failed):
                    return result
                if not result:
                    break
                outputs.append(result.value)
                if self.at_most is None and tx.position == start_pos:
                    raise InfiniteParsingLoop(f"{self.parser!r} matched without consuming anything inside an unbounded repetition.")
            if len(outputs) < self.at_least:
                return NOT_MATCHED
            return tx.matched(outputs)


@dataclass(frozen=True, eq=False)
class Map(Parser[_I, _O2, _E]):
    """See `Parser.map()`."""
    parser: Parser[_I, _O, _E]
    function: Callable[[_O], _O2]

    def parse(self, stream: Stream[_I]) -> ParseResult[_O2, _E]:
        with stream.transaction() as tx:
            if not (result := self.parser.parse(tx)):
                return result
            return tx.matched(self.function(result.value))


@dataclass(frozen=True, eq=False)
class Spanned(Parser[_I, tuple[Span, _O], _E]):
    """See `Parser.spanned()`."""
    parser: Parser[_I, _O, _E]

    def parse(self, stream: Stream[_I]) -> ParseResult[tuple[Span, _O], _E]:
        with stream.transaction() as tx:
            if not (result := self.parser.parse(tx)):
                return result
            return tx.matched((tx.span(), result.value))


@dataclass(frozen=True, eq=False)
class ThenPeek(Parser[_I, _O, _E]):
    """See `Parser.then_peek()`."""
    parser: Parser[_I, _O, _E]
    peek: Parser[_I, Any, _E]

    def parse(self, stream: Stream[_I]) -> ParseResult[_O, _E]:
        with stream.transaction() as tx:
            if not (result := self.parser.parse(tx)):
                return result
            # never committed
            with tx.transaction() as peek_tx:
                peeked = self.peek.parse(peek_tx)
            if not peeked:
                return peeked
            return tx.matched(result.value)


@dataclass(frozen=True, eq=False)
class ThenWith(Parser[_I, tuple[_O, Any], _E]):
    """See `Parser.then_with()`."""
    parser: Parser[_I, _O, _E]
    function: Callable[[_O], ParserParameter]

    def parse(self, stream: Stream[_I]) -> ParseResult[tuple[_O, Any], _E]:
        with stream.transaction() as tx:
            if not (first := self.parser.parse(tx)):
                return first
            following = convert_parser_parameter(self.function(first.value))
            if not (second := following.parse(tx)):
                return second
            return tx.matched((first.value, second.value))


@dataclass(frozen=True, eq=False)
class ThenPeekWith(Parser[_I, _O, _E]):
    """See `Parser.then_peek_with()`."""
    parser: Parser[_I, _O, _E]
    function: Callable[[_O], ParserParameter]

    def parse(self, stream: Stream[_I]) -> ParseResult[_O, _E]:
        with stream.transaction() as tx:
            if not (result := self.parser.parse(tx)):
                return result
            peek = convert_parser_parameter(self.function(result.value))
            with tx.transaction() as peek_tx:
                peeked = peek.parse(peek_tx)
            if not peeked:
                return peeked
            return tx.matched(result.value)


@dataclass(frozen=True, eq=False)
class OrError(Parser[_I, _O, _E]):
    """See `Parser.or_error()`."""
    parser: Parser[_I, _O, _E]
    error: Callable[[Span], _E]

    def parse(self, stream: Stream[_I]) -> ParseResult[_O, _E]:
        with stream.transaction() as tx:
            result = self.parser.parse(tx)
            if result:
                return tx.matched(result.value)
            if isinstance(result, Failed):
                return result
            return Failed(self.error(tx.span()))


@dataclass(frozen=True, eq=False)
class ThenError(Parser[_I, None, _E]):
    """See `Parser.then_error()`."""
    parser: Parser[_I, _O, _E]
    error: Callable[[Span, _O], _E]

    def parse(self, stream: Stream[_I]) -> ParseResult[None, _E]:
        # rolls back in every case
        with stream.transaction() as tx:
            result = self.parser.parse(tx)
            span = tx.span()
        if result:
            return Failed(self.error(span, result.value))
        return result


@dataclass(frozen=True, eq=False)
class DiscardError(Parser[_I, _O, _E]):
    """See `Parser.discard_error()`."""
    parser: Parser[_I, _O, _E]

    def parse(self, stream: Stream[_I]) -> ParseResult[_O, _E]:
        result = stream.transaction(self.parser.parse)
        if isinstance(result, Failed):
            logger.debug("Discarded error at position %d: %r", stream.position, result.error)
            return NOT_MATCHED
        return result


@dataclass(frozen=True, eq=False)
class Dbg(Parser[_I, _O, _E]):
    """See `Parser.dbg()`."""
    parser: Parser[_I, _O, _E]
    title: str

    def parse(self, stream: Stream[_I]) -> ParseResult[_O, _E]:
        result = self.parser.parse(stream)
        logger.debug("%s: %s %r", self.title, stream.span(), result)
        return result


def deny(pattern: ParserParameter, error: Callable[[Span, Any], _E]) -> Map[Any, Any, None, _E]:
    """
    Shorthand for a deny rule.

    If `pattern` matches, fails with the error produced by `error(span, output)`.
    Otherwise matches `None` without consuming.
    """
    return convert_parser_parameter(pattern).then_error(error).opt().discard()



class Recursive(Parser[_I, _O, _E]):
    """
    A parser that can refer to itself.

    Create using `recursive()`, or create it empty and `define()` it later for
    mutually recursive rules:
    ```
    expr = Recursive()
    term = choice(number, exact("(") + expr + exact(")"))
    expr.define(term + (exact("+") + term).repeated())
    ```

    The definition is written once. Parsing before that raises an
    `UninitializedParserError`.
    """
    def __init__(self) -> None:
        self._definition: Parser[_I, _O, _E] | None = None

    def is_defined(self) -> bool:
        return self._definition is not None

    def define(self, parser: ParserParameter) -> Self:
        """Installs the definition. Can only be called once."""
        if self._definition is not None:
            raise ParserAlreadyDefinedError("This recursive parser is already defined.")
        self._definition = convert_parser_parameter(parser)
        logger.debug("Defined recursive parser %#x as %s", id(self), type(self._definition).__name__)
        return self

    def parse(self, stream: Stream[_I]) -> ParseResult[_O, _E]:
        if self._definition is None:
            raise UninitializedParserError(
                "A recursive parser must not be parsed before its definition is installed. "
                "(Don't call `parse` inside the function given to `recursive()`.)"
            )
        return stream.transaction(self._definition.parse)

    def __repr__(self) -> str:
        state = "defined" if self._definition is not None else "undefined"
        return f"<Recursive {state} at {id(self):#x}>"

def recursive(function: Callable[[Recursive[Any, Any, Any]], ParserParameter]) -> Recursive[Any, Any, Any]:
    """
    Creates a recursive parser.

    `function` receives the parser being defined, so it can be composed with
    other parsers to match recursive structures, and returns its definition.
    ```
    nested = recursive(lambda r: one_of("a") + (r | one_of("c")))
    ```
    """
    handle: Recursive[Any, Any, Any] = Recursive()
    return handle.define(function(handle))



@dataclass(frozen=True, eq=False)
class OneOf(Parser[_I, _I, _E]):
    """See `one_of()`."""
    members: Collection[_I]

    def parse(self, stream: Stream[_I]) -> ParseResult[_I, _E]:
        with stream.transaction() as tx:
            if not (item := tx.next()):
                return item
            try:
                found = item.value in self.members
            except TypeError: # unhashable item, hashed members
                found = any(item.value == member for member in self.members)
            if found:
                return tx.matched(item.value)
            return NOT_MATCHED

def one_of(group: Iterable[_I]) -> OneOf[_I, Any]:
    """
    Parses a single item that is equal to one of the items of `group`.

    `group` is converted with `as_items()`: `one_of("abc")` for text,
    `one_of(b"abc")` for bytes, `one_of(range(0x30, 0x3A))`...
    """
    if isinstance(group, (frozenset, range)):
        return OneOf(group)
    if isinstance(group, set):
        return OneOf(frozenset(group))
    items = as_items(group)
    try:
        return OneOf(frozenset(items))
    except TypeError: # unhashable items
        return OneOf(tuple(items))


@dataclass(frozen=True, eq=False)
class Exact(Parser[_I, _O, _E]):
    """See `exact()` and `exact_utf8()`."""
    items: Sequence[_I]
    output: _O

    def parse(self, stream: Stream[_I]) -> ParseResult[_O, _E]:
        with stream.transaction() as tx:
            for expected in self.items:
                if not (item := tx.next()) or item.value != expected:
                    return NOT_MATCHED
            return tx.matched(self.output)

def exact(items: Iterable[_I]) -> Exact[_I, Any, Any]:
    """
    Parses the items of `items` in order. Case sensitive.

    Returns `items` as-is when it is a sequence. Other iterables (generators...)
    are returned as a tuple of their items.

    `exact("abc")` for text, `exact(b"abc")` for bytes.
    """
    sequence = as_items(items)
    return Exact(sequence, items if isinstance(items, Sequence) else sequence)

def exact_utf8(text: str) -> Exact[int, str, Any]:
    """Parses `text` encoded as UTF-8 from a byte stream. Returns `text`."""
    return Exact(text.encode("utf-8"), text)


@dataclass(frozen=True, eq=False)
class AnyItem(Parser[_I, _I, _E]):
    """See `any_()`."""

    def parse(self, stream: Stream[_I]) -> ParseResult[_I, _E]:
        return stream.next()

def any_() -> AnyItem[Any, Any]:
    """Parses any single item. Only doesn't match at the end of the input."""
    return AnyItem()


@dataclass(frozen=True, eq=False)
class Nil(Parser[Any, None, _E]):
    """See `nil()`."""

    def parse(self, stream: Stream[Any]) -> ParseResult[None, _E]:
        return Matched(None)

def nil() -> Nil[Any]:
    """
    Parses nothing, which always matches.

    Useful as the start of a `then_peek()` chain for pure lookahead checks:
    `nil().then_peek(not_(...))`
    """
    return Nil()


@dataclass(frozen=True, eq=False)
class End(Parser[Any, None, _E]):
    """See `end()`."""

    def parse(self, stream: Stream[Any]) -> ParseResult[None, _E]:
        with stream.transaction() as tx:
            item = tx.next()
        return NOT_MATCHED if item else Matched(None)

def end() -> End[Any]:
    """Matches only at the end of the input. Never consumes."""
    return End()
