"""
The implementations of the main classes.
"""

from __future__ import annotations
from typing import overload, Any, Self, Literal, TypeVar, Generic, Final, Callable
from types import TracebackType

from collections.abc import Iterator, Iterable, Sequence
from dataclasses import dataclass
from functools import singledispatch


def repeat(*, start: int = 0, step: int = 1) -> Iterator[int]:
    """
    `range()` with no end.
    """
    i = start
    while True:
        yield i
        i += step


_T = TypeVar("_T")
_ItemT = TypeVar("_ItemT")
_OutT = TypeVar("_OutT")
_OutCovT = TypeVar("_OutCovT", covariant=True)
_ErrT = TypeVar("_ErrT")
_ErrCovT = TypeVar("_ErrCovT", covariant=True)



@dataclass(frozen=True, slots=True)
class Span:
    """
    A half-open range of item offsets in the source input.

    Items are counted in stream units: characters for text, bytes for byte
    input, elements for any other sequence.
    """
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.start > self.end:
            raise ValueError(f"Invalid span: start={self.start}, end={self.end}.")

    @classmethod
    def from_range(cls, value: range) -> Span:
        return cls(value.start, value.stop)

    def to_range(self) -> range:
        return range(self.start, self.end)

    def to_slice(self) -> slice:
        """For cutting the spanned part out of the source: `src[span.to_slice()]`"""
        return slice(self.start, self.end)

    def expand_before(self, more: int) -> Span:
        """Expands the span to cover `more` items before."""
        return Span(self.start - more, self.end)

    def expand_after(self, more: int) -> Span:
        """Expands the span to cover `more` items after."""
        return Span(self.start, self.end + more)

    def preceding(self, length: int) -> Span:
        """The span of length `length` that ends where this span starts."""
        return Span(self.start - length, self.start)

    def following(self, length: int) -> Span:
        """The span of length `length` that starts where this span ends."""
        return Span(self.end, self.end + length)

    def is_empty(self) -> bool:
        return self.start == self.end

    def error(self, msg: str) -> ParseError:
        """Creates a `ParseError` located at this span."""
        return ParseError(self, msg)

    def __len__(self) -> int:
        return self.end - self.start

    def __str__(self) -> str:
        return f"@{self.start}..{self.end}"


class ParseError(Exception):
    """
    The default error value for `Failed` results: a message located by a `Span`.

    Usually used for syntax errors. Not raised by the engine itself, but can be
    raised by the caller:
    ```
    r = parser.parse(stream)
    if isinstance(r, Failed):
        raise r.error.locate(src)
    ```
    """

    def __init__(self, span: Span, msg: str | None = None) -> None:
        if msg is None:
            super().__init__()
        else:
            super().__init__(msg)
        self.span: Final[Span] = span
        self.msg: Final[str | None] = msg

    def locate(self, src: str) -> Self:
        """Adds a note with the position of the error in `src`. Only meaningful for text input."""
        pos = min(self.span.start, len(src))
        # should still work with CRLF
        line = src.count("\n", 0, pos) + 1
        column = pos - src.rfind("\n", 0, pos) # magically works even when it returns -1
        self.add_note(f"At position {pos} (line {line}, column {column})")
        return self

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ParseError):
            return self.span == other.span and self.msg == other.msg
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.span, self.msg))

    def __repr__(self) -> str:
        return f"ParseError({self.span}, {self.msg!r})"

class UninitializedParserError(RuntimeError):
    """A `Recursive` parser was used before its definition was installed."""

class ParserAlreadyDefinedError(RuntimeError):
    """`Recursive.define()` was called on a handle that already has a definition."""

class InfiniteParsingLoop(RuntimeError):
    """An unbounded repetition matched without consuming any input."""



@dataclass(frozen=True, slots=True)
class Matched(Generic[_OutCovT]):
    """
    The parser matched and produced `value`.

    ```
    r = parser.parse(stream)
    if r:
        r.value     # `r` is a `Matched` object
    else:
        ...         # `r` is `NOT_MATCHED` or a `Failed` object
    ```
    """
    value: _OutCovT

    def __bool__(self) -> Literal[True]:
        return True

@dataclass(frozen=True, slots=True)
class NotMatched:
    """
    Nothing matched here. Recoverable, and the stream is left as it was.

    Use the `NOT_MATCHED` singleton.
    """

    def __bool__(self) -> Literal[False]:
        return False

    def __repr__(self) -> str:
        return "NOT_MATCHED"

NOT_MATCHED: Final[NotMatched] = NotMatched()

@dataclass(frozen=True, slots=True)
class Failed(Generic[_ErrCovT]):
    """
    The input is structurally wrong and `error` should be reported.

    Propagated by every combinator except `discard_error`.
    """
    error: _ErrCovT

    def __bool__(self) -> Literal[False]:
        return False

ParseResult = Matched[_OutT] | NotMatched | Failed[_ErrT]
"""`ParseResult[OutputType, ErrorType]`"""



@singledispatch
def as_items(source: Iterable[_T]) -> Sequence[_T]:
    """
    Converts an input value into an indexable, restartable sequence of items.

    Iterables without a dedicated registration are copied into a tuple, so the
    stream does not observe later mutations. Register more types with
    `as_items.register(...)`.
    """
    return tuple(source)

@as_items.register
def _(source: str) -> Sequence[str]:
    return source

@as_items.register(bytes)
@as_items.register(bytearray)
@as_items.register(memoryview)
def _(source: bytes | bytearray | memoryview) -> Sequence[int]:
    return bytes(source)

@as_items.register
def _(source: range) -> Sequence[int]:
    return source

@as_items.register
def _(source: tuple) -> Sequence[Any]:
    return source



class Stream(Generic[_ItemT]):
    """
    The read head over a sequence of items.

    ```
    stream = Stream("some text")
    result = parser.parse(stream)
    ```

    Speculative parsing is done in transactions:
    ```
    with stream.transaction() as tx:
        if not (r := foo.parse(tx)):
            return r                    # Not committed, `stream` is left untouched.
        return tx.matched(r.value)      # Committed, `stream` advances.
    ```
    """
    def __init__(self, source: Iterable[_ItemT]) -> None:
        self._items: Sequence[_ItemT] = as_items(source)
        """The items being parsed. Shared with forks."""
        self._pos: int = 0
        """Index of the next item."""
        self._span: Span = Span(0, 0)
        """Span of the items consumed since the start of the innermost transaction."""

    @property
    def position(self) -> int:
        """The offset of the next item."""
        return self._pos

    def span(self) -> Span:
        """The span of all input consumed since the start of the latest transaction."""
        return self._span

    def is_eof(self) -> bool:
        """Whether the end of the input has been reached."""
        return self._pos >= len(self._items)

    def remaining(self) -> int:
        """The amount of items left."""
        return len(self._items) - self._pos

    def next(self) -> Matched[_ItemT] | NotMatched:
        """Consumes and returns the next item. `NOT_MATCHED` at the end of the input."""
        if self._pos >= len(self._items):
            return NOT_MATCHED
        item = self._items[self._pos]
        self._pos += 1
        self._span = Span(self._span.start, self._span.end + 1)
        return Matched(item)

    @overload
    def transaction(self) -> Transaction[_ItemT]: ...
    @overload
    def transaction(self, body: Callable[[Stream[_ItemT]], ParseResult[_OutT, Any]]) -> ParseResult[_OutT, Any]: ...

    def transaction(
        self,
        body: Callable[[Stream[_ItemT]], ParseResult[_OutT, Any]] | None = None,
    ) -> Transaction[_ItemT] | ParseResult[_OutT, Any]:
        """
        Without arguments, returns a `Transaction` to use as a context manager.

        With a `body`, runs it on a fork of the stream and commits only if it
        returned a `Matched` result. Returns the result of the body.
        """
        if body is None:
            return Transaction(self)
        with Transaction(self) as tx:
            result = body(tx)
            if result:
                tx.commit()
            return result

    def _merge(self, fork: Stream[_ItemT]) -> None:
        self._pos = fork._pos
        self._span = Span(self._span.start, fork._span.end)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} at {self._pos}/{len(self._items)} span={self._span}>"


class Transaction(Stream[_ItemT]):
    """
    A fork of a `Stream`, used as a context manager.

    Create using `Stream.transaction()` instead.

    Parse from the transaction inside the `with` block. When the block is
    exited, a committed transaction is merged into its parent stream. An
    uncommitted one, or one left by an exception, is discarded.
    ```
    with stream.transaction() as tx:
        return tx.matched(value)    # Commit
        return NOT_MATCHED          # Rollback
        return Failed(error)        # Rollback
    ```
    """
    def __init__(self, parent: Stream[_ItemT]) -> None:
        self._items = parent._items
        self._pos = parent._pos
        self._span = Span(parent._span.end, parent._span.end)
        self.parent: Final[Stream[_ItemT]] = parent
        """The stream this transaction was forked from."""
        self.committed: bool = False

    def commit(self) -> None:
        """Committed transactions are merged into the parent on exit."""
        self.committed = True

    def uncommit(self) -> None:
        self.committed = False

    def matched(self, value: _OutT) -> Matched[_OutT]:
        """Commits and returns a `Matched` result."""
        self.committed = True
        return Matched(value)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exctype: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc is None and self.committed:
            self.parent._merge(self)
        return False
