"""
Parser combinators over any sequence of items, with a distinction between not
finding what is looked for and encountering an error that should be reported.

See the objects for more explanations.

See the `ebbparse.general` module for general purpose parsers you can use as examples.

Defining parsers:
```
word = one_of(const.ALPHABETIC).repeated(1).map("".join)
number = one_of(const.DECIMAL).repeated(1).map(lambda digits: int("".join(digits)))
assignment = (
    word
    .then(exact("="))
    .then(number.or_error(lambda span: span.error("Expected a number after `=`.")))
    .map(lambda r: (r[0][0], r[1]))
)
```

Writing a rule by hand:
```
@rule
def foo(stream: Stream[str]) -> ParseResult[int, ParseError]:
    with stream.transaction() as tx:
        ...
        return tx.matched(10)                       # matched, commit
        return NOT_MATCHED                          # no match, roll back
        return Failed(tx.span().error("Reason."))   # error, roll back
```

Using parsers:
```
stream = Stream("blablabla")

result = foo.parse(stream)
if result:
    ... # `result` is a `Matched` object
elif isinstance(result, Failed):
    ... # `result.error` should be reported
else:
    ... # `result` is `NOT_MATCHED`
```
"""

import ebbparse.const as const
import ebbparse.main
from ebbparse.main import (
    repeat,
    Span,
    ParseError,
    UninitializedParserError,
    ParserAlreadyDefinedError,
    InfiniteParsingLoop,
    Matched,
    NotMatched,
    NOT_MATCHED,
    Failed,
    ParseResult,
    as_items,
    Stream,
    Transaction,
)
import ebbparse.combinators
from ebbparse.combinators import (
    Parser,
    ParserParameter,
    convert_parser_parameter,
    FnParser,
    rule,
    Then,
    Choice,
    choice,
    Opt,
    Not,
    not_,
    Repeated,
    Map,
    Spanned,
    ThenPeek,
    ThenWith,
    ThenPeekWith,
    OrError,
    ThenError,
    DiscardError,
    Dbg,
    deny,
    Recursive,
    recursive,
    OneOf,
    one_of,
    Exact,
    exact,
    exact_utf8,
    AnyItem,
    any_,
    Nil,
    nil,
    End,
    end,
)
import ebbparse.general as general
