"""Tests for the general purpose parsers."""

from __future__ import annotations
from typing import Any

import pytest

from ebbparse import NOT_MATCHED, Failed, Matched, ParseError, Parser, Span, Stream, exact, general


def run(parser: Parser[Any, Any, Any], source: Any) -> tuple[Any, Stream[Any]]:
    stream = Stream(source)
    return parser.parse(stream), stream


class TestWhitespace:
    def test_ws0(self):
        result, stream = run(general.ws0(), "  \ta")
        assert result == Matched(None)
        assert stream.position == 3

    def test_ws0_without_whitespace(self):
        result, stream = run(general.ws0(), "a")
        assert result == Matched(None)
        assert stream.position == 0

    def test_ws1(self):
        assert run(general.ws1(), " a")[0] == Matched(None)
        assert run(general.ws1(), "a")[0] == NOT_MATCHED


class TestWords:
    def test_identifier(self):
        result, stream = run(general.identifier(), "foo_1 bar")
        assert result == Matched("foo_1")
        assert stream.position == 5

    def test_identifier_cannot_start_with_digit(self):
        assert run(general.identifier(), "1foo")[0] == NOT_MATCHED

    def test_keyword(self):
        result, stream = run(general.keyword("let"), "let x")
        assert result == Matched("let")
        assert stream.position == 3

    def test_keyword_prefix_of_identifier(self):
        result, stream = run(general.keyword("let"), "letter")
        assert result == NOT_MATCHED
        assert stream.position == 0


class TestIntegerNumber:
    @pytest.mark.parametrize(("source", "value"), [
        ("123", 123),
        ("-45", -45),
        ("0", 0),
        ("0x1F", 31),
        ("0b101", 5),
        ("0o17", 15),
        ("-0x10", -16),
    ])
    def test_values(self, source: str, value: int):
        result, stream = run(general.integer_number(), source)
        assert result == Matched(value)
        assert stream.is_eof()

    def test_stops_before_other_characters(self):
        result, stream = run(general.integer_number(), "12+3")
        assert result == Matched(12)
        assert stream.position == 2

    def test_missing_digits_after_prefix(self):
        result, stream = run(general.integer_number(), "0x")
        assert result == Failed(ParseError(Span(0, 2), "Expected a hexadecimal digit after 0x."))
        assert stream.position == 0

    def test_letter_after_number(self):
        result, _ = run(general.integer_number(), "12abc")
        assert result == Failed(ParseError(Span(2, 3), "Unexpected character `a` after a number."))

    def test_sign_alone(self):
        result, stream = run(general.integer_number(), "-")
        assert result == NOT_MATCHED
        assert stream.position == 0

    def test_explicit_base(self):
        assert run(general.integer_number(16), "ff")[0] == Matched(255)
        assert run(general.integer_number(2), "102")[0] == Matched(2)

    def test_unsupported_base(self):
        with pytest.raises(ValueError):
            general.integer_number(3)


class TestFloatNumber:
    @pytest.mark.parametrize(("source", "value"), [
        ("1.5", 1.5),
        (".5", 0.5),
        ("1e3", 1000.0),
        ("1.e2", 100.0),
        ("-2.5E-3", -0.0025),
        ("3.25e+1", 32.5),
    ])
    def test_values(self, source: str, value: float):
        result, stream = run(general.float_number(), source)
        assert result == Matched(value)
        assert stream.is_eof()

    @pytest.mark.parametrize("source", ["12", "1.", ".", "-", "e5"])
    def test_not_floats(self, source: str):
        result, stream = run(general.float_number(), source)
        assert result == NOT_MATCHED
        assert stream.position == 0

    def test_letter_after_number(self):
        result, _ = run(general.float_number(), "1.5x")
        assert result == Failed(ParseError(Span(3, 4), "Unexpected character `x` after a number."))


class TestQuotedString:
    def test_plain(self):
        result, stream = run(general.quoted_string(), '"hello" rest')
        assert result == Matched("hello")
        assert stream.position == 7

    def test_single_quotes(self):
        assert run(general.quoted_string(), "'it\"s'")[0] == Matched('it"s')

    def test_escapes(self):
        assert run(general.quoted_string(), r'"a\nb\"c\q"')[0] == Matched('a\nb"cq')

    def test_unicode_escape(self):
        assert run(general.quoted_string(), r'"\u0041"')[0] == Matched("A")

    def test_bad_unicode_escape(self):
        result, _ = run(general.quoted_string(), r'"\u00G1"')
        assert result == Failed(ParseError(Span(2, 3), "Expected 4 hexadecimal characters after unicode escape sequence."))

    def test_custom_escapes(self):
        parser = general.quoted_string(custom_escapes={"0": "\0"})
        assert run(parser, r'"\0\n"')[0] == Matched("\0n")

    def test_advanced_escapes(self):
        tab = exact("T").map(lambda _: "\t")
        parser = general.quoted_string(advanced_escapes=[tab])
        assert run(parser, r'"\T"')[0] == Matched("\t")

    def test_unterminated(self):
        result, stream = run(general.quoted_string(), '"abc')
        assert result == Failed(ParseError(Span(4, 4), 'Expected closing quote `"` for the quote opened at @0..1.'))
        assert stream.position == 0

    def test_other_quote_does_not_close(self):
        result, _ = run(general.quoted_string(), "\"abc'")
        assert isinstance(result, Failed)

    def test_escape_at_end(self):
        result, _ = run(general.quoted_string(), '"ab\\')
        assert result == Failed(ParseError(Span(3, 4), "Expected a character to escape after `\\`."))

    def test_not_a_string(self):
        assert run(general.quoted_string(), "abc")[0] == NOT_MATCHED

    def test_error_location(self):
        source = 'x = 1\ny = "abc'
        stream = Stream(source)
        for _ in range(10):
            stream.next()
        result = general.quoted_string().parse(stream)
        assert isinstance(result, Failed)
        assert result.error.locate(source).__notes__ == ["At position 14 (line 2, column 9)"]


class TestRawQuotedString:
    def test_raw(self):
        assert run(general.raw_quoted_string(), r'r"C:\path"')[0] == Matched("C:\\path")

    def test_unterminated(self):
        result, _ = run(general.raw_quoted_string(), "r'abc")
        assert result == Failed(ParseError(Span(5, 5), "Expected closing quote `'`."))

    def test_without_prefix(self):
        assert run(general.raw_quoted_string(), '"abc"')[0] == NOT_MATCHED
