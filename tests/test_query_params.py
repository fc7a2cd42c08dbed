"""Tests for the flatified fields parser."""

import re

import pytest

from rest_bridge.exceptions import QueryParamSyntaxError
from rest_bridge.mapping import ParameterizedStringSetParser


@pytest.fixture
def parser() -> ParameterizedStringSetParser:
    return ParameterizedStringSetParser()


class TestParse:
    def test_flat_list(self, parser: ParameterizedStringSetParser) -> None:
        assert parser.parse("id,name") == {"id": {}, "name": {}}

    def test_nested(self, parser: ParameterizedStringSetParser) -> None:
        assert parser.parse("id,friends(id,photos(url)),name") == {
            "id": {},
            "friends": {"id": {}, "photos": {"url": {}}},
            "name": {},
        }

    def test_whitespace_ignored(self, parser: ParameterizedStringSetParser) -> None:
        assert parser.parse(" id , team ( name ) ") == {"id": {}, "team": {"name": {}}}

    def test_blank(self, parser: ParameterizedStringSetParser) -> None:
        assert parser.parse("") == {}
        assert parser.parse("   ") == {}

    def test_duplicates_merge(self, parser: ParameterizedStringSetParser) -> None:
        assert parser.parse("team(id),team(name),id") == {
            "team": {"id": {}, "name": {}},
            "id": {},
        }

    def test_custom_characters(self) -> None:
        parser = ParameterizedStringSetParser(separator=";", open_char="[", close_char="]")

        assert parser.parse("a;b[c;d]") == {"a": {}, "b": {"c": {}, "d": {}}}

    def test_characters_must_differ(self) -> None:
        with pytest.raises(ValueError, match="distinct"):
            ParameterizedStringSetParser(separator=",", open_char=",")


class TestParseErrors:
    @pytest.mark.parametrize(
        ("text", "message", "position"),
        [
            ("a(b", "Missing ')'", 3),
            ("a)", "Unexpected ')'", 1),
            ("a(b)c", "Unexpected 'c'", 4),
            ("a,,b", "Empty field name", 2),
            ("a,", "Empty field name", 2),
            ("a()", "Empty field name", 2),
        ],
    )
    def test_malformed(
        self, parser: ParameterizedStringSetParser, text: str, message: str, position: int
    ) -> None:
        with pytest.raises(QueryParamSyntaxError, match=re.escape(message)) as exc_info:
            parser.parse(text)
        assert exc_info.value.position == position

    def test_is_a_value_error(self, parser: ParameterizedStringSetParser) -> None:
        with pytest.raises(ValueError):
            parser.parse("(")


class TestFlatify:
    def test_nested(self, parser: ParameterizedStringSetParser) -> None:
        tree = {"id": {}, "friends": {"id": {}, "photos": {"url": {}}}}

        assert parser.flatify(tree) == "id,friends(id,photos(url))"

    def test_empty(self, parser: ParameterizedStringSetParser) -> None:
        assert parser.flatify({}) == ""

    def test_normalizes_whitespace(self, parser: ParameterizedStringSetParser) -> None:
        assert parser.flatify(parser.parse(" id , team ( name ) ")) == "id,team(name)"
