"""Parser for flatified field selections.

A flatified fields string selects nested fields compactly::

    id,name,friends(id,name),photos(url)

It parses into a nested dict where every key maps to the (possibly empty)
selection of its children::

    {"id": {}, "name": {}, "friends": {"id": {}, "name": {}}, "photos": {"url": {}}}
"""

from __future__ import annotations

from typing import TypeAlias

from rest_bridge.exceptions import QueryParamSyntaxError

FieldTree: TypeAlias = dict[str, "FieldTree"]


class ParameterizedStringSetParser:
    """Parse and serialize ``a,b(c,d)`` style field selections.

    Whitespace is ignored. A field listed twice merges its children.
    """

    def __init__(self, *, separator: str = ",", open_char: str = "(", close_char: str = ")") -> None:
        if len({separator, open_char, close_char}) != 3:
            raise ValueError("separator, open_char and close_char must be distinct")
        self.separator = separator
        self.open_char = open_char
        self.close_char = close_char

    def parse(self, text: str) -> FieldTree:
        """Parse a flatified fields string.

        Raises:
            QueryParamSyntaxError: On unbalanced parentheses or empty field names.
        """
        if not text.strip():
            return {}
        tree, _ = self._parse_fields(text, 0, depth=0)
        return tree

    def flatify(self, tree: FieldTree) -> str:
        """Serialize a field tree back into its flatified form."""
        parts: list[str] = []
        for name, children in tree.items():
            if children:
                parts.append(f"{name}{self.open_char}{self.flatify(children)}{self.close_char}")
            else:
                parts.append(name)
        return self.separator.join(parts)

    def _parse_fields(self, text: str, pos: int, *, depth: int) -> tuple[FieldTree, int]:
        tree: FieldTree = {}
        while True:
            name, pos = self._parse_name(text, pos)
            children: FieldTree = {}
            if pos < len(text) and text[pos] == self.open_char:
                children, pos = self._parse_fields(text, pos + 1, depth=depth + 1)
                if pos >= len(text) or text[pos] != self.close_char:
                    raise QueryParamSyntaxError(f"Missing {self.close_char!r}", pos)
                pos = self._skip_spaces(text, pos + 1)
            _merge(tree, name, children)

            if pos >= len(text):
                if depth > 0:
                    raise QueryParamSyntaxError(f"Missing {self.close_char!r}", pos)
                return tree, pos
            if text[pos] == self.separator:
                pos += 1
                continue
            if text[pos] == self.close_char and depth > 0:
                return tree, pos
            raise QueryParamSyntaxError(f"Unexpected {text[pos]!r}", pos)

    def _parse_name(self, text: str, pos: int) -> tuple[str, int]:
        pos = self._skip_spaces(text, pos)
        start = pos
        specials = (self.separator, self.open_char, self.close_char)
        while pos < len(text) and text[pos] not in specials and not text[pos].isspace():
            pos += 1
        name = text[start:pos]
        if not name:
            raise QueryParamSyntaxError("Empty field name", start)
        return name, self._skip_spaces(text, pos)

    @staticmethod
    def _skip_spaces(text: str, pos: int) -> int:
        while pos < len(text) and text[pos].isspace():
            pos += 1
        return pos


def _merge(tree: FieldTree, name: str, children: FieldTree) -> None:
    existing = tree.setdefault(name, {})
    for child, grandchildren in children.items():
        _merge(existing, child, grandchildren)
