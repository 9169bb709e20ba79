"""Detection and parsing of tool requests embedded in generated text.

A tool request is a flat JSON-like object with exactly two fields::

    {"tool": "<name>", "<param>": <value>}

``<name>`` and ``<param>`` are quoted identifiers; ``<value>`` is either a
quoted string (JSON escapes allowed) or a bare identifier/number. Whitespace
may appear between tokens and anything after the closing brace is ignored.

Detection and parsing are separate steps: ``is_tool_call`` only checks the
leading fragment, ``parse_tool_call`` applies the grammar once and raises
``ToolCallParseError`` when it does not match.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Optional

TOOL_CALL_PREFIX = '{"tool":'

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_BARE_VALUE = re.compile(r"[A-Za-z0-9_.+\-]+")


@dataclass(frozen=True)
class ToolRequest:
    tool: str
    param_name: str
    value: str


class ToolCallParseError(ValueError):
    pass


def is_tool_call(text: Optional[str]) -> bool:
    return bool(text) and text.lstrip().startswith(TOOL_CALL_PREFIX)


def parse_tool_call(text: str) -> ToolRequest:
    return _Parser(text.lstrip()).parse()


class _Parser:
    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0

    def parse(self) -> ToolRequest:
        self._expect("{")
        if self._string() != "tool":
            raise ToolCallParseError("first field must be 'tool'")
        self._expect(":")
        tool = self._identifier_string("tool name")
        self._expect(",")
        param_name = self._identifier_string("parameter name")
        if param_name == "tool":
            raise ToolCallParseError("duplicate 'tool' field")
        self._expect(":")
        value = self._value()
        self._expect("}")
        return ToolRequest(tool=tool, param_name=param_name, value=value)

    def _skip_ws(self) -> None:
        while self._pos < len(self._text) and self._text[self._pos].isspace():
            self._pos += 1

    def _peek(self) -> str:
        self._skip_ws()
        return self._text[self._pos] if self._pos < len(self._text) else ""

    def _expect(self, char: str) -> None:
        if self._peek() != char:
            raise ToolCallParseError(f"expected {char!r} at offset {self._pos}")
        self._pos += 1

    def _string(self) -> str:
        self._expect('"')
        start = self._pos
        while self._pos < len(self._text):
            char = self._text[self._pos]
            if char == "\\":
                self._pos += 2
                continue
            if char == '"':
                raw = self._text[start:self._pos]
                self._pos += 1
                try:
                    return json.loads(f'"{raw}"')
                except ValueError as exc:
                    raise ToolCallParseError(f"invalid string at offset {start}: {exc}") from exc
            self._pos += 1
        raise ToolCallParseError(f"unterminated string starting at offset {start}")

    def _identifier_string(self, what: str) -> str:
        value = self._string()
        if not _IDENTIFIER.fullmatch(value):
            raise ToolCallParseError(f"invalid {what}: {value!r}")
        return value

    def _value(self) -> str:
        if self._peek() == '"':
            return self._string()
        match = _BARE_VALUE.match(self._text, self._pos)
        if match is None:
            raise ToolCallParseError(f"expected a value at offset {self._pos}")
        self._pos = match.end()
        return match.group(0)
