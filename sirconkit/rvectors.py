"""Recognition of literal R vectors and of R variable names."""

from __future__ import annotations

from typing import Callable, Collection, TypeVar

from .rnames import is_valid_name

_WHITESPACE = " \t\n\r"
_DIGITS = "0123456789"
_QUOTES = "\"'"

T = TypeVar("T")


def _is_escaped(text: str, pos: int) -> bool:
    n_backslashes = 0
    pos -= 1
    while pos >= 0 and text[pos] == "\\":
        n_backslashes += 1
        pos -= 1
    return n_backslashes % 2 == 1


def _skip_ws(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in _WHITESPACE:
        pos += 1
    return pos


def _read_quoted(text: str, pos: int) -> tuple[str | None, int]:
    """Read a quoted string starting at ``pos`` (after whitespace)."""
    n = len(text)
    if n <= 2:
        return None, pos
    pos = _skip_ws(text, pos)
    if pos < n and text[pos] in _QUOTES:
        quote = text[pos]
        start = pos + 1
        pos = start
        while pos < n and not (text[pos] == quote and not _is_escaped(text, pos)):
            pos += 1
        if pos == n:
            return None, pos
        return text[start:pos], pos + 1
    return None, pos + 1


def _read_integer(text: str, pos: int) -> tuple[int | None, int]:
    """Read a run of digits starting at ``pos`` (after whitespace)."""
    n = len(text)
    if n == 0:
        return None, pos
    pos = _skip_ws(text, pos)
    if pos < n and text[pos] in _DIGITS:
        start = pos
        while pos < n and text[pos] in _DIGITS:
            pos += 1
        return int(text[start:pos]), pos
    return None, pos + 1


def _parse_vector(
    text: str, read: Callable[[str, int], tuple[T | None, int]]
) -> list[T] | None:
    n = len(text)
    values: list[T] = []
    pos = _skip_ws(text, 0)

    if pos + 2 < n and text[pos] == "c" and text[pos + 1] == "(":
        pos += 2
        while pos < n:
            value, pos = read(text, pos)
            if value is None:
                return None
            values.append(value)
            pos = _skip_ws(text, pos)
            if pos < n and text[pos] == ",":
                pos += 1
            elif pos < n and text[pos] == ")":
                return values
            else:
                return None
        return None

    value, pos = read(text, pos)
    if value is None:
        return None
    values.append(value)
    pos = _skip_ws(text, pos)
    return values if pos == n else None


def parse_string_vector(text: str) -> list[str] | None:
    """Values of a quoted string or of ``c("a", "b")``; None if it is neither."""
    return _parse_vector(text, _read_quoted)


def parse_numeric_vector(text: str) -> list[int] | None:
    """Values of an integer literal or of ``c(1, 2)``; None if it is neither."""
    return _parse_vector(text, _read_integer)


def is_valid_r_name(text: str) -> bool:
    """Whether the text is a valid R name, backticked names included."""
    if not text:
        return False
    if text[0] == "`":
        return len(text) >= 3 and text[-1] == "`"
    return is_valid_name(text)


def is_r_var_in(name: str, names: Collection[str]) -> bool:
    """Whether a possibly backticked variable name is among ``names``."""
    if not name:
        return False
    if name[0] == "`":
        if len(name) < 3:
            return False
        return name[1:-1] in names
    return name in names