"""Parsing and checking of chained R data expressions such as ``base$x[["y"]]``."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Protocol

from .rnames import RResult, exists
from .rvectors import is_r_var_in, is_valid_r_name, parse_numeric_vector, parse_string_vector

_WHITESPACE = " \t\n\r"


class _Session(Protocol):
    def run(self, command: str) -> RResult: ...


def _is_word_char(c: str) -> bool:
    return c.isalnum() or c in "._" or ord(c) > 127


def _skip_ws_left(text: str, i: int) -> int:
    while i >= 0 and text[i] in _WHITESPACE:
        i -= 1
    return i


def _skip_ws_right(text: str, i: int) -> int:
    while i < len(text) and text[i] in _WHITESPACE:
        i += 1
    return i


@dataclass
class ParsedVariable:
    """A data expression read from right to left.

    ``exprs`` and ``kinds`` run from the last element back to the root:
    for ``bon@jour[["les"]]$gens`` they hold ``gens, "les", jour, bon``
    with kinds ``DOLLAR, DOUBLE_SQUARE_BRACKET, AROBASE, ROOT``.
    """

    class Kind(enum.Enum):
        ROOT = "root"
        DOLLAR = "$"
        AROBASE = "@"
        DOUBLE_SQUARE_BRACKET = "[["
        SINGLE_SQUARE_BRACKET = "["

    exprs: list[str] = field(default_factory=list)
    kinds: list["ParsedVariable.Kind"] = field(default_factory=list)
    error: str = ""
    wide_width: int = 0
    is_full_string: bool = False
    _valid: bool | None = field(default=None, init=False, repr=False)
    _full_expr: str = field(default="", init=False, repr=False)
    _current_names: list[str] = field(default_factory=list, init=False, repr=False)

    def _fail(self, message: str) -> bool:
        self.error = message
        self._valid = False
        return False

    def validate(self, session: _Session) -> bool:
        """Check against the session that every element of the chain exists.

        The outcome is computed once; on failure ``error`` says why.
        """
        if self.error:
            self._valid = False
            return False
        if self._valid is not None:
            return self._valid

        Kind = ParsedVariable.Kind
        for expr, kind in zip(reversed(self.exprs), reversed(self.kinds)):
            if kind is Kind.ROOT:
                self._full_expr = expr
                if not is_valid_r_name(expr):
                    return self._fail("when data chaining, the root element must be a variable")
                if not exists(session, expr):
                    return self._fail(f"the variable `{expr}` does not exist")
                self._current_names = session.run(f"names({self._full_expr})").as_strings()

            elif kind in (Kind.DOLLAR, Kind.AROBASE):
                tag = kind.value
                fun = "names" if kind is Kind.DOLLAR else "slotNames"
                self._current_names = session.run(f"{fun}({self._full_expr})").as_strings()
                if not is_r_var_in(expr, self._current_names):
                    return self._fail(f"the value `{tag}{expr}` does not exist")
                self._full_expr += tag + expr

            else:
                is_dsb = kind is Kind.DOUBLE_SQUARE_BRACKET
                char_values: list[str] | None = parse_string_vector(expr)
                num_values: list[int] | None = None
                if char_values is None:
                    num_values = parse_numeric_vector(expr)
                if char_values is None and num_values is None:
                    if not is_valid_r_name(expr):
                        return self._fail(f"the expression `{expr}` cannot be deduced")
                    if not exists(session, expr):
                        return self._fail(f"the variable {expr} does not exist")
                    if session.run(f"is.character({expr})").as_bool():
                        char_values = session.run(expr).as_strings()
                    elif session.run(f"is.numeric({expr})").as_bool():
                        num_values = session.run(expr).as_ints()
                    else:
                        return self._fail(
                            "data chaining only works with numeric/character vectors "
                            f"(`{expr}` is not)"
                        )

                n_values = len(char_values) if char_values is not None else len(num_values or [])
                if is_dsb and n_values > 1:
                    return self._fail(
                        "double square brackets, [[]], accept only scalars "
                        f"(here it's of length {n_values})"
                    )

                self._current_names = session.run(f"names({self._full_expr})").as_strings()

                if char_values is not None:
                    for value in char_values:
                        if value not in self._current_names:
                            return self._fail(f"the value `{value}` does not exist in the data set")
                else:
                    n_names = len(self._current_names)
                    for value in num_values or []:
                        if value > n_names:
                            return self._fail(
                                f"the value {value} does not exist in the data set "
                                f"(length = {n_names})"
                            )

                self._full_expr += f"[[{expr}]]" if is_dsb else f"[{expr}]"

        self._valid = True
        return True

    def names(self, session: _Session) -> list[str]:
        """Names of the container of the last element of the chain."""
        if self._valid is None:
            self.validate(session)
        return list(self._current_names)

    def data_name(self, session: _Session) -> str:
        """The expression rebuilt from its root, as far as it could be checked."""
        if self._valid is None:
            self.validate(session)
        return self._full_expr


def parse_variable(text: str, end: int | None = None) -> ParsedVariable:
    """Parse the data expression ending at position ``end`` (the last character by default)."""
    Kind = ParsedVariable.Kind
    n = len(text)
    if end is None:
        end = n - 1
    end = min(end, n - 1)

    result = ParsedVariable()
    if n == 0:
        result.error = "empty string"
        return result

    exprs: list[str] = []
    kinds: list[ParsedVariable.Kind] = []
    i = end

    while i >= 0:
        c = text[i]

        if c == "]":
            if i - 1 >= 0 and text[i - 1] == "]":
                i -= 2
                stop = i
                while i >= 1 and not (text[i] == "[" and text[i - 1] == "["):
                    i -= 1
                expr = text[i + 1 : stop + 1] if i < stop else ""
                i = _skip_ws_left(text, i)
                if not expr:
                    result.error = "parsing error: empty variable name in `[[]]` selection"
                    return result
                if i == 0:
                    result.error = (
                        f"parsing error: the double square bracket is not open properly (`{expr}]]`)"
                    )
                    return result
                if i == 1:
                    result.error = (
                        "parsing error: expecting a variable before the double square bracket "
                        f"(`[[{expr}]]`)"
                    )
                    return result
                kind = Kind.DOUBLE_SQUARE_BRACKET
                i -= 2
            else:
                i -= 1
                stop = i
                while i >= 0 and text[i] != "[":
                    i -= 1
                expr = text[i + 1 : stop + 1]
                i = _skip_ws_left(text, i)
                if not expr:
                    result.error = "parsing error: empty variable name in `[]` selection"
                    return result
                if i == 0:
                    result.error = (
                        f"parsing error: the square bracket is not open properly (`{expr}]`)"
                    )
                    return result
                if i == 1:
                    result.error = (
                        f"parsing error: expecting a variable before the square bracket (`[{expr}]`)"
                    )
                    return result
                kind = Kind.SINGLE_SQUARE_BRACKET
                i -= 1

            exprs.append(expr)
            kinds.append(kind)
            continue

        if c == "`":
            stop = i - 1
            i -= 1
            while i >= 0 and text[i] != "`":
                i -= 1
            inner = text[max(i + 1, 0) : stop + 1]
            if not inner:
                result.error = "parsing error: empty variable name in backticks"
                return result
            if i < 0:
                result.error = (
                    f"parsing error: incomplete variable name ({inner}), backticks not open"
                )
                return result
            expr = f"`{inner}`"
            i -= 1
        elif _is_word_char(c):
            stop = i
            while i >= 0 and _is_word_char(text[i]):
                i -= 1
            expr = text[i + 1 : stop + 1]
        else:
            result.error = (
                f"parsing error: expecting a variable name, received a non word character ({c})"
            )
            return result

        exprs.append(expr)
        i = _skip_ws_left(text, i)
        if i >= 0 and text[i] == "$":
            kinds.append(Kind.DOLLAR)
        elif i >= 0 and text[i] == "@":
            kinds.append(Kind.AROBASE)
        else:
            kinds.append(Kind.ROOT)
            break
        i -= 1

    result.exprs = exprs
    result.kinds = kinds

    if not kinds:
        result.error = "internal error: no type found"
        return result
    if kinds[-1] is not Kind.ROOT:
        result.error = "parsing error: when data is chained it must start with a root variable"
        return result

    start = _skip_ws_right(text, i + 1) if i >= 0 else 0
    result.wide_width = max(0, min(end, n - 1) - start + 1)
    result.is_full_string = _skip_ws_left(text, i) < 0
    return result