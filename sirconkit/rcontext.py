"""Reading the R code around the cursor: function calls, arguments and data containers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Protocol

from .rnames import RResult, exists
from .rvariable import ParsedVariable, parse_variable

_WHITESPACE = " \t\n\r"
_QUOTES = "\"'`"
_OPENING = "([{"
_CLOSING = ")]}"


class _Session(Protocol):
    def run(self, command: str) -> RResult: ...


def _is_word_char(c: str) -> bool:
    return c.isalnum() or c in "._" or ord(c) > 127


def _is_escaped(text: str, pos: int) -> bool:
    n_backslashes = 0
    pos -= 1
    while pos >= 0 and text[pos] == "\\":
        n_backslashes += 1
        pos -= 1
    return n_backslashes % 2 == 1


def _skip_ws_left(text: str, i: int) -> int:
    while i >= 0 and text[i] in _WHITESPACE:
        i -= 1
    return i


def _skip_ws_right(text: str, i: int) -> int:
    while i < len(text) and text[i] in _WHITESPACE:
        i += 1
    return i


def _name_left(text: str, i: int) -> tuple[str, int]:
    """Read the word ending at ``i``; return it and the position before it."""
    i = _skip_ws_left(text, i)
    stop = i
    while i >= 0 and _is_word_char(text[i]):
        i -= 1
    return text[i + 1 : stop + 1], i


def _dquote(text: str) -> str:
    return f'"{text}"'


#
# Functions
#


@dataclass
class ParsedFunction:
    """A function name, possibly prefixed by a package namespace."""

    class Kind(enum.Enum):
        LOADED_FUN = "loaded"
        DOUBLE_COLON = "::"
        TRIPLE_COLON = ":::"

    name: str = ""
    pkg: str = ""
    kind: "ParsedFunction.Kind" = Kind.LOADED_FUN
    error: str = ""
    start: int = 0

    @property
    def empty(self) -> bool:
        return not self.name.strip()

    def is_from_namespace(self) -> bool:
        return self.kind is not ParsedFunction.Kind.LOADED_FUN

    def complete_name(self) -> str:
        """The name as it must be written to reach the function."""
        if self.kind is ParsedFunction.Kind.LOADED_FUN:
            return self.name
        return f"{self.pkg}{self.kind.value}{self.name}"

    def check_exists(self, session: _Session) -> bool:
        """Whether the function can be found; on failure ``error`` says why."""
        if self.kind is ParsedFunction.Kind.LOADED_FUN:
            if not exists(session, self.name, mode_function=True):
                self.error = f"Function `{self.name}` does not exist"
                return False
            return True

        if not self.pkg.strip():
            self.error = f"The package name `{self.pkg}` is ill formed."
            return False

        installed = session.run(
            f"requireNamespace(package = {_dquote(self.pkg)}, quietly = TRUE)"
        ).as_bool()
        if not installed:
            self.error = f"The package {_dquote(self.pkg)} is not installed"
            return False

        if self.kind is ParsedFunction.Kind.DOUBLE_COLON:
            all_funs = session.run(f"sort(getNamespaceExports({_dquote(self.pkg)}))").as_strings()
        else:
            all_funs = session.run(f"ls(envir = asNamespace({_dquote(self.pkg)}))").as_strings()

        if self.name not in all_funs:
            self.error = f"Function `{self.name}` is not contained by the package `{self.pkg}`"
            return False
        return True


def parse_function(text: str, end: int | None = None) -> ParsedFunction:
    """Parse the function name ending at ``end`` (the last character by default).

    ``start`` of the result is the position where the whole name begins.
    """
    Kind = ParsedFunction.Kind
    if end is None:
        end = len(text) - 1

    name, i = _name_left(text, end)
    fn = ParsedFunction(name=name)
    if i <= 0:
        fn.start = i + 1
        return fn

    i = _skip_ws_left(text, i)
    if i >= 1 and text[i] == ":" and text[i - 1] == ":":
        i -= 2
        if i >= 0 and text[i] == ":":
            i -= 1
            fn.kind = Kind.TRIPLE_COLON
        else:
            fn.kind = Kind.DOUBLE_COLON

        if i >= 0 and _is_word_char(text[i]):
            fn.pkg, i = _name_left(text, i)
        else:
            fn.kind = Kind.LOADED_FUN

    fn.start = i + 1
    return fn


#
# Containers
#


def _move_to_comma_or_closing_paren(text: str, i: int) -> int:
    n = len(text)
    depth = 0
    while i < n:
        c = text[i]
        if c in _QUOTES:
            quote = c
            i += 1
            while i < n and not (text[i] == quote and not _is_escaped(text, i)):
                i += 1
        elif c in _OPENING:
            depth += 1
        elif c in _CLOSING:
            depth -= 1
            if depth < 0:
                return i
        elif depth == 0 and c == ",":
            break
        i += 1
    return i


def _extract_arguments(
    text: str, j: int, cursor: int
) -> tuple[list[str | None], list[str], int, int]:
    """Split the arguments of a call starting at ``j``.

    Returns the argument names (None when unnamed), their values, the index
    of the argument holding the cursor (-1 if none) and the end position.
    """
    n = len(text)
    names: list[str | None] = []
    values: list[str] = []
    cursor_pos = -1

    while j < n:
        j = _skip_ws_right(text, j)

        if j < n and text[j] in _QUOTES:
            quote = text[j]
            start = j
            j += 1
            while j < n and not (text[j] == quote and not _is_escaped(text, j)):
                j += 1
            if j < n:
                j += 1
            arg_name = text[start:j]
        else:
            start = j
            while j < n and _is_word_char(text[j]):
                j += 1
            arg_name = text[start:j]

        k_start = j
        j = _skip_ws_right(text, j)

        name: str | None
        if j < n and text[j] == "=" and not (j + 1 < n and text[j + 1] == "="):
            j = _skip_ws_right(text, j + 1)
            k_start = j
            name = arg_name
            value = ""
        else:
            name = None
            value = arg_name

        j = _move_to_comma_or_closing_paren(text, j)
        is_end = j >= n or text[j] != ","
        value += text[k_start:j]

        names.append(name)
        values.append(value)
        if cursor_pos == -1 and j >= cursor:
            cursor_pos = len(names) - 1

        j += 1
        if is_end:
            break

    return names, values, cursor_pos, j


@dataclass
class Container:
    """The innermost function call or bracket selection around a position."""

    function: ParsedFunction = field(default_factory=ParsedFunction)
    arg_names: list[str | None] = field(default_factory=list)
    arg_values: list[str] = field(default_factory=list)
    cursor_pos: int = 0
    is_data: bool = False
    data_name: str = ""
    found: bool = False
    pos_start: int = 0
    pos_end: int = 0

    @property
    def cursor_position(self) -> int:
        return max(self.cursor_pos, 0)

    @property
    def cursor_arg_name(self) -> str | None:
        if self.cursor_pos < 0 or not self.arg_names:
            return None
        return self.arg_names[self.cursor_pos]

    @property
    def cursor_arg_value(self) -> str | None:
        if self.cursor_pos < 0 or not self.arg_values:
            return None
        return self.arg_values[self.cursor_pos]

    @property
    def previous_arg_names(self) -> list[str | None]:
        return self.arg_names[: self.cursor_pos] if self.cursor_pos > 0 else []

    @property
    def previous_arg_values(self) -> list[str]:
        return self.arg_values[: self.cursor_pos] if self.cursor_pos > 0 else []

    @property
    def other_arg_names(self) -> list[str | None]:
        if self.cursor_pos < 0:
            return []
        return [v for k, v in enumerate(self.arg_names) if k != self.cursor_pos]

    @property
    def other_arg_values(self) -> list[str]:
        if self.cursor_pos < 0:
            return []
        return [v for k, v in enumerate(self.arg_values) if k != self.cursor_pos]


def find_container(line: str, cursor: int) -> Container:
    """Go left from ``cursor`` to the call or selection enclosing it."""
    result = Container()
    n = len(line)
    i = min(cursor, n - 1)
    n_paren_closed = 0
    n_bracket_closed = 0

    while i >= 0:
        c = line[i]
        if c in _QUOTES:
            quote = c
            i -= 1
            while i >= 0 and not (line[i] == quote and not _is_escaped(line, i)):
                i -= 1

        elif c == "(":
            if n_paren_closed > 0:
                n_paren_closed -= 1
            else:
                result.function = parse_function(line, i - 1)
                result.pos_start = result.function.start
                (
                    result.arg_names,
                    result.arg_values,
                    result.cursor_pos,
                    result.pos_end,
                ) = _extract_arguments(line, i + 1, cursor)
                result.found = True
                return result

        elif c == ")":
            n_paren_closed += 1

        elif c == "[":
            if n_bracket_closed > 0:
                n_bracket_closed -= 1
            else:
                j = i + 1
                i -= 1
                if i >= 0 and line[i] == "[":
                    i -= 1
                    result.function = ParsedFunction(name="[[")
                else:
                    result.function = ParsedFunction(name="[")
                result.data_name, i = _name_left(line, i)
                result.pos_start = i + 1
                (
                    result.arg_names,
                    result.arg_values,
                    result.cursor_pos,
                    result.pos_end,
                ) = _extract_arguments(line, j, cursor)
                result.is_data = True
                result.found = True
                return result

        elif c == "]":
            n_bracket_closed += 1

        i -= 1

    return result


def build_line_from_context(before_cursor: str, after_cursor: str) -> tuple[str, int]:
    """Join the current line around the cursor; return it with the cursor position.

    Line breaks inside quotes do not end the line. A space separates the two
    halves so that the cursor keeps its own position.
    """
    x = before_cursor
    i = len(x) - 1
    while i >= 0 and x[i] != "\n":
        if x[i] in _QUOTES:
            quote = x[i]
            i -= 1
            while i >= 0 and not (x[i] == quote and not _is_escaped(x, i)):
                i -= 1
            if i >= 0:
                i -= 1
        else:
            i -= 1

    line = x[i + 1 :] if i >= 0 and x[i] == "\n" else x
    cursor = len(line)

    y = after_cursor
    n = len(y)
    if n == 0:
        return line, cursor

    i = 0
    while i < n and y[i] != "\n":
        if y[i] in _QUOTES:
            quote = y[i]
            i += 1
            while i < n and not (y[i] == quote and not _is_escaped(y, i)):
                i += 1
            if i < n:
                i += 1
        else:
            i += 1

    if i < n and y[i] == "\n":
        line += " " + y[:i]
    else:
        line += " " + y
    return line, cursor


#
# Autocompletion context
#


class AcType(enum.Enum):
    """What kind of completion the context calls for."""

    FUNCTION = enum.auto()
    FUNCTION_ARGUMENT = enum.auto()
    DATA_ARGUMENT = enum.auto()
    DOLLAR = enum.auto()
    AROBASE = enum.auto()
    NAMESPACE_EXPORTS = enum.auto()
    NAMESPACE_ALL = enum.auto()
    INTROSPECTION = enum.auto()
    VARIABLE = enum.auto()
    GLOBAL_ENV = enum.auto()
    STRING = enum.auto()
    STRING_INTERPOL = enum.auto()
    PACKAGE = enum.auto()
    TILDE = enum.auto()
    DEFAULT = enum.auto()


@dataclass
class AutocompleteRContext:
    """Everything learned from the code before and after the cursor."""

    type: AcType = AcType.VARIABLE
    function_container: ParsedFunction = field(default_factory=ParsedFunction)
    is_data_function: bool = False
    data_container: str | None = None
    query: str = ""
    contextual_object: ParsedVariable = field(default_factory=ParsedVariable)
    possible_tilde_data: list[ParsedVariable] = field(default_factory=list)
    query_arg_name: str | None = None
    query_arg_pos: int | None = None
    previous_arg_names: list[str | None] = field(default_factory=list)
    previous_arg_values: list[str] = field(default_factory=list)


def _any_tilde_left(text: str, i: int) -> bool:
    while i >= 0 and text[i] not in "~\n":
        i -= 1
    return i >= 0 and text[i] == "~"


def _any_tilde_right(text: str, i: int) -> bool:
    n = len(text)
    while i < n and text[i] not in "~\n":
        i += 1
    return i < n and text[i] == "~"


def parse_context(before_cursor: str, after_cursor: str = "") -> AutocompleteRContext:
    """Work out the query and its surroundings from the text around the cursor."""
    ctx = AutocompleteRContext()
    x = before_cursor
    n = len(x)
    i = n - 1

    # the query may hold spaces, but not leading ones
    while i >= 0 and (_is_word_char(x[i]) or x[i] == " "):
        i -= 1
    while i + 1 < n and x[i + 1] == " ":
        i += 1
    ctx.query = x if i < 0 else x[i + 1 :]

    head = x[: i + 1]
    i = _skip_ws_left(x, i)
    if i < 0:
        return ctx

    if x[i] in "$@":
        ctx.type = AcType.DOLLAR if x[i] == "$" else AcType.AROBASE
        ctx.contextual_object = parse_variable(head, i - 1)
        return ctx
    if x[i] == ":":
        i = _skip_ws_left(x, i - 1)
        if i >= 0 and x[i] == ":":
            i = _skip_ws_left(x, i - 1)
            if i >= 0 and x[i] == ":":
                i = _skip_ws_left(x, i - 1)
                ctx.type = AcType.NAMESPACE_ALL
            else:
                ctx.type = AcType.NAMESPACE_EXPORTS
            ctx.contextual_object = parse_variable(head, i)
            return ctx
    elif x[i] == ">" and i - 1 >= 0 and x[i - 1] == ">":
        ctx.type = AcType.INTROSPECTION
        ctx.contextual_object = parse_variable(head, i - 2)
        return ctx

    is_tilde = _any_tilde_left(x, i) or _any_tilde_right(after_cursor, 0)

    inner = find_container(x, len(x) - 1)
    if not inner.found:
        return ctx

    ctx.function_container = inner.function
    ctx.previous_arg_names = inner.previous_arg_names
    ctx.previous_arg_values = inner.previous_arg_values
    ctx.query_arg_name = inner.cursor_arg_name
    ctx.query_arg_pos = inner.cursor_position
    ctx.is_data_function = inner.is_data

    if ctx.query_arg_name is None:
        if inner.is_data:
            min_pos = 2 if inner.function.name == "[" else 1
            if ctx.query_arg_pos >= min_pos:
                ctx.type = AcType.FUNCTION_ARGUMENT
        else:
            ctx.type = AcType.FUNCTION_ARGUMENT

    is_data_container = inner.is_data
    if is_data_container:
        ctx.data_container = inner.data_name

    pos = inner.pos_start
    while not is_data_container and pos > 0:
        outer = find_container(x, pos)
        if not outer.found:
            break
        if outer.is_data:
            is_data_container = True
            ctx.data_container = outer.data_name
        elif outer.pos_start >= pos:
            break
        else:
            pos = outer.pos_start

    if is_tilde:
        line, cursor = build_line_from_context(before_cursor, after_cursor)
        line_inner = find_container(line, cursor)
        other_values: list[str] = []

        is_ok = "~" in (line_inner.cursor_arg_value or "")
        if is_ok:
            other_values = line_inner.other_arg_values
        else:
            line_outer = find_container(line, line_inner.pos_start)
            is_ok = "~" in (line_outer.cursor_arg_value or "")
            if is_ok:
                other_values = line_outer.other_arg_values

        if is_ok and other_values:
            for arg in other_values:
                var = parse_variable(arg)
                if var.is_full_string:
                    ctx.possible_tilde_data.append(var)
            if ctx.possible_tilde_data:
                ctx.type = AcType.TILDE

    return ctx