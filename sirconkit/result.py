"""Autocompletion context, final results and command parsing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

_WHITESPACE = " \t\n\r"


def _dquote(text: str) -> str:
    return f'"{text}"'


@dataclass(frozen=True)
class AutocompleteContext:
    """The text around the cursor when completion is requested."""

    before_cursor: str = ""
    after_cursor: str = ""
    path_query: str = ""
    is_in_path: bool = False


@dataclass
class AutocompleteResult:
    """The text to insert once a suggestion has been chosen.

    ``cursor_shift`` moves the cursor after insertion, ``n_delete_left``
    removes characters before the cursor first, and ``continue_autocomp``
    asks for a new round of completion.
    """

    text: str
    cursor_shift: int = 0
    continue_autocomp: bool = False
    n_delete_left: int = 0

    def __post_init__(self) -> None:
        if self.n_delete_left < 0:
            raise ValueError(
                f"the number of characters to delete, here {self.n_delete_left}, cannot be negative"
            )

    @classmethod
    def from_choice(cls, text: str, meta: Mapping[str, str] | None = None) -> "AutocompleteResult":
        """Build a result from a chosen suggestion and its meta values."""
        meta = meta or {}

        continue_autocomp = meta.get("continue") == "true"

        shift = meta.get("cursor_shift", "")
        cursor_shift = int(shift) if shift else 0

        n_del = meta.get("n_delete_left", "")
        n_delete_left = int(n_del) if n_del else 0

        right = meta.get("append_right", "")
        if right:
            text = text + right

        left = meta.get("append_left", "")
        if left:
            text = left + text

        if meta.get("add_quotes") == "true":
            text = _dquote(text)

        return cls(
            text=text,
            cursor_shift=cursor_shift,
            continue_autocomp=continue_autocomp,
            n_delete_left=n_delete_left,
        )


@dataclass
class CmdParsed:
    """What the language server learned from a command being typed."""

    is_continuation: bool = False
    indent: str = ""
    is_error: bool = False
    error_msg: str = ""
    error_location: list[int] = field(default_factory=list)


def parse_command(cmd: str) -> CmdParsed:
    """A command continues on the next line when it ends with an open brace."""
    stripped = cmd.rstrip(_WHITESPACE)
    return CmdParsed(is_continuation=stripped.endswith("{"))