"""Path completion and the scroll bar layout of the suggestion box."""

from __future__ import annotations

import math
import os
import posixpath
import re
from dataclasses import dataclass, field

_REPEATED_SLASHES = re.compile(r"/{2,}")


def _normalize_path(path: str) -> str:
    """Use forward slashes only, without repeats or trailing spaces."""
    path = path.rstrip(" ").replace("\\", "/")
    return _REPEATED_SLASHES.sub("/", path)


@dataclass
class PathSuggestions:
    """Files found for a path being typed.

    ``query`` is the part of the context the choices must match. ``meta``
    maps a key to one value per choice.
    """

    query: str
    choices: list[str] = field(default_factory=list)
    meta: dict[str, list[str]] = field(default_factory=dict)
    cause_empty: str | None = None

    def __len__(self) -> int:
        return len(self.choices)


def _list_directory(directory: str) -> list[str]:
    entries = []
    with os.scandir(directory) as it:
        for entry in it:
            entries.append(entry.name + "/" if entry.is_dir() else entry.name)
    return sorted(entries)


def suggest_path(context: str, add_quotes: bool = False) -> PathSuggestions:
    """List the candidates completing the path in ``context``.

    When the context ends with a folder separator, all the entries of that
    folder are returned and the query is empty; otherwise the entries of the
    parent folder are returned and the query is the last path component.
    Folders carry the ``continue`` meta. With ``add_quotes``, entries holding
    a space get the meta needed to wrap the whole path in double quotes.
    """
    trailing_space = " " * (len(context) - len(context.rstrip(" ")))

    clean = _normalize_path(context)
    is_folder = clean.endswith("/")

    if is_folder:
        parent = clean
        query = ""
    else:
        parent, query = posixpath.split(clean)
    if parent == "":
        parent = "."

    query += trailing_space
    result = PathSuggestions(query=query)

    if not os.path.isdir(parent):
        result.cause_empty = "the current path does not exist"
        return result

    all_paths = _list_directory(parent)
    result.choices = all_paths

    if not all_paths:
        result.cause_empty = "no file found in the current path"
        return result

    add_continue = ["true" if p.endswith("/") else "" for p in all_paths]
    if any(add_continue):
        result.meta["continue"] = add_continue

    if add_quotes:
        prepend = context[: len(context) - len(query)] if len(query) < len(context) else ""
        prepend_size = str(len(prepend))

        n = len(all_paths)
        add_right = [""] * n
        add_left = [""] * n
        add_n_del = [""] * n
        add_shift = [""] * n
        any_quote = False
        for i, (path, cont) in enumerate(zip(all_paths, add_continue)):
            if " " in path:
                any_quote = True
                add_right[i] = '"'
                add_left[i] = '"' + prepend
                add_n_del[i] = prepend_size
                if cont == "true":
                    add_shift[i] = "-1"

        if any_quote:
            result.meta["append_right"] = add_right
            result.meta["append_left"] = add_left
            result.meta["n_delete_left"] = add_n_del
            result.meta["cursor_shift"] = add_shift

    return result


def scrollbar_layout(n_matches: int, max_height: int, screen_start: int, n_display: int) -> list[bool]:
    """Which rows of the suggestion box show the solid part of the scroll bar.

    Returns one flag per displayed row; no row is solid when every match fits.
    """
    if n_matches <= max_height:
        return [False] * n_display

    n_blanks = n_matches - max_height
    if n_blanks >= max_height:
        n_blanks = max_height - 1

    bar_length = max_height - n_blanks

    n_ss = n_matches - max_height + 1
    n_ss_middle = n_ss - 2 if n_ss >= 2 else 0

    n_solid_start = n_blanks + 1
    n_solid_start_middle = n_solid_start - 2

    if screen_start == 0:
        solid_start = 0
    elif screen_start + max_height == n_matches:
        solid_start = max_height - bar_length
    else:
        x = screen_start / n_ss_middle * n_solid_start_middle
        solid_start = math.ceil(x)

    rows = []
    bar_done = 0
    for i in range(n_display):
        if i >= solid_start and bar_done < bar_length:
            bar_done += 1
            rows.append(True)
        else:
            rows.append(False)
    return rows