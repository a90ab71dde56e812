# sirconkit

An autocompletion engine for an R console. It reads the text before and after
the cursor and works out what is being typed: a variable, a function argument,
a `$` or `@` member, a `pkg::` or `pkg:::` name, a value to inspect with `>>`,
a formula variable after `~`, or a path. It then builds a list of suggestions
and turns the chosen one into the text to insert.

## Installation

```
pip install .
```

The package has no runtime dependencies.

## Sessions

The package does not run R. Every check against live R objects goes through a
*session* you provide: any object with a `run(command)` method that evaluates
an R command and returns a `sirconkit.rnames.RResult`, built from the returned
`values`, their `type` (a `SexpType` code) and, when evaluation failed, an
`error` message.

## Modules

- `sirconkit.rnames`: `SexpType` and `show_sexptype`; `RResult` with its
  conversions `as_strings`, `as_string`, `as_bool`, `as_int` and `as_ints`;
  `is_valid_name`; and `exists_command`, `exists` and `length`, which ask a
  session about an object.
- `sirconkit.cache`: `CachedData`, a named cache of string lists kept in
  memory (`CachedData.Kind.ONLY_MEMORY`) or also written to a file under a
  root directory (`CachedData.Kind.ON_DISK`), with the time since the last
  write.
- `sirconkit.paths`: `suggest_path` lists the entries completing a partial
  path (folders end with `/` and carry the `continue` meta; with
  `add_quotes`, names holding spaces get the meta needed to quote them).
  `scrollbar_layout` tells which rows of a suggestion box show the solid part
  of a scroll bar.
- `sirconkit.result`: `AutocompleteContext`, `AutocompleteResult` (text to
  insert, cursor shift, characters to delete first, whether to continue
  completing; `AutocompleteResult.from_choice` reads these from meta values),
  `CmdParsed` and `parse_command`, which tells whether a command continues
  after an open brace.
- `sirconkit.rvectors`: `parse_string_vector` and `parse_numeric_vector`
  read literals such as `"a"`, `c("a", "b")`, `3` or `c(1, 2)`;
  `is_valid_r_name` and `is_r_var_in` also handle backticked names.
- `sirconkit.rvariable`: `parse_variable` reads chained data expressions such
  as ``df$col[["x"]]``; `ParsedVariable.validate`, `names` and `data_name`
  check them against a session.
- `sirconkit.rcontext`: `parse_function`, `find_container`,
  `build_line_from_context` and `parse_context`, which returns an
  `AutocompleteRContext` (its `type` is an `AcType`).
- `sirconkit.rcomplete`: `RAutocomplete`, which ties the pieces together,
  with `Suggestions` and `Finalize`.

## Example

Context parsing needs no session:

```python
from sirconkit.rcontext import parse_context
from sirconkit.rvectors import parse_string_vector

ctx = parse_context("mean(x, na", "")
print(ctx.type, ctx.query)                  # AcType.FUNCTION_ARGUMENT na

print(parse_string_vector('c("a", "b")'))   # ['a', 'b']
```

A completion round needs one:

```python
from pathlib import Path

from sirconkit.rcomplete import RAutocomplete
from sirconkit.result import AutocompleteContext

completer = RAutocomplete(session, cache_root=Path.home() / ".cache" / "sirconkit")
matches = completer.make_suggestions(
    AutocompleteContext(before_cursor="iris$Sp", after_cursor="")
)
result = completer.finalize_autocomplete(matches.choices[0], matches.meta_at(0))
print(result.text, result.cursor_shift)
```

Without `cache_root`, caches (installed data sets, CRAN packages) are kept in
memory only. Matching puts choices starting with the query first, then those
containing it, ignoring case.

Suggestions can be switched to another category with a one-letter code, as
listed in `rcomplete.CODE_VERBOSE`:

| Code | Category   |
|------|------------|
| D    | Default    |
| V    | Variables  |
| C    | Functions  |
| A    | Arguments  |
| K    | Packages   |
| O    | Global Env |

Switch with `completer.update_suggestions("V")`; results already computed in
the round are reused. `completer.quit_autocomp()` ends the round.

## What it does not do

The package has no console of its own: it does not start or embed R, draw
the suggestion box on a terminal, read keys, or touch the clipboard. It
provides the decisions such a console needs, and leaves evaluation to the
session you pass in.