"""Autocompletion of R code: suggestions by context and insertion of the chosen one."""

from __future__ import annotations

import enum
import os
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Protocol, Sequence

from .cache import CachedData
from .paths import suggest_path
from .result import AutocompleteContext, AutocompleteResult
from .rcontext import AcType, AutocompleteRContext, parse_context
from .rnames import RResult, exists, is_valid_name, length
from .rvariable import parse_variable
from .rvectors import is_valid_r_name

NOT_A_PACKAGE = "__123__"
CONTROL_FUNCTIONS = ("if", "while", "for", "function")
FUNCTION_FULL_PAREN = " +-*/=<>|&~,;#$[]{}"

DEFAULT_CODES = "DVCOK"
DEFAULT_CODES_ARG = "DAVCOK"

CODE_VERBOSE = {
    "V": "Variables",
    "K": "Packages",
    "C": "Functions",
    "A": "Arguments",
    "D": "Default",
    "O": "Global Env",
}

MAP_CODE_TYPE = {
    "V": AcType.VARIABLE,
    "K": AcType.PACKAGE,
    "C": AcType.FUNCTION,
    "A": AcType.FUNCTION_ARGUMENT,
    "D": AcType.DEFAULT,
    "O": AcType.GLOBAL_ENV,
}


class _Session(Protocol):
    def run(self, command: str) -> RResult: ...


class Finalize(enum.Enum):
    """How a chosen suggestion is turned into the text to insert."""

    DEFAULT = "a"
    FUNCTION = "b"
    POSSIBLE_FUNCTION = "c"
    QUOTE = "d"
    PACKAGE_EXPORT = "e"
    INTROSPECTION = "f"
    PATH = "g"
    NONE = "h"


def _dquote(text: str) -> str:
    return f'"{text}"'


def _bquote(text: str) -> str:
    return f"`{text}`"


def _any_open_paren_before(text: str, opening: str = "(") -> bool:
    closing = {"(": ")", "[": "]", "{": "}"}[opening]
    depth = 0
    for c in reversed(text):
        if c == closing:
            depth += 1
        elif c == opening:
            if depth == 0:
                return True
            depth -= 1
    return False


@dataclass
class Suggestions:
    """Candidate completions with per-choice meta values.

    ``meta`` maps a key to one string per choice. ``query`` is the text the
    choices were matched against, ``cause_empty`` explains an empty result.
    """

    choices: list[str] = field(default_factory=list)
    meta: dict[str, list[str]] = field(default_factory=dict)
    cause_empty: str | None = None
    query: str = ""

    def __len__(self) -> int:
        return len(self.choices)

    @property
    def empty(self) -> bool:
        return not self.choices

    def set_meta(self, key: str, value: str | Sequence[str]) -> "Suggestions":
        """Set a meta value for every choice, or one value per choice."""
        if isinstance(value, str):
            self.meta[key] = [value] * len(self.choices)
        else:
            values = list(value)
            if len(values) != len(self.choices):
                raise ValueError(
                    f"meta '{key}' needs {len(self.choices)} values, got {len(values)}"
                )
            self.meta[key] = values
        return self

    def set_finalize(self, finalize: Finalize) -> "Suggestions":
        return self.set_meta("finalize", finalize.value)

    def extend(self, other: "Suggestions") -> "Suggestions":
        """Append the choices of ``other``, keeping each one's meta."""
        n_self, n_other = len(self.choices), len(other.choices)
        for key in set(self.meta) | set(other.meta):
            mine = self.meta.get(key, [""] * n_self)
            theirs = other.meta.get(key, [""] * n_other)
            self.meta[key] = mine + theirs
        self.choices = self.choices + other.choices
        if self.choices:
            self.cause_empty = None
        elif self.cause_empty is None:
            self.cause_empty = other.cause_empty
        return self

    def meta_at(self, index: int) -> dict[str, str]:
        """The meta values of one choice, without the empty ones."""
        return {key: values[index] for key, values in self.meta.items() if values[index]}

    def matching(self, query: str) -> "Suggestions":
        """Choices starting with the query first, then those containing it."""
        if not self.choices:
            return Suggestions(cause_empty=self.cause_empty, query=query)
        needle = query.lower()
        starts = []
        contains = []
        for i, choice in enumerate(self.choices):
            low = choice.lower()
            if low.startswith(needle):
                starts.append(i)
            elif needle in low:
                contains.append(i)
        order = starts + contains
        result = Suggestions(
            choices=[self.choices[i] for i in order],
            meta={key: [values[i] for i in order] for key, values in self.meta.items()},
            query=query,
        )
        if not order:
            result.cause_empty = "no match"
        return result


class RAutocomplete:
    """Suggests completions for R code, asking a running R session when needed."""

    def __init__(self, session: _Session, cache_root: str | Path | None = None):
        self.session = session
        self.cache_root = Path(cache_root) if cache_root is not None else None
        self._in_autocomp = False
        self._ctx = AutocompleteRContext()
        self._context = ""
        self._after_context = ""
        self._in_path = False
        self._path_query = ""
        self._current_code = "D"
        self._current = Suggestions()
        self._by_code: dict[str, Suggestions] = {}
        self.allowed_codes = ""
        self._first_update = False
        self._rversion = ""
        self._package_name: str | None = None

    #
    # helpers
    #

    def _run(self, command: str) -> RResult:
        return self.session.run(command)

    def _strings(self, command: str) -> list[str]:
        return self._run(command).as_strings()

    def _bool(self, command: str) -> bool:
        return self._run(command).as_bool()

    def _cache(self, name: str) -> CachedData:
        if self.cache_root is None:
            return CachedData(name, CachedData.Kind.ONLY_MEMORY)
        return CachedData(name, CachedData.Kind.ON_DISK, self.cache_root)

    def _r_version(self) -> str:
        if not self._rversion:
            major = self._run("R.version$major").as_string() or ""
            minor = self._run("R.version$minor").as_string() or ""
            self._rversion = f"R_{major}.{minor}"
        return self._rversion

    def _is_data_table(self, base: str | None) -> bool:
        if base is None or not exists(self.session, base):
            return False
        return self._bool(f'inherits({base}, "data.table")')

    #
    # suggestions
    #

    def _suggest_path(self) -> Suggestions:
        found = suggest_path(self._path_query)
        self._path_query = found.query
        choices = Suggestions(choices=list(found.choices), cause_empty=found.cause_empty)
        if choices.choices:
            choices.set_finalize(Finalize.PATH)
        return choices

    def _suggest_dollar_arobase(self) -> Suggestions:
        obj = self._ctx.contextual_object
        if not obj.validate(self.session):
            return Suggestions(cause_empty=obj.error)
        data = obj.data_name(self.session)

        names: list[str] = []
        if self._ctx.type is AcType.DOLLAR:
            if not self._bool(f"is.list({data}) || is.environment({data})"):
                return Suggestions(cause_empty=f"The object {_dquote(data)} is not list-like")
            names = self._strings(f"names({data})")
        elif self._ctx.type is AcType.AROBASE:
            names = self._strings(f"slotNames({data})")

        choices = Suggestions(names).set_finalize(Finalize.DEFAULT)
        if choices.empty:
            if length(self.session, data) <= 0:
                choices.cause_empty = "The object is empty"
            else:
                choices.cause_empty = "The object does not have names"
        return choices

    def _suggest_introspection(self) -> Suggestions:
        obj = self._ctx.contextual_object
        valid = obj.validate(self.session)
        data = obj.data_name(self.session)

        is_char = False
        all_values: list[str] = []
        if not valid:
            if is_valid_r_name(data) and len(self._context) > 3:
                larger = parse_context(self._context[:-2])
                base = larger.data_container
                if self._is_data_table(base):
                    var_name = data
                    if len(var_name) > 2 and var_name[0] == "`" and var_name[-1] == "`":
                        var_name = var_name[1:-1]
                    if self._bool(f"{_dquote(var_name)} %in% names({base})"):
                        varname = f"{base}[[{_dquote(var_name)}]]"
                        all_values = self._strings(f"as.character({varname})")
                        is_char = self._bool(f"is.character({varname}) || is.factor({varname})")
            if not all_values:
                return Suggestions(cause_empty=obj.error)
        else:
            all_values = self._strings(f"as.character({data})")
            is_char = self._bool(f"is.character({data}) || is.factor({data})")

        counts = Counter(all_values)
        unique = list(counts)
        choices = Suggestions(unique)
        choices.set_meta("labels", [f" <{counts[v]}>" for v in unique])
        choices.set_meta("is_char", "true" if is_char else "false")
        return choices.set_finalize(Finalize.INTROSPECTION)

    def _suggest_namespace_exports(self) -> Suggestions:
        data = self._ctx.contextual_object.data_name(self.session)
        if not is_valid_name(data):
            return Suggestions(cause_empty=f"The package name {_dquote(data)} is invalid")
        if not self._bool(f"requireNamespace(package = {_dquote(data)}, quietly = TRUE)"):
            return Suggestions(cause_empty=f"The package {_dquote(data)} is not installed")

        names: list[str] = []
        if self._ctx.type is AcType.NAMESPACE_EXPORTS:
            names = self._strings(f"sort(getNamespaceExports({_dquote(data)}))")
        elif self._ctx.type is AcType.NAMESPACE_ALL:
            names = self._strings(f"ls(envir = asNamespace({_dquote(data)}))")
        return Suggestions(names).set_finalize(Finalize.FUNCTION)

    def _suggest_package(self, add_colon: bool = False) -> Suggestions:
        fun = self._ctx.function_container.name
        installed = self._strings("list.files(.libPaths())")
        if not installed:
            return Suggestions(
                cause_empty="No installed package found. Likely a library location issue. "
                "Is .libPaths() fine?"
            )
        if add_colon:
            return Suggestions([p + "::" for p in installed]).set_finalize(Finalize.PACKAGE_EXPORT)

        choices = Suggestions(installed)
        first_arg = self._ctx.query_arg_pos == 0
        if fun == "requireNamespace" and first_arg:
            return choices.set_finalize(Finalize.QUOTE)
        if fun in ("library", "require") and first_arg:
            return choices.set_finalize(Finalize.NONE)
        return choices.set_finalize(Finalize.PACKAGE_EXPORT)

    def _suggest_cran_package(self) -> Suggestions:
        cached = self._cache("CRAN_packages.txt")
        if cached.days_since_last_write() > 50:
            pkgs = self._strings('available.packages()[, "Package"]')
            if not pkgs:
                return Suggestions(
                    cause_empty="The list of available packages on CRAN could not be retrived"
                )
            cached.set_cached_vector(pkgs)
            return Suggestions(pkgs).set_finalize(Finalize.QUOTE)
        return Suggestions(cached.get_cached_vector()).set_finalize(Finalize.QUOTE)

    def _suggest_argument(self) -> Suggestions:
        ctx = self._ctx
        fn = ctx.function_container
        if fn.empty:
            return Suggestions(cause_empty=f"No argument found for `{fn.name}`")

        if ctx.is_data_function:
            data = parse_variable(ctx.data_container or "")
            if not data.validate(self.session):
                return Suggestions(cause_empty=data.error)
            fun = fn.name
            full_fun = ""
            choices = Suggestions()
            for cls in self._strings(f"class({data.data_name(self.session)})"):
                full_fun = f"{fun}.{cls}"
                if self._bool(f'isS3method("{full_fun}")'):
                    args = self._strings(
                        f"names(formals(args(getS3method({_dquote(fun)}, {_dquote(cls)}))))"
                    )
                    # the first argument is always the data
                    if len(args) > 1:
                        choices = Suggestions([a + " = " for a in args[1:]])
                        break
            if choices.empty:
                choices.cause_empty = f'No argument found for "{full_fun}"'
            return choices.set_finalize(Finalize.NONE)

        if not fn.check_exists(self.session):
            return Suggestions(cause_empty=fn.error)

        fun = fn.complete_name()
        dqfun = _dquote(fun)
        if fun in CONTROL_FUNCTIONS:
            return Suggestions(cause_empty=f"{fun} is not a regular function")

        args = ctx.previous_arg_values
        arg_names: list[str] = []
        is_s3 = False
        if args and not fn.is_from_namespace():
            if self._bool(f"isS3method({dqfun}) || isS3stdGeneric({dqfun})"):
                first_arg = args[0].strip()
                if is_valid_name(first_arg) and exists(self.session, first_arg):
                    classes = self._strings(
                        f"tryCatch(class({first_arg}), error = function(e) character())"
                    )
                    for cl in classes:
                        method = f"getS3method({_dquote(fun)}, {_dquote(cl)})"
                        if self._bool(f"!is.null(tryCatch({method}, error = function(e) NULL))"):
                            arg_names = self._strings(f"names(formals(args({method})))")
                            if arg_names:
                                is_s3 = True
                                break

        if not is_s3:
            arg_names = self._strings(f"names(formals(args({fun})))")
        if not arg_names:
            return Suggestions(cause_empty=f"No argument found for `{fun}`")

        used = {name for name in ctx.previous_arg_names if name is not None}
        left = [a for a in arg_names if a not in used]
        if not left:
            return Suggestions(cause_empty=f"No arguments left for `{fun}`")
        return Suggestions([a + " = " for a in left]).set_finalize(Finalize.NONE)

    def _suggest_global_env(self) -> Suggestions:
        found = self._strings("base::ls(envir = .GlobalEnv, all.names = TRUE)")
        if not found:
            return Suggestions(cause_empty="No variable found in the Global environment")
        return Suggestions(found).set_finalize(Finalize.POSSIBLE_FUNCTION)

    def _suggest_variables(self, add_ls_vars: bool) -> Suggestions:
        base = self._ctx.data_container
        is_dt = self._is_data_table(base)

        choices = Suggestions()
        if is_dt:
            vars_dt = self._strings(f"names({base})")
            if vars_dt:
                choices = Suggestions(vars_dt).set_finalize(Finalize.DEFAULT)
            else:
                choices.cause_empty = "No variable found in the current data table"

        if not is_dt or add_ls_vars:
            in_browser = self._bool('getOption("sircon_is_in_browser", default = 0L)')
            if in_browser:
                found = self._strings('getOption("sircon_browser_ls", default = "")')
            else:
                found = self._strings("setdiff(base::ls(all.names = TRUE), '.Random.seed')")
            if found:
                choices.extend(Suggestions(found).set_finalize(Finalize.POSSIBLE_FUNCTION))
            else:
                choices.cause_empty = "No variable found in the current environment"
        return choices

    def _suggest_functions(self, add_ls_functions: bool) -> Suggestions:
        query = self._ctx.query

        # when developing a package, all of its functions are wanted
        if self._package_name is None:
            self._package_name = NOT_A_PACKAGE
            if self._bool('"DESCRIPTION" %in% list.files()'):
                name = self._run(
                    'trimws(gsub("^Package: ", "", readLines("DESCRIPTION", n = 1)))'
                ).as_string()
                if name:
                    self._package_name = name

        pkg = self._package_name
        pkg_funs: list[str] = []
        is_pkg = pkg != NOT_A_PACKAGE
        if is_pkg and not self._bool(f"{_dquote(pkg)}%in% loadedNamespaces()"):
            is_pkg = False
        if is_pkg:
            pkg_funs = self._strings(
                f'grep("^[^_]", ls(envir = asNamespace({_dquote(pkg)})), value = TRUE)'
            )

        ls_funs: list[str] = []
        if add_ls_functions and self._strings("ls()"):
            ls_funs = self._strings('ls()[sapply(ls(), function(x) exists(x, mode = "function"))]')

        loaded = f"setdiff(loadedNamespaces(), {_dquote(pkg)})" if is_pkg else "loadedNamespaces()"
        exports = f"sort(unlist(lapply({loaded}, function(x) getNamespaceExports(x))))"
        if query.startswith("."):
            funs = self._strings(f'grep("^[.]_", {exports}, invert = TRUE, value = TRUE)')
        else:
            funs = self._strings(f'grep("^[[:alpha:]]", {exports}, value = TRUE)')

        return Suggestions(pkg_funs + ls_funs + funs).set_finalize(Finalize.FUNCTION)

    def _suggest_all_datasets(self) -> Suggestions:
        cached = self._cache(self._r_version() + "/datasets_extensive.txt")
        if cached.is_unset():
            info: list[str] = []
            for index, lib_path in enumerate(self._strings(".libPaths()"), start=1):
                if not os.path.isdir(lib_path):
                    continue
                with os.scandir(lib_path) as it:
                    entries = sorted(it, key=lambda e: e.name)
                for entry in entries:
                    if not os.path.exists(os.path.join(entry.path, "Meta", "data.rds")):
                        continue
                    pkg = entry.name
                    pkg_info = self._strings(
                        f"readRDS(paste0(.libPaths()[{index}], '/{pkg}/Meta/data.rds'))[, 1]"
                    )
                    suffix = f', package = "{pkg}"'
                    for name in pkg_info:
                        if "(" not in name:
                            info.append(name if pkg == "datasets" else name + suffix)
            if not info:
                return Suggestions()
            cached.set_cached_vector(sorted(set(info)))

        return Suggestions(cached.get_cached_vector()).set_finalize(Finalize.NONE)

    def _suggest_basic_datasets(self) -> Suggestions:
        cached = self._cache(self._r_version() + "/datasets_basic.txt")
        if cached.is_unset():
            names: list[str] = []
            for lib_path in self._strings(".libPaths()"):
                path = (lib_path + "/datasets/Meta/data.rds").replace("\\", "/")
                if os.path.exists(path):
                    names.extend(self._strings(f"readRDS({_dquote(path)})[, 1]"))
            if not names:
                return Suggestions()
            cached.set_cached_vector([s for s in sorted(set(names)) if "(" not in s])
        return Suggestions(cached.get_cached_vector())

    def _suggest_env(self) -> Suggestions:
        return Suggestions(self._strings("names(Sys.getenv())")).set_finalize(Finalize.QUOTE)

    def _suggest_tilde(self) -> Suggestions:
        names: list[str] = []
        for var in self._ctx.possible_tilde_data:
            names = var.names(self.session)
            if names:
                break
        if not names:
            self._ctx.type = AcType.DEFAULT
            return self._suggest_default()
        return Suggestions(names).set_finalize(Finalize.DEFAULT)

    def _suggest_default(self) -> Suggestions:
        ctx = self._ctx
        kind = ctx.type
        query = ctx.query
        self.allowed_codes = DEFAULT_CODES

        if kind in (AcType.DOLLAR, AcType.AROBASE):
            self.allowed_codes = ""
            return self._suggest_dollar_arobase()
        if kind in (AcType.NAMESPACE_EXPORTS, AcType.NAMESPACE_ALL):
            return self._suggest_namespace_exports()
        if kind is AcType.TILDE:
            return self._suggest_tilde()
        if kind is AcType.INTROSPECTION:
            return self._suggest_introspection()

        fun = ctx.function_container.name
        first_arg = ctx.query_arg_pos == 0
        special = None
        if fun in ("library", "require", "requireNamespace") and first_arg:
            special = self._suggest_package
        elif fun == "install.packages" and first_arg:
            special = self._suggest_cran_package
        elif fun == "data" and first_arg:
            special = self._suggest_all_datasets
        elif fun == "Sys.getenv" and first_arg:
            special = self._suggest_env
        if special is not None:
            self.allowed_codes = DEFAULT_CODES_ARG
            return special()

        choices = Suggestions()
        if kind is AcType.FUNCTION_ARGUMENT and fun != ".":
            self.allowed_codes = DEFAULT_CODES_ARG
            # dt[order(|)] calls for the variables of the table
            prefer_variable = False
            data = ctx.data_container
            if fun == "order" and data is not None:
                if exists(self.session, data) and exists(
                    self.session, "is.data.table", mode_function=True
                ):
                    prefer_variable = self._bool(f"is.data.table(`{data}`)")
            if not prefer_variable:
                choices = self._suggest_argument()
                if not choices.empty and not query:
                    return choices

        choices.extend(self._suggest_variables(len(query) >= 2))
        early_suggest = len(query) == 1 and choices.empty

        if len(query) >= 2 or early_suggest:
            choices.extend(self._suggest_functions(False))

        if len(query) >= 3 or early_suggest:
            choices.extend(self._suggest_package(True))
            datasets = self._suggest_basic_datasets()
            datasets.set_finalize(Finalize.NONE)
            choices.extend(datasets)

        return choices

    #
    # public interface
    #

    def _save(self, query: str, choices: Suggestions) -> Suggestions:
        result = choices.matching(query)
        self._current = result
        return result

    def make_suggestions(self, context: AutocompleteContext) -> Suggestions:
        """Start a completion round for the given context."""
        self._in_autocomp = True
        self._by_code.clear()
        self._first_update = True
        self._context = context.before_cursor
        self._after_context = context.after_cursor
        self._in_path = context.is_in_path
        self._path_query = context.path_query
        self._ctx = parse_context(context.before_cursor, context.after_cursor)
        return self.update_suggestions(self._current_code)

    def update_suggestions(self, code: str) -> Suggestions:
        """Switch the kind of suggestions, one of the codes of ``MAP_CODE_TYPE``."""
        if not self._in_autocomp:
            return Suggestions(cause_empty="unavailable")

        if not self._first_update:
            if code == self._current_code:
                return Suggestions(cause_empty="identical")
            if code not in self.allowed_codes:
                return Suggestions(cause_empty="unavailable")
            self._by_code.setdefault(self._current_code, self._current)
            if code in self._by_code:
                self._current_code = code
                self._current = self._by_code[code]
                return self._current
        else:
            self._first_update = False

        kind = MAP_CODE_TYPE[code]
        query = self._ctx.query
        self._current_code = code

        if kind is AcType.DEFAULT:
            if self._in_path:
                choices = self._suggest_path()
                return choices.matching(self._path_query)
            return self._save(query, self._suggest_default())
        if kind is AcType.FUNCTION_ARGUMENT:
            return self._save(query, self._suggest_argument())
        if kind is AcType.PACKAGE:
            return self._save(query, self._suggest_package())
        if kind is AcType.VARIABLE:
            return self._save(query, self._suggest_variables(len(query) >= 1))
        if kind is AcType.GLOBAL_ENV:
            return self._save(query, self._suggest_global_env())
        return self._save(query, self._suggest_functions(True))

    def quit_autocomp(self) -> None:
        self._current = Suggestions()
        self._current_code = "D"
        self._by_code.clear()
        self._in_autocomp = False

    def finalize_autocomplete(
        self, text: str, meta: Mapping[str, str] | None = None
    ) -> AutocompleteResult:
        """Turn the chosen suggestion and its meta into the text to insert."""
        meta = dict(meta or {})
        if not self._in_autocomp:
            self.quit_autocomp()
            return AutocompleteResult.from_choice(text, meta)

        finalize = Finalize(meta["finalize"]) if "finalize" in meta else Finalize.DEFAULT
        self.quit_autocomp()

        if finalize is Finalize.NONE:
            return AutocompleteResult(text)
        if finalize is Finalize.PATH:
            return AutocompleteResult(text, continue_autocomp=True)
        if finalize is Finalize.QUOTE:
            return AutocompleteResult(_dquote(text))
        if finalize is Finalize.PACKAGE_EXPORT:
            if text.endswith(":"):
                return AutocompleteResult(text, continue_autocomp=True)
            return AutocompleteResult(text + "::", continue_autocomp=True)
        if finalize is Finalize.INTROSPECTION:
            # "iris$Species>>" is replaced by the value
            n_del = self._ctx.contextual_object.wide_width + 2
            if meta.get("is_char") == "true":
                text = _dquote(text)
            return AutocompleteResult(text, n_delete_left=n_del)

        fmt = text if is_valid_name(text) else _bquote(text)
        if finalize is Finalize.DEFAULT:
            return AutocompleteResult(fmt)
        if finalize is Finalize.POSSIBLE_FUNCTION:
            if not exists(self.session, text, mode_function=True):
                return AutocompleteResult(fmt)

        if not self._after_context:
            return AutocompleteResult(fmt + "()", cursor_shift=-1)

        c = self._after_context[0]
        if c == "(":
            return AutocompleteResult(fmt)
        if c == ")":
            if _any_open_paren_before(self._context, "("):
                return AutocompleteResult(fmt + "()", cursor_shift=-1)
            return AutocompleteResult(fmt + "(")
        if c in FUNCTION_FULL_PAREN:
            return AutocompleteResult(fmt + "()", cursor_shift=-1)
        return AutocompleteResult(fmt + "(")