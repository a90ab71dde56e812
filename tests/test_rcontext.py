import pytest

from sirconkit.rcontext import (
    AcType,
    ParsedFunction,
    build_line_from_context,
    find_container,
    parse_context,
    parse_function,
)
from sirconkit.rnames import RResult, SexpType, exists_command


class FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.commands = []

    def run(self, command):
        self.commands.append(command)
        return self.responses.get(command, RResult())


def _true():
    return RResult(values=[1], type=SexpType.LGLSXP)


def _false():
    return RResult(values=[0], type=SexpType.LGLSXP)


def _strings(*values):
    return RResult(values=list(values), type=SexpType.STRSXP)


# ParsedFunction


def test_parse_plain_function():
    fn = parse_function("mean")
    assert fn.name == "mean"
    assert fn.pkg == ""
    assert not fn.is_from_namespace()
    assert fn.complete_name() == "mean"
    assert fn.start == 0


def test_parse_double_colon_function():
    fn = parse_function("x <- stats::lm")
    assert fn.name == "lm"
    assert fn.pkg == "stats"
    assert fn.kind is ParsedFunction.Kind.DOUBLE_COLON
    assert fn.is_from_namespace()
    assert fn.complete_name() == "stats::lm"
    assert fn.start == len("x <- ")


def test_parse_triple_colon_function():
    fn = parse_function("stats:::lm")
    assert fn.kind is ParsedFunction.Kind.TRIPLE_COLON
    assert fn.complete_name() == "stats:::lm"


def test_parse_colons_without_package_is_loaded():
    fn = parse_function(" ::fun")
    assert fn.name == "fun"
    assert not fn.is_from_namespace()
    assert fn.complete_name() == "fun"


def test_parse_function_with_end():
    text = "mean(x"
    fn = parse_function(text, text.index("(") - 1)
    assert fn.name == "mean"


def test_empty_function_name():
    assert parse_function("(").empty
    assert not parse_function("f").empty


def test_check_exists_loaded_function():
    session = FakeSession({exists_command("mean", True, True): _true()})
    fn = parse_function("mean")
    assert fn.check_exists(session)
    assert fn.error == ""


def test_check_exists_missing_loaded_function():
    session = FakeSession({exists_command("nope", True, True): _false()})
    fn = parse_function("nope")
    assert not fn.check_exists(session)
    assert "nope" in fn.error


def test_check_exists_namespace_function():
    session = FakeSession(
        {
            'requireNamespace(package = "stats", quietly = TRUE)': _true(),
            'sort(getNamespaceExports("stats"))': _strings("lm", "glm"),
        }
    )
    assert parse_function("stats::lm").check_exists(session)
    missing = parse_function("stats::zzz")
    assert not missing.check_exists(session)
    assert "zzz" in missing.error and "stats" in missing.error


def test_check_exists_uninstalled_package():
    session = FakeSession({})
    fn = parse_function("pkg:::f")
    assert not fn.check_exists(session)
    assert '"pkg"' in fn.error


# Container


def test_find_container_arguments():
    line = "fun(a, b = 2, c"
    cont = find_container(line, len(line) - 1)
    assert cont.found
    assert not cont.is_data
    assert cont.function.name == "fun"
    assert cont.arg_names == [None, "b", None]
    assert cont.arg_values == ["a", "2", "c"]
    assert cont.cursor_position == 2
    assert cont.cursor_arg_name is None
    assert cont.cursor_arg_value == "c"
    assert cont.previous_arg_names == [None, "b"]
    assert cont.previous_arg_values == ["a", "2"]
    assert cont.other_arg_values == ["a", "2"]
    assert cont.pos_start == 0


def test_find_container_skips_closed_calls():
    line = "f(g(x), "
    cont = find_container(line, len(line) - 1)
    assert cont.function.name == "f"
    assert cont.previous_arg_values == ["g(x)"]
    assert cont.cursor_position == 1


def test_find_container_quoted_argument_keeps_commas():
    line = 'f("a,b", '
    cont = find_container(line, len(line) - 1)
    assert cont.arg_values[0] == '"a,b"'
    assert len(cont.arg_values) == 2


def test_find_container_data_selection():
    line = "dt[x > 1, "
    cont = find_container(line, len(line) - 1)
    assert cont.is_data
    assert cont.function.name == "["
    assert cont.data_name == "dt"
    assert cont.arg_values[0] == "x > 1"
    assert cont.cursor_position == 1


def test_find_container_double_bracket():
    line = "lst[["
    cont = find_container(line, len(line) - 1)
    assert cont.is_data
    assert cont.function.name == "[["
    assert cont.data_name == "lst"
    assert cont.cursor_position == 0
    assert cont.cursor_arg_name is None


def test_find_container_none():
    cont = find_container("abc", 2)
    assert not cont.found
    assert cont.arg_values == []


# build_line_from_context


def test_build_line_joins_current_line():
    line, cursor = build_line_from_context("x <- 1\nfoo(a", "b)\nrest")
    assert line == "foo(a b)"
    assert cursor == len("foo(a")


def test_build_line_without_after():
    assert build_line_from_context("abc", "") == ("abc", 3)


def test_build_line_ignores_newlines_in_quotes():
    before = 'old\nf("a\nb", '
    line, cursor = build_line_from_context(before, "")
    assert line == before[len("old\n"):]
    assert cursor == len(line)


# parse_context


def test_context_empty():
    ctx = parse_context("", "")
    assert ctx.type is AcType.VARIABLE
    assert ctx.query == ""


def test_context_plain_variable():
    ctx = parse_context("abc")
    assert ctx.type is AcType.VARIABLE
    assert ctx.query == "abc"


def test_context_dollar():
    ctx = parse_context("iris$Sp")
    assert ctx.type is AcType.DOLLAR
    assert ctx.query == "Sp"
    assert ctx.contextual_object.exprs == ["iris"]
    assert ctx.contextual_object.error == ""


def test_context_arobase():
    ctx = parse_context("obj@sl")
    assert ctx.type is AcType.AROBASE
    assert ctx.contextual_object.exprs == ["obj"]


def test_context_namespace_exports():
    ctx = parse_context("stats::m")
    assert ctx.type is AcType.NAMESPACE_EXPORTS
    assert ctx.query == "m"
    assert ctx.contextual_object.exprs == ["stats"]


def test_context_namespace_all():
    ctx = parse_context("stats:::m")
    assert ctx.type is AcType.NAMESPACE_ALL
    assert ctx.contextual_object.exprs == ["stats"]


def test_context_introspection():
    ctx = parse_context("iris$Species>>")
    assert ctx.type is AcType.INTROSPECTION
    assert ctx.query == ""
    assert ctx.contextual_object.exprs == ["Species", "iris"]


def test_context_function_argument():
    ctx = parse_context("mean(x, na")
    assert ctx.type is AcType.FUNCTION_ARGUMENT
    assert ctx.query == "na"
    assert ctx.function_container.name == "mean"
    assert ctx.query_arg_pos == 1
    assert ctx.query_arg_name is None
    assert ctx.previous_arg_values == ["x"]
    assert ctx.previous_arg_names == [None]
    assert ctx.data_container is None


def test_context_named_argument_value_is_variable():
    ctx = parse_context("f(a = b")
    assert ctx.type is AcType.VARIABLE
    assert ctx.query == "b"
    assert ctx.query_arg_name == "a"


def test_context_data_first_argument_is_variable():
    ctx = parse_context("dt[x")
    assert ctx.type is AcType.VARIABLE
    assert ctx.is_data_function
    assert ctx.data_container == "dt"
    assert ctx.function_container.name == "["


def test_context_data_third_argument_is_argument():
    ctx = parse_context("dt[, , by")
    assert ctx.type is AcType.FUNCTION_ARGUMENT
    assert ctx.query == "by"
    assert ctx.query_arg_pos == 2


def test_context_nested_call_in_data():
    ctx = parse_context("dt[, mean(x")
    assert ctx.function_container.name == "mean"
    assert not ctx.is_data_function
    assert ctx.data_container == "dt"
    assert ctx.type is AcType.FUNCTION_ARGUMENT


def test_context_tilde_finds_data():
    ctx = parse_context("lm(y ~ x", ", data = base)")
    assert ctx.type is AcType.TILDE
    assert [v.exprs for v in ctx.possible_tilde_data] == [["base"]]


def test_context_tilde_without_data_stays_argument():
    ctx = parse_context("lm(y ~ x", ")")
    assert ctx.type is AcType.FUNCTION_ARGUMENT
    assert ctx.possible_tilde_data == []


@pytest.mark.parametrize("text", ["((a", "f((x", "(("])
def test_context_degenerate_parens_terminate(text):
    ctx = parse_context(text)
    assert ctx.type is AcType.FUNCTION_ARGUMENT
    assert ctx.data_container is None