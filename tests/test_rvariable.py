import pytest

from sirconkit.rnames import RResult, SexpType
from sirconkit.rvariable import ParsedVariable, parse_variable

Kind = ParsedVariable.Kind


class FakeSession:
    def __init__(self, answers=None):
        self.answers = answers or {}
        self.calls = []

    def run(self, command):
        self.calls.append(command)
        return self.answers.get(command, RResult())


class ExplodingSession:
    def run(self, command):
        raise AssertionError(f"unexpected R call: {command}")


def lgl(value):
    return RResult([1 if value else 0], SexpType.LGLSXP)


def strs(*values):
    return RResult(list(values), SexpType.STRSXP)


def ints(*values):
    return RResult(list(values), SexpType.INTSXP)


IRIS_NAMES = ["Sepal.Length", "Species"]


def iris_session(extra=None):
    answers = {
        'exists("iris")': lgl(True),
        "names(iris)": strs(*IRIS_NAMES),
        "names(iris$Species)": strs(),
    }
    answers.update(extra or {})
    return FakeSession(answers)


def test_parse_dollar_chain():
    text = "iris$Species"
    pv = parse_variable(text)
    assert pv.error == ""
    assert pv.exprs == ["Species", "iris"]
    assert pv.kinds == [Kind.DOLLAR, Kind.ROOT]
    assert pv.wide_width == len(text)
    assert pv.is_full_string


def test_parse_not_full_string():
    pv = parse_variable("x = iris$Species")
    assert pv.exprs == ["Species", "iris"]
    assert pv.wide_width == len("iris$Species")
    assert not pv.is_full_string


def test_parse_with_end_position():
    text = "iris$Sp>>"
    pv = parse_variable(text, text.index(">") - 1)
    assert pv.exprs == ["Sp", "iris"]
    assert pv.wide_width == len("iris$Sp")


def test_parse_arobase_and_brackets():
    pv = parse_variable('bon@jour[["les"]]$gens')
    assert pv.exprs == ["gens", '"les"', "jour", "bon"]
    assert pv.kinds == [Kind.DOLLAR, Kind.DOUBLE_SQUARE_BRACKET, Kind.AROBASE, Kind.ROOT]


def test_parse_single_bracket():
    pv = parse_variable("iris[1:2]")
    assert pv.exprs == ["1:2", "iris"]
    assert pv.kinds == [Kind.SINGLE_SQUARE_BRACKET, Kind.ROOT]


def test_parse_backticks():
    text = "`my var`$a"
    pv = parse_variable(text)
    assert pv.exprs == ["a", "`my var`"]
    assert pv.is_full_string
    assert pv.wide_width == len(text)


def test_parse_empty_string():
    assert parse_variable("").error == "empty string"


@pytest.mark.parametrize(
    "text, message",
    [
        ("$x", "parsing error: when data is chained it must start with a root variable"),
        ("data[[]]", "parsing error: empty variable name in `[[]]` selection"),
        ("data[]", "parsing error: empty variable name in `[]` selection"),
        ("``", "parsing error: empty variable name in backticks"),
    ],
)
def test_parse_errors(text, message):
    assert parse_variable(text).error == message


def test_parse_non_word_character():
    pv = parse_variable("a+")
    assert pv.error.startswith("parsing error: expecting a variable name")
    assert "(+)" in pv.error


def test_parse_unopened_backticks():
    assert "backticks not open" in parse_variable("x`").error


def test_validate_dollar():
    session = iris_session()
    pv = parse_variable("iris$Species")
    assert pv.validate(session)
    assert pv.data_name(session) == "iris$Species"
    assert pv.names(session) == IRIS_NAMES


def test_validate_is_cached():
    session = iris_session()
    pv = parse_variable("iris$Species")
    assert pv.validate(session)
    n_calls = len(session.calls)
    assert pv.validate(session)
    assert len(session.calls) == n_calls


def test_validate_missing_root():
    session = FakeSession()
    pv = parse_variable("foo$bar")
    assert not pv.validate(session)
    assert pv.error == "the variable `foo` does not exist"
    assert pv.data_name(session) == "foo"


def test_validate_invalid_root():
    pv = parse_variable("1x$a")
    assert not pv.validate(FakeSession())
    assert pv.error == "when data chaining, the root element must be a variable"


def test_validate_missing_dollar_value():
    pv = parse_variable("iris$Nope")
    assert not pv.validate(iris_session())
    assert pv.error == "the value `$Nope` does not exist"


def test_validate_string_bracket():
    session = iris_session()
    pv = parse_variable('iris[c("Species")]')
    assert pv.validate(session)
    assert pv.data_name(session) == 'iris[c("Species")]'


def test_validate_string_bracket_unknown_value():
    pv = parse_variable('iris[["Petal"]]')
    assert not pv.validate(iris_session())
    assert "`Petal` does not exist in the data set" in pv.error


def test_validate_double_bracket_rejects_vectors():
    pv = parse_variable("iris[[c(1, 2)]]")
    assert not pv.validate(iris_session())
    assert pv.error.startswith("double square brackets, [[]], accept only scalars")


def test_validate_numeric_bracket():
    session = iris_session()
    ok = parse_variable("iris[2]")
    assert ok.validate(session)
    assert ok.data_name(session) == "iris[2]"

    too_far = parse_variable("iris[9]")
    assert not too_far.validate(session)
    assert "does not exist in the data set" in too_far.error


def test_validate_variable_index():
    session = iris_session(
        {
            'exists("cols")': lgl(True),
            "is.character(cols)": lgl(True),
            "cols": strs("Species"),
        }
    )
    pv = parse_variable("iris[cols]")
    assert pv.validate(session)
    assert pv.data_name(session) == "iris[cols]"


def test_validate_numeric_variable_index():
    session = iris_session(
        {
            'exists("k")': lgl(True),
            "is.character(k)": lgl(False),
            "is.numeric(k)": lgl(True),
            "k": ints(5),
        }
    )
    pv = parse_variable("iris[[k]]")
    assert not pv.validate(session)
    assert "does not exist in the data set" in pv.error


def test_validate_unusable_index():
    pv = parse_variable("iris[a + b]")
    assert not pv.validate(iris_session())
    assert pv.error == "the expression `a + b` cannot be deduced"


def test_validate_parse_error_skips_session():
    pv = parse_variable("data[[]]")
    assert not pv.validate(ExplodingSession())
    assert pv.data_name(ExplodingSession()) == ""
    assert pv.names(ExplodingSession()) == []