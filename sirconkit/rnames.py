"""R object types, evaluation results and name checks."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Protocol

log = logging.getLogger(__name__)


class SexpType(enum.IntEnum):
    """Type codes of R objects."""

    NILSXP = 0
    SYMSXP = 1
    LISTSXP = 2
    CLOSXP = 3
    ENVSXP = 4
    PROMSXP = 5
    LANGSXP = 6
    SPECIALSXP = 7
    BUILTINSXP = 8
    CHARSXP = 9
    LGLSXP = 10
    INTSXP = 13
    REALSXP = 14
    CPLXSXP = 15
    STRSXP = 16
    DOTSXP = 17
    ANYSXP = 18
    VECSXP = 19
    EXPRSXP = 20
    BCODESXP = 21
    EXTPTRSXP = 22
    WEAKREFSXP = 23
    RAWSXP = 24
    S4SXP = 25
    OBJSXP = 25
    NEWSXP = 30
    FREESXP = 31
    FUNSXP = 99


_INTEGER_TYPES = (SexpType.INTSXP, SexpType.LGLSXP)
_EVAL_FAILED = "error when evaluating an R expression that shouldn't have failed"


class _Session(Protocol):
    def run(self, command: str) -> "RResult": ...


def show_sexptype(code: int) -> str:
    """Return the name of an R type code, or 'UNKNOWN:ERROR'."""
    try:
        return SexpType(int(code)).name
    except ValueError:
        return "UNKNOWN:ERROR"


def _round_half_away(x: float) -> int:
    if x >= 0:
        return int(math.floor(x + 0.5))
    return -int(math.floor(-x + 0.5))


@dataclass
class RResult:
    """The outcome of evaluating an R command: a vector of values or an error."""

    values: list[Any] = field(default_factory=list)
    type: int = SexpType.NILSXP
    error: str | None = None

    @property
    def is_error(self) -> bool:
        if self.error is not None:
            log.warning(
                "The R expression led to an error, implicit conversions lead to default values"
            )
            return True
        return False

    def __len__(self) -> int:
        return 0 if self.error is not None else len(self.values)

    @property
    def empty(self) -> bool:
        return len(self) == 0

    def as_strings(self) -> list[str]:
        """All values as strings; an empty list on error."""
        if self.is_error:
            return []
        return [str(v) for v in self.values]

    def as_string(self) -> str | None:
        """The first value as a string; None on error."""
        if self.is_error:
            return None
        if not self.values:
            raise ValueError("the R result holds no value")
        return str(self.values[0])

    def as_bool(self) -> bool:
        """The first value as a boolean; False on error or unsupported type."""
        if self.is_error:
            return False
        if self.type in _INTEGER_TYPES or self.type == SexpType.REALSXP:
            return bool(self.values) and self.values[0] != 0
        log.warning(
            "Error when converting to bool. Type %s is not supported.",
            show_sexptype(self.type),
        )
        return False

    def as_int(self) -> int:
        """The first value as an integer, rounding reals."""
        if self.is_error:
            raise RuntimeError(_EVAL_FAILED)
        if self.type in _INTEGER_TYPES:
            return int(self.values[0])
        if self.type == SexpType.REALSXP:
            return _round_half_away(float(self.values[0]))
        log.warning(
            "Error when converting to int. Type %s is not supported.",
            show_sexptype(self.type),
        )
        return 0

    def as_ints(self) -> list[int]:
        """All values as integers, rounding reals."""
        if self.is_error:
            raise RuntimeError(_EVAL_FAILED)
        if self.type in _INTEGER_TYPES:
            return [int(v) for v in self.values]
        if self.type == SexpType.REALSXP:
            return [_round_half_away(float(v)) for v in self.values]
        log.warning(
            "Error when converting to a list of int. Type %s is not supported.",
            show_sexptype(self.type),
        )
        return []


R_INVALID_CHARACTER = " +-*=<>!?|&$@[]{}()'~,;:/\\#"
R_INVALID_FIRST_CHARACTER = "_0123456789" + R_INVALID_CHARACTER


def is_valid_name(name: str) -> bool:
    """Whether a name can be used unquoted in R."""
    if not name:
        return False
    if name[0] in R_INVALID_FIRST_CHARACTER:
        return False
    return not any(c in R_INVALID_CHARACTER for c in name[1:])


def exists_command(name: str, mode_function: bool = False, inherits: bool = True) -> str:
    """Build the R command checking that an object exists."""
    suffix = ""
    if mode_function:
        suffix += ', mode = "function"'
    if not inherits:
        suffix += ", inherits = FALSE"
    return f'exists("{name}"{suffix})'


def exists(session: _Session, name: str, mode_function: bool = False, inherits: bool = True) -> bool:
    """Whether an R object of that name exists in the session."""
    if not name:
        return False
    result = session.run(exists_command(name, mode_function, inherits))
    return not result.empty and result.as_bool()


def length(session: _Session, name: str) -> int:
    """Length of an R object, or -1 when it does not exist."""
    if not exists(session, name):
        return -1
    return session.run(f"length({name})[1]").as_int()