"""
Arbitrary-precision constant arithmetic.

Literals become Constants. Operands are promoted to Constants before any
operator runs, operators work on exact values (ints and Fractions), and
results are demoted to concrete Python values only where a concrete value is
needed: call arguments and index and slice bounds.
"""
import operator
import re
from fractions import Fraction
from typing import Any, Callable, Dict

from peek.peek_datatypes import Constant, ConstKind, Kind, deref, kind_of
from peek.peek_errors import (
    DivisionByZero, PromotionError, RangeError, TypeMismatch,
    UnsupportedLiteral, UnsupportedOperation,
)

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1

# Largest shift count accepted for constant shifts.
MAX_SHIFT = 1074

_NUMERIC = (ConstKind.INT, ConstKind.FLOAT)

_ESCAPES = {
    "a": "\a", "b": "\b", "f": "\f", "n": "\n", "r": "\r",
    "t": "\t", "v": "\v", "\\": "\\", "'": "'", '"': '"',
}
_ESCAPE_RE = re.compile(r"\\(x[0-9a-fA-F]{2}|u[0-9a-fA-F]{4}|U[0-9a-fA-F]{8}|[0-7]{3}|.)", re.DOTALL)


def make_bool(value: bool) -> Constant:
    return Constant(ConstKind.BOOL, bool(value))


def make_int(value: int) -> Constant:
    return Constant(ConstKind.INT, int(value))


def make_float(value) -> Constant:
    return Constant(ConstKind.FLOAT, Fraction(value))


def make_string(value: str) -> Constant:
    return Constant(ConstKind.STRING, str(value))


# -----------------------------------------------------------------
# Literals
# -----------------------------------------------------------------

def _unescape(body: str) -> str:
    def repl(m):
        esc = m.group(1)
        head = esc[0]
        if head in "xuU":
            return chr(int(esc[1:], 16))
        if head in "01234567" and len(esc) == 3:
            return chr(int(esc, 8))
        if esc in _ESCAPES:
            return _ESCAPES[esc]
        raise UnsupportedLiteral(f"unknown escape sequence \\{esc}")
    return _ESCAPE_RE.sub(repl, body)


def _parse_int(text: str) -> int:
    digits = text.replace("_", "")
    # Legacy octal: 0755
    if len(digits) > 1 and digits[0] == "0" and digits[1].isdigit():
        return int(digits, 8)
    return int(digits, 0)


def from_literal(kind: str, text: str) -> Constant:
    """Builds the Constant a literal denotes, preserving its exact value."""
    try:
        match kind:
            case "int":
                return make_int(_parse_int(text))
            case "float":
                return make_float(Fraction(text.replace("_", "")))
            case "string":
                return make_string(_unescape(text[1:-1]))
            case "raw_string":
                return make_string(text[1:-1])
            case "char":
                ch = _unescape(text[1:-1])
                if len(ch) != 1:
                    raise UnsupportedLiteral(f"invalid character literal {text}")
                return make_int(ord(ch))
            case "bool":
                return make_bool(text == "true")
            case "imag":
                raise UnsupportedLiteral(f"complex numbers are not supported: {text}")
            case _:
                raise UnsupportedLiteral(f"unsupported literal of type {kind!r}")
    except ValueError as e:
        raise UnsupportedLiteral(f"could not parse literal {text!r}") from e


# -----------------------------------------------------------------
# Promotion / demotion
# -----------------------------------------------------------------

def promote(value: Any) -> Constant:
    """Converts a concrete integer or float into a Constant; Constants pass through."""
    value = deref(value)
    if isinstance(value, Constant):
        return value
    kind = kind_of(value)
    if kind is Kind.INTEGER:
        return make_int(int(value))
    if kind is Kind.FLOAT:
        f = float(value)
        if f != f or f in (float("inf"), float("-inf")):
            raise PromotionError(f"cannot promote non-finite float {f!r}")
        return make_float(f)
    raise PromotionError(f"unsupported promotion of {kind.value} value")


def demote(value: Any) -> Any:
    """Narrows a Constant to a concrete Python value. Anything else is returned as is."""
    if not isinstance(value, Constant):
        return value
    match value.kind:
        case ConstKind.BOOL:
            return bool(value.value)
        case ConstKind.STRING:
            return str(value.value)
        case ConstKind.INT:
            i = value.value
            if i < INT64_MIN or i > INT64_MAX:
                raise RangeError(f"constant {i} overflows int64")
            return i
        case ConstKind.FLOAT:
            try:
                return float(value.value)
            except OverflowError as e:
                raise RangeError(f"constant {value.value} overflows float64") from e
    raise RangeError(f"cannot demote {value!r}")


def to_index(value: Any) -> int:
    """Demotes an index or slice bound to a concrete int."""
    value = deref(value)
    if isinstance(value, Constant):
        if value.kind is not ConstKind.INT:
            raise TypeMismatch(f"index must be an integer, not {value.kind.value} constant")
        return demote(value)
    if kind_of(value) is Kind.INTEGER:
        return int(value)
    raise TypeMismatch(f"index must be an integer, not {kind_of(value).value}")


# -----------------------------------------------------------------
# Operators
# -----------------------------------------------------------------

def _quo(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


def _rem(a: int, b: int) -> int:
    return a - b * _quo(a, b)


def _shift(fn: Callable[[int, int], int]) -> Callable[[int, int], int]:
    def apply(a: int, count: int) -> int:
        if count < 0:
            raise UnsupportedOperation(f"negative shift count {count}")
        if count > MAX_SHIFT:
            raise UnsupportedOperation(f"shift count {count} too large")
        return fn(a, count)
    return apply


_INT_OPS: Dict[str, Callable[[int, int], int]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "%": _rem,
    "&": operator.and_,
    "|": operator.or_,
    "^": operator.xor,
    "&^": lambda a, b: a & ~b,
    "<<": _shift(operator.lshift),
    ">>": _shift(operator.rshift),
}

_FLOAT_OPS: Dict[str, Callable[[Fraction, Fraction], Fraction]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}

_COMPARISONS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _unsupported(op: str, x: Constant, y: Constant) -> UnsupportedOperation:
    return UnsupportedOperation(
        f"operator {op} not defined on {x.kind.value} and {y.kind.value} constants")


def _compare(op: str, x: Constant, y: Constant) -> Constant:
    if x.kind in _NUMERIC and y.kind in _NUMERIC:
        return make_bool(_COMPARISONS[op](x.value, y.value))
    if x.kind is not y.kind:
        raise _unsupported(op, x, y)
    if x.kind is ConstKind.BOOL and op not in ("==", "!="):
        raise _unsupported(op, x, y)
    return make_bool(_COMPARISONS[op](x.value, y.value))


def binary_op(op: str, x: Constant, y: Constant) -> Constant:
    """Applies a binary operator to two promoted operands."""
    if op in _COMPARISONS:
        return _compare(op, x, y)

    if op in ("&&", "||"):
        if x.kind is not ConstKind.BOOL or y.kind is not ConstKind.BOOL:
            raise _unsupported(op, x, y)
        if op == "&&":
            return make_bool(x.value and y.value)
        return make_bool(x.value or y.value)

    if x.kind is ConstKind.STRING and y.kind is ConstKind.STRING:
        if op == "+":
            return make_string(x.value + y.value)
        raise _unsupported(op, x, y)

    if x.kind not in _NUMERIC or y.kind not in _NUMERIC:
        raise _unsupported(op, x, y)

    if op in ("/", "%") and y.value == 0:
        raise DivisionByZero("division by zero")

    if x.kind is ConstKind.INT and y.kind is ConstKind.INT:
        if op == "/":
            # Exact quotient: an int when it divides evenly, else a rational.
            a, b = x.value, y.value
            return make_int(a // b) if a % b == 0 else make_float(Fraction(a, b))
        fn = _INT_OPS.get(op)
        if fn is None:
            raise _unsupported(op, x, y)
        return make_int(fn(x.value, y.value))

    fn = _FLOAT_OPS.get(op)
    if fn is None:
        raise _unsupported(op, x, y)
    return make_float(fn(Fraction(x.value), Fraction(y.value)))


def unary_op(op: str, x: Constant) -> Constant:
    """Applies a unary operator to a promoted operand."""
    match op:
        case "+" if x.kind in _NUMERIC:
            return x
        case "-" if x.kind is ConstKind.INT:
            return make_int(-x.value)
        case "-" if x.kind is ConstKind.FLOAT:
            return make_float(-x.value)
        case "!" if x.kind is ConstKind.BOOL:
            return make_bool(not x.value)
        case "^" if x.kind is ConstKind.INT:
            return make_int(~x.value)
    raise UnsupportedOperation(f"operator {op} not defined on {x.kind.value} constant")
