import pytest
from fractions import Fraction

from peek.peek_constant import (
    INT64_MAX, binary_op, demote, from_literal, make_bool, make_float, make_int,
    make_string, promote, to_index, unary_op,
)
from peek.peek_datatypes import Constant, ConstKind, Ref
from peek.peek_errors import (
    DivisionByZero, PromotionError, RangeError, TypeMismatch,
    UnsupportedLiteral, UnsupportedOperation,
)


# --- Literals ---

LITERAL_CASES = [
    ("decimal", "int", "42", make_int(42)),
    ("underscores", "int", "1_000_000", make_int(1000000)),
    ("hex", "int", "0x1F", make_int(31)),
    ("octal_prefix", "int", "0o17", make_int(15)),
    ("legacy_octal", "int", "0755", make_int(493)),
    ("binary", "int", "0b101", make_int(5)),
    ("huge", "int", "123456789012345678901234567890", make_int(123456789012345678901234567890)),
    ("float", "float", "1.5", make_float(Fraction(3, 2))),
    ("float_exp", "float", "2.5e3", make_float(2500)),
    ("float_exact", "float", "0.1", Constant(ConstKind.FLOAT, Fraction(1, 10))),
    ("string", "string", '"a\\tb"', make_string("a\tb")),
    ("string_hex_escape", "string", '"\\x41"', make_string("A")),
    ("raw_string", "raw_string", "`a\\tb`", make_string("a\\tb")),
    ("char", "char", "'a'", make_int(97)),
    ("char_escape", "char", "'\\n'", make_int(10)),
    ("true", "bool", "true", make_bool(True)),
    ("false", "bool", "false", make_bool(False)),
]


@pytest.mark.parametrize("kind, text, expected", [c[1:] for c in LITERAL_CASES], ids=[c[0] for c in LITERAL_CASES])
def test_from_literal(kind, text, expected):
    assert from_literal(kind, text) == expected


def test_imaginary_literal_is_unsupported():
    with pytest.raises(UnsupportedLiteral):
        from_literal("imag", "2i")


def test_bad_legacy_octal_is_unsupported():
    with pytest.raises(UnsupportedLiteral):
        from_literal("int", "09")


# --- Promotion / demotion ---

def test_promote_concrete_numbers():
    assert promote(5) == make_int(5)
    assert promote(2.5) == make_float(Fraction(5, 2))


def test_promote_passes_constants_through():
    c = make_string("x")
    assert promote(c) is c


def test_promote_reads_refs():
    data = [10, 20]
    assert promote(Ref(data, 1)) == make_int(20)


@pytest.mark.parametrize("value", ["text", [1, 2], {"a": 1}, None])
def test_promote_rejects_other_kinds(value):
    with pytest.raises(PromotionError):
        promote(value)


def test_demote_narrows_each_kind():
    assert demote(make_bool(True)) is True
    assert demote(make_string("s")) == "s"
    assert demote(make_int(7)) == 7
    assert demote(make_float(Fraction(1, 4))) == 0.25


def test_demote_int64_boundary():
    assert demote(make_int(INT64_MAX)) == INT64_MAX
    with pytest.raises(RangeError):
        demote(make_int(INT64_MAX + 1))


def test_demote_float_overflow():
    with pytest.raises(RangeError):
        demote(make_float(Fraction(10) ** 400))


def test_demote_leaves_concrete_values_alone():
    items = [1, 2]
    assert demote(items) is items


def test_to_index():
    assert to_index(make_int(3)) == 3
    assert to_index(4) == 4
    with pytest.raises(TypeMismatch):
        to_index(make_float(Fraction(1, 2)))
    with pytest.raises(TypeMismatch):
        to_index("0")


# --- Operators ---

INT_CASES = [
    ("add", "+", 2, 3, 5),
    ("sub", "-", 2, 3, -1),
    ("mul", "*", 4, 5, 20),
    ("quo_even", "/", 12, -4, -3),
    ("rem_sign_of_dividend", "%", -7, 2, -1),
    ("rem_positive", "%", 7, -2, 1),
    ("and", "&", 6, 3, 2),
    ("or", "|", 6, 3, 7),
    ("xor", "^", 6, 3, 5),
    ("and_not", "&^", 6, 3, 4),
    ("shl", "<<", 1, 100, 1 << 100),
    ("shr", ">>", 256, 4, 16),
]


@pytest.mark.parametrize("op, x, y, expected", [c[1:] for c in INT_CASES], ids=[c[0] for c in INT_CASES])
def test_integer_operators(op, x, y, expected):
    assert binary_op(op, make_int(x), make_int(y)) == make_int(expected)


def test_float_arithmetic_is_exact():
    total = binary_op("+", make_float(Fraction(1, 10)), make_float(Fraction(2, 10)))
    assert binary_op("==", total, make_float(Fraction(3, 10))) == make_bool(True)


def test_integer_division_is_exact():
    assert binary_op("/", make_int(7), make_int(2)) == make_float(Fraction(7, 2))
    assert binary_op("/", make_int(-7), make_int(2)) == make_float(Fraction(-7, 2))
    assert binary_op("/", make_int(1 << 100), make_int(1 << 98)) == make_int(4)


def test_mixed_int_float_division():
    assert binary_op("/", make_float(7), make_int(2)) == make_float(Fraction(7, 2))


def test_float_remainder_is_unsupported():
    with pytest.raises(UnsupportedOperation):
        binary_op("%", make_float(Fraction(7, 2)), make_int(2))


@pytest.mark.parametrize("op", ["/", "%"])
def test_division_by_zero(op):
    with pytest.raises(DivisionByZero):
        binary_op(op, make_int(1), make_int(0))


def test_float_division_by_zero():
    with pytest.raises(DivisionByZero):
        binary_op("/", make_float(1), make_float(0))


def test_negative_shift_is_unsupported():
    with pytest.raises(UnsupportedOperation):
        binary_op("<<", make_int(1), make_int(-1))


def test_string_concat_and_compare():
    assert binary_op("+", make_string("a"), make_string("b")) == make_string("ab")
    assert binary_op("<", make_string("a"), make_string("b")) == make_bool(True)
    with pytest.raises(UnsupportedOperation):
        binary_op("-", make_string("a"), make_string("b"))


def test_comparison_across_categories_is_unsupported():
    with pytest.raises(UnsupportedOperation):
        binary_op("==", make_int(1), make_string("1"))
    with pytest.raises(UnsupportedOperation):
        binary_op("==", make_bool(True), make_int(1))


def test_bool_operators():
    t, f = make_bool(True), make_bool(False)
    assert binary_op("&&", t, f) == f
    assert binary_op("||", t, f) == t
    assert binary_op("!=", t, f) == t
    with pytest.raises(UnsupportedOperation):
        binary_op("<", t, f)
    with pytest.raises(UnsupportedOperation):
        binary_op("&&", t, make_int(1))


def test_unary_operators():
    assert unary_op("-", make_int(5)) == make_int(-5)
    assert unary_op("+", make_int(5)) == make_int(5)
    assert unary_op("-", make_float(Fraction(1, 2))) == make_float(Fraction(-1, 2))
    assert unary_op("!", make_bool(True)) == make_bool(False)
    assert unary_op("^", make_int(0)) == make_int(-1)
    with pytest.raises(UnsupportedOperation):
        unary_op("!", make_int(1))
    with pytest.raises(UnsupportedOperation):
        unary_op("-", make_string("a"))
