import array
import dataclasses

import pytest

from peek.peek_datatypes import (
    Constant, ConstKind, Environment, FunctionInfo, Invalid, Kind, Record, Ref,
    ResultList, SliceView, api_method, as_bytes, deref, display_name,
    is_addressable, is_byte_sequence, is_callable, is_mapping, is_record,
    is_sequence, kind_of,
)
from peek.peek_errors import BindError


@dataclasses.dataclass
class Sensor(Record):
    label: str = dataclasses.field(default="thermo", metadata={"json": "name,omitempty"})
    reading: float = dataclasses.field(default=1.5, metadata={"json": ",omitempty"})
    raw: bytes = b""

    @api_method
    def reset(self) -> None:
        self.reading = 0.0

    def helper(self):
        return "not exposed"

    @api_method
    def calibrate(self, offset: float) -> float:
        return self.reading + offset


class Plain(Record):
    def __init__(self):
        self.alpha = 1
        self.beta = 2
        self._hidden = 3


# --- Kinds ---

KIND_CASES = [
    ("none", None, Kind.INVALID),
    ("invalid", Invalid, Kind.INVALID),
    ("bool", True, Kind.BOOL),
    ("int", 3, Kind.INTEGER),
    ("float", 2.5, Kind.FLOAT),
    ("str", "s", Kind.STRING),
    ("constant", Constant(ConstKind.INT, 1), Kind.CONSTANT),
    ("list", [1], Kind.SEQUENCE),
    ("tuple", (1,), Kind.SEQUENCE),
    ("bytes", b"x", Kind.SEQUENCE),
    ("array", array.array("i", [1]), Kind.SEQUENCE),
    ("result_list", ResultList([1, 2]), Kind.LIST),
    ("record", Sensor(), Kind.RECORD),
    ("mapping", {"a": 1}, Kind.MAPPING),
    ("function", len, Kind.FUNCTION),
    ("opaque", object(), Kind.OPAQUE),
]


@pytest.mark.parametrize("value, expected", [c[1:] for c in KIND_CASES], ids=[c[0] for c in KIND_CASES])
def test_kind_of(value, expected):
    assert kind_of(value) is expected


def test_ref_reports_referenced_kind():
    data = {"k": [1, 2]}
    ref = Ref(data, "k")
    assert kind_of(ref) is Kind.SEQUENCE
    assert is_addressable(ref)
    assert not is_addressable(data["k"])


def test_capability_checks():
    assert is_record(Sensor())
    assert is_mapping({})
    assert is_sequence([1])
    assert is_callable(print)
    assert not is_callable("x")


def test_invalid_is_a_singleton():
    assert type(Invalid)() is Invalid
    assert repr(Invalid) == "Invalid"


# --- Records ---

def test_dataclass_record_fields_and_tags():
    s = Sensor()
    assert s.field_names() == ["label", "reading", "raw"]
    assert s.field_tag("label", "json") == "name,omitempty"
    assert s.field_tag("raw", "json") is None
    assert s.field_tag("label", None) is None


def test_display_name_rules():
    s = Sensor()
    assert display_name(s, "label", "json") == "name"
    # An empty first segment keeps the field's own name
    assert display_name(s, "reading", "json") == "reading"
    assert display_name(s, "raw", "json") is None


def test_only_api_methods_are_exposed_in_declaration_order():
    s = Sensor()
    assert s.method_names() == ["reset", "calibrate"]
    assert s.get_method("helper") is None
    assert s.get_method("calibrate")(0.5) == 2.0


def test_plain_record_exposes_public_attributes():
    p = Plain()
    assert p.field_names() == ["alpha", "beta"]
    assert p.get_field("beta") == 2
    with pytest.raises(KeyError):
        p.get_field("_hidden")


def test_set_field_rejects_unknown_names():
    s = Sensor()
    s.set_field("label", "new")
    assert s.label == "new"
    with pytest.raises(KeyError):
        s.set_field("missing", 1)


# --- Refs and views ---

def test_ref_reads_and_writes_through_owner():
    items = [1, 2, 3]
    ref = Ref(items, 1)
    ref.set(20)
    assert items == [1, 20, 3]
    items[1] = 99
    assert ref.get() == 99


def test_ref_on_record_field():
    s = Sensor()
    ref = Ref(s, "reading")
    ref.set(4.0)
    assert s.reading == 4.0
    assert deref(ref) == 4.0


def test_ref_equality_is_by_owner_identity():
    a = [1]
    assert Ref(a, 0) == Ref(a, 0)
    assert Ref(a, 0) != Ref([1], 0)


def test_slice_view_shares_storage():
    backing = [0, 1, 2, 3, 4]
    view = SliceView(backing, 1, 4)
    assert len(view) == 3
    assert view == [1, 2, 3]
    view[0] = 10
    assert backing[1] == 10


def test_slice_view_of_view_flattens():
    backing = list(range(10))
    inner = SliceView(SliceView(backing, 2, 8), 1, 3)
    assert inner.backing is backing
    assert list(inner) == [3, 4]


def test_slice_view_is_fixed_length():
    view = SliceView([1, 2, 3], 0, 2)
    with pytest.raises(TypeError):
        view.append(4)
    with pytest.raises(IndexError):
        view[2]


def test_byte_sequences():
    assert is_byte_sequence(b"ab")
    assert is_byte_sequence(bytearray(b"ab"))
    assert is_byte_sequence(array.array("B", [1]))
    assert not is_byte_sequence(array.array("i", [1]))
    assert not is_byte_sequence([1, 2])
    assert is_byte_sequence(SliceView(bytearray(b"abc"), 0, 2))
    assert as_bytes(SliceView(bytearray(b"abcd"), 1, 3)) == b"bc"


# --- Functions ---

def test_function_info_describes_signature():
    def fn(a: int, b, *rest) -> None:
        pass
    info = FunctionInfo.of(fn)
    assert info.name == "fn"
    assert info.arity == 2
    assert info.variadic
    assert info.results == 0
    assert info.accepts(2) and info.accepts(5)
    assert not info.accepts(1)
    assert info.describe() == "fn(a: int, b, *args)"


def test_function_info_result_counts():
    def pair() -> tuple[int, str]:
        return 1, "a"

    def single() -> tuple:
        return 1, 2

    def unknown():
        return 1, 2

    assert FunctionInfo.of(pair).results == 2
    assert FunctionInfo.of(single).results == 1
    assert FunctionInfo.of(unknown).results is None


def test_function_outcome():
    def pair() -> tuple[int, str]:
        return 1, "a"

    def single() -> tuple:
        return 1, 2

    def nothing():
        return None

    assert FunctionInfo.of(pair).outcome(pair()) == ResultList([1, "a"])
    assert FunctionInfo.of(single).outcome(single()) == (1, 2)
    assert FunctionInfo.of(nothing).outcome(nothing()) is Invalid


def test_wants_ref_by_annotation():
    def by_ref(target: Ref, value):
        pass

    def by_name(target: "Ref"):
        pass

    assert FunctionInfo.of(by_ref).wants_ref(0)
    assert not FunctionInfo.of(by_ref).wants_ref(1)
    assert FunctionInfo.of(by_name).wants_ref(0)


def test_leading_underscore_is_dropped_from_name():
    def _ls(*values):
        pass
    assert FunctionInfo.of(_ls).name == "ls"


# --- Environment ---

def test_environment_bind_and_lookup():
    env = Environment()
    env.bind("a", 1)
    env.bind("b", 2)
    env.bind("a", 3)
    assert env.lookup("a") == (3, True)
    assert env.lookup("zz") == (Invalid, False)
    # Rebinding keeps the original position
    assert env.names() == ["a", "b"]


@pytest.mark.parametrize("name", ["a.b", "1x", "", "has space", 5])
def test_environment_rejects_bad_names(name):
    with pytest.raises(BindError):
        Environment().bind(name, 1)


def test_snapshot_is_a_copy():
    env = Environment()
    env.bind("x", 1)
    snap = env.snapshot()
    snap["y"] = 2
    assert "y" not in env
