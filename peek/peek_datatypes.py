"""
Defines the core data types for the peek evaluator.

This module provides the runtime value model (kinds, capability checks,
addressable references, slice views, host records, function descriptions),
the Environment that holds top-level bindings, and the expression tree
nodes produced by the transformer.
"""

import array
import collections.abc
import dataclasses
import enum
import inspect
import numbers
import typing
from fractions import Fraction
from typing import Any, Dict, List, Optional, Tuple

from peek.peek_errors import BindError


# =================================================================
# Kinds and singletons
# =================================================================

class Kind(enum.Enum):
    """Discriminant reported by every value the evaluator can hold."""
    INVALID = "invalid"
    BOOL = "bool"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    CONSTANT = "constant"
    SEQUENCE = "sequence"
    RECORD = "record"
    MAPPING = "mapping"
    FUNCTION = "function"
    LIST = "list"
    # Host objects that expose none of the capabilities above.
    OPAQUE = "opaque"


class _InvalidType:
    """The absence of a value (assignments, functions without results)."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "Invalid"

    def __reduce__(self):
        return (_InvalidType, ())


Invalid = _InvalidType()


class ConstKind(enum.Enum):
    BOOL = "bool"
    STRING = "string"
    INT = "int"
    FLOAT = "float"


@dataclasses.dataclass(frozen=True)
class Constant:
    """An untyped literal value prior to use.

    Integers are Python ints and floats are exact Fractions, so no precision
    is lost until the constant is demoted at a call argument or an index.
    """
    kind: ConstKind
    value: Any

    def __repr__(self) -> str:
        if isinstance(self.value, Fraction):
            return f"Constant({self.kind.value} {self.value.numerator}/{self.value.denominator})"
        return f"Constant({self.kind.value} {self.value!r})"


class ResultList(list):
    """Results of a call returning several values, in order."""

    def __repr__(self) -> str:
        return f"ResultList({list.__repr__(self)})"


# =================================================================
# Host records
# =================================================================

def api_method(func):
    """A decorator to explicitly mark Record methods as callable from expressions."""
    func._is_api_method = True
    return func


class Record:
    """Base class for host objects exposed to the evaluator as records.

    A record has ordered, named fields (optionally carrying display tags) and
    named methods. The defaults below serve dataclasses, whose fields come
    from `dataclasses.fields` and whose tags come from field metadata:

        count: int = dataclasses.field(default=0, metadata={"json": "count,omitempty"})

    Plain classes expose their public instance attributes. Subclasses wrapping
    other storage (ctypes structures, shared memory) override the accessors.
    Only methods decorated with @api_method are visible.
    """

    def field_names(self) -> List[str]:
        if dataclasses.is_dataclass(self):
            return [f.name for f in dataclasses.fields(self)]
        return [k for k in vars(self) if not k.startswith("_")]

    def field_tag(self, name: str, tag: Optional[str]) -> Optional[str]:
        if not tag or not dataclasses.is_dataclass(self):
            return None
        for f in dataclasses.fields(self):
            if f.name == name:
                return f.metadata.get(tag)
        return None

    def get_field(self, name: str) -> Any:
        if name not in self.field_names():
            raise KeyError(name)
        return getattr(self, name)

    def set_field(self, name: str, value: Any) -> None:
        if name not in self.field_names():
            raise KeyError(name)
        setattr(self, name, value)

    def method_names(self) -> List[str]:
        names: List[str] = []
        # Base classes first, each in declaration order.
        for klass in reversed(type(self).__mro__):
            for name, member in vars(klass).items():
                if getattr(member, "_is_api_method", False) and name not in names:
                    names.append(name)
        return names

    def get_method(self, name: str):
        if name in self.method_names():
            return getattr(self, name)
        return None


def display_name(record: Record, field_name: str, tag: Optional[str]) -> Optional[str]:
    """The name a field is addressed by: the first segment of its tag, else its own name.

    Returns None when the field carries no tag under `tag`.
    """
    text = record.field_tag(field_name, tag)
    if text is None:
        return None
    alias = text.split(",", 1)[0]
    return alias or field_name


# =================================================================
# Addressable values and views
# =================================================================

class Ref:
    """An addressable value: a field, element or entry inside an owner.

    Reading goes back to the owner every time, so a Ref held in the
    Environment sees later changes to the underlying storage. `set` writes
    through to the owner in place.
    """
    __slots__ = ("owner", "key")

    def __init__(self, owner: Any, key: Any):
        self.owner = owner
        self.key = key

    def get(self) -> Any:
        if isinstance(self.owner, Record):
            return self.owner.get_field(self.key)
        return self.owner[self.key]

    def set(self, value: Any) -> None:
        if isinstance(self.owner, Record):
            self.owner.set_field(self.key, value)
        else:
            self.owner[self.key] = value

    def __eq__(self, other):
        if not isinstance(other, Ref):
            return NotImplemented
        return self.owner is other.owner and self.key == other.key

    def __hash__(self):
        return hash((id(self.owner), repr(self.key)))

    def __repr__(self) -> str:
        return f"Ref({type(self.owner).__name__}, {self.key!r})"


def deref(value: Any) -> Any:
    while isinstance(value, Ref):
        value = value.get()
    return value


class SliceView(collections.abc.MutableSequence):
    """A window [start, end) over a mutable sequence, sharing its storage.

    The window has a fixed length: elements can be replaced, not inserted or
    removed.
    """
    __slots__ = ("backing", "start", "end")

    def __init__(self, backing, start: int, end: int):
        if isinstance(backing, SliceView):
            start += backing.start
            end += backing.start
            backing = backing.backing
        self.backing = backing
        self.start = int(start)
        self.end = int(end)

    def __len__(self):
        if self.end < self.start:
            return 0
        return self.end - self.start

    def _position(self, idx: int) -> int:
        n = len(self)
        if idx < 0:
            idx += n
        if idx < 0 or idx >= n:
            raise IndexError(idx)
        return self.start + idx

    def __getitem__(self, idx):
        if isinstance(idx, slice):
            s_start, s_stop, s_step = idx.indices(len(self))
            base = self.start
            return [self.backing[base + k] for k in range(s_start, s_stop, s_step)]
        return self.backing[self._position(idx)]

    def __setitem__(self, idx, value):
        if isinstance(idx, slice):
            raise TypeError("slice assignment is not supported on a view")
        self.backing[self._position(idx)] = value

    def __delitem__(self, idx):
        raise TypeError("cannot delete from a fixed-length view")

    def insert(self, index, value):
        raise TypeError("cannot insert into a fixed-length view")

    def __iter__(self):
        base = self.start
        for k in range(len(self)):
            yield self.backing[base + k]

    def __eq__(self, other):
        if isinstance(other, (collections.abc.Sequence, bytes, bytearray, array.array)):
            return len(self) == len(other) and all(a == b for a, b in zip(self, other))
        return NotImplemented

    def __repr__(self):
        return f"SliceView({type(self.backing).__name__}[{self.start}:{self.end}])"


# =================================================================
# Kind classification and capability checks
# =================================================================

_SEQUENCE_TYPES = (bytes, bytearray, memoryview, array.array, collections.abc.Sequence)


def kind_of(value: Any) -> Kind:
    """Classifies a value. A Ref reports the kind of what it refers to."""
    value = deref(value)
    if value is Invalid or value is None:
        return Kind.INVALID
    if isinstance(value, Constant):
        return Kind.CONSTANT
    # bool is an Integral, so check it first
    if isinstance(value, bool):
        return Kind.BOOL
    if isinstance(value, numbers.Integral):
        return Kind.INTEGER
    if isinstance(value, numbers.Real):
        return Kind.FLOAT
    if isinstance(value, str):
        return Kind.STRING
    if isinstance(value, ResultList):
        return Kind.LIST
    if isinstance(value, Record):
        return Kind.RECORD
    if isinstance(value, collections.abc.Mapping):
        return Kind.MAPPING
    if isinstance(value, _SEQUENCE_TYPES):
        return Kind.SEQUENCE
    if callable(value):
        return Kind.FUNCTION
    return Kind.OPAQUE


def is_addressable(value: Any) -> bool:
    return isinstance(value, Ref)


def is_callable(value: Any) -> bool:
    return kind_of(value) is Kind.FUNCTION


def is_record(value: Any) -> bool:
    return kind_of(value) is Kind.RECORD


def is_sequence(value: Any) -> bool:
    return kind_of(value) is Kind.SEQUENCE


def is_mapping(value: Any) -> bool:
    return kind_of(value) is Kind.MAPPING


def is_mutable_sequence(value: Any) -> bool:
    if isinstance(value, memoryview):
        return not value.readonly
    return isinstance(value, (bytearray, array.array, collections.abc.MutableSequence))


def is_byte_sequence(value: Any) -> bool:
    """True for sequences whose elements are bytes (C-style char buffers)."""
    value = deref(value)
    if isinstance(value, SliceView):
        return is_byte_sequence(value.backing)
    if isinstance(value, (bytes, bytearray)):
        return True
    if isinstance(value, memoryview):
        return value.format in ("B", "b", "c")
    if isinstance(value, array.array):
        return value.typecode in ("B", "b")
    return False


def as_bytes(value: Any) -> bytes:
    """The raw bytes of a byte sequence, honouring slice view bounds."""
    value = deref(value)
    if isinstance(value, SliceView):
        return as_bytes(value.backing)[value.start:value.end]
    return bytes(value)


# =================================================================
# Functions
# =================================================================

@dataclasses.dataclass
class FunctionInfo:
    """Arity, parameter types and result count of a callable."""
    name: str
    params: List[Tuple[str, Any]]
    variadic: bool = False
    # None when the callable does not declare its results.
    results: Optional[int] = None

    @classmethod
    def of(cls, fn) -> "FunctionInfo":
        name = getattr(fn, "__name__", None) or type(fn).__name__
        name = name.lstrip("_") or name
        try:
            sig = inspect.signature(fn)
        except (TypeError, ValueError):
            # Some builtins publish no signature; accept any argument count.
            return cls(name, [], variadic=True)

        params: List[Tuple[str, Any]] = []
        variadic = False
        for p in sig.parameters.values():
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD):
                params.append((p.name, p.annotation))
            elif p.kind is p.VAR_POSITIONAL:
                variadic = True
        return cls(name, params, variadic, _result_count(sig.return_annotation))

    @property
    def arity(self) -> int:
        return len(self.params)

    def accepts(self, count: int) -> bool:
        if self.variadic:
            return count >= self.arity
        return count == self.arity

    def wants_ref(self, position: int) -> bool:
        """True when the parameter at `position` is annotated as a Ref."""
        if position >= len(self.params):
            return False
        annotation = self.params[position][1]
        return annotation is Ref or annotation == "Ref"

    def outcome(self, out: Any) -> Any:
        if self.results == 0 or out is None:
            return Invalid
        if isinstance(out, tuple) and self.results != 1:
            return ResultList(out)
        return out

    def describe(self) -> str:
        parts = []
        for pname, annotation in self.params:
            if annotation is inspect.Parameter.empty:
                parts.append(pname)
            else:
                parts.append(f"{pname}: {_annotation_name(annotation)}")
        if self.variadic:
            parts.append("*args")
        text = f"{self.name}({', '.join(parts)})"
        if self.results == 0:
            return text
        if self.results is not None and self.results > 1:
            return f"{text} -> {self.results} results"
        return text


def _annotation_name(annotation: Any) -> str:
    if isinstance(annotation, str):
        return annotation
    return getattr(annotation, "__name__", None) or repr(annotation)


def _result_count(annotation: Any) -> Optional[int]:
    if annotation is inspect.Signature.empty:
        return None
    if annotation is None or annotation == "None":
        return 0
    if typing.get_origin(annotation) is tuple:
        args = typing.get_args(annotation)
        if args and Ellipsis not in args:
            return len(args)
        return None
    if isinstance(annotation, str):
        text = annotation.replace(" ", "")
        if text.startswith(("tuple[", "Tuple[")) and "..." not in text:
            return _count_top_level_items(text[text.index("[") + 1:-1])
        return 1
    return 1


def _count_top_level_items(text: str) -> int:
    depth = 0
    count = 1
    for ch in text:
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        elif ch == "," and depth == 0:
            count += 1
    return count


# =================================================================
# Environment
# =================================================================

class Environment:
    """The single flat namespace of bound names.

    Names are case-sensitive plain identifiers; rebinding keeps a name's
    original position in the enumeration order.
    """
    def __init__(self):
        self.bindings: Dict[str, Any] = {}

    @staticmethod
    def validate_name(name: Any) -> str:
        if not isinstance(name, str):
            raise BindError(f"name must be a string, not {type(name).__name__}")
        if "." in name:
            raise BindError(f"labels can not contain '.': {name!r}")
        if not name.isidentifier():
            raise BindError(f"invalid name {name!r}")
        return name

    def bind(self, name: str, value: Any) -> None:
        self.bindings[self.validate_name(name)] = value

    def lookup(self, name: str) -> Tuple[Any, bool]:
        if name in self.bindings:
            return self.bindings[name], True
        return Invalid, False

    def snapshot(self) -> Dict[str, Any]:
        return dict(self.bindings)

    def names(self) -> List[str]:
        return list(self.bindings)

    def __contains__(self, name: Any) -> bool:
        return name in self.bindings

    def __getitem__(self, name: str) -> Any:
        return self.bindings[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.bind(name, value)

    def __len__(self) -> int:
        return len(self.bindings)

    def __repr__(self) -> str:
        return f"<Environment bindings=[{', '.join(self.bindings)}]>"


# =================================================================
# Expression tree
# =================================================================

class Node:
    """Base class for expression tree nodes.

    `loc` holds the source span {'line', 'col', 'end_col'} when the node came
    from the parser.
    """
    loc: Optional[Dict[str, Any]] = None


@dataclasses.dataclass
class Identifier(Node):
    name: str


@dataclasses.dataclass
class Selector(Node):
    base: Node
    name: str


@dataclasses.dataclass
class Index(Node):
    base: Node
    index: Node


@dataclasses.dataclass
class Slice(Node):
    base: Node
    low: Optional[Node]
    high: Optional[Node]


@dataclasses.dataclass
class Literal(Node):
    """A literal as written. `kind` is one of int, float, imag, string,
    raw_string, char or bool."""
    kind: str
    text: str


@dataclasses.dataclass
class BinaryOp(Node):
    op: str
    left: Node
    right: Node


@dataclasses.dataclass
class UnaryOp(Node):
    op: str
    operand: Node


@dataclasses.dataclass
class Call(Node):
    fn: Node
    args: List[Node]


@dataclasses.dataclass
class Paren(Node):
    inner: Node

