"""
The core peek evaluator, containing the Evaluator and MemberResolver.
"""
import collections.abc
import os
import sys
from typing import Any, List, Optional

from peek.peek_config import Config
from peek.peek_constant import binary_op, demote, from_literal, promote, to_index, unary_op
from peek.peek_datatypes import (
    Environment, FunctionInfo, Kind, Record, Ref, SliceView,
    display_name, deref, is_mutable_sequence, kind_of,
    Node, Identifier, Selector, Index, Slice, Literal, BinaryOp, UnaryOp, Call, Paren,
)
from peek.peek_errors import (
    ArityError, HostError, IndexOutOfRange, InternalError, NoSuchField, NoSuchMethod,
    PeekError, TypeMismatch, UnknownIdentifier,
)
from peek.peek_printer import unparse


def native_name(name: str) -> str:
    """Converts a snake_case name to the exported CamelCase convention.

    Each letter after an underscore, and the first letter, is upper-cased and
    the underscore dropped; a leading underscore becomes a literal 'X':

        foo_bar -> FooBar
        _foo    -> Xfoo
    """
    if not name:
        return name
    out: List[str] = []
    i = 0
    if name[0] == "_":
        out.append("X")
        i = 1
    else:
        out.append(name[0].upper())
        i = 1
    upper_next = False
    for ch in name[i:]:
        if ch == "_":
            upper_next = True
            continue
        if upper_next:
            out.append(ch.upper())
            upper_next = False
        else:
            out.append(ch)
    return "".join(out)


def _candidates(name: str) -> List[str]:
    alt = native_name(name)
    return [name] if alt == name else [name, alt]


class MemberResolver:
    """Handles method and field lookup on records."""
    def __init__(self, evaluator: "Evaluator"):
        self.evaluator = evaluator

    @property
    def tag(self) -> Optional[str]:
        return self.evaluator.config.tag

    def field_by_display_name(self, record: Record, name: str) -> Optional[str]:
        for field_name in record.field_names():
            alias = display_name(record, field_name, self.tag)
            if alias == name:
                return field_name
        return None

    def find(self, record: Record, name: str):
        """Returns (method, field_name); at most one is not None."""
        for candidate in _candidates(name):
            method = record.get_method(candidate)
            if method is not None:
                return method, None
            field_name = self.field_by_display_name(record, candidate)
            if field_name is not None:
                return None, field_name
            if candidate in record.field_names():
                return None, candidate
        return None, None

    def select(self, base: Any, name: str, want_method: bool = False) -> Any:
        """Resolves `base.name` to a bound method or an addressable field."""
        target = deref(base)
        if not isinstance(target, Record):
            raise TypeMismatch(f"select field {name!r} from {kind_of(target).value} value")
        method, field_name = self.find(target, name)
        if method is not None:
            return method
        if field_name is not None:
            return Ref(target, field_name)
        if want_method:
            raise NoSuchMethod(f"{type(target).__name__} has no method {name!r}")
        raise NoSuchField(f"{type(target).__name__} has no field {name!r}", key=name)

    def field_names(self, record: Record) -> List[str]:
        """The names `ls` reports for a record's fields.

        With a tag configured, fields lacking that tag are skipped.
        """
        names = []
        for field_name in record.field_names():
            if self.tag:
                alias = display_name(record, field_name, self.tag)
                if alias is None:
                    continue
                names.append(alias)
            else:
                names.append(field_name)
        return names


class Evaluator:
    """The peek tree-walking engine.

    Stateless across statements apart from the shared Environment.
    """
    def __init__(self, environment: Environment, config: Optional[Config] = None):
        self.environment = environment
        self.config = config or Config()
        self.member_resolver = MemberResolver(self)

    def _dbg(self, *parts):
        if self.config.debug or os.environ.get("PEEK_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def eval(self, node: Node) -> Any:
        """Evaluates one node, stamping failures with the node's location."""
        try:
            return self._eval(node)
        except PeekError as e:
            if e.loc is None:
                e.loc = node.loc
            raise
        except RecursionError as e:
            raise InternalError("expression nested too deeply", node.loc) from e

    def _eval(self, node: Node) -> Any:
        match node:
            case Identifier(name=name):
                return self._identifier(name)
            case Selector(base=base, name=name):
                return self.member_resolver.select(self.eval(base), name)
            case Index():
                return self._index(node)
            case Slice():
                return self._slice(node)
            case Literal(kind=kind, text=text):
                return from_literal(kind, text)
            case BinaryOp(op=op, left=left, right=right):
                x = promote(self.eval(left))
                y = promote(self.eval(right))
                return binary_op(op, x, y)
            case UnaryOp(op=op, operand=operand):
                return unary_op(op, promote(self.eval(operand)))
            case Call():
                return self._call_node(node)
            case Paren(inner=inner):
                return self.eval(inner)
            case _:
                raise InternalError(f"unknown node type: {type(node).__name__}")

    # --- Names ---

    def _identifier(self, name: str) -> Any:
        for candidate in _candidates(name):
            value, found = self.environment.lookup(candidate)
            if found:
                return value
        raise UnknownIdentifier(name)

    # --- Index / slice ---

    def _index(self, node: Index) -> Any:
        base = deref(self.eval(node.base))
        key = self.eval(node.index)
        kind = kind_of(base)

        if kind is Kind.MAPPING:
            key = demote(deref(key))
            if not isinstance(key, collections.abc.Hashable):
                raise TypeMismatch(f"{kind_of(key).value} value cannot be used as a key")
            if key not in base:
                raise NoSuchField(f"mapping has no key {key!r}", key=key)
            if isinstance(base, collections.abc.MutableMapping):
                return Ref(base, key)
            return base[key]

        if kind in (Kind.SEQUENCE, Kind.STRING, Kind.LIST):
            i = to_index(key)
            n = len(base)
            if i < 0 or i >= n:
                raise IndexOutOfRange(f"index {i} out of range [0, {n})")
            if is_mutable_sequence(base):
                return Ref(base, i)
            return base[i]

        raise TypeMismatch(f"cannot index {kind.value} value")

    def _slice(self, node: Slice) -> Any:
        base = deref(self.eval(node.base))
        kind = kind_of(base)
        if kind not in (Kind.SEQUENCE, Kind.STRING, Kind.LIST):
            raise TypeMismatch(f"cannot slice {kind.value} value")

        n = len(base)
        low = 0 if node.low is None else to_index(self.eval(node.low))
        high = n if node.high is None else to_index(self.eval(node.high))
        if low < 0 or high > n or low > high:
            raise IndexOutOfRange(f"slice bounds [{low}:{high}] out of range [0, {n}]")
        if is_mutable_sequence(base):
            return SliceView(base, low, high)
        return base[low:high]

    # --- Calls ---

    def _call_node(self, node: Call) -> Any:
        if isinstance(node.fn, Selector):
            # `x.name(...)` names a method; report a missing one as such.
            fn = self.member_resolver.select(self.eval(node.fn.base), node.fn.name, want_method=True)
        else:
            fn = self.eval(node.fn)
        args = [self.eval(arg) for arg in node.args]
        return self.call(fn, args, node)

    def call(self, fn: Any, args: List[Any], node: Optional[Node] = None) -> Any:
        """Invokes a Function value with already-evaluated arguments."""
        fn = deref(fn)
        if kind_of(fn) is not Kind.FUNCTION:
            what = unparse(node.fn) if isinstance(node, Call) else repr(fn)
            raise TypeMismatch(f"{what} not a function or method")

        info = FunctionInfo.of(fn)
        if not info.accepts(len(args)):
            expects = f"at least {info.arity}" if info.variadic else str(info.arity)
            raise ArityError(f"{info.name} expects {expects} arguments, got {len(args)}")

        prepared = []
        for position, arg in enumerate(args):
            if isinstance(arg, Ref) and info.wants_ref(position):
                prepared.append(arg)
            else:
                prepared.append(demote(deref(arg)))

        self._dbg("call", info.describe(), prepared)
        try:
            out = fn(*prepared)
        except PeekError:
            raise
        except Exception as e:
            raise HostError(f"{info.name}: {type(e).__name__}: {e}") from e
        return info.outcome(out)

