"""
Renders peek values as JSON or YAML and expression trees back into source text.
"""
import array
import collections.abc
from fractions import Fraction

from peek.peek_datatypes import (
    Constant, FunctionInfo, Invalid, Kind, Record, Ref, SliceView,
    as_bytes, display_name, is_byte_sequence, kind_of,
    Node, Identifier, Selector, Index, Slice, Literal, BinaryOp, UnaryOp, Call, Paren,
)
from peek.peek_serialize import serialize


class Unparser:
    """Formats expression nodes into source strings."""

    def __init__(self):
        self._handlers = {
            Identifier: lambda n: n.name,
            Selector: lambda n: f"{self.unparse(n.base)}.{n.name}",
            Index: lambda n: f"{self.unparse(n.base)}[{self.unparse(n.index)}]",
            Slice: self._unparse_slice,
            Literal: lambda n: n.text,
            BinaryOp: lambda n: f"{self.unparse(n.left)} {n.op} {self.unparse(n.right)}",
            UnaryOp: lambda n: f"{n.op}{self.unparse(n.operand)}",
            Call: lambda n: f"{self.unparse(n.fn)}({', '.join(self.unparse(a) for a in n.args)})",
            Paren: lambda n: f"({self.unparse(n.inner)})",
        }

    def unparse(self, node: Node) -> str:
        handler = self._handlers.get(type(node))
        if handler is None:
            return repr(node)
        return handler(node)

    def _unparse_slice(self, node: Slice) -> str:
        low = self.unparse(node.low) if node.low is not None else ""
        high = self.unparse(node.high) if node.high is not None else ""
        return f"{self.unparse(node.base)}[{low}:{high}]"


_UNPARSER = Unparser()


def unparse(node: Node) -> str:
    return _UNPARSER.unparse(node)


class Printer:
    """Formats evaluation results for display.

    Values are first reduced to plain builtins (dicts, lists, scalars):
    records become objects keyed by display name, byte sequences become
    lists of integers and functions become their signature. The result is
    then serialized as JSON or YAML.
    """

    def __init__(self, fmt: str = "json", indent_width: int = 2, tag=None):
        self.fmt = fmt
        self.indent_width = indent_width
        self.tag = tag

    @classmethod
    def from_config(cls, config) -> "Printer":
        return cls(fmt=config.output, indent_width=config.indent, tag=config.tag)

    def unparse(self, node: Node) -> str:
        return unparse(node)

    def pformat(self, obj) -> str:
        """Public entry point to format an object. Invalid formats as the empty string."""
        if isinstance(obj, Node):
            return unparse(obj)
        if kind_of(obj) is Kind.INVALID and obj is not None:
            return ""
        return serialize(self.to_builtin(obj), fmt=self.fmt, indent=self.indent_width)

    def to_builtin(self, obj, _seen=None):
        seen = set() if _seen is None else _seen
        while isinstance(obj, Ref):
            obj = obj.get()

        if obj is None or obj is Invalid:
            return None
        if isinstance(obj, Constant):
            return self._constant(obj)
        if isinstance(obj, (bool, int, float, str)):
            return obj
        if isinstance(obj, Fraction):
            return float(obj)

        kind = kind_of(obj)
        if kind in (Kind.INTEGER, Kind.FLOAT, Kind.BOOL):
            return obj.item() if hasattr(obj, "item") else (int(obj) if kind is Kind.INTEGER else float(obj))
        if kind is Kind.FUNCTION:
            return FunctionInfo.of(obj).describe()
        if kind is Kind.OPAQUE:
            return repr(obj)

        if id(obj) in seen:
            return "<cycle>"
        seen.add(id(obj))
        try:
            if kind is Kind.RECORD:
                return self._record(obj, seen)
            if kind is Kind.MAPPING:
                return {self._key(k): self.to_builtin(v, seen) for k, v in obj.items()}
            if is_byte_sequence(obj):
                return list(as_bytes(obj))
            if isinstance(obj, (collections.abc.Sequence, SliceView, memoryview, array.array)):
                return [self.to_builtin(item, seen) for item in obj]
            return repr(obj)
        finally:
            seen.discard(id(obj))

    def _constant(self, c: Constant):
        if isinstance(c.value, Fraction):
            try:
                return float(c.value)
            except OverflowError:
                return str(c.value)
        return c.value

    def _record(self, record: Record, seen) -> dict:
        out = {}
        for field_name in record.field_names():
            key = display_name(record, field_name, self.tag) or field_name
            if key == "-":
                continue
            out[key] = self.to_builtin(record.get_field(field_name), seen)
        return out

    def _key(self, key):
        if isinstance(key, (str, int, float, bool)) or key is None:
            return key
        return str(key)
