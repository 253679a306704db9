"""
Transforms the raw lark parse tree into expression nodes from peek_datatypes.
"""
from lark import Transformer, Token, v_args

from peek.peek_datatypes import (
    Node, Identifier, Selector, Index, Slice, Literal,
    BinaryOp, UnaryOp, Call, Paren,
)

_LITERAL_KINDS = {
    "INT": "int",
    "FLOAT": "float",
    "IMAG": "imag",
    "STRING": "string",
    "RAW_STRING": "raw_string",
    "CHAR": "char",
    "TRUE": "bool",
    "FALSE": "bool",
}


def _attach_loc(obj: Node, meta) -> Node:
    if getattr(meta, "empty", True):
        return obj
    line = getattr(meta, "line", None)
    col = getattr(meta, "column", None)
    if line is not None and col is not None:
        obj.loc = {"line": line, "col": col, "end_col": getattr(meta, "end_column", None)}
    return obj


@v_args(inline=True)
class ExprTransformer(Transformer):

    def start(self, expr):
        return expr

    # --- Atoms ---

    @v_args(meta=True, inline=True)
    def identifier(self, meta, name: Token):
        return _attach_loc(Identifier(str(name)), meta)

    @v_args(meta=True, inline=True)
    def literal(self, meta, token: Token):
        kind = _LITERAL_KINDS.get(token.type, token.type.lower())
        return _attach_loc(Literal(kind, str(token)), meta)

    @v_args(meta=True, inline=True)
    def paren(self, meta, inner):
        return _attach_loc(Paren(inner), meta)

    # --- Postfix forms ---

    @v_args(meta=True, inline=True)
    def selector(self, meta, base, name: Token):
        return _attach_loc(Selector(base, str(name)), meta)

    @v_args(meta=True, inline=True)
    def index(self, meta, base, idx):
        return _attach_loc(Index(base, idx), meta)

    @v_args(meta=True, inline=True)
    def slice(self, meta, base, low, high):
        return _attach_loc(Slice(base, low, high), meta)

    @v_args(meta=True, inline=True)
    def call(self, meta, fn, args):
        return _attach_loc(Call(fn, list(args or [])), meta)

    def arguments(self, *args):
        return list(args)

    # --- Operators ---

    @v_args(meta=True, inline=True)
    def binary(self, meta, left, op, right):
        return _attach_loc(BinaryOp(op, left, right), meta)

    @v_args(meta=True, inline=True)
    def prefix(self, meta, op, operand):
        return _attach_loc(UnaryOp(op, operand), meta)

    def _op(self, token):
        return str(token)

    or_op = and_op = cmp_op = add_op = mul_op = unary_op = _op
