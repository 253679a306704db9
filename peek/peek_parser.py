"""
The expression front end: a lark LALR parser plus the tree transformer.

Any object with a `parse(text) -> Node` method can stand in for
ExpressionParser; the evaluator only consumes the resulting nodes.
"""
from pathlib import Path
from typing import Optional, Protocol

from lark import Lark
from lark.exceptions import UnexpectedCharacters, UnexpectedInput, UnexpectedToken, VisitError

from peek.peek_datatypes import Node
from peek.peek_errors import ParseError, PeekError
from peek.peek_transformer import ExprTransformer

GRAMMAR_PATH = Path(__file__).with_name("peek_grammar.lark")


class Parser(Protocol):
    def parse(self, text: str) -> Node: ...


def load_lark(grammar_path: Path = GRAMMAR_PATH) -> Lark:
    grammar = grammar_path.read_text(encoding="utf-8")
    return Lark(grammar, start="start", parser="lalr", propagate_positions=True)


class ExpressionParser:
    """Parses a single expression into a tree of Nodes."""

    _lark: Optional[Lark] = None

    def __init__(self):
        # The grammar is compiled once and shared by every parser.
        if ExpressionParser._lark is None:
            ExpressionParser._lark = load_lark()
        self.lark = ExpressionParser._lark
        self.transformer = ExprTransformer()

    def parse(self, text: str) -> Node:
        try:
            tree = self.lark.parse(text)
        except UnexpectedInput as e:
            raise self._parse_error(e, text) from e
        try:
            return self.transformer.transform(tree)
        except VisitError as e:
            if isinstance(e.orig_exc, PeekError):
                raise e.orig_exc from None
            raise

    def _parse_error(self, e: UnexpectedInput, text: str) -> ParseError:
        line = getattr(e, "line", None)
        col = getattr(e, "column", None)
        offending = None
        match e:
            case UnexpectedToken(token=token) if token.type == "$END":
                msg = "unexpected end of expression"
            case UnexpectedToken(token=token):
                offending = str(token)
                msg = f"unexpected {offending!r}"
            case UnexpectedCharacters():
                offending = getattr(e, "char", None)
                msg = f"unexpected character {offending!r}"
            case _:
                msg = "unexpected end of expression" if not text.strip() else "malformed expression"
        loc = None
        if isinstance(line, int) and isinstance(col, int) and line > 0 and col > 0:
            end = col + len(offending) if offending else None
            loc = {"line": line, "col": col, "end_col": end, "text": offending}
        return ParseError(msg, loc)
