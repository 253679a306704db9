"""
The session layer: statement splitting, assignment, builtins and the
Interpreter that ties the parser and evaluator together.
"""
import inspect
import os
import sys
from dataclasses import dataclass
from typing import Any, List, Literal, Optional, Tuple

from peek.peek_config import Config
from peek.peek_datatypes import (
    Environment, FunctionInfo, Invalid, Kind,
    as_bytes, deref, is_byte_sequence, kind_of,
)
from peek.peek_errors import InternalError, MultipleAssignmentError, PeekError, TypeMismatch
from peek.peek_interpreter import Evaluator
from peek.peek_parser import ExpressionParser, Parser

_QUOTES = ('"', "'", "`")


# ===================================================================
# Statement splitting
# ===================================================================

def _scan(text: str):
    """Yields (index, char) for every character outside a quoted literal."""
    quote = None
    escaped = False
    for i, ch in enumerate(text):
        if quote is not None:
            if escaped:
                escaped = False
            elif ch == "\\" and quote != "`":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in _QUOTES:
            quote = ch
            continue
        yield i, ch


def split_statements(line: str) -> List[str]:
    """Splits a line on `;` outside string and character literals."""
    parts = []
    start = 0
    for i, ch in _scan(line):
        if ch == ";":
            parts.append(line[start:i])
            start = i + 1
    parts.append(line[start:])
    return parts


def split_assignment(text: str) -> Optional[Tuple[str, str, int]]:
    """Finds a top-level `name = expr` split.

    Returns (target, expression, offset of the expression in `text`), or None
    when the statement is not an assignment. `==`, `!=`, `<=` and `>=` are
    operators, not assignments.
    """
    positions = []
    skip_next = False
    for i, ch in _scan(text):
        if skip_next:
            skip_next = False
            continue
        if ch != "=":
            continue
        nxt = text[i + 1] if i + 1 < len(text) else ""
        prev = text[i - 1] if i > 0 else ""
        if nxt == "=":
            skip_next = True
            continue
        if prev in ("!", "<", ">", "="):
            continue
        positions.append(i)

    if not positions:
        return None
    if len(positions) > 1:
        raise MultipleAssignmentError("multiple assignment not supported")

    i = positions[0]
    rhs = text[i + 1:]
    offset = i + 1 + (len(rhs) - len(rhs.lstrip()))
    return text[:i].strip(), rhs.strip(), offset


# ===================================================================
# Results
# ===================================================================

def _source_context(source: str, line: int, col: Optional[int], end_col: Optional[int] = None) -> str:
    lines = source.splitlines() or [""]
    if not line or line < 1 or line > len(lines):
        return ""
    out = [f"  {lines[line - 1]}"]
    if col is not None:
        width = max((end_col or col + 1) - col, 1)
        out.append(f"  {' ' * max(col - 1, 0)}{'^' * width}")
    return "\n".join(out)


@dataclass
class ExecutionResult:
    """The structured result of evaluating one statement."""
    status: Literal['success', 'error']
    value: Any = Invalid
    error: Optional[PeekError] = None
    error_message: Optional[str] = None
    source: Optional[str] = None

    def format_error(self) -> str:
        """Formats the error as 'Name: message', with a caret under the failing span."""
        if self.status != 'error':
            return ""
        name = self.error.name if self.error is not None else "Error"
        msg = f"{name}: {self.error_message or 'unknown error'}"
        loc = getattr(self.error, "loc", None)
        if loc and self.source:
            context = _source_context(self.source, loc.get("line"), loc.get("col"), loc.get("end_col"))
            if context:
                msg = f"{msg}\n{context}"
        return msg


# ===================================================================
# Builtins
# ===================================================================

class Builtins:
    """Introspection functions bound into every session.

    Methods named `_<name>` are registered under `<name>`.
    """
    def __init__(self, interpreter: "Interpreter"):
        self.interpreter = interpreter

    def _ls(self, *values) -> list:
        """Lists names: the session's bindings, or the members of each argument."""
        if not values:
            return self.interpreter.environment.names()
        resolver = self.interpreter.evaluator.member_resolver
        names: List[str] = []
        for value in values:
            value = deref(value)
            kind = kind_of(value)
            if kind is Kind.RECORD:
                names.extend(value.method_names())
                names.extend(resolver.field_names(value))
            elif kind is Kind.MAPPING:
                names.extend(str(k) for k in value.keys())
        return names

    def _str(self, value) -> str:
        """Converts a NUL-terminated byte buffer or string to a string."""
        value = deref(value)
        if isinstance(value, str):
            return value.split("\0", 1)[0]
        if is_byte_sequence(value):
            raw = as_bytes(value).split(b"\0", 1)[0]
            return raw.decode("utf-8", errors="replace")
        raise TypeMismatch('argument to "str" is not a string')

    def register(self, environment: Environment) -> None:
        for name, method in inspect.getmembers(self, predicate=inspect.ismethod):
            if name.startswith("_") and not name.startswith("__"):
                environment.bind(name[1:], method)


# ===================================================================
# Interpreter
# ===================================================================

class Interpreter:
    """Evaluates lines of expressions against a flat namespace of host values.

    Host code binds its root objects with `bind` before the session starts;
    every statement afterwards is evaluated by `eval`, which never raises.
    """

    def __init__(self, config: Optional[Config] = None, parser: Optional[Parser] = None):
        self.config = config or Config()
        self.environment = Environment()
        self.evaluator = Evaluator(self.environment, self.config)
        self.parser = parser or ExpressionParser()
        self.builtins = Builtins(self)
        self.builtins.register(self.environment)

    def _dbg(self, *parts):
        if self.config.debug or os.environ.get("PEEK_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def bind(self, name: str, value: Any) -> None:
        """Registers a host value under `name`, replacing any previous binding."""
        self.environment.bind(name, value)

    def global_(self, name: str, value: Any) -> None:
        """Alias for `bind`, for hosts that register their roots as globals."""
        self.bind(name, value)

    def eval(self, line: str) -> List[ExecutionResult]:
        """Evaluates every `;`-separated statement of a line, in order.

        An empty line yields a single result holding a snapshot of the
        bindings. A failing statement does not stop the ones after it.
        """
        if not line.strip():
            return [ExecutionResult('success', self.environment.snapshot(), source=line)]
        results = []
        for statement in split_statements(line):
            if statement.strip():
                results.append(self.eval_statement(statement))
        return results

    def eval_statement(self, text: str) -> ExecutionResult:
        text = text.strip()
        if not text:
            return ExecutionResult('success', self.environment.snapshot(), source=text)
        self._dbg("statement:", repr(text))
        try:
            value = self._run(text)
        except PeekError as e:
            self._dbg("error:", e.name, e.message, e.loc)
            return ExecutionResult('error', error=e, error_message=e.message, source=text)
        except Exception as e:
            err = InternalError(f"{type(e).__name__}: {e}")
            err.__cause__ = e
            self._dbg("internal error:", repr(e))
            return ExecutionResult('error', error=err, error_message=err.message, source=text)
        return ExecutionResult('success', value, source=text)

    def _run(self, text: str) -> Any:
        assignment = split_assignment(text)
        if assignment is not None:
            target, expression, offset = assignment
            self.environment.validate_name(target)
            # Constants stay exact; they are narrowed only where a call or index needs them.
            value = self._evaluate(expression, offset)
            self.environment.bind(target, value)
            return Invalid

        value, found = self.environment.lookup(text)
        if not found:
            value = self._evaluate(text)
        return self._apply_policy(value)

    def _evaluate(self, expression: str, offset: int = 0) -> Any:
        try:
            return self.evaluator.eval(self.parser.parse(expression))
        except PeekError as e:
            if offset and e.loc and e.loc.get("line") == 1:
                e.loc = dict(e.loc)
                for key in ("col", "end_col"):
                    if e.loc.get(key) is not None:
                        e.loc[key] += offset
            raise

    def _apply_policy(self, value: Any) -> Any:
        """Invokes a zero-argument function value when the policy asks for it."""
        if self.config.zero_arg_policy != "invoke":
            return value
        fn = deref(value)
        if kind_of(fn) is Kind.FUNCTION and FunctionInfo.of(fn).accepts(0):
            return self.evaluator.call(fn, [])
        return value
