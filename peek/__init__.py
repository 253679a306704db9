"""peek: an embeddable evaluator for interactively querying live host data."""

from peek.peek_runtime import Interpreter, ExecutionResult
from peek.peek_datatypes import Record, Ref, api_method
from peek.peek_config import Config

__all__ = [
    "Interpreter",
    "ExecutionResult",
    "Record",
    "Ref",
    "api_method",
    "Config",
]
