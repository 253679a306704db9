"""
Error taxonomy for the peek evaluator.

Every failure raised while parsing or evaluating a statement derives from
PeekError, so the session driver can contain it and report it by name.
"""
from typing import Any, Dict, Optional


class PeekError(Exception):
    """Base class for all evaluation errors.

    `loc` is filled in with the span of the innermost expression node that
    failed (line, col, end_col), when one is known.
    """
    def __init__(self, message: str, loc: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.loc = loc

    @property
    def name(self) -> str:
        return type(self).__name__


class ParseError(PeekError):
    """Malformed expression text."""


class MultipleAssignmentError(PeekError):
    pass


class BindError(PeekError):
    """An assignment target or registered global is not a plain name."""


class UnknownIdentifier(PeekError):
    def __init__(self, identifier: str, loc: Optional[Dict[str, Any]] = None):
        super().__init__(f"unknown field or label {identifier!r}", loc)
        self.identifier = identifier


class NoSuchField(PeekError):
    def __init__(self, message: str, key: Any = None, loc: Optional[Dict[str, Any]] = None):
        super().__init__(message, loc)
        self.key = key


class NoSuchMethod(PeekError):
    pass


class TypeMismatch(PeekError):
    """The operand lacks the capability the operation needs."""


class IndexOutOfRange(PeekError):
    pass


class ArityError(PeekError):
    pass


class DivisionByZero(PeekError):
    pass


class UnsupportedOperation(PeekError):
    pass


class PromotionError(PeekError):
    pass


class RangeError(PeekError):
    """A constant cannot be represented by the concrete type it demotes to."""


class UnsupportedLiteral(PeekError):
    pass


class HostError(PeekError):
    """An exception raised by host code invoked from an expression.

    The original exception is kept as __cause__.
    """


class InternalError(PeekError):
    pass


__all__ = [
    "PeekError",
    "ParseError",
    "MultipleAssignmentError",
    "BindError",
    "UnknownIdentifier",
    "NoSuchField",
    "NoSuchMethod",
    "TypeMismatch",
    "IndexOutOfRange",
    "ArityError",
    "DivisionByZero",
    "UnsupportedOperation",
    "PromotionError",
    "RangeError",
    "UnsupportedLiteral",
    "HostError",
    "InternalError",
]
