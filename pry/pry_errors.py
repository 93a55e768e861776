"""
Error kinds raised by the pry parser and evaluator.

Every failure inside an evaluation surfaces as one of these; nothing else is
allowed to escape `interpret_*` except through `CallError`, which wraps
exceptions raised by host code.
"""
from typing import Any, Optional


class PryError(Exception):
    """Base class for every evaluation failure."""
    kind = "PryError"
    # Value of the last statement that completed before the failure.
    partial: Any = None

    def __init__(self, message: str, node: Any = None):
        super().__init__(message)
        self.message = message
        self.node = node

    @property
    def loc(self) -> Optional[dict]:
        pos = getattr(self.node, 'pos', None)
        if pos is None:
            return None
        return {'line': pos[0], 'col': pos[1]}

    def at(self, node: Any) -> 'PryError':
        """Attach the offending node unless a more precise one is already set."""
        if self.node is None:
            self.node = node
        return self

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class ParseError(PryError):
    kind = "ParseError"

    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.col = col

    @property
    def loc(self) -> Optional[dict]:
        if self.line is None:
            return None
        return {'line': self.line, 'col': self.col}


class UnresolvedIdentifier(PryError):
    kind = "UnresolvedIdentifier"


class UndefinedVariable(PryError):
    kind = "UndefinedVariable"


class AlreadyDefined(PryError):
    kind = "AlreadyDefined"


class TypeMismatch(PryError):
    kind = "TypeMismatch"


class UnsupportedNode(PryError):
    kind = "UnsupportedNode"


class UnsupportedOperator(PryError):
    kind = "UnsupportedOperator"


class IndexOutOfRange(PryError):
    kind = "IndexOutOfRange"


class InvalidIndexType(PryError):
    kind = "InvalidIndexType"


class RuntimePanic(PryError):
    """Conditions Go reports as run-time panics (divide by zero, bad shifts)."""
    kind = "RuntimePanic"


class CallError(PryError):
    """A host callable raised, or returned a non-nil error as its second result."""
    kind = "CallError"

    def __init__(self, message: str, value: Any = None, node: Any = None):
        super().__init__(message, node)
        # Whatever the callee produced alongside the error.
        self.value = value
