# pry_runtime.py

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from pry import pry_ast as ast
from pry.pry_bridge import to_value
from pry.pry_datatypes import Value
from pry.pry_errors import PryError, RuntimePanic
from pry.pry_interpreter import Evaluator, unwrap_return
from pry.pry_parser import parse
from pry.pry_scope import Scope, new_scope


# ===================================================================
# Library entry points
# ===================================================================

def _guard_depth(fn, *args):
    try:
        return fn(*args)
    except RecursionError:
        raise RuntimePanic("stack overflow: expression nested too deeply") from None


def interpret_string(scope: Scope, text: str) -> Value:
    """Parses and runs a fragment in `scope`, returning the last statement's value.

    Statements run directly in `scope` so declarations persist across calls.
    Raises a PryError on failure; bindings made by earlier statements stay.
    """
    block = parse(text)
    evaluator = Evaluator()
    return _guard_depth(lambda: unwrap_return(evaluator.exec_block(block, scope)))


def interpret_expr(scope: Scope, expr: ast.Expr) -> Value:
    return _guard_depth(Evaluator().eval_expr, expr, scope)


def interpret_stmt(scope: Scope, stmt: ast.Stmt) -> Value:
    evaluator = Evaluator()
    if isinstance(stmt, ast.BlockStmt):
        # A bare block runs in the scope it is handed, like a fragment.
        return _guard_depth(lambda: unwrap_return(evaluator.exec_block(stmt, scope)))
    return _guard_depth(lambda: unwrap_return(evaluator.exec_stmt(stmt, scope)))


# ===================================================================
# Session
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of running one fragment."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Dict] = None
    source: Optional[str] = None

    def format_error(self) -> str:
        """Renders the message, then the failing source line with a caret under the column."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        loc = self.error_token or {}
        line, col = loc.get('line'), loc.get('col')
        if not line:
            return msg
        where = f"line {line}" if col is None else f"line {line}, col {col}"
        out = [f"Error on {where}: {msg}"]
        lines = (self.source or "").splitlines()
        if 1 <= line <= len(lines):
            gutter = f"> {line} | "
            out.append(gutter + lines[line - 1])
            if col is not None:
                out.append(" " * (len(gutter) + col - 1) + "^")
        return "\n".join(out)


class Session:
    """One interactive evaluation context over a persistent scope.

    `bindings` seeds the scope with host objects (locals of a paused frame,
    modules, helper functions). `handle` never raises: every outcome comes
    back as an ExecutionResult for the shell to print.
    """

    def __init__(self, scope: Optional[Scope] = None, bindings: Optional[Dict[str, Any]] = None):
        self.scope = scope if scope is not None else new_scope(bindings)
        if scope is not None and bindings:
            for name, obj in bindings.items():
                self.bind(name, obj)

    def bind(self, name: str, obj: Any) -> None:
        self.scope.declare(name, to_value(obj))

    def handle(self, text: str) -> ExecutionResult:
        try:
            value = interpret_string(self.scope, text)
        except PryError as e:
            return ExecutionResult(
                status='error',
                value=e.partial,
                error_message=str(e),
                error_token=e.loc,
                source=text,
            )
        return ExecutionResult(status='success', value=value, source=text)
