import pytest
from pry import pry_ast as ast
from pry.pry_runtime import (
    Session, ExecutionResult, interpret_string, interpret_expr, interpret_stmt,
)
from pry.pry_scope import new_scope
from pry.pry_datatypes import Nil, Int, String, Tuple, INT
from pry.pry_errors import ParseError, UnsupportedNode


def assert_ok(res, expected=None):
    assert res.status == 'success', f"expected success, got {res.status}: {res.error_message}"
    if expected is not None:
        assert res.value == expected


def assert_error(res, contains: str | None = None):
    assert res.status == 'error', f"expected error, got {res.status} with value {res.value!r}"
    if contains:
        msg = res.error_message or ""
        assert contains in msg, f"error message did not contain {contains!r}: {msg!r}"


# --- Library entry points ---

def test_interpret_string_persists_declarations():
    scope = new_scope()
    interpret_string(scope, "x := 5")
    assert interpret_string(scope, "x") == Int(INT, 5)
    assert scope.get("x") == (Int(INT, 5), True)


def test_interpret_string_raises_parse_errors():
    with pytest.raises(ParseError):
        interpret_string(new_scope(), "x := ")


def test_interpret_expr_on_built_tree():
    expr = ast.BinaryExpr('+', ast.BasicLit('INT', '1'), ast.BasicLit('INT', '2'))
    assert interpret_expr(new_scope(), expr) == Int(INT, 3)


def test_interpret_stmt_unwraps_return():
    stmt = ast.ReturnStmt([ast.BasicLit('INT', '1'), ast.BasicLit('STRING', '"a"')])
    result = interpret_stmt(new_scope(), stmt)
    assert isinstance(result, Tuple)
    assert result.items == (Int(INT, 1), String("a"))


def test_interpret_stmt_block_runs_in_given_scope():
    scope = new_scope()
    block = ast.BlockStmt([ast.AssignStmt([ast.Ident('y')], ':=', [ast.BasicLit('INT', '3')])])
    interpret_stmt(scope, block)
    assert scope.get("y") == (Int(INT, 3), True)


def test_interpret_stmt_rejects_other_statements():
    stmt = ast.IncDecStmt(ast.Ident('x'), '++')
    with pytest.raises(UnsupportedNode) as ei:
        interpret_stmt(new_scope(), stmt)
    assert ei.value.node is stmt


# --- Session ---

def test_session_success():
    session = Session()
    assert_ok(session.handle("x := 2"), Int(INT, 2))
    assert_ok(session.handle("x * 21"), Int(INT, 42))


def test_session_reports_errors_without_raising():
    session = Session()
    session.handle("x := 1")
    res = session.handle("x := 2")
    assert_error(res, "AlreadyDefined")
    assert_ok(session.handle("x"), Int(INT, 1))


def test_session_error_location_and_context():
    session = Session()
    res = session.handle("a := 1\nb := nope")
    assert_error(res, "UnresolvedIdentifier")
    assert res.error_token == {'line': 2, 'col': 6}
    text = res.format_error()
    assert text.startswith("Error on line 2, col 6: UnresolvedIdentifier")
    assert "> 2 | b := nope" in text
    assert text.rstrip().endswith("^")


def test_session_parse_error():
    res = Session().handle("x := )")
    assert_error(res, "ParseError")
    assert res.error_token == {'line': 1, 'col': 6}


def test_session_partial_value():
    res = Session().handle("a := 1; b := c")
    assert_error(res)
    assert res.value == Int(INT, 1)


def test_session_bindings():
    class Box:
        def __init__(self):
            self.Size = 3

    session = Session(bindings={"box": Box(), "greeting": "hi"})
    assert_ok(session.handle("box.Size"), Int(INT, 3))
    assert_ok(session.handle("greeting"), String("hi"))


def test_session_on_existing_scope():
    scope = new_scope({"n": 1})
    session = Session(scope=scope, bindings={"m": 2})
    assert session.scope is scope
    assert_ok(session.handle("m"), Int(INT, 2))


def test_format_error_without_location():
    res = ExecutionResult(status='error', error_message="boom")
    assert res.format_error() == "boom"
    assert ExecutionResult(status='success', value=Nil).format_error() == ""
