import pytest
from pry.pry_scope import Scope, new_scope, universe
from pry.pry_datatypes import Nil, Bool, Int, String, Builtin, INT

# --- Scope Tests ---

def test_scope_init():
    parent = Scope()
    child = Scope(parent=parent)
    assert child.parent is parent
    assert not child.vals
    root = Scope()
    assert root.parent is None


def test_scope_get_reports_found_flag():
    scope = Scope()
    scope.set("a", 1)
    assert scope.get("a") == (1, True)
    assert scope.get("b") == (None, False)


def test_scope_get_walks_every_ancestor():
    root = Scope()
    root.set("a", 100)
    leaf = Scope(parent=Scope(parent=Scope(parent=root)))
    assert leaf.get("a") == (100, True)


def test_scope_shadowing_returns_innermost_binding():
    parent = Scope()
    parent.set("x", 1)
    child = Scope(parent=parent)
    child.declare("x", 2)

    assert child.get("x") == (2, True)
    assert parent.get("x") == (1, True)  # parent is unchanged
    # Both levels are listed.
    assert child.keys().count("x") == 2


def test_scope_set_updates_owning_level():
    root = Scope()
    root.set("x", 1)
    child = Scope(parent=Scope(parent=root))
    child.set("x", 5)
    assert root.vals["x"] == 5
    assert "x" not in child.vals


def test_scope_set_binds_locally_when_unbound():
    parent = Scope()
    child = Scope(parent=parent)
    child.set("y", 7)
    assert child.vals["y"] == 7
    assert "y" not in parent.vals


def test_scope_declare_ignores_chain():
    parent = Scope()
    parent.set("x", 1)
    child = Scope(parent=parent)
    child.declare("x", 2)
    assert parent.vals["x"] == 1
    assert child.vals["x"] == 2


def test_scope_keys_innermost_first():
    parent = Scope(bindings={"a": 1, "b": 2})
    child = Scope(parent=parent, bindings={"c": 3})
    assert child.keys() == ["c", "a", "b"]


def test_scope_lookup_owner_and_contains():
    parent = Scope(bindings={"a": 1})
    child = Scope(parent=parent)
    assert child.lookup_owner("a") is parent
    assert child.lookup_owner("zzz") is None
    assert "a" in child
    assert "zzz" not in child


# --- Universe / new_scope ---

def test_universe_holds_builtins():
    u = universe()
    assert u.parent is None
    assert set(u.vals) == {"nil", "true", "false", "append", "make"}
    assert u.vals["nil"] is Nil
    assert u.vals["true"] == Bool(True)
    assert isinstance(u.vals["append"], Builtin)


def test_new_scope_is_empty_child_of_universe():
    scope = new_scope()
    assert scope.vals == {}
    assert scope.parent is not None
    assert scope.parent.parent is None
    assert scope.get("false") == (Bool(False), True)


def test_new_scopes_have_separate_universes():
    a = new_scope()
    b = new_scope()
    assert a.parent is not b.parent
    a.set("nil", Int(INT, 1))  # rebinding in one session never leaks
    assert b.get("nil") == (Nil, True)


def test_new_scope_converts_host_bindings():
    scope = new_scope({"n": 3, "name": "bob"})
    assert scope.get("n") == (Int(INT, 3), True)
    assert scope.get("name") == (String("bob"), True)
