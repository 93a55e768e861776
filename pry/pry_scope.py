"""
Name bindings for the evaluator: a chain of scopes ending in the universe.
"""
from typing import Any, Dict, List, Optional, Tuple

from pry.pry_datatypes import Nil, Bool, Builtin
from pry.pry_operators import append, make
from pry.pry_bridge import to_value


class Scope:
    """A mapping of names to values with an optional parent.

    Lookups and updates walk from this scope towards the root. The root of
    every session chain is a universe scope holding the builtins, so a name
    bound by the host or the user shadows them without replacing them.
    """
    def __init__(self, parent: Optional['Scope'] = None, bindings: Optional[Dict[str, Any]] = None):
        self.vals: Dict[str, Any] = dict(bindings or {})
        self.parent = parent

    def lookup_owner(self, name: str) -> Optional['Scope']:
        """Finds the nearest scope in the chain that binds name."""
        current = self
        while current is not None:
            if name in current.vals:
                return current
            current = current.parent
        return None

    def get(self, name: str) -> Tuple[Any, bool]:
        owner = self.lookup_owner(name)
        if owner is None:
            return None, False
        return owner.vals[name], True

    def set(self, name: str, value: Any) -> None:
        """Updates the nearest existing binding, else binds in this scope."""
        owner = self.lookup_owner(name)
        (owner or self).vals[name] = value

    def declare(self, name: str, value: Any) -> None:
        """Binds name in this scope's own mapping, ignoring the chain."""
        self.vals[name] = value

    def keys(self) -> List[str]:
        """All visible names, innermost first. Shadowed names appear once per level."""
        out: List[str] = []
        current = self
        while current is not None:
            out.extend(current.vals.keys())
            current = current.parent
        return out

    def __contains__(self, name: str) -> bool:
        return self.lookup_owner(name) is not None

    def __repr__(self) -> str:
        keys = ', '.join(self.vals.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Scope bindings=[{keys}]{parent_id}>"


def universe() -> Scope:
    """A fresh parentless scope holding the builtin bindings."""
    return Scope(bindings={
        "nil": Nil,
        "true": Bool(True),
        "false": Bool(False),
        "append": Builtin("append", append),
        "make": Builtin("make", make),
    })


def new_scope(bindings: Optional[Dict[str, Any]] = None) -> Scope:
    """An empty session scope whose parent is a fresh universe.

    `bindings` seeds the scope with host values; plain Python objects are
    converted through the reflective bridge.
    """
    scope = Scope(parent=universe())
    if bindings:
        for name, obj in bindings.items():
            scope.declare(name, to_value(obj))
    return scope
