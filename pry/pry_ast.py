"""
Syntax tree node kinds produced by the parser.

Names follow Go's go/ast so fragments read the same way in both worlds.
Every node carries `pos`, a (line, col) pair pointing at its first token.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

Pos = Optional[Tuple[int, int]]


class Node:
    __slots__ = ()


class Expr(Node):
    __slots__ = ()


class Stmt(Node):
    __slots__ = ()


# --- Expressions ---

@dataclass
class Ident(Expr):
    name: str
    pos: Pos = None


@dataclass
class BasicLit(Expr):
    kind: str          # INT, FLOAT, IMAG, CHAR, STRING
    value: str         # source text, quotes included
    pos: Pos = None


@dataclass
class CompositeLit(Expr):
    type: Optional[Expr]   # None for an elided inner literal: [][]int{{1}}
    elts: List[Expr] = field(default_factory=list)
    pos: Pos = None


@dataclass
class KeyValueExpr(Expr):
    key: Expr
    value: Expr
    pos: Pos = None


@dataclass
class ParenExpr(Expr):
    x: Expr
    pos: Pos = None


@dataclass
class SelectorExpr(Expr):
    x: Expr
    sel: str
    pos: Pos = None


@dataclass
class IndexExpr(Expr):
    x: Expr
    index: Expr
    pos: Pos = None


@dataclass
class SliceExpr(Expr):
    x: Expr
    low: Optional[Expr]
    high: Optional[Expr]
    pos: Pos = None


@dataclass
class CallExpr(Expr):
    fun: Expr
    args: List[Expr] = field(default_factory=list)
    ellipsis: bool = False     # f(xs...)
    pos: Pos = None


@dataclass
class StarExpr(Expr):
    x: Expr
    pos: Pos = None


@dataclass
class UnaryExpr(Expr):
    op: str
    x: Expr
    pos: Pos = None


@dataclass
class BinaryExpr(Expr):
    op: str
    x: Expr
    y: Expr
    pos: Pos = None


@dataclass
class ArrayType(Expr):
    len: Optional[Expr]    # None for []T
    elt: Expr
    pos: Pos = None


@dataclass
class MapType(Expr):
    key: Expr
    value: Expr
    pos: Pos = None


@dataclass
class ChanType(Expr):
    dir: str               # 'both', 'send', 'recv'
    value: Expr
    pos: Pos = None


@dataclass
class Ellipsis(Expr):
    elt: Expr
    pos: Pos = None


@dataclass
class Field(Node):
    names: List[str]
    type: Expr
    pos: Pos = None


@dataclass
class FuncType(Expr):
    params: List[Field] = field(default_factory=list)
    results: List[Field] = field(default_factory=list)
    pos: Pos = None


@dataclass
class FuncLit(Expr):
    type: FuncType
    body: 'BlockStmt'
    pos: Pos = None


# --- Statements ---

@dataclass
class BlockStmt(Stmt):
    list: List[Stmt] = field(default_factory=list)
    pos: Pos = None


@dataclass
class ReturnStmt(Stmt):
    results: List[Expr] = field(default_factory=list)
    pos: Pos = None


@dataclass
class ExprStmt(Stmt):
    x: Expr
    pos: Pos = None


@dataclass
class AssignStmt(Stmt):
    lhs: List[Expr]
    tok: str               # ':=', '=', '+=', ...
    rhs: List[Expr]
    pos: Pos = None


@dataclass
class IncDecStmt(Stmt):
    x: Expr
    tok: str
    pos: Pos = None


@dataclass
class SendStmt(Stmt):
    chan: Expr
    value: Expr
    pos: Pos = None


@dataclass
class BadStmt(Stmt):
    """A statement form the grammar recognises but does not implement (for, if, ...)."""
    keyword: str
    pos: Pos = None
