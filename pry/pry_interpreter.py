import os
import sys
from typing import Any, List, Optional

from pry import pry_ast as ast
from pry.pry_datatypes import (
    Value, Type, SliceType, MapType, ChanType, FuncType,
    Nil, Int, Float, Complex, String, Slice, Map, Struct, Builtin, NativeFunc,
    Closure, Package, Tuple,
    INT, UINT8, FLOAT64, COMPLEX128, RUNE,
)
from pry.pry_scope import Scope, universe
from pry.pry_types import (
    TYPE_REGISTRY, zero_value, assignable, check_assignable,
    check_key_type, convert, to_utf8, from_utf8,
)
from pry.pry_operators import binary_op, unary_op
from pry.pry_bridge import to_value, call_native, read_field, write_field, write_item
from pry.pry_errors import (
    PryError, ParseError, UnresolvedIdentifier, UndefinedVariable, AlreadyDefined,
    TypeMismatch, UnsupportedNode, UnsupportedOperator, IndexOutOfRange,
    InvalidIndexType, RuntimePanic,
)


MAX_INT64 = (1 << 63) - 1

# Fallback for chains the host built without a universe root. Read-only:
# assignment never reaches it.
BUILTINS = universe()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


class Returned:
    """Marks the results of a `return` statement travelling up through blocks."""
    __slots__ = ('values',)

    def __init__(self, values: List[Value]):
        self.values = values

    def __repr__(self):
        return f"Returned({self.values!r})"


def pack_results(values: List[Value]) -> Value:
    """Zero results are Nil, one is itself, several become a Tuple."""
    if not values:
        return Nil
    if len(values) == 1:
        return values[0]
    return Tuple(tuple(values))


def unwrap_return(result: Any) -> Value:
    if isinstance(result, Returned):
        return pack_results(result.values)
    return result


class Evaluator:
    """Walks pry_ast trees against a scope chain."""

    def __init__(self):
        self.max_call_depth = _env_int("PRY_MAX_CALL_DEPTH", 50)
        self.call_depth = 0

    def _dbg(self, *parts):
        if os.environ.get("PRY_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    # =================================================================
    # Expressions
    # =================================================================

    def eval_expr(self, node: ast.Expr, scope: Scope) -> Value:
        """Evaluates one expression node to a value."""
        try:
            match node:
                case ast.Ident():
                    return self._ident(node, scope)
                case ast.BasicLit():
                    return self._literal(node)
                case ast.ParenExpr():
                    return self.eval_expr(node.x, scope)
                case ast.SelectorExpr():
                    return self._selector(node, scope)
                case ast.CallExpr():
                    return self._call(node, scope)
                case ast.IndexExpr():
                    return self._index(node, scope)
                case ast.SliceExpr():
                    return self._slice(node, scope)
                case ast.CompositeLit():
                    return self._composite(node, scope, None)
                case ast.BinaryExpr():
                    x = self.eval_expr(node.x, scope)
                    y = self.eval_expr(node.y, scope)
                    return binary_op(node.op, x, y)
                case ast.UnaryExpr(op='&'):
                    raise UnsupportedOperator("cannot take the address of a value")
                case ast.UnaryExpr(op='<-'):
                    raise UnsupportedOperator("channel receive is not supported")
                case ast.UnaryExpr():
                    return unary_op(node.op, self.eval_expr(node.x, scope))
                case ast.StarExpr():
                    raise UnsupportedNode("pointer indirection is not supported")
                case ast.FuncLit():
                    return self._func_lit(node, scope)
                case ast.ArrayType():
                    return SliceType(self.eval_type(node.elt, scope))
                case ast.MapType():
                    key = self.eval_type(node.key, scope)
                    return check_key_type(MapType(key, self.eval_type(node.value, scope)))
                case ast.ChanType():
                    # Direction is dropped: every channel type is bidirectional.
                    return ChanType(self.eval_type(node.value, scope))
                case ast.FuncType():
                    ftype, _ = self._signature(node, scope)
                    return ftype
            raise UnsupportedNode(f"unsupported expression {type(node).__name__}")
        except PryError as e:
            raise e.at(node)

    def eval_type(self, node: ast.Expr, scope: Scope) -> Type:
        t = self.eval_expr(node, scope)
        if not isinstance(t, Type):
            raise TypeMismatch(f"{t} is not a type").at(node)
        return t

    def _ident(self, node: ast.Ident, scope: Scope) -> Value:
        if node.name in TYPE_REGISTRY:
            return TYPE_REGISTRY[node.name]
        val, found = scope.get(node.name)
        if not found:
            val, found = BUILTINS.get(node.name)
        if not found:
            raise UnresolvedIdentifier(f"undefined: {node.name}")
        return to_value(val)

    def _selector(self, node: ast.SelectorExpr, scope: Scope) -> Value:
        x = self.eval_expr(node.x, scope)
        match x:
            case Package():
                if node.sel not in x.members:
                    raise UnresolvedIdentifier(f"undefined: {x.name}.{node.sel}")
                return x.members[node.sel]
            case Struct():
                return read_field(x, node.sel)
        raise TypeMismatch(f"{x}.{node.sel} undefined (type {x.typ} has no field or method {node.sel})")

    # --- Literals ---

    def _literal(self, node: ast.BasicLit) -> Value:
        text = node.value
        match node.kind:
            case 'INT':
                return Int(INT, self._int_literal(node))
            case 'FLOAT':
                return Float(FLOAT64, float(text.replace('_', '')))
            case 'IMAG':
                return Complex(COMPLEX128, complex(0, float(text[:-1].replace('_', ''))))
            case 'CHAR':
                body = text[1:-1]
                if not body:
                    raise self._bad_literal(node, "empty rune literal")
                # Only the first encoded byte counts; escapes are not decoded.
                return Int(RUNE, to_utf8(body)[0])
            case 'STRING':
                return String(text[1:-1])
        raise UnsupportedNode(f"literal kind {node.kind}")

    def _int_literal(self, node: ast.BasicLit) -> int:
        text = node.value.replace('_', '')
        try:
            if len(text) > 1 and text[0] == '0' and text[1] in 'xXoObB':
                v = int(text, 0)
            elif len(text) > 1 and text[0] == '0':
                v = int(text, 8)
            else:
                v = int(text)
        except ValueError:
            raise self._bad_literal(node, f"invalid integer literal {node.value}") from None
        if v > MAX_INT64:
            raise TypeMismatch(f"cannot use {node.value} (untyped int constant) as int value (overflows)")
        return v

    def _bad_literal(self, node: ast.BasicLit, msg: str) -> ParseError:
        line, col = node.pos if node.pos else (None, None)
        return ParseError(msg, line, col)

    # --- Composite literals ---

    def _composite(self, node: ast.CompositeLit, scope: Scope, expected: Optional[Type]) -> Value:
        t = expected if node.type is None else self.eval_type(node.type, scope)
        if t is None:
            raise UnsupportedNode("composite literal has no type")
        match t:
            case SliceType():
                items = []
                for elt in node.elts:
                    if isinstance(elt, ast.KeyValueExpr):
                        raise UnsupportedNode("indexed elements in slice literals are not supported")
                    items.append(self._element(elt, t.elem, scope, "slice literal"))
                return Slice(t, items)
            case MapType():
                entries = {}
                for elt in node.elts:
                    if not isinstance(elt, ast.KeyValueExpr):
                        raise TypeMismatch("missing key in map literal").at(elt)
                    key = self._element(elt.key, t.key, scope, "map literal")
                    entries[self._hashable(key)] = self._element(elt.value, t.value, scope, "map literal")
                return Map(t, entries)
        raise UnsupportedNode(f"composite literal of type {t} is not supported")

    def _element(self, node: ast.Expr, expected: Type, scope: Scope, what: str) -> Value:
        if isinstance(node, ast.CompositeLit) and node.type is None:
            return self._composite(node, scope, expected)
        v = self.eval_expr(node, scope)
        try:
            return check_assignable(v, expected, what)
        except PryError as e:
            raise e.at(node)

    def _hashable(self, key: Value) -> Value:
        try:
            hash(key)
        except TypeError:
            raise RuntimePanic(f"hash of unhashable type {key.typ}") from None
        return key

    # --- Indexing ---

    def _int_index(self, v: Value) -> int:
        if not isinstance(v, Int):
            raise InvalidIndexType(f"invalid index {v} (type {v.typ}), must be integer")
        return v.value

    def _index(self, node: ast.IndexExpr, scope: Scope) -> Value:
        x = self.eval_expr(node.x, scope)
        idx = self.eval_expr(node.index, scope)
        match x:
            case Map():
                if not assignable(idx, x.typ.key):
                    raise TypeMismatch(f"cannot use {idx} (type {idx.typ}) as type {x.typ.key} in map index")
                found = x.entries.get(self._hashable(idx))
                return zero_value(x.typ.value) if found is None else found
            case Slice():
                i = self._int_index(idx)
                if not 0 <= i < len(x.items):
                    raise IndexOutOfRange(f"index out of range [{i}] with length {len(x.items)}")
                return x.items[i]
            case String():
                data = to_utf8(x.value)
                i = self._int_index(idx)
                if not 0 <= i < len(data):
                    raise IndexOutOfRange(f"index out of range [{i}] with length {len(data)}")
                return Int(UINT8, data[i])
        raise TypeMismatch(f"invalid operation: cannot index {x} (type {x.typ})")

    def _slice(self, node: ast.SliceExpr, scope: Scope) -> Value:
        x = self.eval_expr(node.x, scope)
        low = None if node.low is None else self._int_index(self.eval_expr(node.low, scope))
        high = None if node.high is None else self._int_index(self.eval_expr(node.high, scope))
        match x:
            case Slice():
                length = len(x.items)
            case String():
                data = to_utf8(x.value)
                length = len(data)
            case _:
                raise TypeMismatch(f"cannot slice {x} (type {x.typ})")
        low = 0 if low is None else low
        high = length if high is None else high
        if not 0 <= low <= high <= length:
            raise IndexOutOfRange(f"slice bounds out of range [{low}:{high}] with length {length}")
        if isinstance(x, String):
            return String(from_utf8(data[low:high]))
        return Slice(x.typ, x.items[low:high])

    # =================================================================
    # Functions
    # =================================================================

    def _signature(self, node: ast.FuncType, scope: Scope):
        """Builds a FuncType descriptor plus the parameter names ('' when unnamed)."""
        params, names = [], []
        variadic = False
        for i, f in enumerate(node.params):
            t_node = f.type
            if isinstance(t_node, ast.Ellipsis):
                if i != len(node.params) - 1 or len(f.names) > 1:
                    raise TypeMismatch("can only use ... with final parameter in list").at(f)
                variadic = True
                t = SliceType(self.eval_type(t_node.elt, scope))
            else:
                t = self.eval_type(t_node, scope)
            for name in f.names or ['']:
                params.append(t)
                names.append(name)
        results = []
        for f in node.results:
            if isinstance(f.type, ast.Ellipsis):
                raise TypeMismatch("cannot use ... in result list").at(f)
            t = self.eval_type(f.type, scope)
            results.extend([t] * max(len(f.names), 1))
        return FuncType(tuple(params), tuple(results), variadic), names

    def _func_lit(self, node: ast.FuncLit, scope: Scope) -> Closure:
        ftype, names = self._signature(node.type, scope)
        return Closure(ftype, names, node.body, scope)

    def _call(self, node: ast.CallExpr, scope: Scope) -> Value:
        fn = self.eval_expr(node.fun, scope)
        args = [self.eval_expr(a, scope) for a in node.args]
        if node.ellipsis:
            spread = args[-1] if args else Nil
            if not isinstance(spread, Slice):
                raise TypeMismatch(f"cannot use {spread} (type {spread.typ}) with ...")
            args = args[:-1] + list(spread.items)
        self._dbg("CALL", fn, [str(a) for a in args])
        match fn:
            case Type():
                if len(args) != 1:
                    raise TypeMismatch(f"conversion to {fn} takes exactly one argument, got {len(args)}")
                return convert(fn, args[0])
            case Builtin():
                return fn.impl(*args)
            case Closure():
                return self.call_closure(fn, args)
            case NativeFunc():
                return call_native(fn, args, self.call_closure)
        raise TypeMismatch(f"invalid operation: cannot call non-function {fn} (type {fn.typ})")

    def _bind_args(self, ftype: FuncType, args: List[Value]) -> List[Value]:
        params = list(ftype.params)
        if ftype.variadic:
            fixed = len(params) - 1
            if len(args) < fixed:
                raise TypeMismatch(f"not enough arguments in call to {ftype}")
            elem = params[-1].elem
            rest = [check_assignable(a, elem, "argument") for a in args[fixed:]]
            args = args[:fixed] + [Slice(params[-1], rest)]
        elif len(args) != len(params):
            which = "not enough" if len(args) < len(params) else "too many"
            raise TypeMismatch(f"{which} arguments in call to {ftype}")
        return [check_assignable(a, t, "argument") for a, t in zip(args, params)]

    def call_closure(self, fn: Closure, args: List[Value]) -> Value:
        """Runs an interpreted function in a fresh child of its defining scope."""
        args = self._bind_args(fn.ftype, args)
        if self.call_depth >= self.max_call_depth:
            raise RuntimePanic(f"stack overflow: more than {self.max_call_depth} nested calls")
        local = Scope(parent=fn.scope)
        for name, arg in zip(fn.param_names, args):
            if name and name != '_':
                local.declare(name, arg)
        self.call_depth += 1
        try:
            result = self.exec_block(fn.body, local)
        finally:
            self.call_depth -= 1
        values = result.values if isinstance(result, Returned) else []
        return pack_results(self._check_results(fn.ftype, values))

    def _check_results(self, ftype: FuncType, values: List[Value]) -> List[Value]:
        expected = ftype.results
        if len(values) == 1 and isinstance(values[0], Tuple) and len(expected) > 1:
            values = list(values[0].items)
        if not values and expected:
            raise TypeMismatch("missing return")
        if len(values) != len(expected):
            raise TypeMismatch(f"wrong number of return values (have {len(values)}, want {len(expected)})")
        return [check_assignable(v, t, "return statement") for v, t in zip(values, expected)]

    # =================================================================
    # Statements
    # =================================================================

    def exec_block(self, block: ast.BlockStmt, scope: Scope) -> Any:
        """Runs statements in order in `scope`; the last value is the result."""
        result: Any = Nil
        for stmt in block.list:
            try:
                result = self.exec_stmt(stmt, scope)
            except PryError as e:
                if e.partial is None:
                    e.partial = result
                raise
            if isinstance(result, Returned):
                return result
        return result

    def exec_stmt(self, node: ast.Stmt, scope: Scope) -> Any:
        """Executes one statement. A `return` yields a Returned marker."""
        try:
            match node:
                case ast.BlockStmt():
                    return self.exec_block(node, scope)
                case ast.ReturnStmt():
                    return Returned([self.eval_expr(r, scope) for r in node.results])
                case ast.ExprStmt():
                    return self.eval_expr(node.x, scope)
                case ast.AssignStmt():
                    return self._assign(node, scope)
                case ast.IncDecStmt():
                    raise UnsupportedNode(f"{node.tok} statements are not supported")
                case ast.SendStmt():
                    raise UnsupportedNode("send statements are not supported")
                case ast.BadStmt():
                    raise UnsupportedNode(f"{node.keyword} statements are not supported")
            raise UnsupportedNode(f"unsupported statement {type(node).__name__}")
        except PryError as e:
            raise e.at(node)

    # --- Assignment ---

    def _assign(self, node: ast.AssignStmt, scope: Scope) -> Value:
        if node.tok not in (':=', '='):
            raise UnsupportedNode(f"assignment operator {node.tok} is not supported")
        if len(node.lhs) != 1 or len(node.rhs) != 1:
            raise UnsupportedNode("multiple assignment is not supported")
        target = node.lhs[0]
        if node.tok == ':=':
            return self._declare(target, node.rhs[0], scope)
        match target:
            case ast.Ident():
                return self._assign_name(target, node.rhs[0], scope)
            case ast.IndexExpr():
                return self._assign_index(target, node.rhs[0], scope)
            case ast.SelectorExpr():
                container = self.eval_expr(target.x, scope)
                value = self._single(self.eval_expr(node.rhs[0], scope))
                if not isinstance(container, Struct):
                    raise TypeMismatch(f"cannot assign to {target.sel} of {container} (type {container.typ})")
                write_field(container, target.sel, value)
                return value
            case ast.ParenExpr():
                return self._assign(ast.AssignStmt([target.x], node.tok, node.rhs, node.pos), scope)
        raise UnsupportedNode(f"cannot assign to {type(target).__name__}")

    def _single(self, value: Value) -> Value:
        if isinstance(value, Tuple):
            raise TypeMismatch(f"assignment mismatch: 1 variable but {len(value)} values")
        return value

    def _declare(self, target: ast.Expr, rhs: ast.Expr, scope: Scope) -> Value:
        if not isinstance(target, ast.Ident):
            raise UnsupportedNode("non-name on left side of :=")
        name = target.name
        if name == '_' or name in TYPE_REGISTRY or name in scope or name in BUILTINS:
            raise AlreadyDefined(f"no new variables on left side of := ({name} is already defined)")
        value = self._single(self.eval_expr(rhs, scope))
        scope.declare(name, value)
        self._dbg("DECLARE", name, value)
        return value

    def _assign_name(self, target: ast.Ident, rhs: ast.Expr, scope: Scope) -> Value:
        name = target.name
        if name == '_':
            return self._single(self.eval_expr(rhs, scope))
        owner = scope.lookup_owner(name)
        if owner is None:
            raise UndefinedVariable(f"undefined: {name}")
        value = self._single(self.eval_expr(rhs, scope))
        old = to_value(owner.vals[name])
        if old.typ != value.typ:
            raise TypeMismatch(f"cannot use {value} (type {value.typ}) as type {old.typ} in assignment")
        # Write where the binding lives so closures update captured variables.
        owner.vals[name] = value
        self._dbg("ASSIGN", name, value)
        return value

    def _assign_index(self, target: ast.IndexExpr, rhs: ast.Expr, scope: Scope) -> Value:
        container = self.eval_expr(target.x, scope)
        idx = self.eval_expr(target.index, scope)
        value = self._single(self.eval_expr(rhs, scope))
        match container:
            case Map():
                if not assignable(idx, container.typ.key):
                    raise TypeMismatch(f"cannot use {idx} (type {idx.typ}) as type {container.typ.key} in map index")
                check_assignable(value, container.typ.value, "assignment")
                key = self._hashable(idx)
                write_item(container, idx, value)
                container.entries[key] = value
                return value
            case Slice():
                i = self._int_index(idx)
                if not 0 <= i < len(container.items):
                    raise IndexOutOfRange(f"index out of range [{i}] with length {len(container.items)}")
                check_assignable(value, container.typ.elem, "assignment")
                write_item(container, idx, value)
                container.items[i] = value
                return value
            case String():
                raise TypeMismatch(f"cannot assign to {container} (strings are immutable)")
        raise TypeMismatch(f"invalid operation: cannot index {container} (type {container.typ})")
