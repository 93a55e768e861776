"""
Operator semantics and the append/make builtins.

Operands arrive fully evaluated. Apart from shift counts, both operands of a
binary operator must have exactly the same type; nothing is widened.
"""
import math
from typing import Dict

from pry.pry_datatypes import (
    Value, Type, BasicType, SliceType, MapType, ChanType,
    Nil, Bool, Int, Float, Complex, String, Slice, Map, Chan, Struct,
    Builtin, NativeFunc, Closure,
)
from pry.pry_types import zero_value, check_assignable, check_key_type
from pry.pry_errors import (
    TypeMismatch, UnsupportedOperator, IndexOutOfRange, RuntimePanic, CallError,
)


ARITHMETIC_OPS = {'+', '-', '*', '/', '%', '&', '|', '^', '&^'}
SHIFT_OPS = {'<<', '>>'}
COMPARE_OPS = {'==', '!=', '<', '<=', '>', '>='}
LOGICAL_OPS = {'&&', '||'}

# Kinds each arithmetic operator accepts.
_OP_KINDS: Dict[str, tuple] = {
    '+': ('int', 'float', 'complex', 'string'),
    '-': ('int', 'float', 'complex'),
    '*': ('int', 'float', 'complex'),
    '/': ('int', 'float', 'complex'),
    '%': ('int',),
    '&': ('int',),
    '|': ('int',),
    '^': ('int',),
    '&^': ('int',),
}

_NILLABLE = (Slice, Map, Chan, Struct, Builtin, NativeFunc, Closure)


def _kind(v: Value) -> str:
    t = v.typ
    return t.kind if isinstance(t, BasicType) else ''


def _int_div(a: int, b: int) -> int:
    """Division truncated toward zero."""
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _float_div(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _complex_div(a: complex, b: complex) -> complex:
    if b == 0:
        return complex(math.nan, math.nan)
    return a / b


def _arith(op: str, x: Value, y: Value) -> Value:
    kind = _kind(x)
    if kind not in _OP_KINDS[op]:
        raise UnsupportedOperator(f"operator {op} not defined on {x} (type {x.typ})")
    t = x.typ
    a, b = x.value, y.value
    match op:
        case '+':
            return String(a + b) if kind == 'string' else t.new(a + b)
        case '-':
            return t.new(a - b)
        case '*':
            return t.new(a * b)
        case '/':
            if kind == 'int':
                if b == 0:
                    raise RuntimePanic("integer divide by zero")
                return t.new(_int_div(a, b))
            if kind == 'float':
                return t.new(_float_div(a, b))
            return t.new(_complex_div(a, b))
        case '%':
            if b == 0:
                raise RuntimePanic("integer divide by zero")
            return t.new(a - b * _int_div(a, b))
        case '&':
            return t.new(a & b)
        case '|':
            return t.new(a | b)
        case '^':
            return t.new(a ^ b)
        case '&^':
            return t.new(a & ~b)
    raise UnsupportedOperator(f"unknown operator {op}")


def _shift(op: str, x: Value, y: Value) -> Value:
    if not isinstance(x, Int):
        raise UnsupportedOperator(f"shift of type {x.typ}")
    if not isinstance(y, Int):
        raise TypeMismatch(f"shift count type {y.typ}, must be integer")
    if y.value < 0:
        raise RuntimePanic("negative shift amount")
    if op == '<<':
        # Anything shifted past the width is zero once wrapped.
        if y.value >= x.typ.bits:
            return x.typ.new(0)
        return x.typ.new(x.value << y.value)
    return x.typ.new(x.value >> min(y.value, x.typ.bits))


def values_equal(x: Value, y: Value) -> bool:
    if x is Nil or y is Nil:
        other = y if x is Nil else x
        if other is Nil or isinstance(other, _NILLABLE):
            return other is Nil
        raise TypeMismatch(f"mismatched types {x.typ} and {y.typ}")
    if x.typ != y.typ:
        raise TypeMismatch(f"mismatched types {x.typ} and {y.typ}")
    match x:
        case Bool() | Int() | Float() | Complex() | String():
            return x.value == y.value
        case Struct():
            try:
                return bool(x.obj == y.obj)
            except Exception as e:
                raise CallError(f"comparing {x.typ}: {type(e).__name__}: {e}") from e
        case Type():
            return x == y
        case Chan():
            return x is y
    raise UnsupportedOperator(f"{x.typ} can only be compared to nil")


def _compare(op: str, x: Value, y: Value) -> Value:
    if op == '==':
        return Bool(values_equal(x, y))
    if op == '!=':
        return Bool(not values_equal(x, y))
    if x.typ != y.typ:
        raise TypeMismatch(f"mismatched types {x.typ} and {y.typ}")
    if _kind(x) not in ('int', 'float', 'string'):
        raise UnsupportedOperator(f"operator {op} not defined on {x} (type {x.typ})")
    a, b = x.value, y.value
    match op:
        case '<':
            return Bool(a < b)
        case '<=':
            return Bool(a <= b)
        case '>':
            return Bool(a > b)
        case '>=':
            return Bool(a >= b)
    raise UnsupportedOperator(f"unknown operator {op}")


def binary_op(op: str, x: Value, y: Value) -> Value:
    """Computes `x op y`."""
    if op in SHIFT_OPS:
        return _shift(op, x, y)
    if op in COMPARE_OPS:
        return _compare(op, x, y)
    if x.typ != y.typ:
        raise TypeMismatch(f"invalid operation: {x} {op} {y} (mismatched types {x.typ} and {y.typ})")
    if op in LOGICAL_OPS:
        if not isinstance(x, Bool):
            raise UnsupportedOperator(f"operator {op} not defined on {x} (type {x.typ})")
        return Bool(x.value and y.value) if op == '&&' else Bool(x.value or y.value)
    if op in ARITHMETIC_OPS:
        return _arith(op, x, y)
    raise UnsupportedOperator(f"unknown operator {op}")


def unary_op(op: str, x: Value) -> Value:
    """Computes `op x` for + - ! ^."""
    kind = _kind(x)
    match op:
        case '+' if kind in ('int', 'float', 'complex'):
            return x
        case '-' if kind in ('int', 'float', 'complex'):
            return x.typ.new(-x.value)
        case '!' if kind == 'bool':
            return Bool(not x.value)
        case '^' if kind == 'int':
            return x.typ.new(~x.value)
    raise UnsupportedOperator(f"operator {op} not defined on {x} (type {x.typ})")


# =================================================================
# Builtins
# =================================================================

def append(*args: Value) -> Value:
    """append(s, v...) returns a new slice holding s's elements then v."""
    if not args:
        raise TypeMismatch("not enough arguments in call to append")
    seq, values = args[0], args[1:]
    if not isinstance(seq, Slice):
        raise TypeMismatch(f"first argument to append must be a slice; have {seq} (type {seq.typ})")
    elem = seq.typ.elem
    for v in values:
        check_assignable(v, elem, "append")
    return Slice(seq.typ, seq.items + list(values))


def _size_arg(v: Value, what: str) -> int:
    if not isinstance(v, Int):
        raise TypeMismatch(f"non-integer {what} argument in make: {v} (type {v.typ})")
    if v.value < 0:
        raise IndexOutOfRange(f"makeslice: {what} out of range")
    return v.value


def make(*args: Value) -> Value:
    """make(T, size...) builds an empty slice, map or channel of type T."""
    if not args:
        raise TypeMismatch("not enough arguments in call to make")
    t, sizes = args[0], args[1:]
    match t:
        case SliceType():
            if not sizes:
                raise TypeMismatch(f"invalid operation: make({t}) expects 2 or 3 arguments; found 1")
            if len(sizes) > 2:
                raise TypeMismatch(f"invalid operation: make({t}, ...) expects 2 or 3 arguments; found {len(args)}")
            length = _size_arg(sizes[0], "len")
            if len(sizes) == 2 and _size_arg(sizes[1], "cap") < length:
                raise IndexOutOfRange("makeslice: cap out of range")
            return Slice(t, [zero_value(t.elem) for _ in range(length)])
        case MapType():
            if len(sizes) > 1:
                raise TypeMismatch(f"invalid operation: make({t}, ...) expects 1 or 2 arguments; found {len(args)}")
            for s in sizes:
                _size_arg(s, "size")
            return Map(check_key_type(t), {})
        case ChanType():
            if len(sizes) > 1:
                raise TypeMismatch(f"invalid operation: make({t}, ...) expects 1 or 2 arguments; found {len(args)}")
            capacity = _size_arg(sizes[0], "buffer") if sizes else 0
            return Chan(t, capacity)
        case Type():
            raise TypeMismatch(f"invalid argument: cannot make {t}")
    raise TypeMismatch(f"{t} is not a type")
