"""
The reflective bridge between live Python objects and pry values.

Host state enters the evaluator through `to_value` and host callables receive
their arguments through `from_value`. Wrapped objects (`Struct`) stay live.
Lists, tuples, bytes and dicts are converted element by element but remember
the host container, so index assignments write back into it and host calls
receive the original object.
"""
import functools
import types
from typing import Any, Callable, List

from pry.pry_datatypes import (
    MISSING, Value, Nil, Bool, Int, Float, Complex, String, Slice, Map,
    Struct, NativeFunc, Closure, Package, Tuple,
    SliceType, MapType, INT, UINT64, FLOAT64, COMPLEX128, UINT8, ANY,
)
from pry.pry_errors import PryError, CallError, TypeMismatch, UnresolvedIdentifier


def to_value(obj: Any) -> Value:
    """Wraps a Python object as a pry value."""
    match obj:
        case Value():
            return obj
        case None:
            return Nil
        case bool():
            return Bool(obj)
        case int():
            return _host_int(obj)
        case float():
            return Float(FLOAT64, obj)
        case complex():
            return Complex(COMPLEX128, obj)
        case str():
            return String(obj)
        case bytes() | bytearray():
            return Slice(SliceType(UINT8), [Int(UINT8, b) for b in obj], obj)
        case list() | tuple():
            return Slice(SliceType(ANY), [to_value(o) for o in obj], obj)
        case dict():
            return Map(MapType(ANY, ANY), {to_value(k): to_value(v) for k, v in obj.items()}, obj)
        case types.ModuleType():
            return Package.from_module(obj)
        case type():
            # Classes are constructors, not instances.
            return NativeFunc(obj, obj.__name__)
        case types.FunctionType() | types.BuiltinFunctionType() | types.MethodType() | functools.partial():
            return NativeFunc(obj, getattr(obj, '__name__', ''))
    return Struct(obj)


def _host_int(obj: int) -> Int:
    # Python ints are unbounded; anything past uint64 has no faithful pry value.
    if INT.wrap(obj) == obj:
        return Int(INT, obj)
    if UINT64.wrap(obj) == obj:
        return Int(UINT64, obj)
    raise TypeMismatch(f"host integer {obj} overflows uint64")


def from_value(v: Value, call_closure: Callable[[Closure, List[Value]], Value] = None) -> Any:
    """Unwraps a pry value into the Python object a host callable expects.

    Closures become plain Python callables when `call_closure` is supplied,
    so host code can call back into interpreted functions.
    """
    match v:
        case Bool() | Int() | Float() | Complex() | String():
            return v.value
        case Slice() | Map() if v.host is not None:
            return v.host
        case Slice():
            return [from_value(i, call_closure) for i in v.items]
        case Map():
            return {from_value(k, call_closure): from_value(i, call_closure) for k, i in v.entries.items()}
        case Struct():
            return v.obj
        case NativeFunc():
            return v.fn
        case Tuple():
            return tuple(from_value(i, call_closure) for i in v.items)
        case Closure() if call_closure is not None:
            def _callback(*args):
                return from_value(call_closure(v, [to_value(a) for a in args]), call_closure)
            return _callback
    if v is Nil:
        return None
    # Types, packages, channels, builtins and bare closures pass through as-is.
    return v


def results_to_value(result: Any, name: str) -> Value:
    """Maps what a host callable returned onto one value.

    None means no results. A 2-tuple follows the (value, err) convention:
    an exception in second place is raised as CallError, anything else there
    is dropped. Longer tuples are not supported.
    """
    if result is None:
        return Nil
    if isinstance(result, tuple):
        if not result:
            return Nil
        if len(result) == 1:
            return to_value(result[0])
        if len(result) == 2:
            value, err = result
            if isinstance(err, BaseException):
                raise CallError(f"{name}: {err}", value=to_value(value))
            return to_value(value)
        raise CallError(f"{name}: unsupported number of results ({len(result)})")
    return to_value(result)


def call_native(fn: NativeFunc, args: List[Value], call_closure=None) -> Value:
    """Calls a host callable with marshalled arguments."""
    name = fn.name or getattr(fn.fn, '__name__', 'func')
    raw_args = [from_value(a, call_closure) for a in args]
    try:
        result = fn.fn(*raw_args)
    except PryError:
        raise
    except Exception as e:
        raise CallError(f"{name}: {type(e).__name__}: {e}") from e
    return results_to_value(result, name)


def read_field(target: Struct, name: str) -> Value:
    """Field then method lookup on a wrapped host object."""
    try:
        raw = target.field(name)
        if raw is not MISSING:
            return to_value(raw)
        method = target.method(name)
    except Exception as e:
        raise CallError(f"reading {name}: {type(e).__name__}: {e}") from e
    if method is not MISSING:
        return NativeFunc(method, name)
    raise UnresolvedIdentifier(f"{target.typ} has no field or method {name}")


def write_field(target: Struct, name: str, value: Value) -> None:
    """Sets a field, keeping its current dynamic type."""
    current = target.field(name)
    if current is MISSING:
        raise UnresolvedIdentifier(f"{target.typ} has no field {name}")
    old = to_value(current)
    if old.typ != value.typ:
        raise TypeMismatch(f"cannot assign {value} (type {value.typ}) to field {name} of type {old.typ}")
    try:
        target.set_field(name, from_value(value))
    except Exception as e:
        raise CallError(f"setting {name}: {type(e).__name__}: {e}") from e


def write_item(target: Slice | Map, key: Value, value: Value) -> None:
    """Mirrors an index assignment into the host container behind target.

    Called before the pry-side entry changes, so a refused write leaves both
    sides untouched. Immutable hosts (tuples, bytes) refuse every write.
    """
    host = target.host
    if host is None:
        return
    if isinstance(host, (tuple, bytes)):
        raise TypeMismatch(f"cannot assign into host {type(host).__name__} {target}")
    try:
        host[from_value(key)] = from_value(value)
    except Exception as e:
        raise CallError(f"writing {key}: {type(e).__name__}: {e}") from e
