"""
The type registry: textual type names, zero values and conversions.
"""
import math
from typing import Dict

from pry.pry_datatypes import (
    Value, Type, BasicType, SliceType, MapType, ChanType, FuncType, StructType,
    Nil, Int, Float, Complex, String, Slice, Map, Struct, NativeFunc, Closure,
    BOOL, STRING, INT, INT8, INT16, INT32, INT64, UINT, UINT8, UINT16, UINT32,
    UINT64, UINTPTR, FLOAT32, FLOAT64, COMPLEX64, COMPLEX128, ERROR, ANY,
    BYTE, RUNE,
)
from pry.pry_errors import TypeMismatch, UnresolvedIdentifier


TYPE_REGISTRY: Dict[str, Type] = {
    "bool": BOOL,
    "byte": BYTE,
    "rune": RUNE,
    "string": STRING,
    "int": INT,
    "int8": INT8,
    "int16": INT16,
    "int32": INT32,
    "int64": INT64,
    "uint": UINT,
    "uint8": UINT8,
    "uint16": UINT16,
    "uint32": UINT32,
    "uint64": UINT64,
    "uintptr": UINTPTR,
    "float32": FLOAT32,
    "float64": FLOAT64,
    "complex64": COMPLEX64,
    "complex128": COMPLEX128,
    "error": ERROR,
    "any": ANY,
}


def string_to_type(name: str) -> Type:
    """Returns the descriptor for a predeclared type name, e.g. string_to_type("int")."""
    try:
        return TYPE_REGISTRY[name]
    except KeyError:
        raise UnresolvedIdentifier(f"type {name!r} is not in table") from None


def to_utf8(s: str) -> bytes:
    return s.encode('utf-8', errors='surrogateescape')


def from_utf8(b: bytes) -> str:
    return b.decode('utf-8', errors='surrogateescape')


def zero_value(t: Type) -> Value:
    """The value a missing map entry or a fresh make() slot holds."""
    match t:
        case BasicType(kind='int' | 'float' | 'complex'):
            return t.new(0)
        case BasicType(kind='bool'):
            return t.new(False)
        case BasicType(kind='string'):
            return t.new("")
        case SliceType():
            return Slice(t, [])
        case MapType():
            return Map(t, {})
    return Nil


def is_nillable(t: Type) -> bool:
    return isinstance(t, (SliceType, MapType, ChanType, FuncType, StructType)) or t in (ERROR, ANY)


def assignable(v: Value, t: Type) -> bool:
    """Whether v may be stored in a slot of type t (slice element, map entry, parameter)."""
    if t == ANY or v.typ == t:
        return True
    if v is Nil:
        return is_nillable(t)
    if t == ERROR:
        return isinstance(v, Struct) and isinstance(v.obj, BaseException)
    if isinstance(t, FuncType):
        return isinstance(v, NativeFunc) or (isinstance(v, Closure) and t.params is None)
    return False


def check_assignable(v: Value, t: Type, what: str = "value") -> Value:
    if not assignable(v, t):
        raise TypeMismatch(f"cannot use {v} (type {v.typ}) as type {t} in {what}")
    return v


def check_key_type(t: Type) -> Type:
    if isinstance(t, (SliceType, MapType, FuncType)):
        raise TypeMismatch(f"invalid map key type {t}")
    return t


def _rune_to_str(code: int) -> str:
    if 0 <= code <= 0x10FFFF and not 0xD800 <= code <= 0xDFFF:
        return chr(code)
    return "�"


def convert(t: Type, v: Value) -> Value:
    """Go conversion T(v). Raises TypeMismatch when v is not convertible to t."""
    if v.typ == t:
        return v
    match t:
        case BasicType(kind='int'):
            match v:
                case Int():
                    return t.new(v.value)
                case Float() if not (math.isnan(v.value) or math.isinf(v.value)):
                    return t.new(math.trunc(v.value))
        case BasicType(kind='float'):
            if isinstance(v, (Int, Float)):
                return t.new(float(v.value))
        case BasicType(kind='complex'):
            if isinstance(v, Complex):
                return t.new(v.value)
        case BasicType(kind='string'):
            match v:
                case Int():
                    return String(_rune_to_str(v.value))
                case Slice(typ=SliceType(elem=elem)) if elem == UINT8:
                    return String(from_utf8(bytes(i.value for i in v.items)))
                case Slice(typ=SliceType(elem=elem)) if elem == INT32:
                    return String("".join(_rune_to_str(i.value) for i in v.items))
        case BasicType(kind='any'):
            return v
        case SliceType(elem=elem) if isinstance(v, String):
            if elem == UINT8:
                return Slice(t, [Int(UINT8, b) for b in to_utf8(v.value)])
            if elem == INT32:
                return Slice(t, [Int(INT32, ord(ch)) for ch in v.value])
        case SliceType() | MapType() if v is Nil:
            return zero_value(t)
    raise TypeMismatch(f"cannot convert {v} (type {v.typ}) to type {t}")
