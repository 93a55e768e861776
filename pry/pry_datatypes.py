"""
Defines the runtime values the pry evaluator works with.

Values form a closed set: every expression evaluates to exactly one of the
classes below. Type descriptors are values too, so `int` or `[]string` can be
bound, passed around and called to convert.
"""
import collections
import math
import struct
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple as PyTuple


MISSING = object()


class Value:
    """Base class for every value the evaluator produces."""
    __slots__ = ()


# =================================================================
# Type Descriptors
# =================================================================

@dataclass(frozen=True)
class Type(Value):
    """Base class for first-class type descriptors."""

    @property
    def typ(self) -> 'Type':
        return TYPE

    @property
    def name(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class BasicType(Type):
    """A predeclared type. `kind` groups them: bool, int, float, complex, string,
    error, any, plus the internal kinds nil, type, package, builtin."""
    type_name: str
    kind: str
    bits: int = 0
    signed: bool = True

    @property
    def name(self) -> str:
        return self.type_name

    @property
    def is_integer(self) -> bool:
        return self.kind == 'int'

    @property
    def is_numeric(self) -> bool:
        return self.kind in ('int', 'float', 'complex')

    def wrap(self, v: int) -> int:
        """Truncate an integer to this type's width, two's complement."""
        v &= (1 << self.bits) - 1
        if self.signed and v >> (self.bits - 1):
            v -= 1 << self.bits
        return v

    def new(self, v: Any) -> Value:
        """Build a value of this numeric/bool/string type from a Python scalar."""
        match self.kind:
            case 'int':
                return Int(self, self.wrap(int(v)))
            case 'float':
                return Float(self, round_float(float(v), self.bits))
            case 'complex':
                c = complex(v)
                half = self.bits // 2
                return Complex(self, complex(round_float(c.real, half), round_float(c.imag, half)))
            case 'bool':
                return Bool(bool(v))
            case 'string':
                return String(str(v))
        raise TypeError(f"cannot build a value of type {self.name}")


@dataclass(frozen=True)
class SliceType(Type):
    elem: Type

    @property
    def name(self) -> str:
        return f"[]{self.elem}"


@dataclass(frozen=True)
class MapType(Type):
    key: Type
    value: Type

    @property
    def name(self) -> str:
        return f"map[{self.key}]{self.value}"


@dataclass(frozen=True)
class ChanType(Type):
    elem: Type

    @property
    def name(self) -> str:
        return f"chan {self.elem}"


@dataclass(frozen=True)
class FuncType(Type):
    """Signature of a function. `params` is None for host callables whose
    signature is unknown."""
    params: Optional[PyTuple[Type, ...]] = None
    results: PyTuple[Type, ...] = ()
    variadic: bool = False

    @property
    def name(self) -> str:
        if self.params is None:
            return "func(...)"
        parts = [str(p) for p in self.params]
        if self.variadic and parts:
            parts[-1] = "..." + str(self.params[-1].elem)
        out = f"func({', '.join(parts)})"
        if len(self.results) == 1:
            out += f" {self.results[0]}"
        elif self.results:
            out += f" ({', '.join(str(r) for r in self.results)})"
        return out


@dataclass(frozen=True)
class StructType(Type):
    """The dynamic type of a wrapped host object: its Python class."""
    cls: type

    @property
    def name(self) -> str:
        return self.cls.__name__


@dataclass(frozen=True)
class TupleType(Type):
    elems: PyTuple[Type, ...]

    @property
    def name(self) -> str:
        return f"({', '.join(str(e) for e in self.elems)})"


def _int_type(name: str, bits: int, signed: bool) -> BasicType:
    return BasicType(name, 'int', bits, signed)


BOOL = BasicType('bool', 'bool')
STRING = BasicType('string', 'string')
INT = _int_type('int', 64, True)
INT8 = _int_type('int8', 8, True)
INT16 = _int_type('int16', 16, True)
INT32 = _int_type('int32', 32, True)
INT64 = _int_type('int64', 64, True)
UINT = _int_type('uint', 64, False)
UINT8 = _int_type('uint8', 8, False)
UINT16 = _int_type('uint16', 16, False)
UINT32 = _int_type('uint32', 32, False)
UINT64 = _int_type('uint64', 64, False)
UINTPTR = _int_type('uintptr', 64, False)
FLOAT32 = BasicType('float32', 'float', 32)
FLOAT64 = BasicType('float64', 'float', 64)
COMPLEX64 = BasicType('complex64', 'complex', 64)
COMPLEX128 = BasicType('complex128', 'complex', 128)
ERROR = BasicType('error', 'error')
ANY = BasicType('any', 'any')
# Internal kinds; never reachable by name.
NIL_TYPE = BasicType('nil', 'nil')
TYPE = BasicType('type', 'type')
PACKAGE = BasicType('package', 'package')
BUILTIN = BasicType('builtin', 'builtin')

BYTE = UINT8
RUNE = INT32


def round_float(v: float, bits: int) -> float:
    """Round to single precision when bits == 32; float64 passes through."""
    if bits != 32 or math.isnan(v) or math.isinf(v):
        return v
    try:
        return struct.unpack('<f', struct.pack('<f', v))[0]
    except OverflowError:
        return math.copysign(math.inf, v)


def format_float(v: float) -> str:
    if math.isnan(v):
        return "NaN"
    if math.isinf(v):
        return "+Inf" if v > 0 else "-Inf"
    text = repr(v)
    if text.endswith(".0"):
        text = text[:-2]
    return text


# =================================================================
# Values
# =================================================================

@dataclass(frozen=True)
class NilValue(Value):

    @property
    def typ(self) -> Type:
        return NIL_TYPE

    def __str__(self) -> str:
        return "<nil>"


Nil = NilValue()


@dataclass(frozen=True)
class Bool(Value):
    value: bool

    @property
    def typ(self) -> Type:
        return BOOL

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class Int(Value):
    typ: BasicType
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Float(Value):
    typ: BasicType
    value: float

    def __str__(self) -> str:
        return format_float(self.value)


@dataclass(frozen=True)
class Complex(Value):
    typ: BasicType
    value: complex

    def __str__(self) -> str:
        imag = format_float(self.value.imag)
        if not imag.startswith(('-', '+')):
            imag = "+" + imag
        return f"({format_float(self.value.real)}{imag}i)"


@dataclass(frozen=True)
class String(Value):
    value: str

    @property
    def typ(self) -> Type:
        return STRING

    def __str__(self) -> str:
        return self.value


@dataclass(eq=False)
class Slice(Value):
    """An ordered, growable sequence. Copies of the binding share `items`.

    `host` is the Python sequence the slice was read from, if any; index
    assignments are mirrored into it.
    """
    typ: SliceType
    items: List[Value] = field(default_factory=list)
    host: Any = field(default=None, repr=False)

    def __len__(self) -> int:
        return len(self.items)

    def __str__(self) -> str:
        return "[" + " ".join(str(i) for i in self.items) + "]"


@dataclass(eq=False)
class Map(Value):
    typ: MapType
    entries: Dict[Value, Value] = field(default_factory=dict)
    host: Any = field(default=None, repr=False)

    def __len__(self) -> int:
        return len(self.entries)

    def __str__(self) -> str:
        pairs = sorted(f"{k}:{v}" for k, v in self.entries.items())
        return "map[" + " ".join(pairs) + "]"


@dataclass(eq=False)
class Chan(Value):
    typ: ChanType
    capacity: int = 0
    buffer: collections.deque = field(default_factory=collections.deque)

    def __str__(self) -> str:
        return f"<chan {self.typ.elem} {len(self.buffer)}/{self.capacity}>"


@dataclass(frozen=True)
class Struct(Value):
    """A live host object, visible only through exported fields and methods."""
    obj: Any

    @property
    def typ(self) -> Type:
        return StructType(type(self.obj))

    def field(self, name: str) -> Any:
        """Returns the raw attribute for a field, or MISSING."""
        if name.startswith('_'):
            return MISSING
        own = getattr(self.obj, '__dict__', None)
        if own is not None and name in own:
            return own[name]
        attr = getattr(self.obj, name, MISSING)
        if attr is MISSING or callable(attr):
            return MISSING
        return attr

    def method(self, name: str) -> Any:
        """Returns the bound method, or MISSING."""
        if name.startswith('_'):
            return MISSING
        attr = getattr(self.obj, name, MISSING)
        if attr is MISSING or not callable(attr):
            return MISSING
        return attr

    def set_field(self, name: str, raw: Any) -> None:
        setattr(self.obj, name, raw)

    def __str__(self) -> str:
        return f"{{{self.obj!r}}}"


@dataclass(eq=False)
class Builtin(Value):
    """A builtin that receives evaluated values directly (append, make)."""
    name: str
    impl: Callable[..., Value]

    @property
    def typ(self) -> Type:
        return BUILTIN

    def __str__(self) -> str:
        return f"<builtin {self.name}>"


@dataclass(eq=False)
class NativeFunc(Value):
    """A Python callable reached through the reflective bridge."""
    fn: Callable[..., Any]
    name: str = ""

    @property
    def typ(self) -> Type:
        return FuncType()

    def __str__(self) -> str:
        return f"<func {self.name or getattr(self.fn, '__name__', '?')}>"


@dataclass(eq=False)
class Closure(Value):
    """An interpreted function literal plus the scope it was defined in."""
    ftype: FuncType
    param_names: List[str]
    body: Any            # pry_ast.BlockStmt
    scope: Any           # pry_scope.Scope

    @property
    def typ(self) -> Type:
        return self.ftype

    def __str__(self) -> str:
        return f"<{self.ftype}>"


@dataclass(eq=False)
class Package(Value):
    """A namespace of exported callables, e.g. a wrapped Python module."""
    name: str
    members: Dict[str, Value] = field(default_factory=dict)

    @property
    def typ(self) -> Type:
        return PACKAGE

    @classmethod
    def from_module(cls, module: Any, name: Optional[str] = None) -> 'Package':
        members = {}
        for attr in dir(module):
            if attr.startswith('_'):
                continue
            fn = getattr(module, attr)
            if callable(fn):
                members[attr] = NativeFunc(fn, attr)
        return cls(name or module.__name__, members)

    def __str__(self) -> str:
        return f"<package {self.name}>"


@dataclass(frozen=True)
class Tuple(Value):
    """Several results returned at once."""
    items: PyTuple[Value, ...]

    @property
    def typ(self) -> Type:
        return TupleType(tuple(i.typ for i in self.items))

    def __len__(self) -> int:
        return len(self.items)

    def __str__(self) -> str:
        return "(" + ", ".join(str(i) for i in self.items) + ")"
