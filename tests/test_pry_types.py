import math

import pytest
from pry.pry_types import string_to_type, zero_value, convert, assignable, is_nillable
from pry.pry_datatypes import (
    Nil, Bool, Int, Float, Complex, String, Slice, Map, Struct, NativeFunc,
    SliceType, MapType, ChanType, FuncType,
    BOOL, STRING, INT, INT8, INT32, INT64, UINT8, UINT16, FLOAT32, FLOAT64,
    COMPLEX64, COMPLEX128, ERROR, ANY,
)
from pry.pry_errors import TypeMismatch, UnresolvedIdentifier


# --- Registry ---

@pytest.mark.parametrize("name, expected", [
    ("bool", BOOL),
    ("string", STRING),
    ("int", INT),
    ("int8", INT8),
    ("uint16", UINT16),
    ("float32", FLOAT32),
    ("complex128", COMPLEX128),
    ("error", ERROR),
    ("byte", UINT8),
    ("rune", INT32),
])
def test_string_to_type(name, expected):
    assert string_to_type(name) is expected


def test_string_to_type_unknown():
    with pytest.raises(UnresolvedIdentifier) as ei:
        string_to_type("int128")
    assert "int128" in str(ei.value)


def test_type_names():
    assert str(SliceType(INT)) == "[]int"
    assert str(MapType(STRING, SliceType(UINT8))) == "map[string][]uint8"
    assert str(ChanType(FLOAT64)) == "chan float64"
    assert str(FuncType((INT, STRING), (BOOL,))) == "func(int, string) bool"
    assert str(FuncType((SliceType(INT),), (), variadic=True)) == "func(...int)"


# --- Numeric identity ---

def test_integers_wrap_to_width():
    assert INT8.new(200) == Int(INT8, -56)
    assert UINT8.new(-1) == Int(UINT8, 255)
    assert INT64.new(1 << 63) == Int(INT64, -(1 << 63))


def test_width_is_part_of_identity():
    assert Int(INT32, 1) != Int(INT64, 1)
    assert Int(INT, 1) == Int(INT, 1)


def test_float32_rounds_to_single_precision():
    v = FLOAT32.new(0.1).value
    assert v != 0.1
    assert abs(v - 0.1) < 1e-8
    assert FLOAT64.new(0.1).value == 0.1


def test_value_printing():
    assert str(Slice(SliceType(INT), [Int(INT, 1), Int(INT, 2)])) == "[1 2]"
    assert str(Float(FLOAT64, 3.0)) == "3"
    assert str(Float(FLOAT64, math.inf)) == "+Inf"
    assert str(Complex(COMPLEX128, 1 + 2j)) == "(1+2i)"
    assert str(Bool(False)) == "false"
    assert str(Nil) == "<nil>"
    m = Map(MapType(STRING, INT), {String("b"): Int(INT, 2), String("a"): Int(INT, 1)})
    assert str(m) == "map[a:1 b:2]"


# --- Zero values ---

def test_zero_values():
    assert zero_value(INT) == Int(INT, 0)
    assert zero_value(FLOAT32) == Float(FLOAT32, 0.0)
    assert zero_value(COMPLEX64) == Complex(COMPLEX64, 0j)
    assert zero_value(BOOL) == Bool(False)
    assert zero_value(STRING) == String("")
    assert zero_value(ERROR) is Nil
    assert zero_value(ChanType(INT)) is Nil
    s = zero_value(SliceType(INT))
    assert isinstance(s, Slice) and s.typ == SliceType(INT) and len(s) == 0
    m = zero_value(MapType(STRING, INT))
    assert isinstance(m, Map) and len(m) == 0


# --- Assignability ---

def test_assignable_exact_types_only():
    assert assignable(Int(INT, 1), INT)
    assert not assignable(Int(INT32, 1), INT)
    assert not assignable(Int(INT, 1), FLOAT64)
    assert assignable(String("s"), ANY)


def test_assignable_nil_to_nillable():
    assert assignable(Nil, SliceType(INT))
    assert assignable(Nil, ERROR)
    assert not assignable(Nil, INT)
    assert is_nillable(MapType(STRING, INT))
    assert not is_nillable(STRING)


def test_assignable_error_and_funcs():
    assert assignable(Struct(ValueError("x")), ERROR)
    assert not assignable(Struct(object()), ERROR)
    assert assignable(NativeFunc(len), FuncType((STRING,), (INT,)))


# --- Conversion ---

def test_convert_between_numeric_types():
    assert convert(INT8, Int(INT, 300)) == Int(INT8, 44)
    assert convert(FLOAT64, Int(INT, 3)) == Float(FLOAT64, 3.0)
    assert convert(INT, Float(FLOAT64, 3.9)) == Int(INT, 3)
    assert convert(INT, Float(FLOAT64, -3.9)) == Int(INT, -3)
    assert convert(COMPLEX64, Complex(COMPLEX128, 1 + 1j)) == Complex(COMPLEX64, 1 + 1j)


def test_convert_to_string():
    assert convert(STRING, Int(INT, 65)) == String("A")
    raw = Slice(SliceType(UINT8), [Int(UINT8, 104), Int(UINT8, 105)])
    assert convert(STRING, raw) == String("hi")
    runes = Slice(SliceType(INT32), [Int(INT32, 0x4e16)])
    assert convert(STRING, runes) == String("世")


def test_convert_string_to_bytes_and_runes():
    b = convert(SliceType(UINT8), String("hé"))
    assert [i.value for i in b.items] == [104, 0xC3, 0xA9]
    r = convert(SliceType(INT32), String("hé"))
    assert [i.value for i in r.items] == [104, 0xE9]


def test_convert_identity_and_any():
    v = Int(INT, 4)
    assert convert(INT, v) is v
    assert convert(ANY, v) is v


@pytest.mark.parametrize("target, value", [
    (INT, String("1")),
    (BOOL, Int(INT, 1)),
    (COMPLEX128, Int(INT, 1)),
    (INT, Float(FLOAT64, math.nan)),
    (SliceType(INT), String("x")),
])
def test_convert_rejects(target, value):
    with pytest.raises(TypeMismatch):
        convert(target, value)
