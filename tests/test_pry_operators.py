import math

import pytest
from pry.pry_operators import binary_op, unary_op, values_equal, append, make
from pry.pry_datatypes import (
    Nil, Bool, Int, Float, String, Slice, Map, Chan, Struct,
    SliceType, MapType, ChanType,
    INT, INT8, INT32, INT64, UINT8, FLOAT64, STRING,
)
from pry.pry_errors import TypeMismatch, UnsupportedOperator, IndexOutOfRange, RuntimePanic, CallError


def i(v, t=INT):
    return Int(t, v)


def f(v):
    return Float(FLOAT64, v)


def ints(*vs):
    return Slice(SliceType(INT), [i(v) for v in vs])


# --- Arithmetic ---

@pytest.mark.parametrize("op, a, b, expected", [
    ('+', 1, 2, 3),
    ('-', 1, 2, -1),
    ('*', 6, 7, 42),
    ('/', 7, 2, 3),
    ('/', -7, 2, -3),
    ('%', 7, 3, 1),
    ('%', -7, 2, -1),
    ('&', 0b1100, 0b1010, 0b1000),
    ('|', 0b1100, 0b1010, 0b1110),
    ('^', 0b1100, 0b1010, 0b0110),
    ('&^', 0b1111, 0b0101, 0b1010),
])
def test_integer_arithmetic(op, a, b, expected):
    assert binary_op(op, i(a), i(b)) == i(expected)


def test_integer_arithmetic_wraps():
    assert binary_op('+', i(127, INT8), i(1, INT8)) == i(-128, INT8)
    assert binary_op('-', i(0, UINT8), i(1, UINT8)) == i(255, UINT8)


def test_mismatched_widths_are_rejected():
    with pytest.raises(TypeMismatch):
        binary_op('+', i(1, INT32), i(1, INT64))
    with pytest.raises(TypeMismatch):
        binary_op('+', i(1), f(1.0))


def test_integer_division_by_zero_panics():
    with pytest.raises(RuntimePanic):
        binary_op('/', i(1), i(0))
    with pytest.raises(RuntimePanic):
        binary_op('%', i(1), i(0))


def test_float_arithmetic():
    assert binary_op('/', f(1.0), f(4.0)) == f(0.25)
    assert binary_op('/', f(1.0), f(0.0)).value == math.inf
    assert binary_op('/', f(-1.0), f(0.0)).value == -math.inf
    assert math.isnan(binary_op('/', f(0.0), f(0.0)).value)


def test_float_rejects_integer_only_ops():
    with pytest.raises(UnsupportedOperator):
        binary_op('%', f(1.0), f(2.0))


def test_string_concatenation():
    assert binary_op('+', String("ab"), String("cd")) == String("abcd")
    with pytest.raises(UnsupportedOperator):
        binary_op('-', String("ab"), String("cd"))


# --- Shifts ---

def test_shift_count_may_have_any_integer_type():
    assert binary_op('<<', i(1), i(3, UINT8)) == i(8)
    assert binary_op('>>', i(-8), i(1)) == i(-4)


def test_shift_wraps_and_saturates():
    assert binary_op('<<', i(1, INT8), i(7)) == i(-128, INT8)
    assert binary_op('<<', i(1, INT8), i(8)) == i(0, INT8)
    assert binary_op('>>', i(-1), i(100)) == i(-1)


def test_shift_errors():
    with pytest.raises(RuntimePanic):
        binary_op('<<', i(1), i(-1))
    with pytest.raises(TypeMismatch):
        binary_op('<<', i(1), f(1.0))
    with pytest.raises(UnsupportedOperator):
        binary_op('<<', f(1.0), i(1))


# --- Comparison / logical ---

def test_comparisons_yield_bool():
    assert binary_op('==', i(1), i(1)) == Bool(True)
    assert binary_op('!=', i(1), i(1)) == Bool(False)
    assert binary_op('<', String("a"), String("b")) == Bool(True)
    assert binary_op('>=', f(2.0), f(2.0)) == Bool(True)


def test_ordering_not_defined_on_bool():
    with pytest.raises(UnsupportedOperator):
        binary_op('<', Bool(True), Bool(False))


def test_nil_comparisons():
    assert binary_op('==', ints(), Nil) == Bool(False)
    assert binary_op('!=', Nil, ints()) == Bool(True)
    with pytest.raises(TypeMismatch):
        binary_op('==', i(0), Nil)


def test_slices_compare_only_to_nil():
    with pytest.raises(UnsupportedOperator):
        binary_op('==', ints(1), ints(1))


def test_struct_and_chan_equality():
    assert values_equal(Struct((1, 2)), Struct((1, 2)))
    c = Chan(ChanType(INT))
    assert values_equal(c, c)
    assert not values_equal(c, Chan(ChanType(INT)))


class Touchy:
    def __eq__(self, other):
        raise RuntimeError("cannot compare")

    __hash__ = object.__hash__


def test_struct_equality_host_failure_is_wrapped():
    with pytest.raises(CallError) as ei:
        values_equal(Struct(Touchy()), Struct(Touchy()))
    assert "cannot compare" in str(ei.value)


def test_logical_operators():
    assert binary_op('&&', Bool(True), Bool(False)) == Bool(False)
    assert binary_op('||', Bool(True), Bool(False)) == Bool(True)
    with pytest.raises(UnsupportedOperator):
        binary_op('&&', i(1), i(1))


# --- Unary ---

def test_unary_operators():
    assert unary_op('-', i(5)) == i(-5)
    assert unary_op('-', i(1, UINT8)) == i(255, UINT8)
    assert unary_op('+', f(2.5)) == f(2.5)
    assert unary_op('!', Bool(False)) == Bool(True)
    assert unary_op('^', i(0)) == i(-1)


def test_unary_type_errors():
    with pytest.raises(UnsupportedOperator):
        unary_op('!', i(1))
    with pytest.raises(UnsupportedOperator):
        unary_op('-', String("x"))


# --- append / make ---

def test_append_returns_new_slice():
    s = ints(1, 2)
    out = append(s, i(3))
    assert [x.value for x in out.items] == [1, 2, 3]
    assert len(s) == 2
    assert out.typ == s.typ


def test_append_checks_element_type():
    with pytest.raises(TypeMismatch):
        append(ints(1), String("x"))
    with pytest.raises(TypeMismatch):
        append(i(1), i(2))


def test_make_slice_is_zero_filled():
    s = make(SliceType(INT), i(3))
    assert isinstance(s, Slice)
    assert s.items == [i(0), i(0), i(0)]
    assert len(make(SliceType(STRING), i(2), i(10))) == 2


def test_make_slice_errors():
    with pytest.raises(TypeMismatch):
        make(SliceType(INT))
    with pytest.raises(IndexOutOfRange):
        make(SliceType(INT), i(-1))
    with pytest.raises(IndexOutOfRange):
        make(SliceType(INT), i(3), i(1))
    with pytest.raises(TypeMismatch):
        make(SliceType(INT), String("3"))


def test_make_map_and_chan():
    m = make(MapType(STRING, INT))
    assert isinstance(m, Map) and len(m) == 0
    c = make(ChanType(INT), i(2))
    assert isinstance(c, Chan) and c.capacity == 2
    assert make(ChanType(INT)).capacity == 0


def test_make_rejects_other_types():
    with pytest.raises(TypeMismatch):
        make(INT)
    with pytest.raises(TypeMismatch):
        make(MapType(SliceType(INT), INT))
