import math

import pytest

from bmvm.types import (
    Type,
    TypeRepr,
    Word,
    convert_type_reprs,
    is_subtype_of,
    supertype_of,
    type_by_name,
    type_hierarchy_dot,
    type_name,
    type_repr_of,
    word_div_repr,
    word_eq_repr,
    word_f64,
    word_gt_repr,
    word_i64,
    word_lt_repr,
    word_minus_repr,
    word_mod_repr,
    word_mult_repr,
    word_plus_repr,
    word_u64,
)


def test_type_names_from_source():
    assert type_name(Type.ANY) == "Any"
    assert type_name(Type.SIGNED_INT) == "Signed_Int"
    assert type_name(Type.NATIVE_ID) == "Native_ID"


@pytest.mark.parametrize("type_", list(Type))
def test_type_by_name_round_trip(type_):
    assert type_by_name(type_name(type_)) == type_


def test_type_by_name_unknown():
    assert type_by_name("Nope") is None


@pytest.mark.parametrize("type_", list(Type))
def test_every_type_is_subtype_of_any_and_itself(type_):
    assert is_subtype_of(type_, Type.ANY)
    assert is_subtype_of(type_, type_)


def test_subtype_relations():
    assert supertype_of(Type.MEM_ADDR) == Type.UNSIGNED_INT
    assert is_subtype_of(Type.BOOL, Type.UNSIGNED_INT)
    assert not is_subtype_of(Type.ANY, Type.BOOL)
    assert not is_subtype_of(Type.FLOAT, Type.UNSIGNED_INT)


def test_type_hierarchy_dot():
    dot = type_hierarchy_dot()
    assert dot.startswith("digraph Types {\n")
    assert dot.endswith("}\n")
    assert "    Mem_Addr -> Unsigned_Int\n" in dot
    assert "    Any -> Any\n" in dot


def test_type_repr_of():
    assert type_repr_of(Type.ANY) == TypeRepr.ANY
    assert type_repr_of(Type.FLOAT) == TypeRepr.F64
    assert type_repr_of(Type.SIGNED_INT) == TypeRepr.I64
    assert type_repr_of(Type.BOOL) == TypeRepr.U64


def test_word_signed_round_trip():
    word = word_i64(-5)
    assert word.as_i64 == -5
    assert word_u64(word.as_u64).as_i64 == -5


def test_word_float_bits_fixed_by_ieee():
    assert word_f64(1.0).as_u64 == 0x3FF0000000000000
    assert Word(0x3FF0000000000000).as_f64 == 1.0


def test_word_float_round_trip():
    for value in (0.5, -123.25, 1e300):
        assert word_f64(value).as_f64 == value


def test_u64_wraps():
    assert word_plus_repr(word_u64(-1), word_u64(1), TypeRepr.U64) == word_u64(0)
    assert word_minus_repr(word_u64(0), word_u64(1), TypeRepr.U64) == word_u64(-1)


def test_plus_minus_inverse():
    a, b = word_i64(-40), word_i64(17)
    total = word_plus_repr(a, b, TypeRepr.I64)
    assert word_minus_repr(total, b, TypeRepr.I64) == a


def test_mult_float():
    assert word_mult_repr(word_f64(2.5), word_f64(4.0), TypeRepr.F64).as_f64 == 2.5 * 4.0


def test_signed_div_and_mod_truncate_toward_zero():
    q = word_div_repr(word_i64(-7), word_i64(2), TypeRepr.I64)
    r = word_mod_repr(word_i64(-7), word_i64(2), TypeRepr.I64)
    assert q.as_i64 == -3
    assert r.as_i64 == -1
    assert q.as_i64 * 2 + r.as_i64 == -7


def test_float_div_and_mod_by_zero():
    quotient = word_div_repr(word_f64(1.0), word_f64(0.0), TypeRepr.F64)
    remainder = word_mod_repr(word_f64(1.0), word_f64(0.0), TypeRepr.F64)
    assert quotient.as_f64 == math.inf
    assert quotient.as_u64 == 0x7FF0000000000000
    value = remainder.as_f64
    assert math.isnan(value) is True
    assert (remainder.as_u64 >> 52) & 0x7FF == 0x7FF


def test_integer_div_by_zero_raises():
    with pytest.raises(ZeroDivisionError):
        word_div_repr(word_u64(1), word_u64(0), TypeRepr.U64)


def test_comparisons_depend_on_repr():
    minus_one, one = word_i64(-1), word_i64(1)
    assert word_gt_repr(minus_one, one, TypeRepr.I64) == word_u64(False)
    assert word_gt_repr(minus_one, one, TypeRepr.U64) == word_u64(True)
    assert word_lt_repr(minus_one, one, TypeRepr.I64) == word_u64(True)
    assert word_eq_repr(word_f64(0.0), word_f64(-0.0), TypeRepr.F64) == word_u64(True)


def test_any_repr_is_too_vague():
    with pytest.raises(ValueError):
        word_plus_repr(word_u64(1), word_u64(2), TypeRepr.ANY)


def test_convert_reprs():
    assert convert_type_reprs(word_u64(3), TypeRepr.U64, TypeRepr.F64).as_f64 == 3.0
    assert convert_type_reprs(word_f64(-3.0), TypeRepr.F64, TypeRepr.I64).as_i64 == -3
    assert convert_type_reprs(word_i64(-2), TypeRepr.I64, TypeRepr.F64).as_f64 == -2.0
    word = word_i64(-9)
    assert convert_type_reprs(word, TypeRepr.ANY, TypeRepr.F64) == word
    assert convert_type_reprs(word, TypeRepr.I64, TypeRepr.U64) == word