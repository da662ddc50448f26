"""Machine word and the type hierarchy of the virtual machine."""

from __future__ import annotations

import enum
import math
import struct
from dataclasses import dataclass

_U64_MASK = (1 << 64) - 1
_SIGN_BIT = 1 << 63


class TypeRepr(enum.IntEnum):
    """How a word's bits are interpreted."""

    ANY = 0
    U64 = 1
    I64 = 2
    F64 = 3


class Type(enum.IntEnum):
    """Static types of the machine, arranged in a hierarchy."""

    ANY = 0
    FLOAT = 1
    SIGNED_INT = 2
    UNSIGNED_INT = 3
    MEM_ADDR = 4
    INST_ADDR = 5
    STACK_ADDR = 6
    NATIVE_ID = 7
    BOOL = 8


@dataclass(frozen=True)
class Word:
    """A 64-bit machine word, stored as its raw unsigned bits."""

    bits: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "bits", self.bits & _U64_MASK)

    @property
    def as_u64(self) -> int:
        return self.bits

    @property
    def as_i64(self) -> int:
        return self.bits - (1 << 64) if self.bits & _SIGN_BIT else self.bits

    @property
    def as_f64(self) -> float:
        return struct.unpack("<d", struct.pack("<Q", self.bits))[0]


def word_u64(value: int) -> Word:
    return Word(int(value) & _U64_MASK)


def word_i64(value: int) -> Word:
    return Word(int(value) & _U64_MASK)


def word_f64(value: float) -> Word:
    return Word(struct.unpack("<Q", struct.pack("<d", float(value)))[0])


_TYPE_NAMES = {
    Type.ANY: "Any",
    Type.FLOAT: "Float",
    Type.SIGNED_INT: "Signed_Int",
    Type.UNSIGNED_INT: "Unsigned_Int",
    Type.MEM_ADDR: "Mem_Addr",
    Type.INST_ADDR: "Inst_Addr",
    Type.STACK_ADDR: "Stack_Addr",
    Type.NATIVE_ID: "Native_ID",
    Type.BOOL: "Bool",
}

_SUPERTYPES = {
    Type.ANY: Type.ANY,
    Type.FLOAT: Type.ANY,
    Type.SIGNED_INT: Type.ANY,
    Type.UNSIGNED_INT: Type.ANY,
    Type.MEM_ADDR: Type.UNSIGNED_INT,
    Type.INST_ADDR: Type.UNSIGNED_INT,
    Type.STACK_ADDR: Type.UNSIGNED_INT,
    Type.NATIVE_ID: Type.UNSIGNED_INT,
    Type.BOOL: Type.UNSIGNED_INT,
}

_TYPE_REPRS = {
    Type.ANY: TypeRepr.ANY,
    Type.FLOAT: TypeRepr.F64,
    Type.SIGNED_INT: TypeRepr.I64,
    Type.UNSIGNED_INT: TypeRepr.U64,
    Type.MEM_ADDR: TypeRepr.U64,
    Type.INST_ADDR: TypeRepr.U64,
    Type.STACK_ADDR: TypeRepr.U64,
    Type.NATIVE_ID: TypeRepr.U64,
    Type.BOOL: TypeRepr.U64,
}


def type_by_name(name: str) -> Type | None:
    """Find the type with the given name, or ``None`` if there is none."""
    for type_, type_name_ in _TYPE_NAMES.items():
        if type_name_ == name:
            return type_
    return None


def type_name(type_: Type) -> str:
    return _TYPE_NAMES[Type(type_)]


def supertype_of(subtype: Type) -> Type:
    return _SUPERTYPES[Type(subtype)]


def is_subtype_of(a: Type, b: Type) -> bool:
    """Tell whether ``a`` equals ``b`` or lies below it in the hierarchy."""
    while a != b and a != Type.ANY:
        a = supertype_of(a)
    return a == b


def type_hierarchy_dot() -> str:
    """Render the type hierarchy as a Graphviz digraph."""
    lines = ["digraph Types {"]
    for type_ in Type:
        lines.append(f"    {type_name(type_)}")
        lines.append(f"    {type_name(type_)} -> {type_name(supertype_of(type_))}")
    lines.append("}")
    return "\n".join(lines) + "\n"


def type_repr_of(type_: Type) -> TypeRepr:
    return _TYPE_REPRS[Type(type_)]


def _float_to_int(value: float) -> int:
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"cannot convert {value} to an integer")
    return math.trunc(value)


def convert_type_reprs(word: Word, from_repr: TypeRepr, to_repr: TypeRepr) -> Word:
    """Convert a word between value representations."""
    if from_repr == to_repr or from_repr == TypeRepr.ANY or to_repr == TypeRepr.ANY:
        return word
    if from_repr == TypeRepr.U64:
        if to_repr == TypeRepr.I64:
            return word_i64(word.as_u64)
        return word_f64(float(word.as_u64))
    if from_repr == TypeRepr.I64:
        if to_repr == TypeRepr.U64:
            return word_u64(word.as_i64)
        return word_f64(float(word.as_i64))
    if to_repr == TypeRepr.I64:
        return word_i64(_float_to_int(word.as_f64))
    return word_u64(_float_to_int(word.as_f64))


def _require_concrete(repr_: TypeRepr) -> TypeRepr:
    repr_ = TypeRepr(repr_)
    if repr_ == TypeRepr.ANY:
        raise ValueError("representation is too vague")
    return repr_


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def _float_div(a: float, b: float) -> float:
    if b != 0.0:
        return a / b
    if a == 0.0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)


def _float_mod(a: float, b: float) -> float:
    try:
        return math.fmod(a, b)
    except ValueError:
        return math.nan


def word_plus_repr(a: Word, b: Word, repr_: TypeRepr) -> Word:
    repr_ = _require_concrete(repr_)
    if repr_ == TypeRepr.U64:
        return word_u64(a.as_u64 + b.as_u64)
    if repr_ == TypeRepr.I64:
        return word_i64(a.as_i64 + b.as_i64)
    return word_f64(a.as_f64 + b.as_f64)


def word_minus_repr(a: Word, b: Word, repr_: TypeRepr) -> Word:
    repr_ = _require_concrete(repr_)
    if repr_ == TypeRepr.U64:
        return word_u64(a.as_u64 - b.as_u64)
    if repr_ == TypeRepr.I64:
        return word_i64(a.as_i64 - b.as_i64)
    return word_f64(a.as_f64 - b.as_f64)


def word_mult_repr(a: Word, b: Word, repr_: TypeRepr) -> Word:
    repr_ = _require_concrete(repr_)
    if repr_ == TypeRepr.U64:
        return word_u64(a.as_u64 * b.as_u64)
    if repr_ == TypeRepr.I64:
        return word_i64(a.as_i64 * b.as_i64)
    return word_f64(a.as_f64 * b.as_f64)


def word_div_repr(a: Word, b: Word, repr_: TypeRepr) -> Word:
    """Divide; integer division truncates toward zero and raises on zero."""
    repr_ = _require_concrete(repr_)
    if repr_ == TypeRepr.U64:
        return word_u64(a.as_u64 // b.as_u64)
    if repr_ == TypeRepr.I64:
        if b.as_i64 == 0:
            raise ZeroDivisionError("integer division by zero")
        return word_i64(_trunc_div(a.as_i64, b.as_i64))
    return word_f64(_float_div(a.as_f64, b.as_f64))


def word_gt_repr(a: Word, b: Word, repr_: TypeRepr) -> Word:
    repr_ = _require_concrete(repr_)
    if repr_ == TypeRepr.U64:
        return word_u64(a.as_u64 > b.as_u64)
    if repr_ == TypeRepr.I64:
        return word_u64(a.as_i64 > b.as_i64)
    return word_u64(a.as_f64 > b.as_f64)


def word_lt_repr(a: Word, b: Word, repr_: TypeRepr) -> Word:
    repr_ = _require_concrete(repr_)
    if repr_ == TypeRepr.U64:
        return word_u64(a.as_u64 < b.as_u64)
    if repr_ == TypeRepr.I64:
        return word_u64(a.as_i64 < b.as_i64)
    return word_u64(a.as_f64 < b.as_f64)


def word_eq_repr(a: Word, b: Word, repr_: TypeRepr) -> Word:
    repr_ = _require_concrete(repr_)
    if repr_ == TypeRepr.U64:
        return word_u64(a.as_u64 == b.as_u64)
    if repr_ == TypeRepr.I64:
        return word_u64(a.as_i64 == b.as_i64)
    return word_u64(a.as_f64 == b.as_f64)


def word_mod_repr(a: Word, b: Word, repr_: TypeRepr) -> Word:
    """Remainder; the integer result takes the sign of the dividend."""
    repr_ = _require_concrete(repr_)
    if repr_ == TypeRepr.U64:
        return word_u64(a.as_u64 % b.as_u64)
    if repr_ == TypeRepr.I64:
        x, y = a.as_i64, b.as_i64
        if y == 0:
            raise ZeroDivisionError("integer modulo by zero")
        return word_i64(x - _trunc_div(x, y) * y)
    return word_f64(_float_mod(a.as_f64, b.as_f64))