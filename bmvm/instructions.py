"""Instruction set of the virtual machine: opcodes and their definitions."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from bmvm.types import Type, Word


class InstType(enum.IntEnum):
    """Opcodes, numbered as they are stored in program files."""

    NOP = 0
    PUSH = enum.auto()
    DROP = enum.auto()
    DUP = enum.auto()
    SWAP = enum.auto()
    PLUSI = enum.auto()
    MINUSI = enum.auto()
    MULTI = enum.auto()
    DIVI = enum.auto()
    MODI = enum.auto()
    MULTU = enum.auto()
    DIVU = enum.auto()
    MODU = enum.auto()
    PLUSF = enum.auto()
    MINUSF = enum.auto()
    MULTF = enum.auto()
    DIVF = enum.auto()
    JMP = enum.auto()
    JMP_IF = enum.auto()
    RET = enum.auto()
    CALL = enum.auto()
    NATIVE = enum.auto()
    HALT = enum.auto()
    NOT = enum.auto()

    EQI = enum.auto()
    GEI = enum.auto()
    GTI = enum.auto()
    LEI = enum.auto()
    LTI = enum.auto()
    NEI = enum.auto()

    EQU = enum.auto()
    GEU = enum.auto()
    GTU = enum.auto()
    LEU = enum.auto()
    LTU = enum.auto()
    NEU = enum.auto()

    EQF = enum.auto()
    GEF = enum.auto()
    GTF = enum.auto()
    LEF = enum.auto()
    LTF = enum.auto()
    NEF = enum.auto()

    ANDB = enum.auto()
    ORB = enum.auto()
    XOR = enum.auto()
    SHR = enum.auto()
    SHL = enum.auto()
    NOTB = enum.auto()

    READ8U = enum.auto()
    READ16U = enum.auto()
    READ32U = enum.auto()
    READ64U = enum.auto()

    READ8I = enum.auto()
    READ16I = enum.auto()
    READ32I = enum.auto()
    READ64I = enum.auto()

    WRITE8 = enum.auto()
    WRITE16 = enum.auto()
    WRITE32 = enum.auto()
    WRITE64 = enum.auto()

    I2F = enum.auto()
    U2F = enum.auto()
    F2I = enum.auto()
    F2U = enum.auto()


@dataclass(frozen=True)
class InstDef:
    """Static description of an instruction: name, operand and stack effect."""

    type: InstType
    name: str
    has_operand: bool = False
    operand_type: Type = Type.ANY
    input: tuple[Type, ...] = ()
    output: tuple[Type, ...] = ()


@dataclass
class Inst:
    """A single instruction of a program.

    ``type`` is kept as a plain integer so that programs holding unknown
    opcodes can still be loaded and reported as illegal when executed.
    """

    type: int
    operand: Word = field(default_factory=Word)


def _binary(inst_type: InstType, name: str, arg: Type, result: Type) -> InstDef:
    return InstDef(inst_type, name, input=(arg, arg), output=(result,))


def _unary(inst_type: InstType, name: str, arg: Type, result: Type) -> InstDef:
    return InstDef(inst_type, name, input=(arg,), output=(result,))


def _with_operand(inst_type: InstType, name: str, operand_type: Type,
                  output: tuple[Type, ...] = ()) -> InstDef:
    return InstDef(inst_type, name, has_operand=True,
                   operand_type=operand_type, output=output)


_U = Type.UNSIGNED_INT
_I = Type.SIGNED_INT
_F = Type.FLOAT
_B = Type.BOOL
_M = Type.MEM_ADDR

_INST_DEFS: tuple[InstDef, ...] = (
    InstDef(InstType.NOP, "nop"),
    _with_operand(InstType.PUSH, "push", Type.ANY),
    InstDef(InstType.DROP, "drop", input=(Type.ANY,)),
    _with_operand(InstType.DUP, "dup", _U),
    _with_operand(InstType.SWAP, "swap", _U),
    _binary(InstType.PLUSI, "plusi", _U, _U),
    _binary(InstType.MINUSI, "minusi", _U, _U),
    _binary(InstType.MULTI, "multi", _I, _I),
    _binary(InstType.DIVI, "divi", _I, _I),
    _binary(InstType.MODI, "modi", _I, _I),
    _binary(InstType.MULTU, "multu", _U, _U),
    _binary(InstType.DIVU, "divu", _U, _U),
    _binary(InstType.MODU, "modu", _U, _U),
    _binary(InstType.PLUSF, "plusf", _F, _F),
    _binary(InstType.MINUSF, "minusf", _F, _F),
    _binary(InstType.MULTF, "multf", _F, _F),
    _binary(InstType.DIVF, "divf", _F, _F),
    _with_operand(InstType.JMP, "jmp", Type.INST_ADDR),
    _with_operand(InstType.JMP_IF, "jmp_if", Type.INST_ADDR),
    InstDef(InstType.RET, "ret", input=(Type.INST_ADDR,)),
    _with_operand(InstType.CALL, "call", Type.INST_ADDR, output=(Type.INST_ADDR,)),
    _with_operand(InstType.NATIVE, "native", Type.NATIVE_ID),
    InstDef(InstType.HALT, "halt"),
    _unary(InstType.NOT, "not", _B, _B),
    _binary(InstType.EQI, "eqi", _I, _B),
    _binary(InstType.GEI, "gei", _I, _B),
    _binary(InstType.GTI, "gti", _I, _B),
    _binary(InstType.LEI, "lei", _I, _B),
    _binary(InstType.LTI, "lti", _I, _B),
    _binary(InstType.NEI, "nei", _I, _B),
    _binary(InstType.EQU, "equ", _U, _B),
    _binary(InstType.GEU, "geu", _U, _B),
    _binary(InstType.GTU, "gtu", _U, _B),
    _binary(InstType.LEU, "leu", _U, _B),
    _binary(InstType.LTU, "ltu", _U, _B),
    _binary(InstType.NEU, "neu", _U, _B),
    _binary(InstType.EQF, "eqf", _F, _B),
    _binary(InstType.GEF, "gef", _F, _B),
    _binary(InstType.GTF, "gtf", _F, _B),
    _binary(InstType.LEF, "lef", _F, _B),
    _binary(InstType.LTF, "ltf", _F, _B),
    _binary(InstType.NEF, "nef", _F, _B),
    _binary(InstType.ANDB, "andb", _U, _U),
    _binary(InstType.ORB, "orb", _U, _U),
    _binary(InstType.XOR, "xor", _U, _U),
    _binary(InstType.SHR, "shr", _U, _U),
    _binary(InstType.SHL, "shl", _U, _U),
    _unary(InstType.NOTB, "notb", _U, _U),
    _unary(InstType.READ8U, "read8u", _M, _U),
    _unary(InstType.READ16U, "read16u", _M, _U),
    _unary(InstType.READ32U, "read32u", _M, _U),
    _unary(InstType.READ64U, "read64u", _M, _U),
    _unary(InstType.READ8I, "read8i", _M, _I),
    _unary(InstType.READ16I, "read16i", _M, _I),
    _unary(InstType.READ32I, "read32i", _M, _I),
    _unary(InstType.READ64I, "read64i", _M, _I),
    InstDef(InstType.WRITE8, "write8", input=(_M, _U)),
    InstDef(InstType.WRITE16, "write16", input=(_M, _U)),
    InstDef(InstType.WRITE32, "write32", input=(_M, _U)),
    InstDef(InstType.WRITE64, "write64", input=(_M, _U)),
    _unary(InstType.I2F, "i2f", _I, _F),
    _unary(InstType.U2F, "u2f", _U, _F),
    _unary(InstType.F2I, "f2i", _F, _I),
    _unary(InstType.F2U, "f2u", _F, _U),
)

assert [d.type for d in _INST_DEFS] == list(InstType), \
    "instruction definitions are out of sync with InstType"

_BY_NAME = {inst_def.name: inst_def for inst_def in _INST_DEFS}


def inst_by_name(name: str) -> InstDef | None:
    """Find an instruction definition by its mnemonic, or ``None``."""
    return _BY_NAME.get(name)


def get_inst_def(inst_type: int) -> InstDef:
    """Return the definition of an opcode; raise ``ValueError`` if unknown."""
    return _INST_DEFS[InstType(inst_type)]