"""The stack-based virtual machine, its runtime errors and its program file format."""

from __future__ import annotations

import enum
import math
import operator
import struct
import sys
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Optional, TextIO

from bmvm.instructions import Inst, InstType
from bmvm.types import (
    TypeRepr,
    Word,
    word_div_repr,
    word_f64,
    word_i64,
    word_mod_repr,
    word_u64,
)

BM_WORD_SIZE = 8
BM_STACK_CAPACITY = 1024
BM_PROGRAM_CAPACITY = 1024
BM_NATIVES_CAPACITY = 1024
BM_MEMORY_CAPACITY = 640 * 1000
BM_EXTERNAL_NATIVES_CAPACITY = 1024
NATIVE_NAME_CAPACITY = 256

BM_FILE_MAGIC = 0xA4016D62
BM_FILE_VERSION = 7

_U64_MASK = (1 << 64) - 1
_INVALID_FLOAT_CONVERSION = 1 << 63
_INST_STRUCT = struct.Struct("<I4xQ")


class Err(enum.IntEnum):
    """Runtime error codes of the machine."""

    OK = 0
    STACK_OVERFLOW = 1
    STACK_UNDERFLOW = 2
    ILLEGAL_INST = 3
    ILLEGAL_INST_ACCESS = 4
    ILLEGAL_OPERAND = 5
    ILLEGAL_MEMORY_ACCESS = 6
    DIV_BY_ZERO = 7
    NULL_NATIVE = 8

    def __str__(self) -> str:
        return f"ERR_{self.name}"


class BmError(Exception):
    """Raised when the machine traps while executing an instruction."""

    def __init__(self, err: Err) -> None:
        self.err = Err(err)
        super().__init__(str(self.err))


@dataclass
class FileMeta:
    """Header of a program file."""

    magic: int = BM_FILE_MAGIC
    version: int = BM_FILE_VERSION
    program_size: int = 0
    entry: int = 0
    memory_size: int = 0
    memory_capacity: int = 0
    externals_size: int = 0

    _STRUCT = struct.Struct("<IHQQQQQ")

    def pack(self) -> bytes:
        """Encode the header as it is stored at the start of a program file."""
        return self._STRUCT.pack(
            self.magic,
            self.version,
            self.program_size,
            self.entry,
            self.memory_size,
            self.memory_capacity,
            self.externals_size,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "FileMeta":
        """Decode a header from the first bytes of ``data``."""
        if len(data) < cls._STRUCT.size:
            raise ValueError(
                f"header needs {cls._STRUCT.size} bytes, got {len(data)}"
            )
        return cls(*cls._STRUCT.unpack_from(data))


def _float_to_i64(word: Word) -> Word:
    value = word.as_f64
    if math.isnan(value) or math.isinf(value):
        return word_u64(_INVALID_FLOAT_CONVERSION)
    truncated = math.trunc(value)
    if not -(1 << 63) <= truncated < (1 << 63):
        return word_u64(_INVALID_FLOAT_CONVERSION)
    return word_i64(truncated)


_GET_U = operator.attrgetter("as_u64")
_GET_I = operator.attrgetter("as_i64")
_GET_F = operator.attrgetter("as_f64")


def _arith(get, make, op) -> Callable[[Word, Word], Word]:
    return lambda a, b: make(op(get(a), get(b)))


def _compare(get, op) -> Callable[[Word, Word], Word]:
    return _arith(get, word_u64, op)


def _shift(op) -> Callable[[Word, Word], Word]:
    return lambda a, b: word_u64(op(a.as_u64, b.as_u64 & 63))


_BINARY_OPS: dict[InstType, Callable[[Word, Word], Word]] = {
    InstType.PLUSI: _arith(_GET_U, word_u64, operator.add),
    InstType.MINUSI: _arith(_GET_U, word_u64, operator.sub),
    InstType.MULTI: _arith(_GET_I, word_i64, operator.mul),
    InstType.MULTU: _arith(_GET_U, word_u64, operator.mul),
    InstType.PLUSF: _arith(_GET_F, word_f64, operator.add),
    InstType.MINUSF: _arith(_GET_F, word_f64, operator.sub),
    InstType.MULTF: _arith(_GET_F, word_f64, operator.mul),
    InstType.DIVF: lambda a, b: word_div_repr(a, b, TypeRepr.F64),
    InstType.EQF: _compare(_GET_F, operator.eq),
    InstType.GEF: _compare(_GET_F, operator.ge),
    InstType.GTF: _compare(_GET_F, operator.gt),
    InstType.LEF: _compare(_GET_F, operator.le),
    InstType.LTF: _compare(_GET_F, operator.lt),
    InstType.NEF: _compare(_GET_F, operator.ne),
    InstType.EQI: _compare(_GET_I, operator.eq),
    InstType.GEI: _compare(_GET_I, operator.ge),
    InstType.GTI: _compare(_GET_I, operator.gt),
    InstType.LEI: _compare(_GET_I, operator.le),
    InstType.LTI: _compare(_GET_I, operator.lt),
    InstType.NEI: _compare(_GET_I, operator.ne),
    InstType.EQU: _compare(_GET_U, operator.eq),
    InstType.GEU: _compare(_GET_U, operator.ge),
    InstType.GTU: _compare(_GET_U, operator.gt),
    InstType.LEU: _compare(_GET_U, operator.le),
    InstType.LTU: _compare(_GET_U, operator.lt),
    InstType.NEU: _compare(_GET_U, operator.ne),
    InstType.ANDB: _arith(_GET_U, word_u64, operator.and_),
    InstType.ORB: _arith(_GET_U, word_u64, operator.or_),
    InstType.XOR: _arith(_GET_U, word_u64, operator.xor),
    InstType.SHR: _shift(operator.rshift),
    InstType.SHL: _shift(operator.lshift),
}

_DIVISION_OPS: dict[InstType, Callable[[Word, Word], Word]] = {
    InstType.DIVI: lambda a, b: word_div_repr(a, b, TypeRepr.I64),
    InstType.MODI: lambda a, b: word_mod_repr(a, b, TypeRepr.I64),
    InstType.DIVU: lambda a, b: word_div_repr(a, b, TypeRepr.U64),
    InstType.MODU: lambda a, b: word_mod_repr(a, b, TypeRepr.U64),
}

_READ_OPS: dict[InstType, tuple[int, bool]] = {
    InstType.READ8U: (1, False),
    InstType.READ16U: (2, False),
    InstType.READ32U: (4, False),
    InstType.READ64U: (8, False),
    InstType.READ8I: (1, True),
    InstType.READ16I: (2, True),
    InstType.READ32I: (4, True),
    InstType.READ64I: (8, True),
}

_WRITE_OPS: dict[InstType, int] = {
    InstType.WRITE8: 1,
    InstType.WRITE16: 2,
    InstType.WRITE32: 4,
    InstType.WRITE64: 8,
}

_CAST_OPS: dict[InstType, Callable[[Word], Word]] = {
    InstType.I2F: lambda w: word_f64(float(w.as_i64)),
    InstType.U2F: lambda w: word_f64(float(w.as_u64)),
    InstType.F2I: _float_to_i64,
    InstType.F2U: _float_to_i64,
}


Native = Callable[["Bm"], None]


@dataclass(eq=False)
class Bm:
    """Machine state: program, stack, memory and the native functions it may call.

    Natives are callables taking the machine; they signal traps by raising
    ``BmError``. ``output`` is the binary stream the ``write`` native uses;
    when ``None`` standard output is used.
    """

    program: list[Inst] = field(default_factory=list)
    ip: int = 0
    stack: list[Word] = field(default_factory=list)
    natives: list[Optional[Native]] = field(default_factory=list)
    externals: list[str] = field(default_factory=list)
    memory: bytearray = field(
        default_factory=lambda: bytearray(BM_MEMORY_CAPACITY)
    )
    expected_memory_size: int = 0
    halt: bool = False
    output: Optional[BinaryIO] = None

    def _require(self, count: int) -> None:
        if len(self.stack) < count:
            raise BmError(Err.STACK_UNDERFLOW)

    def _require_room(self) -> None:
        if len(self.stack) >= BM_STACK_CAPACITY:
            raise BmError(Err.STACK_OVERFLOW)

    def execute_inst(self) -> None:
        """Execute the instruction at ``ip``; raise ``BmError`` on a trap."""
        if not 0 <= self.ip < len(self.program):
            raise BmError(Err.ILLEGAL_INST_ACCESS)

        inst = self.program[self.ip]
        try:
            op = InstType(inst.type)
        except ValueError:
            raise BmError(Err.ILLEGAL_INST) from None

        stack = self.stack
        operand = inst.operand

        if op in _BINARY_OPS:
            self._require(2)
            rhs = stack.pop()
            stack[-1] = _BINARY_OPS[op](stack[-1], rhs)
            self.ip += 1
            return

        if op in _DIVISION_OPS:
            self._require(2)
            if stack[-1].as_u64 == 0:
                raise BmError(Err.DIV_BY_ZERO)
            rhs = stack.pop()
            stack[-1] = _DIVISION_OPS[op](stack[-1], rhs)
            self.ip += 1
            return

        if op in _READ_OPS:
            size, signed = _READ_OPS[op]
            self._require(1)
            addr = stack[-1].as_u64
            if addr + size > BM_MEMORY_CAPACITY:
                raise BmError(Err.ILLEGAL_MEMORY_ACCESS)
            value = int.from_bytes(
                self.memory[addr:addr + size], "little", signed=signed
            )
            stack[-1] = word_i64(value) if signed else word_u64(value)
            self.ip += 1
            return

        if op in _WRITE_OPS:
            size = _WRITE_OPS[op]
            self._require(2)
            addr = stack[-2].as_u64
            if addr + size > BM_MEMORY_CAPACITY:
                raise BmError(Err.ILLEGAL_MEMORY_ACCESS)
            value = stack[-1].as_u64 & ((1 << (8 * size)) - 1)
            self.memory[addr:addr + size] = value.to_bytes(size, "little")
            del stack[-2:]
            self.ip += 1
            return

        if op in _CAST_OPS:
            self._require(1)
            stack[-1] = _CAST_OPS[op](stack[-1])
            self.ip += 1
            return

        match op:
            case InstType.NOP:
                self.ip += 1
            case InstType.PUSH:
                self._require_room()
                stack.append(operand)
                self.ip += 1
            case InstType.DROP:
                self._require(1)
                stack.pop()
                self.ip += 1
            case InstType.JMP:
                self.ip = operand.as_u64
            case InstType.JMP_IF:
                self._require(1)
                condition = stack.pop().as_u64
                self.ip = operand.as_u64 if condition else self.ip + 1
            case InstType.RET:
                self._require(1)
                self.ip = stack.pop().as_u64
            case InstType.CALL:
                self._require_room()
                stack.append(word_u64(self.ip + 1))
                self.ip = operand.as_u64
            case InstType.NATIVE:
                index = operand.as_u64
                if index >= len(self.natives):
                    raise BmError(Err.ILLEGAL_OPERAND)
                native = self.natives[index]
                if native is None:
                    raise BmError(Err.NULL_NATIVE)
                native(self)
                self.ip += 1
            case InstType.HALT:
                self.halt = True
            case InstType.DUP:
                self._require_room()
                depth = operand.as_u64
                if depth >= len(stack):
                    raise BmError(Err.STACK_UNDERFLOW)
                stack.append(stack[-1 - depth])
                self.ip += 1
            case InstType.SWAP:
                depth = operand.as_u64
                if depth >= len(stack):
                    raise BmError(Err.STACK_UNDERFLOW)
                stack[-1], stack[-1 - depth] = stack[-1 - depth], stack[-1]
                self.ip += 1
            case InstType.NOT:
                self._require(1)
                stack[-1] = word_u64(not stack[-1].as_u64)
                self.ip += 1
            case InstType.NOTB:
                self._require(1)
                stack[-1] = word_u64(~stack[-1].as_u64)
                self.ip += 1
            case _:
                raise BmError(Err.ILLEGAL_INST)

    def execute_program(self, limit: int = -1) -> None:
        """Run until halted or ``limit`` steps are done; negative means no limit."""
        while limit != 0 and not self.halt:
            self.execute_inst()
            if limit > 0:
                limit -= 1

    def push_native(self, native: Optional[Native]) -> None:
        """Register a native function under the next free id."""
        if len(self.natives) >= BM_NATIVES_CAPACITY:
            raise OverflowError("exceeded the capacity of native functions")
        self.natives.append(native)

    def dump_stack(self, stream: TextIO) -> None:
        """Write every stack word in all of its interpretations."""
        stream.write("Stack:\n")
        if not self.stack:
            stream.write("  [empty]\n")
            return
        for word in self.stack:
            ptr = f"0x{word.as_u64:x}" if word.as_u64 else "(nil)"
            stream.write(
                f"  u64: {word.as_u64}, i64: {word.as_i64}, "
                f"f64: {word.as_f64:f}, ptr: {ptr}\n"
            )


def load_program_from_file(file_path) -> Bm:
    """Load a program file into a fresh machine.

    Raises ``OSError`` when the file cannot be read and ``ValueError`` when
    its contents are not a valid program of the supported version.
    """
    with open(file_path, "rb") as f:
        data = f.read()

    try:
        meta = FileMeta.unpack(data)
    except ValueError as exc:
        raise ValueError(
            f"Could not read meta data from file `{file_path}`: {exc}"
        ) from None

    if meta.magic != BM_FILE_MAGIC:
        raise ValueError(
            f"{file_path} does not appear to be a valid BM file. "
            f"Unexpected magic {meta.magic:04X}. Expected {BM_FILE_MAGIC:04X}."
        )
    if meta.version != BM_FILE_VERSION:
        raise ValueError(
            f"{file_path}: unsupported version of BM file {meta.version}. "
            f"Expected version {BM_FILE_VERSION}."
        )
    if meta.program_size > BM_PROGRAM_CAPACITY:
        raise ValueError(
            f"{file_path}: program section is too big. The file contains "
            f"{meta.program_size} program instruction. But the capacity is "
            f"{BM_PROGRAM_CAPACITY}"
        )
    if meta.memory_capacity > BM_MEMORY_CAPACITY:
        raise ValueError(
            f"{file_path}: memory section is too big. The file wants "
            f"{meta.memory_capacity} bytes. But the capacity is "
            f"{BM_MEMORY_CAPACITY} bytes"
        )
    if meta.memory_size > meta.memory_capacity:
        raise ValueError(
            f"{file_path}: memory size {meta.memory_size} is greater than "
            f"declared memory capacity {meta.memory_capacity}"
        )
    if meta.externals_size > BM_EXTERNAL_NATIVES_CAPACITY:
        raise ValueError(
            f"{file_path}: external names section is too big. The file contains "
            f"{meta.externals_size} external names. But the capacity is "
            f"{BM_EXTERNAL_NATIVES_CAPACITY} external names"
        )

    bm = Bm(ip=meta.entry)
    offset = FileMeta._STRUCT.size

    available = (len(data) - offset) // _INST_STRUCT.size
    count = min(available, meta.program_size)
    for inst_type, operand in _INST_STRUCT.iter_unpack(
        data[offset:offset + count * _INST_STRUCT.size]
    ):
        bm.program.append(Inst(inst_type, Word(operand)))
    offset += count * _INST_STRUCT.size
    if count != meta.program_size:
        raise ValueError(
            f"{file_path}: read {count} program instructions, "
            f"but expected {meta.program_size}"
        )

    memory = data[offset:offset + meta.memory_size]
    bm.memory[:len(memory)] = memory
    bm.expected_memory_size = meta.memory_size
    offset += len(memory)
    if len(memory) != meta.memory_size:
        raise ValueError(
            f"{file_path}: read {len(memory)} bytes of memory section, "
            f"but expected {meta.memory_size} bytes."
        )

    available = (len(data) - offset) // NATIVE_NAME_CAPACITY
    count = min(available, meta.externals_size)
    for index in range(count):
        start = offset + index * NATIVE_NAME_CAPACITY
        raw = data[start:start + NATIVE_NAME_CAPACITY]
        name = raw.split(b"\0", 1)[0]
        bm.externals.append(name.decode("utf-8", errors="surrogateescape"))
    if count != meta.externals_size:
        raise ValueError(
            f"{file_path}: read {count} external names, "
            f"but expected {meta.externals_size}"
        )

    return bm


def native_external(bm: Bm) -> None:
    """Validate the memory address on top of the stack as an external reference.

    The machine's memory is addressed by offset, so the word stays the
    address it already holds once it is known to lie inside memory.
    """
    if len(bm.stack) < 1:
        raise BmError(Err.STACK_UNDERFLOW)
    if bm.stack[-1].as_u64 >= BM_MEMORY_CAPACITY:
        raise BmError(Err.ILLEGAL_MEMORY_ACCESS)


def native_write(bm: Bm) -> None:
    """Pop an address and a byte count and write that memory to the output."""
    if len(bm.stack) < 2:
        raise BmError(Err.STACK_UNDERFLOW)
    addr = bm.stack[-2].as_u64
    count = bm.stack[-1].as_u64
    if addr >= BM_MEMORY_CAPACITY or addr + count >= BM_MEMORY_CAPACITY:
        raise BmError(Err.ILLEGAL_MEMORY_ACCESS)

    out = bm.output if bm.output is not None else sys.stdout.buffer
    out.write(bytes(bm.memory[addr:addr + count]))
    del bm.stack[-2:]