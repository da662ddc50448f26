"""Disassembler that turns a program file back into assembly text."""

from __future__ import annotations

import sys

from bmvm.instructions import get_inst_def
from bmvm.machine import Bm, load_program_from_file
from bmvm.types import Type, Word, type_name


def _operand_comment(word: Word) -> str:
    ptr = f"0x{word.as_u64:x}" if word.as_u64 else "(nil)"
    return f";; i64: {word.as_i64}, f64: {word.as_f64:f}, ptr: {ptr}"


def _escape_memory(memory: bytes) -> str:
    return "".join(
        chr(byte) if 32 <= byte < 127 else f"\\x{byte:02x}" for byte in memory
    )


def disassemble(bm: Bm) -> str:
    """Render a loaded machine's externals, memory and program as assembly."""
    lines = [f"%native {name}" for name in bm.externals]
    memory = bytes(bm.memory[:bm.expected_memory_size])
    lines.append(f'%const MEMORY = "{_escape_memory(memory)}"')
    lines.append("%assert MEMORY == 0")

    for address, inst in enumerate(bm.program):
        if address == bm.ip:
            lines.append("%entry main:")

        inst_def = get_inst_def(inst.type)
        line = f"    {inst_def.name}"
        if inst_def.has_operand:
            operand = inst.operand
            if inst_def.operand_type in (Type.UNSIGNED_INT, Type.ANY):
                line += f" {operand.as_u64} {_operand_comment(operand)}"
            elif inst_def.operand_type == Type.NATIVE_ID:
                if operand.as_u64 >= len(bm.externals):
                    raise ValueError(
                        f"native id {operand.as_u64} at instruction {address} "
                        "has no external name"
                    )
                line += f" {bm.externals[operand.as_u64]}"
            else:
                line += (f" {type_name(inst_def.operand_type)}({operand.as_u64}) "
                         f"{_operand_comment(operand)}")
        lines.append(line)

    return "\n".join(lines) + "\n"


def main(argv=None) -> int:
    """Disassemble the program file named on the command line."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: ./debasm <input.bm>", file=sys.stderr)
        print("ERROR: no input is provided", file=sys.stderr)
        return 1

    input_file_path = args[0]
    try:
        bm = load_program_from_file(input_file_path)
    except OSError as exc:
        print(f"ERROR: Could not open file `{input_file_path}`: {exc.strerror}",
              file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    sys.stdout.write(disassemble(bm))
    return 0


if __name__ == "__main__":
    sys.exit(main())