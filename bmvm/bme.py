"""Command-line emulator that loads a program file and runs it."""

from __future__ import annotations

import re
import sys
from typing import TextIO

from bmvm.machine import (
    BmError,
    load_program_from_file,
    native_external,
    native_write,
)

_ATOI = re.compile(r"\s*([+-]?\d+)")


def _atoi(text: str) -> int:
    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def usage(stream: TextIO, program: str) -> None:
    """Print the command-line help to ``stream``."""
    stream.write(f"Usage: {program} [OPTIONS] <input.bm>\n")
    stream.write("OPTIONS:\n")
    stream.write("    -l <limit>      Limit the amount of steps of the emulation.\n")
    stream.write("                    -1 means not limitation\n")
    stream.write("    -n <.so|.DLL>   File path to a dynamic library to load native\n")
    stream.write("                    functions from. You can provide several of them.\n")
    stream.write("    -h              Print this help to stdout\n")


def main(argv=None) -> int:
    """Run the emulator; return the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    program = "bme"
    input_file_path = None
    limit = -1

    flags = iter(args)
    for flag in flags:
        if flag == "-l":
            value = next(flags, None)
            if value is None:
                usage(sys.stderr, program)
                print(f"ERROR: No argument is provided for flag `{flag}`",
                      file=sys.stderr)
                return 1
            limit = _atoi(value)
        elif flag == "-h":
            usage(sys.stdout, program)
            return 0
        elif flag == "-n":
            value = next(flags, None)
            if value is None:
                usage(sys.stderr, program)
                print(f"ERROR: No argument is provide for flag `{flag}`",
                      file=sys.stderr)
                return 1
            print(f"ERROR: could not load object `{value}`: "
                  "dynamic native objects are not supported",
                  file=sys.stderr)
            return 1
        else:
            if input_file_path is not None:
                usage(sys.stderr, program)
                print(f"ERROR: input file is already provided as `{input_file_path}`. "
                      "Only a single input file is not supported",
                      file=sys.stderr)
                return 1
            input_file_path = flag

    if input_file_path is None:
        usage(sys.stderr, program)
        print("ERROR: input was not provided", file=sys.stderr)
        return 1

    try:
        bm = load_program_from_file(input_file_path)
    except OSError as exc:
        print(f"ERROR: Could not open file `{input_file_path}`: {exc.strerror}",
              file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    for name in bm.externals:
        if name == "write":
            bm.push_native(native_write)
        elif name == "external":
            bm.push_native(native_external)
        else:
            print(f"ERROR: could not find external native function `{name}`. "
                  "Make sure you attached all the necessary dynamic libraries "
                  "via the `-n` flag.",
                  file=sys.stderr)
            return 1

    try:
        bm.execute_program(limit)
    except BmError as exc:
        sys.stdout.flush()
        print(f"ERROR: {exc.err}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())