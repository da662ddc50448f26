"""Test runner: executes a program and compares its output with an expected one."""

from __future__ import annotations

import io
import sys

from bmvm.machine import (
    BmError,
    load_program_from_file,
    native_external,
    native_write,
)
from bmvm.textutil import chop_by_delim

_USAGE = ("Usage: ./bmr -p <program.bm> [-ao <actual-output.txt>] "
          "[-eo <expected-output.txt>]\n")


def compare_outputs(file_path: str, expected: bytes, actual: bytes) -> None:
    """Compare outputs line by line; raise ``ValueError`` on the first difference."""
    line_number = 1
    while expected and actual:
        expected_line, expected = chop_by_delim(expected, b"\n")
        actual_line, actual = chop_by_delim(actual, b"\n")
        if expected_line != actual_line:
            raise ValueError(
                f"{file_path}:{line_number}: Expected output differs from the actual one.\n"
                f"    Expected line: `{expected_line.decode(errors='replace')}`\n"
                f"    Actual   line: `{actual_line.decode(errors='replace')}`"
            )
        line_number += 1

    if expected:
        raise ValueError("Expected output is bigger")
    if actual:
        raise ValueError("Actual output is bigger")


def _error(message: str) -> int:
    print(f"ERROR: {message}", file=sys.stderr)
    return 1


def main(argv=None) -> int:
    """Run the test runner; return the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    paths = {"-p": None, "-ao": None, "-eo": None}

    flags = iter(args)
    for flag in flags:
        if flag not in paths:
            return _error(f"unknown flag `{flag}`")
        value = next(flags, None)
        if value is None:
            return _error(f"no value provided for flag `{flag}`")
        paths[flag] = value

    program_file_path = paths["-p"]
    actual_output_file_path = paths["-ao"]
    expected_output_file_path = paths["-eo"]

    if program_file_path is None:
        sys.stderr.write(_USAGE)
        return _error("program file path is not provided")

    if actual_output_file_path is None and expected_output_file_path is None:
        sys.stderr.write(_USAGE)
        return _error("at least -ao or -eo is expected")

    try:
        bm = load_program_from_file(program_file_path)
    except OSError as exc:
        return _error(f"Could not open file `{program_file_path}`: {exc.strerror}")
    except ValueError as exc:
        return _error(str(exc))

    bm.output = io.BytesIO()

    for name in bm.externals:
        if name == "write":
            bm.push_native(native_write)
        elif name == "external":
            bm.push_native(native_external)
        else:
            return _error(f"bmr does not provide native function `{name}`")

    bm.push_native(native_write)

    try:
        bm.execute_program(-1)
    except BmError as exc:
        return _error(str(exc.err))

    actual_output = bm.output.getvalue()

    if actual_output_file_path:
        try:
            with open(actual_output_file_path, "wb") as output_file:
                output_file.write(actual_output)
        except OSError as exc:
            return _error(f"could not save output to file `{actual_output_file_path}`: "
                          f"{exc.strerror}")

    if expected_output_file_path:
        try:
            with open(expected_output_file_path, "rb") as expected_file:
                expected_output = expected_file.read()
        except OSError as exc:
            return _error(f"could not read file {expected_output_file_path}: "
                          f"{exc.strerror}")

        try:
            compare_outputs(expected_output_file_path, expected_output, actual_output)
        except ValueError as exc:
            return _error(str(exc))
        print("Expected output")

    return 0


if __name__ == "__main__":
    sys.exit(main())