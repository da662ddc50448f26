import struct

import pytest

from bmvm.bme import main, usage
from bmvm.instructions import InstType
from bmvm.machine import FileMeta, NATIVE_NAME_CAPACITY


def build_program(path, program, memory=b"", externals=(), entry=0):
    meta = FileMeta(
        program_size=len(program),
        entry=entry,
        memory_size=len(memory),
        memory_capacity=len(memory),
        externals_size=len(externals),
    )
    data = bytearray(meta.pack())
    for inst_type, operand in program:
        data += struct.pack("<I4xQ", int(inst_type), operand)
    data += memory
    for name in externals:
        data += name.encode().ljust(NATIVE_NAME_CAPACITY, b"\0")
    path.write_bytes(bytes(data))
    return str(path)


HELLO = b"Hello, World\n"


@pytest.fixture
def hello_file(tmp_path):
    return build_program(
        tmp_path / "hello.bm",
        [
            (InstType.PUSH, 0),
            (InstType.PUSH, len(HELLO)),
            (InstType.NATIVE, 0),
            (InstType.HALT, 0),
        ],
        memory=HELLO,
        externals=["write"],
    )


def test_runs_program_and_writes_output(hello_file, capsys):
    assert main([hello_file]) == 0
    assert capsys.readouterr().out == HELLO.decode()


def test_help_goes_to_stdout(capsys):
    assert main(["-h"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("Usage: bme [OPTIONS] <input.bm>")


def test_usage_lists_options():
    import io
    stream = io.StringIO()
    usage(stream, "prog")
    text = stream.getvalue()
    assert text.splitlines()[0] == "Usage: prog [OPTIONS] <input.bm>"
    assert "-l <limit>" in text
    assert "-n <.so|.DLL>" in text


def test_missing_input(capsys):
    assert main([]) == 1
    assert "ERROR: input was not provided" in capsys.readouterr().err


def test_two_inputs_rejected(hello_file, capsys):
    assert main([hello_file, hello_file]) == 1
    assert "input file is already provided" in capsys.readouterr().err


def test_limit_flag_without_value(capsys):
    assert main(["-l"]) == 1
    assert "No argument is provided for flag `-l`" in capsys.readouterr().err


def test_limit_stops_infinite_loop(tmp_path):
    path = build_program(tmp_path / "loop.bm", [(InstType.JMP, 0)])
    assert main(["-l", "10", path]) == 0


def test_runtime_error_reported(tmp_path, capsys):
    path = build_program(tmp_path / "bad.bm", [(InstType.DROP, 0)])
    assert main([path]) == 1
    assert "ERROR: ERR_STACK_UNDERFLOW" in capsys.readouterr().err


def test_unknown_native_rejected(tmp_path, capsys):
    path = build_program(
        tmp_path / "ext.bm", [(InstType.HALT, 0)], externals=["frobnicate"]
    )
    assert main([path]) == 1
    assert "`frobnicate`" in capsys.readouterr().err


def test_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "nope.bm")]) == 1
    assert "Could not open file" in capsys.readouterr().err


def test_bad_magic(tmp_path, capsys):
    path = tmp_path / "junk.bm"
    path.write_bytes(b"\0" * 64)
    assert main([str(path)]) == 1
    assert "does not appear to be a valid BM file" in capsys.readouterr().err