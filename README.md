# bmvm

`bmvm` runs, checks and disassembles programs for BM, a small 64-bit
stack-based virtual machine. Programs are stored in `.bm` bytecode files.
Each file has a packed little-endian header, then the instruction section,
then the initial memory image, then a list of external native function
names of 256 bytes each.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Commands

### `bme`: run a program

```
bme [OPTIONS] <input.bm>
```

| Option       | Meaning                                                  |
|--------------|----------------------------------------------------------|
| `-l <limit>` | Stop after this many steps. `-1`, the default, means no limit. |
| `-h`         | Print help to stdout.                                    |

The machine provides two natives, `write` and `external`. If the program
declares any other external native, `bme` reports an error and exits with
status 1. When an instruction traps, `bme` prints the error code, for
example `ERROR: ERR_STACK_UNDERFLOW`, and exits with status 1.

### `bmr`: run a program and check its output

```
bmr -p <program.bm> [-ao <actual-output.txt>] [-eo <expected-output.txt>]
```

Everything the program writes through the `write` native is captured in
memory. `-ao` saves the captured output to a file. `-eo` compares it line by
line with an expected output file and prints `Expected output` when the two
match. You must give at least one of `-ao` or `-eo`. When the outputs differ,
`bmr` prints the first differing line, or says which output is longer, and
exits with status 1.

`bmr` registers the declared `write` and `external` natives. After them it
always registers one more `write` native.

### `debasm`: disassemble a program

```
debasm <input.bm>
```

This prints assembler-like source for the program. The output has:

- its `%native` declarations,
- the initial memory as a `%const MEMORY` string, with bytes outside
  printable ASCII written as `\xNN`,
- a `%assert MEMORY == 0` line,
- the `%entry main:` label before the entry instruction,
- one instruction per line.

Numeric operands carry a comment that shows the same word as a signed
integer, a float and a pointer.

## Library use

```python
from bmvm.machine import load_program_from_file
from bmvm.debasm import disassemble

bm = load_program_from_file("hello.bm")
print(disassemble(bm))
bm.execute_program(-1)
```

### `bmvm.machine`

- `Bm` is the machine state: program, stack, memory, natives and
  externals.
  - `execute_inst()` runs one instruction.
  - `execute_program(limit)` runs until the program halts or the step
    limit is reached.
  - `push_native(native)` registers a callable that takes the machine.
  - `dump_stack(stream)` writes each stack word in all of its
    interpretations.
  - Set `output` to a binary stream to capture what `write` prints. By
    default it goes to standard output.
- `load_program_from_file(path)` returns a fresh `Bm`. It raises `OSError`
  when the file cannot be read and `ValueError` when the file is not a
  valid version-7 program.
- `FileMeta` is the file header. It has `pack()` and `FileMeta.unpack(data)`.
- A trap raises `BmError`. Its `err` attribute holds an `Err` code.
- `native_write` pops an address and a byte count and writes that memory
  slice to the output.
- `native_external` checks that the address on top of the stack lies
  inside memory.

### `bmvm.instructions`

This module holds the instruction set: `InstType`, `InstDef`, `Inst`,
`get_inst_def(inst_type)` and `inst_by_name(name)`. `inst_by_name` returns
`None` for an unknown mnemonic.

### `bmvm.types`

- `Type` is the type hierarchy, and `TypeRepr` names the value
  representations.
- `Word` is a 64-bit word with `as_u64`, `as_i64` and `as_f64` views.
- Constructors: `word_u64`, `word_i64` and `word_f64`.
- Type helpers: `type_by_name`, `type_name`, `supertype_of`,
  `is_subtype_of`, `type_repr_of` and `convert_type_reprs`.
- Arithmetic and comparison helpers: `word_plus_repr`, `word_minus_repr`,
  `word_mult_repr`, `word_div_repr`, `word_mod_repr`, `word_gt_repr`,
  `word_lt_repr` and `word_eq_repr`.
- `type_hierarchy_dot()` renders the hierarchy as a Graphviz digraph.

### `bmvm.textutil`

This module holds small helpers for text and paths: `chop_by_delim`,
`parse_u64`, `parse_hex`, `file_name_of_path`, `path_join` and
`path_file_exist`.

## What this package does not do

- There is no assembler. The package reads existing `.bm` files but cannot
  produce them from source text, and `debasm` output cannot be assembled
  back with this package.
- `bme` cannot load native functions from shared libraries. It accepts the
  `-n <library>` option only to report that dynamic native objects are not
  supported, and then it exits with status 1.
- `native_external` does not turn an address into a host pointer. The word
  keeps the memory address it already held.