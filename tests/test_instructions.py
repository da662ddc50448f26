import pytest

from bmvm.instructions import Inst, InstDef, InstType, get_inst_def, inst_by_name
from bmvm.types import Type, Word


def test_instruction_count_matches_source():
    defs = [get_inst_def(opcode) for opcode in range(64)]
    assert len({inst_def.name for inst_def in defs}) == 64
    with pytest.raises(ValueError):
        get_inst_def(64)


def test_opcode_numbering_endpoints():
    assert get_inst_def(0).name == "nop"
    assert get_inst_def(0).type == InstType.NOP
    assert get_inst_def(1).name == "push"
    assert get_inst_def(63).name == "f2u"
    assert inst_by_name("f2u").type == 63


@pytest.mark.parametrize("inst_type", list(InstType))
def test_get_inst_def_type_matches(inst_type):
    assert get_inst_def(inst_type).type == inst_type


@pytest.mark.parametrize("inst_type", list(InstType))
def test_name_round_trip(inst_type):
    inst_def = get_inst_def(inst_type)
    assert inst_by_name(inst_def.name) == inst_def


def test_names_are_unique():
    names = [get_inst_def(t).name for t in InstType]
    assert len(set(names)) == len(names)


def test_unknown_name_returns_none():
    assert inst_by_name("frobnicate") is None
    assert inst_by_name("") is None
    assert inst_by_name("PUSH") is None


def test_get_inst_def_rejects_unknown_opcode():
    with pytest.raises(ValueError):
        get_inst_def(len(InstType))
    with pytest.raises(ValueError):
        get_inst_def(-1)


def test_push_definition():
    push = inst_by_name("push")
    assert push.type == InstType.PUSH
    assert push.has_operand
    assert push.operand_type == Type.ANY
    assert push.input == ()
    assert push.output == ()


def test_call_definition():
    call = inst_by_name("call")
    assert call.has_operand
    assert call.operand_type == Type.INST_ADDR
    assert call.output == (Type.INST_ADDR,)


def test_native_and_jumps_operand_types():
    assert inst_by_name("native").operand_type == Type.NATIVE_ID
    assert inst_by_name("jmp").operand_type == Type.INST_ADDR
    assert inst_by_name("jmp_if").operand_type == Type.INST_ADDR
    assert inst_by_name("dup").operand_type == Type.UNSIGNED_INT
    assert inst_by_name("swap").operand_type == Type.UNSIGNED_INT


def test_arithmetic_signatures():
    assert inst_by_name("plusi").input == (Type.UNSIGNED_INT, Type.UNSIGNED_INT)
    assert inst_by_name("multi").output == (Type.SIGNED_INT,)
    assert inst_by_name("divf").input == (Type.FLOAT, Type.FLOAT)
    assert inst_by_name("ltf").output == (Type.BOOL,)


def test_memory_signatures():
    assert inst_by_name("read16i").input == (Type.MEM_ADDR,)
    assert inst_by_name("read16i").output == (Type.SIGNED_INT,)
    assert inst_by_name("write64").input == (Type.MEM_ADDR, Type.UNSIGNED_INT)
    assert inst_by_name("write64").output == ()


def test_conversion_signatures():
    assert inst_by_name("i2f").input == (Type.SIGNED_INT,)
    assert inst_by_name("f2u").output == (Type.UNSIGNED_INT,)


@pytest.mark.parametrize("inst_type", list(InstType))
def test_type_lists_fit_capacity(inst_type):
    inst_def = get_inst_def(inst_type)
    assert len(inst_def.input) <= 2
    assert len(inst_def.output) <= 2


@pytest.mark.parametrize("inst_type", list(InstType))
def test_operandless_defs_default_to_any(inst_type):
    inst_def = get_inst_def(inst_type)
    if not inst_def.has_operand:
        assert inst_def.operand_type == Type.ANY
    else:
        assert inst_def.name in {"push", "dup", "swap", "jmp", "jmp_if", "call", "native"}


def test_halt_and_nop_have_no_effect():
    for name in ("halt", "nop"):
        inst_def = inst_by_name(name)
        assert not inst_def.has_operand
        assert inst_def.input == () and inst_def.output == ()


def test_inst_default_operand_is_zero_word():
    inst = Inst(InstType.HALT)
    assert inst.operand == Word(0)
    assert inst.type == InstType.HALT


def test_inst_keeps_unknown_opcode():
    inst = Inst(1000, Word(5))
    assert inst.type == 1000
    assert inst.operand.as_u64 == 5


def test_inst_def_is_immutable():
    inst_def = inst_by_name("nop")
    with pytest.raises(AttributeError):
        inst_def.name = "other"
    assert isinstance(inst_def, InstDef) and inst_def.name == "nop"