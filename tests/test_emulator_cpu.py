"""
CHIP-8 CPU Unit Tests
=====================

Tests for the instruction dispatcher and register file, covering:
- Register masking
- Fetch and PC advance
- Flow control, call and return
- ALU flag semantics
- Index, font and bulk memory operations
- Drawing, keypad and timer instructions
- Illegal opcode detection
"""

import random

import pytest

from chip8_vm.emulator import Chip8CPU, HeadlessFrontend, KeyWaitMode, Memory
from chip8_vm.errors import (
    AddressOutOfRangeError,
    IllegalOpcodeError,
    QuitRequested,
    StackOverflowError,
    StackUnderflowError,
)


# =============================================================================
# CPU Fixture
# =============================================================================

@pytest.fixture
def frontend():
    return HeadlessFrontend()


@pytest.fixture
def cpu(frontend):
    """Create CPU with fresh memory and a headless frontend."""
    return Chip8CPU(Memory(), frontend, rng=random.Random(1234))


def load(cpu, *words, address=0x200):
    """Write instruction words at address (default $200)."""
    for offset, word in enumerate(words):
        cpu.memory.write(address + offset * 2, word >> 8)
        cpu.memory.write(address + offset * 2 + 1, word & 0xFF)


def run(cpu, count):
    for _ in range(count):
        cpu.step()


# =============================================================================
# Register Tests
# =============================================================================

class TestRegisters:
    """Test register access and masking."""

    def test_initial_state(self, cpu):
        """Power-on state: PC at $200, everything else zero."""
        assert cpu.pc == 0x200
        assert cpu.i == 0
        assert cpu.sp == 0
        assert cpu.v == [0] * 16

    def test_i_register_16bit(self, cpu):
        """I is masked to 16 bits."""
        cpu.i = 0x1FFFF
        assert cpu.i == 0xFFFF

    def test_timers_8bit(self, cpu):
        """DT and ST are 8-bit."""
        cpu.dt = 0x1FF
        cpu.st = 0x100
        assert cpu.dt == 0xFF
        assert cpu.st == 0x00

    def test_reset(self, cpu):
        """Reset restores power-on registers and empties the stack."""
        cpu.v[3] = 7
        cpu.i = 0x300
        cpu.pc = 0x400
        cpu.stack.push(0x202)
        cpu.reset()
        assert cpu.v[3] == 0
        assert cpu.i == 0
        assert cpu.pc == 0x200
        assert cpu.sp == 0


# =============================================================================
# Fetch Tests
# =============================================================================

class TestFetch:
    """Test the fetch phase."""

    def test_pc_advances_by_two(self, cpu):
        """A non-branching instruction advances PC by exactly 2."""
        load(cpu, 0x6005)
        cpu.step()
        assert cpu.pc == 0x202

    def test_step_returns_opcode(self, cpu):
        load(cpu, 0x6105)
        assert cpu.step() == 0x6105

    def test_on_instruction_hook(self, cpu):
        """Hook receives address and opcode before execution."""
        seen = []
        cpu.on_instruction = lambda pc, opcode: seen.append((pc, opcode, cpu.v[0]))
        load(cpu, 0x6042, 0x6043)
        run(cpu, 2)
        assert seen == [(0x200, 0x6042, 0x00), (0x202, 0x6043, 0x42)]

    def test_fetch_past_end_of_memory(self, cpu):
        """Fetching at the last byte reads past the end and faults."""
        cpu.pc = 0xFFE
        with pytest.raises(AddressOutOfRangeError) as exc:
            cpu.step()
        assert exc.value.address == 0xFFE


# =============================================================================
# Flow Control Tests
# =============================================================================

class TestFlowControl:
    """Test jumps, calls, returns and skips."""

    def test_jp(self, cpu):
        load(cpu, 0x1ABC)
        cpu.step()
        assert cpu.pc == 0xABC

    def test_legacy_0nnn_is_jump(self, cpu):
        """0NNN (other than CLS/RET) jumps to NNN."""
        load(cpu, 0x0345)
        cpu.step()
        assert cpu.pc == 0x345

    def test_jp_v0(self, cpu):
        """BNNN jumps to NNN + V0."""
        cpu.v[0] = 0x10
        load(cpu, 0xB300)
        cpu.step()
        assert cpu.pc == 0x310

    def test_call_and_ret(self, cpu):
        """CALL pushes the address after the call; RET returns to it."""
        load(cpu, 0x2300)
        load(cpu, 0x00EE, address=0x300)
        cpu.step()
        assert cpu.pc == 0x300
        assert cpu.sp == 1
        assert cpu.stack.peek() == 0x202
        cpu.step()
        assert cpu.pc == 0x202
        assert cpu.sp == 0

    def test_se_immediate(self, cpu):
        cpu.v[1] = 0x42
        load(cpu, 0x3142)
        cpu.step()
        assert cpu.pc == 0x204

    def test_se_immediate_no_skip(self, cpu):
        cpu.v[1] = 0x41
        load(cpu, 0x3142)
        cpu.step()
        assert cpu.pc == 0x202

    def test_sne_immediate(self, cpu):
        cpu.v[1] = 0x41
        load(cpu, 0x4142)
        cpu.step()
        assert cpu.pc == 0x204

    def test_se_registers(self, cpu):
        """5XY0 compares Vx with Vy."""
        cpu.v[1] = 7
        cpu.v[2] = 7
        load(cpu, 0x5120)
        cpu.step()
        assert cpu.pc == 0x204

    def test_sne_registers(self, cpu):
        """9XY0 compares Vx with Vy."""
        cpu.v[1] = 7
        cpu.v[2] = 8
        load(cpu, 0x9120)
        cpu.step()
        assert cpu.pc == 0x204


# =============================================================================
# Stack Tests
# =============================================================================

class TestStack:
    """Test call depth limits."""

    def test_sixteen_nested_calls(self, cpu):
        """16 nested calls followed by 16 returns restore PC at every level."""
        # Subroutine k at $300 + 4k is "CALL next; RET"; the last one only returns
        for k in range(15):
            load(cpu, 0x2000 | (0x304 + 4 * k), 0x00EE, address=0x300 + 4 * k)
        load(cpu, 0x00EE, address=0x33C)
        load(cpu, 0x2300)
        for depth in range(16):
            cpu.step()
            assert cpu.sp == depth + 1
            assert cpu.pc == 0x300 + 4 * depth

        # Each RET lands just after the CALL of the level below
        return_addresses = [0x302 + 4 * k for k in reversed(range(15))] + [0x202]
        for depth, address in zip(reversed(range(16)), return_addresses):
            cpu.step()
            assert cpu.sp == depth
            assert cpu.pc == address

    def test_seventeenth_call_overflows(self, cpu):
        """A 17th nested call raises StackOverflowError."""
        load(cpu, 0x2200)  # calls itself
        run(cpu, 16)
        with pytest.raises(StackOverflowError) as exc:
            cpu.step()
        assert exc.value.address == 0x200
        assert exc.value.opcode == 0x2200

    def test_ret_on_empty_stack_underflows(self, cpu):
        """RET with SP=0 raises StackUnderflowError."""
        load(cpu, 0x00EE)
        with pytest.raises(StackUnderflowError) as exc:
            cpu.step()
        assert exc.value.address == 0x200
        assert exc.value.opcode == 0x00EE


# =============================================================================
# ALU Tests
# =============================================================================

class TestALU:
    """Test 8XYn arithmetic and logic with VF semantics."""

    def test_ld_immediate(self, cpu):
        load(cpu, 0x6A5C)
        cpu.step()
        assert cpu.v[0xA] == 0x5C

    def test_add_immediate_wraps_without_flag(self, cpu):
        """7XKK wraps modulo 256 and leaves VF alone."""
        cpu.v[1] = 0xFF
        cpu.v[0xF] = 0x55
        load(cpu, 0x7102)
        cpu.step()
        assert cpu.v[1] == 0x01
        assert cpu.v[0xF] == 0x55

    def test_ld_register(self, cpu):
        cpu.v[2] = 0x99
        load(cpu, 0x8120)
        cpu.step()
        assert cpu.v[1] == 0x99

    def test_or_and_xor(self, cpu):
        cpu.v[1] = 0b1100
        cpu.v[2] = 0b1010
        cpu.v[3] = 0b1100
        cpu.v[4] = 0b1100
        load(cpu, 0x8121, 0x8322, 0x8423)
        run(cpu, 3)
        assert cpu.v[1] == 0b1110
        assert cpu.v[3] == 0b1000
        assert cpu.v[4] == 0b0110

    def test_add_with_carry(self, cpu):
        """8XY4: 0xFF + 0x01 = 0x00 with VF=1."""
        cpu.v[1] = 0xFF
        cpu.v[2] = 0x01
        load(cpu, 0x8124)
        cpu.step()
        assert cpu.v[1] == 0x00
        assert cpu.v[0xF] == 1

    def test_add_without_carry(self, cpu):
        cpu.v[1] = 0x10
        cpu.v[2] = 0x20
        cpu.v[0xF] = 1
        load(cpu, 0x8124)
        cpu.step()
        assert cpu.v[1] == 0x30
        assert cpu.v[0xF] == 0

    def test_sub_equal_values(self, cpu):
        """8XY5 with Vx == Vy gives 0 and VF=1 (no borrow)."""
        cpu.v[1] = 5
        cpu.v[2] = 5
        load(cpu, 0x8125)
        cpu.step()
        assert cpu.v[1] == 0
        assert cpu.v[0xF] == 1

    def test_sub_with_borrow(self, cpu):
        """8XY5: 3 - 5 = 0xFE with VF=0."""
        cpu.v[1] = 3
        cpu.v[2] = 5
        load(cpu, 0x8125)
        cpu.step()
        assert cpu.v[1] == 0xFE
        assert cpu.v[0xF] == 0

    def test_subn(self, cpu):
        """8XY7: Vx = Vy - Vx, VF = Vy >= Vx."""
        cpu.v[1] = 3
        cpu.v[2] = 5
        load(cpu, 0x8127)
        cpu.step()
        assert cpu.v[1] == 2
        assert cpu.v[0xF] == 1

    def test_subn_with_borrow(self, cpu):
        cpu.v[1] = 5
        cpu.v[2] = 3
        load(cpu, 0x8127)
        cpu.step()
        assert cpu.v[1] == 0xFE
        assert cpu.v[0xF] == 0

    def test_shr(self, cpu):
        """8XY6: VF = bit 0, Vx shifted right."""
        cpu.v[1] = 0b00000101
        load(cpu, 0x8106)
        cpu.step()
        assert cpu.v[1] == 0b00000010
        assert cpu.v[0xF] == 1

    def test_shl(self, cpu):
        """8XYE: VF = bit 7, Vx shifted left and truncated."""
        cpu.v[1] = 0b10000001
        load(cpu, 0x810E)
        cpu.step()
        assert cpu.v[1] == 0b00000010
        assert cpu.v[0xF] == 1

    def test_add_into_vf_keeps_flag(self, cpu):
        """With x=F the carry is written after the sum."""
        cpu.v[0xF] = 0x80
        cpu.v[0xE] = 0x01
        load(cpu, 0x8FE4)
        cpu.step()
        assert cpu.v[0xF] == 0

    def test_shr_into_vf_keeps_result(self, cpu):
        """With x=F the shifted value is written after the flag."""
        cpu.v[0xF] = 0x02
        load(cpu, 0x8F06)
        cpu.step()
        assert cpu.v[0xF] == 0x01


class TestALUSweep:
    """Check the flag arithmetic against every operand value."""

    @pytest.mark.parametrize("opcode,expected", [
        (0x8124, lambda a, b: ((a + b) & 0xFF, 1 if a + b > 0xFF else 0)),
        (0x8125, lambda a, b: ((a - b) & 0xFF, 1 if a >= b else 0)),
        (0x8127, lambda a, b: ((b - a) & 0xFF, 1 if b >= a else 0)),
    ], ids=["ADD", "SUB", "SUBN"])
    def test_two_operand_ops(self, cpu, opcode, expected):
        """Vx and VF match for all 256 x 256 operand pairs."""
        load(cpu, opcode)
        mismatches = []
        for a in range(256):
            for b in range(256):
                cpu.pc = 0x200
                cpu.v[1] = a
                cpu.v[2] = b
                cpu.step()
                if (cpu.v[1], cpu.v[0xF]) != expected(a, b):
                    mismatches.append((a, b, cpu.v[1], cpu.v[0xF]))
        assert mismatches == []

    @pytest.mark.parametrize("opcode,expected", [
        (0x8106, lambda a: (a >> 1, a & 1)),
        (0x810E, lambda a: ((a << 1) & 0xFF, a >> 7)),
    ], ids=["SHR", "SHL"])
    def test_shifts(self, cpu, opcode, expected):
        """Vx and VF match for all 256 operand values."""
        load(cpu, opcode)
        for a in range(256):
            cpu.pc = 0x200
            cpu.v[1] = a
            cpu.step()
            assert (cpu.v[1], cpu.v[0xF]) == expected(a), f"Vx=${a:02X}"

    @pytest.mark.parametrize("opcode,a,b,result,flag", [
        (0x8124, 0xFF, 0x00, 0xFF, 0),
        (0x8127, 0x42, 0x42, 0x00, 1),
        (0x8106, 0b10, 0x00, 0b01, 0),
        (0x810E, 0x7F, 0x00, 0xFE, 0),
    ], ids=["add-ff-plus-zero", "subn-equal", "shr-bit0-clear", "shl-bit7-clear"])
    def test_flag_edges(self, cpu, opcode, a, b, result, flag):
        cpu.v[1] = a
        cpu.v[2] = b
        cpu.v[0xF] = 0x55
        load(cpu, opcode)
        cpu.step()
        assert cpu.v[1] == result
        assert cpu.v[0xF] == flag


# =============================================================================
# Index and Memory Tests
# =============================================================================

class TestIndex:
    """Test I register operations."""

    def test_ld_i(self, cpu):
        load(cpu, 0xA123)
        cpu.step()
        assert cpu.i == 0x123

    def test_add_i(self, cpu):
        cpu.i = 0x300
        cpu.v[2] = 0x10
        load(cpu, 0xF21E)
        cpu.step()
        assert cpu.i == 0x310
        assert cpu.v[0xF] == 0

    def test_add_i_overflow_sets_vf(self, cpu):
        """FX1E sets VF when I + Vx passes $FFF."""
        cpu.i = 0xFFF
        cpu.v[2] = 0x01
        load(cpu, 0xF21E)
        cpu.step()
        assert cpu.i == 0x1000
        assert cpu.v[0xF] == 1

    def test_add_i_flag_disabled(self, frontend):
        """With the overflow flag disabled VF is untouched."""
        cpu = Chip8CPU(Memory(), frontend, index_overflow_flag=False)
        cpu.i = 0xFFF
        cpu.v[2] = 0x01
        cpu.v[0xF] = 0x77
        load(cpu, 0xF21E)
        cpu.step()
        assert cpu.i == 0x1000
        assert cpu.v[0xF] == 0x77

    def test_font_address(self, cpu):
        """FX29 with Vx=$A points I at $50 + 50."""
        cpu.v[3] = 0xA
        load(cpu, 0xF329)
        cpu.step()
        assert cpu.i == 0x50 + 50
        assert cpu.memory.read_bytes(cpu.i, 5) == bytes([0xF0, 0x90, 0xF0, 0x90, 0x90])

    def test_bcd(self, cpu):
        """FX33 of 234 stores 2, 3, 4."""
        cpu.v[4] = 234
        cpu.i = 0x300
        load(cpu, 0xF433)
        cpu.step()
        assert cpu.memory.read_bytes(0x300, 3) == bytes([2, 3, 4])

    def test_bcd_out_of_range(self, cpu):
        """BCD write past the end of memory faults."""
        cpu.i = 0xFFE
        cpu.v[4] = 123
        load(cpu, 0xF433)
        with pytest.raises(AddressOutOfRangeError) as exc:
            cpu.step()
        assert exc.value.target == 0xFFF
        assert exc.value.address == 0x200
        assert exc.value.opcode == 0xF433

    def test_store_registers(self, cpu):
        """FX55 stores V0..Vx and leaves I unchanged."""
        cpu.v[0:4] = [1, 2, 3, 4]
        cpu.i = 0x300
        load(cpu, 0xF355)
        cpu.step()
        assert cpu.memory.read_bytes(0x300, 5) == bytes([1, 2, 3, 4, 0])
        assert cpu.i == 0x300

    def test_load_registers(self, cpu):
        """FX65 loads V0..Vx and leaves I unchanged."""
        for k, value in enumerate([9, 8, 7]):
            cpu.memory.write(0x300 + k, value)
        cpu.i = 0x300
        load(cpu, 0xF265)
        cpu.step()
        assert cpu.v[0:4] == [9, 8, 7, 0]
        assert cpu.i == 0x300

    def test_user_flags(self, cpu):
        """FX75/FX85 save and restore V0..Vx through R0..R7."""
        cpu.v[0:3] = [5, 6, 7]
        load(cpu, 0xF275, 0x6000, 0x6100, 0x6200, 0xF285)
        run(cpu, 5)
        assert cpu.v[0:3] == [5, 6, 7]
        assert cpu.r[0:3] == [5, 6, 7]

    def test_user_flags_limited_to_eight(self, cpu):
        """Only R0..R7 exist; higher registers are not saved."""
        cpu.v[:] = list(range(1, 17))
        load(cpu, 0xFF75)
        cpu.step()
        assert cpu.r == [1, 2, 3, 4, 5, 6, 7, 8]


# =============================================================================
# Display and Keypad Tests
# =============================================================================

class TestDisplayInstructions:
    """Test CLS and DRW."""

    def test_draw_sets_pixels(self, cpu, frontend):
        cpu.i = 0x300
        cpu.memory.write(0x300, 0b10000001)
        load(cpu, 0xD011)
        cpu.step()
        assert frontend.display.get_pixel(0, 0)
        assert frontend.display.get_pixel(7, 0)
        assert cpu.v[0xF] == 0

    def test_draw_collision(self, cpu, frontend):
        """Drawing the same sprite twice erases it and sets VF."""
        cpu.i = 0x300
        cpu.memory.write(0x300, 0xFF)
        load(cpu, 0xD011, 0xD011)
        run(cpu, 2)
        assert cpu.v[0xF] == 1
        assert frontend.display.lit_pixel_count() == 0

    def test_cls(self, cpu, frontend):
        frontend.display.draw_sprite(0, 0, b"\xff")
        load(cpu, 0x00E0)
        cpu.step()
        assert frontend.display.lit_pixel_count() == 0

    def test_draw_reads_past_memory(self, cpu):
        cpu.i = 0xFFD
        load(cpu, 0xD005)
        with pytest.raises(AddressOutOfRangeError):
            cpu.step()


class TestKeypadInstructions:
    """Test SKP, SKNP and the blocking key wait."""

    def test_skp_pressed(self, cpu, frontend):
        frontend.keyboard.key_down(0xA)
        cpu.v[1] = 0xA
        load(cpu, 0xE19E)
        cpu.step()
        assert cpu.pc == 0x204

    def test_skp_not_pressed(self, cpu):
        cpu.v[1] = 0xA
        load(cpu, 0xE19E)
        cpu.step()
        assert cpu.pc == 0x202

    def test_sknp(self, cpu):
        cpu.v[1] = 0xA
        load(cpu, 0xE1A1)
        cpu.step()
        assert cpu.pc == 0x204

    def test_skp_out_of_range_key(self, cpu):
        """A key index above $F reads as released."""
        cpu.v[1] = 0x42
        load(cpu, 0xE1A1)
        cpu.step()
        assert cpu.pc == 0x204

    def test_wait_for_key(self, cpu, frontend):
        """FX0A blocks until the script presses a key."""
        frontend.queue_idle(3)
        frontend.queue_key(0x7, down=True)
        load(cpu, 0xF30A)
        cpu.step()
        assert cpu.v[3] == 0x7
        assert frontend.frames == 4

    def test_wait_for_key_quit(self, cpu, frontend):
        """An exhausted script while waiting raises QuitRequested."""
        load(cpu, 0xF30A)
        with pytest.raises(QuitRequested):
            cpu.step()

    def test_wait_for_key_press_mode(self):
        """In PRESS mode a release alone does not complete the wait."""
        frontend = HeadlessFrontend(key_wait_mode=KeyWaitMode.PRESS)
        frontend.keyboard.key_down(0x2)
        frontend.queue_key(0x2, down=False)
        frontend.queue_key(0x9, down=True)
        cpu = Chip8CPU(Memory(), frontend)
        load(cpu, 0xF00A)
        cpu.step()
        assert cpu.v[0] == 0x9


# =============================================================================
# Timer and Random Tests
# =============================================================================

class TestTimers:
    """Test timer instructions and decrement."""

    def test_set_and_read_delay(self, cpu):
        cpu.v[1] = 0x30
        load(cpu, 0xF115, 0xF207)
        run(cpu, 2)
        assert cpu.dt == 0x30
        assert cpu.v[2] == 0x30

    def test_set_sound(self, cpu):
        cpu.v[1] = 0x05
        load(cpu, 0xF118)
        cpu.step()
        assert cpu.st == 0x05

    def test_tick_saturates(self, cpu):
        cpu.dt = 3
        cpu.st = 1
        cpu.tick_timers(5)
        assert cpu.dt == 0
        assert cpu.st == 0


class TestRandom:
    """Test CXKK."""

    def test_rnd_masked(self, cpu):
        for _ in range(20):
            load(cpu, 0xC10F)
            cpu.pc = 0x200
            cpu.step()
            assert cpu.v[1] <= 0x0F

    def test_rnd_seeded(self, frontend):
        """Identical seeds give identical sequences."""
        results = []
        for _ in range(2):
            cpu = Chip8CPU(Memory(), frontend, rng=random.Random(99))
            load(cpu, 0xC1FF, 0xC2FF)
            run(cpu, 2)
            results.append((cpu.v[1], cpu.v[2]))
        assert results[0] == results[1]


# =============================================================================
# Illegal Opcode Tests
# =============================================================================

class TestIllegalOpcodes:
    """Test that words outside the table fault."""

    @pytest.mark.parametrize("opcode", [0xFFFF, 0x5121, 0x9121, 0x8128, 0xE100, 0xF100])
    def test_illegal(self, cpu, opcode):
        load(cpu, opcode)
        with pytest.raises(IllegalOpcodeError) as exc:
            cpu.step()
        assert exc.value.address == 0x200
        assert exc.value.opcode == opcode

    def test_message(self, cpu):
        load(cpu, 0xFFFF)
        with pytest.raises(IllegalOpcodeError, match=r"illegal opcode at \$0200 \(opcode \$FFFF\)"):
            cpu.step()


# =============================================================================
# Diagnostics Tests
# =============================================================================

class TestDiagnostics:
    """Test register dump and snapshot data."""

    def test_dump_registers(self, cpu):
        cpu.v[1] = 0x05
        cpu.i = 0x22A
        dump = cpu.dump_registers()
        assert "V1=05" in dump
        assert "I=$022A" in dump
        assert "PC=$0200" in dump
        assert len(dump.splitlines()) == 3

    def test_snapshot_restores_state(self, cpu, frontend):
        cpu.v[5] = 0x42
        cpu.i = 0x345
        cpu.dt = 9
        cpu.stack.push(0x222)
        cpu.pc = 0x300
        data = cpu.get_snapshot_data()

        other = Chip8CPU(Memory(), frontend)
        consumed = other.apply_snapshot_data(data)
        assert consumed == len(data)
        assert other.v[5] == 0x42
        assert other.i == 0x345
        assert other.dt == 9
        assert other.pc == 0x300
        assert other.stack.peek() == 0x222
