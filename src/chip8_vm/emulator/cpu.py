"""
CHIP-8 CPU
==========

Register file and instruction dispatcher for the CHIP-8 virtual machine.

Registers:
- V0-VF: 16 general-purpose 8-bit registers (VF doubles as carry,
  not-borrow, shift-out and collision flag)
- I: 16-bit index register
- R0-R7: 8-bit user flag bank, only touched by FX75/FX85
- DT, ST: 8-bit delay and sound timers
- PC: 16-bit program counter (starts at $200)
- SP: call stack pointer (see stack.py)

Instruction cycle:
    fetch the big-endian word at PC, advance PC by 2, then execute, so
    jump and call targets overwrite the advanced value and skips add a
    further 2.

Flag semantics (VF) follow the classic interpreter bit for bit:
    8XY4 ADD   VF = 1 if the sum exceeds 255
    8XY5 SUB   VF = 1 if Vx >= Vy before the subtraction (not-borrow)
    8XY6 SHR   VF = bit shifted out (Vx bit 0), written before Vx
    8XY7 SUBN  VF = 1 if Vy >= Vx before the subtraction
    8XYE SHL   VF = bit shifted out (Vx bit 7), written before Vx
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..errors import Chip8Error, IllegalOpcodeError
from .frontend import FrontendProtocol
from .keyboard import KEY_COUNT
from .memory import FONT_GLYPH_SIZE, FONT_OFFSET, Memory
from .stack import CallStack
from .trace import disassemble

logger = logging.getLogger(__name__)


@dataclass
class Registers:
    """
    Complete register file.

    All values stored as Python ints but represent:
    - v: sixteen 8-bit values
    - i, pc: 16-bit unsigned
    - r: eight 8-bit user flags
    - dt, st: 8-bit timers
    """
    v: List[int] = field(default_factory=lambda: [0] * 16)
    i: int = 0
    r: List[int] = field(default_factory=lambda: [0] * 8)
    dt: int = 0
    st: int = 0
    pc: int = Memory.PROGRAM_START


class Chip8CPU:
    """
    CHIP-8 fetch-decode-execute engine core.

    Owns the register file and call stack; memory and the frontend are
    handed in by the Emulator. Runtime faults propagate as Chip8Error
    subclasses carrying the faulting address and opcode.

    Instrumentation hook:
        on_instruction(pc, opcode) is called after fetch, before execute

    Example:
        >>> cpu = Chip8CPU(memory, frontend)
        >>> cpu.step()
        >>> print(f"V0=${cpu.v[0]:02X} PC=${cpu.pc:04X}")
    """

    def __init__(
        self,
        memory: Memory,
        frontend: FrontendProtocol,
        rng: Optional[random.Random] = None,
        index_overflow_flag: bool = True,
    ):
        """
        Initialize CPU.

        Args:
            memory: Program memory
            frontend: Display/input collaborator
            rng: Random source for CXKK (default: unseeded Random)
            index_overflow_flag: Whether FX1E sets VF on index overflow
        """
        self.memory = memory
        self.frontend = frontend
        self.regs = Registers()
        self.stack = CallStack()
        self.index_overflow_flag = index_overflow_flag
        self.trace = False
        self._rng = rng or random.Random()

        self.on_instruction: Optional[Callable[[int, int], None]] = None

    # ========================================
    # Register Properties
    # ========================================

    @property
    def v(self) -> List[int]:
        """General-purpose registers V0-VF."""
        return self.regs.v

    @property
    def r(self) -> List[int]:
        """User flag registers R0-R7."""
        return self.regs.r

    @property
    def i(self) -> int:
        """Index register (16-bit)."""
        return self.regs.i

    @i.setter
    def i(self, value: int) -> None:
        self.regs.i = value & 0xFFFF

    @property
    def pc(self) -> int:
        """Program counter (16-bit)."""
        return self.regs.pc

    @pc.setter
    def pc(self, value: int) -> None:
        self.regs.pc = value & 0xFFFF

    @property
    def dt(self) -> int:
        """Delay timer (8-bit)."""
        return self.regs.dt

    @dt.setter
    def dt(self, value: int) -> None:
        self.regs.dt = value & 0xFF

    @property
    def st(self) -> int:
        """Sound timer (8-bit)."""
        return self.regs.st

    @st.setter
    def st(self, value: int) -> None:
        self.regs.st = value & 0xFF

    @property
    def sp(self) -> int:
        """Stack pointer (index of the next free stack slot)."""
        return self.stack.sp

    # ========================================
    # Reset and Timers
    # ========================================

    def reset(self) -> None:
        """Reset registers and stack to power-on state (PC = $200)."""
        self.regs = Registers()
        self.stack.reset()

    def tick_timers(self, ticks: int = 1) -> None:
        """Decrement DT and ST by `ticks`, saturating at zero."""
        if ticks <= 0:
            return
        self.regs.dt = max(0, self.regs.dt - ticks)
        self.regs.st = max(0, self.regs.st - ticks)

    def random_byte(self) -> int:
        return self._rng.randrange(256)

    # ========================================
    # Main Execution
    # ========================================

    def step(self) -> int:
        """
        Execute exactly one instruction.

        Returns:
            The opcode that was executed

        Raises:
            Chip8Error: Any fault, annotated with address and opcode
        """
        address = self.pc
        try:
            opcode = self.memory.read_word(address)
        except Chip8Error as e:
            raise e.with_context(address, None)

        self.pc = address + 2

        if self.trace:
            logger.debug(f"${address:04X}: {opcode:04X}  {disassemble(opcode)}")
        if self.on_instruction:
            self.on_instruction(address, opcode)

        try:
            self._execute_instruction(opcode, address)
        except Chip8Error as e:
            raise e.with_context(address, opcode)

        return opcode

    def _skip_if(self, condition: bool) -> None:
        if condition:
            self.pc = self.pc + 2

    def _execute_instruction(self, opcode: int, address: int) -> None:
        """
        Execute a single decoded instruction.

        Dispatches on the high nibble, then on the low byte or low nibble
        where a group holds several operations.

        Args:
            opcode: The 16-bit instruction word
            address: Where the word was fetched from (for diagnostics)

        Raises:
            IllegalOpcodeError: If the word is outside the instruction table
        """
        v = self.regs.v
        x = (opcode >> 8) & 0xF
        y = (opcode >> 4) & 0xF
        n = opcode & 0xF
        kk = opcode & 0xFF
        nnn = opcode & 0xFFF

        match opcode >> 12:
            # ============================================
            # System and Flow Control
            # ============================================
            case 0x0:
                if opcode == 0x00E0:  # CLS
                    self.frontend.clear()
                elif opcode == 0x00EE:  # RET
                    self.pc = self.stack.pop()
                else:  # JP nnn (legacy 0NNN)
                    self.pc = nnn
            case 0x1:  # JP nnn
                self.pc = nnn
            case 0x2:  # CALL nnn
                self.stack.push(self.pc)
                self.pc = nnn

            # ============================================
            # Conditional Skips
            # ============================================
            case 0x3:  # SE Vx, kk
                self._skip_if(v[x] == kk)
            case 0x4:  # SNE Vx, kk
                self._skip_if(v[x] != kk)
            case 0x5 if n == 0:  # SE Vx, Vy
                self._skip_if(v[x] == v[y])
            case 0x9 if n == 0:  # SNE Vx, Vy
                self._skip_if(v[x] != v[y])

            # ============================================
            # Immediate Loads and Adds
            # ============================================
            case 0x6:  # LD Vx, kk
                v[x] = kk
            case 0x7:  # ADD Vx, kk (no flag)
                v[x] = (v[x] + kk) & 0xFF

            # ============================================
            # Register ALU (8XYn)
            # ============================================
            case 0x8:
                self._execute_alu(opcode, address, x, y, n)

            # ============================================
            # Index, Jump with Offset, Random, Draw
            # ============================================
            case 0xA:  # LD I, nnn
                self.i = nnn
            case 0xB:  # JP V0, nnn
                self.pc = v[0] + nnn
            case 0xC:  # RND Vx, kk
                v[x] = self.random_byte() & kk
            case 0xD:  # DRW Vx, Vy, n
                sprite = self.memory.read_bytes(self.i, n)
                v[0xF] = 1 if self.frontend.draw_sprite(v[x], v[y], sprite) else 0

            # ============================================
            # Keypad Skips
            # ============================================
            case 0xE if kk == 0x9E:  # SKP Vx
                self._skip_if(self.frontend.is_down(v[x]))
            case 0xE if kk == 0xA1:  # SKNP Vx
                self._skip_if(not self.frontend.is_down(v[x]))

            # ============================================
            # Timers, Keys, Index and Bulk Transfers (FXkk)
            # ============================================
            case 0xF:
                self._execute_misc(opcode, address, x, kk)

            case _:
                raise IllegalOpcodeError(address, opcode)

    def _execute_alu(self, opcode: int, address: int, x: int, y: int, n: int) -> None:
        """Register-to-register arithmetic and logic (8XYn)."""
        v = self.regs.v

        match n:
            case 0x0:  # LD Vx, Vy
                v[x] = v[y]
            case 0x1:  # OR Vx, Vy
                v[x] = v[x] | v[y]
            case 0x2:  # AND Vx, Vy
                v[x] = v[x] & v[y]
            case 0x3:  # XOR Vx, Vy
                v[x] = v[x] ^ v[y]
            case 0x4:  # ADD Vx, Vy
                result = v[x] + v[y]
                v[x] = result & 0xFF
                v[0xF] = 1 if result > 0xFF else 0
            case 0x5:  # SUB Vx, Vy
                not_borrow = 1 if v[x] >= v[y] else 0
                v[x] = (v[x] - v[y]) & 0xFF
                v[0xF] = not_borrow
            case 0x6:  # SHR Vx
                value = v[x]
                v[0xF] = value & 0x1
                v[x] = value >> 1
            case 0x7:  # SUBN Vx, Vy
                not_borrow = 1 if v[y] >= v[x] else 0
                v[x] = (v[y] - v[x]) & 0xFF
                v[0xF] = not_borrow
            case 0xE:  # SHL Vx
                value = v[x]
                v[0xF] = value >> 7
                v[x] = (value << 1) & 0xFF
            case _:
                raise IllegalOpcodeError(address, opcode)

    def _execute_misc(self, opcode: int, address: int, x: int, kk: int) -> None:
        """Timer, keypad, index and bulk memory operations (FXkk)."""
        v = self.regs.v

        match kk:
            case 0x07:  # LD Vx, DT
                v[x] = self.dt
            case 0x0A:  # LD Vx, K
                snapshot = tuple(self.frontend.is_down(k) for k in range(KEY_COUNT))
                v[x] = self.frontend.wait_for_change(snapshot) & 0xF
            case 0x15:  # LD DT, Vx
                self.dt = v[x]
            case 0x18:  # LD ST, Vx
                self.st = v[x]
            case 0x1E:  # ADD I, Vx
                total = self.i + v[x]
                self.i = total
                if self.index_overflow_flag:
                    v[0xF] = 1 if total > 0xFFF else 0
            case 0x29:  # LD F, Vx
                self.i = v[x] * FONT_GLYPH_SIZE + FONT_OFFSET
            case 0x33:  # LD B, Vx
                value = v[x]
                self.memory.write(self.i, value // 100)
                self.memory.write(self.i + 1, (value % 100) // 10)
                self.memory.write(self.i + 2, value % 10)
            case 0x55:  # LD [I], Vx
                for k in range(x + 1):
                    self.memory.write(self.i + k, v[k])
            case 0x65:  # LD Vx, [I]
                for k in range(x + 1):
                    v[k] = self.memory.read(self.i + k)
            case 0x75:  # LD R, Vx
                for k in range(min(x, 7) + 1):
                    self.regs.r[k] = v[k]
            case 0x85:  # LD Vx, R
                for k in range(min(x, 7) + 1):
                    v[k] = self.regs.r[k]
            case _:
                raise IllegalOpcodeError(address, opcode)

    # ========================================
    # Diagnostics
    # ========================================

    def dump_registers(self) -> str:
        """
        Format the register file for diagnostics.

        Example output:
            V0=00 V1=05 V2=00 V3=00 V4=00 V5=00 V6=00 V7=00
            V8=00 V9=00 VA=00 VB=00 VC=00 VD=00 VE=00 VF=01
            I=$022A PC=$0206 SP=1 DT=00 ST=00
        """
        v = self.regs.v
        rows = [
            " ".join(f"V{k:X}={v[k]:02X}" for k in range(start, start + 8))
            for start in (0, 8)
        ]
        rows.append(
            f"I=${self.i:04X} PC=${self.pc:04X} SP={self.sp} "
            f"DT={self.dt:02X} ST={self.st:02X}"
        )
        return "\n".join(rows)

    # ========================================
    # Snapshot Support
    # ========================================

    def get_snapshot_data(self) -> List[int]:
        """
        Get CPU state as byte list for snapshot.

        Format: [V0..VF, Ihi, Ilo, R0..R7, DT, ST, PChi, PClo] + stack
        """
        result = list(self.regs.v)
        result.extend(((self.i >> 8) & 0xFF, self.i & 0xFF))
        result.extend(self.regs.r)
        result.extend((self.dt, self.st, (self.pc >> 8) & 0xFF, self.pc & 0xFF))
        result.extend(self.stack.get_snapshot_data())
        return result

    def apply_snapshot_data(self, data: List[int], offset: int = 0) -> int:
        """
        Restore CPU state from snapshot data.

        Returns:
            Number of bytes consumed from data
        """
        regs = Registers()
        regs.v = list(data[offset:offset + 16])
        pos = offset + 16
        regs.i = (data[pos] << 8) | data[pos + 1]
        pos += 2
        regs.r = list(data[pos:pos + 8])
        pos += 8
        regs.dt = data[pos]
        regs.st = data[pos + 1]
        regs.pc = (data[pos + 2] << 8) | data[pos + 3]
        pos += 4
        pos += self.stack.apply_snapshot_data(data, pos)
        self.regs = regs
        return pos - offset
