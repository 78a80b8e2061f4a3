"""
CHIP-8 VM - Execution Engine
============================

This module provides the main `Emulator` class that ties memory, CPU,
frontend and cycle pacing together behind a small, high-level API.

The Emulator class:
- Loads program images from files or raw bytes
- Drives the fetch/execute cycle one instruction at a time (step) or
  until the machine halts (run)
- Advances the delay and sound timers in realtime or per-cycle mode
- Converts every runtime fault into a HaltEvent instead of unwinding
  through the caller
- Offers display inspection, key injection and snapshots

Each step:
    1. poll the frontend (a quit request halts with USER_QUIT)
    2. execute one instruction (faults halt with a matching reason)
    3. advance timers
    4. sleep until the next cycle is due

Example usage:
    >>> from chip8_vm.emulator import Emulator, EmulatorConfig
    >>> emu = Emulator(EmulatorConfig(instructions_per_second=0))
    >>> emu.load_rom("pong.ch8")
    >>> event = emu.run(max_cycles=10_000)
    >>> print(event)
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..errors import (
    AddressOutOfRangeError,
    Chip8Error,
    IllegalOpcodeError,
    QuitRequested,
    StackOverflowError,
    StackUnderflowError,
)
from .config import EmulatorConfig, TimerMode
from .cpu import Chip8CPU
from .display import Display
from .frontend import Frontend, HeadlessFrontend
from .keyboard import KeyId, Keyboard
from .memory import Memory
from .timing import CycleScheduler
from .trace import decode

logger = logging.getLogger(__name__)

SNAPSHOT_HEADER = b"C8S\x01"


class EngineState(Enum):
    """Whether the engine will execute further instructions."""
    RUNNING = auto()
    HALTED = auto()


class HaltReason(Enum):
    """
    Enumeration of reasons why execution stopped.

    Used in HaltEvent to indicate what ended the run.
    """
    NONE = auto()                  # Still running
    USER_QUIT = auto()             # Frontend requested termination
    PROGRAM_EXIT = auto()          # Program jumped to $000
    ILLEGAL_OPCODE = auto()        # Word outside the instruction table
    ADDRESS_OUT_OF_RANGE = auto()  # Memory access outside $000-$FFE
    STACK_OVERFLOW = auto()        # CALL with a full stack
    STACK_UNDERFLOW = auto()       # RET with an empty stack
    MAX_CYCLES = auto()            # run() cycle limit reached


# Reasons that indicate the program itself failed
FAULT_REASONS = frozenset({
    HaltReason.ILLEGAL_OPCODE,
    HaltReason.ADDRESS_OUT_OF_RANGE,
    HaltReason.STACK_OVERFLOW,
    HaltReason.STACK_UNDERFLOW,
})


@dataclass
class HaltEvent:
    """
    Information about why execution stopped.

    Attributes:
        reason: Why execution stopped
        address: Address of the instruction involved (if applicable)
        opcode: Instruction word involved (if applicable)
        message: Human-readable description
        error: The exception that caused a fault halt
    """
    reason: HaltReason
    address: Optional[int] = None
    opcode: Optional[int] = None
    message: str = ""
    error: Optional[Chip8Error] = None

    @property
    def is_fault(self) -> bool:
        return self.reason in FAULT_REASONS

    def __str__(self) -> str:
        """Return human-readable description."""
        if self.message:
            return self.message
        match self.reason:
            case HaltReason.USER_QUIT:
                return "Quit requested"
            case HaltReason.PROGRAM_EXIT:
                return "Program exited"
            case HaltReason.MAX_CYCLES:
                return "Reached max cycles"
            case HaltReason.NONE:
                return "Running"
            case _:
                where = f" at ${self.address:04X}" if self.address is not None else ""
                return f"{self.reason.name.replace('_', ' ').lower()}{where}"


class Emulator:
    """
    CHIP-8 virtual machine.

    This is the main entry point for running programs. It owns its memory,
    CPU and scheduler exclusively, so several instances can run side by
    side.

    Attributes:
        config: The EmulatorConfig used to initialize this instance
        memory: Program memory
        cpu: The Chip8CPU instance (accessible for low-level control)
        frontend: Display and input collaborator
        scheduler: Cycle pacing and timer tick accounting

    Example:
        >>> emu = Emulator(EmulatorConfig(instructions_per_second=0))
        >>> emu.load_bytes(bytes([0x60, 0x2A, 0x00, 0x00]))
        >>> emu.run().reason
        <HaltReason.PROGRAM_EXIT: 3>
        >>> emu.registers["v"][0]
        42
    """

    def __init__(
        self,
        config: Optional[EmulatorConfig] = None,
        frontend: Optional[Frontend] = None,
    ):
        """
        Initialize the emulator.

        Args:
            config: Execution settings (default: EmulatorConfig())
            frontend: Display/input collaborator (default: a HeadlessFrontend
                      using the configured key wait mode)
        """
        self.config = config or EmulatorConfig()
        self.memory = Memory()
        self.frontend = frontend or HeadlessFrontend(key_wait_mode=self.config.key_wait_mode)

        self.cpu = Chip8CPU(
            self.memory,
            self.frontend,
            rng=random.Random(self.config.seed),
            index_overflow_flag=self.config.index_overflow_flag,
        )
        self.cpu.trace = self.config.trace

        self.scheduler = CycleScheduler(
            self.config.instructions_per_second,
            self.config.timer_hz,
        )

        self._rom: Optional[bytes] = None
        self._frontend_ready = False
        self._state = EngineState.RUNNING
        self._halt_event: Optional[HaltEvent] = None
        self._total_cycles = 0

    # =========================================================================
    # Program Loading
    # =========================================================================

    def load_rom(self, path: Union[str, Path]) -> None:
        """
        Load a program image file and reset the machine.

        Args:
            path: Path to a raw CHIP-8 program

        Raises:
            FileNotFoundError: If the file doesn't exist
            ProgramTooLargeError: If the image exceeds available memory
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"ROM file not found: {path}")
        logger.info(f"Loading {path}")
        self.load_bytes(path.read_bytes())

    def load_bytes(self, data: bytes) -> None:
        """
        Load a program image from memory and reset the machine.

        Raises:
            ProgramTooLargeError: If the image exceeds available memory
        """
        self.memory.reset()
        self.memory.load(data)
        self._rom = bytes(data)
        self._reset_machine()

    # =========================================================================
    # Execution Control
    # =========================================================================

    def reset(self) -> None:
        """
        Reset to power-on state.

        Memory is cleared, the font table rewritten and the last loaded
        program reloaded; registers, stack, display, keypad and timers
        start fresh.
        """
        self.memory.reset()
        if self._rom is not None:
            self.memory.load(self._rom)
        self._reset_machine()

    def _reset_machine(self) -> None:
        self.cpu.reset()
        self.frontend.display.reset()
        self.frontend.keyboard.release_all()
        self.scheduler.reset()
        self._state = EngineState.RUNNING
        self._halt_event = None
        self._total_cycles = 0

    def step(self) -> EngineState:
        """
        Execute a single engine cycle.

        Does nothing once the engine has halted.

        Returns:
            The engine state after the cycle
        """
        if self._state is EngineState.HALTED:
            return self._state

        if not self._frontend_ready:
            self.frontend.init()
            self.scheduler.reset()
            self._frontend_ready = True

        if self.frontend.present_and_poll():
            self._halt(HaltEvent(HaltReason.USER_QUIT, address=self.cpu.pc))
            return self._state

        try:
            self.cpu.step()
        except QuitRequested:
            self._halt(HaltEvent(HaltReason.USER_QUIT, address=self.cpu.pc))
            return self._state
        except Chip8Error as e:
            self._halt_on_error(e)
            return self._state

        self._total_cycles += 1

        if self.cpu.pc == 0x000:
            self._halt(HaltEvent(HaltReason.PROGRAM_EXIT, address=0x000))
            return self._state

        if self.config.timer_mode is TimerMode.PER_CYCLE:
            self.cpu.tick_timers(1)
        else:
            self.cpu.tick_timers(self.scheduler.due_timer_ticks())

        self.scheduler.wait_for_next_cycle()
        return self._state

    def run(self, max_cycles: Optional[int] = None) -> HaltEvent:
        """
        Run until the machine halts or max_cycles instructions have run.

        Reaching max_cycles does not halt the engine; calling run() again
        continues where it stopped.

        Args:
            max_cycles: Instruction limit for this call (None = no limit)

        Returns:
            HaltEvent describing why execution stopped

        Example:
            >>> event = emu.run(max_cycles=1_000)
            >>> if event.is_fault:
            ...     print(f"Fault at ${event.address:04X}: {event}")
        """
        executed = 0
        while self._state is EngineState.RUNNING:
            if max_cycles is not None and executed >= max_cycles:
                return HaltEvent(
                    HaltReason.MAX_CYCLES,
                    address=self.cpu.pc,
                    message=f"Reached max cycles ({max_cycles})",
                )
            self.step()
            executed += 1
        return self._halt_event

    def close(self) -> None:
        """Release frontend resources."""
        self.frontend.close()
        self._frontend_ready = False

    def _halt_on_error(self, error: Chip8Error) -> None:
        match error:
            case IllegalOpcodeError():
                reason = HaltReason.ILLEGAL_OPCODE
            case AddressOutOfRangeError():
                reason = HaltReason.ADDRESS_OUT_OF_RANGE
            case StackOverflowError():
                reason = HaltReason.STACK_OVERFLOW
            case StackUnderflowError():
                reason = HaltReason.STACK_UNDERFLOW
            case _:
                raise error

        self._halt(HaltEvent(
            reason,
            address=error.address,
            opcode=error.opcode,
            message=str(error),
            error=error,
        ))

    def _halt(self, event: HaltEvent) -> None:
        self._state = EngineState.HALTED
        self._halt_event = event
        if event.is_fault:
            logger.warning(f"Halted: {event}")
            logger.debug(f"Registers at halt:\n{self.cpu.dump_registers()}")
        else:
            logger.info(f"Halted: {event} after {self._total_cycles} cycles")

    # =========================================================================
    # State Inspection
    # =========================================================================

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_halted(self) -> bool:
        return self._state is EngineState.HALTED

    @property
    def halt_event(self) -> Optional[HaltEvent]:
        """Why the engine halted, or None while it is running."""
        return self._halt_event

    @property
    def total_cycles(self) -> int:
        """Instructions executed since the last load or reset."""
        return self._total_cycles

    @property
    def display(self) -> Display:
        return self.frontend.display

    @property
    def keyboard(self) -> Keyboard:
        return self.frontend.keyboard

    @property
    def registers(self) -> Dict[str, object]:
        """
        Get current register values as a dictionary.

        Returns:
            Dictionary with keys: v (list of 16), r (list of 8), i, pc, sp, dt, st
        """
        return {
            'v': list(self.cpu.v),
            'r': list(self.cpu.r),
            'i': self.cpu.i,
            'pc': self.cpu.pc,
            'sp': self.cpu.sp,
            'dt': self.cpu.dt,
            'st': self.cpu.st,
        }

    # =========================================================================
    # Keyboard Input
    # =========================================================================

    def press_key(self, key: KeyId) -> None:
        """Press a keypad key (stays down until release_key)."""
        self.frontend.keyboard.key_down(key)

    def release_key(self, key: KeyId) -> None:
        self.frontend.keyboard.key_up(key)

    # =========================================================================
    # Display Output
    # =========================================================================

    @property
    def display_text(self) -> str:
        """Framebuffer rendered as text ('#' lit, '.' dark)."""
        return self.display.get_text()

    def render_display(self, scale: int = 8) -> Optional[bytes]:
        """
        Render the framebuffer as a PNG image.

        Returns:
            PNG bytes, or None if Pillow is not installed
        """
        return self.display.render_image(scale=scale)

    # =========================================================================
    # Memory Access
    # =========================================================================

    def read_byte(self, address: int) -> int:
        return self.memory.read(address)

    def write_byte(self, address: int, value: int) -> None:
        self.memory.write(address, value)

    def read_bytes(self, address: int, count: int) -> bytes:
        return self.memory.read_bytes(address, count)

    # =========================================================================
    # Snapshot Support
    # =========================================================================

    def save_snapshot(self, path: Union[str, Path]) -> None:
        """
        Save complete machine state to a file.

        The snapshot includes registers, call stack, display and memory.
        Keypad state and timer phase are not saved.
        """
        path = Path(path)

        data = bytearray()
        data.extend(SNAPSHOT_HEADER)
        data.extend(bytes(self.cpu.get_snapshot_data()))
        data.extend(bytes(self.display.get_snapshot_data()))
        data.extend(bytes(self.memory.get_snapshot_data()))

        path.write_bytes(bytes(data))
        logger.info(f"Saved snapshot to {path}")

    def load_snapshot(self, path: Union[str, Path]) -> None:
        """
        Load machine state saved by save_snapshot().

        The engine is left RUNNING at the restored PC.

        Raises:
            ValueError: If snapshot format is invalid
            FileNotFoundError: If file doesn't exist
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Snapshot file not found: {path}")

        data = list(path.read_bytes())

        if bytes(data[:4]) != SNAPSHOT_HEADER:
            raise ValueError("Invalid snapshot format (bad header)")

        # Check the whole image before any section is applied.
        expected = (
            len(SNAPSHOT_HEADER)
            + len(self.cpu.get_snapshot_data())
            + len(self.display.get_snapshot_data())
            + len(self.memory.get_snapshot_data())
        )
        if len(data) != expected:
            raise ValueError(
                f"Invalid snapshot format (expected {expected} bytes, got {len(data)})"
            )

        offset = 4
        offset += self.cpu.apply_snapshot_data(data, offset)
        offset += self.display.apply_snapshot_data(data, offset)
        offset += self.memory.apply_snapshot_data(data, offset)

        self._rom = None
        self._state = EngineState.RUNNING
        self._halt_event = None
        self.scheduler.reset()
        logger.info(f"Loaded snapshot from {path}")

    # =========================================================================
    # Debug Helpers
    # =========================================================================

    def disassemble_at(self, address: int, count: int = 10) -> List[str]:
        """
        Disassemble instructions starting at the given address.

        Stops early at the end of memory.

        Returns:
            List of listing lines, e.g. "$0200: 6005      LD V0, $05"
        """
        result = []
        addr = address
        for _ in range(count):
            if addr + 1 >= Memory.SIZE:
                break
            word = self.memory.read_word(addr)
            result.append(str(decode(word, addr)))
            addr += 2
        return result

    def __repr__(self) -> str:
        """Return string representation of emulator state."""
        return (
            f"Emulator(state={self._state.name}, "
            f"pc=${self.cpu.pc:04X}, "
            f"cycles={self._total_cycles})"
        )
