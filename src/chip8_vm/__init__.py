"""
chip8-vm - CHIP-8 Interpreter
=============================

This package runs programs written for the CHIP-8 virtual machine, the
interpreted bytecode format of 1970s hobbyist computers such as the
COSMAC VIP.

Main Components
---------------
- **emulator**: The virtual machine
    Memory, CPU, call stack, display, keypad, timers and frontends

- **errors**: Exception hierarchy
    Every runtime fault derives from Chip8Error

- **cli**: Command-line tool (chip8run)
    Runs a ROM in a window or headless

Quick Start
-----------
Run a program headless:
    >>> from chip8_vm import Emulator, EmulatorConfig
    >>> emu = Emulator(EmulatorConfig(instructions_per_second=0))
    >>> emu.load_rom("ibm_logo.ch8")
    >>> emu.run(max_cycles=1_000)
    >>> print(emu.display_text)

Or use the command-line tool:
    $ chip8run pong.ch8 --scale 12
    $ chip8run test.ch8 --headless --max-cycles 5000 --screenshot out.png
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from chip8_vm.emulator import (
    Emulator,
    EmulatorConfig,
    EngineState,
    HaltEvent,
    HaltReason,
    KeyWaitMode,
    TimerMode,
    HeadlessFrontend,
    PygameFrontend,
)
from chip8_vm.errors import (
    Chip8Error,
    LoadError,
    ProgramTooLargeError,
    MemoryAccessError,
    AddressOutOfRangeError,
    StackError,
    StackOverflowError,
    StackUnderflowError,
    DecodeError,
    IllegalOpcodeError,
    QuitRequested,
)

__all__ = [
    # Version info
    "__version__",
    # Engine
    "Emulator",
    "EmulatorConfig",
    "EngineState",
    "HaltEvent",
    "HaltReason",
    "KeyWaitMode",
    "TimerMode",
    "HeadlessFrontend",
    "PygameFrontend",
    # Exception hierarchy
    "Chip8Error",
    "LoadError",
    "ProgramTooLargeError",
    "MemoryAccessError",
    "AddressOutOfRangeError",
    "StackError",
    "StackOverflowError",
    "StackUnderflowError",
    "DecodeError",
    "IllegalOpcodeError",
    "QuitRequested",
]
