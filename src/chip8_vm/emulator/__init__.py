"""
CHIP-8 Virtual Machine
======================

An interpreter for the CHIP-8 virtual machine: 4 KiB of memory, sixteen
8-bit registers, a 16-level call stack, two 60 Hz timers, a 64x32
monochrome display and a 16-key hex keypad.

Quick Start
-----------

Headless run::

    >>> from chip8_vm.emulator import Emulator, EmulatorConfig
    >>> emu = Emulator(EmulatorConfig(instructions_per_second=0))
    >>> emu.load_rom("maze.ch8")
    >>> event = emu.run(max_cycles=5_000)
    >>> print(emu.display_text)

Scripted input::

    >>> frontend = HeadlessFrontend()
    >>> frontend.queue_tap(0x5, hold_frames=3)
    >>> emu = Emulator(config, frontend=frontend)

In a window (requires pygame)::

    >>> emu = Emulator(config, frontend=PygameFrontend(scale=12))

Module Structure
----------------

- `emulator.py`: Emulator engine (high-level API, halt reasons, snapshots)
- `cpu.py`: Register file and instruction dispatcher
- `memory.py`: Bounds-checked memory and font table
- `stack.py`: 16-level call stack
- `display.py`: 64x32 XOR framebuffer
- `keyboard.py`: Hex keypad state and QWERTY mapping
- `frontend.py`: Frontend protocol and headless frontend
- `window.py`: Pygame window frontend
- `timing.py`: Cycle pacing and timer ticks
- `trace.py`: Mnemonic rendering for traces and listings
- `config.py`: Execution settings
"""

# Main entry point
from .emulator import Emulator, EngineState, HaltEvent, HaltReason
from .config import EmulatorConfig, KeyWaitMode, TimerMode

# CPU components
from .cpu import Chip8CPU, Registers
from .stack import CallStack

# Memory subsystem
from .memory import FONT_DATA, FONT_OFFSET, Memory

# I/O
from .display import Display, DisplayState
from .keyboard import QWERTY_TO_KEYPAD, Keyboard
from .frontend import Frontend, FrontendProtocol, HeadlessFrontend
from .window import PygameFrontend

# Timing and diagnostics
from .timing import CycleScheduler
from .trace import DisassembledInstruction, decode, disassemble, disassemble_block

__all__ = [
    # Main API
    "Emulator",
    "EmulatorConfig",
    "EngineState",
    "HaltEvent",
    "HaltReason",
    "KeyWaitMode",
    "TimerMode",

    # CPU
    "Chip8CPU",
    "Registers",
    "CallStack",

    # Memory
    "Memory",
    "FONT_DATA",
    "FONT_OFFSET",

    # Display and input
    "Display",
    "DisplayState",
    "Keyboard",
    "QWERTY_TO_KEYPAD",
    "Frontend",
    "FrontendProtocol",
    "HeadlessFrontend",
    "PygameFrontend",

    # Timing and diagnostics
    "CycleScheduler",
    "DisassembledInstruction",
    "decode",
    "disassemble",
    "disassemble_block",
]
