"""
CHIP-8 VM Error Hierarchy
=========================

This module defines the exception hierarchy for the whole package.
All exceptions inherit from Chip8Error, allowing callers to catch every
VM-related error with a single except clause if desired.

Exception Hierarchy
-------------------
Chip8Error (base)
├── LoadError (program image handling)
│   └── ProgramTooLargeError - ROM does not fit between $200 and $FFF
├── MemoryAccessError (memory subsystem)
│   └── AddressOutOfRangeError - read/write outside $000-$FFE
├── StackError (call stack discipline)
│   ├── StackOverflowError - CALL with all 16 slots in use
│   └── StackUnderflowError - RET with an empty stack
├── DecodeError (instruction decoding)
│   └── IllegalOpcodeError - word outside the instruction table
└── QuitRequested - the frontend asked to stop while the VM was blocked

Design Philosophy
-----------------
Every runtime error is terminal for the running program. Nothing here is
retried: the engine catches the exception, halts, and reports the faulting
address and opcode so the host can exit with a non-zero status.

Error messages follow this format:
    error: description at $ADDR (opcode $XXXX)
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class Chip8Error(Exception):
    """
    Base exception for all CHIP-8 VM errors.

    Carries the optional address and opcode of the instruction that was
    executing when the error occurred, so callers can produce a structured
    diagnostic:

        try:
            cpu.step()
        except Chip8Error as e:
            print(f"Fault at ${e.address:03X}: {e}")
    """

    def __init__(
        self,
        message: str,
        address: Optional[int] = None,
        opcode: Optional[int] = None,
    ):
        self.message = message
        self.address = address
        self.opcode = opcode
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the message with address/opcode context when known.

        Example output:
            illegal opcode at $0204 (opcode $FFFF)
        """
        text = self.message
        if self.address is not None:
            text += f" at ${self.address:04X}"
        if self.opcode is not None:
            text += f" (opcode ${self.opcode:04X})"
        return text

    def with_context(self, address: int, opcode: Optional[int]) -> "Chip8Error":
        """
        Attach instruction context to an error raised deeper in the VM.

        Memory and stack errors are raised by components that do not know
        which instruction was running; the CPU fills in the blanks.
        """
        if self.address is None:
            self.address = address
        if self.opcode is None:
            self.opcode = opcode
        self.args = (self._format_message(),)
        return self


# =============================================================================
# Program Loading
# =============================================================================

class LoadError(Chip8Error):
    """Base exception for program image loading errors."""
    pass


class ProgramTooLargeError(LoadError):
    """
    ROM image does not fit in program memory.

    Programs are loaded at $200 and must end before $FFF, so at most
    $DFF (3583) bytes are accepted.
    """

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"program too large: {size} bytes (limit {limit})")


# =============================================================================
# Memory Access
# =============================================================================

class MemoryAccessError(Chip8Error):
    """Base exception for memory subsystem errors."""
    pass


class AddressOutOfRangeError(MemoryAccessError):
    """
    Memory access outside the addressable range.

    The legacy interpreter wrapped addresses silently; here any access
    outside [$000, $FFF) is fatal.
    """

    def __init__(self, target: int, opcode: Optional[int] = None):
        self.target = target
        super().__init__(f"memory access out of range: ${target:04X}", opcode=opcode)


# =============================================================================
# Call Stack
# =============================================================================

class StackError(Chip8Error):
    """Base exception for call stack faults."""
    pass


class StackOverflowError(StackError):
    """CALL executed with all stack slots in use."""

    def __init__(self, depth: int):
        self.depth = depth
        super().__init__(f"stack overflow: depth {depth} exceeded")


class StackUnderflowError(StackError):
    """RET executed with an empty stack."""

    def __init__(self):
        super().__init__("stack underflow: return with empty stack")


# =============================================================================
# Instruction Decoding
# =============================================================================

class DecodeError(Chip8Error):
    """Base exception for instruction decoding errors."""
    pass


class IllegalOpcodeError(DecodeError):
    """
    Fetched word is not a known instruction.

    Attributes:
        address: Location of the faulting instruction
        opcode: The raw 16-bit word
    """

    def __init__(self, address: int, opcode: int):
        super().__init__("illegal opcode", address=address, opcode=opcode)


# =============================================================================
# Frontend Control
# =============================================================================

class QuitRequested(Chip8Error):
    """
    The frontend requested termination.

    Raised out of a blocking key wait (FX0A) when the window is closed or a
    headless input script runs dry, so the engine can halt cleanly.
    """

    def __init__(self, message: str = "quit requested"):
        super().__init__(message)
