"""
Call Stack for CHIP-8 VM
========================

Fixed-depth return-address stack used by CALL (2NNN) and RET (00EE).

The stack pointer is the index of the next free slot and always satisfies
0 <= sp <= DEPTH. Pushing onto a full stack or popping an empty one raises
instead of corrupting neighbouring state.
"""

from typing import List

from ..errors import StackOverflowError, StackUnderflowError


class CallStack:
    """
    Sixteen-slot stack of 16-bit return addresses.

    Example:
        >>> stack = CallStack()
        >>> stack.push(0x202)
        >>> stack.sp
        1
        >>> hex(stack.pop())
        '0x202'
    """

    DEPTH = 16

    def __init__(self):
        self._slots: List[int] = [0] * self.DEPTH
        self._sp = 0

    @property
    def sp(self) -> int:
        """Index of the next free slot (0-16)."""
        return self._sp

    @property
    def slots(self) -> List[int]:
        """Copy of the raw slot contents (including stale entries)."""
        return list(self._slots)

    def __len__(self) -> int:
        return self._sp

    def push(self, address: int) -> None:
        """
        Push a return address.

        Raises:
            StackOverflowError: If all slots are in use
        """
        if self._sp >= self.DEPTH:
            raise StackOverflowError(self.DEPTH)
        self._slots[self._sp] = address & 0xFFFF
        self._sp += 1

    def pop(self) -> int:
        """
        Pop the most recent return address.

        Raises:
            StackUnderflowError: If the stack is empty
        """
        if self._sp == 0:
            raise StackUnderflowError()
        self._sp -= 1
        return self._slots[self._sp]

    def peek(self) -> int:
        """Return the top address without popping it."""
        if self._sp == 0:
            raise StackUnderflowError()
        return self._slots[self._sp - 1]

    def reset(self) -> None:
        """Empty the stack and zero all slots."""
        self._slots = [0] * self.DEPTH
        self._sp = 0

    # ========================================
    # Snapshot Support
    # ========================================

    def get_snapshot_data(self) -> List[int]:
        """Get stack state as bytes: [sp, hi0, lo0, ..., hi15, lo15]."""
        result = [self._sp]
        for slot in self._slots:
            result.extend(((slot >> 8) & 0xFF, slot & 0xFF))
        return result

    def apply_snapshot_data(self, data: List[int], offset: int = 0) -> int:
        """Restore stack state. Returns bytes consumed."""
        sp = data[offset]
        if sp > self.DEPTH:
            raise ValueError(f"Invalid stack pointer in snapshot: {sp}")
        self._sp = sp
        pos = offset + 1
        for i in range(self.DEPTH):
            self._slots[i] = (data[pos] << 8) | data[pos + 1]
            pos += 2
        return pos - offset
