"""
Hex Keypad for CHIP-8 VM
========================

The CHIP-8 keypad has 16 keys labelled 0-F:

    1 2 3 C
    4 5 6 D
    7 8 9 E
    A 0 B F

Host keyboards conventionally map it onto the left block of a QWERTY
layout:

    1 2 3 4
    Q W E R
    A S D F
    Z X C V

This module only tracks key state; frontends translate host events into
key_down()/key_up() calls.
"""

from typing import Dict, Tuple, Union


# =============================================================================
# KEY NAME TO INDEX MAPPING
# =============================================================================

# QWERTY host key -> keypad index
QWERTY_TO_KEYPAD: Dict[str, int] = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "Q": 0x4, "W": 0x5, "E": 0x6, "R": 0xD,
    "A": 0x7, "S": 0x8, "D": 0x9, "F": 0xE,
    "Z": 0xA, "X": 0x0, "C": 0xB, "V": 0xF,
}

KEY_COUNT = 16

KeyId = Union[int, str]


class Keyboard:
    """
    State of the 16-key hex keypad.

    Keys may be addressed by index (0-15), by hex digit name ("0"-"F",
    prefixed "K" to avoid clashing with the QWERTY names, e.g. "KA"), or
    by QWERTY host key ("Z" presses keypad key A).

    Example:
        >>> kb = Keyboard()
        >>> kb.key_down(0xA)
        >>> kb.is_down(0xA)
        True
        >>> kb.key_up("Z")   # Z maps to keypad key A
        >>> kb.is_down(0xA)
        False
    """

    def __init__(self):
        self._keys = [False] * KEY_COUNT

    @staticmethod
    def resolve(key: KeyId) -> int:
        """
        Translate a key identifier into a keypad index.

        Raises:
            ValueError: If the key is unknown or out of range
        """
        if isinstance(key, int):
            if not 0 <= key < KEY_COUNT:
                raise ValueError(f"Keypad index must be 0-15, got {key}")
            return key

        name = key.upper()
        if name in QWERTY_TO_KEYPAD:
            return QWERTY_TO_KEYPAD[name]
        if len(name) == 2 and name[0] == "K":
            try:
                return int(name[1], 16)
            except ValueError:
                pass
        raise ValueError(f"Unknown key '{key}'")

    def key_down(self, key: KeyId) -> None:
        """Press a key (stays down until key_up)."""
        self._keys[self.resolve(key)] = True

    def key_up(self, key: KeyId) -> None:
        """Release a key."""
        self._keys[self.resolve(key)] = False

    def set_key(self, key: KeyId, down: bool) -> None:
        self._keys[self.resolve(key)] = down

    def release_all(self) -> None:
        self._keys = [False] * KEY_COUNT

    def is_down(self, key: int) -> bool:
        """
        Check a keypad key.

        Indices outside 0-15 read as released, matching a keypad that
        simply has no such key.
        """
        if not 0 <= key < KEY_COUNT:
            return False
        return self._keys[key]

    def snapshot(self) -> Tuple[bool, ...]:
        """Return an immutable copy of all 16 key states."""
        return tuple(self._keys)

    @property
    def pressed_keys(self) -> Tuple[int, ...]:
        return tuple(i for i, down in enumerate(self._keys) if down)

    def __repr__(self) -> str:
        pressed = ",".join(f"{k:X}" for k in self.pressed_keys) or "none"
        return f"Keyboard(pressed={pressed})"
