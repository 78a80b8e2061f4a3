"""
Frontends for CHIP-8 VM
=======================

A frontend is the external collaborator that presents the display and
supplies keypad input. The CPU only sees the FrontendProtocol below; it
never talks to a window system directly.

Two implementations ship with the package:
- HeadlessFrontend (here): no window, scripted key events, used by tests
  and by `chip8run --headless`
- PygameFrontend (window.py): a scaled pygame window
"""

from collections import deque
from typing import Deque, Iterable, Optional, Protocol, Sequence, Tuple

from ..errors import QuitRequested
from .config import KeyWaitMode
from .display import Display
from .keyboard import KEY_COUNT, KeyId, Keyboard


class FrontendProtocol(Protocol):
    """
    Protocol defining the display and input interface.

    The CPU interacts with the outside world only through this interface.
    """
    def init(self) -> None:
        """Prepare the output device."""
        ...

    def clear(self) -> None:
        """Clear the display surface."""
        ...

    def draw_sprite(self, x: int, y: int, sprite: bytes) -> bool:
        """XOR a sprite onto the surface. Returns collision."""
        ...

    def present_and_poll(self) -> bool:
        """Show the current frame and process input. True means quit."""
        ...

    def is_down(self, key: int) -> bool:
        """Check if keypad key is held."""
        ...

    def wait_for_change(self, prior: Sequence[bool]) -> int:
        """Block until a key differs from `prior`. Returns its index."""
        ...


class Frontend:
    """
    Base frontend backed by a Display framebuffer and a Keyboard state.

    Subclasses implement present_and_poll(); surface operations, key
    queries and the blocking key wait are shared.

    Attributes:
        display: The framebuffer shown by this frontend
        keyboard: The keypad state updated by this frontend
        key_wait_mode: What satisfies wait_for_change()
    """

    def __init__(
        self,
        display: Optional[Display] = None,
        keyboard: Optional[Keyboard] = None,
        key_wait_mode: KeyWaitMode = KeyWaitMode.ANY_CHANGE,
    ):
        self.display = display or Display()
        self.keyboard = keyboard or Keyboard()
        self.key_wait_mode = key_wait_mode
        self._waiting_for_key = False

    def init(self) -> None:
        pass

    def close(self) -> None:
        pass

    def clear(self) -> None:
        self.display.clear()

    def draw_sprite(self, x: int, y: int, sprite: bytes) -> bool:
        return self.display.draw_sprite(x, y, sprite)

    def is_down(self, key: int) -> bool:
        return self.keyboard.is_down(key)

    def present_and_poll(self) -> bool:
        raise NotImplementedError

    def wait_for_change(self, prior: Sequence[bool]) -> int:
        """
        Block until a key's state differs from the snapshot.

        Keeps presenting frames and polling input while waiting. In PRESS
        mode a release only refreshes the baseline, so releasing and
        pressing the same key again still completes the wait.

        Args:
            prior: 16 key states captured before the wait

        Returns:
            Lowest index of a key that satisfied the wait

        Raises:
            QuitRequested: If the frontend asks to quit while waiting
        """
        baseline = list(prior)
        self._waiting_for_key = True
        try:
            while True:
                for key in range(KEY_COUNT):
                    now = self.keyboard.is_down(key)
                    if now == baseline[key]:
                        continue
                    if self.key_wait_mode is KeyWaitMode.ANY_CHANGE or now:
                        return key
                    baseline[key] = now
                if self.present_and_poll():
                    raise QuitRequested("quit requested during key wait")
        finally:
            self._waiting_for_key = False


class HeadlessFrontend(Frontend):
    """
    Frontend without a window.

    Input comes from a script of key events applied one per poll, so a
    test can describe exactly which frame a key goes down on. Frames are
    counted instead of drawn.

    If the script runs dry while the program is blocked in FX0A there is
    no way for the wait to finish, so the frontend reports quit.

    Example:
        >>> frontend = HeadlessFrontend()
        >>> frontend.queue_key(0x5, down=True)
        >>> frontend.present_and_poll()
        False
        >>> frontend.is_down(0x5)
        True
    """

    def __init__(
        self,
        display: Optional[Display] = None,
        keyboard: Optional[Keyboard] = None,
        key_wait_mode: KeyWaitMode = KeyWaitMode.ANY_CHANGE,
        events: Iterable[Tuple[KeyId, bool]] = (),
    ):
        super().__init__(display, keyboard, key_wait_mode)
        # None entries are idle frames
        self._events: Deque[Optional[Tuple[KeyId, bool]]] = deque(events)
        self._quit = False
        self.frames = 0

    def queue_key(self, key: KeyId, down: bool = True) -> None:
        """Append a key press (down=True) or release to the script."""
        Keyboard.resolve(key)
        self._events.append((key, down))

    def queue_tap(self, key: KeyId, hold_frames: int = 1) -> None:
        """Append a press, `hold_frames` idle polls, then a release."""
        self.queue_key(key, True)
        self.queue_idle(hold_frames)
        self.queue_key(key, False)

    def queue_idle(self, frames: int = 1) -> None:
        """Append polls that change nothing."""
        self._events.extend([None] * frames)

    @property
    def pending_events(self) -> int:
        return len(self._events)

    def quit(self) -> None:
        """Request termination at the next poll."""
        self._quit = True

    def present_and_poll(self) -> bool:
        self.frames += 1
        self.display.mark_presented()

        if self._quit:
            return True

        if self._events:
            event = self._events.popleft()
            if event is not None:
                key, down = event
                self.keyboard.set_key(key, down)
        elif self._waiting_for_key:
            self._quit = True
            return True

        return False
