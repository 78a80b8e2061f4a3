"""
Pygame Window Frontend
======================

Shows the 64x32 framebuffer in a scaled pygame window and feeds host key
events into the keypad using the QWERTY layout from keyboard.py.

    Escape or closing the window requests quit.

pygame is an optional dependency (`pip install chip8-vm[window]`) and is
imported only when the window is opened.
"""

from typing import Optional, Tuple

from .config import KeyWaitMode
from .display import Display
from .frontend import Frontend
from .keyboard import QWERTY_TO_KEYPAD, Keyboard

FRAME_RATE = 60


class PygameFrontend(Frontend):
    """
    Scaled pygame window.

    The framebuffer is redrawn only when it changed, and at most
    FRAME_RATE times per second; input is pumped on every poll.

    Example:
        >>> frontend = PygameFrontend(scale=12)
        >>> emu = Emulator(config, frontend=frontend)
        >>> emu.load_rom("pong.ch8")
        >>> emu.run()
        >>> emu.close()
    """

    def __init__(
        self,
        scale: int = 10,
        display: Optional[Display] = None,
        keyboard: Optional[Keyboard] = None,
        key_wait_mode: KeyWaitMode = KeyWaitMode.ANY_CHANGE,
        title: str = "CHIP-8",
        ink_color: Tuple[int, int, int] = (255, 255, 255),
        paper_color: Tuple[int, int, int] = (0, 0, 0),
    ):
        super().__init__(display, keyboard, key_wait_mode)
        if scale < 1:
            raise ValueError(f"scale must be >= 1, got {scale}")
        self.scale = scale
        self.title = title
        self.ink_color = ink_color
        self.paper_color = paper_color
        self._pygame = None
        self._screen = None
        self._clock = None
        self._last_frame_ms = 0

    def init(self) -> None:
        """
        Open the window.

        Raises:
            ImportError: If pygame is not installed
        """
        if self._pygame is not None:
            return

        import pygame

        pygame.init()
        pygame.display.set_caption(self.title)
        self._screen = pygame.display.set_mode(
            (self.display.width * self.scale, self.display.height * self.scale)
        )
        self._clock = pygame.time.Clock()
        self._pygame = pygame
        self._render()

    def close(self) -> None:
        if self._pygame is not None:
            self._pygame.quit()
            self._pygame = None
            self._screen = None

    def present_and_poll(self) -> bool:
        pygame = self._pygame
        if pygame is None:
            self.init()
            pygame = self._pygame

        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return True
            if event.type in (pygame.KEYDOWN, pygame.KEYUP):
                if event.key == pygame.K_ESCAPE:
                    return True
                name = pygame.key.name(event.key).upper()
                if name in QWERTY_TO_KEYPAD:
                    self.keyboard.set_key(name, event.type == pygame.KEYDOWN)

        now = pygame.time.get_ticks()
        if self.display.needs_refresh and now - self._last_frame_ms >= 1000 // FRAME_RATE:
            self._render()
            self._last_frame_ms = now

        # Nothing else advances while FX0A blocks
        if self._waiting_for_key:
            self._clock.tick(FRAME_RATE)

        return False

    def _render(self) -> None:
        pygame = self._pygame
        scale = self.scale
        self._screen.fill(self.paper_color)

        pixels = self.display.get_pixel_buffer()
        width = self.display.width
        for index, lit in enumerate(pixels):
            if lit:
                y, x = divmod(index, width)
                pygame.draw.rect(
                    self._screen, self.ink_color,
                    (x * scale, y * scale, scale, scale))

        pygame.display.flip()
        self.display.mark_presented()
