"""
Display Surface for CHIP-8 VM
=============================

Monochrome 64x32 framebuffer mutated only by XOR sprite composition.

Sprites are 8 pixels wide and 1-15 rows tall, read from memory one byte
per row with the most significant bit leftmost. Every pixel coordinate
wraps modulo the screen size, so a sprite drawn at x=60 covers columns
60-63 and then 0-3.

The framebuffer persists across cycles until CLS (00E0) or an engine
reset clears it. Presenting it on screen is the job of a frontend
(see frontend.py and window.py).
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional


@dataclass
class DisplayState:
    """
    Display bookkeeping for snapshots and frontends.

    Attributes:
        draw_count: Number of DRW operations since the last reset
        dirty: True when the framebuffer changed since it was last presented
    """
    draw_count: int = 0
    dirty: bool = True


class Display:
    """
    64x32 XOR-composited pixel surface.

    Example:
        >>> display = Display()
        >>> display.draw_sprite(0, 0, b"\\xff")
        False
        >>> display.get_pixel(7, 0)
        True
        >>> display.draw_sprite(0, 0, b"\\xff")  # same sprite erases it
        True
    """

    WIDTH = 64
    HEIGHT = 32

    def __init__(self):
        """Create a blank display."""
        self._state = DisplayState()
        self._pixels = bytearray(self.WIDTH * self.HEIGHT)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def width(self) -> int:
        return self.WIDTH

    @property
    def height(self) -> int:
        return self.HEIGHT

    @property
    def needs_refresh(self) -> bool:
        """True if the framebuffer changed since the last mark_presented()."""
        return self._state.dirty

    @property
    def draw_count(self) -> int:
        return self._state.draw_count

    def mark_presented(self) -> None:
        """Called by frontends after they have shown the current frame."""
        self._state.dirty = False

    # =========================================================================
    # Surface Operations
    # =========================================================================

    def clear(self) -> None:
        """Turn every pixel off."""
        self._pixels = bytearray(self.WIDTH * self.HEIGHT)
        self._state.dirty = True

    def reset(self) -> None:
        """Clear the surface and reset bookkeeping."""
        self.clear()
        self._state.draw_count = 0

    def draw_sprite(self, x: int, y: int, sprite: Iterable[int]) -> bool:
        """
        XOR a sprite onto the surface.

        Args:
            x: Left column (wrapped modulo WIDTH)
            y: Top row (wrapped modulo HEIGHT)
            sprite: One byte per row, MSB is the leftmost pixel

        Returns:
            True if any lit pixel was turned off (collision)
        """
        collision = False

        for row, bits in enumerate(sprite):
            py = (y + row) % self.HEIGHT
            for col in range(8):
                if not (bits >> (7 - col)) & 1:
                    continue
                px = (x + col) % self.WIDTH
                index = py * self.WIDTH + px
                if self._pixels[index]:
                    collision = True
                self._pixels[index] ^= 1

        self._state.draw_count += 1
        self._state.dirty = True
        return collision

    def get_pixel(self, x: int, y: int) -> bool:
        """Return whether the pixel at (x, y) is lit (coordinates wrap)."""
        return bool(self._pixels[(y % self.HEIGHT) * self.WIDTH + (x % self.WIDTH)])

    def get_pixel_buffer(self) -> bytes:
        """
        Get raw pixel buffer data.

        Returns:
            WIDTH * HEIGHT bytes, row-major, 1 for lit and 0 for dark
        """
        return bytes(self._pixels)

    def lit_pixel_count(self) -> int:
        return sum(self._pixels)

    # =========================================================================
    # Text and Image Rendering
    # =========================================================================

    def get_text_grid(self, on: str = "#", off: str = ".") -> List[str]:
        """
        Render the surface as text, one string per row.

        Args:
            on: Character for lit pixels
            off: Character for dark pixels
        """
        lines = []
        for y in range(self.HEIGHT):
            row = self._pixels[y * self.WIDTH:(y + 1) * self.WIDTH]
            lines.append("".join(on if p else off for p in row))
        return lines

    def get_text(self, on: str = "#", off: str = ".") -> str:
        """Render the surface as a single newline-separated string."""
        return "\n".join(self.get_text_grid(on, off))

    def render_image(
        self,
        scale: int = 8,
        ink_color: tuple = (255, 255, 255),
        paper_color: tuple = (0, 0, 0),
    ) -> Optional[bytes]:
        """
        Render display as PNG image (requires PIL).

        Args:
            scale: Size in image pixels of one display pixel
            ink_color: RGB tuple for lit pixels
            paper_color: RGB tuple for dark pixels

        Returns:
            PNG image bytes, or None if PIL not available
        """
        try:
            from PIL import Image, ImageDraw
            import io
        except ImportError:
            return None

        img = Image.new('RGB', (self.WIDTH * scale, self.HEIGHT * scale), color=paper_color)
        draw = ImageDraw.Draw(img)

        for y in range(self.HEIGHT):
            for x in range(self.WIDTH):
                if self._pixels[y * self.WIDTH + x]:
                    draw.rectangle(
                        [x * scale, y * scale,
                         x * scale + scale - 1, y * scale + scale - 1],
                        fill=ink_color
                    )

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        return buffer.getvalue()

    # =========================================================================
    # Snapshot Support
    # =========================================================================

    def get_snapshot_data(self) -> List[int]:
        """
        Get display state for snapshot.

        Pixels are packed eight per byte, MSB first, row-major.
        """
        result = []
        for i in range(0, len(self._pixels), 8):
            byte = 0
            for bit in self._pixels[i:i + 8]:
                byte = (byte << 1) | bit
            result.append(byte)
        return result

    def apply_snapshot_data(self, data: List[int], offset: int = 0) -> int:
        """Restore display state from snapshot. Returns bytes consumed."""
        size = (self.WIDTH * self.HEIGHT) // 8
        if len(data) - offset < size:
            raise ValueError("Snapshot truncated in display section")
        pixels = bytearray(self.WIDTH * self.HEIGHT)
        for i in range(size):
            byte = data[offset + i]
            for bit in range(8):
                pixels[i * 8 + bit] = (byte >> (7 - bit)) & 1
        self._pixels = pixels
        self._state.dirty = True
        return size
