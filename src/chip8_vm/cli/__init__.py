"""
chip8-vm Command-Line Interface
===============================

- **chip8run**: Run a CHIP-8 program in a window or headless

The tool is a Click-based CLI application with help text and consistent
exit codes (see errors.py).
"""

__all__ = ["chip8run"]
