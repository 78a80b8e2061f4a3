"""
CLI Error Handling
==================

Consistent error reporting and exit codes for the command-line tool.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click

from chip8_vm.emulator import HaltEvent
from chip8_vm.errors import Chip8Error


class ExitCode(IntEnum):
    """Standard exit codes for chip8run."""
    SUCCESS = 0
    PROGRAM_ERROR = 1    # Illegal opcode, memory or stack fault, oversized ROM
    INVALID_ARGS = 2     # Invalid arguments or missing files
    INTERNAL_ERROR = 3   # Unexpected internal error


def exit_code_for(event: HaltEvent) -> ExitCode:
    """
    Map a halt to a process exit code.

    Quitting, reaching the cycle limit and jumping to $000 all count as
    success; only program faults fail.
    """
    return ExitCode.PROGRAM_ERROR if event.is_fault else ExitCode.SUCCESS


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Report an exception and exit with the matching exit code.

    Args:
        error: The exception that was raised
        verbose: If True, print full traceback for internal errors
        error_type: Optional prefix for the error message (e.g., "Load")

    Raises:
        SystemExit: Always exits with an appropriate exit code
    """
    if isinstance(error, Chip8Error):
        prefix = f"{error_type} error: " if error_type else "Error: "
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.PROGRAM_ERROR)

    elif isinstance(error, click.BadParameter):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, (FileNotFoundError, IsADirectoryError, PermissionError)):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
