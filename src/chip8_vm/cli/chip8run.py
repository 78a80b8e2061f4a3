"""
chip8run - CHIP-8 Interpreter Command-Line Interface
====================================================

Runs a CHIP-8 program image in a pygame window, or headless for scripted
checks and screenshots.

Usage Examples
--------------
Play a game in a window:
    $ chip8run pong.ch8

Bigger window, faster CPU:
    $ chip8run pong.ch8 --scale 16 --ips 1000

Headless run with a screenshot of the final frame:
    $ chip8run ibm_logo.ch8 --headless --max-cycles 200 --screenshot logo.png

Trace every instruction:
    $ chip8run test.ch8 --headless --max-cycles 50 --trace

Environment variables (CHIP8_IPS, CHIP8_TIMER_MODE, CHIP8_KEY_WAIT,
CHIP8_SEED, CHIP8_TRACE) provide defaults; options override them.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from chip8_vm import __version__
from chip8_vm.cli.errors import ExitCode, exit_code_for, handle_cli_exception
from chip8_vm.emulator import (
    Emulator,
    EmulatorConfig,
    HeadlessFrontend,
    KeyWaitMode,
    PygameFrontend,
    TimerMode,
)


# Cycle limit for headless runs without --max-cycles
HEADLESS_MAX_CYCLES = 1_000_000


def setup_logging(verbose: bool, trace: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose or trace else logging.ERROR
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "rom",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--ips",
    type=click.IntRange(min=0),
    default=None,
    help="Instructions per second (default: 700; 0 = unthrottled; "
         "headless runs default to unthrottled)",
)
@click.option(
    "--timer-mode",
    type=click.Choice([mode.value for mode in TimerMode]),
    default=None,
    help="Advance DT/ST in real time at 60 Hz or once per instruction",
)
@click.option(
    "--key-wait",
    type=click.Choice([mode.value for mode in KeyWaitMode]),
    default=None,
    help="What completes FX0A: any key change or only a press",
)
@click.option(
    "--no-index-flag",
    is_flag=True,
    help="Leave VF untouched in FX1E (ADD I, Vx)",
)
@click.option(
    "--seed",
    type=int,
    default=None,
    help="Seed for the RND instruction (default: random)",
)
@click.option(
    "--scale",
    type=click.IntRange(min=1),
    default=10,
    show_default=True,
    help="Window pixel scale factor",
)
@click.option(
    "--headless",
    is_flag=True,
    help="Run without a window and print the final screen",
)
@click.option(
    "--max-cycles",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many instructions (headless default: "
         f"{HEADLESS_MAX_CYCLES})",
)
@click.option(
    "--screenshot",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the final frame as a PNG image",
)
@click.option(
    "--trace",
    is_flag=True,
    help="Log every executed instruction",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="chip8run")
@click.pass_context
def main(
    ctx: click.Context,
    rom: Optional[Path],
    ips: Optional[int],
    timer_mode: Optional[str],
    key_wait: Optional[str],
    no_index_flag: bool,
    seed: Optional[int],
    scale: int,
    headless: bool,
    max_cycles: Optional[int],
    screenshot: Optional[Path],
    trace: bool,
    verbose: bool,
) -> None:
    """
    Run a CHIP-8 program.

    ROM is a raw CHIP-8 program image, loaded at $200.

    Keypad keys map onto the left of a QWERTY keyboard:

    \b
        1 2 3 4        1 2 3 C
        Q W E R   ->   4 5 6 D
        A S D F        7 8 9 E
        Z X C V        A 0 B F

    Press Escape or close the window to quit.
    """
    if rom is None:
        click.echo(ctx.get_usage())
        return

    setup_logging(verbose, trace)

    if headless and ips is None:
        ips = 0
    if headless and max_cycles is None:
        max_cycles = HEADLESS_MAX_CYCLES

    config = EmulatorConfig.from_env().with_overrides(
        instructions_per_second=ips,
        timer_mode=TimerMode(timer_mode) if timer_mode else None,
        key_wait_mode=KeyWaitMode(key_wait) if key_wait else None,
        index_overflow_flag=False if no_index_flag else None,
        seed=seed,
        trace=True if trace else None,
    )

    if headless:
        frontend = HeadlessFrontend(key_wait_mode=config.key_wait_mode)
    else:
        frontend = PygameFrontend(scale=scale, key_wait_mode=config.key_wait_mode)

    emu = Emulator(config, frontend=frontend)

    try:
        emu.load_rom(rom)
        if verbose:
            click.echo(f"Loaded: {rom} ({emu.memory.program_size} bytes)", err=True)

        try:
            frontend.init()
        except ImportError as e:
            click.echo(f"Error: pygame not available: {e}", err=True)
            click.echo("Install with: pip install chip8-vm[window], or use --headless", err=True)
            sys.exit(ExitCode.INVALID_ARGS)

        event = emu.run(max_cycles)
    except Exception as e:
        emu.close()
        handle_cli_exception(e, verbose, error_type="Load")

    emu.close()

    if headless:
        click.echo(emu.display_text)

    if screenshot:
        png = emu.render_display()
        if png is None:
            click.echo("Error: Pillow is required for --screenshot", err=True)
            sys.exit(ExitCode.INTERNAL_ERROR)
        screenshot.write_bytes(png)
        if verbose:
            click.echo(f"Screenshot written to: {screenshot}", err=True)

    if verbose:
        click.echo(f"Stopped: {event} ({emu.total_cycles} cycles)", err=True)
        click.echo(emu.cpu.dump_registers(), err=True)

    if event.is_fault:
        click.echo(f"Error: {event}", err=True)

    sys.exit(exit_code_for(event))


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
