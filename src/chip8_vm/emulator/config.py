"""
CHIP-8 VM - Configuration
=========================

Execution settings for the emulator. Configuration can come from:
- Default values (defined here)
- Environment variables (EmulatorConfig.from_env)
- Command-line options (chip8run), which override both

Timing values:
- instructions_per_second: 700 is a common compromise between the COSMAC VIP
  speed and what most games expect; 0 disables pacing
- timer_hz: delay and sound timers tick at 60 Hz on real hardware
"""

import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class TimerMode(Enum):
    """
    How the delay and sound timers are advanced.

    REALTIME decrements once per elapsed 1/timer_hz seconds of a monotonic
    clock, independent of instruction speed. PER_CYCLE decrements once per
    executed instruction, as the legacy interpreter did.
    """
    REALTIME = "realtime"
    PER_CYCLE = "per-cycle"


class KeyWaitMode(Enum):
    """
    What satisfies the blocking key wait (FX0A).

    ANY_CHANGE accepts a press or a release of any key (legacy behaviour).
    PRESS only accepts a key going from up to down.
    """
    ANY_CHANGE = "any"
    PRESS = "press"


@dataclass(frozen=True)
class EmulatorConfig:
    """
    Configuration for emulator initialization.

    Attributes:
        instructions_per_second: Pacing target (0 = run unthrottled)
        timer_hz: Timer tick rate used in REALTIME mode
        timer_mode: REALTIME (default) or PER_CYCLE (legacy)
        key_wait_mode: FX0A semantics (default ANY_CHANGE)
        index_overflow_flag: FX1E sets VF when I + Vx passes $FFF; when
            False, FX1E leaves VF untouched
        seed: Seed for the CXKK random source (None = nondeterministic)
        trace: Log every executed instruction at DEBUG level

    Example:
        >>> config = EmulatorConfig(instructions_per_second=0, seed=1)
        >>> config = EmulatorConfig(timer_mode=TimerMode.PER_CYCLE)
    """
    instructions_per_second: int = 700
    timer_hz: int = 60
    timer_mode: TimerMode = TimerMode.REALTIME
    key_wait_mode: KeyWaitMode = KeyWaitMode.ANY_CHANGE
    index_overflow_flag: bool = True
    seed: Optional[int] = None
    trace: bool = False

    def __post_init__(self):
        if self.instructions_per_second < 0:
            raise ValueError(
                f"instructions_per_second must be >= 0, got {self.instructions_per_second}"
            )
        if self.timer_hz <= 0:
            raise ValueError(f"timer_hz must be > 0, got {self.timer_hz}")

    # ═══════════════════════════════════════════════════════════════════════════
    # FACTORY METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    @classmethod
    def from_env(cls, base: Optional["EmulatorConfig"] = None) -> "EmulatorConfig":
        """
        Create EmulatorConfig from environment variables.

        Environment variables (all optional):
            CHIP8_IPS: Instructions per second (integer, 0 = unthrottled)
            CHIP8_TIMER_MODE: "realtime" or "per-cycle"
            CHIP8_KEY_WAIT: "any" or "press"
            CHIP8_SEED: Random seed (integer)
            CHIP8_TRACE: "1"/"true"/"yes" to enable instruction tracing

        Malformed values are ignored and the default is kept.

        Args:
            base: Configuration to start from (default: EmulatorConfig())

        Returns:
            EmulatorConfig with values from environment variables
        """
        config = base or cls()
        changes = {}

        if ips := os.environ.get("CHIP8_IPS"):
            try:
                value = int(ips)
                if value >= 0:
                    changes["instructions_per_second"] = value
            except ValueError:
                logger.warning(f"Ignoring invalid CHIP8_IPS={ips!r}")

        if timer_mode := os.environ.get("CHIP8_TIMER_MODE"):
            try:
                changes["timer_mode"] = TimerMode(timer_mode.lower())
            except ValueError:
                logger.warning(f"Ignoring invalid CHIP8_TIMER_MODE={timer_mode!r}")

        if key_wait := os.environ.get("CHIP8_KEY_WAIT"):
            try:
                changes["key_wait_mode"] = KeyWaitMode(key_wait.lower())
            except ValueError:
                logger.warning(f"Ignoring invalid CHIP8_KEY_WAIT={key_wait!r}")

        if seed := os.environ.get("CHIP8_SEED"):
            try:
                changes["seed"] = int(seed)
            except ValueError:
                logger.warning(f"Ignoring invalid CHIP8_SEED={seed!r}")

        if trace := os.environ.get("CHIP8_TRACE"):
            changes["trace"] = trace.lower() in ("1", "true", "yes", "on")

        return replace(config, **changes)

    def with_overrides(self, **overrides) -> "EmulatorConfig":
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
