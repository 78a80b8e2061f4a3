"""
Configuration Tests
===================

Tests for EmulatorConfig defaults, validation and environment overrides.
"""

import pytest

from chip8_vm.emulator import EmulatorConfig, KeyWaitMode, TimerMode


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all CHIP8_* variables from the environment."""
    for name in ("CHIP8_IPS", "CHIP8_TIMER_MODE", "CHIP8_KEY_WAIT", "CHIP8_SEED", "CHIP8_TRACE"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    """Test default values and validation."""

    def test_defaults(self):
        config = EmulatorConfig()
        assert config.instructions_per_second == 700
        assert config.timer_hz == 60
        assert config.timer_mode is TimerMode.REALTIME
        assert config.key_wait_mode is KeyWaitMode.ANY_CHANGE
        assert config.index_overflow_flag is True
        assert config.seed is None
        assert config.trace is False

    def test_frozen(self):
        config = EmulatorConfig()
        with pytest.raises(AttributeError):
            config.seed = 5

    def test_negative_ips_rejected(self):
        with pytest.raises(ValueError):
            EmulatorConfig(instructions_per_second=-1)

    def test_zero_timer_hz_rejected(self):
        with pytest.raises(ValueError):
            EmulatorConfig(timer_hz=0)

    def test_with_overrides_skips_none(self):
        config = EmulatorConfig(seed=3).with_overrides(seed=None, instructions_per_second=0)
        assert config.seed == 3
        assert config.instructions_per_second == 0


class TestFromEnv:
    """Test environment variable overrides."""

    def test_no_variables(self, clean_env):
        assert EmulatorConfig.from_env() == EmulatorConfig()

    def test_all_variables(self, clean_env):
        clean_env.setenv("CHIP8_IPS", "0")
        clean_env.setenv("CHIP8_TIMER_MODE", "per-cycle")
        clean_env.setenv("CHIP8_KEY_WAIT", "PRESS")
        clean_env.setenv("CHIP8_SEED", "42")
        clean_env.setenv("CHIP8_TRACE", "yes")
        config = EmulatorConfig.from_env()
        assert config.instructions_per_second == 0
        assert config.timer_mode is TimerMode.PER_CYCLE
        assert config.key_wait_mode is KeyWaitMode.PRESS
        assert config.seed == 42
        assert config.trace is True

    def test_invalid_values_ignored(self, clean_env):
        clean_env.setenv("CHIP8_IPS", "fast")
        clean_env.setenv("CHIP8_TIMER_MODE", "sometimes")
        clean_env.setenv("CHIP8_SEED", "abc")
        config = EmulatorConfig.from_env()
        assert config.instructions_per_second == 700
        assert config.timer_mode is TimerMode.REALTIME
        assert config.seed is None

    def test_negative_ips_ignored(self, clean_env):
        clean_env.setenv("CHIP8_IPS", "-5")
        assert EmulatorConfig.from_env().instructions_per_second == 700

    def test_base_config_kept(self, clean_env):
        clean_env.setenv("CHIP8_SEED", "7")
        config = EmulatorConfig.from_env(EmulatorConfig(instructions_per_second=0))
        assert config.instructions_per_second == 0
        assert config.seed == 7
