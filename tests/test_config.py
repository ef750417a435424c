"""Tests for engine configuration."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from segengine.core.config import EngineConfig


class TestEngineConfig:
    """EngineConfig tests."""

    def test_defaults(self) -> None:
        """Test default settings."""
        config = EngineConfig()
        assert config.cache_results
        assert config.cache_ttl_seconds == 300.0
        assert config.segments_table == "segments"
        assert not config.fail_on_load_error

    def test_frozen(self) -> None:
        """Test the config is immutable."""
        config = EngineConfig()
        with pytest.raises(PydanticValidationError):
            config.cache_results = False

    def test_invalid_ttl(self) -> None:
        """Test a non-positive TTL is rejected."""
        with pytest.raises(PydanticValidationError):
            EngineConfig(cache_ttl_seconds=0)

    def test_from_env(self, monkeypatch) -> None:
        """Test reading settings from the environment."""
        monkeypatch.setenv("SEGENGINE_CACHE_RESULTS", "false")
        monkeypatch.setenv("SEGENGINE_CACHE_TTL_SECONDS", "30")
        monkeypatch.setenv("SEGENGINE_USERS_TABLE", "profiles")

        config = EngineConfig.from_env()
        assert not config.cache_results
        assert config.cache_ttl_seconds == 30.0
        assert config.users_table == "profiles"

    def test_ttl_disabled_from_env(self, monkeypatch) -> None:
        """Test an explicit off disables the TTL."""
        monkeypatch.setenv("SEGENGINE_CACHE_TTL_SECONDS", "off")
        assert EngineConfig.from_env().cache_ttl_seconds is None

    @pytest.mark.parametrize("variable", ["CACHE_TTL_SECONDS", "PERSISTENCE_TIMEOUT_SECONDS"])
    def test_zero_seconds_rejected(self, monkeypatch, variable) -> None:
        """Test a zero TTL or timeout is rejected rather than treated as disabled."""
        monkeypatch.setenv(f"SEGENGINE_{variable}", "0")
        with pytest.raises(PydanticValidationError):
            EngineConfig.from_env()

    def test_timeout_disabled_from_env(self, monkeypatch) -> None:
        """Test an explicit none disables the persistence timeout."""
        monkeypatch.setenv("SEGENGINE_PERSISTENCE_TIMEOUT_SECONDS", "none")
        assert EngineConfig.from_env().persistence_timeout_seconds is None

    def test_overrides_win(self, monkeypatch) -> None:
        """Test keyword overrides beat the environment."""
        monkeypatch.setenv("SEGENGINE_FAIL_ON_LOAD_ERROR", "false")
        assert EngineConfig.from_env(fail_on_load_error=True).fail_on_load_error
