"""Tests for configuration loading."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from chorus.config import (
    Settings,
    _deep_merge,
    _expand_env_vars,
    get_settings,
    load_settings,
    reset_settings,
)
from chorus.config.settings import DelayBand, GroupDefaultsConfig, OrchestrationConfig
from chorus.errors import InvalidConfigError


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove CHORUS_* variables from the environment."""
    for key in list(os.environ):
        if key.startswith("CHORUS_"):
            monkeypatch.delenv(key)


@pytest.fixture
def temp_config_file(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Write a user config overriding a few values."""
    monkeypatch.setenv("TEST_USER_LABEL", "Operator")
    path = temp_dir / "config.yaml"
    path.write_text(
        "orchestration:\n"
        "  supervisor_timeout: 3.5\n"
        "  user_label: ${TEST_USER_LABEL}\n"
        "  response_delays:\n"
        "    medium:\n"
        "      min_seconds: 1.0\n"
        "      max_seconds: 2.0\n"
        "group_defaults:\n"
        "  max_response_in_row: 4\n"
        "  response_order: sequential\n"
        "unknown_section:\n"
        "  ignored: true\n",
        encoding="utf-8",
    )
    return path


class TestExpandEnvVars:
    """Tests for environment variable expansion."""

    def test_expand_simple_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test expanding a simple environment variable."""
        monkeypatch.setenv("TEST_VAR", "test_value")
        assert _expand_env_vars("${TEST_VAR}") == "test_value"

    def test_expand_missing_var(self) -> None:
        """Test expanding a missing environment variable returns None."""
        assert _expand_env_vars("${NONEXISTENT_CHORUS_VAR}") is None

    def test_expand_inside_text(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test expanding a variable embedded in a longer string."""
        monkeypatch.setenv("TEST_HOST", "example.org")
        assert _expand_env_vars("https://${TEST_HOST}/v1") == "https://example.org/v1"

    def test_expand_nested(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test expanding variables in nested dicts and lists."""
        monkeypatch.setenv("NESTED_VAR", "nested_value")
        data = {"level1": {"level2": "${NESTED_VAR}", "items": ["${NESTED_VAR}", 3]}}
        result = _expand_env_vars(data)
        assert result["level1"]["level2"] == "nested_value"
        assert result["level1"]["items"] == ["nested_value", 3]


class TestDeepMerge:
    """Tests for deep dictionary merging."""

    def test_nested_merge(self) -> None:
        """Test merging nested dictionaries."""
        base = {"outer": {"a": 1, "b": 2}}
        override = {"outer": {"b": 3, "c": 4}}
        assert _deep_merge(base, override) == {"outer": {"a": 1, "b": 3, "c": 4}}

    def test_override_non_dict(self) -> None:
        """Test that non-dict values are overridden completely."""
        assert _deep_merge({"key": {"nested": "value"}}, {"key": "simple"}) == {"key": "simple"}

    def test_base_not_mutated(self) -> None:
        """Test that the base dictionary is left untouched."""
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}


class TestSettingsModels:
    """Tests for settings validation."""

    def test_orchestration_defaults(self) -> None:
        """Test default orchestration values."""
        config = OrchestrationConfig()
        assert config.supervisor_timeout == 10.0
        assert config.agent_timeout == 120.0
        assert config.mention_match == "id_or_title"
        assert config.user_label == "User"

    def test_group_defaults(self) -> None:
        """Test default values for new groups."""
        defaults = GroupDefaultsConfig()
        assert defaults.max_response_in_row == 1
        assert defaults.response_order == "natural"
        assert defaults.response_speed == "fast"
        assert defaults.reveal_dm is False

    def test_timeouts_must_be_positive(self) -> None:
        """Test timeout validation."""
        with pytest.raises(ValidationError):
            OrchestrationConfig(supervisor_timeout=0)
        with pytest.raises(ValidationError):
            OrchestrationConfig(agent_timeout=-1)

    def test_delay_band_order(self) -> None:
        """Test that a band's max can't be below its min."""
        DelayBand(min_seconds=1.0, max_seconds=1.0)
        with pytest.raises(ValidationError):
            DelayBand(min_seconds=2.0, max_seconds=1.0)

    def test_empty_orchestrator_model_fails(self) -> None:
        """Test that a blank orchestrator model is rejected."""
        with pytest.raises(ValidationError):
            GroupDefaultsConfig(orchestrator_model="   ")

    def test_delay_band_lookup(self, clean_env: None) -> None:
        """Test delay bands per response speed."""
        settings = Settings()
        assert settings.delay_band("fast").max_seconds == 0.0
        assert settings.delay_band("medium").min_seconds == 0.5
        assert settings.delay_band("slow").max_seconds == 4.0

    def test_nested_env_override(self, clean_env: None, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test nested values from CHORUS_* environment variables."""
        monkeypatch.setenv("CHORUS_ORCHESTRATION__AGENT_TIMEOUT", "5")
        settings = Settings()
        assert settings.orchestration.agent_timeout == 5.0
        assert settings.orchestration.supervisor_timeout == 10.0


class TestLoadSettings:
    """Tests for the load_settings function."""

    def test_load_defaults(self, temp_dir: Path, clean_env: None) -> None:
        """Test loading with no user config file."""
        settings = load_settings(config_path=temp_dir / "missing.yaml", force_reload=True)
        assert settings.orchestration.supervisor_timeout == 10.0
        assert settings.group_defaults.orchestrator_model == "gemini-2.5-flash"
        assert settings.logging.level == "INFO"

    def test_load_from_yaml(self, temp_config_file: Path, clean_env: None) -> None:
        """Test that the user config is merged over the defaults."""
        settings = load_settings(config_path=temp_config_file, force_reload=True)
        assert settings.orchestration.supervisor_timeout == 3.5
        assert settings.orchestration.user_label == "Operator"
        assert settings.orchestration.agent_timeout == 120.0
        assert settings.delay_band("medium").min_seconds == 1.0
        assert settings.delay_band("slow").min_seconds == 2.0
        assert settings.group_defaults.max_response_in_row == 4
        assert settings.group_defaults.response_order == "sequential"

    def test_caching(self, temp_config_file: Path, clean_env: None) -> None:
        """Test that settings are cached."""
        settings1 = load_settings(config_path=temp_config_file, force_reload=True)
        settings2 = load_settings(config_path=temp_config_file)
        assert settings1 is settings2
        assert get_settings() is settings1

    def test_force_reload(self, temp_config_file: Path, clean_env: None) -> None:
        """Test that force_reload creates a new instance."""
        settings1 = load_settings(config_path=temp_config_file, force_reload=True)
        settings2 = load_settings(config_path=temp_config_file, force_reload=True)
        assert settings1 is not settings2
        assert settings1.orchestration == settings2.orchestration

    def test_reset(self, temp_config_file: Path, clean_env: None) -> None:
        """Test that reset_settings drops the cached instance."""
        settings1 = load_settings(config_path=temp_config_file, force_reload=True)
        reset_settings()
        assert load_settings(config_path=temp_config_file) is not settings1

    def test_env_overrides_file(
        self,
        temp_config_file: Path,
        clean_env: None,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that environment variables win over the config file."""
        monkeypatch.setenv("CHORUS_ORCHESTRATION__SUPERVISOR_TIMEOUT", "7")
        settings = load_settings(config_path=temp_config_file, force_reload=True)
        assert settings.orchestration.supervisor_timeout == 7.0
        assert settings.orchestration.user_label == "Operator"

    def test_invalid_file(self, temp_dir: Path, clean_env: None) -> None:
        """Test that bad values raise InvalidConfigError."""
        path = temp_dir / "bad.yaml"
        path.write_text("orchestration:\n  agent_timeout: -5\n", encoding="utf-8")
        with pytest.raises(InvalidConfigError) as exc_info:
            load_settings(config_path=path, force_reload=True)
        assert "agent_timeout" in exc_info.value.details["field"]
