"""Tests for application configuration loading and overrides."""

import pytest

from learnpath.config import app_config
from learnpath.config.app_config import (
    AppConfig,
    LearningConfig,
    ProviderConfig,
    check_ai_credentials,
    clear_config_cache,
    get_provider_config,
    load_app_config,
)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Point the loader at a YAML file under tmp_path."""
    path = tmp_path / "app_config_v1.yaml"
    monkeypatch.setattr(app_config, "CONFIG_FILE", path)
    clear_config_cache()
    return path


class TestLoadAppConfig:
    """Tests for load_app_config."""

    def test_defaults_when_file_missing(self, config_file):
        """No file means built-in defaults."""
        config = load_app_config()

        assert isinstance(config, AppConfig)
        assert config.ai.default_provider == "gemini"
        assert config.learning == LearningConfig()
        assert {"gemini", "openai", "lmstudio"} <= set(config.providers)

    def test_yaml_overrides_defaults(self, config_file):
        """Partial YAML sections are merged onto defaults."""
        config_file.write_text(
            "ai:\n"
            "  default_provider: lmstudio\n"
            "  temperature: 0.2\n"
            "learning:\n"
            "  lesson_pass_threshold: 70\n"
            "paths:\n"
            "  db_path: var/test.db\n",
            encoding="utf-8",
        )

        config = load_app_config()

        assert config.ai.default_provider == "lmstudio"
        assert config.ai.temperature == 0.2
        assert config.ai.max_tokens == 4096
        assert config.learning.lesson_pass_threshold == 70
        assert config.learning.mock_band_size == 5
        assert str(config.db_path).replace("\\", "/") == "var/test.db"

    def test_empty_file_uses_defaults(self, config_file):
        """An empty YAML document is treated as no overrides."""
        config_file.write_text("", encoding="utf-8")

        config = load_app_config()

        assert config.learning.subject == "Python"
        assert "gemini" in config.providers

    def test_cached_until_cleared(self, config_file):
        """The loaded config is reused until force_reload."""
        first = load_app_config()
        assert load_app_config() is first
        assert load_app_config(force_reload=True) is not first


class TestEnvironmentOverrides:
    """Tests for environment variable overrides."""

    def test_provider_env(self, config_file, monkeypatch):
        """LEARNPATH_PROVIDER selects the active provider."""
        monkeypatch.setenv("LEARNPATH_PROVIDER", "openai")
        assert load_app_config().active_provider == "openai"

    def test_db_path_env(self, config_file, monkeypatch, tmp_path):
        """LEARNPATH_DB_PATH wins over the configured path."""
        monkeypatch.setenv("LEARNPATH_DB_PATH", str(tmp_path / "x.db"))
        assert load_app_config().db_path == tmp_path / "x.db"


class TestProviders:
    """Tests for provider lookups and credential checks."""

    def test_get_provider_config(self, config_file):
        """Known providers resolve, unknown ones are None."""
        gemini = get_provider_config("gemini")

        assert isinstance(gemini, ProviderConfig)
        assert gemini.api_key_env == "GEMINI_API_KEY"
        assert get_provider_config("unknown_provider") is None

    def test_credentials_present(self, config_file, monkeypatch):
        """A set key passes the check."""
        monkeypatch.delenv("LEARNPATH_PROVIDER", raising=False)
        monkeypatch.setenv("GEMINI_API_KEY", "k")
        assert check_ai_credentials() is True

    def test_credentials_missing(self, config_file, monkeypatch):
        """A missing key fails the check without raising."""
        monkeypatch.delenv("LEARNPATH_PROVIDER", raising=False)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        assert check_ai_credentials() is False

    def test_local_provider_needs_no_key(self, config_file, monkeypatch):
        """LM Studio has no API key."""
        monkeypatch.setenv("LEARNPATH_PROVIDER", "lmstudio")
        assert check_ai_credentials() is True

    def test_unknown_provider_fails_check(self, config_file, monkeypatch):
        """An unconfigured provider fails the check."""
        monkeypatch.setenv("LEARNPATH_PROVIDER", "nowhere")
        assert check_ai_credentials() is False
