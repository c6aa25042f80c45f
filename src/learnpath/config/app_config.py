"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml
with fallback to built-in defaults.

Usage:
    from learnpath.config.app_config import load_app_config, get_provider_config

    config = load_app_config()
    provider = get_provider_config("gemini")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")

# Environment overrides
PROVIDER_ENV = "LEARNPATH_PROVIDER"
DB_PATH_ENV = "LEARNPATH_DB_PATH"


@dataclass
class ProviderConfig:
    """Configuration for a single AI provider."""

    base_url: str | None
    default_model: str
    api_key_env: str | None = None

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None

    @property
    def requires_api_key(self) -> bool:
        return self.api_key_env is not None


@dataclass
class AIConfig:
    """Defaults for content generation calls."""

    default_provider: str = "gemini"
    temperature: float = 0.7
    max_tokens: int = 4096
    timeout: int = 120
    max_retries: int = 1


@dataclass
class LearningConfig:
    """Sizes and thresholds of the learning flow."""

    subject: str = "Python"
    lesson_pass_threshold: int = 80
    placement_test_size: int = 10
    mock_band_size: int = 5
    lesson_test_size: int = 5
    min_path_lessons: int = 6
    max_path_lessons: int = 8


@dataclass
class AppConfig:
    """Application-wide configuration."""

    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    ai: AIConfig = field(default_factory=AIConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)
    paths: dict[str, str] = field(default_factory=dict)

    @property
    def active_provider(self) -> str:
        """Provider name, honouring the environment override."""
        return os.environ.get(PROVIDER_ENV) or self.ai.default_provider

    @property
    def db_path(self) -> Path:
        return Path(os.environ.get(DB_PATH_ENV) or self.paths.get("db_path", "db/learnpath.db"))


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "providers": {
            "gemini": {
                "base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
                "default_model": "gemini-2.5-flash-lite",
                "api_key_env": "GEMINI_API_KEY",
            },
            "openai": {
                "base_url": "https://api.openai.com/v1",
                "default_model": "gpt-4o-mini",
                "api_key_env": "OPENAI_API_KEY",
            },
            "lmstudio": {
                "base_url": "http://localhost:1234/v1",
                "default_model": "llama-3.2-3b-instruct",
                "api_key_env": None,
            },
        },
        "ai": {
            "default_provider": "gemini",
            "temperature": 0.7,
            "max_tokens": 4096,
            "timeout": 120,
            "max_retries": 1,
        },
        "learning": {
            "subject": "Python",
            "lesson_pass_threshold": 80,
            "placement_test_size": 10,
            "mock_band_size": 5,
            "lesson_test_size": 5,
            "min_path_lessons": 6,
            "max_path_lessons": 8,
        },
        "paths": {
            "db_path": "db/learnpath.db",
            "config_dir": "data/config",
        },
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    defaults = _get_defaults()

    providers = {}
    for name, pconfig in (data.get("providers") or defaults["providers"]).items():
        providers[name] = ProviderConfig(
            base_url=pconfig.get("base_url"),
            default_model=pconfig.get("default_model", "default"),
            api_key_env=pconfig.get("api_key_env"),
        )

    ai_data = {**defaults["ai"], **(data.get("ai") or {})}
    ai = AIConfig(
        default_provider=ai_data["default_provider"],
        temperature=float(ai_data["temperature"]),
        max_tokens=int(ai_data["max_tokens"]),
        timeout=int(ai_data["timeout"]),
        max_retries=int(ai_data["max_retries"]),
    )

    learning_data = {**defaults["learning"], **(data.get("learning") or {})}
    learning = LearningConfig(**{k: learning_data[k] for k in defaults["learning"]})

    paths = {**defaults["paths"], **(data.get("paths") or {})}

    return AppConfig(providers=providers, ai=ai, learning=learning, paths=paths)


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config, falling back to defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def get_provider_config(provider: str) -> ProviderConfig | None:
    """Get configuration for a specific provider.

    Args:
        provider: Provider name (e.g., "gemini", "lmstudio")

    Returns:
        ProviderConfig or None if provider not found.
    """
    config = load_app_config()
    return config.providers.get(provider)


def check_ai_credentials(config: AppConfig | None = None) -> bool:
    """Check that the active provider's API key is present.

    A missing key is logged, never raised: callers decide how to degrade.

    Returns:
        True if the provider needs no key or the key is set.
    """
    if config is None:
        config = load_app_config()

    provider_name = config.active_provider
    provider = config.providers.get(provider_name)

    if provider is None:
        logger.error("ai_provider_unknown", provider=provider_name)
        return False

    if provider.requires_api_key and not provider.get_api_key():
        logger.error(
            "ai_api_key_missing",
            provider=provider_name,
            env_var=provider.api_key_env,
        )
        return False

    return True


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
