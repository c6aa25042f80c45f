"""Configuration package for learnpath."""

from learnpath.config.app_config import (
    AIConfig,
    AppConfig,
    LearningConfig,
    ProviderConfig,
    check_ai_credentials,
    clear_config_cache,
    get_provider_config,
    load_app_config,
)

__all__ = [
    "AIConfig",
    "AppConfig",
    "LearningConfig",
    "ProviderConfig",
    "check_ai_credentials",
    "clear_config_cache",
    "get_provider_config",
    "load_app_config",
]
