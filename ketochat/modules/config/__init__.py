"""Configuration module.

Centralized configuration management with:
- Pydantic models for validation
- Environment variable loading
- YAML-based inference configuration
"""

from .config_manager import (
    DEFAULT_SYSTEM_INSTRUCTIONS,
    AppSettings,
    ConfigManager,
    InferenceConfig,
    config_manager,
    get_app_settings,
    get_inference_config,
    resolve_env_var,
)

__all__ = [
    "DEFAULT_SYSTEM_INSTRUCTIONS",
    "AppSettings",
    "ConfigManager",
    "InferenceConfig",
    "config_manager",
    "get_app_settings",
    "get_inference_config",
    "resolve_env_var",
]
