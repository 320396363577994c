"""
Centralized configuration management using Pydantic models.

- AppSettings: environment variables and .env, via pydantic-settings
- InferenceConfig: the model the assistant talks to, loaded from YAML
- ``${ENV_VAR}`` references in YAML values are resolved at use time
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_INSTRUCTIONS = (
    "You are a concise keto assistant. Keep meals ≤ 20g net carbs.\n"
    "Avoid sugar, grains, starchy vegetables. Prefer whole foods.\n"
    "Keep answers short for a live demo."
)


def resolve_env_var(value: Optional[str], required: bool = True) -> Optional[str]:
    """
    Resolve environment variables in config values.

    Supports patterns like:
    - "${ENV_VAR_NAME}" -> replaced with os.environ.get("ENV_VAR_NAME")
    - "literal-string" -> returned as-is
    - None -> returned as-is

    Only complete patterns are resolved; "prefix-${VAR}" is a literal.

    Raises:
        ValueError: If the variable is not set and required=True
    """
    if value is None:
        return None

    match = re.fullmatch(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}', value)
    if match:
        env_var_name = match.group(1)
        env_value = os.environ.get(env_var_name)

        if env_value is None:
            if required:
                raise ValueError(
                    f"Environment variable '{env_var_name}' is not set but required in config"
                )
            return None

        return env_value

    return value


class InferenceConfig(BaseModel):
    """Configuration for the language model behind the assistant."""
    enabled: bool = True
    # LiteLLM model id, e.g. "llama3.2" with provider "ollama"
    model_name: Optional[str] = None
    provider: Optional[str] = None
    api_base: Optional[str] = None
    api_key: str = ""
    temperature: float = 0.7
    max_tokens: int = 512
    # 0 means no cap
    max_concurrent_requests: int = 0
    system_instructions: str = DEFAULT_SYSTEM_INSTRUCTIONS

    @field_validator("system_instructions", mode="before")
    @classmethod
    def validate_system_instructions(cls, v):
        """Fall back to the default instructions when left blank."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_SYSTEM_INSTRUCTIONS
        return v

    @field_validator("max_concurrent_requests")
    @classmethod
    def validate_max_concurrent_requests(cls, v):
        if v < 0:
            raise ValueError("max_concurrent_requests must be >= 0")
        return v


class AppSettings(BaseSettings):
    """Main application settings loaded from environment variables."""

    app_name: str = Field(default="ketochat", validation_alias="APP_NAME")
    debug_mode: bool = Field(default=False, validation_alias="DEBUG_MODE")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    app_log_dir: Optional[str] = Field(default=None, validation_alias="APP_LOG_DIR")

    chat_history_db_url: str = Field(
        default="duckdb:///data/ketochat.db",
        description="SQLAlchemy URL of the durable thread store",
        validation_alias="CHAT_HISTORY_DB_URL",
    )
    default_thread_title: str = Field(default="Keto Chat", validation_alias="DEFAULT_THREAD_TITLE")

    completion_timeout_seconds: Optional[float] = Field(
        default=60.0,
        description="Upper bound on a single model call; 0 disables the bound",
        validation_alias="COMPLETION_TIMEOUT_SECONDS",
    )

    feature_suppress_litellm_logging: bool = Field(
        default=True,
        validation_alias="FEATURE_SUPPRESS_LITELLM_LOGGING",
    )

    app_config_dir: str = Field(default="config", validation_alias="APP_CONFIG_DIR")
    inference_config_file: str = Field(default="inference.yml", validation_alias="INFERENCE_CONFIG_FILE")

    @field_validator("completion_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v):
        """Treat non-positive timeouts as 'no timeout'."""
        if v is not None and v <= 0:
            return None
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "env_prefix": "",
    }


class ConfigManager:
    """Centralized configuration manager with proper error handling."""

    def __init__(self, package_root: Optional[Path] = None):
        self._package_root = package_root or Path(__file__).parent.parent.parent
        self._app_settings: Optional[AppSettings] = None
        self._inference_config: Optional[InferenceConfig] = None

    def _search_paths(self, file_name: str) -> List[Path]:
        """Generate search paths for a configuration file.

        Two-layer lookup:
        1. User config dir (APP_CONFIG_DIR, default "config/")
        2. Package defaults (ketochat/config/)
        """
        project_root = self._package_root.parent

        config_dir = Path(self.app_settings.app_config_dir)
        if not config_dir.is_absolute():
            config_dir_project = project_root / config_dir
        else:
            config_dir_project = config_dir

        candidates: List[Path] = [
            config_dir / file_name,
            config_dir_project / file_name,
            self._package_root / "config" / file_name,
        ]

        seen = set()
        search_paths: List[Path] = []
        for p in candidates:
            if p not in seen:
                seen.add(p)
                search_paths.append(p)

        logger.debug("Config search paths for %s: %s", file_name, [str(p) for p in search_paths])
        return search_paths

    def _load_yaml_with_error_handling(self, file_paths: List[Path]) -> Optional[Dict[str, Any]]:
        """Load the first readable YAML mapping among ``file_paths``."""
        for path in file_paths:
            try:
                if not path.exists():
                    continue

                logger.info("Found YAML config at: %s", path.absolute())
                with open(path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)

                if not isinstance(data, dict):
                    logger.error("Invalid YAML format in %s: expected dict, got %s", path, type(data))
                    continue

                logger.info("Successfully loaded YAML config from %s", path)
                return data

            except yaml.YAMLError as e:
                logger.error("YAML parsing error in %s: %s", path, e, exc_info=True)
                continue
            except OSError as e:
                logger.error("Unexpected error reading %s: %s", path, e, exc_info=True)
                continue

        logger.warning("YAML config not found in any of these locations: %s", [str(p) for p in file_paths])
        return None

    @property
    def app_settings(self) -> AppSettings:
        """Get application settings (cached)."""
        if self._app_settings is None:
            self._app_settings = AppSettings()
            logger.info("Application settings loaded successfully")
        return self._app_settings

    @property
    def inference_config(self) -> InferenceConfig:
        """Get inference configuration (cached)."""
        if self._inference_config is None:
            file_paths = self._search_paths(self.app_settings.inference_config_file)
            data = self._load_yaml_with_error_handling(file_paths)
            if data:
                # Accept either a bare mapping or one nested under "inference"
                section = data.get("inference", data)
                try:
                    self._inference_config = InferenceConfig(**section)
                    logger.info("Inference config loaded for model %s", self._inference_config.model_name)
                except (TypeError, ValueError) as e:
                    logger.error("Invalid inference config: %s", e, exc_info=True)
                    self._inference_config = InferenceConfig(enabled=False)
            else:
                logger.warning("No inference config found; the model will report itself unavailable")
                self._inference_config = InferenceConfig(enabled=False)
        return self._inference_config

    def reload_configs(self) -> None:
        """Drop cached settings so the next access re-reads them."""
        self._app_settings = None
        self._inference_config = None
        logger.info("Configuration caches cleared")


# Global configuration manager instance
config_manager = ConfigManager()


def get_app_settings() -> AppSettings:
    """Get application settings."""
    return config_manager.app_settings


def get_inference_config() -> InferenceConfig:
    """Get inference configuration."""
    return config_manager.inference_config
