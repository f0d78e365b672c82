"""Configuration loading and validation utilities for self-healing."""

import yaml
from dataclasses import replace
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from .models.healing_models import HealingConfiguration
from .config import Settings, get_settings

logger = logging.getLogger("healing.config")


VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


def settings_to_dict(settings: Settings) -> Dict[str, Any]:
    """Map environment settings onto HealingConfiguration field names."""
    return {
        "use_smart_locator": settings.USE_SMART_LOCATOR,
        "run_with_smart_locator": settings.RUN_WITH_SMART_LOCATOR,
        "cache_path": settings.CACHE_PATH,
        "model": settings.OPENAI_MODEL,
        "api_key": settings.OPENAI_API_KEY,
        "cache_expiration_days": settings.CACHE_EXPIRATION_DAYS,
        "max_retries": settings.MAX_RETRIES,
        "element_timeout_ms": settings.ELEMENT_TIMEOUT_MS,
        "resolution_timeout_ms": settings.RESOLUTION_TIMEOUT_MS,
        "enable_logging": settings.ENABLE_LOGGING,
        "log_level": settings.LOG_LEVEL,
        "log_dir": settings.LOG_DIR
    }


class SelfHealingConfigLoader:
    """Loads and validates self-healing configuration.

    Environment settings form the base layer; the optional YAML file's
    ``self_healing`` section is merged over them.
    """

    def __init__(self, config_path: Optional[str] = None, settings: Optional[Settings] = None):
        """Initialize config loader with optional custom path and settings."""
        self._settings = settings
        self.config_path = Path(
            config_path or self.settings.SELF_HEALING_CONFIG_PATH)
        self._config_cache: Optional[HealingConfiguration] = None
        self._config_file_mtime: Optional[float] = None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def load_config(self, force_reload: bool = False) -> HealingConfiguration:
        """Load and validate self-healing configuration.

        Args:
            force_reload: Force reload even if cached config exists

        Returns:
            HealingConfiguration: Validated configuration object

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not force_reload and self._config_cache and self._is_config_current():
            return self._config_cache

        try:
            config_data = self._deep_merge(settings_to_dict(self.settings), self._load_config_file())
            healing_config = HealingConfiguration.from_dict(config_data)
            healing_config.log_level = str(healing_config.log_level).upper()
            self._validate_config(healing_config)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to load self-healing configuration: {e}")
            raise ConfigurationError(
                f"Configuration loading failed: {e}") from e

        self._config_cache = healing_config
        if self.config_path.exists():
            self._config_file_mtime = self.config_path.stat().st_mtime

        logger.debug(f"Loaded self-healing configuration (file: {self.config_path})")
        return healing_config

    def update_config(self, **overrides) -> HealingConfiguration:
        """Return a validated copy of the current configuration with overrides applied.

        Raises:
            ConfigurationError: If an override names an unknown setting or is invalid
        """
        current = self.load_config()
        unknown = set(overrides) - set(HealingConfiguration.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        updated = replace(current, **overrides)
        self._validate_config(updated)
        self._config_cache = updated
        return updated

    def save_config(self, config: HealingConfiguration) -> None:
        """Save configuration to file. The API key is never written.

        Raises:
            ConfigurationError: If saving fails
        """
        self._validate_config(config)
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            config_data = {"self_healing": config.to_dict()}
            with open(self.config_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(config_data, f, default_flow_style=False, indent=2)

            self._config_cache = config
            self._config_file_mtime = self.config_path.stat().st_mtime

            logger.info(
                f"Saved self-healing configuration to {self.config_path}")

        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to save self-healing configuration: {e}")
            raise ConfigurationError(
                f"Configuration saving failed: {e}") from e

    def _load_config_file(self) -> Dict[str, Any]:
        """Load the ``self_healing`` section of the YAML file, or nothing."""
        if not self.config_path.exists():
            logger.info(
                f"Config file {self.config_path} not found, using environment settings")
            return {}

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError("Config file must contain a mapping")

        section = config_data.get("self_healing", {}) or {}
        if not isinstance(section, dict):
            raise ConfigurationError("'self_healing' section must be a mapping")
        return section

    def _validate_config(self, config: HealingConfiguration) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If validation fails
        """
        errors = []

        if not config.cache_path:
            errors.append("cache_path must not be empty")

        if config.cache_expiration_days < 1 or config.cache_expiration_days > 365:
            errors.append("cache_expiration_days must be between 1 and 365")

        if config.max_retries < 1 or config.max_retries > 10:
            errors.append("max_retries must be between 1 and 10")

        if config.element_timeout_ms < 1 or config.element_timeout_ms > 120000:
            errors.append("element_timeout_ms must be between 1 and 120000")

        if config.resolution_timeout_ms < config.element_timeout_ms:
            errors.append("resolution_timeout_ms must not be shorter than element_timeout_ms")

        if config.inference_temperature < 0.0 or config.inference_temperature > 2.0:
            errors.append("inference_temperature must be between 0.0 and 2.0")

        if config.inference_max_tokens < 1 or config.inference_max_tokens > 4096:
            errors.append("inference_max_tokens must be between 1 and 4096")

        if str(config.log_level).upper() not in VALID_LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}")

        if errors:
            raise ConfigurationError(
                "Configuration validation failed: " + "; ".join(errors))

    def _is_config_current(self) -> bool:
        """Check if cached config is still current."""
        if not self.config_path.exists():
            return self._config_file_mtime is None

        current_mtime = self.config_path.stat().st_mtime
        return self._config_file_mtime == current_mtime

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


_config_loader: Optional[SelfHealingConfigLoader] = None


def get_config_loader() -> SelfHealingConfigLoader:
    """Return the process-wide default config loader."""
    global _config_loader
    if _config_loader is None:
        _config_loader = SelfHealingConfigLoader()
    return _config_loader


def get_healing_config(force_reload: bool = False) -> HealingConfiguration:
    """Get the current self-healing configuration.

    Args:
        force_reload: Force reload from environment and file

    Returns:
        HealingConfiguration: Current configuration
    """
    return get_config_loader().load_config(force_reload)
