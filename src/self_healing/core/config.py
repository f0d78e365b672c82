from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    # Smart locator switches
    USE_SMART_LOCATOR: bool = Field(default=False, description="Attempt AI-assisted locator regeneration when a locator breaks")
    RUN_WITH_SMART_LOCATOR: bool = Field(default=False, description="Substitute healed locators transparently instead of failing for review")

    # Inference provider
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="Model identifier passed to the inference provider")
    OPENAI_API_KEY: Optional[str] = None

    # Cache
    CACHE_PATH: str = Field(default="cache/locator_cache.json", description="Location of the persisted locator cache document")
    CACHE_EXPIRATION_DAYS: int = Field(default=2, description="Entries older than this are dropped when the cache is loaded")

    # Timeouts and retries (milliseconds, like the page drivers)
    ELEMENT_TIMEOUT_MS: int = Field(default=5000, description="Wait for a single locator probe")
    RESOLUTION_TIMEOUT_MS: int = Field(default=30000, description="Upper bound for one complete resolution")
    MAX_RETRIES: int = Field(default=3, description="Probe attempts when the page driver reports a transient error")

    # Logging
    ENABLE_LOGGING: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    SELF_HEALING_CONFIG_PATH: str = Field(default="config/self_healing.yaml", description="Optional YAML file with configuration overrides")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Normalize LOG_LEVEL and accept the short 'warn' spelling."""
        level = v.upper()
        if level == "WARN":
            level = "WARNING"
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, got '{v}'")
        return level

    @field_validator("CACHE_EXPIRATION_DAYS")
    @classmethod
    def validate_cache_expiration(cls, v):
        """Validate that CACHE_EXPIRATION_DAYS is between 1 and 365."""
        if v < 1 or v > 365:
            raise ValueError(f"CACHE_EXPIRATION_DAYS must be between 1 and 365, got {v}")
        return v

    @field_validator("MAX_RETRIES")
    @classmethod
    def validate_max_retries(cls, v):
        """Validate that MAX_RETRIES is between 1 and 10."""
        if v < 1 or v > 10:
            raise ValueError(f"MAX_RETRIES must be between 1 and 10, got {v}")
        return v

    @field_validator("ELEMENT_TIMEOUT_MS", "RESOLUTION_TIMEOUT_MS")
    @classmethod
    def validate_timeouts(cls, v):
        """Validate that timeouts are positive."""
        if v <= 0:
            raise ValueError(f"Timeouts must be positive, got {v}")
        return v


def get_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings()
