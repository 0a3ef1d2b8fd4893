"""Application configuration using Pydantic Settings"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List, Optional

from protect_motion.schemas.protect import ControllerConfig


# Default motion debounce window in seconds
DEFAULT_MOTION_DURATION = 10

# Delay before a failed LED toggle is reverted on the exposed switch
DEFAULT_LED_REVERT_DELAY_SECONDS = 0.1


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # UniFi Protect controllers, as a JSON list in PROTECT_CONTROLLERS
    PROTECT_CONTROLLERS: List[ControllerConfig] = Field(default_factory=list)
    PROTECT_REFRESH_INTERVAL_SECONDS: int = Field(default=0, ge=0)  # 0 = reconcile once at startup

    # Motion / LED behavior
    MOTION_DURATION: int = Field(default=DEFAULT_MOTION_DURATION, ge=1)
    LED_REVERT_DELAY_SECONDS: float = Field(default=DEFAULT_LED_REVERT_DELAY_SECONDS, ge=0)

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None  # No file logging when unset

    # Status API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_V1_PREFIX: str = "/api/v1"

    # HomeKit bridge
    HOMEKIT_ENABLED: bool = True
    HOMEKIT_PORT: int = 51826
    HOMEKIT_BRIDGE_NAME: str = "Protect Motion"
    HOMEKIT_PERSIST_DIR: str = "data/homekit"
    HOMEKIT_PINCODE: str | None = None  # Auto-generated if not set
    HOMEKIT_BIND_ADDRESS: str = "0.0.0.0"

    @field_validator('LOG_LEVEL', mode='after')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if level not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return level

    @property
    def effective_log_level(self) -> str:
        """DEBUG flag forces debug logging regardless of LOG_LEVEL."""
        return "DEBUG" if self.DEBUG else self.LOG_LEVEL

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
