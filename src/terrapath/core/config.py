"""
Configuration settings for terrapath.
"""

from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime settings with environment variable support.

    Attributes:
        environment: Deployment environment, selects the console log format
        log_level: Log level override (DEBUG, INFO, ...)
        log_file: Optional path of a rotating log file
        json_logs: Whether file logs are written as JSON
        search_batch_size: Steps taken by a search before yielding to the host
        initial_distance_segments: Samples used for the initial distance estimate
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="TERRAPATH_",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"

    # Logging
    log_level: Optional[str] = None
    log_file: Optional[Path] = None
    json_logs: bool = False

    # Search scheduling
    search_batch_size: int = 50
    initial_distance_segments: int = 200

    @property
    def effective_log_level(self) -> str:
        """Log level to use when none was configured explicitly."""
        if self.log_level:
            return self.log_level.upper()
        return "DEBUG" if self.environment == "development" else "INFO"


# Global settings instance
settings = Settings()
