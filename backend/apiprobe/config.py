"""
Application configuration.

Loaded from environment variables (and an optional ``.env`` file) with
pydantic-settings.
"""

import sys
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the apiprobe backend.
    """

    # Collaborators
    PROXY_URL: str = Field(
        default="http://localhost:5000/api/proxy", description="Proxy endpoint that performs outbound calls"
    )
    STORE_URL: str = Field(
        default="http://localhost:5000/api", description="Base URL of the history and collections store"
    )
    DATABASE_URL: str = Field(default="sqlite:///./apiprobe.db", description="Environment store database")

    # Timeouts
    DISPATCH_TIMEOUT_MS: int = Field(default=15000, gt=0, description="Deadline for a proxied request")
    STORE_TIMEOUT: float = Field(default=10.0, gt=0, description="Store request timeout (seconds)")

    # HTTP surface
    CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:5173", "http://127.0.0.1:5173"], description="Allowed CORS origins"
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_CONFIG_PATH: str = Field(default="config/logging.yml", description="YAML logging config path")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    @property
    def dispatch_timeout(self) -> float:
        return self.DISPATCH_TIMEOUT_MS / 1000


try:
    settings = Settings()
except Exception as e:
    sys.stderr.write(f"Failed to load configuration: {e}\n")
    raise
