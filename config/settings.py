"""
Registry Match - Configuration

Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = Field(
        default=f"sqlite:///{PROJECT_ROOT}/data/registry_match.db"
    )

    @property
    def project_root(self) -> Path:
        """Return project root directory."""
        return PROJECT_ROOT

    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # Search cache
    CACHE_DIR: str = Field(default=str(PROJECT_ROOT / "cache"))
    CACHE_MAX_AGE_DAYS: int = Field(default=7)

    # Matching
    STRICT_MATCHING: bool = Field(default=False)
    MAX_CONCURRENCY: int = Field(default=1)

    # Registries (primary = provincial registry, secondary = federal registry)
    REGISTRY_BASE_URL: str = Field(default="")
    REGISTRY_SEARCH_PATH: str = Field(default="/search")
    SECONDARY_REGISTRY_BASE_URL: str = Field(default="")
    SECONDARY_REGISTRY_SEARCH_PATH: str = Field(default="/search")

    # HTTP
    REQUEST_TIMEOUT_SECONDS: float = Field(default=60.0)
    MAX_RETRIES: int = Field(default=3)
    MIN_REQUEST_INTERVAL_SECONDS: float = Field(default=12.0)
    PROXY_POOL_FILE: str = Field(default="")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
