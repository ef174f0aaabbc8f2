"""Application configuration settings."""
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

# Get the project directory path
PROJECT_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FACEMIGRATE_",
        env_file=str(PROJECT_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Container unwrapping
    max_unwrap_depth: int = 16  # zlib/JSON/AMF3 layers peeled before giving up

    # Batch conversion
    fail_fast: bool = False
    max_batch_size: int = 1000

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Server settings
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
