"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "postgresql://localhost/dlmm_vault"
    persistence_enabled: bool = True

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Liquidity pool adapter: "memory" (simulator) or "http"
    pool_adapter: str = "memory"
    pool_adapter_url: str = "http://localhost:8900"
    pool_adapter_api_key: str = ""
    pool_fee_rate: int = 100  # Fee paid per harvest by the simulator

    # Guards
    price_staleness_seconds: int = 30

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
