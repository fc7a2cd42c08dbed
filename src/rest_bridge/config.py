"""Configuration settings for rest-bridge."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="REST_BRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Local object store
    database_url: str = "sqlite+aiosqlite:///./rest_bridge.db"
    database_echo: bool = False

    # REST backend
    rest_base_url: str = "http://localhost:8000/api"
    rest_api_key: str | None = None
    rest_timeout: float = 30.0  # seconds

    # Attribute holding the backend identifier on every synced model
    remote_id_attribute_name: str = "remote_id"

    # Log every backend call with its status and latency
    log_api_calls: bool = False


settings = Settings()
