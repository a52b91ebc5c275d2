"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Azure Chat"
    environment: str = "development"
    log_level: str = "info"
    debug: bool = False

    # Azure OpenAI (endpoint includes the /openai path segment)
    azure_openai_api_key: str = ""
    azure_openai_endpoint: str = ""
    azure_openai_api_version: str = "2023-05-15"
    request_timeout: float = 120.0

    # Local persistence
    storage_path: str = ""
    storage_quota_bytes: int = 0
    max_sessions: int = 50
    max_messages_per_session: int = 100
    max_storage_bytes: int = 5 * 1024 * 1024

    default_model: str = "gpt-4.1"

    # CORS
    frontend_url: str = "http://localhost:3000"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def completion_configured(self) -> bool:
        return bool(
            self.azure_openai_api_key
            and self.azure_openai_endpoint
            and self.azure_openai_api_version
        )


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency for injecting settings."""
    return settings
