from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    environment: str = Field(default="development")

    # Persistence service. Empty URL means "not configured": dashboards fall
    # back to fixture data and sign-in falls back to the demo accounts.
    database_url: str = Field(default="")

    # Session tokens
    jwt_secret_key: str = Field(default="medportal-dev-secret")
    token_expire_seconds: int = Field(default=86400)

    # Durable session mirror for same-device resume (empty = memory only)
    session_file: str = Field(default="")

    # Vision-text oracle
    oracle_provider: str = Field(default="gemini")
    gemini_api_key: str = Field(default="")
    gemini_api_url: str = Field(default="https://generativelanguage.googleapis.com")
    gemini_model: str = Field(default="gemini-1.5-flash")

    # AWS Bedrock (alternative oracle provider)
    aws_access_key_id: str = Field(default="")
    aws_secret_access_key: str = Field(default="")
    aws_region: str = Field(default="us-east-1")
    aws_bedrock_model_id: str = Field(
        default="us.anthropic.claude-sonnet-4-5-20250929-v1:0",
    )

    # Timeouts (seconds)
    identity_timeout_seconds: float = Field(default=5.0)
    analysis_timeout_seconds: float = Field(default=60.0)
    image_fetch_timeout_seconds: float = Field(default=15.0)

    dashboard_page_size: int = Field(default=5, ge=3, le=5)

    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    @property
    def demo_mode(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def persistence_configured(self) -> bool:
        return bool(self.database_url)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
