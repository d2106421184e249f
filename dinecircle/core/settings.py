from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase configuration
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    SUPABASE_ANON_KEY: str | None = None
    JWT_SECRET: str | None = None

    # Application URLs
    APP_BASE_URL: str = "http://localhost:8001"  # Default for development
    FRONTEND_URL: str | None = None

    LOG_LEVEL: str = "INFO"

    # Upper bound for every RPC / table call to Supabase, in seconds
    EXTERNAL_CALL_TIMEOUT: float = 5.0

    # Audit log paging
    AUDIT_LOG_DEFAULT_LIMIT: int = 50
    AUDIT_LOG_MAX_LIMIT: int = 200

    # Review listings
    REVIEWS_DEFAULT_LIMIT: int = 10
    FEED_DEFAULT_LIMIT: int = 20

    # Invite codes
    INVITE_CODE_TTL_DAYS: int = 7
    INVITE_CODE_MAX_USES: int = 10

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


settings = Settings()
