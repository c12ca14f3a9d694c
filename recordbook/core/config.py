"""Application configuration with environment variables."""
from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./recordbook.db"

    # Session cookie
    SESSION_COOKIE_NAME: str = "sid"
    SESSION_TTL_MINUTES: int = 60 * 24  # 24 hours
    SESSION_SAMESITE: Optional[str] = None  # derived from ENVIRONMENT when unset
    SESSION_SECRET: str = "change-this-session-secret"  # signs OAuth state only

    # Password hashing
    BCRYPT_ROUNDS: int = Field(default=12, ge=10)

    # Application
    APP_NAME: str = "Recordbook API"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:8080"]

    # Google sign-in (routes answer 503 when unset)
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    OAUTH_SUCCESS_REDIRECT: str = "/dashboard"
    OAUTH_FAILURE_REDIRECT: str = "/"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def session_samesite(self) -> str:
        """Cross-site cookie policy: ``none`` in production, ``lax`` locally."""
        if self.SESSION_SAMESITE:
            return self.SESSION_SAMESITE.lower()
        return "none" if self.is_production else "lax"

    @property
    def google_enabled(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET)


# Create global settings instance
settings = Settings()
