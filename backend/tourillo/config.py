from datetime import timedelta
from typing import Optional
import os

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    # "production" switches the session cookie to its __Secure- name and the
    # Secure attribute; every other value is treated as a dev/preview deploy.
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    SECRET_KEY: str = "your-secret-key-change-in-production"
    AUTH_SECRET: Optional[str] = None
    ALGORITHM: str = "HS256"

    # PostgreSQL in production; SQLite is accepted for local runs and tests.
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./tourillo.db")

    # Database sessions: fixed 7 day lifetime, slid forward at most once a day.
    SESSION_MAX_AGE_DAYS: int = 7
    SESSION_UPDATE_AGE_HOURS: int = 24

    # Google OAuth client. AUTH_URL is the public base URL of this API and is
    # used to build the redirect URI registered with Google, e.g.
    #   https://api.tourillo.com  ->  https://api.tourillo.com/auth/callback/google
    AUTH_GOOGLE_ID: Optional[str] = None
    AUTH_GOOGLE_SECRET: Optional[str] = None
    AUTH_URL: str = "http://localhost:8000"
    GOOGLE_OAUTH_SCOPES: str = "openid email profile"

    ALLOWED_ORIGINS: str = "http://localhost:3000"
    FRONTEND_URL: str = "http://localhost:3000"

    # SMTP transport for contact / quote / booking notifications.
    EMAIL_HOST: Optional[str] = None
    EMAIL_PORT: int = 587
    EMAIL_USER: Optional[str] = None
    EMAIL_PASS: Optional[str] = None
    EMAIL_FROM: Optional[str] = None
    EMAIL_TO: Optional[str] = None

    class Config:
        env_file = None
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def secret_key(self) -> str:
        return self.AUTH_SECRET or self.SECRET_KEY

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"

    @property
    def session_cookie_name(self) -> str:
        # Distinct names keep preview/dev deployments from clobbering the
        # production cookie on a shared parent domain.
        if self.is_production:
            return "__Secure-next-auth.session-token"
        return "next-auth.session-token"

    @property
    def session_cookie_secure(self) -> bool:
        return self.is_production

    @property
    def session_max_age(self) -> timedelta:
        return timedelta(days=self.SESSION_MAX_AGE_DAYS)

    @property
    def session_update_age(self) -> timedelta:
        return timedelta(hours=self.SESSION_UPDATE_AGE_HOURS)

    @property
    def google_redirect_uri(self) -> str:
        return f"{self.AUTH_URL.rstrip('/')}/auth/callback/google"


settings = Settings()
