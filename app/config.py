from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
from app.services.csp_service import FORBIDDEN_SOURCES


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "XSS/CSRF Guard Demo"
    DEBUG: bool = False
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # Server
    # Default to 0.0.0.0 for development, use env var HOST in production
    HOST: str = "0.0.0.0"  # nosec: B104
    PORT: int = 3000

    # Session
    SESSION_SECRET: str = "demo-session"
    SESSION_COOKIE_NAME: str = "session"
    SESSION_MAX_AGE: int = 1800  # 30 minutes

    # Content Security Policy
    TRUSTED_CDN: str = "https://cdn.jsdelivr.net"

    # Request guard
    GUARDED_PREFIXES: str = "/protected"
    EXEMPT_PATHS: str = "/protected/exempt"  # substring/suffix match
    ESCAPED_QUERY_FIELDS: str = "userInput"
    CSRF_FORM_FIELD: str = "csrfToken"
    CSRF_HEADER_NAME: str = "x-csrf-token"
    CSRF_COOKIE_NAME: str = "csrf-token"

    # Protected routes
    MIN_PASSWORD_LENGTH: int = 8

    @field_validator("TRUSTED_CDN")
    @classmethod
    def check_trusted_cdn(cls, v: str) -> str:
        for source in FORBIDDEN_SOURCES:
            if source in v:
                raise ValueError(f"TRUSTED_CDN must not allow {source}")
        return v

    @property
    def allowed_origins_list(self) -> List[str]:
        return _split_csv(self.ALLOWED_ORIGINS)

    @property
    def guarded_prefixes_list(self) -> List[str]:
        return _split_csv(self.GUARDED_PREFIXES)

    @property
    def exempt_paths_list(self) -> List[str]:
        return _split_csv(self.EXEMPT_PATHS)

    @property
    def escaped_query_fields_list(self) -> List[str]:
        return _split_csv(self.ESCAPED_QUERY_FIELDS)

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )


settings = Settings()
