from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase (required; the app refuses to start without them)
    supabase_url: str
    supabase_key: str

    # App
    app_name: str = "threads-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    site_url: Optional[str] = None  # Public origin for redirects; request origin when unset

    # Session bootstrap
    profile_lookup_attempts: int = 3
    profile_lookup_delay_seconds: float = 0.5
    auth_context_timeout_seconds: float = 8.0
    interstitial_redirect_seconds: int = 3
    session_cookie_max_age: int = 60 * 60 * 24 * 400

    # Storage buckets
    post_images_bucket: str = "post-images"
    avatars_bucket: str = "avatars"
    max_upload_bytes: int = 5 * 1024 * 1024

    @field_validator("supabase_url", "supabase_key")
    @classmethod
    def require_non_empty(cls, value: str, info) -> str:
        if not value or not value.strip():
            raise ValueError(f"{info.field_name} must be set (SUPABASE_URL / SUPABASE_KEY)")
        return value.strip()

    @field_validator("profile_lookup_attempts")
    @classmethod
    def require_positive_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("profile_lookup_attempts must be at least 1")
        return value

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
