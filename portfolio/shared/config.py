"""
Application settings

All configuration comes from environment variables. Settings are read once
and handed to the rest of the app through the `get_settings` dependency, so
tests can swap them with `app.dependency_overrides`.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional


def _split_csv(value: Optional[str], lower: bool = True) -> tuple[str, ...]:
    if not value:
        return ()
    items = (item.strip() for item in value.split(","))
    return tuple(item.lower() if lower else item for item in items if item)


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    database_url: str = "postgresql+psycopg2://backend_user:changeme@db:5432/backend_db"

    # Object storage
    storage_backend: str = "supabase"  # "supabase" or "local"
    storage_bucket: str = "projects"
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    upload_dir: str = "./uploads"
    upload_base_url: str = "http://localhost:8000/uploads"

    # Admin access
    internal_api_key: Optional[str] = None
    admin_emails: tuple[str, ...] = field(default_factory=tuple)

    # AI chat
    anthropic_api_key: Optional[str] = None
    chat_model: str = "claude-sonnet-4-5-20250929"
    chat_max_tokens: int = 4096
    chat_image_limit: int = 5

    frontend_url: Optional[str] = None
    cors_origins: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            storage_backend=os.getenv("STORAGE_BACKEND", "supabase").lower(),
            storage_bucket=os.getenv("STORAGE_BUCKET", "projects"),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_service_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY"),
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY"),
            upload_dir=os.getenv("UPLOAD_DIR", cls.upload_dir),
            upload_base_url=os.getenv("UPLOAD_BASE_URL", cls.upload_base_url),
            internal_api_key=os.getenv("INTERNAL_API_KEY"),
            admin_emails=_split_csv(os.getenv("ADMIN_EMAILS")),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            chat_model=os.getenv("CHAT_MODEL", cls.chat_model),
            chat_max_tokens=int(os.getenv("CHAT_MAX_TOKENS", "4096")),
            chat_image_limit=int(os.getenv("CHAT_IMAGE_LIMIT", "5")),
            frontend_url=os.getenv("FRONTEND_URL"),
            cors_origins=_split_csv(os.getenv("CORS_ORIGINS"), lower=False),
        )


@lru_cache
def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return Settings.from_env()
