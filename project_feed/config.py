"""
Application configuration using Pydantic Settings.

Environment variables are loaded from .env file or system environment.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
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
    app_name: str = "Project Activity Feed"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|staging|production)$")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS
    cors_origins: list[str] = Field(default=["http://localhost:3000", "http://127.0.0.1:3000"])

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_anon_key: str = Field(..., description="Supabase anonymous/public key")
    supabase_service_role_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key (for server-side operations)"
    )
    supabase_jwt_secret: Optional[str] = Field(
        default=None,
        description="Supabase JWT secret for token verification"
    )

    # Backend tables
    projects_table: str = "projects"
    chat_rooms_table: str = "chat_rooms"
    messages_table: str = "chat_messages"
    status_history_table: str = "project_status_history"
    quotes_table: str = "project_quotes"

    # Chat
    message_page_size: int = Field(default=50, ge=1, le=500)
    max_message_length: int = Field(default=5000, ge=1)
    max_attachment_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Largest attachment accepted on send (bytes)"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to avoid re-reading environment on every call.
    """
    return Settings()
