"""
Application settings loaded from environment variables.

Values come from the process environment and, when present, a `.env` file in
the working directory. Settings are parsed once and cached.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime configuration for the admin dashboard and the public API.
    """

    # -------------------------------------------------------------------------
    # GitHub OAuth application
    # -------------------------------------------------------------------------

    GITHUB_CLIENT_ID: str = Field(
        default="",
        description="OAuth App client ID used for the admin login flow.",
    )
    GITHUB_CLIENT_SECRET: str = Field(
        default="",
        description="OAuth App client secret used to exchange authorization codes.",
    )

    # -------------------------------------------------------------------------
    # Backing repository (the flat-file database)
    # -------------------------------------------------------------------------

    GITHUB_ORG: str = Field(default="web2appstudio")
    GITHUB_REPO: str = Field(default="web2app-templates")
    GITHUB_BRANCH: str = Field(default="main")
    GITHUB_API_URL: str = Field(default="https://api.github.com")
    GITHUB_TEMPLATES_TOKEN: str = Field(
        default="",
        description="Server-side token used by the public read endpoints.",
    )

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------

    APP_URL: str = Field(
        default="http://localhost:8000",
        description="Public base URL; used for OAuth redirects.",
    )
    ENVIRONMENT: Literal["development", "production"] = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")
    HTTP_TIMEOUT: float = Field(default=15.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def base_url(self) -> str:
        return self.APP_URL.rstrip("/")

    @property
    def oauth_redirect_uri(self) -> str:
        return f"{self.base_url}/api/admin/callback"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings instance."""
    return Settings()
