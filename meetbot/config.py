"""
Configuration management for meetbot.

Uses Pydantic Settings for type-safe configuration with .env file support.
Components never read settings themselves; `api.create_app()` derives the
immutable objects they need (signing secret, OAuth client config, cipher)
and passes them in at construction.
"""
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .crypto import TokenCipher
from .integrations.google.oauth import GOOGLE_AUTH_URI, GOOGLE_TOKEN_URI, GoogleOAuthConfig


_PACKAGE_DIR = Path(__file__).parent

DEFAULT_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=_PACKAGE_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Slack
    slack_signing_secret: str = Field(default="", description="Slack app signing secret")

    # Google OAuth client
    google_client_id: str = Field(default="")
    google_client_secret: str = Field(default="")
    google_redirect_uri: str = Field(
        default="http://localhost:3000/auth/google/callback",
        description="Must match the redirect URI registered with Google",
    )
    google_scopes: List[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))
    oauth_timeout_seconds: float = Field(default=10.0, gt=0)

    # Token encryption (base64 of 32 random bytes, see `python -m meetbot.crypto`)
    token_encryption_key: str = Field(default="")

    # Supabase Settings
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_role_key: str = Field(default="", description="Supabase service role key (for backend)")

    # API Settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3000)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    def google_oauth_config(self) -> GoogleOAuthConfig:
        """Immutable OAuth client configuration for the lifecycle manager."""
        return GoogleOAuthConfig(
            client_id=self.google_client_id,
            client_secret=self.google_client_secret,
            redirect_uri=self.google_redirect_uri,
            auth_uri=GOOGLE_AUTH_URI,
            token_uri=GOOGLE_TOKEN_URI,
            scopes=tuple(self.google_scopes),
            timeout_seconds=self.oauth_timeout_seconds,
        )

    def token_cipher(self) -> TokenCipher:
        return TokenCipher.from_base64_key(self.token_encryption_key)

    def validate_config(self) -> list[str]:
        """Validate configuration and return list of warnings/errors."""
        issues = []

        if not self.slack_signing_secret:
            issues.append("SLACK_SIGNING_SECRET is not set")

        if not self.google_client_id:
            issues.append("GOOGLE_CLIENT_ID is not set")

        if not self.google_client_secret:
            issues.append("GOOGLE_CLIENT_SECRET is not set")

        if not self.google_redirect_uri:
            issues.append("GOOGLE_REDIRECT_URI is not set")

        if not self.supabase_url:
            issues.append("SUPABASE_URL is not set")

        if not self.supabase_service_role_key:
            issues.append("SUPABASE_SERVICE_ROLE_KEY is not set")

        if not self.token_encryption_key:
            issues.append(
                "TOKEN_ENCRYPTION_KEY is not set. "
                "Generate one with `python -m meetbot.crypto`."
            )
        else:
            try:
                self.token_cipher()
            except ValueError as e:
                issues.append(f"Invalid TOKEN_ENCRYPTION_KEY: {e}")

        return issues


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    issues = settings.validate_config()

    if issues:
        raise ValueError(f"Invalid configuration: {issues}")

    return settings
