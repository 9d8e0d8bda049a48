"""
Settings Configuration

Process-wide configuration for the portal.
Every value is loaded from environment variables (optionally via .env) once,
at startup. Required values that are missing or malformed fail fast.
"""
import os
import re
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

load_dotenv()

_HEX_KEY_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


class ConfigurationError(RuntimeError):
    """Raised at boot when a required setting is absent or malformed."""


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer")


class Settings:
    """
    Portal settings.

    The bank encryption key is kept as bytes and is excluded from repr()
    so it never lands in a log line or traceback.
    """

    def __init__(self):
        self.environment: str = os.getenv("ENVIRONMENT", "development")
        self.database_url: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./prize_portal.db")

        self.bank_encryption_key: bytes = self._load_encryption_key()
        self.allowed_email_domain: str = self._load_email_domain()

        self.jwt_secret_key: str = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
        self.jwt_algorithm: str = "HS256"
        # Seven days by default
        self.access_token_expire_minutes: int = get_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7)

        self.email_host: str = os.getenv("EMAIL_HOST", "localhost")
        self.email_port: int = get_int_env("EMAIL_PORT", 587)
        self.email_secure: bool = get_bool_env("EMAIL_SECURE", False)
        self.email_user: str = os.getenv("EMAIL_USER", "")
        self.email_password: str = os.getenv("EMAIL_PASSWORD", "")
        self.email_from: str = os.getenv("EMAIL_FROM", "treasury@localhost")
        self.email_enabled: bool = get_bool_env("EMAIL_ENABLED", True)
        self.frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

        self.allowed_origins: List[str] = [
            origin.strip()
            for origin in os.getenv("ALLOWED_ORIGINS", "").split(",")
            if origin.strip()
        ]

    @staticmethod
    def _load_encryption_key() -> bytes:
        raw = os.getenv("BANK_ENCRYPTION_KEY")
        if not raw:
            raise ConfigurationError(
                "BANK_ENCRYPTION_KEY is not set. Generate one with: "
                "python -c \"import secrets; print(secrets.token_hex(32))\""
            )
        if not _HEX_KEY_PATTERN.match(raw.strip()):
            raise ConfigurationError("BANK_ENCRYPTION_KEY must be a 64-character hex string (32 bytes)")
        return bytes.fromhex(raw.strip())

    @staticmethod
    def _load_email_domain() -> str:
        domain = os.getenv("ALLOWED_EMAIL_DOMAIN", "").strip().lower().lstrip("@")
        if not domain or "." not in domain:
            raise ConfigurationError("ALLOWED_EMAIL_DOMAIN must be set to a domain such as 'school.edu'")
        return domain

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def __repr__(self) -> str:
        return (
            f"<Settings(environment='{self.environment}', database_url='{self.database_url}', "
            f"allowed_email_domain='{self.allowed_email_domain}')>"
        )


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()
