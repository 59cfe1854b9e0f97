"""
Configuration management for the Foundathon registration API.
"""
import os
from typing import Optional
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class DatabaseConfig:
    """Row store connection settings."""
    url: Optional[str]
    user: str = "postgres"
    password: Optional[str] = None
    host: str = "localhost"
    name: str = "foundathon"


@dataclass(frozen=True)
class AuthConfig:
    """Hosted auth provider access token settings."""
    jwt_secret: Optional[str]
    audience: str = "authenticated"


@dataclass(frozen=True)
class LockTokenConfig:
    secret: Optional[str]
    ttl_seconds: int = 600


@dataclass(frozen=True)
class StorageConfig:
    """Object store settings (any S3 compatible endpoint)."""
    endpoint_url: Optional[str]
    access_key_id: Optional[str]
    secret_access_key: Optional[str]
    region: Optional[str]
    bucket_name: str = "foundathon-presentation"
    public_base_url: Optional[str] = None
    probe_timeout: float = 10.0


@dataclass(frozen=True)
class EventConfig:
    event_id: str = "583a3b40-da9d-412a-a266-cc7e64330b16"
    event_title: str = "Foundathon 3.0"
    srm_email_domain: str = "@srmist.edu.in"


class ConfigManager:
    """Loads application configuration once from the environment."""

    def __init__(self):
        self.database = self._load_database_config()
        self.auth = self._load_auth_config()
        self.lock_token = self._load_lock_token_config()
        self.storage = self._load_storage_config()
        self.event = self._load_event_config()

    def _load_database_config(self) -> DatabaseConfig:
        return DatabaseConfig(
            url=os.getenv('INTERNAL_DATABASE_URL') or os.getenv('DATABASE_URL'),
            user=os.getenv('DB_USER', 'postgres'),
            password=os.getenv('DB_PASSWORD'),
            host=os.getenv('DB_HOST', 'localhost'),
            name=os.getenv('DB_NAME', 'foundathon'),
        )

    def _load_auth_config(self) -> AuthConfig:
        return AuthConfig(
            jwt_secret=os.getenv("SUPABASE_JWT_SECRET"),
            audience=os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated"),
        )

    def _load_lock_token_config(self) -> LockTokenConfig:
        return LockTokenConfig(
            secret=os.getenv("PROBLEM_LOCK_TOKEN_SECRET"),
            ttl_seconds=int(os.getenv("PROBLEM_LOCK_TOKEN_TTL_SECONDS", "600")),
        )

    def _load_storage_config(self) -> StorageConfig:
        return StorageConfig(
            endpoint_url=os.getenv("STORAGE_ENDPOINT_URL"),
            access_key_id=os.getenv("STORAGE_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("STORAGE_SECRET_ACCESS_KEY"),
            region=os.getenv("STORAGE_REGION"),
            bucket_name=os.getenv("PRESENTATION_BUCKET_NAME", "foundathon-presentation"),
            public_base_url=os.getenv("STORAGE_PUBLIC_BASE_URL"),
            probe_timeout=float(os.getenv("STORAGE_PROBE_TIMEOUT", "10.0")),
        )

    def _load_event_config(self) -> EventConfig:
        return EventConfig(
            event_id=os.getenv("EVENT_ID", "583a3b40-da9d-412a-a266-cc7e64330b16"),
            event_title=os.getenv("EVENT_TITLE", "Foundathon 3.0"),
            srm_email_domain=os.getenv("SRM_EMAIL_DOMAIN", "@srmist.edu.in"),
        )

    def validate(self) -> list:
        """Validate configuration and return any errors."""
        errors = []

        if not self.database.url and not self.database.password:
            errors.append("DATABASE_URL or DB_PASSWORD environment variable is required")

        if not self.auth.jwt_secret:
            errors.append("SUPABASE_JWT_SECRET environment variable is required to authenticate requests")

        if not self.lock_token.secret:
            errors.append("PROBLEM_LOCK_TOKEN_SECRET environment variable is required to lock problem statements")

        if self.lock_token.ttl_seconds <= 0:
            errors.append("Lock token TTL must be positive")

        if not self.storage.bucket_name:
            errors.append("PRESENTATION_BUCKET_NAME must not be empty")

        return errors


config = ConfigManager()
