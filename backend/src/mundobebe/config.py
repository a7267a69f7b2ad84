"""Application settings resolved from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from mundobebe.persistence.config import DatabaseConfig

DEV_SECRET_KEY = "dev-secret-key-change-in-production"


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _csv_env(name: str) -> frozenset[str]:
    raw = os.environ.get(name, "")
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


@dataclass
class Settings:
    """Runtime settings.

    Attributes:
        database: Database connection configuration
        secret_key: Signing key for session and reset tokens
        redis_url: Redis for shared cache and rate-limit counters; None keeps
            both in process
        app_url: Public base URL used in emailed links
        super_admin_emails: Emails that register as SUPER_ADMIN
        cache_ttl_seconds: Lifetime of cached list and count reads
        session_ttl_seconds: Lifetime of session tokens
        password_rounds: bcrypt work factor
        log_level: Root log level name
        trusted_proxies: Peer addresses whose X-Forwarded-For and
            CF-Connecting-IP headers are believed; "*" trusts any peer.
            Empty means the socket peer is always the client.
    """

    database: DatabaseConfig
    secret_key: str = DEV_SECRET_KEY
    redis_url: str | None = None
    app_url: str = "http://localhost:3000"
    super_admin_emails: frozenset[str] = field(default_factory=frozenset)
    cache_ttl_seconds: int = 120
    session_ttl_seconds: int = 12 * 60 * 60
    password_rounds: int = 12
    log_level: str = "info"
    trusted_proxies: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> Settings:
        """Create settings from MUNDOBEBE_* environment variables."""
        return cls(
            database=DatabaseConfig.from_env(base_path),
            secret_key=os.environ.get("MUNDOBEBE_SECRET_KEY", DEV_SECRET_KEY),
            redis_url=os.environ.get("REDIS_URL") or None,
            app_url=os.environ.get("MUNDOBEBE_APP_URL", "http://localhost:3000").rstrip("/"),
            super_admin_emails=frozenset(e.lower() for e in _csv_env("MUNDOBEBE_SUPER_ADMIN_EMAILS")),
            cache_ttl_seconds=_int_env("MUNDOBEBE_CACHE_TTL", 120),
            session_ttl_seconds=_int_env("MUNDOBEBE_SESSION_TTL", 12 * 60 * 60),
            password_rounds=_int_env("MUNDOBEBE_PASSWORD_ROUNDS", 12),
            log_level=os.environ.get("MUNDOBEBE_LOG_LEVEL", "info").lower(),
            trusted_proxies=_csv_env("MUNDOBEBE_TRUSTED_PROXIES"),
        )

    @property
    def uses_dev_secret(self) -> bool:
        return self.secret_key == DEV_SECRET_KEY
