"""Collaborator wiring.

:class:`AppServices` is the one place that decides which stores back the
cache and the rate limiter. Every action receives its collaborators from
here instead of reaching for process-wide globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from mundobebe.accounts.email import EmailSender, LoggingEmailSender
from mundobebe.actions.context import SessionProvider
from mundobebe.auth.jwt_service import JWTService
from mundobebe.auth.password import PasswordService
from mundobebe.auth.sessions import JWTSessionProvider
from mundobebe.cache.store import CacheStore, MemoryCacheStore, RedisCacheStore
from mundobebe.config import Settings
from mundobebe.persistence.database import Database
from mundobebe.ratelimit.store import MemoryRateLimitStore, RateLimitStore, RedisRateLimitStore

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Shared collaborators for every action and query."""

    settings: Settings
    db: Database
    cache: CacheStore
    rate_limiter: RateLimitStore
    jwt: JWTService
    passwords: PasswordService
    sessions: SessionProvider
    email: EmailSender = field(default_factory=LoggingEmailSender)

    @classmethod
    def from_settings(cls, settings: Settings, email: EmailSender | None = None) -> AppServices:
        """Build collaborators for ``settings``.

        With ``redis_url`` set, cache entries and rate-limit counters live in
        Redis; otherwise both stay in process.
        """
        if settings.uses_dev_secret:
            logger.warning("MUNDOBEBE_SECRET_KEY is not set; using the development key")

        db = Database(settings.database)
        if settings.redis_url:
            cache: CacheStore = RedisCacheStore.from_url(settings.redis_url)
            limiter: RateLimitStore = RedisRateLimitStore.from_url(settings.redis_url)
        else:
            cache = MemoryCacheStore()
            limiter = MemoryRateLimitStore()

        jwt_service = JWTService(settings.secret_key, access_token_ttl=settings.session_ttl_seconds)
        return cls(
            settings=settings,
            db=db,
            cache=cache,
            rate_limiter=limiter,
            jwt=jwt_service,
            passwords=PasswordService(rounds=settings.password_rounds),
            sessions=JWTSessionProvider(jwt_service, db),
            email=email or LoggingEmailSender(),
        )
