"""Shared fixtures: in-memory collaborators and signed-in users."""

from dataclasses import dataclass

import pytest
from sqlalchemy import insert

from mundobebe.accounts.email import OutboxEmailSender
from mundobebe.actions.context import ActionContext, Session
from mundobebe.auth.jwt_service import JWTService
from mundobebe.auth.password import PasswordService
from mundobebe.auth.roles import UserRole
from mundobebe.auth.sessions import JWTSessionProvider
from mundobebe.cache.store import MemoryCacheStore
from mundobebe.config import Settings
from mundobebe.persistence.config import DatabaseConfig
from mundobebe.persistence.database import Database, new_id, utcnow
from mundobebe.persistence.schema import users
from mundobebe.ratelimit.store import MemoryRateLimitStore
from mundobebe.services import AppServices

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
TEST_PASSWORD = "Secreta!2024"
SUPER_ADMIN_EMAIL = "jefa@mundobebe.com"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class SignedIn:
    """A persisted user plus the context carrying their session token."""

    user_id: str
    email: str
    role: UserRole
    token: str

    @property
    def ctx(self) -> ActionContext:
        return ActionContext(credentials=self.token, client_ip="10.0.0.1")

    @property
    def session(self) -> Session:
        return Session(user_id=self.user_id, role=self.role, email=self.email)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def services(clock):
    """AppServices backed by in-memory SQLite, cache and rate limiter."""
    settings = Settings(
        database=DatabaseConfig(url="sqlite://"),
        secret_key=TEST_SECRET,
        app_url="https://admin.mundobebe.test",
        super_admin_emails=frozenset({SUPER_ADMIN_EMAIL}),
        password_rounds=4,
    )
    db = Database(settings.database)
    db.create_all()
    jwt_service = JWTService(TEST_SECRET)
    built = AppServices(
        settings=settings,
        db=db,
        cache=MemoryCacheStore(clock=clock),
        rate_limiter=MemoryRateLimitStore(clock=clock),
        jwt=jwt_service,
        passwords=PasswordService(rounds=4),
        sessions=JWTSessionProvider(jwt_service, db),
        email=OutboxEmailSender(),
    )
    yield built
    db.dispose()


@pytest.fixture
def add_user(services):
    """Factory persisting a user and returning a SignedIn handle."""
    counter = {"n": 0}

    def _add(role: UserRole, email: str | None = None, name: str = "Ana", password: str = TEST_PASSWORD):
        counter["n"] += 1
        email = email or f"{role.value.lower()}{counter['n']}@mundobebe.com"
        user_id = new_id()
        now = utcnow()
        with services.db.transaction() as conn:
            conn.execute(insert(users).values(
                id=user_id,
                name=name,
                lastName="Pérez",
                email=email,
                password=services.passwords.hash(password),
                role=role.value,
                active=True,
                createdAt=now,
                updatedAt=now,
            ))
        token = services.jwt.generate_access_token(user_id, role.value, email)
        return SignedIn(user_id=user_id, email=email, role=role, token=token)

    return _add


@pytest.fixture
def super_admin(add_user):
    return add_user(UserRole.SUPER_ADMIN, email=SUPER_ADMIN_EMAIL, name="Jefa")


@pytest.fixture
def admin(add_user):
    return add_user(UserRole.ADMIN, name="Admin")


@pytest.fixture
def customer(add_user):
    return add_user(UserRole.USER, name="Cliente")
