"""FastAPI application."""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mundobebe.accounts.auth_flows import AuthFlowService
from mundobebe.accounts.profile import AccountService
from mundobebe.accounts.users import UserManagementService
from mundobebe.api.accounts import (
    create_account_router,
    create_auth_router,
    create_invitations_router,
    create_users_router,
)
from mundobebe.api.catalog import create_catalog_router
from mundobebe.api.errors import install_error_handlers
from mundobebe.catalog import build_catalog
from mundobebe.config import Settings
from mundobebe.services import AppServices

logger = logging.getLogger(__name__)


def _base_path() -> Path:
    cwd = Path.cwd()
    return cwd.parent if cwd.name == "backend" else cwd


def install_services(app: FastAPI, services: AppServices) -> None:
    """Attach services and the actions built on them to ``app.state``."""
    app.state.services = services
    app.state.catalog = build_catalog(services)
    app.state.users = UserManagementService(services)
    app.state.auth_flows = AuthFlowService(services)
    app.state.account = AccountService(services)


def create_app(services: AppServices | None = None) -> FastAPI:
    """Build the API.

    Args:
        services: Pre-built collaborators (tests inject in-memory ones).
            When omitted they are built from the environment on startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize on startup, cleanup on shutdown."""
        if getattr(app.state, "services", None) is None:
            install_services(app, AppServices.from_settings(Settings.from_env(_base_path())))
        app.state.services.db.create_all()
        logger.info("Mundo Bebé API ready (database: %s)", app.state.services.settings.database.url)

        yield

        app.state.services.db.dispose()

    app = FastAPI(title="Mundo Bebé Admin API", lifespan=lifespan)
    app.state.services = None

    # CORS for the admin frontend
    origins = os.environ.get("MUNDOBEBE_CORS_ORIGINS", "http://localhost:3000")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    if services is not None:
        install_services(app, services)

    app.include_router(create_catalog_router(get_catalog=lambda: app.state.catalog))
    app.include_router(create_users_router(get_users=lambda: app.state.users))
    app.include_router(create_auth_router(get_flows=lambda: app.state.auth_flows))
    app.include_router(create_invitations_router(get_flows=lambda: app.state.auth_flows))
    app.include_router(create_account_router(get_account=lambda: app.state.account))

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
