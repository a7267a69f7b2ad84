"""HTTP API."""

from mundobebe.api.app import app, create_app

__all__ = ["app", "create_app"]
