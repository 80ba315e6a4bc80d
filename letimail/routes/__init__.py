"""HTTP route registration."""

from flask import Flask

from letimail.routes.account import register_account_routes
from letimail.routes.admin import register_admin_routes
from letimail.routes.auth import register_auth_routes
from letimail.routes.emails import register_email_routes
from letimail.routes.health import register_health_routes


def register_routes(app: Flask) -> None:
    """Register application routes."""
    register_health_routes(app)
    register_auth_routes(app)
    register_email_routes(app)
    register_account_routes(app)
    register_admin_routes(app)


__all__ = ["register_routes"]
