"""
Health Routes
=============
"""

from __future__ import annotations

from flask import Flask, Response, jsonify

from letimail import __version__
from letimail.routes.common import get_container


def register_health_routes(app: Flask) -> None:
    """Register the health check."""

    @app.route("/api/health", methods=["GET"])
    def health_check() -> tuple[Response, int]:
        """
        Health check endpoint.

        Returns:
            JSON response with health status; 503 when the store is unreachable.
        """
        database_ok = get_container().database.ping()
        return jsonify({
            "status": "healthy" if database_ok else "unhealthy",
            "database": "connected" if database_ok else "unreachable",
            "service": "letimail",
            "version": __version__
        }), 200 if database_ok else 503
