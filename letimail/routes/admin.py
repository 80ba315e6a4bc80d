"""
Admin Routes
============
"""

from __future__ import annotations

from flask import Flask, Response, jsonify

from letimail.auth import require_admin
from letimail.routes.common import get_container


def register_admin_routes(app: Flask) -> None:
    """Register admin routes."""

    @app.route("/api/admin/stats", methods=["GET"])
    @require_admin
    def admin_stats() -> tuple[Response, int]:
        """User, plan, generation and email counts."""
        return jsonify(get_container().account.stats()), 200
