"""
Auth Routes
===========

Email verification, registration, login and account removal.
"""

from __future__ import annotations

from flask import Flask, Response, jsonify

from letimail.auth import current_user, require_session
from letimail.logging_config import get_logger
from letimail.models import LoginRequest, RegisterRequest, SendOTPRequest, VerifyOTPRequest
from letimail.routes.common import get_container, json_body

logger = get_logger(__name__)


def register_auth_routes(app: Flask) -> None:
    """Register /api/auth routes."""

    @app.route("/api/auth/send-otp", methods=["POST"])
    def send_otp() -> tuple[Response, int]:
        """
        Send a verification code to an unregistered email.

        Request body:
            - email: Address to verify

        Returns:
            JSON response with success flag.
        """
        req = SendOTPRequest(**json_body())
        get_container().otp.issue(str(req.email))
        return jsonify({
            "success": True,
            "message": "Verification code sent"
        }), 200

    @app.route("/api/auth/verify-otp", methods=["POST"])
    def verify_otp() -> tuple[Response, int]:
        """
        Check a verification code without consuming it.

        Request body:
            - email: Address the code was sent to
            - otp: The code
        """
        req = VerifyOTPRequest(**json_body())
        get_container().otp.verify(str(req.email), req.otp)
        return jsonify({"success": True, "verified": True}), 200

    @app.route("/api/auth/register", methods=["POST"])
    def register() -> tuple[Response, int]:
        """
        Create an account.

        Request body:
            - name: Display name
            - email: Verified address
            - password: At least 6 characters
            - otp: Verification code

        Returns:
            JSON response with session token and user profile.
        """
        req = RegisterRequest(**json_body())
        session = get_container().auth.register(req)
        return jsonify({
            "success": True,
            "token": session.token,
            "user": session.user.model_dump(mode="json"),
        }), 201

    @app.route("/api/auth/login", methods=["POST"])
    def login() -> tuple[Response, int]:
        """
        Exchange email and password for a session token.

        Request body:
            - email
            - password
        """
        req = LoginRequest(**json_body())
        session = get_container().auth.login(req)
        return jsonify({
            "success": True,
            "token": session.token,
            "user": session.user.model_dump(mode="json"),
        }), 200

    @app.route("/api/auth/me", methods=["GET"])
    @require_session
    def me() -> tuple[Response, int]:
        """Profile of the signed-in user, with quota."""
        profile = get_container().auth.profile(current_user())
        return jsonify({"user": profile.model_dump(mode="json")}), 200

    @app.route("/api/auth/delete-account", methods=["DELETE"])
    @require_session
    def delete_account() -> tuple[Response, int]:
        """Delete the signed-in user with its history and API keys."""
        get_container().auth.delete_account(current_user().id)
        return jsonify({
            "success": True,
            "message": "Account deleted"
        }), 200
