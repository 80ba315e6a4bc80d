"""
Account Routes
==============

Preferences, tone profile, email history and API keys.
"""

from __future__ import annotations

from flask import Flask, Response, jsonify, request

from letimail.auth import current_user, require_session, require_user
from letimail.models import ApiScope, CreateApiKeyRequest, HistoryQuery
from letimail.routes.common import get_container, json_body


def register_account_routes(app: Flask) -> None:
    """Register per-user data routes."""

    @app.route("/api/preferences", methods=["GET"])
    @require_session
    def get_preferences() -> tuple[Response, int]:
        preferences = get_container().account.get_preferences(current_user())
        return jsonify(preferences.model_dump(mode="json", by_alias=True)), 200

    @app.route("/api/preferences", methods=["POST"])
    @require_session
    def update_preferences() -> tuple[Response, int]:
        """Replace the editor preferences; unknown fields are rejected."""
        preferences = get_container().account.update_preferences(current_user(), json_body())
        return jsonify(preferences.model_dump(mode="json", by_alias=True)), 200

    @app.route("/api/tone-profile", methods=["GET"])
    @require_session
    def get_tone_profile() -> tuple[Response, int]:
        profile = get_container().account.get_tone_profile(current_user())
        return jsonify(profile.model_dump(mode="json", by_alias=True)), 200

    @app.route("/api/tone-profile", methods=["POST"])
    @require_session
    def update_tone_profile() -> tuple[Response, int]:
        """
        Replace the tone profile.

        Request body:
            - emails: Reference emails ({id, content, dateAdded})
            - editedEmails: (optional) Recent edits, only the last 20 are kept
        """
        profile = get_container().account.update_tone_profile(current_user(), json_body())
        return jsonify(profile.model_dump(mode="json", by_alias=True)), 200

    @app.route("/api/email-history", methods=["GET"])
    @require_user(ApiScope.HISTORY)
    def list_email_history() -> tuple[Response, int]:
        """
        Page through the caller's emails, newest first.

        Query params:
            - page: (optional) 1-based page, default 1
            - per_page: (optional) default 20, at most 100
        """
        query = HistoryQuery(**request.args.to_dict())
        return jsonify(get_container().account.list_history(current_user(), query)), 200

    @app.route("/api/email-history/<record_id>", methods=["GET"])
    @require_user(ApiScope.HISTORY)
    def get_email_history_item(record_id: str) -> tuple[Response, int]:
        record = get_container().account.get_history_item(current_user(), record_id)
        return jsonify(record.model_dump(mode="json")), 200

    @app.route("/api/api-keys", methods=["POST"])
    @require_session
    def create_api_key() -> tuple[Response, int]:
        """
        Create an API key.

        Request body:
            - name: Label shown in the key list
            - permissions: (optional) Subset of generate, improve, send, history

        Returns:
            JSON response with the plaintext key. It is not retrievable later.
        """
        req = CreateApiKeyRequest(**json_body())
        created = get_container().api_key_service.create(current_user(), req)
        return jsonify({
            "success": True,
            "key": created.key,
            "api_key": created.api_key.model_dump(mode="json"),
        }), 201

    @app.route("/api/api-keys", methods=["GET"])
    @require_session
    def list_api_keys() -> tuple[Response, int]:
        keys = get_container().api_key_service.list_for_user(current_user())
        return jsonify({"api_keys": [key.model_dump(mode="json") for key in keys]}), 200

    @app.route("/api/api-keys/<key_id>", methods=["DELETE"])
    @require_session
    def revoke_api_key(key_id: str) -> tuple[Response, int]:
        get_container().api_key_service.revoke(current_user(), key_id)
        return jsonify({"success": True}), 200
