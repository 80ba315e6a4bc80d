"""
Email Routes
============

Drafting, refining and sending emails.
"""

from __future__ import annotations

from flask import Flask, Response, jsonify

from letimail.auth import current_user, require_user
from letimail.models import ApiScope, GenerateRequest, ImproveEmailRequest, SendEmailRequest
from letimail.routes.common import get_container, json_body


def register_email_routes(app: Flask) -> None:
    """Register email routes."""

    @app.route("/api/generate", methods=["POST"])
    @require_user(ApiScope.GENERATE)
    def generate() -> tuple[Response, int]:
        """
        Draft a new email. Metered by the quota ledger.

        Request body:
            - business: Description of the sender's business
            - context: Purpose of the email
            - tone: (optional) Requested tone
            - emailLength: (optional) short, medium or long
            - stylePrompt: (optional) Writing style instructions

        Returns:
            JSON response with the email as "Subject: ...\\n\\n<body>" and usage.
        """
        req = GenerateRequest(**json_body())
        result = get_container().email_service.generate(current_user(), req)
        return jsonify({
            "success": True,
            "email": result.email,
            "id": result.record_id,
            "usage": result.usage.model_dump(mode="json"),
        }), 200

    @app.route("/api/improve-email", methods=["POST"])
    @require_user(ApiScope.IMPROVE)
    def improve_email() -> tuple[Response, int]:
        """
        Refine a generated email using the user's edits.

        Request body:
            - originalEmail
            - editedEmail
        """
        req = ImproveEmailRequest(**json_body())
        improved = get_container().email_service.improve(current_user(), req)
        return jsonify({"success": True, "improvedEmail": improved}), 200

    @app.route("/api/send-email", methods=["POST"])
    @require_user(ApiScope.SEND)
    def send_email() -> tuple[Response, int]:
        """
        Record an email and dispatch it when a provider is configured.

        Request body:
            - to: Recipient
            - subject: (optional) Taken from a "Subject:" line of content otherwise
            - content: Markdown body
            - businessName: (optional) Sender display name
            - replyToEmail: (optional) Reply-to address
        """
        req = SendEmailRequest(**json_body())
        outcome = get_container().email_service.send(current_user(), req)
        return jsonify({
            "success": True,
            "sent": outcome.sent,
            "id": outcome.record_id,
        }), 200
