"""
Flask Application
=================

Main Flask application with proper error handling,
request validation, and structured logging.
"""

from __future__ import annotations

from typing import Any, Optional

from flask import Flask, Response, jsonify, request
from pydantic import ValidationError as PydanticValidationError

from letimail.config import AppSettings, get_settings
from letimail.container import ServiceContainer
from letimail.exceptions import ErrorCode, LetiMailError, StoreError, UpstreamError
from letimail.logging_config import configure_logging, get_logger, get_request_id, set_request_id, set_user_id
from letimail.routes import register_routes

# Initialize logger
logger = get_logger(__name__)

CORS_ALLOW_HEADERS = "Content-Type, Authorization, X-API-Key, X-Request-ID"
CORS_ALLOW_METHODS = "GET, POST, DELETE, OPTIONS"


def create_app(
    settings: Optional[AppSettings] = None,
    container: Optional[ServiceContainer] = None
) -> Flask:
    """
    Application factory for Flask app.

    Args:
        settings: Explicit settings, defaults to the cached environment settings.
        container: Prebuilt service container, built from settings if omitted.

    Returns:
        Configured Flask application.
    """
    settings = settings or (container.settings if container else get_settings())
    configure_logging(settings.log_level)

    app = Flask(__name__)

    # Configuration
    app.config["DEBUG"] = settings.debug
    app.json.sort_keys = False

    container = container or ServiceContainer(settings)
    container.database.create_all()
    app.extensions["letimail"] = container

    # Register error handlers
    register_error_handlers(app, settings)

    # Register middleware
    register_middleware(app, settings)

    # Register routes
    register_routes(app)

    logger.info(
        "Application initialized",
        environment=settings.environment.value,
        debug=settings.debug,
        mail_enabled=settings.mail.enabled
    )

    return app


def _error_body(error: LetiMailError, settings: AppSettings) -> dict[str, Any]:
    body = error.to_dict()
    if error.is_client_error:
        return body
    if settings.is_production:
        if isinstance(error, (UpstreamError, StoreError)):
            body["error"] = error.public_message
    else:
        body["details"] = str(error.cause) if error.cause else error.message
    return body


def _first_validation_message(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid request")
    return f"{field}: {message}" if field else message


def register_error_handlers(app: Flask, settings: AppSettings) -> None:
    """Register error handlers for the application."""

    @app.errorhandler(LetiMailError)
    def handle_letimail_error(error: LetiMailError) -> tuple[Response, int]:
        """Handle custom application errors."""
        if error.is_client_error:
            logger.info(
                f"Request refused: {error.message}",
                error_code=error.code.value,
                status_code=error.status_code
            )
        else:
            logger.error(
                f"Application error: {error.message}",
                error_code=error.code.value,
                context=error.context.to_dict(),
                cause=str(error.cause) if error.cause else None
            )
        return jsonify(_error_body(error, settings)), error.status_code

    @app.errorhandler(PydanticValidationError)
    def handle_pydantic_validation_error(error: PydanticValidationError) -> tuple[Response, int]:
        """Handle Pydantic validation errors."""
        message = _first_validation_message(error)
        logger.info("Validation error", error=message)
        return jsonify({
            "error": message,
            "code": ErrorCode.VALIDATION_ERROR.value
        }), 400

    @app.errorhandler(400)
    def handle_bad_request(error: Any) -> tuple[Response, int]:
        """Handle bad request errors."""
        return jsonify({
            "error": str(error.description) if hasattr(error, "description") else "Bad request",
            "code": ErrorCode.VALIDATION_ERROR.value
        }), 400

    @app.errorhandler(404)
    def handle_not_found(error: Any) -> tuple[Response, int]:
        """Handle not found errors."""
        return jsonify({
            "error": "Resource not found",
            "code": ErrorCode.NOT_FOUND.value
        }), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(error: Any) -> tuple[Response, int]:
        """Handle wrong HTTP methods."""
        return jsonify({
            "error": "Method not allowed",
            "code": ErrorCode.NOT_FOUND.value
        }), 405

    @app.errorhandler(500)
    def handle_internal_error(error: Any) -> tuple[Response, int]:
        """Handle internal server errors."""
        original = getattr(error, "original_exception", None) or error
        logger.error("Internal server error", error=str(original), exc_info=True)
        body = {
            "error": "An internal error occurred",
            "code": ErrorCode.INTERNAL_ERROR.value
        }
        if not settings.is_production:
            body["details"] = str(original)
        return jsonify(body), 500


def register_middleware(app: Flask, settings: AppSettings) -> None:
    """Register middleware for the application."""

    allowed_origins = settings.cors_origins

    @app.before_request
    def before_request() -> None:
        """Set up request context."""
        # Get or generate request ID
        set_request_id(request.headers.get("X-Request-ID"))
        set_user_id(None)

        logger.debug(
            "Request started",
            method=request.method,
            path=request.path,
            content_type=request.content_type
        )

    @app.after_request
    def after_request(response: Response) -> Response:
        """Log request completion and add correlation and CORS headers."""
        response.headers["X-Request-ID"] = get_request_id()

        origin = request.headers.get("Origin")
        if "*" in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = "*"
        elif origin and origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers.add("Vary", "Origin")
        response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
        response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS

        logger.info(
            "Request completed",
            method=request.method,
            path=request.path,
            status_code=response.status_code
        )
        return response
