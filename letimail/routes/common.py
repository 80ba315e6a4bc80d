"""Helpers shared by the route modules."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from flask import current_app, request

from letimail.exceptions import ValidationError

if TYPE_CHECKING:
    from letimail.container import ServiceContainer


def get_container() -> ServiceContainer:
    """Service container of the running application."""
    return current_app.extensions["letimail"]


def json_body() -> dict[str, Any]:
    """
    Parsed JSON object of the current request.

    Raises:
        ValidationError: If the body is not a JSON object.
    """
    data = request.get_json(silent=True)
    if data is None and not request.data:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
