"""
Entry point.

Run locally with ``python main.py`` or under a WSGI server as ``main:app``.
"""

from __future__ import annotations

import signal
import sys
from types import FrameType
from typing import Optional

from flask import Flask

from letimail.app import create_app
from letimail.config import get_settings
from letimail.container import ServiceContainer
from letimail.logging_config import configure_logging, get_logger

logger = get_logger(__name__)


def build_app() -> Flask:
    """
    Build the application, refusing to start without a reachable store.

    Exits with status 1 when the database cannot be reached.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    container = ServiceContainer(settings)
    if not container.database.ping():
        logger.critical("Database unreachable, refusing to start")
        container.close()
        sys.exit(1)

    def shutdown(signum: int, frame: Optional[FrameType]) -> None:
        logger.info("Shutting down", signal=signal.Signals(signum).name)
        container.close()
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    return create_app(settings, container)


app = build_app()


if __name__ == "__main__":
    settings = get_settings()
    app.run(host="0.0.0.0", port=settings.port, debug=settings.debug)
