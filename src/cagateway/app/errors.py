"""Plain-text error responses for routing-level failures.

Gateway operations never raise out of their handlers (they return an
:class:`~cagateway.core.outcome.Outcome`); these handlers cover what
Flask and Werkzeug raise before a handler runs (404, 405, 413, ...)
and any exception that still escapes.
"""

from __future__ import annotations

import logging

from flask import Flask, Response
from werkzeug.exceptions import HTTPException

from cagateway.core.errors import GENERIC_FAILURE_MESSAGE
from cagateway.core.outcome import TEXT_CONTENT_TYPE

log = logging.getLogger(__name__)


def _text_response(body: str, status: int) -> Response:
    resp = Response(body, status=status, content_type=TEXT_CONTENT_TYPE)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def register_error_handlers(app: Flask) -> None:
    """Attach handlers that render every error as ``text/plain``."""

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        resp = _text_response(exc.description or exc.name, exc.code or 500)
        valid_methods = getattr(exc, "valid_methods", None)
        if valid_methods:
            resp.headers["Allow"] = ", ".join(valid_methods)
        return resp

    @app.errorhandler(Exception)
    def _handle_unhandled(exc: Exception):
        # HTTPException subclasses are already caught above
        log.exception("Unhandled exception during request")
        return _text_response(GENERIC_FAILURE_MESSAGE, 500)
