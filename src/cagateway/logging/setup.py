"""Structured logging configuration for CAGATEWAY.

JSON and text formatters, a filter that stamps the current request's
identity onto every record, and :func:`configure_logging`, which wires
the ``cagateway`` logger tree from :class:`LoggingSettings`.

Loggers
-------
``cagateway``
    Application root; everything under the package propagates here.
``cagateway.access``
    One line per HTTP request (see :mod:`cagateway.app.middleware`).
``cagateway.audit``
    Issuance, revocation and CRL events.  Optionally mirrored to a
    rotating JSON file.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

from flask import g, has_request_context, request

if TYPE_CHECKING:
    from cagateway.config.settings import LoggingSettings

ROOT_LOGGER = "cagateway"
ACCESS_LOGGER = "cagateway.access"
AUDIT_LOGGER = "cagateway.audit"

_CONTEXT_ATTRS = ("request_id", "client_ip", "method", "path")

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__,
) | frozenset({"message", "asctime", *_CONTEXT_ATTRS})


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    Request context comes first, followed by any ``extra=`` fields the
    caller passed.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        for attr in _CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value not in (None, "-"):
                data[attr] = value

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Console formatter for ``--dev`` and ``format: text``."""

    _FMT = "%(asctime)s %(levelname)-8s [%(request_id)s] %(client_ip)s %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class RequestContextFilter(logging.Filter):
    """Attach ``request_id``, ``client_ip``, ``method`` and ``path``.

    Outside a request the attributes are ``"-"`` / ``None`` so the
    text format string never raises.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "request_id"):
            record.request_id = "-"  # type: ignore[attr-defined]
        if not hasattr(record, "client_ip"):
            record.client_ip = "-"  # type: ignore[attr-defined]
        if not hasattr(record, "method"):
            record.method = None  # type: ignore[attr-defined]
        if not hasattr(record, "path"):
            record.path = None  # type: ignore[attr-defined]

        if has_request_context():
            record.request_id = getattr(g, "request_id", record.request_id)  # type: ignore[attr-defined]
            record.client_ip = request.remote_addr or record.client_ip  # type: ignore[attr-defined]
            record.method = request.method  # type: ignore[attr-defined]
            record.path = request.path  # type: ignore[attr-defined]

        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings, *, dev: bool = False) -> logging.Logger:
    """Configure the ``cagateway`` logger hierarchy from *settings*.

    Parameters
    ----------
    settings:
        The ``logging`` section of the gateway configuration.
    dev:
        Force the text formatter regardless of ``settings.format``.

    Returns
    -------
    logging.Logger
        The ``cagateway`` root logger.

    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    if dev or settings.format == "text":
        formatter = TextFormatter()
    else:
        formatter = StructuredFormatter()

    ctx_filter = RequestContextFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ctx_filter)
    root.addHandler(console)

    logging.getLogger(ACCESS_LOGGER).setLevel(logging.INFO)

    audit = logging.getLogger(AUDIT_LOGGER)
    audit.handlers.clear()
    if not settings.audit.enabled:
        audit.disabled = True
    else:
        audit.disabled = False
        audit.setLevel(logging.INFO)
        if settings.audit.file:
            try:
                fh = RotatingFileHandler(
                    settings.audit.file,
                    maxBytes=settings.audit.max_file_size_bytes,
                    backupCount=settings.audit.backup_count,
                )
            except OSError as exc:
                root.warning(
                    "Could not open audit log file %s: %s",
                    settings.audit.file,
                    exc,
                )
            else:
                # always JSON on disk
                fh.setFormatter(StructuredFormatter())
                fh.addFilter(ctx_filter)
                audit.addHandler(fh)

    for lib in ("werkzeug", "gunicorn", "gunicorn.access", "gunicorn.error"):
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root
