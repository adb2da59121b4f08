"""Serve the gateway with gunicorn.

The internal CRL administrator keeps its revocation list in process
memory and rewrites the list file on every change.  Two workers would
each hold their own copy and overwrite each other's revocations, so
when any CA uses it the server is pinned to one worker; concurrency
then comes from ``worker_class`` (``gthread``, ``gevent``).

Usage::

    from cagateway.server.gunicorn_app import run_gunicorn

    run_gunicorn(flask_app, settings.server)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from cagateway.ca.crl import CRLAdministrator

if TYPE_CHECKING:
    from flask import Flask

    from cagateway.config.settings import ServerSettings

log = logging.getLogger(__name__)


def process_local_cas(app: Flask) -> list[str]:
    """Names of the CAs whose CRL state lives in this process."""
    registry = app.extensions["gateway"].registry
    return [name for name in registry.names if isinstance(registry.get(name).crl, CRLAdministrator)]


def gunicorn_options(app: Flask, settings: ServerSettings) -> dict[str, Any]:
    """Translate :class:`ServerSettings` into gunicorn settings."""
    workers = settings.workers
    pinned = process_local_cas(app)
    if workers > 1 and pinned:
        log.warning(
            "Running 1 worker instead of %d: CRL state of %s is per-process",
            workers,
            ", ".join(pinned),
        )
        workers = 1

    options: dict[str, Any] = {
        "bind": f"{settings.bind}:{settings.port}",
        "workers": workers,
        "worker_class": settings.worker_class,
        # signing and CRL generation run inside the request
        "timeout": settings.timeout,
        "graceful_timeout": settings.graceful_timeout,
        "keepalive": settings.keepalive,
        "proc_name": "cagateway",
        "accesslog": None,
    }
    if settings.max_requests:
        options["max_requests"] = settings.max_requests
        options["max_requests_jitter"] = settings.max_requests_jitter
    return options


def run_gunicorn(app: Flask, settings: ServerSettings) -> None:
    """Serve *app* until gunicorn exits.

    Raises :class:`RuntimeError` if gunicorn is not installed (the
    ``server`` extra).
    """
    try:
        from gunicorn.app.base import BaseApplication  # noqa: PLC0415
    except ImportError:
        msg = "gunicorn is not installed; pip install 'cagateway[server]' or use --dev"
        raise RuntimeError(msg) from None

    options = gunicorn_options(app, settings)

    class _GatewayApplication(BaseApplication):
        def load_config(self) -> None:
            for key, value in options.items():
                self.cfg.set(key, value)

        def load(self) -> Flask:
            return app

    log.info(
        "Starting gunicorn on %s (%d workers, %s, CAs: %s)",
        options["bind"],
        options["workers"],
        options["worker_class"],
        ", ".join(app.extensions["gateway"].registry.names),
    )
    _GatewayApplication().run()
