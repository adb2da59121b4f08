"""Flask application factory for CAGATEWAY.

Usage::

    from cagateway.app import create_app
    from cagateway.config import get_config

    app = create_app(config=get_config())
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flask import Flask, Response, jsonify

from cagateway.core.outcome import TEXT_CONTENT_TYPE

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue

    from cagateway.config.gateway_config import GatewayConfig
    from cagateway.services.gateway import GatewayService

log = logging.getLogger(__name__)


def create_app(
    config: GatewayConfig | None = None,
    gateway: GatewayService | None = None,
) -> Flask:
    """Create and configure the CAGATEWAY Flask application.

    Parameters
    ----------
    config:
        Loaded :class:`GatewayConfig`.  Falls back to :func:`get_config`
        when ``None``.
    gateway:
        Pre-built dispatcher.  When ``None`` one is built from the
        configuration, loading every CA backend.

    Returns
    -------
    Flask
        Fully configured WSGI application.

    """
    if config is None:
        from cagateway.config import get_config  # noqa: PLC0415

        config = get_config()

    settings = config.settings

    app = Flask("cagateway")
    app.config["CAGATEWAY_SETTINGS"] = settings
    app.config["CAGATEWAY_CONFIG"] = config
    app.config["MAX_CONTENT_LENGTH"] = settings.api.max_request_body_bytes
    app.config["LOG_REQUEST_BODY"] = settings.logging.log_request_body

    # -- Error handlers -----------------------------------------------------
    from cagateway.app.errors import register_error_handlers  # noqa: PLC0415

    register_error_handlers(app)

    # -- Request lifecycle hooks --------------------------------------------
    from cagateway.app.middleware import register_request_hooks  # noqa: PLC0415

    register_request_hooks(app)

    # -- Gateway ------------------------------------------------------------
    if gateway is None:
        from cagateway.app.context import build_gateway  # noqa: PLC0415

        gateway = build_gateway(settings)
    app.extensions["gateway"] = gateway

    # -- Routes -------------------------------------------------------------
    _register_infrastructure(app)

    from cagateway.api import register_blueprints  # noqa: PLC0415

    register_blueprints(app)

    log.info(
        "Flask application created (CAs: %s)",
        ", ".join(gateway.registry.names) or "none",
    )
    return app


# ---------------------------------------------------------------------------
# Infrastructure endpoints
# ---------------------------------------------------------------------------


def _register_infrastructure(app: Flask) -> None:
    """Register ``/livez``, ``/healthz`` and ``/favicon.ico``."""
    from cagateway import __version__  # noqa: PLC0415

    @app.route("/livez")
    def livez() -> ResponseReturnValue:
        """Return minimal liveness status."""
        return jsonify({"alive": True, "version": __version__}), 200

    @app.route("/healthz")
    def healthz() -> ResponseReturnValue:
        """Return per-CA status; 503 if any CA reports an error."""
        gateway = app.extensions["gateway"]
        cas = gateway.registry.health()
        degraded = any(entry["status"] != "ok" for entry in cas.values())
        result = {
            "status": "degraded" if degraded else "ok",
            "version": __version__,
            "certificate_authorities": cas,
        }
        return jsonify(result), 503 if degraded else 200

    @app.route("/favicon.ico")
    def favicon() -> ResponseReturnValue:
        log.debug("go away. no children.")
        return Response("go away. no children", content_type=TEXT_CONTENT_TYPE)
