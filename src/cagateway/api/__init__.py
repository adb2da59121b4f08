"""Gateway API layer: Flask blueprint registration.

Call :func:`register_blueprints` during application startup to mount
the versioned routes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask

log = logging.getLogger(__name__)

API_PREFIX = "/1"


def register_blueprints(app: Flask) -> None:
    """Mount the CRL and certificate blueprints under ``/1``."""
    from cagateway.api.certificate import certificate_bp  # noqa: PLC0415
    from cagateway.api.crl import crl_bp  # noqa: PLC0415

    app.register_blueprint(crl_bp, url_prefix=API_PREFIX)
    app.register_blueprint(certificate_bp, url_prefix=API_PREFIX)

    log.info(
        "Registered gateway blueprints under %s (%d URL rules)",
        API_PREFIX,
        len(list(app.url_map.iter_rules())),
    )
