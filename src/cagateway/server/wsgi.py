"""WSGI module for external servers.

The config file path comes from ``CAGATEWAY_CONFIG``.  Every configured
CA is loaded at import time, so a bad config or unreadable CA material
stops the server process with a one-line reason instead of serving
requests that can only fail::

    CAGATEWAY_CONFIG=/etc/cagateway/config.yaml gunicorn --workers 1 "cagateway.server.wsgi:app"
"""

from __future__ import annotations

import os
import sys

from cagateway.app import create_app
from cagateway.ca.base import CAError
from cagateway.config import ConfigValidationError, GatewayConfig
from cagateway.logging import configure_logging


def _fail(reason: str) -> None:
    sys.stderr.write(f"cagateway.server.wsgi: {reason}\n")
    sys.exit(1)


_config_path = os.environ.get("CAGATEWAY_CONFIG")
if not _config_path:
    _fail("CAGATEWAY_CONFIG is not set")

try:
    _config = GatewayConfig(config_file=_config_path)
except (ConfigValidationError, OSError) as exc:
    _fail(str(exc))

configure_logging(_config.settings.logging)

try:
    app = create_app(config=_config)
except CAError as exc:
    _fail(f"CA initialisation failed: {exc.detail}")
