"""Logging subsystem for CAGATEWAY.

Public API::

    from cagateway.logging import configure_logging

    configure_logging(settings.logging)
"""

from cagateway.logging.setup import configure_logging

__all__ = ["configure_logging"]
