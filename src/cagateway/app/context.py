"""Wiring of the gateway object graph.

The :class:`GatewayService` is built once during application startup
and stored on the Flask app via ``app.extensions["gateway"]``.  It is
reachable from any request context with :func:`get_gateway`.

Usage::

    from cagateway.app.context import get_gateway

    outcome = get_gateway().get_crl("rootca")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import current_app

from cagateway.ca.factories import CSRFactory, SPKIFactory
from cagateway.ca.registry import CARegistry
from cagateway.services.gateway import GatewayService
from cagateway.services.subject_parser import SubjectParser
from cagateway.services.validity import ValidityPeriodConverter

if TYPE_CHECKING:
    from cagateway.config.settings import GatewaySettings


def build_gateway(
    settings: GatewaySettings,
    registry: CARegistry | None = None,
) -> GatewayService:
    """Construct the dispatcher and its collaborators from *settings*.

    Parameters
    ----------
    settings:
        Frozen configuration snapshot.
    registry:
        Pre-built registry; when ``None`` one is built (and every CA
        backend started) from ``settings.certificate_authorities``.

    """
    if registry is None:
        registry = CARegistry.from_settings(settings.certificate_authorities)
    return GatewayService(
        registry=registry,
        subject_parser=SubjectParser(),
        validity_converter=ValidityPeriodConverter(
            backdate_seconds=settings.validity.backdate_seconds,
        ),
        csr_factory=CSRFactory(),
        spki_factory=SPKIFactory(),
    )


def get_gateway() -> GatewayService:
    """Return the :class:`GatewayService` for the current app.

    Must be called within a Flask application or request context.
    """
    return current_app.extensions["gateway"]
