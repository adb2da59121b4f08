"""Audit events for CA operations.

Every state-changing or externally visible CA operation is recorded on
the ``cagateway.audit`` logger with an ``event_id`` field for
filtering.  Extra fields pass through
:func:`~cagateway.logging.sanitize.sanitize_for_logs` first.
"""

from __future__ import annotations

import logging
from typing import Any

from cagateway.logging.sanitize import sanitize_for_logs

audit_log = logging.getLogger("cagateway.audit")


def _emit(
    event_id: str,
    message: str,
    *args: Any,  # noqa: ANN401
    ca_name: str | None = None,
    severity: str = "INFO",
    **extra: Any,  # noqa: ANN401
) -> None:
    data: dict[str, object] = {"event_id": event_id}
    if ca_name is not None:
        data["ca_name"] = ca_name
    data.update(sanitize_for_logs(extra))
    level = getattr(logging, severity.upper(), logging.INFO)
    audit_log.log(level, message, *args, extra=data)


def certificate_issued(
    ca_name: str,
    *,
    serial: int | None,
    subject: str,
    profile: str,
    san_count: int,
) -> None:
    _emit(
        "cagateway.audit.certificate_issued",
        "Certificate issued by %s: serial=%s",
        ca_name,
        format(serial, "x") if isinstance(serial, int) else serial,
        ca_name=ca_name,
        subject=subject,
        profile=profile,
        san_count=san_count,
    )


def certificate_revoked(ca_name: str, *, serial: str | int, reason: str | None) -> None:
    _emit(
        "cagateway.audit.certificate_revoked",
        "Certificate revoked on %s: serial=%s",
        ca_name,
        serial,
        ca_name=ca_name,
        reason=reason,
        severity="WARNING",
    )


def certificate_unrevoked(ca_name: str, *, serial: int) -> None:
    _emit(
        "cagateway.audit.certificate_unrevoked",
        "Certificate unrevoked on %s: serial=%s",
        ca_name,
        serial,
        ca_name=ca_name,
        severity="WARNING",
    )


def crl_generated(ca_name: str) -> None:
    _emit(
        "cagateway.audit.crl_generated",
        "CRL generated for %s",
        ca_name,
        ca_name=ca_name,
    )


def operation_failed(operation: str, *, ca_name: str | None, detail: str) -> None:
    """Record a CA-side failure of a state-changing operation."""
    _emit(
        "cagateway.audit.operation_failed",
        "%s failed: %s",
        operation,
        detail,
        ca_name=ca_name,
        operation=operation,
        severity="ERROR",
    )
