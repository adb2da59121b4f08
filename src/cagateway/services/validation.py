"""Per-operation parameter checks.

Each validator walks a fixed checklist, stops at the first failure
with a stable message, and returns a frozen request model.  A key that
was sent with an empty value counts as present.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from cagateway.core.coercion import to_int
from cagateway.core.errors import (
    CA_MUST_BE_PROVIDED,
    MUST_PROVIDE_CA,
    MUST_PROVIDE_CSR_OR_SPKI,
    MUST_PROVIDE_PROFILE,
    MUST_PROVIDE_SUBJECT,
    MUST_PROVIDE_VALIDITY_PERIOD,
    SERIAL_MUST_BE_PROVIDED,
    CaNotFoundError,
    ClientInputError,
)
from cagateway.models.requests import IssueRequest, RevocationRequest

if TYPE_CHECKING:
    from cagateway.ca.registry import CARegistry
    from cagateway.services.subject_parser import Pairs, SubjectParser


def scalar(value: Any) -> str | None:  # noqa: ANN401
    """Return *value* if it is a single string, else ``None``."""
    return value if isinstance(value, str) else None


def _require_ca(params: Mapping[str, Any], registry: CARegistry, missing: str) -> str:
    if "ca" not in params:
        raise ClientInputError(missing)
    ca_name = scalar(params["ca"])
    if ca_name is None or registry.get(ca_name) is None:
        raise CaNotFoundError(ca_name)
    return ca_name


def validate_issue(
    params: Mapping[str, Any],
    subject_source: str | bytes | Pairs,
    registry: CARegistry,
    subject_parser: SubjectParser,
) -> IssueRequest:
    """Check an issuance request.

    Order: ca, CA known, profile, validityPeriod, csr or spki, subject.
    The subject is parsed from *subject_source* (the raw request
    parameters) only after the other checks pass.
    """
    ca_name = _require_ca(params, registry, MUST_PROVIDE_CA)
    if "profile" not in params:
        raise ClientInputError(MUST_PROVIDE_PROFILE)
    if "validityPeriod" not in params:
        raise ClientInputError(MUST_PROVIDE_VALIDITY_PERIOD)
    if "csr" not in params and "spki" not in params:
        raise ClientInputError(MUST_PROVIDE_CSR_OR_SPKI)

    subject = subject_parser.parse(subject_source, "subject")
    if subject.empty:
        raise ClientInputError(MUST_PROVIDE_SUBJECT)

    extensions = params.get("extensions")
    if not isinstance(extensions, Mapping):
        extensions = {}

    # csr wins when both are sent
    if "csr" in params:
        material = {"csr": scalar(params["csr"]) or ""}
    else:
        material = {"spki": scalar(params["spki"]) or ""}

    return IssueRequest(
        ca_name=ca_name,
        profile=scalar(params["profile"]) or "",
        validity_period=scalar(params["validityPeriod"]) or "",
        subject=subject,
        extensions=MappingProxyType(dict(extensions)),
        **material,
    )


def validate_revoke(params: Mapping[str, Any], registry: CARegistry) -> RevocationRequest:
    """Check a revocation request.

    The serial is passed on as sent; the CRL backend coerces it.  A
    reason that is blank after trimming is treated as absent.
    """
    ca_name = _require_ca(params, registry, CA_MUST_BE_PROVIDED)
    if "serial" not in params:
        raise ClientInputError(SERIAL_MUST_BE_PROVIDED)

    reason = scalar(params.get("reason"))
    if reason is not None and not reason.strip():
        reason = None

    return RevocationRequest(ca_name=ca_name, serial=params["serial"], reason=reason)


def validate_unrevoke(params: Mapping[str, Any], registry: CARegistry) -> RevocationRequest:
    """Check an unrevocation request and coerce the serial to ``int``."""
    ca_name = _require_ca(params, registry, CA_MUST_BE_PROVIDED)
    if "serial" not in params:
        raise ClientInputError(SERIAL_MUST_BE_PROVIDED)

    # Kept for compatibility: non-numeric serials become 0 instead of
    # being rejected, so "unrevoke foo" is an accepted no-op.
    return RevocationRequest(ca_name=ca_name, serial=to_int(params["serial"]))
