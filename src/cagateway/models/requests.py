"""Typed request values built from validated HTTP parameters.

All models are frozen dataclasses; nothing downstream of the validator
ever sees the raw parameter map.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from cryptography import x509

    from cagateway.ca.factories import SPKI
    from cagateway.ca.names import Subject

_EMPTY: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True)
class ValidityWindow:
    not_before: datetime
    not_after: datetime


@dataclass(frozen=True)
class IssueRequest:
    """A validated issuance request.

    Exactly one of ``csr`` / ``spki`` is set.  ``extensions`` holds the
    ``extensions[...]`` parameters, read-only.
    """

    ca_name: str
    profile: str
    validity_period: str
    subject: Subject
    csr: str | None = None
    spki: str | None = None
    extensions: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)


@dataclass(frozen=True)
class RevocationRequest:
    """A validated revoke or unrevoke request.

    For revoke, ``serial`` is the text the client sent and ``reason`` is
    ``None`` when absent or blank.  For unrevoke, ``serial`` is already
    an ``int``.
    """

    ca_name: str
    serial: str | int
    reason: str | None = None


@dataclass(frozen=True)
class SigningRequest:
    """Everything a signer needs for one certificate."""

    profile_name: str
    subject: Subject
    san_names: tuple[str | x509.GeneralName, ...]
    validity: ValidityWindow
    csr: x509.CertificateSigningRequest | None = None
    spki: SPKI | None = None

    def as_sign_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for :meth:`SignerBackend.sign`."""
        kwargs: dict[str, Any] = {}
        if self.csr is not None:
            kwargs["csr"] = self.csr
        else:
            kwargs["spki"] = self.spki
        kwargs.update(
            profile_name=self.profile_name,
            subject=self.subject,
            san_names=list(self.san_names),
            not_before=self.validity.not_before,
            not_after=self.validity.not_after,
        )
        return kwargs
