"""Abstract base classes for CA engine backends.

Every configured CA is served by two objects:

* a :class:`SignerBackend`, which turns a public key (from a CSR or an
  SPKI) plus subject, SAN names and a validity window into a signed
  certificate;
* a :class:`CRLBackend`, which owns the revocation list for that CA and
  produces signed CRLs.

Built-in implementations live in :mod:`cagateway.ca.signer` and
:mod:`cagateway.ca.crl`.  Custom implementations are plugged in with
``signer_backend: ext:package.module.Class`` (see
:mod:`cagateway.ca.registry`).
"""

from __future__ import annotations

import abc
import hashlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from cryptography.hazmat.primitives import serialization

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from cryptography import x509

    from cagateway.ca.factories import SPKI
    from cagateway.ca.names import Subject
    from cagateway.config.settings import CASettings

log = logging.getLogger(__name__)


class CAError(Exception):
    """Raised by CA backends and credential factories on failure.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.  Returned to the
        HTTP client unchanged.
    retryable:
        Whether the failure is transient and the operation may be retried.

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


@dataclass(frozen=True)
class IssuedCertificate:
    """Result of a successful signing operation."""

    certificate: x509.Certificate

    @property
    def serial_number(self) -> int:
        return self.certificate.serial_number

    @property
    def not_before(self) -> datetime:
        return self.certificate.not_valid_before_utc

    @property
    def not_after(self) -> datetime:
        return self.certificate.not_valid_after_utc

    @property
    def fingerprint(self) -> str:
        """SHA-256 hex digest of the DER encoding."""
        der = self.certificate.public_bytes(serialization.Encoding.DER)
        return hashlib.sha256(der).hexdigest()

    def to_pem(self) -> str:
        return self.certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")


class SignerBackend(abc.ABC):
    """Base class for certificate signers.

    Parameters
    ----------
    ca_settings:
        Configuration of the CA this signer serves.

    """

    def __init__(self, ca_settings: CASettings) -> None:
        self._settings = ca_settings

    @property
    def ca_name(self) -> str:
        return self._settings.name

    @abc.abstractmethod
    def sign(  # noqa: PLR0913
        self,
        *,
        csr: x509.CertificateSigningRequest | None = None,
        spki: SPKI | None = None,
        profile_name: str,
        subject: Subject,
        san_names: Sequence[str | x509.GeneralName],
        not_before: datetime,
        not_after: datetime,
    ) -> IssuedCertificate:
        """Sign a certificate for the key in *csr* or *spki*.

        Parameters
        ----------
        csr:
            Parsed PKCS#10 request.  Mutually exclusive with *spki*.
        spki:
            Parsed public key with an out-of-band subject.
        profile_name:
            Name of a profile configured on this CA.
        subject:
            Distinguished name for the certificate.
        san_names:
            Subject alternative names; plain strings or typed
            :class:`x509.GeneralName` items.
        not_before, not_after:
            Validity window.

        Returns
        -------
        IssuedCertificate

        Raises
        ------
        CAError
            On any signing failure, including an unknown profile.

        """

    def startup_check(self) -> None:
        """Verify the signer is usable.  Default implementation is a no-op.

        Raises
        ------
        CAError
            If the backend is misconfigured.

        """


class CRLBackend(abc.ABC):
    """Base class for revocation list managers.

    Implementations serialize their own state changes; the gateway
    calls them from concurrent request threads without extra locking.
    """

    def __init__(self, ca_settings: CASettings) -> None:
        self._settings = ca_settings

    @property
    def ca_name(self) -> str:
        return self._settings.name

    @abc.abstractmethod
    def to_pem(self) -> str:
        """Return the current CRL without regenerating it."""

    @abc.abstractmethod
    def generate_crl(self) -> str:
        """Build, sign and publish a fresh CRL; return it as PEM."""

    @abc.abstractmethod
    def revoke_cert(self, serial: int | str, reason: int | str | None = None) -> None:
        """Add *serial* to the revocation list and regenerate the CRL.

        Both arguments are accepted as supplied by the client and are
        coerced by the implementation.
        """

    @abc.abstractmethod
    def unrevoke_cert(self, serial: int) -> None:
        """Remove *serial* from the revocation list and regenerate the CRL."""

    def startup_check(self) -> None:
        """Verify the backend is usable.  Default implementation is a no-op."""

    def health_status(self) -> dict[str, Any]:
        """Return status details for ``/healthz``."""
        return {}
