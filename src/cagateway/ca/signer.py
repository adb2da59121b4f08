"""Internal signer -- issue certificates with a local CA key.

Loads the CA certificate and key named in ``ca_cert`` and builds
X.509 certificates from either a CSR or a bare SPKI, with the
extensions the requested profile calls for (basic constraints, key
usage, EKU, SAN, AKI, SKI, CRL distribution points, AIA).
"""

from __future__ import annotations

import logging
import secrets
import threading
from typing import TYPE_CHECKING

from cryptography import x509

from cagateway.ca.base import CAError, IssuedCertificate, SignerBackend
from cagateway.ca.cert_utils import (
    build_authority_information_access,
    build_crl_distribution_points,
    build_eku,
    build_key_usage,
    signing_hash,
)
from cagateway.ca.material import CAMaterial, load_ca_material
from cagateway.ca.names import to_general_names

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

    from cagateway.ca.factories import SPKI
    from cagateway.ca.names import Subject
    from cagateway.config.settings import CASettings, ProfileSettings

log = logging.getLogger(__name__)


def random_serial() -> int:
    """Random positive serial of at most 159 bits (RFC 5280 §4.1.2.2)."""
    return int.from_bytes(secrets.token_bytes(20), "big") >> 1


class InternalSigner(SignerBackend):
    """Sign certificates using the CA's own certificate and key.

    The key material is loaded on first use (or by
    :meth:`startup_check`) and then held for the process lifetime.
    """

    def __init__(self, ca_settings: CASettings) -> None:
        super().__init__(ca_settings)
        self._material: CAMaterial | None = None
        self._load_lock = threading.Lock()

    def startup_check(self) -> None:
        """Verify the CA certificate and key are loadable."""
        self._ensure_loaded()

    def _ensure_loaded(self) -> CAMaterial:
        if self._material is None:
            with self._load_lock:
                if self._material is None:
                    self._material = load_ca_material(self._settings.ca_cert)
                    log.info(
                        "Signer for CA '%s' loaded (cert=%s)",
                        self.ca_name,
                        self._settings.ca_cert.cert_path,
                    )
        return self._material

    def _profile(self, profile_name: str) -> ProfileSettings:
        profile = self._settings.profiles.get(profile_name)
        if profile is None:
            msg = f"Unknown profile '{profile_name}' for CA '{self.ca_name}'"
            raise CAError(msg)
        return profile

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
        """Sign a certificate for the public key in *csr* or *spki*.

        The subject and SANs come from the request, not from the CSR;
        the CSR contributes only its public key.
        """
        if (csr is None) == (spki is None):
            msg = "Exactly one of a CSR or an SPKI is required to sign"
            raise CAError(msg)

        profile = self._profile(profile_name)
        material = self._ensure_loaded()

        public_key = csr.public_key() if csr is not None else spki.public_key  # type: ignore[union-attr]

        policy = profile.subject_item_policy
        if policy is not None:
            subject = subject.restricted_to(policy.required, policy.optional)
        if subject.empty:
            msg = "Certificate subject is empty after applying the profile policy"
            raise CAError(msg)

        serial_number = random_serial()

        try:
            builder = self._build_cert_base(
                material,
                public_key,
                subject.to_name(),
                to_general_names(san_names),
                serial_number,
                not_before,
                not_after,
                profile,
            )
            cert = builder.sign(
                material.private_key,
                signing_hash(material.private_key, self._settings.hash_algorithm),  # type: ignore[arg-type]
            )
        except CAError:
            raise
        except Exception as exc:  # noqa: BLE001
            msg = f"Failed to build/sign certificate: {exc}"
            raise CAError(msg) from exc

        log.info(
            "CA '%s' signed certificate: serial=%x, subject=%s, profile=%s",
            self.ca_name,
            serial_number,
            subject,
            profile_name,
        )
        return IssuedCertificate(certificate=cert)

    @staticmethod
    def _build_cert_base(  # noqa: PLR0913
        material: CAMaterial,
        public_key: PublicKeyTypes,
        name: x509.Name,
        general_names: list[x509.GeneralName],
        serial_number: int,
        not_before: datetime,
        not_after: datetime,
        profile: ProfileSettings,
    ) -> x509.CertificateBuilder:
        """Return a builder carrying every extension the profile asks for."""
        issuer = material.certificate
        builder = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(issuer.subject)
            .public_key(public_key)  # type: ignore[arg-type]
            .serial_number(serial_number)
            .not_valid_before(not_before)
            .not_valid_after(not_after)
        )

        bc = profile.basic_constraints
        builder = builder.add_extension(
            x509.BasicConstraints(
                ca=bc.ca,
                path_length=bc.path_length if bc.ca else None,
            ),
            critical=True,
        )

        if profile.key_usages:
            builder = builder.add_extension(
                build_key_usage(profile.key_usages),
                critical=True,
            )

        if profile.extended_key_usages:
            builder = builder.add_extension(
                build_eku(profile.extended_key_usages),
                critical=False,
            )

        if general_names:
            builder = builder.add_extension(
                x509.SubjectAlternativeName(general_names),
                critical=False,
            )

        builder = builder.add_extension(
            x509.SubjectKeyIdentifier.from_public_key(public_key),  # type: ignore[arg-type]
            critical=False,
        )
        builder = builder.add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(
                issuer.public_key(),  # type: ignore[arg-type]
            ),
            critical=False,
        )

        if profile.crl_distribution_points:
            builder = builder.add_extension(
                build_crl_distribution_points(profile.crl_distribution_points),
                critical=False,
            )

        if profile.ocsp_urls or profile.ca_issuers_urls:
            builder = builder.add_extension(
                build_authority_information_access(
                    profile.ocsp_urls,
                    profile.ca_issuers_urls,
                ),
                critical=False,
            )

        return builder
