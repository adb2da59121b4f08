"""Loading of a CA's certificate and signing key from disk."""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from cagateway.ca.base import CAError

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes

    from cagateway.config.settings import CACertSettings

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CAMaterial:
    """A CA certificate and its matching private key."""

    certificate: x509.Certificate
    private_key: CertificateIssuerPrivateKeyTypes


def load_ca_material(settings: CACertSettings) -> CAMaterial:
    """Load and cross-check the CA certificate and key.

    Raises
    ------
    CAError
        If either file is missing or unreadable, or the key does not
        belong to the certificate.

    """
    cert = _load_cert(settings.cert_path)
    key = _load_key(settings.key_path, settings.key_password)
    _check_key_permissions(settings.key_path)

    cert_pub = cert.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    key_pub = key.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    if cert_pub != key_pub:
        msg = f"Private key {settings.key_path} does not match certificate {settings.cert_path}"
        raise CAError(msg)

    return CAMaterial(certificate=cert, private_key=key)  # type: ignore[arg-type]


def _load_cert(cert_path: str) -> x509.Certificate:
    if not cert_path:
        msg = "ca_cert.cert_path is required for the internal CA backend"
        raise CAError(msg)
    try:
        return x509.load_pem_x509_certificate(Path(cert_path).read_bytes())
    except FileNotFoundError:
        msg = f"CA certificate not found: {cert_path}"
        raise CAError(msg) from None
    except Exception as exc:  # noqa: BLE001
        msg = f"Failed to load CA certificate from {cert_path}: {exc}"
        raise CAError(msg) from exc


def _load_key(key_path: str, password: str | None):  # noqa: ANN202
    if not key_path:
        msg = "ca_cert.key_path is required for the internal CA backend"
        raise CAError(msg)
    try:
        return serialization.load_pem_private_key(
            Path(key_path).read_bytes(),
            password=password.encode() if password else None,
        )
    except FileNotFoundError:
        msg = f"CA private key not found: {key_path}"
        raise CAError(msg) from None
    except Exception as exc:  # noqa: BLE001
        msg = f"Failed to load CA private key from {key_path}: {exc}"
        raise CAError(msg) from exc


def _check_key_permissions(key_path: str) -> None:
    """Warn if the private key file is readable by group or others."""
    try:
        mode = os.stat(key_path).st_mode
    except OSError as exc:
        log.debug("Could not stat %s: %s", key_path, exc)
        return
    if mode & (stat.S_IRGRP | stat.S_IROTH | stat.S_IWGRP | stat.S_IWOTH):
        log.warning(
            "Private key file '%s' has overly permissive permissions (mode=%o). "
            "Recommend chmod 600.",
            key_path,
            stat.S_IMODE(mode),
        )
