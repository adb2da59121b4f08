"""Credential factories: turn request text into parsed key material.

:class:`CSRFactory` accepts a PKCS#10 request as PEM or base64 DER.
:class:`SPKIFactory` accepts either a PEM ``PUBLIC KEY`` block or a
Netscape SPKAC (the ``SignedPublicKeyAndChallenge`` structure emitted
by HTML ``<keygen>`` and ``openssl spkac``), optionally prefixed with
``SPKAC=``.

Both verify the proof-of-possession signature where the format has one
and raise :class:`~cagateway.ca.base.CAError` on any failure.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from asn1crypto import algos, core, keys
from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, padding, rsa

from cagateway.ca.base import CAError

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

    from cagateway.ca.names import Subject

log = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_SPKAC_PREFIX = "SPKAC="

_SPKAC_HASHES: dict[str, type[hashes.HashAlgorithm]] = {
    "md5": hashes.MD5,
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


# ---------------------------------------------------------------------------
# SPKAC ASN.1 structures
# ---------------------------------------------------------------------------


class PublicKeyAndChallenge(core.Sequence):
    _fields = [
        ("spki", keys.PublicKeyInfo),
        ("challenge", core.IA5String),
    ]


class SignedPublicKeyAndChallenge(core.Sequence):
    _fields = [
        ("public_key_and_challenge", PublicKeyAndChallenge),
        ("signature_algorithm", algos.SignedDigestAlgorithm),
        ("signature", core.OctetBitString),
    ]


def _as_text(material: str | bytes) -> str:
    if isinstance(material, bytes):
        try:
            return material.decode("ascii")
        except UnicodeDecodeError as exc:
            msg = "Credential material must be ASCII (PEM or base64)"
            raise CAError(msg) from exc
    return material


def _b64decode(text: str, label: str) -> bytes:
    try:
        return base64.b64decode(_WHITESPACE_RE.sub("", text), validate=True)
    except (binascii.Error, ValueError) as exc:
        msg = f"{label} is neither PEM nor valid base64"
        raise CAError(msg) from exc


# ---------------------------------------------------------------------------
# CSR
# ---------------------------------------------------------------------------


class CSRFactory:
    """Build :class:`x509.CertificateSigningRequest` objects from text."""

    def build(self, *, csr: str | bytes) -> x509.CertificateSigningRequest:
        text = _as_text(csr).strip()
        if not text:
            msg = "CSR is empty"
            raise CAError(msg)
        try:
            if text.startswith("-----BEGIN"):
                parsed = x509.load_pem_x509_csr(text.encode("ascii"))
            else:
                parsed = x509.load_der_x509_csr(_b64decode(text, "CSR"))
        except CAError:
            raise
        except (ValueError, UnsupportedAlgorithm) as exc:
            msg = f"Unable to parse CSR: {exc}"
            raise CAError(msg) from exc

        if not parsed.is_signature_valid:
            msg = "CSR signature is invalid"
            raise CAError(msg)
        return parsed


# ---------------------------------------------------------------------------
# SPKI
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SPKI:
    """A bare public key and the subject supplied alongside it."""

    public_key: PublicKeyTypes
    subject: Subject
    challenge: str | None = None


class SPKIFactory:
    """Build :class:`SPKI` values from a PEM public key or an SPKAC."""

    def build(self, *, spki: str | bytes, subject: Subject) -> SPKI:
        text = _as_text(spki).strip()
        if not text:
            msg = "SPKI is empty"
            raise CAError(msg)

        if text.startswith("-----BEGIN"):
            try:
                public_key = serialization.load_pem_public_key(text.encode("ascii"))
            except (ValueError, UnsupportedAlgorithm) as exc:
                msg = f"Unable to parse SPKI public key: {exc}"
                raise CAError(msg) from exc
            return SPKI(public_key=public_key, subject=subject)

        if text.startswith(_SPKAC_PREFIX):
            text = text[len(_SPKAC_PREFIX) :]
        public_key, challenge = self._parse_spkac(_b64decode(text, "SPKAC"))
        return SPKI(public_key=public_key, subject=subject, challenge=challenge)

    @staticmethod
    def _parse_spkac(der: bytes) -> tuple[PublicKeyTypes, str]:
        try:
            spkac = SignedPublicKeyAndChallenge.load(der, strict=True)
            pkac = spkac["public_key_and_challenge"]
            signed_data = pkac.dump()
            challenge = pkac["challenge"].native
            public_key = serialization.load_der_public_key(pkac["spki"].dump())
            signature = spkac["signature"].native
            sig_algo = spkac["signature_algorithm"]
            signature_algo = sig_algo.signature_algo
            hash_name = None if signature_algo in ("ed25519", "ed448") else sig_algo.hash_algo
        except (ValueError, TypeError, KeyError, UnsupportedAlgorithm) as exc:
            msg = f"Unable to parse SPKAC: {exc}"
            raise CAError(msg) from exc

        _verify_spkac_signature(public_key, signature, signed_data, hash_name)
        log.debug("Parsed SPKAC (algorithm=%s, challenge=%r)", signature_algo, challenge)
        return public_key, challenge or ""


def _verify_spkac_signature(
    public_key: PublicKeyTypes,
    signature: bytes,
    data: bytes,
    hash_name: str | None,
) -> None:
    digest = None
    if hash_name is not None:
        hash_cls = _SPKAC_HASHES.get(hash_name)
        if hash_cls is None:
            msg = f"Unsupported SPKAC signature hash '{hash_name}'"
            raise CAError(msg)
        digest = hash_cls()

    try:
        if isinstance(public_key, rsa.RSAPublicKey) and digest is not None:
            public_key.verify(signature, data, padding.PKCS1v15(), digest)
        elif isinstance(public_key, ec.EllipticCurvePublicKey) and digest is not None:
            public_key.verify(signature, data, ec.ECDSA(digest))
        elif isinstance(public_key, dsa.DSAPublicKey) and digest is not None:
            public_key.verify(signature, data, digest)
        elif isinstance(public_key, (ed25519.Ed25519PublicKey, ed448.Ed448PublicKey)):
            public_key.verify(signature, data)
        else:
            msg = f"Unsupported SPKAC key type {type(public_key).__name__}"
            raise CAError(msg)
    except InvalidSignature:
        msg = "SPKAC signature is invalid"
        raise CAError(msg) from None
