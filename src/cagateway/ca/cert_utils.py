"""Shared certificate-building helpers for CA backends.

Profile settings name key usages in either ``snake_case`` or the
RFC 5280 ``camelCase`` spelling; both map onto the same
:class:`x509.KeyUsage` fields.
"""

from __future__ import annotations

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ed448, ed25519
from cryptography.x509.oid import AuthorityInformationAccessOID, ExtendedKeyUsageOID

from cagateway.ca.base import CAError

# ---------------------------------------------------------------------------
# Key usage / EKU mappings
# ---------------------------------------------------------------------------

_KEY_USAGE_ALIASES = {
    "digital_signature": "digital_signature",
    "digitalSignature": "digital_signature",
    "content_commitment": "content_commitment",
    "nonRepudiation": "content_commitment",
    "key_encipherment": "key_encipherment",
    "keyEncipherment": "key_encipherment",
    "data_encipherment": "data_encipherment",
    "dataEncipherment": "data_encipherment",
    "key_agreement": "key_agreement",
    "keyAgreement": "key_agreement",
    "key_cert_sign": "key_cert_sign",
    "keyCertSign": "key_cert_sign",
    "crl_sign": "crl_sign",
    "cRLSign": "crl_sign",
    "encipher_only": "encipher_only",
    "encipherOnly": "encipher_only",
    "decipher_only": "decipher_only",
    "decipherOnly": "decipher_only",
}

_EKU_OIDS = {
    "server_auth": ExtendedKeyUsageOID.SERVER_AUTH,
    "serverAuth": ExtendedKeyUsageOID.SERVER_AUTH,
    "client_auth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "clientAuth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "code_signing": ExtendedKeyUsageOID.CODE_SIGNING,
    "codeSigning": ExtendedKeyUsageOID.CODE_SIGNING,
    "email_protection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
    "emailProtection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
    "time_stamping": ExtendedKeyUsageOID.TIME_STAMPING,
    "timeStamping": ExtendedKeyUsageOID.TIME_STAMPING,
    "ocsp_signing": ExtendedKeyUsageOID.OCSP_SIGNING,
    "OCSPSigning": ExtendedKeyUsageOID.OCSP_SIGNING,
}

KEY_USAGE_NAMES = frozenset(_KEY_USAGE_ALIASES)
EKU_NAMES = frozenset(_EKU_OIDS)

HASH_ALGORITHMS: dict[str, hashes.HashAlgorithm] = {
    "sha256": hashes.SHA256(),
    "sha384": hashes.SHA384(),
    "sha512": hashes.SHA512(),
}


def build_key_usage(usages: tuple[str, ...]) -> x509.KeyUsage:
    """Build an :class:`x509.KeyUsage` extension from config strings."""
    usage_set = set()
    for name in usages:
        field = _KEY_USAGE_ALIASES.get(name)
        if field is None:
            msg = f"Unknown key usage '{name}'; supported: {sorted(KEY_USAGE_NAMES)}"
            raise CAError(msg)
        usage_set.add(field)
    ka = "key_agreement" in usage_set
    return x509.KeyUsage(
        digital_signature="digital_signature" in usage_set,
        content_commitment="content_commitment" in usage_set,
        key_encipherment="key_encipherment" in usage_set,
        data_encipherment="data_encipherment" in usage_set,
        key_agreement=ka,
        key_cert_sign="key_cert_sign" in usage_set,
        crl_sign="crl_sign" in usage_set,
        encipher_only="encipher_only" in usage_set if ka else False,
        decipher_only="decipher_only" in usage_set if ka else False,
    )


def build_eku(ekus: tuple[str, ...]) -> x509.ExtendedKeyUsage:
    """Build an :class:`x509.ExtendedKeyUsage` extension from config strings."""
    oids = []
    for name in ekus:
        oid = _EKU_OIDS.get(name)
        if oid is None:
            msg = f"Unknown extended key usage '{name}'; supported: {sorted(EKU_NAMES)}"
            raise CAError(msg)
        oids.append(oid)
    return x509.ExtendedKeyUsage(oids)


def build_crl_distribution_points(urls: tuple[str, ...]) -> x509.CRLDistributionPoints:
    return x509.CRLDistributionPoints(
        [
            x509.DistributionPoint(
                full_name=[x509.UniformResourceIdentifier(url)],
                relative_name=None,
                reasons=None,
                crl_issuer=None,
            )
            for url in urls
        ],
    )


def build_authority_information_access(
    ocsp_urls: tuple[str, ...],
    ca_issuers_urls: tuple[str, ...],
) -> x509.AuthorityInformationAccess:
    """OCSP responders first, then caIssuers locations."""
    descriptions = [
        x509.AccessDescription(
            AuthorityInformationAccessOID.OCSP,
            x509.UniformResourceIdentifier(url),
        )
        for url in ocsp_urls
    ]
    descriptions.extend(
        x509.AccessDescription(
            AuthorityInformationAccessOID.CA_ISSUERS,
            x509.UniformResourceIdentifier(url),
        )
        for url in ca_issuers_urls
    )
    return x509.AuthorityInformationAccess(descriptions)


def signing_hash(private_key: object, name: str) -> hashes.HashAlgorithm | None:
    """Return the digest to sign with, or ``None`` for EdDSA keys."""
    if isinstance(private_key, (ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey)):
        return None
    try:
        return HASH_ALGORITHMS[name]
    except KeyError:
        msg = f"Unsupported hash algorithm '{name}'; supported: {sorted(HASH_ALGORITHMS)}"
        raise CAError(msg) from None
