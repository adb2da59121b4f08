"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation: these builders
are what the application actually reads.

Access pattern::

    from cagateway.config import get_config

    ca = get_config().settings.certificate_authorities["rootca"]
    print(ca.ca_cert.cert_path, sorted(ca.profiles))
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerSettings:
    """HTTP server configuration (bind address, workers, timeouts)."""

    bind: str
    port: int
    workers: int
    worker_class: str
    timeout: int
    graceful_timeout: int
    keepalive: int
    max_requests: int
    max_requests_jitter: int


def _build_server(data: dict | None) -> ServerSettings:
    d = data or {}
    return ServerSettings(
        bind=d.get("bind", "0.0.0.0"),  # noqa: S104
        port=d.get("port", 9292),
        workers=d.get("workers", 1),
        worker_class=d.get("worker_class", "sync"),
        timeout=d.get("timeout", 30),
        graceful_timeout=d.get("graceful_timeout", 30),
        keepalive=d.get("keepalive", 2),
        max_requests=d.get("max_requests", 0),
        max_requests_jitter=d.get("max_requests_jitter", 0),
    )


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApiSettings:
    """Request handling limits."""

    max_request_body_bytes: int


def _build_api(data: dict | None) -> ApiSettings:
    d = data or {}
    return ApiSettings(
        max_request_body_bytes=d.get("max_request_body_bytes", 65536),
    )


# ---------------------------------------------------------------------------
# Validity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValiditySettings:
    """How a requested validity period becomes a not-before/not-after pair."""

    backdate_seconds: int


def _build_validity(data: dict | None) -> ValiditySettings:
    d = data or {}
    return ValiditySettings(
        backdate_seconds=d.get("backdate_seconds", 6 * 60 * 60),
    )


# ---------------------------------------------------------------------------
# Certificate authorities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BasicConstraintsSettings:
    ca: bool
    path_length: int | None


@dataclass(frozen=True)
class SubjectItemPolicySettings:
    """Subject attributes a profile requires or tolerates.

    Attributes not listed in either tuple are dropped before signing.
    """

    required: tuple[str, ...]
    optional: tuple[str, ...]


@dataclass(frozen=True)
class ProfileSettings:
    """Certificate profile: extensions applied when signing."""

    basic_constraints: BasicConstraintsSettings
    key_usages: tuple[str, ...]
    extended_key_usages: tuple[str, ...]
    crl_distribution_points: tuple[str, ...]
    ocsp_urls: tuple[str, ...]
    ca_issuers_urls: tuple[str, ...]
    subject_item_policy: SubjectItemPolicySettings | None


@dataclass(frozen=True)
class CACertSettings:
    """Location of the CA certificate and signing key."""

    cert_path: str
    key_path: str
    key_password: str | None


@dataclass(frozen=True)
class CrlSettings:
    """Revocation list persistence and CRL signing parameters."""

    list_file: str | None
    number_file: str | None
    validity_hours: int
    hash_algorithm: str


@dataclass(frozen=True)
class CASettings:
    """One configured certificate authority."""

    name: str
    signer_backend: str
    crl_backend: str
    ca_cert: CACertSettings
    hash_algorithm: str
    crl: CrlSettings
    profiles: dict[str, ProfileSettings]


def _build_profile(data: dict | None) -> ProfileSettings:
    d = data or {}
    bc = d.get("basic_constraints") or {}
    policy_d = d.get("subject_item_policy")
    policy = None
    if policy_d is not None:
        policy = SubjectItemPolicySettings(
            required=tuple(policy_d.get("required", [])),
            optional=tuple(policy_d.get("optional", [])),
        )
    return ProfileSettings(
        basic_constraints=BasicConstraintsSettings(
            ca=bc.get("ca", False),
            path_length=bc.get("path_length"),
        ),
        key_usages=tuple(d.get("key_usages", [])),
        extended_key_usages=tuple(d.get("extended_key_usages", [])),
        crl_distribution_points=tuple(d.get("crl_distribution_points", [])),
        ocsp_urls=tuple(d.get("ocsp_urls", [])),
        ca_issuers_urls=tuple(d.get("ca_issuers_urls", [])),
        subject_item_policy=policy,
    )


def _build_ca(name: str, data: dict | None) -> CASettings:
    d = data or {}
    cert_d = d.get("ca_cert") or {}
    crl_d = d.get("crl") or {}
    hash_algorithm = d.get("hash_algorithm", "sha256")
    return CASettings(
        name=name,
        signer_backend=d.get("signer_backend", "internal"),
        crl_backend=d.get("crl_backend", "internal"),
        ca_cert=CACertSettings(
            cert_path=cert_d.get("cert_path", ""),
            key_path=cert_d.get("key_path", ""),
            key_password=cert_d.get("key_password"),
        ),
        hash_algorithm=hash_algorithm,
        crl=CrlSettings(
            list_file=crl_d.get("list_file"),
            number_file=crl_d.get("number_file"),
            validity_hours=crl_d.get("validity_hours", 168),
            hash_algorithm=crl_d.get("hash_algorithm", hash_algorithm),
        ),
        profiles={
            pname: _build_profile(pdata) for pname, pdata in (d.get("profiles") or {}).items()
        },
    )


def _build_certificate_authorities(data: dict | None) -> dict[str, CASettings]:
    return {name: _build_ca(name, cdata) for name, cdata in (data or {}).items()}


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditLogSettings:
    """Audit log output settings (file, rotation)."""

    enabled: bool
    file: str | None
    max_file_size_bytes: int
    backup_count: int


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format, audit)."""

    level: str
    format: str
    log_request_body: bool
    audit: AuditLogSettings


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    a = d.get("audit") or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
        log_request_body=d.get("log_request_body", False),
        audit=AuditLogSettings(
            enabled=a.get("enabled", True),
            file=a.get("file"),
            max_file_size_bytes=a.get("max_file_size_bytes", 104857600),
            backup_count=a.get("backup_count", 10),
        ),
    )


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GatewaySettings:
    server: ServerSettings
    api: ApiSettings
    validity: ValiditySettings
    logging: LoggingSettings
    certificate_authorities: dict[str, CASettings]


def build_settings(data: dict[str, Any]) -> GatewaySettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`GatewayConfig` initialization after
    schema validation and environment-variable resolution.
    """
    return GatewaySettings(
        server=_build_server(data.get("server")),
        api=_build_api(data.get("api")),
        validity=_build_validity(data.get("validity")),
        logging=_build_logging(data.get("logging")),
        certificate_authorities=_build_certificate_authorities(
            data.get("certificate_authorities"),
        ),
    )
