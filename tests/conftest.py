"""Root conftest for the CAGATEWAY test suite."""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from cryptography import x509  # noqa: E402
from cryptography.hazmat.primitives import hashes, serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import ec, rsa  # noqa: E402
from cryptography.x509.oid import NameOID  # noqa: E402

# ---------------------------------------------------------------------------
# Crypto material
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def root_key() -> rsa.RSAPrivateKey:
    """One RSA key for the whole session; key generation is slow."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def root_cert(root_key) -> x509.Certificate:
    """Self-signed root CA certificate for :func:`root_key`."""
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "CAGATEWAY Test"),
            x509.NameAttribute(NameOID.COMMON_NAME, "Test Root CA"),
        ],
    )
    now = datetime.now(UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(root_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=3650))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(root_key.public_key()),
            critical=False,
        )
        .sign(root_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def leaf_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture()
def ca_files(tmp_path: Path, root_key, root_cert) -> dict[str, str]:
    """Write the root CA certificate and key to *tmp_path*."""
    cert_path = tmp_path / "rootca.pem"
    key_path = tmp_path / "rootca.key"
    cert_path.write_bytes(root_cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        root_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ),
    )
    key_path.chmod(0o600)
    return {
        "cert_path": str(cert_path),
        "key_path": str(key_path),
        "list_file": str(tmp_path / "rootca.crl.list"),
        "number_file": str(tmp_path / "rootca.crl.number"),
    }


@pytest.fixture()
def make_csr(leaf_key):
    """Return a factory building a PEM CSR signed by :func:`leaf_key`."""

    def _make(cn: str = "client.example.com", key=None) -> str:
        key = key or leaf_key
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cn)]))
            .sign(key, hashes.SHA256())
        )
        return csr.public_bytes(serialization.Encoding.PEM).decode("ascii")

    return _make


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture()
def config_data(ca_files) -> dict:
    """A complete single-CA configuration backed by :func:`ca_files`."""
    return {
        "logging": {"level": "DEBUG", "format": "text", "audit": {"enabled": True}},
        "certificate_authorities": {
            "rootca": {
                "ca_cert": {
                    "cert_path": ca_files["cert_path"],
                    "key_path": ca_files["key_path"],
                },
                "crl": {
                    "list_file": ca_files["list_file"],
                    "number_file": ca_files["number_file"],
                    "validity_hours": 24,
                },
                "profiles": {
                    "server": {
                        "basic_constraints": {"ca": False},
                        "key_usages": ["digitalSignature", "keyEncipherment"],
                        "extended_key_usages": ["serverAuth"],
                        "crl_distribution_points": ["http://crl.example.com/rootca.crl"],
                        "ocsp_urls": ["http://ocsp.example.com"],
                    },
                    "subroot": {
                        "basic_constraints": {"ca": True, "path_length": 0},
                        "key_usages": ["keyCertSign", "cRLSign"],
                        "subject_item_policy": {
                            "required": ["CN"],
                            "optional": ["O", "C"],
                        },
                    },
                },
            },
        },
    }


@pytest.fixture()
def config_file(tmp_path: Path, config_data: dict) -> Path:
    """Write *config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


@pytest.fixture()
def gateway_config(config_file):
    from cagateway.config import GatewayConfig

    return GatewayConfig(config_file=config_file)


@pytest.fixture()
def ca_settings(gateway_config):
    """Settings of the ``rootca`` CA."""
    return gateway_config.settings.certificate_authorities["rootca"]


@pytest.fixture()
def app(gateway_config):
    from cagateway.app import create_app

    application = create_app(config=gateway_config)
    application.config["TESTING"] = True
    return application


@pytest.fixture()
def client(app):
    return app.test_client()


# ---------------------------------------------------------------------------
# Global state cleanup: autouse so every test gets a fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the GatewayConfig singleton before and after every test."""
    from cagateway.config import GatewayConfig

    GatewayConfig.reset()
    yield
    GatewayConfig.reset()


@pytest.fixture(autouse=True)
def _restore_cagateway_loggers():
    """Undo what :func:`configure_logging` does to the logger tree."""
    yield
    for name in ("cagateway", "cagateway.access", "cagateway.audit"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True
        logger.disabled = False
        logger.setLevel(logging.NOTSET)
