"""Tests for cagateway.ca.registry: CARegistry and backend loading."""

from __future__ import annotations

import dataclasses
from unittest.mock import MagicMock

import pytest

from cagateway.ca.base import CAError, CRLBackend, SignerBackend
from cagateway.ca.crl import CRLAdministrator
from cagateway.ca.registry import CaHandlePair, CARegistry, load_backend
from cagateway.ca.signer import InternalSigner

# ---------------------------------------------------------------------------
# Custom backends used via ``ext:``
# ---------------------------------------------------------------------------


class StaticCrl(CRLBackend):
    def to_pem(self):
        return "static"

    def generate_crl(self):
        return "static"

    def revoke_cert(self, serial, reason=None):
        pass

    def unrevoke_cert(self, serial):
        pass


class HalfCrl(CRLBackend):
    """Forgets to implement everything."""

    to_pem = CRLBackend.to_pem
    generate_crl = CRLBackend.generate_crl
    revoke_cert = CRLBackend.revoke_cert
    unrevoke_cert = CRLBackend.unrevoke_cert


def _pair(health=None, error=None) -> CaHandlePair:
    crl = MagicMock(spec=CRLBackend)
    if error is not None:
        crl.health_status.side_effect = error
    else:
        crl.health_status.return_value = health or {}
    return CaHandlePair(crl=crl, signer=MagicMock(spec=SignerBackend))


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestCARegistry:
    def test_from_settings(self, gateway_config):
        registry = CARegistry.from_settings(gateway_config.settings.certificate_authorities)
        pair = registry.get("rootca")
        assert isinstance(pair.crl, CRLAdministrator)
        assert isinstance(pair.signer, InternalSigner)
        assert pair.crl.to_pem().startswith("-----BEGIN X509 CRL-----")

    def test_lookup(self):
        pair = _pair()
        registry = CARegistry({"rootca": pair})
        assert registry.get("rootca") is pair
        assert registry.get("other") is None
        assert registry.get(None) is None
        assert "rootca" in registry
        assert "other" not in registry
        assert len(registry) == 1
        assert list(registry) == ["rootca"]

    def test_names_sorted(self):
        registry = CARegistry({"b": _pair(), "a": _pair()})
        assert registry.names == ["a", "b"]

    def test_read_only(self):
        source = {"rootca": _pair()}
        registry = CARegistry(source)
        source["late"] = _pair()
        assert registry.get("late") is None
        with pytest.raises(TypeError):
            registry._handles["x"] = _pair()  # type: ignore[index]

    def test_startup_failure_propagates(self, gateway_config, tmp_path):
        ca = gateway_config.settings.certificate_authorities["rootca"]
        broken = dataclasses.replace(
            ca,
            ca_cert=dataclasses.replace(ca.ca_cert, key_path=str(tmp_path / "gone.key")),
        )
        with pytest.raises(CAError, match="CA private key not found"):
            CARegistry.from_settings({"rootca": broken})

    def test_skip_startup_check(self, gateway_config, tmp_path):
        ca = gateway_config.settings.certificate_authorities["rootca"]
        broken = dataclasses.replace(
            ca,
            ca_cert=dataclasses.replace(ca.ca_cert, key_path=str(tmp_path / "gone.key")),
        )
        registry = CARegistry.from_settings({"rootca": broken}, startup_check=False)
        assert "rootca" in registry


class TestHealth:
    def test_ok(self):
        registry = CARegistry({"rootca": _pair(health={"revoked_count": 3})})
        assert registry.health() == {"rootca": {"status": "ok", "revoked_count": 3}}

    def test_error(self):
        registry = CARegistry({"rootca": _pair(error=CAError("key gone"))})
        assert registry.health() == {"rootca": {"status": "error", "detail": "key gone"}}


# ---------------------------------------------------------------------------
# load_backend
# ---------------------------------------------------------------------------


class TestLoadBackend:
    def test_internal(self, ca_settings):
        assert isinstance(load_backend("internal", SignerBackend, ca_settings), InternalSigner)
        assert isinstance(load_backend("internal", CRLBackend, ca_settings), CRLAdministrator)

    def test_ext(self, ca_settings):
        backend = load_backend(f"ext:{__name__}.StaticCrl", CRLBackend, ca_settings)
        assert isinstance(backend, StaticCrl)
        assert backend.ca_name == "rootca"

    def test_ext_builtin_path(self, ca_settings):
        backend = load_backend("ext:cagateway.ca.crl.CRLAdministrator", CRLBackend, ca_settings)
        assert isinstance(backend, CRLAdministrator)

    def test_unknown(self, ca_settings):
        with pytest.raises(CAError, match="Unknown SignerBackend 'hsm'"):
            load_backend("hsm", SignerBackend, ca_settings)

    def test_ext_not_qualified(self, ca_settings):
        with pytest.raises(CAError, match="must be fully qualified"):
            load_backend("ext:Lonely", SignerBackend, ca_settings)

    def test_ext_import_error(self, ca_settings):
        with pytest.raises(CAError, match="Failed to load backend"):
            load_backend("ext:cagateway.nowhere.Signer", SignerBackend, ca_settings)

    def test_ext_missing_class(self, ca_settings):
        with pytest.raises(CAError, match="Failed to load backend"):
            load_backend("ext:cagateway.ca.signer.Nothing", SignerBackend, ca_settings)

    def test_wrong_base(self, ca_settings):
        with pytest.raises(CAError, match="is not a subclass of SignerBackend"):
            load_backend("ext:cagateway.ca.crl.CRLAdministrator", SignerBackend, ca_settings)

    def test_abstract_methods(self, ca_settings):
        with pytest.raises(CAError, match="does not implement 'to_pem\\(\\)'"):
            load_backend(f"ext:{__name__}.HalfCrl", CRLBackend, ca_settings)
