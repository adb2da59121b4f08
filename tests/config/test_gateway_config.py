"""Tests for GatewayConfig loading, env-var resolution and validation."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import yaml

from cagateway.config import ConfigValidationError, GatewayConfig, get_config


def _base_config() -> dict:
    return {
        "certificate_authorities": {
            "rootca": {
                "ca_cert": {"cert_path": "/tmp/root.pem", "key_path": "/tmp/root.key"},
                "crl": {"list_file": "/tmp/root.list"},
                "profiles": {"server": {"key_usages": ["digitalSignature"]}},
            },
        },
    }


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _write_config(tmp_path: Path, overrides: dict | None = None, suffix: str = ".yaml") -> Path:
    cfg = _base_config()
    if overrides:
        _deep_merge(cfg, overrides)
    path = tmp_path / f"config{suffix}"
    if suffix == ".json":
        path.write_text(json.dumps(cfg), encoding="utf-8")
    else:
        path.write_text(yaml.safe_dump(cfg, sort_keys=False), encoding="utf-8")
    return path


def _rootca(overrides: dict) -> dict:
    return {"certificate_authorities": {"rootca": overrides}}


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoading:
    def test_yaml(self, tmp_path):
        cfg = GatewayConfig(config_file=_write_config(tmp_path))
        assert "rootca" in cfg.settings.certificate_authorities

    def test_json(self, tmp_path):
        cfg = GatewayConfig(config_file=_write_config(tmp_path, suffix=".json"))
        assert cfg.settings.certificate_authorities["rootca"].ca_cert.cert_path == "/tmp/root.pem"

    def test_singleton_published(self, tmp_path):
        cfg = GatewayConfig(config_file=_write_config(tmp_path))
        assert get_config() is cfg

    def test_get_config_before_init(self):
        with pytest.raises(RuntimeError, match="not initialised"):
            get_config()

    def test_reset(self, tmp_path):
        GatewayConfig(config_file=_write_config(tmp_path))
        GatewayConfig.reset()
        with pytest.raises(RuntimeError):
            get_config()

    def test_source_recorded(self, tmp_path):
        path = _write_config(tmp_path)
        cfg = GatewayConfig(config_file=path)
        assert cfg.data["_source"] == str(path)
        assert str(path) in repr(cfg)

    def test_dotted_get(self, tmp_path):
        cfg = GatewayConfig(config_file=_write_config(tmp_path))
        assert cfg.get("certificate_authorities.rootca.crl.list_file") == "/tmp/root.list"
        assert cfg.get("certificate_authorities.rootca.missing", default=5) == 5
        assert cfg.get("server.port", default=9292) == 9292

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="top level must be a mapping"):
            GatewayConfig(config_file=path)


# ---------------------------------------------------------------------------
# Environment variables
# ---------------------------------------------------------------------------


class TestEnvVars:
    def test_resolved(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CAGATEWAY_TEST_KEY", "/secure/root.key")
        path = _write_config(tmp_path, _rootca({"ca_cert": {"key_path": "${CAGATEWAY_TEST_KEY}"}}))
        cfg = GatewayConfig(config_file=path)
        assert cfg.settings.certificate_authorities["rootca"].ca_cert.key_path == "/secure/root.key"

    def test_default_used(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CAGATEWAY_TEST_PASSWORD", raising=False)
        path = _write_config(
            tmp_path,
            _rootca({"ca_cert": {"key_password": "${CAGATEWAY_TEST_PASSWORD:-changeit}"}}),
        )
        cfg = GatewayConfig(config_file=path)
        assert cfg.settings.certificate_authorities["rootca"].ca_cert.key_password == "changeit"

    def test_unset_without_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CAGATEWAY_TEST_MISSING", raising=False)
        path = _write_config(tmp_path, _rootca({"crl": {"list_file": "${CAGATEWAY_TEST_MISSING}"}}))
        with pytest.raises(ConfigValidationError) as exc_info:
            GatewayConfig(config_file=path)
        assert "certificate_authorities.rootca.crl.list_file" in exc_info.value.errors[0]

    def test_list_items_resolved(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CAGATEWAY_TEST_CDP", "http://crl.example.com/root.crl")
        path = _write_config(
            tmp_path,
            _rootca({"profiles": {"server": {"crl_distribution_points": ["${CAGATEWAY_TEST_CDP}"]}}}),
        )
        cfg = GatewayConfig(config_file=path)
        profile = cfg.settings.certificate_authorities["rootca"].profiles["server"]
        assert profile.crl_distribution_points == ("http://crl.example.com/root.crl",)


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------


class TestSchema:
    def test_unknown_top_level_key(self, tmp_path):
        path = _write_config(tmp_path, {"database": {"host": "x"}})
        with pytest.raises(ConfigValidationError, match="database"):
            GatewayConfig(config_file=path)

    def test_bad_hash_algorithm(self, tmp_path):
        path = _write_config(tmp_path, _rootca({"hash_algorithm": "md5"}))
        with pytest.raises(ConfigValidationError):
            GatewayConfig(config_file=path)

    def test_bad_port(self, tmp_path):
        path = _write_config(tmp_path, {"server": {"port": 70000}})
        with pytest.raises(ConfigValidationError, match="server.port"):
            GatewayConfig(config_file=path)

    def test_missing_certificate_authorities(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("server:\n  port: 9292\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="certificate_authorities"):
            GatewayConfig(config_file=path)

    def test_null_profile_accepted(self, tmp_path):
        path = _write_config(tmp_path, _rootca({"profiles": {"bare": None}}))
        cfg = GatewayConfig(config_file=path)
        bare = cfg.settings.certificate_authorities["rootca"].profiles["bare"]
        assert bare.key_usages == ()
        assert bare.basic_constraints.ca is False


# ---------------------------------------------------------------------------
# Cross-field checks
# ---------------------------------------------------------------------------


class TestAdditionalChecks:
    def test_no_cas(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("certificate_authorities: {}\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="at least one CA"):
            GatewayConfig(config_file=path)

    def test_unknown_backend(self, tmp_path):
        path = _write_config(tmp_path, _rootca({"signer_backend": "hsm"}))
        with pytest.raises(ConfigValidationError, match="signer_backend 'hsm' is unknown"):
            GatewayConfig(config_file=path)

    def test_malformed_ext_backend(self, tmp_path):
        path = _write_config(tmp_path, _rootca({"crl_backend": "ext:not a path"}))
        with pytest.raises(ConfigValidationError, match="not a valid fully qualified"):
            GatewayConfig(config_file=path)

    def test_ext_backends_do_not_need_cert_paths(self, tmp_path):
        cfg = _base_config()
        cfg["certificate_authorities"]["rootca"] = {
            "signer_backend": "ext:mypkg.signers.HsmSigner",
            "crl_backend": "ext:mypkg.crl.RemoteCrl",
        }
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
        GatewayConfig(config_file=path)

    def test_internal_requires_key_path(self, tmp_path):
        path = _write_config(tmp_path, _rootca({"ca_cert": {"key_path": ""}}))
        with pytest.raises(ConfigValidationError, match="key_path is required"):
            GatewayConfig(config_file=path)

    def test_crl_validity_must_be_positive(self, tmp_path):
        path = _write_config(tmp_path, _rootca({"crl": {"validity_hours": 0}}))
        with pytest.raises(ConfigValidationError, match="validity_hours must be > 0"):
            GatewayConfig(config_file=path)

    def test_unknown_key_usage(self, tmp_path):
        path = _write_config(
            tmp_path,
            _rootca({"profiles": {"server": {"key_usages": ["signEverything"]}}}),
        )
        with pytest.raises(ConfigValidationError, match="unknown usage 'signEverything'"):
            GatewayConfig(config_file=path)

    def test_unknown_eku(self, tmp_path):
        path = _write_config(
            tmp_path,
            _rootca({"profiles": {"server": {"extended_key_usages": ["anything"]}}}),
        )
        with pytest.raises(ConfigValidationError, match="extended_key_usages"):
            GatewayConfig(config_file=path)

    def test_path_length_requires_ca(self, tmp_path):
        path = _write_config(
            tmp_path,
            _rootca({"profiles": {"server": {"basic_constraints": {"path_length": 1}}}}),
        )
        with pytest.raises(ConfigValidationError, match="path_length requires ca: true"):
            GatewayConfig(config_file=path)

    def test_errors_collected_together(self, tmp_path):
        path = _write_config(
            tmp_path,
            _rootca(
                {
                    "crl": {"validity_hours": -1},
                    "profiles": {"server": {"key_usages": ["bogus"]}},
                },
            ),
        )
        with pytest.raises(ConfigValidationError) as exc_info:
            GatewayConfig(config_file=path)
        assert len(exc_info.value.errors) == 2

    def test_missing_list_file_warns(self, tmp_path, caplog):
        path = _write_config(tmp_path, _rootca({"crl": {"list_file": None}}))
        with caplog.at_level(logging.WARNING, logger="cagateway.config.gateway_config"):
            GatewayConfig(config_file=path)
        assert "kept in memory" in caplog.text

    def test_no_profiles_warns(self, tmp_path, caplog):
        cfg = _base_config()
        del cfg["certificate_authorities"]["rootca"]["profiles"]
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="cagateway.config.gateway_config"):
            GatewayConfig(config_file=path)
        assert "has no profiles" in caplog.text

    def test_multiple_workers_with_internal_crl_warns(self, tmp_path, caplog):
        path = _write_config(tmp_path, {"server": {"workers": 4, "worker_class": "gthread"}})
        with caplog.at_level(logging.WARNING, logger="cagateway.config.gateway_config"):
            GatewayConfig(config_file=path)
        assert "CRL state of rootca is per-process" in caplog.text

    def test_multiple_workers_with_remote_crl_quiet(self, tmp_path, caplog):
        path = _write_config(
            tmp_path,
            {"server": {"workers": 4}, **_rootca({"crl_backend": "ext:mypkg.crl.RemoteCrl"})},
        )
        with caplog.at_level(logging.WARNING, logger="cagateway.config.gateway_config"):
            GatewayConfig(config_file=path)
        assert "per-process" not in caplog.text


class TestConfigValidationError:
    def test_message_lists_errors(self):
        exc = ConfigValidationError(["a: bad", "b: worse"])
        assert exc.errors == ["a: bad", "b: worse"]
        assert "  - a: bad" in str(exc)
        assert "  - b: worse" in str(exc)
