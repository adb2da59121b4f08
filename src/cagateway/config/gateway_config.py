"""CAGATEWAY configuration loader.

Lifecycle::

    # 1. CLI (or the WSGI module) creates the singleton once, at startup
    GatewayConfig(config_file="/etc/cagateway/config.yaml")

    # 2. Any module retrieves it afterwards
    from cagateway.config import get_config
    cfg = get_config()
    cfg.settings.server.port  # typed access

    # 3. Dynamic access to raw values
    cfg.get("certificate_authorities.rootca.crl.validity_hours", default=168)

Loading order: read YAML/JSON → resolve ``${VAR}`` references →
validate against the bundled JSON Schema → cross-field checks →
build the frozen settings tree.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator

from cagateway.config.settings import GatewaySettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_CLASS_PATH_RE = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$",
)

_BUILTIN_BACKEND = "internal"
_EXT_PREFIX = "ext:"

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: GatewayConfig | None = None


def get_config() -> GatewayConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`GatewayConfig` has not been
    created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "GatewayConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(
            msg,
        )
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when schema or cross-field validation finds problems."""

    def __init__(self, errors: list[str]) -> None:
        """Store *errors* and build a human-readable message."""
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _read_file(path: Path) -> dict[str, Any]:
    """Parse a YAML or JSON config file into a dict."""
    with path.open(encoding="utf-8") as f:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ConfigValidationError(
            [f"{path}: top level must be a mapping"],
        )
    return data


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class GatewayConfig:
    """Central configuration for the CA gateway.

    The JSON schema is bundled at ``config/schema.json``; users supply
    only ``config_file``.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the raw dict via :pyattr:`data` /
    :pymeth:`get`.
    """

    def __init__(self, *, config_file: str | Path) -> None:
        """Load, validate and publish the configuration singleton.

        Parameters
        ----------
        config_file:
            Path to the YAML/JSON configuration file.

        Raises
        ------
        ConfigValidationError
            If the file fails schema or cross-field validation.

        """
        global _instance  # noqa: PLW0603

        path = Path(config_file)
        self._data: dict[str, Any] = _read_file(path)
        _resolve_env_vars(self._data)
        self._validate_schema()
        self.additional_checks()

        self._data["_source"] = str(path)
        self._settings: GatewaySettings = build_settings(self._data)
        _instance = self

    # -- typed access -------------------------------------------------------

    @property
    def settings(self) -> GatewaySettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    @property
    def data(self) -> dict[str, Any]:
        """Raw configuration data after env-var resolution."""
        return self._data

    def get(self, dotted_path: str, default: Any = None) -> Any:  # noqa: ANN401
        """Return the raw value at *dotted_path* or *default*."""
        node: Any = self._data
        for part in dotted_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    # -- validation ---------------------------------------------------------

    def _validate_schema(self) -> None:
        schema = json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))
        validator = Draft202012Validator(schema)
        errors = [
            f"{'.'.join(str(p) for p in err.absolute_path) or '<root>'}: {err.message}"
            for err in sorted(validator.iter_errors(self._data), key=lambda e: list(e.path))
        ]
        if errors:
            raise ConfigValidationError(errors)

    def additional_checks(self) -> None:  # noqa: C901, PLR0912
        """Semantic & cross-field validation.

        Runs after schema validation.  Errors are collected and raised
        together; warnings are logged.
        """
        from cagateway.ca.cert_utils import EKU_NAMES, KEY_USAGE_NAMES  # noqa: PLC0415

        errors: list[str] = []
        warnings: list[str] = []

        cas = self._data.get("certificate_authorities") or {}
        if not cas:
            errors.append("certificate_authorities must define at least one CA")

        for name, ca in cas.items():
            prefix = f"certificate_authorities.{name}"
            for key in ("signer_backend", "crl_backend"):
                backend = ca.get(key, _BUILTIN_BACKEND)
                if backend == _BUILTIN_BACKEND:
                    continue
                if not backend.startswith(_EXT_PREFIX):
                    errors.append(
                        f"{prefix}.{key} '{backend}' is unknown; "
                        f"use '{_BUILTIN_BACKEND}' or 'ext:package.module.ClassName'",
                    )
                elif not _CLASS_PATH_RE.match(backend[len(_EXT_PREFIX) :]):
                    errors.append(
                        f"{prefix}.{key} '{backend}' is not a valid fully "
                        "qualified Python class path",
                    )

            uses_internal = _BUILTIN_BACKEND in (
                ca.get("signer_backend", _BUILTIN_BACKEND),
                ca.get("crl_backend", _BUILTIN_BACKEND),
            )
            cert = ca.get("ca_cert") or {}
            if uses_internal:
                if not cert.get("cert_path"):
                    errors.append(f"{prefix}.ca_cert.cert_path is required for internal backends")
                if not cert.get("key_path"):
                    errors.append(f"{prefix}.ca_cert.key_path is required for internal backends")

            crl = ca.get("crl") or {}
            if crl.get("validity_hours", 168) <= 0:
                errors.append(f"{prefix}.crl.validity_hours must be > 0")
            if not crl.get("list_file"):
                warnings.append(
                    f"{prefix}.crl.list_file is not set; revocations are kept in memory "
                    "and lost on restart",
                )

            profiles = ca.get("profiles") or {}
            if not profiles:
                warnings.append(f"{prefix} has no profiles; every issuance will fail")
            for pname, raw_profile in profiles.items():
                profile = raw_profile or {}
                p_prefix = f"{prefix}.profiles.{pname}"
                for usage in profile.get("key_usages", []):
                    if usage not in KEY_USAGE_NAMES:
                        errors.append(
                            f"{p_prefix}.key_usages contains unknown usage '{usage}'. "
                            f"Known usages: {sorted(KEY_USAGE_NAMES)}",
                        )
                for eku in profile.get("extended_key_usages", []):
                    if eku not in EKU_NAMES:
                        errors.append(
                            f"{p_prefix}.extended_key_usages contains unknown usage '{eku}'. "
                            f"Known usages: {sorted(EKU_NAMES)}",
                        )
                bc = profile.get("basic_constraints") or {}
                if bc.get("path_length") is not None and not bc.get("ca", False):
                    errors.append(
                        f"{p_prefix}.basic_constraints.path_length requires ca: true",
                    )

        server = self._data.get("server") or {}
        internal_crl = sorted(
            name for name, ca in cas.items() if ca.get("crl_backend", _BUILTIN_BACKEND) == _BUILTIN_BACKEND
        )
        if server.get("workers", 1) > 1 and internal_crl:
            warnings.append(
                f"server.workers > 1 but CRL state of {', '.join(internal_crl)} is per-process; "
                "gunicorn will run a single worker",
            )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers ------------------------------------------------------------

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        source = self._data.get("_source", "?")
        return f"<GatewayConfig config_file={source}>"
