"""CA registry and backend loading.

One :class:`CaHandlePair` (CRL backend + signer) is built per
configured CA, once, at startup.  Backends are either built-in
(``internal``) or loaded from a dotted class path with the ``ext:``
prefix.

Usage::

    from cagateway.ca.registry import CARegistry

    registry = CARegistry.from_settings(settings.certificate_authorities)
    handles = registry.get("rootca")
    handles.crl.to_pem()
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from cagateway.ca.base import CAError, CRLBackend, SignerBackend

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from cagateway.config.settings import CASettings

log = logging.getLogger(__name__)

_EXT_PREFIX = "ext:"

# Maps config string → (module_path, class_name)
_BUILTIN_SIGNERS: dict[str, tuple[str, str]] = {
    "internal": ("cagateway.ca.signer", "InternalSigner"),
}
_BUILTIN_CRL_BACKENDS: dict[str, tuple[str, str]] = {
    "internal": ("cagateway.ca.crl", "CRLAdministrator"),
}

_REQUIRED_METHODS: dict[type, tuple[str, ...]] = {
    SignerBackend: ("sign",),
    CRLBackend: ("to_pem", "generate_crl", "revoke_cert", "unrevoke_cert"),
}


@dataclass(frozen=True)
class CaHandlePair:
    """The CRL backend and signer serving one CA."""

    crl: CRLBackend
    signer: SignerBackend


class CARegistry:
    """Read-only lookup of CA handles by name.

    The mapping is never modified after construction, so concurrent
    lookups need no locking.
    """

    def __init__(self, handles: Mapping[str, CaHandlePair]) -> None:
        self._handles = MappingProxyType(dict(handles))

    @classmethod
    def from_settings(
        cls,
        cas: Mapping[str, CASettings],
        *,
        startup_check: bool = True,
    ) -> CARegistry:
        """Build the registry for every configured CA.

        Raises
        ------
        CAError
            If a backend cannot be loaded or fails its startup check.

        """
        handles: dict[str, CaHandlePair] = {}
        for name, ca_settings in cas.items():
            pair = CaHandlePair(
                crl=load_backend(ca_settings.crl_backend, CRLBackend, ca_settings),
                signer=load_backend(ca_settings.signer_backend, SignerBackend, ca_settings),
            )
            if startup_check:
                pair.signer.startup_check()
                pair.crl.startup_check()
            handles[name] = pair
        log.info("CA registry ready: %s", ", ".join(sorted(handles)) or "(empty)")
        return cls(handles)

    def get(self, name: str | None) -> CaHandlePair | None:
        if name is None:
            return None
        return self._handles.get(name)

    @property
    def names(self) -> list[str]:
        return sorted(self._handles)

    def __contains__(self, name: object) -> bool:
        return name in self._handles

    def __iter__(self) -> Iterator[str]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def health(self) -> dict[str, dict[str, Any]]:
        """Per-CA CRL status; a failing CA reports ``status: error``."""
        report: dict[str, dict[str, Any]] = {}
        for name, pair in self._handles.items():
            try:
                report[name] = {"status": "ok", **pair.crl.health_status()}
            except CAError as exc:
                log.warning("Health check failed for CA '%s': %s", name, exc.detail)
                report[name] = {"status": "error", "detail": exc.detail}
        return report


# ---------------------------------------------------------------------------
# Backend loading
# ---------------------------------------------------------------------------


def load_backend(spec: str, base: type, ca_settings: CASettings) -> Any:  # noqa: ANN401
    """Instantiate the backend named by *spec* for *ca_settings*.

    Parameters
    ----------
    spec:
        ``"internal"`` or ``"ext:package.module.ClassName"``.
    base:
        :class:`SignerBackend` or :class:`CRLBackend`.

    Raises
    ------
    CAError
        If the backend cannot be imported or does not implement *base*.

    """
    builtins = _BUILTIN_SIGNERS if base is SignerBackend else _BUILTIN_CRL_BACKENDS
    if spec in builtins:
        mod_path, cls_name = builtins[spec]
        label = spec
    elif spec.startswith(_EXT_PREFIX):
        fqn = spec[len(_EXT_PREFIX) :]
        mod_path, _, cls_name = fqn.rpartition(".")
        label = spec
        if not mod_path:
            msg = (
                f"Invalid external backend '{fqn}': must be fully "
                "qualified (e.g. 'mypackage.module.ClassName')"
            )
            raise CAError(msg)
    else:
        msg = (
            f"Unknown {base.__name__} '{spec}' for CA '{ca_settings.name}'; "
            f"built-in options: {sorted(builtins)}. "
            "Use 'ext:mypackage.module.ClassName' for custom backends."
        )
        raise CAError(msg)

    try:
        module = importlib.import_module(mod_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load backend '{label}': {exc}"
        raise CAError(msg) from exc

    _validate_class(cls, base, label)
    backend = cls(ca_settings)
    log.info("Loaded %s '%s' for CA '%s'", base.__name__, label, ca_settings.name)
    return backend


def _validate_class(cls: Any, base: type, label: str) -> None:  # noqa: ANN401
    """Verify that a backend class subclasses *base* and implements it."""
    if not (isinstance(cls, type) and issubclass(cls, base)):
        msg = f"Backend '{label}' is not a subclass of {base.__name__}"
        raise CAError(msg)

    for method_name in _REQUIRED_METHODS[base]:
        method = getattr(cls, method_name, None)
        if method is None or getattr(method, "__isabstractmethod__", False):
            msg = f"Backend '{label}' does not implement '{method_name}()'"
            raise CAError(msg)
