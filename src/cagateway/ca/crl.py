"""CRL administration for the internal backend.

:class:`CRLAdministrator` keeps the revocation list of one CA, signs
CRLs with the CA key and serves the most recent one from memory.

Persistence (both optional):

``crl.list_file``
    One revoked certificate per line: ``serial,reason,unix_timestamp``.
``crl.number_file``
    The last CRL number issued, so numbering survives restarts.

All state changes happen under a single lock, so concurrent revoke,
unrevoke and generate calls against one CA are serialized.
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509 import (
    CertificateRevocationListBuilder,
    RevokedCertificateBuilder,
)

from cagateway.ca.base import CAError, CRLBackend
from cagateway.ca.cert_utils import signing_hash
from cagateway.ca.material import CAMaterial, load_ca_material
from cagateway.core.coercion import to_int
from cagateway.core.types import RevocationReason

if TYPE_CHECKING:
    from cagateway.config.settings import CASettings

log = logging.getLogger(__name__)

_MAX_SERIAL_BITS = 159


class CRLAdministrator(CRLBackend):
    """Maintain the revocation list and signed CRL for one CA."""

    def __init__(self, ca_settings: CASettings) -> None:
        super().__init__(ca_settings)
        self._lock = threading.Lock()
        self._material: CAMaterial | None = None
        # serial -> (reason, revocation time)
        self._revoked: dict[int, tuple[RevocationReason, datetime]] = {}
        self._crl_number = 0
        self._crl: x509.CertificateRevocationList | None = None
        self._crl_pem: str | None = None

    # -- lifecycle ----------------------------------------------------------

    def startup_check(self) -> None:
        """Load key material and state, and publish an initial CRL."""
        with self._lock:
            self._ensure_loaded_locked()

    def _ensure_loaded_locked(self) -> CAMaterial:
        if self._material is not None:
            return self._material
        self._material = load_ca_material(self._settings.ca_cert)
        self._revoked = self._read_list_file()
        self._crl_number = self._read_number_file()
        self._generate_locked()
        log.info(
            "CRL administrator for CA '%s' loaded (%d revoked, crl_number=%d)",
            self.ca_name,
            len(self._revoked),
            self._crl_number,
        )
        return self._material

    # -- public API ---------------------------------------------------------

    def to_pem(self) -> str:
        with self._lock:
            self._ensure_loaded_locked()
            return self._crl_pem  # type: ignore[return-value]

    def generate_crl(self) -> str:
        with self._lock:
            self._ensure_loaded_locked()
            return self._generate_locked()

    def revoke_cert(self, serial: int | str, reason: int | str | None = None) -> None:
        """Revoke *serial* with RFC 5280 *reason* (``None`` means 0).

        Both values are coerced leniently: ``"12abc"`` becomes 12 and
        non-numeric text becomes 0.

        Raises
        ------
        CAError
            If the serial is not a valid certificate serial, the reason
            code is undefined, or the serial is already revoked.

        """
        serial_int = to_int(serial)
        if serial_int <= 0 or serial_int.bit_length() > _MAX_SERIAL_BITS:
            msg = f"Serial number {serial!r} is not a valid certificate serial"
            raise CAError(msg)
        # Undefined codes (7, >10, negative) are rejected here; older
        # administrators silently recorded them as 0 (unspecified).
        try:
            reason_code = RevocationReason(to_int(reason))
        except ValueError:
            msg = f"Invalid revocation reason: {reason!r}"
            raise CAError(msg) from None

        with self._lock:
            self._ensure_loaded_locked()
            if serial_int in self._revoked:
                msg = "Cannot revoke a previously revoked certificate"
                raise CAError(msg)
            self._revoked[serial_int] = (reason_code, datetime.now(UTC).replace(microsecond=0))
            self._write_list_file()
            self._generate_locked()

        log.info(
            "CA '%s' revoked serial %d (reason=%s)",
            self.ca_name,
            serial_int,
            reason_code.name.lower(),
        )

    def unrevoke_cert(self, serial: int) -> None:
        """Remove *serial* from the list.  Unknown serials are a no-op."""
        with self._lock:
            self._ensure_loaded_locked()
            removed = self._revoked.pop(serial, None)
            if removed is not None:
                self._write_list_file()
            self._generate_locked()

        if removed is None:
            log.info("CA '%s' unrevoke: serial %d was not revoked", self.ca_name, serial)
        else:
            log.info("CA '%s' unrevoked serial %d", self.ca_name, serial)

    def health_status(self) -> dict[str, Any]:
        with self._lock:
            self._ensure_loaded_locked()
            return {
                "revoked_count": len(self._revoked),
                "crl_number": self._crl_number,
                "next_update": self._crl.next_update_utc.isoformat(),  # type: ignore[union-attr]
            }

    # -- internals ----------------------------------------------------------

    def _generate_locked(self) -> str:
        """Sign a new CRL with the next CRL number."""
        material = self._material
        if material is None:
            msg = "CA key material not loaded"
            raise CAError(msg)

        now = datetime.now(UTC)
        next_update = now + timedelta(hours=self._settings.crl.validity_hours)
        self._crl_number += 1

        builder = (
            CertificateRevocationListBuilder()
            .issuer_name(material.certificate.subject)
            .last_update(now)
            .next_update(next_update)
            .add_extension(x509.CRLNumber(self._crl_number), critical=False)
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(
                    material.certificate.public_key(),  # type: ignore[arg-type]
                ),
                critical=False,
            )
        )

        for serial, (reason, revoked_at) in self._revoked.items():
            rev_builder = RevokedCertificateBuilder().serial_number(serial).revocation_date(revoked_at)
            # unspecified is expressed by omitting the entry extension
            if reason != RevocationReason.UNSPECIFIED:
                rev_builder = rev_builder.add_extension(
                    x509.CRLReason(reason.to_reason_flag()),
                    critical=False,
                )
            builder = builder.add_revoked_certificate(rev_builder.build())

        try:
            crl = builder.sign(
                material.private_key,
                signing_hash(material.private_key, self._settings.crl.hash_algorithm),  # type: ignore[arg-type]
            )
        except Exception as exc:  # noqa: BLE001
            self._crl_number -= 1
            msg = f"Failed to sign CRL: {exc}"
            raise CAError(msg) from exc

        self._crl = crl
        self._crl_pem = crl.public_bytes(serialization.Encoding.PEM).decode("ascii")
        self._write_number_file()

        log.info(
            "CRL for CA '%s' generated: number=%d, %d revoked, next update %s",
            self.ca_name,
            self._crl_number,
            len(self._revoked),
            next_update.isoformat(),
        )
        return self._crl_pem

    def _read_list_file(self) -> dict[int, tuple[RevocationReason, datetime]]:
        path = self._settings.crl.list_file
        if not path or not Path(path).exists():
            return {}
        revoked: dict[int, tuple[RevocationReason, datetime]] = {}
        for lineno, line in enumerate(Path(path).read_text(encoding="utf-8").splitlines(), 1):
            line = line.strip()  # noqa: PLW2901
            if not line or line.startswith("#"):
                continue
            parts = line.split(",")
            if len(parts) != 3:  # noqa: PLR2004
                msg = f"{path}:{lineno}: expected 'serial,reason,timestamp'"
                raise CAError(msg)
            try:
                serial = int(parts[0])
                reason = RevocationReason(int(parts[1] or 0))
                revoked_at = datetime.fromtimestamp(int(parts[2]), tz=UTC)
            except ValueError as exc:
                msg = f"{path}:{lineno}: {exc}"
                raise CAError(msg) from exc
            revoked[serial] = (reason, revoked_at)
        return revoked

    def _write_list_file(self) -> None:
        path = self._settings.crl.list_file
        if not path:
            return
        lines = [
            f"{serial},{int(reason)},{int(revoked_at.timestamp())}\n"
            for serial, (reason, revoked_at) in self._revoked.items()
        ]
        _atomic_write(path, "".join(lines))

    def _read_number_file(self) -> int:
        path = self._settings.crl.number_file
        if not path or not Path(path).exists():
            return 0
        text = Path(path).read_text(encoding="utf-8").strip()
        try:
            return int(text or 0)
        except ValueError as exc:
            msg = f"{path}: CRL number is not an integer"
            raise CAError(msg) from exc

    def _write_number_file(self) -> None:
        path = self._settings.crl.number_file
        if path:
            _atomic_write(path, f"{self._crl_number}\n")


def _atomic_write(path: str, content: str) -> None:
    target = Path(path)
    tmp = target.with_name(f".{target.name}.tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, target)
    except OSError as exc:
        msg = f"Failed to write {path}: {exc}"
        raise CAError(msg) from exc
