"""CA inspection subcommands."""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime, timedelta

log = logging.getLogger(__name__)


def run_ca(config, args) -> None:
    """Handle ca subcommands."""
    if args.ca_command == "list":
        _ca_list(config)
    elif args.ca_command == "test-sign":
        _ca_test_sign(config, args.ca_name, args.profile)
    else:
        sys.stderr.write("usage: cagateway -c CONFIG ca {list,test-sign}\n")
        sys.exit(1)


def _ca_list(config) -> None:
    for name, ca in sorted(config.settings.certificate_authorities.items()):
        sys.stdout.write(f"{name}\t{ca.ca_cert.cert_path}\n")
        for pname, profile in sorted(ca.profiles.items()):
            usages = ",".join(profile.key_usages) or "-"
            sys.stdout.write(f"  {pname}\tca={profile.basic_constraints.ca}\tkey_usages={usages}\n")


def _ca_test_sign(config, ca_name: str, profile: str) -> None:
    """Sign an ephemeral public key to verify a CA's signer works."""
    from cryptography.hazmat.primitives.asymmetric import ec  # noqa: PLC0415

    from cagateway.ca.base import CAError, SignerBackend  # noqa: PLC0415
    from cagateway.ca.factories import SPKI  # noqa: PLC0415
    from cagateway.ca.names import Subject  # noqa: PLC0415
    from cagateway.ca.registry import load_backend  # noqa: PLC0415

    ca_settings = config.settings.certificate_authorities.get(ca_name)
    if ca_settings is None:
        sys.stderr.write(f"cagateway: error: CA '{ca_name}' is not configured\n")
        sys.exit(1)

    subject = Subject.from_pairs([("CN", f"test-sign.{ca_name}.invalid")])
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(UTC)
    try:
        signer = load_backend(ca_settings.signer_backend, SignerBackend, ca_settings)
        signer.startup_check()
        cert = signer.sign(
            spki=SPKI(public_key=key.public_key(), subject=subject),
            profile_name=profile,
            subject=subject,
            san_names=[],
            not_before=now,
            not_after=now + timedelta(minutes=5),
        )
    except CAError as exc:
        sys.stderr.write(f"cagateway: error: test signing failed: {exc.detail}\n")
        sys.exit(1)

    log.info("Test signing succeeded for CA %s", ca_name)
    sys.stdout.write(cert.to_pem())
