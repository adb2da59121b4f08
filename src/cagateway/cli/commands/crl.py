"""CRL management subcommands."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_crl(config, args) -> None:
    """Handle crl subcommands."""
    if args.crl_command not in ("show", "generate"):
        sys.stderr.write("usage: cagateway -c CONFIG crl {show,generate} --ca NAME\n")
        sys.exit(1)

    from cagateway.ca.base import CAError, CRLBackend  # noqa: PLC0415
    from cagateway.ca.registry import load_backend  # noqa: PLC0415

    ca_settings = config.settings.certificate_authorities.get(args.ca_name)
    if ca_settings is None:
        sys.stderr.write(f"cagateway: error: CA '{args.ca_name}' is not configured\n")
        sys.exit(1)

    try:
        crl = load_backend(ca_settings.crl_backend, CRLBackend, ca_settings)
        crl.startup_check()
        pem = crl.generate_crl() if args.crl_command == "generate" else crl.to_pem()
    except CAError as exc:
        sys.stderr.write(f"cagateway: error: {exc.detail}\n")
        sys.exit(1)

    sys.stdout.write(pem)
