"""CAGATEWAY command-line entry point.

Usage::

    cagateway -c /etc/cagateway/config.yaml
    cagateway -c config.yaml --dev
    cagateway -c config.yaml --validate-only
    cagateway -c config.yaml serve --dev
    cagateway -c config.yaml ca list
    cagateway -c config.yaml ca test-sign --ca rootca --profile server
    cagateway -c config.yaml crl show --ca rootca
    cagateway -c config.yaml crl generate --ca rootca
    python -m cagateway -c config.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from cagateway import __version__  # noqa: PLC0415

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cagateway",
        description="CAGATEWAY: HTTP gateway for multi-CA certificate operations",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        default=False,
        help="Use Flask's development server instead of gunicorn.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the gateway server")
    serve_parser.add_argument("--dev", action="store_true", default=argparse.SUPPRESS, dest="dev")

    # ca
    ca_parser = subparsers.add_parser("ca", help="Configured CA inspection")
    ca_sub = ca_parser.add_subparsers(dest="ca_command")
    ca_sub.add_parser("list", help="List configured CAs and their profiles")
    test_sign = ca_sub.add_parser("test-sign", help="Sign a throwaway key to verify a CA")
    test_sign.add_argument("--ca", required=True, dest="ca_name", help="CA name")
    test_sign.add_argument("--profile", required=True, help="Profile name")

    # crl
    crl_parser = subparsers.add_parser("crl", help="CRL management")
    crl_sub = crl_parser.add_subparsers(dest="crl_command")
    for name, help_text in [
        ("show", "Print the current CRL"),
        ("generate", "Generate and print a fresh CRL"),
    ]:
        p = crl_sub.add_parser(name, help=help_text)
        p.add_argument("--ca", required=True, dest="ca_name", help="CA name")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    sys.stderr.write(f"cagateway: error: {message}\n")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- resolve config path ---
    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    from cagateway.config import ConfigValidationError, GatewayConfig  # noqa: PLC0415

    try:
        config = GatewayConfig(config_file=config_path)
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from cagateway.logging import configure_logging  # noqa: PLC0415

    configure_logging(config.settings.logging, dev=args.dev)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    command = args.command
    if command == "ca":
        from cagateway.cli.commands.ca import run_ca  # noqa: PLC0415

        run_ca(config, args)
    elif command == "crl":
        from cagateway.cli.commands.crl import run_crl  # noqa: PLC0415

        run_crl(config, args)
    else:
        # no subcommand = serve
        _print_settings_summary(config)
        _run_serve(config, args)


def _run_serve(config, args) -> None:
    from cagateway.app import create_app  # noqa: PLC0415
    from cagateway.ca.base import CAError  # noqa: PLC0415

    try:
        app = create_app(config=config)
    except CAError as exc:
        if args.debug:
            raise
        _print_error(f"CA initialisation failed: {exc.detail}")
        sys.exit(1)

    if args.dev:
        log.info("Starting development server (not for production)")
        app.run(
            host=config.settings.server.bind,
            port=config.settings.server.port,
            debug=True,
            use_reloader=False,
        )
    else:
        try:
            from cagateway.server.gunicorn_app import run_gunicorn  # noqa: PLC0415

            run_gunicorn(app, config.settings.server)
        except RuntimeError as exc:
            _print_error(str(exc))
            sys.exit(1)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    lines = [
        f"config: {config.data.get('_source', '?')}",
        f"server: {s.server.bind}:{s.server.port} ({s.server.workers} workers)",
        f"logging: {s.logging.level} ({s.logging.format})",
    ]
    for name, ca in sorted(s.certificate_authorities.items()):
        profiles = ", ".join(sorted(ca.profiles)) or "none"
        lines.append(f"ca {name}: signer={ca.signer_backend} crl={ca.crl_backend} profiles={profiles}")
    sys.stdout.write("\n".join(lines) + "\n")
