"""Command line entry point for the Kuberos server."""

import argparse
import sys

import uvicorn
from pydantic import ValidationError

from kuberos.config import Settings
from kuberos.main import configure_logging, create_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Provides OIDC authentication configuration for kubectl.",
        prog="kuberos",
        epilog="Any option may also be set via a KUBEROS_-prefixed environment variable.",
    )

    parser.add_argument("issuer_url", nargs="?", help="OpenID Connect issuer URL")
    parser.add_argument("client_id", nargs="?", help="OAuth2 client ID")
    parser.add_argument("client_secret_file", nargs="?", help="File containing OAuth2 client secret")
    parser.add_argument(
        "kubecfg_template",
        nargs="?",
        help="A kubecfg file containing clusters to populate with a user and contexts",
    )

    parser.add_argument("--host", help="Address to listen on (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port to listen on (default: 10003)")
    parser.add_argument("--ui", dest="ui_dir", help="Directory from which to serve the UI")
    parser.add_argument("--email-domain", help="Only allow users with an email address in this domain")
    parser.add_argument(
        "--state-client-address",
        choices=["none", "forwarded_for", "remote_addr"],
        help="Bind the CSRF state to the client's address",
    )
    parser.add_argument("--tls-cert", help="TLS certificate file")
    parser.add_argument("--tls-key", help="TLS private key file")
    parser.add_argument("-d", "--debug", action="store_true", default=None, help="Run with debug logging")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Build settings from the environment, overridden by command line arguments."""
    overrides = {
        key: value
        for key, value in vars(args).items()
        if value is not None and key not in ("tls_cert", "tls_key")
    }
    return Settings(**overrides)


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if bool(args.tls_cert) != bool(args.tls_key):
        parser.error("--tls-cert and --tls-key must be used together")

    try:
        settings = load_settings(args)
    except ValidationError as e:
        print(f"✗ Invalid configuration:\n{e}", file=sys.stderr)
        sys.exit(2)

    configure_logging(settings.effective_log_level)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        ssl_certfile=args.tls_cert,
        ssl_keyfile=args.tls_key,
        log_level=settings.effective_log_level.lower(),
    )


if __name__ == "__main__":
    main()
