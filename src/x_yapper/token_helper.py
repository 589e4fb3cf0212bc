"""Run the OAuth 2.0 flow once and save the resulting tokens."""

import argparse
import pathlib
import sys

from x_yapper import console as out
from x_yapper.auth import AuthError, AuthorizationCancelled, authorize
from x_yapper.callback import cancel_on_signals
from x_yapper.config import (
    ConfigError,
    TokenStore,
    load_env_file,
    load_settings,
    require_oauth2,
)
from x_yapper.logging_config import setup_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Authorize x-yapper with X and write the tokens to a file.",
    )
    parser.add_argument(
        "--output",
        type=pathlib.Path,
        default=pathlib.Path("tokens.json"),
        metavar="PATH",
        help="Where to save the tokens (default: tokens.json)",
    )
    parser.add_argument(
        "--env-file",
        type=pathlib.Path,
        metavar="PATH",
        help="Read credentials from this file instead of ./.env",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Print the authorization URL without opening a browser",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    setup_logging(debug=args.verbose)
    load_env_file(args.env_file)

    try:
        settings = load_settings()
        require_oauth2(settings)
    except ConfigError as exc:
        out.error(str(exc))
        sys.exit(1)

    try:
        with cancel_on_signals() as cancel:
            token = authorize(
                settings.client_id,
                settings.client_secret,
                cancel,
                open_browser=not args.no_browser,
            )
    except AuthorizationCancelled:
        out.warn("Authorization cancelled")
        sys.exit(1)
    except AuthError as exc:
        out.error(f"Authorization failed: {exc}")
        sys.exit(1)

    print("\nAdd these to your .env file:")
    print(f"TWITTER_ACCESS_TOKEN={token.access_token}")
    if token.refresh_token:
        print(f"TWITTER_REFRESH_TOKEN={token.refresh_token}")

    store = TokenStore(args.output)
    try:
        store.save(token)
    except OSError as exc:
        out.error(f"Could not save tokens to {store.path}: {exc}")
        sys.exit(1)
    out.success(f"Tokens saved to {store.path}")
