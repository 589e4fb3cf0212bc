"""CLI entry-point for x-yapper."""

import argparse
import logging
import pathlib
import sys

from x_yapper import console as out
from x_yapper.auth import AuthError, AuthorizationCancelled, authorize
from x_yapper.callback import cancel_on_signals
from x_yapper.client import XClient, probe_account
from x_yapper.config import ConfigError, Settings, load_env_file, load_settings
from x_yapper.editor import EditorError, choose_editor
from x_yapper.logging_config import setup_logging
from x_yapper.prompt import PromptSession

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compose posts and threads on X from your terminal editor.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging",
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
    return parser.parse_args(argv)


def _connect(settings: Settings, *, open_browser: bool) -> XClient:
    """Return an authenticated client, running the browser flow if needed."""
    if settings.oauth1 is not None:
        logger.debug("Using OAuth 1.0a user credentials from the environment")
        return XClient(oauth1=settings.oauth1)

    with cancel_on_signals() as cancel:
        token = authorize(
            settings.client_id,
            settings.client_secret,
            cancel,
            open_browser=open_browser,
        )
    out.success("Authorization successful")
    return XClient(token.access_token)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    setup_logging(debug=args.verbose)
    load_env_file(args.env_file)

    try:
        settings = load_settings()
    except ConfigError as exc:
        out.error(str(exc))
        sys.exit(1)

    try:
        editor = choose_editor(settings.editor)
    except EditorError as exc:
        out.error(str(exc))
        sys.exit(1)

    try:
        client = _connect(settings, open_browser=not args.no_browser)
    except AuthorizationCancelled:
        out.warn("Authorization cancelled")
        sys.exit(1)
    except AuthError as exc:
        out.error(f"Authorization failed: {exc}")
        sys.exit(1)

    with client:
        max_length, profile = probe_account(client)
        PromptSession(
            client, editor, profile=profile, max_post_length=max_length,
        ).run()
