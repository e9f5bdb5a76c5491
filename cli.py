"""CLI entry point for epic-oauth-demo.

This runs the LOCAL callback server on the user's machine. Settings come
from a .env file (or the file given with --env-file) and can be overridden
on the command line.
"""
import argparse
import asyncio
import sys
from pathlib import Path

import httpx
from dotenv import load_dotenv

from config import load_config
from epic_oauth.errors import MetadataResolutionError
from epic_oauth.metadata import fetch_endpoints
from logging_config import setup_logging

VERSION = "1.0.0"


def _load_env(env_file: str = None) -> None:
    """Load environment: --env-file, else .env in the working directory."""
    if env_file:
        path = Path(env_file)
        if not path.exists():
            print(f"[X] Env file not found: {path}", file=sys.stderr)
            sys.exit(1)
        load_dotenv(path)
        return

    _env_file = Path(".env")
    if _env_file.exists():
        load_dotenv(_env_file)


def _config_from_args(args):
    config = load_config()
    return config.with_overrides(
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        open_browser=args.open_browser,
        fetch_profile=args.fetch_profile,
        fetch_additional_resources=args.fetch_resources,
        show_token_in_browser=args.show_token,
        exit_after_callback=args.exit_after_callback,
    )


def _require_valid(config) -> None:
    missing = config.missing()
    if missing:
        print(f"[X] Missing required settings: {', '.join(missing)}", file=sys.stderr)
        print("  Set them in .env or the environment (see .env.example).", file=sys.stderr)
        sys.exit(1)

    invalid = config.invalid()
    if invalid:
        for problem in invalid:
            print(f"[X] Invalid setting: {problem}", file=sys.stderr)
        sys.exit(1)


# ============== Commands ==============

def cmd_start(args) -> int:
    """Start the callback server."""
    # Imported here so `version` works without the server stack
    from main import run

    config = _config_from_args(args)
    _require_valid(config)
    setup_logging(config.log_level, config.log_format)

    print(f"Epic OAuth demo: {config.home_url}")
    print(f"  Redirect URI: {config.redirect_uri}")
    if not config.open_browser:
        print(f"  Open {config.home_url} in your browser to log in.")

    if not run(config):
        print("[X] Server failed to start (see log above).", file=sys.stderr)
        return 1
    return 0


def cmd_check(args) -> int:
    """Resolve Epic's OAuth endpoints and print them."""
    config = _config_from_args(args)
    _require_valid(config)
    setup_logging(config.log_level, config.log_format)

    async def _resolve():
        async with httpx.AsyncClient(timeout=config.http_timeout) as client:
            return await fetch_endpoints(client, config.metadata_url)

    try:
        endpoints = asyncio.run(_resolve())
    except MetadataResolutionError as e:
        print(f"[X] {e}", file=sys.stderr)
        return 1

    print(f"[OK] Metadata: {config.metadata_url}")
    print(f"  Authorization URI: {endpoints.authorization_uri}")
    print(f"  Token URI: {endpoints.token_uri}")
    print(f"  Redirect URI: {config.redirect_uri}")
    return 0


def cmd_version(args) -> int:
    print(f"epic-oauth-demo {VERSION}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="epic-oauth-demo",
        description="Epic OAuth 2.0 authorization code flow demo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  start      Run the local callback server (default)
  check      Resolve and print Epic's OAuth endpoints
  version    Show version

Examples:
  epic-oauth-demo
  epic-oauth-demo start --open-browser --fetch-profile
  epic-oauth-demo check --env-file sandbox.env
""",
    )
    parser.add_argument("command", nargs="?", default="start", choices=["start", "check", "version"],
                        help=argparse.SUPPRESS)
    parser.add_argument("--env-file", help="Load settings from this file instead of .env")
    parser.add_argument("--host", help="Host to bind and use in the redirect URI (HOST)")
    parser.add_argument("--port", type=int, help="Port to listen on (PORT)")
    parser.add_argument("--log-level", choices=["error", "warning", "info", "debug"], help="LOG_LEVEL")
    parser.add_argument("--open-browser", dest="open_browser", action="store_true", default=None,
                        help="Open the home page when the server starts (OPEN_BROWSER)")
    parser.add_argument("--no-browser", dest="open_browser", action="store_false",
                        help="Do not open a browser")
    parser.add_argument("--fetch-profile", action="store_true", default=None,
                        help="Fetch the user's FHIR profile after login (FETCH_PROFILE)")
    parser.add_argument("--fetch-resources", action="store_true", default=None,
                        help="Fetch the resources listed in REQUESTS_FILE (FETCH_ADDITIONAL_RESOURCES)")
    parser.add_argument("--show-token", action="store_true", default=None,
                        help="Show the token on the success page (SHOW_TOKEN_IN_BROWSER)")
    parser.add_argument("--keep-running", dest="exit_after_callback", action="store_false", default=None,
                        help="Keep serving after the first callback (EXIT_AFTER_CALLBACK=false)")
    return parser


COMMANDS = {
    "start": cmd_start,
    "check": cmd_check,
    "version": cmd_version,
}


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != "version":
        _load_env(args.env_file)

    sys.exit(COMMANDS[args.command](args))


if __name__ == "__main__":
    main()
