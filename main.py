import argparse
import json
import sys

from bootstrap import build_services
from config import load_config, validate_config
from menus.auth_menu import authenticate_interactively
from spotify_api.errors import AnalyzerError, AuthRequiredError
from utils.logger import setup_logging, log_info, log_error, log_success, log_warning


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playlist-analyzer",
        description="Fetch and cache Spotify playlist data for the analyzer dashboard.",
    )
    parser.add_argument("--config", default="config.json", help="Path to config.json (optional)")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("auth", help="Run the interactive authorization-code flow")
    sub.add_parser("status", help="Show token and cache status")

    sync = sub.add_parser("sync", help="Fetch a user's playlists into data/<user>.json")
    sync.add_argument("user_id", nargs="?", help="Spotify user id (default: the signed-in user)")
    sync.add_argument("--force", action="store_true", help="Discard the cached snapshot first")

    serve = sub.add_parser("serve", help="Run the dashboard HTTP server")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    return parser


def run_sync(services, user_id, force: bool = False) -> int:
    token_manager = services.token_manager
    if not token_manager.is_authenticated and not token_manager.token.refresh_token:
        log_warning("No Spotify token stored yet.")
        if not authenticate_interactively(token_manager, services.scopes):
            return 1

    if not user_id:
        user_id = services.client.current_user_id()
        log_info(f"Signed in as: {user_id}")

    if force:
        services.cache.invalidate(user_id)

    snapshot = services.cache.get_or_fetch(user_id)
    log_success(
        f"{user_id}: {len(snapshot.playlists)} playlists, {len(snapshot.artists)} artists "
        f"({services.cache.path_for(user_id)})"
    )
    return 0


def run_status(services) -> int:
    token = services.token_manager.token
    status = {
        "authenticated": services.token_manager.is_authenticated,
        "has_refresh_token": bool(token.refresh_token),
        "expires_at_ms": token.expires_at_ms,
        "env_file": services.token_manager.store.path,
        "data_dir": services.cache.data_dir,
    }
    print(json.dumps(status, indent=2))
    return 0


def run_serve(services, host=None, port=None) -> int:
    from web.app import create_app

    if not services.token_manager.is_authenticated:
        log_info("Not authorized yet. Open this URL and approve access; the redirect completes the exchange:")
        print(services.token_manager.authorize_url(services.scopes))

    host = host or services.config["host"]
    port = port or services.config["port"]
    log_info(f"Server listening at http://{host}:{port}")
    create_app(services).run(host=host, port=port)
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except json.JSONDecodeError as e:
        setup_logging()
        log_error(f"Config file contains invalid JSON: {e}")
        return 1
    except (OSError, ValueError) as e:
        setup_logging()
        log_error(f"Error loading config: {e}")
        return 1

    setup_logging(config.get("log_level", "INFO"), config.get("log_file") or None)

    is_valid, errors = validate_config(config)
    if not is_valid:
        for err in errors:
            log_error(err)
        return 1

    services = None
    try:
        services = build_services(config)
        if args.command == "auth":
            return 0 if authenticate_interactively(services.token_manager, services.scopes) else 1
        if args.command == "status":
            return run_status(services)
        if args.command == "sync":
            return run_sync(services, args.user_id, force=args.force)
        if args.command == "serve":
            return run_serve(services, args.host, args.port)
        log_error(f"Unknown command: {args.command}")
        return 2
    except AuthRequiredError as e:
        log_error(f"{e} Run 'playlist-analyzer auth' first.")
        return 1
    except AnalyzerError as e:
        log_error(f"{type(e).__name__}: {e}")
        return 1
    except ValueError as e:
        log_error(str(e))
        return 1
    finally:
        if services is not None:
            services.close()


if __name__ == "__main__":
    sys.exit(main())
