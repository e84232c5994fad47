"""Flask surface used by the browser dashboard."""

from __future__ import annotations

import logging

from flask import Blueprint, Flask, Response, current_app, jsonify, request

from bootstrap import AnalyzerServices
from spotify_api.errors import (
    AuthRefreshError,
    AuthRequiredError,
    CacheIOError,
    RemoteFetchError,
    SyncFailedError,
)

logger = logging.getLogger(__name__)

analyzer_bp = Blueprint("analyzer_bp", __name__)


def _services() -> AnalyzerServices:
    return current_app.extensions["analyzer"]


def _error(message: str, status: int, **extra):
    payload = {"error": message}
    payload.update({k: v for k, v in extra.items() if v is not None})
    return jsonify(payload), status


@analyzer_bp.route("/")
def index():
    services = _services()
    token_manager = services.token_manager

    code = (request.args.get("code") or "").strip()
    if code and not token_manager.is_authenticated:
        logger.info("Code found, requesting Spotify API access token now...")
        token_manager.complete_authorization_code_exchange(code)

    payload = {"authenticated": token_manager.is_authenticated}
    if not token_manager.is_authenticated:
        payload["authorize_url"] = token_manager.authorize_url(services.scopes)
    return jsonify(payload)


def _snapshot_response(user_id: str):
    cache = _services().cache
    try:
        cache.get_or_fetch(user_id)
    except ValueError as e:
        return _error(str(e), 400)
    return Response(cache.read_raw(user_id), mimetype="application/json")


@analyzer_bp.route("/search/<user_id>")
def search(user_id: str):
    return _snapshot_response(user_id)


@analyzer_bp.route("/user/<user_id>")
def user(user_id: str):
    return _snapshot_response(user_id)


@analyzer_bp.route("/healthz")
def healthz():
    return jsonify({"status": "ok", "authenticated": _services().token_manager.is_authenticated})


@analyzer_bp.app_errorhandler(AuthRequiredError)
def _auth_required(exc: AuthRequiredError):
    logger.warning("Authorization required: %s", exc)
    return _error(str(exc), 401, authorize_url=_services().token_manager.authorize_url(_services().scopes))


@analyzer_bp.app_errorhandler(AuthRefreshError)
def _auth_refresh(exc: AuthRefreshError):
    logger.error("Token refresh failed: %s", exc)
    return _error(str(exc), 401)


@analyzer_bp.app_errorhandler(SyncFailedError)
def _sync_failed(exc: SyncFailedError):
    logger.error("Sync failed: %s", exc)
    return _error(str(exc), 502, stage=exc.stage, playlist_id=exc.playlist_id, playlist_name=exc.playlist_name)


@analyzer_bp.app_errorhandler(RemoteFetchError)
def _remote_failed(exc: RemoteFetchError):
    logger.error("Spotify request failed: %s", exc)
    return _error(str(exc), 502, stage=exc.stage)


@analyzer_bp.app_errorhandler(CacheIOError)
def _cache_failed(exc: CacheIOError):
    logger.error("Cache IO failed: %s", exc)
    return _error(str(exc), 500)


def create_app(services: AnalyzerServices) -> Flask:
    app = Flask(__name__)
    app.extensions["analyzer"] = services
    app.register_blueprint(analyzer_bp)
    return app
