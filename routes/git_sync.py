"""Git sync endpoint: mirrors a custom repository against a master repository."""
from __future__ import annotations

import traceback

from flask import Blueprint, current_app, jsonify, request

from forms import GitSyncForm
from models.user import User
from routes import apply_cors_headers, json_error
from services.audit_service import recent_logs, record_failure, record_success
from services.github_service import get_repository, parse_repository_url
from services.identity_service import bearer_token_from_header, resolve_access_token
from services.sync_service import SyncFailure, SyncRequestError, plan_sync, run_sync
from utils.github_token import get_github_token
from utils.sync_settings import ConfigurationError, SyncSettings

git_sync_bp = Blueprint("git_sync", __name__, url_prefix="/git-sync")


@git_sync_bp.after_request
def add_cors_headers(response):
    return apply_cors_headers(response)


def _settings() -> SyncSettings:
    return current_app.config["GIT_SYNC_SETTINGS"]


def _require_user(auth_header: str | None, settings: SyncSettings) -> User:
    user = resolve_access_token(
        bearer_token_from_header(auth_header),
        ttl=settings.token_ttl_seconds(),
    )
    if user is None:
        raise SyncRequestError("Invalid or expired access token")
    return user


def _error_details(exc: BaseException) -> str:
    details = traceback.format_exc()
    if isinstance(exc, SyncFailure):
        details = f"state={exc.state.value} partial={exc.partial}\n{details}"
    return details


@git_sync_bp.route("/", methods=["POST", "OPTIONS"])
def git_sync():
    """Run a pull or push between the custom and master repositories.

    Every POST writes exactly one audit row, completed or failed.
    """

    if request.method == "OPTIONS":
        return "", 200

    settings = _settings()
    user_id = None
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            raise SyncRequestError("No authorization header")

        github_token = get_github_token(settings)

        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            raise SyncRequestError("Request body must be a JSON object")
        form = GitSyncForm(payload)
        if not form.validate():
            raise SyncRequestError(form.first_error() or "Invalid sync request")

        user = _require_user(auth_header, settings)
        user_id = user.id
        current_app.logger.info("User %s authenticated for git sync", user_id)

        operation = form.operation.data
        custom_url = form.customUrl.data.strip()
        master_url = (form.masterUrl.data or "").strip() or settings.default_master_url
        if operation == "push" and not master_url:
            raise SyncRequestError("Missing required URLs")

        custom_repo = parse_repository_url(custom_url)
        if custom_repo is None:
            raise SyncRequestError("Invalid custom repository URL")
        master_repo = None
        if master_url:
            master_repo = parse_repository_url(master_url)
            if master_repo is None:
                raise SyncRequestError("Invalid master repository URL")

        get_repository(custom_repo.owner, custom_repo.repo, github_token)

        if master_repo is None:
            message = f"Successfully verified access to {custom_url}"
            details = {"repository": custom_repo.full_name, "synced": False}
        else:
            current_app.logger.info("Performing %s between %s and %s", operation, custom_url, master_url)
            result = run_sync(plan_sync(operation, custom_repo, master_repo), github_token)
            message = result.message
            details = result.to_details()
    except Exception as exc:
        current_app.logger.error("Error in git-sync: %s", exc, exc_info=True)
        record_failure(str(exc) or exc.__class__.__name__, user_id, _error_details(exc))
        return json_error(str(exc) or "Git sync failed")

    record_success(operation, message, user_id)
    return jsonify({"success": True, "message": message, "details": details})


@git_sync_bp.route("/logs", methods=["GET", "OPTIONS"])
def list_sync_logs():
    """Return recent sync log entries visible to the caller."""

    if request.method == "OPTIONS":
        return "", 200

    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return json_error("No authorization header", status=401)
    try:
        user = _require_user(auth_header, _settings())
    except SyncRequestError as exc:
        return json_error(str(exc), status=401)
    except ConfigurationError as exc:
        current_app.logger.error("Git sync logs unavailable: %s", exc)
        return json_error(str(exc))

    entries = recent_logs(user, request.args.get("limit"))
    return jsonify({"success": True, "logs": [entry.to_dict() for entry in entries]})
