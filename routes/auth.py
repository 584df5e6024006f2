"""Bearer token issuing for API callers."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from forms import TokenRequestForm
from routes import apply_cors_headers, json_error
from services.identity_service import authenticate, issue_access_token
from utils.sync_settings import ConfigurationError

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.after_request
def add_cors_headers(response):
    return apply_cors_headers(response)


@auth_bp.route("/token", methods=["POST", "OPTIONS"])
def issue_token():
    """Exchange a username and password for a bearer token."""

    if request.method == "OPTIONS":
        return "", 200

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return json_error("Request body must be a JSON object")
    form = TokenRequestForm(payload)
    if not form.validate():
        return json_error(form.first_error() or "Invalid credentials payload")

    user = authenticate(form.username.data, form.password.data)
    if user is None:
        return json_error("Invalid username or password.", status=401)

    settings = current_app.config["GIT_SYNC_SETTINGS"]
    try:
        token = issue_access_token(user)
        expires_in = settings.token_ttl_seconds()
    except ConfigurationError as exc:
        current_app.logger.error("Unable to issue access token: %s", exc)
        return json_error(str(exc))

    return jsonify({"success": True, "token": token, "expires_in": expires_in})
