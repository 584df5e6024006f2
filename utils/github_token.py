"""
utils/github_token.py
Resolves the GitHub credential used for sync calls.

A personal access token wins when configured; otherwise a GitHub App
installation token is generated and cached until shortly before it expires.
"""

import logging
import os
import time

from github import Auth, GithubIntegration
from github.GithubException import GithubException

from utils.sync_settings import ConfigurationError, SyncSettings

# In-memory token cache (shared across requests)
_token_cache = {"token": None, "expires_at": 0, "installation_id": None}


def _generate_installation_token(settings: SyncSettings):
    """Generate a fresh GitHub App installation token."""
    private_key_path = settings.github_private_key_path

    if not os.path.exists(private_key_path):
        raise ConfigurationError(
            f"GitHub App private key file not found at '{private_key_path}'. "
            "Update GITHUB_PRIVATE_KEY_PATH to point to a readable .pem file."
        )

    try:
        app_id = int(settings.github_app_id)
    except ValueError as exc:
        raise ConfigurationError("GITHUB_APP_ID must be a numeric GitHub App id.") from exc

    try:
        installation_id = int(settings.github_installation_id)
    except ValueError as exc:
        raise ConfigurationError(
            "GITHUB_INSTALLATION_ID must be the numeric installation id."
        ) from exc

    with open(private_key_path, "r") as key_file:
        private_key = key_file.read()

    integration = GithubIntegration(auth=Auth.AppAuth(app_id, private_key))

    try:
        token_data = integration.get_access_token(installation_id)
    except GithubException as exc:
        logging.error(
            "GitHub rejected installation token request (status %s): %s",
            getattr(exc, "status", "unknown"),
            getattr(exc, "data", {}),
        )
        raise ConfigurationError(
            "Unable to generate GitHub App installation token. "
            "Verify that the app is installed on the target account and that the installation id is correct."
        ) from exc

    _token_cache["token"] = token_data.token
    _token_cache["expires_at"] = token_data.expires_at.timestamp()
    _token_cache["installation_id"] = installation_id

    logging.info("Generated new GitHub App token for installation %s.", installation_id)

    return token_data.token


def get_github_token(settings: SyncSettings) -> str:
    """
    Returns the token used for GitHub REST calls.
    Raises ConfigurationError when no credential is configured.
    """
    settings.require_github_credentials()
    if settings.github_pat:
        return settings.github_pat

    # Reuse a cached installation token while it stays valid for another minute
    if (
        _token_cache["token"]
        and str(_token_cache["installation_id"]) == settings.github_installation_id
        and time.time() < _token_cache["expires_at"] - 60
    ):
        return _token_cache["token"]

    return _generate_installation_token(settings)


def clear_token_cache() -> None:
    _token_cache.update({"token": None, "expires_at": 0, "installation_id": None})
