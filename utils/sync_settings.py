"""
utils/sync_settings.py
Process-level configuration for the git sync endpoint.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_ACCESS_TOKEN_TTL = 3600


class ConfigurationError(RuntimeError):
    """Raised when a required secret is missing or malformed."""


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


@dataclass(frozen=True)
class SyncSettings:
    """Secrets and defaults collected once when the app starts.

    Building the settings never fails; the ``require_*`` helpers raise
    ``ConfigurationError`` when a request actually needs a missing value.
    """

    github_pat: Optional[str] = None
    github_app_id: Optional[str] = None
    github_installation_id: Optional[str] = None
    github_private_key_path: Optional[str] = None
    default_master_url: Optional[str] = None
    access_token_ttl: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SyncSettings":
        environ = os.environ if environ is None else environ
        return cls(
            github_pat=_clean(environ.get("GITHUB_PAT")),
            github_app_id=_clean(environ.get("GITHUB_APP_ID")),
            github_installation_id=_clean(environ.get("GITHUB_INSTALLATION_ID")),
            github_private_key_path=_clean(environ.get("GITHUB_PRIVATE_KEY_PATH")),
            default_master_url=_clean(environ.get("GIT_SYNC_MASTER_URL")),
            access_token_ttl=_clean(environ.get("ACCESS_TOKEN_TTL")),
        )

    @property
    def uses_github_app(self) -> bool:
        return not self.github_pat and bool(
            self.github_app_id and self.github_installation_id and self.github_private_key_path
        )

    @property
    def has_github_credentials(self) -> bool:
        return bool(self.github_pat) or self.uses_github_app

    def require_github_credentials(self) -> None:
        if not self.has_github_credentials:
            raise ConfigurationError("GitHub token not configured")

    def token_ttl_seconds(self) -> int:
        if self.access_token_ttl is None:
            return DEFAULT_ACCESS_TOKEN_TTL
        try:
            ttl = int(self.access_token_ttl)
        except ValueError as exc:
            raise ConfigurationError("ACCESS_TOKEN_TTL must be a number of seconds.") from exc
        if ttl <= 0:
            raise ConfigurationError("ACCESS_TOKEN_TTL must be positive.")
        return ttl
