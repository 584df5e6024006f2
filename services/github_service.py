"""Utilities for interacting with the GitHub REST API."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from http.client import RemoteDisconnected
from typing import Any, Callable, Dict, Optional, Tuple
from urllib import request as urllib_request, error as urllib_error
from urllib.parse import quote, urlparse

GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_HOST = "github.com"
REPOSITORY_PATH_PATTERN = re.compile(r"^/([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+)/?$")
DOT_SEGMENTS = {"", ".", ".."}


class GitHubError(RuntimeError):
    """Raised when a GitHub API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ReferenceNotFoundError(GitHubError):
    """Raised when a branch that must exist has no ref on GitHub."""

    def __init__(self, message: str):
        super().__init__(message, 404)


@dataclass(frozen=True)
class RepositoryRef:
    """Owner/name pair parsed from a repository URL."""

    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class GitReference:
    """A branch ref and the commit it points at."""

    name: str
    sha: str


@dataclass(frozen=True)
class ReferenceWrite:
    """Outcome of forcing a branch to a commit."""

    reference: GitReference
    created: bool
    previous_sha: Optional[str] = None


def parse_repository_url(url: Optional[str]) -> Optional[RepositoryRef]:
    """Return the owner/repo pair for a github.com URL, or ``None`` when invalid."""

    if not url or not isinstance(url, str):
        return None
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        logging.warning("Unable to parse repository URL: %s", url)
        return None
    if parsed.scheme not in ("http", "https") or (parsed.hostname or "").lower() != GITHUB_HOST:
        logging.warning("Rejected non-GitHub repository URL: %s", url)
        return None
    match = REPOSITORY_PATH_PATTERN.match(parsed.path)
    if not match:
        logging.warning("Rejected malformed repository URL: %s", url)
        return None
    owner, repo = match.groups()
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if owner in DOT_SEGMENTS or repo in DOT_SEGMENTS:
        logging.warning("Rejected repository URL with an empty or dot segment: %s", url)
        return None
    return RepositoryRef(owner=owner, repo=repo)


def _headers(token: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": "RepoSync-Integration",
        "Content-Type": "application/json",
    }


def _request(
    method: str,
    endpoint: str,
    token: str,
    payload: Optional[dict] = None,
) -> Tuple[int, Any, str]:
    """Perform a single REST call and return ``(status, decoded_body, raw_text)``."""

    url = endpoint if endpoint.startswith("http") else f"{GITHUB_API_BASE}{endpoint}"
    data = None
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")

    request = urllib_request.Request(
        url,
        data=data,
        headers=_headers(token),
        method=method,
    )
    try:
        with urllib_request.urlopen(request, timeout=20) as response:
            status = response.getcode()
            raw = response.read()
    except urllib_error.HTTPError as error:
        status = error.code
        raw = error.read()
    except RemoteDisconnected as error:
        raise GitHubError("GitHub closed the connection unexpectedly.") from error
    except urllib_error.URLError as error:
        raise GitHubError("Unable to reach GitHub.") from error

    text = raw.decode("utf-8") if raw else ""
    if status >= 400:
        logging.warning(
            "GitHub API call failed",
            extra={"method": method, "url": url, "status": status, "body": text[:500]},
        )
    try:
        body = json.loads(text) if text else {}
    except json.JSONDecodeError:
        body = {}
    return status, body, text


def _ref_path(branch: str) -> str:
    return f"heads/{quote(branch, safe='/')}"


def _reference_from_payload(branch: str, payload: Any) -> GitReference:
    target = payload.get("object") if isinstance(payload, dict) else None
    sha = target.get("sha") if isinstance(target, dict) else None
    if not sha:
        raise GitHubError(f"GitHub returned a reference for {branch} without a commit SHA.")
    return GitReference(name=payload.get("ref") or f"refs/heads/{branch}", sha=sha)


def get_repository(owner: str, repo: str, token: str) -> Dict[str, Any]:
    """Fetch repository metadata; any failure is fatal."""

    logging.info("Getting repository metadata for %s/%s", owner, repo)
    status, payload, text = _request("GET", f"/repos/{owner}/{repo}", token)
    if status >= 300:
        raise GitHubError(f"Failed to get repository info: {text}", status)
    if not isinstance(payload, dict):
        raise GitHubError("Unexpected repository payload from GitHub.", status)
    return payload


def get_default_branch(owner: str, repo: str, token: str) -> str:
    payload = get_repository(owner, repo, token)
    branch = payload.get("default_branch")
    if not branch:
        raise GitHubError(f"Repository {owner}/{repo} does not report a default branch.")
    logging.info("Default branch for %s/%s is %s", owner, repo, branch)
    return branch


def get_reference(owner: str, repo: str, branch: str, token: str) -> Optional[GitReference]:
    """Return the branch ref, or ``None`` when GitHub answers 404."""

    logging.info("Getting reference for %s/%s#%s", owner, repo, branch)
    status, payload, text = _request("GET", f"/repos/{owner}/{repo}/git/ref/{_ref_path(branch)}", token)
    if status == 404:
        logging.info("Reference %s not found in %s/%s", branch, owner, repo)
        return None
    if status >= 400:
        raise GitHubError(f"Failed to get reference: {text}", status)
    return _reference_from_payload(branch, payload)


def create_reference(owner: str, repo: str, branch: str, sha: str, token: str) -> GitReference:
    logging.info("Creating reference refs/heads/%s in %s/%s pointing to %s", branch, owner, repo, sha)
    status, payload, text = _request(
        "POST",
        f"/repos/{owner}/{repo}/git/refs",
        token,
        payload={"ref": f"refs/heads/{branch}", "sha": sha},
    )
    if status >= 400:
        raise GitHubError(f"Failed to create reference: {text}", status)
    return _reference_from_payload(branch, payload)


def force_update_reference(owner: str, repo: str, branch: str, sha: str, token: str) -> GitReference:
    """Point an existing branch at ``sha`` without an ancestry check."""

    logging.info("Force-updating reference %s/%s#%s to %s", owner, repo, branch, sha)
    status, payload, text = _request(
        "PATCH",
        f"/repos/{owner}/{repo}/git/refs/{_ref_path(branch)}",
        token,
        payload={"sha": sha, "force": True},
    )
    if status >= 400:
        raise GitHubError(f"Failed to update reference: {text}", status)
    return _reference_from_payload(branch, payload)


def ensure_reference(
    owner: str,
    repo: str,
    branch: str,
    sha: str,
    token: str,
    *,
    before_write: Optional[Callable[[], None]] = None,
) -> ReferenceWrite:
    """Create the branch when absent, otherwise force it to ``sha``.

    ``before_write`` runs after the existence check, right before the
    create or update request is sent.
    """

    existing = get_reference(owner, repo, branch, token)
    if before_write is not None:
        before_write()
    if existing is None:
        logging.info("Reference %s does not exist in %s/%s, creating it", branch, owner, repo)
        return ReferenceWrite(
            reference=create_reference(owner, repo, branch, sha, token),
            created=True,
        )
    return ReferenceWrite(
        reference=force_update_reference(owner, repo, branch, sha, token),
        created=False,
        previous_sha=existing.sha,
    )
