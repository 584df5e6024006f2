"""In-memory stand-in for the GitHub REST endpoints used by the sync code."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

MUTATING_METHODS = ("POST", "PATCH", "PUT", "DELETE")


@dataclass
class RecordedCall:
    method: str
    endpoint: str
    payload: Optional[dict]
    token: str

    @property
    def repository(self) -> str:
        parts = self.endpoint.strip("/").split("/")
        return f"{parts[1]}/{parts[2]}" if len(parts) >= 3 else ""


class FakeGitHub:
    """Callable with the same signature as ``github_service._request``."""

    def __init__(self):
        self.repositories: Dict[str, Dict[str, Any]] = {}
        self.failures: Dict[Tuple[str, str], Tuple[int, str]] = {}
        self.calls: List[RecordedCall] = []

    def add_repository(self, full_name: str, default_branch: str = "main", refs: Optional[dict] = None):
        self.repositories[full_name] = {"default_branch": default_branch, "refs": dict(refs or {})}

    def fail(self, method: str, endpoint: str, status: int, text: str):
        self.failures[(method, endpoint)] = (status, text)

    def refs(self, full_name: str) -> dict:
        return self.repositories[full_name]["refs"]

    def mutating_calls(self, repository: Optional[str] = None) -> List[RecordedCall]:
        return [
            call
            for call in self.calls
            if call.method in MUTATING_METHODS and (repository is None or call.repository == repository)
        ]

    def calls_with(self, method: str) -> List[RecordedCall]:
        return [call for call in self.calls if call.method == method]

    @staticmethod
    def _respond(status: int, body: Any):
        text = json.dumps(body)
        return status, body, text

    @staticmethod
    def _ref_body(full_name: str, branch: str, sha: str) -> dict:
        return {
            "ref": f"refs/heads/{branch}",
            "url": f"https://api.github.com/repos/{full_name}/git/refs/heads/{branch}",
            "object": {"sha": sha, "type": "commit"},
        }

    def __call__(self, method: str, endpoint: str, token: str, payload: Optional[dict] = None):
        self.calls.append(RecordedCall(method, endpoint, payload, token))

        if (method, endpoint) in self.failures:
            status, text = self.failures[(method, endpoint)]
            try:
                body = json.loads(text)
            except json.JSONDecodeError:
                body = {}
            return status, body, text

        parts = endpoint.strip("/").split("/")
        if len(parts) < 3 or parts[0] != "repos":
            return self._respond(404, {"message": "Not Found"})
        full_name = f"{parts[1]}/{parts[2]}"
        repository = self.repositories.get(full_name)
        if repository is None:
            return self._respond(404, {"message": "Not Found"})

        rest = parts[3:]
        refs = repository["refs"]
        if not rest and method == "GET":
            return self._respond(
                200, {"full_name": full_name, "default_branch": repository["default_branch"]}
            )
        if rest[:3] == ["git", "ref", "heads"] and method == "GET":
            branch = unquote("/".join(rest[3:]))
            if branch not in refs:
                return self._respond(404, {"message": "Not Found"})
            return self._respond(200, self._ref_body(full_name, branch, refs[branch]))
        if rest == ["git", "refs"] and method == "POST":
            branch = payload["ref"][len("refs/heads/"):]
            if branch in refs:
                return self._respond(422, {"message": "Reference already exists"})
            refs[branch] = payload["sha"]
            return self._respond(201, self._ref_body(full_name, branch, payload["sha"]))
        if rest[:3] == ["git", "refs", "heads"] and method == "PATCH":
            branch = unquote("/".join(rest[3:]))
            if branch not in refs:
                return self._respond(422, {"message": "Reference does not exist"})
            refs[branch] = payload["sha"]
            return self._respond(200, self._ref_body(full_name, branch, payload["sha"]))
        return self._respond(404, {"message": "Not Found"})
