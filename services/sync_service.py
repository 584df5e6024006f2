"""Mirror one repository's default branch onto another's."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from services.github_service import (
    GitReference,
    ReferenceNotFoundError,
    ReferenceWrite,
    RepositoryRef,
    ensure_reference,
    get_default_branch,
    get_reference,
)


class SyncRequestError(ValueError):
    """Raised when a sync request is missing data or carries invalid values."""


class SyncOperation(str, Enum):
    PULL = "pull"
    PUSH = "push"


class SyncState(str, Enum):
    START = "start"
    BRANCHES_RESOLVED = "branches-resolved"
    SOURCE_REF_READ = "source-ref-read"
    DESTINATION_REF_WRITTEN = "destination-ref-written"
    DONE = "done"
    ERROR = "error"


class SyncFailure(RuntimeError):
    """Raised when a sync stops before reaching ``done``.

    ``state`` is the last state reached. ``partial`` is true when the
    create or update request for the destination ref had been sent, so the
    destination may have been mutated; no rollback is performed.
    """

    def __init__(
        self,
        message: str,
        *,
        state: SyncState,
        plan: "SyncPlan",
        cause: BaseException,
        write_attempted: bool = False,
    ):
        super().__init__(message)
        self.state = state
        self.plan = plan
        self.cause = cause
        self.write_attempted = write_attempted

    @property
    def partial(self) -> bool:
        return self.write_attempted and self.state != SyncState.DESTINATION_REF_WRITTEN


@dataclass(frozen=True)
class SyncPlan:
    operation: SyncOperation
    source: RepositoryRef
    destination: RepositoryRef

    @property
    def source_label(self) -> str:
        return "Master" if self.operation == SyncOperation.PULL else "Custom"


@dataclass
class SyncResult:
    plan: SyncPlan
    source_branch: str
    destination_branch: str
    source_reference: GitReference
    write: ReferenceWrite
    state: SyncState = SyncState.DONE

    @property
    def sha(self) -> str:
        return self.source_reference.sha

    @property
    def message(self) -> str:
        verb = "Pulled" if self.plan.operation == SyncOperation.PULL else "Pushed"
        return (
            f"{verb} {self.plan.source.full_name}@{self.source_branch} into "
            f"{self.plan.destination.full_name}@{self.destination_branch} ({self.sha[:7]})"
        )

    def to_details(self) -> Dict[str, Any]:
        return {
            "operation": self.plan.operation.value,
            "source": {
                "repository": self.plan.source.full_name,
                "branch": self.source_branch,
            },
            "destination": {
                "repository": self.plan.destination.full_name,
                "branch": self.destination_branch,
            },
            "sha": self.sha,
            "created": self.write.created,
            "previous_sha": self.write.previous_sha,
        }


def plan_sync(operation: str | SyncOperation, custom: RepositoryRef, master: RepositoryRef) -> SyncPlan:
    """Map an operation name onto a source/destination pair."""

    operation = SyncOperation(operation)
    if operation == SyncOperation.PULL:
        return SyncPlan(operation=operation, source=master, destination=custom)
    return SyncPlan(operation=operation, source=custom, destination=master)


def run_sync(plan: SyncPlan, token: str) -> SyncResult:
    """Force the destination default branch to the source default branch's commit."""

    state = SyncState.START
    write_attempts: list = []
    source, destination = plan.source, plan.destination
    logging.info(
        "Starting %s from %s to %s", plan.operation.value, source.full_name, destination.full_name
    )
    try:
        source_branch = get_default_branch(source.owner, source.repo, token)
        destination_branch = get_default_branch(destination.owner, destination.repo, token)
        state = SyncState.BRANCHES_RESOLVED

        source_reference: Optional[GitReference] = get_reference(
            source.owner, source.repo, source_branch, token
        )
        if source_reference is None:
            raise ReferenceNotFoundError(f"{plan.source_label} branch reference not found")
        state = SyncState.SOURCE_REF_READ

        write = ensure_reference(
            destination.owner,
            destination.repo,
            destination_branch,
            source_reference.sha,
            token,
            before_write=lambda: write_attempts.append(destination.full_name),
        )
        state = SyncState.DESTINATION_REF_WRITTEN
    except Exception as exc:
        logging.error(
            "Sync %s stopped after state %s: %s", plan.operation.value, state.value, exc
        )
        raise SyncFailure(
            str(exc), state=state, plan=plan, cause=exc, write_attempted=bool(write_attempts)
        ) from exc

    logging.info(
        "Completed %s: %s@%s -> %s@%s at %s",
        plan.operation.value,
        source.full_name,
        source_branch,
        destination.full_name,
        destination_branch,
        source_reference.sha,
    )
    return SyncResult(
        plan=plan,
        source_branch=source_branch,
        destination_branch=destination_branch,
        source_reference=source_reference,
        write=write,
    )
