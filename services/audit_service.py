"""Audit rows for git sync invocations.

Writes are best-effort: the caller's response never depends on them. A failed
insert is rolled back, logged and counted, and the caller gets ``None``.
"""
from __future__ import annotations

import logging
from collections import Counter
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from database import db
from models.git_sync_log import GitSyncLog
from models.user import User

DEFAULT_LOG_LIMIT = 20
MAX_LOG_LIMIT = 100

_audit_metrics: Counter = Counter()


def audit_write_failures() -> int:
    """Number of audit rows that could not be written since start-up."""

    return _audit_metrics["write_failures"]


def reset_audit_metrics() -> None:
    _audit_metrics.clear()


def _write(entry: GitSyncLog) -> Optional[GitSyncLog]:
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        _audit_metrics["write_failures"] += 1
        logging.exception(
            "Unable to write git sync log entry (operation=%s, status=%s)",
            entry.operation_type,
            entry.status,
        )
        return None
    _audit_metrics["rows_written"] += 1
    return entry


def record_success(operation: str, message: str, user_id: Optional[int]) -> Optional[GitSyncLog]:
    return _write(
        GitSyncLog(
            operation_type=operation,
            status=GitSyncLog.STATUS_COMPLETED,
            message=message,
            created_by=user_id,
        )
    )


def record_failure(
    message: str,
    user_id: Optional[int],
    error_details: Optional[str] = None,
) -> Optional[GitSyncLog]:
    return _write(
        GitSyncLog(
            operation_type=GitSyncLog.OPERATION_ERROR,
            status=GitSyncLog.STATUS_FAILED,
            message=message,
            created_by=user_id,
            error_details=error_details,
        )
    )


def clamp_limit(raw_limit) -> int:
    try:
        limit = int(raw_limit)
    except (TypeError, ValueError):
        return DEFAULT_LOG_LIMIT
    return max(1, min(limit, MAX_LOG_LIMIT))


def recent_logs(user: User, limit: int = DEFAULT_LOG_LIMIT) -> List[GitSyncLog]:
    """Newest entries first; non-admins only see their own rows."""

    query = GitSyncLog.query
    if not user.is_admin:
        query = query.filter(GitSyncLog.created_by == user.id)
    return (
        query.order_by(GitSyncLog.created_at.desc(), GitSyncLog.id.desc())
        .limit(clamp_limit(limit))
        .all()
    )
