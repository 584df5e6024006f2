"""Append-only record of git sync invocations."""

from datetime import datetime

from database import db


class GitSyncLog(db.Model):
    __tablename__ = "git_sync_logs"

    OPERATION_PULL = "pull"
    OPERATION_PUSH = "push"
    OPERATION_ERROR = "error"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"

    id = db.Column(db.Integer, primary_key=True)
    operation_type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False)
    message = db.Column(db.Text, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)
    error_details = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    user = db.relationship("User", back_populates="sync_logs")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "operation_type": self.operation_type,
            "status": self.status,
            "message": self.message,
            "created_by": self.created_by,
            "error_details": self.error_details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<GitSyncLog op={self.operation_type} status={self.status}>"
