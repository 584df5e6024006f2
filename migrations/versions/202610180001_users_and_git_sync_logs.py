"""Create users and git sync log tables (SQLite-safe, idempotent)."""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "202610180001_users_and_git_sync_logs"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    tables = inspector.get_table_names()

    if "user" not in tables:
        op.create_table(
            "user",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("username", sa.String(length=80), nullable=False),
            sa.Column("password_hash", sa.Text(), nullable=True),
            sa.Column("role", sa.String(length=80), nullable=False, server_default="member"),
            sa.Column("name", sa.String(length=80), nullable=False),
            sa.Column("email", sa.String(length=80), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username"),
            sa.UniqueConstraint("email"),
        )

    if "git_sync_logs" not in tables:
        op.create_table(
            "git_sync_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("operation_type", sa.String(length=16), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("created_by", sa.Integer(), nullable=True),
            sa.Column("error_details", sa.Text(), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(),
                nullable=False,
                server_default=sa.func.now(),
            ),
            sa.ForeignKeyConstraint(["created_by"], ["user.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_git_sync_logs_created_by", "git_sync_logs", ["created_by"])
        op.create_index("ix_git_sync_logs_created_at", "git_sync_logs", ["created_at"])


def downgrade():
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    tables = inspector.get_table_names()

    if "git_sync_logs" in tables:
        op.drop_index("ix_git_sync_logs_created_at", table_name="git_sync_logs")
        op.drop_index("ix_git_sync_logs_created_by", table_name="git_sync_logs")
        op.drop_table("git_sync_logs")
    if "user" in tables:
        op.drop_table("user")
