"""Initial schema for CaseBridge

Revision ID: 0001
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def upgrade() -> None:
    # Enums are stored as strings (native_enum=False in the models)
    op.create_table(
        "firms",
        _uuid("id", primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50)),
        sa.Column("address", sa.Text),
        sa.Column("status", sa.String(32), server_default="active"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        "principals",
        _uuid("id", primary_key=True),
        _uuid("firm_id", sa.ForeignKey("firms.id")),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(128)),  # encrypted
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        sa.Column("failed_login_attempts", sa.Integer, server_default="0"),
        sa.Column("locked_until", sa.DateTime),
        sa.Column("last_failed_login", sa.DateTime),
        sa.Column("last_login", sa.DateTime),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("idx_principals_firm_role", "principals", ["firm_id", "role"])

    op.create_table(
        "matters",
        _uuid("id", primary_key=True),
        sa.Column("matter_number", sa.String(32), unique=True, nullable=False),
        _uuid("client_id", sa.ForeignKey("principals.id"), nullable=False),
        _uuid("firm_id", sa.ForeignKey("firms.id")),
        _uuid("created_by", sa.ForeignKey("principals.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("service_tier", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("closed_at", sa.DateTime),
    )
    op.create_index("idx_matters_firm_status", "matters", ["firm_id", "status"])
    op.create_index("idx_matters_client", "matters", ["client_id"])

    op.create_table(
        "case_assignments",
        _uuid("id", primary_key=True),
        _uuid("matter_id", sa.ForeignKey("matters.id"), nullable=False),
        _uuid("associate_id", sa.ForeignKey("principals.id"), nullable=False),
        _uuid("assigned_by", sa.ForeignKey("principals.id"), nullable=False),
        sa.Column("assigned_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("superseded_at", sa.DateTime),
        _uuid("superseded_by", sa.ForeignKey("principals.id")),
        sa.Column("supersede_reason", sa.Text),
    )
    op.create_index("idx_case_assignments_associate", "case_assignments", ["associate_id"])
    # One active assignment per matter
    op.create_index(
        "uq_case_assignments_active",
        "case_assignments",
        ["matter_id"],
        unique=True,
        postgresql_where=sa.text("superseded_at IS NULL"),
    )

    op.create_table(
        "audit_log",
        sa.Column("sequence_id", sa.Integer, primary_key=True, autoincrement=True),
        _uuid("id", unique=True),
        sa.Column("previous_hash", sa.String(64), nullable=False),
        sa.Column("entry_hash", sa.String(64), nullable=False, index=True),
        _uuid("firm_id", sa.ForeignKey("firms.id")),
        _uuid("actor_id", nullable=False),
        sa.Column("action", sa.String(64), nullable=False),
        _uuid("target_id"),
        _uuid("matter_id", sa.ForeignKey("matters.id")),
        sa.Column("details", postgresql.JSONB, server_default="{}"),
        sa.Column("timestamp", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_audit_firm_sequence", "audit_log", ["firm_id", "sequence_id"])
    op.create_index("idx_audit_matter", "audit_log", ["matter_id"])
    op.create_index("idx_audit_actor", "audit_log", ["actor_id"])

    # Audit entries are append-only
    op.execute("REVOKE UPDATE, DELETE ON audit_log FROM PUBLIC")

    op.create_table(
        "notifications",
        _uuid("id", primary_key=True),
        _uuid("recipient_id", sa.ForeignKey("principals.id"), nullable=False),
        _uuid("firm_id", sa.ForeignKey("firms.id")),
        _uuid("matter_id", sa.ForeignKey("matters.id")),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("channel", sa.String(32), server_default="in_app"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("link", sa.String(500)),
        sa.Column("read_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("idx_notifications_recipient", "notifications", ["recipient_id", "read_at"])

    op.create_table(
        "invitations",
        _uuid("id", primary_key=True),
        _uuid("firm_id", sa.ForeignKey("firms.id"), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("token_hash", sa.String(64), unique=True, nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        _uuid("invited_by", sa.ForeignKey("principals.id"), nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime, nullable=False),
        sa.Column("accepted_at", sa.DateTime),
        _uuid("principal_id", sa.ForeignKey("principals.id")),
    )
    op.create_index("idx_invitations_firm_status", "invitations", ["firm_id", "status"])
    op.create_index("idx_invitations_email", "invitations", ["email"])

    op.create_table(
        "matter_documents",
        _uuid("id", primary_key=True),
        _uuid("matter_id", sa.ForeignKey("matters.id"), nullable=False),
        _uuid("uploaded_by", sa.ForeignKey("principals.id"), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("storage_key", sa.String(1024), nullable=False),
        sa.Column("content_type", sa.String(100)),
        sa.Column("client_visible", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("idx_matter_documents_matter", "matter_documents", ["matter_id"])

    op.create_table(
        "matter_updates",
        _uuid("id", primary_key=True),
        _uuid("matter_id", sa.ForeignKey("matters.id"), nullable=False),
        _uuid("author_id", sa.ForeignKey("principals.id"), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("client_visible", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("idx_matter_updates_matter", "matter_updates", ["matter_id"])

    op.create_table(
        "case_statements",
        _uuid("id", primary_key=True),
        _uuid("matter_id", sa.ForeignKey("matters.id"), nullable=False),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        _uuid("author_id", sa.ForeignKey("principals.id"), nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint("matter_id", "version", name="uq_case_statements_version"),
    )

    op.create_table(
        "invoices",
        _uuid("id", primary_key=True),
        _uuid("matter_id", sa.ForeignKey("matters.id"), nullable=False),
        _uuid("client_id", sa.ForeignKey("principals.id"), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(32), server_default="pending"),
        sa.Column("issued_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("paid_at", sa.DateTime),
    )

    op.create_table(
        "payments",
        _uuid("id", primary_key=True),
        _uuid("invoice_id", sa.ForeignKey("invoices.id"), nullable=False),
        _uuid("matter_id", sa.ForeignKey("matters.id"), nullable=False),
        _uuid("client_id", sa.ForeignKey("principals.id"), nullable=False),
        sa.Column("reference", sa.String(100), unique=True, nullable=False),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table("payments")
    op.drop_table("invoices")
    op.drop_table("case_statements")
    op.drop_table("matter_updates")
    op.drop_table("matter_documents")
    op.drop_table("invitations")
    op.drop_table("notifications")
    op.drop_table("audit_log")
    op.drop_table("case_assignments")
    op.drop_table("matters")
    op.drop_table("principals")
    op.drop_table("firms")
