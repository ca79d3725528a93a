"""Matter tasks and invitation revocation

Revision ID: 0002
Revises: 0001
Create Date: 2025-01-15 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def upgrade() -> None:
    op.create_table(
        "matter_tasks",
        _uuid("id", primary_key=True),
        _uuid("matter_id", sa.ForeignKey("matters.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(32), nullable=False, server_default="medium"),
        sa.Column("due_date", sa.Date),
        sa.Column("client_visible", sa.Boolean, nullable=False, server_default=sa.false()),
        _uuid("assigned_to", sa.ForeignKey("principals.id")),
        _uuid("created_by", sa.ForeignKey("principals.id"), nullable=False),
        sa.Column("completed_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("idx_matter_tasks_matter", "matter_tasks", ["matter_id"])
    op.create_index("idx_matter_tasks_assignee_status", "matter_tasks", ["assigned_to", "status"])

    op.add_column("invitations", sa.Column("revoked_at", sa.DateTime))
    op.add_column("invitations", _uuid("revoked_by", sa.ForeignKey("principals.id")))
    op.add_column(
        "invitations",
        sa.Column("resend_count", sa.Integer, nullable=False, server_default="0"),
    )


def downgrade() -> None:
    op.drop_column("invitations", "resend_count")
    op.drop_column("invitations", "revoked_by")
    op.drop_column("invitations", "revoked_at")
    op.drop_index("idx_matter_tasks_assignee_status", table_name="matter_tasks")
    op.drop_index("idx_matter_tasks_matter", table_name="matter_tasks")
    op.drop_table("matter_tasks")
