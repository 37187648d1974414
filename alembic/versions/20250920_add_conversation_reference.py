"""Add conversation reference table for proactive bot messages

Revision ID: 20250920_add_conversation_reference
Revises:
Create Date: 2025-09-20 10:12:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20250920_add_conversation_reference"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "conversation",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("conversation_id", sa.String(255), nullable=False),
        sa.Column("service_url", sa.String(2048), nullable=False),
        sa.Column("bot_installed_on", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
    )

    # One conversation per user
    op.create_index("ix_conversation_user_id", "conversation", ["user_id"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_conversation_user_id", table_name="conversation")
    op.drop_table("conversation")
