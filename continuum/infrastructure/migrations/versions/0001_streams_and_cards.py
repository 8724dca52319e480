"""streams and cards

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "streams",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column(
            "parent_stream_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("streams.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_streams_parent_stream_id", "streams", ["parent_stream_id"])

    op.create_table(
        "cards",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "stream_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("streams.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_editable", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("stream_version_idx", "cards", ["stream_id", "version"], unique=True)
    op.create_index("ix_cards_stream_editable", "cards", ["stream_id", "is_editable"])


def downgrade() -> None:
    op.drop_index("ix_cards_stream_editable", table_name="cards")
    op.drop_index("stream_version_idx", table_name="cards")
    op.drop_table("cards")
    op.drop_index("ix_streams_parent_stream_id", table_name="streams")
    op.drop_table("streams")
