"""Channel bookmarks table — every version of every bookmark, tombstones included.

Revision ID: 001_channel_bookmarks
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_channel_bookmarks"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "channel_bookmarks",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("channel_id", sa.String(64), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=True),
        sa.Column("display_name", sa.String(64), nullable=False),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("link_url", sa.String(1024), nullable=True),
        sa.Column("file_id", sa.String(64), nullable=True),
        sa.Column("image_url", sa.String(1024), nullable=True),
        sa.Column("emoji", sa.String(64), nullable=True),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("create_at", sa.BigInteger, nullable=False),
        sa.Column("update_at", sa.BigInteger, nullable=False),
        sa.Column("delete_at", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("original_id", UUID(as_uuid=True), nullable=True),
    )
    op.create_index(
        "ix_channel_bookmarks_active", "channel_bookmarks",
        ["channel_id", "delete_at", "sort_order"],
    )
    op.create_index(
        "ix_channel_bookmarks_create_at", "channel_bookmarks", ["channel_id", "create_at"],
    )
    op.create_index(
        "ix_channel_bookmarks_update_at", "channel_bookmarks", ["channel_id", "update_at"],
    )
    op.create_index(
        "ix_channel_bookmarks_delete_at", "channel_bookmarks", ["channel_id", "delete_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_channel_bookmarks_delete_at", table_name="channel_bookmarks")
    op.drop_index("ix_channel_bookmarks_update_at", table_name="channel_bookmarks")
    op.drop_index("ix_channel_bookmarks_create_at", table_name="channel_bookmarks")
    op.drop_index("ix_channel_bookmarks_active", table_name="channel_bookmarks")
    op.drop_table("channel_bookmarks")
