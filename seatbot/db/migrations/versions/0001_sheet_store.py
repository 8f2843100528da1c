"""sheet store

Revision ID: 0001_sheet_store
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_sheet_store"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "sheet_tables",
        sa.Column("name", sa.String(length=64), primary_key=True),
        sa.Column("headers", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "sheet_rows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("table_name", sa.String(length=64), nullable=False),
        sa.Column("values", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["table_name"], ["sheet_tables.name"], ondelete="CASCADE"),
    )
    op.create_index("ix_sheet_rows_table_name", "sheet_rows", ["table_name"])


def downgrade() -> None:
    op.drop_index("ix_sheet_rows_table_name", table_name="sheet_rows")
    op.drop_table("sheet_rows")
    op.drop_table("sheet_tables")
