"""create file_imports_control table

Revision ID: 20260301_0001
Revises:
Create Date: 2026-03-01 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20260301_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "file_imports_control",
        sa.Column("file_id", sa.String(length=255), nullable=False, comment="File base name without extension"),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("storage_path", sa.String(length=1024), nullable=True),
        sa.Column(
            "file_type",
            sa.String(length=32),
            nullable=True,
            comment="segments, real_estate, movables, regional_uf, administrators, unknown",
        ),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("rows_processed", sa.Integer(), nullable=False),
        sa.Column("reference_date", sa.String(length=16), nullable=True, comment="YYYY-MM competence or UNKNOWN"),
        sa.Column("error_details", sa.Text(), nullable=True),
        sa.Column("target_table", sa.String(length=128), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("file_id", name="pk_file_imports_control"),
    )
    op.create_index("ix_file_imports_control_status", "file_imports_control", ["status"], unique=False)
    op.create_index(
        "ix_file_imports_control_reference_date",
        "file_imports_control",
        ["reference_date"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_file_imports_control_reference_date", table_name="file_imports_control")
    op.drop_index("ix_file_imports_control_status", table_name="file_imports_control")
    op.drop_table("file_imports_control")
