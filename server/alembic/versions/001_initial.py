"""Initial database schema with products & bulk_jobs tables."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None

JOB_OPERATIONS = ("import", "generate_summaries", "translate", "ensure_categories", "infer_categories")
JOB_STATUSES = ("queued", "running", "done", "failed")


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ext_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("category", sa.String(255), nullable=False, server_default=""),
        sa.Column("image", sa.Text(), nullable=False),
        sa.Column("ai_summary", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    # extId is the upsert key for imports and the external sync
    op.create_index("idx_products_ext_id_unique", "products", ["ext_id"], unique=True)

    op.create_table(
        "bulk_jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("operation", sa.Enum(*JOB_OPERATIONS, name="bulk_job_operation"), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*JOB_STATUSES, name="bulk_job_status"),
            nullable=False,
            server_default="queued",
        ),
        sa.Column("params", sa.JSON(), nullable=False),
        sa.Column("attempted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", sa.JSON(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_bulk_jobs_created_at", "bulk_jobs", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_bulk_jobs_created_at", table_name="bulk_jobs")
    op.drop_table("bulk_jobs")
    op.drop_index("idx_products_ext_id_unique", table_name="products")
    op.drop_table("products")
    sa.Enum(name="bulk_job_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="bulk_job_operation").drop(op.get_bind(), checkfirst=True)
