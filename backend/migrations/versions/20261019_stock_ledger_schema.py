"""Stock ledger schema: raw event log, movements, stock state cache, rebuild jobs

Revision ID: 20261019_stock_ledger
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_stock_ledger"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "stock_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=True),
        sa.Column("product_ids", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_events", schema=None) as batch_op:
        batch_op.create_index("ix_stock_events_kind", ["kind"], unique=False)
        batch_op.create_index("ix_stock_events_order_id", ["order_id"], unique=False)
        batch_op.create_index("ix_stock_events_kind_occurred", ["kind", "occurred_at"], unique=False)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=True),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("qoh_after", sa.Integer(), nullable=True),
        sa.Column("customer_label", sa.String(length=255), nullable=True),
        sa.Column("source", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_movements", schema=None) as batch_op:
        batch_op.create_index("ix_stock_movements_order_id", ["order_id"], unique=False)
        batch_op.create_index("ix_stock_movements_product_created", ["product_id", "created_at"], unique=False)
        batch_op.create_index(
            "ix_stock_movements_product_kind_created",
            ["product_id", "kind", "created_at"],
            unique=False,
        )

    op.create_table(
        "product_stock_states",
        sa.Column("product_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("last_quantity", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("product_id"),
    )

    op.create_table(
        "rebuild_jobs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("scope", sa.String(length=16), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("days", sa.Integer(), nullable=True),
        sa.Column("window_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("processed", sa.Integer(), nullable=False),
        sa.Column("cursor", sa.Integer(), nullable=False),
        sa.Column("batch_size", sa.Integer(), nullable=False),
        sa.Column("movements_written", sa.Integer(), nullable=False),
        sa.Column("failed_orders", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("rebuild_jobs", schema=None) as batch_op:
        batch_op.create_index("ix_rebuild_jobs_status", ["status"], unique=False)


def downgrade():
    with op.batch_alter_table("rebuild_jobs", schema=None) as batch_op:
        batch_op.drop_index("ix_rebuild_jobs_status")
    op.drop_table("rebuild_jobs")

    op.drop_table("product_stock_states")

    with op.batch_alter_table("stock_movements", schema=None) as batch_op:
        batch_op.drop_index("ix_stock_movements_product_kind_created")
        batch_op.drop_index("ix_stock_movements_product_created")
        batch_op.drop_index("ix_stock_movements_order_id")
    op.drop_table("stock_movements")

    with op.batch_alter_table("stock_events", schema=None) as batch_op:
        batch_op.drop_index("ix_stock_events_kind_occurred")
        batch_op.drop_index("ix_stock_events_order_id")
        batch_op.drop_index("ix_stock_events_kind")
    op.drop_table("stock_events")
