"""Workshop initial schema: tenancy, job card tasks, stock and estimates

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
    ]


def upgrade():
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("tenants", schema=None) as batch_op:
        batch_op.create_index("ix_tenants_code", ["code"], unique=True)
        batch_op.create_index("ix_tenants_is_active", ["is_active"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "username", name="uq_users_tenant_username"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index("ix_users_tenant_id", ["tenant_id"], unique=False)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_reason", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("session_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_session_tokens_token_hash", ["token_hash"], unique=True)
        batch_op.create_index("ix_session_tokens_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_session_tokens_tenant_id", ["tenant_id"], unique=False)
        batch_op.create_index("ix_session_tokens_expires_at", ["expires_at"], unique=False)
        batch_op.create_index("ix_session_tokens_user_active", ["user_id", "is_revoked"], unique=False)

    op.create_table(
        "jobcards",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("job_number", sa.String(32), nullable=False),
        sa.Column("status", sa.String(11), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "job_number", name="uq_jobcards_tenant_number"),
    )
    with op.batch_alter_table("jobcards", schema=None) as batch_op:
        batch_op.create_index("ix_jobcards_tenant_id", ["tenant_id"], unique=False)

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(64), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("unit_cost_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("sell_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("stock_on_hand", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("stock_reserved", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reorder_level", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("stock_on_hand >= 0", name="ck_items_on_hand_non_negative"),
        sa.CheckConstraint("stock_reserved >= 0", name="ck_items_reserved_non_negative"),
        sa.CheckConstraint("stock_reserved <= stock_on_hand", name="ck_items_reserved_within_on_hand"),
    )
    with op.batch_alter_table("inventory_items", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_items_tenant_id", ["tenant_id"], unique=False)
        batch_op.create_index("ix_items_tenant_sku", ["tenant_id", "sku"], unique=False)

    op.create_table(
        "job_card_tasks",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("jobcard_id", sa.String(36), nullable=False),
        sa.Column("task_name", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("action_type", sa.String(9), nullable=False, server_default="NO_CHANGE"),
        sa.Column("inventory_item_id", sa.String(36), nullable=True),
        sa.Column("qty", sa.Integer(), nullable=True),
        sa.Column("unit_price_snapshot_cents", sa.Integer(), nullable=True),
        sa.Column("labor_cost_snapshot_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_rate_snapshot_bps", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("task_status", sa.String(11), nullable=False, server_default="DRAFT"),
        sa.Column("allocation_id", sa.String(36), nullable=True),
        sa.Column("estimate_item_id", sa.String(36), nullable=True),
        sa.Column("show_in_estimate", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("approved_by_user_id", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by_user_id", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by_user_id", sa.Integer(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["jobcard_id"], ["jobcards.id"]),
        sa.ForeignKeyConstraint(["inventory_item_id"], ["inventory_items.id"]),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["approved_by_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["completed_by_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["deleted_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("qty IS NULL OR qty > 0", name="ck_tasks_qty_positive"),
    )
    with op.batch_alter_table("job_card_tasks", schema=None) as batch_op:
        batch_op.create_index("ix_job_card_tasks_tenant_id", ["tenant_id"], unique=False)
        batch_op.create_index("ix_job_card_tasks_inventory_item_id", ["inventory_item_id"], unique=False)
        batch_op.create_index("ix_tasks_tenant_jobcard", ["tenant_id", "jobcard_id"], unique=False)
        batch_op.create_index("ix_tasks_tenant_status", ["tenant_id", "task_status"], unique=False)

    op.create_table(
        "inventory_allocations",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.String(36), nullable=False),
        sa.Column("jobcard_id", sa.String(36), nullable=False),
        sa.Column("task_id", sa.String(36), nullable=False),
        sa.Column("quantity_reserved", sa.Integer(), nullable=False),
        sa.Column("quantity_consumed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(8), nullable=False, server_default="reserved"),
        sa.Column("reserved_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.ForeignKeyConstraint(["jobcard_id"], ["jobcards.id"]),
        sa.ForeignKeyConstraint(["task_id"], ["job_card_tasks.id"]),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity_reserved > 0", name="ck_allocations_quantity_positive"),
    )
    with op.batch_alter_table("inventory_allocations", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_allocations_tenant_id", ["tenant_id"], unique=False)
        batch_op.create_index("ix_inventory_allocations_task_id", ["task_id"], unique=False)
        batch_op.create_index("ix_allocations_tenant_jobcard", ["tenant_id", "jobcard_id"], unique=False)
        batch_op.create_index("ix_allocations_item_status", ["item_id", "status"], unique=False)

    op.create_table(
        "inventory_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.String(36), nullable=False),
        sa.Column("transaction_type", sa.String(8), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reference_type", sa.String(32), nullable=True),
        sa.Column("reference_id", sa.String(36), nullable=True),
        sa.Column("task_id", sa.String(36), nullable=True),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("inventory_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_transactions_tenant_id", ["tenant_id"], unique=False)
        batch_op.create_index("ix_inventory_transactions_item_id", ["item_id"], unique=False)
        batch_op.create_index("ix_inventory_transactions_transaction_type", ["transaction_type"], unique=False)
        batch_op.create_index("ix_inventory_transactions_reference_id", ["reference_id"], unique=False)

    op.create_table(
        "estimates",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("jobcard_id", sa.String(36), nullable=False),
        sa.Column("parts_total_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("labor_total_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["jobcard_id"], ["jobcards.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("estimates", schema=None) as batch_op:
        batch_op.create_index("ix_estimates_tenant_id", ["tenant_id"], unique=False)
        batch_op.create_index("ix_estimates_jobcard_id", ["jobcard_id"], unique=False)

    op.create_table(
        "estimate_items",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("estimate_id", sa.String(36), nullable=False),
        sa.Column("task_id", sa.String(36), nullable=True),
        sa.Column("part_id", sa.String(36), nullable=True),
        sa.Column("custom_name", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("qty", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("labor_cost_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["estimate_id"], ["estimates.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("estimate_items", schema=None) as batch_op:
        batch_op.create_index("ix_estimate_items_tenant_id", ["tenant_id"], unique=False)
        batch_op.create_index("ix_estimate_items_estimate_id", ["estimate_id"], unique=False)
        batch_op.create_index("ix_estimate_items_task_id", ["task_id"], unique=False)


def downgrade():
    for table in (
        "estimate_items",
        "estimates",
        "inventory_transactions",
        "inventory_allocations",
        "job_card_tasks",
        "inventory_items",
        "jobcards",
        "session_tokens",
        "users",
        "tenants",
    ):
        op.drop_table(table)
