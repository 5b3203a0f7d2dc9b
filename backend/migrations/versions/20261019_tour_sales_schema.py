"""tour sales schema

Revision ID: 20261019_tour_sales
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the tour sales schema from scratch:
- sales: one row per tour purchase, unique on id_sale_provider and secure_id
- cart_items: purchased lines owned by a sale (cascade delete)
- login_attempts: append-only log used for login throttling
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_tour_sales"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # sales
    # ============================================================================
    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("id_sale_provider", sa.String(length=100), nullable=False),
        sa.Column("secure_id", sa.String(length=32), nullable=False),
        sa.Column("provider_name", sa.String(length=120), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone_number", sa.String(length=40), nullable=False),
        sa.Column("country", sa.String(length=2), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=False),
        sa.Column("language", sa.String(length=40), nullable=False),
        sa.Column("service_date", sa.Date(), nullable=False),
        sa.Column("service_time", sa.String(length=8), nullable=False),
        sa.Column("qty_pax", sa.Integer(), nullable=False),
        sa.Column("opt", sa.String(length=255), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("ozytrip_booking_id", sa.String(length=64), nullable=True),
        sa.Column("ozytrip_sales_code", sa.String(length=64), nullable=True),
        sa.Column("ozytrip_balance", sa.Numeric(12, 2), nullable=True),
        sa.Column("ozytrip_has_advance_payment", sa.Boolean(), nullable=True),
        sa.Column("ozytrip_response", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PROCESSING"),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("id_sale_provider", name="uq_sales_id_sale_provider"),
        sa.UniqueConstraint("secure_id", name="uq_sales_secure_id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_status", ["status"], unique=False)
        batch_op.create_index("ix_sales_status_created", ["status", "created_at"], unique=False)
        batch_op.create_index("ix_sales_ozytrip_booking_id", ["ozytrip_booking_id"], unique=False)

    # ============================================================================
    # cart_items
    # ============================================================================
    op.create_table(
        "cart_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("id_item_ecommerce", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("cart_items", schema=None) as batch_op:
        batch_op.create_index("ix_cart_items_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_cart_items_sale_status", ["sale_id", "status"], unique=False)

    # ============================================================================
    # login_attempts
    # ============================================================================
    op.create_table(
        "login_attempts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("identifier", sa.String(length=255), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("login_attempts", schema=None) as batch_op:
        batch_op.create_index("ix_login_attempts_identifier", ["identifier"], unique=False)
        batch_op.create_index("ix_login_attempts_identifier_success", ["identifier", "success"], unique=False)
        batch_op.create_index("ix_login_attempts_occurred", ["occurred_at"], unique=False)


def downgrade():
    op.drop_table("login_attempts")
    op.drop_table("cart_items")
    op.drop_table("sales")
