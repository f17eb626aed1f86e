"""Initial slipdesk schema: items, slips, income mirror

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_initial"
down_revision = None
branch_labels = None
depends_on = None


def _money():
    return sa.Numeric(12, 2, asdecimal=False)


def _snapshot_columns():
    return [
        sa.Column("product_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("sku", sa.String(64), nullable=False, server_default=""),
        sa.Column("product_type", sa.String(16), nullable=False, server_default="Cover"),
        sa.Column("cover_type", sa.String(64), nullable=False, server_default=""),
        sa.Column("plate_company", sa.String(16), nullable=False, server_default=""),
        sa.Column("bike_name", sa.String(64), nullable=False, server_default=""),
        sa.Column("plate_type", sa.String(64), nullable=False, server_default=""),
        sa.Column("form_company", sa.String(16), nullable=False, server_default=""),
        sa.Column("form_type", sa.String(16), nullable=False, server_default=""),
        sa.Column("form_variant", sa.String(64), nullable=False, server_default=""),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", _money(), nullable=False),
        sa.Column("total_price", _money(), nullable=False),
        sa.Column("category", sa.String(120), nullable=False, server_default=""),
        sa.Column("subcategory", sa.String(120), nullable=False, server_default=""),
        sa.Column("company", sa.String(120), nullable=False, server_default=""),
    ]


def upgrade():
    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("sku", sa.String(64), nullable=False, server_default=""),
        sa.Column("product_type", sa.String(16), nullable=False, server_default="Cover"),
        sa.Column("cover_type", sa.String(64), nullable=False, server_default=""),
        sa.Column("plate_company", sa.String(16), nullable=False, server_default=""),
        sa.Column("bike_name", sa.String(64), nullable=False, server_default=""),
        sa.Column("plate_type", sa.String(64), nullable=False, server_default=""),
        sa.Column("form_company", sa.String(16), nullable=False, server_default=""),
        sa.Column("form_type", sa.String(16), nullable=False, server_default=""),
        sa.Column("form_variant", sa.String(64), nullable=False, server_default=""),
        sa.Column("category", sa.String(120), nullable=False, server_default="General"),
        sa.Column("subcategory", sa.String(120), nullable=False, server_default=""),
        sa.Column("company", sa.String(120), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("supplier", sa.String(255), nullable=False, server_default=""),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("price", _money(), nullable=False, server_default=sa.text("0")),
        sa.Column("base_price", _money(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_price", _money(), nullable=False, server_default=sa.text("0")),
        sa.Column("min_stock_level", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("max_stock_level", sa.Integer(), nullable=False, server_default=sa.text("1000")),
        sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_items_quantity_non_negative"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("items", schema=None) as batch_op:
        batch_op.create_index("ix_items_name", ["name"], unique=False)
        batch_op.create_index("ix_items_sku", ["sku"], unique=False)
        batch_op.create_index("ix_items_product_type", ["product_type"], unique=False)
        batch_op.create_index("ix_items_category", ["category"], unique=False)
        batch_op.create_index("ix_items_type_active", ["product_type", "is_active"], unique=False)

    op.create_table(
        "slips",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("slip_number", sa.String(64), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False, server_default="Walk-in Customer"),
        sa.Column("customer_phone", sa.String(64), nullable=False, server_default=""),
        sa.Column("payment_method", sa.String(32), nullable=False, server_default="Cash"),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("discount", _money(), nullable=False, server_default=sa.text("0")),
        sa.Column("subtotal", _money(), nullable=False),
        sa.Column("total_amount", _money(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="Paid"),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slip_number"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("slips", schema=None) as batch_op:
        batch_op.create_index("ix_slips_date", ["date"], unique=False)
        batch_op.create_index("ix_slips_customer_name", ["customer_name"], unique=False)
        batch_op.create_index("ix_slips_status", ["status"], unique=False)
        batch_op.create_index("ix_slips_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "slip_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("slip_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_snapshot_columns(),
        sa.Column("base_price", _money(), nullable=False),
        sa.Column("discount_amount", _money(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_type", sa.String(16), nullable=False, server_default="none"),
        sa.ForeignKeyConstraint(["slip_id"], ["slips.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("slip_lines", schema=None) as batch_op:
        batch_op.create_index("ix_slip_lines_slip_id", ["slip_id"], unique=False)
        batch_op.create_index("ix_slip_lines_product_name", ["product_name"], unique=False)

    op.create_table(
        "income_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_income", _money(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("payment_method", sa.String(32), nullable=False, server_default="Cash"),
        sa.Column("customer_name", sa.String(255), nullable=False, server_default="Walk-in Customer"),
        sa.Column("customer_phone", sa.String(64), nullable=False, server_default=""),
        sa.Column("slip_number", sa.String(64), nullable=False, server_default=""),
        sa.Column("slip_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("income_records", schema=None) as batch_op:
        batch_op.create_index("ix_income_records_date", ["date"], unique=False)
        batch_op.create_index("ix_income_records_payment_method", ["payment_method"], unique=False)
        batch_op.create_index("ix_income_records_slip_number", ["slip_number"], unique=False)
        batch_op.create_index("ix_income_records_slip_id", ["slip_id"], unique=False)
        batch_op.create_index("ix_income_active_date", ["is_active", "date"], unique=False)

    op.create_table(
        "income_products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("income_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_snapshot_columns(),
        sa.ForeignKeyConstraint(["income_id"], ["income_records.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("income_products", schema=None) as batch_op:
        batch_op.create_index("ix_income_products_income_id", ["income_id"], unique=False)
        batch_op.create_index("ix_income_products_product_name", ["product_name"], unique=False)


def downgrade():
    op.drop_table("income_products")
    op.drop_table("income_records")
    op.drop_table("slip_lines")
    op.drop_table("slips")
    op.drop_table("items")
