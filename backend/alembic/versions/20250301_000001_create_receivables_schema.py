from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20250301_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), server_default="vendedor", nullable=False),
        sa.Column("associated_sellers", sa.JSON(), nullable=False),
        sa.Column("associated_clients", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("1"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "ledger_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_id", sa.String(length=50), nullable=True),
        sa.Column("client_name", sa.String(length=255), nullable=True),
        sa.Column("client_address", sa.String(length=255), nullable=True),
        sa.Column("seller_name", sa.String(length=255), nullable=True),
        sa.Column("zone_name", sa.String(length=255), nullable=True),
        sa.Column("city_name", sa.String(length=255), nullable=True),
        sa.Column("cost_center", sa.String(length=100), nullable=True),
        sa.Column("document_type", sa.String(length=20), nullable=True),
        sa.Column("document_number", sa.String(length=100), nullable=True),
        sa.Column("issue_date", sa.Date(), nullable=True),
        sa.Column("issue_date_raw", sa.String(length=100), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("due_date_raw", sa.String(length=100), nullable=True),
        *[
            sa.Column(name, sa.Float(), server_default=sa.text("0"), nullable=False)
            for name in (
                "days_overdue",
                "debt_amount",
                "paid_amount",
                "balance",
                "overdue_0_30",
                "overdue_31_60",
                "overdue_61_90",
                "overdue_over_91",
                "not_yet_due",
                "credit_limit",
            )
        ],
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("client_search_key", sa.String(length=50), nullable=True),
        sa.Column("client_search_prefix", sa.String(length=9), nullable=True),
        sa.Column("extra", sa.JSON(), nullable=False),
    )
    for column in ("client_id", "seller_name", "document_number", "client_search_key", "client_search_prefix"):
        op.create_index(f"ix_ledger_records_{column}", "ledger_records", [column])

    op.create_table(
        "credit_limit_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_key", sa.String(length=255), nullable=True),
        sa.Column("data", sa.JSON(), nullable=False),
    )
    op.create_index("ix_credit_limit_records_client_key", "credit_limit_records", ["client_key"])

    op.create_table(
        "payment_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_id", sa.String(length=100), nullable=False),
        sa.Column("invoice_reference", sa.String(length=100), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("client_tax_id", sa.String(length=50), nullable=False),
        sa.Column("client_name", sa.String(length=255), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_via", sa.String(length=10), nullable=False),
        sa.Column("verified_against_ledger", sa.Boolean(), server_default=sa.text("0"), nullable=False),
        sa.Column("payment_option", sa.String(length=100), nullable=True),
        sa.Column("payment_motive", sa.String(length=255), nullable=True),
        sa.Column("synced_external", sa.Boolean(), server_default=sa.text("0"), nullable=False),
        sa.Column("raw_gateway_payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("transaction_id", name="uq_payment_records_transaction_id"),
    )
    op.create_index("ix_payment_records_invoice_reference", "payment_records", ["invoice_reference"])
    op.create_index("ix_payment_records_paid_at", "payment_records", ["paid_at"])


def downgrade() -> None:
    op.drop_index("ix_payment_records_paid_at", table_name="payment_records")
    op.drop_index("ix_payment_records_invoice_reference", table_name="payment_records")
    op.drop_table("payment_records")
    op.drop_index("ix_credit_limit_records_client_key", table_name="credit_limit_records")
    op.drop_table("credit_limit_records")
    for column in ("client_id", "seller_name", "document_number", "client_search_key", "client_search_prefix"):
        op.drop_index(f"ix_ledger_records_{column}", table_name="ledger_records")
    op.drop_table("ledger_records")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
