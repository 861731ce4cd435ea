"""Initial schema: subscriptions, config, customers, transactions,
custom_field_definitions

Tables:
    subscriptions             — One billing row per auth-provider user
    config                    — Operator key/value overrides (plan features, caps)
    customers                 — A merchant's credit customers
    transactions              — Debts and payments per customer
    custom_field_definitions  — User-defined customer fields

Revision ID: 3c9e1f7a2b64
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c9e1f7a2b64"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# ─── Enum Types ─────────────────────────────────────────────

subscription_plan = sa.Enum("free", "basic", "pro", "enterprise", name="subscription_plan")
transaction_type = sa.Enum("debt", "payment", name="transaction_type")
custom_field_type = sa.Enum(
    "text", "number", "date", "select", "textarea", "checkbox", name="custom_field_type"
)

_TIMESTAMPED_TABLES = ("subscriptions", "config", "customers")


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def upgrade() -> None:
    # ─── subscriptions ───────────────────────────────────────
    op.create_table(
        "subscriptions",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("plan", subscription_plan, nullable=False, server_default="free"),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "cancel_at_period_end",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"], unique=True)
    op.create_index(
        "ix_subscriptions_stripe_customer_id",
        "subscriptions",
        ["stripe_customer_id"],
        unique=True,
    )

    # ─── config ──────────────────────────────────────────────
    op.create_table(
        "config",
        sa.Column("key", sa.String(200), primary_key=True),
        sa.Column("value", postgresql.JSON(), nullable=True),
        _timestamp("updated_at"),
    )

    # ─── customers ───────────────────────────────────────────
    op.create_table(
        "customers",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.Unicode(200), nullable=False),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("address", sa.Unicode(500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "custom_fields",
            postgresql.JSON(),
            nullable=False,
            server_default=sa.text("'{}'::json"),
        ),
        sa.Column(
            "is_deleted",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_customers_user_id", "customers", ["user_id"])

    # ─── transactions ────────────────────────────────────────
    op.create_table(
        "transactions",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "customer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("customers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", transaction_type, nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("description", sa.Unicode(500), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index(
        "ix_transactions_user_date",
        "transactions",
        ["user_id", "transaction_date"],
    )
    op.create_index("ix_transactions_customer_id", "transactions", ["customer_id"])

    # ─── custom_field_definitions ────────────────────────────
    op.create_table(
        "custom_field_definitions",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.Unicode(100), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("field_type", custom_field_type, nullable=False),
        sa.Column(
            "options",
            postgresql.JSON(),
            nullable=False,
            server_default=sa.text("'[]'::json"),
        ),
        sa.Column(
            "is_required",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        sa.UniqueConstraint("user_id", "slug", name="uq_custom_field_user_slug"),
    )

    # ─── updated_at trigger function ─────────────────────────
    op.execute(
        """
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = now();
            RETURN NEW;
        END;
        $$ language 'plpgsql';
        """
    )

    for table_name in _TIMESTAMPED_TABLES:
        op.execute(
            f"""
            CREATE TRIGGER trigger_{table_name}_updated_at
            BEFORE UPDATE ON {table_name}
            FOR EACH ROW
            EXECUTE FUNCTION update_updated_at_column();
            """
        )


def downgrade() -> None:
    for table_name in _TIMESTAMPED_TABLES:
        op.execute(
            f"DROP TRIGGER IF EXISTS trigger_{table_name}_updated_at ON {table_name};"
        )
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column();")

    op.drop_table("custom_field_definitions")
    op.drop_index("ix_transactions_customer_id", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_customers_user_id", table_name="customers")
    op.drop_table("customers")
    op.drop_table("config")
    op.drop_index("ix_subscriptions_stripe_customer_id", table_name="subscriptions")
    op.drop_index("ix_subscriptions_user_id", table_name="subscriptions")
    op.drop_table("subscriptions")

    bind = op.get_bind()
    custom_field_type.drop(bind, checkfirst=True)
    transaction_type.drop(bind, checkfirst=True)
    subscription_plan.drop(bind, checkfirst=True)
