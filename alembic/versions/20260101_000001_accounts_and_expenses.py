"""Accounts with Telegram linking fields, and expenses.

Revision ID: 20260101_000001
Revises: 
Create Date: 2026-01-01 00:00:01.000000
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20260101_000001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


currency_enum = sa.Enum("GBP", "USD", "EUR", name="currency")
expense_category_enum = sa.Enum(
    "FOOD",
    "TRANSPORT",
    "ENTERTAINMENT",
    "SHOPPING",
    "BILLS",
    "OTHER",
    name="expensecategory",
)
expense_source_enum = sa.Enum("WEB", "CHAT", name="expensesource")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("monthly_budget", sa.Numeric(12, 2), nullable=False, server_default="100"),
        sa.Column("currency", currency_enum, nullable=False, server_default="GBP"),
        sa.Column("telegram_chat_id", sa.String(length=64), nullable=True),
        sa.Column("telegram_username", sa.String(length=255), nullable=True),
        sa.Column("linking_code", sa.String(length=6), nullable=True),
        sa.Column("linking_code_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("email", name="uq_accounts_email"),
        sa.UniqueConstraint("telegram_chat_id", name="uq_accounts_telegram_chat_id"),
    )
    op.create_index("ix_accounts_telegram_chat_id", "accounts", ["telegram_chat_id"])
    op.create_index("ix_accounts_linking_code", "accounts", ["linking_code"], unique=True)

    op.create_table(
        "expenses",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column(
            "account_id",
            sa.Uuid(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("category", expense_category_enum, nullable=False, server_default="OTHER"),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source", expense_source_enum, nullable=False, server_default="WEB"),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
    )
    op.create_index("ix_expenses_account_id", "expenses", ["account_id"])
    op.create_index("ix_expenses_occurred_at", "expenses", ["occurred_at"])


def downgrade() -> None:
    op.drop_index("ix_expenses_occurred_at", table_name="expenses")
    op.drop_index("ix_expenses_account_id", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_accounts_linking_code", table_name="accounts")
    op.drop_index("ix_accounts_telegram_chat_id", table_name="accounts")
    op.drop_table("accounts")
    expense_source_enum.drop(op.get_bind(), checkfirst=True)
    expense_category_enum.drop(op.get_bind(), checkfirst=True)
    currency_enum.drop(op.get_bind(), checkfirst=True)
