"""initial schema

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "category_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("keyword", sa.String(length=120), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("keyword", name="uq_category_rule_keyword"),
    )
    op.create_index(
        "ix_category_rules_priority_keyword",
        "category_rules",
        ["priority", "keyword"],
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "direction",
            sa.Enum("inflow", "outflow", name="transactiondirection"),
            nullable=False,
        ),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("balance_cents", sa.Integer()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_direction_date",
        "transactions",
        ["user_id", "direction", "date"],
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("total_limit_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "month", name="uq_budget_user_month"),
        sa.CheckConstraint("total_limit_cents >= 0", name="ck_budget_total_positive"),
    )

    op.create_table(
        "budget_category_limits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "budget_id",
            sa.Integer(),
            sa.ForeignKey("budgets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("limit_cents", sa.Integer(), nullable=False),
        sa.CheckConstraint("limit_cents >= 0", name="ck_budget_limit_positive"),
    )

    op.create_table(
        "investments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("initial_amount_cents", sa.Integer(), nullable=False),
        sa.Column("current_value_cents", sa.Integer(), nullable=False),
        sa.Column("investment_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "initial_amount_cents >= 0", name="ck_investment_initial_positive"
        ),
        sa.CheckConstraint(
            "current_value_cents >= 0", name="ck_investment_current_positive"
        ),
    )
    op.create_index("ix_investments_user", "investments", ["user_id"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "cycle",
            sa.Enum("monthly", "yearly", name="subscriptioncycle"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("next_renewal_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "amount_cents >= 0", name="ck_subscription_amount_positive"
        ),
    )
    op.create_index("ix_subscriptions_user", "subscriptions", ["user_id"])
    op.create_index(
        "ix_subscriptions_next_renewal", "subscriptions", ["next_renewal_date"]
    )


def downgrade():
    op.drop_index("ix_subscriptions_next_renewal", table_name="subscriptions")
    op.drop_index("ix_subscriptions_user", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_investments_user", table_name="investments")
    op.drop_table("investments")
    op.drop_table("budget_category_limits")
    op.drop_table("budgets")
    op.drop_index("ix_transactions_user_direction_date", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_category_rules_priority_keyword", table_name="category_rules")
    op.drop_table("category_rules")
