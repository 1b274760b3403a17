from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class TransactionDirection(str, Enum):
    inflow = "inflow"
    outflow = "outflow"


class SubscriptionCycle(str, Enum):
    monthly = "monthly"
    yearly = "yearly"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class CategoryRule(Base, TimestampMixin):
    __tablename__ = "category_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    keyword: Mapped[str] = mapped_column(String(120), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("keyword", name="uq_category_rule_keyword"),
        Index("ix_category_rules_priority_keyword", "priority", "keyword"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    direction: Mapped[TransactionDirection] = mapped_column(
        SAEnum(TransactionDirection), nullable=False
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    balance_cents: Mapped[Optional[int]] = mapped_column(Integer)

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_direction_date", "user_id", "direction", "date"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    total_limit_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    category_limits: Mapped[list["BudgetCategoryLimit"]] = relationship(
        "BudgetCategoryLimit",
        back_populates="budget",
        cascade="all, delete-orphan",
        order_by="BudgetCategoryLimit.position",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "month", name="uq_budget_user_month"),
        CheckConstraint("total_limit_cents >= 0", name="ck_budget_total_positive"),
    )


class BudgetCategoryLimit(Base):
    __tablename__ = "budget_category_limits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    budget_id: Mapped[int] = mapped_column(
        ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    limit_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    budget: Mapped["Budget"] = relationship("Budget", back_populates="category_limits")

    __table_args__ = (
        CheckConstraint("limit_cents >= 0", name="ck_budget_limit_positive"),
    )


class Investment(Base, TimestampMixin):
    __tablename__ = "investments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    initial_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_value_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    investment_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        Index("ix_investments_user", "user_id"),
        CheckConstraint(
            "initial_amount_cents >= 0", name="ck_investment_initial_positive"
        ),
        CheckConstraint(
            "current_value_cents >= 0", name="ck_investment_current_positive"
        ),
    )


class Subscription(Base, TimestampMixin):
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    cycle: Mapped[SubscriptionCycle] = mapped_column(
        SAEnum(SubscriptionCycle), nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    next_renewal_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        Index("ix_subscriptions_user", "user_id"),
        Index("ix_subscriptions_next_renewal", "next_renewal_date"),
        CheckConstraint("amount_cents >= 0", name="ck_subscription_amount_positive"),
    )
