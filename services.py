from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from categorizer import Categorizer
from config import get_settings
from metrics import (
    BudgetStatus,
    CategoryAmount,
    IncomeExpense,
    MonthAmount,
    MonthlySummary,
    PortfolioOverview,
    SubscriptionOverview,
    budget_status,
    income_expense,
    monthly_summary,
    monthly_trend,
    portfolio_overview,
    spending_by_category,
    subscription_overview,
)
from models import (
    Budget,
    BudgetCategoryLimit,
    CategoryRule,
    Investment,
    Subscription,
    Transaction,
    TransactionDirection,
)
from periods import (
    fiscal_month_period,
    month_period,
    previous_month_key,
    resolve_month_window,
)
from recurrence import local_today, next_renewal_date
from rules import DEFAULT_CATEGORY_RULES, RuleSnapshot, normalize_keyword
from schemas import (
    BudgetIn,
    CategoryLimitIn,
    CategoryRuleIn,
    InvestmentIn,
    InvestmentRecord,
    SubscriptionIn,
    SubscriptionRecord,
    TransactionIn,
    TransactionRecord,
    TransactionUpdate,
)
from statements import parse_statement

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 200


def get_current_user_id() -> int:
    return 1


def to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return Decimal(cents) / 100


def _positive_cents(amount: Decimal) -> int:
    cents = to_cents(amount)
    if cents <= 0:
        raise ValueError("Amount must be a positive number")
    return cents


class DuplicateKeyword(ValueError):
    pass


def transaction_record(txn: Transaction) -> TransactionRecord:
    return TransactionRecord(
        id=txn.id,
        date=txn.date,
        description=txn.description,
        amount=from_cents(txn.amount_cents),
        direction=txn.direction,
        category=txn.category,
        balance=None if txn.balance_cents is None else from_cents(txn.balance_cents),
    )


def investment_record(inv: Investment) -> InvestmentRecord:
    return InvestmentRecord(
        id=inv.id,
        name=inv.name,
        initial_amount=from_cents(inv.initial_amount_cents),
        current_value=from_cents(inv.current_value_cents),
        investment_date=inv.investment_date,
    )


def subscription_record(sub: Subscription) -> SubscriptionRecord:
    return SubscriptionRecord(
        id=sub.id,
        name=sub.name,
        amount=from_cents(sub.amount_cents),
        cycle=sub.cycle,
        start_date=sub.start_date,
    )


def budget_input(budget: Budget) -> BudgetIn:
    return BudgetIn(
        month=budget.month,
        total_limit=from_cents(budget.total_limit_cents),
        category_limits=[
            CategoryLimitIn(category=item.category, limit=from_cents(item.limit_cents))
            for item in budget.category_limits
        ],
    )


class CategoryRuleService:
    """Global keyword rules; not scoped to a user."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[CategoryRule]:
        stmt = select(CategoryRule).order_by(
            CategoryRule.priority.desc(), CategoryRule.keyword.asc()
        )
        return self.session.scalars(stmt).all()

    def get(self, rule_id: int) -> CategoryRule:
        rule = self.session.get(CategoryRule, rule_id)
        if not rule:
            raise ValueError("Category rule not found")
        return rule

    def _ensure_unique(self, keyword: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(CategoryRule.id).where(CategoryRule.keyword == keyword)
        if exclude_id is not None:
            stmt = stmt.where(CategoryRule.id != exclude_id)
        if self.session.scalar(stmt) is not None:
            raise DuplicateKeyword("A rule with this keyword already exists")

    @staticmethod
    def _clean(data: CategoryRuleIn) -> tuple[str, str]:
        keyword = normalize_keyword(data.keyword)
        if not keyword:
            raise ValueError("Keyword cannot be empty")
        category = data.category.strip()
        if not category:
            raise ValueError("Category cannot be empty")
        return keyword, category

    def create(self, data: CategoryRuleIn) -> CategoryRule:
        keyword, category = self._clean(data)
        self._ensure_unique(keyword)
        rule = CategoryRule(keyword=keyword, category=category, priority=data.priority)
        self.session.add(rule)
        self.session.commit()
        self.session.refresh(rule)
        logger.info(f"category_rule_created: keyword={keyword} category={category}")
        return rule

    def update(self, rule_id: int, data: CategoryRuleIn) -> CategoryRule:
        rule = self.get(rule_id)
        keyword, category = self._clean(data)
        if keyword != rule.keyword:
            self._ensure_unique(keyword, exclude_id=rule.id)
        rule.keyword = keyword
        rule.category = category
        rule.priority = data.priority
        self.session.commit()
        self.session.refresh(rule)
        return rule

    def delete(self, rule_id: int) -> None:
        rule = self.get(rule_id)
        self.session.delete(rule)
        self.session.commit()

    def snapshot(self) -> RuleSnapshot:
        return RuleSnapshot.build(self.list_all())

    def seed_defaults(self) -> int:
        """Insert the default rules whose keywords are not stored yet."""
        existing = set(self.session.scalars(select(CategoryRule.keyword)).all())
        added = 0
        for rule in DEFAULT_CATEGORY_RULES:
            if rule.keyword in existing:
                continue
            self.session.add(
                CategoryRule(
                    keyword=rule.keyword, category=rule.category, priority=rule.priority
                )
            )
            existing.add(rule.keyword)
            added += 1
        self.session.commit()
        logger.info(f"category_rules_seeded: added={added} total={len(existing)}")
        return added


def rule_categorizer(session: Session) -> Categorizer:
    return Categorizer(CategoryRuleService(session).snapshot)


@dataclass(frozen=True)
class TransactionPage:
    items: list[Transaction]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


class TransactionService:
    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        categorizer: Optional[Categorizer] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.categorizer = categorizer

    def create(self, data: TransactionIn) -> Transaction:
        category = (data.category or "").strip()
        if not category:
            categorizer = self.categorizer or rule_categorizer(self.session)
            category = categorizer.categorize(data.description)
        txn = Transaction(
            user_id=self.user_id,
            date=data.date,
            description=data.description,
            amount_cents=_positive_cents(data.amount),
            direction=data.direction,
            category=category,
            balance_cents=None if data.balance is None else to_cents(data.balance),
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def get(self, transaction_id: int) -> Transaction:
        stmt = select(Transaction).where(
            Transaction.user_id == self.user_id, Transaction.id == transaction_id
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise ValueError("Transaction not found")
        return txn

    def update(self, transaction_id: int, data: TransactionUpdate) -> Transaction:
        txn = self.get(transaction_id)
        if data.date is not None:
            txn.date = data.date
        if data.description is not None:
            description = data.description.strip()
            if not description:
                raise ValueError("Description cannot be empty")
            txn.description = description
        if data.amount is not None:
            txn.amount_cents = _positive_cents(data.amount)
        if data.direction is not None:
            txn.direction = data.direction
        if data.category is not None:
            txn.category = data.category.strip()
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()

    def list(
        self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
    ) -> TransactionPage:
        if page < 1:
            raise ValueError("Page must be at least 1")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
        total = self.session.execute(
            select(func.count(Transaction.id)).where(
                Transaction.user_id == self.user_id
            )
        ).scalar_one()
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        items = self.session.scalars(stmt).all()
        return TransactionPage(
            items=list(items), total=total or 0, page=page, page_size=page_size
        )

    def records_between(
        self,
        start: date,
        end: date,
        direction: Optional[TransactionDirection] = None,
    ) -> list[TransactionRecord]:
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.date.between(start, end),
            )
            .order_by(Transaction.date.asc(), Transaction.id.asc())
        )
        if direction:
            stmt = stmt.where(Transaction.direction == direction)
        return [transaction_record(txn) for txn in self.session.scalars(stmt)]


class StatementImportService:
    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        categorizer: Optional[Categorizer] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.categorizer = categorizer or rule_categorizer(session)

    def preview(
        self, content: bytes, mime_type: Optional[str]
    ) -> list[TransactionRecord]:
        candidates = parse_statement(content, mime_type)
        categories = self.categorizer.categorize_many(
            candidate.description for candidate in candidates
        )
        return [
            TransactionRecord(
                date=candidate.date,
                description=candidate.description,
                amount=candidate.amount,
                direction=candidate.direction,
                category=category,
                balance=candidate.balance,
            )
            for candidate, category in zip(candidates, categories)
        ]

    def commit(self, content: bytes, mime_type: Optional[str]) -> list[Transaction]:
        records = self.preview(content, mime_type)
        created: list[Transaction] = []
        for record in records:
            cents = to_cents(record.amount)
            if cents <= 0:
                logger.debug(f"statement_import: skipped amount={record.amount}")
                continue
            txn = Transaction(
                user_id=self.user_id,
                date=record.date,
                description=record.description,
                amount_cents=cents,
                direction=record.direction,
                category=record.category,
                balance_cents=(
                    None if record.balance is None else to_cents(record.balance)
                ),
            )
            self.session.add(txn)
            created.append(txn)
        self.session.commit()
        logger.info(
            f"statement_import: user_id={self.user_id} parsed={len(records)} "
            f"imported={len(created)}"
        )
        return created


class BudgetService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, month: str) -> Optional[Budget]:
        stmt = (
            select(Budget)
            .options(selectinload(Budget.category_limits))
            .where(Budget.user_id == self.user_id, Budget.month == month)
        )
        return self.session.scalar(stmt)

    def upsert(self, data: BudgetIn) -> Budget:
        seen: set[str] = set()
        for item in data.category_limits:
            category = item.category.strip()
            if category in seen:
                raise ValueError(f"Duplicate budget category: {category}")
            seen.add(category)

        budget = self.get(data.month)
        if budget is None:
            budget = Budget(user_id=self.user_id, month=data.month, total_limit_cents=0)
            self.session.add(budget)
        budget.total_limit_cents = to_cents(data.total_limit)
        budget.category_limits = [
            BudgetCategoryLimit(
                position=position,
                category=item.category.strip(),
                limit_cents=to_cents(item.limit),
            )
            for position, item in enumerate(data.category_limits)
        ]
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def status_for_month(self, month: str) -> BudgetStatus:
        period = month_period(month)
        budget = self.get(month)
        if budget is None:
            raise ValueError("No budget found for the specified month")
        transactions = TransactionService(self.session, self.user_id).records_between(
            period.start, period.end, TransactionDirection.outflow
        )
        return budget_status(budget_input(budget), transactions)


class DashboardService:
    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        fiscal_start_day: Optional[int] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.fiscal_start_day = (
            fiscal_start_day or get_settings().fiscal_month_start_day
        )
        self.transactions = TransactionService(session, self.user_id)

    def _records_for_months(self, month_keys: list[str]) -> list[TransactionRecord]:
        start = month_period(month_keys[0]).start
        end = month_period(month_keys[-1]).end
        return self.transactions.records_between(start, end)

    def category_spending(self, month: str) -> list[CategoryAmount]:
        """Outflows of the fiscal month labelled ``month``."""
        period = fiscal_month_period(month, self.fiscal_start_day)
        records = self.transactions.records_between(
            period.start, period.end, TransactionDirection.outflow
        )
        return spending_by_category(records)

    def monthly_trends(
        self,
        months: Optional[int] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        *,
        today: Optional[date] = None,
    ) -> list[MonthAmount]:
        keys = resolve_month_window(months, start, end, today=today or local_today())
        return monthly_trend(self._records_for_months(keys), keys)

    def income_expense(
        self,
        months: Optional[int] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        *,
        today: Optional[date] = None,
    ) -> IncomeExpense:
        keys = resolve_month_window(months, start, end, today=today or local_today())
        return income_expense(self._records_for_months(keys), keys)

    def monthly_summary(self, month: str) -> MonthlySummary:
        period = month_period(month)
        previous = month_period(previous_month_key(month))
        records = self.transactions.records_between(period.start, period.end)
        previous_records = self.transactions.records_between(
            previous.start, previous.end, TransactionDirection.outflow
        )
        return monthly_summary(records, month, previous_records)


class PortfolioService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Investment]:
        stmt = (
            select(Investment)
            .where(Investment.user_id == self.user_id)
            .order_by(Investment.investment_date.desc(), Investment.id.desc())
        )
        return self.session.scalars(stmt).all()

    def get(self, investment_id: int) -> Investment:
        inv = self.session.get(Investment, investment_id)
        if not inv or inv.user_id != self.user_id:
            raise ValueError("Investment not found")
        return inv

    def create(self, data: InvestmentIn) -> Investment:
        inv = Investment(
            user_id=self.user_id,
            name=data.name.strip(),
            initial_amount_cents=to_cents(data.initial_amount),
            current_value_cents=to_cents(data.current_value),
            investment_date=data.investment_date,
        )
        self.session.add(inv)
        self.session.commit()
        self.session.refresh(inv)
        return inv

    def update_value(self, investment_id: int, current_value: Decimal) -> Investment:
        inv = self.get(investment_id)
        inv.current_value_cents = to_cents(current_value)
        self.session.commit()
        self.session.refresh(inv)
        return inv

    def delete(self, investment_id: int) -> None:
        inv = self.get(investment_id)
        self.session.delete(inv)
        self.session.commit()

    def overview(self, *, as_of: Optional[date] = None) -> PortfolioOverview:
        records = [investment_record(inv) for inv in self.list_all()]
        return portfolio_overview(records, as_of or local_today())


class SubscriptionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Subscription]:
        stmt = (
            select(Subscription)
            .where(Subscription.user_id == self.user_id)
            .order_by(Subscription.next_renewal_date.asc(), Subscription.name.asc())
        )
        return self.session.scalars(stmt).all()

    def get(self, subscription_id: int) -> Subscription:
        sub = self.session.get(Subscription, subscription_id)
        if not sub or sub.user_id != self.user_id:
            raise ValueError("Subscription not found")
        return sub

    def create(
        self, data: SubscriptionIn, *, today: Optional[date] = None
    ) -> Subscription:
        sub = Subscription(
            user_id=self.user_id,
            name=data.name.strip(),
            amount_cents=to_cents(data.amount),
            cycle=data.cycle,
            start_date=data.start_date,
            next_renewal_date=next_renewal_date(
                data.start_date, data.cycle, today=today or local_today()
            ),
        )
        self.session.add(sub)
        self.session.commit()
        self.session.refresh(sub)
        return sub

    def update(
        self,
        subscription_id: int,
        data: SubscriptionIn,
        *,
        today: Optional[date] = None,
    ) -> Subscription:
        sub = self.get(subscription_id)
        sub.name = data.name.strip()
        sub.amount_cents = to_cents(data.amount)
        sub.cycle = data.cycle
        sub.start_date = data.start_date
        sub.next_renewal_date = next_renewal_date(
            data.start_date, data.cycle, today=today or local_today()
        )
        self.session.commit()
        self.session.refresh(sub)
        return sub

    def delete(self, subscription_id: int) -> None:
        sub = self.get(subscription_id)
        self.session.delete(sub)
        self.session.commit()

    def overview(self, *, today: Optional[date] = None) -> SubscriptionOverview:
        records = [subscription_record(sub) for sub in self.list_all()]
        return subscription_overview(records, today or local_today())

    def refresh_renewals(self, *, today: Optional[date] = None) -> int:
        """
        Roll every stored renewal date that is no longer in the future forward,
        for all users. Returns the number of subscriptions updated.
        """
        today = today or local_today()
        stmt = select(Subscription).where(Subscription.next_renewal_date <= today)
        updated = 0
        for sub in self.session.scalars(stmt).all():
            sub.next_renewal_date = next_renewal_date(
                sub.start_date, sub.cycle, today=today
            )
            updated += 1
        self.session.commit()
        return updated
