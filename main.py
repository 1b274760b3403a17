from typing import Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, UploadFile
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal, init_db
from metrics import BudgetStatus, LimitStatus
from models import Budget, CategoryRule, Investment, Subscription, Transaction
from periods import parse_month_key
from scheduler import SchedulerManager
from schemas import (
    BudgetIn,
    CategoryRuleIn,
    InvestmentIn,
    InvestmentValueIn,
    SubscriptionIn,
    TransactionIn,
    TransactionRecord,
    TransactionUpdate,
)
from services import (
    DEFAULT_PAGE_SIZE,
    BudgetService,
    CategoryRuleService,
    DashboardService,
    DuplicateKeyword,
    PortfolioService,
    StatementImportService,
    SubscriptionService,
    TransactionService,
    from_cents,
)
from statements import UnsupportedFormat

app = FastAPI(title="fintrack")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    init_db()
    if get_settings().seed_rules:
        db = SessionLocal()
        try:
            count = db.execute(select(func.count(CategoryRule.id))).scalar_one()
            if not count:
                CategoryRuleService(db).seed_defaults()
        finally:
            db.close()
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def month_param(month: Optional[str]) -> str:
    if not month:
        raise HTTPException(
            status_code=400, detail="Month parameter is required (format: YYYY-MM)"
        )
    try:
        parse_month_key(month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return month


def transaction_json(txn: Transaction) -> dict:
    return {
        "id": txn.id,
        "date": txn.date.isoformat(),
        "description": txn.description,
        "amount": from_cents(txn.amount_cents),
        "direction": txn.direction.value,
        "category": txn.category,
        "balance": None if txn.balance_cents is None else from_cents(txn.balance_cents),
    }


def record_json(record: TransactionRecord) -> dict:
    return {
        "date": record.date.isoformat(),
        "description": record.description,
        "amount": record.amount,
        "direction": record.direction.value,
        "category": record.category,
        "balance": record.balance,
    }


def rule_json(rule: CategoryRule) -> dict:
    return {
        "id": rule.id,
        "keyword": rule.keyword,
        "category": rule.category,
        "priority": rule.priority,
    }


def budget_json(budget: Budget) -> dict:
    return {
        "id": budget.id,
        "month": budget.month,
        "total_limit": from_cents(budget.total_limit_cents),
        "category_limits": [
            {"category": item.category, "limit": from_cents(item.limit_cents)}
            for item in budget.category_limits
        ],
    }


def limit_json(status: LimitStatus) -> dict:
    return {
        "category": status.label,
        "limit": status.limit,
        "spent": status.spent,
        "remaining": status.remaining,
        "percentage_used": status.percentage_used,
        "warning": status.warning,
        "exceeded": status.exceeded,
    }


def budget_status_json(status: BudgetStatus) -> dict:
    return {
        "month": status.month,
        "overall": limit_json(status.total),
        "categories": [limit_json(item) for item in status.categories],
    }


def investment_json(inv: Investment) -> dict:
    return {
        "id": inv.id,
        "name": inv.name,
        "initial_amount": from_cents(inv.initial_amount_cents),
        "current_value": from_cents(inv.current_value_cents),
        "investment_date": inv.investment_date.isoformat(),
    }


def subscription_json(sub: Subscription) -> dict:
    return {
        "id": sub.id,
        "name": sub.name,
        "amount": from_cents(sub.amount_cents),
        "cycle": sub.cycle.value,
        "start_date": sub.start_date.isoformat(),
        "next_renewal_date": sub.next_renewal_date.isoformat(),
    }


async def read_upload(file: UploadFile) -> bytes:
    limit = get_settings().max_upload_bytes
    content = await file.read(limit + 1)
    if len(content) > limit:
        raise HTTPException(
            status_code=413,
            detail="The uploaded file exceeds the maximum allowed size",
        )
    return content


# Transactions


@app.post("/transactions", status_code=201)
def create_transaction(data: TransactionIn, db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return transaction_json(txn)


@app.get("/transactions")
def list_transactions(
    page: int = Query(1),
    limit: int = Query(DEFAULT_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    try:
        result = TransactionService(db).list(page=page, page_size=limit)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "transactions": [transaction_json(txn) for txn in result.items],
        "pagination": {
            "current_page": result.page,
            "total_pages": result.pages,
            "total_count": result.total,
            "limit": result.page_size,
            "has_next_page": result.has_next,
            "has_prev_page": result.has_prev,
        },
    }


@app.get("/transactions/monthly-summary")
def monthly_summary(month: Optional[str] = None, db: Session = Depends(get_db)):
    summary = DashboardService(db).monthly_summary(month_param(month))
    return {
        "month": summary.month,
        "total_spending": summary.total_spending,
        "total_income": summary.total_income,
        "net_balance": summary.net_balance,
        "category_spending": summary.category_spending,
        "weekday_spending": summary.weekday_spending,
        "weekend_spending": summary.weekend_spending,
        "month_over_month_change": summary.month_over_month_change,
        "transaction_count": summary.transaction_count,
    }


@app.put("/transactions/{transaction_id}")
def update_transaction(
    transaction_id: int, data: TransactionUpdate, db: Session = Depends(get_db)
):
    service = TransactionService(db)
    try:
        service.get(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    try:
        txn = service.update(transaction_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return transaction_json(txn)


@app.delete("/transactions/{transaction_id}")
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        TransactionService(db).delete(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"deleted": transaction_id}


# Statements


@app.post("/statements/preview")
async def statement_preview(
    file: UploadFile = File(...), db: Session = Depends(get_db)
):
    content = await read_upload(file)
    try:
        records = StatementImportService(db).preview(content, file.content_type)
    except UnsupportedFormat as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"count": len(records), "transactions": [record_json(r) for r in records]}


@app.post("/statements/import", status_code=201)
async def statement_import(
    file: UploadFile = File(...), db: Session = Depends(get_db)
):
    content = await read_upload(file)
    try:
        created = StatementImportService(db).commit(content, file.content_type)
    except UnsupportedFormat as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "imported": len(created),
        "transactions": [transaction_json(txn) for txn in created],
    }


# Category rules


@app.get("/category-rules")
def list_category_rules(db: Session = Depends(get_db)):
    return [rule_json(rule) for rule in CategoryRuleService(db).list_all()]


@app.post("/category-rules", status_code=201)
def create_category_rule(data: CategoryRuleIn, db: Session = Depends(get_db)):
    try:
        rule = CategoryRuleService(db).create(data)
    except DuplicateKeyword as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return rule_json(rule)


@app.put("/category-rules/{rule_id}")
def update_category_rule(
    rule_id: int, data: CategoryRuleIn, db: Session = Depends(get_db)
):
    service = CategoryRuleService(db)
    try:
        service.get(rule_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    try:
        rule = service.update(rule_id, data)
    except DuplicateKeyword as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return rule_json(rule)


@app.delete("/category-rules/{rule_id}")
def delete_category_rule(rule_id: int, db: Session = Depends(get_db)):
    try:
        CategoryRuleService(db).delete(rule_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"deleted": rule_id}


# Budget


@app.post("/budget")
def save_budget(data: BudgetIn, db: Session = Depends(get_db)):
    service = BudgetService(db)
    try:
        budget = service.upsert(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    payload = budget_json(budget)
    payload["status"] = budget_status_json(service.status_for_month(budget.month))
    return payload


@app.get("/budget")
def get_budget(month: Optional[str] = None, db: Session = Depends(get_db)):
    month = month_param(month)
    service = BudgetService(db)
    try:
        status = service.status_for_month(month)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    payload = budget_json(service.get(month))
    payload["status"] = budget_status_json(status)
    return payload


# Dashboard


@app.get("/dashboard/category-spending")
def dashboard_category_spending(
    month: Optional[str] = None, db: Session = Depends(get_db)
):
    month = month_param(month)
    rows = DashboardService(db).category_spending(month)
    return {
        "month": month,
        "category_spending": [
            {"category": row.category, "amount": row.amount} for row in rows
        ],
    }


@app.get("/dashboard/monthly-trends")
def dashboard_monthly_trends(
    months: Optional[int] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    db: Session = Depends(get_db),
):
    try:
        trend = DashboardService(db).monthly_trends(months, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "labels": [point.month for point in trend],
        "data": [point.amount for point in trend],
    }


@app.get("/dashboard/income-expense")
def dashboard_income_expense(
    months: Optional[int] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    db: Session = Depends(get_db),
):
    try:
        result = DashboardService(db).income_expense(months, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "labels": [point.month for point in result.income],
        "income": [point.amount for point in result.income],
        "expense": [point.amount for point in result.expense],
    }


# Portfolio


@app.post("/portfolio", status_code=201)
def create_investment(data: InvestmentIn, db: Session = Depends(get_db)):
    inv = PortfolioService(db).create(data)
    return investment_json(inv)


@app.get("/portfolio")
def get_portfolio(db: Session = Depends(get_db)):
    overview = PortfolioService(db).overview()
    return {
        "investments": [
            {
                "id": holding.id,
                "name": holding.name,
                "initial_amount": holding.initial_amount,
                "current_value": holding.current_value,
                "investment_date": holding.investment_date.isoformat(),
                "gain_loss": holding.gain_loss,
                "return_percent": holding.return_percent,
                "cagr": holding.cagr_percent,
                "allocation_percent": holding.allocation_percent,
            }
            for holding in overview.holdings
        ],
        "summary": {
            "total_invested": overview.total_invested,
            "total_current_value": overview.total_value,
            "total_gain_loss": overview.total_gain_loss,
            "total_return_percent": overview.total_return_percent,
        },
    }


@app.put("/portfolio/{investment_id}")
def update_investment_value(
    investment_id: int, data: InvestmentValueIn, db: Session = Depends(get_db)
):
    try:
        inv = PortfolioService(db).update_value(investment_id, data.current_value)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return investment_json(inv)


@app.delete("/portfolio/{investment_id}")
def delete_investment(investment_id: int, db: Session = Depends(get_db)):
    try:
        PortfolioService(db).delete(investment_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"deleted": investment_id}


# Subscriptions


@app.post("/subscriptions", status_code=201)
def create_subscription(data: SubscriptionIn, db: Session = Depends(get_db)):
    sub = SubscriptionService(db).create(data)
    return subscription_json(sub)


@app.get("/subscriptions")
def list_subscriptions(db: Session = Depends(get_db)):
    overview = SubscriptionService(db).overview()
    return {
        "subscriptions": [
            {
                "id": item.id,
                "name": item.name,
                "amount": item.amount,
                "cycle": item.cycle.value,
                "start_date": item.start_date.isoformat(),
                "next_renewal_date": item.next_renewal_date.isoformat(),
                "days_until_renewal": item.days_until_renewal,
                "monthly_cost": item.monthly_cost,
            }
            for item in overview.subscriptions
        ],
        "total_monthly_cost": overview.total_monthly_cost,
    }


@app.put("/subscriptions/{subscription_id}")
def update_subscription(
    subscription_id: int, data: SubscriptionIn, db: Session = Depends(get_db)
):
    try:
        sub = SubscriptionService(db).update(subscription_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return subscription_json(sub)


@app.delete("/subscriptions/{subscription_id}")
def delete_subscription(subscription_id: int, db: Session = Depends(get_db)):
    try:
        SubscriptionService(db).delete(subscription_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"deleted": subscription_id}


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
