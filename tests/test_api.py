from datetime import date

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import pytest

from config import get_settings
from database import Base, make_engine
from main import app, get_db
from recurrence import local_today


@pytest.fixture()
def client():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_category_rule_crud(client):
    created = client.post(
        "/category-rules",
        json={"keyword": "Zomato", "category": "Food & Dining", "priority": 10},
    )
    assert created.status_code == 201
    rule = created.json()
    assert rule["keyword"] == "zomato"

    duplicate = client.post(
        "/category-rules", json={"keyword": "ZOMATO ", "category": "Other"}
    )
    assert duplicate.status_code == 409

    updated = client.put(
        f"/category-rules/{rule['id']}",
        json={"keyword": "zomato", "category": "Takeaway", "priority": 3},
    )
    assert updated.status_code == 200
    assert updated.json()["category"] == "Takeaway"

    assert client.put(
        "/category-rules/999", json={"keyword": "x", "category": "y"}
    ).status_code == 404
    assert client.delete(f"/category-rules/{rule['id']}").status_code == 200
    assert client.get("/category-rules").json() == []


def test_transaction_lifecycle(client):
    client.post(
        "/category-rules",
        json={"keyword": "zomato", "category": "Food & Dining", "priority": 10},
    )

    created = client.post(
        "/transactions",
        json={
            "date": "2024-03-02",
            "description": "  ZOMATO ORDER ",
            "amount": "450.00",
            "direction": "outflow",
        },
    )
    assert created.status_code == 201
    txn = created.json()
    assert txn["category"] == "Food & Dining"
    assert txn["description"] == "ZOMATO ORDER"
    assert txn["amount"] == 450

    listing = client.get("/transactions", params={"page": 1, "limit": 10}).json()
    assert listing["pagination"]["total_count"] == 1
    assert listing["transactions"][0]["id"] == txn["id"]

    updated = client.put(f"/transactions/{txn['id']}", json={"category": "Treats"})
    assert updated.json()["category"] == "Treats"

    assert client.put("/transactions/999", json={"category": "x"}).status_code == 404
    assert client.delete(f"/transactions/{txn['id']}").status_code == 200
    assert client.delete(f"/transactions/{txn['id']}").status_code == 404


def test_transaction_validation(client):
    response = client.post(
        "/transactions",
        json={
            "date": "2024-03-02",
            "description": "Coffee",
            "amount": -5,
            "direction": "outflow",
        },
    )
    assert response.status_code == 422

    response = client.get("/transactions", params={"limit": 0})
    assert response.status_code == 400


def test_monthly_summary(client):
    for day, amount, direction in [
        ("2024-02-10", "100", "outflow"),
        ("2024-03-02", "100", "outflow"),
        ("2024-03-04", "50", "outflow"),
        ("2024-03-05", "1000", "inflow"),
    ]:
        client.post(
            "/transactions",
            json={
                "date": day,
                "description": "entry",
                "amount": amount,
                "direction": direction,
                "category": "Misc",
            },
        )

    summary = client.get("/transactions/monthly-summary", params={"month": "2024-03"})
    body = summary.json()
    assert body["total_spending"] == 150
    assert body["weekend_spending"] == 100
    assert body["month_over_month_change"] == 50.0
    assert body["transaction_count"] == 3

    assert client.get("/transactions/monthly-summary").status_code == 400
    assert (
        client.get(
            "/transactions/monthly-summary", params={"month": "2024-3"}
        ).status_code
        == 400
    )


CSV_STATEMENT = (
    b"date,description,amount,type\n"
    b"2024-03-01,Zomato order,450.00,debit\n"
    b"2024-03-02,Salary March,50000,credit\n"
)


def test_statement_preview_and_import(client):
    client.post(
        "/category-rules",
        json={"keyword": "salary", "category": "Income", "priority": 10},
    )

    preview = client.post(
        "/statements/preview",
        files={"file": ("march.csv", CSV_STATEMENT, "text/csv")},
    )
    assert preview.status_code == 200
    assert preview.json()["count"] == 2
    assert preview.json()["transactions"][1]["category"] == "Income"
    assert client.get("/transactions").json()["pagination"]["total_count"] == 0

    imported = client.post(
        "/statements/import",
        files={"file": ("march.csv", CSV_STATEMENT, "text/csv")},
    )
    assert imported.status_code == 201
    assert imported.json()["imported"] == 2
    assert client.get("/transactions").json()["pagination"]["total_count"] == 2


def test_statement_upload_rejections(client, monkeypatch):
    unsupported = client.post(
        "/statements/preview",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert unsupported.status_code == 400

    monkeypatch.setattr(get_settings(), "max_upload_bytes", 10)
    too_large = client.post(
        "/statements/import",
        files={"file": ("march.csv", CSV_STATEMENT, "text/csv")},
    )
    assert too_large.status_code == 413


def test_statement_upload_at_the_size_limit_is_accepted(client, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_upload_bytes", len(CSV_STATEMENT))
    at_limit = client.post(
        "/statements/preview",
        files={"file": ("march.csv", CSV_STATEMENT, "text/csv")},
    )
    assert at_limit.status_code == 200
    assert at_limit.json()["count"] == 2

    monkeypatch.setattr(get_settings(), "max_upload_bytes", len(CSV_STATEMENT) - 1)
    one_over = client.post(
        "/statements/preview",
        files={"file": ("march.csv", CSV_STATEMENT, "text/csv")},
    )
    assert one_over.status_code == 413


def test_budget_routes(client):
    client.post(
        "/transactions",
        json={
            "date": "2024-03-02",
            "description": "groceries",
            "amount": "450",
            "direction": "outflow",
            "category": "Food",
        },
    )

    saved = client.post(
        "/budget",
        json={
            "month": "2024-03",
            "total_limit": "500",
            "category_limits": [{"category": "Food", "limit": "400"}],
        },
    )
    assert saved.status_code == 200
    status = saved.json()["status"]
    assert status["overall"]["percentage_used"] == 90.0
    assert status["overall"]["warning"] is True
    assert status["categories"][0]["exceeded"] is True

    fetched = client.get("/budget", params={"month": "2024-03"})
    assert fetched.json()["total_limit"] == 500

    assert client.get("/budget", params={"month": "2024-04"}).status_code == 404
    assert client.get("/budget").status_code == 400
    assert (
        client.post(
            "/budget", json={"month": "2024-13", "total_limit": 10}
        ).status_code
        == 422
    )


def test_dashboard_routes(client):
    this_month = local_today().strftime("%Y-%m")
    client.post(
        "/transactions",
        json={
            "date": local_today().isoformat(),
            "description": "taxi",
            "amount": "25",
            "direction": "outflow",
            "category": "Transport",
        },
    )

    spending = client.get(
        "/dashboard/category-spending", params={"month": this_month}
    ).json()
    assert spending["category_spending"] == [{"category": "Transport", "amount": 25}]

    trends = client.get("/dashboard/monthly-trends", params={"months": 3}).json()
    assert len(trends["labels"]) == 3
    assert trends["data"][0] == 0

    flows = client.get("/dashboard/income-expense").json()
    assert len(flows["labels"]) == 6
    assert flows["income"] == [0] * 6

    assert (
        client.get("/dashboard/monthly-trends", params={"months": 30}).status_code
        == 400
    )
    assert client.get("/dashboard/category-spending").status_code == 400


def test_portfolio_routes(client):
    created = client.post(
        "/portfolio",
        json={
            "name": "Index fund",
            "initial_amount": "10000",
            "current_value": "12500",
            "investment_date": "2023-01-01",
        },
    )
    assert created.status_code == 201
    inv_id = created.json()["id"]

    portfolio = client.get("/portfolio").json()
    assert portfolio["summary"]["total_gain_loss"] == 2500
    assert portfolio["investments"][0]["allocation_percent"] == 100.0

    updated = client.put(f"/portfolio/{inv_id}", json={"current_value": "9000"})
    assert updated.json()["current_value"] == 9000
    assert client.put("/portfolio/999", json={"current_value": "1"}).status_code == 404


def test_subscription_routes(client):
    created = client.post(
        "/subscriptions",
        json={
            "name": "Domain",
            "amount": "1200",
            "cycle": "yearly",
            "start_date": "2023-06-01",
        },
    )
    assert created.status_code == 201
    sub = created.json()
    assert date.fromisoformat(sub["next_renewal_date"]) > local_today()

    listing = client.get("/subscriptions").json()
    assert listing["total_monthly_cost"] == 100
    assert listing["subscriptions"][0]["days_until_renewal"] > 0

    bad_cycle = client.post(
        "/subscriptions",
        json={
            "name": "Gym",
            "amount": "30",
            "cycle": "weekly",
            "start_date": "2024-01-01",
        },
    )
    assert bad_cycle.status_code == 422

    assert client.put(
        "/subscriptions/999",
        json={
            "name": "x",
            "amount": "1",
            "cycle": "monthly",
            "start_date": "2024-01-01",
        },
    ).status_code == 404
    assert client.delete(f"/subscriptions/{sub['id']}").status_code == 200
