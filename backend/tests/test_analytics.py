from datetime import date, datetime, timezone
from services.analytics import recent_orders, monthwise_revenue, top_data, order_status_counts
from helpers import seed_user, seed_order, admin_auth, auth

def _at(year, month, day):
    return datetime(year, month, day, 12, 0, tzinfo=timezone.utc)

def _seed_history(db):
    seed_user(db)
    seed_order(db, final_amount=100.0, created_at=_at(2025, 3, 2), quantity=2)
    seed_order(db, final_amount=50.0, created_at=_at(2025, 3, 20), quantity=1, status="shipped")
    seed_order(db, final_amount=200.0, created_at=_at(2025, 1, 10), quantity=4, status="delivered")
    seed_order(db, final_amount=75.0, created_at=_at(2024, 10, 31), status="cancelled")

def test_monthwise_revenue_always_has_five_months(db_session):
    _seed_history(db_session)
    months = monthwise_revenue(db_session, date(2025, 3, 15))
    assert [m["month"] for m in months] == ["Nov", "Dec", "Jan", "Feb", "Mar"]
    assert [m["month_number"] for m in months] == [11, 12, 1, 2, 3]
    assert [m["revenue"] for m in months] == [0, 0, 200.0, 0, 150.0]
    assert [m["orders"] for m in months] == [0, 0, 1, 0, 2]

def test_top_data_current_month_first(db_session):
    _seed_history(db_session)
    current, previous = top_data(db_session, date(2025, 3, 15))
    assert current == {"month_name": "Mar 2025", "total_orders": 2, "total_revenue": 150.0, "total_quantity": 3}
    assert previous == {"month_name": "Feb 2025", "total_orders": 0, "total_revenue": 0, "total_quantity": 0}

def test_top_data_crosses_year_boundary(db_session):
    _seed_history(db_session)
    current, previous = top_data(db_session, date(2025, 1, 5))
    assert current["month_name"] == "Jan 2025"
    assert current["total_quantity"] == 4
    assert previous["month_name"] == "Dec 2024"

def test_order_status_counts(db_session):
    _seed_history(db_session)
    assert order_status_counts(db_session) == {"pending": 1, "cancelled": 1, "completed": 1, "shipped": 1}

def test_status_counts_on_empty_store(db_session):
    assert order_status_counts(db_session) == {"pending": 0, "cancelled": 0, "completed": 0, "shipped": 0}

def test_recent_orders_newest_first(db_session):
    _seed_history(db_session)
    orders = recent_orders(db_session, limit=2)
    assert [o["amount"] for o in orders] == [50.0, 100.0]
    assert orders[0]["customer"] == "Asha Rao"

def test_overview_endpoint(client, db_session):
    _seed_history(db_session)
    r = client.get("/api/v1/admin/analytics/overview", headers=admin_auth())
    assert r.status_code == 200
    data = r.get_json()
    assert len(data["monthwise"]) == 5
    assert len(data["top_data"]) == 2
    assert len(data["recent_orders"]) == 4
    assert data["status_counts"]["completed"] == 1

def test_analytics_endpoints_are_admin_only(client):
    for path in ("overview", "recent-orders", "monthwise", "top", "status"):
        assert client.get(f"/api/v1/admin/analytics/{path}").status_code == 401
        assert client.get(f"/api/v1/admin/analytics/{path}", headers=auth()).status_code == 403

def test_recent_orders_limit_validation(client, db_session):
    _seed_history(db_session)
    assert client.get("/api/v1/admin/analytics/recent-orders?limit=abc", headers=admin_auth()).status_code == 400
    orders = client.get("/api/v1/admin/analytics/recent-orders?limit=1", headers=admin_auth()).get_json()["orders"]
    assert len(orders) == 1
