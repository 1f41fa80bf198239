# Overview: Pytest coverage for dashboard statistics.

from datetime import datetime, timedelta

import pytest

from gestock.models import Client, Sale
from gestock.services.statistics_service import dashboard


NOW = datetime(2026, 3, 15, 14, 0)


def _sale(db_session, stock_id, total, *, days_back=0, status="paid"):
    sale = Sale(
        stock_id=stock_id,
        total=total,
        payment_status=status,
        created_at=NOW - timedelta(days=days_back, hours=1),
    )
    db_session.add(sale)
    return sale


@pytest.fixture
def history(db_session, shelf_product, depot_product, global_product):
    _sale(db_session, 2, 100)
    _sale(db_session, 2, 40, days_back=3)
    _sale(db_session, 2, 70, days_back=3, status="pending")
    _sale(db_session, 2, 25, days_back=20)
    _sale(db_session, 2, 500, days_back=60)
    _sale(db_session, 3, 1000)
    db_session.add(Client(name="Librairie Atlas", stock_id=2))
    db_session.add(Client(name="Client inactif", stock_id=2, is_active=False))
    db_session.commit()


class TestDashboard:
    def test_stock_figures(self, db_session, history):
        stats = dashboard(2, now=NOW)

        # stock products plus the global one
        assert stats["products_count"] == 2
        assert stats["clients_count"] == 1
        assert stats["sales_count"] == 5
        assert stats["total_sales_amount"] == 665.0
        assert stats["todaySales"] == 100.0
        assert stats["weekSales"] == 140.0
        assert stats["monthSales"] == 165.0

    def test_all_stocks(self, db_session, history):
        stats = dashboard(None, now=NOW)

        assert stats["products_count"] == 3
        assert stats["sales_count"] == 6
        assert stats["todaySales"] == 1100.0

    def test_daily_series(self, db_session, history):
        series = dashboard(2, now=NOW)["dailySales"]

        assert [day["date"] for day in series] == [
            (NOW.date() - timedelta(days=offset)).isoformat() for offset in range(6, -1, -1)
        ]
        by_date = {day["date"]: day for day in series}
        assert by_date["2026-03-15"] == {"date": "2026-03-15", "count": 1, "total": 100.0}
        assert by_date["2026-03-12"] == {"date": "2026-03-12", "count": 1, "total": 40.0}
        assert by_date["2026-03-13"]["count"] == 0

    def test_recent_sales(self, db_session, history):
        recent = dashboard(2, now=NOW)["recent_sales"]

        assert len(recent) == 5
        assert recent[0]["total"] == 100.0
        assert recent[0]["customer_name"]

    def test_empty_database(self, db_session):
        stats = dashboard(1, now=NOW)

        assert stats["sales_count"] == 0
        assert stats["total_sales_amount"] == 0
        assert len(stats["dailySales"]) == 7
        assert stats["recent_sales"] == []


class TestStatisticsRoute:
    def test_scoped_request(self, client, db_session, sale):
        response = client.get("/api/statistics?stockId=renaissance")

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["sales_count"] == 1
        assert data["total_sales_amount"] == 36.0

    def test_other_stock_is_empty(self, client, db_session, sale):
        data = client.get("/api/statistics?stockId=gros").get_json()["data"]
        assert data["sales_count"] == 0

    def test_unknown_stock(self, client, db_session):
        assert client.get("/api/statistics?stockId=casablanca").status_code == 400
