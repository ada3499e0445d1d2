# Overview: Pytest coverage for dashboard figures, sales reports and the activity feed.

from datetime import datetime

import pytest

from posbill.extensions import db
from posbill.models import Bill
from posbill.services import reporting_service
from posbill.services.reporting_service import ReportError

from conftest import bill_payload


def _backdate(bill_id, when):
    bill = db.session.get(Bill, bill_id)
    bill.created_at = when
    db.session.commit()


class TestDashboard:
    def test_empty_store(self, client, headers_a):
        resp = client.get('/api/dashboard/stats', headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json() == {
            "todaySales": "0.00",
            "newOrders": 0,
            "inventoryItems": 0,
            "lowStockItemsCount": 0,
            "totalCustomers": 0,
        }

    def test_counts_today(self, client, headers_a, product_a, customer_a):
        client.post('/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=2))
        client.post('/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=1, status="pending"))

        stats = client.get('/api/dashboard/stats', headers=headers_a).get_json()
        # Only paid bills count towards sales; every bill is a new order
        assert stats["todaySales"] == "20.00"
        assert stats["newOrders"] == 2
        assert stats["inventoryItems"] == 1
        assert stats["totalCustomers"] == 1
        # 5 - 2 - 1 = 2, not below the minimum of 2
        assert stats["lowStockItemsCount"] == 0

    def test_low_stock_count(self, client, headers_a, product_a):
        client.post('/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=4))
        stats = client.get('/api/dashboard/stats', headers=headers_a).get_json()
        assert stats["lowStockItemsCount"] == 1

    def test_yesterday_is_not_today(self, client, headers_a, product_a):
        bill = client.post('/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=1)).get_json()
        _backdate(bill["id"], datetime(2020, 1, 1, 12, 0, 0))

        stats = client.get('/api/dashboard/stats', headers=headers_a).get_json()
        assert stats["todaySales"] == "0.00"
        assert stats["newOrders"] == 0

    def test_stats_are_store_scoped(self, client, headers_a, headers_b, product_b):
        client.post('/api/bills', headers=headers_b, json=bill_payload(product_b, quantity=1))
        stats = client.get('/api/dashboard/stats', headers=headers_a).get_json()
        assert stats["todaySales"] == "0.00"


class TestSalesReport:
    @pytest.fixture
    def history(self, client, headers_a, product_a):
        """Three paid bills over two months plus one cancelled bill."""
        ids = []
        for qty in (1, 2, 1, 1):
            bill = client.post('/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=qty)).get_json()
            ids.append(bill["id"])
        _backdate(ids[0], datetime(2026, 3, 5, 9, 0, 0))
        _backdate(ids[1], datetime(2026, 3, 5, 18, 30, 0))
        _backdate(ids[2], datetime(2026, 4, 2, 10, 0, 0))
        _backdate(ids[3], datetime(2026, 4, 2, 11, 0, 0))
        client.put(f'/api/bills/{ids[3]}/status', headers=headers_a, json={"status": "cancelled"})
        return ids

    def test_group_by_day(self, client, headers_a, history):
        resp = client.get('/api/reports/sales?from=2026-03-01&to=2026-04-30', headers=headers_a)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["groupBy"] == "day"
        assert body["rows"] == [
            {"period": "2026-03-05", "sales": "30.00", "count": 2},
            {"period": "2026-04-02", "sales": "10.00", "count": 1},
        ]
        assert body["totalSales"] == "40.00"
        assert body["totalOrders"] == 3
        assert body["averageOrderValue"] == "13.33"

    def test_group_by_month(self, client, headers_a, history):
        body = client.get('/api/reports/sales?groupBy=month', headers=headers_a).get_json()
        assert [r["period"] for r in body["rows"]] == ["2026-03", "2026-04"]

    def test_bare_end_date_includes_whole_day(self, client, headers_a, history):
        body = client.get('/api/reports/sales?from=2026-03-05&to=2026-03-05', headers=headers_a).get_json()
        assert body["totalOrders"] == 2
        assert body["totalSales"] == "30.00"

    def test_end_datetime_is_inclusive_bound(self, client, headers_a, history):
        body = client.get('/api/reports/sales?to=2026-03-05T12:00:00Z', headers=headers_a).get_json()
        assert body["totalOrders"] == 1

    def test_invalid_group_by(self, client, headers_a):
        resp = client.get('/api/reports/sales?groupBy=week', headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "groupBy must be day or month"

    def test_invalid_date(self, client, headers_a):
        resp = client.get('/api/reports/sales?from=yesterday', headers=headers_a)
        assert resp.status_code == 400

    def test_empty_report(self, db_session, store_a):
        report = reporting_service.sales_report(store_id=store_a.id)
        assert report["rows"] == []
        assert report["averageOrderValue"] == "0.00"

    def test_service_rejects_bad_group(self, db_session, store_a):
        with pytest.raises(ReportError):
            reporting_service.sales_report(store_id=store_a.id, group_by="year")


class TestActivityFeed:
    def test_newest_first_with_limit(self, client, headers_a, product_a):
        client.post('/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=1))
        client.post('/api/customers', headers=headers_a, json={"name": "Dave"})

        logs = client.get('/api/activity-logs?limit=1', headers=headers_a).get_json()
        assert len(logs) == 1
        assert logs[0]["action"] == "Customer created"

    def test_default_limit(self, client, headers_a):
        for i in range(12):
            client.post('/api/customers', headers=headers_a, json={"name": f"Customer {i:02d}"})
        logs = client.get('/api/activity-logs', headers=headers_a).get_json()
        assert len(logs) == 10
