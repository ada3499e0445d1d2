# Overview: Pytest coverage for manual stock movements and the transaction ledger.

"""
Inventory Tests

Every change to Product.stock comes with a signed InventoryTransaction row,
and stock never drops below zero unless ALLOW_NEGATIVE_STOCK is set.
"""

import pytest

from posbill.extensions import db
from posbill.models import ActivityLog, InventoryTransaction, Product
from posbill.services import inventory_service
from posbill.services.inventory_service import InventoryError
from posbill.validation import ValidationError


def _stock(product_id):
    db.session.expire_all()
    return db.session.get(Product, product_id).stock


class TestStockChanges:
    def test_purchase_adds_stock(self, client, headers_a, product_a, user_a):
        resp = client.post('/api/inventory/transactions', headers=headers_a, json={
            "productId": product_a.id, "quantity": 10, "type": "purchase", "reference": "PO-1",
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["quantity"] == 10
        assert body["reference"] == "PO-1"
        assert body["userId"] == user_a.id
        assert body["product"]["stock"] == 15
        assert _stock(product_a.id) == 15

    def test_purchase_sign_is_normalized(self, client, headers_a, product_a):
        resp = client.post('/api/inventory/transactions', headers=headers_a, json={
            "productId": product_a.id, "quantity": -4, "type": "purchase",
        })
        assert resp.get_json()["quantity"] == 4
        assert _stock(product_a.id) == 9

    def test_sale_is_stored_negative(self, client, headers_a, product_a):
        resp = client.post('/api/inventory/transactions', headers=headers_a, json={
            "productId": product_a.id, "quantity": 3, "type": "sale",
        })
        assert resp.status_code == 201
        assert resp.get_json()["quantity"] == -3
        assert _stock(product_a.id) == 2

    def test_adjustment_keeps_sign(self, client, headers_a, product_a):
        resp = client.post('/api/inventory/transactions', headers=headers_a, json={
            "productId": product_a.id, "quantity": -1, "type": "adjustment", "notes": "Damaged",
        })
        assert resp.get_json()["quantity"] == -1
        assert _stock(product_a.id) == 4

    def test_insufficient_stock(self, client, headers_a, product_a):
        resp = client.post('/api/inventory/transactions', headers=headers_a, json={
            "productId": product_a.id, "quantity": 6, "type": "sale",
        })
        assert resp.status_code == 400
        assert resp.get_json()["details"]["available"] == 5
        assert _stock(product_a.id) == 5
        assert db.session.query(InventoryTransaction).count() == 0

    def test_zero_quantity_rejected(self, client, headers_a, product_a):
        resp = client.post('/api/inventory/transactions', headers=headers_a, json={
            "productId": product_a.id, "quantity": 0, "type": "purchase",
        })
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["message"] == "quantity must not be zero"

    def test_unknown_type_rejected(self, client, headers_a, product_a):
        resp = client.post('/api/inventory/transactions', headers=headers_a, json={
            "productId": product_a.id, "quantity": 1, "type": "theft",
        })
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "type"

    def test_unknown_product(self, client, headers_a):
        resp = client.post('/api/inventory/transactions', headers=headers_a, json={
            "productId": 99999, "quantity": 1, "type": "purchase",
        })
        assert resp.status_code == 404

    def test_activity_is_logged(self, client, headers_a, product_a):
        client.post('/api/inventory/transactions', headers=headers_a, json={
            "productId": product_a.id, "quantity": 2, "type": "purchase",
        })
        log = db.session.query(ActivityLog).filter_by(action="Inventory updated").one()
        assert log.entity_id == product_a.id
        assert "stock now 7" in log.details


class TestLedger:
    def test_list_newest_first(self, client, headers_a, product_a):
        for qty in (1, 2, 3):
            client.post('/api/inventory/transactions', headers=headers_a, json={
                "productId": product_a.id, "quantity": qty, "type": "purchase",
            })
        resp = client.get(f'/api/inventory/transactions?productId={product_a.id}', headers=headers_a)
        assert [t["quantity"] for t in resp.get_json()] == [3, 2, 1]

    def test_ledger_sums_to_stock(self, client, headers_a):
        product = client.post('/api/products', headers=headers_a, json={
            "name": "Tape", "sku": "TP-1", "price": "3.00", "cost": "1.00", "stock": 10,
        }).get_json()
        for qty, tx_type in ((5, "purchase"), (4, "sale"), (-2, "adjustment")):
            client.post('/api/inventory/transactions', headers=headers_a, json={
                "productId": product["id"], "quantity": qty, "type": tx_type,
            })

        ledger = db.session.query(InventoryTransaction).filter_by(product_id=product["id"]).all()
        assert sum(t.quantity for t in ledger) == _stock(product["id"]) == 9

    def test_list_is_store_scoped(self, client, headers_a, headers_b, product_a, product_b):
        client.post('/api/inventory/transactions', headers=headers_b, json={
            "productId": product_b.id, "quantity": 1, "type": "purchase",
        })
        assert client.get('/api/inventory/transactions', headers=headers_a).get_json() == []


class TestServiceDirect:
    def test_string_quantity_accepted(self, db_session, store_a, product_a):
        tx = inventory_service.record_stock_change(
            store_a.id, {"productId": product_a.id, "quantity": "3", "type": "purchase"}
        )
        assert tx.quantity == 3

    def test_non_integer_quantity(self, db_session, store_a, product_a):
        with pytest.raises(ValidationError):
            inventory_service.record_stock_change(
                store_a.id, {"productId": product_a.id, "quantity": 1.5, "type": "purchase"}
            )

    def test_restock_never_fails_below_zero(self, app, db_session, store_a, product_a, monkeypatch):
        monkeypatch.setitem(app.config, "ALLOW_NEGATIVE_STOCK", True)
        inventory_service.record_stock_change(store_a.id, {"productId": product_a.id, "quantity": 8, "type": "sale"})
        monkeypatch.setitem(app.config, "ALLOW_NEGATIVE_STOCK", False)

        tx = inventory_service.record_stock_change(
            store_a.id, {"productId": product_a.id, "quantity": 1, "type": "purchase"}
        )
        assert tx.quantity == 1
        assert _stock(product_a.id) == -2

    def test_inventory_error_details(self, db_session, store_a, product_a):
        with pytest.raises(InventoryError) as excinfo:
            inventory_service.record_stock_change(
                store_a.id, {"productId": product_a.id, "quantity": 9, "type": "sale"}
            )
        assert excinfo.value.details == {"productId": product_a.id, "available": 5, "requested": 9}
