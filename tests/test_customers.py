# Overview: Pytest coverage for store-scoped customer records.

from posbill.extensions import db
from posbill.models import ActivityLog, Customer

from conftest import bill_payload


class TestCustomers:
    def test_create(self, client, headers_a, store_a):
        resp = client.post('/api/customers', headers=headers_a, json={
            "name": "  Dave  ", "phone": "+15005550001", "email": "dave@example.com",
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["name"] == "Dave"
        assert body["storeId"] == store_a.id
        assert db.session.query(ActivityLog).filter_by(action="Customer created").count() == 1

    def test_name_required(self, client, headers_a):
        resp = client.post('/api/customers', headers=headers_a, json={"phone": "123"})
        assert resp.status_code == 400
        assert resp.get_json()["errors"] == [{"field": "name", "message": "name is required"}]

    def test_store_id_in_payload_is_ignored(self, client, headers_a, store_a, store_b):
        resp = client.post('/api/customers', headers=headers_a, json={"name": "Eve", "storeId": store_b.id})
        assert resp.status_code == 201
        assert resp.get_json()["storeId"] == store_a.id

    def test_list_and_search(self, client, headers_a, headers_b, customer_a):
        client.post('/api/customers', headers=headers_a, json={"name": "Dave", "email": "dave@example.com"})
        client.post('/api/customers', headers=headers_b, json={"name": "Carla"})

        names = [c["name"] for c in client.get('/api/customers', headers=headers_a).get_json()]
        assert names == ["Carol", "Dave"]

        found = client.get('/api/customers?search=DAVE@', headers=headers_a).get_json()
        assert [c["name"] for c in found] == ["Dave"]

        by_phone = client.get('/api/customers?search=5550006', headers=headers_a).get_json()
        assert [c["name"] for c in by_phone] == ["Carol"]

    def test_get(self, client, headers_a, customer_a):
        resp = client.get(f'/api/customers/{customer_a.id}', headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["phone"] == "+15005550006"

    def test_update(self, client, headers_a, customer_a):
        resp = client.put(f'/api/customers/{customer_a.id}', headers=headers_a, json={"address": "1 High St"})
        assert resp.status_code == 200
        assert resp.get_json()["address"] == "1 High St"
        assert resp.get_json()["name"] == "Carol"

    def test_update_clears_phone(self, client, headers_a, customer_a):
        resp = client.put(f'/api/customers/{customer_a.id}', headers=headers_a, json={"phone": None})
        assert resp.status_code == 200
        assert resp.get_json()["phone"] is None

    def test_delete(self, client, headers_a, customer_a):
        resp = client.delete(f'/api/customers/{customer_a.id}', headers=headers_a)
        assert resp.status_code == 204
        assert db.session.query(Customer).count() == 0

    def test_customer_with_bills_cannot_be_deleted(self, client, headers_a, customer_a, product_a):
        client.post('/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=1, customer=customer_a))
        resp = client.delete(f'/api/customers/{customer_a.id}', headers=headers_a)
        assert resp.status_code == 409
        assert db.session.query(Customer).count() == 1

    def test_unknown_customer(self, client, headers_a):
        assert client.get('/api/customers/99999', headers=headers_a).status_code == 404
        assert client.delete('/api/customers/99999', headers=headers_a).status_code == 404
