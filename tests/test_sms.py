# Overview: Pytest coverage for SMS bill receipts.

"""
SMS Receipt Tests

No test talks to Twilio: deliveries are either simulated (SMS_SIMULATE) or
sent through a fake client swapped in for _get_twilio_client.
"""

from decimal import Decimal

import pytest
from twilio.base.exceptions import TwilioRestException

from posbill.extensions import db
from posbill.models import ActivityLog, Bill, Product
from posbill.services import billing_service, sms_service

from conftest import bill_payload


class _FakeMessages:
    def __init__(self, error=None):
        self.error = error
        self.sent = []

    def create(self, body, from_, to):
        if self.error is not None:
            raise self.error
        self.sent.append({"body": body, "from_": from_, "to": to})

        class _Message:
            sid = "SM123"

        return _Message()


class _FakeClient:
    def __init__(self, error=None):
        self.messages = _FakeMessages(error)


@pytest.fixture
def twilio_live(app, monkeypatch):
    """Configure Twilio credentials and turn simulation off for one test."""
    monkeypatch.setitem(app.config, "SMS_SIMULATE", False)
    monkeypatch.setitem(app.config, "TWILIO_ACCOUNT_SID", "ACtest")
    monkeypatch.setitem(app.config, "TWILIO_AUTH_TOKEN", "token")
    monkeypatch.setitem(app.config, "TWILIO_PHONE_NUMBER", "+15005550000")


def _sms_logs(action):
    db.session.expire_all()
    return db.session.query(ActivityLog).filter_by(action=action).all()


def _bill_for(store, user, product, customer=None, quantity=1):
    return billing_service.create_bill(
        store.id,
        user.id,
        {
            "subtotal": "10.00",
            "tax": "0",
            "total": f"{10 * quantity}.00",
            "customerId": customer.id if customer else None,
        },
        [{"productId": product.id, "quantity": quantity, "price": "10.00"}],
    )


class TestMessageFormat:
    def test_message_contents(self, db_session, store_a, user_a, product_a, customer_a):
        bill = _bill_for(store_a, user_a, product_a, customer_a, quantity=2)
        message = sms_service.format_bill_message(bill, customer_a, "Rs.")

        assert message.startswith("Dear Carol,")
        assert "Thank you for your purchase at Main Store." in message
        assert f"Bill #{bill.bill_number}" in message
        assert "Notebook x2: Rs.20.00" in message
        assert "Total Amount: Rs.20.00" in message
        assert "Status: paid" in message
        assert "use UPI ID: main@upi" in message

    def test_message_truncates_items(self, db_session, store_a, user_a, customer_a):
        products = []
        for i in range(5):
            product = Product(
                store_id=store_a.id, name=f"Item {i}", sku=f"IT-{i}",
                price=Decimal("1.00"), cost=Decimal("0.50"), stock=10,
            )
            db_session.add(product)
            products.append(product)
        db_session.commit()

        bill = billing_service.create_bill(
            store_a.id,
            user_a.id,
            {"subtotal": "5.00", "tax": "0", "total": "5.00", "customerId": customer_a.id},
            [{"productId": p.id, "quantity": 1, "price": "1.00"} for p in products],
        )
        message = sms_service.format_bill_message(bill, customer_a)
        assert "...and 2 more item(s)" in message
        assert "Item 3" not in message


class TestDispatchAfterBill:
    def test_bill_with_phone_sends_receipt(self, client, headers_a, product_a, customer_a):
        resp = client.post('/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=1, customer=customer_a))
        assert resp.status_code == 201

        sent = _sms_logs("SMS_SENT")
        assert len(sent) == 1
        assert sent[0].entity_id == resp.get_json()["id"]
        assert "+15005550006" in sent[0].details

    def test_bill_without_customer_sends_nothing(self, client, headers_a, product_a):
        client.post('/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=1))
        assert _sms_logs("SMS_SENT") == []
        assert _sms_logs("SMS_FAILED") == []

    def test_sms_failure_does_not_fail_bill(self, client, headers_a, product_a, customer_a, twilio_live, monkeypatch):
        error = TwilioRestException(400, "/Messages", msg="Invalid number", code=21211)
        monkeypatch.setattr(sms_service, "_get_twilio_client", lambda config: _FakeClient(error))

        resp = client.post('/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=1, customer=customer_a))
        assert resp.status_code == 201
        assert db.session.query(Bill).count() == 1

        failed = _sms_logs("SMS_FAILED")
        assert len(failed) == 1
        assert "is not a valid phone number" in failed[0].details

    def test_dispatch_async_returns_future(self, app, db_session, store_a, user_a, product_a, customer_a, monkeypatch):
        bill = _bill_for(store_a, user_a, product_a, customer_a)
        monkeypatch.setitem(app.config, "SMS_DISPATCH_SYNC", False)

        future = sms_service.dispatch_bill_sms(app, bill.id, user_a.id)
        result = future.result(timeout=10)
        assert result is not None
        assert result.success is True


class TestResendRoute:
    def test_resend(self, client, headers_a, product_a, customer_a):
        bill = client.post(
            '/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=1, customer=customer_a)
        ).get_json()

        resp = client.post(f'/api/bills/{bill["id"]}/send-sms', headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["message"] == "SMS notification sent successfully"
        assert len(_sms_logs("SMS_SENT")) == 2

    def test_resend_without_customer(self, client, headers_a, product_a):
        bill = client.post('/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=1)).get_json()
        resp = client.post(f'/api/bills/{bill["id"]}/send-sms', headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Bill has no associated customer"

    def test_resend_customer_without_phone(self, client, db_session, headers_a, product_a, customer_a):
        customer_a.phone = None
        db_session.commit()
        bill = client.post(
            '/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=1, customer=customer_a)
        ).get_json()

        resp = client.post(f'/api/bills/{bill["id"]}/send-sms', headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Customer has no phone number"

    def test_resend_failure_is_500(self, client, headers_a, product_a, customer_a, twilio_live, monkeypatch):
        error = TwilioRestException(400, "/Messages", msg="Region", code=21408)
        monkeypatch.setattr(sms_service, "_get_twilio_client", lambda config: _FakeClient(error))
        bill = client.post(
            '/api/bills', headers=headers_a, json=bill_payload(product_a, quantity=1, customer=customer_a)
        ).get_json()

        resp = client.post(f'/api/bills/{bill["id"]}/send-sms', headers=headers_a)
        assert resp.status_code == 500
        body = resp.get_json()
        assert body["message"] == "Failed to send SMS notification"
        assert "region not enabled" in body["error"]


class TestTwilioDelivery:
    def test_live_send_uses_configured_sender(self, app, db_session, store_a, user_a, product_a, customer_a,
                                              twilio_live, monkeypatch):
        fake = _FakeClient()
        monkeypatch.setattr(sms_service, "_get_twilio_client", lambda config: fake)
        bill = _bill_for(store_a, user_a, product_a, customer_a)

        result = sms_service.send_bill_sms(bill, customer_a)
        assert result.success is True
        assert fake.messages.sent[0]["from_"] == "+15005550000"
        assert fake.messages.sent[0]["to"] == "+15005550006"

    @pytest.mark.parametrize("code, expected", [
        (21408, "region not enabled"),
        (21211, "is not a valid phone number"),
        (21614, "unverified"),
        (30000, "Carrier said no"),
    ])
    def test_error_mapping(self, app, db_session, store_a, user_a, product_a, customer_a,
                           twilio_live, monkeypatch, code, expected):
        error = TwilioRestException(400, "/Messages", msg="Carrier said no", code=code)
        monkeypatch.setattr(sms_service, "_get_twilio_client", lambda config: _FakeClient(error))
        bill = _bill_for(store_a, user_a, product_a, customer_a)

        result = sms_service.send_bill_sms(bill, customer_a)
        assert result.success is False
        assert expected in result.error_message

    def test_unexpected_error_is_reported(self, app, db_session, store_a, user_a, product_a, customer_a,
                                          twilio_live, monkeypatch):
        def _broken(config):
            raise RuntimeError("network down")

        monkeypatch.setattr(sms_service, "_get_twilio_client", _broken)
        bill = _bill_for(store_a, user_a, product_a, customer_a)

        result = sms_service.send_bill_sms(bill, customer_a)
        assert result.success is False
        assert "network down" in result.error_message

    def test_unconfigured_twilio_simulates(self, app, db_session, store_a, user_a, product_a, customer_a, monkeypatch):
        monkeypatch.setitem(app.config, "SMS_SIMULATE", False)
        monkeypatch.setitem(app.config, "TWILIO_ACCOUNT_SID", None)
        bill = _bill_for(store_a, user_a, product_a, customer_a)

        assert sms_service.send_bill_sms(bill, customer_a).success is True

