"""
SMS receipts for bills.

Delivery goes through the Twilio REST client when credentials are configured
and SMS_SIMULATE is off; otherwise the message is only logged and reported as
sent. After bill creation the send runs on a small thread pool so a slow or
failing SMS gateway never delays or fails the bill request. Outcomes are
recorded as SMS_SENT / SMS_FAILED activity rows.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from ..extensions import db
from ..models import Bill, Customer
from ..money import money_str
from .activity_service import log_activity

logger = logging.getLogger(__name__)

MAX_ITEMS_IN_MESSAGE = 3

# Twilio error codes with customer-facing explanations
TWILIO_REGION_NOT_ENABLED = 21408
TWILIO_INVALID_NUMBER = 21211
TWILIO_UNVERIFIED_NUMBER = 21614

_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


@dataclass
class SmsResult:
    success: bool
    error_message: Optional[str] = None


def format_bill_message(bill: Bill, customer: Customer, currency: str = "₹") -> str:
    """Short receipt text: header, up to three lines, total, status, UPI id."""
    store_name = bill.store.name if bill.store else "our store"
    bill_date = bill.created_at.strftime("%d/%m/%Y") if bill.created_at else ""

    lines = [
        f"Dear {customer.name},",
        "",
        f"Thank you for your purchase at {store_name}.",
        f"Bill #{bill.bill_number} - {bill_date}",
        "",
    ]

    items = list(bill.items)
    for item in items[:MAX_ITEMS_IN_MESSAGE]:
        product_name = item.product.name if item.product else f"Item {item.product_id}"
        lines.append(f"{product_name} x{item.quantity}: {currency}{money_str(item.total)}")

    remaining = len(items) - MAX_ITEMS_IN_MESSAGE
    if remaining > 0:
        lines.append(f"...and {remaining} more item(s)")

    lines.append("")
    lines.append(f"Total Amount: {currency}{money_str(bill.total)}")
    lines.append(f"Status: {bill.status}")

    if bill.upi_id:
        lines.append("")
        lines.append(f"For digital payment, use UPI ID: {bill.upi_id}")

    lines.append("")
    lines.append("Thank you for shopping with us!")
    return "\n".join(lines)


def _twilio_configured(config) -> bool:
    return bool(
        config.get("TWILIO_ACCOUNT_SID")
        and config.get("TWILIO_AUTH_TOKEN")
        and config.get("TWILIO_PHONE_NUMBER")
    )


def _get_twilio_client(config) -> Client:
    return Client(config["TWILIO_ACCOUNT_SID"], config["TWILIO_AUTH_TOKEN"])


def _friendly_twilio_error(exc: TwilioRestException, phone: str) -> str:
    if exc.code == TWILIO_REGION_NOT_ENABLED:
        return (
            f"SMS could not be sent: The number {phone} is in a region not enabled for this "
            "Twilio account. Please upgrade your Twilio account or use a number from a supported region."
        )
    if exc.code == TWILIO_INVALID_NUMBER:
        return f"SMS could not be sent: {phone} is not a valid phone number."
    if exc.code == TWILIO_UNVERIFIED_NUMBER:
        return "SMS could not be sent: The phone number is unverified. In trial mode, verify the number first."
    return f"SMS could not be sent: {exc.msg or 'Unknown error'}"


def send_bill_sms(bill: Bill, customer: Customer) -> SmsResult:
    """Send the receipt for bill to customer's phone. Never raises."""
    if not customer.phone:
        message = f"Cannot send SMS: Customer {customer.id} has no phone number"
        logger.error(message)
        return SmsResult(False, message)

    config = current_app.config
    body = format_bill_message(bill, customer, config.get("CURRENCY_SYMBOL", "₹"))

    if config.get("SMS_SIMULATE", True) or not _twilio_configured(config):
        logger.info("Simulating SMS to %s for bill #%s", customer.phone, bill.bill_number)
        logger.debug("Message content: %s", body)
        return SmsResult(True)

    try:
        client = _get_twilio_client(config)
        message = client.messages.create(
            body=body,
            from_=config["TWILIO_PHONE_NUMBER"],
            to=customer.phone,
        )
    except TwilioRestException as exc:
        logger.error("Twilio rejected SMS for bill #%s: %s", bill.bill_number, exc)
        return SmsResult(False, _friendly_twilio_error(exc, customer.phone))
    except Exception as exc:
        logger.exception("Error sending SMS for bill #%s", bill.bill_number)
        return SmsResult(False, f"SMS could not be sent: {exc}")

    logger.info("SMS sent to %s for bill #%s, SID: %s", customer.phone, bill.bill_number, message.sid)
    return SmsResult(True)


def record_sms_outcome(bill: Bill, customer: Customer, result: SmsResult, user_id: int | None = None) -> None:
    if result.success:
        log_activity(
            action="SMS_SENT",
            entity_type="bill",
            entity_id=bill.id,
            details=f"Bill #{bill.bill_number} SMS notification sent to {customer.name} ({customer.phone})",
            store_id=bill.store_id,
            user_id=user_id,
            commit=True,
        )
    else:
        log_activity(
            action="SMS_FAILED",
            entity_type="bill",
            entity_id=bill.id,
            details=f"Failed to send SMS for bill #{bill.bill_number} to {customer.name}: {result.error_message}",
            store_id=bill.store_id,
            user_id=user_id,
            commit=True,
        )


def _deliver(app, bill_id: int, user_id: int | None) -> Optional[SmsResult]:
    with app.app_context():
        try:
            bill = db.session.get(Bill, bill_id)
            if bill is None or bill.customer is None or not bill.customer.phone:
                return None
            result = send_bill_sms(bill, bill.customer)
            record_sms_outcome(bill, bill.customer, result, user_id)
            return result
        except Exception:
            logger.exception("SMS dispatch failed for bill %s", bill_id)
            db.session.rollback()
            return None


def _get_executor(max_workers: int) -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="posbill-sms")
        return _executor


def dispatch_bill_sms(app, bill_id: int, user_id: int | None = None):
    """
    Fire-and-forget receipt for a committed bill.

    Runs inline when SMS_DISPATCH_SYNC is set and returns the SmsResult;
    otherwise returns the Future from the worker pool.
    """
    if app.config.get("SMS_DISPATCH_SYNC", False):
        return _deliver(app, bill_id, user_id)
    executor = _get_executor(int(app.config.get("SMS_MAX_WORKERS", 2)))
    return executor.submit(_deliver, app, bill_id, user_id)
