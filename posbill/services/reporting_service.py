# Overview: Dashboard figures and sales reports, all store-scoped.

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Bill, Customer, Product
from ..models.billing import STATUS_PAID
from ..money import CENT, money_str
from ..time_utils import parse_iso_datetime, start_of_day

VALID_GROUP_BY = {"day", "month"}


class ReportError(Exception):
    """Raised when report parameters are invalid."""


def daily_sales_total(store_id: int) -> Decimal:
    """Sum of today's paid bill totals (UTC day)."""
    total = (
        db.session.query(func.coalesce(func.sum(Bill.total), 0))
        .filter(
            Bill.store_id == store_id,
            Bill.status == STATUS_PAID,
            Bill.created_at >= start_of_day(),
        )
        .scalar()
    )
    return Decimal(str(total or 0)).quantize(CENT)


def new_orders_count(store_id: int) -> int:
    """Bills created today, any status."""
    return (
        db.session.query(func.count(Bill.id))
        .filter(Bill.store_id == store_id, Bill.created_at >= start_of_day())
        .scalar()
        or 0
    )


def dashboard_stats(store_id: int) -> dict:
    inventory_items = db.session.query(func.count(Product.id)).filter(Product.store_id == store_id).scalar() or 0
    low_stock = (
        db.session.query(func.count(Product.id))
        .filter(Product.store_id == store_id, Product.stock < Product.min_stock_level)
        .scalar()
        or 0
    )
    customers = db.session.query(func.count(Customer.id)).filter(Customer.store_id == store_id).scalar() or 0

    return {
        "todaySales": money_str(daily_sales_total(store_id)),
        "newOrders": new_orders_count(store_id),
        "inventoryItems": inventory_items,
        "lowStockItemsCount": low_stock,
        "totalCustomers": customers,
    }


def _parse_bound(value: str | None, name: str, *, end: bool) -> tuple[datetime | None, bool]:
    """
    Returns (bound, exclusive). A bare date as the end bound covers that
    whole day, so it becomes an exclusive bound at the next midnight.
    """
    if not value:
        return None, False
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        raise ReportError(f"{name} must be an ISO-8601 date or datetime")
    if end and len(value.strip()) == 10:
        return parsed + timedelta(days=1), True
    return parsed, False


def sales_report(*, store_id: int, start: str | None = None, end: str | None = None, group_by: str = "day") -> dict:
    """
    Paid sales grouped by day (YYYY-MM-DD) or month (YYYY-MM).

    Periods are bucketed in Python so the same code runs on every database.
    """
    if group_by not in VALID_GROUP_BY:
        raise ReportError("groupBy must be day or month")

    start_dt, _ = _parse_bound(start, "from", end=False)
    end_dt, end_exclusive = _parse_bound(end, "to", end=True)

    query = db.session.query(Bill.created_at, Bill.total).filter(
        Bill.store_id == store_id,
        Bill.status == STATUS_PAID,
    )
    if start_dt:
        query = query.filter(Bill.created_at >= start_dt)
    if end_dt:
        query = query.filter(Bill.created_at < end_dt if end_exclusive else Bill.created_at <= end_dt)

    fmt = "%Y-%m-%d" if group_by == "day" else "%Y-%m"
    buckets: "OrderedDict[str, dict]" = OrderedDict()
    for created_at, total in query.order_by(Bill.created_at.asc(), Bill.id.asc()).all():
        period = created_at.strftime(fmt)
        bucket = buckets.setdefault(period, {"sales": Decimal("0"), "count": 0})
        bucket["sales"] += Decimal(str(total))
        bucket["count"] += 1

    total_sales = sum((b["sales"] for b in buckets.values()), Decimal("0"))
    total_orders = sum(b["count"] for b in buckets.values())
    average = total_sales / total_orders if total_orders else Decimal("0")

    return {
        "groupBy": group_by,
        "from": start or None,
        "to": end or None,
        "rows": [
            {"period": period, "sales": money_str(b["sales"]), "count": b["count"]}
            for period, b in buckets.items()
        ],
        "totalSales": money_str(total_sales),
        "totalOrders": total_orders,
        "averageOrderValue": money_str(average),
    }
