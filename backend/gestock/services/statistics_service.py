# Overview: Read-only dashboard aggregates over sales, products and clients.

"""
Statistics Service

Revenue figures count paid sales only; counts of sales include every
payment status. Windows are measured from midnight UTC: today, the last
7 days (today included) and the last 30 days.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Client, Product, Sale
from ..money import to_number
from ..time_utils import days_ago, start_of_day, utcnow
from .sales_service import summarize_sale

PAID = "paid"
RECENT_SALES_LIMIT = 5
DAILY_WINDOW_DAYS = 7


def _scoped(query, model, stock_id: int | None):
    if stock_id is None:
        return query
    return query.filter(model.stock_id == stock_id)


def _paid_revenue(stock_id: int | None, since=None) -> Decimal:
    query = db.session.query(func.coalesce(func.sum(Sale.total), 0)).filter(Sale.payment_status == PAID)
    query = _scoped(query, Sale, stock_id)
    if since is not None:
        query = query.filter(Sale.created_at >= since)
    return Decimal(str(query.scalar() or 0))


def _daily_sales(stock_id: int | None, now) -> list[dict]:
    first_day = days_ago(DAILY_WINDOW_DAYS - 1, now=now)
    day = func.date(Sale.created_at)
    query = (
        db.session.query(day, func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0))
        .filter(Sale.payment_status == PAID, Sale.created_at >= first_day)
        .group_by(day)
    )
    rows = {str(d): (int(count), Decimal(str(total))) for d, count, total in _scoped(query, Sale, stock_id).all()}

    series = []
    for offset in range(DAILY_WINDOW_DAYS):
        key = (first_day + timedelta(days=offset)).date().isoformat()
        count, total = rows.get(key, (0, Decimal("0")))
        series.append({"date": key, "count": count, "total": to_number(total)})
    return series


def dashboard(stock_id: int | None = None, *, now=None) -> dict:
    """
    Aggregates for one stock, or for every stock when stock_id is None.

    Products counted for a stock include global products.
    """
    now = now or utcnow()

    products = db.session.query(func.count(Product.id)).filter(Product.is_active.is_(True))
    if stock_id is not None:
        products = products.filter(or_(Product.stock_id == stock_id, Product.stock_id.is_(None)))

    clients = _scoped(
        db.session.query(func.count(Client.id)).filter(Client.is_active.is_(True)), Client, stock_id
    )
    sales_count = _scoped(db.session.query(func.count(Sale.id)), Sale, stock_id)

    recent = (
        _scoped(db.session.query(Sale), Sale, stock_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(RECENT_SALES_LIMIT)
        .all()
    )

    return {
        "products_count": products.scalar() or 0,
        "clients_count": clients.scalar() or 0,
        "sales_count": sales_count.scalar() or 0,
        "total_sales_amount": to_number(_paid_revenue(stock_id)),
        "todaySales": to_number(_paid_revenue(stock_id, start_of_day(now))),
        "weekSales": to_number(_paid_revenue(stock_id, days_ago(DAILY_WINDOW_DAYS - 1, now=now))),
        "monthSales": to_number(_paid_revenue(stock_id, days_ago(29, now=now))),
        "dailySales": _daily_sales(stock_id, now),
        "recent_sales": [summarize_sale(s) for s in recent],
    }
