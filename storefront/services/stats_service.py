# storefront/services/stats_service.py
from datetime import datetime, timedelta

from sqlalchemy import func, select

from ..extensions import db
from ..model import Order, Product, User
from ..utils.dates import isoformat, utcnow
from ..utils.money import D, ZERO, money_float, round_money

SALES_DAYS = 7


def _count(model) -> int:
    return db.session.execute(select(func.count()).select_from(model)).scalar_one()


def _revenue(start=None, end=None):
    q = select(func.coalesce(func.sum(Order.total_amount), 0)).where(Order.status != "cancelled")
    if start is not None:
        q = q.where(Order.created_at >= start)
    if end is not None:
        q = q.where(Order.created_at < end)
    return round_money(D(db.session.execute(q).scalar_one()))


def _month_start(day: datetime, back=0) -> datetime:
    year, month = day.year, day.month - back
    while month < 1:
        month += 12
        year -= 1
    return datetime(year, month, 1)


def dashboard_stats(now: datetime | None = None) -> dict:
    """Store totals for the admin dashboard. Cancelled orders never count as revenue."""
    now = now or utcnow()
    today = datetime(now.year, now.month, now.day)
    this_month = _month_start(today)
    last_month = _month_start(today, back=1)

    month = _revenue(this_month)
    previous = _revenue(last_month, this_month)
    growth = float(round_money((month - previous) / previous * 100)) if previous > ZERO else 0.0

    counted = db.session.execute(
        select(func.count(Order.id)).where(Order.status != "cancelled")).scalar_one()
    total = _revenue()
    average = round_money(total / counted) if counted else ZERO

    by_status = dict(db.session.execute(
        select(Order.status, func.count(Order.id)).group_by(Order.status)).all())

    recent = db.session.execute(
        select(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(5)).scalars()

    sales = []
    for i in range(SALES_DAYS - 1, -1, -1):
        day = today - timedelta(days=i)
        nxt = day + timedelta(days=1)
        orders = db.session.execute(
            select(func.count(Order.id)).where(
                Order.status != "cancelled", Order.created_at >= day, Order.created_at < nxt)
        ).scalar_one()
        sales.append({"date": day.date().isoformat(), "revenue": money_float(_revenue(day, nxt)), "orders": orders})

    return {
        "users": _count(User),
        "products": _count(Product),
        "orders": _count(Order),
        "revenue": {
            "total": money_float(total),
            "today": money_float(_revenue(today)),
            "week": money_float(_revenue(today - timedelta(days=7))),
            "month": money_float(month),
            "last_month": money_float(previous),
            "growth": growth,
        },
        "average_order_value": money_float(average),
        "orders_by_status": by_status,
        "recent_orders": [
            {"id": o.id, "amount": money_float(o.total_amount), "status": o.status,
             "email": o.email, "created_at": isoformat(o.created_at)}
            for o in recent
        ],
        "sales": sales,
    }
