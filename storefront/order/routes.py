# storefront/order/routes.py
from datetime import datetime, timedelta

from flask import request
from sqlalchemy import select

from ..extensions import db
from ..model import Order
from ..services.order_service import next_statuses, transition_order
from ..utils.api import ok, err
from ..utils.decorators import has_permission, login_required, permission_required
from . import bp


def _parse_day(v):
    try:
        return datetime.fromisoformat(v)
    except (TypeError, ValueError):
        return None


@bp.get("")
@permission_required("orders.view")
def list_orders(ctx):
    """
    Query params:
      - page, per_page
      - status=pending|paid|shipped|delivered|cancelled
      - email=...
      - coupon=CODE
      - start=YYYY-MM-DD
      - end=YYYY-MM-DD (inclusive)
    """
    q = select(Order)

    status = request.args.get("status")
    email = request.args.get("email")
    coupon = request.args.get("coupon")
    start = _parse_day(request.args.get("start"))
    end = _parse_day(request.args.get("end"))

    if status: q = q.where(Order.status == status)
    if email:  q = q.where(Order.email == email)
    if coupon: q = q.where(Order.coupon_code == coupon)
    if start:  q = q.where(Order.created_at >= start)
    if end:
        # make end inclusive for the whole day
        q = q.where(Order.created_at < end + timedelta(days=1))

    page = max(request.args.get("page", default=1, type=int), 1)
    per = min(max(request.args.get("per_page", default=20, type=int), 1), 100)

    paged = db.paginate(q.order_by(Order.created_at.desc(), Order.id.desc()),
                        page=page, per_page=per, error_out=False)

    return ok("orders", {
        "page": page,
        "per_page": per,
        "total": paged.total,
        "items": [o.as_api() for o in paged.items],
    })


@bp.get("/mine")
@login_required
def my_orders(ctx):
    orders = db.session.execute(
        select(Order).where(Order.user_id == ctx.user_id).order_by(Order.created_at.desc(), Order.id.desc())
    ).scalars().all()
    return ok("orders", {"items": [o.as_api() for o in orders]})


@bp.get("/<int:order_id>")
@login_required
def get_order(order_id: int, ctx):
    o = db.session.get(Order, order_id)
    if not o:
        return err("order not found", 404)
    if o.user_id != ctx.user_id and not has_permission(ctx.user, "orders.view"):
        return err("Forbidden", 403)
    return ok("order", {**o.as_api(), "next_statuses": next_statuses(o.status)})


@bp.patch("/<int:order_id>/status")
@permission_required("orders.edit")
def update_status(order_id: int, ctx):
    o = db.session.get(Order, order_id)
    if not o:
        return err("order not found", 404)
    data = request.get_json(silent=True) or {}
    transition_order(o, data.get("status"), actor_id=ctx.user_id)
    return ok("order updated", o.as_api())
