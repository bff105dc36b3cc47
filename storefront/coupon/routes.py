# storefront/coupon/routes.py
from __future__ import annotations
from flask import request
from sqlalchemy import select

from ..extensions import db
from ..model import Coupon
from ..services.checkout_service import parse_line_items, reprice
from ..services.coupon_service import (
    CouponValidator, create_coupon, list_available_coupons, update_coupon,
)
from ..services.stock_service import load_products
from ..utils.api import ok, err
from ..utils.decorators import permission_required, with_request_context
from ..utils.money import parse_money
from . import bp


# ---- storefront -------------------------------------------------------------

@bp.post("/validate")
@with_request_context
def validate_coupon(ctx):
    """
    Body: { "code": str, "items": [{productId, title, price, quantity}], "subtotal": number }
    """
    data = request.get_json(silent=True) or {}
    code = data.get("code")
    subtotal = parse_money(data.get("subtotal"))
    if not code or "items" not in data or subtotal is None:
        return err("Missing required fields", 400, {"valid": False, "error": "Missing required fields"})
    if subtotal < 0:
        msg = "subtotal must be a non-negative number"
        return err(msg, 400, {"valid": False, "error": msg})

    items = parse_line_items(data.get("items"), allow_empty=True)
    items = reprice(items, load_products(i.product_id for i in items))

    result = CouponValidator().validate(code, items, subtotal, user_id=ctx.user_id)
    if not result.valid:
        return err(result.error, 400, result.as_api())
    return ok("Coupon is valid", result.as_api())


_PUBLIC_KEYS = (
    "id", "code", "name", "description", "discountType", "discountValue",
    "minPurchaseAmount", "maxDiscountAmount", "validUntil",
)


@bp.get("/available")
def available_coupons():
    payload = []
    for c in list_available_coupons():
        full = c.as_api()
        payload.append({k: full[k] for k in _PUBLIC_KEYS})
    return ok("coupons", {"coupons": payload})


# ---- admin ------------------------------------------------------------------

@bp.get("")
@permission_required("coupons.view")
def list_coupons(ctx):
    q = select(Coupon)
    active = request.args.get("active")
    if active is not None:
        q = q.where(Coupon.is_active.is_(active.lower() == "true"))
    coupons = db.session.execute(q.order_by(Coupon.id.desc())).scalars().all()
    return ok("coupons", {"coupons": [c.as_api() for c in coupons]})


@bp.post("")
@permission_required("coupons.create")
def create(ctx):
    data = request.get_json(silent=True)
    if not data:
        return err("Invalid payload", 400)
    coupon = create_coupon(data)
    return ok("Coupon created", {"id": coupon.id, "coupon": coupon.as_api()}, status=201)


@bp.get("/<int:coupon_id>")
@permission_required("coupons.view")
def get_coupon(coupon_id: int, ctx):
    coupon = db.session.get(Coupon, coupon_id)
    if not coupon:
        return err("Coupon not found", 404)
    return ok("coupon", {"coupon": coupon.as_api()})


@bp.patch("/<int:coupon_id>")
@permission_required("coupons.update")
def patch_coupon(coupon_id: int, ctx):
    coupon = db.session.get(Coupon, coupon_id)
    if not coupon:
        return err("Coupon not found", 404)
    data = request.get_json(silent=True)
    if not data:
        return err("Invalid payload", 400)
    changed = update_coupon(coupon, data)
    return ok("Coupon updated", {"coupon": coupon.as_api(), "changed": changed})


@bp.delete("/<int:coupon_id>")
@permission_required("coupons.delete")
def delete_coupon(coupon_id: int, ctx):
    coupon = db.session.get(Coupon, coupon_id)
    if not coupon:
        return err("Coupon not found", 404)
    db.session.delete(coupon)
    db.session.commit()
    return ok("Coupon deleted successfully")
