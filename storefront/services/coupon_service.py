# storefront/services/coupon_service.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..model import Coupon, Order
from ..utils.dates import utcnow
from ..utils.money import D, ZERO, round_money
from ..utils.patch import CouponPatch, UNSET, merge_patch


@dataclass(frozen=True)
class LineItem:
    """One cart line as sent by the client (price is repriced server-side)."""

    product_id: int | None
    title: str
    price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class CouponValidation:
    valid: bool
    coupon: Coupon | None = None
    discount_amount: Decimal | None = None
    error: str | None = None

    @classmethod
    def reject(cls, error: str) -> "CouponValidation":
        return cls(valid=False, error=error)

    def as_api(self):
        if not self.valid:
            return {"valid": False, "error": self.error}
        return {
            "valid": True,
            "coupon": self.coupon.public_api(),
            "discountAmount": float(self.discount_amount),
        }


def get_coupon_by_code(code: str | None) -> Coupon | None:
    code = (code or "").strip()
    if not code:
        return None
    # exact match; SQLite '=' on TEXT is case-sensitive, as is Postgres
    return db.session.execute(select(Coupon).where(Coupon.code == code)).scalar_one_or_none()


def user_usage_count(coupon_id: int, user_id: int) -> int:
    return db.session.execute(
        select(func.count(Order.id)).where(Order.user_id == user_id, Order.coupon_id == coupon_id)
    ).scalar_one()


def compute_discount(coupon: Coupon, items: list[LineItem], subtotal: Decimal) -> Decimal | None:
    """Discount for ``coupon`` on this cart, or None when no line item is eligible."""
    subtotal = D(subtotal)
    eligible_ids = set(coupon.product_ids)
    if eligible_ids:
        eligible = [i for i in items if i.product_id in eligible_ids]
        if not eligible:
            return None
        base = sum((i.line_total for i in eligible), ZERO)
    else:
        base = subtotal

    value = D(coupon.discount_value)
    if coupon.discount_type == "percentage":
        amount = base * value / Decimal(100)
    else:
        amount = min(value, base)

    if coupon.max_discount_amount is not None:
        amount = min(amount, D(coupon.max_discount_amount))

    amount = max(ZERO, min(amount, subtotal))
    return round_money(amount)


class CouponValidator:
    """Decides whether a code applies to a cart and what it takes off. Read-only."""

    def validate(self, code, items, subtotal, user_id=None, now: datetime | None = None) -> CouponValidation:
        coupon = get_coupon_by_code(code)
        if not coupon:
            return CouponValidation.reject("Coupon code not found")

        if not coupon.is_active:
            return CouponValidation.reject("Coupon is not active")

        now = now or utcnow()
        if coupon.valid_from and now < coupon.valid_from:
            return CouponValidation.reject("Coupon is not yet valid")
        if coupon.valid_until and now > coupon.valid_until:
            return CouponValidation.reject("Coupon has expired")

        if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
            return CouponValidation.reject("Coupon usage limit reached")

        if user_id and coupon.user_usage_limit is not None:
            if user_usage_count(coupon.id, user_id) >= coupon.user_usage_limit:
                return CouponValidation.reject("You have already used this coupon")

        subtotal = D(subtotal)
        if coupon.min_purchase_amount is not None and subtotal < D(coupon.min_purchase_amount):
            return CouponValidation.reject(
                f"Minimum purchase amount of ${round_money(coupon.min_purchase_amount)} required"
            )

        discount = compute_discount(coupon, items, subtotal)
        if discount is None:
            return CouponValidation.reject("Coupon does not apply to items in your cart")

        return CouponValidation(valid=True, coupon=coupon, discount_amount=discount)


def apply_coupon(coupon_id: int) -> bool:
    """Count one use of the coupon. Never pushes usage_count past usage_limit."""
    result = db.session.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon_id,
            or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
        )
        .values(usage_count=Coupon.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount == 1


def list_available_coupons(now: datetime | None = None) -> list[Coupon]:
    now = now or utcnow()
    stmt = (
        select(Coupon)
        .where(Coupon.is_active.is_(True), Coupon.valid_from <= now, Coupon.valid_until >= now)
        .order_by(Coupon.created_at.desc(), Coupon.id.desc())
    )
    return list(db.session.execute(stmt).scalars())


# ---- admin ------------------------------------------------------------------

_REQUIRED_ON_CREATE = ("code", "name", "discount_type", "discount_value", "valid_from", "valid_until")


def _check_consistency(coupon: Coupon):
    if coupon.discount_type == "percentage" and D(coupon.discount_value) > 100:
        raise ValidationError("percentage discount must be <= 100")
    if coupon.valid_from and coupon.valid_until and coupon.valid_until < coupon.valid_from:
        raise ValidationError("validUntil must be after validFrom")


def _commit_coupon(coupon: Coupon):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Coupon code already exists", status_code=409)


def create_coupon(data: dict) -> Coupon:
    patch = CouponPatch.from_payload(data)
    missing = [f for f in _REQUIRED_ON_CREATE if getattr(patch, f) is UNSET]
    if missing:
        raise ValidationError("Missing required fields", data={"missing": missing})
    if patch.is_active is UNSET:
        patch.is_active = True

    coupon = Coupon(usage_count=0)
    merge_patch(coupon, patch)
    _check_consistency(coupon)
    db.session.add(coupon)
    _commit_coupon(coupon)
    current_app.logger.info("coupon created id=%s code=%s", coupon.id, coupon.code)
    return coupon


def update_coupon(coupon: Coupon, data: dict) -> list[str]:
    changed = merge_patch(coupon, CouponPatch.from_payload(data))
    try:
        _check_consistency(coupon)
    except ValidationError:
        db.session.rollback()
        raise
    _commit_coupon(coupon)
    return changed
