# storefront/services/checkout_service.py
"""Checkout: stock check -> payment -> order -> stock decrement -> e-mail.

Nothing is written before the payment succeeds. After the order row exists
the customer has been charged, so coupon usage, stock decrements and the
confirmation mail are best-effort and only logged when they fail.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PaymentError, PersistenceError, ValidationError
from ..extensions import db
from ..model import Coupon, Order, OrderItem
from ..utils.decorators import GUEST, RequestContext
from ..utils.money import ZERO, parse_money, round_money
from .coupon_service import CouponValidator, LineItem, apply_coupon
from .email_service import send_order_confirmation
from .payment_service import Transaction
from .stock_service import check_stock, decrement_stock_best_effort


@dataclass(frozen=True)
class ShippingInfo:
    name: str
    email: str
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    country: str = "US"

    @classmethod
    def from_payload(cls, data) -> "ShippingInfo":
        if not isinstance(data, dict):
            raise ValidationError("Missing required fields", data={"missing": ["shippingInfo"]})
        clean = {k: (str(data.get(k)).strip() if data.get(k) is not None else None)
                 for k in ("name", "email", "address", "city", "state", "zip", "country")}
        missing = [k for k in ("name", "email") if not clean[k]]
        if missing:
            raise ValidationError("Missing shipping fields", data={"missing": missing})
        if "@" not in clean["email"]:
            raise ValidationError("Invalid email address")
        clean["country"] = clean["country"] or "US"
        return cls(**clean)


def parse_line_items(raw, allow_empty: bool = False) -> list[LineItem]:
    if not isinstance(raw, list) or (not raw and not allow_empty):
        raise ValidationError("Missing required fields", data={"missing": ["items"]})
    items = []
    for idx, it in enumerate(raw):
        if not isinstance(it, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        pid = it.get("productId", it.get("product_id"))
        if pid is not None:
            try:
                pid = int(pid)
            except (TypeError, ValueError):
                raise ValidationError(f"items[{idx}].productId must be an integer")
        try:
            qty = int(it.get("quantity"))
        except (TypeError, ValueError):
            raise ValidationError(f"items[{idx}].quantity must be an integer")
        if qty < 1:
            raise ValidationError(f"items[{idx}].quantity must be >= 1")
        price = parse_money(it.get("price"))
        if price is None or price < 0:
            price = ZERO
        items.append(LineItem(
            product_id=pid,
            title=(it.get("title") or "").strip() or f"Product {pid}",
            price=price,
            quantity=qty,
        ))
    return items


def reprice(items, products) -> list[LineItem]:
    """Replace client price/title with the catalog's wherever the product exists."""
    out = []
    for it in items:
        p = products.get(it.product_id)
        if p is None:
            out.append(it)
        else:
            out.append(LineItem(product_id=p.id, title=p.title, price=round_money(p.price), quantity=it.quantity))
    return out


@dataclass(frozen=True)
class CheckoutRequest:
    items: list
    shipping: ShippingInfo
    amount: Decimal
    payment_method_nonce: str | None = None
    coupon_id: int | None = None
    coupon_code: str | None = None
    discount_amount: Decimal | None = None

    @classmethod
    def from_payload(cls, data: dict) -> "CheckoutRequest":
        if not data or "items" not in data or "shippingInfo" not in data:
            raise ValidationError("Missing required fields")
        items = parse_line_items(data.get("items"))
        shipping = ShippingInfo.from_payload(data.get("shippingInfo"))

        raw_amount = data.get("amount")
        amount = parse_money(raw_amount if raw_amount not in (None, "") else "0")
        if amount is None or amount < 0:
            raise ValidationError("amount must be a non-negative number")

        coupon_id = data.get("couponId")
        if coupon_id in ("", None):
            coupon_id = None
        else:
            try:
                coupon_id = int(coupon_id)
            except (TypeError, ValueError):
                raise ValidationError("couponId must be an integer")

        discount = data.get("discountAmount")
        discount = parse_money(discount) if discount not in (None, "") else None

        return cls(
            items=items,
            shipping=shipping,
            amount=round_money(amount),
            payment_method_nonce=(data.get("paymentMethodNonce") or None),
            coupon_id=coupon_id,
            coupon_code=(data.get("couponCode") or "").strip() or None,
            discount_amount=discount,
        )


@dataclass
class CheckoutResult:
    order_id: int
    transaction: Transaction | None = None
    failed_stock_updates: list = field(default_factory=list)

    def as_api(self):
        return {
            "success": True,
            "orderId": self.order_id,
            "transaction": self.transaction.as_api() if self.transaction else None,
        }


class CheckoutReconciler:
    def __init__(self, gateway, validator: CouponValidator | None = None,
                 verify_amount: bool = True, notify=send_order_confirmation):
        self.gateway = gateway
        self.validator = validator or CouponValidator()
        self.verify_amount = verify_amount
        self.notify = notify

    # ---- steps ---------------------------------------------------------------

    def _resolve_coupon(self, req: CheckoutRequest, items, ctx: RequestContext):
        """Server-side price + coupon check. Returns (coupon_id, coupon_code, discount)."""
        subtotal = round_money(sum((i.line_total for i in items), ZERO))
        discount = ZERO
        coupon = None

        if req.coupon_code or req.coupon_id:
            code = req.coupon_code
            if not code:
                c = db.session.get(Coupon, req.coupon_id)
                code = c.code if c else None
            result = self.validator.validate(code, items, subtotal, user_id=ctx.user_id)
            if not result.valid:
                raise ValidationError(result.error)
            if req.coupon_id and result.coupon.id != req.coupon_id:
                raise ValidationError("Coupon does not match couponId")
            coupon, discount = result.coupon, result.discount_amount

        expected = round_money(max(ZERO, subtotal - discount))
        if req.amount != expected:
            raise ValidationError(
                "Order amount does not match cart total",
                data={"expectedAmount": float(expected), "amount": float(req.amount)},
            )
        if coupon is None:
            return None, None, None
        return coupon.id, coupon.code, discount

    def _charge(self, amount: Decimal, nonce: str | None) -> Transaction | None:
        if amount == 0:
            return None
        if not nonce:
            raise PaymentError("Payment method required for paid orders")
        return self.gateway.sale(amount, nonce)

    def _count_coupon_use(self, coupon_id):
        try:
            if not apply_coupon(coupon_id):
                current_app.logger.warning("Coupon %s usage not incremented (missing or limit reached)", coupon_id)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Failed to apply coupon %s", coupon_id)

    def _persist(self, req, items, ctx, transaction, coupon_fields) -> Order:
        coupon_id, coupon_code, discount = coupon_fields
        s = req.shipping
        order = Order(
            user_id=ctx.user_id,
            email=s.email,
            shipping_name=s.name,
            shipping_address=s.address,
            shipping_city=s.city,
            shipping_state=s.state,
            shipping_zip=s.zip,
            shipping_country=s.country,
            total_amount=req.amount,
            status="paid",  # free orders too; nothing in this flow is left pending
            transaction_id=transaction.id if transaction else None,
            coupon_id=coupon_id,
            coupon_code=coupon_code,
            discount_amount=round_money(discount) if discount is not None else None,
            items=[
                OrderItem(
                    product_id=i.product_id,
                    product_title=i.title,
                    product_price=round_money(i.price),
                    quantity=i.quantity,
                )
                for i in items
            ],
        )
        db.session.add(order)
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.exception(
                "Order persistence failed (transaction=%s, amount=%s)",
                transaction.id if transaction else None, req.amount)
            raise PersistenceError("Failed to save order") from e
        return order

    # ---- entry point -----------------------------------------------------------

    def checkout(self, req: CheckoutRequest, ctx: RequestContext = GUEST) -> CheckoutResult:
        products = check_stock(req.items)
        items = reprice(req.items, products)

        if self.verify_amount:
            coupon_fields = self._resolve_coupon(req, items, ctx)
        else:
            # client-supplied total and coupon figures, trusted as-is
            coupon_fields = (req.coupon_id, req.coupon_code, req.discount_amount)

        transaction = self._charge(req.amount, req.payment_method_nonce)

        if coupon_fields[0]:
            self._count_coupon_use(coupon_fields[0])

        order = self._persist(req, items, ctx, transaction, coupon_fields)
        current_app.logger.info(
            "order %s placed user=%s total=%s tx=%s", order.id, ctx.user_id, req.amount,
            transaction.id if transaction else None)

        failed = decrement_stock_best_effort(items, order_id=order.id)

        try:
            self.notify(order)
        except Exception:
            current_app.logger.exception("Failed to send order confirmation email for order %s", order.id)

        return CheckoutResult(order_id=order.id, transaction=transaction, failed_stock_updates=failed)
