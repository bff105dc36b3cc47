from decimal import Decimal

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from conftest import FakeGateway, SHIPPING, line
from storefront.errors import PaymentError, StockError, ValidationError
from storefront.extensions import db
from storefront.model import Coupon, Order, Product
from storefront.services import checkout_service
from storefront.services.checkout_service import CheckoutReconciler, CheckoutRequest
from storefront.utils.decorators import RequestContext


def order_count():
    return db.session.execute(select(func.count(Order.id))).scalar_one()


def stock_of(product_id):
    return db.session.execute(
        select(Product.stock_quantity).where(Product.id == product_id)
    ).scalar_one()


def request_for(items, amount, **extra):
    payload = {"items": items, "shippingInfo": SHIPPING, "amount": amount,
               "paymentMethodNonce": "fake-valid-nonce"}
    payload.update(extra)
    return CheckoutRequest.from_payload(payload)


@pytest.fixture
def notified():
    return []


@pytest.fixture
def reconciler(app, notified):
    return CheckoutReconciler(FakeGateway(), notify=notified.append)


def test_paid_checkout_charges_persists_and_decrements(reconciler, notified, make_product):
    p = make_product("Pen", "4.50", stock=5)
    result = reconciler.checkout(request_for([line(p, 2)], 9.00))

    assert reconciler.gateway.calls == [(Decimal("9.00"), "fake-valid-nonce")]
    order = db.session.get(Order, result.order_id)
    assert order.status == "paid"
    assert order.transaction_id == "tx-1"
    assert order.total_amount == Decimal("9.00")
    assert order.user_id is None
    assert [(i.product_id, i.product_title, i.product_price, i.quantity) for i in order.items] == \
        [(p.id, "Pen", Decimal("4.50"), 2)]
    assert stock_of(p.id) == 3
    assert result.failed_stock_updates == []
    assert [o.id for o in notified] == [order.id]
    assert result.as_api() == {
        "success": True,
        "orderId": order.id,
        "transaction": {"id": "tx-1", "amount": "9.00", "status": "settled"},
    }


def test_logged_in_checkout_records_user(reconciler, make_product, make_user):
    user = make_user()
    p = make_product()
    result = reconciler.checkout(request_for([line(p)], 10), RequestContext(user=user))
    assert db.session.get(Order, result.order_id).user_id == user.id


def test_stock_shortfall_rejects_before_anything_is_written(reconciler, make_product):
    p = make_product("Mug", "8.00", stock=2)
    with pytest.raises(StockError) as exc:
        reconciler.checkout(request_for([line(p, 3)], 24))

    assert exc.value.stock_errors == [{
        "productId": p.id,
        "title": "Mug",
        "available": 2,
        "requested": 3,
        "message": '"Mug": Only 2 available, but 3 requested',
    }]
    assert reconciler.gateway.calls == []
    assert order_count() == 0
    assert stock_of(p.id) == 2


def test_stock_errors_are_collected_for_every_line(reconciler, make_product):
    empty = make_product("Empty", stock=0)
    short = make_product("Short", stock=1)
    retired = make_product("Retired", active=False)
    items = [line(empty), line(short, 4), line(retired),
             {"productId": 999, "title": "Ghost", "price": 1, "quantity": 1}]
    with pytest.raises(StockError) as exc:
        reconciler.checkout(request_for(items, 0))

    assert [e["message"] for e in exc.value.stock_errors] == [
        '"Empty" is out of stock',
        '"Short": Only 1 available, but 4 requested',
        'Product "Retired" no longer exists',
        'Product "Ghost" no longer exists',
    ]


def test_split_lines_of_one_product_are_checked_together(reconciler, make_product):
    p = make_product("Pen", "5.00", stock=3)
    with pytest.raises(StockError) as exc:
        reconciler.checkout(request_for([line(p, 2), line(p, 2)], 20))

    assert exc.value.stock_errors == [{
        "productId": p.id,
        "title": "Pen",
        "available": 3,
        "requested": 4,
        "message": '"Pen": Only 3 available, but 4 requested',
    }]
    assert reconciler.gateway.calls == []
    assert order_count() == 0
    assert stock_of(p.id) == 3


def test_split_lines_within_stock_are_decremented_once(reconciler, make_product):
    p = make_product("Pen", "5.00", stock=4)
    result = reconciler.checkout(request_for([line(p, 1), line(p, 3)], 20))
    assert result.failed_stock_updates == []
    assert stock_of(p.id) == 0
    assert [i.quantity for i in db.session.get(Order, result.order_id).items] == [1, 3]


def test_unlimited_stock_is_never_decremented(reconciler, make_product):
    card = make_product("Gift Card", "25.00", stock=None)
    reconciler.checkout(request_for([line(card, 40)], 1000))
    assert stock_of(card.id) is None


def test_catalog_price_wins_over_client_price(reconciler, make_product):
    p = make_product("Lamp", "30.00")
    with pytest.raises(ValidationError) as exc:
        reconciler.checkout(request_for([line(p, 1, price=1)], 1))
    assert exc.value.message == "Order amount does not match cart total"
    assert exc.value.data["expectedAmount"] == 30.0
    assert reconciler.gateway.calls == []
    assert order_count() == 0


def test_free_order_skips_gateway(reconciler, make_product, make_coupon):
    p = make_product("Sticker", "5.00", stock=3)
    c = make_coupon("FREEBIE", discount_type="fixed", discount_value=50)
    result = reconciler.checkout(request_for([line(p)], 0, couponCode="FREEBIE", paymentMethodNonce=None))

    assert reconciler.gateway.calls == []
    assert result.transaction is None
    order = db.session.get(Order, result.order_id)
    assert order.status == "paid"
    assert order.transaction_id is None
    assert order.coupon_id == c.id
    assert order.discount_amount == Decimal("5.00")
    assert db.session.get(Coupon, c.id).usage_count == 1
    assert stock_of(p.id) == 2


def test_paid_order_without_nonce_is_rejected(reconciler, make_product):
    p = make_product()
    with pytest.raises(PaymentError) as exc:
        reconciler.checkout(request_for([line(p)], 10, paymentMethodNonce=""))
    assert exc.value.message == "Payment method required for paid orders"
    assert order_count() == 0


def test_declined_payment_leaves_no_trace(reconciler, make_product, make_coupon):
    p = make_product(stock=4)
    c = make_coupon("SAVE10")
    reconciler.gateway.decline = "Processor Declined"
    with pytest.raises(PaymentError):
        reconciler.checkout(request_for([line(p, 2)], 18, couponCode="SAVE10"))

    assert order_count() == 0
    assert stock_of(p.id) == 4
    assert db.session.get(Coupon, c.id).usage_count == 0


def test_coupon_must_still_be_valid_at_checkout(reconciler, make_product, make_coupon):
    p = make_product()
    make_coupon("ONCE", usage_limit=1, usage_count=1)
    with pytest.raises(ValidationError) as exc:
        reconciler.checkout(request_for([line(p)], 9, couponCode="ONCE"))
    assert exc.value.message == "Coupon usage limit reached"
    assert reconciler.gateway.calls == []


def test_coupon_id_alone_is_resolved(reconciler, make_product, make_coupon):
    p = make_product("Bag", "20.00")
    c = make_coupon("SAVE10")
    result = reconciler.checkout(request_for([line(p)], 18, couponId=c.id))
    assert db.session.get(Order, result.order_id).coupon_code == "SAVE10"


def test_mismatched_coupon_id_is_rejected(reconciler, make_product, make_coupon):
    p = make_product("Bag", "20.00")
    make_coupon("SAVE10")
    other = make_coupon("OTHER")
    with pytest.raises(ValidationError):
        reconciler.checkout(request_for([line(p)], 18, couponCode="SAVE10", couponId=other.id))


def test_trusting_mode_uses_client_figures(app, make_product):
    p = make_product("Lamp", "30.00")
    gateway = FakeGateway()
    reconciler = CheckoutReconciler(gateway, verify_amount=False, notify=lambda order: None)
    result = reconciler.checkout(request_for(
        [line(p)], 12.5, couponId=77, couponCode="CLIENT", discountAmount=17.5))

    assert gateway.calls == [(Decimal("12.50"), "fake-valid-nonce")]
    order = db.session.get(Order, result.order_id)
    assert order.total_amount == Decimal("12.50")
    assert order.coupon_code == "CLIENT"
    assert order.discount_amount == Decimal("17.50")
    # stored lines still carry catalog prices
    assert order.items[0].product_price == Decimal("30.00")


def test_coupon_usage_failure_does_not_fail_checkout(reconciler, make_product, make_coupon, monkeypatch):
    p = make_product("Bag", "20.00")
    make_coupon("SAVE10")

    def broken(coupon_id):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(checkout_service, "apply_coupon", broken)
    result = reconciler.checkout(request_for([line(p)], 18, couponCode="SAVE10"))
    assert db.session.get(Order, result.order_id).status == "paid"


def test_losing_the_race_for_the_last_unit_keeps_stock_non_negative(reconciler, make_product):
    p = make_product("Last One", "10.00", stock=1)

    def someone_else_buys_it():
        db.session.execute(update(Product).where(Product.id == p.id).values(stock_quantity=0))
        db.session.commit()

    reconciler.gateway.side_effect = someone_else_buys_it
    result = reconciler.checkout(request_for([line(p)], 10))

    assert db.session.get(Order, result.order_id) is not None
    assert result.failed_stock_updates == [p.id]
    assert stock_of(p.id) == 0


def test_second_buyer_of_last_unit_is_turned_away(reconciler, make_product):
    p = make_product("Last One", "10.00", stock=1)
    reconciler.checkout(request_for([line(p)], 10))
    with pytest.raises(StockError):
        reconciler.checkout(request_for([line(p)], 10))
    assert stock_of(p.id) == 0
    assert order_count() == 1


def test_notification_failure_is_swallowed(app, make_product):
    p = make_product()

    def explode(order):
        raise RuntimeError("mail server on fire")

    result = CheckoutReconciler(FakeGateway(), notify=explode).checkout(request_for([line(p)], 10))
    assert db.session.get(Order, result.order_id).status == "paid"


def test_order_lines_survive_catalog_changes(reconciler, make_product):
    p = make_product("Lamp", "30.00")
    result = reconciler.checkout(request_for([line(p)], 30))
    p.price = Decimal("99.00")
    p.title = "Lamp v2"
    db.session.commit()

    item = db.session.get(Order, result.order_id).items[0]
    assert (item.product_title, item.product_price) == ("Lamp", Decimal("30.00"))


@pytest.mark.parametrize("payload, message", [
    ({}, "Missing required fields"),
    ({"items": [], "shippingInfo": SHIPPING}, "Missing required fields"),
    ({"items": [{"productId": 1, "quantity": 0}], "shippingInfo": SHIPPING}, "items[0].quantity must be >= 1"),
    ({"items": [{"productId": 1, "quantity": 1}], "shippingInfo": {"name": "A"}}, "Missing shipping fields"),
    ({"items": [{"productId": 1, "quantity": 1}], "shippingInfo": {"name": "A", "email": "nope"}},
     "Invalid email address"),
    ({"items": [{"productId": 1, "quantity": 1}], "shippingInfo": SHIPPING, "amount": -1},
     "amount must be a non-negative number"),
])
def test_request_validation(app, payload, message):
    with pytest.raises(ValidationError) as exc:
        CheckoutRequest.from_payload(payload)
    assert exc.value.message == message


def test_request_defaults(app):
    req = CheckoutRequest.from_payload({
        "items": [{"product_id": "3", "quantity": "2", "price": "abc"}],
        "shippingInfo": {"name": "A", "email": "a@b.c"},
    })
    assert req.amount == Decimal("0.00")
    assert req.shipping.country == "US"
    item = req.items[0]
    assert (item.product_id, item.quantity, item.price, item.title) == (3, 2, Decimal(0), "Product 3")
