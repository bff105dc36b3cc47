from datetime import timedelta
from decimal import Decimal

import pytest
from hypothesis import settings
from flask_jwt_extended import create_access_token
from sqlalchemy import select
from werkzeug.security import generate_password_hash

from storefront import create_app
from storefront.config import TestingConfig
from storefront.errors import PaymentError
from storefront.extensions import db, payments, mailer
from storefront.model import Coupon, Product, Role, User
from storefront.services.payment_service import Transaction
from storefront.utils.dates import utcnow

settings.register_profile("storefront", deadline=None, max_examples=50)
settings.load_profile("storefront")


class FakeGateway:
    """Stands in for the Braintree adapter: records sales, can decline."""

    def __init__(self):
        self.calls = []
        self.decline = None
        self.side_effect = None

    def sale(self, amount, payment_method_nonce):
        self.calls.append((amount, payment_method_nonce))
        if self.side_effect:
            self.side_effect()
        if self.decline:
            raise PaymentError(self.decline, data={"errors": [{"code": "2000", "message": self.decline}]})
        return Transaction(id=f"tx-{len(self.calls)}", amount=str(amount), status="settled")

    def client_token(self):
        return "fake-client-token"


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gateway(monkeypatch):
    fake = FakeGateway()
    monkeypatch.setattr(payments, "sale", fake.sale)
    monkeypatch.setattr(payments, "client_token", fake.client_token)
    return fake


@pytest.fixture
def sent_emails(app, monkeypatch):
    sent = []

    def capture(to, subject, html, text):
        sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return True

    monkeypatch.setattr(mailer, "dispatch", capture)
    return sent


@pytest.fixture
def make_product(app):
    def _make(title="Notebook", price="10.00", stock=10, active=True):
        p = Product(title=title, price=Decimal(price), stock_quantity=stock, is_active=active)
        db.session.add(p)
        db.session.commit()
        return p
    return _make


@pytest.fixture
def make_coupon(app):
    def _make(code="SAVE10", **kw):
        now = utcnow()
        product_ids = kw.pop("product_ids", [])
        values = {
            "name": f"{code} promo",
            "discount_type": "percentage",
            "discount_value": Decimal("10"),
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=30),
            "is_active": True,
            "usage_count": 0,
        }
        for key in ("discount_value", "min_purchase_amount", "max_discount_amount"):
            if kw.get(key) is not None:
                kw[key] = Decimal(str(kw[key]))
        values.update(kw)
        c = Coupon(code=code, **values)
        c.product_ids = product_ids
        db.session.add(c)
        db.session.commit()
        return c
    return _make


@pytest.fixture
def make_user(app):
    def _make(email="shopper@example.com", role="user", password="secret123", roles=(), verified=False):
        u = User(email=email, name=email.split("@")[0], role=role,
                 password_hash=generate_password_hash(password),
                 email_verified_at=utcnow() if verified else None)
        if roles:
            u.roles = list(db.session.execute(select(Role).where(Role.name.in_(roles))).scalars())
        db.session.add(u)
        db.session.commit()
        return u
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(identity=str(user.id))}"}
    return _headers


def line(product, quantity=1, price=None):
    return {
        "productId": product.id,
        "title": product.title,
        "price": float(price if price is not None else product.price),
        "quantity": quantity,
    }


SHIPPING = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "address": "12 Analytical Way",
    "city": "London",
    "state": "LDN",
    "zip": "N1",
    "country": "GB",
}
