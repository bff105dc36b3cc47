from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import isoformat
from ..utils.money import money_float

ORDER_STATUSES = ("pending", "paid", "shipped", "delivered", "cancelled")


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)  # NULL = guest
    status = db.Column(db.String(20), nullable=False, default="paid", index=True)

    # Shipping snapshot
    email = db.Column(db.String(255), nullable=False, index=True)
    shipping_name = db.Column(db.String(180))
    shipping_address = db.Column(db.String(255))
    shipping_city = db.Column(db.String(120))
    shipping_state = db.Column(db.String(120))
    shipping_zip = db.Column(db.String(32))
    shipping_country = db.Column(db.String(64), default="US")

    # Money snapshot
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    transaction_id = db.Column(db.String(64), nullable=True, index=True)  # paid, non-free orders only

    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True, index=True)
    coupon_code = db.Column(db.String(64))
    discount_amount = db.Column(db.Numeric(12, 2))

    created_at = db.Column(db.DateTime, server_default=func.now(), index=True)
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id.asc()",
    )

    def as_api(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "shipping": {
                "name": self.shipping_name,
                "email": self.email,
                "address": self.shipping_address,
                "city": self.shipping_city,
                "state": self.shipping_state,
                "zip": self.shipping_zip,
                "country": self.shipping_country,
            },
            "total_amount": money_float(self.total_amount),
            "transaction_id": self.transaction_id,
            "coupon": {
                "id": self.coupon_id,
                "code": self.coupon_code,
                "discount_amount": money_float(self.discount_amount),
            } if self.coupon_code or self.coupon_id else None,
            "items": [i.as_api() for i in self.items],
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # snapshot at purchase time; not a FK so later product edits/deletes leave it intact
    product_id = db.Column(db.Integer, index=True)
    product_title = db.Column(db.String(255), nullable=False)
    product_price = db.Column(db.Numeric(12, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    def as_api(self):
        return {
            "product_id": self.product_id,
            "title": self.product_title,
            "price": money_float(self.product_price),
            "quantity": self.quantity,
            "line_total": money_float(self.product_price * self.quantity),
        }
