# --- storefront/model/coupon.py ---

from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import isoformat
from ..utils.money import money_float


class Coupon(db.Model):
    __tablename__ = "coupons"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)  # exact, case-sensitive
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text)

    # "percentage" or "fixed"
    discount_type = db.Column(db.String(16), nullable=False, default="percentage")
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Optional constraints
    min_purchase_amount = db.Column(db.Numeric(12, 2), nullable=True)  # subtotal must be >= this
    max_discount_amount = db.Column(db.Numeric(12, 2), nullable=True)  # cap on the computed discount
    usage_limit = db.Column(db.Integer, nullable=True)                 # global usage cap
    user_usage_limit = db.Column(db.Integer, nullable=True)            # per-user cap
    usage_count = db.Column(db.Integer, nullable=False, default=0)

    valid_from = db.Column(db.DateTime, nullable=False)
    valid_until = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    # empty = every product is eligible
    product_links = db.relationship(
        "CouponProduct",
        back_populates="coupon",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def product_ids(self) -> list[int]:
        return sorted(link.product_id for link in self.product_links)

    @product_ids.setter
    def product_ids(self, ids):
        self.product_links = [CouponProduct(product_id=pid) for pid in sorted(set(ids or []))]

    def public_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "discountType": self.discount_type,
            "discountValue": money_float(self.discount_value),
        }

    def as_api(self):
        return {
            **self.public_api(),
            "description": self.description,
            "minPurchaseAmount": money_float(self.min_purchase_amount),
            "maxDiscountAmount": money_float(self.max_discount_amount),
            "usageLimit": self.usage_limit,
            "userUsageLimit": self.user_usage_limit,
            "usageCount": self.usage_count,
            "validFrom": isoformat(self.valid_from),
            "validUntil": isoformat(self.valid_until),
            "isActive": self.is_active,
            "productIds": self.product_ids,
        }


class CouponProduct(db.Model):
    __tablename__ = "coupon_products"

    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id", ondelete="CASCADE"), primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)

    coupon = db.relationship("Coupon", back_populates="product_links")
