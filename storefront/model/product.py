# storefront/model/product.py
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import isoformat
from ..utils.money import money_float


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # NULL = unlimited; never negative otherwise
    stock_quantity = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    __table_args__ = (
        db.CheckConstraint(
            "stock_quantity IS NULL OR stock_quantity >= 0",
            name="ck_products_stock_non_negative",
        ),
    )

    @property
    def in_stock(self) -> bool:
        return self.stock_quantity is None or self.stock_quantity > 0

    def as_api(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "price": money_float(self.price),
            "stock_quantity": self.stock_quantity,
            "in_stock": self.in_stock,
            "is_active": self.is_active,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
