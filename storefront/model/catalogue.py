# --- storefront/model/catalogue.py ---
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import isoformat


class Catalogue(db.Model):
    __tablename__ = "catalogues"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), unique=True, nullable=False, index=True)
    description = db.Column(db.Text)
    content = db.Column(db.Text)
    image_url = db.Column(db.String(1024))
    link_url = db.Column(db.String(1024))
    position = db.Column(db.Integer, nullable=False, default=0)  # ascending display order
    is_active = db.Column(db.Boolean, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    product_links = db.relationship(
        "CatalogueProduct",
        back_populates="catalogue",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def product_ids(self) -> list[int]:
        return sorted(link.product_id for link in self.product_links)

    @product_ids.setter
    def product_ids(self, ids):
        self.product_links = [CatalogueProduct(product_id=pid) for pid in sorted(set(ids or []))]

    def as_api(self):
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "content": self.content,
            "image_url": self.image_url,
            "link_url": self.link_url,
            "position": self.position,
            "is_active": self.is_active,
            "product_ids": self.product_ids,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class CatalogueProduct(db.Model):
    __tablename__ = "catalogue_products"

    catalogue_id = db.Column(db.Integer, db.ForeignKey("catalogues.id", ondelete="CASCADE"), primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)

    catalogue = db.relationship("Catalogue", back_populates="product_links")


class Banner(db.Model):
    __tablename__ = "banners"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    image_url = db.Column(db.String(1024))
    mobile_image_url = db.Column(db.String(1024))
    desktop_image_url = db.Column(db.String(1024))
    link_url = db.Column(db.String(1024))
    position = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "title": self.title,
            "image_url": self.image_url,
            "mobile_image_url": self.mobile_image_url,
            "desktop_image_url": self.desktop_image_url,
            "link_url": self.link_url,
            "position": self.position,
            "is_active": self.is_active,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
