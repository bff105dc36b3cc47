# ------ storefront/model/__init__.py ------

from .role import Permission, Role
from .user import User
from .account import EmailVerificationToken, PasswordResetToken
from .product import Product
from .coupon import Coupon, CouponProduct
from .catalogue import Banner, Catalogue, CatalogueProduct
from .order import Order, OrderItem, ORDER_STATUSES

__all__ = [
    "Permission",
    "Role",
    "User",
    "EmailVerificationToken",
    "PasswordResetToken",
    "Product",
    "Coupon",
    "CouponProduct",
    "Banner",
    "Catalogue",
    "CatalogueProduct",
    "Order",
    "OrderItem",
    "ORDER_STATUSES",
]
