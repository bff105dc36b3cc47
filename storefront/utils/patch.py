# storefront/utils/patch.py
"""Explicit partial-update records.

A patch is a dataclass whose fields all default to ``UNSET``. A field that
is ``UNSET`` is left alone by :func:`merge_patch`; any other value, ``None``
included, is written to the entity.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime

from ..errors import ValidationError
from .money import parse_money
from .dates import parse_iso8601


class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "UNSET"

    def __bool__(self):
        return False


UNSET = _Unset()


def merge_patch(entity, patch) -> list[str]:
    """Copy every set field of ``patch`` onto ``entity``; return the names changed."""
    changed = []
    for f in fields(patch):
        value = getattr(patch, f.name)
        if value is UNSET:
            continue
        if getattr(entity, f.name, None) != value:
            setattr(entity, f.name, value)
            changed.append(f.name)
    return changed


# ---- field parsers ---------------------------------------------------------

def _opt_money(data, key):
    v = data.get(key)
    if v is None or v == "":
        return None
    m = parse_money(v)
    if m is None or m < 0:
        raise ValidationError(f"{key} must be a non-negative number")
    return m


def _opt_int(data, key):
    v = data.get(key)
    if v is None or v == "":
        return None
    try:
        n = int(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer")
    if n < 0:
        raise ValidationError(f"{key} must be >= 0")
    return n


def _datetime(data, key) -> datetime:
    dt = parse_iso8601(data.get(key))
    if dt is None:
        raise ValidationError(f"Invalid datetime format for {key}")
    return dt


def _int_list(data, key):
    v = data.get(key) or []
    if not isinstance(v, (list, tuple)):
        raise ValidationError(f"{key} must be a list")
    try:
        return sorted({int(x) for x in v})
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must contain product ids")


DISCOUNT_TYPES = ("percentage", "fixed")


@dataclass
class CouponPatch:
    code: str = UNSET
    name: str = UNSET
    description: str | None = UNSET
    discount_type: str = UNSET
    discount_value: object = UNSET
    min_purchase_amount: object = UNSET
    max_discount_amount: object = UNSET
    usage_limit: int | None = UNSET
    user_usage_limit: int | None = UNSET
    valid_from: datetime = UNSET
    valid_until: datetime = UNSET
    is_active: bool = UNSET
    product_ids: list[int] = UNSET

    @classmethod
    def from_payload(cls, data: dict) -> "CouponPatch":
        p = cls()
        if "code" in data:
            code = (data.get("code") or "").strip()
            if not code:
                raise ValidationError("code is required")
            p.code = code
        if "name" in data:
            name = (data.get("name") or "").strip()
            if not name:
                raise ValidationError("name is required")
            p.name = name
        if "description" in data:
            p.description = (data.get("description") or "").strip() or None
        if "discountType" in data:
            dtype = (data.get("discountType") or "").strip().lower()
            if dtype not in DISCOUNT_TYPES:
                raise ValidationError("discountType must be 'percentage' or 'fixed'")
            p.discount_type = dtype
        if "discountValue" in data:
            value = parse_money(data.get("discountValue"))
            if value is None or value <= 0:
                raise ValidationError("discountValue must be > 0")
            p.discount_value = value
        if "minPurchaseAmount" in data:
            p.min_purchase_amount = _opt_money(data, "minPurchaseAmount")
        if "maxDiscountAmount" in data:
            p.max_discount_amount = _opt_money(data, "maxDiscountAmount")
        if "usageLimit" in data:
            p.usage_limit = _opt_int(data, "usageLimit")
        if "userUsageLimit" in data:
            p.user_usage_limit = _opt_int(data, "userUsageLimit")
        if "validFrom" in data:
            p.valid_from = _datetime(data, "validFrom")
        if "validUntil" in data:
            p.valid_until = _datetime(data, "validUntil")
        if "isActive" in data:
            p.is_active = bool(data.get("isActive"))
        if "productIds" in data:
            p.product_ids = _int_list(data, "productIds")
        return p


@dataclass
class ProductPatch:
    title: str = UNSET
    description: str | None = UNSET
    price: object = UNSET
    stock_quantity: int | None = UNSET
    is_active: bool = UNSET

    @classmethod
    def from_payload(cls, data: dict) -> "ProductPatch":
        p = cls()
        if "title" in data:
            title = (data.get("title") or "").strip()
            if not title:
                raise ValidationError("title is required")
            p.title = title
        if "description" in data:
            p.description = (data.get("description") or "").strip() or None
        if "price" in data:
            price = parse_money(data.get("price"))
            if price is None or price < 0:
                raise ValidationError("price must be a non-negative number")
            p.price = price
        if "stockQuantity" in data:
            p.stock_quantity = _opt_int(data, "stockQuantity")
        if "isActive" in data:
            p.is_active = bool(data.get("isActive"))
        return p


def _opt_text(data, key):
    return (data.get(key) or "").strip() or None


def _position(data, key="position"):
    v = data.get(key)
    if v is None or v == "":
        return 0
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer")


@dataclass
class CataloguePatch:
    title: str = UNSET
    slug: str = UNSET
    description: str | None = UNSET
    content: str | None = UNSET
    image_url: str | None = UNSET
    link_url: str | None = UNSET
    position: int = UNSET
    is_active: bool = UNSET
    product_ids: list[int] = UNSET

    @classmethod
    def from_payload(cls, data: dict) -> "CataloguePatch":
        p = cls()
        if "title" in data:
            title = (data.get("title") or "").strip()
            if not title:
                raise ValidationError("Title is required")
            p.title = title
        if "slug" in data and (data.get("slug") or "").strip():
            p.slug = data["slug"].strip()  # normalized by the service
        for key, attr in (("description", "description"), ("content", "content"),
                          ("imageUrl", "image_url"), ("linkUrl", "link_url")):
            if key in data:
                setattr(p, attr, _opt_text(data, key))
        if "position" in data:
            p.position = _position(data)
        if "isActive" in data:
            p.is_active = bool(data.get("isActive"))
        if "productIds" in data:
            p.product_ids = _int_list(data, "productIds")
        return p


@dataclass
class BannerPatch:
    title: str = UNSET
    image_url: str | None = UNSET
    mobile_image_url: str | None = UNSET
    desktop_image_url: str | None = UNSET
    link_url: str | None = UNSET
    position: int = UNSET
    is_active: bool = UNSET

    @classmethod
    def from_payload(cls, data: dict) -> "BannerPatch":
        p = cls()
        if "title" in data:
            title = (data.get("title") or "").strip()
            if not title:
                raise ValidationError("Title is required")
            p.title = title
        for key, attr in (("imageUrl", "image_url"), ("mobileImageUrl", "mobile_image_url"),
                          ("desktopImageUrl", "desktop_image_url"), ("linkUrl", "link_url")):
            if key in data:
                setattr(p, attr, _opt_text(data, key))
        if "position" in data:
            p.position = _position(data)
        if "isActive" in data:
            p.is_active = bool(data.get("isActive"))
        return p
