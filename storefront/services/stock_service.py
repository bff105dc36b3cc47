# storefront/services/stock_service.py
from __future__ import annotations

from dataclasses import replace

from flask import current_app
from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import StockError
from ..extensions import db
from ..model import Product
from .coupon_service import LineItem


def load_products(product_ids) -> dict[int, Product]:
    ids = {pid for pid in product_ids if pid is not None}
    if not ids:
        return {}
    rows = db.session.execute(select(Product).where(Product.id.in_(ids))).scalars()
    return {p.id: p for p in rows}


def _stock_error(item, message, available=None):
    return {
        "productId": item.product_id,
        "title": item.title,
        "available": available,
        "requested": item.quantity,
        "message": message,
    }


def requested_quantities(items) -> dict[int, LineItem]:
    """Merge lines of the same product; the first line's title is kept."""
    merged = {}
    for item in items:
        if item.product_id is None:
            continue
        seen = merged.get(item.product_id)
        merged[item.product_id] = item if seen is None else replace(seen, quantity=seen.quantity + item.quantity)
    return merged


def check_stock(items) -> dict[int, Product]:
    """Validate the cart against live stock; raise one StockError listing all shortfalls.

    Quantities are summed per product first, so a product split across
    several lines is checked against its total.
    """
    wanted = requested_quantities(items)
    products = load_products(wanted)
    errors = []
    for pid, item in wanted.items():
        product = products.get(pid)
        if product is None or product.is_active is False:
            errors.append(_stock_error(item, f'Product "{item.title}" no longer exists', available=0))
            continue
        stock = product.stock_quantity
        if stock is None:
            continue
        if stock == 0:
            errors.append(_stock_error(item, f'"{product.title}" is out of stock', available=0))
        elif stock < item.quantity:
            errors.append(_stock_error(
                item,
                f'"{product.title}": Only {stock} available, but {item.quantity} requested',
                available=stock,
            ))
    if errors:
        raise StockError(errors)
    return products


def decrement_stock(product_id: int, quantity: int) -> bool:
    """Atomically take ``quantity`` units; False when the row is gone or short.

    A single conditional UPDATE, so two buyers racing for the last unit can
    never drive stock below zero.
    """
    result = db.session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            or_(Product.stock_quantity.is_(None), Product.stock_quantity >= quantity),
        )
        .values(stock_quantity=Product.stock_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount == 1


def decrement_stock_best_effort(items, order_id=None) -> list[int]:
    """Decrement each product independently; returns the product ids that failed."""
    failed = []
    for item in requested_quantities(items).values():
        try:
            ok = decrement_stock(item.product_id, item.quantity)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(
                "Failed to update stock for product %s (order %s)", item.product_id, order_id)
            failed.append(item.product_id)
            continue
        if not ok:
            current_app.logger.warning(
                "Stock for product %s could not cover %s unit(s) of order %s; left unchanged",
                item.product_id, item.quantity, order_id)
            failed.append(item.product_id)
    return failed
