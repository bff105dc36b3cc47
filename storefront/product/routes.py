from flask import request
from sqlalchemy import asc, desc, delete, or_, select

from ..errors import ValidationError
from ..extensions import db
from ..model import CatalogueProduct, CouponProduct, Product
from ..utils.api import ok, err
from ..utils.decorators import permission_required
from ..utils.money import parse_money
from ..utils.patch import ProductPatch, UNSET, merge_patch
from . import bp


# ---------- helpers ----------
def _parse_bool(v, default=False):
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def _sort_products(query, sort):
    sort = (sort or "").strip()
    mapping = {
        "id": asc(Product.id),       "-id": desc(Product.id),
        "title": asc(Product.title), "-title": desc(Product.title),
        "price": asc(Product.price), "-price": desc(Product.price),
        "stock": asc(Product.stock_quantity), "-stock": desc(Product.stock_quantity),
    }
    col = mapping.get(sort, desc(Product.id))  # default newest first (id desc)
    return query.order_by(col)


def _paginate(query, page, per_page):
    page = max(page or 1, 1)
    per_page = min(max(per_page or 15, 1), 100)
    items = db.paginate(query, page=page, per_page=per_page, error_out=False)
    return {
        "meta": {
            "page": items.page,
            "pages": items.pages or 1,
            "per_page": per_page,
            "total": items.total,
        },
        "items": [p.as_api() for p in items.items],
    }


# ---------- routes ----------
@bp.get("")
def list_products():
    """
    Query params:
      q          -> substring match on title
      min_price  -> number
      max_price  -> number
      in_stock   -> bool (True = unlimited or stock > 0)
      all        -> bool, include inactive products
      sort       -> id, -id, title, -title, price, -price, stock, -stock
      page       -> int, default 1
      per_page   -> int, default 15 (cap 100)
    """
    query = select(Product)

    if not _parse_bool(request.args.get("all")):
        query = query.where(Product.is_active.is_(True))

    q = (request.args.get("q") or "").strip()
    if q:
        query = query.where(Product.title.ilike(f"%{q}%"))

    min_price = parse_money(request.args.get("min_price"))
    max_price = parse_money(request.args.get("max_price"))
    if min_price is not None:
        query = query.where(Product.price >= min_price)
    if max_price is not None:
        query = query.where(Product.price <= max_price)

    if request.args.get("in_stock") is not None:
        in_stock = or_(Product.stock_quantity.is_(None), Product.stock_quantity > 0)
        query = query.where(in_stock if _parse_bool(request.args.get("in_stock")) else ~in_stock)

    query = _sort_products(query, request.args.get("sort"))
    page = request.args.get("page", default=1, type=int)
    per_page = request.args.get("per_page", default=15, type=int)
    return ok("products", _paginate(query, page, per_page))


@bp.get("/<int:pid>")
def get_product(pid: int):
    p = db.session.get(Product, pid)
    if not p:
        return err("product not found", 404)
    return ok("product", p.as_api())


@bp.post("")
@permission_required("products.create")
def create_product(ctx):
    data = request.get_json(silent=True) or {}
    patch = ProductPatch.from_payload(data)
    if patch.title is UNSET or patch.price is UNSET:
        raise ValidationError("title and price are required")
    p = Product(is_active=True)
    merge_patch(p, patch)
    db.session.add(p)
    db.session.commit()
    return ok("product created", p.as_api(), status=201)


@bp.patch("/<int:pid>")
@permission_required("products.edit")
def update_product(pid: int, ctx):
    p = db.session.get(Product, pid)
    if not p:
        return err("product not found", 404)
    changed = merge_patch(p, ProductPatch.from_payload(request.get_json(silent=True) or {}))
    db.session.commit()
    return ok("product updated", {"product": p.as_api(), "changed": changed})


@bp.delete("/<int:pid>")
@permission_required("products.delete")
def delete_product(pid: int, ctx):
    p = db.session.get(Product, pid)
    if not p:
        return err("product not found", 404)
    db.session.execute(delete(CouponProduct).where(CouponProduct.product_id == pid))
    db.session.execute(delete(CatalogueProduct).where(CatalogueProduct.product_id == pid))
    db.session.delete(p)
    db.session.commit()
    return ok("product deleted")
