# storefront/catalogue/routes.py
from flask import request
from sqlalchemy import select

from ..extensions import db
from ..model import Catalogue, CatalogueProduct
from ..services.content_service import (
    catalogue_products, create_catalogue, find_catalogue, list_catalogues, update_catalogue,
)
from ..utils.api import ok, err
from ..utils.decorators import has_permission, permission_required, with_request_context
from . import bp


def _wants_all():
    return (request.args.get("all") or "").strip().lower() in {"1", "true", "yes"}


@bp.get("")
@with_request_context
def list_all(ctx):
    """Active catalogues by position; ``?all=1`` also lists hidden ones (catalogues.view)."""
    show_all = _wants_all()
    if show_all and not has_permission(ctx.user, "catalogues.view"):
        return err("Forbidden", 403)
    items = list_catalogues(active_only=not show_all)
    return ok("catalogues", {"catalogues": [c.as_api() for c in items]})


@bp.get("/<ref>")
@with_request_context
def get_catalogue(ref: str, ctx):
    staff = has_permission(ctx.user, "catalogues.view")
    c = find_catalogue(ref, active_only=not staff)
    if not c:
        return err("catalogue not found", 404)
    return ok("catalogue", {
        "catalogue": c.as_api(),
        "products": [p.as_api() for p in catalogue_products(c)],
    })


@bp.post("")
@permission_required("catalogues.create")
def create(ctx):
    c = create_catalogue(request.get_json(silent=True) or {})
    return ok("catalogue created", {"catalogue": c.as_api()}, status=201)


@bp.patch("/<int:cid>")
@permission_required("catalogues.edit")
def update(cid: int, ctx):
    c = db.session.get(Catalogue, cid)
    if not c:
        return err("catalogue not found", 404)
    changed = update_catalogue(c, request.get_json(silent=True) or {})
    return ok("catalogue updated", {"catalogue": c.as_api(), "changed": changed})


@bp.delete("/<int:cid>")
@permission_required("catalogues.delete")
def delete(cid: int, ctx):
    c = db.session.get(Catalogue, cid)
    if not c:
        return err("catalogue not found", 404)
    db.session.delete(c)
    db.session.commit()
    return ok("catalogue deleted")


@bp.get("/by-product/<int:pid>")
@permission_required("catalogues.view")
def for_product(pid: int, ctx):
    ids = sorted(db.session.execute(
        select(CatalogueProduct.catalogue_id).where(CatalogueProduct.product_id == pid)).scalars())
    return ok("product catalogues", {"catalogueIds": ids})
