# storefront/banner/routes.py
from flask import request

from ..extensions import db
from ..model import Banner
from ..services.content_service import create_banner, list_banners, update_banner
from ..utils.api import ok, err
from ..utils.decorators import has_permission, permission_required, with_request_context
from . import bp


@bp.get("")
@with_request_context
def list_all(ctx):
    show_all = (request.args.get("all") or "").strip().lower() in {"1", "true", "yes"}
    if show_all and not has_permission(ctx.user, "banners.view"):
        return err("Forbidden", 403)
    return ok("banners", {"banners": [b.as_api() for b in list_banners(active_only=not show_all)]})


@bp.post("")
@permission_required("banners.create")
def create(ctx):
    b = create_banner(request.get_json(silent=True) or {})
    return ok("banner created", {"banner": b.as_api()}, status=201)


@bp.patch("/<int:bid>")
@permission_required("banners.edit")
def update(bid: int, ctx):
    b = db.session.get(Banner, bid)
    if not b:
        return err("banner not found", 404)
    changed = update_banner(b, request.get_json(silent=True) or {})
    return ok("banner updated", {"banner": b.as_api(), "changed": changed})


@bp.delete("/<int:bid>")
@permission_required("banners.delete")
def delete(bid: int, ctx):
    b = db.session.get(Banner, bid)
    if not b:
        return err("banner not found", 404)
    db.session.delete(b)
    db.session.commit()
    return ok("banner deleted")
