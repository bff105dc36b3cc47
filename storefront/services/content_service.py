# storefront/services/content_service.py
"""Storefront content: catalogues (curated product groups) and banners."""
import re
import unicodedata

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..model import Banner, Catalogue, Product
from ..utils.patch import BannerPatch, CataloguePatch, UNSET, merge_patch


def slugify(text: str) -> str:
    text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _check_products(ids):
    if not ids:
        return
    found = set(db.session.execute(select(Product.id).where(Product.id.in_(ids))).scalars())
    missing = sorted(set(ids) - found)
    if missing:
        raise ValidationError("Unknown products: " + ", ".join(map(str, missing)), data={"unknown": missing})


def _commit_catalogue():
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Catalogue slug already exists", status_code=409)


# ---- catalogues -------------------------------------------------------------

def list_catalogues(active_only=True) -> list[Catalogue]:
    q = select(Catalogue)
    if active_only:
        q = q.where(Catalogue.is_active.is_(True))
    return list(db.session.execute(q.order_by(Catalogue.position, Catalogue.id)).scalars())


def find_catalogue(ref: str, active_only=True) -> Catalogue | None:
    """Look a catalogue up by slug, or by id when ``ref`` is numeric."""
    cond = Catalogue.slug == ref
    if ref.isdigit():
        cond = or_(cond, Catalogue.id == int(ref))
    q = select(Catalogue).where(cond)
    if active_only:
        q = q.where(Catalogue.is_active.is_(True))
    return db.session.execute(q.order_by(Catalogue.id)).scalars().first()


def catalogue_products(catalogue: Catalogue) -> list[Product]:
    ids = catalogue.product_ids
    if not ids:
        return []
    q = select(Product).where(Product.id.in_(ids), Product.is_active.is_(True)).order_by(Product.title)
    return list(db.session.execute(q).scalars())


def create_catalogue(data: dict) -> Catalogue:
    patch = CataloguePatch.from_payload(data)
    if patch.title is UNSET:
        raise ValidationError("Title is required")
    patch.slug = slugify(patch.title if patch.slug is UNSET else patch.slug)
    if not patch.slug:
        raise ValidationError("slug must contain letters or digits")
    if patch.is_active is UNSET:
        patch.is_active = True
    if patch.product_ids is not UNSET:
        _check_products(patch.product_ids)

    catalogue = Catalogue(position=0)
    merge_patch(catalogue, patch)
    db.session.add(catalogue)
    _commit_catalogue()
    return catalogue


def update_catalogue(catalogue: Catalogue, data: dict) -> list[str]:
    patch = CataloguePatch.from_payload(data)
    if patch.slug is not UNSET:
        patch.slug = slugify(patch.slug)
        if not patch.slug:
            raise ValidationError("slug must contain letters or digits")
    if patch.product_ids is not UNSET:
        _check_products(patch.product_ids)
    changed = merge_patch(catalogue, patch)
    _commit_catalogue()
    return changed


# ---- banners ----------------------------------------------------------------

def list_banners(active_only=True) -> list[Banner]:
    q = select(Banner)
    if active_only:
        q = q.where(Banner.is_active.is_(True))
    return list(db.session.execute(q.order_by(Banner.position, Banner.id)).scalars())


def create_banner(data: dict) -> Banner:
    patch = BannerPatch.from_payload(data)
    if patch.title is UNSET:
        raise ValidationError("Title is required")
    if patch.is_active is UNSET:
        patch.is_active = True
    banner = Banner(position=0)
    merge_patch(banner, patch)
    db.session.add(banner)
    db.session.commit()
    return banner


def update_banner(banner: Banner, data: dict) -> list[str]:
    changed = merge_patch(banner, BannerPatch.from_payload(data))
    db.session.commit()
    return changed
