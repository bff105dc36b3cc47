# storefront/services/role_service.py
from flask import current_app
from sqlalchemy import select

from ..errors import ValidationError
from ..extensions import db
from ..model import Permission, Role
from ..model.role import DEFAULT_ROLES, PERMISSIONS


def sync_permissions() -> int:
    """Upsert the permission catalogue and create missing default roles.

    Returns the number of permissions created.
    """
    existing = {p.key: p for p in db.session.execute(select(Permission)).scalars()}
    created = 0
    for key, (name, category) in PERMISSIONS.items():
        p = existing.get(key)
        if p is None:
            p = existing[key] = Permission(key=key, name=name, category=category)
            db.session.add(p)
            created += 1
        else:
            p.name, p.category = name, category

    for role_name, (description, keys) in DEFAULT_ROLES.items():
        if db.session.execute(select(Role.id).where(Role.name == role_name)).first():
            continue
        db.session.add(Role(name=role_name, description=description,
                            permissions=[existing[k] for k in sorted(keys)]))
    db.session.commit()
    if created:
        current_app.logger.info("synced %s new permissions", created)
    return created


def _permissions_for(keys) -> list[Permission]:
    if not isinstance(keys, (list, tuple)):
        raise ValidationError("permissions must be a list")
    keys = sorted({str(k) for k in keys})
    found = db.session.execute(select(Permission).where(Permission.key.in_(keys))).scalars().all() if keys else []
    missing = sorted(set(keys) - {p.key for p in found})
    if missing:
        raise ValidationError("Unknown permissions: " + ", ".join(missing), data={"unknown": missing})
    return found


def _role_name(data) -> str:
    name = (data.get("name") or "").strip().lower()
    if not name:
        raise ValidationError("Role name is required")
    if name == "admin":
        raise ValidationError("'admin' is reserved for the account level")
    return name


def _ensure_unique(name, role_id=None):
    q = select(Role.id).where(Role.name == name)
    if role_id is not None:
        q = q.where(Role.id != role_id)
    if db.session.execute(q).first():
        raise ValidationError("Role name already exists", status_code=409)


def create_role(data: dict) -> Role:
    name = _role_name(data)
    _ensure_unique(name)
    role = Role(
        name=name,
        description=(data.get("description") or "").strip() or None,
        permissions=_permissions_for(data.get("permissions") or []),
    )
    db.session.add(role)
    db.session.commit()
    return role


def update_role(role: Role, data: dict) -> Role:
    if "name" in data:
        name = _role_name(data)
        _ensure_unique(name, role.id)
        role.name = name
    if "description" in data:
        role.description = (data.get("description") or "").strip() or None
    if "permissions" in data:
        role.permissions = _permissions_for(data.get("permissions") or [])
    db.session.commit()
    return role


def assign_roles(user, role_ids) -> list[Role]:
    """Replace the user's roles with exactly ``role_ids``."""
    if not isinstance(role_ids, (list, tuple)):
        raise ValidationError("roleIds must be a list")
    try:
        ids = sorted({int(x) for x in role_ids})
    except (TypeError, ValueError):
        raise ValidationError("roleIds must contain role ids")
    roles = db.session.execute(select(Role).where(Role.id.in_(ids))).scalars().all() if ids else []
    missing = sorted(set(ids) - {r.id for r in roles})
    if missing:
        raise ValidationError("Unknown roles: " + ", ".join(map(str, missing)), data={"unknown": missing})
    user.roles = list(roles)
    db.session.commit()
    return user.roles
