# storefront/role/routes.py
from flask import request
from sqlalchemy import select

from ..extensions import db
from ..model import Permission, Role, User
from ..services.role_service import assign_roles, create_role, update_role
from ..utils.api import ok, err
from ..utils.decorators import permission_required
from . import bp


@bp.get("")
@permission_required("roles.view")
def list_roles(ctx):
    roles = db.session.execute(select(Role).order_by(Role.name)).scalars().all()
    return ok("roles", {"roles": [r.as_api() for r in roles]})


@bp.get("/permissions")
@permission_required("roles.view")
def list_permissions(ctx):
    perms = db.session.execute(select(Permission).order_by(Permission.category, Permission.key)).scalars()
    grouped = {}
    for p in perms:
        grouped.setdefault(p.category, []).append(p.as_api())
    return ok("permissions", {"permissions": grouped})


@bp.post("")
@permission_required("roles.create")
def create(ctx):
    role = create_role(request.get_json(silent=True) or {})
    return ok("role created", {"role": role.as_api()}, status=201)


@bp.get("/<int:rid>")
@permission_required("roles.view")
def get_role(rid: int, ctx):
    role = db.session.get(Role, rid)
    if not role:
        return err("role not found", 404)
    return ok("role", {"role": role.as_api(with_users=True)})


@bp.patch("/<int:rid>")
@permission_required("roles.edit")
def update(rid: int, ctx):
    role = db.session.get(Role, rid)
    if not role:
        return err("role not found", 404)
    update_role(role, request.get_json(silent=True) or {})
    return ok("role updated", {"role": role.as_api()})


@bp.delete("/<int:rid>")
@permission_required("roles.delete")
def delete(rid: int, ctx):
    role = db.session.get(Role, rid)
    if not role:
        return err("role not found", 404)
    db.session.delete(role)
    db.session.commit()
    return ok("role deleted")


@bp.get("/users/<int:uid>")
@permission_required("roles.assign")
def user_roles(uid: int, ctx):
    user = db.session.get(User, uid)
    if not user:
        return err("user not found", 404)
    return ok("user roles", {
        "roles": [r.as_api() for r in user.roles],
        "permissions": sorted(user.permission_keys),
    })


@bp.put("/users/<int:uid>")
@permission_required("roles.assign")
def set_user_roles(uid: int, ctx):
    user = db.session.get(User, uid)
    if not user:
        return err("user not found", 404)
    roles = assign_roles(user, (request.get_json(silent=True) or {}).get("roleIds"))
    return ok("user roles updated", {
        "roles": [r.as_api() for r in roles],
        "permissions": sorted(user.permission_keys),
    })
