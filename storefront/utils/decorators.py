# ------- storefront/utils/decorators.py -------
from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import jsonify
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..extensions import db
from ..utils.api import api_error
from ..model.user import User, ROLE_LEVEL


@dataclass(frozen=True)
class RequestContext:
    """Who is calling. Passed explicitly into services; ``user`` is None for guests."""

    user: User | None = None

    @property
    def user_id(self) -> int | None:
        return self.user.id if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


GUEST = RequestContext()


def _current_user(optional: bool = False) -> User | None:
    verify_jwt_in_request(optional=optional)
    uid = get_jwt_identity()
    try:
        uid = int(uid)
    except (TypeError, ValueError):
        uid = None
    return db.session.get(User, uid) if uid else None


def has_permission(user: User | None, permission: str) -> bool:
    if not user:
        return False
    if user.is_admin:
        return True
    return permission in user.permission_keys


def with_request_context(fn):
    """Resolve the optional bearer token and pass ``ctx=RequestContext(...)``."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        ctx = RequestContext(user=_current_user(optional=True))
        return fn(*args, ctx=ctx, **kwargs)
    return wrapper


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        u = _current_user()
        if not u:
            return jsonify(api_error("Unauthorized")), 401
        return fn(*args, ctx=RequestContext(user=u), **kwargs)
    return wrapper


def permission_required(permission: str, message: str | None = None):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            u = _current_user()
            if not u:
                return jsonify(api_error("Unauthorized")), 401
            if not has_permission(u, permission):
                return jsonify(api_error(message or "Forbidden")), 403
            return fn(*args, ctx=RequestContext(user=u), **kwargs)
        return wrapper
    return decorator


def role_at_least(min_role: str, message: str | None = None):  # admin > user
    min_level = ROLE_LEVEL[min_role]
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            u = _current_user()
            if not u:
                return jsonify(api_error("Unauthorized")), 401
            if ROLE_LEVEL.get(u.role, 0) < min_level:
                return jsonify(api_error(message or "Forbidden")), 403
            return fn(*args, ctx=RequestContext(user=u), **kwargs)
        return wrapper
    return decorator
