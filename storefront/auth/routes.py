from flask import request
from flask_jwt_extended import create_access_token
from sqlalchemy import func, select
from werkzeug.security import generate_password_hash, check_password_hash

from . import bp
from ..extensions import db
from ..model import User
from ..model.user import ROLE_LEVEL
from ..services.account_service import (
    find_user, issue_email_otp, request_password_reset, reset_password, verify_email_otp,
)
from ..utils.api import ok, err
from ..utils.decorators import login_required, permission_required, role_at_least, with_request_context


@bp.post("/register")
@with_request_context   # public signups; a requested role is honored only for admins
def register(ctx):
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    name = (data.get("name") or "").strip()

    if not email:
        return err("Email required", 400)
    if not password or len(password) < 6:
        return err("Password required, min 6 chars", 400)
    if not name:
        return err("Name required", 400)
    if db.session.execute(select(User.id).where(User.email == email)).first():
        return err("Email already registered", 409)

    # Bootstrap: very first account becomes admin
    is_first_user = db.session.execute(select(func.count(User.id))).scalar_one() == 0
    role = "admin" if is_first_user else "user"

    requested_role = (data.get("role") or "user").strip().lower()
    if not is_first_user and ctx.user and ctx.user.is_admin and requested_role in ROLE_LEVEL:
        role = requested_role

    user = User(email=email, password_hash=generate_password_hash(password), name=name, role=role)
    db.session.add(user)
    db.session.commit()
    issue_email_otp(user)

    return ok("Account created successfully", {"user": user.as_dict()}, status=201)


@bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return err("Email and password are required", 400)

    user = db.session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not check_password_hash(user.password_hash, password):
        return err("Invalid email or password", 401)

    return ok("You've logged in successfully", {
        "user": user.as_dict(),
        "token": create_access_token(identity=str(user.id)),
    })


@bp.get("/me")
@login_required
def me(ctx):
    return ok("me", {"user": ctx.user.as_dict(), "permissions": sorted(ctx.user.permission_keys)})


@bp.patch("/users/<int:user_id>/role")
@role_at_least("admin")
def set_role(user_id: int, ctx):
    target = db.session.get(User, user_id)
    if not target:
        return err("user not found", 404)
    role = ((request.get_json(silent=True) or {}).get("role") or "").strip().lower()
    if role not in ROLE_LEVEL:
        return err("role must be one of: " + ", ".join(ROLE_LEVEL), 400)
    if target.id == ctx.user_id and role != "admin":
        return err("You cannot demote yourself", 400)
    target.role = role
    db.session.commit()
    return ok("role updated", {"user": target.as_dict()})


@bp.get("/users")
@permission_required("users.view")
def list_users(ctx):
    page = max(request.args.get("page", default=1, type=int), 1)
    per_page = min(max(request.args.get("per_page", default=20, type=int), 1), 100)
    items = db.paginate(select(User).order_by(User.id.desc()), page=page, per_page=per_page, error_out=False)
    return ok("users", {
        "meta": {"page": items.page, "pages": items.pages or 1, "per_page": per_page, "total": items.total},
        "users": [u.as_dict() for u in items.items],
    })


# ---- e-mail verification ----------------------------------------------------

@bp.post("/email-verification/resend-otp")
def resend_otp():
    user = find_user((request.get_json(silent=True) or {}).get("email"))
    if not user:
        return err("User not found", 404)
    issue_email_otp(user)
    return ok("Verification code sent")


@bp.post("/email-verification/verify-otp")
def verify_otp():
    data = request.get_json(silent=True) or {}
    email, otp = data.get("email"), data.get("otp")
    if not email or not otp:
        return err("Missing email or OTP", 400)
    user = find_user(email)
    if not user:
        return err("User not found", 404)
    verify_email_otp(user, otp)
    return ok("Email verified successfully", {"user": user.as_dict()})


# ---- password reset ---------------------------------------------------------

@bp.post("/password-reset/request")
def password_reset_request():
    email = (request.get_json(silent=True) or {}).get("email")
    if not email:
        return err("Email required", 400)
    request_password_reset(email)
    return ok("If that email is registered, a reset link has been sent")


@bp.post("/password-reset/confirm")
def password_reset_confirm():
    data = request.get_json(silent=True) or {}
    reset_password(data.get("token"), data.get("password"))
    return ok("Password has been reset")
