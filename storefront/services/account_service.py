# storefront/services/account_service.py
"""E-mail verification codes and password reset links."""
import hashlib
import hmac
import secrets
from datetime import timedelta

from flask import current_app
from sqlalchemy import select, update
from werkzeug.security import generate_password_hash

from ..errors import StorefrontError, ValidationError
from ..extensions import db
from ..model import EmailVerificationToken, PasswordResetToken, User
from ..tasks.email_tasks import send_password_reset_email, send_verification_otp_email
from ..utils.dates import utcnow
from .email_service import app_url, queue_email

MAX_OTP_ATTEMPTS = 5
MIN_PASSWORD_LENGTH = 6


def find_user(email: str) -> User | None:
    email = (email or "").strip().lower()
    if not email:
        return None
    return db.session.execute(select(User).where(User.email == email)).scalar_one_or_none()


def generate_otp() -> str:
    return f"{secrets.randbelow(10**6):06d}"


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


# ---- e-mail verification ----------------------------------------------------

def issue_email_otp(user: User) -> EmailVerificationToken:
    """Replace any outstanding code with a fresh one and mail it."""
    if user.email_verified:
        raise StorefrontError("Email is already verified", status_code=409)
    now = utcnow()
    ttl = current_app.config["EMAIL_VERIFICATION_OTP_TTL_MINUTES"]
    db.session.execute(
        update(EmailVerificationToken)
        .where(EmailVerificationToken.user_id == user.id, EmailVerificationToken.used_at.is_(None))
        .values(used_at=now)
    )
    token = EmailVerificationToken(user_id=user.id, otp=generate_otp(), attempts=0,
                                   expires_at=now + timedelta(minutes=ttl))
    db.session.add(token)
    db.session.commit()
    queue_email(send_verification_otp_email, user.email, user.name, token.otp, ttl)
    return token


def verify_email_otp(user: User, otp: str) -> User:
    if user.email_verified:
        raise StorefrontError("Email is already verified", status_code=409)
    token = db.session.execute(
        select(EmailVerificationToken)
        .where(EmailVerificationToken.user_id == user.id, EmailVerificationToken.used_at.is_(None))
        .order_by(EmailVerificationToken.id.desc())
    ).scalars().first()
    if token is None:
        raise ValidationError("Invalid verification code")

    now = utcnow()
    if token.expires_at <= now:
        raise ValidationError("Verification code has expired. Please request a new one.")
    if token.attempts >= MAX_OTP_ATTEMPTS:
        raise StorefrontError("Too many attempts. Please request a new code.", status_code=429)

    if not hmac.compare_digest(token.otp.encode(), str(otp or "").strip().encode()):
        token.attempts += 1
        db.session.commit()
        raise ValidationError("Invalid verification code",
                              data={"attemptsLeft": max(MAX_OTP_ATTEMPTS - token.attempts, 0)})

    token.used_at = now
    user.email_verified_at = now
    db.session.commit()
    current_app.logger.info("email verified for user %s", user.id)
    return user


# ---- password reset ---------------------------------------------------------

def request_password_reset(email: str) -> None:
    """Mail a reset link when the account exists. Callers answer the same either way."""
    user = find_user(email)
    if user is None:
        current_app.logger.info("password reset requested for unknown email")
        return
    now = utcnow()
    ttl = current_app.config["PASSWORD_RESET_TOKEN_TTL_MINUTES"]
    db.session.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.user_id == user.id, PasswordResetToken.used_at.is_(None))
        .values(used_at=now)
    )
    raw = secrets.token_urlsafe(32)
    db.session.add(PasswordResetToken(user_id=user.id, token_hash=_hash_token(raw),
                                      expires_at=now + timedelta(minutes=ttl)))
    db.session.commit()
    link = app_url(f"/reset-password?token={raw}") or raw
    queue_email(send_password_reset_email, user.email, user.name, link, ttl)


def reset_password(raw_token: str, password: str) -> User:
    if not raw_token:
        raise ValidationError("Invalid or expired reset token")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password required, min {MIN_PASSWORD_LENGTH} chars")
    now = utcnow()
    token = db.session.execute(
        select(PasswordResetToken).where(PasswordResetToken.token_hash == _hash_token(str(raw_token)))
    ).scalar_one_or_none()
    if token is None or token.used_at is not None or token.expires_at <= now:
        raise ValidationError("Invalid or expired reset token")

    user = db.session.get(User, token.user_id)
    user.password_hash = generate_password_hash(password)
    token.used_at = now
    db.session.commit()
    current_app.logger.info("password reset for user %s", user.id)
    return user
