import re
from datetime import timedelta

from sqlalchemy import select
from werkzeug.security import check_password_hash

from storefront.extensions import db
from storefront.model import EmailVerificationToken, PasswordResetToken
from storefront.services.account_service import MAX_OTP_ATTEMPTS, generate_otp
from storefront.utils.dates import utcnow


def _code(mail):
    return re.search(r"code: (\d{6})", mail["text"]).group(1)


def _latest_token(user):
    return db.session.execute(
        select(EmailVerificationToken).where(EmailVerificationToken.user_id == user.id)
        .order_by(EmailVerificationToken.id.desc())
    ).scalars().first()


def test_generate_otp_is_six_digits():
    for _ in range(50):
        assert re.fullmatch(r"\d{6}", generate_otp())


def test_register_mails_a_code_that_verifies(client, sent_emails):
    r = client.post("/auth/register", json={"email": "ada@example.com", "password": "secret123", "name": "Ada"})
    assert r.status_code == 201
    assert r.get_json()["data"]["user"]["email_verified"] is False

    assert sent_emails[0]["to"] == "ada@example.com"
    assert sent_emails[0]["subject"] == "Your verification code"

    r = client.post("/auth/email-verification/verify-otp", json={"email": "ada@example.com", "otp": _code(sent_emails[0])})
    assert r.status_code == 200
    assert r.get_json()["data"]["user"]["email_verified"] is True

    r = client.post("/auth/email-verification/verify-otp", json={"email": "ada@example.com", "otp": "000000"})
    assert r.status_code == 409


def test_resend_replaces_previous_code(client, make_user, sent_emails):
    user = make_user("ada@example.com")
    client.post("/auth/email-verification/resend-otp", json={"email": "ada@example.com"})
    client.post("/auth/email-verification/resend-otp", json={"email": "ada@example.com"})
    first, second = _code(sent_emails[0]), _code(sent_emails[1])

    if first != second:
        r = client.post("/auth/email-verification/verify-otp", json={"email": user.email, "otp": first})
        assert r.status_code == 400
    r = client.post("/auth/email-verification/verify-otp", json={"email": user.email, "otp": second})
    assert r.status_code == 200


def test_verify_input_errors(client, make_user, sent_emails):
    r = client.post("/auth/email-verification/verify-otp", json={"email": "ada@example.com"})
    assert r.get_json()["message"] == "Missing email or OTP"
    r = client.post("/auth/email-verification/resend-otp", json={"email": "ghost@example.com"})
    assert r.status_code == 404

    make_user("done@example.com", verified=True)
    r = client.post("/auth/email-verification/resend-otp", json={"email": "done@example.com"})
    assert r.status_code == 409
    assert sent_emails == []


def test_expired_code(client, make_user, sent_emails):
    user = make_user("ada@example.com")
    client.post("/auth/email-verification/resend-otp", json={"email": user.email})
    token = _latest_token(user)
    token.expires_at = utcnow() - timedelta(seconds=1)
    db.session.commit()

    r = client.post("/auth/email-verification/verify-otp", json={"email": user.email, "otp": token.otp})
    assert r.status_code == 400
    assert r.get_json()["message"] == "Verification code has expired. Please request a new one."


def test_too_many_attempts(client, make_user, sent_emails):
    user = make_user("ada@example.com")
    client.post("/auth/email-verification/resend-otp", json={"email": user.email})
    token = _latest_token(user)
    wrong = "999999" if token.otp != "999999" else "111111"

    for left in range(MAX_OTP_ATTEMPTS - 1, -1, -1):
        r = client.post("/auth/email-verification/verify-otp", json={"email": user.email, "otp": wrong})
        assert r.get_json()["data"]["attemptsLeft"] == left

    r = client.post("/auth/email-verification/verify-otp", json={"email": user.email, "otp": token.otp})
    assert r.status_code == 429


def test_password_reset_flow(client, make_user, sent_emails):
    user = make_user("ada@example.com")
    r = client.post("/auth/password-reset/request", json={"email": "ada@example.com"})
    assert r.status_code == 200

    link = re.search(r"Reset your password: (\S+)", sent_emails[0]["text"]).group(1)
    assert link.startswith("http://localhost:3000/reset-password?token=")
    raw = link.split("token=", 1)[1]
    stored = db.session.execute(select(PasswordResetToken)).scalar_one()
    assert stored.token_hash != raw

    r = client.post("/auth/password-reset/confirm", json={"token": raw, "password": "short"})
    assert r.status_code == 400

    r = client.post("/auth/password-reset/confirm", json={"token": raw, "password": "n3w-secret"})
    assert r.status_code == 200
    db.session.refresh(user)
    assert check_password_hash(user.password_hash, "n3w-secret")

    r = client.post("/auth/password-reset/confirm", json={"token": raw, "password": "again-secret"})
    assert r.get_json()["message"] == "Invalid or expired reset token"

    r = client.post("/auth/login", json={"email": "ada@example.com", "password": "n3w-secret"})
    assert r.status_code == 200


def test_reset_request_does_not_reveal_accounts(client, sent_emails):
    r = client.post("/auth/password-reset/request", json={"email": "ghost@example.com"})
    assert r.status_code == 200
    assert sent_emails == []
    assert db.session.execute(select(PasswordResetToken)).first() is None


def test_expired_reset_token(client, make_user, sent_emails):
    make_user("ada@example.com")
    client.post("/auth/password-reset/request", json={"email": "ada@example.com"})
    raw = sent_emails[0]["text"].split("token=", 1)[1].split()[0]
    token = db.session.execute(select(PasswordResetToken)).scalar_one()
    token.expires_at = utcnow() - timedelta(minutes=1)
    db.session.commit()

    r = client.post("/auth/password-reset/confirm", json={"token": raw, "password": "n3w-secret"})
    assert r.status_code == 400
