# storefront/services/email_service.py
from __future__ import annotations

import httpx
from flask import current_app

from ..tasks.email_tasks import send_order_confirmation_email
from ..utils.money import money_str

BREVO_URL = "https://api.brevo.com/v3/smtp/email"


class EmailDispatcher:
    """Transactional mail through the Brevo HTTP API.

    Sending is synchronous; callers queue it through the Celery tasks in
    ``storefront.tasks.email_tasks``. A failed send is logged and reported
    as False, never raised.
    """

    def __init__(self, app=None):
        self.app = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        app.extensions["mailer"] = self

    def is_configured(self) -> bool:
        cfg = self.app.config
        return bool(cfg.get("BREVO_API_KEY") and cfg.get("BREVO_SENDER_EMAIL"))

    def dispatch(self, to: str, subject: str, html: str, text: str) -> bool:
        if not self.is_configured():
            self.app.logger.warning("[email] Brevo is not configured. Skipping email: %s", subject)
            return False
        cfg = self.app.config
        try:
            resp = httpx.post(
                BREVO_URL,
                headers={"accept": "application/json", "api-key": cfg["BREVO_API_KEY"]},
                json={
                    "sender": {"email": cfg["BREVO_SENDER_EMAIL"], "name": cfg.get("BREVO_SENDER_NAME")},
                    "to": [{"email": to}],
                    "subject": subject,
                    "htmlContent": html,
                    "textContent": text,
                },
                timeout=10.0,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            self.app.logger.error("[email] Failed to send email subject=%r to=%r: %s", subject, to, e)
            return False
        return True


def _order_snapshot(order) -> dict:
    # JSON-safe: this is the task payload
    return {
        "id": order.id,
        "email": order.email,
        "name": order.shipping_name,
        "total": money_str(order.total_amount),
        "discount": money_str(order.discount_amount) if order.discount_amount is not None else None,
        "coupon_code": order.coupon_code,
        "items": [
            {"title": i.product_title, "quantity": i.quantity, "price": money_str(i.product_price)}
            for i in order.items
        ],
    }


def app_url(path: str) -> str | None:
    base = (current_app.config.get("APP_URL") or "").rstrip("/")
    return f"{base}{path}" if base else None


def send_order_confirmation(order) -> bool:
    return queue_email(send_order_confirmation_email, _order_snapshot(order),
                       app_url(f"/order-confirmation/{order.id}"))


def queue_email(task, *args) -> bool:
    """Hand a mail task to the broker; an unreachable broker is logged, not raised."""
    try:
        task.delay(*args)
    except Exception:
        current_app.logger.exception("[email] could not queue %s", task.name)
        return False
    return True
