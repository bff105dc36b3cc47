# storefront/tasks/email_tasks.py
"""Celery tasks that render and send transactional e-mail.

Arguments are plain JSON data; the caller snapshots whatever the template
needs so a task never has to go back to the database.
"""
from celery import shared_task
from flask import current_app, render_template


def _send(to: str, subject: str, template: str, **context) -> bool:
    html = render_template(f"email/{template}.html", **context)
    text = render_template(f"email/{template}.txt", **context)
    sent = current_app.extensions["mailer"].dispatch(to, subject, html, text)
    if sent:
        current_app.logger.info("[email] %s sent to %s", template, to)
    return sent


@shared_task(ignore_result=True)
def send_order_confirmation_email(order: dict, order_url: str | None = None):
    _send(order["email"], f"Order confirmation · {order['id']}", "order_confirmation",
          order=order, order_url=order_url)


@shared_task(ignore_result=True)
def send_verification_otp_email(email: str, name: str | None, otp: str, ttl_minutes: int):
    _send(email, "Your verification code", "verification_otp",
          name=name, otp=otp, ttl_minutes=ttl_minutes)


@shared_task(ignore_result=True)
def send_password_reset_email(email: str, name: str | None, reset_url: str, ttl_minutes: int):
    _send(email, "Reset your password", "password_reset",
          name=name, reset_url=reset_url, ttl_minutes=ttl_minutes)
