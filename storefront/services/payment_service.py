# storefront/services/payment_service.py
"""Braintree adapter used by checkout.

Only two calls are needed: a client token for the drop-in UI and a sale
submitted for immediate settlement.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import braintree
from braintree.exceptions.braintree_error import BraintreeError

from ..errors import PaymentError
from ..utils.money import money_str


@dataclass(frozen=True)
class Transaction:
    id: str
    amount: str
    status: str

    def as_api(self):
        return {"id": self.id, "amount": self.amount, "status": self.status}


class PaymentGateway:
    def __init__(self, app=None):
        self.client = None
        self.logger = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        cfg = app.config
        self.logger = app.logger
        self.client = None
        if cfg.get("BRAINTREE_MERCHANT_ID") and cfg.get("BRAINTREE_PUBLIC_KEY") and cfg.get("BRAINTREE_PRIVATE_KEY"):
            environment = (
                braintree.Environment.Production
                if (cfg.get("BRAINTREE_ENVIRONMENT") or "").lower() == "production"
                else braintree.Environment.Sandbox
            )
            self.client = braintree.BraintreeGateway(
                braintree.Configuration(
                    environment=environment,
                    merchant_id=cfg["BRAINTREE_MERCHANT_ID"],
                    public_key=cfg["BRAINTREE_PUBLIC_KEY"],
                    private_key=cfg["BRAINTREE_PRIVATE_KEY"],
                )
            )
        app.extensions["payment_gateway"] = self

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def _require_client(self):
        if not self.is_configured:
            raise PaymentError(
                "Braintree credentials not configured",
                data={"details": "Set BRAINTREE_MERCHANT_ID, BRAINTREE_PUBLIC_KEY and BRAINTREE_PRIVATE_KEY"},
                status_code=500,
            )
        return self.client

    def client_token(self) -> str:
        client = self._require_client()
        try:
            token = client.client_token.generate()
        except BraintreeError as e:
            self.logger.error("Braintree token error: %r", e)
            raise PaymentError("Failed to generate client token", status_code=500) from e
        if not token:
            raise PaymentError("No client token received from Braintree", status_code=500)
        return token

    def sale(self, amount: Decimal, payment_method_nonce: str) -> Transaction:
        """Charge ``amount`` and submit it for settlement; raise PaymentError on any failure."""
        client = self._require_client()
        try:
            result = client.transaction.sale({
                "amount": money_str(amount),
                "payment_method_nonce": payment_method_nonce,
                "options": {"submit_for_settlement": True},
            })
        except BraintreeError as e:
            self.logger.error("Braintree sale raised: %r", e)
            raise PaymentError("Payment gateway error", status_code=500) from e

        if not result.is_success:
            errors = [
                {"attribute": err.attribute, "code": err.code, "message": err.message}
                for err in result.errors.deep_errors
            ]
            raise PaymentError(result.message or "Payment failed", data={"errors": errors})

        tx = result.transaction
        return Transaction(id=tx.id, amount=money_str(amount), status="settled")
