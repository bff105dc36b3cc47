# storefront/checkout/routes.py
from flask import current_app, request

from ..errors import StorefrontError
from ..extensions import db, payments
from ..services.checkout_service import CheckoutReconciler, CheckoutRequest
from ..utils.api import ok, err
from ..utils.decorators import with_request_context
from . import bp


def _reconciler() -> CheckoutReconciler:
    return CheckoutReconciler(
        gateway=payments,
        verify_amount=current_app.config.get("CHECKOUT_VERIFY_AMOUNT", True),
    )


@bp.get("/client-token")
def client_token():
    return ok("client token", {"clientToken": payments.client_token()})


@bp.post("")
@with_request_context
def checkout(ctx):
    """
    Body:
      paymentMethodNonce  -> Braintree nonce (required unless amount == 0)
      amount              -> order total after discount
      items               -> [{productId, title, price, quantity}]
      shippingInfo        -> {name, email, address, city, state, zip, country}
      couponId, couponCode, discountAmount (optional)
    """
    data = request.get_json(silent=True) or {}
    try:
        req = CheckoutRequest.from_payload(data)
        result = _reconciler().checkout(req, ctx)
    except StorefrontError:
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Checkout error")
        return err("Checkout failed", 500, {"success": False, "error": "Checkout failed"})

    resp = ok("order created", result.as_api(), status=201)
    resp.headers["X-Order-Id"] = str(result.order_id)
    return resp
