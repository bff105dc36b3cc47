# storefront/services/order_service.py
from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..model import ORDER_STATUSES

# admin-driven only; checkout itself always writes "paid"
ORDER_TRANSITIONS = {
    "pending": {"paid", "cancelled"},
    "paid": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}


def can_transition(current: str, new: str) -> bool:
    return new in ORDER_TRANSITIONS.get(current, set())


def next_statuses(current: str) -> list[str]:
    return sorted(ORDER_TRANSITIONS.get(current, set()))


def transition_order(order, new_status: str, actor_id=None):
    new_status = (new_status or "").strip().lower()
    if new_status not in ORDER_STATUSES:
        raise ValidationError("Invalid status. Must be one of: " + ", ".join(ORDER_STATUSES))
    if new_status == order.status:
        return order
    if not can_transition(order.status, new_status):
        raise ValidationError(
            f"Cannot move order from {order.status} to {new_status}",
            data={"allowed": next_statuses(order.status)},
            status_code=409,
        )
    previous = order.status
    order.status = new_status
    db.session.commit()
    current_app.logger.info("order %s status %s -> %s by user %s", order.id, previous, new_status, actor_id)
    return order
