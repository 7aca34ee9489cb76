"""
Subscribers of the assignment events.

- Order status sync (transactional): keeps the Order in step with the
  ledger entry when pickup is verified and when delivery proof is added.
- User notifications (deferred): one notification row for the order's user
  per assignment, reassignment, pickup and delivery.
"""

from datetime import datetime, timezone
from typing import Any, Dict
from sqlalchemy.orm.session import Session

from marketplace.src import directory
from marketplace.src.db import Notification, sessionMaker
from marketplace.src.enums import (
    AssignedOrderStatus,
    AssignmentEvent,
    NotificationType,
    OrderStatus,
)
from marketplace.src.events import subscribe


# ---------------------------------------------------------------------------
# Order status sync
# ---------------------------------------------------------------------------
@subscribe(AssignmentEvent.PICKUP_VERIFIED)
def confirmOrder(session: Session, payload: Dict[str, Any]) -> None:
    directory.setOrderStatus(session, payload["order_id"], OrderStatus.CONFIRMED)


@subscribe(AssignmentEvent.DELIVERY_PROOF_ADDED)
def deliverOrder(session: Session, payload: Dict[str, Any]) -> None:
    directory.setOrderStatus(
        session,
        payload["order_id"],
        OrderStatus.DELIVERED,
        datetime.now(timezone.utc),
    )


# ---------------------------------------------------------------------------
# User notifications
# ---------------------------------------------------------------------------
NOTIFICATION_MESSAGES = {
    NotificationType.RIDER_ASSIGNED: (
        "Rider assigned",
        lambda payload: f"Rider {payload['rider_id']} has been assigned to your order {payload['order_id']}",
    ),
    NotificationType.RIDER_REASSIGNED: (
        "Rider changed",
        lambda payload: f"Your order {payload['order_id']} has been handed over to rider {payload['rider_id']}",
    ),
    NotificationType.ORDER_PICKED_UP: (
        "Order picked up",
        lambda payload: f"Rider {payload['rider_id']} has picked up your order {payload['order_id']}",
    ),
    NotificationType.ORDER_DELIVERED: (
        "Order delivered",
        lambda payload: f"Your order {payload['order_id']} has been delivered",
    ),
}


def createNotification(notificationType: NotificationType, payload: Dict[str, Any]):
    """Write one notification for the order's user, in its own transaction."""
    title, makeMessage = NOTIFICATION_MESSAGES[notificationType]
    data = {
        "assigned_order_id": payload["assigned_order_id"],
        "order_id": payload["order_id"],
        "rider_id": payload["rider_id"],
    }
    if "old_rider_id" in payload:
        data["old_rider_id"] = payload["old_rider_id"]

    session = sessionMaker()
    try:
        notification = Notification(
            user_id=payload["user_id"],
            type=notificationType,
            title=title,
            message=makeMessage(payload),
            data=data,
        )
        session.add(notification)
        session.commit()
        return notification
    finally:
        session.close()


@subscribe(AssignmentEvent.ASSIGNED, deferred=True)
def notifyAssigned(payload: Dict[str, Any]) -> None:
    createNotification(NotificationType.RIDER_ASSIGNED, payload)


@subscribe(AssignmentEvent.REASSIGNED, deferred=True)
def notifyReassigned(payload: Dict[str, Any]) -> None:
    createNotification(NotificationType.RIDER_REASSIGNED, payload)


@subscribe(AssignmentEvent.PICKUP_VERIFIED, deferred=True)
def notifyPickedUp(payload: Dict[str, Any]) -> None:
    createNotification(NotificationType.ORDER_PICKED_UP, payload)


@subscribe(AssignmentEvent.DELIVERY_PROOF_ADDED, deferred=True)
def notifyDeliveredWithProof(payload: Dict[str, Any]) -> None:
    createNotification(NotificationType.ORDER_DELIVERED, payload)


@subscribe(AssignmentEvent.STATUS_UPDATED, deferred=True)
def notifyDelivered(payload: Dict[str, Any]) -> None:
    if payload["status"] == AssignedOrderStatus.DELIVERED:
        createNotification(NotificationType.ORDER_DELIVERED, payload)
