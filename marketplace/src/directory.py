"""
Rider Directory and Order Store contracts used by the assignment workflow.

The workflow never edits a rider or an order directly. It goes through the
functions below, which keep the side effects on those records in one place:

- Rider availability (`AVAILABLE` ⇄ `BUSY`) derived from the assignment ledger
- Rider rating derived from the approved reviews
- Delivery counting on the rider record
- Order status synchronisation with its timestamps

None of these functions commit. They join the transaction of the caller.
"""

from datetime import datetime, timezone
from typing import Iterable, List
from sqlalchemy import func
from sqlalchemy.orm.session import Session

from marketplace.src.db import AssignedOrder, Order, Review, Rider
from marketplace.src.enums import AssignedOrderStatus, OrderStatus, RiderStatus


# Assignment states that keep a rider busy
ACTIVE_ASSIGNMENT_STATES = [
    AssignedOrderStatus.ASSIGNED,
    AssignedOrderStatus.PICKED_UP,
    AssignedOrderStatus.IN_TRANSIT,
]
# Narrow set used after reassignment and delivery proof capture
PRE_TRANSIT_ASSIGNMENT_STATES = [
    AssignedOrderStatus.ASSIGNED,
    AssignedOrderStatus.PICKED_UP,
]
TERMINAL_ASSIGNMENT_STATES = [
    AssignedOrderStatus.DELIVERED,
    AssignedOrderStatus.CANCELLED,
]


# ---------------------------------------------------------------------------
# Rider Directory
# ---------------------------------------------------------------------------
def lockRider(session: Session, rider_id: int) -> Rider | None:
    """
    Take the row lock of a rider for the rest of the transaction.

    The rider is reloaded from the database, so its status reflects every
    transaction that released the lock before this one. All writes to
    `Rider.status` made by the workflow happen under this lock.
    """
    return (
        session.query(Rider)
        .filter(Rider.id == rider_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def setRiderStatus(session: Session, rider_id: int, status: RiderStatus) -> None:
    session.query(Rider).filter(Rider.id == rider_id).update(
        {Rider.status: status}, synchronize_session="fetch"
    )


def occupyRider(session: Session, rider: Rider) -> None:
    """Flip an AVAILABLE rider to BUSY. Any other status is left as is."""
    rider = lockRider(session, rider.id)
    if rider.status == RiderStatus.AVAILABLE:
        rider.status = RiderStatus.BUSY


def incrementDeliveries(session: Session, rider_id: int) -> None:
    """Count one successful delivery for the rider, as a single UPDATE."""
    session.query(Rider).filter(Rider.id == rider_id).update(
        {Rider.total_deliveries: Rider.total_deliveries + 1},
        synchronize_session="fetch",
    )


def countAssignments(
    session: Session, rider_id: int, states: Iterable[AssignedOrderStatus]
) -> int:
    return (
        session.query(AssignedOrder)
        .filter(AssignedOrder.rider_id == rider_id)
        .filter(AssignedOrder.status.in_(list(states)))
        .count()
    )


def refreshRiderAvailability(
    session: Session, rider_id: int, states: Iterable[AssignedOrderStatus]
) -> bool:
    """
    Re-derive the availability of a rider from the assignment ledger.

    The rider row is locked first, then the rider's entries in `states` are
    counted with a scan over the ledger. When none remain, the rider is set
    to AVAILABLE, whatever its current status is. Otherwise the rider is
    left untouched.

    Args:
        session (Session): Active SQLAlchemy session; pending changes are flushed first.
        rider_id (int): The rider to re-derive.
        states (Iterable[AssignedOrderStatus]): Either `ACTIVE_ASSIGNMENT_STATES`
            or `PRE_TRANSIT_ASSIGNMENT_STATES`.

    Returns:
        bool: True if the rider was set to AVAILABLE.
    """
    session.flush()
    lockRider(session, rider_id)
    if countAssignments(session, rider_id, states) > 0:
        return False
    setRiderStatus(session, rider_id, RiderStatus.AVAILABLE)
    return True


def refreshRiderRating(session: Session, rider_id: int) -> float:
    """
    Re-derive the rating of a rider from its approved reviews.

    The rider row is locked first, so concurrent review writes for the same
    rider are averaged one after the other. The average is rounded to one
    decimal place. A rider without approved reviews gets a rating of 0.

    Returns:
        float: The rating written to the rider.
    """
    session.flush()
    lockRider(session, rider_id)
    average = (
        session.query(func.avg(Review.rating))
        .filter(Review.rider_id == rider_id)
        .filter(Review.is_approved.is_(True))
        .scalar()
    )
    rating = round(float(average), 1) if average is not None else 0.0
    session.query(Rider).filter(Rider.id == rider_id).update(
        {Rider.rating: rating}, synchronize_session="fetch"
    )
    return rating


# ---------------------------------------------------------------------------
# Order Store
# ---------------------------------------------------------------------------
def missingOrders(session: Session, order_ids: List[int]) -> List[int]:
    """Return the IDs in `order_ids` that have no order, in request order."""
    found = {
        id for (id,) in session.query(Order.id).filter(Order.id.in_(order_ids)).all()
    }
    return [id for id in order_ids if id not in found]


def setOrderStatus(
    session: Session,
    order_id: int,
    status: OrderStatus,
    timestamp: datetime | None = None,
) -> Order | None:
    """
    Move an order to `status`, stamping `delivered_on` or `cancelled_on`.

    Returns the updated order, or None when it does not exist.
    """
    order = session.query(Order).filter(Order.id == order_id).first()
    if order is None:
        return None
    if timestamp is None:
        timestamp = datetime.now(timezone.utc)
    order.status = status
    if status == OrderStatus.DELIVERED:
        order.delivered_on = timestamp
    elif status == OrderStatus.CANCELLED:
        order.cancelled_on = timestamp
    return order
