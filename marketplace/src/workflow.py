"""
Order-to-rider assignment workflow.

Every function below works on the assignment ledger (`AssignedOrder`) inside
the caller's transaction and never commits. The API layer takes the Redis
mutex of the entity being transitioned, calls one of these functions,
commits and logs the result.

Status graph of a ledger entry:
    ASSIGNED   → PICKED_UP, CANCELLED
    PICKED_UP  → IN_TRANSIT, CANCELLED
    IN_TRANSIT → DELIVERED, CANCELLED
    DELIVERED, CANCELLED are terminal

Rider availability is re-derived after each write that can free the rider:
    - status update into a terminal state and delete use the full active set
    - reassignment (old rider) and delivery proof use the narrow
      {ASSIGNED, PICKED_UP} set
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm.session import Session

from marketplace.src import directory, events, exceptions, getters, validators
from marketplace.src import subscribers  # noqa: F401 (registers event subscribers)
from marketplace.src.db import AssignedOrder, Order
from marketplace.src.directory import (
    ACTIVE_ASSIGNMENT_STATES,
    PRE_TRANSIT_ASSIGNMENT_STATES,
    TERMINAL_ASSIGNMENT_STATES,
)
from marketplace.src.enums import AssignedOrderStatus, AssignmentEvent, ProofType

ASSIGNMENT_TRANSITIONS = {
    AssignedOrderStatus.ASSIGNED: [
        AssignedOrderStatus.PICKED_UP,
        AssignedOrderStatus.CANCELLED,
    ],
    AssignedOrderStatus.PICKED_UP: [
        AssignedOrderStatus.IN_TRANSIT,
        AssignedOrderStatus.CANCELLED,
    ],
    AssignedOrderStatus.IN_TRANSIT: [
        AssignedOrderStatus.DELIVERED,
        AssignedOrderStatus.CANCELLED,
    ],
    AssignedOrderStatus.DELIVERED: [],
    AssignedOrderStatus.CANCELLED: [],
}


def getAssignedOrder(
    session: Session, assigned_order_id: int, rider_id: Optional[int] = None
) -> AssignedOrder:
    """
    Fetch a ledger entry, optionally on behalf of a rider.

    Raises:
        exceptions.InvalidIdentifier: If the entry does not exist.
        exceptions.NoPermission: If `rider_id` is given and the entry is not theirs.
    """
    assignedOrder = getters.assignedOrder(session, assigned_order_id)
    if assignedOrder is None:
        raise exceptions.InvalidIdentifier()
    if rider_id is not None:
        validators.riderOwnership(assignedOrder, rider_id)
    return assignedOrder


# ---------------------------------------------------------------------------
# Assignment creation
# ---------------------------------------------------------------------------
def assign(
    session: Session,
    rider_id: int,
    order_id: int,
    user_id: int,
    notes: Optional[str] = None,
) -> AssignedOrder:
    rider = getters.rider(session, rider_id)
    if rider is None:
        raise exceptions.UnknownValue(AssignedOrder.rider_id)
    order = getters.order(session, order_id)
    if order is None:
        raise exceptions.UnknownValue(AssignedOrder.order_id)

    duplicate = (
        session.query(AssignedOrder)
        .filter(AssignedOrder.order_id == order_id)
        .filter(AssignedOrder.rider_id == rider_id)
        .first()
    )
    if duplicate is not None:
        raise exceptions.DuplicateAssignment()

    assignedOrder = AssignedOrder(
        rider_id=rider_id,
        order_id=order_id,
        user_id=user_id,
        status=AssignedOrderStatus.ASSIGNED,
        assigned_on=datetime.now(timezone.utc),
        notes=notes,
    )
    session.add(assignedOrder)
    session.flush()

    directory.occupyRider(session, rider)
    events.publish(session, AssignmentEvent.ASSIGNED, assignedOrder)
    return assignedOrder


def bulkAssign(session: Session, rider_id: int, orders: List[Any]) -> List[AssignedOrder]:
    """
    Assign several orders to one rider, all or nothing.

    Every precondition is checked before the first row is written:
    the rider exists, every order exists, and none of the (order, rider)
    pairs is already on the ledger or repeated in the batch.

    Args:
        orders (List[Any]): Items exposing `order_id`, `user_id` and `notes`.

    Raises:
        exceptions.EmptyParameter: If `orders` is empty.
        exceptions.UnknownValue: If the rider does not exist.
        exceptions.PartialNotFound: If any order does not exist.
        exceptions.DuplicateAssignment: With the number of duplicate pairs.
    """
    if not orders:
        raise exceptions.EmptyParameter("orders")
    rider = getters.rider(session, rider_id)
    if rider is None:
        raise exceptions.UnknownValue(AssignedOrder.rider_id)

    orderIds = [item.order_id for item in orders]
    if directory.missingOrders(session, orderIds):
        raise exceptions.PartialNotFound(Order)

    existing = (
        session.query(AssignedOrder)
        .filter(AssignedOrder.rider_id == rider_id)
        .filter(AssignedOrder.order_id.in_(orderIds))
        .count()
    )
    repeated = len(orderIds) - len(set(orderIds))
    if existing + repeated > 0:
        raise exceptions.DuplicateAssignment(existing + repeated)

    assignedOn = datetime.now(timezone.utc)
    assignedOrders = [
        AssignedOrder(
            rider_id=rider_id,
            order_id=item.order_id,
            user_id=item.user_id,
            status=AssignedOrderStatus.ASSIGNED,
            assigned_on=assignedOn,
            notes=getattr(item, "notes", None),
        )
        for item in orders
    ]
    session.add_all(assignedOrders)
    session.flush()

    directory.occupyRider(session, rider)
    for assignedOrder in assignedOrders:
        events.publish(session, AssignmentEvent.ASSIGNED, assignedOrder)
    return assignedOrders


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------
def updateStatus(
    session: Session,
    assigned_order_id: int,
    status: AssignedOrderStatus,
    rider_id: Optional[int] = None,
) -> AssignedOrder:
    assignedOrder = getAssignedOrder(session, assigned_order_id, rider_id)
    oldStatus = AssignedOrderStatus(assignedOrder.status)
    validators.stateTransition(ASSIGNMENT_TRANSITIONS, oldStatus, status)

    now = datetime.now(timezone.utc)
    if status == AssignedOrderStatus.PICKED_UP:
        assignedOrder.picked_up_on = now
    elif status == AssignedOrderStatus.DELIVERED:
        assignedOrder.delivered_on = now
        directory.incrementDeliveries(session, assignedOrder.rider_id)
    elif status == AssignedOrderStatus.CANCELLED:
        assignedOrder.cancelled_on = now
    assignedOrder.status = status

    if status in TERMINAL_ASSIGNMENT_STATES:
        directory.refreshRiderAvailability(
            session, assignedOrder.rider_id, ACTIVE_ASSIGNMENT_STATES
        )
    events.publish(
        session,
        AssignmentEvent.STATUS_UPDATED,
        assignedOrder,
        previous_status=oldStatus,
    )
    return assignedOrder


def updateNotes(session: Session, assigned_order_id: int, notes: str) -> AssignedOrder:
    assignedOrder = getAssignedOrder(session, assigned_order_id)
    assignedOrder.notes = notes
    return assignedOrder


def remove(session: Session, assigned_order_id: int) -> AssignedOrder:
    assignedOrder = getAssignedOrder(session, assigned_order_id)
    session.delete(assignedOrder)
    directory.refreshRiderAvailability(
        session, assignedOrder.rider_id, ACTIVE_ASSIGNMENT_STATES
    )
    return assignedOrder


def removeOrderAssignments(session: Session, order_id: int) -> List[int]:
    """
    Delete every ledger entry of an order ahead of the order itself.

    Each rider that held one of the entries is re-derived with the full
    active set, so no rider stays BUSY on an entry that no longer exists.

    Returns:
        List[int]: IDs of the riders whose entries were removed.
    """
    assignedOrders = (
        session.query(AssignedOrder).filter(AssignedOrder.order_id == order_id).all()
    )
    riderIds = sorted({x.rider_id for x in assignedOrders})
    for assignedOrder in assignedOrders:
        session.delete(assignedOrder)
    for riderId in riderIds:
        directory.refreshRiderAvailability(session, riderId, ACTIVE_ASSIGNMENT_STATES)
    return riderIds


# ---------------------------------------------------------------------------
# Reassignment
# ---------------------------------------------------------------------------
def reassign(
    session: Session,
    assigned_order_id: int,
    new_rider_id: Optional[int],
    reason: Optional[str] = None,
) -> AssignedOrder:
    """
    Hand a ledger entry over to another rider, in place.

    The old rider is re-derived with the narrow active set, then the new
    rider is flipped to BUSY if AVAILABLE. A new rider who already holds an
    entry for the same order is rejected with `DuplicateAssignment`.
    """
    if new_rider_id is None:
        raise exceptions.MissingParameter("New rider ID")
    assignedOrder = getAssignedOrder(session, assigned_order_id)
    newRider = getters.rider(session, new_rider_id)
    if newRider is None:
        raise exceptions.UnknownValue("new_rider_id")
    if newRider.id == assignedOrder.rider_id:
        raise exceptions.NoOpReassignment()
    duplicate = (
        session.query(AssignedOrder.id)
        .filter(AssignedOrder.order_id == assignedOrder.order_id)
        .filter(AssignedOrder.rider_id == newRider.id)
        .first()
    )
    if duplicate is not None:
        raise exceptions.DuplicateAssignment()

    oldRiderId = assignedOrder.rider_id
    # Both rows are locked in id order so crossing reassignments cannot deadlock
    for riderId in sorted([oldRiderId, newRider.id]):
        directory.lockRider(session, riderId)
    assignedOrder.rider_id = newRider.id
    if reason:
        assignedOrder.notes = f"{assignedOrder.notes or ''}\nReassigned: {reason}"

    directory.refreshRiderAvailability(
        session, oldRiderId, PRE_TRANSIT_ASSIGNMENT_STATES
    )
    directory.occupyRider(session, newRider)
    events.publish(
        session, AssignmentEvent.REASSIGNED, assignedOrder, old_rider_id=oldRiderId
    )
    return assignedOrder


# ---------------------------------------------------------------------------
# Delivery proof
# ---------------------------------------------------------------------------
def normaliseProof(proof: Any, proofType: ProofType) -> List[Dict[str, Any]]:
    """
    Turn a single reference or a list of references into proof entries.

    Example:
        >>> normaliseProof("proofs/7.jpeg", ProofType.PHOTO)
        [{'type': 1, 'reference': 'proofs/7.jpeg'}]
    """
    references = proof if isinstance(proof, list) else [proof]
    return [{"type": int(proofType), "reference": str(x)} for x in references]


def addDeliveryProof(
    session: Session,
    assigned_order_id: int,
    proof: Any,
    proofType: Optional[ProofType] = None,
    rider_id: Optional[int] = None,
) -> AssignedOrder:
    """
    Record delivery proof and complete a picked up entry.

    The entry becomes DELIVERED and the rider's delivery count goes up by one.
    A second call finds the entry DELIVERED and fails, so a delivery is
    never counted twice.

    Raises:
        exceptions.MissingParameter: If no proof is given.
        exceptions.InvalidState: If the entry is not PICKED_UP.
    """
    if proof is None or proof == "" or proof == []:
        raise exceptions.MissingParameter("Delivery proof")
    assignedOrder = getAssignedOrder(session, assigned_order_id, rider_id)
    if assignedOrder.status != AssignedOrderStatus.PICKED_UP:
        raise exceptions.InvalidState(
            "Order must be picked up before adding delivery proof"
        )

    assignedOrder.delivery_proof = normaliseProof(proof, proofType or ProofType.PHOTO)
    assignedOrder.status = AssignedOrderStatus.DELIVERED
    assignedOrder.delivered_on = datetime.now(timezone.utc)
    directory.incrementDeliveries(session, assignedOrder.rider_id)

    events.publish(session, AssignmentEvent.DELIVERY_PROOF_ADDED, assignedOrder)
    directory.refreshRiderAvailability(
        session, assignedOrder.rider_id, PRE_TRANSIT_ASSIGNMENT_STATES
    )
    return assignedOrder


# ---------------------------------------------------------------------------
# Pickup verification
# ---------------------------------------------------------------------------
def verifyPickup(
    session: Session,
    assigned_order_id: int,
    otp: Optional[str],
    rider_id: Optional[int] = None,
) -> AssignedOrder:
    if not otp:
        raise exceptions.MissingParameter("OTP")
    assignedOrder = getAssignedOrder(session, assigned_order_id, rider_id)
    if assignedOrder.status != AssignedOrderStatus.ASSIGNED:
        raise exceptions.InvalidState(
            "Order must be in assigned status to verify pickup"
        )
    order = getters.order(session, assignedOrder.order_id)
    if order is None:
        raise exceptions.UnknownValue(AssignedOrder.order_id)
    validators.otp(order, otp)

    assignedOrder.status = AssignedOrderStatus.PICKED_UP
    assignedOrder.picked_up_on = datetime.now(timezone.utc)
    events.publish(session, AssignmentEvent.PICKUP_VERIFIED, assignedOrder)
    return assignedOrder


# ---------------------------------------------------------------------------
# Derived aggregates
# ---------------------------------------------------------------------------
def stats(session: Session, rider_id: Optional[int] = None) -> Dict[str, int]:
    query = session.query(AssignedOrder.status, func.count(AssignedOrder.id))
    if rider_id is not None:
        query = query.filter(AssignedOrder.rider_id == rider_id)
    counts = dict(query.group_by(AssignedOrder.status).all())

    statistics = {"total_assignments": sum(counts.values())}
    for status in AssignedOrderStatus:
        statistics[f"{status.name.lower()}_count"] = counts.get(status, 0)
    return statistics


def statusHistory(assignedOrder: AssignedOrder) -> List[Dict[str, Any]]:
    """Rebuild the timeline of an entry. Cancellation is not part of it."""
    history = [
        {"status": AssignedOrderStatus.ASSIGNED, "timestamp": assignedOrder.assigned_on}
    ]
    if assignedOrder.picked_up_on is not None:
        history.append(
            {
                "status": AssignedOrderStatus.PICKED_UP,
                "timestamp": assignedOrder.picked_up_on,
            }
        )
    if assignedOrder.delivered_on is not None:
        history.append(
            {
                "status": AssignedOrderStatus.DELIVERED,
                "timestamp": assignedOrder.delivered_on,
            }
        )
    return history


def trackingInfo(
    session: Session, assigned_order_id: int, rider_id: Optional[int] = None
) -> Dict[str, Any]:
    assignedOrder = getAssignedOrder(session, assigned_order_id, rider_id)
    rider = getters.rider(session, assignedOrder.rider_id)
    if rider is None:
        raise exceptions.UnknownValue(AssignedOrder.rider_id)
    order = getters.order(session, assignedOrder.order_id)

    return {
        "assigned_order": assignedOrder,
        "rider": {
            "name": rider.name,
            "phone": rider.phone,
            "current_location": {
                "latitude": rider.latitude,
                "longitude": rider.longitude,
                "address": rider.address,
            },
            "vehicle_type": rider.vehicle_type,
            "vehicle_number": rider.vehicle_number,
        },
        "order": order,
        "status_history": statusHistory(assignedOrder),
    }
