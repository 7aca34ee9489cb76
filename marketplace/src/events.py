"""
Assignment events published by the assignment workflow.

Subscribers come in two kinds:

- Transactional subscribers run synchronously inside the workflow
  transaction, with the workflow session. A failure aborts the workflow call.
- Deferred subscribers run once the workflow transaction has committed,
  each with its own session. A failure is logged and never reaches the caller.

Usage:
    >>> @subscribe(AssignmentEvent.PICKUP_VERIFIED)
    ... def confirmOrder(session, payload): ...
    >>> @subscribe(AssignmentEvent.ASSIGNED, deferred=True)
    ... def notifyUser(payload): ...
    >>> publish(session, AssignmentEvent.ASSIGNED, assignedOrder)
"""

from collections import defaultdict
from datetime import datetime, timezone
from logging import getLogger
from typing import Any, Callable, Dict, List
from sqlalchemy import event
from sqlalchemy.orm.session import Session

from marketplace.src.db import AssignedOrder, sessionMaker
from marketplace.src.enums import AssignmentEvent

logger = getLogger(__name__)

PENDING_EVENTS = "pending_assignment_events"

transactionalSubscribers: Dict[AssignmentEvent, List[Callable]] = defaultdict(list)
deferredSubscribers: Dict[AssignmentEvent, List[Callable]] = defaultdict(list)


def subscribe(eventType: AssignmentEvent, deferred: bool = False) -> Callable:
    """Register the decorated function as a subscriber of `eventType`."""

    def decorator(handler: Callable) -> Callable:
        if deferred:
            deferredSubscribers[eventType].append(handler)
        else:
            transactionalSubscribers[eventType].append(handler)
        return handler

    return decorator


def makePayload(
    eventType: AssignmentEvent, assignedOrder: AssignedOrder, **extra
) -> Dict[str, Any]:
    payload = {
        "event": eventType,
        "assigned_order_id": assignedOrder.id,
        "order_id": assignedOrder.order_id,
        "rider_id": assignedOrder.rider_id,
        "user_id": assignedOrder.user_id,
        "status": assignedOrder.status,
        "published_on": datetime.now(timezone.utc),
    }
    payload.update(extra)
    return payload


def publish(
    session: Session, eventType: AssignmentEvent, assignedOrder: AssignedOrder, **extra
) -> Dict[str, Any]:
    """
    Publish an assignment event.

    Transactional subscribers are called right away with `session`.
    The payload is queued on the session for deferred subscribers and
    delivered after the next successful commit.

    Args:
        session (Session): The workflow session.
        eventType (AssignmentEvent): The event being published.
        assignedOrder (AssignedOrder): The ledger entry the event is about.
            It must already carry its primary key.
        **extra: Additional payload fields (e.g. `old_rider_id`).

    Returns:
        Dict[str, Any]: The published payload.
    """
    payload = makePayload(eventType, assignedOrder, **extra)
    for handler in transactionalSubscribers[eventType]:
        handler(session, payload)
    if deferredSubscribers[eventType]:
        session.info.setdefault(PENDING_EVENTS, []).append(payload)
    return payload


def dispatch(payload: Dict[str, Any]) -> None:
    """Call every deferred subscriber of the payload's event, isolating failures."""
    for handler in deferredSubscribers[payload["event"]]:
        try:
            handler(payload)
        except Exception:
            logger.exception(
                "Deferred subscriber %s failed for %s on assigned order %s",
                handler.__name__,
                AssignmentEvent(payload["event"]).name,
                payload["assigned_order_id"],
            )


# ---------------------------------------------------------------------------
# Session hooks
# ---------------------------------------------------------------------------
@event.listens_for(sessionMaker, "after_commit")
def dispatchPendingEvents(session: Session) -> None:
    for payload in session.info.pop(PENDING_EVENTS, []):
        dispatch(payload)


@event.listens_for(sessionMaker, "after_rollback")
def discardPendingEvents(session: Session) -> None:
    session.info.pop(PENDING_EVENTS, None)
