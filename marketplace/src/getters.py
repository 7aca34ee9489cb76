from fastapi import Request
from sqlalchemy.orm.session import Session

from marketplace.src import schemas
from marketplace.src.db import AssignedOrder, Order, Rider


def requestInfo(request: Request) -> schemas.RequestInfo:
    """
    Extract metadata about the incoming request.

    Args:
        request (Request): FastAPI request object.

    Returns:
        schemas.RequestInfo: Pydantic model containing:
            - method (str): HTTP method (GET, POST, etc.).
            - path (str): Path portion of the request URL.
            - app_id (int): Application ID from app state.
    """
    return schemas.RequestInfo(
        method=request.method,
        path=request.url.path,
        app_id=request.scope["app"].state.id,
    )


def rider(session: Session, rider_id: int) -> Rider | None:
    """Fetch a rider by ID."""
    return session.query(Rider).filter(Rider.id == rider_id).first()


def order(session: Session, order_id: int) -> Order | None:
    """Fetch an order by ID."""
    return session.query(Order).filter(Order.id == order_id).first()


def assignedOrder(session: Session, assigned_order_id: int) -> AssignedOrder | None:
    """Fetch an assignment ledger entry by ID."""
    return (
        session.query(AssignedOrder)
        .filter(AssignedOrder.id == assigned_order_id)
        .first()
    )
