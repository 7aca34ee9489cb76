from datetime import datetime
from enum import IntEnum
from io import BytesIO
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4
from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile, status
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field

from marketplace.api.order import OrderSchema
from marketplace.src.db import AssignedOrder, Rider, sessionMaker
from marketplace.src import exceptions, getters, schemas, workflow
from marketplace.src.constants import (
    DEFAULT_PAGE_LIMIT,
    DELIVERY_PROOFS,
    MAX_BULK_ASSIGNMENT,
    MAX_PAGE_LIMIT,
    MAX_PROOF_IMAGE_SIZE,
)
from marketplace.src.enums import AssignedOrderStatus, OrderIn, ProofType
from marketplace.src.loggers import logEvent
from marketplace.src.minio import uploadFile
from marketplace.src.redis import acquireLock, releaseLock
from marketplace.src.functions import (
    enumStr,
    makeExceptionResponses,
    makeResponse,
    resizeImage,
    splitMIME,
)
from marketplace.src.urls import (
    URL_ASSIGN,
    URL_ASSIGN_BULK,
    URL_ASSIGNED_ORDER,
    URL_ASSIGNED_ORDER_BY_ID,
    URL_ASSIGNED_ORDER_STATS,
    URL_ASSIGNED_ORDER_STATUS,
    URL_DELIVERY_PROOF,
    URL_DELIVERY_PROOF_IMAGE,
    URL_REASSIGN,
    URL_RIDER_ASSIGNED_ORDERS,
    URL_TRACKING,
    URL_USER_ASSIGNED_ORDERS,
    URL_VERIFY_PICKUP,
)

route_admin = APIRouter()
route_rider = APIRouter()


## Output Schema
class AssignedOrderSchema(BaseModel):
    id: int
    rider_id: int
    order_id: int
    user_id: int
    status: int
    assigned_on: datetime
    picked_up_on: Optional[datetime] = None
    delivered_on: Optional[datetime] = None
    cancelled_on: Optional[datetime] = None
    notes: Optional[str] = None
    delivery_proof: Optional[List[Dict[str, Any]]] = None
    updated_on: Optional[datetime] = None
    created_on: datetime


class AssignmentStatsSchema(BaseModel):
    total_assignments: int
    assigned_count: int
    picked_up_count: int
    in_transit_count: int
    delivered_count: int
    cancelled_count: int


class LocationSchema(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None


class TrackingRiderSchema(BaseModel):
    name: str
    phone: str
    current_location: LocationSchema
    vehicle_type: int
    vehicle_number: str


class StatusHistorySchema(BaseModel):
    status: int
    timestamp: Optional[datetime] = None


class TrackingSchema(BaseModel):
    assigned_order: AssignedOrderSchema
    rider: TrackingRiderSchema
    order: Optional[OrderSchema] = None
    status_history: List[StatusHistorySchema]


## Input Forms
class AssignForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rider_id: int
    order_id: int
    user_id: int
    notes: str | None = Field(default=None, max_length=1024)


class BulkAssignItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    order_id: int
    user_id: int
    notes: str | None = Field(default=None, max_length=1024)


class BulkAssignForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rider_id: int
    orders: List[BulkAssignItem] = Field(max_length=MAX_BULK_ASSIGNMENT)


class NotesForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    notes: str = Field(max_length=1024)


class StatusFormForAD(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: AssignedOrderStatus = Field(description=enumStr(AssignedOrderStatus))


class StatusFormForRD(StatusFormForAD):
    rider_id: int


class ReassignForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    new_rider_id: int | None = None
    reason: str | None = Field(default=None, max_length=512)


class DeliveryProofFormForAD(BaseModel):
    model_config = ConfigDict(extra="forbid")

    delivery_proof: str | List[str] | None = Field(
        default=None, description="Media reference or list of media references"
    )
    proof_type: ProofType | None = Field(default=None, description=enumStr(ProofType))


class DeliveryProofFormForRD(DeliveryProofFormForAD):
    rider_id: int


class VerifyPickupFormForAD(BaseModel):
    model_config = ConfigDict(extra="forbid")

    otp: str | None = Field(default=None, max_length=16)


class VerifyPickupFormForRD(VerifyPickupFormForAD):
    rider_id: int


class ProofImageFormForAD(BaseModel):
    file: UploadFile = Field(File())


class ProofImageFormForRD(ProofImageFormForAD):
    rider_id: int = Field(Form())


## Query Params
class OrderBy(IntEnum):
    id = 1
    assigned_on = 2
    picked_up_on = 3
    delivered_on = 4
    updated_on = 5
    created_on = 6


class QueryParamsForAD(BaseModel):
    # Filters
    rider_id: int | None = Field(Query(default=None))
    order_id: int | None = Field(Query(default=None))
    user_id: int | None = Field(Query(default=None))
    status: AssignedOrderStatus | None = Field(
        Query(default=None, description=enumStr(AssignedOrderStatus))
    )
    status_list: List[AssignedOrderStatus] | None = Field(
        Query(default=None, description=enumStr(AssignedOrderStatus))
    )
    # assigned_on based
    assigned_on_ge: datetime | None = Field(Query(default=None))
    assigned_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.assigned_on, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=DEFAULT_PAGE_LIMIT, gt=0, le=MAX_PAGE_LIMIT))


class QueryParamsForRD(QueryParamsForAD):
    rider_id: int = Field(Query())


class StatusQueryParams(BaseModel):
    status: AssignedOrderStatus | None = Field(
        Query(default=None, description=enumStr(AssignedOrderStatus))
    )


# Functions
def searchAssignedOrder(
    session: Session, qParam: QueryParamsForAD | QueryParamsForRD
) -> List[AssignedOrder]:
    query = session.query(AssignedOrder)

    # Filters
    if qParam.rider_id is not None:
        query = query.filter(AssignedOrder.rider_id == qParam.rider_id)
    if qParam.order_id is not None:
        query = query.filter(AssignedOrder.order_id == qParam.order_id)
    if qParam.user_id is not None:
        query = query.filter(AssignedOrder.user_id == qParam.user_id)
    # status based
    if qParam.status is not None:
        query = query.filter(AssignedOrder.status == qParam.status)
    if qParam.status_list is not None:
        query = query.filter(AssignedOrder.status.in_(qParam.status_list))
    # assigned_on based filters
    if qParam.assigned_on_ge is not None:
        query = query.filter(AssignedOrder.assigned_on >= qParam.assigned_on_ge)
    if qParam.assigned_on_le is not None:
        query = query.filter(AssignedOrder.assigned_on <= qParam.assigned_on_le)

    # Ordering
    orderingAttribute = getattr(AssignedOrder, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


def listAssignedOrders(
    session: Session, column, value: int, status: AssignedOrderStatus | None
) -> List[AssignedOrder]:
    query = session.query(AssignedOrder).filter(column == value)
    if status is not None:
        query = query.filter(AssignedOrder.status == status)
    return query.order_by(AssignedOrder.assigned_on.desc()).all()


def transitionAssignedOrder(
    assigned_order_id: int,
    request_info: schemas.RequestInfo,
    message: str,
    operation: Callable[..., AssignedOrder],
    *args,
    **kwargs,
) -> dict:
    """
    Run one workflow operation on a ledger entry under its mutex and commit it.

    The entry is read by `operation` inside the lock, so its preconditions are
    checked against the latest committed state.
    """
    assignedOrderLock = None
    try:
        session = sessionMaker()
        assignedOrderLock = acquireLock(AssignedOrder.__tablename__, assigned_order_id)
        assignedOrder = operation(session, assigned_order_id, *args, **kwargs)
        session.commit()
        session.refresh(assignedOrder)

        assignedOrderData = jsonable_encoder(assignedOrder)
        logEvent(request_info, assignedOrderData)
        return makeResponse(assignedOrderData, message)
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(assignedOrderLock)
        session.close()


async def readProofImage(file: UploadFile) -> bytes:
    fileBytes = await file.read()
    if splitMIME(file.content_type)["type"] != "image":
        raise exceptions.InvalidImage()
    imageBytes = resizeImage(
        fileBytes, "JPEG", MAX_PROOF_IMAGE_SIZE, MAX_PROOF_IMAGE_SIZE
    )
    if imageBytes is None:
        raise exceptions.InvalidImage()
    return imageBytes


def addProofImage(
    assigned_order_id: int,
    request_info: schemas.RequestInfo,
    imageBytes: bytes,
    rider_id: int | None = None,
) -> dict:
    """
    Record a stored photo as delivery proof under the mutex of the entry.

    The object is uploaded only after the proof is committed, so a failed
    commit never leaves an unreferenced object in the bucket.
    """
    assignedOrderLock = None
    try:
        session = sessionMaker()
        assignedOrderLock = acquireLock(AssignedOrder.__tablename__, assigned_order_id)
        objectID = f"{assigned_order_id}/{uuid4().hex}.jpeg"
        assignedOrder = workflow.addDeliveryProof(
            session,
            assigned_order_id,
            f"{DELIVERY_PROOFS}/{objectID}",
            ProofType.PHOTO,
            rider_id,
        )
        session.commit()
        session.refresh(assignedOrder)
        uploadFile(
            DELIVERY_PROOFS, objectID, len(imageBytes), BytesIO(imageBytes), "image/jpeg"
        )

        assignedOrderData = jsonable_encoder(assignedOrder)
        logEvent(request_info, assignedOrderData)
        return makeResponse(assignedOrderData, "Delivery proof added successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(assignedOrderLock)
        session.close()


## API endpoints [Admin]
@route_admin.post(
    URL_ASSIGN,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(AssignedOrder.rider_id),
            exceptions.UnknownValue(AssignedOrder.order_id),
            exceptions.DuplicateAssignment(),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Assign an order to a rider.
    The rider and the order must exist.
    An order can be assigned to the same rider only once.
    The assignment is created in the ASSIGNED status.
    An AVAILABLE rider becomes BUSY; a rider in any other status is left as is.
    The user of the order is notified once the assignment is committed.
    Log the assignment activity.
    """,
)
async def assign_order(
    fParam: AssignForm,
    request_info=Depends(getters.requestInfo),
):
    riderLock = None
    try:
        session = sessionMaker()
        riderLock = acquireLock(Rider.__tablename__, fParam.rider_id)
        assignedOrder = workflow.assign(
            session, fParam.rider_id, fParam.order_id, fParam.user_id, fParam.notes
        )
        session.commit()
        session.refresh(assignedOrder)

        assignedOrderData = jsonable_encoder(assignedOrder)
        logEvent(request_info, assignedOrderData)
        return makeResponse(
            assignedOrderData,
            "Order assigned to rider successfully",
            status.HTTP_201_CREATED,
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(riderLock)
        session.close()


@route_admin.post(
    URL_ASSIGN_BULK,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[List[AssignedOrderSchema]],
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.EmptyParameter("orders"),
            exceptions.UnknownValue(AssignedOrder.rider_id),
            exceptions.PartialNotFound(AssignedOrder),
            exceptions.DuplicateAssignment(1),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Assign several orders to one rider in a single transaction.
    Every order must exist and none may already be assigned to the rider, otherwise nothing is created.
    The same order may not appear twice in one request.
    An AVAILABLE rider becomes BUSY.
    Log the assignment activity.
    """,
)
async def assign_orders_bulk(
    fParam: BulkAssignForm,
    request_info=Depends(getters.requestInfo),
):
    riderLock = None
    try:
        session = sessionMaker()
        riderLock = acquireLock(Rider.__tablename__, fParam.rider_id)
        assignedOrders = workflow.bulkAssign(session, fParam.rider_id, fParam.orders)
        session.commit()
        for assignedOrder in assignedOrders:
            session.refresh(assignedOrder)

        assignedOrdersData = jsonable_encoder(assignedOrders)
        logEvent(
            request_info,
            {"rider_id": fParam.rider_id, "assigned_orders": assignedOrdersData},
        )
        return makeResponse(
            assignedOrdersData,
            f"{len(assignedOrders)} order(s) assigned to rider successfully",
            status.HTTP_201_CREATED,
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(riderLock)
        session.close()


@route_admin.get(
    URL_ASSIGNED_ORDER,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[List[AssignedOrderSchema]],
    description="""
    Fetch a list of assigned orders.
    Supports filtering by rider, order, user, status and assignment date.
    Supports sorting and pagination.
    """,
)
async def get_assigned_orders(qParam: QueryParamsForAD = Depends()):
    try:
        session = sessionMaker()
        assignedOrders = searchAssignedOrder(session, qParam)
        return makeResponse(
            jsonable_encoder(assignedOrders), "Assigned orders retrieved successfully"
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_ASSIGNED_ORDER_STATS,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignmentStatsSchema],
    description="""
    Count the assigned orders per status, optionally for one rider.
    """,
)
async def get_assigned_order_stats(rider_id: int | None = Query(default=None)):
    try:
        session = sessionMaker()
        return makeResponse(
            workflow.stats(session, rider_id),
            "Assigned order statistics retrieved successfully",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_USER_ASSIGNED_ORDERS,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[List[AssignedOrderSchema]],
    description="""
    Fetch the assigned orders delivered to a user, latest first.
    """,
)
async def get_user_assigned_orders(
    user_id: int = Path(), qParam: StatusQueryParams = Depends()
):
    try:
        session = sessionMaker()
        assignedOrders = listAssignedOrders(
            session, AssignedOrder.user_id, user_id, qParam.status
        )
        return makeResponse(
            jsonable_encoder(assignedOrders),
            "User assigned orders retrieved successfully",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_RIDER_ASSIGNED_ORDERS,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[List[AssignedOrderSchema]],
    description="""
    Fetch the assigned orders of a rider, latest first.
    """,
)
async def get_rider_assigned_orders(
    rider_id: int = Path(), qParam: StatusQueryParams = Depends()
):
    try:
        session = sessionMaker()
        assignedOrders = listAssignedOrders(
            session, AssignedOrder.rider_id, rider_id, qParam.status
        )
        return makeResponse(
            jsonable_encoder(assignedOrders),
            "Rider assigned orders retrieved successfully",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_ASSIGNED_ORDER_BY_ID,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Fetch an assigned order by ID.
    """,
)
async def get_assigned_order(assigned_order_id: int = Path()):
    try:
        session = sessionMaker()
        assignedOrder = workflow.getAssignedOrder(session, assigned_order_id)
        return makeResponse(
            jsonable_encoder(assignedOrder), "Assigned order retrieved successfully"
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_ASSIGNED_ORDER_BY_ID,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    responses=makeExceptionResponses(
        [exceptions.InvalidIdentifier, exceptions.LockAcquireTimeout]
    ),
    description="""
    Replace the notes of an assigned order.
    The status can only be changed through the status endpoint.
    Log the update activity.
    """,
)
async def update_assigned_order(
    fParam: NotesForm,
    assigned_order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    return transitionAssignedOrder(
        assigned_order_id,
        request_info,
        "Assigned order updated successfully",
        workflow.updateNotes,
        fParam.notes,
    )


@route_admin.delete(
    URL_ASSIGNED_ORDER_BY_ID,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[None],
    responses=makeExceptionResponses(
        [exceptions.InvalidIdentifier, exceptions.LockAcquireTimeout]
    ),
    description="""
    Delete an assigned order.
    The availability of the rider is derived again: a rider left without
    ASSIGNED, PICKED_UP or IN_TRANSIT orders becomes AVAILABLE.
    Log the deletion activity.
    """,
)
async def delete_assigned_order(
    assigned_order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    assignedOrderLock = None
    try:
        session = sessionMaker()
        assignedOrderLock = acquireLock(AssignedOrder.__tablename__, assigned_order_id)
        assignedOrder = workflow.remove(session, assigned_order_id)
        session.commit()

        logEvent(request_info, jsonable_encoder(assignedOrder))
        return makeResponse(None, "Assigned order deleted successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(assignedOrderLock)
        session.close()


@route_admin.patch(
    URL_ASSIGNED_ORDER_STATUS,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    responses=makeExceptionResponses(
        [
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition(
                AssignedOrderStatus.DELIVERED, AssignedOrderStatus.ASSIGNED
            ),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Move an assigned order along its status graph.
    PICKED_UP records picked_up_on, DELIVERED records delivered_on and counts one delivery for the rider,
    CANCELLED records cancelled_on.
    After DELIVERED or CANCELLED the rider becomes AVAILABLE when no ASSIGNED, PICKED_UP or IN_TRANSIT orders remain.
    Log the status update activity.

    Allowed status transitions:
        ASSIGNED → PICKED_UP, CANCELLED
        PICKED_UP → IN_TRANSIT, CANCELLED
        IN_TRANSIT → DELIVERED, CANCELLED
    """,
)
async def update_assigned_order_status(
    fParam: StatusFormForAD,
    assigned_order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    return transitionAssignedOrder(
        assigned_order_id,
        request_info,
        "Assigned order status updated successfully",
        workflow.updateStatus,
        fParam.status,
    )


@route_admin.patch(
    URL_REASSIGN,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    responses=makeExceptionResponses(
        [
            exceptions.MissingParameter("New rider ID"),
            exceptions.InvalidIdentifier,
            exceptions.UnknownValue("new_rider_id"),
            exceptions.NoOpReassignment,
            exceptions.DuplicateAssignment(),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Hand an assigned order over to another rider.
    The assignment keeps its ID, status and timestamps; only the rider changes.
    A reason, when given, is appended to the notes.
    A new rider who already holds an assignment for the same order is rejected.
    The previous rider becomes AVAILABLE when no ASSIGNED or PICKED_UP orders remain.
    An AVAILABLE new rider becomes BUSY.
    Log the reassignment activity.
    """,
)
async def reassign_order(
    fParam: ReassignForm,
    assigned_order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    return transitionAssignedOrder(
        assigned_order_id,
        request_info,
        "Order reassigned successfully",
        workflow.reassign,
        fParam.new_rider_id,
        fParam.reason,
    )


@route_admin.post(
    URL_DELIVERY_PROOF,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    responses=makeExceptionResponses(
        [
            exceptions.MissingParameter("Delivery proof"),
            exceptions.InvalidIdentifier,
            exceptions.InvalidState(
                "Order must be picked up before adding delivery proof"
            ),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Record the delivery proof of a PICKED_UP assigned order.
    The assigned order and its order become DELIVERED, and one delivery is counted for the rider.
    The rider becomes AVAILABLE when no ASSIGNED or PICKED_UP orders remain.
    Log the delivery activity.
    """,
)
async def add_delivery_proof(
    fParam: DeliveryProofFormForAD,
    assigned_order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    return transitionAssignedOrder(
        assigned_order_id,
        request_info,
        "Delivery proof added successfully",
        workflow.addDeliveryProof,
        fParam.delivery_proof,
        fParam.proof_type,
    )


@route_admin.post(
    URL_DELIVERY_PROOF_IMAGE,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    responses=makeExceptionResponses(
        [
            exceptions.InvalidImage,
            exceptions.InvalidIdentifier,
            exceptions.InvalidState(
                "Order must be picked up before adding delivery proof"
            ),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Record a photo as the delivery proof of a PICKED_UP assigned order.
    The image is resized and stored in the `delivery-proofs` bucket in MinIO.
    Otherwise behaves like the delivery proof endpoint.
    """,
)
async def add_delivery_proof_image(
    fParam: ProofImageFormForAD = Depends(),
    assigned_order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        imageBytes = await readProofImage(fParam.file)
    except Exception as e:
        exceptions.handle(e)
    return addProofImage(assigned_order_id, request_info, imageBytes)


@route_admin.post(
    URL_VERIFY_PICKUP,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    responses=makeExceptionResponses(
        [
            exceptions.MissingParameter("OTP"),
            exceptions.InvalidIdentifier,
            exceptions.InvalidState("Order must be in assigned status to verify pickup"),
            exceptions.InvalidOTP,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Verify the pickup of an ASSIGNED order with its OTP.
    The OTP is the last four characters of the order ID.
    It is a placeholder code and is not meant as a security boundary.
    The assigned order becomes PICKED_UP and the order becomes CONFIRMED.
    Log the pickup activity.
    """,
)
async def verify_pickup(
    fParam: VerifyPickupFormForAD,
    assigned_order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    return transitionAssignedOrder(
        assigned_order_id,
        request_info,
        "Pickup verified successfully",
        workflow.verifyPickup,
        fParam.otp,
    )


@route_admin.get(
    URL_TRACKING,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[TrackingSchema],
    responses=makeExceptionResponses(
        [exceptions.InvalidIdentifier, exceptions.UnknownValue(AssignedOrder.rider_id)]
    ),
    description="""
    Fetch the tracking view of an assigned order.
    Includes the public details of the rider, the order and the status history.
    The status history lists ASSIGNED, PICKED_UP and DELIVERED as they happened.
    """,
)
async def get_tracking_info(assigned_order_id: int = Path()):
    try:
        session = sessionMaker()
        trackingInfo = workflow.trackingInfo(session, assigned_order_id)
        return makeResponse(
            jsonable_encoder(trackingInfo), "Tracking info retrieved successfully"
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Rider]
@route_rider.get(
    URL_ASSIGNED_ORDER,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[List[AssignedOrderSchema]],
    description="""
    Fetch the assigned orders of the acting rider.
    Supports filtering by order, user, status and assignment date.
    Supports sorting and pagination.
    """,
)
async def get_assigned_orders(qParam: QueryParamsForRD = Depends()):
    try:
        session = sessionMaker()
        assignedOrders = searchAssignedOrder(session, qParam)
        return makeResponse(
            jsonable_encoder(assignedOrders),
            "Rider assigned orders retrieved successfully",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_rider.get(
    URL_ASSIGNED_ORDER_STATS,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignmentStatsSchema],
    description="""
    Count the assigned orders of the acting rider per status.
    """,
)
async def get_assigned_order_stats(rider_id: int = Query()):
    try:
        session = sessionMaker()
        return makeResponse(
            workflow.stats(session, rider_id),
            "Assigned order statistics retrieved successfully",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_rider.get(
    URL_ASSIGNED_ORDER_BY_ID,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    responses=makeExceptionResponses(
        [exceptions.InvalidIdentifier, exceptions.NoPermission]
    ),
    description="""
    Fetch an assigned order of the acting rider by ID.
    """,
)
async def get_assigned_order(
    assigned_order_id: int = Path(), rider_id: int = Query()
):
    try:
        session = sessionMaker()
        assignedOrder = workflow.getAssignedOrder(session, assigned_order_id, rider_id)
        return makeResponse(
            jsonable_encoder(assignedOrder), "Assigned order retrieved successfully"
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_rider.patch(
    URL_ASSIGNED_ORDER_STATUS,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    responses=makeExceptionResponses(
        [
            exceptions.InvalidIdentifier,
            exceptions.NoPermission,
            exceptions.InvalidStateTransition(
                AssignedOrderStatus.DELIVERED, AssignedOrderStatus.ASSIGNED
            ),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Move an assigned order of the acting rider along its status graph.
    Behaves like the administrator endpoint; the order must be assigned to the acting rider.

    Allowed status transitions:
        ASSIGNED → PICKED_UP, CANCELLED
        PICKED_UP → IN_TRANSIT, CANCELLED
        IN_TRANSIT → DELIVERED, CANCELLED
    """,
)
async def update_assigned_order_status(
    fParam: StatusFormForRD,
    assigned_order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    return transitionAssignedOrder(
        assigned_order_id,
        request_info,
        "Assigned order status updated successfully",
        workflow.updateStatus,
        fParam.status,
        fParam.rider_id,
    )


@route_rider.post(
    URL_DELIVERY_PROOF,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    responses=makeExceptionResponses(
        [
            exceptions.MissingParameter("Delivery proof"),
            exceptions.InvalidIdentifier,
            exceptions.NoPermission,
            exceptions.InvalidState(
                "Order must be picked up before adding delivery proof"
            ),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Record the delivery proof of a PICKED_UP order of the acting rider.
    The assigned order and its order become DELIVERED, and one delivery is counted for the rider.
    """,
)
async def add_delivery_proof(
    fParam: DeliveryProofFormForRD,
    assigned_order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    return transitionAssignedOrder(
        assigned_order_id,
        request_info,
        "Delivery proof added successfully",
        workflow.addDeliveryProof,
        fParam.delivery_proof,
        fParam.proof_type,
        fParam.rider_id,
    )


@route_rider.post(
    URL_DELIVERY_PROOF_IMAGE,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    responses=makeExceptionResponses(
        [
            exceptions.InvalidImage,
            exceptions.InvalidIdentifier,
            exceptions.NoPermission,
            exceptions.InvalidState(
                "Order must be picked up before adding delivery proof"
            ),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Record a photo as the delivery proof of a PICKED_UP order of the acting rider.
    The image is resized and stored in the `delivery-proofs` bucket in MinIO.
    """,
)
async def add_delivery_proof_image(
    fParam: ProofImageFormForRD = Depends(),
    assigned_order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        imageBytes = await readProofImage(fParam.file)
    except Exception as e:
        exceptions.handle(e)
    return addProofImage(
        assigned_order_id, request_info, imageBytes, fParam.rider_id
    )


@route_rider.post(
    URL_VERIFY_PICKUP,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[AssignedOrderSchema],
    responses=makeExceptionResponses(
        [
            exceptions.MissingParameter("OTP"),
            exceptions.InvalidIdentifier,
            exceptions.NoPermission,
            exceptions.InvalidState("Order must be in assigned status to verify pickup"),
            exceptions.InvalidOTP,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Verify the pickup of an ASSIGNED order of the acting rider with its OTP.
    The OTP is the last four characters of the order ID and is only a placeholder code.
    The assigned order becomes PICKED_UP and the order becomes CONFIRMED.
    """,
)
async def verify_pickup(
    fParam: VerifyPickupFormForRD,
    assigned_order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    return transitionAssignedOrder(
        assigned_order_id,
        request_info,
        "Pickup verified successfully",
        workflow.verifyPickup,
        fParam.otp,
        fParam.rider_id,
    )


@route_rider.get(
    URL_TRACKING,
    tags=["Assigned Order"],
    response_model=schemas.Envelope[TrackingSchema],
    responses=makeExceptionResponses(
        [exceptions.InvalidIdentifier, exceptions.NoPermission]
    ),
    description="""
    Fetch the tracking view of an assigned order of the acting rider.
    """,
)
async def get_tracking_info(assigned_order_id: int = Path(), rider_id: int = Query()):
    try:
        session = sessionMaker()
        trackingInfo = workflow.trackingInfo(session, assigned_order_id, rider_id)
        return makeResponse(
            jsonable_encoder(trackingInfo), "Tracking info retrieved successfully"
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
