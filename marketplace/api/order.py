from datetime import datetime, timezone
from decimal import Decimal
from enum import IntEnum
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field, model_validator

from marketplace.src.db import Order, sessionMaker
from marketplace.src import directory, exceptions, getters, schemas, workflow
from marketplace.src.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from marketplace.src.enums import OrderIn, OrderStatus, StoreType
from marketplace.src.loggers import logEvent
from marketplace.src.functions import enumStr, makeExceptionResponses, makeResponse
from marketplace.src.urls import (
    URL_ORDER,
    URL_ORDER_BY_ID,
    URL_ORDER_CANCEL,
    URL_ORDER_STATUS,
)

route_admin = APIRouter()


## Output Schema
class OrderSchema(BaseModel):
    id: int
    user_id: int
    store_type: int
    store_id: int
    store_name: str
    items: List[Dict[str, Any]]
    status: int
    delivery_address: Dict[str, Any]
    sub_total: float
    delivery_charge: float
    tax: float
    discount: float
    total_amount: float
    notes: Optional[str] = None
    estimated_delivery_at: Optional[datetime] = None
    delivered_on: Optional[datetime] = None
    cancelled_on: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    updated_on: Optional[datetime] = None
    created_on: datetime


## Input Forms
class OrderItemForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    item_id: int
    item_type: str = Field(min_length=1, max_length=32)
    name: str = Field(min_length=1, max_length=128)
    price: Decimal = Field(ge=0, decimal_places=2)
    quantity: int = Field(ge=1)
    image: str | None = Field(default=None, max_length=512)
    description: str | None = Field(default=None, max_length=512)


class DeliveryAddressForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    street: str = Field(min_length=1, max_length=256)
    city: str = Field(min_length=1, max_length=64)
    state: str = Field(min_length=1, max_length=64)
    zip_code: str = Field(min_length=1, max_length=16)
    country: str = Field(min_length=1, max_length=64)
    landmark: str | None = Field(default=None, max_length=128)
    contact_phone: str = Field(min_length=1, max_length=32)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class CreateForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: int
    store_type: StoreType = Field(description=enumStr(StoreType))
    store_id: int
    store_name: str = Field(min_length=1, max_length=128)
    items: List[OrderItemForm] = Field(min_length=1)
    delivery_address: DeliveryAddressForm
    sub_total: Decimal = Field(ge=0, decimal_places=2)
    delivery_charge: Decimal = Field(default=Decimal(0), ge=0, decimal_places=2)
    tax: Decimal = Field(default=Decimal(0), ge=0, decimal_places=2)
    discount: Decimal = Field(default=Decimal(0), ge=0, decimal_places=2)
    notes: str | None = Field(default=None, max_length=1024)
    estimated_delivery_at: datetime | None = None

    @model_validator(mode="after")
    def checkDiscount(self):
        if self.totalAmount() < 0:
            raise ValueError("discount cannot exceed the order amount")
        return self

    def totalAmount(self) -> Decimal:
        return self.sub_total + self.delivery_charge + self.tax - self.discount


class StatusForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: OrderStatus = Field(description=enumStr(OrderStatus))


class CancelForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    cancellation_reason: str | None = Field(default=None, max_length=512)


## Query Params
class OrderBy(IntEnum):
    id = 1
    total_amount = 2
    updated_on = 3
    created_on = 4


class QueryParams(BaseModel):
    # Filters
    user_id: int | None = Field(Query(default=None))
    store_type: StoreType | None = Field(
        Query(default=None, description=enumStr(StoreType))
    )
    store_id: int | None = Field(Query(default=None))
    status: OrderStatus | None = Field(
        Query(default=None, description=enumStr(OrderStatus))
    )
    status_list: List[OrderStatus] | None = Field(
        Query(default=None, description=enumStr(OrderStatus))
    )
    # total_amount based
    total_amount_ge: float | None = Field(Query(default=None))
    total_amount_le: float | None = Field(Query(default=None))
    # created_on based
    created_on_ge: datetime | None = Field(Query(default=None))
    created_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.created_on, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=DEFAULT_PAGE_LIMIT, gt=0, le=MAX_PAGE_LIMIT))


# Functions
def searchOrder(session: Session, qParam: QueryParams) -> List[Order]:
    query = session.query(Order)

    # Filters
    if qParam.user_id is not None:
        query = query.filter(Order.user_id == qParam.user_id)
    if qParam.store_type is not None:
        query = query.filter(Order.store_type == qParam.store_type)
    if qParam.store_id is not None:
        query = query.filter(Order.store_id == qParam.store_id)
    # status based
    if qParam.status is not None:
        query = query.filter(Order.status == qParam.status)
    if qParam.status_list is not None:
        query = query.filter(Order.status.in_(qParam.status_list))
    # total_amount based filters
    if qParam.total_amount_ge is not None:
        query = query.filter(Order.total_amount >= qParam.total_amount_ge)
    if qParam.total_amount_le is not None:
        query = query.filter(Order.total_amount <= qParam.total_amount_le)
    # created_on based filters
    if qParam.created_on_ge is not None:
        query = query.filter(Order.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Order.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Order, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


def findOrder(session: Session, order_id: int) -> Order:
    order = getters.order(session, order_id)
    if order is None:
        raise exceptions.InvalidIdentifier()
    return order


## API endpoints [Admin]
@route_admin.post(
    URL_ORDER,
    tags=["Order"],
    response_model=schemas.Envelope[OrderSchema],
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.RequestValidation("items")]),
    description="""
    Create a new order.
    At least one item is required.
    The total amount is computed as sub_total + delivery_charge + tax - discount.
    The order is created in the PENDING status.
    Log the order creation activity.
    """,
)
async def create_order(
    fParam: CreateForm,
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        order = Order(
            user_id=fParam.user_id,
            store_type=fParam.store_type,
            store_id=fParam.store_id,
            store_name=fParam.store_name,
            items=jsonable_encoder(fParam.items),
            status=OrderStatus.PENDING,
            delivery_address=jsonable_encoder(fParam.delivery_address),
            sub_total=fParam.sub_total,
            delivery_charge=fParam.delivery_charge,
            tax=fParam.tax,
            discount=fParam.discount,
            total_amount=fParam.totalAmount(),
            notes=fParam.notes,
            estimated_delivery_at=fParam.estimated_delivery_at,
        )
        session.add(order)
        session.commit()
        session.refresh(order)

        orderData = jsonable_encoder(order)
        logEvent(request_info, orderData)
        return makeResponse(
            orderData, "Order created successfully", status.HTTP_201_CREATED
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_ORDER,
    tags=["Order"],
    response_model=schemas.Envelope[List[OrderSchema]],
    description="""
    Fetch a list of orders.
    Supports filtering by user, store type, store, status, amount range and creation date.
    Supports sorting and pagination.
    """,
)
async def get_orders(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        orders = searchOrder(session, qParam)
        return makeResponse(jsonable_encoder(orders), "Orders retrieved successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_ORDER_BY_ID,
    tags=["Order"],
    response_model=schemas.Envelope[OrderSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Fetch an order by ID.
    """,
)
async def get_order(order_id: int = Path()):
    try:
        session = sessionMaker()
        order = findOrder(session, order_id)
        return makeResponse(jsonable_encoder(order), "Order retrieved successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_ORDER_STATUS,
    tags=["Order"],
    response_model=schemas.Envelope[OrderSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Set the status of an order.
    Moving to DELIVERED records delivered_on and moving to CANCELLED records cancelled_on.
    The assignment of the order to a rider is not affected.
    Log the order update activity.
    """,
)
async def update_order_status(
    fParam: StatusForm,
    order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        findOrder(session, order_id)
        order = directory.setOrderStatus(session, order_id, fParam.status)
        session.commit()
        session.refresh(order)

        orderData = jsonable_encoder(order)
        logEvent(request_info, orderData)
        return makeResponse(
            orderData, f"Order status updated to {OrderStatus(order.status).name}"
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_ORDER_CANCEL,
    tags=["Order"],
    response_model=schemas.Envelope[OrderSchema],
    responses=makeExceptionResponses(
        [exceptions.InvalidIdentifier, exceptions.InvalidState("status")]
    ),
    description="""
    Cancel an order.
    Delivered or already cancelled orders cannot be cancelled.
    Records cancelled_on and the cancellation reason.
    Log the order cancellation activity.
    """,
)
async def cancel_order(
    fParam: CancelForm,
    order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        order = findOrder(session, order_id)
        if order.status in [OrderStatus.DELIVERED, OrderStatus.CANCELLED]:
            raise exceptions.InvalidState("Order cannot be cancelled")

        order.status = OrderStatus.CANCELLED
        order.cancelled_on = datetime.now(timezone.utc)
        order.cancellation_reason = fParam.cancellation_reason or "Cancelled by user"
        session.commit()
        session.refresh(order)

        orderData = jsonable_encoder(order)
        logEvent(request_info, orderData)
        return makeResponse(orderData, "Order cancelled successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.delete(
    URL_ORDER_BY_ID,
    tags=["Order"],
    response_model=schemas.Envelope[None],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Delete an order by ID.
    The assignments of the order are removed with it, and every rider who
    held one of them becomes AVAILABLE when no active assignment remains.
    Log the order deletion activity.
    """,
)
async def delete_order(
    order_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        order = findOrder(session, order_id)
        workflow.removeOrderAssignments(session, order_id)
        session.delete(order)
        session.commit()

        logEvent(request_info, jsonable_encoder(order))
        return makeResponse(None, "Order deleted successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
