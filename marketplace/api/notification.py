from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field

from marketplace.src.db import Notification, sessionMaker
from marketplace.src import exceptions, getters, schemas
from marketplace.src.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from marketplace.src.enums import NotificationType, OrderIn
from marketplace.src.loggers import logEvent
from marketplace.src.functions import enumStr, makeExceptionResponses, makeResponse
from marketplace.src.urls import (
    URL_NOTIFICATION,
    URL_NOTIFICATION_BY_ID,
    URL_NOTIFICATION_READ,
    URL_NOTIFICATION_READ_ALL,
    URL_NOTIFICATION_UNREAD_COUNT,
)

route_admin = APIRouter()


## Output Schema
class NotificationSchema(BaseModel):
    id: int
    user_id: int
    type: int
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    read_on: Optional[datetime] = None
    updated_on: Optional[datetime] = None
    created_on: datetime


class UnreadCountSchema(BaseModel):
    user_id: int
    unread_count: int


class ReadAllSchema(BaseModel):
    user_id: int
    updated_count: int


## Input Forms
class ReadAllForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: int


## Query Params
class OrderBy(IntEnum):
    id = 1
    created_on = 2
    read_on = 3


class QueryParams(BaseModel):
    user_id: int | None = Field(Query(default=None))
    type: NotificationType | None = Field(
        Query(default=None, description=enumStr(NotificationType))
    )
    is_read: bool | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.created_on, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=DEFAULT_PAGE_LIMIT, gt=0, le=MAX_PAGE_LIMIT))


# Functions
def searchNotification(session: Session, qParam: QueryParams) -> List[Notification]:
    query = session.query(Notification)

    # Filters
    if qParam.user_id is not None:
        query = query.filter(Notification.user_id == qParam.user_id)
    if qParam.type is not None:
        query = query.filter(Notification.type == qParam.type)
    if qParam.is_read is not None:
        query = query.filter(Notification.is_read == qParam.is_read)

    # Ordering
    orderingAttribute = getattr(Notification, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


def findNotification(session: Session, notification_id: int) -> Notification:
    notification = session.query(Notification).filter(
        Notification.id == notification_id
    ).first()
    if notification is None:
        raise exceptions.InvalidIdentifier()
    return notification


## API endpoints [Admin]
@route_admin.get(
    URL_NOTIFICATION,
    tags=["Notification"],
    response_model=schemas.Envelope[List[NotificationSchema]],
    description="""
    Fetch a list of notifications.
    Supports filtering by user, type and read state.
    Supports sorting and pagination.
    """,
)
async def get_notifications(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        notifications = searchNotification(session, qParam)
        return makeResponse(
            jsonable_encoder(notifications), "Notifications retrieved successfully"
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_NOTIFICATION_UNREAD_COUNT,
    tags=["Notification"],
    response_model=schemas.Envelope[UnreadCountSchema],
    description="""
    Count the unread notifications of a user.
    """,
)
async def get_unread_count(user_id: int = Query()):
    try:
        session = sessionMaker()
        unreadCount = (
            session.query(Notification)
            .filter(Notification.user_id == user_id)
            .filter(Notification.is_read == False)
            .count()
        )
        return makeResponse(
            {"user_id": user_id, "unread_count": unreadCount},
            "Unread count retrieved successfully",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_NOTIFICATION_READ_ALL,
    tags=["Notification"],
    response_model=schemas.Envelope[ReadAllSchema],
    description="""
    Mark every unread notification of a user as read.
    Log the update activity.
    """,
)
async def mark_all_read(
    fParam: ReadAllForm,
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        updatedCount = (
            session.query(Notification)
            .filter(Notification.user_id == fParam.user_id)
            .filter(Notification.is_read == False)
            .update(
                {
                    Notification.is_read: True,
                    Notification.read_on: datetime.now(timezone.utc),
                },
                synchronize_session=False,
            )
        )
        session.commit()

        data = {"user_id": fParam.user_id, "updated_count": updatedCount}
        logEvent(request_info, data)
        return makeResponse(data, "All notifications marked as read")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_NOTIFICATION_BY_ID,
    tags=["Notification"],
    response_model=schemas.Envelope[NotificationSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Fetch a notification by ID.
    """,
)
async def get_notification(notification_id: int = Path()):
    try:
        session = sessionMaker()
        notification = findNotification(session, notification_id)
        return makeResponse(
            jsonable_encoder(notification), "Notification retrieved successfully"
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_NOTIFICATION_READ,
    tags=["Notification"],
    response_model=schemas.Envelope[NotificationSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Mark a notification as read.
    The first read time is kept when the notification is already read.
    Log the update activity.
    """,
)
async def mark_read(
    notification_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        notification = findNotification(session, notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_on = datetime.now(timezone.utc)
            session.commit()
            session.refresh(notification)

        notificationData = jsonable_encoder(notification)
        logEvent(request_info, notificationData)
        return makeResponse(notificationData, "Notification marked as read")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.delete(
    URL_NOTIFICATION_BY_ID,
    tags=["Notification"],
    response_model=schemas.Envelope[None],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Delete a notification.
    Log the deletion activity.
    """,
)
async def delete_notification(
    notification_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        notification = findNotification(session, notification_id)
        session.delete(notification)
        session.commit()

        logEvent(request_info, jsonable_encoder(notification))
        return makeResponse(None, "Notification deleted successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
