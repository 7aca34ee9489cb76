from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy import func
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic_extra_types.phone_numbers import PhoneNumber

from marketplace.src.db import Rider, sessionMaker
from marketplace.src import argon2, exceptions, getters, schemas
from marketplace.src.constants import (
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
    REGEX_PASSWORD,
    REGEX_VEHICLE_NUMBER,
)
from marketplace.src.enums import OrderIn, RiderStatus, VehicleType
from marketplace.src.loggers import logEvent
from marketplace.src.functions import (
    enumStr,
    makeExceptionResponses,
    makeResponse,
    updateIfChanged,
)
from marketplace.src.urls import (
    URL_RIDER,
    URL_RIDER_ACTIVE,
    URL_RIDER_AVAILABLE,
    URL_RIDER_BY_ID,
    URL_RIDER_LOCATION,
    URL_RIDER_STATS,
)

route_admin = APIRouter()
route_rider = APIRouter()


## Output Schema
class RiderSchema(BaseModel):
    id: int
    name: str
    phone: str
    email: Optional[str] = None
    vehicle_type: int
    vehicle_number: str
    license_number: str
    status: int
    is_active: bool
    rating: float
    total_deliveries: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    profile_image: Optional[str] = None
    updated_on: Optional[datetime] = None
    created_on: datetime


class RiderStatsSchema(BaseModel):
    total_riders: int
    active_riders: int
    available_riders: int
    busy_riders: int
    offline_riders: int
    average_rating: float
    total_deliveries: int


## Input Forms
class CreateForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=64)
    phone: PhoneNumber = Field(description="Phone number in RFC3966 format")
    email: EmailStr | None = Field(
        default=None, max_length=256, description="Email in RFC 5322 format"
    )
    password: str = Field(pattern=REGEX_PASSWORD, min_length=8, max_length=32)
    vehicle_type: VehicleType = Field(description=enumStr(VehicleType))
    vehicle_number: str = Field(pattern=REGEX_VEHICLE_NUMBER, max_length=16)
    license_number: str = Field(min_length=1, max_length=32)
    status: RiderStatus = Field(
        default=RiderStatus.OFFLINE, description=enumStr(RiderStatus)
    )
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    address: str | None = Field(default=None, max_length=512)
    profile_image: str | None = Field(default=None, max_length=512)


class UpdateForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=64)
    phone: PhoneNumber | None = Field(
        default=None, description="Phone number in RFC3966 format"
    )
    email: EmailStr | None = Field(
        default=None, max_length=256, description="Email in RFC 5322 format"
    )
    password: str | None = Field(
        default=None, pattern=REGEX_PASSWORD, min_length=8, max_length=32
    )
    vehicle_type: VehicleType | None = Field(
        default=None, description=enumStr(VehicleType)
    )
    vehicle_number: str | None = Field(
        default=None, pattern=REGEX_VEHICLE_NUMBER, max_length=16
    )
    license_number: str | None = Field(default=None, min_length=1, max_length=32)
    status: RiderStatus | None = Field(default=None, description=enumStr(RiderStatus))
    profile_image: str | None = Field(default=None, max_length=512)


class LocationForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: str | None = Field(default=None, max_length=512)


## Query Params
class OrderBy(IntEnum):
    id = 1
    name = 2
    rating = 3
    total_deliveries = 4
    updated_on = 5
    created_on = 6


class QueryParams(BaseModel):
    # Filters
    name: str | None = Field(Query(default=None))
    phone: str | None = Field(Query(default=None))
    status: RiderStatus | None = Field(
        Query(default=None, description=enumStr(RiderStatus))
    )
    vehicle_type: VehicleType | None = Field(
        Query(default=None, description=enumStr(VehicleType))
    )
    is_active: bool | None = Field(Query(default=None))
    min_rating: float | None = Field(Query(default=None, ge=0, le=5))
    # id based
    id_list: List[int] | None = Field(Query(default=None))
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
def searchRider(session: Session, qParam: QueryParams) -> List[Rider]:
    query = session.query(Rider)

    # Filters
    if qParam.name is not None:
        query = query.filter(Rider.name.ilike(f"%{qParam.name}%"))
    if qParam.phone is not None:
        query = query.filter(Rider.phone.ilike(f"%{qParam.phone}%"))
    if qParam.status is not None:
        query = query.filter(Rider.status == qParam.status)
    if qParam.vehicle_type is not None:
        query = query.filter(Rider.vehicle_type == qParam.vehicle_type)
    if qParam.is_active is not None:
        query = query.filter(Rider.is_active == qParam.is_active)
    if qParam.min_rating is not None:
        query = query.filter(Rider.rating >= qParam.min_rating)
    # id based filters
    if qParam.id_list is not None:
        query = query.filter(Rider.id.in_(qParam.id_list))
    # created_on based filters
    if qParam.created_on_ge is not None:
        query = query.filter(Rider.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Rider.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Rider, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


def riderStats(session: Session) -> dict:
    total, active, available, busy, offline, averageRating, deliveries = session.query(
        func.count(Rider.id),
        func.count(Rider.id).filter(Rider.is_active.is_(True)),
        func.count(Rider.id).filter(Rider.status == RiderStatus.AVAILABLE),
        func.count(Rider.id).filter(Rider.status == RiderStatus.BUSY),
        func.count(Rider.id).filter(Rider.status == RiderStatus.OFFLINE),
        func.avg(Rider.rating),
        func.sum(Rider.total_deliveries),
    ).one()
    return {
        "total_riders": total,
        "active_riders": active,
        "available_riders": available,
        "busy_riders": busy,
        "offline_riders": offline,
        "average_rating": float(averageRating or 0),
        "total_deliveries": int(deliveries or 0),
    }


def findRider(session: Session, rider_id: int) -> Rider:
    rider = getters.rider(session, rider_id)
    if rider is None:
        raise exceptions.InvalidIdentifier()
    return rider


def updateLocation(session: Session, rider_id: int, fParam: LocationForm) -> Rider:
    rider = findRider(session, rider_id)
    rider.latitude = fParam.latitude
    rider.longitude = fParam.longitude
    if fParam.address is not None:
        rider.address = fParam.address
    return rider


## API endpoints [Admin]
@route_admin.post(
    URL_RIDER,
    tags=["Rider"],
    response_model=schemas.Envelope[RiderSchema],
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.UniqueViolation("phone")]),
    description="""
    Register a new rider.
    The password is hashed using Argon2 before storing.
    The phone number and the email must be unique across riders.
    The rider starts in the OFFLINE status unless another status is provided.
    Log the rider creation activity.
    """,
)
async def create_rider(
    fParam: CreateForm,
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        rider = Rider(
            name=fParam.name,
            phone=fParam.phone,
            email=fParam.email,
            password=argon2.makePassword(fParam.password),
            vehicle_type=fParam.vehicle_type,
            vehicle_number=fParam.vehicle_number,
            license_number=fParam.license_number,
            status=fParam.status,
            latitude=fParam.latitude,
            longitude=fParam.longitude,
            address=fParam.address,
            profile_image=fParam.profile_image,
        )
        session.add(rider)
        session.commit()
        session.refresh(rider)

        riderData = jsonable_encoder(rider, exclude={"password"})
        logEvent(request_info, riderData)
        return makeResponse(
            riderData, "Rider created successfully", status.HTTP_201_CREATED
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_RIDER,
    tags=["Rider"],
    response_model=schemas.Envelope[List[RiderSchema]],
    description="""
    Fetch a list of riders.
    Supports filtering by name, phone, status, vehicle type, active flag and minimum rating.
    Supports sorting and pagination.
    """,
)
async def get_riders(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        riders = searchRider(session, qParam)
        return makeResponse(
            jsonable_encoder(riders, exclude={"password"}),
            "Riders retrieved successfully",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_RIDER_AVAILABLE,
    tags=["Rider"],
    response_model=schemas.Envelope[List[RiderSchema]],
    description="""
    Fetch the riders who can take an order right now.
    A rider is listed when the status is AVAILABLE and the account is active.
    Riders with the best rating are listed first.
    """,
)
async def get_available_riders():
    try:
        session = sessionMaker()
        riders = (
            session.query(Rider)
            .filter(Rider.status == RiderStatus.AVAILABLE)
            .filter(Rider.is_active.is_(True))
            .order_by(Rider.rating.desc(), Rider.id.asc())
            .all()
        )
        return makeResponse(
            jsonable_encoder(riders, exclude={"password"}),
            "Available riders retrieved successfully",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_RIDER_STATS,
    tags=["Rider"],
    response_model=schemas.Envelope[RiderStatsSchema],
    description="""
    Fetch aggregate figures over all riders.
    Includes the count per status, the active count, the average rating and the total deliveries.
    """,
)
async def get_rider_stats():
    try:
        session = sessionMaker()
        return makeResponse(
            riderStats(session), "Rider statistics retrieved successfully"
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_RIDER_BY_ID,
    tags=["Rider"],
    response_model=schemas.Envelope[RiderSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Fetch a rider by ID.
    """,
)
async def get_rider(rider_id: int = Path()):
    try:
        session = sessionMaker()
        rider = findRider(session, rider_id)
        return makeResponse(
            jsonable_encoder(rider, exclude={"password"}),
            "Rider retrieved successfully",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_RIDER_BY_ID,
    tags=["Rider"],
    response_model=schemas.Envelope[RiderSchema],
    responses=makeExceptionResponses(
        [exceptions.InvalidIdentifier, exceptions.UniqueViolation("phone")]
    ),
    description="""
    Update an existing rider by ID.
    Only the provided fields are changed. A new password is hashed using Argon2.
    Log the rider update activity if any field changed.
    """,
)
async def update_rider(
    fParam: UpdateForm,
    rider_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        rider = findRider(session, rider_id)

        updateIfChanged(
            rider,
            fParam,
            [
                Rider.name.key,
                Rider.phone.key,
                Rider.email.key,
                Rider.vehicle_type.key,
                Rider.vehicle_number.key,
                Rider.license_number.key,
                Rider.status.key,
                Rider.profile_image.key,
            ],
        )
        if fParam.password is not None:
            rider.password = argon2.makePassword(fParam.password)

        haveUpdates = session.is_modified(rider)
        if haveUpdates:
            session.commit()
            session.refresh(rider)

        riderData = jsonable_encoder(rider, exclude={"password"})
        if haveUpdates:
            logEvent(request_info, riderData)
        return makeResponse(riderData, "Rider updated successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_RIDER_ACTIVE,
    tags=["Rider"],
    response_model=schemas.Envelope[RiderSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Toggle the active flag of a rider.
    An inactive rider is never listed among the available riders.
    """,
)
async def toggle_rider_active(
    rider_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        rider = findRider(session, rider_id)
        rider.is_active = not rider.is_active
        session.commit()
        session.refresh(rider)

        riderData = jsonable_encoder(rider, exclude={"password"})
        logEvent(request_info, riderData)
        return makeResponse(riderData, "Rider status updated successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_RIDER_LOCATION,
    tags=["Rider"],
    response_model=schemas.Envelope[RiderSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Update the current location of a rider.
    """,
)
async def update_rider_location(
    fParam: LocationForm,
    rider_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        rider = updateLocation(session, rider_id, fParam)
        session.commit()
        session.refresh(rider)

        riderData = jsonable_encoder(rider, exclude={"password"})
        logEvent(request_info, riderData)
        return makeResponse(riderData, "Rider location updated successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.delete(
    URL_RIDER_BY_ID,
    tags=["Rider"],
    response_model=schemas.Envelope[None],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Delete a rider by ID.
    The assignments of the rider are removed with it.
    Log the rider deletion activity.
    """,
)
async def delete_rider(
    rider_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        rider = findRider(session, rider_id)
        session.delete(rider)
        session.commit()

        logEvent(request_info, jsonable_encoder(rider, exclude={"password"}))
        return makeResponse(None, "Rider deleted successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Rider]
@route_rider.get(
    URL_RIDER_BY_ID,
    tags=["Rider"],
    response_model=schemas.Envelope[RiderSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Fetch the profile of the acting rider.
    """,
)
async def get_rider(rider_id: int = Path()):
    try:
        session = sessionMaker()
        rider = findRider(session, rider_id)
        return makeResponse(
            jsonable_encoder(rider, exclude={"password"}),
            "Rider retrieved successfully",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_rider.patch(
    URL_RIDER_LOCATION,
    tags=["Rider"],
    response_model=schemas.Envelope[RiderSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Report the current location of the acting rider.
    """,
)
async def update_rider_location(
    fParam: LocationForm,
    rider_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        rider = updateLocation(session, rider_id, fParam)
        session.commit()
        session.refresh(rider)

        riderData = jsonable_encoder(rider, exclude={"password"})
        logEvent(request_info, riderData)
        return makeResponse(riderData, "Rider location updated successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
