from datetime import datetime, timezone
from enum import IntEnum
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy import func
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field

from marketplace.src.db import Review, sessionMaker
from marketplace.src import directory, exceptions, getters, schemas
from marketplace.src.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from marketplace.src.enums import AssignedOrderStatus, OrderIn
from marketplace.src.loggers import logEvent
from marketplace.src.functions import (
    enumStr,
    makeExceptionResponses,
    makeResponse,
    updateIfChanged,
)
from marketplace.src.urls import (
    URL_REVIEW,
    URL_REVIEW_BY_ID,
    URL_REVIEW_MODERATE,
    URL_REVIEW_REPLY,
    URL_REVIEW_STATS,
)

route_admin = APIRouter()
route_rider = APIRouter()


## Output Schema
class ReviewSchema(BaseModel):
    id: int
    assigned_order_id: Optional[int] = None
    rider_id: int
    order_id: int
    user_id: int
    rating: int
    comment: Optional[str] = None
    reply: Optional[str] = None
    replied_on: Optional[datetime] = None
    is_approved: bool
    updated_on: Optional[datetime] = None
    created_on: datetime


class ReviewStatsSchema(BaseModel):
    rider_id: Optional[int] = None
    total_reviews: int
    average_rating: float
    rating_distribution: Dict[int, int]
    with_comments: int


## Input Forms
class CreateForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    assigned_order_id: int = Field(description="The delivered assignment being reviewed")
    user_id: int = Field(description="The user who received the delivery")
    rating: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1024)


class UpdateForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: int = Field(description="The author of the review")
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1024)


class ReplyForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reply: str = Field(min_length=1, max_length=1024)


class ModerateForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    is_approved: bool


## Query Params
class OrderBy(IntEnum):
    id = 1
    rating = 2
    updated_on = 3
    created_on = 4


class QueryParamsForAD(BaseModel):
    # Filters
    rider_id: int | None = Field(Query(default=None))
    order_id: int | None = Field(Query(default=None))
    user_id: int | None = Field(Query(default=None))
    rating: int | None = Field(Query(default=None, ge=1, le=5))
    min_rating: int | None = Field(Query(default=None, ge=1, le=5))
    is_approved: bool | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.created_on, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=DEFAULT_PAGE_LIMIT, gt=0, le=MAX_PAGE_LIMIT))


class QueryParamsForRD(QueryParamsForAD):
    rider_id: int = Field(Query())


# Functions
def searchReview(
    session: Session,
    qParam: QueryParamsForAD | QueryParamsForRD,
    approvedOnly: bool = False,
) -> List[Review]:
    query = session.query(Review)
    if approvedOnly:
        query = query.filter(Review.is_approved.is_(True))

    # Filters
    if qParam.rider_id is not None:
        query = query.filter(Review.rider_id == qParam.rider_id)
    if qParam.order_id is not None:
        query = query.filter(Review.order_id == qParam.order_id)
    if qParam.user_id is not None:
        query = query.filter(Review.user_id == qParam.user_id)
    if qParam.rating is not None:
        query = query.filter(Review.rating == qParam.rating)
    if qParam.min_rating is not None:
        query = query.filter(Review.rating >= qParam.min_rating)
    if qParam.is_approved is not None:
        query = query.filter(Review.is_approved == qParam.is_approved)

    # Ordering
    orderingAttribute = getattr(Review, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


def reviewStats(session: Session, rider_id: int | None = None) -> dict:
    """
    Aggregate the approved reviews, over one rider or over every rider.

    The distribution always carries the five ratings, highest first.
    """
    query = session.query(Review).filter(Review.is_approved.is_(True))
    if rider_id is not None:
        query = query.filter(Review.rider_id == rider_id)
    reviews = query.subquery()

    total, averageRating, withComments = session.query(
        func.count(reviews.c.id),
        func.avg(reviews.c.rating),
        func.count(reviews.c.id).filter(reviews.c.comment.isnot(None)),
    ).one()
    distribution = {rating: 0 for rating in range(5, 0, -1)}
    for rating, count in (
        session.query(reviews.c.rating, func.count(reviews.c.id))
        .group_by(reviews.c.rating)
        .all()
    ):
        distribution[rating] = count
    return {
        "rider_id": rider_id,
        "total_reviews": total,
        "average_rating": round(float(averageRating), 1) if averageRating else 0.0,
        "rating_distribution": distribution,
        "with_comments": withComments,
    }


def findReview(session: Session, review_id: int) -> Review:
    review = session.query(Review).filter(Review.id == review_id).first()
    if review is None:
        raise exceptions.InvalidIdentifier()
    return review


def createReview(session: Session, fParam: CreateForm) -> Review:
    """
    Review the rider of a delivered assignment and re-derive the rider rating.

    Raises:
        exceptions.UnknownValue: If the assignment does not exist.
        exceptions.NoPermission: If the user did not receive the delivery.
        exceptions.InvalidState: If the assignment is not delivered.
        exceptions.DuplicateReview: If the delivery is already reviewed.
    """
    assignedOrder = getters.assignedOrder(session, fParam.assigned_order_id)
    if assignedOrder is None:
        raise exceptions.UnknownValue(Review.assigned_order_id)
    if assignedOrder.user_id != fParam.user_id:
        raise exceptions.NoPermission()
    if assignedOrder.status != AssignedOrderStatus.DELIVERED:
        raise exceptions.InvalidState("Only delivered orders can be reviewed")
    existing = (
        session.query(Review.id)
        .filter(Review.assigned_order_id == assignedOrder.id)
        .first()
    )
    if existing is not None:
        raise exceptions.DuplicateReview()

    review = Review(
        assigned_order_id=assignedOrder.id,
        rider_id=assignedOrder.rider_id,
        order_id=assignedOrder.order_id,
        user_id=fParam.user_id,
        rating=fParam.rating,
        comment=fParam.comment,
    )
    session.add(review)
    directory.refreshRiderRating(session, review.rider_id)
    return review


## API endpoints [Admin]
@route_admin.post(
    URL_REVIEW,
    tags=["Review"],
    response_model=schemas.Envelope[ReviewSchema],
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.UnknownValue(Review.assigned_order_id),
            exceptions.NoPermission,
            exceptions.InvalidState("Only delivered orders can be reviewed"),
            exceptions.DuplicateReview,
        ]
    ),
    description="""
    Review the rider of a delivered assignment.
    Only the user who received the delivery can review it, and only once.
    The rating of the rider is re-derived from the approved reviews.
    Log the review creation activity.
    """,
)
async def create_review(
    fParam: CreateForm,
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        review = createReview(session, fParam)
        session.commit()
        session.refresh(review)

        reviewData = jsonable_encoder(review)
        logEvent(request_info, reviewData)
        return makeResponse(
            reviewData, "Review created successfully", status.HTTP_201_CREATED
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_REVIEW,
    tags=["Review"],
    response_model=schemas.Envelope[List[ReviewSchema]],
    description="""
    Fetch a list of reviews.
    Supports filtering by rider, order, user, rating, minimum rating and approval.
    Supports sorting and pagination.
    """,
)
async def get_reviews(qParam: QueryParamsForAD = Depends()):
    try:
        session = sessionMaker()
        reviews = searchReview(session, qParam)
        return makeResponse(jsonable_encoder(reviews), "Reviews retrieved successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_REVIEW_STATS,
    tags=["Review"],
    response_model=schemas.Envelope[ReviewStatsSchema],
    description="""
    Aggregate the approved reviews, optionally for a single rider.
    Includes the count, the average rating, the rating distribution and the
    number of reviews with a comment.
    """,
)
async def get_review_stats(rider_id: int | None = Query(default=None)):
    try:
        session = sessionMaker()
        return makeResponse(
            reviewStats(session, rider_id), "Review statistics retrieved successfully"
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_REVIEW_BY_ID,
    tags=["Review"],
    response_model=schemas.Envelope[ReviewSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Fetch a review by ID.
    """,
)
async def get_review(review_id: int = Path()):
    try:
        session = sessionMaker()
        review = findReview(session, review_id)
        return makeResponse(jsonable_encoder(review), "Review retrieved successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_REVIEW_BY_ID,
    tags=["Review"],
    response_model=schemas.Envelope[ReviewSchema],
    responses=makeExceptionResponses(
        [exceptions.InvalidIdentifier, exceptions.NoPermission]
    ),
    description="""
    Update the rating or the comment of a review.
    Only the author of the review can update it.
    The rating of the rider is re-derived after the update.
    Log the review update activity if any field changed.
    """,
)
async def update_review(
    fParam: UpdateForm,
    review_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        review = findReview(session, review_id)
        if review.user_id != fParam.user_id:
            raise exceptions.NoPermission()

        updateIfChanged(review, fParam, [Review.rating.key, Review.comment.key])
        haveUpdates = session.is_modified(review)
        if haveUpdates:
            directory.refreshRiderRating(session, review.rider_id)
            session.commit()
            session.refresh(review)

        reviewData = jsonable_encoder(review)
        if haveUpdates:
            logEvent(request_info, reviewData)
        return makeResponse(reviewData, "Review updated successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_REVIEW_REPLY,
    tags=["Review"],
    response_model=schemas.Envelope[ReviewSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Reply to a review. A later reply replaces the earlier one.
    Log the reply activity.
    """,
)
async def reply_to_review(
    fParam: ReplyForm,
    review_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        review = findReview(session, review_id)
        review.reply = fParam.reply
        review.replied_on = datetime.now(timezone.utc)
        session.commit()
        session.refresh(review)

        reviewData = jsonable_encoder(review)
        logEvent(request_info, reviewData)
        return makeResponse(reviewData, "Reply added successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_REVIEW_MODERATE,
    tags=["Review"],
    response_model=schemas.Envelope[ReviewSchema],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Approve or reject a review.
    Rejected reviews no longer count towards the rating of the rider.
    Log the moderation activity.
    """,
)
async def moderate_review(
    fParam: ModerateForm,
    review_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        review = findReview(session, review_id)
        review.is_approved = fParam.is_approved
        directory.refreshRiderRating(session, review.rider_id)
        session.commit()
        session.refresh(review)

        reviewData = jsonable_encoder(review)
        logEvent(request_info, reviewData)
        verdict = "approved" if fParam.is_approved else "rejected"
        return makeResponse(reviewData, f"Review {verdict} successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.delete(
    URL_REVIEW_BY_ID,
    tags=["Review"],
    response_model=schemas.Envelope[None],
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Delete a review.
    The rating of the rider is re-derived from the remaining reviews.
    Log the review deletion activity.
    """,
)
async def delete_review(
    review_id: int = Path(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        review = findReview(session, review_id)
        session.delete(review)
        directory.refreshRiderRating(session, review.rider_id)
        session.commit()

        logEvent(request_info, jsonable_encoder(review))
        return makeResponse(None, "Review deleted successfully")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Rider]
@route_rider.get(
    URL_REVIEW,
    tags=["Review"],
    response_model=schemas.Envelope[List[ReviewSchema]],
    description="""
    Fetch the approved reviews of the acting rider.
    Supports filtering by order, user and rating.
    Supports sorting and pagination.
    """,
)
async def get_reviews(qParam: QueryParamsForRD = Depends()):
    try:
        session = sessionMaker()
        reviews = searchReview(session, qParam, approvedOnly=True)
        return makeResponse(
            jsonable_encoder(reviews), "Rider reviews retrieved successfully"
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_rider.get(
    URL_REVIEW_STATS,
    tags=["Review"],
    response_model=schemas.Envelope[ReviewStatsSchema],
    description="""
    Aggregate the approved reviews of the acting rider.
    """,
)
async def get_review_stats(rider_id: int = Query()):
    try:
        session = sessionMaker()
        return makeResponse(
            reviewStats(session, rider_id), "Review statistics retrieved successfully"
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
