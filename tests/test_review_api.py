"""
Integration tests for the review endpoints and the derived rider rating.
"""

from datetime import datetime, timezone

import pytest

from marketplace.src.db import AssignedOrder, Review, Rider
from marketplace.src.enums import AssignedOrderStatus

ADMIN = "/admin/reviews"
RIDER = "/rider/reviews"


@pytest.fixture
def makeDelivery(session, makeRider, makeOrder):
    """A ledger entry in the given status, delivered unless told otherwise."""

    def factory(rider=None, user_id=1, status=AssignedOrderStatus.DELIVERED):
        rider = rider or makeRider()
        order = makeOrder(user_id=user_id)
        assignedOrder = AssignedOrder(
            rider_id=rider.id,
            order_id=order.id,
            user_id=user_id,
            status=status,
            assigned_on=datetime.now(timezone.utc),
        )
        session.add(assignedOrder)
        session.commit()
        return assignedOrder

    return factory


@pytest.fixture
def riderRating(freshSession):
    def loader(rider_id):
        return freshSession().query(Rider).filter(Rider.id == rider_id).one().rating

    return loader


def review(client, delivery, rating, comment=None):
    response = client.post(
        ADMIN,
        json={
            "assigned_order_id": delivery.id,
            "user_id": delivery.user_id,
            "rating": rating,
            "comment": comment,
        },
    )
    assert response.status_code == 201
    return response.json()["data"]


class TestCreateReview:
    def test_review_sets_the_rider_rating(self, client, makeDelivery, riderRating):
        delivery = makeDelivery()

        response = client.post(
            ADMIN,
            json={
                "assigned_order_id": delivery.id,
                "user_id": delivery.user_id,
                "rating": 4,
                "comment": "Quick and polite",
            },
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["rider_id"] == delivery.rider_id
        assert data["order_id"] == delivery.order_id
        assert data["is_approved"] is True
        assert riderRating(delivery.rider_id) == 4.0

    def test_rating_is_the_rounded_average(
        self, client, makeRider, makeDelivery, riderRating
    ):
        rider = makeRider()
        for rating in [5, 4, 4]:
            review(client, makeDelivery(rider=rider), rating)

        assert riderRating(rider.id) == 4.3

    def test_delivery_is_reviewed_once(self, client, makeDelivery, freshSession):
        delivery = makeDelivery()
        review(client, delivery, 5)

        response = client.post(
            ADMIN,
            json={"assigned_order_id": delivery.id, "user_id": 1, "rating": 1},
        )

        assert response.status_code == 400
        assert response.headers["X-Error"] == "DuplicateReview"
        assert freshSession().query(Review).count() == 1

    @pytest.mark.parametrize(
        "status", [AssignedOrderStatus.IN_TRANSIT, AssignedOrderStatus.CANCELLED]
    )
    def test_undelivered_order_cannot_be_reviewed(self, client, makeDelivery, status):
        delivery = makeDelivery(status=status)

        response = client.post(
            ADMIN,
            json={"assigned_order_id": delivery.id, "user_id": 1, "rating": 5},
        )

        assert response.status_code == 400
        assert response.json()["Status"]["Message"] == (
            "Only delivered orders can be reviewed"
        )

    def test_only_the_recipient_can_review(self, client, makeDelivery):
        delivery = makeDelivery(user_id=7)

        response = client.post(
            ADMIN,
            json={"assigned_order_id": delivery.id, "user_id": 8, "rating": 5},
        )

        assert response.status_code == 403
        assert response.headers["X-Error"] == "NoPermission"

    def test_unknown_assignment_is_not_found(self, client):
        response = client.post(
            ADMIN, json={"assigned_order_id": 404, "user_id": 1, "rating": 5}
        )

        assert response.status_code == 404
        assert response.json()["Status"]["Message"] == (
            "Invalid assigned_order_id is provided"
        )

    def test_rating_is_bounded(self, client, makeDelivery):
        delivery = makeDelivery()

        response = client.post(
            ADMIN,
            json={"assigned_order_id": delivery.id, "user_id": 1, "rating": 6},
        )

        assert response.status_code == 400
        assert response.headers["X-Error"] == "RequestValidation"


class TestChangeReview:
    def test_update_rederives_the_rating(
        self, client, makeRider, makeDelivery, riderRating
    ):
        rider = makeRider()
        first = review(client, makeDelivery(rider=rider), 2)
        review(client, makeDelivery(rider=rider), 4)

        response = client.patch(
            f"{ADMIN}/{first['id']}", json={"user_id": 1, "rating": 5}
        )

        assert response.json()["data"]["rating"] == 5
        assert riderRating(rider.id) == 4.5

    def test_only_the_author_can_update(self, client, makeDelivery):
        created = review(client, makeDelivery(user_id=7), 3)

        response = client.patch(
            f"{ADMIN}/{created['id']}", json={"user_id": 8, "rating": 5}
        )

        assert response.status_code == 403

    def test_rejected_reviews_do_not_count(
        self, client, makeRider, makeDelivery, riderRating
    ):
        rider = makeRider()
        harsh = review(client, makeDelivery(rider=rider), 1)
        review(client, makeDelivery(rider=rider), 5)

        response = client.patch(
            f"{ADMIN}/{harsh['id']}/moderate", json={"is_approved": False}
        )

        assert response.json()["Status"]["Message"] == "Review rejected successfully"
        assert riderRating(rider.id) == 5.0

    def test_deleting_the_last_review_resets_the_rating(
        self, client, makeDelivery, riderRating, freshSession
    ):
        delivery = makeDelivery()
        created = review(client, delivery, 4)

        response = client.delete(f"{ADMIN}/{created['id']}")

        assert response.status_code == 200
        assert freshSession().query(Review).count() == 0
        assert riderRating(delivery.rider_id) == 0.0

    def test_reply_is_stamped(self, client, makeDelivery):
        created = review(client, makeDelivery(), 3, "Late by ten minutes")

        response = client.patch(
            f"{ADMIN}/{created['id']}/reply", json={"reply": "Sorry about the delay"}
        )

        data = response.json()["data"]
        assert data["reply"] == "Sorry about the delay"
        assert data["replied_on"] is not None

    def test_unknown_review_is_not_found(self, client):
        response = client.delete(f"{ADMIN}/404")

        assert response.status_code == 404
        assert response.headers["X-Error"] == "InvalidIdentifier"


class TestReviewQueries:
    def test_stats_cover_approved_reviews(self, client, makeRider, makeDelivery):
        rider = makeRider()
        review(client, makeDelivery(rider=rider), 5, "Great")
        review(client, makeDelivery(rider=rider), 4)
        rejected = review(client, makeDelivery(rider=rider), 1)
        client.patch(f"{ADMIN}/{rejected['id']}/moderate", json={"is_approved": False})

        response = client.get(f"{ADMIN}/stats", params={"rider_id": rider.id})

        assert response.json()["data"] == {
            "rider_id": rider.id,
            "total_reviews": 2,
            "average_rating": 4.5,
            "rating_distribution": {"5": 1, "4": 1, "3": 0, "2": 0, "1": 0},
            "with_comments": 1,
        }

    def test_rider_sees_only_approved_reviews(self, client, makeRider, makeDelivery):
        rider = makeRider()
        kept = review(client, makeDelivery(rider=rider), 5)
        rejected = review(client, makeDelivery(rider=rider), 2)
        review(client, makeDelivery(), 3)
        client.patch(f"{ADMIN}/{rejected['id']}/moderate", json={"is_approved": False})

        response = client.get(RIDER, params={"rider_id": rider.id})

        assert [x["id"] for x in response.json()["data"]] == [kept["id"]]

    def test_rider_listing_needs_the_rider(self, client):
        response = client.get(RIDER)

        assert response.status_code == 400

    def test_available_riders_follow_review_ratings(
        self, client, makeRider, makeDelivery
    ):
        steady = makeRider()
        praised = makeRider()
        review(client, makeDelivery(rider=steady), 3)
        review(client, makeDelivery(rider=praised), 5)

        response = client.get("/admin/riders/available")

        assert [x["id"] for x in response.json()["data"]] == [praised.id, steady.id]
