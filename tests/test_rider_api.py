"""
Integration tests for the rider directory endpoints.
"""

import pytest

from marketplace.src.db import Rider
from marketplace.src.enums import AppID, RiderStatus, VehicleType

ADMIN = "/admin/riders"


@pytest.fixture
def riderData():
    return {
        "name": "Arun Kumar",
        "phone": "+919496801157",
        "email": "arun@marketplace.com",
        "password": "password123",
        "vehicle_type": VehicleType.BIKE,
        "vehicle_number": "KL01AB1234",
        "license_number": "KL0120110012345",
    }


class TestCreateRider:
    def test_rider_is_created_offline_without_password(
        self, client, riderData, freshSession
    ):
        response = client.post(ADMIN, json=riderData)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == RiderStatus.OFFLINE
        assert data["total_deliveries"] == 0
        assert "password" not in data
        stored = freshSession().query(Rider).filter(Rider.id == data["id"]).one()
        assert stored.password != riderData["password"]

    def test_duplicate_phone_conflicts(self, client, riderData):
        client.post(ADMIN, json=riderData)
        riderData["email"] = "other@marketplace.com"

        response = client.post(ADMIN, json=riderData)

        assert response.status_code == 409
        assert response.headers["X-Error"] == "UniqueViolation"

    def test_invalid_vehicle_number_fails_validation(self, client, riderData):
        riderData["vehicle_number"] = "not a plate"

        response = client.post(ADMIN, json=riderData)

        assert response.status_code == 400
        assert "vehicle_number" in response.json()["Status"]["Message"]


class TestQueryRiders:
    def test_available_lists_active_available_riders_by_rating(
        self, client, makeRider
    ):
        low = makeRider(rating=3.5)
        high = makeRider(rating=4.9)
        makeRider(status=RiderStatus.BUSY)
        makeRider(is_active=False)

        response = client.get(f"{ADMIN}/available")

        assert [x["id"] for x in response.json()["data"]] == [high.id, low.id]

    def test_stats(self, client, makeRider):
        makeRider(rating=4.0, total_deliveries=3)
        makeRider(status=RiderStatus.BUSY, rating=5.0, total_deliveries=1)
        makeRider(status=RiderStatus.OFFLINE, rating=3.0, is_active=False)

        response = client.get(f"{ADMIN}/stats")

        assert response.json()["data"] == {
            "total_riders": 3,
            "active_riders": 2,
            "available_riders": 1,
            "busy_riders": 1,
            "offline_riders": 1,
            "average_rating": 4.0,
            "total_deliveries": 4,
        }

    def test_list_filters_by_status(self, client, makeRider):
        makeRider()
        busy = makeRider(status=RiderStatus.BUSY)

        response = client.get(ADMIN, params={"status": RiderStatus.BUSY})

        assert [x["id"] for x in response.json()["data"]] == [busy.id]

    def test_unknown_rider_is_not_found(self, client):
        response = client.get(f"{ADMIN}/404")

        assert response.status_code == 404
        assert response.json() == {
            "data": None,
            "Status": {"Code": 404, "Message": "Invalid ID provided"},
        }


class TestUpdateRider:
    def test_update_changes_given_fields(self, client, makeRider):
        rider = makeRider()

        response = client.patch(
            f"{ADMIN}/{rider.id}", json={"name": "Meera", "vehicle_type": VehicleType.CAR}
        )

        data = response.json()["data"]
        assert data["name"] == "Meera"
        assert data["vehicle_type"] == VehicleType.CAR
        assert data["vehicle_number"] == rider.vehicle_number

    def test_rating_cannot_be_set_by_hand(self, client, makeRider):
        rider = makeRider()

        response = client.patch(f"{ADMIN}/{rider.id}", json={"rating": 4.5})

        assert response.status_code == 400
        assert response.headers["X-Error"] == "RequestValidation"

    def test_active_flag_toggles(self, client, makeRider):
        rider = makeRider()

        first = client.patch(f"{ADMIN}/{rider.id}/active")
        second = client.patch(f"{ADMIN}/{rider.id}/active")

        assert first.json()["data"]["is_active"] is False
        assert second.json()["data"]["is_active"] is True

    def test_rider_updates_own_location(self, client, auditLog, makeRider):
        rider = makeRider()

        response = client.patch(
            f"/rider/riders/{rider.id}/location",
            json={"latitude": 8.7379, "longitude": 76.7163, "address": "Varkala"},
        )

        data = response.json()["data"]
        assert (data["latitude"], data["longitude"]) == (8.7379, 76.7163)
        assert data["address"] == "Varkala"
        assert auditLog.call_args.args[0]["_app_id"] == AppID.RIDER

    def test_delete(self, client, makeRider, freshSession):
        rider = makeRider()

        response = client.delete(f"{ADMIN}/{rider.id}")

        assert response.status_code == 200
        assert freshSession().query(Rider).count() == 0
