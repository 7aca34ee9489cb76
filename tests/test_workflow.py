"""
Unit tests for the assignment workflow.

Each test drives `marketplace.src.workflow` with a session, commits the
way the API layer does, then reads the committed state with a new session.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Query

from marketplace.src import directory, exceptions, workflow
from marketplace.src.db import AssignedOrder, Notification, Order, Rider
from marketplace.src.enums import (
    AssignedOrderStatus,
    NotificationType,
    OrderStatus,
    ProofType,
    RiderStatus,
)


@pytest.fixture
def reload(freshSession):
    def loader(ormClass, id):
        return freshSession().query(ormClass).filter(ormClass.id == id).first()

    return loader


def advance(session, assignedOrder, *states):
    for state in states:
        workflow.updateStatus(session, assignedOrder.id, state)
        session.commit()


class TestAssign:
    def test_assign_creates_assigned_entry_and_occupies_rider(
        self, session, makeRider, makeOrder, reload
    ):
        rider = makeRider()
        order = makeOrder()

        assignedOrder = workflow.assign(session, rider.id, order.id, 1, "Ring the bell")
        session.commit()

        stored = reload(AssignedOrder, assignedOrder.id)
        assert stored.status == AssignedOrderStatus.ASSIGNED
        assert stored.rider_id == rider.id
        assert stored.notes == "Ring the bell"
        assert stored.assigned_on is not None
        assert reload(Rider, rider.id).status == RiderStatus.BUSY

    def test_assign_leaves_offline_rider_untouched(
        self, session, makeRider, makeOrder, reload
    ):
        rider = makeRider(status=RiderStatus.OFFLINE)
        order = makeOrder()

        workflow.assign(session, rider.id, order.id, 1)
        session.commit()

        assert reload(Rider, rider.id).status == RiderStatus.OFFLINE

    def test_duplicate_assignment_is_rejected_without_second_row(
        self, session, makeRider, makeOrder, freshSession
    ):
        rider = makeRider()
        order = makeOrder()
        workflow.assign(session, rider.id, order.id, 1)
        session.commit()

        with pytest.raises(exceptions.DuplicateAssignment) as error:
            workflow.assign(session, rider.id, order.id, 1)
        session.rollback()

        assert error.value.detail == "Order already assigned to this rider"
        assert freshSession().query(AssignedOrder).count() == 1

    def test_same_order_can_go_to_another_rider(self, session, makeRider, makeOrder):
        firstRider = makeRider()
        secondRider = makeRider()
        order = makeOrder()

        workflow.assign(session, firstRider.id, order.id, 1)
        workflow.assign(session, secondRider.id, order.id, 1)
        session.commit()

        assert session.query(AssignedOrder).count() == 2

    def test_unknown_rider_is_rejected(self, session, makeOrder):
        order = makeOrder()

        with pytest.raises(exceptions.UnknownValue) as error:
            workflow.assign(session, 404, order.id, 1)

        assert error.value.detail == "Invalid rider_id is provided"

    def test_unknown_order_is_rejected(self, session, makeRider):
        rider = makeRider()

        with pytest.raises(exceptions.UnknownValue) as error:
            workflow.assign(session, rider.id, 404, 1)

        assert error.value.detail == "Invalid order_id is provided"

    def test_user_is_notified_after_commit(
        self, session, makeRider, makeOrder, freshSession
    ):
        rider = makeRider()
        order = makeOrder(user_id=77)

        assignedOrder = workflow.assign(session, rider.id, order.id, 77)
        session.commit()

        notification = freshSession().query(Notification).one()
        assert notification.user_id == 77
        assert notification.type == NotificationType.RIDER_ASSIGNED
        assert notification.data["assigned_order_id"] == assignedOrder.id
        assert notification.is_read is False

    def test_rollback_discards_pending_notifications(
        self, session, makeRider, makeOrder, freshSession
    ):
        rider = makeRider()
        order = makeOrder()

        workflow.assign(session, rider.id, order.id, 1)
        session.rollback()
        session.commit()

        assert freshSession().query(Notification).count() == 0

    def test_notifier_failure_does_not_fail_the_call(
        self, session, makeRider, makeOrder, reload
    ):
        rider = makeRider()
        order = makeOrder()

        with patch(
            "marketplace.src.subscribers.createNotification",
            side_effect=RuntimeError("notifier down"),
        ) as createNotification:
            assignedOrder = workflow.assign(session, rider.id, order.id, 1)
            session.commit()

        createNotification.assert_called_once()
        assert reload(AssignedOrder, assignedOrder.id) is not None


class TestBulkAssign:
    def test_orders_are_assigned_in_one_batch(
        self, session, makeRider, makeOrder, reload
    ):
        rider = makeRider()
        orders = [makeOrder(), makeOrder(), makeOrder()]
        items = [
            SimpleNamespace(order_id=order.id, user_id=1, notes=None) for order in orders
        ]

        assignedOrders = workflow.bulkAssign(session, rider.id, items)
        session.commit()

        assert len(assignedOrders) == 3
        assert {x.order_id for x in assignedOrders} == {order.id for order in orders}
        assert all(x.status == AssignedOrderStatus.ASSIGNED for x in assignedOrders)
        assert reload(Rider, rider.id).status == RiderStatus.BUSY

    def test_empty_batch_is_rejected_before_store_access(self, session):
        with patch("marketplace.src.getters.rider") as getRider:
            with pytest.raises(exceptions.EmptyParameter):
                workflow.bulkAssign(session, 1, [])

        getRider.assert_not_called()

    def test_missing_order_creates_nothing(
        self, session, makeRider, makeOrder, freshSession
    ):
        rider = makeRider()
        order = makeOrder()
        items = [
            SimpleNamespace(order_id=order.id, user_id=1, notes=None),
            SimpleNamespace(order_id=404, user_id=1, notes=None),
        ]

        with pytest.raises(exceptions.PartialNotFound) as error:
            workflow.bulkAssign(session, rider.id, items)
        session.rollback()

        assert error.value.detail == "One or more orders not found"
        assert freshSession().query(AssignedOrder).count() == 0

    def test_existing_pair_rejects_whole_batch(
        self, session, makeRider, makeOrder, freshSession
    ):
        rider = makeRider()
        first, second = makeOrder(), makeOrder()
        workflow.assign(session, rider.id, first.id, 1)
        session.commit()
        items = [
            SimpleNamespace(order_id=first.id, user_id=1, notes=None),
            SimpleNamespace(order_id=second.id, user_id=1, notes=None),
        ]

        with pytest.raises(exceptions.DuplicateAssignment) as error:
            workflow.bulkAssign(session, rider.id, items)
        session.rollback()

        assert error.value.detail == "1 order(s) already assigned to this rider"
        assert freshSession().query(AssignedOrder).count() == 1

    def test_repeated_order_in_batch_is_rejected(self, session, makeRider, makeOrder):
        rider = makeRider()
        order = makeOrder()
        items = [
            SimpleNamespace(order_id=order.id, user_id=1, notes=None),
            SimpleNamespace(order_id=order.id, user_id=1, notes=None),
        ]

        with pytest.raises(exceptions.DuplicateAssignment):
            workflow.bulkAssign(session, rider.id, items)

    def test_unknown_rider_is_rejected(self, session, makeOrder):
        order = makeOrder()
        items = [SimpleNamespace(order_id=order.id, user_id=1, notes=None)]

        with pytest.raises(exceptions.UnknownValue):
            workflow.bulkAssign(session, 404, items)


class TestStatusTransitions:
    def test_full_delivery_path(self, session, makeRider, makeOrder, reload):
        rider = makeRider()
        order = makeOrder()
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        session.commit()

        advance(
            session,
            assignedOrder,
            AssignedOrderStatus.PICKED_UP,
            AssignedOrderStatus.IN_TRANSIT,
            AssignedOrderStatus.DELIVERED,
        )

        stored = reload(AssignedOrder, assignedOrder.id)
        assert stored.status == AssignedOrderStatus.DELIVERED
        assert stored.picked_up_on is not None
        assert stored.delivered_on is not None
        storedRider = reload(Rider, rider.id)
        assert storedRider.total_deliveries == 1
        assert storedRider.status == RiderStatus.AVAILABLE

    @pytest.mark.parametrize(
        "path, target",
        [
            ([], AssignedOrderStatus.IN_TRANSIT),
            ([], AssignedOrderStatus.DELIVERED),
            ([AssignedOrderStatus.PICKED_UP], AssignedOrderStatus.ASSIGNED),
            ([AssignedOrderStatus.PICKED_UP], AssignedOrderStatus.DELIVERED),
            ([AssignedOrderStatus.CANCELLED], AssignedOrderStatus.ASSIGNED),
        ],
    )
    def test_edges_outside_the_graph_are_rejected(
        self, session, makeRider, makeOrder, reload, path, target
    ):
        rider = makeRider()
        order = makeOrder()
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        session.commit()
        advance(session, assignedOrder, *path)
        before = reload(AssignedOrder, assignedOrder.id).status

        with pytest.raises(exceptions.InvalidStateTransition):
            workflow.updateStatus(session, assignedOrder.id, target)
        session.rollback()

        assert reload(AssignedOrder, assignedOrder.id).status == before

    def test_rejection_names_both_states(self, session, makeRider, makeOrder):
        rider = makeRider()
        order = makeOrder()
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        session.commit()

        with pytest.raises(exceptions.InvalidStateTransition) as error:
            workflow.updateStatus(
                session, assignedOrder.id, AssignedOrderStatus.DELIVERED
            )

        assert error.value.detail == "Invalid status transition from ASSIGNED to DELIVERED"

    def test_delivered_twice_does_not_double_count(
        self, session, makeRider, makeOrder, reload
    ):
        rider = makeRider()
        order = makeOrder()
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        session.commit()
        advance(
            session,
            assignedOrder,
            AssignedOrderStatus.PICKED_UP,
            AssignedOrderStatus.IN_TRANSIT,
            AssignedOrderStatus.DELIVERED,
        )

        with pytest.raises(exceptions.InvalidStateTransition):
            workflow.updateStatus(
                session, assignedOrder.id, AssignedOrderStatus.DELIVERED
            )
        session.rollback()

        assert reload(Rider, rider.id).total_deliveries == 1

    def test_cancel_stamps_cancelled_on(self, session, makeRider, makeOrder, reload):
        rider = makeRider()
        order = makeOrder()
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        session.commit()

        advance(session, assignedOrder, AssignedOrderStatus.CANCELLED)

        stored = reload(AssignedOrder, assignedOrder.id)
        assert stored.cancelled_on is not None
        assert reload(Rider, rider.id).status == RiderStatus.AVAILABLE

    def test_rider_stays_busy_while_another_entry_is_active(
        self, session, makeRider, makeOrder, reload
    ):
        rider = makeRider()
        first = workflow.assign(session, rider.id, makeOrder().id, 1)
        second = workflow.assign(session, rider.id, makeOrder().id, 1)
        session.commit()
        deliveryPath = (
            AssignedOrderStatus.PICKED_UP,
            AssignedOrderStatus.IN_TRANSIT,
            AssignedOrderStatus.DELIVERED,
        )

        advance(session, first, *deliveryPath)
        assert reload(Rider, rider.id).status == RiderStatus.BUSY

        advance(session, second, *deliveryPath)
        assert reload(Rider, rider.id).status == RiderStatus.AVAILABLE

    def test_in_transit_entry_keeps_rider_busy_after_terminal_update(
        self, session, makeRider, makeOrder, reload
    ):
        rider = makeRider()
        moving = workflow.assign(session, rider.id, makeOrder().id, 1)
        cancelled = workflow.assign(session, rider.id, makeOrder().id, 1)
        session.commit()
        advance(
            session, moving, AssignedOrderStatus.PICKED_UP, AssignedOrderStatus.IN_TRANSIT
        )

        advance(session, cancelled, AssignedOrderStatus.CANCELLED)

        assert reload(Rider, rider.id).status == RiderStatus.BUSY

    def test_other_rider_cannot_update(self, session, makeRider, makeOrder):
        owner = makeRider()
        other = makeRider()
        assignedOrder = workflow.assign(session, owner.id, makeOrder().id, 1)
        session.commit()

        with pytest.raises(exceptions.NoPermission):
            workflow.updateStatus(
                session, assignedOrder.id, AssignedOrderStatus.PICKED_UP, other.id
            )

    def test_unknown_entry_is_rejected(self, session):
        with pytest.raises(exceptions.InvalidIdentifier):
            workflow.updateStatus(session, 404, AssignedOrderStatus.PICKED_UP)

    def test_delivered_status_notifies_user(
        self, session, makeRider, makeOrder, freshSession
    ):
        rider = makeRider()
        assignedOrder = workflow.assign(session, rider.id, makeOrder().id, 1)
        session.commit()

        advance(
            session,
            assignedOrder,
            AssignedOrderStatus.PICKED_UP,
            AssignedOrderStatus.IN_TRANSIT,
            AssignedOrderStatus.DELIVERED,
        )

        types = [x.type for x in freshSession().query(Notification).all()]
        assert types == [NotificationType.RIDER_ASSIGNED, NotificationType.ORDER_DELIVERED]


class TestRiderLocking:
    def test_rider_is_locked_before_the_ledger_is_counted(
        self, session, makeRider, makeOrder
    ):
        rider = makeRider()
        assignedOrder = workflow.assign(session, rider.id, makeOrder().id, 1)
        session.commit()
        advance(
            session,
            assignedOrder,
            AssignedOrderStatus.PICKED_UP,
            AssignedOrderStatus.IN_TRANSIT,
        )
        calls = []

        with patch(
            "marketplace.src.directory.lockRider",
            side_effect=lambda *args: calls.append("lock"),
        ), patch(
            "marketplace.src.directory.countAssignments",
            side_effect=lambda *args: calls.append("count") or 0,
        ):
            workflow.updateStatus(
                session, assignedOrder.id, AssignedOrderStatus.DELIVERED
            )

        assert calls == ["lock", "count"]

    def test_occupy_uses_the_committed_status(
        self, session, makeRider, freshSession, reload
    ):
        rider = makeRider(status=RiderStatus.BUSY)
        other = freshSession()
        other.query(Rider).filter(Rider.id == rider.id).update(
            {Rider.status: RiderStatus.AVAILABLE}
        )
        other.commit()

        directory.occupyRider(session, rider)
        session.commit()

        assert reload(Rider, rider.id).status == RiderStatus.BUSY

    def test_lock_is_a_row_lock(self, session, makeRider):
        rider = makeRider()

        with patch.object(
            Query,
            "with_for_update",
            autospec=True,
            side_effect=lambda query, **kwargs: query,
        ) as withForUpdate:
            locked = directory.lockRider(session, rider.id)

        withForUpdate.assert_called_once()
        assert locked.id == rider.id


class TestRemove:
    def test_remove_frees_rider(self, session, makeRider, makeOrder, reload):
        rider = makeRider()
        assignedOrder = workflow.assign(session, rider.id, makeOrder().id, 1)
        session.commit()

        workflow.remove(session, assignedOrder.id)
        session.commit()

        assert reload(AssignedOrder, assignedOrder.id) is None
        assert reload(Rider, rider.id).status == RiderStatus.AVAILABLE


class TestReassign:
    def test_reassign_moves_entry_in_place(
        self, session, makeRider, makeOrder, reload, freshSession
    ):
        oldRider = makeRider()
        newRider = makeRider()
        assignedOrder = workflow.assign(
            session, oldRider.id, makeOrder().id, 1, "Fragile"
        )
        session.commit()

        workflow.reassign(session, assignedOrder.id, newRider.id, "Vehicle breakdown")
        session.commit()

        stored = reload(AssignedOrder, assignedOrder.id)
        assert stored.rider_id == newRider.id
        assert stored.status == AssignedOrderStatus.ASSIGNED
        assert stored.notes == "Fragile\nReassigned: Vehicle breakdown"
        assert freshSession().query(AssignedOrder).count() == 1
        assert reload(Rider, oldRider.id).status == RiderStatus.AVAILABLE
        assert reload(Rider, newRider.id).status == RiderStatus.BUSY

        notification = (
            freshSession()
            .query(Notification)
            .filter(Notification.type == NotificationType.RIDER_REASSIGNED)
            .one()
        )
        assert notification.data["old_rider_id"] == oldRider.id
        assert notification.data["rider_id"] == newRider.id

    def test_reassign_to_current_rider_is_rejected(self, session, makeRider, makeOrder):
        rider = makeRider()
        assignedOrder = workflow.assign(session, rider.id, makeOrder().id, 1)
        session.commit()

        with pytest.raises(exceptions.NoOpReassignment):
            workflow.reassign(session, assignedOrder.id, rider.id)

    def test_reassign_to_rider_holding_the_order_is_rejected(
        self, session, makeRider, makeOrder, reload
    ):
        rider = makeRider()
        otherRider = makeRider()
        order = makeOrder()
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        workflow.assign(session, otherRider.id, order.id, 1)
        session.commit()

        with pytest.raises(exceptions.DuplicateAssignment):
            workflow.reassign(session, assignedOrder.id, otherRider.id)
        session.rollback()

        assert reload(AssignedOrder, assignedOrder.id).rider_id == rider.id

    def test_both_riders_are_row_locked(self, session, makeRider, makeOrder):
        oldRider = makeRider()
        newRider = makeRider()
        assignedOrder = workflow.assign(session, oldRider.id, makeOrder().id, 1)
        session.commit()

        with patch(
            "marketplace.src.directory.lockRider", wraps=directory.lockRider
        ) as lockRider:
            workflow.reassign(session, assignedOrder.id, newRider.id)

        lockedIds = [c.args[1] for c in lockRider.call_args_list]
        assert lockedIds[:2] == sorted([oldRider.id, newRider.id])
        assert set(lockedIds) == {oldRider.id, newRider.id}

    def test_missing_new_rider_is_checked_first(self, session):
        with pytest.raises(exceptions.MissingParameter) as error:
            workflow.reassign(session, 404, None)

        assert error.value.detail == "New rider ID is required"

    def test_unknown_new_rider_is_rejected(self, session, makeRider, makeOrder):
        rider = makeRider()
        assignedOrder = workflow.assign(session, rider.id, makeOrder().id, 1)
        session.commit()

        with pytest.raises(exceptions.UnknownValue):
            workflow.reassign(session, assignedOrder.id, 404)

    def test_old_rider_availability_ignores_in_transit_entries(
        self, session, makeRider, makeOrder, reload
    ):
        oldRider = makeRider()
        newRider = makeRider()
        moving = workflow.assign(session, oldRider.id, makeOrder().id, 1)
        handedOver = workflow.assign(session, oldRider.id, makeOrder().id, 1)
        session.commit()
        advance(
            session, moving, AssignedOrderStatus.PICKED_UP, AssignedOrderStatus.IN_TRANSIT
        )

        workflow.reassign(session, handedOver.id, newRider.id)
        session.commit()

        assert reload(Rider, oldRider.id).status == RiderStatus.AVAILABLE


class TestDeliveryProof:
    def test_proof_completes_picked_up_entry(
        self, session, makeRider, makeOrder, reload
    ):
        rider = makeRider()
        order = makeOrder()
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        session.commit()
        advance(session, assignedOrder, AssignedOrderStatus.PICKED_UP)

        workflow.addDeliveryProof(
            session, assignedOrder.id, "delivery-proofs/1/door.jpeg"
        )
        session.commit()

        stored = reload(AssignedOrder, assignedOrder.id)
        assert stored.status == AssignedOrderStatus.DELIVERED
        assert stored.delivered_on is not None
        assert stored.delivery_proof == [
            {"type": ProofType.PHOTO, "reference": "delivery-proofs/1/door.jpeg"}
        ]
        storedOrder = reload(Order, order.id)
        assert storedOrder.status == OrderStatus.DELIVERED
        assert storedOrder.delivered_on is not None
        storedRider = reload(Rider, rider.id)
        assert storedRider.total_deliveries == 1
        assert storedRider.status == RiderStatus.AVAILABLE

    def test_second_proof_fails_without_double_count(
        self, session, makeRider, makeOrder, reload
    ):
        rider = makeRider()
        assignedOrder = workflow.assign(session, rider.id, makeOrder().id, 1)
        session.commit()
        advance(session, assignedOrder, AssignedOrderStatus.PICKED_UP)
        workflow.addDeliveryProof(session, assignedOrder.id, "signature-1")
        session.commit()

        with pytest.raises(exceptions.InvalidState):
            workflow.addDeliveryProof(session, assignedOrder.id, "signature-2")
        session.rollback()

        assert reload(Rider, rider.id).total_deliveries == 1

    @pytest.mark.parametrize(
        "path", [[], [AssignedOrderStatus.PICKED_UP, AssignedOrderStatus.IN_TRANSIT]]
    )
    def test_proof_requires_picked_up(self, session, makeRider, makeOrder, path):
        rider = makeRider()
        assignedOrder = workflow.assign(session, rider.id, makeOrder().id, 1)
        session.commit()
        advance(session, assignedOrder, *path)

        with pytest.raises(exceptions.InvalidState) as error:
            workflow.addDeliveryProof(session, assignedOrder.id, "photo")

        assert error.value.detail == "Order must be picked up before adding delivery proof"

    @pytest.mark.parametrize("proof", [None, "", []])
    def test_missing_proof_is_checked_first(self, session, proof):
        with pytest.raises(exceptions.MissingParameter) as error:
            workflow.addDeliveryProof(session, 404, proof)

        assert error.value.detail == "Delivery proof is required"

    def test_proof_list_keeps_every_reference(
        self, session, makeRider, makeOrder, reload
    ):
        rider = makeRider()
        assignedOrder = workflow.assign(session, rider.id, makeOrder().id, 1)
        session.commit()
        advance(session, assignedOrder, AssignedOrderStatus.PICKED_UP)

        workflow.addDeliveryProof(
            session, assignedOrder.id, ["sig-front", "sig-back"], ProofType.SIGNATURE
        )
        session.commit()

        assert reload(AssignedOrder, assignedOrder.id).delivery_proof == [
            {"type": ProofType.SIGNATURE, "reference": "sig-front"},
            {"type": ProofType.SIGNATURE, "reference": "sig-back"},
        ]


class TestVerifyPickup:
    def test_matching_otp_picks_up_and_confirms_order(
        self, session, makeRider, makeOrder, reload
    ):
        rider = makeRider()
        order = makeOrder(id=123456)
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        session.commit()

        workflow.verifyPickup(session, assignedOrder.id, "3456")
        session.commit()

        stored = reload(AssignedOrder, assignedOrder.id)
        assert stored.status == AssignedOrderStatus.PICKED_UP
        assert stored.picked_up_on is not None
        assert reload(Order, order.id).status == OrderStatus.CONFIRMED

    def test_short_order_id_is_its_own_otp(self, session, makeRider, makeOrder):
        rider = makeRider()
        order = makeOrder(id=42)
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        session.commit()

        workflow.verifyPickup(session, assignedOrder.id, "42")

    def test_wrong_otp_is_rejected(self, session, makeRider, makeOrder, reload):
        rider = makeRider()
        order = makeOrder(id=123456)
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        session.commit()

        with pytest.raises(exceptions.InvalidOTP):
            workflow.verifyPickup(session, assignedOrder.id, "1234")
        session.rollback()

        assert reload(AssignedOrder, assignedOrder.id).status == AssignedOrderStatus.ASSIGNED
        assert reload(Order, order.id).status == OrderStatus.PENDING

    def test_pickup_requires_assigned(self, session, makeRider, makeOrder):
        rider = makeRider()
        order = makeOrder(id=5555)
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        session.commit()
        advance(session, assignedOrder, AssignedOrderStatus.PICKED_UP)

        with pytest.raises(exceptions.InvalidState) as error:
            workflow.verifyPickup(session, assignedOrder.id, "5555")

        assert error.value.detail == "Order must be in assigned status to verify pickup"

    def test_missing_otp_is_checked_first(self, session):
        with pytest.raises(exceptions.MissingParameter) as error:
            workflow.verifyPickup(session, 404, "")

        assert error.value.detail == "OTP is required"

    def test_user_is_notified_of_pickup(
        self, session, makeRider, makeOrder, freshSession
    ):
        rider = makeRider()
        order = makeOrder(id=9876)
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        session.commit()

        workflow.verifyPickup(session, assignedOrder.id, "9876")
        session.commit()

        types = [x.type for x in freshSession().query(Notification).all()]
        assert NotificationType.ORDER_PICKED_UP in types


class TestAggregates:
    def test_stats_count_every_status(self, session, makeRider, makeOrder):
        rider = makeRider()
        other = makeRider()
        first = workflow.assign(session, rider.id, makeOrder().id, 1)
        workflow.assign(session, rider.id, makeOrder().id, 1)
        workflow.assign(session, other.id, makeOrder().id, 1)
        session.commit()
        advance(session, first, AssignedOrderStatus.CANCELLED)

        assert workflow.stats(session) == {
            "total_assignments": 3,
            "assigned_count": 2,
            "picked_up_count": 0,
            "in_transit_count": 0,
            "delivered_count": 0,
            "cancelled_count": 1,
        }
        assert workflow.stats(session, rider.id)["total_assignments"] == 2

    def test_tracking_lists_history_in_order(self, session, makeRider, makeOrder):
        rider = makeRider(name="Arun")
        order = makeOrder()
        assignedOrder = workflow.assign(session, rider.id, order.id, 1)
        session.commit()
        advance(
            session,
            assignedOrder,
            AssignedOrderStatus.PICKED_UP,
            AssignedOrderStatus.IN_TRANSIT,
            AssignedOrderStatus.DELIVERED,
        )

        tracking = workflow.trackingInfo(session, assignedOrder.id)

        assert tracking["rider"]["name"] == "Arun"
        assert tracking["rider"]["current_location"]["latitude"] == rider.latitude
        assert tracking["order"].id == order.id
        assert [x["status"] for x in tracking["status_history"]] == [
            AssignedOrderStatus.ASSIGNED,
            AssignedOrderStatus.PICKED_UP,
            AssignedOrderStatus.DELIVERED,
        ]

    def test_cancellation_is_not_in_history(self, session, makeRider, makeOrder):
        rider = makeRider()
        assignedOrder = workflow.assign(session, rider.id, makeOrder().id, 1)
        session.commit()
        advance(session, assignedOrder, AssignedOrderStatus.CANCELLED)

        history = workflow.statusHistory(assignedOrder)

        assert [x["status"] for x in history] == [AssignedOrderStatus.ASSIGNED]
