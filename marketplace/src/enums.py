from enum import IntEnum


class AppID(IntEnum):
    ADMIN = 1
    RIDER = 2


class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class RiderStatus(IntEnum):
    AVAILABLE = 1
    BUSY = 2
    OFFLINE = 3


class VehicleType(IntEnum):
    BIKE = 1
    SCOOTER = 2
    BICYCLE = 3
    CAR = 4


class StoreType(IntEnum):
    RESTAURANT = 1
    MEDICAL = 2
    GROCERY = 3
    CLOTHES = 4


class OrderStatus(IntEnum):
    PENDING = 1
    CONFIRMED = 2
    PREPARING = 3
    OUT_FOR_DELIVERY = 4
    DELIVERED = 5
    CANCELLED = 6


class AssignedOrderStatus(IntEnum):
    ASSIGNED = 1
    PICKED_UP = 2
    IN_TRANSIT = 3
    DELIVERED = 4
    CANCELLED = 5


class ProofType(IntEnum):
    PHOTO = 1
    SIGNATURE = 2
    OTHER = 3


class NotificationType(IntEnum):
    RIDER_ASSIGNED = 1
    RIDER_REASSIGNED = 2
    ORDER_PICKED_UP = 3
    ORDER_DELIVERED = 4


class AssignmentEvent(IntEnum):
    ASSIGNED = 1
    REASSIGNED = 2
    STATUS_UPDATED = 3
    PICKUP_VERIFIED = 4
    DELIVERY_PROOF_ADDED = 5
