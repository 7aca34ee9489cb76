from sqlalchemy import (
    JSON,
    TEXT,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.dialects.postgresql import JSONB

from marketplace.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
)
from marketplace.src.enums import (
    AssignedOrderStatus,
    OrderStatus,
    RiderStatus,
)


# Global DBMS variables
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ----------------------------------- General DB Models ---------------------------------------#
class Rider(ORMbase):
    """
    Represents a delivery rider registered on the marketplace.

    Riders are created by an administrator. The `status` column is owned by
    the assignment workflow which flips it between AVAILABLE and BUSY as
    orders are assigned to and completed by the rider.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the rider.

        name (String(64)):
            Full name of the rider.

        phone (String(32)):
            Phone number of the rider in E.164 format.
            Must be unique.

        email (String(256)):
            Optional email address. Must be unique when present.

        password (TEXT):
            Argon2 hash of the rider password.
            Never serialised in API responses.

        vehicle_type (Integer):
            Enum representing the vehicle used by the rider.
            Mapped from the `VehicleType` enum.

        vehicle_number (String(16)):
            Registration number of the vehicle.

        license_number (String(32)):
            Driving license number of the rider.

        status (Integer):
            Enum representing the availability of the rider.
            Defaults to `RiderStatus.OFFLINE`.

        is_active (Boolean):
            Whether the rider account is enabled.

        rating (Float):
            Average of the approved reviews of the rider, between 0 and 5.
            Derived from the `review` table, 0 while the rider has none.

        total_deliveries (Integer):
            Number of successfully completed deliveries.
            Incremented exactly once per delivered assignment.

        latitude (Float), longitude (Float), address (TEXT):
            Last reported location of the rider.

        profile_image (TEXT):
            Optional reference to the profile picture of the rider.

        updated_on (DateTime):
            Timestamp automatically updated whenever the rider record is modified.

        created_on (DateTime):
            Timestamp indicating when the rider was created.
    """

    __tablename__ = "rider"

    id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False)
    phone = Column(String(32), nullable=False, unique=True)
    email = Column(String(256), unique=True)
    password = Column(TEXT, nullable=False)
    vehicle_type = Column(Integer, nullable=False)
    vehicle_number = Column(String(16), nullable=False)
    license_number = Column(String(32), nullable=False)
    status = Column(Integer, nullable=False, default=RiderStatus.OFFLINE, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    rating = Column(Float, nullable=False, default=0)
    total_deliveries = Column(Integer, nullable=False, default=0)
    # Current location
    latitude = Column(Float)
    longitude = Column(Float)
    address = Column(TEXT)
    profile_image = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Order(ORMbase):
    """
    Represents a customer order placed against a store.

    The order lifecycle is independent of the assignment lifecycle.
    The assignment workflow only touches the order status through the
    order-status-sync subscriber (pickup verified, delivery proof added).

    Columns:
        id (Integer):
            Primary key. Unique identifier for the order.
            Its trailing digits double as the pickup OTP.

        user_id (Integer):
            Identifier of the user who placed the order.

        store_type (Integer):
            Enum representing the store vertical. Mapped from `StoreType`.

        store_id (Integer):
            Identifier of the store the order was placed with.

        store_name (String(128)):
            Name of the store at the time of ordering.

        items (JSON):
            Non-empty list of ordered line items.

        status (Integer):
            Enum representing the order status.
            Defaults to `OrderStatus.PENDING`.

        delivery_address (JSON):
            Address the order is delivered to.

        sub_total, delivery_charge, tax, discount, total_amount (Numeric):
            Monetary amounts of the order.
            `total_amount` is `sub_total + delivery_charge + tax - discount`.

        notes (TEXT):
            Optional delivery instructions.

        estimated_delivery_at (DateTime):
            Optional estimated delivery time.

        delivered_on (DateTime), cancelled_on (DateTime):
            Set when the order reaches the respective status.

        cancellation_reason (TEXT):
            Reason recorded when the order is cancelled.
    """

    __tablename__ = "order"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    store_type = Column(Integer, nullable=False, index=True)
    store_id = Column(Integer, nullable=False, index=True)
    store_name = Column(String(128), nullable=False)
    items = Column(JSONType, nullable=False)
    status = Column(Integer, nullable=False, default=OrderStatus.PENDING, index=True)
    delivery_address = Column(JSONType, nullable=False)
    sub_total = Column(Numeric(10, 2), nullable=False)
    delivery_charge = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    notes = Column(TEXT)
    estimated_delivery_at = Column(DateTime(timezone=True))
    delivered_on = Column(DateTime(timezone=True))
    cancelled_on = Column(DateTime(timezone=True))
    cancellation_reason = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class AssignedOrder(ORMbase):
    """
    Represents the assignment of an order to a rider (an assignment ledger entry).

    The entry owns the rider/order pairing and the timestamps of every
    delivery transition. Its status evolves independently of the order status.
    Reassignment changes `rider_id` in place, so there is never more than one
    entry for the same (order_id, rider_id) pair.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the assignment.

        rider_id (Integer):
            Foreign key referencing `rider.id`.
            The rider currently responsible for the delivery.

        order_id (Integer):
            Foreign key referencing `order.id`.

        user_id (Integer):
            Identifier of the user who receives the delivery.

        status (Integer):
            Enum representing the delivery status.
            Defaults to `AssignedOrderStatus.ASSIGNED`.

        assigned_on (DateTime):
            Time at which the order was assigned.

        picked_up_on (DateTime):
            Time at which the rider picked the order up.

        delivered_on (DateTime):
            Time at which the order was delivered.

        cancelled_on (DateTime):
            Time at which the assignment was cancelled.

        notes (TEXT):
            Free-text notes. Reassignment reasons are appended here.

        delivery_proof (JSON):
            List of media references captured at delivery.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the assignment was created.
    """

    __tablename__ = "assigned_order"
    __table_args__ = (UniqueConstraint("order_id", "rider_id"),)

    id = Column(Integer, primary_key=True)
    rider_id = Column(
        Integer,
        ForeignKey("rider.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order_id = Column(
        Integer,
        ForeignKey("order.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(Integer, nullable=False, index=True)
    status = Column(
        Integer, nullable=False, default=AssignedOrderStatus.ASSIGNED, index=True
    )
    assigned_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
    picked_up_on = Column(DateTime(timezone=True))
    delivered_on = Column(DateTime(timezone=True))
    cancelled_on = Column(DateTime(timezone=True))
    notes = Column(TEXT)
    delivery_proof = Column(JSONType)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Review(ORMbase):
    """
    Represents a review left by a user for the rider of a delivered order.

    A review is tied to the ledger entry that was delivered, so a user can
    review each delivery once. The average of the approved reviews of a
    rider is written to `Rider.rating` after every change to its reviews.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the review.

        assigned_order_id (Integer):
            Foreign key referencing `assigned_order.id`.
            Set to NULL if the entry is deleted, so the review and the
            rider rating survive the removal of the entry.

        rider_id (Integer):
            Foreign key referencing `rider.id`.
            The rider who delivered the order.

        order_id (Integer):
            Identifier of the delivered order.

        user_id (Integer):
            Identifier of the user who wrote the review.

        rating (Integer):
            Rating between 1 and 5.

        comment (TEXT):
            Optional review text.

        reply (TEXT):
            Optional reply from the marketplace.

        replied_on (DateTime):
            Time at which the reply was written.

        is_approved (Boolean):
            Whether the review counts towards the rider rating.
            Reviews are approved on creation.

        updated_on (DateTime):
            Timestamp automatically updated whenever the review is modified.

        created_on (DateTime):
            Timestamp indicating when the review was created.
    """

    __tablename__ = "review"

    id = Column(Integer, primary_key=True)
    assigned_order_id = Column(
        Integer,
        ForeignKey("assigned_order.id", ondelete="SET NULL"),
        unique=True,
    )
    rider_id = Column(
        Integer,
        ForeignKey("rider.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    rating = Column(Integer, nullable=False, index=True)
    comment = Column(TEXT)
    reply = Column(TEXT)
    replied_on = Column(DateTime(timezone=True))
    is_approved = Column(Boolean, nullable=False, default=True, index=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Notification(ORMbase):
    """
    Represents a notification addressed to a marketplace user.

    Rows are written after an assignment transaction commits. Delivering
    them over push, SMS or email is done by an external notifier.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the notification.

        user_id (Integer):
            Identifier of the recipient.

        type (Integer):
            Enum representing the notification type.
            Mapped from the `NotificationType` enum.

        title (String(128)):
            Short title of the notification.

        message (TEXT):
            Body of the notification.

        data (JSON):
            Related identifiers (assigned order, order, rider).

        is_read (Boolean):
            Whether the user has read the notification.

        read_on (DateTime):
            Time at which the notification was marked as read.

        created_on (DateTime):
            Timestamp indicating when the notification was created.
    """

    __tablename__ = "notification"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    type = Column(Integer, nullable=False)
    title = Column(String(128), nullable=False)
    message = Column(TEXT, nullable=False)
    data = Column(JSONType)
    is_read = Column(Boolean, nullable=False, default=False)
    read_on = Column(DateTime(timezone=True))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
