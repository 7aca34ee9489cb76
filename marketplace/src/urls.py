"""
API Endpoint URL Constants

This module defines the URL paths used throughout the application
for accessing riders, orders, assigned orders, notifications and reviews.

These URLs are relative paths and are prefixed by the mount point of the
sub-application serving them (`/admin` or `/rider`).
"""

# -------------------------------
# Rider Directory
# -------------------------------
URL_RIDER = "/riders"
URL_RIDER_AVAILABLE = "/riders/available"
URL_RIDER_STATS = "/riders/stats"
URL_RIDER_BY_ID = "/riders/{rider_id}"
URL_RIDER_ACTIVE = "/riders/{rider_id}/active"
URL_RIDER_LOCATION = "/riders/{rider_id}/location"
URL_RIDER_ASSIGNED_ORDERS = "/riders/{rider_id}/assigned-orders"

# -------------------------------
# Order Store
# -------------------------------
URL_ORDER = "/orders"
URL_ORDER_BY_ID = "/orders/{order_id}"
URL_ORDER_STATUS = "/orders/{order_id}/status"
URL_ORDER_CANCEL = "/orders/{order_id}/cancel"

# -------------------------------
# Assignment Ledger
# -------------------------------
URL_ASSIGNED_ORDER = "/assigned-orders"
URL_ASSIGN = "/assigned-orders/assign"
URL_ASSIGN_BULK = "/assigned-orders/assign-bulk"
URL_ASSIGNED_ORDER_STATS = "/assigned-orders/stats"
URL_USER_ASSIGNED_ORDERS = "/assigned-orders/user/{user_id}"
URL_ASSIGNED_ORDER_BY_ID = "/assigned-orders/{assigned_order_id}"
URL_ASSIGNED_ORDER_STATUS = "/assigned-orders/{assigned_order_id}/status"
URL_REASSIGN = "/assigned-orders/{assigned_order_id}/reassign"
URL_DELIVERY_PROOF = "/assigned-orders/{assigned_order_id}/delivery-proof"
URL_DELIVERY_PROOF_IMAGE = "/assigned-orders/{assigned_order_id}/delivery-proof/image"
URL_VERIFY_PICKUP = "/assigned-orders/{assigned_order_id}/verify-pickup"
URL_TRACKING = "/assigned-orders/{assigned_order_id}/tracking"

# -------------------------------
# Notifications
# -------------------------------
URL_NOTIFICATION = "/notifications"
URL_NOTIFICATION_UNREAD_COUNT = "/notifications/unread-count"
URL_NOTIFICATION_READ_ALL = "/notifications/read-all"
URL_NOTIFICATION_BY_ID = "/notifications/{notification_id}"
URL_NOTIFICATION_READ = "/notifications/{notification_id}/read"

# -------------------------------
# Reviews
# -------------------------------
URL_REVIEW = "/reviews"
URL_REVIEW_STATS = "/reviews/stats"
URL_REVIEW_BY_ID = "/reviews/{review_id}"
URL_REVIEW_REPLY = "/reviews/{review_id}/reply"
URL_REVIEW_MODERATE = "/reviews/{review_id}/moderate"
