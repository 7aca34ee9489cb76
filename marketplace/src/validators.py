"""
Validation and permission checks for the Marketplace API.

This module centralizes guard logic such as:
- State transition enforcement
- Rider ownership of assignment ledger entries
- Pickup OTP verification

All functions raise appropriate exceptions from `marketplace.src.exceptions`
when validation fails, ensuring consistent error handling.
"""

from typing import Any

from marketplace.src.db import AssignedOrder, Order
from marketplace.src.constants import PICKUP_OTP_LENGTH
from marketplace.src import exceptions
from marketplace.src.functions import isValidTransition


# ---------------------------------------------------------------------------
# Permission checks
# ---------------------------------------------------------------------------
def riderOwnership(assignedOrder: AssignedOrder, rider_id: int) -> bool:
    """
    Validate that the acting rider is the one the entry is assigned to.

    Raises:
        exceptions.NoPermission: If the entry belongs to another rider.
    """
    if assignedOrder.rider_id != rider_id:
        raise exceptions.NoPermission()
    return True


# ---------------------------------------------------------------------------
# Other validations
# ---------------------------------------------------------------------------
def stateTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any
) -> bool:
    """
    Validate whether a state transition is allowed.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.

    Returns:
        bool: True if the transition is valid.

    Raises:
        exceptions.InvalidStateTransition: If the transition is not permitted.
    """
    if not isValidTransition(transitions, old_state, new_state):
        raise exceptions.InvalidStateTransition(old_state, new_state)
    return True


def pickupOTP(order: Order) -> str:
    """
    Expected pickup code of an order: the trailing characters of its ID.

    This is a placeholder scheme, predictable from the order ID,
    and not a security boundary.
    """
    return str(order.id)[-PICKUP_OTP_LENGTH:]


def otp(order: Order, otp: str) -> bool:
    """
    Validate the pickup OTP presented by a rider.

    Raises:
        exceptions.InvalidOTP: If the code does not match the order.
    """
    if otp != pickupOTP(order):
        raise exceptions.InvalidOTP()
    return True
