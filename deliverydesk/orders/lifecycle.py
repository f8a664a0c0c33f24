"""
Order state machine.

The functions here only mutate the order instance; saving and stock
release happen in orders.services.
"""
from django.utils import timezone

from deliverydesk.core.exceptions import BusinessRuleError
from .models import Order

TRANSITIONS = {
    Order.STATE_PLACED: {Order.STATE_DELIVERING, Order.STATE_CANCELLED},
    Order.STATE_DELIVERING: {Order.STATE_PLACED, Order.STATE_COMPLETED, Order.STATE_RETURNED, Order.STATE_CANCELLED},
    Order.STATE_COMPLETED: set(),
    Order.STATE_RETURNED: set(),
    Order.STATE_CANCELLED: set(),
}

TERMINAL_STATES = {state for state, targets in TRANSITIONS.items() if not targets}

# entering these gives reserved stock back
STOCK_RELEASING_STATES = {Order.STATE_RETURNED, Order.STATE_CANCELLED}

STATE_TIMESTAMPS = {
    Order.STATE_COMPLETED: 'completed_at',
    Order.STATE_RETURNED: 'returned_at',
    Order.STATE_CANCELLED: 'cancelled_at',
}


class InvalidTransition(BusinessRuleError):
    default_detail = 'Order state change is not allowed.'
    default_code = 'invalid_transition'


class InactiveDriver(BusinessRuleError):
    default_detail = 'Driver is not active.'
    default_code = 'inactive_driver'


def is_terminal(state):
    return state in TERMINAL_STATES


def can_transition(current, new):
    if current == new:
        return new in TRANSITIONS
    return new in TRANSITIONS.get(current, set())


def releases_stock(current, new):
    return current != new and new in STOCK_RELEASING_STATES


def apply_state(order, new_state, at=None):
    """
    Move the order to new_state. Returns False for a same-state no-op.
    Raises InvalidTransition for unknown states and disallowed moves.
    """
    if new_state not in TRANSITIONS:
        raise InvalidTransition(f"Unknown order state: {new_state}")
    if order.state == new_state:
        return False
    if not can_transition(order.state, new_state):
        raise InvalidTransition(f"Cannot change order state from {order.state} to {new_state}")

    order.state = new_state
    field = STATE_TIMESTAMPS.get(new_state)
    if field:
        setattr(order, field, at or timezone.now())
    return True


def assign_driver(order, driver, assigned_at=None):
    """
    Assign (or with driver=None, unassign) the order's driver.

    Assigning moves PLACED to DELIVERING and stamps assigned_at.
    Unassigning moves DELIVERING back to PLACED and keeps assigned_at.
    """
    if is_terminal(order.state):
        raise InvalidTransition(f"Cannot change the driver of a {order.state.lower()} order")

    if driver is None:
        order.driver = None
        if order.state == Order.STATE_DELIVERING:
            apply_state(order, Order.STATE_PLACED)
        return order

    if not driver.is_active:
        raise InactiveDriver(f"Driver {driver.name} is not active")

    order.driver = driver
    order.deleted_driver_name = ''
    order.assigned_at = assigned_at or timezone.now()
    if order.state == Order.STATE_PLACED:
        apply_state(order, Order.STATE_DELIVERING)
    return order
