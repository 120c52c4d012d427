"""Shared BDD fixtures and step definitions for the Delivery domain."""

import pytest
from delivery.errors import AlreadyInStateError, ConflictError, InvalidTransitionError
from delivery.order.events import (
    DriverAssignedToLeg,
    DriverRejectedFromLeg,
    LegLeftUnassigned,
    LegStatusChanged,
    ReturnCompleted,
    ReturnDriverAssigned,
    ReturnPickedUp,
    ReturnReceivedByVendor,
    ReturnRejected,
    ReturnRequested,
    VendorBlockStatusChanged,
)
from delivery.order.order import Location, Order
from pytest_bdd import given, parsers, then

_ORDER_EVENT_CLASSES = {
    "DriverAssignedToLeg": DriverAssignedToLeg,
    "DriverRejectedFromLeg": DriverRejectedFromLeg,
    "LegLeftUnassigned": LegLeftUnassigned,
    "LegStatusChanged": LegStatusChanged,
    "VendorBlockStatusChanged": VendorBlockStatusChanged,
    "ReturnRequested": ReturnRequested,
    "ReturnDriverAssigned": ReturnDriverAssigned,
    "ReturnPickedUp": ReturnPickedUp,
    "ReturnReceivedByVendor": ReturnReceivedByVendor,
    "ReturnCompleted": ReturnCompleted,
    "ReturnRejected": ReturnRejected,
}


def _place_order(vendor_ids):
    drop = Location(latitude=33.520, longitude=36.280, city="Damascus")
    pickups = [Location(latitude=33.51 - idx / 100, longitude=36.29, city="Damascus") for idx in range(len(vendor_ids))]
    return Order.place(
        order_number="ORD-1735689600000-100",
        customer_id="cust-bdd",
        order_type="1",
        payment_method="cash",
        drop=drop,
        shipping_fee=2.0 if len(vendor_ids) > 1 else 1.0,
        items_data=[
            {"vendor_id": vendor_id, "product_id": f"P-{vendor_id}", "quantity": 1, "price": 10.0, "total_price": 10.0}
            for vendor_id in vendor_ids
        ],
        vendors_data=[
            {"vendor_id": vendor_id, "pickup": pickups[idx], "leg_sequence": idx + 1}
            for idx, vendor_id in enumerate(vendor_ids)
        ],
        legs_data=[
            {"sequence": idx + 1, "origin": pickups[idx], "destination": drop} for idx in range(len(vendor_ids))
        ],
    )


@pytest.fixture()
def error():
    """Container for captured domain errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a placed order from vendors "{vendors}"'), target_fixture="order")
def placed_order(vendors):
    order = _place_order([vendor.strip() for vendor in vendors.split(",")])
    order._events.clear()
    return order


@given(
    parsers.cfparse('vendor "{vendor_id}" is confirmed with driver "{driver_id}" on leg {sequence:d}'),
    target_fixture="order",
)
def vendor_confirmed(order, vendor_id, driver_id, sequence):
    order.confirm_vendor(vendor_id, driver_id, "bike", sequence)
    order._events.clear()
    return order


@given(parsers.cfparse('vendor "{vendor_id}" was delivered on leg {sequence:d}'), target_fixture="order")
def vendor_delivered(order, vendor_id, sequence):
    order.change_vendor_status(vendor_id, "delivered", sequence)
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('vendor "{vendor_id}" is "{status}"'))
def vendor_status_is(order, vendor_id, status):
    assert order.vendor_block(vendor_id).status == status


@then(parsers.cfparse('vendor "{vendor_id}" payment is "{payment_status}"'))
def vendor_payment_is(order, vendor_id, payment_status):
    assert order.vendor_block(vendor_id).payment_status == payment_status


@then(parsers.cfparse('leg {sequence:d} is "{status}"'))
def leg_status_is(order, sequence, status):
    assert order.leg(sequence).status == status


@then(parsers.cfparse('leg {sequence:d} is held by "{driver_id}"'))
def leg_held_by(order, sequence, driver_id):
    assert order.leg(sequence).driver_id == driver_id


@then(parsers.cfparse("leg {sequence:d} has no driver"))
def leg_has_no_driver(order, sequence):
    assert order.leg(sequence).driver_id is None


@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then(parsers.cfparse("a {event_type} event is raised"))
def event_raised(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert any(isinstance(e, event_cls) for e in order._events)


@then("the action fails because nothing would change")
def fails_already_in_state(error):
    assert isinstance(error["exc"], AlreadyInStateError)


@then("the action fails with an invalid transition")
def fails_invalid_transition(error):
    assert isinstance(error["exc"], InvalidTransitionError)


@then("the action fails with a conflict")
def fails_conflict(error):
    assert isinstance(error["exc"], ConflictError)
