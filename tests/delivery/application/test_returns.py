"""Application tests for the return workflow."""

import pytest
from delivery.driver.driver import Driver
from delivery.errors import (
    InvalidReturnStateError,
    NoDriverAvailableError,
    ReturnNotAllowedError,
    ReturnRequestNotFoundError,
)
from delivery.order.assignment import ConfirmVendorBlock
from delivery.order.order import Order, ReturnStatus
from delivery.order.returns import (
    AssignReturnDriver,
    ConfirmReturnPickup,
    ConfirmVendorReceipt,
    RejectReturn,
    RequestReturn,
)
from delivery.order.status import UpdateVendorStatus
from protean import current_domain

NEAR_CUSTOMER = {"latitude": 33.521, "longitude": 36.281}


def _process(command):
    return current_domain.process(command, asynchronous=False)


@pytest.fixture()
def delivered_order(place_order, make_driver):
    # Far enough from the customer to stay out of the return search
    make_driver(latitude=45.0, longitude=36.3)
    order_id = place_order()
    _process(ConfirmVendorBlock(order_id=order_id, vendor_id="V1"))
    _process(UpdateVendorStatus(order_id=order_id, vendor_id="V1", status="delivered"))
    return order_id


def _return_request(order_id):
    return current_domain.repository_for(Order).get(order_id).return_request


def _driver(driver_id):
    return current_domain.repository_for(Driver).get(str(driver_id))


class TestRequestReturn:
    def test_opens_return(self, delivered_order):
        _process(RequestReturn(order_id=delivered_order, reason="Arrived damaged"))

        request = _return_request(delivered_order)
        assert request.status == ReturnStatus.REQUESTED.value
        assert request.reason == "Arrived damaged"

    def test_undelivered_order(self, place_order):
        order_id = place_order()
        with pytest.raises(ReturnNotAllowedError):
            _process(RequestReturn(order_id=order_id, reason="Changed my mind"))


class TestReturnDriver:
    def test_assigns_idle_driver_near_customer(self, delivered_order, make_driver):
        _process(RequestReturn(order_id=delivered_order, reason="Arrived damaged"))
        returner = make_driver(**NEAR_CUSTOMER)

        driver_id = _process(AssignReturnDriver(order_id=delivered_order))

        assert driver_id == str(returner.id)
        request = _return_request(delivered_order)
        assert request.status == ReturnStatus.DRIVER_ASSIGNED.value
        assert request.driver_id == str(returner.id)
        assert _driver(returner.id).is_available is False

    def test_no_driver(self, delivered_order, make_driver):
        _process(RequestReturn(order_id=delivered_order, reason="Arrived damaged"))
        make_driver(is_available=False, **NEAR_CUSTOMER)

        with pytest.raises(NoDriverAvailableError):
            _process(AssignReturnDriver(order_id=delivered_order))
        assert _return_request(delivered_order).status == ReturnStatus.REQUESTED.value

    def test_requires_open_request(self, delivered_order, make_driver):
        make_driver(**NEAR_CUSTOMER)
        with pytest.raises(ReturnRequestNotFoundError):
            _process(AssignReturnDriver(order_id=delivered_order))


class TestCompleteReturn:
    def test_full_return(self, delivered_order, make_driver):
        returner = make_driver(**NEAR_CUSTOMER)
        _process(RequestReturn(order_id=delivered_order, reason="Arrived damaged"))
        _process(AssignReturnDriver(order_id=delivered_order))
        _process(ConfirmReturnPickup(order_id=delivered_order))

        assert _return_request(delivered_order).status == ReturnStatus.PICKED.value

        _process(ConfirmVendorReceipt(order_id=delivered_order))

        request = _return_request(delivered_order)
        assert request.status == ReturnStatus.COMPLETED.value
        assert request.received_at is not None
        assert request.completed_at is not None
        freed = _driver(returner.id)
        assert freed.is_available is True
        assert freed.is_delivering is False

    def test_receipt_before_pickup(self, delivered_order, make_driver):
        make_driver(**NEAR_CUSTOMER)
        _process(RequestReturn(order_id=delivered_order, reason="Arrived damaged"))
        _process(AssignReturnDriver(order_id=delivered_order))

        with pytest.raises(InvalidReturnStateError):
            _process(ConfirmVendorReceipt(order_id=delivered_order))


class TestRejectReturn:
    def test_reject(self, delivered_order):
        _process(RequestReturn(order_id=delivered_order, reason="Arrived damaged"))
        _process(RejectReturn(order_id=delivered_order, reason="Outside the return window"))

        assert _return_request(delivered_order).status == ReturnStatus.REJECTED.value

    def test_can_request_again_after_rejection(self, delivered_order):
        _process(RequestReturn(order_id=delivered_order, reason="Arrived damaged"))
        _process(RejectReturn(order_id=delivered_order, reason="Outside the return window"))
        _process(RequestReturn(order_id=delivered_order, reason="Photos attached"))

        assert _return_request(delivered_order).status == ReturnStatus.REQUESTED.value
