"""Application tests for confirming vendor blocks and reassigning drivers."""

import threading

import pytest
from delivery.driver.driver import Driver
from delivery.errors import AlreadyInStateError, InvalidTransitionError, NoDriverAvailableError
from delivery.order.assignment import ConfirmVendorBlock, ReassignDriver
from delivery.order.order import LegStatus, Order, VendorStatus
from delivery.settings import setting
from protean import current_domain


def _confirm(order_id, vendor_id="V1", vehicle_type="bike", sequence=1):
    return current_domain.process(
        ConfirmVendorBlock(order_id=order_id, vendor_id=vendor_id, vehicle_type=vehicle_type, sequence=sequence),
        asynchronous=False,
    )


def _reassign(order_id, vendor_id="V1", reason="Vehicle broke down", sequence=1):
    return current_domain.process(
        ReassignDriver(order_id=order_id, vendor_id=vendor_id, reason=reason, sequence=sequence),
        asynchronous=False,
    )


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _driver(driver_id):
    return current_domain.repository_for(Driver).get(str(driver_id))


class TestConfirmVendorBlock:
    def test_assigns_nearby_driver(self, place_order, make_driver):
        driver = make_driver()
        order_id = place_order()

        result = _confirm(order_id)

        assert result["driver_id"] == str(driver.id)
        assert result["message"] == "Driver assigned to leg and order confirmed successfully."
        order = _order(order_id)
        leg = order.leg(1)
        assert leg.driver_id == str(driver.id)
        assert leg.status == LegStatus.DRIVER_ASSIGNED.value
        assert order.vendor_block("V1").status == VendorStatus.CONFIRMED.value
        assert order.assigned_driver_ids() == [str(driver.id)]

    def test_claims_driver(self, place_order, make_driver):
        driver = make_driver()
        _confirm(place_order())

        claimed = _driver(driver.id)
        assert claimed.is_available is False
        assert claimed.is_delivering is True

    def test_picks_nearest(self, place_order, make_driver):
        make_driver(latitude=33.60, longitude=36.40)
        nearest = make_driver()
        order_id = place_order()

        assert _confirm(order_id)["driver_id"] == str(nearest.id)

    def test_matches_vehicle(self, place_order, make_driver):
        make_driver(vehicle_type="bike")
        van = make_driver(latitude=33.55, longitude=36.35, vehicle_type="van")
        order_id = place_order()

        assert _confirm(order_id, vehicle_type="van")["driver_id"] == str(van.id)
        assert _order(order_id).leg(1).vehicle_type == "van"

    def test_skips_unapproved_and_busy_drivers(self, place_order, make_driver):
        make_driver(status="Pending")
        make_driver(is_available=False)
        make_driver(is_delivering=True)
        order_id = place_order()

        with pytest.raises(NoDriverAvailableError):
            _confirm(order_id)

    def test_no_driver_in_range_leaves_order_untouched(self, place_order, make_driver, monkeypatch):
        make_driver(latitude=36.20, longitude=37.13)
        order_id = place_order()
        radius = {"confirm_search_radius_km": 10.0}
        monkeypatch.setattr(
            "delivery.order.assignment.setting",
            lambda key: radius.get(key, setting(key)),
        )

        with pytest.raises(NoDriverAvailableError):
            _confirm(order_id)

        order = _order(order_id)
        assert order.vendor_block("V1").status == VendorStatus.PENDING.value
        assert order.leg(1).driver_id is None
        assert order.leg(1).status == LegStatus.PENDING.value

    def test_confirming_twice(self, place_order, make_driver):
        make_driver()
        make_driver()
        order_id = place_order()
        _confirm(order_id)

        with pytest.raises(AlreadyInStateError):
            _confirm(order_id)

    def test_two_vendors_get_two_drivers(self, place_order, make_driver):
        first = make_driver()
        second = make_driver()
        order_id = place_order(lines=(("P1", "V1", 1, 10.0), ("P2", "V2", 1, 8.0)))

        one = _confirm(order_id, vendor_id="V1", sequence=1)["driver_id"]
        two = _confirm(order_id, vendor_id="V2", sequence=2)["driver_id"]

        assert {one, two} == {str(first.id), str(second.id)}
        assert _order(order_id).leg(2).driver_id == two


class TestReassignDriver:
    def test_finds_replacement_out_on_the_road(self, place_order, make_driver):
        original = make_driver()
        order_id = place_order()
        _confirm(order_id)
        replacement = make_driver(latitude=33.515, longitude=36.295, is_delivering=True)

        result = _reassign(order_id)

        assert result == {
            "success": True,
            "driver_id": str(replacement.id),
            "message": "Driver reassigned successfully.",
        }
        order = _order(order_id)
        leg = order.leg(1)
        assert leg.driver_id == str(replacement.id)
        assert leg.rejected_driver_ids() == [str(original.id)]
        assert order.vendor_block("V1").status == VendorStatus.CONFIRMED.value

    def test_rejected_driver_goes_back_to_the_pool(self, place_order, make_driver):
        original = make_driver()
        order_id = place_order()
        _confirm(order_id)

        _reassign(order_id)

        rejected = _driver(original.id)
        assert rejected.is_available is True
        assert rejected.is_delivering is True

    def test_no_one_but_the_rejected_driver(self, place_order, make_driver):
        make_driver()
        order_id = place_order()
        _confirm(order_id)

        result = _reassign(order_id)

        assert result == {"success": False, "driver_id": None, "message": "No other drivers available."}
        order = _order(order_id)
        assert order.leg(1).driver_id is None
        assert order.leg(1).status == LegStatus.PENDING.value
        assert order.vendor_block("V1").status == VendorStatus.PENDING.value

    def test_idle_drivers_are_not_offered(self, place_order, make_driver):
        make_driver()
        order_id = place_order()
        _confirm(order_id)
        make_driver(latitude=33.515, longitude=36.295, is_delivering=False)

        assert _reassign(order_id)["success"] is False

    def test_replacement_must_be_close(self, place_order, make_driver):
        make_driver()
        order_id = place_order()
        _confirm(order_id)
        make_driver(latitude=33.70, longitude=36.50, is_delivering=True)

        assert _reassign(order_id)["success"] is False

    def test_reassign_after_delivery(self, place_order, make_driver):
        from delivery.order.status import UpdateVendorStatus

        make_driver()
        order_id = place_order()
        _confirm(order_id)
        current_domain.process(
            UpdateVendorStatus(order_id=order_id, vendor_id="V1", status="delivered"),
            asynchronous=False,
        )

        with pytest.raises(InvalidTransitionError):
            _reassign(order_id)


class TestFailedOrderWrite:
    def test_confirm_releases_the_claimed_driver(self, place_order, make_driver, failing_commit):
        driver = make_driver()
        order_id = place_order()
        failing_commit()

        with pytest.raises(ConnectionError):
            _confirm(order_id)

        released = _driver(driver.id)
        assert released.is_available is True
        assert released.is_delivering is False
        order = _order(order_id)
        assert order.leg(1).driver_id is None
        assert order.vendor_block("V1").status == VendorStatus.PENDING.value

    def test_driver_can_be_confirmed_again_afterwards(self, place_order, make_driver, failing_commit):
        driver = make_driver()
        order_id = place_order()
        failing_commit()
        with pytest.raises(ConnectionError):
            _confirm(order_id)

        assert _confirm(order_id)["driver_id"] == str(driver.id)

    def test_reassign_returns_the_replacement_to_the_pool(self, place_order, make_driver, failing_commit):
        original = make_driver()
        order_id = place_order()
        _confirm(order_id)
        replacement = make_driver(latitude=33.515, longitude=36.295, is_delivering=True)
        failing_commit()

        with pytest.raises(ConnectionError):
            _reassign(order_id)

        assert _driver(replacement.id).is_available is True
        assert _driver(replacement.id).is_delivering is True
        # The order still names the original driver, who stays taken
        assert _order(order_id).leg(1).driver_id == str(original.id)
        assert _driver(original.id).is_available is False


class TestConcurrentConfirm:
    def test_one_driver_goes_to_one_order(self, delivery_bed, place_order, make_driver):
        driver = make_driver()
        order_ids = [place_order(), place_order()]
        start = threading.Barrier(2)
        confirmed, refused, errors = [], [], []

        def confirm(order_id):
            with delivery_bed.domain.domain_context():
                start.wait(timeout=5)
                try:
                    confirmed.append((order_id, _confirm(order_id)["driver_id"]))
                except NoDriverAvailableError:
                    refused.append(order_id)
                except Exception as exc:
                    errors.append(exc)

        threads = [threading.Thread(target=confirm, args=(order_id,)) for order_id in order_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert errors == []
        assert len(confirmed) == 1
        assert len(refused) == 1
        winner, driver_id = confirmed[0]
        assert driver_id == str(driver.id)
        assert _order(winner).leg(1).driver_id == str(driver.id)
        assert _order(refused[0]).leg(1).driver_id is None
