"""Application tests for driver onboarding via domain.process()."""

import pytest
from delivery.driver.driver import Driver, DriverStatus
from delivery.driver.onboarding import (
    ApproveDriver,
    RegisterDriver,
    RejectDriver,
    UpdateDriverLocation,
)
from delivery.errors import AlreadyInStateError
from protean import current_domain
from protean.exceptions import ValidationError


def _register(**overrides):
    defaults = {
        "full_name": "Lina Khoury",
        "mobile_number": "+963-944-123-456",
        "vehicle_type": "van",
        "driver_type": "part-time",
        "latitude": 33.51,
        "longitude": 36.29,
    }
    defaults.update(overrides)
    return current_domain.process(RegisterDriver(**defaults), asynchronous=False)


def _driver(driver_id):
    return current_domain.repository_for(Driver).get(driver_id)


class TestRegisterDriver:
    def test_persists_pending_driver(self):
        driver_id = _register()
        driver = _driver(driver_id)
        assert driver.full_name == "Lina Khoury"
        assert driver.status == DriverStatus.PENDING.value
        assert driver.vehicle_type == "van"
        assert driver.location.latitude == 33.51

    def test_unknown_vehicle(self):
        with pytest.raises(ValidationError):
            _register(vehicle_type="truck")


class TestApproval:
    def test_approve(self):
        driver_id = _register()
        current_domain.process(ApproveDriver(driver_id=driver_id), asynchronous=False)
        assert _driver(driver_id).status == DriverStatus.APPROVED.value

    def test_approve_twice(self):
        driver_id = _register()
        current_domain.process(ApproveDriver(driver_id=driver_id), asynchronous=False)
        with pytest.raises(AlreadyInStateError):
            current_domain.process(ApproveDriver(driver_id=driver_id), asynchronous=False)

    def test_reject(self):
        driver_id = _register()
        current_domain.process(RejectDriver(driver_id=driver_id, reason="Documents unreadable"), asynchronous=False)

        driver = _driver(driver_id)
        assert driver.status == DriverStatus.REJECTED.value
        assert driver.rejection_reason == "Documents unreadable"


class TestLocation:
    def test_update_location(self):
        driver_id = _register()
        current_domain.process(
            UpdateDriverLocation(driver_id=driver_id, latitude=33.55, longitude=36.31),
            asynchronous=False,
        )
        driver = _driver(driver_id)
        assert driver.location.latitude == 33.55
        assert driver.location.longitude == 36.31

    def test_latitude_out_of_range(self):
        driver_id = _register()
        with pytest.raises(ValidationError):
            UpdateDriverLocation(driver_id=driver_id, latitude=123.0, longitude=36.31)
