"""Driver onboarding — register, approve, reject and track drivers."""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.driver.driver import Driver, DriverType, VehicleType


@delivery.command(part_of="Driver")
class RegisterDriver:
    full_name = String(required=True, max_length=150)
    mobile_number = String(required=True, max_length=30)
    vehicle_type = String(required=True, choices=VehicleType)
    driver_type = String(required=True, choices=DriverType)
    latitude = Float()
    longitude = Float()


@delivery.command(part_of="Driver")
class ApproveDriver:
    driver_id = Identifier(required=True)


@delivery.command(part_of="Driver")
class RejectDriver:
    driver_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


@delivery.command(part_of="Driver")
class UpdateDriverLocation:
    """Record the position the driver's app reported."""

    driver_id = Identifier(required=True)
    latitude = Float(required=True, min_value=-90.0, max_value=90.0)
    longitude = Float(required=True, min_value=-180.0, max_value=180.0)


@delivery.command_handler(part_of=Driver)
class DriverOnboardingHandler:
    @handle(RegisterDriver)
    def register_driver(self, command):
        driver = Driver.register(
            full_name=command.full_name,
            mobile_number=command.mobile_number,
            vehicle_type=command.vehicle_type,
            driver_type=command.driver_type,
            latitude=command.latitude,
            longitude=command.longitude,
        )
        current_domain.repository_for(Driver).add(driver)
        return str(driver.id)

    @handle(ApproveDriver)
    def approve_driver(self, command):
        repo = current_domain.repository_for(Driver)
        driver = repo.get(command.driver_id)
        driver.approve()
        repo.add(driver)

    @handle(RejectDriver)
    def reject_driver(self, command):
        repo = current_domain.repository_for(Driver)
        driver = repo.get(command.driver_id)
        driver.reject(command.reason)
        repo.add(driver)

    @handle(UpdateDriverLocation)
    def update_driver_location(self, command):
        repo = current_domain.repository_for(Driver)
        driver = repo.get(command.driver_id)
        driver.update_location(command.latitude, command.longitude)
        repo.add(driver)
