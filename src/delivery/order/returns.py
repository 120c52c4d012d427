"""Return workflow — bring delivered goods back from the customer to the vendor.

The return leg runs backwards: a driver is dispatched to the customer's drop
point, collects the goods and hands them to the vendor. The vendor's receipt
closes the return in the same write, recorded by a ReturnReceivedByVendor
event followed by ReturnCompleted.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.driver.driver import Driver
from delivery.errors import NoDriverAvailableError
from delivery.order.assignment import claim_nearest, released_on_failure
from delivery.order.order import Order, ReturnStatus
from delivery.settings import setting

logger = structlog.get_logger(__name__)


@delivery.command(part_of="Order")
class RequestReturn:
    order_id = Identifier(required=True)
    reason = String(max_length=1000)


@delivery.command(part_of="Order")
class AssignReturnDriver:
    order_id = Identifier(required=True)


@delivery.command(part_of="Order")
class ConfirmReturnPickup:
    order_id = Identifier(required=True)


@delivery.command(part_of="Order")
class ConfirmVendorReceipt:
    order_id = Identifier(required=True)


@delivery.command(part_of="Order")
class RejectReturn:
    order_id = Identifier(required=True)
    reason = String(max_length=1000)


@delivery.command_handler(part_of=Order)
class ReturnWorkflowHandler:
    @handle(RequestReturn)
    def request_return(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.request_return(command.reason)
        repo.add(order)
        logger.info("Return requested", order_id=str(order.id))

    @handle(AssignReturnDriver)
    def assign_return_driver(self, command):
        repo = current_domain.repository_for(Order)
        driver_repo = current_domain.repository_for(Driver)
        order = repo.get(command.order_id)

        order.assert_return_status(ReturnStatus.REQUESTED)
        drop = order.drop
        if drop is None or drop.latitude is None or drop.longitude is None:
            raise ValidationError({"drop": ["Customer pickup location missing."]})

        matches = driver_repo.find_nearest_available(
            latitude=drop.latitude,
            longitude=drop.longitude,
            radius_km=float(setting("return_search_radius_km")),
            is_delivering=False,
        )
        driver = claim_nearest(driver_repo, matches)
        if driver is None:
            raise NoDriverAvailableError({"driver": ["No available driver found near the customer."]})

        with released_on_failure(driver_repo.release, str(driver.id)):
            order.assign_return_driver(str(driver.id))
            repo.persist(order)
        logger.info("Return driver assigned", order_id=str(order.id), driver_id=str(driver.id))
        return str(driver.id)

    @handle(ConfirmReturnPickup)
    def confirm_return_pickup(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.confirm_return_pickup()
        repo.add(order)

    @handle(ConfirmVendorReceipt)
    def confirm_vendor_receipt(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        driver_id = order.confirm_vendor_receipt()
        repo.persist(order)
        current_domain.repository_for(Driver).release(driver_id)
        logger.info("Return completed", order_id=str(order.id), driver_id=driver_id)

    @handle(RejectReturn)
    def reject_return(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.reject_return(command.reason)
        repo.add(order)
