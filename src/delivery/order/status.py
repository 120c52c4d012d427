"""Status transitions — vendor block status updates and driver-side leg progress.

A vendor block status update either confirms the block (which needs a
driver, see ``assignment``) or moves it along; delivering or cancelling a
block also closes the leg named by ``sequence`` and frees its driver. The
customer hears about the statuses that have notification copy.
"""

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.driver.driver import Driver, VehicleType
from delivery.order.assignment import confirm_with_driver
from delivery.order.messages import message_for, notify_customer
from delivery.order.order import Order, VendorStatus

logger = structlog.get_logger(__name__)


@delivery.command(part_of="Order")
class UpdateVendorStatus:
    """Move one vendor's part of the order to a new status."""

    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    vehicle_type = String(choices=VehicleType, default=VehicleType.BIKE.value)
    sequence = Integer(min_value=1, default=1)


@delivery.command(part_of="Order")
class UpdateLegStatus:
    """Driver-side progress on one leg: picked, in transit, delivered or cancelled."""

    order_id = Identifier(required=True)
    sequence = Integer(required=True, min_value=1)
    status = String(required=True, max_length=50)


@delivery.command_handler(part_of=Order)
class StatusTransitionHandler:
    @handle(UpdateVendorStatus)
    def update_vendor_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        vendor_id = str(command.vendor_id)
        status = command.status

        if status == VendorStatus.CONFIRMED.value:
            confirm_with_driver(order, vendor_id, command.vehicle_type, command.sequence)
        else:
            released = order.change_vendor_status(vendor_id, status, command.sequence)
            repo.persist(order)
            if released:
                current_domain.repository_for(Driver).release(released)

        logger.info(
            "Vendor status updated",
            order_id=str(order.id),
            vendor_id=vendor_id,
            status=status,
            sequence=command.sequence,
        )

        notify_customer(order.customer_id, order.id, status)
        return {
            "order_id": str(order.id),
            "vendor_id": vendor_id,
            "status": status,
            "message": message_for(status).reply,
        }

    @handle(UpdateLegStatus)
    def update_leg_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        released = order.change_leg_status(command.sequence, command.status)
        repo.persist(order)
        if released:
            current_domain.repository_for(Driver).release(released)

        logger.info(
            "Leg status updated",
            order_id=str(order.id),
            sequence=command.sequence,
            status=command.status,
            order_status=order.status,
        )
        return {
            "order_id": str(order.id),
            "sequence": command.sequence,
            "status": command.status,
            "order_status": order.status,
        }
