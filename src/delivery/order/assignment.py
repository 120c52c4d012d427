"""Driver assignment — confirm a vendor block with a driver, or replace a rejected driver.

Confirmation draws from idle drivers (``is_delivering=False``) around the
vendor's pickup point. Reassignment draws from drivers already out on the
road (``is_delivering=True``) within a tighter radius, never offering a
driver who already turned the leg down. Finding nobody on reassignment is a
normal outcome: the leg and the vendor block go back to pending.
"""

from contextlib import contextmanager

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.driver.driver import Driver, VehicleType
from delivery.errors import DriverUnavailableError, NoDriverAvailableError
from delivery.order.messages import CONFIRMED_MESSAGE
from delivery.order.order import Order, VendorStatus
from delivery.settings import setting

logger = structlog.get_logger(__name__)

NO_REPLACEMENT_MESSAGE = "No other drivers available."
REASSIGNED_MESSAGE = "Driver reassigned successfully."


def claim_nearest(driver_repo, matches) -> Driver | None:
    """Claim the first candidate still free; candidates lost to a concurrent claim are skipped."""
    for match in matches:
        try:
            return driver_repo.claim(str(match.driver.id))
        except DriverUnavailableError:
            logger.info("Driver taken by a concurrent assignment", driver_id=str(match.driver.id))
    return None


@contextmanager
def released_on_failure(undo, driver_id: str):
    """Hand a claimed driver back with ``undo`` if the order write that follows fails."""
    try:
        yield
    except Exception:
        undo(driver_id)
        logger.warning("Driver handed back after a failed order write", driver_id=driver_id)
        raise


def confirm_with_driver(order: Order, vendor_id: str, vehicle_type: str, sequence: int) -> Driver:
    """Find, claim and put a driver on the vendor's leg, confirming and saving the order.

    Raises NoDriverAvailableError without touching the order when nobody is in range.
    The driver is released again if the order cannot be saved.
    """
    order.assert_vendor_can_transition(vendor_id, VendorStatus.CONFIRMED.value)
    block = order.vendor_block(vendor_id)

    driver_repo = current_domain.repository_for(Driver)
    matches = driver_repo.find_nearest_available(
        latitude=block.pickup.latitude,
        longitude=block.pickup.longitude,
        radius_km=float(setting("confirm_search_radius_km")),
        vehicle_type=vehicle_type,
        is_delivering=False,
    )
    if not matches:
        raise NoDriverAvailableError({"driver": ["No available drivers found nearby."]})

    order.unassigned_leg(sequence)
    driver = claim_nearest(driver_repo, matches)
    if driver is None:
        raise NoDriverAvailableError({"driver": ["No available drivers found nearby."]})

    with released_on_failure(driver_repo.release, str(driver.id)):
        order.confirm_vendor(vendor_id, str(driver.id), vehicle_type, sequence)
        current_domain.repository_for(Order).persist(order)
    logger.info(
        "Vendor block confirmed",
        order_id=str(order.id),
        vendor_id=vendor_id,
        driver_id=str(driver.id),
        sequence=sequence,
    )
    return driver


@delivery.command(part_of="Order")
class ConfirmVendorBlock:
    """The vendor accepted their part of the order; dispatch a driver to collect it."""

    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    vehicle_type = String(choices=VehicleType, default=VehicleType.BIKE.value)
    sequence = Integer(min_value=1, default=1)


@delivery.command(part_of="Order")
class ReassignDriver:
    """The leg's driver turned it down; record why and look for someone else."""

    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    reason = String(max_length=500)
    sequence = Integer(min_value=1, default=1)


@delivery.command_handler(part_of=Order)
class DriverAssignmentHandler:
    @handle(ConfirmVendorBlock)
    def confirm_vendor_block(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        vendor_id = str(command.vendor_id)

        driver = confirm_with_driver(order, vendor_id, command.vehicle_type, command.sequence)

        return {
            "order_id": str(order.id),
            "vendor_id": vendor_id,
            "driver_id": str(driver.id),
            "sequence": command.sequence,
            "message": CONFIRMED_MESSAGE.reply,
        }

    @handle(ReassignDriver)
    def reassign_driver(self, command):
        repo = current_domain.repository_for(Order)
        driver_repo = current_domain.repository_for(Driver)
        order = repo.get(command.order_id)
        vendor_id = str(command.vendor_id)
        sequence = command.sequence

        rejected_id = order.reject_leg_driver(vendor_id, sequence, command.reason)

        pickup = order.vendor_block(vendor_id).pickup
        matches = driver_repo.find_nearest_available(
            latitude=pickup.latitude,
            longitude=pickup.longitude,
            radius_km=float(setting("reassign_search_radius_km")),
            is_delivering=True,
            exclude_ids=order.leg(sequence).rejected_driver_ids(),
        )
        driver = claim_nearest(driver_repo, matches)

        if driver is None:
            order.leave_leg_unassigned(vendor_id, sequence)
            repo.persist(order)
            self._return_rejected(driver_repo, rejected_id)
            logger.info(
                "No replacement driver found",
                order_id=str(order.id),
                vendor_id=vendor_id,
                sequence=sequence,
            )
            return {"success": False, "driver_id": None, "message": NO_REPLACEMENT_MESSAGE}

        with released_on_failure(driver_repo.return_to_pool, str(driver.id)):
            order.reassign_leg(vendor_id, sequence, str(driver.id))
            repo.persist(order)
        self._return_rejected(driver_repo, rejected_id)
        logger.info(
            "Driver reassigned",
            order_id=str(order.id),
            vendor_id=vendor_id,
            driver_id=str(driver.id),
            sequence=sequence,
        )
        return {"success": True, "driver_id": str(driver.id), "message": REASSIGNED_MESSAGE}

    @staticmethod
    def _return_rejected(driver_repo, rejected_id):
        # Only once the order no longer names them on the leg
        if rejected_id:
            driver_repo.return_to_pool(rejected_id)
