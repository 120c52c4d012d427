"""Commission table management — seed, update and look up driver commission rates."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Float, Identifier
from protean.utils.globals import current_domain

from delivery.commission.commission import (
    CommissionDriverType,
    CommissionVehicle,
    DriverCommission,
    normalize_driver_type,
)
from delivery.domain import delivery
from delivery.errors import CommissionNotFoundError

logger = structlog.get_logger(__name__)


@delivery.command(part_of="DriverCommission")
class SeedDefaultCommissions:
    """Create a row for every driver type and vehicle when the table is empty."""

    commission_percentage = Float(default=0.0, min_value=0.0, max_value=100.0)


@delivery.command(part_of="DriverCommission")
class UpdateCommission:
    commission_id = Identifier(required=True)
    commission_percentage = Float(required=True)


@delivery.command_handler(part_of=DriverCommission)
class CommissionHandler:
    @handle(SeedDefaultCommissions)
    def seed_default_commissions(self, command):
        repo = current_domain.repository_for(DriverCommission)
        if repo._dao.query.limit(None).all().items:
            return 0

        created = 0
        for driver_type in CommissionDriverType:
            for vehicle in CommissionVehicle:
                repo.add(
                    DriverCommission(
                        driver_type=driver_type.value,
                        vehicle=vehicle.value,
                        commission_percentage=command.commission_percentage,
                    )
                )
                created += 1
        logger.info("Default driver commissions seeded", rows=created)
        return created

    @handle(UpdateCommission)
    def update_commission(self, command):
        percentage = command.commission_percentage
        if percentage < 0 or percentage > 100:
            raise ValidationError({"commission_percentage": ["Commission percentage must be between 0 and 100."]})

        repo = current_domain.repository_for(DriverCommission)
        try:
            commission = repo.get(command.commission_id)
        except ObjectNotFoundError:
            raise CommissionNotFoundError({"commission_id": ["Commission not found."]}) from None

        commission.change_percentage(percentage)
        repo.add(commission)


def commission_rates() -> list[DriverCommission]:
    """The whole commission table, full-time rows first."""
    rows = current_domain.repository_for(DriverCommission)._dao.query.limit(None).all().items
    return sorted(rows, key=lambda row: (row.driver_type, row.vehicle))


def commission_for(driver_type: str | None, vehicle: str | None) -> float | None:
    """Percentage for a driver's type and vehicle, or None when the table has no row."""
    rows = (
        current_domain.repository_for(DriverCommission)
        ._dao.query.filter(driver_type=normalize_driver_type(driver_type), vehicle=vehicle)
        .all()
        .items
    )
    if not rows:
        return None
    return rows[0].commission_percentage
