"""DriverCommission aggregate — the share of an order a driver earns.

One row per (driver type, vehicle). Driver records spell their type with a
hyphen (``full-time``) while the table uses an underscore (``full_time``);
``normalize_driver_type`` bridges the two.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, String

from delivery.commission.events import CommissionUpdated
from delivery.domain import delivery


class CommissionDriverType(Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"


class CommissionVehicle(Enum):
    BIKE = "bike"
    VAN = "van"


def normalize_driver_type(driver_type: str | None) -> str:
    return (driver_type or "").replace("-", "_")


@delivery.aggregate
class DriverCommission:
    driver_type = String(required=True, max_length=20, choices=CommissionDriverType)
    vehicle = String(required=True, max_length=20, choices=CommissionVehicle)
    commission_percentage = Float(default=0.0, min_value=0.0, max_value=100.0)
    updated_at = DateTime()

    def change_percentage(self, percentage: float) -> None:
        previous = self.commission_percentage
        now = datetime.now(UTC)
        self.commission_percentage = percentage
        self.updated_at = now
        self.raise_(
            CommissionUpdated(
                commission_id=str(self.id),
                driver_type=self.driver_type,
                vehicle=self.vehicle,
                previous_percentage=previous,
                new_percentage=percentage,
                updated_at=now,
            )
        )
