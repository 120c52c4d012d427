"""Driver aggregate — the registry entry for one courier.

A driver is dispatchable when approved and available. Availability
is the contended resource of the whole context: a leg that holds a driver
means that driver is unavailable, so taking a driver goes through
``claim()`` which refuses a driver that is not approved or that someone else
already took. Drivers are kept in their own ``dispatch`` database, see
``delivery.driver.registry``.

Onboarding:
    Pending → Approved
    Pending → Rejected
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, String, ValueObject

from delivery.domain import delivery
from delivery.driver.events import (
    DriverApproved,
    DriverLocationUpdated,
    DriverRegistered,
    DriverRejected,
)
from delivery.errors import AlreadyInStateError, DriverUnavailableError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class DriverStatus(Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class VehicleType(Enum):
    BIKE = "bike"
    VAN = "van"


class DriverType(Enum):
    FULL_TIME = "full-time"
    PART_TIME = "part-time"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@delivery.value_object(part_of="Driver")
class GeoPoint:
    """Last reported position of a driver."""

    latitude = Float(required=True, min_value=-90.0, max_value=90.0)
    longitude = Float(required=True, min_value=-180.0, max_value=180.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@delivery.aggregate(provider="dispatch")
class Driver:
    full_name = String(required=True, max_length=150)
    mobile_number = String(required=True, max_length=30, unique=True)
    status = String(choices=DriverStatus, default=DriverStatus.PENDING.value)
    vehicle_type = String(required=True, choices=VehicleType)
    driver_type = String(required=True, choices=DriverType)
    is_available = Boolean(default=True)
    is_delivering = Boolean(default=False)
    location = ValueObject(GeoPoint)
    cash_in_hand = Float(default=0.0)
    rejection_reason = String(max_length=500)
    registered_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(
        cls,
        full_name: str,
        mobile_number: str,
        vehicle_type: str,
        driver_type: str,
        latitude: float | None = None,
        longitude: float | None = None,
    ):
        """Sign up a new driver; they cannot be dispatched until approved."""
        now = datetime.now(UTC)
        location = None
        if latitude is not None and longitude is not None:
            location = GeoPoint(latitude=latitude, longitude=longitude)

        driver = cls(
            full_name=full_name,
            mobile_number=mobile_number,
            vehicle_type=vehicle_type,
            driver_type=driver_type,
            location=location,
            registered_at=now,
            updated_at=now,
        )
        driver.raise_(
            DriverRegistered(
                driver_id=str(driver.id),
                full_name=full_name,
                vehicle_type=vehicle_type,
                driver_type=driver_type,
                registered_at=now,
            )
        )
        return driver

    # -------------------------------------------------------------------
    # Onboarding
    # -------------------------------------------------------------------
    def approve(self) -> None:
        if self.status == DriverStatus.APPROVED.value:
            raise AlreadyInStateError({"status": ["Driver is already approved"]})
        if self.status == DriverStatus.REJECTED.value:
            raise ValidationError({"status": ["A rejected driver cannot be approved"]})

        now = datetime.now(UTC)
        self.status = DriverStatus.APPROVED.value
        self.updated_at = now
        self.raise_(DriverApproved(driver_id=str(self.id), approved_at=now))

    def reject(self, reason: str) -> None:
        if self.status != DriverStatus.PENDING.value:
            raise ValidationError({"status": [f"Cannot reject a driver in {self.status} status"]})

        now = datetime.now(UTC)
        self.status = DriverStatus.REJECTED.value
        self.rejection_reason = reason
        self.updated_at = now
        self.raise_(DriverRejected(driver_id=str(self.id), reason=reason, rejected_at=now))

    def update_location(self, latitude: float, longitude: float) -> None:
        now = datetime.now(UTC)
        self.location = GeoPoint(latitude=latitude, longitude=longitude)
        self.updated_at = now
        self.raise_(
            DriverLocationUpdated(
                driver_id=str(self.id),
                latitude=latitude,
                longitude=longitude,
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    @property
    def is_dispatchable(self) -> bool:
        return self.status == DriverStatus.APPROVED.value and bool(self.is_available)

    def claim(self) -> None:
        """Take the driver for a leg. Fails when someone else took them first."""
        if not self.is_dispatchable:
            raise DriverUnavailableError({"driver_id": [f"Driver {self.id} is no longer available"]})
        self.is_available = False
        self.is_delivering = True
        self.updated_at = datetime.now(UTC)

    def release(self) -> None:
        """The leg ended; the driver is free and idle again."""
        self.is_available = True
        self.is_delivering = False
        self.updated_at = datetime.now(UTC)

    def return_to_pool(self) -> None:
        """Taken off a leg mid-route; available again but still counted as delivering."""
        self.is_available = True
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Cash in hand
    # -------------------------------------------------------------------
    def collect_cash(self, amount: float) -> None:
        if amount <= 0:
            raise ValidationError({"amount": ["Amount must be positive"]})
        self.cash_in_hand = round((self.cash_in_hand or 0.0) + amount, 2)
        self.updated_at = datetime.now(UTC)

    def hand_over_cash(self, amount: float) -> None:
        if amount <= 0:
            raise ValidationError({"amount": ["Amount must be positive"]})
        if amount > (self.cash_in_hand or 0.0):
            raise ValidationError({"amount": ["Amount exceeds the cash the driver is holding"]})
        self.cash_in_hand = round(self.cash_in_hand - amount, 2)
        self.updated_at = datetime.now(UTC)
