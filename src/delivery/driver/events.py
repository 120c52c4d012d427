"""Driver domain events."""

from protean.fields import DateTime, Float, Identifier, String

from delivery.domain import delivery


@delivery.event(part_of="Driver")
class DriverRegistered:
    """A new driver signed up and awaits approval."""

    __version__ = 1

    driver_id = Identifier(required=True)
    full_name = String(required=True)
    vehicle_type = String(required=True)
    driver_type = String(required=True)
    registered_at = DateTime(required=True)


@delivery.event(part_of="Driver")
class DriverApproved:
    __version__ = 1

    driver_id = Identifier(required=True)
    approved_at = DateTime(required=True)


@delivery.event(part_of="Driver")
class DriverRejected:
    __version__ = 1

    driver_id = Identifier(required=True)
    reason = String()
    rejected_at = DateTime(required=True)


@delivery.event(part_of="Driver")
class DriverLocationUpdated:
    """The driver's app reported a new position."""

    __version__ = 1

    driver_id = Identifier(required=True)
    latitude = Float(required=True)
    longitude = Float(required=True)
    updated_at = DateTime(required=True)
