from protean.fields import DateTime, Float, Identifier, String

from delivery.domain import delivery


@delivery.event(part_of="DriverCommission")
class CommissionUpdated:
    """An admin changed a driver commission rate."""

    __version__ = 1

    commission_id = Identifier(required=True)
    driver_type = String(required=True)
    vehicle = String(required=True)
    previous_percentage = Float()
    new_percentage = Float(required=True)
    updated_at = DateTime(required=True)
