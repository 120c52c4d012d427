"""Order domain events — immutable facts about order, vendor block and leg changes.

All events are past tense, versioned, and carry enough data for notifications
and reporting without re-reading the order.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from delivery.domain import delivery


@delivery.event(part_of="Order")
class OrderPlaced:
    """A customer's cart was turned into an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    order_type = String(required=True)
    payment_method = String(required=True)
    vendor_ids = Text(required=True)  # JSON list of vendor ids
    leg_count = Integer(required=True)
    sub_total = Float(required=True)
    shipping_fee = Float(required=True)
    grand_total = Float(required=True)
    placed_at = DateTime(required=True)


@delivery.event(part_of="Order")
class DriverAssignedToLeg:
    """A driver was assigned to a delivery leg."""

    __version__ = 1

    order_id = Identifier(required=True)
    vendor_id = Identifier()
    sequence = Integer(required=True)
    driver_id = Identifier(required=True)
    vehicle_type = String(required=True)
    assigned_at = DateTime(required=True)


@delivery.event(part_of="Order")
class DriverRejectedFromLeg:
    """A driver was taken off a leg and recorded as rejected for it."""

    __version__ = 1

    order_id = Identifier(required=True)
    vendor_id = Identifier()
    sequence = Integer(required=True)
    driver_id = Identifier(required=True)
    reason = String()
    rejected_at = DateTime(required=True)


@delivery.event(part_of="Order")
class LegLeftUnassigned:
    """Reassignment found no driver; the leg went back to pending."""

    __version__ = 1

    order_id = Identifier(required=True)
    vendor_id = Identifier()
    sequence = Integer(required=True)
    occurred_at = DateTime(required=True)


@delivery.event(part_of="Order")
class VendorBlockStatusChanged:
    """A vendor's portion of the order moved to a new status."""

    __version__ = 1

    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@delivery.event(part_of="Order")
class LegStatusChanged:
    """A delivery leg moved to a new status."""

    __version__ = 1

    order_id = Identifier(required=True)
    sequence = Integer(required=True)
    driver_id = Identifier()
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@delivery.event(part_of="Order")
class ReturnRequested:
    """The customer asked to return a delivered order."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    reason = String()
    requested_at = DateTime(required=True)


@delivery.event(part_of="Order")
class ReturnDriverAssigned:
    """A driver was dispatched to collect the returned goods from the customer."""

    __version__ = 1

    order_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    assigned_at = DateTime(required=True)


@delivery.event(part_of="Order")
class ReturnPickedUp:
    """The return driver collected the goods from the customer."""

    __version__ = 1

    order_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    picked_up_at = DateTime(required=True)


@delivery.event(part_of="Order")
class ReturnReceivedByVendor:
    """The vendor took the returned goods back."""

    __version__ = 1

    order_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    received_at = DateTime(required=True)


@delivery.event(part_of="Order")
class ReturnCompleted:
    """The return was closed."""

    __version__ = 1

    order_id = Identifier(required=True)
    completed_at = DateTime(required=True)


@delivery.event(part_of="Order")
class ReturnRejected:
    """The return request was turned down."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    rejected_at = DateTime(required=True)
