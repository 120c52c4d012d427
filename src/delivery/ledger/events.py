"""Cash ledger events."""

from protean.fields import DateTime, Float, Identifier

from delivery.domain import delivery


@delivery.event(part_of="CashLedgerEntry")
class CashCollected:
    """A driver took cash from the customer on delivery."""

    __version__ = 1

    entry_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    collected_at = DateTime(required=True)


@delivery.event(part_of="CashLedgerEntry")
class DriverPaymentRecorded:
    """A driver says they handed collected cash to the platform."""

    __version__ = 1

    entry_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    recorded_at = DateTime(required=True)


@delivery.event(part_of="CashLedgerEntry")
class DriverPaymentApproved:
    __version__ = 1

    entry_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    amount = Float(required=True)
    approved_at = DateTime(required=True)
