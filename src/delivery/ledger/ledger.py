"""CashLedgerEntry aggregate — money a driver collected from, or handed over to, the platform.

Cash-on-delivery money flows through the driver:

    cash_collection  credit, recorded when the driver takes the customer's cash
    paid_to_admin    debit, recorded as pending and approved by an admin
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String

from delivery.domain import delivery
from delivery.ledger.events import CashCollected, DriverPaymentApproved, DriverPaymentRecorded


class TransactionType(Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class LedgerSource(Enum):
    CASH_COLLECTION = "cash_collection"
    PAID_TO_ADMIN = "paid_to_admin"


class LedgerEntryStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"


@delivery.aggregate
class CashLedgerEntry:
    driver_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.0)
    transaction_type = String(required=True, max_length=10, choices=TransactionType)
    source = String(required=True, max_length=30, choices=LedgerSource)
    status = String(max_length=20, choices=LedgerEntryStatus, default=LedgerEntryStatus.APPROVED.value)
    recorded_at = DateTime()
    approved_at = DateTime()

    @classmethod
    def cash_collected(cls, driver_id: str, order_id: str, amount: float):
        now = datetime.now(UTC)
        entry = cls(
            driver_id=driver_id,
            order_id=order_id,
            amount=amount,
            transaction_type=TransactionType.CREDIT.value,
            source=LedgerSource.CASH_COLLECTION.value,
            status=LedgerEntryStatus.APPROVED.value,
            recorded_at=now,
            approved_at=now,
        )
        entry.raise_(
            CashCollected(
                entry_id=str(entry.id),
                driver_id=driver_id,
                order_id=order_id,
                amount=amount,
                collected_at=now,
            )
        )
        return entry

    @classmethod
    def paid_to_admin(cls, driver_id: str, order_id: str, amount: float):
        now = datetime.now(UTC)
        entry = cls(
            driver_id=driver_id,
            order_id=order_id,
            amount=amount,
            transaction_type=TransactionType.DEBIT.value,
            source=LedgerSource.PAID_TO_ADMIN.value,
            status=LedgerEntryStatus.PENDING.value,
            recorded_at=now,
        )
        entry.raise_(
            DriverPaymentRecorded(
                entry_id=str(entry.id),
                driver_id=driver_id,
                order_id=order_id,
                amount=amount,
                recorded_at=now,
            )
        )
        return entry

    def approve(self) -> None:
        if self.source != LedgerSource.PAID_TO_ADMIN.value or self.status != LedgerEntryStatus.PENDING.value:
            raise ValidationError({"status": ["Ledger entry cannot be approved."]})

        now = datetime.now(UTC)
        self.status = LedgerEntryStatus.APPROVED.value
        self.approved_at = now
        self.raise_(
            DriverPaymentApproved(
                entry_id=str(self.id),
                driver_id=str(self.driver_id),
                amount=self.amount,
                approved_at=now,
            )
        )
