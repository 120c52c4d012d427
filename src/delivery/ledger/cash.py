"""Driver cash handling — collection on delivery, hand-over to the platform, approval."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Float, Identifier
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.driver.driver import Driver
from delivery.errors import LedgerEntryNotFoundError
from delivery.ledger.ledger import (
    CashLedgerEntry,
    LedgerEntryStatus,
    LedgerSource,
    TransactionType,
)
from delivery.order.order import LegStatus, Order

logger = structlog.get_logger(__name__)


@delivery.command(part_of="CashLedgerEntry")
class RecordCashCollection:
    """The driver collected cash for an order they delivered; defaults to the grand total."""

    driver_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(min_value=0.0)


@delivery.command(part_of="CashLedgerEntry")
class RecordDriverPayment:
    driver_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.0)


@delivery.command(part_of="CashLedgerEntry")
class ApproveDriverPayment:
    entry_id = Identifier(required=True)


@delivery.command_handler(part_of=CashLedgerEntry)
class CashLedgerHandler:
    @handle(RecordCashCollection)
    def record_cash_collection(self, command):
        driver_id = str(command.driver_id)
        order = current_domain.repository_for(Order).get(command.order_id)

        delivered_leg = next(
            (
                leg
                for leg in (order.legs or [])
                if leg.driver_id and str(leg.driver_id) == driver_id and leg.status == LegStatus.DELIVERED.value
            ),
            None,
        )
        if delivered_leg is None:
            raise ValidationError({"order_id": ["No valid delivery leg found for this driver."]})

        amount = command.amount or order.grand_total
        driver_repo = current_domain.repository_for(Driver)
        driver = driver_repo.get(driver_id)
        driver.collect_cash(amount)

        entry = CashLedgerEntry.cash_collected(driver_id, str(order.id), amount)
        current_domain.repository_for(CashLedgerEntry).add(entry)
        driver_repo.add(driver)

        logger.info("Cash collection recorded", driver_id=driver_id, order_id=str(order.id), amount=amount)
        return str(entry.id)

    @handle(RecordDriverPayment)
    def record_driver_payment(self, command):
        driver_id = str(command.driver_id)
        order_id = str(command.order_id)
        repo = current_domain.repository_for(CashLedgerEntry)

        credits = repo._dao.query.filter(
            driver_id=driver_id,
            order_id=order_id,
            transaction_type=TransactionType.CREDIT.value,
            source=LedgerSource.CASH_COLLECTION.value,
        ).limit(None).all().items
        if not credits:
            raise ValidationError({"order_id": ["No cash collected for this order yet."]})

        collected = sum(credit.amount for credit in credits)
        if command.amount > collected:
            raise ValidationError({"amount": ["Payment amount exceeds collected cash for this order."]})

        entry = CashLedgerEntry.paid_to_admin(driver_id, order_id, command.amount)
        repo.add(entry)

        logger.info("Driver payment recorded", driver_id=driver_id, order_id=order_id, amount=command.amount)
        return str(entry.id)

    @handle(ApproveDriverPayment)
    def approve_driver_payment(self, command):
        repo = current_domain.repository_for(CashLedgerEntry)
        try:
            entry = repo.get(command.entry_id)
        except ObjectNotFoundError:
            raise LedgerEntryNotFoundError({"entry_id": ["Ledger entry not found."]}) from None

        entry.approve()

        driver_repo = current_domain.repository_for(Driver)
        driver = driver_repo.get(str(entry.driver_id))
        driver.hand_over_cash(entry.amount)

        repo.add(entry)
        driver_repo.add(driver)
        logger.info("Driver payment approved", entry_id=str(entry.id), driver_id=str(entry.driver_id))


def pending_driver_payments(page: int = 1, page_size: int = 10, search: str = "") -> dict:
    """Hand-overs waiting for admin approval, newest first."""
    entries = current_domain.repository_for(CashLedgerEntry)._dao.query.filter(
        source=LedgerSource.PAID_TO_ADMIN.value,
        status=LedgerEntryStatus.PENDING.value,
    ).limit(None).all().items

    needle = search.strip().lower()
    if needle:
        entries = [e for e in entries if needle in str(e.order_id).lower() or needle in str(e.driver_id).lower()]

    entries = sorted(entries, key=lambda e: e.recorded_at, reverse=True)
    start = (page - 1) * page_size
    return {
        "total": len(entries),
        "page": page,
        "page_size": page_size,
        "data": entries[start : start + page_size],
    }
