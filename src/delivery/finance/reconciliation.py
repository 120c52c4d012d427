"""Financial reconciliation — split a delivered vendor block's money three ways.

For every vendor block that is delivered and paid:

    driver earnings   basis × driver commission % / 100
    admin commission  Σ round(line total × category commission % / 100)
    vendor earnings   basis − driver earnings − admin commission

``basis`` is the order's grand total by default, or the vendor block's own
line total when ``commission_basis = "vendor_subtotal"``. The driver paid for
a block is the first driver who delivered a leg of the order by default, or
the driver of the block's own collection leg when
``driver_leg_policy = "vendor_leg"``. All amounts are rounded to cents, half
away from zero.
"""

from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from delivery.commission.management import commission_for
from delivery.driver.driver import Driver
from delivery.finance.schemas import BreakdownPage, FinancialBreakdown
from delivery.order.order import Leg, LegStatus, Order, PaymentStatus, VendorBlock, VendorStatus
from delivery.settings import setting
from delivery.storefront import get_storefront, storefront_call

logger = structlog.get_logger(__name__)

_CENT = Decimal("0.01")


class CommissionBasis(Enum):
    GRAND_TOTAL = "grand_total"
    VENDOR_SUBTOTAL = "vendor_subtotal"


class DriverLegPolicy(Enum):
    FIRST_DELIVERED = "first_delivered"
    VENDOR_LEG = "vendor_leg"


def round_money(value: float) -> float:
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Pure computation
# ---------------------------------------------------------------------------
def delivering_leg(order: Order, block: VendorBlock, policy: str) -> Leg | None:
    """The leg whose driver is paid for this vendor block."""
    if DriverLegPolicy(policy) == DriverLegPolicy.VENDOR_LEG:
        leg = next((leg for leg in (order.legs or []) if leg.sequence == block.leg_sequence), None)
        if leg is not None and leg.status == LegStatus.DELIVERED.value and leg.driver_id:
            return leg
        return None

    legs = sorted(order.legs or [], key=lambda leg: leg.sequence)
    return next(
        (leg for leg in legs if leg.status == LegStatus.DELIVERED.value and leg.driver_id),
        None,
    )


def basis_amount(order: Order, block: VendorBlock, basis: str) -> float:
    if CommissionBasis(basis) == CommissionBasis.VENDOR_SUBTOTAL:
        return round_money(sum(item.total_price or 0.0 for item in order.items_for(block.vendor_id)))
    return order.grand_total or 0.0


def driver_earnings(basis: float, percentage: float | None) -> float:
    if not percentage:
        return 0.0
    return round_money(basis * percentage / 100)


def admin_commission(lines, category_rate: Callable[[str], float | None]) -> float:
    """Sum of per-line platform commission; lines without a known category rate earn nothing."""
    total = 0.0
    for line in lines:
        if not line.category_id:
            continue
        rate = category_rate(str(line.category_id))
        if rate is None:
            continue
        total += round_money((line.total_price or 0.0) * rate / 100)
    return round_money(total)


def breakdown_for(
    order: Order,
    block: VendorBlock,
    driver_percentage: Callable[[str], float | None],
    category_rate: Callable[[str], float | None],
    basis: str = CommissionBasis.GRAND_TOTAL.value,
    policy: str = DriverLegPolicy.FIRST_DELIVERED.value,
) -> FinancialBreakdown:
    """Compute the split for one vendor block.

    ``driver_percentage`` maps a driver id to that driver's commission
    percentage (None when unknown); ``category_rate`` maps a category id to the
    platform's commission percentage.
    """
    amount = basis_amount(order, block, basis)
    leg = delivering_leg(order, block, policy)
    driver_id = str(leg.driver_id) if leg else None

    driver_share = driver_earnings(amount, driver_percentage(driver_id)) if driver_id else 0.0
    admin_share = admin_commission(order.items_for(block.vendor_id), category_rate)

    return FinancialBreakdown(
        order_id=str(order.id),
        order_number=order.order_number,
        vendor_id=str(block.vendor_id),
        driver_id=driver_id,
        basis_amount=amount,
        grand_total=order.grand_total or 0.0,
        driver_earnings=driver_share,
        admin_commission=admin_share,
        vendor_earnings=round_money(amount - driver_share - admin_share),
        created_at=order.created_at,
    )


# ---------------------------------------------------------------------------
# Lookups against the domain and the storefront
# ---------------------------------------------------------------------------
def _driver_percentage(driver_id: str) -> float | None:
    try:
        driver = current_domain.repository_for(Driver).get(driver_id)
    except ObjectNotFoundError:
        logger.warning("Delivering driver not found", driver_id=driver_id)
        return None
    return commission_for(driver.driver_type, driver.vehicle_type)


def _category_rate(category_id: str) -> float | None:
    with storefront_call("get_commission_rate", category_id=category_id):
        return get_storefront().get_commission_rate(category_id)


def _is_settled(block: VendorBlock) -> bool:
    return block.status == VendorStatus.DELIVERED.value and block.payment_status == PaymentStatus.PAID.value


def financial_breakdowns(vendor_id: str | None = None, driver_id: str | None = None) -> list[FinancialBreakdown]:
    """Every settled vendor block, newest order first, optionally for one vendor or one driver."""
    basis = setting("commission_basis")
    policy = setting("driver_leg_policy")

    orders = current_domain.repository_for(Order)._dao.query.limit(None).all().items
    orders = sorted(orders, key=lambda o: o.created_at, reverse=True)

    rows = []
    for order in orders:
        for block in order.vendors or []:
            if not _is_settled(block):
                continue
            if vendor_id and str(block.vendor_id) != str(vendor_id):
                continue
            row = breakdown_for(order, block, _driver_percentage, _category_rate, basis=basis, policy=policy)
            if driver_id and row.driver_id != str(driver_id):
                continue
            rows.append(row)
    return rows


def _page(rows: list[FinancialBreakdown], page: int, page_size: int, search: str) -> BreakdownPage:
    needle = (search or "").strip().lower()
    if needle:
        rows = [row for row in rows if needle in row.order_number.lower()]
    start = (page - 1) * page_size
    return BreakdownPage(total=len(rows), page=page, page_size=page_size, data=rows[start : start + page_size])


def admin_breakdown(vendor_id: str | None = None, page: int = 1, page_size: int = 10, search: str = "") -> BreakdownPage:
    return _page(financial_breakdowns(vendor_id=vendor_id), page, page_size, search)


def vendor_breakdown(vendor_id: str, page: int = 1, page_size: int = 10, search: str = "") -> BreakdownPage:
    return _page(financial_breakdowns(vendor_id=vendor_id), page, page_size, search)


def driver_breakdown(driver_id: str, page: int = 1, page_size: int = 10, search: str = "") -> BreakdownPage:
    return _page(financial_breakdowns(driver_id=driver_id), page, page_size, search)
