"""Order read side — active vendor-level orders and a driver's legs."""

from protean.utils.globals import current_domain

from delivery.order.order import LegStatus, Order, VendorStatus
from delivery.order.schemas import ActiveOrdersPage, DriverLegView, VendorOrderView

DEFAULT_EXCLUDED_STATUSES = (
    VendorStatus.DELIVERED.value,
    VendorStatus.CANCELLED.value,
    VendorStatus.RETURNED.value,
)

_OPEN_LEG_STATUSES = {
    LegStatus.DRIVER_ASSIGNED.value,
    LegStatus.PICKED.value,
    LegStatus.IN_TRANSIT.value,
}


def _all_orders() -> list[Order]:
    orders = current_domain.repository_for(Order)._dao.query.limit(None).all().items
    return sorted(orders, key=lambda o: o.created_at, reverse=True)


def active_orders(
    page: int = 1,
    page_size: int = 10,
    search: str = "",
    order_type: str | None = None,
    vendor_id: str | None = None,
    excluded_statuses=DEFAULT_EXCLUDED_STATUSES,
) -> ActiveOrdersPage:
    """Orders expanded to one row per vendor block still in play, newest first."""
    excluded = set(excluded_statuses)
    needle = (search or "").strip().lower()

    rows = []
    for order in _all_orders():
        if order_type and order.order_type != str(order_type):
            continue
        if needle and needle not in order.order_number.lower():
            continue
        for block in order.vendors or []:
            if block.status in excluded:
                continue
            if vendor_id and str(block.vendor_id) != str(vendor_id):
                continue
            rows.append(
                VendorOrderView(
                    order_id=str(order.id),
                    order_number=order.order_number,
                    order_type=order.order_type,
                    customer_id=str(order.customer_id),
                    vendor_id=str(block.vendor_id),
                    vendor_status=block.status,
                    payment_status=block.payment_status,
                    payment_method=order.payment_method,
                    order_status=order.status,
                    grand_total=order.grand_total,
                    pickup_street=block.pickup.street if block.pickup else None,
                    pickup_city=block.pickup.city if block.pickup else None,
                    item_count=len(order.items_for(block.vendor_id)),
                    created_at=order.created_at,
                )
            )

    start = (page - 1) * page_size
    return ActiveOrdersPage(total=len(rows), page=page, page_size=page_size, data=rows[start : start + page_size])


def driver_legs(driver_id: str, active_only: bool = False) -> list[DriverLegView]:
    """Legs currently held by the driver, across all orders."""
    driver_id = str(driver_id)
    views = []
    for order in _all_orders():
        for leg in sorted(order.legs or [], key=lambda leg: leg.sequence):
            if not leg.driver_id or str(leg.driver_id) != driver_id:
                continue
            if active_only and leg.status not in _OPEN_LEG_STATUSES:
                continue
            views.append(
                DriverLegView(
                    order_id=str(order.id),
                    order_number=order.order_number,
                    sequence=leg.sequence,
                    status=leg.status,
                    vehicle_type=leg.vehicle_type,
                    origin_latitude=leg.origin.latitude if leg.origin else None,
                    origin_longitude=leg.origin.longitude if leg.origin else None,
                    origin_city=leg.origin.city if leg.origin else None,
                    destination_latitude=leg.destination.latitude if leg.destination else None,
                    destination_longitude=leg.destination.longitude if leg.destination else None,
                    destination_city=leg.destination.city if leg.destination else None,
                    started_at=leg.started_at,
                    completed_at=leg.completed_at,
                )
            )
    return views
