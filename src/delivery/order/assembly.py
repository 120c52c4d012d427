"""Order assembly — turn a customer's cart into a multi-vendor, multi-leg order.

The cart lines matching the requested order type are validated against the
catalogue, grouped per vendor, priced, and routed:

    type "1"   vendor pickup → customer, one leg per vendor
    type "2"   vendor pickup → hub A (one leg per vendor), hub A → hub B,
               hub B → customer

Stock and cart changes happen in the shop, outside this context's unit of
work, so they run as a compensating saga around the order write: when a
decrement, the cart update or the write itself fails, the consumed cart lines
are put back and every stock decrement already made is restored.
"""

import random
import time

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.errors import (
    EmptyCartError,
    InsufficientStockError,
    NoDefaultAddressError,
    NoMatchingItemsError,
    PaymentMethodNotAllowedError,
    ProductNotFoundError,
)
from delivery.order.order import (
    Location,
    Order,
    OrderType,
    PaymentMethod,
    PaymentStatus,
    VendorStatus,
)
from delivery.settings import setting
from delivery.storefront import get_storefront, storefront_call

logger = structlog.get_logger(__name__)

_PREPAID_METHODS = {PaymentMethod.CARD.value, PaymentMethod.WALLET.value}
_CART_LINE_KEYS = ("product_id", "vendor_id", "quantity", "price", "total_price")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------
def generate_order_number(now_ms: int | None = None) -> str:
    """``ORD-<epoch milliseconds>-<three random digits>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"ORD-{now_ms}-{random.randint(0, 999):03d}"


def shipping_fee_for(vendor_count: int) -> float:
    """Flat fee: one rate for a single vendor, another for several."""
    if vendor_count > 1:
        return float(setting("multi_vendor_shipping_fee"))
    return float(setting("single_vendor_shipping_fee"))


def partition_by_vendor(lines: list[dict]) -> dict[str, list[dict]]:
    """Group cart lines by vendor, keeping the order vendors first appear in."""
    groups: dict[str, list[dict]] = {}
    for line in lines:
        groups.setdefault(str(line["vendor_id"]), []).append(line)
    return groups


def drop_location(address: dict) -> Location:
    """Snapshot the customer's default address as the drop point."""
    parts = [
        address.get("building_no"),
        f"Apt {address['apartment_no']}" if address.get("apartment_no") else None,
        f"Floor {address['floor_no']}" if address.get("floor_no") else None,
        address.get("street"),
        address.get("landmark"),
    ]
    return Location(
        latitude=address.get("latitude") or 0.0,
        longitude=address.get("longitude") or 0.0,
        street=", ".join(str(part) for part in parts if part) or None,
        city=address.get("city"),
        state=address.get("state"),
        country=address.get("country") or "",
    )


def pickup_location(vendor: dict | None) -> Location:
    """Snapshot the vendor's pickup point; unknown vendors sit at 0/0."""
    vendor = vendor or {}
    return Location(
        latitude=vendor.get("latitude") or 0.0,
        longitude=vendor.get("longitude") or 0.0,
        street=vendor.get("street"),
        city=vendor.get("city"),
        state=vendor.get("state"),
        country=vendor.get("country"),
    )


def hub_location(hub: dict) -> Location:
    return Location(latitude=hub["latitude"], longitude=hub["longitude"], city=hub.get("city"))


def build_legs(order_type: str, pickups: list[Location], drop: Location) -> list[dict]:
    """Lay out the legs for the given pickups, one pickup per vendor in vendor order."""
    if order_type == OrderType.DIRECT.value:
        return [
            {"sequence": idx + 1, "origin": pickup, "destination": drop}
            for idx, pickup in enumerate(pickups)
        ]

    hub_a = hub_location(setting("hub_a"))
    hub_b = hub_location(setting("hub_b"))
    legs = [
        {"sequence": idx + 1, "origin": pickup, "destination": hub_a}
        for idx, pickup in enumerate(pickups)
    ]
    legs.append({"sequence": len(pickups) + 1, "origin": hub_a, "destination": hub_b})
    legs.append({"sequence": len(pickups) + 2, "origin": hub_b, "destination": drop})
    return legs


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------
@delivery.command(part_of="Order")
class PlaceOrder:
    """Check out the customer's cart lines of one order type."""

    customer_id = Identifier(required=True)
    payment_method = String(required=True, choices=PaymentMethod)
    order_type = String(required=True, choices=OrderType)
    notes = String(max_length=1000)


@delivery.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        storefront = get_storefront()
        customer_id = str(command.customer_id)

        with storefront_call("get_cart", customer_id=customer_id):
            cart = storefront.get_cart(customer_id)
        cart_lines = (cart or {}).get("items") or []
        if not cart_lines:
            raise EmptyCartError({"cart": ["Your cart is empty."]})

        lines = self._select_lines(storefront, cart_lines, command.order_type, command.payment_method)

        by_vendor = partition_by_vendor(lines)
        shipping_fee = shipping_fee_for(len(by_vendor))

        with storefront_call("get_default_address", customer_id=customer_id):
            address = storefront.get_default_address(customer_id)
        if not address:
            raise NoDefaultAddressError({"address": ["Default address not found."]})
        drop = drop_location(address)

        payment_status = (
            PaymentStatus.PAID.value if command.payment_method in _PREPAID_METHODS else PaymentStatus.UNPAID.value
        )
        pickups = []
        vendors_data = []
        for idx, vendor_id in enumerate(by_vendor):
            with storefront_call("get_vendor_location", vendor_id=vendor_id):
                pickup = pickup_location(storefront.get_vendor_location(vendor_id))
            pickups.append(pickup)
            vendors_data.append(
                {
                    "vendor_id": vendor_id,
                    "pickup": pickup,
                    "leg_sequence": idx + 1,
                    "status": VendorStatus.PENDING.value,
                    "payment_status": payment_status,
                }
            )

        order = Order.place(
            order_number=generate_order_number(),
            customer_id=customer_id,
            order_type=command.order_type,
            payment_method=command.payment_method,
            drop=drop,
            phone=address.get("phone"),
            notes=command.notes,
            shipping_fee=shipping_fee,
            items_data=[
                {
                    "vendor_id": str(line["vendor_id"]),
                    "product_id": str(line["product_id"]),
                    "product_name": line.get("product_name"),
                    "category_id": line.get("category_id"),
                    "quantity": line["quantity"],
                    "price": line["price"],
                    "total_price": line.get("total_price") or 0.0,
                }
                for line in lines
            ],
            vendors_data=vendors_data,
            legs_data=build_legs(command.order_type, pickups, drop),
        )

        self._reserve_and_persist(storefront, customer_id, lines, order, consumed_all=len(lines) == len(cart_lines))

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=customer_id,
            vendors=len(vendors_data),
            legs=len(order.legs),
        )
        return str(order.id)

    def _select_lines(self, storefront, cart_lines: list[dict], order_type: str, payment_method: str) -> list[dict]:
        """Keep the cart lines of ``order_type`` after checking product, COD and stock."""
        selected = []
        for line in cart_lines:
            product_id = str(line["product_id"])
            with storefront_call("get_product", product_id=product_id):
                product = storefront.get_product(product_id)
            if not product:
                raise ProductNotFoundError({"product_id": [f"Product with ID {product_id} not found."]})

            if str(product.get("product_type")) != str(order_type):
                continue

            name = product.get("name") or product_id
            if payment_method == PaymentMethod.CASH.value and not product.get("is_cod_available"):
                raise PaymentMethodNotAllowedError({"payment_method": [f"Cash on delivery not allowed for {name}."]})
            if product["stock_quantity"] < line["quantity"]:
                raise InsufficientStockError(
                    {"quantity": [f"Only {product['stock_quantity']} item(s) left for {name}."]}
                )

            selected.append({**line, "product_name": name, "category_id": product.get("category")})

        if not selected:
            raise NoMatchingItemsError({"order_type": [f"No products found in your cart for type: {order_type}."]})
        return selected

    def _reserve_and_persist(self, storefront, customer_id: str, lines: list[dict], order: Order, consumed_all: bool):
        decremented: list[tuple[str, int]] = []
        cart_consumed = False
        try:
            for line in lines:
                product_id = str(line["product_id"])
                with storefront_call("decrement_stock", product_id=product_id):
                    storefront.decrement_stock(product_id, line["quantity"])
                decremented.append((product_id, line["quantity"]))

            with storefront_call("consume_cart", customer_id=customer_id):
                if consumed_all:
                    storefront.clear_cart(customer_id)
                else:
                    storefront.remove_items(customer_id, [str(line["product_id"]) for line in lines])
            cart_consumed = True

            current_domain.repository_for(Order).persist(order)
        except Exception:
            if cart_consumed:
                self._restore_cart(storefront, customer_id, lines)
            self._restore_stock(storefront, decremented)
            raise

    def _restore_cart(self, storefront, customer_id: str, lines: list[dict]) -> None:
        items = [{key: line.get(key) for key in _CART_LINE_KEYS} for line in lines]
        try:
            storefront.restore_items(customer_id, items)
        except Exception as e:
            logger.error("Cart compensation failed", customer_id=customer_id, lines=len(items), error=str(e))
        else:
            logger.warning("Cart lines restored", customer_id=customer_id, lines=len(items))

    def _restore_stock(self, storefront, decremented: list[tuple[str, int]]) -> None:
        for product_id, quantity in reversed(decremented):
            try:
                storefront.increment_stock(product_id, quantity)
            except Exception as e:
                # Left for manual reconciliation
                logger.error(
                    "Stock compensation failed",
                    product_id=product_id,
                    quantity=quantity,
                    error=str(e),
                )
        logger.warning("Stock reservation rolled back", products=len(decremented))
