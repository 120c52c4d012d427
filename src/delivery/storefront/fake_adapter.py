"""Fake storefront adapter — in-memory shop for testing and development.

Holds carts, products, addresses, vendors and categories in dictionaries.
Individual operations can be configured to fail so that compensation paths
can be exercised.
"""

import threading

from delivery.errors import InsufficientStockError, ProductNotFoundError
from delivery.storefront.port import StorefrontPort


class FakeStorefront(StorefrontPort):
    """Storefront that keeps everything in memory."""

    def __init__(self):
        self.carts: dict[str, list[dict]] = {}
        self.products: dict[str, dict] = {}
        self.addresses: dict[str, dict] = {}
        self.vendors: dict[str, dict] = {}
        self.categories: dict[str, float] = {}
        self.failing_operations: set[str] = set()
        self.failure_reason = "Storefront unavailable"
        self._stock_lock = threading.Lock()

    def configure(self, failing_operations=(), failure_reason: str = "Storefront unavailable"):
        """Make the named operations raise, e.g. ``configure({"remove_items"})``."""
        self.failing_operations = set(failing_operations)
        self.failure_reason = failure_reason

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.failing_operations:
            raise ConnectionError(f"{operation}: {self.failure_reason}")

    # -------------------------------------------------------------------
    # Seeding helpers
    # -------------------------------------------------------------------
    def add_product(
        self,
        product_id: str,
        price: float,
        stock_quantity: int,
        product_type: str = "1",
        is_cod_available: bool = True,
        category: str | None = None,
        name: str | None = None,
    ) -> dict:
        product = {
            "product_id": product_id,
            "name": name or product_id,
            "price": price,
            "stock_quantity": stock_quantity,
            "is_cod_available": is_cod_available,
            "product_type": product_type,
            "category": category,
        }
        self.products[product_id] = product
        return product

    def add_to_cart(self, customer_id: str, product_id: str, vendor_id: str, quantity: int, price: float) -> None:
        self.carts.setdefault(customer_id, []).append(
            {
                "product_id": product_id,
                "vendor_id": vendor_id,
                "quantity": quantity,
                "price": price,
                "total_price": round(price * quantity, 2),
            }
        )

    def set_default_address(self, customer_id: str, latitude: float, longitude: float, **fields) -> dict:
        address = {"latitude": latitude, "longitude": longitude, **fields}
        self.addresses[customer_id] = address
        return address

    def add_vendor(self, vendor_id: str, latitude: float, longitude: float, **fields) -> dict:
        vendor = {"latitude": latitude, "longitude": longitude, **fields}
        self.vendors[vendor_id] = vendor
        return vendor

    def add_category(self, category_id: str, commission: float) -> None:
        self.categories[category_id] = commission

    # -------------------------------------------------------------------
    # CartPort
    # -------------------------------------------------------------------
    def get_cart(self, customer_id: str) -> dict | None:
        self._maybe_fail("get_cart")
        if customer_id not in self.carts:
            return None
        return {"items": [dict(item) for item in self.carts[customer_id]]}

    def clear_cart(self, customer_id: str) -> None:
        self._maybe_fail("clear_cart")
        self.carts.pop(customer_id, None)

    def remove_items(self, customer_id: str, product_ids: list[str]) -> None:
        self._maybe_fail("remove_items")
        remaining = [item for item in self.carts.get(customer_id, []) if item["product_id"] not in product_ids]
        self.carts[customer_id] = remaining

    def restore_items(self, customer_id: str, items: list[dict]) -> None:
        self._maybe_fail("restore_items")
        cart = self.carts.setdefault(customer_id, [])
        present = {item["product_id"] for item in cart}
        cart.extend(dict(item) for item in items if item["product_id"] not in present)

    # -------------------------------------------------------------------
    # CatalogPort
    # -------------------------------------------------------------------
    def get_product(self, product_id: str) -> dict | None:
        self._maybe_fail("get_product")
        product = self.products.get(product_id)
        return dict(product) if product else None

    def decrement_stock(self, product_id: str, quantity: int) -> int:
        self._maybe_fail("decrement_stock")
        with self._stock_lock:
            product = self.products.get(product_id)
            if product is None:
                raise ProductNotFoundError({"product_id": [f"Product with ID {product_id} not found."]})
            if product["stock_quantity"] < quantity:
                raise InsufficientStockError(
                    {"quantity": [f"Only {product['stock_quantity']} item(s) left for {product['name']}."]}
                )
            product["stock_quantity"] -= quantity
            return product["stock_quantity"]

    def increment_stock(self, product_id: str, quantity: int) -> int:
        self._maybe_fail("increment_stock")
        with self._stock_lock:
            product = self.products[product_id]
            product["stock_quantity"] += quantity
            return product["stock_quantity"]

    # -------------------------------------------------------------------
    # AddressPort / VendorDirectoryPort / CategoryPort
    # -------------------------------------------------------------------
    def get_default_address(self, customer_id: str) -> dict | None:
        self._maybe_fail("get_default_address")
        address = self.addresses.get(customer_id)
        return dict(address) if address else None

    def get_vendor_location(self, vendor_id: str) -> dict | None:
        self._maybe_fail("get_vendor_location")
        vendor = self.vendors.get(vendor_id)
        return dict(vendor) if vendor else None

    def get_commission_rate(self, category_id: str) -> float | None:
        self._maybe_fail("get_commission_rate")
        return self.categories.get(category_id)

    def reset(self):
        """Forget all seeded data (useful between tests)."""
        self.carts.clear()
        self.products.clear()
        self.addresses.clear()
        self.vendors.clear()
        self.categories.clear()
        self.failing_operations = set()
        self.failure_reason = "Storefront unavailable"
