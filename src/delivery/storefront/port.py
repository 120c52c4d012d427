"""Storefront ports — the narrow interfaces the Delivery domain needs from the shop.

Carts, the product catalogue, customer addresses, vendor locations and
category commission rates are owned elsewhere. The domain code programs
against these ports; adapters are swapped via configuration.
"""

from abc import ABC, abstractmethod


class CartPort(ABC):
    @abstractmethod
    def get_cart(self, customer_id: str) -> dict | None:
        """Return the customer's cart.

        Returns:
            dict with key ``items``: a list of dicts with product_id, vendor_id,
            quantity, price, total_price, or None when the customer has no cart.
        """
        ...

    @abstractmethod
    def clear_cart(self, customer_id: str) -> None:
        """Delete the customer's cart."""
        ...

    @abstractmethod
    def remove_items(self, customer_id: str, product_ids: list[str]) -> None:
        """Remove the lines for the given products from the customer's cart."""
        ...

    @abstractmethod
    def restore_items(self, customer_id: str, items: list[dict]) -> None:
        """Put previously removed lines back into the customer's cart."""
        ...


class CatalogPort(ABC):
    @abstractmethod
    def get_product(self, product_id: str) -> dict | None:
        """Return a product.

        Returns:
            dict with keys: product_id, name, price, stock_quantity,
            is_cod_available, product_type, category, or None when unknown.
        """
        ...

    @abstractmethod
    def decrement_stock(self, product_id: str, quantity: int) -> int:
        """Atomically take ``quantity`` units out of stock and return the new level.

        Raises InsufficientStockError when fewer units are left.
        """
        ...

    @abstractmethod
    def increment_stock(self, product_id: str, quantity: int) -> int:
        """Put ``quantity`` units back into stock and return the new level."""
        ...


class AddressPort(ABC):
    @abstractmethod
    def get_default_address(self, customer_id: str) -> dict | None:
        """Return the customer's default address.

        Returns:
            dict with keys: latitude, longitude, building_no, apartment_no,
            floor_no, street, landmark, city, state, country, phone,
            or None when the customer has no default address.
        """
        ...


class VendorDirectoryPort(ABC):
    @abstractmethod
    def get_vendor_location(self, vendor_id: str) -> dict | None:
        """Return the vendor's pickup point.

        Returns:
            dict with keys: latitude, longitude, street, city, state, country,
            or None when the vendor has not registered a location.
        """
        ...


class CategoryPort(ABC):
    @abstractmethod
    def get_commission_rate(self, category_id: str) -> float | None:
        """Return the platform commission percentage for a product category."""
        ...


class StorefrontPort(CartPort, CatalogPort, AddressPort, VendorDirectoryPort, CategoryPort):
    """Everything the Delivery domain reads from or writes to the shop."""
