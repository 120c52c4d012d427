"""Delivery bounded context — multi-vendor orders, delivery legs and driver dispatch.

Splits a customer's cart into per-vendor blocks, routes the goods through one
or more delivery legs, assigns drivers to those legs and reconciles the money
once goods are delivered. Orders, drivers and the commission table live in
one context because assigning a driver decides the leg, the vendor block and
the driver's availability together.
"""

from protean.domain import Domain

from delivery.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

delivery = Domain(name="delivery")
