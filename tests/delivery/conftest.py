import itertools

import pytest
from protean.integrations.pytest import DomainFixture

# Vendor V1 and the customer sit a few hundred metres apart in Damascus,
# vendor V2 is across town.
V1_LOCATION = (33.5130, 36.2920)
V2_LOCATION = (33.4950, 36.3150)
CUSTOMER_LOCATION = (33.5200, 36.2800)

_mobile_numbers = itertools.count(1)


@pytest.fixture(scope="session")
def delivery_bed():
    from delivery.domain import delivery

    bed = DomainFixture(delivery)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(delivery_bed):
    from delivery.notifier import reset_notifier
    from delivery.storefront import reset_storefront

    reset_storefront()
    reset_notifier()

    with delivery_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()

        current_domain.event_store.store._data_reset()

    reset_storefront()
    reset_notifier()


@pytest.fixture()
def storefront():
    """The in-memory shop with two vendors and a customer with a default address."""
    from delivery.storefront import get_storefront

    shop = get_storefront()
    shop.add_vendor("V1", *V1_LOCATION, street="Souq Al-Hamidiyah", city="Damascus", country="Syria")
    shop.add_vendor("V2", *V2_LOCATION, street="Bab Touma", city="Damascus", country="Syria")
    shop.set_default_address(
        "cust-001",
        *CUSTOMER_LOCATION,
        building_no="12",
        apartment_no="4",
        floor_no="2",
        street="Abu Rummaneh",
        landmark="near the park",
        city="Damascus",
        state="Damascus",
        country="Syria",
        phone="+963-11-555-0100",
    )
    return shop


@pytest.fixture()
def notifier():
    from delivery.notifier import get_notifier

    return get_notifier()


@pytest.fixture()
def make_driver():
    """Persist an approved driver at the given position and return it."""
    from protean import current_domain

    from delivery.driver.driver import Driver, DriverStatus, GeoPoint

    def _make(
        latitude: float = V1_LOCATION[0] + 0.001,
        longitude: float = V1_LOCATION[1] + 0.001,
        vehicle_type: str = "bike",
        driver_type: str = "full-time",
        is_available: bool = True,
        is_delivering: bool = False,
        status: str = DriverStatus.APPROVED.value,
        full_name: str = "Sami Haddad",
    ):
        driver = Driver(
            full_name=full_name,
            mobile_number=f"+963-9{next(_mobile_numbers):08d}",
            status=status,
            vehicle_type=vehicle_type,
            driver_type=driver_type,
            is_available=is_available,
            is_delivering=is_delivering,
            location=GeoPoint(latitude=latitude, longitude=longitude),
        )
        current_domain.repository_for(Driver).add(driver)
        return driver

    return _make


@pytest.fixture()
def place_order(storefront):
    """Check out the given cart lines for cust-001 and return the order id.

    Each line is ``(product_id, vendor_id, quantity, price)``; products are
    seeded with plenty of stock unless already present.
    """
    from protean import current_domain

    from delivery.order.assembly import PlaceOrder

    def _place(lines=(("P1", "V1", 1, 10.0),), order_type="1", payment_method="cash", category=None):
        for product_id, vendor_id, quantity, price in lines:
            if product_id not in storefront.products:
                storefront.add_product(product_id, price, 100, product_type=order_type, category=category)
            storefront.add_to_cart("cust-001", product_id, vendor_id, quantity, price)
        return current_domain.process(
            PlaceOrder(customer_id="cust-001", payment_method=payment_method, order_type=order_type),
            asynchronous=False,
        )

    return _place


@pytest.fixture()
def failing_commit(monkeypatch):
    """Arm the next unit of work commit to fail, as if the database dropped the write."""
    from protean import UnitOfWork

    original = UnitOfWork.commit
    armed: list[Exception] = []

    def commit(self):
        if armed:
            raise armed.pop()
        return original(self)

    monkeypatch.setattr(UnitOfWork, "commit", commit)

    def _arm(error: Exception | None = None):
        armed.append(error or ConnectionError("Database connection lost"))

    return _arm


@pytest.fixture()
def seed_orders():
    """Write ``count`` single-vendor orders for V1 straight to the repository.

    With ``delivered_by`` the vendor block is confirmed with that driver and
    delivered, which settles a cash order.
    """
    from protean import current_domain

    from delivery.order.assembly import build_legs
    from delivery.order.order import Location, Order

    def _seed(count: int, delivered_by: str | None = None) -> list[str]:
        pickup = Location(latitude=V1_LOCATION[0], longitude=V1_LOCATION[1], city="Damascus")
        drop = Location(latitude=CUSTOMER_LOCATION[0], longitude=CUSTOMER_LOCATION[1], city="Damascus")
        repo = current_domain.repository_for(Order)
        order_ids = []
        for n in range(count):
            order = Order.place(
                order_number=f"ORD-1735689600000-{n:03d}",
                customer_id="cust-001",
                order_type="1",
                payment_method="cash",
                drop=drop,
                shipping_fee=1.0,
                items_data=[
                    {
                        "vendor_id": "V1",
                        "product_id": "P1",
                        "product_name": "Olive oil",
                        "quantity": 1,
                        "price": 10.0,
                        "total_price": 10.0,
                    }
                ],
                vendors_data=[{"vendor_id": "V1", "pickup": pickup, "leg_sequence": 1}],
                legs_data=build_legs("1", [pickup], drop),
            )
            if delivered_by:
                order.confirm_vendor("V1", delivered_by, "bike", 1)
                order.change_vendor_status("V1", "delivered", 1)
            repo.add(order)
            order_ids.append(str(order.id))
        return order_ids

    return _seed
