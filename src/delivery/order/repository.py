"""Repository for the Order aggregate."""

from protean import UnitOfWork

from delivery.domain import delivery
from delivery.order.order import Order


@delivery.repository(part_of=Order)
class OrderRepository:
    def persist(self, order: Order) -> Order:
        """Write the order and commit it before returning.

        Handlers that have already claimed a driver or taken stock call this
        instead of ``add`` so a failed write is raised while they can still
        give those back.
        """
        with UnitOfWork():
            self.add(order)
        return order
