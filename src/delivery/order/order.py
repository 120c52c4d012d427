"""Order aggregate — one customer checkout split across vendors and delivery legs.

The order owns three ordered collections that change together:

* vendor blocks: one vendor's share of the cart, with its own status and
  payment status;
* items: the order lines, each tagged with the vendor that sells it;
* legs: the physical transport segments, each optionally held by a driver.

Vendor block state machine (happy path only moves forward, steps may be skipped):
    pending → confirmed → ready → driver-accepted → picked → delivered
    any non-terminal → {cancelled, returned}
    delivered, cancelled, returned are terminal

Leg state machine:
    pending → driver-assigned (assignment only)
    driver-assigned → picked → in-transit → delivered
    any non-terminal → cancelled

Return request state machine:
    requested → driver-assigned → picked → vendor-received → completed
    requested → rejected
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from delivery.domain import delivery
from delivery.driver.driver import VehicleType
from delivery.errors import (
    AlreadyInStateError,
    InvalidReturnStateError,
    InvalidStatusError,
    InvalidTransitionError,
    LegNotFoundError,
    ReturnNotAllowedError,
    ReturnRequestNotFoundError,
    VendorBlockNotFoundError,
)
from delivery.order.events import (
    DriverAssignedToLeg,
    DriverRejectedFromLeg,
    LegLeftUnassigned,
    LegStatusChanged,
    OrderPlaced,
    ReturnCompleted,
    ReturnDriverAssigned,
    ReturnPickedUp,
    ReturnReceivedByVendor,
    ReturnRejected,
    ReturnRequested,
    VendorBlockStatusChanged,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderType(Enum):
    DIRECT = "1"
    MULTI_HUB = "2"


class PaymentMethod(Enum):
    CASH = "cash"
    CARD = "card"
    WALLET = "wallet"


class PaymentStatus(Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


class VendorStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    READY = "ready"
    DRIVER_ACCEPTED = "driver-accepted"
    PICKED = "picked"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class LegStatus(Enum):
    PENDING = "pending"
    DRIVER_ASSIGNED = "driver-assigned"
    PICKED = "picked"
    IN_TRANSIT = "in-transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    PARTIALLY_DELIVERED = "partially-delivered"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ReturnStatus(Enum):
    REQUESTED = "requested"
    DRIVER_ASSIGNED = "driver-assigned"
    PICKED = "picked"
    VENDOR_RECEIVED = "vendor-received"
    COMPLETED = "completed"
    REJECTED = "rejected"


_VENDOR_HAPPY_PATH = [
    VendorStatus.PENDING,
    VendorStatus.CONFIRMED,
    VendorStatus.READY,
    VendorStatus.DRIVER_ACCEPTED,
    VendorStatus.PICKED,
    VendorStatus.DELIVERED,
]

_TERMINAL_VENDOR_STATUSES = {
    VendorStatus.DELIVERED,
    VendorStatus.CANCELLED,
    VendorStatus.RETURNED,
}

_LEG_TRANSITIONS = {
    LegStatus.PENDING: {LegStatus.CANCELLED},
    LegStatus.DRIVER_ASSIGNED: {LegStatus.PICKED, LegStatus.CANCELLED},
    LegStatus.PICKED: {LegStatus.IN_TRANSIT, LegStatus.DELIVERED, LegStatus.CANCELLED},
    LegStatus.IN_TRANSIT: {LegStatus.DELIVERED, LegStatus.CANCELLED},
    LegStatus.DELIVERED: set(),  # terminal
    LegStatus.CANCELLED: set(),  # terminal
}

_TERMINAL_LEG_STATUSES = {LegStatus.DELIVERED, LegStatus.CANCELLED}

_CLOSED_RETURN_STATUSES = {ReturnStatus.COMPLETED, ReturnStatus.REJECTED}

_RETURN_REQUEST_FIELDS = (
    "is_requested",
    "status",
    "driver_id",
    "reason",
    "requested_at",
    "expected_pickup_date",
    "picked_up_at",
    "received_at",
    "completed_at",
    "rejected_at",
)


def _parse_vendor_status(value: str) -> VendorStatus:
    try:
        return VendorStatus(value)
    except ValueError:
        raise InvalidStatusError({"status": [f"Invalid status: {value}"]}) from None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@delivery.value_object(part_of="Order")
class Location:
    """A point on the map with the address printed on the label."""

    latitude = Float(default=0.0)
    longitude = Float(default=0.0)
    street = String(max_length=500)
    city = String(max_length=100)
    state = String(max_length=100)
    country = String(max_length=100)


@delivery.value_object(part_of="Order")
class ReturnRequest:
    """Post-delivery return of the order's goods back to the vendor."""

    is_requested = Boolean(default=False)
    status = String(max_length=50, choices=ReturnStatus)
    driver_id = Identifier()
    reason = String(max_length=1000)
    requested_at = DateTime()
    expected_pickup_date = DateTime()
    picked_up_at = DateTime()
    received_at = DateTime()
    completed_at = DateTime()
    rejected_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@delivery.entity(part_of="Order")
class VendorBlock:
    """One vendor's share of the order."""

    vendor_id = Identifier(required=True)
    pickup = ValueObject(Location)
    leg_sequence = Integer(min_value=1)
    status = String(
        max_length=50,
        choices=VendorStatus,
        default=VendorStatus.PENDING.value,
    )
    payment_status = String(
        max_length=50,
        choices=PaymentStatus,
        default=PaymentStatus.UNPAID.value,
    )


@delivery.entity(part_of="Order")
class OrderItem:
    """A single order line, snapshotted from the cart and the catalogue."""

    vendor_id = Identifier(required=True)
    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    category_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)


@delivery.entity(part_of="Order")
class Leg:
    """One physical transport segment, origin to destination."""

    sequence = Integer(required=True, min_value=1)
    origin = ValueObject(Location)
    destination = ValueObject(Location)
    driver_id = Identifier()
    vehicle_type = String(
        max_length=20,
        choices=VehicleType,
        default=VehicleType.BIKE.value,
    )
    status = String(
        max_length=50,
        choices=LegStatus,
        default=LegStatus.PENDING.value,
    )
    rejected_drivers = Text(default="[]")  # JSON list of {driver_id, reason, rejected_at}
    cost = Float(default=0.0)
    started_at = DateTime()
    completed_at = DateTime()

    @property
    def is_open(self) -> bool:
        return LegStatus(self.status) not in _TERMINAL_LEG_STATUSES

    def rejected_driver_ids(self) -> list[str]:
        return [entry["driver_id"] for entry in json.loads(self.rejected_drivers or "[]")]


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@delivery.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    customer_id = Identifier(required=True)
    order_type = String(required=True, max_length=1, choices=OrderType)
    payment_method = String(required=True, max_length=20, choices=PaymentMethod)
    drop = ValueObject(Location)
    phone = String(max_length=30)
    notes = String(max_length=1000)
    total_items = Integer(default=0)
    sub_total = Float(default=0.0)
    shipping_fee = Float(default=0.0)
    grand_total = Float(default=0.0)
    status = String(
        max_length=50,
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    vendors = HasMany(VendorBlock)
    items = HasMany(OrderItem)
    legs = HasMany(Leg)
    driver_ids = Text(default="[]")  # JSON list, distinct drivers currently or previously on a leg
    return_request = ValueObject(ReturnRequest)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def grand_total_is_sub_total_plus_shipping(self):
        if abs((self.sub_total or 0.0) + (self.shipping_fee or 0.0) - (self.grand_total or 0.0)) > 0.005:
            raise ValidationError({"grand_total": ["Grand total must equal sub total plus shipping fee"]})

    @invariant.post
    def leg_sequences_are_unique(self):
        sequences = [leg.sequence for leg in (self.legs or [])]
        if len(sequences) != len(set(sequences)):
            raise ValidationError({"legs": ["Leg sequences must be unique within an order"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number: str,
        customer_id: str,
        order_type: str,
        payment_method: str,
        drop: Location,
        shipping_fee: float,
        items_data: list[dict],
        vendors_data: list[dict],
        legs_data: list[dict],
        phone: str | None = None,
        notes: str | None = None,
    ):
        """Create an order from already validated cart lines, vendor blocks and legs."""
        now = datetime.now(UTC)
        sub_total = round(sum(item["total_price"] for item in items_data), 2)
        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            order_type=order_type,
            payment_method=payment_method,
            drop=drop,
            phone=phone,
            notes=notes,
            total_items=sum(item["quantity"] for item in items_data),
            sub_total=sub_total,
            shipping_fee=shipping_fee,
            grand_total=round(sub_total + shipping_fee, 2),
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        for vendor_data in vendors_data:
            order.add_vendors(VendorBlock(**vendor_data))
        for item_data in items_data:
            order.add_items(OrderItem(**item_data))
        for leg_data in legs_data:
            order.add_legs(Leg(**leg_data))

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=customer_id,
                order_type=order_type,
                payment_method=payment_method,
                vendor_ids=json.dumps([v["vendor_id"] for v in vendors_data]),
                leg_count=len(legs_data),
                sub_total=order.sub_total,
                shipping_fee=order.shipping_fee,
                grand_total=order.grand_total,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def vendor_block(self, vendor_id: str) -> VendorBlock:
        block = next((v for v in (self.vendors or []) if str(v.vendor_id) == str(vendor_id)), None)
        if block is None:
            raise VendorBlockNotFoundError({"vendor_id": [f"Vendor {vendor_id} not found in this order"]})
        return block

    def leg(self, sequence: int) -> Leg:
        leg = next((leg for leg in (self.legs or []) if leg.sequence == sequence), None)
        if leg is None:
            raise LegNotFoundError({"sequence": [f"Leg {sequence} not found in this order"]})
        return leg

    def unassigned_leg(self, sequence: int) -> Leg:
        """The leg with ``sequence`` that has no driver yet."""
        leg = next(
            (leg for leg in (self.legs or []) if leg.sequence == sequence and not leg.driver_id),
            None,
        )
        if leg is None:
            raise LegNotFoundError({"sequence": [f"No unassigned leg {sequence} in this order"]})
        return leg

    def items_for(self, vendor_id: str) -> list[OrderItem]:
        return [item for item in (self.items or []) if str(item.vendor_id) == str(vendor_id)]

    def assigned_driver_ids(self) -> list[str]:
        return json.loads(self.driver_ids or "[]")

    # -------------------------------------------------------------------
    # Transition guards
    # -------------------------------------------------------------------
    def assert_vendor_can_transition(self, vendor_id: str, target: str) -> VendorStatus:
        """Validate a vendor block status change and return the parsed target."""
        target_status = _parse_vendor_status(target)
        block = self.vendor_block(vendor_id)
        current = VendorStatus(block.status)

        if current == target_status:
            raise AlreadyInStateError({"status": [f"Order is already {current.value}"]})
        if current in _TERMINAL_VENDOR_STATUSES:
            raise InvalidTransitionError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})
        if target_status in (VendorStatus.CANCELLED, VendorStatus.RETURNED):
            return target_status
        if _VENDOR_HAPPY_PATH.index(target_status) < _VENDOR_HAPPY_PATH.index(current):
            raise InvalidTransitionError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})
        return target_status

    def _set_vendor_status(self, block: VendorBlock, target: VendorStatus, now: datetime) -> None:
        previous = block.status
        block.status = target.value
        self.updated_at = now
        self.raise_(
            VendorBlockStatusChanged(
                order_id=str(self.id),
                vendor_id=str(block.vendor_id),
                previous_status=previous,
                new_status=target.value,
                changed_at=now,
            )
        )

    def _set_leg_status(self, leg: Leg, target: LegStatus, now: datetime) -> None:
        previous = leg.status
        leg.status = target.value
        if target in _TERMINAL_LEG_STATUSES:
            leg.completed_at = now
        self.updated_at = now
        self.raise_(
            LegStatusChanged(
                order_id=str(self.id),
                sequence=leg.sequence,
                driver_id=str(leg.driver_id) if leg.driver_id else None,
                previous_status=previous,
                new_status=target.value,
                changed_at=now,
            )
        )
        self._refresh_status()

    def _refresh_driver_ids(self) -> None:
        known = self.assigned_driver_ids()
        for leg in self.legs or []:
            if leg.driver_id and str(leg.driver_id) not in known:
                known.append(str(leg.driver_id))
        self.driver_ids = json.dumps(known)

    def _refresh_status(self) -> None:
        statuses = [LegStatus(leg.status) for leg in (self.legs or [])]
        if not statuses:
            return

        if all(s == LegStatus.DELIVERED for s in statuses):
            derived = OrderStatus.DELIVERED
        elif any(s == LegStatus.DELIVERED for s in statuses):
            derived = OrderStatus.PARTIALLY_DELIVERED
        elif any(s in (LegStatus.PICKED, LegStatus.IN_TRANSIT) for s in statuses):
            derived = OrderStatus.IN_PROGRESS
        elif all(s == LegStatus.PENDING for s in statuses):
            derived = OrderStatus.PENDING
        elif any(s == LegStatus.CANCELLED for s in statuses):
            derived = OrderStatus.CANCELLED
        else:
            return
        self.status = derived.value

    # -------------------------------------------------------------------
    # Driver assignment
    # -------------------------------------------------------------------
    def _assign_leg(self, leg: Leg, vendor_id: str, driver_id: str, vehicle_type: str, now: datetime) -> None:
        leg.driver_id = driver_id
        leg.vehicle_type = vehicle_type
        leg.started_at = now
        self._set_leg_status(leg, LegStatus.DRIVER_ASSIGNED, now)
        self._refresh_driver_ids()
        self.raise_(
            DriverAssignedToLeg(
                order_id=str(self.id),
                vendor_id=vendor_id,
                sequence=leg.sequence,
                driver_id=driver_id,
                vehicle_type=vehicle_type,
                assigned_at=now,
            )
        )

    def confirm_vendor(self, vendor_id: str, driver_id: str, vehicle_type: str, sequence: int) -> None:
        """Put the driver on the unassigned leg and confirm the vendor block."""
        self.assert_vendor_can_transition(vendor_id, VendorStatus.CONFIRMED.value)
        block = self.vendor_block(vendor_id)
        leg = self.unassigned_leg(sequence)

        now = datetime.now(UTC)
        with atomic_change(self):
            self._assign_leg(leg, vendor_id, driver_id, vehicle_type, now)
            self._set_vendor_status(block, VendorStatus.CONFIRMED, now)

    def assert_reassignable(self, vendor_id: str, sequence: int) -> Leg:
        block = self.vendor_block(vendor_id)
        if VendorStatus(block.status) in _TERMINAL_VENDOR_STATUSES:
            raise InvalidTransitionError({"status": [f"Cannot reassign a driver once the order is {block.status}"]})
        leg = self.leg(sequence)
        if not leg.is_open:
            raise InvalidTransitionError({"status": [f"Cannot reassign a driver on a {leg.status} leg"]})
        return leg

    def reject_leg_driver(self, vendor_id: str, sequence: int, reason: str | None) -> str | None:
        """Record the current leg driver as rejected and take them off the leg.

        Returns the rejected driver's id, or None when the leg had no driver.
        """
        leg = self.assert_reassignable(vendor_id, sequence)
        if not leg.driver_id:
            return None

        now = datetime.now(UTC)
        driver_id = str(leg.driver_id)
        rejected = json.loads(leg.rejected_drivers or "[]")
        rejected.append({"driver_id": driver_id, "reason": reason, "rejected_at": now.isoformat()})
        leg.rejected_drivers = json.dumps(rejected)
        leg.driver_id = None
        self.updated_at = now
        self.raise_(
            DriverRejectedFromLeg(
                order_id=str(self.id),
                vendor_id=vendor_id,
                sequence=sequence,
                driver_id=driver_id,
                reason=reason,
                rejected_at=now,
            )
        )
        return driver_id

    def reassign_leg(self, vendor_id: str, sequence: int, driver_id: str, vehicle_type: str | None = None) -> None:
        leg = self.assert_reassignable(vendor_id, sequence)
        block = self.vendor_block(vendor_id)

        now = datetime.now(UTC)
        with atomic_change(self):
            self._assign_leg(leg, vendor_id, driver_id, vehicle_type or leg.vehicle_type, now)
            if block.status != VendorStatus.CONFIRMED.value:
                self._set_vendor_status(block, VendorStatus.CONFIRMED, now)

    def leave_leg_unassigned(self, vendor_id: str, sequence: int) -> None:
        """No replacement driver: the leg and the vendor block wait again."""
        leg = self.assert_reassignable(vendor_id, sequence)
        block = self.vendor_block(vendor_id)

        now = datetime.now(UTC)
        with atomic_change(self):
            leg.driver_id = None
            leg.started_at = None
            if leg.status != LegStatus.PENDING.value:
                self._set_leg_status(leg, LegStatus.PENDING, now)
            if block.status != VendorStatus.PENDING.value:
                self._set_vendor_status(block, VendorStatus.PENDING, now)
            self.raise_(
                LegLeftUnassigned(
                    order_id=str(self.id),
                    vendor_id=vendor_id,
                    sequence=sequence,
                    occurred_at=now,
                )
            )

    # -------------------------------------------------------------------
    # Vendor block status
    # -------------------------------------------------------------------
    def change_vendor_status(self, vendor_id: str, status: str, sequence: int = 1) -> str | None:
        """Move a vendor block to ``status`` (anything but confirmed).

        Returns the id of a driver freed by this change, if any.
        """
        target = self.assert_vendor_can_transition(vendor_id, status)
        if target == VendorStatus.CONFIRMED:
            raise ValidationError({"status": ["Confirming a vendor requires a driver assignment"]})

        block = self.vendor_block(vendor_id)
        now = datetime.now(UTC)
        released = None

        with atomic_change(self):
            if target == VendorStatus.DELIVERED:
                block.payment_status = PaymentStatus.PAID.value
                leg = next(
                    (leg for leg in (self.legs or []) if leg.sequence == sequence and leg.driver_id),
                    None,
                )
                if leg is not None and leg.is_open:
                    released = str(leg.driver_id)
                    self._set_leg_status(leg, LegStatus.DELIVERED, now)
            elif target == VendorStatus.CANCELLED:
                leg = next(
                    (leg for leg in (self.legs or []) if leg.sequence == sequence and leg.driver_id),
                    None,
                )
                if leg is not None and leg.is_open:
                    released = str(leg.driver_id)
                    self._set_leg_status(leg, LegStatus.CANCELLED, now)

            self._set_vendor_status(block, target, now)

        return released

    # -------------------------------------------------------------------
    # Leg progress
    # -------------------------------------------------------------------
    def change_leg_status(self, sequence: int, status: str) -> str | None:
        """Driver-side progress on a leg. Returns the freed driver's id, if any."""
        try:
            target = LegStatus(status)
        except ValueError:
            raise InvalidStatusError({"status": [f"Invalid leg status: {status}"]}) from None

        leg = self.leg(sequence)
        current = LegStatus(leg.status)
        if current == target:
            raise AlreadyInStateError({"status": [f"Leg {sequence} is already {current.value}"]})
        if target not in _LEG_TRANSITIONS[current]:
            raise InvalidTransitionError({"status": [f"Cannot transition leg from {current.value} to {target.value}"]})

        now = datetime.now(UTC)
        self._set_leg_status(leg, target, now)
        if target in _TERMINAL_LEG_STATUSES and leg.driver_id:
            return str(leg.driver_id)
        return None

    # -------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------
    def request_return(self, reason: str | None = None) -> None:
        if not any(v.status == VendorStatus.DELIVERED.value for v in (self.vendors or [])):
            raise ReturnNotAllowedError({"order": ["Only delivered orders can be returned"]})
        if self.return_request and ReturnStatus(self.return_request.status) not in _CLOSED_RETURN_STATUSES:
            raise ReturnNotAllowedError({"return_request": ["A return is already in progress for this order"]})

        now = datetime.now(UTC)
        self.return_request = ReturnRequest(
            is_requested=True,
            status=ReturnStatus.REQUESTED.value,
            reason=reason,
            requested_at=now,
        )
        self.updated_at = now
        self.raise_(
            ReturnRequested(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                reason=reason,
                requested_at=now,
            )
        )

    def assert_return_status(self, expected: ReturnStatus) -> None:
        if not self.return_request or not self.return_request.is_requested:
            raise ReturnRequestNotFoundError({"return_request": ["No return request found for this order"]})
        if self.return_request.status != expected.value:
            raise InvalidReturnStateError(
                {"return_request": [f"Return is {self.return_request.status}, expected {expected.value}"]}
            )

    def _replace_return(self, **changes) -> None:
        values = {name: getattr(self.return_request, name) for name in _RETURN_REQUEST_FIELDS}
        values.update(changes)
        self.return_request = ReturnRequest(**values)

    def assign_return_driver(self, driver_id: str) -> None:
        self.assert_return_status(ReturnStatus.REQUESTED)
        now = datetime.now(UTC)
        self._replace_return(status=ReturnStatus.DRIVER_ASSIGNED.value, driver_id=driver_id)
        self.updated_at = now
        self.raise_(ReturnDriverAssigned(order_id=str(self.id), driver_id=driver_id, assigned_at=now))

    def confirm_return_pickup(self) -> None:
        self.assert_return_status(ReturnStatus.DRIVER_ASSIGNED)
        now = datetime.now(UTC)
        self._replace_return(status=ReturnStatus.PICKED.value, picked_up_at=now)
        self.updated_at = now
        self.raise_(
            ReturnPickedUp(
                order_id=str(self.id),
                driver_id=str(self.return_request.driver_id),
                picked_up_at=now,
            )
        )

    def confirm_vendor_receipt(self) -> str:
        """Vendor got the goods back; the return closes in the same write.

        Returns the return driver's id so they can be released.
        """
        self.assert_return_status(ReturnStatus.PICKED)
        now = datetime.now(UTC)
        driver_id = str(self.return_request.driver_id)

        self.raise_(ReturnReceivedByVendor(order_id=str(self.id), driver_id=driver_id, received_at=now))
        self._replace_return(
            status=ReturnStatus.COMPLETED.value,
            received_at=now,
            completed_at=now,
        )
        self.updated_at = now
        self.raise_(ReturnCompleted(order_id=str(self.id), completed_at=now))
        return driver_id

    def reject_return(self, reason: str | None = None) -> None:
        self.assert_return_status(ReturnStatus.REQUESTED)
        now = datetime.now(UTC)
        self._replace_return(status=ReturnStatus.REJECTED.value, rejected_at=now)
        self.updated_at = now
        self.raise_(ReturnRejected(order_id=str(self.id), reason=reason, rejected_at=now))
