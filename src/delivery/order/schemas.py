"""Pydantic read models for order queries."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class VendorOrderView(BaseModel):
    """One vendor's part of an order, as listed to admins and vendors."""

    order_id: str
    order_number: str
    order_type: str
    customer_id: str
    vendor_id: str
    vendor_status: str
    payment_status: str
    payment_method: str
    order_status: str
    grand_total: float
    pickup_street: str | None = None
    pickup_city: str | None = None
    item_count: int = 0
    created_at: datetime | None = None


class ActiveOrdersPage(BaseModel):
    total: int
    page: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1)
    data: list[VendorOrderView]


class DriverLegView(BaseModel):
    """A leg as the driver's app shows it."""

    order_id: str
    order_number: str
    sequence: int
    status: str
    vehicle_type: str | None = None
    origin_latitude: float | None = None
    origin_longitude: float | None = None
    origin_city: str | None = None
    destination_latitude: float | None = None
    destination_longitude: float | None = None
    destination_city: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
