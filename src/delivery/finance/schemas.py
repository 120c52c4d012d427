"""Pydantic schemas for financial breakdown reports."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class FinancialBreakdown(BaseModel):
    """How one delivered vendor block's money is split."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "order_id": "0b7e3c1e-5c55-4b7d-9a43-0f7f5a3b6f21",
                    "order_number": "ORD-1735689600000-042",
                    "vendor_id": "vendor-001",
                    "driver_id": "drv-017",
                    "basis_amount": 102.0,
                    "grand_total": 102.0,
                    "driver_earnings": 10.2,
                    "admin_commission": 5.0,
                    "vendor_earnings": 86.8,
                }
            ]
        }
    }

    order_id: str
    order_number: str
    vendor_id: str
    driver_id: str | None = None
    basis_amount: float
    grand_total: float
    driver_earnings: float = 0.0
    admin_commission: float = 0.0
    vendor_earnings: float = 0.0
    created_at: datetime | None = None


class BreakdownPage(BaseModel):
    total: int
    page: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1)
    data: list[FinancialBreakdown]
