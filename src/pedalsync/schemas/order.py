"""Pydantic schemas for orders as they arrive over REST and the push channel.

Learn: An order is always replaced whole, never patched field by field,
so the model is frozen and keeps any extra fields the backend sends.
A later backend field therefore survives a round trip through the store
even if this client doesn't know about it yet.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


class OrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    PREPARING = "preparing"
    READY = "ready"
    PICKED_UP = "picked_up"
    ON_THE_WAY = "on_the_way"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


# ─── Order ────────────────────────────────────────────────


class OrderEntity(BaseModel):
    id: str = Field(..., min_length=1, validation_alias=AliasChoices("id", "_id"))
    order_number: str = ""
    status: OrderStatus
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    restaurant_id: Optional[str] = None
    restaurant_name: Optional[str] = None
    driver_id: Optional[str] = None
    total_amount: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"frozen": True, "extra": "allow", "populate_by_name": True}

    @field_validator("total_amount", mode="before")
    @classmethod
    def flatten_amount(cls, value: Any) -> Any:
        """The mobile API nests totals as {subtotal, ..., total}."""
        if isinstance(value, dict):
            return value.get("total", 0.0)
        if value is None:
            return 0.0
        return value


# ─── Paginated listing ────────────────────────────────────


class Pagination(BaseModel):
    total: int = Field(0, ge=0)
    page: Optional[int] = None
    limit: Optional[int] = None


class OrdersPage(BaseModel):
    """Response of GET /admin/orders?page=&limit=."""
    orders: list[OrderEntity] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)

    @field_validator("orders", mode="before")
    @classmethod
    def null_orders(cls, value: Any) -> Any:
        return value or []
