"""Pydantic schemas for the admin dashboard snapshot.

The backend speaks camelCase here (unlike the order payloads), so every
field declares its wire alias and the models accept either spelling.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from pedalsync.schemas.order import OrderEntity


class DashboardStats(BaseModel):
    total_orders: int = Field(0, alias="totalOrders")
    total_revenue: float = Field(0.0, alias="totalRevenue")
    avg_delivery_time: float = Field(0.0, alias="avgDeliveryTime")
    active_drivers: int = Field(0, alias="activeDrivers")

    model_config = {"frozen": True, "populate_by_name": True}


class TopRestaurant(BaseModel):
    id: str
    name: str = ""
    order_count: int = 0
    rating: float = 0.0

    model_config = {"frozen": True, "extra": "allow"}


class RevenuePoint(BaseModel):
    date: Optional[str] = Field(None, validation_alias="_id")
    revenue: float = 0.0
    orders: int = 0

    model_config = {"frozen": True, "extra": "allow", "populate_by_name": True}


class DashboardSnapshot(BaseModel):
    """Response of GET /admin/dashboard/stats."""
    stats: DashboardStats = Field(default_factory=DashboardStats)
    recent_orders: list[OrderEntity] = Field(default_factory=list, alias="recentOrders")
    top_restaurants: list[TopRestaurant] = Field(default_factory=list, alias="topRestaurants")
    status_counts: dict[str, int] = Field(default_factory=dict, alias="statusCounts")
    revenue_over_time: list[RevenuePoint] = Field(default_factory=list, alias="revenueOverTime")

    model_config = {"populate_by_name": True}

    @field_validator(
        "recent_orders", "top_restaurants", "revenue_over_time", mode="before"
    )
    @classmethod
    def null_lists(cls, value: Any) -> Any:
        # Go encodes empty slices as null
        return value or []

    @field_validator("status_counts", mode="before")
    @classmethod
    def null_counts(cls, value: Any) -> Any:
        return value or {}

    @field_validator("stats", mode="before")
    @classmethod
    def null_stats(cls, value: Any) -> Any:
        return value or {}
