from pydantic import BaseModel
from datetime import datetime
from typing import Any

from app.utils.enums import OrderStatus


class OrderResponse(BaseModel):
    id: str
    user_id: str | None
    total_amount: float
    delivery_fee: float | None
    status: OrderStatus
    phone_number: str | None
    recipient_name: str | None
    shipping_address: dict[str, Any] | None
    admin_notes: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: str | None = None


class OrderCancel(BaseModel):
    reason: str | None = None


class DashboardStats(BaseModel):
    total_orders: int
    pending_orders: int
    flagged_orders: int
    total_products: int
    total_revenue: float


class CustomerOrderItem(BaseModel):
    product_id: str | None
    name: str | None
    quantity: int
    price_at_purchase: float


class CustomerOrderResponse(BaseModel):
    """Customer view of an order: no admin notes, no risk detail."""

    id: str
    total_amount: float
    delivery_fee: float | None
    status: OrderStatus
    phone_number: str | None
    recipient_name: str | None
    shipping_address: dict[str, Any] | None
    created_at: datetime
    items: list[CustomerOrderItem] = []
