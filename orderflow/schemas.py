"""
Pydantic Schemas for Request/Response Validation

Request schemas only check shape and types. Business validation (required
fields, totals, minimum amount, transitions) belongs to the lifecycle
manager so every caller gets the same error kinds.

Author: Khalil Bannouri
Version: 1.0.0
"""

import json
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class SelectionCreate(BaseModel):
    """Single cart line submitted with an order."""
    menu_item_id: str = Field(..., examples=["item_42"])
    menu_item_name: str = Field(..., examples=["Kacchi Biryani"])
    unit_price: int = Field(..., examples=[150])
    quantity: int = Field(..., examples=[2])


class OrderCreate(BaseModel):
    """Request schema for creating a new order."""
    customer_name: str = Field(..., max_length=100, examples=["Rahim Uddin"])
    customer_phone: str = Field(..., max_length=20, examples=["01711-000000"])
    customer_email: Optional[str] = Field(None, max_length=255, examples=["rahim@example.com"])
    customer_location: str = Field(..., max_length=255, examples=["Room 204, Block C"])
    items: List[SelectionCreate] = Field(default_factory=list)
    total_amount: int = Field(..., examples=[350])
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated token; resubmitting with the same key returns the same order",
    )


class StatusUpdate(BaseModel):
    """Request schema for a staff status change."""
    status: str = Field(..., examples=["processing"])


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class SelectionResponse(BaseModel):
    menu_item_id: str
    menu_item_name: str
    unit_price: int
    quantity: int


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    id: int
    customer_name: str
    customer_phone: str
    customer_email: Optional[str]
    customer_location: str
    items: List[SelectionResponse]
    total_amount: int
    status: str
    version: int
    created_at: datetime
    updated_at: Optional[datetime]

    @field_validator("items", mode="before")
    @classmethod
    def decode_items(cls, v: Any) -> Any:
        if isinstance(v, str):
            return json.loads(v)
        return v

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, v: Any) -> Any:
        return getattr(v, "value", v)

    class Config:
        from_attributes = True


class OrderCreateResponse(BaseModel):
    """Response after successfully creating an order."""
    success: bool
    message: str
    order_id: int
    total_amount: int
    status: str


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    total: int
    orders: List[OrderResponse]


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None
    context: Optional[dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    alert_sink: str
    timestamp: datetime


# =============================================================================
# DASHBOARD SCHEMAS
# =============================================================================

class DashboardStatsResponse(BaseModel):
    total_orders: int
    pending_orders: int
    processing_orders: int
    completed_orders: int
    cancelled_orders: int
    revenue: int


class DashboardSessionResponse(BaseModel):
    session_id: str


class NewOrderEventResponse(BaseModel):
    order_id: int
    customer_name: str
    total_amount: int


class StatusChangeEventResponse(BaseModel):
    order_id: int
    customer_name: str
    previous_status: str
    status: str


class NotificationResponse(BaseModel):
    id: str
    kind: str
    title: str
    message: str
    order_id: Optional[int] = None
    timestamp: datetime
    read: bool

    class Config:
        from_attributes = True


class FeedResponse(BaseModel):
    """One poll of a dashboard session's feed."""
    session_id: str
    new_orders: List[NewOrderEventResponse]
    status_changes: List[StatusChangeEventResponse]
    notifications: List[NotificationResponse]
    unread_count: int
    stats: DashboardStatsResponse


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int


class OpenNotificationResponse(BaseModel):
    notification_id: str
    order_id: Optional[int]
