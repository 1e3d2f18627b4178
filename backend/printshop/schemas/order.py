from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

from ..models.order import OrderStatus, OrderType


class OrderCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    shop_id: int = Field(alias="shopId", gt=0)
    order_type: OrderType = Field(default=OrderType.UPLOADED_FILES, alias="orderType")
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    customer_phone: Optional[str] = Field(default=None, alias="customerPhone")
    description: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderResponse(BaseModel):
    """Order record shape used by REST responses and realtime order events."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    shop_id: int
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    order_type: OrderType
    description: Optional[str] = None
    status: OrderStatus
    is_urgent: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderEnvelope(BaseModel):
    success: bool = True
    message: str
    order: OrderResponse
