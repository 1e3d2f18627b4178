from sqlalchemy import Boolean, Column, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
import enum

from .base import BaseModel


class OrderType(str, enum.Enum):
    UPLOADED_FILES = "uploaded-files"
    WALK_IN = "walk-in"


class OrderStatus(str, enum.Enum):
    RECEIVED = "received"
    STARTED = "started"
    COMPLETED = "completed"


# Prefixes used when generating human-readable order ids (UF000001, WI000001)
ORDER_ID_PREFIX = {
    OrderType.UPLOADED_FILES: "UF",
    OrderType.WALK_IN: "WI",
}


class Order(BaseModel):
    __tablename__ = "orders"

    id = Column(String(20), primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    customer_name = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)
    # Store enum values ("uploaded-files", "walk-in") rather than member names
    order_type = Column(
        Enum(OrderType, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderType.UPLOADED_FILES,
    )
    description = Column(Text, nullable=True)
    status = Column(
        Enum(OrderStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderStatus.RECEIVED,
    )
    is_urgent = Column(Boolean, default=False)

    shop = relationship("Shop", back_populates="orders")
    customer = relationship("User", foreign_keys=[customer_id], back_populates="orders_as_customer")
    messages = relationship(
        "ChatMessage",
        back_populates="order",
        cascade="all, delete-orphan",
    )
