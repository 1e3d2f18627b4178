from .user import User, UserRole
from .shop import Shop
from .order import Order, OrderStatus, OrderType, ORDER_ID_PREFIX
from .message import ChatMessage

__all__ = [
    "User",
    "UserRole",
    "Shop",
    "Order",
    "OrderStatus",
    "OrderType",
    "ORDER_ID_PREFIX",
    "ChatMessage",
]
