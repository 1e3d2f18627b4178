from .message import (
    SendMessageIn,
    TypingIn,
    ChatMessageResponse,
    ChatMessageWithSender,
    MessageListResponse,
    SendMessageResponse,
    UnreadCountResponse,
)
from .order import OrderCreate, OrderStatusUpdate, OrderResponse, OrderEnvelope
