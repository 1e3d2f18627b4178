from typing import Any, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.config import settings


def _coerce_order_id(v: Any) -> Any:
    if isinstance(v, bool):
        raise ValueError("orderId must be a string")
    if isinstance(v, int):
        return str(v)
    if isinstance(v, str):
        v = v.strip()
        if not v:
            raise ValueError("orderId is required")
    return v


class SendMessageIn(BaseModel):
    """Inbound chat message, shared by the socket ``send_message`` event and ``POST /chat/send``."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId", max_length=20)
    message: str
    recipient_id: int = Field(alias="recipientId", gt=0)

    @field_validator("order_id", mode="before")
    @classmethod
    def normalize_order_id(cls, v: Any) -> Any:
        return _coerce_order_id(v)

    @field_validator("message", mode="before")
    @classmethod
    def check_message(cls, v: Any) -> Any:
        """Reject blank or overlong text; the message is stored exactly as sent."""
        if isinstance(v, str):
            if not v.strip():
                raise ValueError("message must not be empty")
            if len(v) > settings.CHAT_MESSAGE_MAX_LEN:
                raise ValueError(
                    f"message must be at most {settings.CHAT_MESSAGE_MAX_LEN} characters"
                )
        return v


class TypingIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId", max_length=20)
    recipient_id: int = Field(alias="recipientId", gt=0)

    @field_validator("order_id", mode="before")
    @classmethod
    def normalize_order_id(cls, v: Any) -> Any:
        return _coerce_order_id(v)


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: str
    sender_id: int
    recipient_id: int
    message: str
    is_read: bool = False
    created_at: Optional[datetime] = None


class MessageSender(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class ChatMessageWithSender(ChatMessageResponse):
    sender: Optional[MessageSender] = None


class MessageListResponse(BaseModel):
    success: bool = True
    messages: list[ChatMessageWithSender]


class SendMessageResponse(BaseModel):
    success: bool = True
    message: ChatMessageWithSender


class UnreadCountResponse(BaseModel):
    success: bool = True
    unreadCount: int
