from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from .. import models, schemas
from ..crud import crud_message, crud_order
from .dependencies import get_db, get_current_user
from .api_ws import broadcaster

router = APIRouter(tags=["chat"])

logger = logging.getLogger(__name__)


def _participant_order_or_error(db: Session, order_id: str, user: models.User) -> models.Order:
    order = crud_order.get_order(db, order_id)
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    if not crud_order.is_order_participant(db, order, user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return order


@router.get("/order/{order_id}", response_model=schemas.MessageListResponse)
def get_order_messages(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Return the order's chat, oldest first, marking the caller's unread messages read."""
    _participant_order_or_error(db, order_id, current_user)
    crud_message.mark_messages_read(db, order_id, current_user.id)
    messages = crud_message.get_messages_for_order(db, order_id)
    return {
        "success": True,
        "messages": [schemas.ChatMessageWithSender.model_validate(m) for m in messages],
    }


@router.post("/send", response_model=schemas.SendMessageResponse)
def send_message(
    message_in: schemas.SendMessageIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    _participant_order_or_error(db, message_in.order_id, current_user)
    msg = crud_message.create_message(
        db,
        order_id=message_in.order_id,
        sender_id=current_user.id,
        recipient_id=message_in.recipient_id,
        message=message_in.message,
    )
    out = schemas.ChatMessageWithSender.model_validate(msg)
    logger.info(
        "chat.sent",
        extra={"order_id": msg.order_id, "sender_id": msg.sender_id, "message_id": msg.id},
    )
    background_tasks.add_task(
        broadcaster.push_notification,
        message_in.recipient_id,
        {
            "type": "new_message",
            "orderId": message_in.order_id,
            "message": out.model_dump(mode="json"),
            "senderName": current_user.name,
        },
    )
    return {"success": True, "message": out}


@router.get("/unread-count", response_model=schemas.UnreadCountResponse)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return {"success": True, "unreadCount": crud_message.count_unread(db, current_user.id)}


@router.patch("/order/{order_id}/read")
def mark_order_messages_read(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    _participant_order_or_error(db, order_id, current_user)
    updated = crud_message.mark_messages_read(db, order_id, current_user.id)
    return {"success": True, "message": "Messages marked as read", "updated": updated}


@router.patch("/{message_id}/read")
def mark_message_read(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Mark one message read. Only its recipient may do so."""
    msg = crud_message.get_message(db, message_id)
    if msg is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    if msg.recipient_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    crud_message.mark_message_read(db, msg)
    return {"success": True, "message": "Message marked as read"}
