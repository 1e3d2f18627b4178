from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from .. import models


def create_message(
    db: Session,
    order_id: str,
    sender_id: int,
    recipient_id: int,
    message: str,
) -> models.ChatMessage:
    """Append a chat message to an order thread.

    The row is committed before returning; on failure the session is rolled
    back so callers never observe a half-written message.
    """
    db_msg = models.ChatMessage(
        order_id=order_id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        message=message,
        is_read=False,
    )
    db.add(db_msg)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_msg)
    return db_msg


def get_messages_for_order(db: Session, order_id: str) -> List[models.ChatMessage]:
    return (
        db.query(models.ChatMessage)
        .options(selectinload(models.ChatMessage.sender))
        .filter(models.ChatMessage.order_id == order_id)
        .order_by(models.ChatMessage.created_at.asc(), models.ChatMessage.id.asc())
        .all()
    )


def mark_messages_read(db: Session, order_id: str, recipient_id: int) -> int:
    """Flag every unread message on ``order_id`` addressed to ``recipient_id``."""
    updated = (
        db.query(models.ChatMessage)
        .filter(
            models.ChatMessage.order_id == order_id,
            models.ChatMessage.recipient_id == recipient_id,
            models.ChatMessage.is_read.is_(False),
        )
        .update({models.ChatMessage.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return int(updated or 0)


def count_unread(db: Session, recipient_id: int) -> int:
    return (
        db.query(models.ChatMessage)
        .filter(
            models.ChatMessage.recipient_id == recipient_id,
            models.ChatMessage.is_read.is_(False),
        )
        .count()
    )


def get_message(db: Session, message_id: int) -> Optional[models.ChatMessage]:
    return db.query(models.ChatMessage).filter(models.ChatMessage.id == message_id).first()


def mark_message_read(db: Session, msg: models.ChatMessage) -> models.ChatMessage:
    if not msg.is_read:
        msg.is_read = True
        db.add(msg)
        db.commit()
        db.refresh(msg)
    return msg
