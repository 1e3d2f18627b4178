from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from ..schemas.message import SendMessageIn
from ..utils.errors import field_errors_from
from ..utils.metrics import incr as metrics_incr
from . import events
from .connection import Envelope
from .delivery import Delivery
from .principal import Principal

logger = logging.getLogger(__name__)

# (order_id, sender_id, recipient_id, message) -> persisted record
SaveMessage = Callable[[str, int, int, str], Awaitable[Dict[str, Any]]]
# (user_id, order_id) -> may this user chat on this order
AuthorizeOrder = Callable[[int, str], Awaitable[bool]]

SEND_FAILED = "Failed to send message"
ACCESS_DENIED = "Order not found or access denied"
INVALID_PAYLOAD = "Invalid send_message payload"


def error_envelope(message: str, field_errors: Optional[Dict[str, str]] = None) -> Envelope:
    payload: Dict[str, Any] = {"message": message}
    if field_errors:
        payload["field_errors"] = field_errors
    return Envelope(type=events.ERROR, payload=payload)


class MessageRelay:
    """Handles ``send_message``: check access, persist, push, acknowledge.

    The recipient only ever sees a message that was committed. Every failure
    is reported to the sender alone as an ``error`` event.
    """

    def __init__(
        self,
        delivery: Delivery,
        save_message: SaveMessage,
        authorize: Optional[AuthorizeOrder] = None,
    ) -> None:
        self.delivery = delivery
        self.save_message = save_message
        self.authorize = authorize

    async def handle_send_message(
        self, principal: Principal, conn: Any, payload: Optional[Dict[str, Any]]
    ) -> None:
        try:
            data = SendMessageIn.model_validate(payload or {})
        except ValidationError as exc:
            metrics_incr("ws.relay.invalid")
            await self.delivery.to_connection(
                conn, error_envelope(INVALID_PAYLOAD, field_errors_from(exc.errors()))
            )
            return

        if self.authorize is not None:
            try:
                allowed = await self.authorize(principal.user_id, data.order_id)
            except Exception:
                logger.exception(
                    "relay.authorize_failed",
                    extra={"user_id": principal.user_id, "order_id": data.order_id},
                )
                await self.delivery.to_connection(conn, error_envelope(SEND_FAILED))
                return
            if not allowed:
                logger.warning(
                    "relay.access_denied",
                    extra={"user_id": principal.user_id, "order_id": data.order_id},
                )
                metrics_incr("ws.relay.denied")
                await self.delivery.to_connection(conn, error_envelope(ACCESS_DENIED))
                return

        try:
            record = await self.save_message(
                data.order_id, principal.user_id, data.recipient_id, data.message
            )
        except Exception:
            logger.exception(
                "relay.persist_failed",
                extra={"user_id": principal.user_id, "order_id": data.order_id},
            )
            metrics_incr("ws.relay.persist_failed")
            await self.delivery.to_connection(conn, error_envelope(SEND_FAILED))
            return

        pushed = await self.delivery.to_user(
            data.recipient_id,
            Envelope(type=events.NEW_MESSAGE, payload={**record, "senderName": principal.name}),
        )
        metrics_incr("ws.relay.persisted", tags={"recipient_online": pushed})
        await self.delivery.to_connection(
            conn, Envelope(type=events.MESSAGE_SENT, payload=dict(record))
        )
