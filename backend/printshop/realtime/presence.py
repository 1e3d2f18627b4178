from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..schemas.message import TypingIn
from . import events
from .connection import Envelope
from .delivery import Delivery
from .principal import Principal

logger = logging.getLogger(__name__)


class TypingSignals:
    """Relays typing indicators to the recipient. Advisory only: no storage, no ack."""

    def __init__(self, delivery: Delivery) -> None:
        self.delivery = delivery

    def _parse(self, principal: Principal, payload: Optional[Dict[str, Any]]) -> Optional[TypingIn]:
        try:
            return TypingIn.model_validate(payload or {})
        except ValidationError:
            logger.debug("typing.invalid_payload", extra={"user_id": principal.user_id})
            return None

    async def typing_start(self, principal: Principal, payload: Optional[Dict[str, Any]]) -> bool:
        data = self._parse(principal, payload)
        if data is None:
            return False
        return await self.delivery.to_user(
            data.recipient_id,
            Envelope(
                type=events.USER_TYPING,
                payload={
                    "userId": principal.user_id,
                    "userName": principal.name,
                    "orderId": data.order_id,
                },
            ),
        )

    async def typing_stop(self, principal: Principal, payload: Optional[Dict[str, Any]]) -> bool:
        data = self._parse(principal, payload)
        if data is None:
            return False
        return await self.delivery.to_user(
            data.recipient_id,
            Envelope(
                type=events.USER_STOPPED_TYPING,
                payload={"userId": principal.user_id, "orderId": data.order_id},
            ),
        )
