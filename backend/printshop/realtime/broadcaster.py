from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict

from ..schemas.order import OrderResponse
from . import events
from .connection import Envelope
from .delivery import Delivery
from .rooms import customer_channel, shop_channel

logger = logging.getLogger(__name__)


def serialize_order(order: Any) -> Dict[str, Any]:
    """Order record as pushed to clients; accepts an ORM row or a mapping."""
    if isinstance(order, Mapping):
        return dict(order)
    return OrderResponse.model_validate(order).model_dump(mode="json")


class OrderEventBroadcaster:
    """Pushes order lifecycle events for the REST layer.

    Best-effort, at-most-once, no durability: with nobody subscribed the
    event is simply dropped. Callers needing a durable record must write it
    before calling in. These methods never raise.
    """

    def __init__(self, delivery: Delivery) -> None:
        self.delivery = delivery

    async def broadcast_order_updated(self, order: Any, shop_id: int) -> None:
        try:
            record = serialize_order(order)
            await self.delivery.to_channel(
                shop_channel(shop_id), Envelope(type=events.ORDER_UPDATED, payload=record)
            )
            customer_id = record.get("customer_id", record.get("customerId"))
            if customer_id is not None:
                await self.delivery.to_channel(
                    customer_channel(customer_id),
                    Envelope(type=events.ORDER_STATUS_CHANGED, payload=dict(record)),
                )
        except Exception:
            logger.exception("broadcast.order_updated_failed", extra={"shop_id": shop_id})

    async def broadcast_new_order(self, order: Any, shop_id: int) -> None:
        try:
            await self.delivery.to_channel(
                shop_channel(shop_id),
                Envelope(type=events.NEW_ORDER, payload=serialize_order(order)),
            )
        except Exception:
            logger.exception("broadcast.new_order_failed", extra={"shop_id": shop_id})

    async def push_notification(self, user_id: int, payload: Dict[str, Any]) -> bool:
        try:
            return await self.delivery.to_user(
                user_id, Envelope(type=events.NOTIFICATION, payload=dict(payload))
            )
        except Exception:
            logger.exception("broadcast.notification_failed", extra={"user_id": user_id})
            return False
