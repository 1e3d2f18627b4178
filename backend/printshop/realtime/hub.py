# Composition root for the realtime router: registry, rooms, relay, typing
# signals and order broadcasts, plus the connect/dispatch/disconnect lifecycle.

from __future__ import annotations

import logging
from typing import Any, FrozenSet, Optional

from . import events
from .broadcaster import OrderEventBroadcaster
from .connection import Envelope
from .delivery import SEND_TIMEOUT, Delivery
from .presence import TypingSignals
from .principal import Principal
from .registry import ConnectionRegistry
from .relay import AuthorizeOrder, MessageRelay, SaveMessage, error_envelope
from .rooms import RoomMembership, channels_for
from ..utils.metrics import gauge as metrics_gauge

logger = logging.getLogger(__name__)

EVENT_FAILED = "Failed to process event"


class RealtimeHub:
    def __init__(
        self,
        save_message: SaveMessage,
        authorize: Optional[AuthorizeOrder] = None,
        send_timeout: float = SEND_TIMEOUT,
    ) -> None:
        self.registry = ConnectionRegistry()
        self.rooms = RoomMembership()
        self.delivery = Delivery(self.registry, self.rooms, send_timeout=send_timeout)
        self.relay = MessageRelay(self.delivery, save_message, authorize)
        self.typing = TypingSignals(self.delivery)
        self.broadcaster = OrderEventBroadcaster(self.delivery)

    def connect(self, principal: Principal, conn: Any) -> FrozenSet[str]:
        """Register ``conn`` and join the channels its role maps to.

        A connection displaced by this one leaves every channel, so channel
        events only reach the user's registered connection.
        """
        previous = self.registry.register(principal.user_id, conn)
        if previous is not None and previous is not conn:
            self.rooms.leave_all(previous)
            logger.info("hub.displaced", extra={"user_id": principal.user_id})
        channels = channels_for(principal)
        for channel in channels:
            self.rooms.join(channel, conn)
        metrics_gauge("ws.connections", len(self.registry))
        return channels

    def disconnect(self, principal: Principal, conn: Any) -> None:
        self.registry.unregister(principal.user_id, conn)
        self.rooms.leave_all(conn)
        metrics_gauge("ws.connections", len(self.registry))

    async def dispatch(self, principal: Principal, conn: Any, env: Envelope) -> None:
        """Route one client event. Failures stay scoped to ``conn``."""
        try:
            if env.type == events.SEND_MESSAGE:
                await self.relay.handle_send_message(principal, conn, env.payload)
            elif env.type == events.TYPING_START:
                await self.typing.typing_start(principal, env.payload)
            elif env.type == events.TYPING_STOP:
                await self.typing.typing_stop(principal, env.payload)
            elif env.type == events.PING:
                await self.delivery.to_connection(conn, Envelope(type=events.PONG))
            # anything else is ignored
        except Exception:
            logger.exception(
                "hub.dispatch_failed",
                extra={"user_id": principal.user_id, "type": env.type},
            )
            await self.delivery.to_connection(conn, error_envelope(EVENT_FAILED))
