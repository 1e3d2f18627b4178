from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from fastapi import WebSocketDisconnect

from .connection import Envelope
from .registry import ConnectionRegistry
from .rooms import RoomMembership
from ..utils.metrics import incr as metrics_incr, timing_ms

logger = logging.getLogger(__name__)

SEND_TIMEOUT = 10.0


class Delivery:
    """Best-effort, at-most-once push to users, connections and channels.

    Nothing is queued or retried. A connection that fails to accept a frame
    within ``send_timeout`` is evicted from the registry and every channel.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        rooms: RoomMembership,
        send_timeout: float = SEND_TIMEOUT,
    ) -> None:
        self.registry = registry
        self.rooms = rooms
        self.send_timeout = send_timeout

    def evict(self, conn: Any) -> None:
        user_id = getattr(conn, "user_id", None)
        if user_id is not None:
            self.registry.unregister(user_id, conn)
        self.rooms.leave_all(conn)

    async def to_connection(self, conn: Any, env: Envelope) -> bool:
        try:
            await asyncio.wait_for(conn.send_envelope(env), timeout=self.send_timeout)
            return True
        except (WebSocketDisconnect, asyncio.TimeoutError):
            logger.debug(
                "delivery.dropped",
                extra={"user_id": getattr(conn, "user_id", None), "type": env.type},
            )
            metrics_incr("ws.delivery.dropped", tags={"type": env.type})
            self.evict(conn)
            return False

    async def to_user(self, user_id: int, env: Envelope) -> bool:
        """Push to the user's registered connection; ``False`` if offline."""
        conn = self.registry.lookup(user_id)
        if conn is None:
            return False
        return await self.to_connection(conn, env)

    async def to_channel(self, channel: str, env: Envelope) -> int:
        """Push to every member of ``channel``; returns how many accepted it."""
        if env.topic is None:
            env.topic = channel
        t0 = time.perf_counter()
        delivered = 0
        for conn in list(self.rooms.members(channel)):
            if await self.to_connection(conn, env):
                delivered += 1
        timing_ms("ws.fanout.ms", (time.perf_counter() - t0) * 1000.0, tags={"type": env.type})
        return delivered
