# Envelope framing and the per-socket connection handle.

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


@dataclass
class Envelope:
    v: int = 1
    type: str = ""
    topic: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    @staticmethod
    def from_raw(raw: Any) -> "Envelope":
        if isinstance(raw, dict):
            try:
                v = int(raw.get("v", 1))
            except (TypeError, ValueError):
                v = 0
            return Envelope(
                v=v,
                type=str(raw.get("type") or ""),
                topic=(str(raw["topic"]) if raw.get("topic") is not None else None),
                payload=(raw.get("payload") if isinstance(raw.get("payload"), dict) else None),
            )
        return Envelope()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"v": self.v, "type": self.type}
        if self.topic is not None: data["topic"] = self.topic
        if self.payload is not None: data["payload"] = self.payload
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


class ClientConnection:
    """Handle for one accepted websocket, owned by ``user_id``.

    Send failures of any kind surface as ``WebSocketDisconnect`` so callers
    only need to handle one exception type.
    """

    def __init__(self, websocket: WebSocket, user_id: int) -> None:
        self.ws = websocket
        self.user_id = int(user_id)

    def __repr__(self) -> str:
        return f"<ClientConnection user_id={self.user_id}>"

    async def accept(self) -> None:
        chosen_subproto: Optional[str] = None
        proto_hdr = self.ws.headers.get("sec-websocket-protocol", "") or ""
        for p in (p.strip() for p in proto_hdr.split(",")):
            if p.lower() == "bearer":
                chosen_subproto = p
                break
        await self.ws.accept(subprotocol=chosen_subproto)

    async def send_envelope(self, env: Envelope) -> None:
        try:
            await self.ws.send_text(env.to_json())
        except WebSocketDisconnect:
            raise
        except (RuntimeError, OSError) as exc:
            # Starlette raises RuntimeError when sending on a closed socket
            raise WebSocketDisconnect(code=1006) from exc

    async def recv_envelope(self) -> Optional[Envelope]:
        """Next client frame, or ``None`` when the frame is not a JSON object."""
        msg = await self.ws.receive()
        if msg["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(code=msg.get("code", 1000))
        text = msg.get("text")
        if text is None:
            raw = msg.get("bytes") or b""
            text = raw.decode("utf-8", errors="replace")
        try:
            obj = json.loads(text)
        except ValueError:
            return None
        if not isinstance(obj, dict):
            return None
        return Envelope.from_raw(obj)
