# backend/printshop/api/api_ws.py
# WebSocket transport for the realtime router (/ws). Authenticates the socket,
# hands it to the hub, and wires the hub to the database for message
# persistence and order access checks. ``broadcaster`` is what REST handlers
# use to push order events.

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from jose import JWTError
from jose.exceptions import ExpiredSignatureError
from starlette.exceptions import WebSocketException

from .. import database, schemas
from ..core.config import settings
from ..crud import crud_message, crud_order, crud_user
from ..realtime import events
from ..realtime.connection import ClientConnection, Envelope
from ..realtime.hub import RealtimeHub
from ..realtime.principal import Principal
from ..realtime.relay import error_envelope
from ..utils.metrics import incr as metrics_incr
from .auth import decode_access_token

logger = logging.getLogger(__name__)
router = APIRouter()

WS_4401_UNAUTHORIZED = 4401
MAX_BEARER_LEN = settings.WS_MAX_BEARER_LEN
MAX_PROTOCOL_HEADER_LEN = 8192

# ─── WS DB concurrency limiter ───────────────────────────────────────────────
_WS_DB_SEM: asyncio.Semaphore | None = None
_WS_DB_SEM_LOOP: asyncio.AbstractEventLoop | None = None


def _get_ws_db_sem() -> asyncio.Semaphore:
    global _WS_DB_SEM, _WS_DB_SEM_LOOP
    loop = asyncio.get_running_loop()
    if _WS_DB_SEM is None or _WS_DB_SEM_LOOP is not loop:
        _WS_DB_SEM = asyncio.Semaphore(settings.WS_DB_CONCURRENCY)
        _WS_DB_SEM_LOOP = loop
    return _WS_DB_SEM


def _call_with_session(fn, *args, **kwargs):
    """Run a DB function with a short-lived session (sync)."""
    with database.get_db_session() as db:
        return fn(db, *args, **kwargs)


async def _ws_db_call(fn, *args, **kwargs):
    """Guard DB calls behind the WS semaphore and offload to thread pool."""
    async with _get_ws_db_sem():
        return await run_in_threadpool(_call_with_session, fn, *args, **kwargs)


# -------- persistence & authorization collaborators --------

def _persist_message(db, order_id: str, sender_id: int, recipient_id: int, message: str) -> Dict[str, Any]:
    msg = crud_message.create_message(
        db,
        order_id=order_id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        message=message,
    )
    return schemas.ChatMessageResponse.model_validate(msg).model_dump(mode="json")


def _is_participant(db, user_id: int, order_id: str) -> bool:
    return crud_order.get_order_for_participant(db, order_id, user_id) is not None


async def save_message(order_id: str, sender_id: int, recipient_id: int, message: str) -> Dict[str, Any]:
    return await _ws_db_call(_persist_message, order_id, sender_id, recipient_id, message)


async def authorize_order(user_id: int, order_id: str) -> bool:
    return await _ws_db_call(_is_participant, user_id, order_id)


hub = RealtimeHub(
    save_message=save_message,
    authorize=authorize_order if settings.WS_ENFORCE_ORDER_ACCESS else None,
    send_timeout=settings.WS_SEND_TIMEOUT,
)
broadcaster = hub.broadcaster

# -------- auth helpers --------

def _extract_bearer_token(ws: WebSocket) -> tuple[Optional[str], str]:
    """Return (token, source). Source is one of protocol/query/authorization/cookie/none."""
    proto = ws.headers.get("sec-websocket-protocol", "") or ""
    if proto and len(proto) > MAX_PROTOCOL_HEADER_LEN:
        return None, "protocol_oversize"
    if proto:
        parts = [p.strip() for p in proto.split(",")]
        if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1]:
            token = parts[1]
            if len(token) > MAX_BEARER_LEN:
                return None, "protocol_oversize"
            return token, "protocol"
    qtok = ws.query_params.get("token")
    if qtok:
        if len(qtok) > MAX_BEARER_LEN:
            return None, "query_oversize"
        return qtok, "query"
    auth = ws.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        token = auth.split(" ", 1)[1].strip()
        if len(token) > MAX_BEARER_LEN:
            return None, "authorization_oversize"
        return token, "authorization"
    tok = ws.cookies.get("access_token")
    if tok:
        if len(tok) > MAX_BEARER_LEN:
            return None, "cookie_oversize"
        return tok, "cookie"
    return None, "none"


def _sanitize_bearer(val: Optional[str]) -> Optional[str]:
    if val is None:
        return None
    s = str(val).strip()
    if (s.startswith('"') and s.endswith('"')) or (s.startswith("'") and s.endswith("'")):
        s = s[1:-1].strip()
    while s and s[-1] in {";", ",", "."}:
        s = s[:-1]
    return s


def _log_ws_auth_failure(reason: str, websocket: WebSocket, source: str, detail: Optional[str] = None) -> None:
    metrics_incr("ws.auth.fail", tags={"reason": reason, "source": source})
    logger.warning(
        "WS auth failed: %s",
        reason,
        extra={"path": str(websocket.url.path), "source": source, "detail": detail},
    )


def _load_principal(db, email: str) -> Optional[Principal]:
    user = crud_user.get_user_by_email(db, email)
    if user is None or not user.is_active:
        return None
    return Principal.from_user(user)


async def _principal_from_token(token: str) -> tuple[Optional[Principal], Optional[str], Optional[dict]]:
    token = _sanitize_bearer(token)
    if not token:
        return None, "missing", None
    if len(token) > MAX_BEARER_LEN:
        return None, "token_too_long", None
    try:
        payload = decode_access_token(token, leeway=60)
    except ExpiredSignatureError:
        return None, "expired", None
    except JWTError:
        return None, "invalid", None
    email = payload.get("sub")
    meta = {"exp": payload.get("exp"), "iat": payload.get("iat"), "typ": payload.get("typ")}
    # Prevent refresh tokens from being used on WS
    if str(payload.get("typ") or "").lower() == "refresh":
        return None, "invalid_type", meta
    if not email:
        return None, "missing_sub", meta
    principal = await _ws_db_call(_load_principal, str(email))
    if principal is None:
        return None, "user_not_found", meta
    return principal, None, meta

# -------- /ws --------

@router.websocket("/ws")
async def realtime_ws(websocket: WebSocket):
    token, token_src = _extract_bearer_token(websocket)
    if not token:
        _log_ws_auth_failure("missing_token" if token_src == "none" else token_src, websocket, token_src)
        raise WebSocketException(code=WS_4401_UNAUTHORIZED, reason="Missing token")
    principal, fail_reason, meta = await _principal_from_token(token)
    if principal is None:
        detail = json.dumps(meta) if meta else None
        _log_ws_auth_failure(fail_reason or "invalid_token", websocket, token_src, detail=detail)
        reason = "Expired token" if fail_reason == "expired" else "Invalid token"
        raise WebSocketException(code=WS_4401_UNAUTHORIZED, reason=reason)

    conn = ClientConnection(websocket, principal.user_id)
    await conn.accept()
    channels = hub.connect(principal, conn)
    logger.info(
        "ws.connect",
        extra={
            "user_id": principal.user_id,
            "role": principal.role,
            "channels": sorted(channels),
            "token_source": token_src,
        },
    )

    try:
        await conn.send_envelope(
            Envelope(
                type=events.CONNECTED,
                payload={"userId": principal.user_id, "channels": sorted(channels)},
            )
        )
        while True:
            env = await conn.recv_envelope()
            if env is None:
                await hub.delivery.to_connection(conn, error_envelope("Malformed frame"))
                continue
            if env.v != 1:
                continue
            await hub.dispatch(principal, conn, env)
    except WebSocketDisconnect as exc:
        logger.info(
            "ws.disconnect",
            extra={"user_id": principal.user_id, "code": getattr(exc, "code", None)},
        )
    finally:
        hub.disconnect(principal, conn)
