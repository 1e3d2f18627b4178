from __future__ import annotations

from typing import Any, Dict, FrozenSet, Set

from .principal import Principal

ROLE_SHOP_OWNER = "shop_owner"
ROLE_CUSTOMER = "customer"


def shop_channel(shop_id: int) -> str:
    return f"shop:{int(shop_id)}"


def customer_channel(user_id: int) -> str:
    return f"customer:{int(user_id)}"


def channels_for(principal: Principal) -> FrozenSet[str]:
    """Channels a connection joins, derived only from role and identity.

    Admins, shop owners without a shop and unrecognised roles join nothing.
    """
    role = (principal.role or "").lower()
    if role == ROLE_SHOP_OWNER:
        if principal.shop_id is None:
            return frozenset()
        return frozenset({shop_channel(principal.shop_id)})
    if role == ROLE_CUSTOMER:
        return frozenset({customer_channel(principal.user_id)})
    return frozenset()


class RoomMembership:
    def __init__(self) -> None:
        self.channel_conns: Dict[str, Set[Any]] = {}
        self.conn_channels: Dict[Any, Set[str]] = {}

    def join(self, channel: str, conn: Any) -> None:
        self.channel_conns.setdefault(channel, set()).add(conn)
        self.conn_channels.setdefault(conn, set()).add(channel)

    def leave(self, channel: str, conn: Any) -> None:
        if channel in self.channel_conns:
            self.channel_conns[channel].discard(conn)
            if not self.channel_conns[channel]:
                del self.channel_conns[channel]
        if conn in self.conn_channels:
            self.conn_channels[conn].discard(channel)
            if not self.conn_channels[conn]:
                del self.conn_channels[conn]

    def leave_all(self, conn: Any) -> None:
        for channel in list(self.conn_channels.get(conn, set())):
            self.leave(channel, conn)
        self.conn_channels.pop(conn, None)

    def members(self, channel: str) -> Set[Any]:
        return set(self.channel_conns.get(channel, set()))

    def channels_of(self, conn: Any) -> FrozenSet[str]:
        return frozenset(self.conn_channels.get(conn, set()))
