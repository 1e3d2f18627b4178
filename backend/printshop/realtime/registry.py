from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Maps a user id to that user's single live connection.

    Last writer wins: registering a second connection for the same user
    replaces the first. Only this class mutates the map.
    """

    def __init__(self) -> None:
        self._handles: Dict[int, Any] = {}

    def __len__(self) -> int:
        return len(self._handles)

    def register(self, user_id: int, handle: Any) -> Optional[Any]:
        """Bind ``handle`` to ``user_id`` and return the handle it displaced, if any."""
        uid = int(user_id)
        previous = self._handles.get(uid)
        self._handles[uid] = handle
        if previous is not None and previous is not handle:
            logger.debug("registry.replaced", extra={"user_id": uid})
        return previous

    def unregister(self, user_id: int, handle: Any = None) -> bool:
        """Drop the mapping for ``user_id``; no-op when absent.

        With ``handle`` given, the mapping is only removed while it still
        points at that handle, so a stale socket closing after a reconnect
        leaves the newer one in place.
        """
        uid = int(user_id)
        current = self._handles.get(uid)
        if current is None:
            return False
        if handle is not None and current is not handle:
            return False
        del self._handles[uid]
        return True

    def lookup(self, user_id: int) -> Optional[Any]:
        return self._handles.get(int(user_id))

    def is_online(self, user_id: int) -> bool:
        return int(user_id) in self._handles

    def connected_user_ids(self) -> List[int]:
        return sorted(self._handles)
