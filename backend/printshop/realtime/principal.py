from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Principal:
    """Verified identity attached to a socket at connect time."""

    user_id: int
    role: str
    shop_id: Optional[int] = None
    name: Optional[str] = None

    @classmethod
    def from_user(cls, user: Any) -> "Principal":
        role = getattr(user, "role", None)
        role_value = getattr(role, "value", role)
        shop_id = getattr(user, "shop_id", None)
        return cls(
            user_id=int(user.id),
            role=str(role_value or "").lower(),
            shop_id=int(shop_id) if shop_id is not None else None,
            name=getattr(user, "name", None),
        )
