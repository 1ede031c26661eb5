# Overview: Authorization policy deciding who may act on a shop's orders.

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from .validation import NotFoundError


@dataclass(frozen=True)
class OwnershipPolicy:
    """
    An actor may act on a record when it owns it (same shop id) or when it
    presents the configured admin id. Records the actor may not see are
    reported as not found rather than forbidden, so ids do not leak across shops.
    """
    admin_user_id: Optional[str] = None

    @classmethod
    def from_config(cls, config: Mapping) -> "OwnershipPolicy":
        admin = config.get("ADMIN_USER_ID")
        return cls(admin_user_id=str(admin) if admin else None)

    def is_admin(self, actor_id: Optional[str]) -> bool:
        return bool(self.admin_user_id) and actor_id is not None and str(actor_id) == self.admin_user_id

    def allows(self, owner_user_id: str, actor_id: Optional[str]) -> bool:
        if actor_id is None:
            return False
        return str(actor_id) == str(owner_user_id) or self.is_admin(actor_id)

    def require(self, owner_user_id: str, actor_id: Optional[str], *, resource: str = "Order") -> None:
        if not self.allows(owner_user_id, actor_id):
            raise NotFoundError(f"{resource} not found.")
