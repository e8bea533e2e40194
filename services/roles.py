"""Admin-role lookup with a fail-closed contract."""

from __future__ import annotations

import logging
from typing import Protocol

from datastore.mock_backend import MockBackend

logger = logging.getLogger(__name__)


class RoleResolver(Protocol):
    def is_admin(self, user_id: str) -> bool: ...


class BackendRoleResolver:
    """An ``admin_users`` row for the user grants the admin role."""

    def __init__(self, backend: MockBackend, table: str = "admin_users") -> None:
        self.backend = backend
        self.table = table

    def is_admin(self, user_id: str) -> bool:
        try:
            return self.backend.exists(self.table, {"user_id": user_id})
        except Exception:  # noqa: BLE001 - any lookup failure denies elevation
            logger.warning(
                "Admin lookup failed, treating user as non-admin",
                extra={"user_id": user_id, "table": self.table},
                exc_info=True,
            )
            return False

    def grant(self, user_id: str) -> None:
        if not self.backend.exists(self.table, {"user_id": user_id}):
            self.backend.insert(self.table, {"user_id": user_id})
