"""Shared-password unlock for the administration pages."""

from __future__ import annotations

import hmac
import logging
from functools import lru_cache
from typing import Mapping, Optional

from services.session import CookieUpdate
from settings import get_settings

logger = logging.getLogger(__name__)

ADMIN_ACCESS_COOKIE = "admin_access"
ADMIN_ACCESS_VALUE = "ok"
ADMIN_ACCESS_MAX_AGE = 60 * 60 * 24 * 7


class AdminAccessMisconfigured(RuntimeError):
    pass


class AdminAccess:

    def __init__(self, password: Optional[str]) -> None:
        self._password = password

    def verify(self, candidate: str) -> CookieUpdate:
        """Return the unlock cookie, or raise when the password is wrong."""
        if not self._password:
            logger.error("ADMIN_PAGE_PASSWORD is not set", extra={"reason": "misconfigured"})
            raise AdminAccessMisconfigured("Server configuration error")
        if not hmac.compare_digest(candidate.encode("utf-8"), self._password.encode("utf-8")):
            raise PermissionError("Invalid password")
        return CookieUpdate(
            name=ADMIN_ACCESS_COOKIE,
            value=ADMIN_ACCESS_VALUE,
            max_age=ADMIN_ACCESS_MAX_AGE,
            http_only=False,
        )

    @staticmethod
    def is_unlocked(cookies: Mapping[str, str]) -> bool:
        return cookies.get(ADMIN_ACCESS_COOKIE) == ADMIN_ACCESS_VALUE


@lru_cache
def build_default_admin_access() -> AdminAccess:
    return AdminAccess(password=get_settings().admin_page_password)
