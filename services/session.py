"""Cookie-backed session capability over the auth service."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, List, Mapping, Optional, Protocol

from datastore.mock_auth import AuthSession, InvalidTokenError, MockAuthService, build_default_auth
from models.records import AuthUser
from services.events import (
    AuthEventSubscriber,
    NullSubscriber,
    TokenRefreshed,
    UserSignedIn,
    UserSignedOut,
)
from services.profiles import build_default_profile_cache
from settings import get_settings

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "bitebox-access-token"
REFRESH_COOKIE = "bitebox-refresh-token"
REFRESH_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


@dataclass(frozen=True)
class CookieUpdate:
    """A cookie to set on the outgoing response; ``max_age=0`` deletes it."""

    name: str
    value: str
    max_age: int
    http_only: bool = True
    same_site: str = "lax"
    path: str = "/"


@dataclass(frozen=True)
class SessionRefresh:
    user: Optional[AuthUser]
    cookies: List[CookieUpdate] = field(default_factory=list)


class SessionProvider(Protocol):
    def refresh(self, cookies: Mapping[str, str]) -> SessionRefresh: ...

    def get_current_user(self, cookies: Mapping[str, str]) -> Optional[AuthUser]: ...


class CookieSessionProvider:
    """Reads session tokens from request cookies and renews them when close to expiry."""

    def __init__(
        self,
        auth: MockAuthService,
        subscriber: Optional[AuthEventSubscriber] = None,
        refresh_margin: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.auth = auth
        self.subscriber = subscriber or NullSubscriber()
        self.refresh_margin = refresh_margin
        self._clock = clock

    def refresh(self, cookies: Mapping[str, str]) -> SessionRefresh:
        access_token = cookies.get(ACCESS_COOKIE)
        refresh_token = cookies.get(REFRESH_COOKIE)

        if access_token:
            try:
                user, expires_at = self.auth.verify_access_token(access_token)
            except InvalidTokenError:
                user = None
            else:
                if expires_at - self._clock() > self.refresh_margin or not refresh_token:
                    return SessionRefresh(user=user)

        if not refresh_token:
            if access_token:
                return SessionRefresh(user=None, cookies=self._clear_cookies())
            return SessionRefresh(user=None)

        try:
            session = self.auth.refresh_session(refresh_token)
        except InvalidTokenError:
            logger.info("Discarding stale session cookies", extra={"reason": "invalid refresh token"})
            return SessionRefresh(user=None, cookies=self._clear_cookies())

        self.subscriber.handle(TokenRefreshed(user_id=session.user.id))
        return SessionRefresh(user=session.user, cookies=self._session_cookies(session))

    def get_current_user(self, cookies: Mapping[str, str]) -> Optional[AuthUser]:
        access_token = cookies.get(ACCESS_COOKIE)
        if not access_token:
            return None
        try:
            return self.auth.get_user(access_token)
        except InvalidTokenError:
            return None

    def sign_in(self, email: str, password: str) -> SessionRefresh:
        session = self.auth.sign_in_with_password(email, password)
        self.subscriber.handle(UserSignedIn(user_id=session.user.id))
        logger.info("User signed in", extra={"user_id": session.user.id})
        return SessionRefresh(user=session.user, cookies=self._session_cookies(session))

    def sign_up(self, email: str, password: str) -> SessionRefresh:
        self.auth.sign_up(email, password)
        return self.sign_in(email, password)

    def sign_out(self, cookies: Mapping[str, str]) -> SessionRefresh:
        user_id = self.auth.sign_out(
            access_token=cookies.get(ACCESS_COOKIE),
            refresh_token=cookies.get(REFRESH_COOKIE),
        )
        if user_id is not None:
            self.subscriber.handle(UserSignedOut(user_id=user_id))
            logger.info("User signed out", extra={"user_id": user_id})
        return SessionRefresh(user=None, cookies=self._clear_cookies())

    def _session_cookies(self, session: AuthSession) -> List[CookieUpdate]:
        access_max_age = max(int(session.expires_at - self._clock()), 0)
        return [
            CookieUpdate(name=ACCESS_COOKIE, value=session.access_token, max_age=access_max_age),
            CookieUpdate(
                name=REFRESH_COOKIE,
                value=session.refresh_token,
                max_age=REFRESH_COOKIE_MAX_AGE,
            ),
        ]

    @staticmethod
    def _clear_cookies() -> List[CookieUpdate]:
        return [
            CookieUpdate(name=ACCESS_COOKIE, value="", max_age=0),
            CookieUpdate(name=REFRESH_COOKIE, value="", max_age=0),
        ]


@lru_cache
def build_default_session_provider() -> CookieSessionProvider:
    return CookieSessionProvider(
        auth=build_default_auth(),
        subscriber=build_default_profile_cache(),
        refresh_margin=get_settings().session_refresh_margin,
    )
