"""In-process stand-in for the hosted auth service."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import time
from dataclasses import dataclass, field
from functools import lru_cache
from threading import Lock
from typing import Callable, Dict, Optional
from uuid import uuid4

from models.records import AuthUser
from settings import get_settings

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
_HASH_ITERATIONS = 100_000
_RESET_TOKEN_TTL = 3600
# Seconds a rotated refresh token keeps answering with the session it produced.
REFRESH_REUSE_INTERVAL = 10


class AuthError(Exception):
    """Base error raised by the auth service."""


class InvalidCredentialsError(AuthError):
    pass


class InvalidTokenError(AuthError):
    pass


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: str
    expires_at: float
    user: AuthUser


@dataclass
class _Account:
    user: AuthUser
    salt: bytes
    password_hash: bytes


@dataclass
class _TokenState:
    user_id: str
    expires_at: float
    refresh_token: str = field(default="")


@dataclass
class _RefreshState:
    user_id: str
    access_token: str


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _HASH_ITERATIONS)


class MockAuthService:

    def __init__(
        self,
        access_token_ttl: int = 3600,
        clock: Callable[[], float] = time.time,
        refresh_reuse_interval: float = REFRESH_REUSE_INTERVAL,
    ) -> None:
        self.access_token_ttl = access_token_ttl
        self.refresh_reuse_interval = refresh_reuse_interval
        self._clock = clock
        self._accounts: Dict[str, _Account] = {}
        self._emails: Dict[str, str] = {}
        self._access_tokens: Dict[str, _TokenState] = {}
        self._refresh_tokens: Dict[str, _RefreshState] = {}
        self._rotated: Dict[str, tuple[AuthSession, float]] = {}
        self._reset_tokens: Dict[str, tuple[str, float]] = {}
        self._lock = Lock()

    def sign_up(self, email: str, password: str) -> AuthUser:
        normalized = _normalize_email(email)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        salt = secrets.token_bytes(16)
        user = AuthUser(id=str(uuid4()), email=normalized)
        with self._lock:
            if normalized in self._emails:
                raise AuthError("User already registered.")
            self._accounts[user.id] = _Account(
                user=user, salt=salt, password_hash=_hash_password(password, salt)
            )
            self._emails[normalized] = user.id
        logger.info("Registered user", extra={"user_id": user.id})
        return user

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        with self._lock:
            user_id = self._emails.get(_normalize_email(email))
            account = self._accounts.get(user_id) if user_id else None
            if account is None or not hmac.compare_digest(
                account.password_hash, _hash_password(password, account.salt)
            ):
                raise InvalidCredentialsError("Invalid login credentials.")
            return self._issue_session(account.user)

    def get_user(self, access_token: str) -> AuthUser:
        user, _ = self.verify_access_token(access_token)
        return user

    def verify_access_token(self, access_token: str) -> tuple[AuthUser, float]:
        """Return the token's user and expiry, or raise ``InvalidTokenError``."""
        with self._lock:
            state = self._access_tokens.get(access_token)
            if state is None:
                raise InvalidTokenError("Unknown access token.")
            if state.expires_at <= self._clock():
                raise InvalidTokenError("Access token expired.")
            return self._accounts[state.user_id].user, state.expires_at

    def refresh_session(self, refresh_token: str) -> AuthSession:
        """Rotate a refresh token into a fresh session; the old pair stops working.

        Concurrent requests often present the same refresh token. For
        ``refresh_reuse_interval`` seconds after a rotation the old token
        answers with the session it already produced, as long as that session
        has not itself been rotated or revoked.
        """
        with self._lock:
            now = self._clock()
            state = self._refresh_tokens.pop(refresh_token, None)
            if state is None:
                return self._reuse_rotated(refresh_token, now)
            self._access_tokens.pop(state.access_token, None)
            session = self._issue_session(self._accounts[state.user_id].user)
            self._rotated[refresh_token] = (session, now)
            return session

    def sign_out(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None) -> Optional[str]:
        """Revoke the session; returns the signed-out user id when one was found."""
        user_id = None
        with self._lock:
            state = self._access_tokens.pop(access_token, None) if access_token else None
            if state is not None:
                user_id = state.user_id
                self._refresh_tokens.pop(state.refresh_token, None)
            refresh_state = self._refresh_tokens.pop(refresh_token, None) if refresh_token else None
            if refresh_state is not None:
                user_id = user_id or refresh_state.user_id
                self._access_tokens.pop(refresh_state.access_token, None)
        return user_id

    def request_password_reset(self, email: str) -> Optional[str]:
        """Create a reset token; unknown addresses silently get none."""
        with self._lock:
            user_id = self._emails.get(_normalize_email(email))
            if user_id is None:
                return None
            token = secrets.token_urlsafe(24)
            self._reset_tokens[token] = (user_id, self._clock() + _RESET_TOKEN_TTL)
        logger.info("Password reset requested", extra={"user_id": user_id})
        return token

    def reset_password(self, token: str, new_password: str) -> AuthUser:
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        with self._lock:
            entry = self._reset_tokens.pop(token, None)
            if entry is None or entry[1] <= self._clock():
                raise InvalidTokenError("Reset link is invalid or has expired.")
            account = self._accounts[entry[0]]
            account.salt = secrets.token_bytes(16)
            account.password_hash = _hash_password(new_password, account.salt)
            return account.user

    def _reuse_rotated(self, refresh_token: str, now: float) -> AuthSession:
        entry = self._rotated.get(refresh_token)
        if entry is None or now - entry[1] > self.refresh_reuse_interval:
            raise InvalidTokenError("Invalid refresh token.")
        session = entry[0]
        if session.refresh_token not in self._refresh_tokens:
            raise InvalidTokenError("Invalid refresh token.")
        return session

    def _prune(self, now: float) -> None:
        expired = [token for token, state in self._access_tokens.items() if state.expires_at <= now]
        for token in expired:
            del self._access_tokens[token]
        stale = [
            token
            for token, (_, rotated_at) in self._rotated.items()
            if now - rotated_at > self.refresh_reuse_interval
        ]
        for token in stale:
            del self._rotated[token]

    def _issue_session(self, user: AuthUser) -> AuthSession:
        now = self._clock()
        self._prune(now)
        access_token = secrets.token_urlsafe(32)
        refresh_token = secrets.token_urlsafe(32)
        expires_at = now + self.access_token_ttl
        self._access_tokens[access_token] = _TokenState(
            user_id=user.id, expires_at=expires_at, refresh_token=refresh_token
        )
        self._refresh_tokens[refresh_token] = _RefreshState(user_id=user.id, access_token=access_token)
        return AuthSession(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            user=user,
        )


def _normalize_email(email: str) -> str:
    candidate = email.strip().lower()
    if "@" not in candidate:
        raise AuthError("Invalid email address.")
    return candidate


@lru_cache
def build_default_auth() -> MockAuthService:
    return MockAuthService(access_token_ttl=get_settings().access_token_ttl)
