"""Auth-state events and the profile cache that reacts to them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Optional, Protocol, Union

logger = logging.getLogger(__name__)

Profile = Dict[str, Any]


@dataclass(frozen=True)
class UserSignedIn:
    user_id: str


@dataclass(frozen=True)
class UserSignedOut:
    user_id: str


@dataclass(frozen=True)
class TokenRefreshed:
    user_id: str


AuthEvent = Union[UserSignedIn, UserSignedOut, TokenRefreshed]


class AuthEventSubscriber(Protocol):
    def handle(self, event: AuthEvent) -> None: ...


class NullSubscriber:
    def handle(self, event: AuthEvent) -> None:
        return None


class ProfileCache:
    """Caches profiles per user; the single subscriber to auth events."""

    def __init__(self, loader: Callable[[str], Optional[Profile]]) -> None:
        self._loader = loader
        self._profiles: Dict[str, Profile] = {}
        self._lock = Lock()

    def handle(self, event: AuthEvent) -> None:
        if isinstance(event, UserSignedOut):
            self.evict(event.user_id)
            return
        # Sign-in and token refresh both mean the cached copy may be stale.
        self.reload(event.user_id)

    def get(self, user_id: str) -> Optional[Profile]:
        with self._lock:
            cached = self._profiles.get(user_id)
        if cached is not None:
            return dict(cached)
        return self.reload(user_id)

    def put(self, profile: Profile) -> None:
        with self._lock:
            self._profiles[profile["id"]] = dict(profile)

    def reload(self, user_id: str) -> Optional[Profile]:
        profile = self._loader(user_id)
        with self._lock:
            if profile is None:
                self._profiles.pop(user_id, None)
                return None
            self._profiles[user_id] = dict(profile)
        logger.debug("Profile cache refreshed", extra={"user_id": user_id})
        return dict(profile)

    def evict(self, user_id: str) -> None:
        with self._lock:
            self._profiles.pop(user_id, None)
        logger.debug("Profile cache evicted", extra={"user_id": user_id})

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._profiles
