from __future__ import annotations

from typing import Dict, List

from services.events import ProfileCache, TokenRefreshed, UserSignedIn, UserSignedOut


class CountingLoader:
    def __init__(self, profiles: Dict[str, dict]) -> None:
        self.profiles = profiles
        self.calls: List[str] = []

    def __call__(self, user_id: str):
        self.calls.append(user_id)
        profile = self.profiles.get(user_id)
        return dict(profile) if profile else None


def test_sign_in_loads_profile() -> None:
    loader = CountingLoader({"u1": {"id": "u1", "username": "ana"}})
    cache = ProfileCache(loader)

    cache.handle(UserSignedIn(user_id="u1"))

    assert "u1" in cache
    assert cache.get("u1") == {"id": "u1", "username": "ana"}
    assert loader.calls == ["u1"]


def test_token_refresh_reloads_profile() -> None:
    profiles = {"u1": {"id": "u1", "username": "ana"}}
    loader = CountingLoader(profiles)
    cache = ProfileCache(loader)
    cache.handle(UserSignedIn(user_id="u1"))

    profiles["u1"]["username"] = "ana.b"
    cache.handle(TokenRefreshed(user_id="u1"))

    assert cache.get("u1")["username"] == "ana.b"


def test_sign_out_evicts_profile() -> None:
    loader = CountingLoader({"u1": {"id": "u1"}})
    cache = ProfileCache(loader)
    cache.handle(UserSignedIn(user_id="u1"))

    cache.handle(UserSignedOut(user_id="u1"))

    assert "u1" not in cache


def test_missing_profile_is_not_cached() -> None:
    cache = ProfileCache(CountingLoader({}))

    cache.handle(UserSignedIn(user_id="ghost"))

    assert "ghost" not in cache
    assert cache.get("ghost") is None


def test_cached_copies_are_isolated() -> None:
    cache = ProfileCache(CountingLoader({}))
    cache.put({"id": "u1", "bio": "hi"})

    copy = cache.get("u1")
    copy["bio"] = "changed"

    assert cache.get("u1")["bio"] == "hi"
