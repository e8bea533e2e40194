"""User profiles: social settings, avatars and public profile pages."""

from __future__ import annotations

import logging
import re
from dataclasses import asdict
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional

from datastore.mock_backend import MockBackend, build_default_backend, order_rows, utc_now_iso
from services.aggregator import RatingAggregator
from services.events import ProfileCache
from storage.image_bucket import ImageBucket, build_default_bucket

logger = logging.getLogger(__name__)

AVATAR_VARIANTS = ("red", "violet", "blue", "green", "pink")
MAX_FAVORITES = 3
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30

_USERNAME_PATTERN = re.compile(r"^[a-z0-9._]+$")
_PROFILE_FIELDS = ("display_name", "bio", "avatar_variant", "is_public")


def sanitize_username(username: str) -> str:
    cleaned = username.strip().lstrip("@").lower()
    return re.sub(r"[^a-z0-9._]", "", cleaned)


def validate_username(username: str) -> Optional[str]:
    """Return an error message, or ``None`` when the username is acceptable.

    An empty username is allowed and clears the field.
    """
    candidate = username.strip()
    if not candidate:
        return None
    if not USERNAME_MIN_LENGTH <= len(candidate) <= USERNAME_MAX_LENGTH:
        return (
            f"Username must be between {USERNAME_MIN_LENGTH} and "
            f"{USERNAME_MAX_LENGTH} characters."
        )
    if not _USERNAME_PATTERN.match(candidate):
        return "Username may only contain lowercase letters, digits, underscores and dots."
    return None


def normalize_favorite_ids(raw: Any) -> List[str]:
    """Accept a list or a Postgres array literal such as ``{a,b}``."""
    if isinstance(raw, list):
        return [item for item in raw if isinstance(item, str) and item]
    if isinstance(raw, str):
        cleaned = raw.strip().removeprefix("{").removesuffix("}")
        return [part.strip() for part in cleaned.split(",") if part.strip()]
    return []


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class ProfileService:

    def __init__(
        self,
        backend: MockBackend,
        bucket: ImageBucket,
        aggregator: Optional[RatingAggregator] = None,
    ) -> None:
        self.backend = backend
        self.bucket = bucket
        self.aggregator = aggregator or RatingAggregator()

    def load_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.backend.select_one("profiles", {"id": user_id})

    def get_or_create_profile(self, user_id: str, email: Optional[str] = None) -> Dict[str, Any]:
        profile = self.load_profile(user_id)
        if profile is not None:
            return profile
        logger.info("Creating profile on first access", extra={"user_id": user_id})
        return self.backend.insert(
            "profiles",
            {
                "id": user_id,
                "email": email,
                "username": None,
                "display_name": None,
                "bio": None,
                "avatar_url": None,
                "avatar_variant": None,
                "is_public": False,
                "is_verified": False,
                "favorite_restaurant_ids": [],
                "updated_at": utc_now_iso(),
            },
        )

    def is_username_available(self, username: str, user_id: str) -> bool:
        return not self.backend.select(
            "profiles",
            {"username": username},
            predicate=lambda row: row["id"] != user_id,
        )

    def update_profile(self, user_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        """Apply only the fields present in ``changes``; absent fields are left alone."""
        updates: Dict[str, Any] = {}
        for key in _PROFILE_FIELDS:
            if key not in changes:
                continue
            value = changes[key]
            if key in {"display_name", "bio"}:
                value = _clean_text(value)
            elif key == "avatar_variant" and value is not None and value not in AVATAR_VARIANTS:
                raise ValueError(f"Unknown avatar variant {value!r}.")
            elif key == "is_public":
                value = bool(value)
            updates[key] = value

        self.get_or_create_profile(user_id)
        updates["updated_at"] = utc_now_iso()
        return self.backend.update("profiles", user_id, updates)

    def update_social_settings(self, user_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}
        if "username" in changes:
            username = sanitize_username(changes["username"] or "")
            error = validate_username(username)
            if error:
                raise ValueError(error)
            if username and not self.is_username_available(username, user_id):
                raise ValueError("This username is already taken.")
            updates["username"] = username or None
        if "is_public" in changes:
            updates["is_public"] = bool(changes["is_public"])
        if "favorite_restaurant_ids" in changes:
            # Empty slots stay as None so positions survive.
            raw = changes["favorite_restaurant_ids"] or []
            updates["favorite_restaurant_ids"] = list(raw)[:MAX_FAVORITES]

        self.get_or_create_profile(user_id)
        updates["updated_at"] = utc_now_iso()
        return self.backend.update("profiles", user_id, updates)

    def upload_avatar(
        self,
        user_id: str,
        filename: Optional[str],
        content_type: Optional[str],
        data: bytes,
    ) -> Dict[str, Any]:
        url = self.bucket.upload_image(f"avatars/{user_id}", filename, content_type, data)
        self.get_or_create_profile(user_id)
        return self.backend.update("profiles", user_id, {"avatar_url": url, "updated_at": utc_now_iso()})

    def get_profile_summary(self, user_id: str) -> Dict[str, Any]:
        profile = self.load_profile(user_id)
        if profile is None:
            raise KeyError(f"Profile {user_id!r} not found.")
        return self._summary(profile)

    def get_public_profile(self, username: str) -> Dict[str, Any]:
        profile = self.backend.select_one(
            "profiles", {"username": username.lower(), "is_public": True}
        )
        if profile is None:
            raise KeyError(f"Public profile {username!r} not found.")
        return self._summary(profile)

    def list_users(self) -> List[Dict[str, Any]]:
        return order_rows(self.backend.select("profiles"), "created_at", descending=True)

    def set_verified(self, user_id: str, verified: bool) -> Dict[str, Any]:
        return self.backend.update(
            "profiles", user_id, {"is_verified": verified, "updated_at": utc_now_iso()}
        )

    def _summary(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        user_id = profile["id"]
        logs = self.backend.select("fastfood_logs", {"user_id": user_id})
        stats = self.aggregator.profile_stats(logs)

        favorite_ids = normalize_favorite_ids(profile.get("favorite_restaurant_ids"))[:MAX_FAVORITES]
        restaurants = {
            row["id"]: row
            for row in self.backend.select(
                "restaurants", predicate=lambda row: row["id"] in favorite_ids
            )
        }
        favorites = [
            {key: restaurants[rid].get(key) for key in ("id", "name", "slug", "logo_url")}
            for rid in favorite_ids
            if rid in restaurants
        ]

        last_experience = None
        latest = order_rows(logs, "created_at", descending=True)
        if latest:
            log = latest[0]
            restaurant = (
                self.backend.select_one("restaurants", {"id": log["restaurant_id"]})
                if log.get("restaurant_id")
                else None
            )
            last_experience = {
                "id": log["id"],
                "restaurant_name": log.get("restaurant_name") or "Unknown restaurant",
                "restaurant_logo_url": restaurant.get("logo_url") if restaurant else None,
                "rating": log.get("rating") or 0,
                "comment": log.get("comment"),
                "visited_at": log.get("visited_at"),
                "created_at": log["created_at"],
            }

        return {
            "profile": profile,
            "stats": asdict(stats),
            "favorite_restaurants": favorites,
            "last_experience": last_experience,
        }


@lru_cache
def build_default_profile_service() -> ProfileService:
    return ProfileService(backend=build_default_backend(), bucket=build_default_bucket())


@lru_cache
def build_default_profile_cache() -> ProfileCache:
    return ProfileCache(loader=build_default_profile_service().load_profile)
