from __future__ import annotations

import pytest

from datastore.mock_backend import MockBackend
from services.profiles import (
    ProfileService,
    normalize_favorite_ids,
    sanitize_username,
    validate_username,
)
from storage.image_bucket import ImageBucket


@pytest.fixture
def profiles() -> ProfileService:
    return ProfileService(backend=MockBackend(), bucket=ImageBucket(name="test"))


def test_sanitize_username() -> None:
    assert sanitize_username("  @Ana.Banana_99! ") == "ana.banana_99"
    assert sanitize_username("José") == "jos"


@pytest.mark.parametrize(
    "username, ok",
    [("", True), ("abc", True), ("ab", False), ("a" * 31, False), ("a" * 30, True), ("Ana", False), ("a-b", False)],
)
def test_validate_username(username: str, ok: bool) -> None:
    assert (validate_username(username) is None) is ok


def test_normalize_favorite_ids() -> None:
    assert normalize_favorite_ids(["a", None, "", "b"]) == ["a", "b"]
    assert normalize_favorite_ids("{a, b,,c}") == ["a", "b", "c"]
    assert normalize_favorite_ids(None) == []


def test_profile_is_created_on_first_access(profiles: ProfileService) -> None:
    created = profiles.get_or_create_profile("u1", "ana@example.com")
    again = profiles.get_or_create_profile("u1", "other@example.com")

    assert created["id"] == "u1"
    assert created["is_public"] is False
    assert again["email"] == "ana@example.com"
    assert len(profiles.backend.select("profiles")) == 1


def test_update_profile_only_changes_given_fields(profiles: ProfileService) -> None:
    profiles.get_or_create_profile("u1")
    profiles.update_profile("u1", {"display_name": " Ana ", "bio": "Loves fries"})

    updated = profiles.update_profile("u1", {"avatar_variant": "violet"})

    assert updated["display_name"] == "Ana"
    assert updated["bio"] == "Loves fries"
    assert updated["avatar_variant"] == "violet"
    with pytest.raises(ValueError):
        profiles.update_profile("u1", {"avatar_variant": "orange"})


def test_social_settings(profiles: ProfileService) -> None:
    profiles.get_or_create_profile("u1")
    profiles.get_or_create_profile("u2")

    updated = profiles.update_social_settings(
        "u1",
        {"username": "@Ana", "is_public": True, "favorite_restaurant_ids": ["r1", None, "r3", "r4"]},
    )

    assert updated["username"] == "ana"
    assert updated["is_public"] is True
    assert updated["favorite_restaurant_ids"] == ["r1", None, "r3"]
    assert profiles.is_username_available("ana", "u1")
    assert not profiles.is_username_available("ana", "u2")
    with pytest.raises(ValueError):
        profiles.update_social_settings("u2", {"username": "ANA"})
    with pytest.raises(ValueError):
        profiles.update_social_settings("u2", {"username": "ab"})

    cleared = profiles.update_social_settings("u1", {"username": ""})
    assert cleared["username"] is None


def test_upload_avatar(profiles: ProfileService) -> None:
    updated = profiles.upload_avatar("u1", "me.jpg", "image/jpeg", b"jpeg")

    assert updated["avatar_url"].startswith("/api/images/avatars/u1/")
    with pytest.raises(ValueError):
        profiles.upload_avatar("u1", "me.gif", "application/pdf", b"pdf")


def test_summary_and_public_profile(profiles: ProfileService) -> None:
    backend = profiles.backend
    burger = backend.insert("restaurants", {"name": "Burger Hut", "slug": "burger-hut", "logo_url": "/logo.png"})
    tacos = backend.insert("restaurants", {"name": "Taco Stop", "slug": "taco-stop"})
    backend.insert(
        "fastfood_logs",
        {"user_id": "u1", "restaurant_id": burger["id"], "restaurant_name": "Burger Hut",
         "rating": 4, "created_at": "2024-01-01T10:00:00+00:00"},
    )
    backend.insert(
        "fastfood_logs",
        {"user_id": "u1", "restaurant_id": burger["id"], "restaurant_name": "Burger Hut",
         "rating": 5, "comment": "Best yet", "created_at": "2024-01-03T10:00:00+00:00"},
    )
    backend.insert(
        "fastfood_logs",
        {"user_id": "u1", "restaurant_id": tacos["id"], "restaurant_name": "Taco Stop",
         "rating": 3, "created_at": "2024-01-02T10:00:00+00:00"},
    )
    profiles.get_or_create_profile("u1")
    profiles.update_social_settings(
        "u1", {"username": "ana", "favorite_restaurant_ids": [tacos["id"], "gone", burger["id"]]}
    )

    summary = profiles.get_profile_summary("u1")

    assert summary["stats"] == {"restaurants_count": 2, "total_experiences": 3, "average_rating": 4.0}
    assert [item["name"] for item in summary["favorite_restaurants"]] == ["Taco Stop", "Burger Hut"]
    assert summary["last_experience"]["comment"] == "Best yet"
    assert summary["last_experience"]["restaurant_logo_url"] == "/logo.png"

    with pytest.raises(KeyError):
        profiles.get_public_profile("ana")
    profiles.update_social_settings("u1", {"is_public": True})
    assert profiles.get_public_profile("ANA")["profile"]["id"] == "u1"


def test_summary_without_logs(profiles: ProfileService) -> None:
    profiles.get_or_create_profile("u1")

    summary = profiles.get_profile_summary("u1")

    assert summary["stats"]["average_rating"] == 0.0
    assert summary["last_experience"] is None
    with pytest.raises(KeyError):
        profiles.get_profile_summary("nobody")


def test_admin_verification(profiles: ProfileService) -> None:
    profiles.get_or_create_profile("u1")

    assert profiles.set_verified("u1", True)["is_verified"] is True
    assert [row["id"] for row in profiles.list_users()] == ["u1"]
    with pytest.raises(KeyError):
        profiles.set_verified("nobody", True)
