from pathlib import Path

import pytest

from datastore.mock_backend import BackendError, MockBackend, order_rows
from storage.image_bucket import MAX_IMAGE_BYTES, ImageBucket


def test_insert_assigns_id_and_created_at() -> None:
    backend = MockBackend()

    row = backend.insert("restaurants", {"name": "Burger Hut"})

    assert row["id"]
    assert row["created_at"]
    assert backend.select_one("restaurants", {"id": row["id"]}) == row


def test_select_returns_copies() -> None:
    backend = MockBackend()
    row = backend.insert("profiles", {"id": "u1", "favorite_restaurant_ids": ["a"]})

    selected = backend.select_one("profiles", {"id": row["id"]})
    selected["favorite_restaurant_ids"].append("b")

    assert backend.select_one("profiles", {"id": "u1"})["favorite_restaurant_ids"] == ["a"]


def test_where_and_predicate_filters() -> None:
    backend = MockBackend()
    backend.insert("fastfood_logs", {"user_id": "u1", "restaurant_id": "r1", "rating": 5})
    backend.insert("fastfood_logs", {"user_id": "u1", "restaurant_id": "r2", "rating": 2})
    backend.insert("fastfood_logs", {"user_id": "u2", "restaurant_id": "r1", "rating": 3})

    rows = backend.select("fastfood_logs", {"user_id": "u1"}, predicate=lambda row: row["rating"] > 3)

    assert [row["restaurant_id"] for row in rows] == ["r1"]
    assert backend.exists("fastfood_logs", {"user_id": "u2"})
    assert not backend.exists("fastfood_logs", {"user_id": "u3"})


def test_update_and_delete() -> None:
    backend = MockBackend()
    row = backend.insert("dishes", {"restaurant_id": "r1", "name": "Fries"})

    updated = backend.update("dishes", row["id"], {"name": "Curly fries", "id": "ignored"})

    assert updated["name"] == "Curly fries"
    assert updated["id"] == row["id"]
    assert backend.delete("dishes", {"restaurant_id": "r1"}) == 1
    assert backend.select("dishes") == []
    with pytest.raises(KeyError):
        backend.update("dishes", row["id"], {"name": "Gone"})


def test_unknown_table_and_duplicate_id() -> None:
    backend = MockBackend()
    backend.insert("restaurants", {"id": "r1", "name": "A"})

    with pytest.raises(BackendError):
        backend.select("menus")
    with pytest.raises(BackendError):
        backend.insert("restaurants", {"id": "r1", "name": "B"})


def test_persistence_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "db.json"
    backend = MockBackend(persistence_path=path)
    row = backend.insert("restaurants", {"name": "Taco Stop", "slug": "taco-stop"})

    reloaded = MockBackend(persistence_path=path)

    assert reloaded.select_one("restaurants", {"slug": "taco-stop"}) == row


def test_corrupt_snapshot_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "db.json"
    path.write_text("{not json")

    backend = MockBackend(persistence_path=path)

    assert backend.select("restaurants") == []


def test_order_rows_keeps_nulls_last() -> None:
    rows = [{"position": 2}, {"position": None}, {"position": 1}, {}]

    ordered = order_rows(rows, "position")

    assert [row.get("position") for row in ordered] == [1, 2, None, None]
    assert [row.get("position") for row in order_rows(rows, "position", descending=True)][:2] == [2, 1]


def test_bucket_put_and_get(tmp_path: Path) -> None:
    bucket = ImageBucket(name="test", root_path=tmp_path)
    bucket.put_object("logos/r1/1.png", b"png-bytes")

    assert (tmp_path / "logos" / "r1" / "1.png").read_bytes() == b"png-bytes"
    assert "logos/r1/1.png" in bucket.list_objects()

    fresh_bucket = ImageBucket(name="test", root_path=tmp_path)
    assert fresh_bucket.get_object("logos/r1/1.png") == b"png-bytes"


def test_bucket_missing_and_unsafe_keys(tmp_path: Path) -> None:
    bucket = ImageBucket(name="test", root_path=tmp_path)

    with pytest.raises(KeyError):
        bucket.get_object("missing.png")
    with pytest.raises(KeyError):
        bucket.get_object("../secrets.txt")


def test_upload_image_validation() -> None:
    bucket = ImageBucket(name="test")

    with pytest.raises(ValueError):
        bucket.upload_image("avatars/u1", "notes.txt", "text/plain", b"hello")
    with pytest.raises(ValueError):
        bucket.upload_image("avatars/u1", "empty.png", "image/png", b"")
    with pytest.raises(ValueError):
        bucket.upload_image("avatars/u1", "big.png", "image/png", b"x" * (MAX_IMAGE_BYTES + 1))

    url = bucket.upload_image("avatars/u1", "Me.PNG", "image/png", b"img")

    assert url.startswith("/api/images/avatars/u1/")
    assert url.endswith(".png")
    assert bucket.get_object(url.removeprefix("/api/images/")) == b"img"
    assert bucket.guess_media_type("a/b.png") == "image/png"
