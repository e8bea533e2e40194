"""Image object storage used for restaurant logos, dish pictures and avatars."""

from __future__ import annotations

import mimetypes
import time
from functools import lru_cache
from pathlib import Path, PurePosixPath
from threading import Lock
from typing import Dict, Iterable, Optional, Set

from settings import get_settings

MAX_IMAGE_BYTES = 5 * 1024 * 1024
PUBLIC_URL_PREFIX = "/api/images"


class ImageBucket:

    def __init__(self, name: str, root_path: Optional[Path] = None) -> None:
        self.name = name
        self._objects: Dict[str, bytes] = {}
        self._known_keys: Set[str] = set()
        self.root_path = root_path
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)
            self._load_existing_keys()

    def put_object(self, key: str, data: bytes) -> None:
        key = _safe_key(key)
        with self._lock:
            self._objects[key] = data
            self._known_keys.add(key)
            if self.root_path:
                path = self.root_path / key
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(data)

    def get_object(self, key: str) -> bytes:
        key = _safe_key(key)
        with self._lock:
            data = self._objects.get(key)
            if data is not None:
                return data

        if self.root_path:
            path = self.root_path / key
            if path.is_file():
                data = path.read_bytes()
                with self._lock:
                    self._objects[key] = data
                    self._known_keys.add(key)
                return data

        raise KeyError(f"Object with key {key!r} not found in bucket {self.name!r}.")

    def upload_image(
        self,
        prefix: str,
        filename: Optional[str],
        content_type: Optional[str],
        data: bytes,
    ) -> str:
        """Validate and store an image, returning its public URL."""
        if not content_type or not content_type.startswith("image/"):
            raise ValueError("File must be an image.")
        if not data:
            raise ValueError("Uploaded file is empty.")
        if len(data) > MAX_IMAGE_BYTES:
            raise ValueError("Image is too large (max 5MB).")

        extension = PurePosixPath(filename or "").suffix.lstrip(".").lower() or "jpg"
        key = f"{prefix.strip('/')}/{int(time.time() * 1000)}.{extension}"
        self.put_object(key, data)
        return self.public_url(key)

    @staticmethod
    def public_url(key: str) -> str:
        return f"{PUBLIC_URL_PREFIX}/{key}"

    @staticmethod
    def guess_media_type(key: str) -> str:
        media_type, _ = mimetypes.guess_type(key)
        return media_type or "application/octet-stream"

    def list_objects(self) -> Iterable[str]:
        with self._lock:
            keys = set(self._known_keys)
            keys.update(self._objects.keys())
        return sorted(keys)

    def _load_existing_keys(self) -> None:
        assert self.root_path is not None
        for path in self.root_path.rglob("*"):
            if path.is_file():
                self._known_keys.add(path.relative_to(self.root_path).as_posix())


def _safe_key(key: str) -> str:
    parts = PurePosixPath(key.lstrip("/")).parts
    if not parts or any(part in {"..", "."} for part in parts):
        raise KeyError(f"Invalid object key {key!r}.")
    return "/".join(parts)


@lru_cache
def build_default_bucket(
    name: Optional[str] = None,
    root_path: Optional[str] = None,
) -> ImageBucket:
    settings = get_settings()
    bucket_name = settings.image_bucket_name if name is None else name
    bucket_root = settings.image_root_path if root_path is None else root_path
    path = Path(bucket_root) if bucket_root else None
    return ImageBucket(name=bucket_name, root_path=path)
