from __future__ import annotations

from typing import Iterator

import pytest

from datastore.mock_auth import build_default_auth
from datastore.mock_backend import build_default_backend
from services.admin_access import build_default_admin_access
from services.catalog import build_default_catalog
from services.gate import build_default_gate
from services.profiles import build_default_profile_cache, build_default_profile_service
from services.session import build_default_session_provider
from settings import get_settings
from storage.image_bucket import build_default_bucket

DEFAULT_FACTORIES = (
    get_settings,
    build_default_backend,
    build_default_auth,
    build_default_bucket,
    build_default_profile_service,
    build_default_profile_cache,
    build_default_session_provider,
    build_default_catalog,
    build_default_admin_access,
    build_default_gate,
)

MOBILE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def clear_default_factories() -> None:
    for factory in DEFAULT_FACTORIES:
        factory.cache_clear()


@pytest.fixture(autouse=True)
def isolated_defaults(monkeypatch, tmp_path) -> Iterator[None]:
    """Every test gets in-memory stores and freshly built default components."""
    monkeypatch.setenv("BITEBOX_BACKEND_PATH", "")
    monkeypatch.setenv("BITEBOX_IMAGE_ROOT", str(tmp_path / "images"))
    monkeypatch.setenv("ADMIN_PAGE_PASSWORD", "letmein")
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("MOBILE_USER_AGENT_TOKENS", raising=False)
    clear_default_factories()
    yield
    clear_default_factories()
