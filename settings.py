from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_BACKEND_PATH_ENV = "BITEBOX_BACKEND_PATH"
_IMAGE_ROOT_ENV = "BITEBOX_IMAGE_ROOT"
_IMAGE_BUCKET_ENV = "BITEBOX_IMAGE_BUCKET"
_ADMIN_PASSWORD_ENV = "ADMIN_PAGE_PASSWORD"
_ACCESS_TTL_ENV = "SESSION_ACCESS_TOKEN_TTL"
_REFRESH_MARGIN_ENV = "SESSION_REFRESH_MARGIN"
_MOBILE_TOKENS_ENV = "MOBILE_USER_AGENT_TOKENS"
_APP_ENV_ENV = "APP_ENV"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_MOBILE_TOKENS = ("Android", "iPhone", "iPad", "iPod", "Mobile")


@dataclass(frozen=True)
class Settings:
    backend_persistence_path: Optional[str]
    image_root_path: Optional[str]
    image_bucket_name: str
    admin_page_password: Optional[str]
    access_token_ttl: int
    session_refresh_margin: int
    mobile_user_agent_tokens: tuple[str, ...]
    app_env: str
    log_level: str

    @property
    def secure_cookies(self) -> bool:
        return self.app_env == "production"


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_tokens(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    tokens = tuple(part.strip() for part in value.split(",") if part.strip())
    return tokens or default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        backend_persistence_path=_read_optional_env(_BACKEND_PATH_ENV, "./tmp/bitebox_db.json"),
        image_root_path=_read_optional_env(_IMAGE_ROOT_ENV, "./tmp/images"),
        image_bucket_name=_read_str_env(_IMAGE_BUCKET_ENV, "fastfood-images"),
        admin_page_password=_read_optional_env(_ADMIN_PASSWORD_ENV, None),
        access_token_ttl=_read_positive_int(_ACCESS_TTL_ENV, 3600),
        session_refresh_margin=_read_positive_int(_REFRESH_MARGIN_ENV, 60),
        mobile_user_agent_tokens=_read_tokens(_MOBILE_TOKENS_ENV, DEFAULT_MOBILE_TOKENS),
        app_env=_read_str_env(_APP_ENV_ENV, "development").lower(),
        log_level=_read_log_level("INFO"),
    )
