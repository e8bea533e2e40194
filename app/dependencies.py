"""FastAPI dependencies shared by the API, admin and page routers."""

from __future__ import annotations

from typing import Iterable, Optional

from fastapi import Depends, HTTPException, Request, Response, status

from models.records import AuthUser
from services.admin_access import AdminAccess, build_default_admin_access
from services.catalog import CatalogService, build_default_catalog
from services.events import ProfileCache
from services.profiles import ProfileService, build_default_profile_cache, build_default_profile_service
from services.session import CookieSessionProvider, CookieUpdate, build_default_session_provider
from settings import get_settings
from storage.image_bucket import ImageBucket, build_default_bucket


def get_catalog() -> CatalogService:
    return build_default_catalog()


def get_profiles() -> ProfileService:
    return build_default_profile_service()


def get_profile_cache() -> ProfileCache:
    return build_default_profile_cache()


def get_sessions() -> CookieSessionProvider:
    return build_default_session_provider()


def get_bucket() -> ImageBucket:
    return build_default_bucket()


def get_admin_access() -> AdminAccess:
    return build_default_admin_access()


def get_current_user(request: Request) -> Optional[AuthUser]:
    """The user resolved by the request gate, if any."""
    return getattr(request.state, "user", None)


def require_user(user: Optional[AuthUser] = Depends(get_current_user)) -> AuthUser:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


def require_admin(request: Request, user: AuthUser = Depends(require_user)) -> AuthUser:
    if not getattr(request.state, "is_admin", False):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def apply_cookies(response: Response, updates: Iterable[CookieUpdate]) -> None:
    secure = get_settings().secure_cookies
    for cookie in updates:
        response.set_cookie(
            key=cookie.name,
            value=cookie.value,
            max_age=cookie.max_age,
            path=cookie.path,
            httponly=cookie.http_only,
            samesite=cookie.same_site,
            secure=secure,
        )
