"""HTTP route definitions for the JSON API."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, Response, UploadFile, status

from app.dependencies import (
    apply_cookies,
    get_admin_access,
    get_bucket,
    get_catalog,
    get_profile_cache,
    get_profiles,
    get_sessions,
    require_user,
)
from app.schemas import (
    AdminAuthRequest,
    AuthResponse,
    BrandSuggestion,
    BrandSuggestionCreate,
    Credentials,
    DetailResponse,
    ForgotPasswordRequest,
    Note,
    NoteCreate,
    Profile,
    ProfileSummary,
    ProfileUpdate,
    ResetPasswordRequest,
    RestaurantDetail,
    RestaurantSummary,
    SocialSettingsUpdate,
    UsernameAvailability,
)
from datastore.mock_auth import AuthError, InvalidCredentialsError
from models.records import AuthUser
from services.admin_access import AdminAccess, AdminAccessMisconfigured
from services.catalog import CatalogService
from services.events import ProfileCache
from services.profiles import ProfileService, sanitize_username, validate_username
from services.session import CookieSessionProvider
from storage.image_bucket import ImageBucket

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


# Authentication


@router.post("/auth/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def sign_up(
    payload: Credentials,
    response: Response,
    sessions: CookieSessionProvider = Depends(get_sessions),
) -> AuthResponse:
    try:
        refreshed = sessions.sign_up(payload.email, payload.password)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    apply_cookies(response, refreshed.cookies)
    assert refreshed.user is not None
    return AuthResponse(user_id=refreshed.user.id, email=refreshed.user.email)


@router.post("/auth/login", response_model=AuthResponse)
def log_in(
    payload: Credentials,
    response: Response,
    sessions: CookieSessionProvider = Depends(get_sessions),
) -> AuthResponse:
    try:
        refreshed = sessions.sign_in(payload.email, payload.password)
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    apply_cookies(response, refreshed.cookies)
    assert refreshed.user is not None
    return AuthResponse(user_id=refreshed.user.id, email=refreshed.user.email)


@router.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
def log_out(
    request: Request,
    sessions: CookieSessionProvider = Depends(get_sessions),
) -> Response:
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    apply_cookies(response, sessions.sign_out(request.cookies).cookies)
    return response


@router.post("/auth/forgot-password", response_model=DetailResponse)
def forgot_password(
    payload: ForgotPasswordRequest,
    sessions: CookieSessionProvider = Depends(get_sessions),
) -> DetailResponse:
    try:
        token = sessions.auth.request_password_reset(payload.email)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if token is not None:
        logger.info("Password reset link issued", extra={"location": f"/reset-password?token={token}"})
    return DetailResponse(detail="If an account exists for this address, a reset link has been sent.")


@router.post("/auth/reset-password", response_model=DetailResponse)
def reset_password(
    payload: ResetPasswordRequest,
    sessions: CookieSessionProvider = Depends(get_sessions),
) -> DetailResponse:
    try:
        sessions.auth.reset_password(payload.token, payload.password)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return DetailResponse(detail="Password updated.")


@router.post("/admin-auth", response_model=DetailResponse)
def admin_auth(
    payload: AdminAuthRequest,
    response: Response,
    access: AdminAccess = Depends(get_admin_access),
) -> DetailResponse:
    try:
        cookie = access.verify(payload.password)
    except AdminAccessMisconfigured as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    apply_cookies(response, [cookie])
    return DetailResponse(detail="ok")


# Restaurants


@router.get(
    "/restaurants",
    response_model=list[RestaurantSummary],
    summary="List restaurants with their one-voter-one-voice public rating.",
)
def list_restaurants(
    search: Optional[str] = Query(default=None),
    sort: Optional[str] = Query(default=None),
    catalog: CatalogService = Depends(get_catalog),
) -> list[dict]:
    try:
        return catalog.list_restaurants(search=search, sort=sort)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/restaurants/trending", response_model=list[RestaurantSummary])
def trending_restaurants(catalog: CatalogService = Depends(get_catalog)) -> list[dict]:
    return catalog.trending_restaurants()


@router.get("/restaurants/{slug}", response_model=RestaurantDetail)
def get_restaurant(slug: str, catalog: CatalogService = Depends(get_catalog)) -> dict:
    try:
        return catalog.get_restaurant(slug)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post(
    "/restaurants/{slug}/notes",
    response_model=Note,
    status_code=status.HTTP_201_CREATED,
)
def add_note(
    slug: str,
    payload: NoteCreate,
    user: AuthUser = Depends(require_user),
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    try:
        return catalog.add_note(
            user_id=user.id,
            slug=slug,
            rating=payload.rating,
            comment=payload.comment,
            visited_at=payload.visited_at.isoformat() if payload.visited_at else None,
            dish_ratings=payload.dish_ratings,
        )
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post(
    "/brand-suggestions",
    response_model=BrandSuggestion,
    status_code=status.HTTP_201_CREATED,
)
def suggest_brand(
    payload: BrandSuggestionCreate,
    user: AuthUser = Depends(require_user),
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    try:
        return catalog.suggest_brand(
            user_id=user.id,
            name=payload.name,
            search_query=payload.search_query,
            context_page=payload.context_page,
            locale=payload.locale,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


# Images


@router.get("/images/{key:path}", include_in_schema=False)
def get_image(key: str, bucket: ImageBucket = Depends(get_bucket)) -> Response:
    try:
        data = bucket.get_object(key)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return Response(content=data, media_type=bucket.guess_media_type(key))


# Profiles


def _cached_profile(user: AuthUser, cache: ProfileCache, profiles: ProfileService) -> dict:
    profile = cache.get(user.id)
    if profile is None:
        profile = profiles.get_or_create_profile(user.id, user.email)
        cache.put(profile)
    return profile


@router.get("/profile/me", response_model=Profile)
def get_my_profile(
    user: AuthUser = Depends(require_user),
    profiles: ProfileService = Depends(get_profiles),
    cache: ProfileCache = Depends(get_profile_cache),
) -> dict:
    return _cached_profile(user, cache, profiles)


@router.patch("/profile/me", response_model=Profile)
def update_my_profile(
    payload: ProfileUpdate,
    user: AuthUser = Depends(require_user),
    profiles: ProfileService = Depends(get_profiles),
    cache: ProfileCache = Depends(get_profile_cache),
) -> dict:
    try:
        profile = profiles.update_profile(user.id, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    cache.put(profile)
    return profile


@router.put("/profile/me/social", response_model=Profile)
def update_my_social_settings(
    payload: SocialSettingsUpdate,
    user: AuthUser = Depends(require_user),
    profiles: ProfileService = Depends(get_profiles),
    cache: ProfileCache = Depends(get_profile_cache),
) -> dict:
    try:
        profile = profiles.update_social_settings(user.id, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    cache.put(profile)
    return profile


@router.post("/profile/me/avatar", response_model=Profile)
async def upload_my_avatar(
    file: UploadFile = File(..., description="Image file, at most 5MB."),
    user: AuthUser = Depends(require_user),
    profiles: ProfileService = Depends(get_profiles),
    cache: ProfileCache = Depends(get_profile_cache),
) -> dict:
    data = await file.read()
    try:
        profile = profiles.upload_avatar(user.id, file.filename, file.content_type, data)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    cache.put(profile)
    return profile


@router.get("/profile/me/summary", response_model=ProfileSummary)
def get_my_summary(
    user: AuthUser = Depends(require_user),
    profiles: ProfileService = Depends(get_profiles),
    cache: ProfileCache = Depends(get_profile_cache),
) -> dict:
    _cached_profile(user, cache, profiles)
    return profiles.get_profile_summary(user.id)


@router.get("/profile/username-availability", response_model=UsernameAvailability)
def username_availability(
    username: str = Query(..., min_length=1),
    user: AuthUser = Depends(require_user),
    profiles: ProfileService = Depends(get_profiles),
) -> UsernameAvailability:
    candidate = sanitize_username(username)
    error = validate_username(candidate)
    if error or not candidate:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=error or "Username is required."
        )
    return UsernameAvailability(
        username=candidate,
        available=profiles.is_username_available(candidate, user.id),
    )


@router.get("/users/{username}", response_model=ProfileSummary)
def get_public_profile(
    username: str,
    profiles: ProfileService = Depends(get_profiles),
) -> dict:
    try:
        return profiles.get_public_profile(username)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
