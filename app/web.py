from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from app.dependencies import (
    apply_cookies,
    get_admin_access,
    get_catalog,
    get_current_user,
    get_profile_cache,
    get_profiles,
    get_sessions,
)
from datastore.mock_auth import AuthError
from models.records import AuthUser
from services.admin_access import AdminAccess, AdminAccessMisconfigured
from services.catalog import SORT_OPTIONS, CatalogService
from services.events import ProfileCache
from services.profiles import ProfileService
from services.session import CookieSessionProvider

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

router = APIRouter(include_in_schema=False)


def safe_next(target: Optional[str], default: str = "/home") -> str:
    """Only same-site relative paths are followed after login."""
    if not target or not target.startswith("/") or target.startswith("//"):
        return default
    parts = urlsplit(target)
    if parts.scheme or parts.netloc:
        return default
    return target


def _render(
    request: Request,
    name: str,
    context: Optional[dict[str, Any]] = None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    payload = {"user": getattr(request.state, "user", None)}
    payload.update(context or {})
    return templates.TemplateResponse(request, name, payload, status_code=status_code)


def _see_other(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/", name="root")
async def root(user: Optional[AuthUser] = Depends(get_current_user)) -> RedirectResponse:
    return RedirectResponse(url="/home" if user else "/login", status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/home", name="home", response_class=HTMLResponse)
def home(
    request: Request,
    search: Optional[str] = Query(default=None),
    sort: Optional[str] = Query(default=None),
    catalog: CatalogService = Depends(get_catalog),
) -> HTMLResponse:
    if sort not in SORT_OPTIONS:
        sort = None
    return _render(
        request,
        "pages/home.html",
        {
            "restaurants": catalog.list_restaurants(search=search, sort=sort),
            "trending": [] if search else catalog.trending_restaurants(),
            "search": search or "",
            "sort": sort or "",
            "sort_options": SORT_OPTIONS,
        },
    )


@router.get("/restaurants/{slug}", name="restaurant_detail", response_class=HTMLResponse)
def restaurant_detail(
    request: Request,
    slug: str,
    catalog: CatalogService = Depends(get_catalog),
) -> HTMLResponse:
    try:
        restaurant = catalog.get_restaurant(slug)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _render(request, "pages/restaurant.html", {"restaurant": restaurant})


@router.post("/restaurants/{slug}/notes", name="restaurant_add_note")
async def restaurant_add_note(
    request: Request,
    slug: str,
    catalog: CatalogService = Depends(get_catalog),
) -> Response:
    user = getattr(request.state, "user", None)
    if user is None:
        return _see_other(f"/login?next=/restaurants/{slug}")

    form = await request.form()
    dish_ratings = {}
    for key, value in form.multi_items():
        if key.startswith("dish_") and isinstance(value, str) and value.isdigit():
            dish_ratings[key.removeprefix("dish_")] = int(value)
    raw_rating = str(form.get("rating") or "")
    try:
        catalog.add_note(
            user_id=user.id,
            slug=slug,
            rating=int(raw_rating) if raw_rating.isdigit() else 0,
            comment=str(form.get("comment") or ""),
            visited_at=str(form.get("visited_at") or "") or None,
            dish_ratings=dish_ratings,
        )
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        restaurant = catalog.get_restaurant(slug)
        return _render(
            request,
            "pages/restaurant.html",
            {"restaurant": restaurant, "error": str(exc)},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    return _see_other(f"/restaurants/{slug}")


@router.get("/u/{username}", name="public_profile", response_class=HTMLResponse)
def public_profile(
    request: Request,
    username: str,
    profiles: ProfileService = Depends(get_profiles),
) -> HTMLResponse:
    try:
        summary = profiles.get_public_profile(username)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _render(request, "pages/profile.html", {"summary": summary, "own": False})


@router.get("/profile", name="my_profile", response_class=HTMLResponse)
def my_profile(
    request: Request,
    profiles: ProfileService = Depends(get_profiles),
    cache: ProfileCache = Depends(get_profile_cache),
) -> Response:
    user = getattr(request.state, "user", None)
    if user is None:
        return _see_other("/login?next=/profile")
    if cache.get(user.id) is None:
        cache.put(profiles.get_or_create_profile(user.id, user.email))
    summary = profiles.get_profile_summary(user.id)
    return _render(request, "pages/profile.html", {"summary": summary, "own": True})


# Authentication pages


@router.get("/login", name="login", response_class=HTMLResponse)
def login_page(request: Request, next: Optional[str] = Query(default=None)) -> HTMLResponse:
    return _render(request, "pages/login.html", {"next": safe_next(next)})


@router.post("/login", name="login_submit")
def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next: Optional[str] = Form(default=None),
    sessions: CookieSessionProvider = Depends(get_sessions),
) -> Response:
    try:
        refreshed = sessions.sign_in(email, password)
    except AuthError as exc:
        return _render(
            request,
            "pages/login.html",
            {"next": safe_next(next), "email": email, "error": str(exc)},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    response = _see_other(safe_next(next))
    apply_cookies(response, refreshed.cookies)
    return response


@router.get("/signup", name="signup", response_class=HTMLResponse)
def signup_page(request: Request) -> HTMLResponse:
    return _render(request, "pages/signup.html")


@router.post("/signup", name="signup_submit")
def signup_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    sessions: CookieSessionProvider = Depends(get_sessions),
) -> Response:
    try:
        refreshed = sessions.sign_up(email, password)
    except AuthError as exc:
        return _render(
            request,
            "pages/signup.html",
            {"email": email, "error": str(exc)},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    response = _see_other("/confirmation?kind=signup")
    apply_cookies(response, refreshed.cookies)
    return response


@router.post("/logout", name="logout")
def logout(
    request: Request,
    sessions: CookieSessionProvider = Depends(get_sessions),
) -> Response:
    response = _see_other("/login")
    apply_cookies(response, sessions.sign_out(request.cookies).cookies)
    return response


@router.get("/forgot-password", name="forgot_password", response_class=HTMLResponse)
def forgot_password_page(request: Request) -> HTMLResponse:
    return _render(request, "pages/forgot_password.html")


@router.post("/forgot-password", name="forgot_password_submit")
def forgot_password_submit(
    request: Request,
    email: str = Form(...),
    sessions: CookieSessionProvider = Depends(get_sessions),
) -> Response:
    try:
        token = sessions.auth.request_password_reset(email)
    except AuthError as exc:
        return _render(
            request,
            "pages/forgot_password.html",
            {"email": email, "error": str(exc)},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    if token is not None:
        logger.info("Password reset link issued", extra={"location": f"/reset-password?token={token}"})
    return _see_other("/confirmation?kind=reset")


@router.get("/reset-password", name="reset_password", response_class=HTMLResponse)
def reset_password_page(request: Request, token: str = Query(default="")) -> HTMLResponse:
    return _render(request, "pages/reset_password.html", {"token": token})


@router.post("/reset-password", name="reset_password_submit")
def reset_password_submit(
    request: Request,
    token: str = Form(...),
    password: str = Form(...),
    sessions: CookieSessionProvider = Depends(get_sessions),
) -> Response:
    try:
        sessions.auth.reset_password(token, password)
    except AuthError as exc:
        return _render(
            request,
            "pages/reset_password.html",
            {"token": token, "error": str(exc)},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    return _see_other("/login")


@router.get("/confirmation", name="confirmation", response_class=HTMLResponse)
def confirmation(request: Request, kind: str = Query(default="signup")) -> HTMLResponse:
    return _render(request, "pages/confirmation.html", {"kind": kind})


@router.get("/desktop-info", name="desktop_info", response_class=HTMLResponse)
def desktop_info(request: Request) -> HTMLResponse:
    return _render(request, "pages/desktop_info.html")


# Administration pages


@router.get("/admin", name="admin_index", response_class=HTMLResponse)
@router.get("/admin/restaurants", name="admin_restaurants", response_class=HTMLResponse)
def admin_restaurants(
    request: Request,
    catalog: CatalogService = Depends(get_catalog),
    access: AdminAccess = Depends(get_admin_access),
) -> HTMLResponse:
    if not access.is_unlocked(request.cookies):
        return _render(request, "pages/admin_gate.html", {"action": request.url.path})
    return _render(
        request,
        "pages/admin_restaurants.html",
        {
            "restaurants": catalog.list_restaurants(),
            "suggestions": catalog.list_brand_suggestions("new"),
        },
    )


@router.post("/admin/unlock", name="admin_unlock")
def admin_unlock(
    request: Request,
    password: str = Form(...),
    next: Optional[str] = Form(default=None),
    access: AdminAccess = Depends(get_admin_access),
) -> Response:
    target = safe_next(next, default="/admin/restaurants")
    try:
        cookie = access.verify(password)
    except AdminAccessMisconfigured as exc:
        return _render(
            request,
            "pages/admin_gate.html",
            {"action": target, "error": str(exc)},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    except PermissionError as exc:
        return _render(
            request,
            "pages/admin_gate.html",
            {"action": target, "error": str(exc)},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    response = _see_other(target)
    apply_cookies(response, [cookie])
    return response
