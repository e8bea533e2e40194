"""Administrator routes: catalog curation, brand suggestion triage, user verification."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status

from app.dependencies import get_catalog, get_profiles, require_admin
from app.schemas import (
    AdminUser,
    BrandSuggestion,
    BrandSuggestionUpdate,
    Dish,
    DishCreate,
    DishUpdate,
    RestaurantCreate,
    RestaurantSummary,
    RestaurantUpdate,
    VerificationUpdate,
)
from services.catalog import CatalogService
from services.profiles import ProfileService

router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])


def _not_found(exc: KeyError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/restaurants", response_model=list[RestaurantSummary])
def list_restaurants(catalog: CatalogService = Depends(get_catalog)) -> list[dict]:
    return catalog.admin_list_restaurants()


@router.post(
    "/restaurants",
    response_model=RestaurantSummary,
    status_code=status.HTTP_201_CREATED,
)
def create_restaurant(
    payload: RestaurantCreate,
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    try:
        return catalog.create_restaurant(payload.name, payload.description, payload.logo_url)
    except ValueError as exc:
        raise _bad_request(exc) from exc


@router.patch("/restaurants/{restaurant_id}", response_model=RestaurantSummary)
def update_restaurant(
    restaurant_id: str,
    payload: RestaurantUpdate,
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    try:
        return catalog.update_restaurant(restaurant_id, payload.model_dump(exclude_unset=True))
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc


@router.delete("/restaurants/{restaurant_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_restaurant(
    restaurant_id: str,
    catalog: CatalogService = Depends(get_catalog),
) -> Response:
    try:
        catalog.delete_restaurant(restaurant_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/restaurants/{restaurant_id}/latest-additions", response_model=RestaurantSummary)
def toggle_latest_additions(
    restaurant_id: str,
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    try:
        return catalog.toggle_latest_additions(restaurant_id)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.post("/restaurants/{restaurant_id}/logo", response_model=RestaurantSummary)
async def upload_logo(
    restaurant_id: str,
    file: UploadFile = File(..., description="Logo image, at most 5MB."),
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    data = await file.read()
    try:
        return catalog.set_restaurant_logo(restaurant_id, file.filename, file.content_type, data)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc


@router.post(
    "/restaurants/{restaurant_id}/dishes",
    response_model=Dish,
    status_code=status.HTTP_201_CREATED,
)
def create_dish(
    restaurant_id: str,
    payload: DishCreate,
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    try:
        return catalog.create_dish(restaurant_id, payload.model_dump())
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc


@router.patch("/dishes/{dish_id}", response_model=Dish)
def update_dish(
    dish_id: str,
    payload: DishUpdate,
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    try:
        return catalog.update_dish(dish_id, payload.model_dump(exclude_unset=True))
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc


@router.delete("/dishes/{dish_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_dish(dish_id: str, catalog: CatalogService = Depends(get_catalog)) -> Response:
    try:
        catalog.delete_dish(dish_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/brand-suggestions", response_model=list[BrandSuggestion])
def list_brand_suggestions(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    catalog: CatalogService = Depends(get_catalog),
) -> list[dict]:
    try:
        return catalog.list_brand_suggestions(status_filter)
    except ValueError as exc:
        raise _bad_request(exc) from exc


@router.patch("/brand-suggestions/{suggestion_id}", response_model=BrandSuggestion)
def update_brand_suggestion(
    suggestion_id: str,
    payload: BrandSuggestionUpdate,
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    try:
        return catalog.update_brand_suggestion(suggestion_id, payload.status, payload.admin_note)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc


@router.get("/users", response_model=list[AdminUser])
def list_users(profiles: ProfileService = Depends(get_profiles)) -> list[dict]:
    return profiles.list_users()


@router.put("/users/{user_id}/verified", response_model=AdminUser)
def set_verified(
    user_id: str,
    payload: VerificationUpdate,
    profiles: ProfileService = Depends(get_profiles),
) -> dict:
    try:
        return profiles.set_verified(user_id, payload.is_verified)
    except KeyError as exc:
        raise _not_found(exc) from exc
