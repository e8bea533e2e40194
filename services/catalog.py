"""Restaurant catalog: listings with public ratings, notes, dishes and brand suggestions."""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional

from datastore.mock_backend import MockBackend, build_default_backend, order_rows
from models.records import DishRatingStats, PublicRating
from services.aggregator import RatingAggregator, observations_from_rows
from storage.image_bucket import ImageBucket, build_default_bucket

logger = logging.getLogger(__name__)

SORT_OPTIONS = ("best-rating", "worst-rating", "alphabetical", "most-ratings", "least-ratings")
SUGGESTION_STATUSES = ("new", "reviewing", "accepted", "rejected")
TRENDING_WINDOW = timedelta(days=3)
TRENDING_LIMIT = 8
SUGGESTION_DUPLICATE_WINDOW = timedelta(days=7)

_RESTAURANT_FIELDS = ("name", "description", "logo_url", "show_latest_additions")
_DISH_FIELDS = (
    "name",
    "description",
    "image_url",
    "is_signature",
    "is_limited_edition",
    "position",
)


def slugify(name: str) -> str:
    decomposed = unicodedata.normalize("NFD", name.lower())
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"[^a-z0-9]+", "-", ascii_only).strip("-")


def _with_rating(restaurant: Dict[str, Any], rating: PublicRating, latest_dish: Optional[str]) -> Dict[str, Any]:
    enriched = dict(restaurant)
    enriched["public_rating"] = rating.value
    enriched["voter_count"] = rating.voter_count
    enriched["latest_dish_created_at"] = latest_dish
    return enriched


def sort_restaurants(restaurants: Iterable[Dict[str, Any]], sort: Optional[str]) -> List[Dict[str, Any]]:
    items = list(restaurants)
    if sort in ("best-rating", "worst-rating"):
        rated = [item for item in items if item["voter_count"]]
        unrated = [item for item in items if not item["voter_count"]]
        rated.sort(key=lambda item: item["public_rating"], reverse=sort == "best-rating")
        return rated + unrated
    if sort == "alphabetical":
        return sorted(items, key=lambda item: item["name"].casefold())
    if sort == "most-ratings":
        return sorted(items, key=lambda item: item["voter_count"], reverse=True)
    if sort == "least-ratings":
        return sorted(items, key=lambda item: item["voter_count"])
    return items


class CatalogService:
    """Coordinates backend queries and rating aggregation for restaurant views."""

    def __init__(
        self,
        backend: MockBackend,
        bucket: ImageBucket,
        aggregator: Optional[RatingAggregator] = None,
    ) -> None:
        self.backend = backend
        self.bucket = bucket
        self.aggregator = aggregator or RatingAggregator()

    # Browsing

    def list_restaurants(
        self,
        search: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        if sort is not None and sort not in SORT_OPTIONS:
            raise ValueError(f"Unknown sort {sort!r}; expected one of {', '.join(SORT_OPTIONS)}.")

        restaurants = order_rows(self.backend.select("restaurants"), "created_at", descending=True)
        ratings = self.aggregator.public_ratings_by_restaurant(self.backend.select("fastfood_logs"))
        latest_dishes = self.aggregator.latest_dish_dates(self.backend.select("dishes"))

        enriched = [
            _with_rating(
                restaurant,
                ratings.get(restaurant["id"], PublicRating()),
                latest_dishes.get(restaurant["id"]),
            )
            for restaurant in restaurants
        ]

        query = (search or "").strip().lower()
        if query:
            enriched = [item for item in enriched if query in item["name"].lower()]
        return sort_restaurants(enriched, sort)

    def trending_restaurants(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        since = (now or datetime.now(timezone.utc)) - TRENDING_WINDOW
        ranked_ids = self.aggregator.trending(
            self.backend.select("fastfood_logs"), since=since, limit=TRENDING_LIMIT
        )
        by_id = {item["id"]: item for item in self.list_restaurants()}
        return [by_id[restaurant_id] for restaurant_id in ranked_ids if restaurant_id in by_id]

    def get_restaurant(self, slug: str) -> Dict[str, Any]:
        restaurant = self._restaurant_by_slug(slug)
        logs = self.backend.select("fastfood_logs", {"restaurant_id": restaurant["id"]})
        rating = self.aggregator.compute_public_rating(observations_from_rows(logs))

        dishes = self._ordered_dishes(restaurant["id"])
        dish_ids = {dish["id"] for dish in dishes}
        dish_stats = self.aggregator.dish_rating_stats(
            self.backend.select(
                "fastfood_log_dishes", predicate=lambda row: row.get("dish_id") in dish_ids
            )
        )
        latest_dish = max((dish["created_at"] for dish in dishes), default=None)

        detail = _with_rating(restaurant, rating, latest_dish)
        detail["dishes"] = [
            dict(dish, rating_stats=asdict(dish_stats.get(dish["id"], DishRatingStats())))
            for dish in dishes
        ]
        logger.debug(
            "Loaded restaurant detail",
            extra={"restaurant_id": restaurant["id"], "voter_count": rating.voter_count},
        )
        return detail

    # Notes

    def add_note(
        self,
        user_id: str,
        slug: str,
        rating: int,
        comment: Optional[str] = None,
        visited_at: Optional[str] = None,
        dish_ratings: Optional[Mapping[str, int]] = None,
    ) -> Dict[str, Any]:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValueError("Overall rating must be between 1 and 5.")
        # Zero marks a dish left unrated.
        for dish_rating in (dish_ratings or {}).values():
            if isinstance(dish_rating, bool) or not isinstance(dish_rating, int) or not 0 <= dish_rating <= 5:
                raise ValueError("Dish ratings must be between 1 and 5.")
        restaurant = self._restaurant_by_slug(slug)

        log = self.backend.insert(
            "fastfood_logs",
            {
                "user_id": user_id,
                "restaurant_id": restaurant["id"],
                "restaurant_name": restaurant["name"],
                "rating": rating,
                "comment": (comment or "").strip() or None,
                "visited_at": visited_at or None,
            },
        )

        dishes = {dish["id"]: dish for dish in self.backend.select("dishes", {"restaurant_id": restaurant["id"]})}
        rated = []
        for dish_id, dish_rating in (dish_ratings or {}).items():
            dish = dishes.get(dish_id)
            if dish is None or not dish_rating:
                continue
            rated.append(
                self.backend.insert(
                    "fastfood_log_dishes",
                    {
                        "log_id": log["id"],
                        "dish_id": dish_id,
                        "dish_name": dish["name"],
                        "rating": dish_rating,
                    },
                )
            )

        logger.info(
            "Note recorded",
            extra={"user_id": user_id, "restaurant_id": restaurant["id"]},
        )
        return dict(log, dish_ratings=rated)

    # Brand suggestions

    def suggest_brand(
        self,
        user_id: str,
        name: str,
        search_query: Optional[str] = None,
        context_page: Optional[str] = None,
        locale: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        trimmed = name.strip()
        if len(trimmed) < 2:
            raise ValueError("Name must contain at least 2 characters.")
        if len(trimmed) > 80:
            raise ValueError("Name cannot exceed 80 characters.")

        cutoff = ((now or datetime.now(timezone.utc)) - SUGGESTION_DUPLICATE_WINDOW).isoformat()
        duplicates = self.backend.select(
            "brand_suggestions",
            predicate=lambda row: row["suggested_name"].lower() == trimmed.lower()
            and row["created_at"] >= cutoff,
        )
        if duplicates:
            raise ValueError("This suggestion was already sent recently.")

        return self.backend.insert(
            "brand_suggestions",
            {
                "user_id": user_id,
                "suggested_name": trimmed,
                "search_query": search_query or None,
                "context_page": context_page or None,
                "locale": locale or None,
                "status": "new",
                "admin_note": None,
            },
        )

    def list_brand_suggestions(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status is not None and status not in SUGGESTION_STATUSES:
            raise ValueError(f"Unknown status {status!r}.")
        where = {"status": status} if status else None
        return order_rows(self.backend.select("brand_suggestions", where), "created_at", descending=True)

    def update_brand_suggestion(
        self,
        suggestion_id: str,
        status: Optional[str] = None,
        admin_note: Optional[str] = None,
    ) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}
        if status is not None:
            if status not in SUGGESTION_STATUSES:
                raise ValueError(f"Unknown status {status!r}.")
            updates["status"] = status
        if admin_note is not None:
            updates["admin_note"] = admin_note.strip() or None
        return self.backend.update("brand_suggestions", suggestion_id, updates)

    # Administration

    def admin_list_restaurants(self) -> List[Dict[str, Any]]:
        return order_rows(self.backend.select("restaurants"), "created_at", descending=True)

    def create_restaurant(
        self,
        name: str,
        description: Optional[str] = None,
        logo_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        name = name.strip()
        slug = self._claim_slug(name)
        restaurant = self.backend.insert(
            "restaurants",
            {
                "name": name,
                "slug": slug,
                "description": (description or "").strip() or None,
                "logo_url": logo_url,
                "show_latest_additions": False,
            },
        )
        logger.info("Restaurant created", extra={"restaurant_id": restaurant["id"]})
        return restaurant

    def update_restaurant(self, restaurant_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        self._restaurant_by_id(restaurant_id)
        updates = {key: changes[key] for key in _RESTAURANT_FIELDS if key in changes}
        if "name" in updates:
            updates["name"] = (updates["name"] or "").strip()
            updates["slug"] = self._claim_slug(updates["name"], exclude_id=restaurant_id)
        return self.backend.update("restaurants", restaurant_id, updates)

    def delete_restaurant(self, restaurant_id: str) -> None:
        self._restaurant_by_id(restaurant_id)
        removed_dishes = self.backend.delete("dishes", {"restaurant_id": restaurant_id})
        self.backend.delete("restaurants", {"id": restaurant_id})
        logger.info(
            "Restaurant deleted",
            extra={"restaurant_id": restaurant_id, "reason": f"{removed_dishes} dishes removed"},
        )

    def toggle_latest_additions(self, restaurant_id: str) -> Dict[str, Any]:
        restaurant = self._restaurant_by_id(restaurant_id)
        return self.backend.update(
            "restaurants",
            restaurant_id,
            {"show_latest_additions": not restaurant.get("show_latest_additions", False)},
        )

    def set_restaurant_logo(
        self,
        restaurant_id: str,
        filename: Optional[str],
        content_type: Optional[str],
        data: bytes,
    ) -> Dict[str, Any]:
        self._restaurant_by_id(restaurant_id)
        url = self.bucket.upload_image(f"logos/{restaurant_id}", filename, content_type, data)
        return self.backend.update("restaurants", restaurant_id, {"logo_url": url})

    def create_dish(self, restaurant_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        self._restaurant_by_id(restaurant_id)
        name = (fields.get("name") or "").strip()
        if not name:
            raise ValueError("Dish name is required.")
        row = {key: fields.get(key) for key in _DISH_FIELDS}
        row.update(
            name=name,
            restaurant_id=restaurant_id,
            is_signature=bool(fields.get("is_signature")),
            is_limited_edition=bool(fields.get("is_limited_edition")),
        )
        return self.backend.insert("dishes", row)

    def update_dish(self, dish_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        updates = {key: changes[key] for key in _DISH_FIELDS if key in changes}
        if "name" in updates and not (updates["name"] or "").strip():
            raise ValueError("Dish name is required.")
        return self.backend.update("dishes", dish_id, updates)

    def delete_dish(self, dish_id: str) -> None:
        if not self.backend.delete("dishes", {"id": dish_id}):
            raise KeyError(f"Dish {dish_id!r} not found.")

    # Helpers

    def _restaurant_by_slug(self, slug: str) -> Dict[str, Any]:
        restaurant = self.backend.select_one("restaurants", {"slug": slug})
        if restaurant is None:
            # Restaurants without a slug are linked by id.
            restaurant = self.backend.select_one("restaurants", {"id": slug})
        if restaurant is None:
            raise KeyError(f"Restaurant {slug!r} not found.")
        return restaurant

    def _restaurant_by_id(self, restaurant_id: str) -> Dict[str, Any]:
        restaurant = self.backend.select_one("restaurants", {"id": restaurant_id})
        if restaurant is None:
            raise KeyError(f"Restaurant {restaurant_id!r} not found.")
        return restaurant

    def _claim_slug(self, name: str, exclude_id: Optional[str] = None) -> str:
        if not name:
            raise ValueError("Restaurant name is required.")
        slug = slugify(name)
        if not slug:
            raise ValueError("Restaurant name must contain letters or digits.")
        clash = self.backend.select(
            "restaurants", {"slug": slug}, predicate=lambda row: row["id"] != exclude_id
        )
        if clash:
            raise ValueError(f"A restaurant with slug {slug!r} already exists.")
        return slug

    def _ordered_dishes(self, restaurant_id: str) -> List[Dict[str, Any]]:
        dishes = order_rows(self.backend.select("dishes", {"restaurant_id": restaurant_id}), "created_at")
        return order_rows(dishes, "position")


@lru_cache
def build_default_catalog() -> CatalogService:
    return CatalogService(backend=build_default_backend(), bucket=build_default_bucket())
