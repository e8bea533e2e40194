"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import date
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

AvatarVariant = Literal["red", "violet", "blue", "green", "pink"]
SuggestionStatus = Literal["new", "reviewing", "accepted", "rejected"]


class Credentials(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    user_id: str
    email: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str


class DetailResponse(BaseModel):
    detail: str


class RestaurantSummary(BaseModel):
    """A restaurant as listed on the home screen."""

    id: str
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None
    show_latest_additions: bool = False
    public_rating: float = Field(0.0, description="Mean of per-voter means, two decimals.")
    voter_count: int = Field(0, ge=0, description="Distinct users who rated the restaurant.")
    latest_dish_created_at: Optional[str] = None
    created_at: Optional[str] = None


class DishRatingStats(BaseModel):
    count: int = 0
    total: float = 0.0
    average: float = 0.0


class Dish(BaseModel):
    id: str
    restaurant_id: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_signature: bool = False
    is_limited_edition: bool = False
    position: Optional[int] = None
    created_at: Optional[str] = None


class DishWithStats(Dish):
    rating_stats: DishRatingStats = Field(default_factory=DishRatingStats)


class RestaurantDetail(RestaurantSummary):
    dishes: List[DishWithStats] = Field(default_factory=list)


class NoteCreate(BaseModel):
    """Payload for rating a restaurant and, optionally, some of its dishes."""

    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=2000)
    visited_at: Optional[date] = None
    dish_ratings: Dict[str, Annotated[int, Field(ge=0, le=5)]] = Field(default_factory=dict)


class DishRatingEntry(BaseModel):
    dish_id: str
    dish_name: str
    rating: int


class Note(BaseModel):
    id: str
    restaurant_id: str
    restaurant_name: str
    rating: int
    comment: Optional[str] = None
    visited_at: Optional[str] = None
    created_at: str
    dish_ratings: List[DishRatingEntry] = Field(default_factory=list)


class Profile(BaseModel):
    id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    avatar_variant: Optional[str] = None
    is_public: bool = False
    is_verified: bool = False
    favorite_restaurant_ids: List[Optional[str]] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=80)
    bio: Optional[str] = Field(default=None, max_length=500)
    avatar_variant: Optional[AvatarVariant] = None
    is_public: Optional[bool] = None


class SocialSettingsUpdate(BaseModel):
    username: Optional[str] = None
    is_public: Optional[bool] = None
    favorite_restaurant_ids: Optional[List[Optional[str]]] = None


class ProfileStats(BaseModel):
    restaurants_count: int = 0
    total_experiences: int = 0
    average_rating: float = 0.0


class FavoriteRestaurant(BaseModel):
    id: str
    name: str
    slug: Optional[str] = None
    logo_url: Optional[str] = None


class LastExperience(BaseModel):
    id: str
    restaurant_name: str
    restaurant_logo_url: Optional[str] = None
    rating: float
    comment: Optional[str] = None
    visited_at: Optional[str] = None
    created_at: str


class ProfileSummary(BaseModel):
    profile: Profile
    stats: ProfileStats
    favorite_restaurants: List[FavoriteRestaurant] = Field(default_factory=list)
    last_experience: Optional[LastExperience] = None


class UsernameAvailability(BaseModel):
    username: str
    available: bool


class BrandSuggestionCreate(BaseModel):
    name: str
    search_query: Optional[str] = None
    context_page: Optional[str] = None
    locale: Optional[str] = None


class BrandSuggestion(BaseModel):
    id: str
    user_id: str
    suggested_name: str
    search_query: Optional[str] = None
    context_page: Optional[str] = None
    locale: Optional[str] = None
    status: SuggestionStatus
    admin_note: Optional[str] = None
    created_at: str


class BrandSuggestionUpdate(BaseModel):
    status: Optional[SuggestionStatus] = None
    admin_note: Optional[str] = None


class AdminAuthRequest(BaseModel):
    password: str


class RestaurantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    logo_url: Optional[str] = None


class RestaurantUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    logo_url: Optional[str] = None
    show_latest_additions: Optional[bool] = None


class DishCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_signature: bool = False
    is_limited_edition: bool = False
    position: Optional[int] = None


class DishUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_signature: Optional[bool] = None
    is_limited_edition: Optional[bool] = None
    position: Optional[int] = None


class AdminUser(BaseModel):
    id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    is_verified: bool = False
    created_at: Optional[str] = None


class VerificationUpdate(BaseModel):
    is_verified: bool
