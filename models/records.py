"""Domain records shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable


@dataclass(slots=True, frozen=True)
class RatingObservation:
    """One recorded rating event for a restaurant.

    ``rating`` is whatever the backend returned; the aggregator decides whether
    it is usable.
    """

    voter_id: Hashable
    rating: Any = None


@dataclass(slots=True, frozen=True)
class VoterAverage:
    """Mean of all valid ratings a single voter gave one restaurant."""

    voter_id: Hashable
    mean: float


@dataclass(slots=True, frozen=True)
class PublicRating:
    """Restaurant-level aggregate where every voter counts once."""

    value: float = 0.0
    voter_count: int = 0


@dataclass(slots=True, frozen=True)
class DishRatingStats:
    count: int = 0
    total: float = 0.0
    average: float = 0.0


@dataclass(slots=True, frozen=True)
class ProfileStats:
    restaurants_count: int = 0
    total_experiences: int = 0
    average_rating: float = 0.0


@dataclass(slots=True, frozen=True)
class AuthUser:
    """Identity returned by the auth capability."""

    id: str
    email: str
    email_confirmed: bool = True
