"""Rating aggregation logic."""

from __future__ import annotations

import math
from collections import Counter
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from numbers import Real
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional

from models.records import (
    DishRatingStats,
    ProfileStats,
    PublicRating,
    RatingObservation,
    VoterAverage,
)


def is_valid_rating(value: Any) -> bool:
    """True for finite real numbers; booleans and strings are not ratings."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value)


def round_half_up(value: float, places: int = 2) -> float:
    """Round half away from zero on the decimal representation of ``value``.

    ``round(4.005, 2)`` gives ``4.0`` because of binary representation; going
    through ``repr`` keeps ``4.005`` as written and rounds it to ``4.01``.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


class RatingAggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def voter_averages(self, observations: Iterable[RatingObservation]) -> List[VoterAverage]:
        ratings_by_voter: Dict[Hashable, List[float]] = {}
        for observation in observations:
            if not observation.voter_id or not is_valid_rating(observation.rating):
                continue
            ratings_by_voter.setdefault(observation.voter_id, []).append(float(observation.rating))

        return [
            VoterAverage(voter_id=voter_id, mean=math.fsum(ratings) / len(ratings))
            for voter_id, ratings in ratings_by_voter.items()
        ]

    def compute_public_rating(self, observations: Iterable[RatingObservation]) -> PublicRating:
        """Average of per-voter averages, so repeat ratings never add weight."""
        averages = self.voter_averages(observations)
        if not averages:
            return PublicRating(value=0.0, voter_count=0)

        raw = math.fsum(average.mean for average in averages) / len(averages)
        return PublicRating(value=round_half_up(raw), voter_count=len(averages))

    def public_ratings_by_restaurant(
        self, rows: Iterable[Mapping[str, Any]]
    ) -> Dict[str, PublicRating]:
        """Group ``fastfood_logs`` rows by restaurant and rate each group."""
        grouped: Dict[str, List[RatingObservation]] = {}
        for row in rows:
            restaurant_id = row.get("restaurant_id")
            if not restaurant_id:
                continue
            grouped.setdefault(restaurant_id, []).append(_observation(row))
        return {
            restaurant_id: self.compute_public_rating(observations)
            for restaurant_id, observations in grouped.items()
        }

    def dish_rating_stats(self, rows: Iterable[Mapping[str, Any]]) -> Dict[str, DishRatingStats]:
        counts: Counter[str] = Counter()
        totals: Dict[str, float] = {}
        for row in rows:
            dish_id = row.get("dish_id")
            rating = row.get("rating")
            if not dish_id or not is_valid_rating(rating):
                continue
            counts[dish_id] += 1
            totals[dish_id] = totals.get(dish_id, 0.0) + float(rating)

        return {
            dish_id: DishRatingStats(
                count=count,
                total=totals[dish_id],
                average=totals[dish_id] / count,
            )
            for dish_id, count in counts.items()
        }

    def profile_stats(self, rows: Iterable[Mapping[str, Any]]) -> ProfileStats:
        rows = list(rows)
        restaurant_ids = {row.get("restaurant_id") for row in rows if row.get("restaurant_id")}
        ratings = [float(row["rating"]) for row in rows if is_valid_rating(row.get("rating"))]
        average = round_half_up(math.fsum(ratings) / len(ratings), 1) if ratings else 0.0
        return ProfileStats(
            restaurants_count=len(restaurant_ids),
            total_experiences=len(rows),
            average_rating=average,
        )

    def trending(
        self,
        rows: Iterable[Mapping[str, Any]],
        since: datetime,
        limit: int = 8,
    ) -> List[str]:
        """Restaurant ids with the most logs created at or after ``since``."""
        counts: Counter[str] = Counter()
        for row in rows:
            restaurant_id = row.get("restaurant_id")
            created_at = _parse_datetime(row.get("created_at"))
            if not restaurant_id or created_at is None or created_at < since:
                continue
            counts[restaurant_id] += 1
        return [restaurant_id for restaurant_id, _ in counts.most_common(limit)]

    def latest_dish_dates(self, rows: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
        latest: Dict[str, str] = {}
        for row in rows:
            restaurant_id = row.get("restaurant_id")
            created_at = row.get("created_at")
            if not restaurant_id or not created_at:
                continue
            current = latest.get(restaurant_id)
            if current is None or created_at > current:
                latest[restaurant_id] = created_at
        return latest


def observations_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[RatingObservation]:
    return [_observation(row) for row in rows]


def _observation(row: Mapping[str, Any]) -> RatingObservation:
    return RatingObservation(voter_id=row.get("user_id"), rating=row.get("rating"))


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    candidate = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None
