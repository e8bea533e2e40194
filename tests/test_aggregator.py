"""Unit tests for the one-voter-one-voice aggregation logic."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from models.records import RatingObservation
from services.aggregator import RatingAggregator, is_valid_rating, round_half_up


def _obs(voter_id, rating) -> RatingObservation:
    """Helper to build a rating observation."""

    return RatingObservation(voter_id=voter_id, rating=rating)


def test_empty_input_returns_zero_rating() -> None:
    rating = RatingAggregator().compute_public_rating([])

    assert rating.value == 0
    assert rating.voter_count == 0


def test_mean_of_voter_means() -> None:
    aggregator = RatingAggregator()
    observations = [_obs("v1", 2), _obs("v1", 4), _obs("v2", 5)]

    averages = {average.voter_id: average.mean for average in aggregator.voter_averages(observations)}
    rating = aggregator.compute_public_rating(observations)

    assert averages == {"v1": 3.0, "v2": 5.0}
    assert rating.value == 4.0
    assert rating.voter_count == 2


def test_repeat_ratings_do_not_add_weight() -> None:
    aggregator = RatingAggregator()
    heavy = [_obs("v1", 1)] * 50 + [_obs("v2", 5)]

    rating = aggregator.compute_public_rating(heavy)

    assert rating.value == 3.0
    assert rating.voter_count == 2


def test_null_ratings_are_excluded() -> None:
    rating = RatingAggregator().compute_public_rating(
        [_obs("v1", 3), _obs("v1", None), _obs("v2", 5)]
    )

    assert rating.value == 4.0
    assert rating.voter_count == 2


def test_invalid_observations_are_dropped() -> None:
    rating = RatingAggregator().compute_public_rating(
        [
            _obs("v1", "5"),
            _obs("v2", True),
            _obs("v3", math.nan),
            _obs("v4", math.inf),
            _obs(None, 4),
            _obs("", 4),
            _obs("v5", 2),
        ]
    )

    assert rating.value == 2.0
    assert rating.voter_count == 1


def test_voter_with_only_invalid_ratings_is_not_counted() -> None:
    rating = RatingAggregator().compute_public_rating([_obs("v1", None), _obs("v2", 4)])

    assert rating.voter_count == 1
    assert rating.value == 4.0


def test_voter_count_equals_distinct_voters() -> None:
    observations = [_obs(f"v{index % 7}", index % 5 + 1) for index in range(40)]

    rating = RatingAggregator().compute_public_rating(observations)

    assert rating.voter_count == 7


def test_order_of_observations_does_not_matter() -> None:
    aggregator = RatingAggregator()
    observations = [_obs("a", 1), _obs("b", 4), _obs("a", 2), _obs("c", 5), _obs("b", 3)]

    forward = aggregator.compute_public_rating(observations)
    backward = aggregator.compute_public_rating(list(reversed(observations)))

    assert forward == backward


def test_rounding_is_half_up_at_two_decimals() -> None:
    assert round_half_up(4.005) == 4.01
    assert round_half_up(2.675) == 2.68
    assert round_half_up(3.333333) == 3.33

    rating = RatingAggregator().compute_public_rating([_obs("v1", 4.0), _obs("v2", 4.01)])

    assert rating.value == 4.01


def test_is_valid_rating() -> None:
    assert is_valid_rating(3)
    assert is_valid_rating(4.5)
    assert not is_valid_rating(None)
    assert not is_valid_rating("4")
    assert not is_valid_rating(False)
    assert not is_valid_rating(math.nan)


def test_public_ratings_by_restaurant_groups_rows() -> None:
    rows = [
        {"restaurant_id": "r1", "user_id": "u1", "rating": 2},
        {"restaurant_id": "r1", "user_id": "u1", "rating": 4},
        {"restaurant_id": "r1", "user_id": "u2", "rating": 5},
        {"restaurant_id": "r2", "user_id": "u1", "rating": 1},
        {"restaurant_id": None, "user_id": "u3", "rating": 5},
    ]

    ratings = RatingAggregator().public_ratings_by_restaurant(rows)

    assert set(ratings) == {"r1", "r2"}
    assert ratings["r1"].value == 4.0
    assert ratings["r1"].voter_count == 2
    assert ratings["r2"].value == 1.0


def test_dish_rating_stats_use_plain_averages() -> None:
    stats = RatingAggregator().dish_rating_stats(
        [
            {"dish_id": "d1", "rating": 4},
            {"dish_id": "d1", "rating": 5},
            {"dish_id": "d2", "rating": 3},
            {"dish_id": "d2", "rating": None},
        ]
    )

    assert stats["d1"].count == 2
    assert stats["d1"].average == 4.5
    assert stats["d2"].count == 1
    assert stats["d2"].total == 3.0


def test_profile_stats_round_to_one_decimal() -> None:
    stats = RatingAggregator().profile_stats(
        [
            {"restaurant_id": "r1", "rating": 4},
            {"restaurant_id": "r1", "rating": 5},
            {"restaurant_id": "r2", "rating": 4},
        ]
    )

    assert stats.restaurants_count == 2
    assert stats.total_experiences == 3
    assert stats.average_rating == 4.3


def test_trending_counts_recent_logs_only() -> None:
    now = datetime(2024, 5, 10, 12, tzinfo=timezone.utc)
    since = now - timedelta(days=3)
    rows = [
        {"restaurant_id": "old", "created_at": (now - timedelta(days=5)).isoformat()},
        {"restaurant_id": "old", "created_at": (now - timedelta(days=4)).isoformat()},
        {"restaurant_id": "hot", "created_at": (now - timedelta(hours=1)).isoformat()},
        {"restaurant_id": "hot", "created_at": (now - timedelta(days=1)).isoformat()},
        {"restaurant_id": "warm", "created_at": "2024-05-09T08:00:00Z"},
        {"restaurant_id": "broken", "created_at": "not-a-date"},
    ]

    assert RatingAggregator().trending(rows, since=since) == ["hot", "warm"]
    assert RatingAggregator().trending(rows, since=since, limit=1) == ["hot"]
