from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def format_rating(payload: Dict[str, Any]) -> str:
    voters = payload.get("voter_count") or 0
    if not voters:
        return "no ratings yet"
    noun = "voter" if voters == 1 else "voters"
    return f"{float(payload.get('public_rating') or 0):.2f} ({voters} {noun})"


def render_restaurants(restaurants: Iterable[Dict[str, Any]]) -> None:
    items = list(restaurants)
    echo_heading("Restaurants")
    if not items:
        typer.echo("No restaurants found.")
        return
    for item in items:
        typer.echo(f"  - {item.get('name')} [{item.get('slug') or item.get('id')}]: {format_rating(item)}")


def render_restaurant(payload: Dict[str, Any]) -> None:
    echo_heading(payload.get("name") or "Restaurant")
    echo_key_values(
        [
            ("slug", payload.get("slug")),
            ("rating", format_rating(payload)),
            ("latest_dish", payload.get("latest_dish_created_at")),
        ]
    )
    if payload.get("description"):
        typer.echo(payload["description"])

    dishes = payload.get("dishes") or []
    typer.echo()
    echo_heading("Dishes")
    if not dishes:
        typer.echo("No dishes listed.")
        return
    for dish in dishes:
        stats = dish.get("rating_stats") or {}
        flags = [
            label
            for key, label in (("is_signature", "signature"), ("is_limited_edition", "limited"))
            if dish.get(key)
        ]
        suffix = f" ({', '.join(flags)})" if flags else ""
        if stats.get("count"):
            typer.echo(f"  - {dish.get('name')}{suffix}: {stats['average']:.1f} from {stats['count']}")
        else:
            typer.echo(f"  - {dish.get('name')}{suffix}: not rated")


def render_profile(payload: Dict[str, Any]) -> None:
    profile = payload.get("profile") or {}
    stats = payload.get("stats") or {}
    name = profile.get("display_name") or profile.get("username") or "Profile"
    echo_heading(f"{name} (verified)" if profile.get("is_verified") else name)
    echo_key_values(
        [
            ("username", f"@{profile.get('username')}"),
            ("restaurants", stats.get("restaurants_count", 0)),
            ("experiences", stats.get("total_experiences", 0)),
            ("average_rating", stats.get("average_rating", 0.0)),
        ]
    )

    favorites = payload.get("favorite_restaurants") or []
    if favorites:
        typer.echo("favorites:")
        for restaurant in favorites:
            typer.echo(f"  - {restaurant.get('name')}")

    last = payload.get("last_experience")
    if last:
        typer.echo()
        echo_heading("Last experience")
        typer.echo(f"{last.get('restaurant_name')}: {last.get('rating')}/5")
        if last.get("comment"):
            typer.echo(last["comment"])
