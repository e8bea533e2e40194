from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_profile, render_restaurant, render_restaurants

SORT_CHOICES = ("best-rating", "worst-rating", "alphabetical", "most-ratings", "least-ratings")


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Browse BiteBox restaurants, dishes and public profiles.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="BiteBox base URL (defaults to BITEBOX_API_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("restaurants")
def restaurants_command(
    ctx: typer.Context,
    sort: Optional[str] = typer.Option(
        None,
        "--sort",
        "-s",
        help=f"One of: {', '.join(SORT_CHOICES)}.",
    ),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Filter by name."),
) -> None:
    """List restaurants with their public rating."""
    if sort is not None and sort not in SORT_CHOICES:
        raise typer.BadParameter(f"Sort must be one of: {', '.join(SORT_CHOICES)}.", param_hint="--sort")
    state = _get_state(ctx)
    render_restaurants(state.client.list_restaurants(sort=sort, search=search))


@app.command("restaurant")
def restaurant_command(
    ctx: typer.Context,
    slug: str = typer.Argument(..., help="Restaurant slug as shown by the restaurants command."),
) -> None:
    """Show one restaurant with its dishes."""
    state = _get_state(ctx)
    render_restaurant(state.client.get_restaurant(slug))


@app.command("profile")
def profile_command(
    ctx: typer.Context,
    username: str = typer.Argument(..., help="Public username, with or without a leading @."),
) -> None:
    """Show a public profile summary."""
    state = _get_state(ctx)
    render_profile(state.client.get_public_profile(username))
