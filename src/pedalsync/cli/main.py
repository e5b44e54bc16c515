"""Pedal Sync CLI — watch live order updates and inspect REST baselines.

Usage:
    pedal-sync watch                     # Stream normalized push events
    pedal-sync watch --count 5           # Stop after five events
    pedal-sync orders --page 2           # One page of the admin order list
    pedal-sync dashboard                 # Dashboard snapshot
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import logging
import os
import sys
from typing import Optional

import click
import httpx
import structlog

from pedalsync import __version__
from pedalsync.api.client import PedalAPI, PedalAPIError
from pedalsync.config import settings
from pedalsync.realtime.connection import (
    ConnectionManager,
    ConnectionState,
    build_endpoint,
    websocket_connector,
)
from pedalsync.realtime.normalizer import EventFrame
from pedalsync.state.actions import LoggedIn
from pedalsync.state.store import Store

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


def _token(token: Optional[str]) -> str:
    """Resolve the bearer token from --token or PEDAL_TOKEN."""
    tok = token or os.environ.get("PEDAL_TOKEN")
    if not tok:
        click.secho(
            "Error: --token required (or set PEDAL_TOKEN env var)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return tok


def _api(token: str) -> PedalAPI:
    return PedalAPI(credentials=lambda: token)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Falls back to a worker thread when an event loop is already running
    (e.g. CliRunner invoked from an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k) if row.get(k) is not None else "—")[:w].ljust(w)
                         for _, k, w in columns)
        click.echo(line)


def _status_color(status: str) -> str:
    """Map order statuses to click colors."""
    colors = {
        "pending": "yellow",
        "accepted": "cyan",
        "preparing": "yellow",
        "ready": "blue",
        "picked_up": "blue",
        "on_the_way": "magenta",
        "delivered": "green",
        "cancelled": "red",
        "rejected": "red",
    }
    return colors.get(status, "white")


def _fail(error: Exception):
    click.secho(f"Error: {error}", fg="red", err=True)
    sys.exit(1)


ORDER_COLUMNS = [
    ("ORDER", "order_number", 14),
    ("STATUS", "status", 11),
    ("CUSTOMER", "customer_name", 20),
    ("RESTAURANT", "restaurant_name", 20),
    ("TOTAL", "total_amount", 9),
]


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="pedal-sync")
@click.option("--verbose", "-v", is_flag=True, help="Show connection diagnostics")
def main(verbose: bool):
    """Pedal Sync — live order updates from the Pedal delivery backend."""
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


# ---------------------------------------------------------------------------
# pedal-sync watch
# ---------------------------------------------------------------------------


@main.command()
@click.option("--token", "-t", help="Bearer token (or set PEDAL_TOKEN)")
@click.option("--path", default=None, help=f"Push channel path (default {settings.ws_path})")
@click.option("--count", "-n", type=int, default=0, help="Exit after N events (0 = run forever)")
def watch(token: Optional[str], path: Optional[str], count: int):
    """Stream live events from the push channel until interrupted."""
    try:
        _run(_watch_impl(_token(token), path or settings.ws_path, count))
    except KeyboardInterrupt:
        click.echo()


async def _watch_impl(token: str, path: str, count: int):
    store = Store()
    store.dispatch(LoggedIn(user_id="cli", role="admin", token=token))
    done = asyncio.Event()
    seen = 0

    def show(event: EventFrame):
        nonlocal seen
        seen += 1
        status = str(event.data.get("status", ""))
        label = event.data.get("order_number") or event.data.get("id") or ""
        status_str = click.style(status, fg=_status_color(status)) if status else ""
        click.echo(f"{event.type:<24} {label:<16} {status_str}")
        if count and seen >= count:
            done.set()

    def show_state(state: ConnectionState):
        color = "green" if state is ConnectionState.OPEN else "white"
        click.secho(f"● {state.value}", fg=color, dim=state is not ConnectionState.OPEN)

    manager = ConnectionManager(
        build_endpoint(settings.ws_url, path),
        lambda: store.state.auth.token,
        connector=websocket_connector,
        on_state_change=show_state,
    )
    manager.subscribe(store.handle_event)
    manager.subscribe(show)
    manager.open()
    try:
        await done.wait()
    finally:
        await manager.aclose()


# ---------------------------------------------------------------------------
# pedal-sync orders
# ---------------------------------------------------------------------------


@main.command()
@click.option("--token", "-t", help="Bearer token (or set PEDAL_TOKEN)")
@click.option("--page", "-p", type=int, default=1, show_default=True)
@click.option("--limit", "-l", type=int, default=None, help="Page size")
@click.option("--json", "as_json", is_flag=True, help="Raw JSON output")
def orders(token: Optional[str], page: int, limit: Optional[int], as_json: bool):
    """List one page of orders."""
    _run(_orders_impl(_token(token), page, limit, as_json))


async def _orders_impl(token: str, page: int, limit: Optional[int], as_json: bool):
    async with _api(token) as api:
        try:
            result = await api.list_orders(page=page, limit=limit)
        except (httpx.HTTPError, PedalAPIError) as e:
            _fail(e)

    if as_json:
        click.echo(_pretty_json(result.model_dump(mode="json")))
        return

    rows = [o.model_dump(mode="json") for o in result.orders]
    if not rows:
        click.echo("No orders.")
        return
    _print_table(rows, ORDER_COLUMNS)
    size = limit or settings.orders_page_size
    pages = -(-result.pagination.total // size) if size else 0
    click.echo(f"\nPage {page} of {pages} ({result.pagination.total} orders)")


# ---------------------------------------------------------------------------
# pedal-sync dashboard
# ---------------------------------------------------------------------------


@main.command()
@click.option("--token", "-t", help="Bearer token (or set PEDAL_TOKEN)")
@click.option("--json", "as_json", is_flag=True, help="Raw JSON output")
def dashboard(token: Optional[str], as_json: bool):
    """Show the dashboard snapshot — stats, status counts, recent orders."""
    _run(_dashboard_impl(_token(token), as_json))


async def _dashboard_impl(token: str, as_json: bool):
    async with _api(token) as api:
        try:
            snap = await api.dashboard_snapshot()
        except (httpx.HTTPError, PedalAPIError) as e:
            _fail(e)

    if as_json:
        click.echo(_pretty_json(snap.model_dump(mode="json")))
        return

    s = snap.stats
    click.secho("--- Today ---", bold=True)
    click.echo(f"  Orders:        {s.total_orders}")
    click.echo(f"  Revenue:       {s.total_revenue:.2f}")
    click.echo(f"  Avg delivery:  {s.avg_delivery_time:.0f} min")
    click.echo(f"  Drivers:       {s.active_drivers}")

    if snap.status_counts:
        click.echo()
        click.secho("--- By status ---", bold=True)
        for status, n in sorted(snap.status_counts.items()):
            click.echo(f"  {click.style(status.ljust(12), fg=_status_color(status))} {n}")

    if snap.recent_orders:
        click.echo()
        _print_table([o.model_dump(mode="json") for o in snap.recent_orders], ORDER_COLUMNS)


if __name__ == "__main__":
    main()
