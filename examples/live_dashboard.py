#!/usr/bin/env python3
"""
Pedal Sync — live dashboard in the terminal.

Mounts a DashboardView, prints the recent-orders feed every time a push
event changes it, and unmounts cleanly on Ctrl-C.

Run with: PEDAL_TOKEN=<admin jwt> python examples/live_dashboard.py

Requires: pip install -e .
"""

import asyncio
import os
import sys

from pedalsync.api.client import PedalAPI
from pedalsync.consumers.dashboard import DashboardView
from pedalsync.state.actions import LoggedIn
from pedalsync.state.models import AppState
from pedalsync.state.store import Store


def render(state: AppState) -> None:
    dash = state.dashboard
    print("\n── Recent orders " + "─" * 40)
    for order in dash.recent_orders:
        print(f"  {order.order_number or order.id:<16} {order.status.value:<12} {order.total_amount:>8.2f}")
    counts = ", ".join(f"{k}={v}" for k, v in sorted(dash.status_counts.items()))
    print(f"  totals: {dash.stats.total_orders} orders | {counts}")


async def main() -> None:
    token = os.environ.get("PEDAL_TOKEN")
    if not token:
        print("Set PEDAL_TOKEN to an admin access token first.")
        sys.exit(1)

    store = Store()
    store.dispatch(LoggedIn(user_id="admin", role="admin", token=token))
    store.subscribe(render)

    async with PedalAPI(credentials=lambda: store.state.auth.token) as api:
        view = DashboardView(store, api)
        await view.mount()
        if not view.recent_orders:
            print("Baseline unavailable — waiting for live updates...")
        try:
            await asyncio.Event().wait()
        finally:
            await view.unmount()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nBye.")
