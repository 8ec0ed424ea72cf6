"""Completion normalization: never call back synchronously.

A completion reported before the initiating call has returned is handed to the
scheduler (the running loop's ``call_soon`` by default) instead of being
invoked on the spot.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from grapnel.errors import HookConfigurationError

Scheduler = Callable[..., Any]


def default_scheduler() -> Scheduler:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        raise HookConfigurationError(
            "Callback-style hooks need a running asyncio event loop or an explicit `scheduler` option"
        ) from None
    return loop.call_soon


def dezalgofy(
    operation: Callable[[Callable[..., None]], Any],
    done: Callable[..., Any],
    schedule: Scheduler | None = None,
) -> None:
    schedule = schedule or default_scheduler()
    is_sync = True

    def safe_done(*args: Any) -> None:
        if is_sync:
            schedule(done, *args)
        else:
            done(*args)

    try:
        operation(safe_done)
    finally:
        is_sync = False
