"""
Deadline and cancellation composition for a single suspension point.

Every awaitable a probe suspends on (an echo, the inter-probe pause, a
whole streamed download) goes through :func:`race`, which runs it against
an optional timeout and an optional ``asyncio.Event`` cancel signal.  The
two outcomes are reported as different exceptions so callers can tell
"took too long" from "user aborted".
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

from .errors import Cancelled, MeasurementTimeout

T = TypeVar("T")


def check_cancelled(cancel: Optional[asyncio.Event]) -> None:
    """Raise ``Cancelled`` if *cancel* has already fired."""
    if cancel is not None and cancel.is_set():
        raise Cancelled("operation cancelled")


async def race(
    aw: Awaitable[T],
    *,
    timeout: Optional[float] = None,
    cancel: Optional[asyncio.Event] = None,
) -> T:
    """Await *aw*, aborting it on *timeout* seconds or when *cancel* fires.

    The losing work is cancelled and awaited before the error is raised, so
    nothing keeps running in the background.
    """
    task = asyncio.ensure_future(aw)
    stopper: Optional[asyncio.Future] = None
    waiters = {task}
    if cancel is not None:
        stopper = asyncio.ensure_future(cancel.wait())
        waiters.add(stopper)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        task.cancel()
        if stopper is not None:
            stopper.cancel()
        pending = [task] if stopper is None else [task, stopper]
        # Let the work's own cleanup run before cancellation propagates.
        await asyncio.gather(*pending, return_exceptions=True)
        raise

    if stopper is not None and stopper not in done:
        stopper.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    if stopper is not None and stopper in done:
        raise Cancelled("operation cancelled")
    raise MeasurementTimeout(f"operation timed out after {timeout}s")


async def pause(seconds: float, cancel: Optional[asyncio.Event] = None) -> None:
    """Sleep for *seconds*; a fired *cancel* cuts the sleep short."""
    if seconds <= 0:
        check_cancelled(cancel)
        return
    await race(asyncio.sleep(seconds), cancel=cancel)
