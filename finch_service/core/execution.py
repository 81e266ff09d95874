import asyncio
from typing import Awaitable, Optional, TypeVar

from finch_service.core.errors import TurnCancelledError

T = TypeVar("T")


async def run_cancellable(aw: Awaitable[T], cancel_event: Optional[asyncio.Event] = None) -> T:
    """
    Await `aw`, aborting it if `cancel_event` fires first.

    Raises TurnCancelledError when the event wins the race; the inner task is
    cancelled and awaited so nothing keeps running in the background.
    """
    if cancel_event is None:
        return await aw
    if cancel_event.is_set():
        if asyncio.iscoroutine(aw):
            aw.close()
        raise TurnCancelledError("turn cancelled before start")

    task = asyncio.ensure_future(aw)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        waiter.cancel()
        raise

    if task in done:
        waiter.cancel()
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise TurnCancelledError("turn cancelled")
