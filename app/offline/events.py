"""In-process event bus.

Connectivity changes and log writes are published as events; the sync
engine and revocation refresh subscribe to them. Publishing never blocks
the publisher: coroutine handlers run as background tasks on the running
loop (fire-and-forget), plain callables run inline. A failing handler is
logged and does not affect the publisher or other handlers.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from app.offline.sync import SyncReport

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogAppended:
    """A verification record was durably appended."""
    record_id: int


@dataclass(frozen=True)
class ConnectivityChanged:
    """Platform connectivity signal flipped."""
    online: bool
    previous: bool

    @property
    def came_online(self) -> bool:
        return self.online and not self.previous


@dataclass(frozen=True)
class SyncCompleted:
    """A sync pass finished (successfully or not)."""
    report: "SyncReport"


Handler = Callable[[Any], Any]


class EventBus:
    """Type-keyed publish/subscribe with background dispatch."""

    def __init__(self):
        self._subscribers: dict[type, list[Handler]] = {}
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, event_type: type, handler: Handler) -> None:
        """Register a handler for events of exactly this type."""
        self._subscribers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: Any) -> None:
        """Dispatch an event to its subscribers without waiting on them."""
        # Copy so handlers may (un)subscribe while we iterate
        for handler in list(self._subscribers.get(type(event), [])):
            if inspect.iscoroutinefunction(handler):
                self._schedule(handler, event)
                continue
            try:
                handler(event)
            except Exception:
                log.exception(f"Event handler failed for {type(event).__name__}")

    def _schedule(self, handler: Handler, event: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.warning(
                f"No running event loop, dropping async handler for {type(event).__name__}"
            )
            return
        task = loop.create_task(handler(event))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error(
                f"Background event handler failed: {type(exc).__name__}: {exc}",
                exc_info=exc,
            )

    async def drain(self) -> None:
        """Wait until every in-flight handler task (and any it spawns) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)
