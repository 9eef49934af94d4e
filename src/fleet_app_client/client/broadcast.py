"""
Broadcast streams: one upstream async iterator fanned out to many subscribers.

The upstream is read by a single pump task that starts with the first
subscriber. Each subscriber gets its own queue and sees every item
emitted after it attached. When the last subscriber detaches while the
upstream is still live, the pump is cancelled and the `on_cancel` hook
runs, exactly once.
"""
import asyncio
import inspect
import logging
from typing import AsyncIterator, Awaitable, Callable, Generic, List, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DONE = object()


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


class Subscription(Generic[T]):
    """One consumer handle on a `BroadcastStream`."""

    def __init__(self, broadcast: "BroadcastStream[T]"):
        self._broadcast = broadcast
        self._queue: asyncio.Queue = asyncio.Queue()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def _deliver(self, item):
        self._queue.put_nowait(item)

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        if not self._active:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _DONE:
            self._active = False
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._active = False
            raise item.error
        return item

    async def cancel(self):
        """Detaches from the stream. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        await self._broadcast._detach(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.cancel()


class BroadcastStream(Generic[T]):
    _source: AsyncIterator[T]
    _on_cancel: Optional[Callable[[], Union[Awaitable[None], None]]]
    _subscribers: List[Subscription]
    _pump_task: Optional[asyncio.Task]

    """
    A shared, reference-counted subscription to one upstream stream.
    """
    def __init__(self, source: AsyncIterator[T],
                 on_cancel: Optional[Callable[[], Union[Awaitable[None], None]]] = None):
        self._source = source
        self._on_cancel = on_cancel
        self._subscribers = []
        self._pump_task = None
        self._finished = False
        self._cancelled = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def is_closed(self) -> bool:
        return self._finished or self._cancelled

    def subscribe(self) -> Subscription[T]:
        """
        Attaches a new subscriber. The first one starts reading the upstream;
        on a closed stream the returned subscription ends immediately.
        """
        subscription: Subscription[T] = Subscription(self)
        if self.is_closed:
            subscription._deliver(_DONE)
            return subscription

        self._subscribers.append(subscription)
        if self._pump_task is None:
            self._pump_task = asyncio.create_task(self._pump())
        return subscription

    async def __aiter__(self) -> AsyncIterator[T]:
        # Leaving the loop, by `break` or an exception, detaches.
        async with self.subscribe() as subscription:
            async for item in subscription:
                yield item

    async def _pump(self):
        try:
            async for item in self._source:
                for subscription in list(self._subscribers):
                    subscription._deliver(item)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Upstream failed, forwarding to {len(self._subscribers)} subscriber(s): {e!r}")
            self._close_with(_Failure(e))
        else:
            logger.debug("Upstream finished.")
            self._close_with(_DONE)

    def _close_with(self, item):
        self._finished = True
        for subscription in self._subscribers:
            subscription._deliver(item)
        self._subscribers.clear()

    async def _detach(self, subscription: Subscription[T]):
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
        if self._subscribers or self.is_closed:
            return

        self._cancelled = True
        logger.debug("Last subscriber detached, cancelling upstream.")
        if self._pump_task is not None and not self._pump_task.done():
            self._pump_task.cancel()
            await asyncio.gather(self._pump_task, return_exceptions=True)

        if self._on_cancel is not None:
            result = self._on_cancel()
            if inspect.isawaitable(result):
                await result
