import asyncio
import logging
from typing import Any, Callable, Generic, Optional, TypeVar

from rankit.domain.ports import Cancellable, Scheduler

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_QUIESCENCE_SECONDS = 0.3


class Debouncer(Generic[T]):
    """Emits a value only once input has been quiet for the quiescence window.

    Every push cancels the pending timer and arms a new one, so only the most
    recent value is ever emitted and a trailing value is never dropped.
    """

    def __init__(self,
                 callback: Callable[[T], None],
                 scheduler: Scheduler,
                 delay: float = DEFAULT_QUIESCENCE_SECONDS):
        self._callback = callback
        self._scheduler = scheduler
        self.delay = delay
        self._handle: Optional[Cancellable] = None
        self._pending_value: Optional[T] = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def push(self, value: T) -> None:
        if self._closed:
            logger.debug("Ignoring input pushed to a closed debouncer")
            return
        self.cancel()
        self._pending_value = value
        self._handle = self._scheduler.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        """Drop the pending value without emitting it."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending_value = None

    def close(self) -> None:
        """Tear down: cancel any pending timer and refuse further input."""
        self.cancel()
        self._closed = True

    def _fire(self) -> None:
        if self._closed or self._handle is None:
            return
        value = self._pending_value
        self._handle = None
        self._pending_value = None
        self._callback(value)


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop.

    Must be created while the loop is running (or be given the loop). Blocking
    calls go to the loop's default executor and their outcome is delivered
    back on the loop thread.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        return self._loop.call_later(delay, callback)

    def run_blocking(self, func: Callable[..., Any], *args: Any,
                     on_done: Optional[Callable[[Any, Optional[BaseException]], None]] = None) -> None:
        future = self._loop.run_in_executor(None, func, *args)
        if on_done is None:
            return

        def _deliver(fut: asyncio.Future) -> None:
            if fut.cancelled():
                return
            error = fut.exception()
            if error is not None:
                on_done(None, error)
            else:
                on_done(fut.result(), None)

        future.add_done_callback(_deliver)
