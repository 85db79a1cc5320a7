"""Single-flight FIFO queue that serializes writes onto a transport."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterator

from .errors import TAKClientError, TAKConnectionError
from .utils import schedule_task

_LOGGER = logging.getLogger(__name__)

Writer = Callable[[str], Awaitable[None]]
ErrorCallback = Callable[[TAKClientError], None]


class WriteQueue:
    """Ordered outbound queue with at most one drain cycle at a time.

    A drain cycle sends queued bodies one by one through ``writer``, then
    writes a single empty body as a flush marker. Bodies pushed during the
    flush are picked up by a fresh cycle scheduled on the next loop turn.

    If ``writer`` fails, the body being sent stays at the head of the
    queue, the cycle stops and the error is handed to ``on_error``. Errors
    other than :class:`TAKClientError` are wrapped in
    :class:`TAKConnectionError`. Nothing drains again until the next
    :meth:`push` or :meth:`kick`.
    """

    def __init__(
        self,
        writer: Writer,
        *,
        on_error: ErrorCallback | None = None,
        name: str = "queue",
    ) -> None:
        self._writer = writer
        self._on_error = on_error
        self._name = name

        self._queue: deque[str] = deque()
        self._writing = False
        self._task: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    def __len__(self) -> int:
        return len(self._queue)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._queue))

    @property
    def writing(self) -> bool:
        """True while a drain cycle owns the queue."""
        return self._writing

    def push(self, body: str) -> None:
        """Append ``body`` and start draining if no cycle is active."""
        self._queue.append(body)

        if self._queue and not self._writing:
            self._start()

    def kick(self) -> None:
        """Resume draining leftover bodies, e.g. after a reconnect."""
        if self._queue and not self._writing:
            self._start()

    def clear(self) -> None:
        self._queue.clear()

    async def wait_idle(self) -> None:
        """Wait until no drain cycle is active."""
        await self._idle.wait()

    def _start(self) -> None:
        self._writing = True
        self._idle.clear()
        self._task = asyncio.get_running_loop().create_task(self._process())

    async def _process(self) -> None:
        error: TAKClientError | None = None
        reschedule = False
        try:
            while self._queue:
                body = self._queue[0]
                if body:
                    await self._writer(body)
                self._queue.popleft()

            await self._writer("")
            reschedule = bool(self._queue)
        except TAKClientError as err:
            error = err
        except Exception as err:  # injected writers raise arbitrary errors
            error = TAKConnectionError(f"Write failed: {err!r}")
            error.__cause__ = err
        finally:
            if reschedule:
                _LOGGER.debug(
                    "[%s] %d message(s) queued during flush", self._name, len(self._queue)
                )
                schedule_task(self._reschedule)
            else:
                self._finish()

        if error is not None:
            _LOGGER.error(
                "[%s] Write failed, %d message(s) left queued: %s",
                self._name,
                len(self._queue),
                error,
            )
            if self._on_error is not None:
                self._on_error(error)

    def _reschedule(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._process())

    def _finish(self) -> None:
        self._writing = False
        self._task = None
        self._idle.set()
