"""Minimal publish/subscribe registry keyed by event name.

Listeners run synchronously, in registration order, on the thread that
calls :meth:`EventEmitter.emit`. There is no error isolation: an exception
raised by one listener propagates to the emitter's caller and the
remaining listeners for that emission are skipped. For events raised
from inbound data (``cot``, ``ping``) the failure reaches the transport,
which closes the stream and reports it as ``error`` followed by ``end``.

Emitting ``"error"`` with no listener registered only produces a log
warning. Applications that care about transport failures MUST subscribe to
``"error"``, otherwise those failures are lost.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

_LOGGER = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Explicit event registry with ordered listener invocation."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> Listener:
        """Register ``listener`` for ``event``.

        Returns the listener so the method can be used as a decorator.
        """
        self._listeners.setdefault(event, []).append(listener)
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """Register ``listener`` to run at most once for ``event``."""

        def _wrapper(*args: Any) -> Any:
            self.off(event, _wrapper)
            return listener(*args)

        _wrapper.listener = listener  # type: ignore[attr-defined]
        self.on(event, _wrapper)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove the first registration of ``listener`` for ``event``."""
        listeners = self._listeners.get(event)
        if not listeners:
            return

        for index, registered in enumerate(listeners):
            if registered is listener or getattr(registered, "listener", None) is listener:
                del listeners[index]
                break

        if not listeners:
            del self._listeners[event]

    def emit(self, event: str, *args: Any) -> bool:
        """Invoke every listener of ``event`` with ``args``.

        Returns:
            True if at least one listener was registered.
        """
        listeners = self._listeners.get(event)
        if not listeners:
            if event == "error":
                _LOGGER.warning("Unhandled 'error' event: %r", args[0] if args else None)
            return False

        # Copy so listeners may unsubscribe while being called.
        for listener in list(listeners):
            listener(*args)
        return True

    def listeners(self, event: str) -> list[Listener]:
        """Return the listeners registered for ``event``."""
        return [
            getattr(listener, "listener", listener)
            for listener in self._listeners.get(event, [])
        ]

    def listener_count(self, event: str) -> int:
        """Return the number of listeners registered for ``event``."""
        return len(self._listeners.get(event, []))

    def remove_all_listeners(self, event: str | None = None) -> None:
        """Drop listeners for ``event``, or for every event when omitted."""
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)
