# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""EventPublisher - Synchronous publish/subscribe core.

Listeners are registered per event name in an ordered set: registering the
same callable twice is a no-op, and dispatch follows registration order.

A listener that raises never propagates out of ``publish``. The failure is
logged and republished as an ``error`` event whose payload is::

    {'original_event': event, 'error': exc, 'payload': payload}

Failures raised by ``error`` listeners are only logged.

Example:
    >>> bus = EventPublisher()
    >>> bus.subscribe('update', lambda payload: print('changed'))
    >>> bus.publish('update')
    changed
    True
"""

from __future__ import annotations

import logging
import time
from functools import wraps
from typing import Any, Callable

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]

ERROR_EVENT = 'error'

# Dispatch slower than this (milliseconds) is reported in debug mode.
SLOW_PUBLISH_MS = 10.0

MAX_EVENT_NAME_LENGTH = 50


class EventPublisher:
    """Per-event listener registry with error isolation and introspection.

    Attributes:
        debug: When True, publishing an event nobody listens to is logged,
            slow dispatch is reported and event names are validated on
            subscribe.
    """

    def __init__(self, debug: bool = False) -> None:
        # dict keys give an insertion-ordered set
        self._listeners: dict[str, dict[Listener, None]] = {}
        self.debug = debug

    # ==================== Registration ====================

    def subscribe(self, event: str, listener: Listener) -> EventPublisher:
        """Register a listener for an event.

        Args:
            event: Event name.
            listener: Callable receiving the event payload.

        Returns:
            The publisher, for chaining.

        Raises:
            TypeError: In debug mode, if listener is not callable.
        """
        if self.debug:
            self._validate_event_name(event)
            if not callable(listener):
                raise TypeError(
                    f"Listener must be callable, got {type(listener).__name__}"
                )
        self._listeners.setdefault(event, {})[listener] = None
        return self

    def unsubscribe(self, event: str, listener: Listener) -> EventPublisher:
        """Remove a listener. Does nothing if it is not registered.

        A listener registered with subscribe_once() can be removed by passing
        the original callable.
        """
        listeners = self._listeners.get(event)
        if not listeners:
            return self

        if listener in listeners:
            del listeners[listener]
        else:
            wrapper = self._find_once_wrapper(listeners, listener)
            if wrapper is not None:
                del listeners[wrapper]
            elif self.debug:
                logger.warning(
                    "Attempted to remove a listener not registered for '%s'", event
                )

        if not listeners:
            del self._listeners[event]
        return self

    def subscribe_once(self, event: str, listener: Listener) -> EventPublisher:
        """Register a listener that is delivered at most one event.

        The wrapper unsubscribes itself before calling the listener, so a
        reentrant publish of the same event from inside the listener does not
        deliver it a second time.
        """
        fired = False

        @wraps(listener)
        def once_wrapper(payload: Any) -> Any:
            nonlocal fired
            self.unsubscribe(event, once_wrapper)
            if fired:
                return None
            fired = True
            return listener(payload)

        once_wrapper._once = True  # type: ignore[attr-defined]
        return self.subscribe(event, once_wrapper)

    def unsubscribe_all(self, event: str | None = None) -> EventPublisher:
        """Remove every listener of one event, or of all events if None."""
        if event is not None:
            removed = self._listeners.pop(event, None)
            if self.debug and removed:
                logger.debug("Removed all listeners for event '%s'", event)
        else:
            total = len(self._listeners)
            self._listeners.clear()
            if self.debug and total:
                logger.debug("Removed all listeners for %d events", total)
        return self

    # ==================== Dispatch ====================

    def publish(self, event: str, payload: Any = None) -> bool:
        """Synchronously call every listener registered for event.

        Args:
            event: Event name.
            payload: Object passed to each listener.

        Returns:
            True if at least one listener was registered, False otherwise.
        """
        listeners = self._listeners.get(event)
        if not listeners:
            if self.debug:
                logger.debug("Event '%s' published but no listeners registered", event)
            return False

        started = time.perf_counter()
        success_count = 0
        error_count = 0

        for listener in list(listeners):
            # skip listeners removed by an earlier listener during this dispatch
            current = self._listeners.get(event)
            if current is None or listener not in current:
                continue
            try:
                listener(payload)
                success_count += 1
            except Exception as error:
                error_count += 1
                logger.exception("Error in listener for event '%s'", event)
                if event != ERROR_EVENT:
                    self.publish(
                        ERROR_EVENT,
                        {'original_event': event, 'error': error, 'payload': payload},
                    )

        if self.debug:
            elapsed_ms = (time.perf_counter() - started) * 1000
            if elapsed_ms > SLOW_PUBLISH_MS:
                logger.warning(
                    "Slow event processing for '%s': %.2fms "
                    "(listeners=%d, succeeded=%d, failed=%d)",
                    event, elapsed_ms, len(listeners), success_count, error_count,
                )
        return True

    # ==================== Introspection ====================

    def listener_count(self, event: str) -> int:
        """Return the number of listeners registered for event."""
        return len(self._listeners.get(event, ()))

    def event_names(self) -> list[str]:
        """Return the names of events that have at least one listener."""
        return list(self._listeners)

    def set_debug_mode(self, enabled: bool = True) -> EventPublisher:
        """Toggle debug diagnostics."""
        self.debug = enabled
        return self

    def get_debug_info(self) -> dict[str, Any]:
        """Summarize the registration table.

        Returns:
            Dict with 'total_events', 'total_listeners' and 'events', the
            latter mapping each event name to its 'listener_count' and the
            qualified names of its 'listeners'.
        """
        events: dict[str, Any] = {}
        total_listeners = 0
        for event, listeners in self._listeners.items():
            events[event] = {
                'listener_count': len(listeners),
                'listeners': [_describe(listener) for listener in listeners],
            }
            total_listeners += len(listeners)
        return {
            'total_events': len(self._listeners),
            'total_listeners': total_listeners,
            'events': events,
        }

    def inspect(self) -> dict[str, Any]:
        """Log get_debug_info() at INFO level and return it."""
        info = self.get_debug_info()
        logger.info(
            "EventPublisher: %d events, %d listeners",
            info['total_events'], info['total_listeners'],
        )
        for event, details in info['events'].items():
            logger.info(
                "  '%s': %d listener(s) %s",
                event, details['listener_count'], ', '.join(details['listeners']),
            )
        return info

    # ==================== Helpers ====================

    @staticmethod
    def _find_once_wrapper(
        listeners: dict[Listener, None], listener: Listener
    ) -> Listener | None:
        for candidate in listeners:
            if getattr(candidate, '_once', False) and candidate.__wrapped__ == listener:
                return candidate
        return None

    def _validate_event_name(self, event: Any) -> None:
        if not isinstance(event, str):
            logger.warning(
                "Event name should be a string, got %s: %r", type(event).__name__, event
            )
            return
        if any(ch.isspace() for ch in event):
            logger.warning("Event name contains whitespace: '%s'", event)
        if len(event) > MAX_EVENT_NAME_LENGTH:
            logger.warning(
                "Event name is very long (%d chars): '%s'", len(event), event
            )


def _describe(listener: Listener) -> str:
    return getattr(listener, '__qualname__', None) or repr(listener)
