"""Small synchronous event bus, one instance per stateful object."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from typing import Any

from utils.log_utils import log_exception

Handler = Callable[[dict[str, Any]], Any]


class _Subscription:
    __slots__ = ("handler", "once")

    def __init__(self, handler: Handler, once: bool) -> None:
        self.handler = handler
        self.once = once


class EventBus:
    def __init__(self, name: str = "EVENT_BUS") -> None:
        self._name = name
        self._subscribers: dict[str, list[_Subscription]] = defaultdict(list)

    def on(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Subscribe handler to topic; returns an unsubscribe callable."""
        return self._add(topic, handler, once=False)

    def once(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Subscribe handler for the next emission of topic only."""
        return self._add(topic, handler, once=True)

    def off(self, topic: str, handler: Handler) -> None:
        subs = self._subscribers.get(topic)
        if not subs:
            return
        subs[:] = [sub for sub in subs if sub.handler is not handler]
        if not subs:
            self._subscribers.pop(topic, None)

    def emit(self, topic: str, payload: Any = None) -> None:
        subs = self._subscribers.get(topic)
        if not subs:
            return
        data = payload if payload is not None else {}
        # Snapshot so handlers can subscribe/unsubscribe while we dispatch.
        for sub in list(subs):
            if sub.once:
                self.off(topic, sub.handler)
            try:
                sub.handler(data)
            except Exception as exc:
                log_exception(self._name, f"Handler for '{topic}' failed", exc)

    def has_listeners(self, topic: str | None = None) -> bool:
        if topic is None:
            return any(self._subscribers.values())
        return bool(self._subscribers.get(topic))

    def listener_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, []))

    def dispose(self) -> None:
        """Detach every subscriber."""
        self._subscribers.clear()

    def _add(self, topic: str, handler: Handler, *, once: bool) -> Callable[[], None]:
        subs = self._subscribers[topic]
        if not any(sub.handler is handler for sub in subs):
            subs.append(_Subscription(handler, once))

        def _unsubscribe() -> None:
            self.off(topic, handler)

        return _unsubscribe
