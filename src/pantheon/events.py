"""Observability sink for hierarchy and orchestration events.

An explicitly constructed, explicitly owned pub/sub object handed to the
lifecycle manager and the router. Handlers run synchronously in
registration order. Hook chains give a fixed ordering around an effect:
pre-hooks (registration order) -> effect -> post-hooks (registration order).

A failing subscriber is logged and skipped; the core never depends on any
particular consumer being present.
"""

import logging
import threading
import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

WILDCARD = "*"


class EventType(str, Enum):
    """Events emitted by the core."""

    AGENT_CREATED = "agent:created"
    AGENT_RELEASED = "agent:released"
    AGENT_CREATION_DENIED = "agent:creation-denied"
    AGENTS_PURGED = "agents:purged"
    ORCHESTRATION_DETERMINISTIC = "orchestration:deterministic"
    ORCHESTRATION_DELEGATED = "orchestration:delegated"
    ORCHESTRATION_FALLBACK = "orchestration:fallback"


@dataclass(frozen=True)
class Event:
    type: str
    data: dict[str, Any] = field(default_factory=dict)
    ts: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "ts": datetime.fromtimestamp(self.ts, timezone.utc).isoformat(),
            "data": self.data,
        }


Handler = Callable[[Event], Any]
PreHook = Callable[[dict[str, Any]], Any]
PostHook = Callable[[dict[str, Any], Any], Any]


class ObservabilitySink:
    """Lightweight, ordered pub/sub with explicit lifecycle."""

    def __init__(self, autostart: bool = True):
        self._lock = threading.Lock()
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._pre_hooks: dict[str, list[PreHook]] = defaultdict(list)
        self._post_hooks: dict[str, list[PostHook]] = defaultdict(list)
        self._running = False
        if autostart:
            self.start()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        self._running = True

    def shutdown(self) -> None:
        """Stop delivering events and drop all subscriptions."""
        with self._lock:
            self._running = False
            self._handlers.clear()
            self._pre_hooks.clear()
            self._post_hooks.clear()

    @property
    def running(self) -> bool:
        return self._running

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """
        Subscribe `handler` to one event type, or to all with "*".

        Returns:
            A callable that removes the subscription
        """
        key = _key(event_type)
        with self._lock:
            self._handlers[key].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers.get(key, []):
                    self._handlers[key].remove(handler)

        return unsubscribe

    def emit(self, event_type: str, data: dict[str, Any] | None = None) -> Event | None:
        """Deliver an event to subscribers; a no-op while stopped."""
        if not self._running:
            return None

        event = Event(type=_key(event_type), data=dict(data or {}))
        with self._lock:
            handlers = list(self._handlers.get(event.type, [])) + list(
                self._handlers.get(WILDCARD, [])
            )

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {event.type}")
        return event

    # =========================================================================
    # Hook chains
    # =========================================================================

    def add_pre_hook(self, name: str, hook: PreHook) -> None:
        with self._lock:
            self._pre_hooks[name].append(hook)

    def add_post_hook(self, name: str, hook: PostHook) -> None:
        with self._lock:
            self._post_hooks[name].append(hook)

    def run_hooked(self, name: str, payload: dict[str, Any], effect: Callable[[], T]) -> T:
        """
        Run `effect` wrapped by the hooks registered under `name`.

        Hook failures are logged; the effect's own exceptions propagate and
        skip the post-hooks.
        """
        with self._lock:
            pre = list(self._pre_hooks.get(name, []))
            post = list(self._post_hooks.get(name, []))

        for hook in pre:
            try:
                hook(payload)
            except Exception:
                logger.exception(f"Pre-hook failed for {name}")

        result = effect()

        for hook in post:
            try:
                hook(payload, result)
            except Exception:
                logger.exception(f"Post-hook failed for {name}")
        return result


def _key(event_type: str) -> str:
    return event_type.value if isinstance(event_type, EventType) else str(event_type)


class EventRecorder:
    """Subscriber that keeps every event in memory."""

    def __init__(self, sink: ObservabilitySink | None = None):
        self.events: list[Event] = []
        if sink is not None:
            sink.subscribe(WILDCARD, self)

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [e.type for e in self.events]

    def of_type(self, event_type: str) -> list[Event]:
        key = _key(event_type)
        return [e for e in self.events if e.type == key]

    def clear(self) -> None:
        self.events.clear()


class LoggingSubscriber:
    """Subscriber that forwards events to the logging module."""

    def __init__(self, sink: ObservabilitySink, level: int = logging.INFO):
        self.level = level
        sink.subscribe(WILDCARD, self)

    def __call__(self, event: Event) -> None:
        details = " ".join(f"{k}={v}" for k, v in sorted(event.data.items()))
        logger.log(self.level, f"{event.type} {details}".rstrip())
