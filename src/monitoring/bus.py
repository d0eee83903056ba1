# src/monitoring/bus.py
"""
In-process fan-out of appended Events.

The EventLog publishes every Event here right after it is stored. Consumers
subscribe either to everything (JsonFileLogger, TuiDashboard) or to a set of
event types, e.g. a test that only cares about `command_result`.

Publishing happens on the runtime thread while the dashboard reads from its
own thread, so the subscription table is lock-protected. A consumer that
raises is logged and skipped; the EventLog never sees it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Callable, FrozenSet, Iterable, List, Optional

from .events import Event, event_type_name

log = logging.getLogger(__name__)

Subscriber = Callable[[Event], None]


@dataclass(frozen=True)
class _Subscription:
    fn: Subscriber
    types: Optional[FrozenSet[str]] = None

    def wants(self, event: Event) -> bool:
        return self.types is None or event.type in self.types


class EventBus:
    def __init__(self) -> None:
        self._subs: List[_Subscription] = []
        self._lock = Lock()

    def subscribe(self, fn: Subscriber, types: Optional[Iterable[object]] = None) -> None:
        """
        Deliver published Events to `fn`.

        `types` restricts delivery to the given EventType members or wire tags.
        """
        wanted = frozenset(event_type_name(t) for t in types) if types is not None else None
        with self._lock:
            self._subs.append(_Subscription(fn, wanted))

    def unsubscribe(self, fn: Subscriber) -> None:
        """Drop every subscription of `fn`; unknown callables are ignored."""
        with self._lock:
            self._subs = [s for s in self._subs if s.fn != fn]

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def publish(self, event: Event) -> None:
        # deliver outside the lock so a consumer may (un)subscribe re-entrantly
        with self._lock:
            targets = [s.fn for s in self._subs if s.wants(event)]

        for fn in targets:
            try:
                fn(event)
            except Exception:
                log.exception("Event consumer %r failed on %s #%d", fn, event.type, event.id)
