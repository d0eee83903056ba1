# path: src/monitoring/event_log.py
"""
Bounded, persisted event log.

Responsibilities:
- Assign strictly increasing ids (surviving restarts via reload()).
- Keep only the most recent `capacity` events (FIFO eviction).
- Rewrite the full buffer to events.json after every append.
- Fan each appended Event out to an EventBus, when one is attached.

Storage failures never reach the caller: a failed atomic write is retried
once as a direct write and otherwise dropped. Losing an event is
acceptable; breaking the agent's live operation is not.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections import deque
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

from .bus import EventBus
from .events import Event, event_type_name

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 200


# ============================================================
# File helpers (shared with snapshot / manifest writers)
# ============================================================

def atomic_write_text(path: Path, content: str) -> bool:
    """
    Write `content` to `path` via temp file + rename.

    Falls back to one direct write if the atomic path fails. Returns False
    (after logging) when both attempts fail; never raises.
    """
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
        return True
    except OSError as exc:
        log.warning("Atomic write failed for %s: %s; retrying directly", path, exc)

    try:
        path.write_text(content, encoding="utf-8")
        return True
    except OSError as exc:
        log.warning("Direct write failed for %s: %s; dropping", path, exc)
        return False


# ============================================================
# Event Log
# ============================================================

class EventLog:
    """
    Rolling buffer of the most recent events, mirrored to disk.

    Owned exclusively by the runtime; every flow appends through `append()`.
    Entries are never mutated after insertion.
    """

    def __init__(
        self,
        path: Path,
        *,
        capacity: int = DEFAULT_CAPACITY,
        bus: Optional[EventBus] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._path = Path(path)
        self._capacity = capacity
        self._bus = bus
        self._clock = clock
        self._events: Deque[Event] = deque(maxlen=capacity)
        self._counter: int = 0

    # --------------------------------------------------------
    # Public API
    # --------------------------------------------------------

    def append(self, event_type: Any, payload: Optional[Mapping[str, Any]] = None) -> Event:
        """Assign the next id, append, trim, persist, publish."""
        self._counter += 1
        event = Event(
            id=self._counter,
            timestamp=int(self._clock() * 1000),
            type=event_type_name(event_type),
            payload=dict(payload or {}),
        )
        # deque(maxlen=...) drops the oldest entry on overflow
        self._events.append(event)
        self._persist()

        if self._bus is not None:
            self._bus.publish(event)

        log.debug("event id=%d type=%s", event.id, event.type)
        return event

    def reload(self) -> None:
        """
        Restore the buffer from disk.

        Missing or unparseable storage starts empty with counter 0; otherwise
        the counter resumes from the maximum id found.
        """
        self._events.clear()
        self._counter = 0

        if not self._path.exists():
            return

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Could not parse %s (%s); starting with an empty log", self._path, exc)
            return

        if not isinstance(raw, list):
            log.warning("%s does not hold a list; starting with an empty log", self._path)
            return

        loaded = [Event.from_dict(item) for item in raw if isinstance(item, dict)]
        for event in loaded[-self._capacity:]:
            self._events.append(event)
        if loaded:
            self._counter = max(e.id for e in loaded)

    def latest_id(self) -> int:
        return self._counter

    def events(self) -> List[Event]:
        return list(self._events)

    def recent(self, n: int) -> List[Event]:
        if n <= 0:
            return []
        return list(self._events)[-n:]

    def __len__(self) -> int:
        return len(self._events)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def path(self) -> Path:
        return self._path

    # --------------------------------------------------------
    # Internal helpers
    # --------------------------------------------------------

    def _persist(self) -> None:
        # default=str keeps a stray non-JSON payload value from failing the append
        content = json.dumps(self._serialize(), indent=2, ensure_ascii=False, default=str)
        atomic_write_text(self._path, content)

    def _serialize(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._events]
