# JSON-lines history logger subscribing to EventBus
"""
Unbounded event history for the agent body.

events.json only holds the most recent events (rolling buffer). This module
provides JsonFileLogger, which subscribes to the EventBus and appends every
Event as one JSON line to events.log so a full session can be replayed
later with jq or similar tools.

Usage:

    from pathlib import Path
    from monitoring.bus import EventBus
    from monitoring.logger import JsonFileLogger

    bus = EventBus()
    history = JsonFileLogger(Path("data/events.log"), bus)
    ...
    history.close()
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from .bus import EventBus
from .events import Event

log = logging.getLogger(__name__)


# ============================================================
# JSONL File Logger
# ============================================================

class JsonFileLogger:
    """
    JSON-lines logger for Event instances.

    - Subscribes to an EventBus and writes one JSON object per line.
    - Ensures UTF-8 encoding.
    - Ensures parent directory exists.
    """

    def __init__(self, path: Path, bus: EventBus) -> None:
        self._path = path
        self._bus = bus
        self._ensure_parent_dir(path)
        self._file = path.open("a", encoding="utf-8")
        bus.subscribe(self._on_event)

    @staticmethod
    def _ensure_parent_dir(path: Path) -> None:
        parent = path.parent
        if not parent.exists():
            parent.mkdir(parents=True, exist_ok=True)

    def _on_event(self, event: Event) -> None:
        """
        Callback invoked for each Event published on the EventBus.
        Writes the event as a JSON object to the history file.
        """
        line = json.dumps(event.to_dict(), ensure_ascii=False, default=str)
        try:
            self._file.write(line + "\n")
            self._file.flush()
        except (OSError, ValueError) as exc:
            # History is best-effort; the rolling buffer stays authoritative.
            log.warning("JsonFileLogger dropped event %d: %s", event.id, exc)

    def close(self) -> None:
        """
        Unsubscribe and close the underlying file handle.

        Should be called at graceful shutdown.
        """
        self._bus.unsubscribe(self._on_event)
        try:
            self._file.close()
        except OSError:
            log.warning("JsonFileLogger failed to close %s", self._path)
