# path: src/runtime/error_handling.py

"""
Error handling helpers for the agent runtime.

Every periodic task (snapshot, command poll, reflex tick, body pump) runs
through safe_tick(), so one failing tick:
- is logged with its traceback,
- is recorded as an `error` event in the Event Log,
- and never stops the scheduler.

Fatal, process-level faults are not handled here: disconnect / kicked
notifications stop the runtime directly (see agent.runtime).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from monitoring.event_log import EventLog
from monitoring.events import EventType

log = logging.getLogger(__name__)


def safe_tick(fn: Callable[[], object], events: Optional[EventLog], source: str) -> bool:
    """
    Call `fn()` and contain any exception it raises.

    Returns True when the tick completed normally.
    """
    try:
        fn()
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        log.exception("Periodic task %s failed", source)
        if events is not None:
            events.append(
                EventType.ERROR,
                {"source": source, "message": str(exc), "errorType": type(exc).__name__},
            )
        return False
    return True


async def run_periodic(
    fn: Callable[[], object],
    interval_s: float,
    events: Optional[EventLog],
    source: str,
    stop: asyncio.Event,
) -> None:
    """Fire `fn` every `interval_s` seconds through safe_tick until `stop` is set."""
    while not stop.is_set():
        safe_tick(fn, events, source)
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval_s)
        except asyncio.TimeoutError:
            continue
