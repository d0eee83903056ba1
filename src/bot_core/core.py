# src/bot_core/core.py
"""
Shared pieces for in-process Embodiment implementations.

The real body (world connection, physics, pathfinding search) is an external
collaborator. This module only provides:
- EmbodimentError: domain-level error raised by body operations
- EmbodimentBase: notification registry every in-process body reuses

Design constraints:
- Notification callbacks must never break the body: a failing callback is
  logged and the remaining callbacks still run.
- No agent semantics here (intents, reflexes, commands live in `agent`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from spec.embodiment import NOTIFICATIONS, NotificationFn


log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------


@dataclass
class EmbodimentError(RuntimeError):
    """
    Domain-level error raised by body operations.

    Examples:
        - path could not be found / goal changed mid-walk
        - item not in inventory when equipping
        - block out of reach when digging

    Command handlers let these propagate; the dispatch boundary converts
    them into a failed command result.
    """

    code: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        reason = self.details.get("reason")
        if reason:
            return f"{self.code}: {reason}"
        return self.code


# ---------------------------------------------------------------------------
# Base implementation
# ---------------------------------------------------------------------------


class EmbodimentBase:
    """
    Notification registry for Embodiment implementations.

    Subclasses call `_notify(name, *args)` when the world reports something
    (goal reached, damage, death, ...). Consumers register with `on()`.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[NotificationFn]] = {}

    def on(self, name: str, callback: NotificationFn) -> None:
        if name not in NOTIFICATIONS:
            raise ValueError(f"Unknown notification: {name!r}")
        self._listeners.setdefault(name, []).append(callback)

    def _notify(self, name: str, *args: Any) -> None:
        for callback in list(self._listeners.get(name, [])):
            try:
                callback(*args)
            except Exception:
                log.exception("Notification callback for %s failed", name)
