# path: src/monitoring/events.py
"""
Event schema for the agent body's controller-facing event stream.

This module defines:
- EventType enum (every tag the body emits)
- EVENT_DESCRIPTIONS (description + fields, used by the capability manifest)
- Event (one immutable log entry)

Events are JSON-serializable via `.to_dict()` and flattened on the wire as
`{id, timestamp, type, ...payload}`, which is the format external
controllers read from events.json.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Tuple


# ============================================================
# Event Types
# ============================================================

class EventType(str, Enum):
    """Tags of events emitted by the agent body."""

    # Lifecycle / fatal
    SPAWN = "spawn"
    DISCONNECT = "disconnect"
    KICKED = "kicked"
    ERROR = "error"

    # Chat
    CHAT = "chat"

    # Health
    HURT = "hurt"
    DANGER = "danger"
    DEATH = "death"

    # Locomotion notifications
    GOAL_REACHED = "goal_reached"
    PATH_FAILED = "path_failed"

    # Command channel
    COMMAND_RECEIVED = "command_received"
    COMMAND_RESULT = "command_result"

    # Reflexes
    SWIMMING_TO_LAND = "swimming_to_land"
    ESCAPED_WATER = "escaped_water"
    FLEEING = "fleeing"
    FLEE_ENDED = "flee_ended"
    STUCK = "stuck"
    STUCK_RETRY = "stuck_retry"
    WANDER = "wander"
    HUNGER_WARNING = "hunger_warning"
    ATE_FOOD = "ate_food"
    EAT_FAILED = "eat_failed"

    # Combat
    COMBAT_STARTED = "combat_started"
    COMBAT_ENDED = "combat_ended"
    COMBAT_RETREAT = "combat_retreat"
    ARROW_SHOT = "arrow_shot"

    # Gathering
    BLOCK_MINED = "block_mined"
    MINING_COMPLETE = "mining_complete"


# (description, fields) per event type; surfaced through the manifest.
EVENT_DESCRIPTIONS: Dict[EventType, Tuple[str, str]] = {
    EventType.SPAWN: ("Body joined the world", "position"),
    EventType.DISCONNECT: ("Body disconnected; the process will stop", "reason"),
    EventType.KICKED: ("Server kicked the body; the process will stop", "reason"),
    EventType.ERROR: ("Internal error contained by the scheduler", "source, message"),
    EventType.CHAT: ("Player sent a chat message", "username, message"),
    EventType.HURT: ("Body took damage", "health"),
    EventType.DANGER: ("Health dropped below 10", "reason, health, food"),
    EventType.DEATH: ("Body died", "position"),
    EventType.GOAL_REACHED: ("Locomotion arrived at its destination", ""),
    EventType.PATH_FAILED: ("Locomotion could not reach its destination", "status"),
    EventType.COMMAND_RECEIVED: ("Command acknowledged before execution", "commandId, action"),
    EventType.COMMAND_RESULT: (
        "Terminal result of a command",
        "commandId, success, detail, ...(action-specific data)",
    ),
    EventType.SWIMMING_TO_LAND: ("Escaping water toward land", "target, distance"),
    EventType.ESCAPED_WATER: ("No longer submerged", "position, restored"),
    EventType.FLEEING: ("Running from a threat", "threat, threatDistance, fleeTarget"),
    EventType.FLEE_ENDED: ("Stopped fleeing", "reason, elapsed, restored"),
    EventType.STUCK: ("No displacement while an action is running", "position, action, ticks, retries"),
    EventType.STUCK_RETRY: ("Reissued a stuck action against a fresh target", "action, retry"),
    EventType.WANDER: ("Random short walk to break a pathing deadlock", "target"),
    EventType.HUNGER_WARNING: ("Hungry with no food in inventory", "food, reason"),
    EventType.ATE_FOOD: ("Auto-ate food", "item, newFoodLevel"),
    EventType.EAT_FAILED: ("Failed to auto-eat", "error, item"),
    EventType.COMBAT_STARTED: ("Combat session started", "target, entityId, mode"),
    EventType.COMBAT_ENDED: ("Combat session finished", "reason, target, mode, hitsDealt, elapsed"),
    EventType.COMBAT_RETREAT: ("Retreated from combat due to low health", "health, reason, mode, target"),
    EventType.ARROW_SHOT: ("Fired an arrow", "target, distance"),
    EventType.BLOCK_MINED: ("Mined one block of a mining session", "block, mined, target, elapsed"),
    EventType.MINING_COMPLETE: ("Mining session finished", "resource, mined, target, elapsed, stopReason"),
}

# Keys owned by the envelope; payload entries with these names are dropped.
RESERVED_KEYS = ("id", "timestamp", "type")


# ============================================================
# Event Structure
# ============================================================

@dataclass(frozen=True)
class Event:
    """
    One entry of the event log.

    Never mutated after insertion. All payload values must be JSON-safe.
    """

    id: int                     # strictly increasing across process lifetime
    timestamp: int              # UNIX time in milliseconds
    type: str                   # EventType value (or a free-form tag)
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten to the wire format: {id, timestamp, type, ...payload}."""
        data: Dict[str, Any] = {"id": self.id, "timestamp": self.timestamp, "type": self.type}
        for key, value in self.payload.items():
            if key not in RESERVED_KEYS:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Event":
        """Inverse of to_dict(); tolerant of missing envelope fields."""
        try:
            event_id = int(data.get("id") or 0)
        except (TypeError, ValueError):
            event_id = 0
        try:
            timestamp = int(data.get("timestamp") or 0)
        except (TypeError, ValueError):
            timestamp = 0
        payload = {k: v for k, v in data.items() if k not in RESERVED_KEYS}
        return cls(
            id=event_id,
            timestamp=timestamp,
            type=str(data.get("type", "")),
            payload=payload,
        )


def event_type_name(event_type: Any) -> str:
    """Normalize an EventType or plain string into the wire tag."""
    if isinstance(event_type, EventType):
        return event_type.value
    return str(event_type)
