# src/agent/snapshot.py
"""
State Snapshot Builder.

Aggregates everything an external controller needs into one JSON document,
rebuilt and rewritten to state.json on a fixed period. Read-only: it never
touches the Action Register or the reflexes, it only asks them for state.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from env.schema import AgentConfig
from monitoring.event_log import EventLog, atomic_write_text
from spec.embodiment import Embodiment

from .intent import ActionRegister
from .perception import inventory_stats, nearby_entities, notable_blocks

if TYPE_CHECKING:
    from .combat import CombatManager
    from .reflexes import ReflexArbiter

log = logging.getLogger(__name__)

ENTITY_RADIUS = 32.0
ENTITY_LIMIT = 20


class SnapshotBuilder:
    def __init__(
        self,
        *,
        body: Embodiment,
        events: EventLog,
        register: ActionRegister,
        config: AgentConfig,
        arbiter: Optional["ReflexArbiter"] = None,
        combat: Optional["CombatManager"] = None,
        path: Optional[Path] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.body = body
        self.events = events
        self.register = register
        self.config = config
        self.arbiter = arbiter
        self.combat = combat
        self.path = Path(path) if path is not None else config.paths.state_file
        self.clock = clock
        self._last_health: Optional[float] = None
        self.last: Optional[Dict[str, Any]] = None

    def build(self) -> Dict[str, Any]:
        body = self.body
        pos = body.position()
        vel = body.velocity()
        look = body.orientation()
        vitals = body.vitals()
        items = body.inventory()
        current = self.register.get()

        snapshot: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(self.clock(), tz=timezone.utc).isoformat(),
            "bot": {
                "position": pos.floored().to_dict(),
                "velocity": {"x": round(vel.x, 3), "y": round(vel.y, 3), "z": round(vel.z, 3)},
                "yaw": round(look.yaw, 3),
                "pitch": round(look.pitch, 3),
                "health": vitals.health,
                "healthTrend": self._health_trend(vitals.health),
                "food": vitals.food,
                "saturation": vitals.saturation,
                "oxygenLevel": vitals.oxygen,
                "isInWater": body.is_in_water(),
            },
            "inventory": [s.to_dict() for s in items],
            "inventoryStats": inventory_stats(items),
            "nearbyEntities": nearby_entities(
                body, self.config.threat.hostile_kinds, radius=ENTITY_RADIUS, limit=ENTITY_LIMIT
            ),
            "notableBlocks": notable_blocks(body),
            "currentAction": current.to_dict() if current is not None else None,
            "survival": self.arbiter.state() if self.arbiter is not None else {},
            "combat": self.combat.state() if self.combat is not None else {"active": False},
            "latestEventId": self.events.latest_id(),
        }
        self.last = snapshot
        return snapshot

    def write(self) -> bool:
        """Build and persist atomically; failures are logged, never raised."""
        try:
            content = json.dumps(self.build(), indent=2, default=str)
        except Exception:
            log.exception("Failed to build state snapshot")
            return False
        return atomic_write_text(self.path, content)

    def _health_trend(self, health: float) -> str:
        last, self._last_health = self._last_health, health
        if last is None or health == last:
            return "stable"
        return "healing" if health > last else "taking_damage"
