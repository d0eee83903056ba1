# src/agent/reflexes.py
"""
Reflex Arbiter: the periodic, priority-ordered survival tick.

Order per tick (strict priority):

  1. WaterEscapeReflex  submerged -> hold jump+sprint, path to the nearest land
  2. ThreatFleeReflex   hostile too close -> run directly away from it
  3. StuckDetector      intent active but no displacement -> retry / wander
  4. AutoSustain        eat when hungry; sprint/walk heuristic

While an escape is active nothing else runs. Flee and escape interrupt the
Action Register through its single backup slot: save() on the first tick of
an episode, restore() + resume_intent() on the tick it ends. When an escape
starts during a flee, the flee episode ends without restoring, so the one
backup (taken by the flee) is what the escape later restores.

tick() never suspends; the only asynchronous work (eating) is scheduled as
its own task.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

from env.schema import AgentConfig
from monitoring.event_log import EventLog
from monitoring.events import EventType
from spec.embodiment import Embodiment
from spec.types import EntityInfo, GoalBlock, GoalXZ, ItemStack, Vec3

from .intent import (
    ActionIntent,
    ActionRegister,
    EscapingWater,
    Fleeing,
    Follow,
    Wander,
    resume_intent,
)
from .perception import best_food, is_air, is_liquid, nearest_hostile

if TYPE_CHECKING:
    from .combat import CombatManager

log = logging.getLogger(__name__)

Clock = Callable[[], float]


def _kind(intent: Optional[ActionIntent]) -> Optional[str]:
    return intent.kind if intent is not None else None


def _restore(register: ActionRegister, body: Embodiment) -> Optional[ActionIntent]:
    """Put the saved intent back and reissue its goal with fresh lookups."""
    restored = register.restore()
    if not resume_intent(restored, body):
        log.info("Restored intent %s could not be resumed; clearing", _kind(restored))
        register.clear()
        return None
    return restored


# ---------------------------------------------------------------------------
# 1. Water escape
# ---------------------------------------------------------------------------


class WaterEscapeReflex:
    """Swim to the nearest standable land while submerged."""

    DIRECTIONS = ((1, 0), (-1, 0), (0, 1), (0, -1), (1, 1), (-1, -1), (1, -1), (-1, 1))

    def __init__(self, body: Embodiment, events: EventLog, register: ActionRegister, config: AgentConfig) -> None:
        self.body = body
        self.events = events
        self.register = register
        self.config = config
        self.active = False
        self.target: Optional[Vec3] = None

    def tick(self) -> bool:
        """Returns True while an escape is in progress (lower reflexes skip)."""
        if not self.body.is_in_water():
            if self.active:
                self._finish()
            return False

        # asserted every submerged tick, not just the first
        self.body.set_control_state("jump", True)
        self.body.set_control_state("sprint", True)
        if self.active:
            return True

        self.active = True
        self.register.save()
        found = self.find_land()
        if found is None:
            self.target = None
            self.register.set(EscapingWater())
            log.info("Submerged with no land within %d blocks", self.config.escape.search_radius)
            return True

        floor, radius = found
        self.target = floor
        target = {"x": int(floor.x), "y": int(floor.y), "z": int(floor.z)}
        self.register.set(EscapingWater(target))
        self.body.set_goal(GoalBlock(int(floor.x), int(floor.y) + 1, int(floor.z)))
        self.events.append(EventType.SWIMMING_TO_LAND, {"target": target, "distance": radius})
        return True

    def find_land(self) -> Optional[Tuple[Vec3, int]]:
        """
        Expanding ring search around the body.

        Returns the floor block (solid, non-liquid, air above) and the ring
        radius it was found at.
        """
        cfg = self.config.escape
        origin = self.body.position().floored()
        for r in range(1, cfg.search_radius + 1):
            for sx, sz in self.DIRECTIONS:
                for dy in range(cfg.min_dy, cfg.max_dy + 1):
                    check = origin.offset(sx * r, dy, sz * r)
                    block = self.body.block_at(check)
                    if block is None or is_air(block) or is_liquid(block):
                        continue
                    if is_air(self.body.block_at(check.offset(0, 1, 0))):
                        return check, r
        return None

    def _finish(self) -> None:
        self.active = False
        self.target = None
        self.body.set_control_state("jump", False)
        self.body.set_control_state("sprint", False)
        restored = _restore(self.register, self.body)
        self.events.append(
            EventType.ESCAPED_WATER,
            {"position": self.body.position().floored().to_dict(), "restored": _kind(restored)},
        )

    def reset(self) -> None:
        self.active = False
        self.target = None


# ---------------------------------------------------------------------------
# 2. Threat flee
# ---------------------------------------------------------------------------


class ThreatFleeReflex:
    """Run from the nearest hostile; destination recomputed every tick."""

    def __init__(
        self,
        body: Embodiment,
        events: EventLog,
        register: ActionRegister,
        config: AgentConfig,
        clock: Clock = time.monotonic,
    ) -> None:
        self.body = body
        self.events = events
        self.register = register
        self.config = config
        self.clock = clock
        self.active = False
        self.started_at: Optional[float] = None
        self.threat: Optional[str] = None
        self.threat_distance: Optional[float] = None
        self.flee_target: Optional[Dict[str, int]] = None
        self.nearest: Optional[Dict[str, Any]] = None

    def trigger_distance(self, threat: EntityInfo) -> float:
        cfg = self.config.threat
        if threat.name.lower() in cfg.explosive_kinds:
            return cfg.explosive_trigger_distance
        return cfg.trigger_distance

    def tick(self, combat_active: bool = False) -> None:
        cfg = self.config.threat
        threat = nearest_hostile(self.body, cfg.hostile_kinds, cfg.vertical_tolerance)
        here = self.body.position()
        distance = here.distance_to(threat.position) if threat is not None else None
        self.nearest = (
            {"name": threat.name, "distance": round(distance, 1), "entityId": threat.entity_id}
            if threat is not None and distance is not None
            else None
        )

        if combat_active:
            # the combat session owns positioning and its own retreat
            if self.active:
                self._end("combat", restore=False)
            return

        if not self.active:
            if threat is None or distance is None or distance > self.trigger_distance(threat):
                return
            self.active = True
            self.started_at = self.clock()
            self.register.save()
            self._steer(threat, distance)
            self.events.append(
                EventType.FLEEING,
                {"threat": threat.name, "threatDistance": round(distance, 1), "fleeTarget": self.flee_target},
            )
            return

        elapsed = self._elapsed()
        if threat is None or distance is None:
            self._end("no_threat")
        elif distance > self.trigger_distance(threat) + cfg.safety_margin:
            self._end("threat_distant")
        elif elapsed > cfg.max_flee_seconds:
            self._end("timeout")
        else:
            self._steer(threat, distance)

    def _steer(self, threat: EntityInfo, distance: float) -> None:
        here = self.body.position()
        dx = here.x - threat.position.x
        dz = here.z - threat.position.z
        norm = math.hypot(dx, dz)
        if norm < 1e-6:
            dx, dz, norm = 1.0, 0.0, 1.0
        scale = self.config.threat.flee_distance / norm
        x = math.floor(here.x + dx * scale)
        z = math.floor(here.z + dz * scale)

        self.threat = threat.name
        self.threat_distance = round(distance, 1)
        self.flee_target = {"x": x, "z": z}
        self.register.set(Fleeing(threat.name, self.threat_distance, dict(self.flee_target)))
        self.body.set_goal(GoalXZ(x, z))

    def abandon(self, reason: str) -> None:
        """End the episode but leave the backup slot for whoever preempted us."""
        if self.active:
            self._end(reason, restore=False)

    def _end(self, reason: str, restore: bool = True) -> None:
        elapsed = self._elapsed()
        self.active = False
        self.started_at = None
        self.flee_target = None
        restored: Optional[ActionIntent] = None
        if restore:
            restored = _restore(self.register, self.body)
        elif reason == "combat":
            # the session began while we held the register; hand its intent back
            restored = self.register.restore()
        self.events.append(
            EventType.FLEE_ENDED,
            {"reason": reason, "elapsed": round(elapsed, 1), "restored": _kind(restored)},
        )

    def info(self) -> Optional[Dict[str, Any]]:
        if not self.active:
            return None
        return {
            "threat": self.threat,
            "threatDistance": self.threat_distance,
            "fleeTarget": self.flee_target,
            "elapsed": round(self._elapsed(), 1),
        }

    def _elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return self.clock() - self.started_at

    def reset(self) -> None:
        self.active = False
        self.started_at = None
        self.flee_target = None


# ---------------------------------------------------------------------------
# 3. Stuck detection
# ---------------------------------------------------------------------------


class StuckDetector:
    """
    Counts ticks without displacement while a moving intent is active.

    Reset rules: empty register, any displacement >= threshold, or a reflex
    holding the register.
    """

    def __init__(
        self,
        body: Embodiment,
        events: EventLog,
        register: ActionRegister,
        config: AgentConfig,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.body = body
        self.events = events
        self.register = register
        self.config = config
        self.rng = rng or random.Random()
        self.last_position: Optional[Vec3] = None
        self.idle_ticks = 0
        self.retries = 0
        self.stuck = False

    def tick(self) -> None:
        intent = self.register.get()
        if intent is None or self.register.preempted:
            self.reset()
            return

        here = self.body.position()
        last, self.last_position = self.last_position, here
        if last is None:
            return

        if here.distance_to(last) >= self.config.stuck.displacement_threshold:
            self.idle_ticks = 0
            self.retries = 0
            self.stuck = False
            return

        if not intent.expects_motion or self._follow_satisfied(intent):
            self.idle_ticks = 0
            return

        self.idle_ticks += 1
        if self.idle_ticks < self.config.stuck.idle_ticks:
            return

        self.idle_ticks = 0
        self.stuck = True
        self.events.append(
            EventType.STUCK,
            {
                "position": here.floored().to_dict(),
                "action": intent.kind,
                "ticks": self.config.stuck.idle_ticks,
                "retries": self.retries,
            },
        )

        if isinstance(intent, Follow) and self.retries < self.config.stuck.max_retries:
            self.retries += 1
            if resume_intent(intent, self.body, self.config.combat.follow_distance):
                self.events.append(
                    EventType.STUCK_RETRY,
                    {"action": intent.kind, "retry": self.retries, "username": intent.username},
                )
                return

        self._give_up(intent, here)

    def _follow_satisfied(self, intent: ActionIntent) -> bool:
        if not isinstance(intent, Follow):
            return False
        player = self.body.player(intent.username)
        if player is None:
            return False
        return self.body.position().distance_to(player.position) <= intent.distance + 1

    def _give_up(self, intent: ActionIntent, here: Vec3) -> None:
        self.retries = 0
        self.register.cancel("stuck")
        if isinstance(intent, Wander):
            # a stuck wander just ends; no wander-from-wander chains
            self.body.set_goal(None)
            return

        cfg = self.config.stuck
        angle = self.rng.uniform(0.0, 2 * math.pi)
        dist = self.rng.uniform(cfg.wander_min, cfg.wander_max)
        x = math.floor(here.x + math.cos(angle) * dist)
        z = math.floor(here.z + math.sin(angle) * dist)
        wander = Wander(x, z)
        self.register.set(wander)
        self.body.set_goal(wander.to_goal())
        self.events.append(
            EventType.WANDER,
            {"target": {"x": x, "z": z}, "reason": "stuck", "abandoned": intent.kind},
        )

    def reset(self) -> None:
        self.last_position = None
        self.idle_ticks = 0
        self.retries = 0
        self.stuck = False


# ---------------------------------------------------------------------------
# 4. Auto-sustain
# ---------------------------------------------------------------------------


class AutoSustain:
    """Eat when hungry; pick sprint vs walk from the current intent."""

    def __init__(self, body: Embodiment, events: EventLog, register: ActionRegister, config: AgentConfig) -> None:
        self.body = body
        self.events = events
        self.register = register
        self.config = config
        self.eating = False
        self.warned = False
        self._task: Optional["asyncio.Task[None]"] = None

    def tick(self) -> None:
        self._check_hunger()
        self.body.set_control_state("sprint", self.wants_sprint())

    def wants_sprint(self) -> bool:
        intent = self.register.get()
        if isinstance(intent, Fleeing):
            return True
        if isinstance(intent, Follow):
            player = self.body.player(intent.username)
            if player is not None:
                distance = self.body.position().distance_to(player.position)
                return distance > self.config.sustain.sprint_follow_distance
        return False

    def _check_hunger(self) -> None:
        food_level = self.body.vitals().food
        if food_level >= self.config.sustain.food_threshold:
            self.warned = False
            return
        if self.eating:
            return

        food = best_food(self.body.inventory(), self.config.sustain.food_items)
        if food is None:
            if not self.warned:
                self.warned = True
                self.events.append(EventType.HUNGER_WARNING, {"food": food_level, "reason": "no_food_items"})
            return

        self.eating = True
        self._task = asyncio.get_running_loop().create_task(self._eat(food))

    async def _eat(self, food: ItemStack) -> None:
        try:
            await self.body.equip(food.name, "hand")
            await self.body.consume()
        except Exception as exc:
            log.info("Auto-eat of %s failed: %s", food.name, exc)
            self.events.append(EventType.EAT_FAILED, {"error": str(exc), "item": food.name})
        else:
            self.events.append(EventType.ATE_FOOD, {"item": food.name, "newFoodLevel": self.body.vitals().food})
        finally:
            self.eating = False

    def reset(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.eating = False
        self.warned = False


# ---------------------------------------------------------------------------
# Arbiter
# ---------------------------------------------------------------------------


class ReflexArbiter:
    """Runs the four reflexes in priority order once per tick."""

    def __init__(
        self,
        *,
        body: Embodiment,
        events: EventLog,
        register: ActionRegister,
        config: AgentConfig,
        combat: Optional["CombatManager"] = None,
        clock: Clock = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.body = body
        self.combat = combat
        self.escape = WaterEscapeReflex(body, events, register, config)
        self.flee = ThreatFleeReflex(body, events, register, config, clock=clock)
        self.stuck = StuckDetector(body, events, register, config, rng=rng)
        self.sustain = AutoSustain(body, events, register, config)

    def tick(self) -> None:
        if self.body.is_in_water() and not self.escape.active:
            self.flee.abandon("preempted_by_escape")
        if self.escape.tick():
            return

        combat_active = self.combat is not None and self.combat.active
        self.flee.tick(combat_active=combat_active)
        self.stuck.tick()
        self.sustain.tick()

    def state(self) -> Dict[str, Any]:
        return {
            "isFleeing": self.flee.active,
            "isEscapingWater": self.escape.active,
            "isStuck": self.stuck.stuck,
            "stuckTicks": self.stuck.idle_ticks,
            "stuckRetries": self.stuck.retries,
            "nearestThreat": self.flee.nearest,
            "fleeInfo": self.flee.info(),
            "isEating": self.sustain.eating,
        }

    def reset(self) -> None:
        self.escape.reset()
        self.flee.reset()
        self.stuck.reset()
        self.sustain.reset()
