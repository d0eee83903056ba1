# src/bot_core/testing/fakes.py
"""
Test helpers for bot_core.

Provides:
- FakeEmbodiment: in-memory Embodiment implementation for unit tests.

Everything the agent core asks of the body is recorded (goals, controls,
attacks, item use) and every perception value is a plain attribute tests can
set directly. Nothing moves on its own; tests move the body or entities
explicitly. `goto()` teleports to the goal and yields once.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from spec.types import (
    BlockInfo,
    EntityInfo,
    Goal,
    GoalBlock,
    GoalFollow,
    GoalNear,
    GoalXZ,
    ItemStack,
    Orientation,
    Vec3,
    Vitals,
)
from ..core import EmbodimentBase, EmbodimentError


BlockKey = Tuple[int, int, int]


@dataclass
class IssuedGoal:
    """Record of a set_goal() call."""

    goal: Optional[Goal]
    dynamic: bool


class FakeEmbodiment(EmbodimentBase):
    """
    In-memory Embodiment used for unit and integration tests.

    World model:
    - blocks at or below `ground_y` are "stone", above are "air",
      unless overridden in `blocks`.
    - entities live in a dict keyed by id.
    """

    def __init__(self, position: Optional[Vec3] = None, ground_y: int = 63) -> None:
        super().__init__()
        self.pos: Vec3 = position or Vec3(0.5, 64.0, 0.5)
        self.vel: Vec3 = Vec3(0.0, 0.0, 0.0)
        self.look: Orientation = Orientation()
        self.stats: Vitals = Vitals()
        self.in_water: bool = False
        self.items: List[ItemStack] = []
        self.ground_y = ground_y
        self.blocks: Dict[BlockKey, str] = {}
        self._entities: Dict[int, EntityInfo] = {}

        # Recorded actuation
        self.goal: Optional[Goal] = None
        self.goal_dynamic: bool = False
        self.goals: List[IssuedGoal] = []
        self.controls: Dict[str, bool] = {}
        self.attacks: List[int] = []
        self.looked_at: List[Vec3] = []
        self.activations: int = 0
        self.deactivations: int = 0
        self.equipped: Dict[str, str] = {}
        self.consumed: List[str] = []
        self.dug: List[Vec3] = []
        self.chats: List[str] = []

        # Failure injection
        self.fail_goto: Optional[Exception] = None
        self.fail_consume: Optional[Exception] = None
        self.fail_dig: Optional[Exception] = None

    # ------------------------------------------------------------------
    # Perception
    # ------------------------------------------------------------------

    def position(self) -> Vec3:
        return self.pos

    def velocity(self) -> Vec3:
        return self.vel

    def orientation(self) -> Orientation:
        return self.look

    def vitals(self) -> Vitals:
        return self.stats

    def is_in_water(self) -> bool:
        return self.in_water

    def inventory(self) -> List[ItemStack]:
        return list(self.items)

    def entities(self) -> List[EntityInfo]:
        return list(self._entities.values())

    def entity(self, entity_id: int) -> Optional[EntityInfo]:
        return self._entities.get(entity_id)

    def player(self, username: str) -> Optional[EntityInfo]:
        for e in self._entities.values():
            if e.kind == "player" and e.username == username:
                return e
        return None

    def block_at(self, pos: Vec3) -> Optional[BlockInfo]:
        key = (math.floor(pos.x), math.floor(pos.y), math.floor(pos.z))
        name = self.blocks.get(key)
        if name is None:
            name = "stone" if key[1] <= self.ground_y else "air"
        return BlockInfo(name=name, position=Vec3(*key))

    def find_blocks(
        self,
        names: Iterable[str],
        max_distance: float = 64.0,
        count: int = 1,
    ) -> List[BlockInfo]:
        wanted = set(names)
        found = [
            BlockInfo(name=name, position=Vec3(*key))
            for key, name in self.blocks.items()
            if name in wanted and self.pos.distance_to(Vec3(*key)) <= max_distance
        ]
        found.sort(key=lambda b: self.pos.distance_to(b.position))
        return found[:count]

    # ------------------------------------------------------------------
    # Locomotion
    # ------------------------------------------------------------------

    def set_goal(self, goal: Optional[Goal], dynamic: bool = False) -> None:
        self.goal = goal
        self.goal_dynamic = dynamic
        self.goals.append(IssuedGoal(goal=goal, dynamic=dynamic))

    async def goto(self, goal: Goal) -> None:
        self.set_goal(goal)
        await asyncio.sleep(0)
        if self.fail_goto is not None:
            raise self.fail_goto
        target = self.goal_target(goal)
        if target is not None:
            self.pos = target
        self.goal = None

    def set_control_state(self, control: str, state: bool) -> None:
        self.controls[control] = state

    def clear_control_states(self) -> None:
        for control in list(self.controls):
            self.controls[control] = False

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    async def look_at(self, point: Vec3, force: bool = False) -> None:
        self.looked_at.append(point)

    def attack(self, entity_id: int) -> None:
        self.attacks.append(entity_id)

    def activate_item(self) -> None:
        self.activations += 1

    def deactivate_item(self) -> None:
        self.deactivations += 1

    async def equip(self, item_name: str, destination: str = "hand") -> None:
        if not any(i.name == item_name for i in self.items):
            raise EmbodimentError("item_missing", {"reason": f"no {item_name} in inventory"})
        self.equipped[destination] = item_name

    async def consume(self) -> None:
        await asyncio.sleep(0)
        if self.fail_consume is not None:
            raise self.fail_consume
        held = self.equipped.get("hand")
        if held is None:
            raise EmbodimentError("nothing_held", {"reason": "nothing in hand to consume"})
        self.consumed.append(held)
        self.remove_item(held)
        self.stats.food = min(20.0, self.stats.food + 6)

    async def dig(self, pos: Vec3) -> None:
        await asyncio.sleep(0)
        if self.fail_dig is not None:
            raise self.fail_dig
        self.dug.append(pos)
        key = (math.floor(pos.x), math.floor(pos.y), math.floor(pos.z))
        name = self.blocks.pop(key, None)
        if name is not None:
            self.add_item(name, 1)

    def chat(self, message: str) -> None:
        self.chats.append(message)

    # ------------------------------------------------------------------
    # Test-only helpers
    # ------------------------------------------------------------------

    def add_entity(
        self,
        entity_id: int,
        name: str,
        position: Vec3,
        kind: str = "mob",
        username: Optional[str] = None,
        health: Optional[float] = None,
    ) -> EntityInfo:
        info = EntityInfo(
            entity_id=entity_id,
            name=name,
            kind=kind,
            position=position,
            username=username,
            health=health,
        )
        self._entities[entity_id] = info
        return info

    def add_player(self, entity_id: int, username: str, position: Vec3) -> EntityInfo:
        return self.add_entity(entity_id, "player", position, kind="player", username=username)

    def move_entity(self, entity_id: int, position: Vec3) -> None:
        self._entities[entity_id].position = position

    def remove_entity(self, entity_id: int) -> None:
        self._entities.pop(entity_id, None)

    def add_item(self, name: str, count: int = 1) -> None:
        for stack in self.items:
            if stack.name == name:
                stack.count += count
                return
        self.items.append(ItemStack(name=name, count=count, slot=len(self.items)))

    def remove_item(self, name: str, count: int = 1) -> None:
        for stack in list(self.items):
            if stack.name == name:
                stack.count -= count
                if stack.count <= 0:
                    self.items.remove(stack)
                return

    def set_block(self, pos: Vec3, name: str) -> None:
        self.blocks[(math.floor(pos.x), math.floor(pos.y), math.floor(pos.z))] = name

    def emit(self, name: str, *args: object) -> None:
        """Manually deliver a notification, as the real body would."""
        self._notify(name, *args)

    def goal_target(self, goal: Optional[Goal]) -> Optional[Vec3]:
        """Point a goal leads to, or None when it cannot be resolved."""
        if isinstance(goal, GoalBlock):
            return Vec3(goal.x + 0.5, goal.y, goal.z + 0.5)
        if isinstance(goal, GoalNear):
            return Vec3(goal.x, goal.y, goal.z)
        if isinstance(goal, GoalXZ):
            return Vec3(goal.x + 0.5, self.pos.y, goal.z + 0.5)
        if isinstance(goal, GoalFollow):
            target = self._entities.get(goal.entity_id)
            return target.position if target is not None else None
        return None
