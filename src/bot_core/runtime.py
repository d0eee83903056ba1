# src/bot_core/runtime.py
"""
Runtime wiring for the Embodiment.

The real body (server connection, physics, pathfinding search) lives outside
this repository. For offline runs this module provides SimulatedEmbodiment:
a flat-world body that walks in a straight line toward its current goal when
the runtime pumps `advance(dt)`, and reports goal_reached on arrival.

It is good enough to:
  - exercise the whole scheduler (commands, reflexes, snapshots) end to end
  - let an external controller be developed against the file protocol
    without a game server.

`get_embodiment` is the single factory the runtime uses, so a networked
body can be slotted in later without touching the agent core.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from spec.types import Goal, GoalFollow, GoalNear, Vec3
from .core import EmbodimentError
from .testing.fakes import FakeEmbodiment

log = logging.getLogger(__name__)

WALK_SPEED = 4.3      # blocks per second
SPRINT_SPEED = 5.6


class SimulatedEmbodiment(FakeEmbodiment):
    """
    Flat-world body moving toward its goal.

    Goal semantics follow the usual pathfinder conventions:
      - static goals complete (goal_reached) and are dropped on arrival
      - dynamic goals (follow) keep tracking their entity
      - a follow goal whose entity vanished fails with path_failed
    """

    def __init__(self, position: Optional[Vec3] = None) -> None:
        super().__init__(position=position)
        self._arrived: Optional[asyncio.Future] = None

    # ------------------------------------------------------------------
    # Locomotion
    # ------------------------------------------------------------------

    def set_goal(self, goal: Optional[Goal], dynamic: bool = False) -> None:
        # A new goal interrupts a pending goto(), like a real pathfinder.
        if self._arrived is not None and not self._arrived.done():
            self._arrived.set_exception(
                EmbodimentError("goal_changed", {"reason": "goal was changed before arrival"})
            )
        self._arrived = None
        super().set_goal(goal, dynamic)

    async def goto(self, goal: Goal) -> None:
        self.set_goal(goal)
        loop = asyncio.get_running_loop()
        arrived = loop.create_future()
        self._arrived = arrived
        await arrived

    def advance(self, dt: float) -> None:
        """Move toward the current goal by one step of `dt` seconds."""
        goal = self.goal
        if goal is None:
            self.vel = Vec3(0.0, 0.0, 0.0)
            return

        target = self.goal_target(goal)
        if target is None:
            log.info("SimulatedEmbodiment: goal target vanished (%r)", goal)
            self._fail("noPath")
            return

        reach = 0.5
        if isinstance(goal, GoalNear):
            reach = max(reach, goal.range)
        elif isinstance(goal, GoalFollow):
            reach = max(reach, goal.distance)

        dx = target.x - self.pos.x
        dz = target.z - self.pos.z
        dist = (dx * dx + dz * dz) ** 0.5
        if dist <= reach:
            self.vel = Vec3(0.0, 0.0, 0.0)
            if not self.goal_dynamic:
                self._arrive()
            return

        speed = SPRINT_SPEED if self.controls.get("sprint") else WALK_SPEED
        step = min(dist, speed * dt)
        self.vel = Vec3(dx / dist * speed, 0.0, dz / dist * speed)
        self.pos = Vec3(self.pos.x + dx / dist * step, self.pos.y, self.pos.z + dz / dist * step)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _arrive(self) -> None:
        arrived = self._arrived
        self.goal = None
        self._arrived = None
        if arrived is not None and not arrived.done():
            arrived.set_result(None)
        self._notify("goal_reached")

    def _fail(self, status: str) -> None:
        arrived = self._arrived
        self.goal = None
        self._arrived = None
        if arrived is not None and not arrived.done():
            arrived.set_exception(EmbodimentError("path_failed", {"reason": status}))
        self._notify("path_failed", status)


def get_embodiment(profile: Optional[str] = None) -> SimulatedEmbodiment:
    """
    Factory for obtaining the body for the given profile.

    Parameters
    ----------
    profile:
        Name of the body profile. Ignored for now; kept so a networked
        implementation can be selected here later.
    """
    return SimulatedEmbodiment()
