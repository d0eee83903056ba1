# src/agent/combat.py
"""
Combat sessions: one higher-frequency tick loop per engagement.

- melee  (every melee_tick_ms, default 250 ms): close the distance with a
  dynamic follow goal, strike when within reach.
- ranged (every ranged_tick_ms, default 1500 ms): keep the target inside the
  [ranged_min, ranged_max] band, otherwise aim, draw, hold and release.

A session ends when the target vanishes, health drops under the mode's
retreat threshold (one-shot retreat goal away from the target first), the
ranged mode runs out of arrows, or its cancellation token fires. Teardown
clears the Action Register only when it still holds this session's intent.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

from bot_core.core import EmbodimentError
from env.schema import AgentConfig
from monitoring.event_log import EventLog
from monitoring.events import EventType
from spec.embodiment import Embodiment
from spec.types import EntityInfo, GoalFollow, GoalNear, GoalXZ

from .intent import ActionRegister, Attacking, CancellationToken, RangedCombat
from .perception import away_from

log = logging.getLogger(__name__)

MELEE = "melee"
RANGED = "ranged"


def has_arrows(body: Embodiment) -> bool:
    return any("arrow" in s.name and s.count > 0 for s in body.inventory())


class CombatSession:
    """One engagement against one entity. Owned by CombatManager."""

    def __init__(
        self,
        *,
        body: Embodiment,
        events: EventLog,
        register: ActionRegister,
        config: AgentConfig,
        target: EntityInfo,
        mode: str,
        token: CancellationToken,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if mode not in (MELEE, RANGED):
            raise ValueError(f"Unknown combat mode: {mode!r}")
        self.body = body
        self.events = events
        self.register = register
        self.config = config
        self.target_id = target.entity_id
        self.target_name = target.name
        self.mode = mode
        self.token = token
        self._clock = clock
        self.started_at = clock()
        self.strikes = 0
        self.active = True
        self.end_reason: Optional[str] = None
        self._drawing = False

    @property
    def interval(self) -> float:
        timing = self.config.timing
        ms = timing.melee_tick_ms if self.mode == MELEE else timing.ranged_tick_ms
        return ms / 1000.0

    @property
    def elapsed(self) -> float:
        return self._clock() - self.started_at

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def delay_after(self, tick_seconds: float) -> float:
        """Sleep before the next tick so ticks start every `interval` seconds."""
        return max(0.0, self.interval - tick_seconds)

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            while self.active:
                tick_started = loop.time()
                if self.token.cancelled:
                    self.end(self.token.reason or "cancelled")
                    break
                try:
                    await self.tick()
                except EmbodimentError as exc:
                    self.end(f"error: {exc}")
                except Exception:
                    log.exception("Combat tick failed (%s vs %s)", self.mode, self.target_name)
                    self.end("error")
                if not self.active:
                    break
                # a ranged tick already spent draw_seconds of the interval
                await asyncio.sleep(self.delay_after(loop.time() - tick_started))
        finally:
            if self._drawing:
                self._drawing = False
                self.body.deactivate_item()

    async def tick(self) -> None:
        if self.mode == MELEE:
            self._melee_tick()
        else:
            await self._ranged_tick()

    def _melee_tick(self) -> None:
        cfg = self.config.combat
        target = self.body.entity(self.target_id)
        if target is None:
            self.end("target_gone")
            return

        distance = self.body.position().distance_to(target.position)
        if distance < cfg.melee_reach:
            self.body.attack(target.entity_id)
            self.strikes += 1
        else:
            self.body.set_goal(GoalFollow(target.entity_id, cfg.follow_distance), dynamic=True)

        health = self.body.vitals().health
        if health < cfg.melee_retreat_health:
            self._retreat(target, cfg.retreat_scale_melee, health)

    async def _ranged_tick(self) -> None:
        cfg = self.config.combat
        target = self.body.entity(self.target_id)
        if target is None:
            self.end("target_gone")
            return

        here = self.body.position()
        distance = here.distance_to(target.position)
        if distance < cfg.ranged_min:
            back = away_from(here, target.position, 1.0).floored()
            self.body.set_goal(GoalNear(back.x, here.y, back.z, 1.0), dynamic=True)
        elif distance > cfg.ranged_max:
            p = target.position
            self.body.set_goal(GoalNear(p.x, p.y, p.z, cfg.ranged_approach_range), dynamic=True)
        else:
            self.body.set_goal(None)
            await self.body.look_at(target.position.offset(0, target.height or 1.6, 0), True)
            self.body.activate_item()
            self._drawing = True
            await asyncio.sleep(cfg.draw_seconds)
            self._drawing = False
            self.body.deactivate_item()
            self.strikes += 1
            self.events.append(
                EventType.ARROW_SHOT,
                {"target": self.target_name, "distance": int(distance)},
            )
            if not self.active:
                return
            # the draw suspended us; the target may have moved or despawned
            target = self.body.entity(self.target_id)
            if target is None:
                self.end("target_gone")
                return

        health = self.body.vitals().health
        if health < cfg.ranged_retreat_health:
            self._retreat(target, cfg.retreat_scale_ranged, health)
            return

        if not has_arrows(self.body):
            self.end("out_of_ammo")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def _retreat(self, target: EntityInfo, scale: float, health: float) -> None:
        self.events.append(
            EventType.COMBAT_RETREAT,
            {"health": health, "reason": "low_health", "mode": self.mode, "target": self.target_name},
        )
        self.end("retreat", clear_goal=False)
        flee = away_from(self.body.position(), target.position, scale).floored()
        self.body.set_goal(GoalXZ(int(flee.x), int(flee.z)))

    def end(self, reason: str, clear_goal: bool = True) -> None:
        """Tear the session down once; later calls are no-ops."""
        if not self.active:
            return
        self.active = False
        self.end_reason = reason
        self.events.append(
            EventType.COMBAT_ENDED,
            {
                "reason": reason,
                "target": self.target_name,
                "mode": self.mode,
                "hitsDealt": self.strikes,
                "elapsed": int(self.elapsed),
            },
        )
        if clear_goal:
            self.body.set_goal(None)
        # no-op unless the register still holds this session's intent
        self.register.finish(self.token)
        log.info("Combat %s vs %s ended: %s", self.mode, self.target_name, reason)

    def state(self) -> Dict[str, Any]:
        return {
            "active": self.active,
            "mode": self.mode,
            "target": self.target_name,
            "entityId": self.target_id,
            "elapsed": round(self.elapsed, 1),
            "hitsDealt": self.strikes,
        }


class CombatManager:
    """Holds at most one CombatSession; a new engagement replaces the old one."""

    def __init__(
        self,
        *,
        body: Embodiment,
        events: EventLog,
        register: ActionRegister,
        config: AgentConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._body = body
        self._events = events
        self._register = register
        self._config = config
        self._clock = clock
        self._session: Optional[CombatSession] = None
        self._task: Optional["asyncio.Task[None]"] = None

    @property
    def session(self) -> Optional[CombatSession]:
        return self._session

    @property
    def active(self) -> bool:
        return self._session is not None and self._session.active

    async def start(self, target: EntityInfo, mode: str, *, run: bool = True) -> CombatSession:
        """
        Begin an engagement against `target`.

        With run=False the session is created but not scheduled; callers
        drive it with `session.tick()` (tests do this).
        """
        self.stop("replaced")

        if mode == MELEE:
            await self._equip_best_weapon()
            intent = Attacking(target.name, target.entity_id)
        else:
            intent = RangedCombat(target.name, target.entity_id)

        token = self._register.begin(intent)
        session = CombatSession(
            body=self._body,
            events=self._events,
            register=self._register,
            config=self._config,
            target=target,
            mode=mode,
            token=token,
            clock=self._clock,
        )
        self._session = session
        self._events.append(
            EventType.COMBAT_STARTED,
            {"target": target.name, "entityId": target.entity_id, "mode": mode},
        )
        if run:
            self._task = asyncio.get_running_loop().create_task(session.run())
        return session

    def stop(self, reason: str = "stopped") -> bool:
        """End the active session, if any. Returns whether one was running."""
        session, task = self._session, self._task
        self._session, self._task = None, None
        if task is not None and not task.done():
            task.cancel()
        if session is None or not session.active:
            return False
        session.end(reason)
        return True

    def state(self) -> Dict[str, Any]:
        session = self._session
        if session is None or not session.active:
            return {"active": False}
        return session.state()

    async def _equip_best_weapon(self) -> Optional[str]:
        names = {s.name for s in self._body.inventory()}
        for weapon in self._config.combat.weapon_priority:
            if weapon in names:
                try:
                    await self._body.equip(weapon, "hand")
                except EmbodimentError as exc:
                    log.info("Could not equip %s: %s", weapon, exc)
                return weapon
        return None
