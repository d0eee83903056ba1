# src/agent/runtime.py
"""
AgentRuntime: composition root of the agent core.

Owns one instance of each collaborator (Event Log, Action Register, combat
manager, reflex arbiter, command channel, snapshot builder), wires the
body's notifications into them and runs the periodic tasks on a single
asyncio loop:

    snapshot   every timing.state_interval_ms
    commands   every timing.command_poll_ms
    reflexes   every timing.reflex_interval_ms
    body pump  optional, for in-process bodies that need stepping

Each periodic callback goes through runtime.error_handling.safe_tick, so a
failing tick is logged and recorded but never stops the loop.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Callable, List, Optional

from env.schema import AgentConfig
from monitoring.bus import EventBus
from monitoring.event_log import EventLog
from monitoring.events import EventType
from runtime.error_handling import run_periodic
from spec.embodiment import Embodiment

from .combat import CombatManager
from .commands import CommandChannel
from .handlers import build_command_table
from .intent import ActionRegister
from .manifest import write_manifest
from .reflexes import ReflexArbiter
from .snapshot import SnapshotBuilder

log = logging.getLogger(__name__)

# Health below which a `danger` event accompanies `hurt`.
DANGER_HEALTH = 10.0

PumpFn = Callable[[float], None]


class AgentRuntime:
    def __init__(
        self,
        body: Embodiment,
        config: AgentConfig,
        *,
        bus: Optional[EventBus] = None,
        pump: Optional[PumpFn] = None,
        pump_interval_s: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.body = body
        self.config = config
        self.pump = pump
        self.pump_interval_s = pump_interval_s

        self.events = EventLog(config.paths.events_file, capacity=config.event_log.capacity, bus=bus)
        self.register = ActionRegister()
        self.combat = CombatManager(
            body=body, events=self.events, register=self.register, config=config, clock=clock
        )
        self.arbiter = ReflexArbiter(
            body=body,
            events=self.events,
            register=self.register,
            config=config,
            combat=self.combat,
            clock=clock,
            rng=rng,
        )
        self.commands = build_command_table()
        self.channel = CommandChannel(
            config.paths.commands_file,
            events=self.events,
            register=self.register,
            body=body,
            combat=self.combat,
            config=config,
            commands=self.commands,
        )
        self.snapshots = SnapshotBuilder(
            body=body,
            events=self.events,
            register=self.register,
            config=config,
            arbiter=self.arbiter,
            combat=self.combat,
        )

        self._stop: Optional[asyncio.Event] = None
        self._stop_reason: Optional[str] = None
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Reload persisted events, publish the manifest, wire notifications."""
        if self._started:
            return
        self._started = True

        self.events.reload()
        log.info("Event log reloaded: %d events, latest id %d", len(self.events), self.events.latest_id())
        write_manifest(self.commands, self.config)

        body = self.body
        body.on("goal_reached", self._on_goal_reached)
        body.on("path_failed", self._on_path_failed)
        body.on("damage", self._on_damage)
        body.on("death", self._on_death)
        body.on("chat", self._on_chat)
        body.on("disconnect", self._on_disconnect)
        body.on("kicked", self._on_kicked)

        self.events.append(EventType.SPAWN, {"position": body.position().floored().to_dict()})

    async def run(self, stop: Optional[asyncio.Event] = None) -> Optional[str]:
        """
        Run the periodic tasks until `stop` is set or the body disconnects.

        Returns the disconnect/kick reason, or None for a requested stop.
        """
        self.start()
        self._stop = stop if stop is not None else asyncio.Event()
        if self._stop_reason is not None:
            self._stop.set()
        timing = self.config.timing

        periodic: List[Any] = [
            run_periodic(self.snapshots.write, timing.state_interval_ms / 1000.0, self.events, "snapshot", self._stop),
            run_periodic(self.channel.poll, timing.command_poll_ms / 1000.0, self.events, "commands", self._stop),
            run_periodic(self.arbiter.tick, timing.reflex_interval_ms / 1000.0, self.events, "reflexes", self._stop),
        ]
        if self.pump is not None:
            interval = self.pump_interval_s
            pump = self.pump
            periodic.append(
                run_periodic(lambda: pump(interval), interval, self.events, "body", self._stop)
            )

        log.info("Agent runtime running (%d periodic tasks)", len(periodic))
        try:
            await asyncio.gather(*periodic)
        finally:
            self.shutdown()
        return self._stop_reason

    def request_stop(self, reason: Optional[str] = None) -> None:
        if reason is not None and self._stop_reason is None:
            self._stop_reason = reason
        if self._stop is not None:
            self._stop.set()

    def shutdown(self) -> None:
        self.combat.stop("shutdown")
        self.arbiter.reset()
        self.channel.cancel_all()
        self.snapshots.write()
        log.info("Agent runtime stopped")

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _clear_finished_motion(self) -> None:
        # Reflex-held intents and handler-driven loops manage themselves.
        current = self.register.get()
        if self.register.preempted or current is None or not current.expects_motion:
            return
        self.register.clear()

    def _on_goal_reached(self, *_args: Any) -> None:
        self.events.append(EventType.GOAL_REACHED, {})
        self._clear_finished_motion()

    def _on_path_failed(self, status: Any = None, *_args: Any) -> None:
        self.events.append(EventType.PATH_FAILED, {"status": status})
        self._clear_finished_motion()

    def _on_damage(self, *_args: Any) -> None:
        vitals = self.body.vitals()
        self.events.append(EventType.HURT, {"health": vitals.health})
        if vitals.health < DANGER_HEALTH:
            self.events.append(
                EventType.DANGER,
                {"reason": "low_health", "health": vitals.health, "food": vitals.food},
            )

    def _on_death(self, *_args: Any) -> None:
        self.events.append(EventType.DEATH, {"position": self.body.position().floored().to_dict()})
        self.combat.stop("death")
        self.register.cancel("death")
        self.arbiter.reset()

    def _on_chat(self, username: str, message: str, *_args: Any) -> None:
        self.events.append(EventType.CHAT, {"username": username, "message": message})

    def _on_disconnect(self, reason: Any = None, *_args: Any) -> None:
        log.warning("Body disconnected: %s", reason)
        self.events.append(EventType.DISCONNECT, {"reason": str(reason) if reason is not None else None})
        self.request_stop(f"disconnect: {reason}")

    def _on_kicked(self, reason: Any = None, *_args: Any) -> None:
        log.warning("Body was kicked: %s", reason)
        self.events.append(EventType.KICKED, {"reason": str(reason) if reason is not None else None})
        self.request_stop(f"kicked: {reason}")
