# Path: src/agent/commands.py
"""
Command channel: the at-most-once inbound path from the external controller.

Protocol:
- The controller writes a JSON array of `{id?, action, ...params}` objects to
  commands.json.
- poll() reads it; absent, blank, `[]` or unparseable content is a no-op
  (a producer may be mid-write). A successfully parsed batch is replaced by
  `[]` *before* anything is dispatched, so a slow or crashing handler is
  never re-delivered.
- Each command runs as its own asyncio task; one long handler never blocks
  polling or the rest of the batch.

Reporting contract:
- unknown action  -> one failing command_result listing every known action
- known action    -> command_received first, then the handler, which appends
                     its own terminal command_result
- handler raised  -> one failing command_result built here (safety net)
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Set,
)

from env.schema import AgentConfig
from monitoring.event_log import EventLog, atomic_write_text
from monitoring.events import Event, EventType
from spec.embodiment import Embodiment
from spec.types import Goal

from .intent import ActionIntent, ActionRegister, CancellationToken

if TYPE_CHECKING:
    from .combat import CombatManager

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Command + errors
# ---------------------------------------------------------------------------


class InvalidParams(ValueError):
    """A required command parameter is missing or has the wrong type."""


@dataclass
class Command:
    """One entry of an inbound batch. Ephemeral: lives for one dispatch."""

    action: Optional[str]
    params: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Command":
        params = {k: v for k, v in raw.items() if k not in ("id", "action")}
        action = raw.get("action")
        cmd_id = raw.get("id")
        return cls(
            action=str(action) if action is not None else None,
            params=params,
            id=str(cmd_id) if cmd_id is not None else None,
        )

    # ------------------------------------------------------------------
    # Parameter helpers
    # ------------------------------------------------------------------

    def get(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)

    def require(self, name: str) -> Any:
        value = self.params.get(name)
        if value is None or value == "":
            raise InvalidParams(f"missing required parameter '{name}'")
        return value

    def number(self, name: str, default: Optional[float] = None) -> float:
        value = self.params.get(name, default)
        if value is None:
            raise InvalidParams(f"missing required parameter '{name}'")
        if isinstance(value, bool):
            raise InvalidParams(f"parameter '{name}' must be a number")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise InvalidParams(f"parameter '{name}' must be a number") from None


# ---------------------------------------------------------------------------
# Handler plumbing
# ---------------------------------------------------------------------------


Handler = Callable[["HandlerContext", Command], Awaitable[None]]


@dataclass(frozen=True)
class CommandSpec:
    """A registered command: its coroutine plus manifest metadata."""

    name: str
    handler: Handler
    category: str
    description: str
    params: Dict[str, str] = field(default_factory=dict)


@dataclass
class HandlerContext:
    """
    Everything a handler may touch, scoped to one command.

    `token` is set by begin() and lets the dispatch boundary tell whether
    the register still holds the intent this command started.
    """

    body: Embodiment
    events: EventLog
    register: ActionRegister
    combat: "CombatManager"
    config: AgentConfig
    command: Command
    token: Optional[CancellationToken] = None

    def begin(self, intent: ActionIntent) -> CancellationToken:
        self.token = self.register.begin(intent)
        return self.token

    def steer(self, goal: Optional[Goal], dynamic: bool = False) -> bool:
        """
        Point the body at `goal` unless a reflex currently owns movement.

        A preempted command's goal is reissued from its intent on restore.
        """
        if self.register.preempted:
            return False
        self.body.set_goal(goal, dynamic=dynamic)
        return True

    def finish(self) -> None:
        if self.token is not None:
            self.register.finish(self.token)

    def result(self, success: bool, detail: str, **extra: Any) -> Event:
        """Append this command's terminal command_result."""
        payload: Dict[str, Any] = {
            "commandId": self.command.id,
            "success": success,
            "detail": detail,
        }
        payload.update(extra)
        return self.events.append(EventType.COMMAND_RESULT, payload)

    def emit(self, event_type: Any, **payload: Any) -> Event:
        return self.events.append(event_type, payload)

    async def wait_while_preempted(self, poll_s: float = 0.25) -> None:
        """Yield until no reflex is holding the register (or we're cancelled)."""
        while self.register.preempted and not (self.token is not None and self.token.cancelled):
            await asyncio.sleep(poll_s)


# ---------------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------------


class CommandChannel:
    """
    Polls commands.json and dispatches each command to its handler.

    The handler table is resolved once at construction; lookups are plain
    dict hits with an explicit unknown-action branch.
    """

    def __init__(
        self,
        path: Path,
        *,
        events: EventLog,
        register: ActionRegister,
        body: Embodiment,
        combat: "CombatManager",
        config: AgentConfig,
        commands: Mapping[str, CommandSpec],
    ) -> None:
        self._path = Path(path)
        self._events = events
        self._register = register
        self._body = body
        self._combat = combat
        self._config = config
        self._commands: Dict[str, CommandSpec] = dict(commands)
        self._tasks: Set["asyncio.Task[None]"] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def known_actions(self) -> List[str]:
        return list(self._commands)

    def poll(self) -> List["asyncio.Task[None]"]:
        """
        Read and clear the inbound batch, then dispatch it.

        Must be called from inside a running event loop. Returns the tasks
        created for this batch (empty for a no-op poll).
        """
        batch = self._read_batch()
        if batch is None:
            return []

        if not isinstance(batch, list) or not batch:
            return []

        loop = asyncio.get_running_loop()
        created: List["asyncio.Task[None]"] = []
        for raw in batch:
            log.info("Executing command: %s", raw.get("action") if isinstance(raw, dict) else raw)
            task = loop.create_task(self.execute(raw))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            created.append(task)
        return created

    async def execute(self, raw: Any) -> None:
        """Dispatch one raw batch entry; never raises."""
        if not isinstance(raw, Mapping):
            self._events.append(
                EventType.COMMAND_RESULT,
                {"commandId": None, "success": False, "detail": f"Malformed command: {raw!r}"},
            )
            return

        cmd = Command.from_mapping(raw)
        spec = self._commands.get(cmd.action) if cmd.action is not None else None
        if spec is None:
            self._events.append(
                EventType.COMMAND_RESULT,
                {
                    "commandId": cmd.id,
                    "success": False,
                    "detail": f"Unknown action: {cmd.action}",
                    "hint": f"Available actions: {', '.join(self._commands)}",
                },
            )
            return

        ctx = HandlerContext(
            body=self._body,
            events=self._events,
            register=self._register,
            combat=self._combat,
            config=self._config,
            command=cmd,
        )

        # Ack first so a long handler is visibly in flight.
        self._events.append(EventType.COMMAND_RECEIVED, {"commandId": cmd.id, "action": cmd.action})
        try:
            await spec.handler(ctx, cmd)
        except asyncio.CancelledError:
            raise
        except InvalidParams as exc:
            self._fail(ctx, cmd, f"Invalid parameters: {exc}", "InvalidParams")
        except Exception as exc:
            log.exception("Handler for %s raised", cmd.action)
            self._fail(ctx, cmd, f"Error: {exc}", type(exc).__name__)

    async def drain(self) -> None:
        """Wait for every in-flight command task (tests / shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_batch(self) -> Optional[Any]:
        try:
            if not self._path.exists():
                return None
            data = self._path.read_bytes()
        except OSError as exc:
            log.warning("Command poll could not read %s: %s", self._path, exc)
            return None

        try:
            raw = data.decode("utf-8").strip()
            if not raw or raw == "[]":
                return None
            batch = json.loads(raw)
        except ValueError:
            # Partial write or bad encoding from the producer; try again next poll.
            return None

        # Clear before dispatch: at most one delivery attempt per batch.
        atomic_write_text(self._path, "[]")
        return batch

    def _fail(self, ctx: HandlerContext, cmd: Command, detail: str, error_type: str) -> None:
        if ctx.token is not None and self._register.owns(ctx.token):
            ctx.finish()
        self._events.append(
            EventType.COMMAND_RESULT,
            {
                "commandId": cmd.id,
                "success": False,
                "detail": detail,
                "action": cmd.action,
                "errorType": error_type,
            },
        )
