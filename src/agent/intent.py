# src/agent/intent.py
"""
The agent's single "current intent" register.

Exactly one ActionIntent (or None) is held at any time. Command handlers set
it when they start a multi-step action and clear it when they finish; the
reflexes overwrite it transiently and put the previous value back afterward.

Rules:
- The register stores *descriptors* (Goto x/y/z, Follow username/distance,
  ...), never live pathfinding handles. A restored intent is rebuilt into a
  fresh movement goal by resume_intent(), with fresh entity lookups.
- One backup slot. save() while the slot is occupied keeps the original
  backup, so nested interruptions restore the intent that was active before
  the first one, exactly once.
- Long-running handlers hold a CancellationToken obtained from begin() and
  poll it after each world-mutating step.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Dict, Optional

from spec.embodiment import Embodiment
from spec.types import Goal, GoalBlock, GoalFollow, GoalNear, GoalXZ

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Intent variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActionIntent:
    """Base class for all intent variants; `kind` is the wire tag."""

    kind: ClassVar[str] = "none"
    # Whether the agent is expected to be displacing while this is active.
    expects_motion: ClassVar[bool] = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind}
        data.update(asdict(self))
        return data

    def to_goal(self) -> Optional[Goal]:
        """Movement goal rebuilt from this descriptor, if it is pure locomotion."""
        return None


@dataclass(frozen=True)
class Goto(ActionIntent):
    kind: ClassVar[str] = "goto"
    expects_motion: ClassVar[bool] = True

    x: int
    y: int
    z: int

    def to_goal(self) -> Goal:
        return GoalBlock(self.x, self.y, self.z)


@dataclass(frozen=True)
class Follow(ActionIntent):
    kind: ClassVar[str] = "follow"
    expects_motion: ClassVar[bool] = True

    username: str
    distance: float = 2.0


@dataclass(frozen=True)
class GotoBlock(ActionIntent):
    kind: ClassVar[str] = "goto_block"
    expects_motion: ClassVar[bool] = True

    block_type: str
    x: int
    y: int
    z: int

    def to_goal(self) -> Goal:
        return GoalNear(self.x, self.y, self.z, 1.0)


@dataclass(frozen=True)
class Wander(ActionIntent):
    kind: ClassVar[str] = "wander"
    expects_motion: ClassVar[bool] = True

    x: int
    z: int

    def to_goal(self) -> Goal:
        return GoalXZ(self.x, self.z)


@dataclass(frozen=True)
class Mining(ActionIntent):
    kind: ClassVar[str] = "mining"

    resource: str
    count: int
    mined: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["progress"] = f"{self.mined}/{self.count}"
        return data


@dataclass(frozen=True)
class Digging(ActionIntent):
    kind: ClassVar[str] = "dig"

    block_type: str


@dataclass(frozen=True)
class Building(ActionIntent):
    kind: ClassVar[str] = "building"

    template: str


@dataclass(frozen=True)
class Smelting(ActionIntent):
    kind: ClassVar[str] = "smelting"

    item: str
    count: int


@dataclass(frozen=True)
class Fishing(ActionIntent):
    kind: ClassVar[str] = "fishing"


@dataclass(frozen=True)
class Attacking(ActionIntent):
    kind: ClassVar[str] = "attack"

    target: str
    entity_id: int


@dataclass(frozen=True)
class RangedCombat(ActionIntent):
    kind: ClassVar[str] = "ranged_combat"

    target: str
    entity_id: int


@dataclass(frozen=True)
class Fleeing(ActionIntent):
    kind: ClassVar[str] = "fleeing"
    expects_motion: ClassVar[bool] = True

    threat: str
    threat_distance: float
    target: Dict[str, int] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class EscapingWater(ActionIntent):
    kind: ClassVar[str] = "escaping_water"

    target: Optional[Dict[str, int]] = field(default=None, compare=False, hash=False)


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class CancellationToken:
    """Cooperative stop flag polled by long-running handlers at safe points."""

    __slots__ = ("_cancelled", "reason")

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------


class ActionRegister:
    """
    Single mutable slot holding the agent's current high-level intent.

    Writers are cooperative tasks on one thread, so access is last-write-wins;
    there is no locking. A reflex that interrupts an intent must save() before
    overwriting and restore() when it is done.
    """

    def __init__(self) -> None:
        self._current: Optional[ActionIntent] = None
        self._saved: Optional[ActionIntent] = None
        self._has_saved: bool = False
        self._token: Optional[CancellationToken] = None

    # ------------------------------------------------------------------
    # Basic slot
    # ------------------------------------------------------------------

    def get(self) -> Optional[ActionIntent]:
        return self._current

    def set(self, intent: Optional[ActionIntent]) -> None:
        self._current = intent

    def clear(self) -> None:
        self._current = None

    # ------------------------------------------------------------------
    # Backup slot
    # ------------------------------------------------------------------

    def save(self) -> bool:
        """
        Back up the current intent (None included).

        Returns False and keeps the existing backup when one is already held.
        """
        if self._has_saved:
            return False
        self._saved = self._current
        self._has_saved = True
        return True

    def restore(self) -> Optional[ActionIntent]:
        """Write the backup back into the register, empty the slot, return it."""
        if not self._has_saved:
            return self._current
        intent = self._saved
        self._saved = None
        self._has_saved = False
        self._current = intent
        return intent

    def discard_saved(self) -> None:
        self._saved = None
        self._has_saved = False

    @property
    def preempted(self) -> bool:
        """True while a reflex holds the register on someone else's behalf."""
        return self._has_saved

    @property
    def saved(self) -> Optional[ActionIntent]:
        return self._saved

    # ------------------------------------------------------------------
    # Command ownership / cancellation
    # ------------------------------------------------------------------

    def begin(self, intent: ActionIntent) -> CancellationToken:
        """
        Start a command-driven action: set the intent and issue a new token.

        A previously running long action is signalled to stop at its next
        checkpoint; only one command flow holds the intent at a time.

        While a reflex holds the register the new intent replaces the backup,
        so the reflex hands back the newest command when its episode ends.
        """
        if self._token is not None:
            self._token.cancel("superseded")
        token = CancellationToken()
        self._token = token
        if self.preempted:
            self._saved = intent
        else:
            self._current = intent
        return token

    def update(self, token: CancellationToken, intent: ActionIntent) -> bool:
        """Progress update from the flow owning `token`; ignored otherwise."""
        if not self.owns(token) or self.preempted:
            return False
        self._current = intent
        return True

    def owns(self, token: Optional[CancellationToken]) -> bool:
        return token is not None and token is self._token and not token.cancelled

    def finish(self, token: CancellationToken) -> None:
        """Terminal success/failure of the flow owning `token`."""
        if token is self._token:
            self._token = None
            if self.preempted:
                # the interrupting reflex must restore "nothing", not a finished action
                self._saved = None
            else:
                self._current = None

    def cancel(self, reason: str = "cancelled") -> Optional[ActionIntent]:
        """Signal the running long action (if any) and clear everything."""
        previous = self._current
        if self._token is not None:
            self._token.cancel(reason)
            self._token = None
        self._current = None
        if self.preempted:
            previous = self._saved
            self._saved = None
        return previous


# ---------------------------------------------------------------------------
# Reconstruction
# ---------------------------------------------------------------------------


def resume_intent(intent: Optional[ActionIntent], body: Embodiment, follow_distance: float = 2.0) -> bool:
    """
    Reissue the movement goal for a restored intent.

    Goals are rebuilt from the descriptor with fresh lookups. Returns False when
    the intent can no longer be rebuilt (e.g. the followed player is gone);
    intents driven by their own handler loop (mining, combat) return True and
    are left to that loop.
    """
    if intent is None:
        body.set_goal(None)
        return True

    if isinstance(intent, Follow):
        player = body.player(intent.username)
        if player is None:
            log.info("resume_intent: follow target %s no longer visible", intent.username)
            return False
        body.set_goal(GoalFollow(player.entity_id, intent.distance or follow_distance), dynamic=True)
        return True

    goal = intent.to_goal()
    if goal is not None:
        body.set_goal(goal)
    return True
