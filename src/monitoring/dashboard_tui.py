# rich-based TUI dashboard
# src/monitoring/dashboard_tui.py
"""
TUI dashboard for the agent body.

A lightweight terminal UI (using `rich`) that subscribes to the EventBus and
renders:

- Body status:
    - Position, health (with trend), food
    - Current action

- Reflexes:
    - Fleeing / escaping water / stuck flags
    - Nearest threat

- Combat:
    - Active session mode, target, hits

- Recent events:
    - The last few events with id, type and a short payload summary

Body/reflex/combat panels read the most recent state snapshot through a
provider callable (usually SnapshotBuilder.last); the event panel is fed by
the bus. Runs in a background thread; no web server, no external services.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .bus import EventBus
from .events import Event, EventType

StateProvider = Callable[[], Optional[Dict[str, Any]]]

# Events highlighted in the recent-events table.
EVENT_STYLES: Dict[str, str] = {
    EventType.DEATH.value: "bold red",
    EventType.DANGER.value: "red",
    EventType.HURT.value: "red",
    EventType.FLEEING.value: "yellow",
    EventType.SWIMMING_TO_LAND.value: "yellow",
    EventType.STUCK.value: "yellow",
    EventType.ERROR.value: "bold red",
    EventType.COMMAND_RESULT.value: "cyan",
}


# ============================================================
# TUI Dashboard
# ============================================================

class TuiDashboard:
    """
    Live terminal dashboard bound to a monitoring.EventBus.

    Bus callbacks arrive on the runtime thread while rendering happens on the
    dashboard thread, so the recent-event buffer is guarded by a lock.
    """

    def __init__(
        self,
        bus: EventBus,
        state_provider: Optional[StateProvider] = None,
        max_events: int = 12,
    ) -> None:
        self._bus = bus
        self._state_provider = state_provider
        self._console = Console()
        self._lock = threading.Lock()
        self._recent: Deque[Event] = deque(maxlen=max_events)
        self._counts: Dict[str, int] = {}
        self._bus.subscribe(self._on_event)

    # --------------------------------------------------------
    # Event handler
    # --------------------------------------------------------

    def _on_event(self, event: Event) -> None:
        """Cheap and non-blocking; rendering happens elsewhere."""
        with self._lock:
            self._recent.append(event)
            self._counts[event.type] = self._counts.get(event.type, 0) + 1

    def recent_events(self):
        with self._lock:
            return list(self._recent)

    def event_counts(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def close(self) -> None:
        self._bus.unsubscribe(self._on_event)

    # --------------------------------------------------------
    # Rendering helpers
    # --------------------------------------------------------

    def _snapshot(self) -> Dict[str, Any]:
        if self._state_provider is None:
            return {}
        return self._state_provider() or {}

    def _render_status_panel(self, snap: Dict[str, Any]) -> Panel:
        bot = snap.get("bot") or {}
        pos = bot.get("position") or {}
        action = snap.get("currentAction")

        txt = Text()
        txt.append("Position: ", style="bold")
        if pos:
            txt.append(f"{pos.get('x')}, {pos.get('y')}, {pos.get('z')}\n")
        else:
            txt.append("<unknown>\n")
        txt.append("Health: ", style="bold")
        txt.append(f"{bot.get('health', '-')} ({bot.get('healthTrend', '-')})   ")
        txt.append("Food: ", style="bold")
        txt.append(f"{bot.get('food', '-')}\n")
        txt.append("Action: ", style="bold")
        txt.append(f"{action.get('type') if action else '<none>'}")
        return Panel(txt, title="Body Status", border_style="cyan")

    def _render_reflex_panel(self, snap: Dict[str, Any]) -> Panel:
        survival = snap.get("survival") or {}
        table = Table.grid(pad_edge=False)
        table.add_column(justify="left")

        flags = [
            name for key, name in (
                ("isEscapingWater", "escaping water"),
                ("isFleeing", "fleeing"),
                ("isStuck", "stuck"),
                ("isEating", "eating"),
            )
            if survival.get(key)
        ]
        table.add_row(f"[bold]Active:[/bold] {', '.join(flags) if flags else '<idle>'}")
        table.add_row(
            f"[bold]Stuck ticks:[/bold] {survival.get('stuckTicks', 0)}  "
            f"[bold]retries:[/bold] {survival.get('stuckRetries', 0)}"
        )
        threat = survival.get("nearestThreat")
        if threat:
            table.add_row(f"[bold]Threat:[/bold] {threat.get('name')} @ {threat.get('distance')}")
        else:
            table.add_row("[bold]Threat:[/bold] <none>")
        return Panel(table, title="Reflexes", border_style="green")

    def _render_combat_panel(self, snap: Dict[str, Any]) -> Panel:
        combat = snap.get("combat") or {}
        table = Table.grid()
        table.add_column(justify="left")
        if combat.get("active"):
            table.add_row(f"[bold]Mode:[/bold] {combat.get('mode')}")
            table.add_row(f"[bold]Target:[/bold] {combat.get('target')} (#{combat.get('entityId')})")
            table.add_row(f"[bold]Hits:[/bold] {combat.get('hitsDealt', 0)}")
        else:
            table.add_row("[bold green]No engagement.[/bold green]")
        return Panel(table, title="Combat", border_style="magenta")

    def _render_events_panel(self) -> Panel:
        table = Table(show_header=True, header_style="bold yellow")
        table.add_column("ID", justify="right", width=6)
        table.add_column("Type", width=18)
        table.add_column("Detail")

        events = self.recent_events()
        if not events:
            table.add_row("-", "<none>", "")
        for event in reversed(events):
            detail = event.payload.get("detail")
            if detail is None:
                detail = ", ".join(f"{k}={v}" for k, v in list(event.payload.items())[:3])
            table.add_row(
                str(event.id),
                Text(event.type, style=EVENT_STYLES.get(event.type, "")),
                Text(str(detail)),  # plain text: payloads may contain [brackets]
            )
        return Panel(table, title="Recent Events", border_style="yellow")

    def _build_layout(self) -> Layout:
        snap = self._snapshot()
        layout = Layout()

        layout.split(
            Layout(name="top", size=5),
            Layout(name="middle", size=7),
            Layout(name="bottom", ratio=1),
        )
        layout["top"].update(self._render_status_panel(snap))
        layout["middle"].split_row(
            Layout(name="reflexes"),
            Layout(name="combat"),
        )
        layout["reflexes"].update(self._render_reflex_panel(snap))
        layout["combat"].update(self._render_combat_panel(snap))
        layout["bottom"].update(self._render_events_panel())
        return layout

    # --------------------------------------------------------
    # Main loop
    # --------------------------------------------------------

    def run(self, refresh_per_second: float = 4.0, stop: Optional[threading.Event] = None) -> None:
        """
        Run the TUI render loop until `stop` is set.

        This blocks the current thread. Use a separate thread if needed.
        """
        refresh_delay = 1.0 / max(refresh_per_second, 0.1)
        with Live(self._build_layout(), console=self._console, refresh_per_second=refresh_per_second) as live:
            while stop is None or not stop.is_set():
                live.update(self._build_layout())
                time.sleep(refresh_delay)
