#tests/test_monitoring_dashboard_tui.py
"""
Smoke tests for monitoring.dashboard_tui.TuiDashboard.

Covers:
- Layout builds cleanly with and without a snapshot
- Bus events land in the recent-events buffer
- Rendering functions do not crash
"""

from __future__ import annotations

from pathlib import Path

from monitoring.bus import EventBus
from monitoring.dashboard_tui import TuiDashboard
from monitoring.event_log import EventLog
from monitoring.events import EventType


SNAPSHOT = {
    "bot": {
        "position": {"x": 1, "y": 64, "z": -3},
        "health": 14.0,
        "healthTrend": "taking_damage",
        "food": 18.0,
    },
    "currentAction": {"type": "fleeing", "threat": "creeper"},
    "survival": {
        "isFleeing": True,
        "isEscapingWater": False,
        "isStuck": False,
        "isEating": False,
        "stuckTicks": 0,
        "stuckRetries": 0,
        "nearestThreat": {"name": "creeper", "distance": 9.5, "entityId": 4},
    },
    "combat": {"active": True, "mode": "melee", "target": "zombie", "entityId": 2, "hitsDealt": 3},
}


def test_dashboard_handles_events_and_renders(tmp_path: Path) -> None:
    bus = EventBus()
    dashboard = TuiDashboard(bus, state_provider=lambda: SNAPSHOT, max_events=3)
    events = EventLog(tmp_path / "events.json", bus=bus)

    events.append(EventType.FLEEING, {"threat": "creeper", "threatDistance": 9.5})
    events.append(EventType.COMMAND_RESULT, {"commandId": "c1", "success": True, "detail": "Mining iron"})
    events.append(EventType.HURT, {"health": 14.0})
    events.append(EventType.HURT, {"health": 12.0})

    recent = dashboard.recent_events()
    assert [e.id for e in recent] == [2, 3, 4]
    assert dashboard.event_counts() == {"fleeing": 1, "command_result": 1, "hurt": 2}

    layout = dashboard._build_layout()
    assert layout is not None

    # individual panels render without error
    dashboard._render_status_panel(SNAPSHOT)
    dashboard._render_reflex_panel(SNAPSHOT)
    dashboard._render_combat_panel(SNAPSHOT)
    dashboard._render_events_panel()


def test_dashboard_renders_without_snapshot() -> None:
    bus = EventBus()
    dashboard = TuiDashboard(bus)

    layout = dashboard._build_layout()

    assert layout is not None
    assert dashboard.recent_events() == []


def test_dashboard_close_unsubscribes(tmp_path: Path) -> None:
    bus = EventBus()
    dashboard = TuiDashboard(bus)
    events = EventLog(tmp_path / "events.json", bus=bus)

    dashboard.close()
    events.append(EventType.SPAWN, {})

    assert dashboard.recent_events() == []
