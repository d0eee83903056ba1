# tests/test_event_log.py
"""
Tests for monitoring.event_log.EventLog.

Covers:
- id assignment and wire format
- capacity trimming (oldest first)
- persistence after every append
- reload resuming the counter from the maximum stored id
- tolerance of missing / corrupt storage
- bus fan-out
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List

from monitoring.bus import EventBus
from monitoring.event_log import EventLog, atomic_write_text
from monitoring.events import Event, EventType


def test_append_assigns_increasing_ids_and_flattens_payload(tmp_path: Path) -> None:
    log = EventLog(tmp_path / "events.json", clock=lambda: 12.5)

    first = log.append(EventType.CHAT, {"username": "alex", "message": "hi"})
    second = log.append("custom_tag", {"id": 999, "value": 1})

    assert first.id == 1
    assert second.id == 2
    assert first.timestamp == 12500

    wire = first.to_dict()
    assert wire == {"id": 1, "timestamp": 12500, "type": "chat", "username": "alex", "message": "hi"}
    # envelope keys win over payload keys
    assert second.to_dict()["id"] == 2
    assert second.to_dict()["type"] == "custom_tag"


def test_capacity_keeps_most_recent_events(tmp_path: Path) -> None:
    log = EventLog(tmp_path / "events.json", capacity=200)

    for i in range(205):
        log.append(EventType.HURT, {"health": i})

    events = log.events()
    assert len(events) == 200
    assert events[0].id == 6
    assert events[-1].id == 205
    assert log.latest_id() == 205


def test_every_append_is_persisted(tmp_path: Path) -> None:
    path = tmp_path / "events.json"
    log = EventLog(path, capacity=3)

    for i in range(5):
        log.append(EventType.HURT, {"health": 20 - i})
        stored = json.loads(path.read_text(encoding="utf-8"))
        assert stored[-1]["id"] == i + 1

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert [e["id"] for e in stored] == [3, 4, 5]
    assert stored[-1]["health"] == 16


def test_reload_resumes_counter_from_max_stored_id(tmp_path: Path) -> None:
    path = tmp_path / "events.json"
    path.write_text(
        json.dumps(
            [
                {"id": 57, "timestamp": 1, "type": "spawn"},
                {"id": 58, "timestamp": 2, "type": "chat", "username": "a", "message": "b"},
            ]
        ),
        encoding="utf-8",
    )

    log = EventLog(path)
    log.reload()

    assert len(log) == 2
    assert log.latest_id() == 58
    assert log.events()[1].payload == {"username": "a", "message": "b"}

    nxt = log.append(EventType.SPAWN, {})
    assert nxt.id == 59


def test_reload_with_missing_or_corrupt_storage_starts_empty(tmp_path: Path) -> None:
    missing = EventLog(tmp_path / "nope.json")
    missing.reload()
    assert len(missing) == 0
    assert missing.append(EventType.SPAWN, {}).id == 1

    corrupt_path = tmp_path / "corrupt.json"
    corrupt_path.write_text("{not json", encoding="utf-8")
    corrupt = EventLog(corrupt_path)
    corrupt.reload()
    assert len(corrupt) == 0
    assert corrupt.append(EventType.SPAWN, {}).id == 1

    wrong_shape = tmp_path / "object.json"
    wrong_shape.write_text('{"id": 4}', encoding="utf-8")
    shaped = EventLog(wrong_shape)
    shaped.reload()
    assert shaped.latest_id() == 0


def test_reload_trims_oversized_storage_to_capacity(tmp_path: Path) -> None:
    path = tmp_path / "events.json"
    path.write_text(
        json.dumps([{"id": i, "timestamp": i, "type": "hurt"} for i in range(1, 11)]),
        encoding="utf-8",
    )

    log = EventLog(path, capacity=4)
    log.reload()

    assert [e.id for e in log.events()] == [7, 8, 9, 10]
    assert log.latest_id() == 10


def test_append_survives_unwritable_storage(tmp_path: Path) -> None:
    # the target path is a directory, so both write attempts fail
    blocked = tmp_path / "events.json"
    blocked.mkdir()
    log = EventLog(blocked)

    event = log.append(EventType.SPAWN, {"position": {"x": 0, "y": 64, "z": 0}})

    assert event.id == 1
    assert len(log) == 1


def test_append_publishes_to_bus(tmp_path: Path) -> None:
    bus = EventBus()
    seen: List[Event] = []
    bus.subscribe(seen.append)
    log = EventLog(tmp_path / "events.json", bus=bus)

    log.append(EventType.DEATH, {"position": {"x": 1, "y": 2, "z": 3}})

    assert len(seen) == 1
    assert seen[0].type == "death"


def test_recent_returns_tail(tmp_path: Path) -> None:
    log = EventLog(tmp_path / "events.json")
    for _ in range(5):
        log.append(EventType.GOAL_REACHED, {})

    assert [e.id for e in log.recent(2)] == [4, 5]
    assert log.recent(0) == []


def test_atomic_write_text_creates_parent_dirs(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "dir" / "state.json"

    assert atomic_write_text(target, "{}") is True
    assert target.read_text(encoding="utf-8") == "{}"
    assert not (target.parent / "state.json.tmp").exists()
