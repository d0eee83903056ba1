# src/agent/manifest.py
"""
Capability manifest: a self-describing document for controller discovery.

Written once at startup to manifest.json. Actions come straight from the
command table the CommandChannel dispatches on, and event descriptions from
monitoring.events, so the manifest cannot drift from what the body does.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from env.schema import AgentConfig
from monitoring.event_log import atomic_write_text
from monitoring.events import EVENT_DESCRIPTIONS

from .commands import CommandSpec

log = logging.getLogger(__name__)

MANIFEST_VERSION = "1.0"

STATE_FIELDS: Dict[str, str] = {
    "timestamp": "ISO-8601 time the snapshot was built",
    "bot.position": "{x,y,z} floored block position",
    "bot.velocity": "{x,y,z} blocks per second",
    "bot.yaw": "Heading in radians",
    "bot.pitch": "Pitch in radians",
    "bot.health": "0-20",
    "bot.healthTrend": "stable | healing | taking_damage (since the previous snapshot)",
    "bot.food": "0-20",
    "bot.saturation": "Food saturation",
    "bot.oxygenLevel": "0-20",
    "bot.isInWater": "Submerged flag",
    "inventory": "[{name, count, slot}]",
    "inventoryStats": "{usedSlots, totalSlots, freeSlots, totalItems}",
    "nearbyEntities": "Up to 20 entities within 32 blocks, nearest first: {name, type, distance, position, entityId, health?}",
    "notableBlocks": "Containers, workstations and valuable ores within 16 blocks",
    "currentAction": "Current intent ({type, ...}) or null",
    "survival": "Reflex state: isFleeing, isEscapingWater, isStuck, stuckTicks, stuckRetries, nearestThreat, fleeInfo, isEating",
    "combat": "{active, mode, target, entityId, elapsed, hitsDealt}",
    "latestEventId": "Highest event id assigned; compare with events.json to detect gaps",
}


def autonomous_behaviors(config: AgentConfig) -> List[Dict[str, str]]:
    t, s, st = config.threat, config.sustain, config.stuck
    return [
        {
            "name": "escapeWater",
            "trigger": "body is submerged",
            "description": "Holds jump and sprint, paths to the nearest land, then resumes the previous action",
        },
        {
            "name": "fleeThreat",
            "trigger": (
                f"hostile within {t.trigger_distance:g} blocks "
                f"({', '.join(t.explosive_kinds)}: {t.explosive_trigger_distance:g})"
            ),
            "description": (
                f"Runs {t.flee_distance:g} blocks away from the threat, re-aimed every tick; ends after "
                f"{t.max_flee_seconds:g}s or once the threat is {t.safety_margin:g} blocks past its trigger"
            ),
        },
        {
            "name": "checkStuck",
            "trigger": f"no movement for {st.idle_ticks} ticks during a moving action",
            "description": (
                f"Retries a follow up to {st.max_retries} times, then wanders "
                f"{st.wander_min:g}-{st.wander_max:g} blocks in a random direction"
            ),
        },
        {
            "name": "autoEat",
            "trigger": f"food < {s.food_threshold:g}",
            "description": "Eats the best available food from inventory",
        },
        {
            "name": "smartSprint",
            "trigger": f"fleeing, or following a player more than {s.sprint_follow_distance:g} blocks away",
            "description": "Sprints instead of walking",
        },
    ]


def protocol(config: AgentConfig) -> Dict[str, Any]:
    timing = config.timing
    return {
        "description": "File-based IPC: the controller reads state.json and events.json, writes commands.json",
        "files": {
            "state.json": {
                "direction": "body -> controller",
                "frequency": f"every {timing.state_interval_ms}ms",
                "description": "Complete world state snapshot",
            },
            "events.json": {
                "direction": "body -> controller",
                "frequency": "on event",
                "description": f"Rolling buffer of {config.event_log.capacity} events with incrementing ids",
            },
            "commands.json": {
                "direction": "controller -> body",
                "frequency": f"polled every {timing.command_poll_ms}ms",
                "description": "JSON array of commands, cleared before execution (at most one delivery)",
            },
            "manifest.json": {
                "direction": "body -> controller",
                "frequency": "written once on startup",
                "description": "This file: describes all capabilities",
            },
        },
        "commandFormat": {
            "example": '[{"id": "cmd-1", "action": "goto", "x": 100, "y": 64, "z": -50}]',
            "notes": "id is optional but recommended for matching command_result events. action is required.",
        },
    }


def build_manifest(
    commands: Mapping[str, CommandSpec],
    config: AgentConfig,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    generated = datetime.fromtimestamp(time.time() if now is None else now, tz=timezone.utc)
    return {
        "name": config.name,
        "version": MANIFEST_VERSION,
        "description": "Autonomous agent body controlled through file-based IPC",
        "generatedAt": generated.isoformat(),
        "protocol": protocol(config),
        "actions": {
            spec.name: {
                "category": spec.category,
                "description": spec.description,
                "params": dict(spec.params),
            }
            for spec in commands.values()
        },
        "events": {
            etype.value: {"description": description, "fields": fields}
            for etype, (description, fields) in EVENT_DESCRIPTIONS.items()
        },
        "stateFields": dict(STATE_FIELDS),
        "autonomousBehaviors": autonomous_behaviors(config),
    }


def write_manifest(commands: Mapping[str, CommandSpec], config: AgentConfig, path: Optional[Path] = None) -> bool:
    target = Path(path) if path is not None else config.paths.manifest_file
    ok = atomic_write_text(target, json.dumps(build_manifest(commands, config), indent=2))
    if ok:
        log.info("Manifest written to %s", target)
    return ok
