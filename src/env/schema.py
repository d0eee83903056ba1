# AgentConfig and section dataclasses
# src/env/schema.py

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List


@dataclass
class PathsConfig:
    """Where the file-based protocol lives."""
    data_dir: str = "data"

    @property
    def root(self) -> Path:
        return Path(self.data_dir)

    @property
    def events_file(self) -> Path:
        return self.root / "events.json"

    @property
    def commands_file(self) -> Path:
        return self.root / "commands.json"

    @property
    def state_file(self) -> Path:
        return self.root / "state.json"

    @property
    def manifest_file(self) -> Path:
        return self.root / "manifest.json"

    @property
    def history_file(self) -> Path:
        return self.root / "events.log"


@dataclass
class TimingConfig:
    """Periods of the independent scheduler tasks (milliseconds)."""
    state_interval_ms: int = 1000
    command_poll_ms: int = 500
    reflex_interval_ms: int = 1000
    melee_tick_ms: int = 250
    ranged_tick_ms: int = 1500
    mine_pause_ms: int = 500


@dataclass
class EventLogConfig:
    capacity: int = 200


@dataclass
class ThreatConfig:
    trigger_distance: float = 12.0
    explosive_trigger_distance: float = 16.0
    explosive_kinds: List[str] = field(default_factory=lambda: ["creeper"])
    safety_margin: float = 8.0
    flee_distance: float = 20.0
    max_flee_seconds: float = 12.0
    vertical_tolerance: float = 8.0
    hostile_kinds: List[str] = field(
        default_factory=lambda: [
            "zombie", "skeleton", "creeper", "spider", "enderman", "witch",
            "pillager", "vindicator", "evoker", "ravager", "phantom",
            "drowned", "husk", "stray", "blaze", "ghast", "wither_skeleton",
            "warden", "piglin_brute", "hoglin", "zoglin", "guardian",
            "elder_guardian", "shulker", "vex", "slime", "magma_cube",
            "cave_spider", "silverfish", "zombie_villager", "illusioner",
            "wither", "ender_dragon", "breeze",
        ]
    )


@dataclass
class EscapeConfig:
    search_radius: int = 16
    min_dy: int = -2
    max_dy: int = 4


@dataclass
class StuckConfig:
    displacement_threshold: float = 0.5
    idle_ticks: int = 5
    max_retries: int = 3
    wander_min: float = 8.0
    wander_max: float = 16.0


@dataclass
class SustainConfig:
    food_threshold: float = 6.0
    sprint_follow_distance: float = 8.0
    food_items: List[str] = field(
        default_factory=lambda: [
            "golden_apple", "enchanted_golden_apple",
            "cooked_beef", "cooked_porkchop", "cooked_mutton", "cooked_salmon",
            "cooked_chicken", "cooked_rabbit", "cooked_cod", "baked_potato",
            "bread", "pumpkin_pie", "apple", "carrot", "melon_slice",
            "sweet_berries", "cookie", "beef", "porkchop", "mutton",
            "chicken", "rabbit", "potato", "beetroot", "dried_kelp",
        ]
    )


@dataclass
class CombatConfig:
    melee_reach: float = 4.0
    follow_distance: float = 2.0
    melee_retreat_health: float = 6.0
    ranged_retreat_health: float = 8.0
    ranged_min: float = 10.0
    ranged_max: float = 30.0
    ranged_approach_range: float = 20.0
    draw_seconds: float = 1.0
    retreat_scale_melee: float = 2.0
    retreat_scale_ranged: float = 3.0
    search_radius: float = 32.0
    weapon_priority: List[str] = field(
        default_factory=lambda: [
            "netherite_sword", "diamond_sword", "iron_sword", "stone_sword",
            "golden_sword", "wooden_sword", "netherite_axe", "diamond_axe",
            "iron_axe", "stone_axe",
        ]
    )


@dataclass
class AgentConfig:
    """Top-level resolved agent configuration."""
    name: str = "default"
    paths: PathsConfig = field(default_factory=PathsConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    event_log: EventLogConfig = field(default_factory=EventLogConfig)
    threat: ThreatConfig = field(default_factory=ThreatConfig)
    escape: EscapeConfig = field(default_factory=EscapeConfig)
    stuck: StuckConfig = field(default_factory=StuckConfig)
    sustain: SustainConfig = field(default_factory=SustainConfig)
    combat: CombatConfig = field(default_factory=CombatConfig)
