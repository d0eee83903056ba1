from __future__ import annotations

import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import yaml

from .schema import (
    AgentConfig,
    CombatConfig,
    EscapeConfig,
    EventLogConfig,
    PathsConfig,
    StuckConfig,
    SustainConfig,
    ThreatConfig,
    TimingConfig,
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[2]
CONFIG_ROOT = PROJECT_ROOT / "config"
DEFAULT_CONFIG_PATH = CONFIG_ROOT / "agent.yaml"

# Overrides paths.data_dir when set; matches how the body is usually deployed.
DATA_DIR_ENV = "AGENT_DATA_DIR"

_SECTIONS: Dict[str, type] = {
    "paths": PathsConfig,
    "timing": TimingConfig,
    "event_log": EventLogConfig,
    "threat": ThreatConfig,
    "escape": EscapeConfig,
    "stuck": StuckConfig,
    "sustain": SustainConfig,
    "combat": CombatConfig,
}

T = TypeVar("T")


class ConfigError(ValueError):
    """Raised when agent.yaml is structurally wrong."""


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML config file as a mapping."""
    if not path.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected mapping at top of {path}, got {type(data)}")
    return data


def _build_section(cls: Type[T], raw: Any, section: str) -> T:
    """Instantiate one section dataclass, rejecting unknown keys."""
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"Section '{section}' must be a mapping, got {type(raw)}")
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"Unknown keys in section '{section}': {sorted(unknown)}")
    return cls(**raw)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: Optional[Path] = None) -> AgentConfig:
    """Main entry point: returns a fully resolved AgentConfig."""
    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    raw = _load_yaml(cfg_path)

    sections = {
        name: _build_section(cls, raw.get(name), name)
        for name, cls in _SECTIONS.items()
    }
    config = AgentConfig(name=str(raw.get("name", "default")), **sections)

    data_dir = os.getenv(DATA_DIR_ENV)
    if data_dir:
        config.paths.data_dir = data_dir

    _validate_config(config)
    return config


def _validate_config(config: AgentConfig) -> None:
    """Minimal sanity checks for the agent configuration."""
    if config.event_log.capacity <= 0:
        raise ConfigError("event_log.capacity must be positive")

    timing = config.timing
    for name in (
        "state_interval_ms",
        "command_poll_ms",
        "reflex_interval_ms",
        "melee_tick_ms",
        "ranged_tick_ms",
    ):
        if getattr(timing, name) <= 0:
            raise ConfigError(f"timing.{name} must be positive")

    threat = config.threat
    if threat.explosive_trigger_distance < threat.trigger_distance:
        # explosive threats have the larger danger radius
        raise ConfigError("threat.explosive_trigger_distance must be >= trigger_distance")

    if config.combat.ranged_min >= config.combat.ranged_max:
        raise ConfigError("combat.ranged_min must be below combat.ranged_max")

    if config.stuck.idle_ticks <= 0 or config.stuck.max_retries < 0:
        raise ConfigError("stuck.idle_ticks must be positive and max_retries >= 0")
