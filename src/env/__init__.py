# src/env/__init__.py
"""
Configuration loading for the agent body.

Exports:
    - AgentConfig: resolved configuration (dataclass tree)
    - load_config: YAML -> AgentConfig
"""

from __future__ import annotations

from .loader import ConfigError, load_config
from .schema import AgentConfig

__all__ = [
    "AgentConfig",
    "ConfigError",
    "load_config",
]
