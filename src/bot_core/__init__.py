# bot_core package
# src/bot_core/__init__.py
"""
bot_core package: in-process Embodiment implementations.

Exports:
    - EmbodimentError: domain-level error type for body operations
    - EmbodimentBase: notification registry shared by in-process bodies
    - SimulatedEmbodiment: flat-world body for offline runs
    - get_embodiment: factory used by the runtime
"""

from __future__ import annotations

from .core import EmbodimentBase, EmbodimentError
from .runtime import SimulatedEmbodiment, get_embodiment

__all__ = [
    "EmbodimentBase",
    "EmbodimentError",
    "SimulatedEmbodiment",
    "get_embodiment",
]
