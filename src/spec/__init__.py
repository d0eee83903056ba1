# src/spec/__init__.py

from __future__ import annotations

"""
Public spec surface for the agent body core.

This module re-exports *interfaces and data types* used across the codebase:
  - Geometry and movement goal primitives
  - Perception views (entities, items, vitals)
  - The Embodiment protocol (external body collaborator)
"""

from .types import (
    BlockInfo,
    EntityInfo,
    Goal,
    GoalBlock,
    GoalFollow,
    GoalNear,
    GoalXZ,
    ItemStack,
    Orientation,
    Vec3,
    Vitals,
)

from .embodiment import NOTIFICATIONS, Embodiment, describe_goal

__all__ = [
    # Geometry / goals
    "Vec3",
    "Goal",
    "GoalBlock",
    "GoalNear",
    "GoalXZ",
    "GoalFollow",
    # Perception
    "BlockInfo",
    "EntityInfo",
    "ItemStack",
    "Orientation",
    "Vitals",
    # Body
    "Embodiment",
    "NOTIFICATIONS",
    "describe_goal",
]
