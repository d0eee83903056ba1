# src/agent/handlers/__init__.py
"""
Command handlers grouped by category.

build_command_table() is resolved once at startup; the resulting mapping is
shared by the CommandChannel (dispatch) and the capability manifest.
"""

from __future__ import annotations

from typing import Dict

from ..commands import CommandSpec
from . import combat, gathering, interaction, movement, utility

CATEGORY_MODULES = (movement, combat, gathering, interaction, utility)


def build_command_table() -> Dict[str, CommandSpec]:
    table: Dict[str, CommandSpec] = {}
    for module in CATEGORY_MODULES:
        for spec in module.COMMANDS:
            if spec.name in table:
                raise ValueError(f"Duplicate command name: {spec.name}")
            table[spec.name] = spec
    return table


__all__ = ["build_command_table", "CATEGORY_MODULES"]
