# src/bot_core/testing/__init__.py
"""In-memory fakes for exercising the agent core without a world."""

from __future__ import annotations

from .fakes import FakeEmbodiment, IssuedGoal

__all__ = ["FakeEmbodiment", "IssuedGoal"]
