# src/agent/handlers/movement.py
"""
Movement commands: goto, follow, stop, look_at, look_at_player, jump, sneak.

goto / follow only set a goal and return; the Embodiment's goal_reached /
path_failed notifications end the intent (see AgentRuntime).
"""

from __future__ import annotations

import asyncio
import math
from typing import List, Optional

from spec.types import GoalBlock, GoalFollow, Vec3

from ..commands import Command, CommandSpec, HandlerContext, InvalidParams
from ..intent import Follow, Goto

JUMP_HOLD_S = 0.12


async def goto(ctx: HandlerContext, cmd: Command) -> None:
    x = math.floor(cmd.number("x"))
    y = math.floor(cmd.number("y"))
    z = math.floor(cmd.number("z"))
    ctx.begin(Goto(x, y, z))
    ctx.steer(GoalBlock(x, y, z))
    ctx.result(True, f"Navigating to {x}, {y}, {z}")


async def follow(ctx: HandlerContext, cmd: Command) -> None:
    username = str(cmd.require("username"))
    player = ctx.body.player(username)
    if player is None:
        ctx.result(False, f"Can't see {username}")
        return

    distance = cmd.number("distance", ctx.config.combat.follow_distance)
    ctx.begin(Follow(username, distance))
    ctx.steer(GoalFollow(player.entity_id, distance), dynamic=True)
    ctx.result(True, f"Following {username}")


async def stop(ctx: HandlerContext, cmd: Command) -> None:
    ctx.register.cancel("stopped")
    ctx.body.set_goal(None)
    ctx.result(True, "Stopped all movement")


async def look_at(ctx: HandlerContext, cmd: Command) -> None:
    target: Optional[Vec3] = None
    try:
        if cmd.get("position") is not None:
            target = Vec3.from_mapping(cmd.get("position"))
        elif cmd.get("player"):
            player = ctx.body.player(str(cmd.get("player")))
            if player is not None:
                target = player.position.offset(0, player.height or 1.6, 0)
        elif cmd.get("block") is not None:
            target = Vec3.from_mapping(cmd.get("block"))
    except (KeyError, TypeError, ValueError):
        raise InvalidParams("position/block must be an object with x, y, z") from None

    if target is None:
        ctx.result(False, "No target found")
        return

    await ctx.body.look_at(target, bool(cmd.get("force", False)))
    ctx.result(True, "Looked at target")


async def look_at_player(ctx: HandlerContext, cmd: Command) -> None:
    username = str(cmd.require("username"))
    player = ctx.body.player(username)
    if player is None:
        ctx.result(False, f"Can't see {username}")
        return
    await ctx.body.look_at(player.position.offset(0, player.height, 0))
    ctx.result(True, f"Looking at {username}")


async def jump(ctx: HandlerContext, cmd: Command) -> None:
    ctx.body.set_control_state("jump", True)
    asyncio.get_running_loop().call_later(JUMP_HOLD_S, ctx.body.set_control_state, "jump", False)
    ctx.result(True, "Jumped")


async def sneak(ctx: HandlerContext, cmd: Command) -> None:
    duration_ms = cmd.number("duration", 500)
    ctx.body.set_control_state("sneak", True)
    asyncio.get_running_loop().call_later(
        duration_ms / 1000.0, ctx.body.set_control_state, "sneak", False
    )
    ctx.result(True, "Sneaking")


COMMANDS: List[CommandSpec] = [
    CommandSpec("goto", goto, "movement", "Walk to exact coordinates",
                {"x": "number", "y": "number", "z": "number"}),
    CommandSpec("follow", follow, "movement", "Follow a player continuously",
                {"username": "string", "distance": "number (optional, default 2)"}),
    CommandSpec("stop", stop, "movement", "Stop all movement and clear the current action"),
    CommandSpec("look_at", look_at, "movement", "Look at a position, player or block",
                {"position": "{x,y,z} (optional)", "player": "string (optional)",
                 "block": "{x,y,z} (optional)", "force": "boolean (optional)"}),
    CommandSpec("look_at_player", look_at_player, "movement", "Look at a player's head",
                {"username": "string"}),
    CommandSpec("jump", jump, "movement", "Jump once"),
    CommandSpec("sneak", sneak, "movement", "Sneak for a while",
                {"duration": "number ms (optional, default 500)"}),
]
