# src/agent/handlers/gathering.py
"""
Gathering commands: dig (one block) and mine_resource (multi-block loop).

mine_resource is the long-running handler the rest of the core is built
around. Its loop:
  - checks the cancellation token after every world-mutating step
  - parks while a reflex holds the register, then re-finds its next block
    (live references are never reused across a suspension)
  - publishes progress through register.update(), which a reflex
    preemption or a newer command silently ignores
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import List, Optional, Set, Tuple

from bot_core.core import EmbodimentError
from monitoring.events import EventType
from spec.types import BlockInfo, GoalNear, ItemStack, Vec3

from ..commands import Command, CommandSpec, HandlerContext, InvalidParams
from ..intent import Digging, Mining
from ..perception import INVENTORY_SLOTS, block_names_for, is_air

log = logging.getLogger(__name__)

MINE_SEARCH_RADIUS = 64.0
DEFAULT_MINE_COUNT = 16

# Relative offsets for dig(direction=...), before rotating by yaw.
DIRECTION_OFFSETS = {
    "front": (0, 0, 1),
    "back": (0, 0, -1),
    "left": (-1, 0, 0),
    "right": (1, 0, 0),
    "above": (0, 1, 0),
    "below": (0, -1, 0),
}

TOOL_TIERS = ("netherite", "diamond", "iron", "stone", "golden", "wooden")


def _tool_kind(block_name: str) -> Optional[str]:
    if any(k in block_name for k in ("log", "planks", "wood", "stem")):
        return "axe"
    if any(k in block_name for k in ("dirt", "sand", "gravel", "clay", "snow", "soul", "grass_block")):
        return "shovel"
    if any(k in block_name for k in ("stone", "ore", "deepslate", "debris", "obsidian", "brick")):
        return "pickaxe"
    return None


def select_tool(items: List[ItemStack], block_name: str) -> Optional[ItemStack]:
    """Best-tier tool suited to breaking `block_name`, if we carry one."""
    kind = _tool_kind(block_name)
    if kind is None:
        return None
    by_name = {s.name: s for s in items}
    for tier in TOOL_TIERS:
        stack = by_name.get(f"{tier}_{kind}")
        if stack is not None:
            return stack
    return None


async def _pick_up(ctx: HandlerContext, pos: Vec3) -> None:
    # Best effort: walk over the drop.
    try:
        await ctx.body.goto(GoalNear(pos.x, pos.y, pos.z, 0))
    except EmbodimentError as exc:
        log.debug("Could not walk to drop at %s: %s", pos, exc)


# ---------------------------------------------------------------------------
# dig
# ---------------------------------------------------------------------------


async def dig(ctx: HandlerContext, cmd: Command) -> None:
    body = ctx.body
    here = body.position().floored()
    position = cmd.get("position")
    direction = cmd.get("direction")

    if position is not None:
        try:
            target_pos = Vec3.from_mapping(position)
        except (KeyError, TypeError, ValueError):
            raise InvalidParams("position must be an object with x, y, z") from None
    elif direction is not None:
        ox, oy, oz = DIRECTION_OFFSETS.get(str(direction), DIRECTION_OFFSETS["front"])
        yaw = body.orientation().yaw
        rx = round(ox * math.cos(yaw) - oz * math.sin(yaw))
        rz = round(ox * math.sin(yaw) + oz * math.cos(yaw))
        target_pos = here.offset(rx, oy, rz)
    else:
        target_pos = here.offset(0, 0, 1)

    block = body.block_at(target_pos)
    if block is None or is_air(block):
        ctx.result(False, "No block to dig")
        return

    tool = select_tool(body.inventory(), block.name)
    if tool is not None:
        await body.equip(tool.name, "hand")

    token = ctx.begin(Digging(block.name))
    await body.dig(block.position)
    if not token.cancelled:
        await _pick_up(ctx, block.position)
    suffix = f" with {tool.name}" if tool is not None else ""
    ctx.result(True, f"Broke {block.name}{suffix}")
    ctx.finish()


# ---------------------------------------------------------------------------
# mine_resource
# ---------------------------------------------------------------------------


async def mine_resource(ctx: HandlerContext, cmd: Command) -> None:
    resource = cmd.get("resource") or cmd.get("target")
    if not resource:
        raise InvalidParams("missing required parameter 'resource'")
    resource = str(resource)
    count = int(cmd.number("count", DEFAULT_MINE_COUNT))
    if count <= 0:
        raise InvalidParams("count must be positive")

    body = ctx.body
    names = block_names_for(resource)
    first = _find_next(ctx, names, set())
    if first is None:
        ctx.result(False, f"Cannot find {resource} nearby")
        return

    token = ctx.begin(Mining(resource, count))
    ctx.result(True, f"Mining {resource}")

    pause_s = ctx.config.timing.mine_pause_ms / 1000.0
    started = time.monotonic()
    mined = 0
    skipped: Set[Tuple[int, int, int]] = set()
    stop_reason = "completed"

    # The command already reported; from here on failures end the loop and
    # surface as mining_complete.stopReason.
    try:
        tool = select_tool(body.inventory(), first.name) or next(
            (s for s in body.inventory() if s.name.endswith("pickaxe")), None
        )
        if tool is not None:
            await body.equip(tool.name, "hand")

        while mined < count:
            await ctx.wait_while_preempted()
            if token.cancelled:
                stop_reason = token.reason or "cancelled"
                break

            block = _find_next(ctx, names, skipped)
            if block is None:
                stop_reason = "no_more_blocks"
                break
            ctx.register.update(token, Mining(resource, count, mined))

            pos = block.position
            try:
                await body.goto(GoalNear(pos.x, pos.y, pos.z, 3))
            except EmbodimentError:
                if ctx.register.preempted or token.cancelled:
                    # a reflex or a newer command took over the goal; re-plan
                    continue
                raise
            if token.cancelled:
                stop_reason = token.reason or "cancelled"
                break

            # Unsafe footing under the ore: leave it.
            below = body.block_at(pos.offset(0, -1, 0))
            if is_air(below) or _is_lava(below):
                skipped.add(_key(pos))
                continue

            await body.dig(pos)
            mined += 1
            ctx.register.update(token, Mining(resource, count, mined))
            ctx.emit(
                EventType.BLOCK_MINED,
                block=block.name,
                mined=mined,
                target=count,
                elapsed=int(time.monotonic() - started),
            )

            if token.cancelled:
                stop_reason = token.reason or "cancelled"
                break
            await _pick_up(ctx, pos)

            if len(body.inventory()) >= INVENTORY_SLOTS - 1:
                stop_reason = "inventory_full"
                break
            if pause_s > 0:
                await asyncio.sleep(pause_s)
    except asyncio.CancelledError:
        stop_reason = "cancelled"
        raise
    except Exception as exc:
        log.warning("mine_resource %s stopped after %d: %s", resource, mined, exc)
        stop_reason = f"error: {exc}"
    finally:
        ctx.emit(
            EventType.MINING_COMPLETE,
            resource=resource,
            mined=mined,
            target=count,
            elapsed=int(time.monotonic() - started),
            stopReason=stop_reason,
        )
        ctx.finish()


def _key(pos: Vec3) -> Tuple[int, int, int]:
    return (math.floor(pos.x), math.floor(pos.y), math.floor(pos.z))


def _is_lava(block: Optional[BlockInfo]) -> bool:
    return block is not None and "lava" in block.name


def _find_next(ctx: HandlerContext, names: List[str], skipped: Set[Tuple[int, int, int]]) -> Optional[BlockInfo]:
    candidates = ctx.body.find_blocks(names, max_distance=MINE_SEARCH_RADIUS, count=len(skipped) + 1)
    for block in candidates:
        if _key(block.position) not in skipped:
            return block
    return None


COMMANDS: List[CommandSpec] = [
    CommandSpec("dig", dig, "gathering", "Break one block (auto-selects a tool)",
                {"position": "{x,y,z} (optional)",
                 "direction": "front|back|left|right|above|below (optional)"}),
    CommandSpec("mine_resource", mine_resource, "gathering",
                "Mine blocks of a resource until count is reached; cancellable",
                {"resource": "string (e.g. iron, coal, stone, wood)",
                 "count": "number (optional, default 16)"}),
]
