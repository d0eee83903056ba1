# src/agent/handlers/utility.py
"""Utility commands: where_am_i, scan, goto_block, cancel."""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List

from spec.types import GoalNear

from ..commands import Command, CommandSpec, HandlerContext
from ..intent import GotoBlock
from ..perception import (
    INVENTORY_SLOTS,
    best_food,
    is_air,
    nearby_entities,
    notable_blocks,
)

MAX_SCAN_RADIUS = 32
SCAN_HEIGHT = 16
GOTO_BLOCK_RANGE = 2.0


async def where_am_i(ctx: HandlerContext, cmd: Command) -> None:
    pos = ctx.body.position().floored()
    vitals = ctx.body.vitals()
    status = {
        "position": pos.to_dict(),
        "health": vitals.health,
        "food": vitals.food,
        "isInWater": ctx.body.is_in_water(),
        "inventorySlots": f"{len(ctx.body.inventory())}/{INVENTORY_SLOTS}",
    }
    ctx.result(True, f"At {int(pos.x)}, {int(pos.y)}, {int(pos.z)}", status=status)


async def scan(ctx: HandlerContext, cmd: Command) -> None:
    radius = int(min(cmd.number("radius", MAX_SCAN_RADIUS), MAX_SCAN_RADIUS))
    height = min(radius, SCAN_HEIGHT)
    body = ctx.body
    origin = body.position().floored()

    counts: Counter = Counter()
    for dx in range(-radius, radius + 1):
        for dy in range(-height, height + 1):
            for dz in range(-radius, radius + 1):
                block = body.block_at(origin.offset(dx, dy, dz))
                if block is not None and not is_air(block):
                    counts[block.name] += 1

    entities = nearby_entities(body, ctx.config.threat.hostile_kinds, radius=radius, limit=30)
    foods = [s for s in body.inventory() if s.name in ctx.config.sustain.food_items]
    best = best_food(foods, ctx.config.sustain.food_items)
    result: Dict[str, Any] = {
        "position": origin.to_dict(),
        "radius": radius,
        "topBlocks": dict(counts.most_common(15)),
        "notableBlocks": notable_blocks(body, radius=radius, limit=20),
        "entities": entities,
        "foodSupply": {
            "items": [{"name": s.name, "count": s.count} for s in foods],
            "total": sum(s.count for s in foods),
            "best": best.name if best is not None else None,
        },
        "hostileCount": sum(1 for e in entities if e["type"] == "hostile"),
        "playerCount": sum(1 for e in entities if e["type"] == "player"),
    }
    ctx.result(True, f"Scanned {radius} block radius", scan=result)


async def goto_block(ctx: HandlerContext, cmd: Command) -> None:
    block_type = str(cmd.get("blockType") or cmd.get("block") or "").lower().replace(" ", "_")
    if not block_type:
        ctx.result(False, "No block type specified")
        return
    max_distance = cmd.number("maxDistance", 64)

    found = ctx.body.find_blocks([block_type], max_distance=max_distance, count=1)
    if not found:
        ctx.result(False, f"No {block_type} found within {int(max_distance)} blocks")
        return

    block = found[0]
    p = block.position.floored()
    x, y, z = int(p.x), int(p.y), int(p.z)
    ctx.begin(GotoBlock(block.name, x, y, z))
    await ctx.wait_while_preempted()
    # EmbodimentError propagates: the dispatch boundary reports it and clears the intent
    await ctx.body.goto(GoalNear(x, y, z, GOTO_BLOCK_RANGE))
    ctx.result(True, f"Reached {block.name} at {x}, {y}, {z}")
    ctx.finish()


async def cancel(ctx: HandlerContext, cmd: Command) -> None:
    current = ctx.register.saved if ctx.register.preempted else ctx.register.get()
    if current is None and not ctx.combat.active:
        ctx.result(False, "No action running to cancel")
        return

    ctx.body.set_goal(None)
    ctx.combat.stop("cancelled")
    ctx.body.clear_control_states()
    cancelled = ctx.register.cancel("cancelled") or current

    kind = cancelled.kind if cancelled is not None else "combat"
    ctx.result(
        True,
        f"Cancelled: {kind}",
        cancelledAction=cancelled.to_dict() if cancelled is not None else None,
    )


COMMANDS: List[CommandSpec] = [
    CommandSpec("where_am_i", where_am_i, "utility", "Report position and vitals"),
    CommandSpec("scan", scan, "utility", "Survey nearby blocks, entities and food",
                {"radius": "number (optional, max 32)"}),
    CommandSpec("goto_block", goto_block, "utility", "Walk to the nearest block of a type",
                {"blockType": "string", "maxDistance": "number (optional, default 64)"}),
    CommandSpec("cancel", cancel, "utility", "Stop the running action, movement and combat"),
]
