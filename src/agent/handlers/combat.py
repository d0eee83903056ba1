# src/agent/handlers/combat.py
"""Combat commands: attack (melee session) and shoot (ranged session)."""

from __future__ import annotations

from typing import List, Optional

from spec.types import EntityInfo

from ..combat import MELEE, RANGED, has_arrows
from ..commands import Command, CommandSpec, HandlerContext
from ..perception import is_hostile

SHOOT_SEARCH_RADIUS = 64.0


def _nearest(ctx: HandlerContext, candidates: List[EntityInfo]) -> Optional[EntityInfo]:
    here = ctx.body.position()
    return min(candidates, key=lambda e: here.distance_to(e.position), default=None)


async def attack(ctx: HandlerContext, cmd: Command) -> None:
    wanted = str(cmd.get("target") or "").lower()
    hostile_kinds = ctx.config.threat.hostile_kinds
    here = ctx.body.position()

    candidates = [
        e for e in ctx.body.entities()
        if e.kind != "player"
        and (e.kind == "mob" or is_hostile(e, hostile_kinds))
        and here.distance_to(e.position) < ctx.config.combat.search_radius
    ]
    if wanted:
        candidates = [e for e in candidates if wanted in e.name.lower()]
    else:
        candidates = [e for e in candidates if is_hostile(e, hostile_kinds)]

    mob = _nearest(ctx, candidates)
    if mob is None:
        ctx.result(False, f"No target found: {wanted or 'hostile'}")
        return

    await ctx.combat.start(mob, MELEE)
    ctx.result(True, f"Attacking {mob.name}", entityId=mob.entity_id)


async def shoot(ctx: HandlerContext, cmd: Command) -> None:
    items = ctx.body.inventory()
    bow = next((s for s in items if s.name in ("bow", "crossbow")), None)
    if bow is None:
        ctx.result(False, "No bow in inventory")
        return
    if not has_arrows(ctx.body):
        ctx.result(False, "No arrows in inventory")
        return

    wanted = str(cmd.get("target") or "").lower()
    here = ctx.body.position()
    target: Optional[EntityInfo] = None
    if wanted:
        target = next(
            (e for e in ctx.body.entities()
             if e.kind == "player" and (e.username or "").lower() == wanted),
            None,
        )
        if target is None:
            target = _nearest(ctx, [
                e for e in ctx.body.entities()
                if e.kind == "mob" and wanted in e.name.lower()
                and here.distance_to(e.position) < SHOOT_SEARCH_RADIUS
            ])
    else:
        target = _nearest(ctx, [
            e for e in ctx.body.entities()
            if is_hostile(e, ctx.config.threat.hostile_kinds)
            and here.distance_to(e.position) < ctx.config.combat.search_radius
        ])

    if target is None:
        ctx.result(False, f"No target: {wanted or 'hostile'}")
        return

    await ctx.body.equip(bow.name, "hand")
    await ctx.combat.start(target, RANGED)
    ctx.result(True, f"Engaging {target.name} at range", entityId=target.entity_id)


COMMANDS: List[CommandSpec] = [
    CommandSpec("attack", attack, "combat",
                "Melee a mob (nearest hostile when no target is given)",
                {"target": "string mob name (optional)"}),
    CommandSpec("shoot", shoot, "combat",
                "Ranged combat with a bow; needs a bow and arrows",
                {"target": "string player or mob name (optional)"}),
]
