# src/agent/perception.py
"""
Read-only world queries shared by handlers, reflexes, combat and snapshots.

Everything here is a pure function of the Embodiment's current perception;
nothing is cached, so callers always see live references.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from spec.embodiment import Embodiment
from spec.types import BlockInfo, EntityInfo, ItemStack, Vec3

INVENTORY_SLOTS = 36

# Entities that never matter to decisions.
CLUTTER_ENTITIES = ("arrow", "item", "experience_orb", "falling_block", "area_effect_cloud")

NOTABLE_BLOCKS = (
    "chest", "trapped_chest", "barrel", "ender_chest", "shulker_box",
    "crafting_table", "furnace", "blast_furnace", "smoker", "brewing_stand",
    "enchanting_table", "anvil", "grindstone", "smithing_table", "loom",
    "cartography_table", "stonecutter", "red_bed", "white_bed", "spawner",
    "end_portal_frame", "nether_portal",
    "diamond_ore", "deepslate_diamond_ore", "emerald_ore", "deepslate_emerald_ore",
    "ancient_debris", "gold_ore", "deepslate_gold_ore", "iron_ore", "deepslate_iron_ore",
)

# Ores in value order.
ORE_BLOCKS = (
    "diamond_ore", "deepslate_diamond_ore",
    "ancient_debris",
    "emerald_ore", "deepslate_emerald_ore",
    "gold_ore", "deepslate_gold_ore",
    "iron_ore", "deepslate_iron_ore",
    "copper_ore", "deepslate_copper_ore",
    "coal_ore", "deepslate_coal_ore",
    "redstone_ore", "deepslate_redstone_ore",
    "lapis_ore", "deepslate_lapis_ore",
)

RESOURCE_ALIASES: Dict[str, Sequence[str]] = {
    "stone": ("stone", "cobblestone", "deepslate"),
    "wood": (
        "oak_log", "spruce_log", "birch_log", "jungle_log", "acacia_log",
        "dark_oak_log", "mangrove_log", "cherry_log", "crimson_stem", "warped_stem",
    ),
    "sand": ("sand", "red_sand"),
    "gravel": ("gravel",),
    "clay": ("clay",),
}
RESOURCE_ALIASES["log"] = RESOURCE_ALIASES["wood"]

LIQUIDS = ("water", "lava", "flowing_water", "flowing_lava", "bubble_column")
AIRS = ("air", "cave_air", "void_air")


def block_names_for(resource: str) -> List[str]:
    """Concrete block names that yield `resource` ("iron" -> iron ores, "wood" -> logs)."""
    key = resource.lower().replace(" ", "_")
    names = [n for n in ORE_BLOCKS if key in n]
    names.extend(RESOURCE_ALIASES.get(key, ()))
    if key not in names:
        names.append(key)
    return names


def is_air(block: Optional[BlockInfo]) -> bool:
    return block is None or block.name in AIRS


def is_liquid(block: Optional[BlockInfo]) -> bool:
    return block is not None and block.name in LIQUIDS


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


def is_hostile(entity: EntityInfo, hostile_kinds: Iterable[str]) -> bool:
    return entity.kind != "player" and entity.name.lower() in set(hostile_kinds)


def nearest_hostile(
    body: Embodiment,
    hostile_kinds: Iterable[str],
    vertical_tolerance: float,
) -> Optional[EntityInfo]:
    """Closest hostile within `vertical_tolerance` blocks of our height."""
    kinds = set(hostile_kinds)
    here = body.position()
    best: Optional[EntityInfo] = None
    best_dist = float("inf")
    for e in body.entities():
        if e.kind == "player" or e.name.lower() not in kinds:
            continue
        if abs(e.position.y - here.y) > vertical_tolerance:
            continue
        d = here.distance_to(e.position)
        if d < best_dist:
            best, best_dist = e, d
    return best


def nearby_entities(
    body: Embodiment,
    hostile_kinds: Iterable[str],
    radius: float = 32.0,
    limit: int = 20,
) -> List[Dict[str, Any]]:
    """
    Entity summaries for the snapshot: players first, then mobs, each within
    `radius`, sorted by distance, deduplicated by floored position.
    """
    kinds = set(hostile_kinds)
    here = body.position()
    rows: List[Dict[str, Any]] = []
    for e in body.entities():
        if e.name.lower() in CLUTTER_ENTITIES:
            continue
        d = here.distance_to(e.position)
        if d >= radius:
            continue
        if e.kind == "player":
            kind = "player"
        elif e.name.lower() in kinds:
            kind = "hostile"
        else:
            kind = "passive"
        row: Dict[str, Any] = {
            "name": e.username if e.kind == "player" and e.username else e.name,
            "type": kind,
            "distance": int(d),
            "position": e.position.floored().to_dict(),
            "entityId": e.entity_id,
        }
        if e.health is not None and e.health > 0:
            row["health"] = round(e.health, 1)
        rows.append(row)

    # players sort ahead of mobs at equal distance so their rows win the dedupe
    rows.sort(key=lambda r: (r["distance"], r["type"] != "player"))

    seen = set()
    unique: List[Dict[str, Any]] = []
    for row in rows:
        p = row["position"]
        key = (p["x"], p["y"], p["z"])
        if key in seen:
            continue
        seen.add(key)
        unique.append(row)
    return unique[:limit]


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


def find_item(items: Iterable[ItemStack], name: str) -> Optional[ItemStack]:
    """Exact match first, then the first stack whose name contains `name`."""
    stacks = list(items)
    for stack in stacks:
        if stack.name == name:
            return stack
    for stack in stacks:
        if name in stack.name:
            return stack
    return None


def best_food(items: Iterable[ItemStack], food_items: Sequence[str]) -> Optional[ItemStack]:
    """Highest-ranked food stack from `food_items` (ordered best-first)."""
    by_name = {s.name: s for s in items if s.count > 0}
    for name in food_items:
        if name in by_name:
            return by_name[name]
    return None


def inventory_stats(items: Sequence[ItemStack]) -> Dict[str, int]:
    used = len(items)
    return {
        "usedSlots": used,
        "totalSlots": INVENTORY_SLOTS,
        "freeSlots": INVENTORY_SLOTS - used,
        "totalItems": sum(s.count for s in items),
    }


def notable_blocks(body: Embodiment, radius: float = 16.0, limit: int = 30) -> List[Dict[str, Any]]:
    here = body.position()
    found = body.find_blocks(NOTABLE_BLOCKS, max_distance=radius, count=limit)
    return [
        {
            "name": b.name,
            "position": b.position.floored().to_dict(),
            "distance": int(here.distance_to(b.position)),
        }
        for b in found
    ]


def away_from(origin: Vec3, threat: Vec3, scale: float) -> Vec3:
    """Point reached by moving from `origin` directly away from `threat`."""
    return Vec3(
        origin.x + (origin.x - threat.x) * scale,
        origin.y,
        origin.z + (origin.z - threat.z) * scale,
    )
