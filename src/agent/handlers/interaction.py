# src/agent/handlers/interaction.py
"""Interaction commands: chat, equip, eat."""

from __future__ import annotations

from typing import List

from ..commands import Command, CommandSpec, HandlerContext
from ..perception import best_food, find_item

MAX_FOOD = 20


async def chat(ctx: HandlerContext, cmd: Command) -> None:
    message = str(cmd.require("message"))
    ctx.body.chat(message)
    ctx.result(True, f"Said: {message}")


async def equip(ctx: HandlerContext, cmd: Command) -> None:
    item_name = str(cmd.require("item"))
    destination = "off-hand" if cmd.get("hand") == "off" else "hand"
    stack = find_item(ctx.body.inventory(), item_name)
    if stack is None:
        ctx.result(False, f"No {item_name} in inventory")
        return
    await ctx.body.equip(stack.name, destination)
    ctx.result(True, f"Equipped {stack.name}")


async def eat(ctx: HandlerContext, cmd: Command) -> None:
    if ctx.body.vitals().food >= MAX_FOOD:
        ctx.result(False, "Not hungry")
        return
    food = best_food(ctx.body.inventory(), ctx.config.sustain.food_items)
    if food is None:
        ctx.result(False, "No food in inventory")
        return
    await ctx.body.equip(food.name, "hand")
    await ctx.body.consume()
    ctx.result(True, f"Ate {food.name}", newFoodLevel=ctx.body.vitals().food)


COMMANDS: List[CommandSpec] = [
    CommandSpec("chat", chat, "interaction", "Send a chat message", {"message": "string"}),
    CommandSpec("equip", equip, "interaction", "Hold an inventory item",
                {"item": "string", "hand": "main|off (optional)"}),
    CommandSpec("eat", eat, "interaction", "Eat the best food in inventory"),
]
