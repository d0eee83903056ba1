# tests/test_reflexes.py
"""
Tests for agent.reflexes: the priority-ordered survival tick.

Covers:
- threat flee trigger distances, steering and every end condition
- restore of the interrupted intent with its original parameters
- water escape control assertion, land search and restore
- escape preempting an active flee (single backup slot)
- stuck detection: follow retries, then a random wander
- auto-eat, hunger warning and the sprint heuristic
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from fakes.fake_runtime import make_harness

from agent.intent import EscapingWater, Fleeing, Follow, Goto, Wander
from spec.types import GoalBlock, GoalXZ, Vec3


# ---------------------------------------------------------------------------
# threat flee
# ---------------------------------------------------------------------------


def test_creeper_within_explosive_radius_triggers_flee(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.register.set(Goto(100, 64, -50))
    h.body.add_entity(1, "creeper", Vec3(10.5, 64, 0.5))

    h.arbiter.tick()

    assert isinstance(h.register.get(), Fleeing)
    fleeing = h.of_type("fleeing")[0]
    assert fleeing["threat"] == "creeper"
    assert fleeing["threatDistance"] == 10.0
    assert fleeing["fleeTarget"] == {"x": -20, "z": 0}
    assert h.body.goal == GoalXZ(-20, 0)
    assert h.arbiter.state()["isFleeing"] is True


def test_flee_restores_goto_once_threat_is_distant(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.register.set(Goto(100, 64, -50))
    h.body.add_entity(1, "creeper", Vec3(10.5, 64, 0.5))
    h.arbiter.tick()

    # creeper trigger 16 + safety margin 8
    h.body.move_entity(1, Vec3(25.5, 64, 0.5))
    h.arbiter.tick()

    ended = h.of_type("flee_ended")[0]
    assert ended["reason"] == "threat_distant"
    assert ended["restored"] == "goto"
    assert h.register.get() == Goto(100, 64, -50)
    assert h.body.goal == GoalBlock(100, 64, -50)
    assert h.register.preempted is False


def test_flee_times_out(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.register.set(Goto(100, 64, -50))
    h.body.add_entity(1, "zombie", Vec3(5.5, 64, 0.5))
    h.arbiter.tick()

    h.clock.advance(5)
    h.arbiter.tick()
    assert isinstance(h.register.get(), Fleeing)

    h.clock.advance(8)
    h.arbiter.tick()

    ended = h.of_type("flee_ended")[0]
    assert ended["reason"] == "timeout"
    assert ended["elapsed"] == 13.0
    assert h.register.get() == Goto(100, 64, -50)


def test_flee_ends_when_threat_disappears(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.body.add_entity(1, "skeleton", Vec3(3.5, 64, 0.5))
    h.arbiter.tick()

    h.body.remove_entity(1)
    h.arbiter.tick()

    assert h.of_type("flee_ended")[0]["reason"] == "no_threat"
    assert h.register.get() is None


def test_zombie_outside_trigger_distance_is_ignored(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.register.set(Goto(1, 64, 1))
    h.body.add_entity(1, "zombie", Vec3(13.5, 64, 0.5))

    h.arbiter.tick()

    assert h.register.get() == Goto(1, 64, 1)
    assert h.of_type("fleeing") == []
    assert h.arbiter.state()["nearestThreat"]["name"] == "zombie"


def test_hostile_far_above_is_ignored(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.body.add_entity(1, "zombie", Vec3(0.5, 80, 0.5))

    h.arbiter.tick()

    assert h.of_type("fleeing") == []


def test_passive_mobs_and_players_never_trigger_flee(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.body.add_entity(1, "cow", Vec3(2.5, 64, 0.5))
    h.body.add_player(2, "zombie", Vec3(3.5, 64, 0.5))

    h.arbiter.tick()

    assert h.of_type("fleeing") == []


def test_flee_is_skipped_during_combat(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    zombie = h.body.add_entity(1, "zombie", Vec3(3.5, 64, 0.5))

    async def _go() -> None:
        await h.combat.start(zombie, "melee", run=False)
        h.arbiter.tick()

    asyncio.run(_go())

    assert h.of_type("fleeing") == []
    assert h.register.get().kind == "attack"


def test_command_during_flee_is_restored_instead_of_old_intent(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.register.set(Goto(100, 64, -50))
    h.body.add_entity(1, "creeper", Vec3(10.5, 64, 0.5))
    h.arbiter.tick()

    async def _go() -> None:
        await h.channel.execute({"id": "g", "action": "goto", "x": 7, "y": 64, "z": 7})

    asyncio.run(_go())

    assert h.results()[-1]["success"] is True
    # the flee keeps steering until its episode ends
    assert isinstance(h.register.get(), Fleeing)
    assert h.body.goal == GoalXZ(-20, 0)

    h.body.remove_entity(1)
    h.arbiter.tick()

    assert h.of_type("flee_ended")[0]["restored"] == "goto"
    assert h.register.get() == Goto(7, 64, 7)
    assert h.body.goal == GoalBlock(7, 64, 7)


def test_combat_started_mid_flee_takes_the_register(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.register.set(Goto(100, 64, -50))
    h.body.add_entity(1, "creeper", Vec3(10.5, 64, 0.5))
    zombie = h.body.add_entity(2, "zombie", Vec3(-2.5, 64, 0.5))

    async def _go() -> None:
        h.arbiter.tick()
        assert isinstance(h.register.get(), Fleeing)
        await h.combat.start(zombie, "melee", run=False)
        h.arbiter.tick()

    asyncio.run(_go())

    ended = h.of_type("flee_ended")[0]
    assert ended["reason"] == "combat"
    assert ended["restored"] == "attack"
    assert h.register.get().kind == "attack"
    assert h.register.preempted is False


# ---------------------------------------------------------------------------
# water escape
# ---------------------------------------------------------------------------


def test_water_escape_holds_controls_and_restores(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.register.set(Goto(100, 64, -50))
    h.body.in_water = True

    h.arbiter.tick()

    assert isinstance(h.register.get(), EscapingWater)
    swim = h.of_type("swimming_to_land")[0]
    assert swim["target"] == {"x": 1, "y": 63, "z": 0}
    assert swim["distance"] == 1
    assert h.body.goal == GoalBlock(1, 64, 0)
    assert h.body.controls["jump"] is True
    assert h.body.controls["sprint"] is True

    # controls are re-asserted every submerged tick
    h.body.controls["jump"] = False
    h.arbiter.tick()
    assert h.body.controls["jump"] is True
    assert len(h.of_type("swimming_to_land")) == 1

    h.body.in_water = False
    h.arbiter.tick()

    escaped = h.of_type("escaped_water")[0]
    assert escaped["restored"] == "goto"
    assert h.register.get() == Goto(100, 64, -50)
    assert h.body.controls["jump"] is False
    assert h.arbiter.state()["isEscapingWater"] is False


def test_water_escape_without_land_still_swims_up(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.config.escape.search_radius = 2
    for x in range(-3, 4):
        for z in range(-3, 4):
            for y in range(61, 67):
                h.body.set_block(Vec3(x, y, z), "water")
    h.body.in_water = True

    h.arbiter.tick()

    assert h.register.get() == EscapingWater()
    assert h.of_type("swimming_to_land") == []
    assert h.body.controls["jump"] is True


def test_escape_preempts_flee_and_restores_original_intent(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.register.set(Goto(100, 64, -50))
    h.body.add_entity(1, "creeper", Vec3(10.5, 64, 0.5))
    h.arbiter.tick()
    assert isinstance(h.register.get(), Fleeing)

    h.body.in_water = True
    h.arbiter.tick()

    ended = h.of_type("flee_ended")[0]
    assert ended["reason"] == "preempted_by_escape"
    assert ended["restored"] is None
    assert isinstance(h.register.get(), EscapingWater)

    # escape suppresses flee checks while it runs
    h.arbiter.tick()
    assert len(h.of_type("fleeing")) == 1

    h.body.remove_entity(1)
    h.body.in_water = False
    h.arbiter.tick()

    assert h.register.get() == Goto(100, 64, -50)
    assert h.register.preempted is False


# ---------------------------------------------------------------------------
# stuck detection
# ---------------------------------------------------------------------------


def test_stuck_follow_retries_three_times_then_wanders(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.body.add_player(5, "alex", Vec3(30.5, 64, 0.5))
    h.register.set(Follow("alex", 2.0))

    # baseline tick, then five idle ticks per stuck episode
    h.arbiter.tick()
    for retry in (1, 2, 3):
        for _ in range(5):
            h.arbiter.tick()
        assert h.of_type("stuck_retry")[-1]["retry"] == retry
        assert h.register.get() == Follow("alex", 2.0)

    for _ in range(5):
        h.arbiter.tick()

    assert len(h.of_type("stuck")) == 4
    assert len(h.of_type("stuck_retry")) == 3
    wander = h.of_type("wander")
    assert len(wander) == 1
    assert wander[0]["abandoned"] == "follow"
    assert isinstance(h.register.get(), Wander)
    target = wander[0]["target"]
    assert h.body.goal == GoalXZ(target["x"], target["z"])
    distance = ((target["x"] - 0.5) ** 2 + (target["z"] - 0.5) ** 2) ** 0.5
    assert 6.5 <= distance <= 17.5


def test_stuck_goto_wanders_without_retry(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.register.set(Goto(50, 64, 50))

    for _ in range(6):
        h.arbiter.tick()

    assert h.of_type("stuck")[0]["action"] == "goto"
    assert h.of_type("stuck_retry") == []
    assert h.of_type("wander")[0]["abandoned"] == "goto"


def test_displacement_resets_stuck_counter(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.register.set(Goto(50, 64, 50))

    for i in range(12):
        h.body.pos = Vec3(0.5 + i, 64, 0.5)
        h.arbiter.tick()

    assert h.of_type("stuck") == []
    assert h.arbiter.state()["stuckTicks"] == 0


def test_following_within_distance_is_not_stuck(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.body.add_player(5, "alex", Vec3(2.5, 64, 0.5))
    h.register.set(Follow("alex", 2.0))

    for _ in range(10):
        h.arbiter.tick()

    assert h.of_type("stuck") == []


def test_stuck_wander_is_dropped_not_rewandered(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.register.set(Wander(20, 20))

    for _ in range(6):
        h.arbiter.tick()

    assert h.register.get() is None
    assert h.of_type("wander") == []
    assert h.body.goal is None


# ---------------------------------------------------------------------------
# auto-sustain
# ---------------------------------------------------------------------------


def test_hunger_warning_once_per_episode(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.body.stats.food = 4

    h.arbiter.tick()
    h.arbiter.tick()
    assert len(h.of_type("hunger_warning")) == 1
    assert h.of_type("hunger_warning")[0]["reason"] == "no_food_items"

    h.body.stats.food = 18
    h.arbiter.tick()
    h.body.stats.food = 3
    h.arbiter.tick()
    assert len(h.of_type("hunger_warning")) == 2


def test_auto_eat_consumes_best_food(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.body.stats.food = 4
    h.body.add_item("apple", 2)
    h.body.add_item("cooked_beef", 1)

    async def _go() -> None:
        h.arbiter.tick()
        assert h.arbiter.state()["isEating"] is True
        for _ in range(3):
            await asyncio.sleep(0)

    asyncio.run(_go())

    ate = h.of_type("ate_food")[0]
    assert ate["item"] == "cooked_beef"
    assert ate["newFoodLevel"] == 10
    assert h.arbiter.state()["isEating"] is False


def test_auto_eat_failure_is_reported(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.body.stats.food = 4
    h.body.add_item("bread", 1)
    h.body.fail_consume = RuntimeError("interrupted")

    async def _go() -> None:
        h.arbiter.tick()
        for _ in range(3):
            await asyncio.sleep(0)

    asyncio.run(_go())

    failed = h.of_type("eat_failed")[0]
    assert failed["error"] == "interrupted"
    assert failed["item"] == "bread"
    assert h.arbiter.state()["isEating"] is False


def test_sprint_when_following_far_player(tmp_path: Path) -> None:
    h = make_harness(tmp_path)
    h.body.add_player(5, "alex", Vec3(20.5, 64, 0.5))
    h.register.set(Follow("alex", 2.0))

    h.arbiter.tick()
    assert h.body.controls["sprint"] is True

    h.body.move_entity(5, Vec3(3.5, 64, 0.5))
    h.arbiter.tick()
    assert h.body.controls["sprint"] is False
