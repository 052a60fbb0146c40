from __future__ import annotations

import asyncio
import time

import pytest

from mc_excavator.adapters.memory_world import InMemoryWorld
from mc_excavator.errors import BusyError
from mc_excavator.hazards import HazardAssessor
from mc_excavator.models import Coordinate, NavigationOptions
from mc_excavator.navigation import Navigator, is_solid


def _navigator(world: InMemoryWorld, **kwargs) -> Navigator:
    return Navigator(world, HazardAssessor(world), step_delay_seconds=0.01, burst_seconds=0.01, **kwargs)


def _floored_world(**kwargs) -> InMemoryWorld:
    return InMemoryWorld.filled((-3, -1, -3), (3, -1, 3), "stone", **kwargs)


def test_goal_at_current_position_returns_without_moving() -> None:
    world = InMemoryWorld(agent_position=Coordinate(2.5, 64, 2.5))
    navigator = _navigator(world)

    assert asyncio.run(navigator.go_to(Coordinate(2.5, 64, 2.5))) is True
    assert world.intent_log == []


def test_walks_to_goal_and_releases_intents() -> None:
    world = _floored_world(agent_position=Coordinate(0.5, 0, 0.5))
    navigator = _navigator(world)

    reached = asyncio.run(navigator.go_to(Coordinate(0.5, 0, -2.5), NavigationOptions(timeout_ms=5_000)))

    assert reached is True
    assert world.active_intents == set()
    assert ("forward", True) in world.intent_log
    assert world.get_agent_position().z < 0


def test_target_above_pulses_jump() -> None:
    world = InMemoryWorld(agent_position=Coordinate(0.5, 0, 0.5))
    navigator = _navigator(world)

    reached = asyncio.run(navigator.go_to(Coordinate(0.5, 2, -1.5), NavigationOptions(timeout_ms=5_000)))

    assert reached is True
    assert ("jump", True) in world.intent_log
    assert world.get_agent_position().y == 2
    assert world.active_intents == set()


def test_wall_ahead_triggers_sidestep_during_go_to() -> None:
    world = _floored_world(agent_position=Coordinate(0.5, 0, 0.5))
    world.set_block((0, 0, -2), "stone")
    world.set_block((0, 1, -2), "stone")
    navigator = _navigator(world)

    reached = asyncio.run(navigator.go_to(Coordinate(0.5, 0, -2.5), NavigationOptions(timeout_ms=300)))

    assert reached is False
    assert ("right", True) in world.intent_log
    assert world.active_intents == set()


def test_unreachable_goal_times_out() -> None:
    world = InMemoryWorld(agent_position=Coordinate(0, 0, 0), walk_step=0)
    navigator = _navigator(world)

    started = time.monotonic()
    reached = asyncio.run(navigator.go_to(Coordinate(50, 0, 50), NavigationOptions(timeout_ms=200)))

    assert reached is False
    assert time.monotonic() - started < 2
    assert world.active_intents == set()
    assert navigator.is_navigating is False


def test_stop_interrupts_navigation() -> None:
    async def _run() -> tuple[bool, int]:
        world = InMemoryWorld(walk_step=0)
        navigator = _navigator(world)
        task = asyncio.create_task(navigator.go_to(Coordinate(100, 0, 100)))
        await asyncio.sleep(0.05)
        navigator.stop()
        reached = await asyncio.wait_for(task, timeout=1)
        return reached, navigator.get_status().goal_count

    reached, goal_count = asyncio.run(_run())

    assert reached is False
    assert goal_count == 0


def test_second_goal_is_rejected_while_navigating() -> None:
    async def _run() -> None:
        world = InMemoryWorld(walk_step=0)
        navigator = _navigator(world)
        task = asyncio.create_task(navigator.go_to(Coordinate(10, 0, 10)))
        await asyncio.sleep(0.02)
        with pytest.raises(BusyError):
            await navigator.go_to(Coordinate(-10, 0, -10))
        navigator.stop()
        await task

    asyncio.run(_run())


def test_status_tracks_issued_goals() -> None:
    world = InMemoryWorld(agent_position=Coordinate(1, 2, 3))
    navigator = _navigator(world)

    asyncio.run(navigator.go_to(Coordinate(1, 2, 3)))
    status = navigator.get_status()

    assert status.is_navigating is False
    assert status.goal_count == 1
    assert status.goals[0].target == Coordinate(1, 2, 3)
    assert status.current_position == Coordinate(1, 2, 3)


def test_can_stand_requires_passable_cell_over_solid_floor() -> None:
    world = _floored_world()
    world.set_block((1, -1, 1), "water")
    navigator = _navigator(world)

    assert navigator.can_stand(Coordinate(0.5, 0, 0.5))
    assert not navigator.can_stand(Coordinate(1.5, 0, 1.5))
    assert not navigator.can_stand(Coordinate(0.5, -1, 0.5))
    assert not navigator.can_stand(Coordinate(0.5, 5, 0.5))


def test_can_move_needs_head_room() -> None:
    world = _floored_world()
    world.set_block((2, 1, 0), "dirt")
    navigator = _navigator(world)

    assert navigator.can_move(Coordinate(1.5, 0, 0.5))
    assert not navigator.can_move(Coordinate(2.5, 0, 0.5))


def test_avoidance_prefers_right_then_left() -> None:
    world = _floored_world()
    navigator = _navigator(world)
    position = Coordinate(0.5, 0, 0.5)

    assert navigator._avoidance_direction(position)[0] == "right"

    world.set_block((1, 0, 0), "stone")
    assert navigator._avoidance_direction(position)[0] == "left"

    world.set_block((-1, 0, 0), "stone")
    world.set_block((0, 0, 1), "stone")
    assert navigator._avoidance_direction(position)[0] == "back"

    world.set_block((0, 0, -1), "stone")
    assert navigator._avoidance_direction(position) is None


def test_obstacle_lookahead_uses_horizontal_velocity() -> None:
    world = _floored_world(agent_position=Coordinate(0.5, 0, 0.5))
    world.set_block((0, 0, -2), "stone")
    navigator = _navigator(world)
    position = Coordinate(0.5, 0, 0.5)

    assert navigator._is_obstacle_ahead(position) is False

    world.face(0.0, 0.0)
    world.set_movement_intent("forward", True)
    moved = world.get_agent_position()

    assert navigator._is_obstacle_ahead(moved) is True


def test_lava_nearby_triggers_sidestep_away_from_it() -> None:
    world = _floored_world()
    world.set_block((1, 0, 0), "lava")
    navigator = _navigator(world)
    position = Coordinate(0.5, 0, 0.5)

    assert navigator._hazard_nearby(position, "lava")
    assert not navigator._hazard_nearby(position, "water")

    asyncio.run(navigator._avoid_hazard(position, "lava"))

    assert world.intent_log[0] == ("left", True)
    assert world.active_intents == set()


def test_is_solid_ignores_liquids_and_air() -> None:
    world = InMemoryWorld({(0, 0, 0): "stone", (1, 0, 0): "lava"})

    assert is_solid(world.get_block(Coordinate(0, 0, 0)))
    assert not is_solid(world.get_block(Coordinate(1, 0, 0)))
    assert not is_solid(world.get_block(Coordinate(2, 0, 0)))
    assert not is_solid(None)
