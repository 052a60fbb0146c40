from __future__ import annotations

import asyncio

import pytest

from mc_excavator.adapters.memory_world import InMemoryWorld
from mc_excavator.hazards import MIN_SAFE_DISTANCE, HazardAssessor
from mc_excavator.models import Coordinate, WorldEntity


def _mob(name: str, x: float, y: float, z: float, kind: str = "mob") -> WorldEntity:
    return WorldEntity(id=f"{name}-{x}-{z}", name=name, kind=kind, position=Coordinate(x, y, z))


def test_scan_volume_flags_lava_inside_the_cube() -> None:
    world = InMemoryWorld({(1, 0, 0): "lava"})

    report = HazardAssessor(world).scan_volume(Coordinate(0, 0, 0), radius=1)

    assert report.is_safe is False
    assert report.lava == [Coordinate(1, 0, 0)]
    assert report.water == []


def test_scan_volume_reports_water_without_marking_unsafe() -> None:
    world = InMemoryWorld({(0, -1, 0): "minecraft:water", (3, 0, 0): "lava"})

    report = HazardAssessor(world).scan_volume(Coordinate(0.7, 0.2, 0.4), radius=1)

    assert report.is_safe is True
    assert report.water == [Coordinate(0, -1, 0)]
    assert report.lava == []


def test_scan_volume_counts_only_hostiles_inside_the_cube() -> None:
    world = InMemoryWorld(entities=[_mob("zombie", 1.5, 0, 1.5), _mob("skeleton", 9.5, 0, 0.5), _mob("cow", 0.5, 0, 0.5)])

    report = HazardAssessor(world).scan_volume(Coordinate(0, 0, 0), radius=2)

    assert [mob.name for mob in report.hostiles] == ["zombie"]
    assert report.is_safe is False


def test_detect_hostiles_splits_hostile_and_peaceful() -> None:
    world = InMemoryWorld(
        entities=[
            _mob("zombie", 3, 0, 4),
            _mob("pig", 1, 0, 0),
            _mob("player", 2, 0, 0, kind="player"),
        ]
    )

    assessment = HazardAssessor(world).detect_hostiles()

    assert assessment.threat_level == "high"
    assert len(assessment.hostile) == 1
    assert len(assessment.peaceful) == 1
    assert assessment.hostile[0].distance == pytest.approx(5.0)


def test_threat_level_is_low_without_hostiles() -> None:
    world = InMemoryWorld(entities=[_mob("sheep", 1, 0, 0)])

    assert HazardAssessor(world).detect_hostiles().threat_level == "low"


def test_has_hostiles_respects_distance_limit() -> None:
    world = InMemoryWorld(entities=[_mob("creeper", 8, 0, 0), _mob("spider", 0, 0, 12)])
    assessor = HazardAssessor(world, safe_distance=5)

    assert assessor.has_hostiles() is False
    assert assessor.has_hostiles(max_distance=10) is True
    assert assessor.closest_hostile().name == "creeper"


def test_safe_distance_never_drops_below_minimum() -> None:
    assessor = HazardAssessor(InMemoryWorld(), safe_distance=0.5)
    assert assessor.safe_distance == MIN_SAFE_DISTANCE

    assessor.safe_distance = 1
    assert assessor.safe_distance == MIN_SAFE_DISTANCE

    assessor.safe_distance = 7
    assert assessor.safe_distance == 7


def test_unresolvable_cell_is_not_a_liquid() -> None:
    world = InMemoryWorld(default_material=None)
    assessor = HazardAssessor(world)

    liquid = assessor.classify(Coordinate(40, 5, -3))

    assert liquid.is_hazard_liquid is False
    assert liquid.is_water_liquid is False
    assert assessor.is_liquid_free(Coordinate(40, 5, -3))


def test_liquid_predicates_follow_material() -> None:
    world = InMemoryWorld({(0, 0, 0): "flowing_lava", (1, 0, 0): "water"})
    assessor = HazardAssessor(world)

    assert assessor.is_lava_present(Coordinate(0, 0, 0))
    assert assessor.is_water_present(Coordinate(1, 0, 0))
    assert not assessor.is_liquid_free(Coordinate(1, 0, 0))
    assert assessor.matches_material(Coordinate(0, 0, 0), "lava")
    assert not assessor.matches_material(Coordinate(2, 0, 0), "lava")


def test_assess_cell_combines_hazards_with_recommendations() -> None:
    world = InMemoryWorld(
        {(0, 0, 0): "stone", (0, 0, 2): "lava", (0, 1, 0): "water"},
        entities=[_mob("witch", 3, 0, 0)],
    )
    assessor = HazardAssessor(world, safe_distance=5)

    assessment = assessor.assess_cell(Coordinate(0, 0, 0), scan_radius=2)
    water = assessor.assess_cell(Coordinate(0, 1, 0), scan_radius=0)

    assert assessment.is_safe is False
    assert assessment.hazards == ["hostile mobs", "nearby lava"]
    assert "witch" in assessment.recommendations[0]
    assert assessment.hazard_position == Coordinate(3, 0, 0)
    assert "water" in water.hazards
    assert water.recommendations[0].startswith("Be cautious")


def test_mitigate_without_mover_reports_failure() -> None:
    assessor = HazardAssessor(InMemoryWorld())

    assert asyncio.run(assessor.mitigate(Coordinate(1, 0, 1))) is False


def test_mitigate_moves_up_and_away_from_hazard() -> None:
    targets: list[Coordinate] = []

    async def mover(target: Coordinate) -> bool:
        targets.append(target)
        return True

    world = InMemoryWorld(agent_position=Coordinate(0, 0, 0))
    assessor = HazardAssessor(world, mover=mover)

    assert asyncio.run(assessor.mitigate(Coordinate(1, 0, 1))) is True
    assert targets == [Coordinate(-5, 2, -5)]


def test_mitigate_swallows_mover_failures() -> None:
    async def mover(target: Coordinate) -> bool:
        raise RuntimeError("path blocked")

    assessor = HazardAssessor(InMemoryWorld(), mover=mover)

    assert asyncio.run(assessor.mitigate(Coordinate(0, 0, 0))) is False
