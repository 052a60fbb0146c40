"""Hazard assessment over the live environment.

Every call reads the world afresh; nothing is cached between calls because
liquids flow and mobs move between ticks.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from mc_excavator.adapters.world_client import WorldClient
from mc_excavator.models import (
    Coordinate,
    EntitySighting,
    HazardReport,
    LiquidClassification,
    SafetyAssessment,
    ThreatAssessment,
    WorldEntity,
)
from mc_excavator.policy import normalize_material

LAVA_MATERIALS = frozenset({"lava", "flowing_lava"})
WATER_MATERIALS = frozenset({"water", "flowing_water"})
HOSTILE_TYPES = frozenset(
    {
        "zombie",
        "skeleton",
        "creeper",
        "spider",
        "cave_spider",
        "enderman",
        "witch",
        "slime",
        "magma_cube",
        "ghast",
        "blaze",
        "wither_skeleton",
        "stray",
        "husk",
        "drowned",
        "phantom",
        "pillager",
        "ravager",
    }
)
MIN_SAFE_DISTANCE = 2.0
ESCAPE_RISE = 2
ESCAPE_SPREAD = 5

EscapeMover = Callable[[Coordinate], Awaitable[bool]]


class HazardAssessor:
    """Classifies liquids and hostile entities around the agent."""

    def __init__(
        self,
        world: WorldClient,
        *,
        safe_distance: float = 5.0,
        mover: EscapeMover | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._world = world
        self._safe_distance = max(MIN_SAFE_DISTANCE, safe_distance)
        self.mover = mover
        self._logger = logger or logging.getLogger("mc_excavator.hazards")

    @property
    def safe_distance(self) -> float:
        return self._safe_distance

    @safe_distance.setter
    def safe_distance(self, distance: float) -> None:
        self._safe_distance = max(MIN_SAFE_DISTANCE, distance)

    def classify(self, position: Coordinate) -> LiquidClassification:
        """Classify one cell; unresolvable cells count as non-hazardous."""
        block = self._world.get_block(position)
        if block is None:
            return LiquidClassification()
        material = normalize_material(block.material)
        return LiquidClassification(
            is_hazard_liquid=material in LAVA_MATERIALS,
            is_water_liquid=material in WATER_MATERIALS,
        )

    def is_lava_present(self, position: Coordinate) -> bool:
        return self.classify(position).is_hazard_liquid

    def is_water_present(self, position: Coordinate) -> bool:
        return self.classify(position).is_water_liquid

    def is_liquid_free(self, position: Coordinate) -> bool:
        liquid = self.classify(position)
        return not (liquid.is_hazard_liquid or liquid.is_water_liquid)

    def matches_material(self, position: Coordinate, hazard: str) -> bool:
        """Substring match of ``hazard`` (e.g. ``"lava"``) against the cell's material."""
        block = self._world.get_block(position)
        if block is None:
            return False
        return hazard in normalize_material(block.material)

    def detect_hostiles(self) -> ThreatAssessment:
        """Partition living entities into hostile and peaceful sightings.

        ``threat_level`` is ``"high"`` whenever any hostile is known, regardless
        of distance; callers filter on each sighting's ``distance``.
        """
        agent = self._world.get_agent_position()
        assessment = ThreatAssessment()
        for entity in self._world.get_nearby_entities():
            if entity.kind != "mob":
                continue
            sighting = _sighting(entity, agent)
            if normalize_material(entity.name) in HOSTILE_TYPES:
                assessment.hostile.append(sighting)
            else:
                assessment.peaceful.append(sighting)
        assessment.threat_level = "high" if assessment.hostile else "low"
        return assessment

    def has_hostiles(self, max_distance: float | None = None) -> bool:
        limit = self._safe_distance if max_distance is None else max_distance
        return any(mob.distance <= limit for mob in self.detect_hostiles().hostile)

    def closest_hostile(self) -> EntitySighting | None:
        hostile = self.detect_hostiles().hostile
        if not hostile:
            return None
        return min(hostile, key=lambda mob: mob.distance)

    def scan_volume(self, center: Coordinate, radius: int = 3) -> HazardReport:
        """Visit every cell of the cube of side ``2 * radius + 1`` around ``center``.

        Cost is cubic in ``radius``; keep it small when scanning per cell.
        """
        origin = center.floored()
        report = HazardReport()
        for dx in range(-radius, radius + 1):
            for dy in range(-radius, radius + 1):
                for dz in range(-radius, radius + 1):
                    cell = origin.offset(dx, dy, dz)
                    liquid = self.classify(cell)
                    if liquid.is_hazard_liquid:
                        report.lava.append(cell)
                        report.is_safe = False
                    elif liquid.is_water_liquid:
                        report.water.append(cell)

        for mob in self.detect_hostiles().hostile:
            cell = mob.position.floored()
            if all(abs(a - b) <= radius for a, b in zip(cell.as_tuple(), origin.as_tuple())):
                report.hostiles.append(mob)
                report.is_safe = False
        return report

    def assess_cell(self, position: Coordinate, scan_radius: int = 2) -> SafetyAssessment:
        """Combined verdict for mining ``position`` with human-readable recommendations."""
        assessment = SafetyAssessment(position=position)

        liquid = self.classify(position)
        if liquid.is_hazard_liquid:
            assessment.is_safe = False
            assessment.hazards.append("lava")
            assessment.recommendations.append("Use fire resistance potion or avoid")
            assessment.hazard_position = position
        if liquid.is_water_liquid:
            assessment.hazards.append("water")
            assessment.recommendations.append("Be cautious, mining underwater is slower")

        closest = self.closest_hostile()
        if closest is not None and closest.distance <= self._safe_distance:
            assessment.is_safe = False
            assessment.hazards.append("hostile mobs")
            assessment.recommendations.append(
                f"Hostile mob nearby: {closest.name} at {closest.distance:.1f} blocks"
            )
            assessment.hazard_position = assessment.hazard_position or closest.position

        area = self.scan_volume(position, scan_radius)
        if area.lava:
            assessment.is_safe = False
            assessment.hazards.append("nearby lava")
            assessment.hazard_position = assessment.hazard_position or area.lava[0]
        if area.hostiles and "hostile mobs" not in assessment.hazards:
            assessment.is_safe = False
            assessment.hazards.append("hostile mobs")
            assessment.hazard_position = assessment.hazard_position or area.hostiles[0].position
        return assessment

    async def mitigate(self, hazardous_position: Coordinate) -> bool:
        """Try to climb up and move diagonally away from ``hazardous_position``.

        The escape vector is a fixed offset with no guarantee of safe footing, so
        the result is advisory. Never raises.
        """
        if self.mover is None:
            self._logger.warning("mitigation_unavailable", extra={"hazard": str(hazardous_position)})
            return False

        try:
            agent = self._world.get_agent_position()
            away = agent.minus(hazardous_position)
            sign_x = -1 if away.x < 0 else 1
            sign_z = -1 if away.z < 0 else 1
            target = agent.offset(ESCAPE_SPREAD * sign_x, ESCAPE_RISE, ESCAPE_SPREAD * sign_z)
            reached = bool(await self.mover(target))
        except Exception:  # noqa: BLE001 - escape failures are reported as a False outcome.
            self._logger.exception("mitigation_failed", extra={"hazard": str(hazardous_position)})
            return False

        self._logger.info(
            "mitigation_finished",
            extra={"hazard": str(hazardous_position), "target": str(target), "reached": reached},
        )
        return reached


def _sighting(entity: WorldEntity, agent: Coordinate) -> EntitySighting:
    return EntitySighting(
        id=entity.id,
        name=entity.name,
        position=entity.position,
        distance=agent.distance_to(entity.position),
    )
