"""Reactive goal-seeking navigation with bounded look-ahead.

There is no global path search: each iteration reads the world afresh, dodges
whatever solid block or liquid is immediately ahead, and steers straight at the
goal. Convergence is not guaranteed; a timeout is a normal "not reached" result.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections import deque

from mc_excavator.adapters.world_client import MOVEMENT_INTENTS, WorldClient
from mc_excavator.errors import BusyError
from mc_excavator.hazards import HazardAssessor
from mc_excavator.models import BlockState, Coordinate, NavigationGoal, NavigationOptions, NavigationStatus

# Preference order matters: the first feasible direction wins.
AVOIDANCE_DIRECTIONS: tuple[tuple[str, int, int], ...] = (
    ("right", 1, 0),
    ("left", -1, 0),
    ("forward", 0, 1),
    ("back", 0, -1),
)
HORIZONTAL_INTENTS = ("forward", "back", "left", "right")
PASSABLE_FAMILIES = ("air", "water", "lava")
LOOKAHEAD_CELLS = 3
VERTICAL_THRESHOLD = 0.5


def is_solid(block: BlockState | None) -> bool:
    """A full, collidable block that is neither air nor liquid."""
    if block is None:
        return False
    material = block.material
    return block.is_full_block and not any(family in material for family in PASSABLE_FAMILIES)


class Navigator:
    """Drives the agent toward one goal at a time."""

    def __init__(
        self,
        world: WorldClient,
        hazards: HazardAssessor,
        *,
        step_delay_seconds: float = 0.05,
        burst_seconds: float = 0.1,
        jump_pulse_seconds: float = 0.05,
        max_goal_history: int = 256,
        logger: logging.Logger | None = None,
    ) -> None:
        self._world = world
        self._hazards = hazards
        self._step_delay_seconds = step_delay_seconds
        self._burst_seconds = burst_seconds
        self._jump_pulse_seconds = jump_pulse_seconds
        self._goals: deque[NavigationGoal] = deque(maxlen=max_goal_history)
        self._navigating = False
        self._stop_requested = False
        self._pressed: set[str] = set()
        self._logger = logger or logging.getLogger("mc_excavator.navigation")

    @property
    def is_navigating(self) -> bool:
        return self._navigating

    async def go_to(self, target: Coordinate, options: NavigationOptions | None = None) -> bool:
        """Move toward ``target`` until within tolerance, stopped, or timed out."""
        options = options or NavigationOptions()
        if self._navigating:
            raise BusyError("Navigator is already driving toward a goal")

        self._goals.append(NavigationGoal(target=target, tolerance=options.tolerance, options=options))
        self._navigating = True
        self._stop_requested = False
        loop = asyncio.get_running_loop()
        deadline = loop.time() + options.timeout_ms / 1000
        self._logger.debug("navigation_started", extra={"target": str(target), "timeout_ms": options.timeout_ms})

        try:
            while loop.time() < deadline:
                if self._stop_requested:
                    self._logger.info("navigation_stopped", extra={"target": str(target)})
                    return False

                position = self._world.get_agent_position()
                if position.distance_to(target) < options.tolerance:
                    self._logger.debug("navigation_reached", extra={"target": str(target)})
                    return True

                if options.check_obstacles and self._is_obstacle_ahead(position):
                    direction = self._avoidance_direction(position)
                    if direction is not None:
                        await self._burst(direction)

                if options.avoid_lava and self._hazard_nearby(position, "lava"):
                    await self._avoid_hazard(position, "lava")
                if options.avoid_water and self._hazard_nearby(position, "water"):
                    await self._avoid_hazard(position, "water")

                await self._steer(position, target)
                await asyncio.sleep(self._step_delay_seconds)

            self._logger.warning(
                "navigation_timeout",
                extra={"target": str(target), "timeout_ms": options.timeout_ms},
            )
            return False
        finally:
            self._release(tuple(self._pressed))
            self._navigating = False

    def stop(self) -> None:
        """Release every movement intent and forget tracked goals; safe to call at any time."""
        self._stop_requested = True
        self._goals.clear()
        for intent in MOVEMENT_INTENTS:
            self._world.set_movement_intent(intent, False)
        self._pressed.clear()

    def get_status(self) -> NavigationStatus:
        return NavigationStatus(
            is_navigating=self._navigating,
            goal_count=len(self._goals),
            current_position=self._world.get_agent_position(),
            goals=list(self._goals),
        )

    def can_stand(self, position: Coordinate) -> bool:
        """Passable cell with a solid cell directly beneath it."""
        block = self._world.get_block(position)
        below = self._world.get_block(position.offset(0, -1, 0))
        if block is None or below is None:
            return False
        passable = any(family in block.material for family in PASSABLE_FAMILIES)
        return passable and is_solid(below)

    def can_move(self, position: Coordinate) -> bool:
        """Feet and head cells are clear and the agent could stand there."""
        for dy in (0, 1):
            if is_solid(self._world.get_block(position.offset(0, dy, 0))):
                return False
        return self.can_stand(position)

    def _is_obstacle_ahead(self, position: Coordinate) -> bool:
        velocity = self._world.get_agent_velocity()
        heading = Coordinate(velocity.x, 0, velocity.z).normalize()
        if heading.norm() == 0:
            return False

        for distance in range(1, LOOKAHEAD_CELLS + 1):
            probe = position.offset(heading.x * distance, 0, heading.z * distance)
            if is_solid(self._world.get_block(probe)):
                return True
        return False

    def _avoidance_direction(self, position: Coordinate) -> tuple[str, int, int] | None:
        for direction in AVOIDANCE_DIRECTIONS:
            _, dx, dz = direction
            if self.can_move(position.offset(dx, 0, dz)):
                return direction
        return None

    def _hazard_nearby(self, position: Coordinate, hazard: str) -> bool:
        # 3x4x3 window: one cell below the feet up to one above the head.
        for dx in range(-1, 2):
            for dy in range(-1, 3):
                for dz in range(-1, 2):
                    if self._hazards.matches_material(position.offset(dx, dy, dz), hazard):
                        return True
        return False

    async def _avoid_hazard(self, position: Coordinate, hazard: str) -> None:
        for direction in AVOIDANCE_DIRECTIONS:
            _, dx, dz = direction
            if not self._hazards.matches_material(position.offset(dx, 0, dz), hazard):
                self._logger.debug("hazard_avoidance", extra={"hazard": hazard, "direction": direction[0]})
                await self._burst(direction)
                return

    async def _burst(self, direction: tuple[str, int, int]) -> None:
        self._press(direction[0])
        await asyncio.sleep(self._burst_seconds)
        self._release(HORIZONTAL_INTENTS)

    async def _steer(self, position: Coordinate, target: Coordinate) -> None:
        delta = target.minus(position)
        self._world.face(math.atan2(-delta.x, -delta.z), 0.0)
        self._press("forward")

        if target.y > position.y + VERTICAL_THRESHOLD:
            self._press("jump")
            await asyncio.sleep(self._jump_pulse_seconds)
            self._release(("jump",))
        elif target.y < position.y - VERTICAL_THRESHOLD:
            # Best effort only: gravity does the work once the agent walks off an edge.
            if self.can_stand(position.offset(0, -1, 0)):
                self._logger.debug("step_down_available", extra={"position": str(position)})

    def _press(self, intent: str) -> None:
        if intent in self._pressed:
            return
        self._world.set_movement_intent(intent, True)
        self._pressed.add(intent)

    def _release(self, intents: tuple[str, ...]) -> None:
        for intent in intents:
            if intent in self._pressed:
                self._world.set_movement_intent(intent, False)
                self._pressed.discard(intent)
