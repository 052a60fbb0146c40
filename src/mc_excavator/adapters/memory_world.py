"""Deterministic in-memory voxel world.

Used by the test-suite and by the CLI's ``--demo-world`` backend so the
excavation loop can run without a live game. Movement is a coarse kinematic
model: every position poll is one tick, a held ``forward`` intent advances the
agent along its yaw unless a solid block is in the way, and a ``jump`` press
lifts it one cell when there is head room. There is no gravity.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Iterable, Mapping

from mc_excavator.adapters.world_client import MOVEMENT_INTENTS
from mc_excavator.models import ZERO, BlockState, Coordinate, WorldEntity
from mc_excavator.policy import is_empty, normalize_material

_PASSABLE_FAMILIES = ("air", "water", "lava")

Cell = tuple[int, int, int]


def _cell(coordinate: Coordinate) -> Cell:
    floored = coordinate.floored()
    return int(floored.x), int(floored.y), int(floored.z)


class WorldUnavailableError(ConnectionError):
    """Raised by :class:`InMemoryWorld` when it is switched offline."""


class InMemoryWorld:
    def __init__(
        self,
        blocks: Mapping[Cell, str] | None = None,
        *,
        agent_position: Coordinate = ZERO,
        entities: Iterable[WorldEntity] = (),
        items: Iterable[str] = (),
        default_material: str | None = "air",
        walk_step: float = 0.25,
    ) -> None:
        self._blocks: dict[Cell, str] = {cell: normalize_material(m) for cell, m in (blocks or {}).items()}
        self._position = agent_position
        self._velocity = ZERO
        self._yaw = 0.0
        self._pitch = 0.0
        self._intents: dict[str, bool] = {name: False for name in MOVEMENT_INTENTS}
        self.entities: list[WorldEntity] = list(entities)
        self.items: list[str] = list(items)
        self.default_material = default_material
        self.walk_step = walk_step
        self.held_item: str | None = None
        self.offline = False
        self.failing_cells: set[Cell] = set()
        self.broken: list[Coordinate] = []
        self.intent_log: list[tuple[str, bool]] = []
        self.equip_log: list[str] = []

    @classmethod
    def filled(cls, first: Cell, second: Cell, material: str, **kwargs) -> InMemoryWorld:
        """Build a world whose box spanned by ``first``/``second`` is filled with ``material``."""
        (x1, y1, z1), (x2, y2, z2) = first, second
        blocks = {
            (x, y, z): material
            for x in range(min(x1, x2), max(x1, x2) + 1)
            for y in range(min(y1, y2), max(y1, y2) + 1)
            for z in range(min(z1, z2), max(z1, z2) + 1)
        }
        return cls(blocks, **kwargs)

    def set_block(self, cell: Cell, material: str) -> None:
        self._blocks[cell] = normalize_material(material)

    def material_at(self, cell: Cell) -> str | None:
        return self._blocks.get(cell, self.default_material)

    # WorldClient protocol

    def get_block(self, coordinate: Coordinate) -> BlockState | None:
        self._ensure_online()
        material = self.material_at(_cell(coordinate))
        if material is None:
            return None
        passable = any(family in material for family in _PASSABLE_FAMILIES)
        return BlockState(material=material, bounding_box="empty" if passable else "block")

    def get_nearby_entities(self) -> list[WorldEntity]:
        self._ensure_online()
        return list(self.entities)

    async def break_block(self, coordinate: Coordinate) -> bool:
        self._ensure_online()
        await asyncio.sleep(0)
        cell = _cell(coordinate)
        if cell in self.failing_cells:
            return False
        self._blocks[cell] = "air"
        self.broken.append(Coordinate(*cell))
        return True

    async def equip(self, item: str) -> bool:
        await asyncio.sleep(0)
        if item not in self.items:
            return False
        self.held_item = item
        self.equip_log.append(item)
        return True

    def held_items(self) -> list[str]:
        return list(self.items)

    def set_movement_intent(self, direction: str, active: bool) -> None:
        if direction not in self._intents:
            raise ValueError(f"Unknown movement intent: {direction}")
        self.intent_log.append((direction, active))
        if direction == "jump" and active and not self._intents["jump"]:
            self._try_move(Coordinate(0, 1, 0))
        self._intents[direction] = active

    def face(self, yaw: float, pitch: float) -> None:
        self._yaw = yaw
        self._pitch = pitch

    def get_agent_position(self) -> Coordinate:
        self._ensure_online()
        if self._intents["forward"] and self.walk_step > 0:
            step = Coordinate(-math.sin(self._yaw), 0, -math.cos(self._yaw)).scaled(self.walk_step)
            self._try_move(step)
        else:
            self._velocity = ZERO
        return self._position

    def get_agent_velocity(self) -> Coordinate:
        return self._velocity

    # helpers

    @property
    def active_intents(self) -> set[str]:
        return {name for name, active in self._intents.items() if active}

    def teleport(self, position: Coordinate) -> None:
        self._position = position
        self._velocity = ZERO

    def _try_move(self, delta: Coordinate) -> None:
        target = self._position.plus(delta)
        feet = _cell(target)
        head = (feet[0], feet[1] + 1, feet[2])
        if self._is_solid(feet) or self._is_solid(head):
            self._velocity = ZERO
            return
        self._velocity = delta
        self._position = target

    def _is_solid(self, cell: Cell) -> bool:
        material = self.material_at(cell)
        if is_empty(material):
            return False
        return not any(family in material for family in _PASSABLE_FAMILIES)

    def _ensure_online(self) -> None:
        if self.offline:
            raise WorldUnavailableError("In-memory world is offline")
