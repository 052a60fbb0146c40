"""Live Minecraft world client.

The client talks to a running game through the ``minescript`` module, which is
only importable inside a game instance with the mod installed. It is resolved
at construction time so the rest of the package stays testable in CI.
"""

from __future__ import annotations

import asyncio
import importlib
import math
import time
from types import ModuleType
from typing import Any, Callable

from mc_excavator.models import ZERO, BlockState, Coordinate, WorldEntity
from mc_excavator.policy import is_empty, normalize_material

_PASSABLE_FAMILIES = ("air", "water", "lava")
_INTENT_FUNCTIONS = {
    "forward": "player_press_forward",
    "back": "player_press_backward",
    "left": "player_press_left",
    "right": "player_press_right",
    "jump": "player_press_jump",
    "sprint": "player_press_sprint",
}
_REQUIRED_FUNCTIONS = (
    "getblock",
    "player_position",
    "entities",
    "player_inventory",
    "player_inventory_select_slot",
    "player_set_orientation",
    "player_look_at",
    "player_press_attack",
    *_INTENT_FUNCTIONS.values(),
)
HOTBAR_SLOTS = 9


class MinescriptUnavailableError(RuntimeError):
    """Raised when minescript is not installed or lacks a function the client needs."""


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def _strip_block_state(block_id: str) -> str:
    return normalize_material(block_id.split("[", 1)[0])


class MinescriptWorldClient:
    """World client backed by minescript's player and world functions."""

    def __init__(
        self,
        module: ModuleType | None = None,
        *,
        break_timeout_seconds: float = 5.0,
        break_poll_seconds: float = 0.05,
    ) -> None:
        self._api = self._resolve_api(module)
        self._break_timeout_seconds = break_timeout_seconds
        self._break_poll_seconds = break_poll_seconds
        self._last_position: Coordinate | None = None
        self._velocity = ZERO

    def get_block(self, coordinate: Coordinate) -> BlockState | None:
        cell = coordinate.floored()
        raw = self._api["getblock"](int(cell.x), int(cell.y), int(cell.z))
        if not raw:
            return None
        material = _strip_block_state(str(raw))
        passable = is_empty(material) or any(family in material for family in _PASSABLE_FAMILIES)
        return BlockState(material=material, bounding_box="empty" if passable else "block")

    def get_nearby_entities(self) -> list[WorldEntity]:
        entities: list[WorldEntity] = []
        for index, record in enumerate(self._api["entities"]() or []):
            position = _field(record, "position")
            if not position:
                continue
            entity_type = str(_field(record, "type", "") or _field(record, "name", ""))
            name = normalize_material(entity_type.rsplit(".", 1)[-1])
            entities.append(
                WorldEntity(
                    id=str(_field(record, "uuid", None) or _field(record, "id", None) or index),
                    name=name,
                    kind=self._entity_kind(name),
                    position=Coordinate(*(float(value) for value in position[:3])),
                )
            )
        return entities

    async def break_block(self, coordinate: Coordinate) -> bool:
        cell = coordinate.floored()
        center = cell.centered()
        self._api["player_look_at"](center.x, center.y, center.z)
        self._api["player_press_attack"](True)
        try:
            deadline = time.monotonic() + self._break_timeout_seconds
            while time.monotonic() < deadline:
                block = self.get_block(cell)
                if block is None or is_empty(block.material):
                    return True
                await asyncio.sleep(self._break_poll_seconds)
            return False
        finally:
            self._api["player_press_attack"](False)

    async def equip(self, item: str) -> bool:
        wanted = normalize_material(item)
        for slot, name in self._hotbar():
            if name == wanted:
                self._api["player_inventory_select_slot"](slot)
                return True
        return False

    def held_items(self) -> list[str]:
        """Items on the hotbar; only those can be selected into the main hand."""
        return [name for _, name in self._hotbar()]

    def set_movement_intent(self, direction: str, active: bool) -> None:
        function_name = _INTENT_FUNCTIONS.get(direction)
        if function_name is None:
            raise ValueError(f"Unknown movement intent: {direction}")
        self._api[function_name](active)

    def face(self, yaw: float, pitch: float) -> None:
        # Yaw is measured from north (-z) toward west; the game measures from south (+z).
        self._api["player_set_orientation"](math.degrees(math.pi - yaw), -math.degrees(pitch))

    def get_agent_position(self) -> Coordinate:
        x, y, z = self._api["player_position"]()[:3]
        position = Coordinate(float(x), float(y), float(z))
        self._velocity = position.minus(self._last_position) if self._last_position else ZERO
        self._last_position = position
        return position

    def get_agent_velocity(self) -> Coordinate:
        return self._velocity

    def _hotbar(self) -> list[tuple[int, str]]:
        stacks: list[tuple[int, str]] = []
        for stack in self._api["player_inventory"]() or []:
            slot = _field(stack, "slot")
            if slot is None or int(slot) >= HOTBAR_SLOTS:
                continue
            stacks.append((int(slot), normalize_material(str(_field(stack, "item", "")))))
        return stacks

    @staticmethod
    def _entity_kind(name: str) -> str:
        if name == "player":
            return "player"
        if name in {"item", "experience_orb", "arrow", "falling_block"}:
            return "object"
        return "mob"

    @staticmethod
    def _resolve_api(module: ModuleType | None) -> dict[str, Callable[..., Any]]:
        if module is None:
            try:
                module = importlib.import_module("minescript")
            except Exception as exc:  # noqa: BLE001
                raise MinescriptUnavailableError(
                    "Unable to import minescript. Install it and ensure Minecraft + the mod are running."
                ) from exc

        api: dict[str, Callable[..., Any]] = {}
        missing: list[str] = []
        for name in _REQUIRED_FUNCTIONS:
            fn = getattr(module, name, None)
            if callable(fn):
                api[name] = fn
            else:
                missing.append(name)

        if missing:
            raise MinescriptUnavailableError(
                f"Imported minescript but it lacks required functions: {', '.join(missing)}"
            )
        return api
