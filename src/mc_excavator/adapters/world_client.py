"""Boundary for the game-world integration consumed by the excavation core."""

from typing import Protocol

from mc_excavator.models import BlockState, Coordinate, WorldEntity

MOVEMENT_INTENTS = ("forward", "back", "left", "right", "jump", "sprint")


class WorldClient(Protocol):
    """Block/entity state queries plus the primitive actions an agent can issue."""

    def get_block(self, coordinate: Coordinate) -> BlockState | None:
        """Return the block at ``coordinate`` or None when no data is loaded for it."""

    def get_nearby_entities(self) -> list[WorldEntity]:
        """Return entities currently known around the agent."""

    async def break_block(self, coordinate: Coordinate) -> bool:
        """Remove the block at ``coordinate``; False when the action failed."""

    async def equip(self, item: str) -> bool:
        """Move ``item`` into the main hand (best effort)."""

    def held_items(self) -> list[str]:
        """Return item ids the agent carries."""

    def set_movement_intent(self, direction: str, active: bool) -> None:
        """Press or release one of :data:`MOVEMENT_INTENTS`."""

    def face(self, yaw: float, pitch: float) -> None:
        """Orient the agent's view (radians)."""

    def get_agent_position(self) -> Coordinate:
        """Return the agent's continuous (not grid-snapped) position."""

    def get_agent_velocity(self) -> Coordinate:
        """Return the agent's current movement vector."""
