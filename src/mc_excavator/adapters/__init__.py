"""World client adapters (in-memory and minescript integration)."""

from .live_minecraft import MinescriptUnavailableError, MinescriptWorldClient
from .memory_world import InMemoryWorld, WorldUnavailableError
from .world_client import MOVEMENT_INTENTS, WorldClient

__all__ = [
    "InMemoryWorld",
    "MOVEMENT_INTENTS",
    "MinescriptUnavailableError",
    "MinescriptWorldClient",
    "WorldClient",
    "WorldUnavailableError",
]
