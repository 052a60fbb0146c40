from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True, slots=True)
class Coordinate:
    """Immutable (x, y, z) triple; integer for grid cells, float for the agent position."""

    x: float
    y: float
    z: float

    def offset(self, dx: float, dy: float, dz: float) -> Coordinate:
        return Coordinate(self.x + dx, self.y + dy, self.z + dz)

    def plus(self, other: Coordinate) -> Coordinate:
        return Coordinate(self.x + other.x, self.y + other.y, self.z + other.z)

    def minus(self, other: Coordinate) -> Coordinate:
        return Coordinate(self.x - other.x, self.y - other.y, self.z - other.z)

    def scaled(self, factor: float) -> Coordinate:
        return Coordinate(self.x * factor, self.y * factor, self.z * factor)

    def norm(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def normalize(self) -> Coordinate:
        length = self.norm()
        if length == 0:
            return self
        return self.scaled(1 / length)

    def distance_to(self, other: Coordinate) -> float:
        return math.dist(self.as_tuple(), other.as_tuple())

    def floored(self) -> Coordinate:
        return Coordinate(math.floor(self.x), math.floor(self.y), math.floor(self.z))

    def centered(self) -> Coordinate:
        cell = self.floored()
        return cell.offset(0.5, 0.5, 0.5)

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def __str__(self) -> str:
        return f"({self.x}, {self.y}, {self.z})"


ZERO = Coordinate(0, 0, 0)


def bounding_box(first: Coordinate, second: Coordinate) -> tuple[Coordinate, Coordinate]:
    """Normalize an arbitrary corner pair into (min corner, max corner)."""
    return (
        Coordinate(min(first.x, second.x), min(first.y, second.y), min(first.z, second.z)),
        Coordinate(max(first.x, second.x), max(first.y, second.y), max(first.z, second.z)),
    )


@dataclass(frozen=True, slots=True)
class BlockState:
    material: str
    bounding_box: str = "block"

    @property
    def is_full_block(self) -> bool:
        return self.bounding_box == "block"


@dataclass(frozen=True, slots=True)
class CellDescriptor:
    """A cell and the material observed there when the queue was built."""

    coordinate: Coordinate
    material: str


@dataclass(frozen=True, slots=True)
class WorldEntity:
    id: str
    name: str
    kind: str
    position: Coordinate


@dataclass(frozen=True, slots=True)
class EntitySighting:
    id: str
    name: str
    position: Coordinate
    distance: float


@dataclass(frozen=True, slots=True)
class LiquidClassification:
    is_hazard_liquid: bool = False
    is_water_liquid: bool = False


@dataclass(slots=True)
class HazardReport:
    lava: list[Coordinate] = field(default_factory=list)
    water: list[Coordinate] = field(default_factory=list)
    hostiles: list[EntitySighting] = field(default_factory=list)
    is_safe: bool = True


@dataclass(slots=True)
class ThreatAssessment:
    hostile: list[EntitySighting] = field(default_factory=list)
    peaceful: list[EntitySighting] = field(default_factory=list)
    threat_level: str = "low"


@dataclass(slots=True)
class SafetyAssessment:
    position: Coordinate
    is_safe: bool = True
    hazards: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    hazard_position: Coordinate | None = None


@dataclass(frozen=True, slots=True)
class NavigationOptions:
    timeout_ms: int = 60_000
    tolerance: float = 0.5
    check_obstacles: bool = True
    avoid_lava: bool = True
    avoid_water: bool = False


@dataclass(frozen=True, slots=True)
class NavigationGoal:
    target: Coordinate
    tolerance: float
    issued_at: float = field(default_factory=time.time)
    options: NavigationOptions = field(default_factory=NavigationOptions)


@dataclass(slots=True)
class NavigationStatus:
    is_navigating: bool
    goal_count: int
    current_position: Coordinate
    goals: list[NavigationGoal]


class ControllerState(str, Enum):
    """Lifecycle states of an excavation controller."""

    IDLE = "idle"
    DECOMPOSING = "decomposing"
    MINING = "mining"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class CellOutcome(str, Enum):
    MINED = "mined"
    ALREADY_CLEAR = "already_clear"
    IGNORED = "ignored"
    UNSAFE = "unsafe"
    UNREACHABLE = "unreachable"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class CellRecord:
    cell: CellDescriptor
    outcome: CellOutcome
    detail: str | None = None


@dataclass(slots=True)
class ExcavationStatus:
    state: ControllerState
    queue_remaining: int
    throughput: float
    total_cells: int = 0
    processed: int = 0
    mined: int = 0
    skipped: int = 0
    ignored_materials: list[str] = field(default_factory=list)
