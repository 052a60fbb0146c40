"""Excavation controller: decomposes a box into cells and mines them one at a time."""

from __future__ import annotations

import asyncio
import logging
import math
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import uuid4

from mc_excavator.adapters.world_client import WorldClient
from mc_excavator.errors import BusyError, DecompositionError, TransientCellError, ValidationError
from mc_excavator.hazards import HazardAssessor
from mc_excavator.models import (
    CellDescriptor,
    CellOutcome,
    CellRecord,
    ControllerState,
    Coordinate,
    ExcavationStatus,
    NavigationOptions,
    bounding_box,
)
from mc_excavator.navigation import Navigator
from mc_excavator.policy import MaterialPolicy, best_tool, is_empty, normalize_material
from mc_excavator.telemetry.logging import LoggingTelemetry, Telemetry

MIN_THROUGHPUT = 0.1
MAX_THROUGHPUT = 10.0
MAX_SCAN_RADIUS = 3

_ACTIVE_STATES = frozenset({ControllerState.DECOMPOSING, ControllerState.MINING, ControllerState.PAUSED})


def validate_throughput(rate: float) -> float:
    if isinstance(rate, bool) or not isinstance(rate, (int, float)) or not math.isfinite(rate):
        raise ValidationError(f"Throughput must be a finite number, got {rate!r}")
    if not MIN_THROUGHPUT < rate <= MAX_THROUGHPUT:
        raise ValidationError(
            f"Throughput must be in ({MIN_THROUGHPUT}, {MAX_THROUGHPUT}] blocks per second, got {rate}"
        )
    return float(rate)


def _validate_corner(corner: Coordinate) -> Coordinate:
    if not all(isinstance(value, (int, float)) and math.isfinite(value) for value in corner.as_tuple()):
        raise ValidationError(f"Volume corner must have finite components, got {corner}")
    return corner.floored()


def enumerate_box(first: Coordinate, second: Coordinate) -> list[Coordinate]:
    """Every cell of the closed box spanned by two corners, ascending x, then y, then z."""
    low, high = bounding_box(_validate_corner(first), _validate_corner(second))
    return [
        Coordinate(x, y, z)
        for x in range(int(low.x), int(high.x) + 1)
        for y in range(int(low.y), int(high.y) + 1)
        for z in range(int(low.z), int(high.z) + 1)
    ]


@dataclass(slots=True)
class ExcavationOptions:
    """Per-request knobs; ``throughput`` overrides the controller's current rate when set."""

    throughput: float | None = None
    progress_interval: int = 10
    hazard_scan_radius: int = 2
    reach_distance: float = 4.5
    navigation_timeout_ms: int = 15_000
    mitigate_hazards: bool = True

    def validate(self) -> None:
        if self.throughput is not None:
            validate_throughput(self.throughput)
        if self.progress_interval < 1:
            raise ValidationError("progress_interval must be at least 1")
        if not 0 <= self.hazard_scan_radius <= MAX_SCAN_RADIUS:
            raise ValidationError(f"hazard_scan_radius must be within 0..{MAX_SCAN_RADIUS}")
        if self.reach_distance <= 0:
            raise ValidationError("reach_distance must be positive")
        if self.navigation_timeout_ms <= 0:
            raise ValidationError("navigation_timeout_ms must be positive")


class MiningQueue:
    """Cells ordered once at decomposition time and consumed by an advancing cursor."""

    def __init__(self, cells: Iterable[CellDescriptor] = ()) -> None:
        self._cells: list[CellDescriptor] = list(cells)
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._cells)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def remaining(self) -> int:
        return len(self._cells) - self._cursor

    def cells(self) -> list[CellDescriptor]:
        return list(self._cells)

    def current(self) -> CellDescriptor | None:
        if self._cursor >= len(self._cells):
            return None
        return self._cells[self._cursor]

    def advance(self) -> None:
        if self._cursor < len(self._cells):
            self._cursor += 1

    def truncate(self) -> None:
        del self._cells[self._cursor :]


@dataclass(slots=True)
class ExcavationHandle:
    request_id: str
    volume_min: Coordinate
    volume_max: Coordinate
    total_cells: int
    _controller: ExcavationController = field(repr=False)
    queued_cells: int = 0
    _finished: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    _status: ExcavationStatus | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    async def wait(self) -> ExcavationStatus:
        """Block until the request completes or is cancelled and return the final status."""
        await self._finished.wait()
        return self._status or self._controller.get_status()

    def _close(self, status: ExcavationStatus) -> None:
        self._status = status
        self._finished.set()


class ExcavationController:
    """Owns one excavation at a time and drives the mine-one-cell loop.

    Per cell the loop re-reads the block, checks hazards (mitigating when
    unsafe), walks into reach, equips the best held tool, breaks the block and
    waits ``1 / throughput`` seconds. A failing cell is recorded and skipped.
    """

    def __init__(
        self,
        world: WorldClient,
        *,
        policy: MaterialPolicy | None = None,
        hazards: HazardAssessor | None = None,
        navigator: Navigator | None = None,
        telemetry: Telemetry | None = None,
        throughput: float = 1.0,
        max_history: int = 1_000,
        logger: logging.Logger | None = None,
    ) -> None:
        self._world = world
        self._policy = policy or MaterialPolicy.default()
        self._hazards = hazards or HazardAssessor(world)
        self._navigator = navigator or Navigator(world, self._hazards)
        if self._hazards.mover is None:
            self._hazards.mover = self._escape_to
        self._telemetry = telemetry or LoggingTelemetry()
        self._throughput = validate_throughput(throughput)
        self._logger = logger or logging.getLogger("mc_excavator.excavation")

        self._state = ControllerState.IDLE
        self._queue = MiningQueue()
        self._options = ExcavationOptions()
        self._history: deque[CellRecord] = deque(maxlen=max_history)
        self._interrupt = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._generation = 0
        self._handle: ExcavationHandle | None = None
        self._total_cells = 0
        self._processed = 0
        self._mined = 0
        self._skipped = 0

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def policy(self) -> MaterialPolicy:
        return self._policy

    @property
    def hazards(self) -> HazardAssessor:
        return self._hazards

    @property
    def navigator(self) -> Navigator:
        return self._navigator

    async def start_excavation(
        self,
        volume_min: Coordinate,
        volume_max: Coordinate,
        options: ExcavationOptions | None = None,
    ) -> ExcavationHandle:
        """Decompose the box, order its cells and start mining them in the background."""
        if self._state in _ACTIVE_STATES:
            raise BusyError(f"Excavation already in progress (state={self._state.value})")

        options = options or ExcavationOptions()
        options.validate()
        cells = enumerate_box(volume_min, volume_max)

        low, high = bounding_box(volume_min.floored(), volume_max.floored())
        handle = ExcavationHandle(
            request_id=uuid4().hex,
            volume_min=low,
            volume_max=high,
            total_cells=len(cells),
            _controller=self,
        )
        self._generation += 1
        generation = self._generation
        self._state = ControllerState.DECOMPOSING
        self._handle = handle
        self._queue = MiningQueue()
        self._history.clear()
        self._total_cells = self._processed = self._mined = self._skipped = 0
        if self._task is not None and not self._task.done():
            await self._task

        try:
            queue = await asyncio.to_thread(self._decompose, cells)
        except DecompositionError:
            self._logger.exception(
                "decomposition_failed", extra={"cells": len(cells), "request_id": handle.request_id}
            )
            if self._owns_decomposition(generation):
                self._state = ControllerState.IDLE
                self._handle = None
            raise

        handle.queued_cells = len(queue)
        if not self._owns_decomposition(generation):
            # stop() arrived while the world was being queried; it already closed the handle.
            self._logger.info("decomposition_discarded", extra={"request_id": handle.request_id})
            return handle

        self._queue = queue
        self._options = options
        self._total_cells = len(queue)
        if options.throughput is not None:
            self._throughput = validate_throughput(options.throughput)

        self._state = ControllerState.MINING
        self._interrupt.clear()
        self._telemetry.emit(
            "excavation_started",
            {"request_id": handle.request_id, "total_cells": len(cells), "queued_cells": len(queue)},
        )
        self._task = asyncio.create_task(self._run(generation), name="excavation-loop")
        return handle

    def pause(self) -> None:
        if self._state is not ControllerState.MINING:
            return
        self._state = ControllerState.PAUSED
        self._interrupt.set()
        self._logger.info("excavation_paused", extra={"cursor": self._queue.cursor, "remaining": self._queue.remaining})

    def resume(self) -> None:
        if self._state is not ControllerState.PAUSED or self._queue.remaining == 0:
            return
        self._state = ControllerState.MINING
        self._interrupt.clear()
        self._logger.info("excavation_resumed", extra={"cursor": self._queue.cursor, "remaining": self._queue.remaining})
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(self._generation), name="excavation-loop")

    def stop(self) -> None:
        """Cancel the active request; safe to call from any state, any number of times."""
        self._navigator.stop()
        self._queue.truncate()
        self._interrupt.set()
        previous = self._state
        self._state = ControllerState.CANCELLED
        if previous not in _ACTIVE_STATES:
            return
        self._logger.info("excavation_stopped", extra={"processed": self._processed})
        self._finish("excavation_cancelled")

    def set_throughput(self, rate: float) -> None:
        self._throughput = validate_throughput(rate)
        self._logger.info("throughput_updated", extra={"blocks_per_second": self._throughput})

    def add_ignored_materials(self, materials: Iterable[str]) -> None:
        self._policy.add_ignored(materials)
        self._logger.info("ignored_materials_updated", extra={"ignored": self._policy.ignored()})

    def get_status(self) -> ExcavationStatus:
        return ExcavationStatus(
            state=self._state,
            queue_remaining=self._queue.remaining,
            throughput=self._throughput,
            total_cells=self._total_cells,
            processed=self._processed,
            mined=self._mined,
            skipped=self._skipped,
            ignored_materials=self._policy.ignored(),
        )

    def recent_outcomes(self, limit: int = 20) -> list[CellRecord]:
        return list(self._history)[-limit:]

    def _decompose(self, cells: list[Coordinate]) -> MiningQueue:
        try:
            agent = self._world.get_agent_position()
            observed = [(cell, self._world.get_block(cell)) for cell in cells]
        except Exception as exc:  # noqa: BLE001 - any world failure aborts the request.
            raise DecompositionError(f"World query failed during decomposition: {exc}") from exc

        candidates = [
            CellDescriptor(coordinate=cell, material=normalize_material(block.material))
            for cell, block in observed
            if block is not None and not is_empty(block.material) and not self._policy.is_ignored(block.material)
        ]
        # sorted() is stable, so equal distances keep enumeration order.
        candidates = sorted(candidates, key=lambda candidate: agent.distance_to(candidate.coordinate))
        self._logger.info(
            "excavation_decomposed",
            extra={"cells": len(cells), "mineable": len(candidates)},
        )
        return MiningQueue(candidates)

    def _owns(self, generation: int) -> bool:
        return generation == self._generation and self._state is not ControllerState.CANCELLED

    def _owns_decomposition(self, generation: int) -> bool:
        return generation == self._generation and self._state is ControllerState.DECOMPOSING

    async def _run(self, generation: int) -> None:
        try:
            while True:
                if not self._owns(generation):
                    return
                cell = self._queue.current()
                if cell is None:
                    break
                if self._state is not ControllerState.MINING:
                    return

                record = await self._process_cell(cell)
                if not self._owns(generation):
                    return
                self._record(record)

                self._queue.advance()
                self._processed += 1
                if self._processed % self._options.progress_interval == 0:
                    self._telemetry.emit("excavation_progress", self._progress_payload())

                if self._queue.remaining and self._state is ControllerState.MINING:
                    await self._pace()
        except Exception:  # noqa: BLE001 - the loop must always reach a terminal report.
            self._logger.exception("excavation_loop_crashed", extra={"cursor": self._queue.cursor})
            if not self._owns(generation):
                return
            self._queue.truncate()
            self._state = ControllerState.CANCELLED
            self._finish("excavation_cancelled")
            return

        self._state = ControllerState.COMPLETED
        self._logger.info("excavation_completed", extra={"mined": self._mined, "skipped": self._skipped})
        self._finish("excavation_completed")

    async def _process_cell(self, cell: CellDescriptor) -> CellRecord:
        try:
            outcome, detail = await self._mine_cell(cell)
        except TransientCellError as exc:
            self._logger.warning("cell_failed", extra={"cell": str(cell.coordinate), "reason": exc.reason})
            outcome, detail = CellOutcome.FAILED, exc.reason
        except Exception as exc:  # noqa: BLE001 - one bad cell must not stall the excavation.
            self._logger.exception("cell_failed", extra={"cell": str(cell.coordinate)})
            outcome, detail = CellOutcome.FAILED, f"{type(exc).__name__}: {exc}"

        return CellRecord(cell=cell, outcome=outcome, detail=detail)

    def _record(self, record: CellRecord) -> None:
        if record.outcome is CellOutcome.MINED:
            self._mined += 1
        elif record.outcome is not CellOutcome.ALREADY_CLEAR:
            self._skipped += 1
        self._history.append(record)

    async def _mine_cell(self, cell: CellDescriptor) -> tuple[CellOutcome, str | None]:
        coordinate = cell.coordinate
        block = self._world.get_block(coordinate)
        if block is None or is_empty(block.material):
            return CellOutcome.ALREADY_CLEAR, None

        material = normalize_material(block.material)
        if self._policy.is_ignored(material):
            self._logger.info("cell_ignored", extra={"cell": str(coordinate), "material": material})
            return CellOutcome.IGNORED, material

        assessment = self._hazards.assess_cell(coordinate, self._options.hazard_scan_radius)
        if not assessment.is_safe:
            hazards = ", ".join(assessment.hazards)
            self._logger.warning("cell_unsafe", extra={"cell": str(coordinate), "hazards": hazards})
            escaped = self._options.mitigate_hazards and await self._hazards.mitigate(
                assessment.hazard_position or coordinate
            )
            if not escaped:
                return CellOutcome.UNSAFE, hazards

        if not await self._ensure_reach(coordinate):
            return CellOutcome.UNREACHABLE, None

        await self._equip_for(material)
        if not await self._world.break_block(coordinate):
            raise TransientCellError(coordinate, "break action failed")

        self._logger.debug("cell_mined", extra={"cell": str(coordinate), "material": material})
        return CellOutcome.MINED, material

    async def _ensure_reach(self, coordinate: Coordinate) -> bool:
        target = coordinate.centered()
        if self._world.get_agent_position().distance_to(target) <= self._options.reach_distance:
            return True
        return await self._navigator.go_to(
            target,
            NavigationOptions(
                timeout_ms=self._options.navigation_timeout_ms,
                tolerance=self._options.reach_distance,
            ),
        )

    async def _equip_for(self, material: str) -> None:
        requirement = self._policy.tool_for(material)
        if requirement is None:
            return
        tool = best_tool(requirement, self._world.held_items())
        if tool is None:
            self._logger.debug("tool_missing", extra={"material": material, "required": str(requirement)})
            return
        try:
            equipped = await self._world.equip(tool)
        except Exception:  # noqa: BLE001 - equipping is an optimization, never a precondition.
            self._logger.warning("equip_failed", extra={"tool": tool}, exc_info=True)
            return
        if not equipped:
            self._logger.debug("equip_rejected", extra={"tool": tool})

    async def _escape_to(self, target: Coordinate) -> bool:
        return await self._navigator.go_to(
            target,
            NavigationOptions(timeout_ms=self._options.navigation_timeout_ms, tolerance=1.0),
        )

    async def _pace(self) -> None:
        try:
            await asyncio.wait_for(self._interrupt.wait(), timeout=1 / self._throughput)
        except asyncio.TimeoutError:
            pass

    def _progress_payload(self) -> dict:
        return {
            "request_id": self._handle.request_id if self._handle else None,
            "processed": self._processed,
            "total": self._total_cells,
            "mined": self._mined,
            "skipped": self._skipped,
            "remaining": self._queue.remaining,
        }

    def _finish(self, event_name: str) -> None:
        self._telemetry.emit(event_name, self._progress_payload())
        self._queue = MiningQueue()
        if self._handle is not None:
            self._handle._close(self.get_status())
