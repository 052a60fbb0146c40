"""CLI startup entrypoint for MC Excavator."""

from __future__ import annotations

import asyncio
import signal
from dataclasses import asdict

import typer
from rich import print

from mc_excavator.adapters import InMemoryWorld, MinescriptUnavailableError, MinescriptWorldClient, WorldClient
from mc_excavator.config import settings
from mc_excavator.errors import ExcavatorError
from mc_excavator.excavation import ExcavationController, ExcavationOptions, enumerate_box
from mc_excavator.hazards import HazardAssessor
from mc_excavator.models import Coordinate, WorldEntity, bounding_box
from mc_excavator.policy import MaterialPolicy
from mc_excavator.telemetry.logging import configure_logging

app = typer.Typer(help="MC Excavator service entrypoint")

_DEMO_ORES = ("coal_ore", "iron_ore", "diamond_ore", "bedrock")


class _ConsoleTelemetry:
    """Prints excavation events to the terminal."""

    def emit(self, event_name: str, payload: dict) -> None:
        print({"event": event_name, **payload})


def _demo_world(first: Coordinate, second: Coordinate) -> InMemoryWorld:
    """Stone-filled box with a deterministic sprinkle of ores; the agent stands at the low corner."""
    low, high = bounding_box(first, second)
    world = InMemoryWorld.filled(
        (int(low.x), int(low.y), int(low.z)),
        (int(high.x), int(high.y), int(high.z)),
        "stone",
        agent_position=low.offset(0.5, 0, 0.5),
        items=["wooden_pickaxe", "stone_pickaxe", "iron_pickaxe"],
        entities=[
            WorldEntity(id="demo-zombie", name="zombie", kind="mob", position=low.offset(12.5, 0, 12.5)),
            WorldEntity(id="demo-pig", name="pig", kind="mob", position=low.offset(-3.5, 0, 1.5)),
        ],
    )
    for index, cell in enumerate(enumerate_box(low, high)):
        if index % 7 == 3:
            world.set_block((int(cell.x), int(cell.y), int(cell.z)), _DEMO_ORES[index % len(_DEMO_ORES)])
    return world


def _build_world(first: Coordinate, second: Coordinate, demo_world: bool) -> WorldClient:
    if demo_world or settings.world_backend.lower() != "minescript":
        return _demo_world(first, second)
    try:
        return MinescriptWorldClient(break_timeout_seconds=settings.break_timeout_seconds)
    except MinescriptUnavailableError as exc:
        print({"warning": str(exc), "fallback": "demo world"})
        return _demo_world(first, second)


def _build_policy() -> MaterialPolicy:
    policy = MaterialPolicy.default()
    policy.add_ignored(settings.ignored_materials)
    return policy


@app.callback()
def main() -> None:
    configure_logging(settings.log_level)


@app.command()
def start() -> None:
    """Show runtime backend configuration."""
    print(settings.model_dump())


@app.command()
def excavate(
    x1: int = typer.Option(..., help="First corner X"),
    y1: int = typer.Option(..., help="First corner Y"),
    z1: int = typer.Option(..., help="First corner Z"),
    x2: int = typer.Option(..., help="Opposite corner X"),
    y2: int = typer.Option(..., help="Opposite corner Y"),
    z2: int = typer.Option(..., help="Opposite corner Z"),
    throughput: float = typer.Option(None, help="Blocks per second, within (0.1, 10]"),
    demo_world: bool = typer.Option(False, help="Run against a generated in-memory world"),
) -> None:
    """Excavate the box between two corners; Ctrl+C cancels cleanly."""
    first, second = Coordinate(x1, y1, z1), Coordinate(x2, y2, z2)
    world = _build_world(first, second, demo_world)
    controller = ExcavationController(
        world,
        policy=_build_policy(),
        hazards=HazardAssessor(world, safe_distance=settings.safe_distance),
        telemetry=_ConsoleTelemetry(),
        throughput=settings.throughput,
    )
    options = ExcavationOptions(
        throughput=throughput,
        progress_interval=settings.progress_interval,
        hazard_scan_radius=settings.hazard_scan_radius,
        reach_distance=settings.reach_distance,
        navigation_timeout_ms=settings.navigation_timeout_ms,
    )

    async def _run() -> dict:
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, controller.stop)
        except (NotImplementedError, RuntimeError):
            pass
        handle = await controller.start_excavation(first, second, options)
        status = await handle.wait()
        return asdict(status)

    try:
        result = asyncio.run(_run())
    except ExcavatorError as exc:
        print({"error": f"{type(exc).__name__}: {exc}"})
        raise typer.Exit(code=1)

    result["state"] = result["state"].value
    print({"excavation_result": result})


@app.command()
def scan(
    x: float = typer.Option(..., help="Center X"),
    y: float = typer.Option(..., help="Center Y"),
    z: float = typer.Option(..., help="Center Z"),
    radius: int = typer.Option(2, min=0, max=3, help="Cube radius in cells"),
    demo_world: bool = typer.Option(False, help="Run against a generated in-memory world"),
) -> None:
    """Report liquid and hostile hazards in the cube around a point."""
    center = Coordinate(x, y, z)
    world = _build_world(center, center, demo_world)
    report = HazardAssessor(world, safe_distance=settings.safe_distance).scan_volume(center, radius)
    print({"hazard_report": asdict(report)})


@app.command()
def threats(
    max_distance: float = typer.Option(None, help="Only count hostiles within this many blocks"),
    demo_world: bool = typer.Option(False, help="Run against a generated in-memory world"),
) -> None:
    """Summarize hostile and peaceful mobs around the agent."""
    origin = Coordinate(0, 0, 0)
    assessor = HazardAssessor(_build_world(origin, origin, demo_world), safe_distance=settings.safe_distance)
    assessment = assessor.detect_hostiles()
    print(
        {
            "threat_level": assessment.threat_level,
            "hostile": [asdict(mob) for mob in assessment.hostile],
            "peaceful": [asdict(mob) for mob in assessment.peaceful],
            "hostiles_in_range": assessor.has_hostiles(max_distance),
        }
    )


if __name__ == "__main__":
    app()
