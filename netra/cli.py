"""
Command-line interface for NETRA.
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

app = typer.Typer(
    name="netra",
    help="Hands-free visual assistant driven by voice commands",
    no_args_is_help=True,
)

console = Console()

DEFAULT_CONFIG = "configs/default.yaml"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    logging.getLogger("netra").setLevel(logging.DEBUG if verbose else logging.INFO)


def _build_orchestrator(config):
    """Wire services for the resolved config."""
    from netra.assistant.camera import Camera, CameraConfig
    from netra.assistant.core import Orchestrator
    from netra.services.location import (
        IPLocationProvider,
        NullLocationProvider,
        StaticLocationProvider,
    )
    from netra.services.narration import ConsoleNarrator, RemoteTTSNarrator
    from netra.services.recognition import ConsoleRecognizer
    from netra.services.vision import OpenAIVisionService

    if config.narrator == "remote":
        narrator = RemoteTTSNarrator()
    elif config.narrator == "console":
        narrator = ConsoleNarrator(console=console)
    else:
        raise ValueError(f"Unknown narrator: {config.narrator} (expected 'console' or 'remote')")

    if config.latitude is not None and config.longitude is not None:
        location = StaticLocationProvider(config.latitude, config.longitude)
    elif config.geoip:
        location = IPLocationProvider()
    else:
        location = NullLocationProvider()

    camera = Camera(CameraConfig(device=config.camera_device)) if config.camera_enabled else None

    return Orchestrator(
        vision=OpenAIVisionService(),
        narrator=narrator,
        recognizer=ConsoleRecognizer(),
        camera=camera,
        location=location,
        config=config,
    )


async def _serve(orchestrator) -> None:
    try:
        await orchestrator.run()
    finally:
        await orchestrator.close()


@app.command()
def run(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config preset (e.g., configs/default.yaml)"),
    narrator: str = typer.Option("console", "--narrator", "-n", help="Narrator (console or remote)"),
    camera_device: int = typer.Option(0, "--camera-device", help="Camera device index"),
    no_camera: bool = typer.Option(False, "--no-camera", help="Run without a camera (scans report a sensor fault)"),
    latitude: Optional[float] = typer.Option(None, "--lat", help="Fixed latitude for location reports"),
    longitude: Optional[float] = typer.Option(None, "--lng", help="Fixed longitude for location reports"),
    geoip: bool = typer.Option(False, "--geoip", help="Use IP geolocation for location reports"),
    rate: float = typer.Option(1.0, "--rate", help="Speech rate"),
    pitch: int = typer.Option(0, "--pitch", help="Voice pitch (-400..400)"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """
    Run the assistant. Type commands on stdin, one per line.

    Example:
        netra run --config configs/default.yaml --lat 48.8584 --lng 2.2945
    """
    import asyncio

    from netra.assistant.core import AssistantConfig

    _setup_logging(verbose)
    console.print("[bold]NETRA visual assistant[/bold]\n")

    yaml_config: dict = {}
    resolved_path = Path(str(config_file) if config_file is not None else DEFAULT_CONFIG)
    if resolved_path.exists():
        yaml_config = AssistantConfig.from_yaml(str(resolved_path))
        console.print(f"[dim]Loaded config: {resolved_path}[/dim]")
    elif config_file is not None:
        console.print(f"[red]Error: Config file not found: {config_file}[/red]")
        raise typer.Exit(1)

    # CLI values override YAML only when they differ from their defaults
    cli_defaults = {
        "narrator": "console", "camera_device": 0, "camera_enabled": True,
        "latitude": None, "longitude": None, "geoip": False,
        "speech_rate": 1.0, "voice_pitch": 0, "verbose": False,
    }
    cli_values = {
        "narrator": narrator, "camera_device": camera_device, "camera_enabled": not no_camera,
        "latitude": latitude, "longitude": longitude, "geoip": geoip,
        "speech_rate": rate, "voice_pitch": pitch, "verbose": verbose,
    }
    merged = dict(yaml_config)
    merged.update({k: v for k, v in cli_values.items() if v != cli_defaults[k]})

    config = AssistantConfig(**merged)

    try:
        orchestrator = _build_orchestrator(config)
    except (ValueError, ImportError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"Narrator: {config.narrator}")
    console.print(f"Camera: {'device ' + str(config.camera_device) if config.camera_enabled else 'disabled'}")
    if config.latitude is not None and config.longitude is not None:
        console.print(f"Location: fixed ({config.latitude}, {config.longitude})")
    elif config.geoip:
        console.print("Location: IP geolocation")
    console.print("\n[dim]Say 'help' for commands. Press Ctrl+C to stop[/dim]\n")

    try:
        asyncio.run(_serve(orchestrator))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")


@app.command()
def route(
    transcript: str = typer.Argument(..., help="Transcript to classify"),
    entity: List[str] = typer.Option([], "--entity", "-e", help="Name of a tracked object (repeatable)"),
    threshold: float = typer.Option(0.35, "--threshold", "-t", help="Fuzzy match threshold"),
):
    """Show how a transcript would be routed."""
    from netra.intent.router import CommandRouter
    from netra.tracking.tracker import BoundingBox, TrackedEntity

    entities = tuple(
        TrackedEntity(id=i, name=name, box=BoundingBox(0, 0, 0, 0))
        for i, name in enumerate(entity, start=1)
    )
    intent = CommandRouter(threshold=threshold).route(transcript, entities)

    table = Table(title="Routing")
    table.add_column("Property")
    table.add_column("Value", no_wrap=True)
    table.add_row("Transcript", transcript)
    table.add_row("Intent", intent.kind.value)
    if intent.entity_id is not None:
        name = next(e.name for e in entities if e.id == intent.entity_id)
        table.add_row("Entity", f"{intent.entity_id} ({name})")
    if intent.text is not None:
        table.add_row("Text", intent.text)
    console.print(table)


@app.command()
def match(
    transcript: str = typer.Argument(..., help="Recognized speech"),
    keyword: str = typer.Argument(..., help="Command keyword or phrase"),
    threshold: float = typer.Option(0.35, "--threshold", "-t", help="Fuzzy match threshold"),
):
    """Check a single keyword against a transcript."""
    from netra.intent.fuzzy import matches, normalized_distance

    hit = matches(transcript, keyword, threshold)
    console.print(f"[bold]{'MATCH' if hit else 'NO MATCH'}[/bold]: '{keyword}' in '{transcript}'")

    table = Table(title="Word distances")
    table.add_column("Word")
    table.add_column("Normalized distance", justify="right")
    for word in transcript.lower().split():
        table.add_row(word, f"{normalized_distance(word, keyword.lower()):.2f}")
    console.print(table)

    if not hit:
        raise typer.Exit(1)


@app.command()
def info():
    """Show version, service configuration and command vocabulary."""
    from netra import __version__
    from netra.config import get_config
    from netra.intent.router import Vocabulary

    console.print(f"\n[bold]NETRA v{__version__}[/bold]\n")

    cfg = get_config()
    table = Table(title="Services")
    table.add_column("Property")
    table.add_column("Value")
    table.add_row("Vision endpoint", cfg.vision.base_url)
    table.add_row("Vision model", cfg.vision.model)
    table.add_row("API keys", str(len(cfg.vision.api_keys)))
    table.add_row("TTS server", cfg.tts.base_url)
    table.add_row("Geolocation", cfg.location.url)
    console.print(table)

    vocabulary = Vocabulary()
    table = Table(title="Commands")
    table.add_column("Intent", no_wrap=True)
    table.add_column("Keywords")
    for kind, keywords in vocabulary.command_sets():
        table.add_row(kind.value, ", ".join(keywords))
    table.add_row("object_reference", ", ".join(vocabulary.intent_prefixes) + " + object name")
    console.print(table)
    console.print()


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
