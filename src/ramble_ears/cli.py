"""Command line interface for Ramble Ears.

Commands:
- ``backends``: show which recognition backends are usable and why
- ``stream``: feed a WAV file through a streaming session as if it were live
"""

import json
import time
import wave
from pathlib import Path

import numpy as np
import rich_click as click
from rich.console import Console
from rich.table import Table

from .audio.conversion import decode_pcm16
from .core.config import ConfigLoader
from .core.logging import setup_logging
from .transcription.backends.registry import get_backend_info
from .transcription.streaming.config import StreamingConfig, TranscriberConfig
from .transcription.streaming.factory import create_transcriber
from .transcription.streaming.types import BackendKind

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.STYLE_OPTION = "#ff79c6"
click.rich_click.STYLE_ARGUMENT = "#8be9fd"
click.rich_click.STYLE_COMMAND = "#50fa7b"
click.rich_click.STYLE_USAGE = "#bd93f9"
click.rich_click.STYLE_HELPTEXT = "#b3b8c0"

console = Console(stderr=True)


def _load_transcriber_config(ctx: click.Context) -> tuple[TranscriberConfig, StreamingConfig]:
    options = ctx.obj
    loader = ConfigLoader(options["config"]) if options["config"] else ConfigLoader()
    transcriber = TranscriberConfig.from_config(loader)
    for field_name in ("backend", "model_path", "executable_path", "language"):
        value = options.get(field_name)
        if value:
            setattr(transcriber, field_name, value)
    transcriber.debug = transcriber.debug or options["debug"]
    return transcriber, StreamingConfig.from_config(loader)


def read_wav(path: Path, expected_rate: int = 16000) -> np.ndarray:
    """Read a mono 16-bit WAV file as float32 samples."""
    with wave.open(str(path), "rb") as wav_file:
        if wav_file.getnchannels() != 1:
            raise click.BadParameter(f"{path} must be mono, got {wav_file.getnchannels()} channels")
        if wav_file.getsampwidth() != 2:
            raise click.BadParameter(f"{path} must be 16-bit PCM")
        if wav_file.getframerate() != expected_rate:
            raise click.BadParameter(f"{path} must be sampled at {expected_rate} Hz, got {wav_file.getframerate()}")
        frames = wav_file.readframes(wav_file.getnframes())
    return decode_pcm16(frames)


@click.group()
@click.option("--config", type=click.Path(dir_okay=False), help=" ⚙️  Configuration file path")
@click.option(
    "--backend",
    type=click.Choice(["auto", "native_binding", "linked_library", "spawned_process"]),
    help=" 🔌 Force a backend instead of automatic selection",
)
@click.option("--model-path", type=click.Path(), help=" 🤖 Model file or directory")
@click.option("--executable", "executable_path", type=click.Path(), help=" ⚙️  whisper.cpp executable")
@click.option("--language", help=" 🌍 Language code (e.g., 'en', 'es', 'auto')")
@click.option("--debug", is_flag=True, help=" 🐛 Enable detailed debug logging")
@click.pass_context
def main(ctx, config, backend, model_path, executable_path, language, debug):
    """🎙️ [bold cyan]Ramble Ears[/bold cyan] - streaming transcription engine

    \b
    [bold yellow]🎯 Quick Start:[/bold yellow]
      [green]ramble-ears backends[/green]                 [italic]# Which engines are usable[/italic]
      [green]ramble-ears stream talk.wav[/green]          [italic]# Transcribe a WAV as if live[/italic]
      [green]ramble-ears stream talk.wav --json[/green]   [italic]# JSON lines output[/italic]
    """
    setup_logging(log_level="DEBUG" if debug else "INFO", include_console=debug)
    ctx.ensure_object(dict)
    ctx.obj.update(
        {
            "config": config,
            "backend": backend,
            "model_path": model_path,
            "executable_path": executable_path,
            "language": language,
            "debug": debug,
        }
    )


@main.command()
@click.option("--json", "as_json", is_flag=True, help=" 📄 Output JSON")
@click.pass_context
def backends(ctx, as_json):
    """📋 Show recognition backends and whether they can be used."""
    transcriber, _streaming = _load_transcriber_config(ctx)
    info = get_backend_info(transcriber)

    if as_json:
        click.echo(json.dumps(info, indent=2))
        return

    table = Table(title="Recognition backends")
    table.add_column("Backend", style="cyan")
    table.add_column("Available")
    table.add_column("Details")
    table.add_column("Description", style="dim")
    for name, details in info.items():
        available = "[green]yes[/green]" if details["available"] else "[red]no[/red]"
        table.add_row(name, available, details["reason"], details["description"])
    Console().print(table)


@main.command()
@click.argument("wav_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--chunk-ms", type=click.IntRange(10, 5000), default=100, show_default=True, help=" ✂️  Frame size")
@click.option("--realtime", is_flag=True, help=" ⏱️  Feed frames at real-time pace")
@click.option("--json", "as_json", is_flag=True, help=" 📄 Output JSON lines")
@click.option("--timeout", type=float, default=120.0, show_default=True, help=" ⌛ Max seconds to wait for output")
@click.option(
    "--settle",
    type=click.FloatRange(0.0),
    default=3.0,
    show_default=True,
    help=" ⏳ Seconds of engine silence to wait for before stopping",
)
@click.pass_context
def stream(ctx, wav_path, chunk_ms, realtime, as_json, timeout, settle):
    """🎤 Stream a 16 kHz mono WAV file through the transcriber."""
    transcriber, streaming = _load_transcriber_config(ctx)
    samples = read_wav(wav_path, streaming.sample_rate)
    chunk = max(1, streaming.sample_rate * chunk_ms // 1000)

    def emit(text: str) -> None:
        if as_json:
            click.echo(json.dumps({"text": text}))
        else:
            click.echo(text)

    session = create_transcriber(transcriber, streaming_config=streaming, fallback_to_placeholder=True)
    with session:
        kind, model = session.model_info()
        placeholder = session.backend.describe().get("kind") == "placeholder"
        if placeholder:
            console.print("[yellow]No transcription backend available; no text will be produced[/yellow]")
        else:
            console.print(f"[dim]Backend: {kind} ({model or 'default model'})[/dim]")

        session.set_streaming_callback(emit)
        session.set_recording_state(True)
        try:
            for start in range(0, samples.size, chunk):
                session.process_audio_chunk(samples[start : start + chunk])
                if realtime:
                    time.sleep(chunk / streaming.sample_rate)
            session.flush()
            if not session.wait_idle(timeout):
                console.print(f"[yellow]Recognition still running after {timeout:.0f}s, stopping[/yellow]")
            # A spawned engine keeps printing after the last write
            if session.backend_kind is BackendKind.SPAWNED_PROCESS and not placeholder and settle > 0:
                session.wait_quiet(settle, timeout)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
        finally:
            session.set_recording_state(False)

    if ctx.obj["debug"]:
        console.print(session.metrics.to_dict())


if __name__ == "__main__":
    main()
