"""CLI interface for tonemaster."""

import json
import logging
from pathlib import Path

import typer

from .errors import MasteringError
from .interfaces.cli_handlers import (
    check_engine,
    cleanup_workspaces,
    list_presets,
    master_from_paths,
    probe_file,
    run_batch_mastering,
)
from .mastering_options import MasteringMode, OutputFormat
from .utils.config import EngineSettings, load_engine_settings

app = typer.Typer(help="tonemaster command line interface")

_state: dict[str, Path | None] = {"config": None}


def _settings() -> EngineSettings:
    return load_engine_settings(_state["config"])


@app.callback()
def main_callback(
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Optional JSON/YAML engine settings file.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Genre-preset and reference-matched mastering on top of ffmpeg."""

    _state["config"] = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command("master")
def master_command(
    source: Path = typer.Option(..., "--source", "-s", help="Path to the source audio file"),
    output: Path = typer.Option(..., "--output", "-o", help="Path to output mastered file"),
    preset: str = typer.Option("Pop", "--preset", "-p", help="Genre preset name (see `presets`)."),
    mode: MasteringMode = typer.Option(
        MasteringMode.PRESET,
        "--mode",
        case_sensitive=False,
        help="preset, reference (fixed matching chain) or adaptive (preset tuned to reference).",
    ),
    reference: Path | None = typer.Option(
        None,
        "--reference",
        "-r",
        help="Reference track; required for reference and adaptive modes.",
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.WAV,
        "--format",
        case_sensitive=False,
        help="Output format: wav (24-bit/48 kHz) or mp3 (320 kbps).",
    ),
    report_json: Path | None = typer.Option(
        None,
        "--report-json",
        help="Optional path to write the mastering report JSON.",
    ),
) -> None:
    """Master one audio file."""

    try:
        written, report = master_from_paths(
            source,
            output,
            settings=_settings(),
            preset=preset,
            mode=mode,
            reference=reference,
            output_format=output_format,
            report_json=report_json,
        )
    except MasteringError as error:
        typer.echo(f"Mastering failed [{error.kind}]: {error.message}", err=True)
        raise typer.Exit(code=1) from error

    typer.echo(f"Mastered audio written to: {written}")
    typer.echo(f"Session ID: {report.session_id}")
    if report.loudness_degraded:
        typer.echo("Warning: loudness measurement fell back to defaults.", err=True)


@app.command("batch-master")
def batch_master_command(
    manifest: Path | None = typer.Option(
        None,
        "--manifest",
        help="Path to CSV or JSON manifest with source/output/preset/mode/reference columns.",
    ),
    source_pattern: str | None = typer.Option(
        None,
        "--source-pattern",
        help="Glob pattern used to discover source audio files when no manifest is provided.",
    ),
    output_dir: Path = typer.Option(
        ...,
        "--output-dir",
        help="Directory where mastered outputs will be written.",
    ),
    preset: str = typer.Option("Pop", "--preset", "-p", help="Default genre preset name."),
    mode: MasteringMode = typer.Option(
        MasteringMode.PRESET,
        "--mode",
        case_sensitive=False,
        help="preset, reference or adaptive.",
    ),
    reference: Path | None = typer.Option(
        None,
        "--reference",
        help="Default reference track for reference and adaptive modes.",
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.WAV,
        "--format",
        case_sensitive=False,
        help="Output format: wav or mp3.",
    ),
    naming_template: str = typer.Option(
        "{source_stem}_mastered.{ext}",
        "--naming-template",
        help="Output naming template. Variables: index,source_name,source_stem,source_suffix,ext.",
    ),
    concurrency_limit: int | None = typer.Option(
        None,
        "--concurrency-limit",
        min=1,
        help="Maximum number of concurrent mastering jobs (defaults to the configured limit).",
    ),
) -> None:
    """Batch master multiple files using manifest-driven or pattern-driven ingest."""

    try:
        results, summary = run_batch_mastering(
            manifest=manifest,
            source_pattern=source_pattern,
            output_dir=output_dir,
            settings=_settings(),
            preset=preset,
            mode=mode,
            reference=reference,
            output_format=output_format,
            naming_template=naming_template,
            concurrency_limit=concurrency_limit,
        )
    except ValueError as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=2) from error

    for item in results:
        if item["status"] == "succeeded":
            typer.echo(
                "[OK] "
                f"#{item['index']} source={item['source']} "
                f"output={item['output']} session_id={item['session_id']}"
            )
        else:
            typer.echo(f"[FAILED] #{item['index']} source={item['source']} error={item['error']}")

    typer.echo(
        "Summary: "
        f"total={summary['total']} "
        f"succeeded={summary['succeeded']} "
        f"failed={summary['failed']}"
    )
    if summary["failed"]:
        raise typer.Exit(code=1)


@app.command("probe")
def probe_command(
    path: Path = typer.Argument(..., help="Audio file to analyse"),
    skip_loudness: bool = typer.Option(False, "--skip-loudness", help="Skip the loudnorm measurement."),
) -> None:
    """Print the analysis of an audio file as JSON."""

    try:
        payload = probe_file(path, settings=_settings(), include_loudness=not skip_loudness)
    except MasteringError as error:
        typer.echo(json.dumps(error.as_dict()), err=True)
        raise typer.Exit(code=1) from error
    typer.echo(json.dumps(payload, indent=2))


@app.command("presets")
def presets_command(
    as_json: bool = typer.Option(False, "--json", help="Print full preset settings as JSON."),
) -> None:
    """List the genre preset catalog."""

    presets = list_presets()
    if as_json:
        typer.echo(json.dumps(presets, indent=2))
        return
    for preset in presets:
        typer.echo(
            f"{preset['name']}: target={preset['target_loudness_lufs']} LUFS "
            f"ratio={preset['compression']['ratio']} "
            f"ceiling={preset['limiting']['threshold_db']} dB "
            f"width={preset['stereo_width_percent']}%"
        )


@app.command("check-engine")
def check_engine_command() -> None:
    """Locate and validate ffmpeg/ffprobe."""

    try:
        paths = check_engine(_settings())
    except MasteringError as error:
        typer.echo(f"Engine unavailable: {error.message}", err=True)
        raise typer.Exit(code=1) from error
    typer.echo(f"ffmpeg: {paths.ffmpeg}")
    typer.echo(f"ffprobe: {paths.ffprobe}")
    typer.echo(f"version: {paths.version or 'unknown'}")


@app.command("cleanup")
def cleanup_command() -> None:
    """Delete job workspaces older than the retention window."""

    removed = cleanup_workspaces(_settings())
    for path in removed:
        typer.echo(f"Removed {path}")
    typer.echo(f"Removed {len(removed)} expired workspace(s).")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
