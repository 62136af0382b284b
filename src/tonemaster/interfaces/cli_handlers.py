"""CLI-facing handlers that delegate to application services."""

from __future__ import annotations

import csv
import json
import shutil
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import Any

from tonemaster.analysis import analyze_file
from tonemaster.application.mastering_service import MasteringEngine
from tonemaster.domain.models import AudioAnalysis, MasteringReport, MasteringSubmission
from tonemaster.infrastructure.engine_locator import EngineLocator, EnginePaths
from tonemaster.infrastructure.logging_event_publisher import LoggingEventPublisher
from tonemaster.infrastructure.workspace import sweep_expired_workspaces
from tonemaster.mastering_options import MasteringMode, OutputFormat, parse_case_insensitive_enum
from tonemaster.presets import PRESET_CATALOG
from tonemaster.utils.config import EngineSettings

_event_publisher = LoggingEventPublisher()


class ManifestFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


def build_mastering_engine(settings: EngineSettings) -> MasteringEngine:
    return MasteringEngine(
        locator=EngineLocator.from_settings(settings),
        settings=settings,
        event_publisher=_event_publisher,
    )


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return value.as_posix()
    return value


def report_to_dict(report: MasteringReport) -> dict[str, Any]:
    return _jsonable(asdict(report))


def analysis_to_dict(analysis: AudioAnalysis) -> dict[str, Any]:
    return _jsonable(asdict(analysis))


def master_from_paths(
    source: Path,
    output: Path,
    settings: EngineSettings,
    preset: str = "Pop",
    mode: MasteringMode = MasteringMode.PRESET,
    reference: Path | None = None,
    output_format: OutputFormat = OutputFormat.WAV,
    report_json: Path | None = None,
) -> tuple[Path, MasteringReport]:
    """Master ``source`` and copy the result to ``output``."""

    engine = build_mastering_engine(settings)
    report = engine.submit(
        MasteringSubmission(
            source_file=source,
            preset_name=preset,
            mode=mode,
            reference_file=reference,
            output_format=output_format,
        )
    )
    output.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(report.download_handle, output)
    if report_json is not None:
        report_json.parent.mkdir(parents=True, exist_ok=True)
        report_json.write_text(json.dumps(report_to_dict(report), indent=2), encoding="utf-8")
    return output, report


def _parse_manifest(manifest_path: Path) -> list[dict[str, str]]:
    suffix = manifest_path.suffix.lower()
    if suffix == ".csv":
        manifest_format = ManifestFormat.CSV
    elif suffix == ".json":
        manifest_format = ManifestFormat.JSON
    else:
        raise ValueError("Manifest must end in .csv or .json.")

    if manifest_format == ManifestFormat.CSV:
        with manifest_path.open("r", newline="", encoding="utf-8") as csv_handle:
            rows = [dict(row) for row in csv.DictReader(csv_handle)]
    else:
        payload = json.loads(manifest_path.read_text(encoding="utf-8"))
        if not isinstance(payload, list):
            raise ValueError("JSON manifest must be an array of item objects.")
        rows = [{key: str(value) for key, value in dict(item).items()} for item in payload]

    if not rows:
        raise ValueError("Manifest does not contain any items.")
    return rows


def _resolve_output_path(
    item: dict[str, str],
    source_path: Path,
    output_dir: Path,
    naming_template: str,
    item_index: int,
    output_format: OutputFormat,
) -> Path:
    explicit_output = (item.get("output") or "").strip()
    if explicit_output:
        return output_dir / explicit_output

    rendered_name = naming_template.format(
        index=item_index,
        source_name=source_path.name,
        source_stem=source_path.stem,
        source_suffix=source_path.suffix,
        ext=output_format.value,
    )
    return output_dir / rendered_name


def run_batch_mastering(
    manifest: Path | None,
    source_pattern: str | None,
    output_dir: Path,
    settings: EngineSettings,
    preset: str = "Pop",
    mode: MasteringMode = MasteringMode.PRESET,
    reference: Path | None = None,
    output_format: OutputFormat = OutputFormat.WAV,
    naming_template: str = "{source_stem}_mastered.{ext}",
    concurrency_limit: int | None = None,
) -> tuple[list[dict[str, str]], dict[str, int]]:
    """Master many files on a bounded worker pool.

    Manifest rows may override ``preset``, ``mode`` and ``reference`` per item; a failed
    item is reported and never stops the rest of the batch.
    """

    if manifest is None and not source_pattern:
        raise ValueError("Provide either --manifest or --source-pattern.")
    if manifest is not None and source_pattern:
        raise ValueError("Use only one input source: --manifest or --source-pattern.")

    if manifest is not None:
        rows = _parse_manifest(manifest)
    else:
        matched_sources = sorted(Path().glob(source_pattern or ""))
        rows = [{"source": str(path)} for path in matched_sources if path.is_file()]

    if not rows:
        raise ValueError("No batch input items were resolved.")

    output_dir.mkdir(parents=True, exist_ok=True)

    def _process(item: dict[str, str], item_index: int) -> dict[str, str]:
        source_value = (item.get("source") or "").strip()
        if not source_value:
            return {
                "index": str(item_index),
                "source": "",
                "status": "failed",
                "error": "Manifest item is missing required 'source' value.",
            }

        source_path = Path(source_value)
        item_reference = (item.get("reference") or "").strip()
        item_mode = (item.get("mode") or "").strip()
        try:
            output_path = _resolve_output_path(
                item,
                source_path=source_path,
                output_dir=output_dir,
                naming_template=naming_template,
                item_index=item_index,
                output_format=output_format,
            )
            written_path, report = master_from_paths(
                source=source_path,
                output=output_path,
                settings=settings,
                preset=(item.get("preset") or "").strip() or preset,
                mode=parse_case_insensitive_enum(item_mode, MasteringMode) if item_mode else mode,
                reference=Path(item_reference) if item_reference else reference,
                output_format=output_format,
            )
            return {
                "index": str(item_index),
                "source": str(source_path),
                "output": str(written_path),
                "status": "succeeded",
                "session_id": report.session_id,
            }
        except Exception as error:  # noqa: BLE001
            return {
                "index": str(item_index),
                "source": str(source_path),
                "status": "failed",
                "error": str(error),
            }

    safe_concurrency = max(1, concurrency_limit or settings.concurrency_limit)
    results: list[dict[str, str]] = []
    with ThreadPoolExecutor(max_workers=safe_concurrency) as executor:
        futures = [
            executor.submit(_process, row, idx)
            for idx, row in enumerate(rows, start=1)
        ]
        for future in as_completed(futures):
            results.append(future.result())

    results.sort(key=lambda item: int(item["index"]))
    success_count = sum(1 for item in results if item["status"] == "succeeded")
    summary = {
        "total": len(results),
        "succeeded": success_count,
        "failed": len(results) - success_count,
    }
    return results, summary


def probe_file(path: Path, settings: EngineSettings, include_loudness: bool = True) -> dict[str, Any]:
    engine = build_mastering_engine(settings).engine_paths()
    analysis = analyze_file(
        path,
        engine=engine,
        include_loudness=include_loudness,
        probe_timeout_seconds=settings.probe_timeout_seconds,
        scan_timeout=settings.pass_timeout_seconds,
    )
    return analysis_to_dict(analysis)


def list_presets() -> list[dict[str, Any]]:
    return [{"name": name, **_jsonable(asdict(settings))} for name, settings in PRESET_CATALOG.items()]


def check_engine(settings: EngineSettings) -> EnginePaths:
    return EngineLocator.from_settings(settings).locate()


def cleanup_workspaces(settings: EngineSettings, now: float | None = None) -> list[Path]:
    return sweep_expired_workspaces(settings.work_root, settings.retention_seconds, now=now)
