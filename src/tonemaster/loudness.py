"""Loudness and volume measurement through ffmpeg analysis filters.

Neither measurement raises on engine trouble: a failed run yields default
values flagged ``degraded`` and a warning in the log. Cancellation is the one
exception and always propagates.
"""

from __future__ import annotations

import json
import logging
import math
import re
import threading
from pathlib import Path
from typing import Any

from tonemaster.domain.models import FALLBACK_LOUDNESS, LoudnessMeasurement, VolumeMeasurement
from tonemaster.errors import EngineError, Timeout
from tonemaster.infrastructure.engine_locator import EnginePaths
from tonemaster.infrastructure.engine_process import run_engine

logger = logging.getLogger(__name__)

MEASUREMENT_FILTER = "loudnorm=I=-23:TP=-2:LRA=7:print_format=json"

DEFAULT_MAX_VOLUME_DB = -6.0
DEFAULT_MEAN_VOLUME_DB = -20.0

_MAX_VOLUME_PATTERN = re.compile(r"max_volume:\s*(-?[\d.]+|-?inf)\s*dB")
_MEAN_VOLUME_PATTERN = re.compile(r"mean_volume:\s*(-?[\d.]+|-?inf)\s*dB")


def _null_sink_command(engine: EnginePaths, path: Path, audio_filter: str) -> list[str]:
    return [engine.ffmpeg, "-hide_banner", "-nostdin", "-i", str(path), "-af", audio_filter, "-f", "null", "-"]


def extract_first_json_object(text: str) -> dict[str, Any] | None:
    """Return the first well-formed JSON object embedded in ``text``."""

    decoder = json.JSONDecoder()
    index = text.find("{")
    while index != -1:
        try:
            candidate, _ = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            index = text.find("{", index + 1)
            continue
        if isinstance(candidate, dict):
            return candidate
        index = text.find("{", index + 1)
    return None


def parse_loudnorm_report(report: dict[str, Any]) -> LoudnessMeasurement | None:
    values: list[float] = []
    for key in ("input_i", "input_lra", "input_tp", "input_thresh"):
        try:
            value = float(report[key])
        except (KeyError, TypeError, ValueError):
            return None
        if not math.isfinite(value):
            return None
        values.append(value)
    integrated, lra, true_peak, threshold = values
    return LoudnessMeasurement(
        integrated_lufs=integrated,
        loudness_range_db=lra,
        true_peak_db=true_peak,
        threshold_db=threshold,
    )


def _fallback(path: Path, reason: str) -> LoudnessMeasurement:
    logger.warning("loudness_measurement_degraded", extra={"path": str(path), "reason": reason})
    return FALLBACK_LOUDNESS


def measure_loudness(
    path: Path,
    *,
    engine: EnginePaths,
    timeout_seconds: float | None = None,
    cancel_event: threading.Event | None = None,
) -> LoudnessMeasurement:
    try:
        result = run_engine(
            _null_sink_command(engine, path, MEASUREMENT_FILTER),
            timeout_seconds=timeout_seconds,
            cancel_event=cancel_event,
        )
    except (EngineError, Timeout) as exc:
        return _fallback(path, exc.message)

    if result.returncode != 0:
        return _fallback(path, f"exit code {result.returncode}")

    report = extract_first_json_object(result.stderr)
    if report is None:
        return _fallback(path, "no loudnorm report in diagnostics")

    measurement = parse_loudnorm_report(report)
    if measurement is None:
        return _fallback(path, "loudnorm report has missing or non-finite fields")
    return measurement


def _parse_volume(pattern: re.Pattern[str], text: str) -> float | None:
    match = pattern.search(text)
    if match is None:
        return None
    value = float(match.group(1))
    return value if math.isfinite(value) else None


def parse_volumedetect(text: str) -> VolumeMeasurement:
    max_volume = _parse_volume(_MAX_VOLUME_PATTERN, text)
    mean_volume = _parse_volume(_MEAN_VOLUME_PATTERN, text)
    return VolumeMeasurement(
        max_volume_db=DEFAULT_MAX_VOLUME_DB if max_volume is None else max_volume,
        mean_volume_db=DEFAULT_MEAN_VOLUME_DB if mean_volume is None else mean_volume,
        degraded=max_volume is None or mean_volume is None,
    )


def measure_volume(
    path: Path,
    *,
    engine: EnginePaths,
    timeout_seconds: float | None = None,
    cancel_event: threading.Event | None = None,
) -> VolumeMeasurement:
    try:
        result = run_engine(
            _null_sink_command(engine, path, "volumedetect"),
            timeout_seconds=timeout_seconds,
            cancel_event=cancel_event,
        )
    except (EngineError, Timeout) as exc:
        logger.warning("volume_measurement_degraded", extra={"path": str(path), "reason": exc.message})
        return parse_volumedetect("")

    measurement = parse_volumedetect(result.stderr)
    if measurement.degraded:
        logger.warning(
            "volume_measurement_degraded",
            extra={"path": str(path), "reason": f"exit code {result.returncode}"},
        )
    return measurement
