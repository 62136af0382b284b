"""Media probe backed by ``ffprobe`` JSON output."""

from __future__ import annotations

import json
import math
import threading
from pathlib import Path
from typing import Any

from tonemaster.domain.models import MediaInfo
from tonemaster.errors import EngineError, NoAudioStream, ProbeParseError, ProbeProcessError
from tonemaster.infrastructure.engine_locator import EnginePaths
from tonemaster.infrastructure.engine_process import run_engine

DEFAULT_BIT_DEPTH = 16


def build_probe_command(engine: EnginePaths, path: Path) -> list[str]:
    return [
        engine.ffprobe,
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        str(path),
    ]


def _as_float(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_positive_int(value: Any) -> int | None:
    number = _as_float(value)
    if number is None or number <= 0:
        return None
    return int(number)


def parse_probe_payload(payload: Any) -> MediaInfo:
    """Turn a decoded ffprobe document into ``MediaInfo``."""

    if not isinstance(payload, dict):
        raise ProbeParseError("ffprobe output is not a JSON object.")

    streams = payload.get("streams") or []
    audio = next(
        (stream for stream in streams if isinstance(stream, dict) and stream.get("codec_type") == "audio"),
        None,
    )
    if audio is None:
        raise NoAudioStream("No audio stream found in file.")

    container = payload.get("format") if isinstance(payload.get("format"), dict) else {}

    duration = _as_float(container.get("duration"))
    if duration is None:
        duration = _as_float(audio.get("duration"))
    sample_rate = _as_positive_int(audio.get("sample_rate"))
    channels = _as_positive_int(audio.get("channels"))
    if duration is None or duration < 0 or sample_rate is None or channels is None:
        raise ProbeParseError("ffprobe output is missing duration, sample rate or channel count.")

    bitrate = _as_positive_int(container.get("bit_rate")) or _as_positive_int(audio.get("bit_rate")) or 0
    bit_depth = (
        _as_positive_int(audio.get("bits_per_sample"))
        or _as_positive_int(audio.get("bits_per_raw_sample"))
        or DEFAULT_BIT_DEPTH
    )

    return MediaInfo(
        duration_seconds=duration,
        sample_rate_hz=sample_rate,
        bitrate_bps=bitrate,
        channel_count=channels,
        format_name=str(container.get("format_name") or "unknown"),
        codec_name=str(audio.get("codec_name") or "unknown"),
        bit_depth=bit_depth,
    )


def probe(
    path: Path,
    *,
    engine: EnginePaths,
    timeout_seconds: float | None = None,
    cancel_event: threading.Event | None = None,
) -> MediaInfo:
    """Extract technical metadata for ``path``."""

    try:
        result = run_engine(
            build_probe_command(engine, path),
            timeout_seconds=timeout_seconds,
            cancel_event=cancel_event,
        )
    except EngineError as exc:
        raise ProbeProcessError(f"ffprobe could not be launched for {path.name}: {exc.message}") from exc

    if result.returncode != 0:
        raise ProbeProcessError(
            f"ffprobe exited with code {result.returncode} for {path.name}: {result.stderr_tail or 'no output'}"
        )

    try:
        payload = json.loads(result.stdout)
    except json.JSONDecodeError as exc:
        raise ProbeParseError(f"ffprobe returned invalid JSON for {path.name}: {exc}") from exc

    return parse_probe_payload(payload)
