"""Compose probe, volume and loudness measurements into ``AudioAnalysis``."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from tonemaster.domain.models import AudioAnalysis, LoudnessMeasurement, VolumeMeasurement
from tonemaster.infrastructure.engine_locator import EnginePaths
from tonemaster.loudness import measure_loudness, measure_volume
from tonemaster.probe import probe


@dataclass(frozen=True, slots=True)
class SourceAnalysis:
    """``AudioAnalysis`` plus the raw measurements it was built from."""

    analysis: AudioAnalysis
    volume: VolumeMeasurement
    loudness: LoudnessMeasurement | None

    @property
    def loudness_degraded(self) -> bool:
        return self.loudness is not None and self.loudness.degraded


def analyze_source(
    path: Path,
    *,
    engine: EnginePaths,
    include_loudness: bool = True,
    probe_timeout_seconds: float | None = None,
    timeout_seconds: float | None = None,
    cancel_event: threading.Event | None = None,
    scan_timeout: Callable[[float], float] | None = None,
) -> SourceAnalysis:
    """Probe ``path`` first, then run the volume and loudness scans side by side.

    Probe failures propagate before any measurement starts. When given,
    ``scan_timeout`` maps the probed duration to the timeout of each scan and
    takes precedence over ``timeout_seconds``.
    """

    media = probe(path, engine=engine, timeout_seconds=probe_timeout_seconds, cancel_event=cancel_event)
    if scan_timeout is not None:
        timeout_seconds = scan_timeout(media.duration_seconds)

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="tonemaster-analysis") as executor:
        volume_future = executor.submit(
            measure_volume, path, engine=engine, timeout_seconds=timeout_seconds, cancel_event=cancel_event
        )
        loudness_future = (
            executor.submit(
                measure_loudness, path, engine=engine, timeout_seconds=timeout_seconds, cancel_event=cancel_event
            )
            if include_loudness
            else None
        )
        volume = volume_future.result()
        loudness = loudness_future.result() if loudness_future is not None else None

    return SourceAnalysis(
        analysis=AudioAnalysis.from_measurements(media, volume, loudness),
        volume=volume,
        loudness=loudness,
    )


def analyze_file(
    path: Path,
    *,
    engine: EnginePaths,
    include_loudness: bool = True,
    probe_timeout_seconds: float | None = None,
    timeout_seconds: float | None = None,
    cancel_event: threading.Event | None = None,
    scan_timeout: Callable[[float], float] | None = None,
) -> AudioAnalysis:
    return analyze_source(
        path,
        engine=engine,
        include_loudness=include_loudness,
        probe_timeout_seconds=probe_timeout_seconds,
        timeout_seconds=timeout_seconds,
        cancel_event=cancel_event,
        scan_timeout=scan_timeout,
    ).analysis
