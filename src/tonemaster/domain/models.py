"""Domain models for mastering jobs and their measurements."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from tonemaster.errors import InvalidJobTransition, MasteringError
from tonemaster.mastering_options import MasteringMode, OutputFormat


def _require_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value!r}.")


@dataclass(frozen=True, slots=True)
class MediaInfo:
    """Technical metadata reported by the probe for one file."""

    duration_seconds: float
    sample_rate_hz: int
    bitrate_bps: int
    channel_count: int
    format_name: str
    codec_name: str
    bit_depth: int = 16


@dataclass(frozen=True, slots=True)
class LoudnessMeasurement:
    """Integrated loudness, range and true peak of a file."""

    integrated_lufs: float
    loudness_range_db: float
    true_peak_db: float
    threshold_db: float
    degraded: bool = False


FALLBACK_LOUDNESS = LoudnessMeasurement(
    integrated_lufs=-14.0,
    loudness_range_db=7.0,
    true_peak_db=-1.0,
    threshold_db=-24.0,
    degraded=True,
)


@dataclass(frozen=True, slots=True)
class VolumeMeasurement:
    """Peak and mean volume in dBFS."""

    max_volume_db: float
    mean_volume_db: float
    degraded: bool = False


@dataclass(frozen=True, slots=True)
class SpectralEstimate:
    """Coarse spectral balance and stereo width of a reference track."""

    bass_energy: float
    mid_energy: float
    treble_energy: float
    stereo_width: float
    degraded: bool = False


NEUTRAL_SPECTRUM = SpectralEstimate(
    bass_energy=0.5,
    mid_energy=0.55,
    treble_energy=1.0 / 3.0,
    stereo_width=1.0,
    degraded=True,
)


@dataclass(frozen=True, slots=True)
class AudioAnalysis:
    """Combined probe, volume and loudness view of a single file."""

    duration_seconds: float
    sample_rate_hz: int
    bitrate_bps: int
    channel_count: int
    format_name: str
    codec_name: str
    bit_depth: int
    max_volume_db: float
    mean_volume_db: float
    integrated_loudness_lufs: float | None = None
    loudness_range_db: float | None = None
    true_peak_db: float | None = None

    @classmethod
    def from_measurements(
        cls,
        media: MediaInfo,
        volume: VolumeMeasurement,
        loudness: LoudnessMeasurement | None = None,
    ) -> "AudioAnalysis":
        return cls(
            duration_seconds=media.duration_seconds,
            sample_rate_hz=media.sample_rate_hz,
            bitrate_bps=media.bitrate_bps,
            channel_count=media.channel_count,
            format_name=media.format_name,
            codec_name=media.codec_name,
            bit_depth=media.bit_depth,
            max_volume_db=volume.max_volume_db,
            mean_volume_db=volume.mean_volume_db,
            integrated_loudness_lufs=None if loudness is None else loudness.integrated_lufs,
            loudness_range_db=None if loudness is None else loudness.loudness_range_db,
            true_peak_db=None if loudness is None else loudness.true_peak_db,
        )


@dataclass(frozen=True, slots=True)
class EqBand:
    """One shelf or bell band."""

    freq_hz: float
    gain_db: float
    q: float | None = None

    def __post_init__(self) -> None:
        _require_finite("freq_hz", self.freq_hz)
        _require_finite("gain_db", self.gain_db)
        if self.freq_hz <= 0:
            raise ValueError("freq_hz must be > 0.")
        if self.q is not None:
            _require_finite("q", self.q)
            if self.q <= 0:
                raise ValueError("q must be > 0 when provided.")


@dataclass(frozen=True, slots=True)
class EqSettings:
    low_shelf: EqBand | None = None
    peak: EqBand | None = None
    high_shelf: EqBand | None = None


@dataclass(frozen=True, slots=True)
class CompressorSettings:
    threshold_db: float
    ratio: float
    attack_ms: float
    release_ms: float

    def __post_init__(self) -> None:
        for name in ("threshold_db", "ratio", "attack_ms", "release_ms"):
            _require_finite(name, getattr(self, name))
        if self.threshold_db >= 0:
            raise ValueError("Compressor threshold_db must be < 0.")
        if self.ratio < 1:
            raise ValueError("Compressor ratio must be >= 1.")
        if self.attack_ms <= 0 or self.release_ms <= 0:
            raise ValueError("Compressor attack_ms and release_ms must be > 0.")


@dataclass(frozen=True, slots=True)
class LimiterSettings:
    threshold_db: float
    release_ms: float

    def __post_init__(self) -> None:
        _require_finite("threshold_db", self.threshold_db)
        _require_finite("release_ms", self.release_ms)
        if self.threshold_db >= 0:
            raise ValueError("Limiter threshold_db must be < 0.")
        if self.release_ms <= 0:
            raise ValueError("Limiter release_ms must be > 0.")


@dataclass(frozen=True, slots=True)
class MasteringSettings:
    """Concrete parameters for one mastering chain."""

    eq: EqSettings
    compression: CompressorSettings
    limiting: LimiterSettings
    stereo_width_percent: float
    target_loudness_lufs: float

    def __post_init__(self) -> None:
        _require_finite("stereo_width_percent", self.stereo_width_percent)
        _require_finite("target_loudness_lufs", self.target_loudness_lufs)
        if not 0.0 <= self.stereo_width_percent <= 200.0:
            raise ValueError("stereo_width_percent must be within [0, 200].")


class JobState(str, Enum):
    """Lifecycle states of a mastering job."""

    QUEUED = "queued"
    ANALYZING = "analyzing"
    BUILDING_CHAIN = "building_chain"
    PROCESSING = "processing"
    LIMITING = "limiting"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    FAILED = "failed"


_FORWARD_TRANSITIONS: dict[JobState, JobState] = {
    JobState.QUEUED: JobState.ANALYZING,
    JobState.ANALYZING: JobState.BUILDING_CHAIN,
    JobState.BUILDING_CHAIN: JobState.PROCESSING,
    JobState.PROCESSING: JobState.LIMITING,
    JobState.LIMITING: JobState.VERIFYING,
    JobState.VERIFYING: JobState.COMPLETED,
}

TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED})


@dataclass(slots=True)
class MasteringJob:
    """Unit of work that owns its workspace for its whole lifetime."""

    job_id: str
    workspace: Path
    source_path: Path
    output_path: Path
    preset_name: str
    mode: MasteringMode = MasteringMode.PRESET
    reference_path: Path | None = None
    output_format: OutputFormat = OutputFormat.WAV
    state: JobState = JobState.QUEUED
    progress_percent: int = 0
    error: MasteringError | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def intermediate_path(self) -> Path:
        return self.workspace / "pass1.wav"

    def transition(self, new_state: JobState) -> JobState:
        """Move to ``new_state`` and return the previous state."""

        previous = self.state
        if previous in TERMINAL_STATES:
            raise InvalidJobTransition(f"Job {self.job_id} is already {previous.value}.")
        if new_state is not JobState.FAILED and _FORWARD_TRANSITIONS[previous] is not new_state:
            raise InvalidJobTransition(
                f"Job {self.job_id} cannot move from {previous.value} to {new_state.value}."
            )
        self.state = new_state
        return previous

    def update_progress(self, percent: float) -> None:
        clamped = int(max(0, min(100, percent)))
        if clamped > self.progress_percent:
            self.progress_percent = clamped


@dataclass(frozen=True, slots=True)
class MasteringSubmission:
    """Input accepted by the job submission surface."""

    source_file: Path
    preset_name: str = "Pop"
    mode: MasteringMode = MasteringMode.PRESET
    reference_file: Path | None = None
    output_format: OutputFormat = OutputFormat.WAV


@dataclass(frozen=True, slots=True)
class Improvements:
    """Before/after deltas reported alongside a mastered file."""

    loudness_change_db: float
    dynamic_range_change_db: float
    format_change: str
    processing_applied: str


@dataclass(frozen=True, slots=True)
class MasteringReport:
    """Result returned to callers once a job completes."""

    session_id: str
    download_handle: Path
    processing_time_seconds: float
    original_analysis: AudioAnalysis
    processed_analysis: AudioAnalysis | None
    improvements: Improvements | None
    settings: MasteringSettings | None
    mode: MasteringMode
    loudness_degraded: bool = False
    report_degraded: bool = False
