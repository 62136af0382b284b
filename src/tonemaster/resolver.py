"""Adapt a base preset toward a measured reference track."""

from __future__ import annotations

from dataclasses import replace

from tonemaster.domain.models import (
    EqBand,
    LoudnessMeasurement,
    MasteringSettings,
    SpectralEstimate,
)

WIDE_LOUDNESS_RANGE_DB = 10.0
MAX_COMPRESSOR_THRESHOLD_DB = -1.0
MIN_LIMITER_THRESHOLD_DB = -1.0
MAX_LIMITER_THRESHOLD_DB = -0.1
MIN_WIDTH_FACTOR = 0.8
MAX_WIDTH_FACTOR = 1.5


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def _scaled(band: EqBand | None, factor: float) -> EqBand | None:
    if band is None:
        return None
    return replace(band, gain_db=band.gain_db * factor)


def resolve_from_reference(
    base: MasteringSettings,
    reference_measurement: LoudnessMeasurement,
    spectral_estimate: SpectralEstimate,
) -> MasteringSettings:
    """Return ``base`` with loudness, dynamics, tone and width pulled toward the reference.

    A reference with a wide loudness range gets a lower compressor threshold
    (more compression); a narrow one gets a higher threshold. Shelf gains are
    scaled by the reference's bass/treble energy and the limiter tracks the
    reference's true peak.
    """

    threshold_offset = -2.0 if reference_measurement.loudness_range_db > WIDE_LOUDNESS_RANGE_DB else 2.0
    compression = replace(
        base.compression,
        threshold_db=min(MAX_COMPRESSOR_THRESHOLD_DB, base.compression.threshold_db + threshold_offset),
    )

    eq = replace(
        base.eq,
        low_shelf=_scaled(base.eq.low_shelf, spectral_estimate.bass_energy * 2.0),
        high_shelf=_scaled(base.eq.high_shelf, spectral_estimate.treble_energy * 3.0),
    )

    limiter_threshold = min(
        MAX_LIMITER_THRESHOLD_DB,
        max(MIN_LIMITER_THRESHOLD_DB, reference_measurement.true_peak_db + 0.1),
    )
    limiting = replace(base.limiting, threshold_db=limiter_threshold)

    return replace(
        base,
        eq=eq,
        compression=compression,
        limiting=limiting,
        stereo_width_percent=100.0 * _clamp(spectral_estimate.stereo_width, MIN_WIDTH_FACTOR, MAX_WIDTH_FACTOR),
        target_loudness_lufs=reference_measurement.integrated_lufs,
    )
