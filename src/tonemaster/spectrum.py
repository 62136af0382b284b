"""Deterministic spectral balance and stereo width estimate for reference tracks."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from tonemaster.domain.models import NEUTRAL_SPECTRUM, SpectralEstimate
from tonemaster.infrastructure.pedalboard_codec import load_audio_window

logger = logging.getLogger(__name__)

FRAME_SIZE = 2048
HOP_SIZE = 1024
ANALYSIS_WINDOW_SECONDS = 30.0
BASS_EDGE_HZ = 250.0
TREBLE_EDGE_HZ = 4000.0


def _mono(audio: np.ndarray) -> np.ndarray:
    if audio.ndim == 1:
        return audio.astype(np.float64, copy=False)
    return np.mean(audio, axis=0, dtype=np.float64)


def average_power_spectrum(signal: np.ndarray, sample_rate: float) -> tuple[np.ndarray, np.ndarray]:
    """Hann-windowed STFT power averaged over frames."""

    if signal.size < FRAME_SIZE:
        signal = np.pad(signal, (0, FRAME_SIZE - signal.size))
    frames = sliding_window_view(signal, FRAME_SIZE)[::HOP_SIZE]
    spectra = np.fft.rfft(frames * np.hanning(FRAME_SIZE), axis=1)
    power = np.mean(np.square(np.abs(spectra)), axis=0)
    freqs = np.fft.rfftfreq(FRAME_SIZE, d=1.0 / sample_rate)
    return freqs, power


def band_fractions(freqs: np.ndarray, power: np.ndarray) -> tuple[float, float, float] | None:
    total = float(np.sum(power))
    if total <= 0.0:
        return None
    bass = float(np.sum(power[freqs < BASS_EDGE_HZ]) / total)
    mid = float(np.sum(power[(freqs >= BASS_EDGE_HZ) & (freqs < TREBLE_EDGE_HZ)]) / total)
    treble = float(np.sum(power[freqs >= TREBLE_EDGE_HZ]) / total)
    return bass, mid, treble


def stereo_width_ratio(audio: np.ndarray) -> float:
    """Side energy relative to mid energy, 0 for mono and 1 for fully decorrelated."""

    if audio.ndim == 1 or audio.shape[0] < 2:
        return 0.0
    left = audio[0].astype(np.float64, copy=False)
    right = audio[1].astype(np.float64, copy=False)
    mid_energy = float(np.sum(np.square((left + right) * 0.5)))
    side_energy = float(np.sum(np.square((left - right) * 0.5)))
    denominator = mid_energy + side_energy
    if denominator <= 0.0:
        return 0.0
    return float(np.clip(2.0 * side_energy / denominator, 0.0, 1.0))


def estimate_from_audio(audio: np.ndarray, sample_rate: float) -> SpectralEstimate:
    freqs, power = average_power_spectrum(_mono(audio), sample_rate)
    fractions = band_fractions(freqs, power)
    if fractions is None:
        return NEUTRAL_SPECTRUM
    bass, mid, treble = fractions
    return SpectralEstimate(
        bass_energy=0.3 + 0.4 * bass,
        mid_energy=0.4 + 0.3 * mid,
        treble_energy=0.2 + 0.3 * treble,
        stereo_width=0.8 + 0.4 * stereo_width_ratio(audio),
    )


def estimate_spectrum(path: Path) -> SpectralEstimate:
    """Estimate spectral balance from up to 30 s around the middle of ``path``.

    Undecodable files yield the neutral estimate, which leaves preset gains unchanged.
    """

    try:
        audio, sample_rate = load_audio_window(path, max_seconds=ANALYSIS_WINDOW_SECONDS)
    except (OSError, ValueError, RuntimeError) as exc:
        logger.warning("spectral_estimate_degraded", extra={"path": str(path), "reason": str(exc)})
        return NEUTRAL_SPECTRUM

    if audio.size == 0:
        logger.warning("spectral_estimate_degraded", extra={"path": str(path), "reason": "empty audio"})
        return NEUTRAL_SPECTRUM
    return estimate_from_audio(audio, sample_rate)
