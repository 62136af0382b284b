"""Genre preset catalog."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from tonemaster.domain.models import (
    CompressorSettings,
    EqBand,
    EqSettings,
    LimiterSettings,
    MasteringSettings,
)
from tonemaster.errors import UnknownPreset


def _preset(
    *,
    low: tuple[float, float],
    peak: tuple[float, float, float] | None,
    high: tuple[float, float],
    threshold_db: float,
    ratio: float,
    attack_ms: float,
    release_ms: float,
    ceiling_db: float,
    limiter_release_ms: float,
    width_percent: float,
    target_lufs: float,
) -> MasteringSettings:
    return MasteringSettings(
        eq=EqSettings(
            low_shelf=EqBand(freq_hz=low[0], gain_db=low[1]),
            peak=None if peak is None else EqBand(freq_hz=peak[0], gain_db=peak[1], q=peak[2]),
            high_shelf=EqBand(freq_hz=high[0], gain_db=high[1]),
        ),
        compression=CompressorSettings(
            threshold_db=threshold_db,
            ratio=ratio,
            attack_ms=attack_ms,
            release_ms=release_ms,
        ),
        limiting=LimiterSettings(threshold_db=ceiling_db, release_ms=limiter_release_ms),
        stereo_width_percent=width_percent,
        target_loudness_lufs=target_lufs,
    )


# EQ tuples: low/high shelf (freq Hz, gain dB); peak (freq Hz, gain dB, Q).
PRESET_CATALOG: Mapping[str, MasteringSettings] = MappingProxyType(
    {
        "Hip Hop": _preset(
            low=(80.0, 2.5),
            peak=(2500.0, 1.0, 0.8),
            high=(10000.0, 1.8),
            threshold_db=-18.0,
            ratio=4.0,
            attack_ms=3.0,
            release_ms=100.0,
            ceiling_db=-0.1,
            limiter_release_ms=50.0,
            width_percent=115.0,
            target_lufs=-14.0,
        ),
        "EDM": _preset(
            low=(50.0, 3.0),
            peak=(4000.0, 1.0, 1.0),
            high=(12000.0, 2.2),
            threshold_db=-16.0,
            ratio=6.0,
            attack_ms=0.5,
            release_ms=40.0,
            ceiling_db=-0.1,
            limiter_release_ms=10.0,
            width_percent=130.0,
            target_lufs=-12.0,
        ),
        "Pop": _preset(
            low=(100.0, 1.8),
            peak=(3000.0, 2.0, 1.2),
            high=(8000.0, 2.0),
            threshold_db=-16.0,
            ratio=3.5,
            attack_ms=5.0,
            release_ms=80.0,
            ceiling_db=-0.1,
            limiter_release_ms=30.0,
            width_percent=110.0,
            target_lufs=-14.0,
        ),
        "Rock": _preset(
            low=(60.0, 2.0),
            peak=(1200.0, 1.5, 0.6),
            high=(6000.0, 1.5),
            threshold_db=-18.0,
            ratio=4.5,
            attack_ms=1.0,
            release_ms=60.0,
            ceiling_db=-0.1,
            limiter_release_ms=20.0,
            width_percent=120.0,
            target_lufs=-13.0,
        ),
        "Jazz": _preset(
            low=(80.0, 1.2),
            peak=(1500.0, 1.0, 0.7),
            high=(7000.0, 1.0),
            threshold_db=-24.0,
            ratio=2.5,
            attack_ms=8.0,
            release_ms=120.0,
            ceiling_db=-0.5,
            limiter_release_ms=80.0,
            width_percent=100.0,
            target_lufs=-18.0,
        ),
        "Classical": _preset(
            low=(40.0, 0.8),
            peak=(2000.0, 0.5, 0.5),
            high=(8000.0, 0.5),
            threshold_db=-28.0,
            ratio=2.0,
            attack_ms=10.0,
            release_ms=200.0,
            ceiling_db=-1.0,
            limiter_release_ms=100.0,
            width_percent=95.0,
            target_lufs=-23.0,
        ),
        "Lo-Fi": _preset(
            low=(90.0, 2.8),
            peak=None,
            high=(8000.0, -1.5),
            threshold_db=-22.0,
            ratio=3.0,
            attack_ms=10.0,
            release_ms=150.0,
            ceiling_db=-0.5,
            limiter_release_ms=60.0,
            width_percent=90.0,
            target_lufs=-16.0,
        ),
        "Podcast": _preset(
            low=(100.0, -0.5),
            peak=(3000.0, 2.0, 1.0),
            high=(8000.0, 2.5),
            threshold_db=-20.0,
            ratio=3.0,
            attack_ms=2.0,
            release_ms=60.0,
            ceiling_db=-1.0,
            limiter_release_ms=50.0,
            width_percent=80.0,
            target_lufs=-16.0,
        ),
    }
)


def preset_names() -> tuple[str, ...]:
    return tuple(PRESET_CATALOG)


def resolve(preset_name: str) -> MasteringSettings:
    """Return the catalog entry for ``preset_name`` (exact, case-sensitive)."""

    try:
        return PRESET_CATALOG[preset_name]
    except KeyError:
        allowed = ", ".join(preset_names())
        raise UnknownPreset(f"Unknown preset '{preset_name}'. Allowed values: {allowed}.") from None
