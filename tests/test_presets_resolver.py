from __future__ import annotations

import math
from dataclasses import replace

import pytest

from tonemaster.domain.models import (
    NEUTRAL_SPECTRUM,
    CompressorSettings,
    EqBand,
    LimiterSettings,
    LoudnessMeasurement,
    MasteringSettings,
    SpectralEstimate,
)
from tonemaster.errors import UnknownPreset
from tonemaster.presets import PRESET_CATALOG, preset_names, resolve
from tonemaster.resolver import resolve_from_reference

EXPECTED_PRESETS = ("Hip Hop", "EDM", "Pop", "Rock", "Jazz", "Classical", "Lo-Fi", "Podcast")


def _reference(integrated: float = -9.0, lra: float = 14.0, true_peak: float = -0.3) -> LoudnessMeasurement:
    return LoudnessMeasurement(
        integrated_lufs=integrated,
        loudness_range_db=lra,
        true_peak_db=true_peak,
        threshold_db=-20.0,
    )


def test_catalog_holds_exactly_the_genre_presets() -> None:
    assert set(preset_names()) == set(EXPECTED_PRESETS)
    assert len(PRESET_CATALOG) == 8


def test_catalog_is_read_only() -> None:
    with pytest.raises(TypeError):
        PRESET_CATALOG["Custom"] = PRESET_CATALOG["Pop"]  # type: ignore[index]


def test_resolve_is_idempotent() -> None:
    assert resolve("Jazz") is resolve("Jazz")
    assert resolve("Jazz") == PRESET_CATALOG["Jazz"]


def test_resolve_is_case_sensitive_and_lists_allowed_names() -> None:
    with pytest.raises(UnknownPreset) as exc_info:
        resolve("pop")

    assert "Hip Hop" in exc_info.value.message
    assert exc_info.value.kind == "unknown_preset"


def test_classical_preset_values() -> None:
    settings = resolve("Classical")

    assert settings.target_loudness_lufs == -23.0
    assert settings.compression.ratio == 2.0
    assert settings.limiting.threshold_db == -1.0


def test_every_preset_has_negative_thresholds_and_finite_values() -> None:
    for settings in PRESET_CATALOG.values():
        assert settings.compression.threshold_db < 0
        assert settings.limiting.threshold_db < 0
        assert 0 <= settings.stereo_width_percent <= 200
        assert math.isfinite(settings.target_loudness_lufs)


def test_lofi_preset_has_no_peak_band() -> None:
    assert resolve("Lo-Fi").eq.peak is None


def test_settings_reject_non_negative_thresholds() -> None:
    with pytest.raises(ValueError):
        CompressorSettings(threshold_db=0.0, ratio=2.0, attack_ms=5.0, release_ms=50.0)
    with pytest.raises(ValueError):
        LimiterSettings(threshold_db=0.5, release_ms=50.0)


def test_settings_reject_non_finite_values() -> None:
    with pytest.raises(ValueError):
        EqBand(freq_hz=100.0, gain_db=float("nan"))
    with pytest.raises(ValueError):
        replace(resolve("Pop"), target_loudness_lufs=float("inf"))
    with pytest.raises(ValueError):
        replace(resolve("Pop"), stereo_width_percent=250.0)


def test_reference_adaptation_wide_range_lowers_threshold() -> None:
    base = resolve("Pop")

    adapted = resolve_from_reference(base, _reference(), NEUTRAL_SPECTRUM)

    assert base.compression.threshold_db == -16.0
    assert adapted.compression.threshold_db == -18.0
    assert adapted.target_loudness_lufs == -9.0


def test_reference_adaptation_narrow_range_raises_threshold() -> None:
    adapted = resolve_from_reference(resolve("Pop"), _reference(lra=5.0), NEUTRAL_SPECTRUM)

    assert adapted.compression.threshold_db == -14.0


def test_reference_adaptation_keeps_compressor_threshold_negative() -> None:
    base = replace(
        resolve("Pop"),
        compression=CompressorSettings(threshold_db=-2.0, ratio=3.0, attack_ms=5.0, release_ms=80.0),
    )

    adapted = resolve_from_reference(base, _reference(lra=3.0), NEUTRAL_SPECTRUM)

    assert adapted.compression.threshold_db == -1.0


def test_reference_adaptation_scales_shelves_by_spectral_energy() -> None:
    base = resolve("Rock")
    spectrum = SpectralEstimate(bass_energy=0.6, mid_energy=0.5, treble_energy=0.4, stereo_width=1.1)

    adapted = resolve_from_reference(base, _reference(), spectrum)

    assert adapted.eq.low_shelf.gain_db == pytest.approx(base.eq.low_shelf.gain_db * 1.2)
    assert adapted.eq.high_shelf.gain_db == pytest.approx(base.eq.high_shelf.gain_db * 1.2)
    assert adapted.eq.peak == base.eq.peak
    assert adapted.stereo_width_percent == pytest.approx(110.0)


def test_neutral_spectrum_leaves_shelf_gains_unchanged() -> None:
    base = resolve("Hip Hop")

    adapted = resolve_from_reference(base, _reference(), NEUTRAL_SPECTRUM)

    assert adapted.eq.low_shelf.gain_db == pytest.approx(base.eq.low_shelf.gain_db)
    assert adapted.eq.high_shelf.gain_db == pytest.approx(base.eq.high_shelf.gain_db)


def test_reference_adaptation_skips_absent_bands() -> None:
    base = replace(resolve("Pop"), eq=replace(resolve("Pop").eq, low_shelf=None))

    adapted = resolve_from_reference(base, _reference(), NEUTRAL_SPECTRUM)

    assert adapted.eq.low_shelf is None


@pytest.mark.parametrize(
    ("stereo_width", "expected_percent"),
    [(0.5, 80.0), (1.0, 100.0), (2.0, 150.0)],
)
def test_reference_adaptation_clamps_width(stereo_width: float, expected_percent: float) -> None:
    spectrum = replace(NEUTRAL_SPECTRUM, stereo_width=stereo_width)

    adapted = resolve_from_reference(resolve("EDM"), _reference(), spectrum)

    assert adapted.stereo_width_percent == pytest.approx(expected_percent)


@pytest.mark.parametrize(
    ("true_peak", "expected_threshold"),
    [(-0.3, -0.2), (-3.0, -1.0), (0.5, -0.1)],
)
def test_reference_adaptation_limiter_tracks_true_peak(true_peak: float, expected_threshold: float) -> None:
    adapted = resolve_from_reference(resolve("Pop"), _reference(true_peak=true_peak), NEUTRAL_SPECTRUM)

    assert adapted.limiting.threshold_db == pytest.approx(expected_threshold)
    assert adapted.limiting.release_ms == resolve("Pop").limiting.release_ms


def test_reference_adaptation_returns_new_valid_settings() -> None:
    base = resolve("Jazz")

    adapted = resolve_from_reference(base, _reference(), NEUTRAL_SPECTRUM)

    assert isinstance(adapted, MasteringSettings)
    assert adapted is not base
    assert adapted.compression.ratio == base.compression.ratio
    assert resolve("Jazz") == base
