"""Serialize mastering settings into an ordered ffmpeg filter chain.

Stage order is fixed: high-pass, low shelf, peak, high shelf, compressor,
stereo widening, exciter, limiter. The limiter is always the single terminal
directive.
"""

from __future__ import annotations

from dataclasses import dataclass

from tonemaster.domain.models import AudioAnalysis, LoudnessMeasurement, MasteringSettings

HIGHPASS_HZ = 20
SHELF_WIDTH = 0.5
DEFAULT_PEAK_Q = 1.0
STEREO_DEAD_BAND_PERCENT = 5.0
MAKEUP_HEADROOM_DB = 6.0
MAX_MAKEUP_DB = 12.0
# alimiter cannot limit below 1/16 linear.
LIMITER_FLOOR_DB = -24.0


@dataclass(frozen=True, slots=True)
class FilterDirective:
    """One filter name plus its ordered ``key=value`` parameters."""

    name: str
    params: tuple[tuple[str, str], ...] = ()

    def render(self) -> str:
        if not self.params:
            return self.name
        joined = ":".join(f"{key}={value}" for key, value in self.params)
        return f"{self.name}={joined}"


def render_filter_graph(directives: tuple[FilterDirective, ...]) -> str:
    return ",".join(directive.render() for directive in directives)


def format_number(value: float) -> str:
    """Render a float with at most four decimals and no trailing zeros."""

    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in {"-0", ""} else text


def _db(value: float) -> str:
    return f"{format_number(value)}dB"


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def compute_makeup_gain_db(target_lufs: float, mean_volume_db: float) -> float:
    return _clamp(target_lufs - mean_volume_db + MAKEUP_HEADROOM_DB, -MAX_MAKEUP_DB, MAX_MAKEUP_DB)


def _highpass() -> FilterDirective:
    return FilterDirective("highpass", (("f", str(HIGHPASS_HZ)), ("poles", "2")))


def _stereo_directive(width_percent: float, channel_count: int) -> FilterDirective | None:
    if channel_count != 2 or abs(width_percent - 100.0) <= STEREO_DEAD_BAND_PERCENT:
        return None
    # extrastereo leaves the image untouched at m=1, so the factor is an offset
    # from 1. Passing the bare factor would collapse a 100% width to mono.
    factor = _clamp((width_percent - 100.0) / 100.0, -1.0, 1.0)
    return FilterDirective("extrastereo", (("m", format_number(1.0 + factor)), ("c", "false")))


EXCITER = FilterDirective(
    "aexciter",
    (
        ("level_in", "1"),
        ("level_out", "1"),
        ("amount", "1"),
        ("drive", "8.5"),
        ("blend", "0.8"),
        ("freq", "7500"),
        ("ceil", "16000"),
        ("listen", "0"),
    ),
)


def build_chain(settings: MasteringSettings, analysis: AudioAnalysis) -> tuple[FilterDirective, ...]:
    directives: list[FilterDirective] = [_highpass()]

    eq = settings.eq
    if eq.low_shelf is not None:
        directives.append(
            FilterDirective(
                "bass",
                (
                    ("g", format_number(eq.low_shelf.gain_db)),
                    ("f", format_number(eq.low_shelf.freq_hz)),
                    ("w", format_number(SHELF_WIDTH)),
                ),
            )
        )
    if eq.peak is not None:
        q = eq.peak.q if eq.peak.q is not None else DEFAULT_PEAK_Q
        directives.append(
            FilterDirective(
                "equalizer",
                (
                    ("f", format_number(eq.peak.freq_hz)),
                    ("width_type", "q"),
                    ("width", format_number(q)),
                    ("g", format_number(eq.peak.gain_db)),
                ),
            )
        )
    if eq.high_shelf is not None:
        directives.append(
            FilterDirective(
                "treble",
                (
                    ("g", format_number(eq.high_shelf.gain_db)),
                    ("f", format_number(eq.high_shelf.freq_hz)),
                    ("w", format_number(SHELF_WIDTH)),
                ),
            )
        )

    compression = settings.compression
    directives.append(
        FilterDirective(
            "acompressor",
            (
                ("threshold", _db(compression.threshold_db)),
                ("ratio", format_number(compression.ratio)),
                ("attack", format_number(compression.attack_ms)),
                ("release", format_number(compression.release_ms)),
                ("makeup", "2dB"),
                ("knee", "2"),
                ("detection", "peak"),
            ),
        )
    )

    stereo = _stereo_directive(settings.stereo_width_percent, analysis.channel_count)
    if stereo is not None:
        directives.append(stereo)

    directives.append(EXCITER)

    makeup_db = compute_makeup_gain_db(settings.target_loudness_lufs, analysis.mean_volume_db)
    ceiling = _db(max(LIMITER_FLOOR_DB, settings.limiting.threshold_db))
    directives.append(
        FilterDirective(
            "alimiter",
            (
                ("level_in", _db(makeup_db)),
                ("level_out", ceiling),
                ("limit", ceiling),
                ("attack", "0.5"),
                ("release", format_number(settings.limiting.release_ms)),
                ("asc", "1"),
            ),
        )
    )
    return tuple(directives)


REFERENCE_EQ_BANDS: tuple[tuple[float, float, float], ...] = (
    (60.0, 0.7, 0.5),
    (200.0, 1.0, 0.3),
    (1000.0, 0.8, 0.2),
    (3000.0, 1.2, 0.4),
    (8000.0, 0.9, 0.3),
)


def build_reference_chain() -> tuple[FilterDirective, ...]:
    """Fixed chain applied in reference-matching mode."""

    directives: list[FilterDirective] = [_highpass()]
    for freq_hz, q, gain_db in REFERENCE_EQ_BANDS:
        directives.append(
            FilterDirective(
                "equalizer",
                (
                    ("f", format_number(freq_hz)),
                    ("width_type", "q"),
                    ("width", format_number(q)),
                    ("g", format_number(gain_db)),
                ),
            )
        )
    directives.append(
        FilterDirective(
            "acompressor",
            (
                ("threshold", "-16dB"),
                ("ratio", "3"),
                ("attack", "5"),
                ("release", "80"),
                ("makeup", "3dB"),
                ("knee", "2"),
            ),
        )
    )
    directives.append(
        FilterDirective(
            "alimiter",
            (
                ("level_in", "3dB"),
                ("level_out", "-1dB"),
                ("limit", "-1dB"),
                ("attack", "1"),
                ("release", "50"),
                ("asc", "1"),
            ),
        )
    )
    return tuple(directives)


def build_limiting_chain(
    target_lufs: float,
    ceiling_db: float,
    measurement: LoudnessMeasurement,
    lra: float = 11.0,
) -> tuple[FilterDirective, ...]:
    """Loudness normalization followed by a brick-wall limiter for the second pass.

    A trustworthy first-pass ``measurement`` enables linear two-pass loudnorm;
    a degraded one falls back to dynamic single-pass normalization.
    """

    params: list[tuple[str, str]] = [
        ("I", format_number(_clamp(target_lufs, -70.0, -5.0))),
        ("TP", format_number(_clamp(ceiling_db, -9.0, 0.0))),
        ("LRA", format_number(_clamp(lra, 1.0, 50.0))),
    ]
    if not measurement.degraded:
        params.extend(
            [
                ("measured_I", format_number(measurement.integrated_lufs)),
                ("measured_LRA", format_number(measurement.loudness_range_db)),
                ("measured_TP", format_number(measurement.true_peak_db)),
                ("measured_thresh", format_number(measurement.threshold_db)),
                ("linear", "true"),
            ]
        )
    limit = _db(max(LIMITER_FLOOR_DB, min(0.0, ceiling_db)))
    return (
        FilterDirective("loudnorm", tuple(params)),
        FilterDirective(
            "alimiter",
            (("limit", limit), ("attack", "1"), ("release", "50"), ("level", "disabled")),
        ),
    )
