from __future__ import annotations

import pytest

from tonemaster.domain.models import AudioAnalysis
from tonemaster.infrastructure.engine_locator import EnginePaths


@pytest.fixture
def engine_paths() -> EnginePaths:
    return EnginePaths(ffmpeg="ffmpeg", ffprobe="ffprobe")


@pytest.fixture
def stereo_analysis() -> AudioAnalysis:
    return AudioAnalysis(
        duration_seconds=180.0,
        sample_rate_hz=44100,
        bitrate_bps=320000,
        channel_count=2,
        format_name="mp3",
        codec_name="mp3",
        bit_depth=16,
        max_volume_db=-1.5,
        mean_volume_db=-20.0,
        integrated_loudness_lufs=-16.0,
        loudness_range_db=8.0,
        true_peak_db=-1.2,
    )
