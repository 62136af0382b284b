from __future__ import annotations

from pathlib import Path

import pytest

from tonemaster.domain.models import (
    AudioAnalysis,
    JobState,
    LoudnessMeasurement,
    MasteringJob,
    MediaInfo,
    VolumeMeasurement,
)
from tonemaster.domain.policies import (
    INTERMEDIATE_RENDER,
    MP3_MASTER_RENDER,
    WAV_MASTER_RENDER,
    render_policy_for,
)
from tonemaster.errors import InvalidJobTransition
from tonemaster.mastering_options import OutputFormat, parse_case_insensitive_enum


def _job(tmp_path: Path) -> MasteringJob:
    return MasteringJob(
        job_id="job-1",
        workspace=tmp_path,
        source_path=tmp_path / "source_song.wav",
        output_path=tmp_path / "mastered_job-1.wav",
        preset_name="Pop",
    )


def test_job_walks_forward_through_every_state(tmp_path: Path) -> None:
    job = _job(tmp_path)
    order = [
        JobState.ANALYZING,
        JobState.BUILDING_CHAIN,
        JobState.PROCESSING,
        JobState.LIMITING,
        JobState.VERIFYING,
        JobState.COMPLETED,
    ]

    previous = [job.transition(state) for state in order]

    assert previous[0] is JobState.QUEUED
    assert job.state is JobState.COMPLETED
    assert job.is_terminal


def test_job_cannot_skip_states(tmp_path: Path) -> None:
    job = _job(tmp_path)

    with pytest.raises(InvalidJobTransition):
        job.transition(JobState.PROCESSING)

    assert job.state is JobState.QUEUED


def test_any_active_state_may_fail(tmp_path: Path) -> None:
    job = _job(tmp_path)
    job.transition(JobState.ANALYZING)
    job.transition(JobState.BUILDING_CHAIN)

    assert job.transition(JobState.FAILED) is JobState.BUILDING_CHAIN
    assert job.is_terminal


def test_terminal_states_are_final(tmp_path: Path) -> None:
    job = _job(tmp_path)
    job.transition(JobState.FAILED)

    with pytest.raises(InvalidJobTransition):
        job.transition(JobState.FAILED)
    with pytest.raises(InvalidJobTransition):
        job.transition(JobState.ANALYZING)


def test_progress_is_clamped_and_never_decreases(tmp_path: Path) -> None:
    job = _job(tmp_path)

    job.update_progress(40.7)
    job.update_progress(12)
    assert job.progress_percent == 40

    job.update_progress(250)
    assert job.progress_percent == 100


def test_intermediate_lives_inside_workspace(tmp_path: Path) -> None:
    assert _job(tmp_path).intermediate_path == tmp_path / "pass1.wav"


def test_analysis_from_measurements_without_loudness() -> None:
    media = MediaInfo(
        duration_seconds=12.5,
        sample_rate_hz=48000,
        bitrate_bps=1536000,
        channel_count=2,
        format_name="wav",
        codec_name="pcm_s16le",
    )

    analysis = AudioAnalysis.from_measurements(media, VolumeMeasurement(max_volume_db=-1.0, mean_volume_db=-18.0))

    assert analysis.bit_depth == 16
    assert analysis.mean_volume_db == -18.0
    assert analysis.integrated_loudness_lufs is None


def test_analysis_from_measurements_copies_loudness() -> None:
    media = MediaInfo(10.0, 44100, 128000, 1, "mp3", "mp3")
    loudness = LoudnessMeasurement(integrated_lufs=-11.0, loudness_range_db=5.0, true_peak_db=-0.5, threshold_db=-21.0)

    analysis = AudioAnalysis.from_measurements(media, VolumeMeasurement(-0.5, -12.0), loudness)

    assert analysis.integrated_loudness_lufs == -11.0
    assert analysis.loudness_range_db == 5.0
    assert analysis.true_peak_db == -0.5


def test_render_policies_per_output_format() -> None:
    assert render_policy_for(OutputFormat.WAV) is WAV_MASTER_RENDER
    assert render_policy_for(OutputFormat.MP3) is MP3_MASTER_RENDER
    assert INTERMEDIATE_RENDER.encoder_args() == ("-c:a", "pcm_s24le", "-ar", "48000")


def test_output_format_parses_case_insensitively() -> None:
    assert parse_case_insensitive_enum("MP3", OutputFormat) is OutputFormat.MP3
    with pytest.raises(ValueError, match="Allowed values"):
        parse_case_insensitive_enum("ogg", OutputFormat)
