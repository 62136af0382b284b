from __future__ import annotations

import json
import os
import time
from pathlib import Path

import pytest

from tonemaster.domain.models import AudioAnalysis, Improvements, MasteringReport
from tonemaster.interfaces import cli_handlers
from tonemaster.mastering_options import MasteringMode, OutputFormat
from tonemaster.presets import resolve
from tonemaster.utils.config import EngineSettings


def _analysis() -> AudioAnalysis:
    return AudioAnalysis(
        duration_seconds=30.0,
        sample_rate_hz=48000,
        bitrate_bps=1152000,
        channel_count=2,
        format_name="wav",
        codec_name="pcm_s24le",
        bit_depth=24,
        max_volume_db=-0.3,
        mean_volume_db=-11.0,
    )


class _EngineStub:
    def __init__(self, workspace: Path) -> None:
        self.workspace = workspace
        self.submissions = []

    def submit(self, submission) -> MasteringReport:
        self.submissions.append(submission)
        artifact = self.workspace / f"mastered_{len(self.submissions)}.{submission.output_format.value}"
        artifact.write_bytes(b"mastered")
        return MasteringReport(
            session_id=f"session-{len(self.submissions)}",
            download_handle=artifact,
            processing_time_seconds=1.25,
            original_analysis=_analysis(),
            processed_analysis=_analysis(),
            improvements=Improvements(5.0, 1.0, "mp3 → pcm_s24le", "Pop Preset"),
            settings=resolve("Pop"),
            mode=submission.mode,
        )


def test_master_from_paths_copies_output_and_writes_report(monkeypatch, tmp_path: Path) -> None:
    workspace = tmp_path / "work"
    workspace.mkdir()
    engine = _EngineStub(workspace)
    monkeypatch.setattr(cli_handlers, "build_mastering_engine", lambda settings: engine)
    source = tmp_path / "song.mp3"
    source.write_bytes(b"source")
    output = tmp_path / "out" / "song_mastered.wav"
    report_path = tmp_path / "reports" / "song.json"

    written, report = cli_handlers.master_from_paths(
        source,
        output,
        settings=EngineSettings(work_root=workspace),
        preset="Rock",
        report_json=report_path,
    )

    assert written == output
    assert output.read_bytes() == b"mastered"
    assert engine.submissions[0].preset_name == "Rock"
    payload = json.loads(report_path.read_text())
    assert payload["session_id"] == report.session_id
    assert payload["mode"] == "preset"
    assert payload["improvements"]["format_change"] == "mp3 → pcm_s24le"
    assert payload["settings"]["eq"]["peak"]["q"] == 1.2
    assert payload["download_handle"].endswith("mastered_1.wav")


def test_run_batch_mastering_with_manifest_overrides(monkeypatch, tmp_path: Path) -> None:
    manifest = tmp_path / "batch.csv"
    manifest.write_text(
        "source,output,preset,mode,reference\n"
        "a.wav,,Jazz,,\n"
        "b.wav,custom.wav,,reference,ref.wav\n"
        ",,,,\n",
        encoding="utf-8",
    )
    calls = []

    def fake_master(source, output, **kwargs):
        calls.append((source, output, kwargs))
        return output, type("Report", (), {"session_id": f"s-{source.stem}"})()

    monkeypatch.setattr(cli_handlers, "master_from_paths", fake_master)

    results, summary = cli_handlers.run_batch_mastering(
        manifest=manifest,
        source_pattern=None,
        output_dir=tmp_path / "out",
        settings=EngineSettings(),
        output_format=OutputFormat.MP3,
    )

    assert summary == {"total": 3, "succeeded": 2, "failed": 1}
    assert [item["status"] for item in results] == ["succeeded", "succeeded", "failed"]
    by_source = {call[0].name: call for call in calls}
    assert by_source["a.wav"][1] == tmp_path / "out" / "a_mastered.mp3"
    assert by_source["a.wav"][2]["preset"] == "Jazz"
    assert by_source["a.wav"][2]["mode"] is MasteringMode.PRESET
    assert by_source["b.wav"][1] == tmp_path / "out" / "custom.wav"
    assert by_source["b.wav"][2]["mode"] is MasteringMode.REFERENCE
    assert by_source["b.wav"][2]["reference"] == Path("ref.wav")
    assert "missing required 'source'" in results[2]["error"]


def test_run_batch_mastering_keeps_going_after_failure(monkeypatch, tmp_path: Path) -> None:
    manifest = tmp_path / "batch.json"
    manifest.write_text(json.dumps([{"source": "bad.wav"}, {"source": "good.wav", "preset": "EDM"}]))

    def fake_master(source, output, **kwargs):
        if source.name == "bad.wav":
            raise RuntimeError("ffmpeg crashed")
        return output, type("Report", (), {"session_id": "s-good"})()

    monkeypatch.setattr(cli_handlers, "master_from_paths", fake_master)

    results, summary = cli_handlers.run_batch_mastering(
        manifest=manifest,
        source_pattern=None,
        output_dir=tmp_path / "out",
        settings=EngineSettings(),
        concurrency_limit=1,
    )

    assert summary == {"total": 2, "succeeded": 1, "failed": 1}
    assert results[0]["error"] == "ffmpeg crashed"
    assert results[1]["session_id"] == "s-good"


def test_run_batch_mastering_rejects_ambiguous_input(tmp_path: Path) -> None:
    manifest = tmp_path / "batch.csv"
    manifest.write_text("source\na.wav\n")

    with pytest.raises(ValueError, match="only one input source"):
        cli_handlers.run_batch_mastering(
            manifest=manifest,
            source_pattern="*.wav",
            output_dir=tmp_path,
            settings=EngineSettings(),
        )


def test_list_presets_serializes_catalog() -> None:
    presets = cli_handlers.list_presets()

    by_name = {preset["name"]: preset for preset in presets}
    assert len(presets) == 8
    assert by_name["Lo-Fi"]["eq"]["peak"] is None
    assert by_name["Classical"]["target_loudness_lufs"] == -23.0


def test_cleanup_workspaces_uses_retention(tmp_path: Path) -> None:
    settings = EngineSettings(work_root=tmp_path, retention_hours=1.0)
    now = time.time()
    stale = tmp_path / "stale-job"
    stale.mkdir()
    os.utime(stale, (now - 7200, now - 7200))
    (tmp_path / "live-job").mkdir()

    removed = cli_handlers.cleanup_workspaces(settings, now=now)

    assert removed == [stale]
    assert (tmp_path / "live-job").exists()
