from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from tonemaster.errors import EngineNotFoundError
from tonemaster.infrastructure.engine_locator import EngineLocator, parse_engine_version
from tonemaster.utils.config import EngineSettings

LOCATOR = "tonemaster.infrastructure.engine_locator"


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def test_candidates_put_explicit_path_first() -> None:
    locator = EngineLocator.from_settings(
        EngineSettings(ffmpeg_path="/custom/ffmpeg"),
        platform="darwin",
    )

    assert locator.ffmpeg_candidates == (
        "/custom/ffmpeg",
        "ffmpeg",
        "/opt/homebrew/bin/ffmpeg",
        "/usr/local/bin/ffmpeg",
        "/usr/bin/ffmpeg",
    )
    assert locator.ffprobe_candidates[0] == "ffprobe"


def test_windows_candidates_use_exe_names() -> None:
    locator = EngineLocator.from_settings(EngineSettings(), platform="win32")

    assert locator.ffmpeg_candidates == ("ffmpeg", "C:\\ffmpeg\\bin\\ffmpeg.exe", "ffmpeg.exe")


def test_locate_resolves_on_path_and_reads_version(monkeypatch) -> None:
    monkeypatch.setattr(f"{LOCATOR}.shutil.which", lambda name: f"/usr/bin/{name}")
    calls: list[list[str]] = []

    def _fake_run(command, **kwargs):
        calls.append(command)
        return _completed(stdout="ffmpeg version 6.1.1-static Copyright (c) 2000-2023\n")

    monkeypatch.setattr(f"{LOCATOR}.subprocess.run", _fake_run)

    paths = EngineLocator.from_settings(EngineSettings(), platform="linux").locate()

    assert paths.ffmpeg == "/usr/bin/ffmpeg"
    assert paths.ffprobe == "/usr/bin/ffprobe"
    assert paths.version == "6.1.1-static"
    assert calls == [["/usr/bin/ffmpeg", "-version"]]


def test_locate_falls_back_to_existing_file(monkeypatch, tmp_path: Path) -> None:
    ffmpeg = tmp_path / "ffmpeg"
    ffmpeg.write_text("")
    ffprobe = tmp_path / "ffprobe"
    ffprobe.write_text("")
    monkeypatch.setattr(f"{LOCATOR}.shutil.which", lambda name: None)
    monkeypatch.setattr(f"{LOCATOR}.subprocess.run", lambda command, **kwargs: _completed(stdout="ffmpeg version n7.0"))

    paths = EngineLocator(ffmpeg_candidates=(str(ffmpeg),), ffprobe_candidates=(str(ffprobe),)).locate()

    assert paths.ffmpeg == str(ffmpeg)
    assert paths.version == "n7.0"


def test_missing_engine_lists_checked_locations(monkeypatch) -> None:
    monkeypatch.setattr(f"{LOCATOR}.shutil.which", lambda name: None)

    with pytest.raises(EngineNotFoundError) as exc_info:
        EngineLocator(ffmpeg_candidates=("/nope/ffmpeg", "ffmpeg"), ffprobe_candidates=("ffprobe",)).locate()

    assert "/nope/ffmpeg, ffmpeg" in exc_info.value.message


def test_engine_failing_version_check_is_rejected(monkeypatch) -> None:
    monkeypatch.setattr(f"{LOCATOR}.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(
        f"{LOCATOR}.subprocess.run",
        lambda command, **kwargs: _completed(returncode=1, stderr="error while loading shared libraries"),
    )

    with pytest.raises(EngineNotFoundError) as exc_info:
        EngineLocator.from_settings(EngineSettings(), platform="linux").locate()

    assert "shared libraries" in exc_info.value.diagnostic_tail


def test_fixed_locator_skips_search_and_validation(monkeypatch) -> None:
    def _unexpected(*args, **kwargs):
        raise AssertionError("fixed locator must not touch the system")

    monkeypatch.setattr(f"{LOCATOR}.shutil.which", _unexpected)
    monkeypatch.setattr(f"{LOCATOR}.subprocess.run", _unexpected)

    paths = EngineLocator.fixed("ffmpeg-6", "ffprobe-6").locate()

    assert (paths.ffmpeg, paths.ffprobe, paths.version) == ("ffmpeg-6", "ffprobe-6", None)


def test_parse_engine_version_without_banner() -> None:
    assert parse_engine_version("not an ffmpeg banner") is None
