"""Locate and validate the ffmpeg/ffprobe executables."""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from tonemaster.errors import EngineNotFoundError

if TYPE_CHECKING:
    from tonemaster.utils.config import EngineSettings

logger = logging.getLogger(__name__)

_VERSION_PATTERN = re.compile(r"ffmpeg version (\S+)")

PLATFORM_INSTALL_PATHS: dict[str, tuple[str, ...]] = {
    "darwin": ("/opt/homebrew/bin", "/usr/local/bin", "/usr/bin"),
    "linux": ("/usr/bin", "/usr/local/bin"),
    "win32": ("C:\\ffmpeg\\bin",),
}


@dataclass(frozen=True, slots=True)
class EnginePaths:
    """Resolved executables plus the version reported by ffmpeg."""

    ffmpeg: str
    ffprobe: str
    version: str | None = None


def _platform_candidates(name: str, platform: str) -> tuple[str, ...]:
    suffix, separator = (".exe", "\\") if platform == "win32" else ("", "/")
    candidates = [f"{directory}{separator}{name}{suffix}" for directory in PLATFORM_INSTALL_PATHS.get(platform, ())]
    if platform == "win32":
        candidates.append(f"{name}.exe")
    return tuple(candidates)


def parse_engine_version(output: str) -> str | None:
    match = _VERSION_PATTERN.search(output)
    return match.group(1) if match else None


@dataclass(frozen=True, slots=True)
class EngineLocator:
    """Ordered candidate lists for both executables.

    Explicit paths come first, then ``PATH`` lookup, then well-known install
    locations for the running platform.
    """

    ffmpeg_candidates: tuple[str, ...]
    ffprobe_candidates: tuple[str, ...]
    validate: bool = True
    search: bool = True

    @classmethod
    def from_settings(cls, settings: "EngineSettings", platform: str | None = None) -> "EngineLocator":
        platform = platform or sys.platform
        ffmpeg = [settings.ffmpeg_path] if settings.ffmpeg_path else []
        ffprobe = [settings.ffprobe_path] if settings.ffprobe_path else []
        ffmpeg.extend(["ffmpeg", *_platform_candidates("ffmpeg", platform)])
        ffprobe.extend(["ffprobe", *_platform_candidates("ffprobe", platform)])
        return cls(ffmpeg_candidates=tuple(ffmpeg), ffprobe_candidates=tuple(ffprobe))

    @classmethod
    def fixed(cls, ffmpeg: str, ffprobe: str) -> "EngineLocator":
        """Use the given executables verbatim, without searching or validating."""

        return cls(ffmpeg_candidates=(ffmpeg,), ffprobe_candidates=(ffprobe,), validate=False, search=False)

    def _resolve(self, name: str, candidates: tuple[str, ...]) -> str:
        if not self.search:
            return candidates[0]
        checked: list[str] = []
        for candidate in candidates:
            checked.append(candidate)
            found = shutil.which(candidate)
            if found:
                return found
            if Path(candidate).is_file():
                return candidate
        raise EngineNotFoundError(f"{name} not found. Checked: {', '.join(checked)}")

    def locate(self) -> EnginePaths:
        ffmpeg = self._resolve("ffmpeg", self.ffmpeg_candidates)
        ffprobe = self._resolve("ffprobe", self.ffprobe_candidates)
        if not self.validate:
            return EnginePaths(ffmpeg=ffmpeg, ffprobe=ffprobe)

        try:
            completed = subprocess.run(
                [ffmpeg, "-version"],
                capture_output=True,
                text=True,
                timeout=10,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise EngineNotFoundError(f"ffmpeg at {ffmpeg} could not be validated: {exc}") from exc
        if completed.returncode != 0:
            raise EngineNotFoundError(
                f"ffmpeg at {ffmpeg} failed validation.",
                diagnostic_tail=completed.stderr.strip()[-2000:],
            )

        version = parse_engine_version(completed.stdout)
        logger.info("engine_located", extra={"ffmpeg": ffmpeg, "ffprobe": ffprobe, "version": version})
        return EnginePaths(ffmpeg=ffmpeg, ffprobe=ffprobe, version=version)

