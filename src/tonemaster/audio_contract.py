"""Audio ingest contract shared by all external entry points.

Invariants
----------
* Ingest accepts only a known set of source formats.
* Sources larger than the configured byte limit never reach the engine.
"""

from __future__ import annotations

from pathlib import Path

from .errors import AudioFileTooLargeError, IngestError, UnsupportedAudioFormatError

# Supported source extensions (lower-case, with leading dot).
ACCEPTED_SOURCE_EXTENSIONS: tuple[str, ...] = (
    ".mp3",
    ".wav",
    ".flac",
    ".aiff",
    ".aif",
    ".m4a",
    ".aac",
    ".ogg",
    ".mp4",
    ".wma",
)

AUDIO_MIME_TYPES: dict[str, str] = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".flac": "audio/flac",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
    ".aiff": "audio/aiff",
    ".aif": "audio/aiff",
    ".ogg": "audio/ogg",
    ".mp4": "audio/mp4",
    ".wma": "audio/x-ms-wma",
}

DEFAULT_MAX_SOURCE_BYTES = 100 * 1024 * 1024


def is_supported_audio(filename: str) -> bool:
    return Path(filename).suffix.lower() in ACCEPTED_SOURCE_EXTENSIONS


def audio_mime_type(filename: str) -> str:
    """Return the MIME type for an audio filename, or a generic binary type."""

    return AUDIO_MIME_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


def ensure_supported_path(path: Path, max_bytes: int = DEFAULT_MAX_SOURCE_BYTES) -> None:
    """Validate a local file path against accepted extensions and size limit."""

    if not path.is_file():
        raise IngestError(f"Audio file not found: {path}")

    if not is_supported_audio(path.name):
        supported = ", ".join(ACCEPTED_SOURCE_EXTENSIONS)
        raise UnsupportedAudioFormatError(
            f"Unsupported audio format for '{path.name}'. Supported extensions: {supported}"
        )

    size_bytes = path.stat().st_size
    if size_bytes > max_bytes:
        raise AudioFileTooLargeError(
            f"Audio file '{path.name}' is {size_bytes} bytes; maximum is {max_bytes} bytes."
        )
