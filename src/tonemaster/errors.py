"""Error taxonomy surfaced by the mastering pipeline."""

from __future__ import annotations


class MasteringError(Exception):
    """Base class for every failure a mastering job can report."""

    kind = "mastering_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def as_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class ProbeError(MasteringError):
    """Metadata extraction failed; the input is unusable."""

    kind = "probe_error"


class NoAudioStream(ProbeError):
    kind = "no_audio_stream"


class ProbeProcessError(ProbeError):
    kind = "probe_process_error"


class ProbeParseError(ProbeError):
    kind = "probe_parse_error"


class UnknownPreset(MasteringError):
    kind = "unknown_preset"


class EngineError(MasteringError):
    """The external engine exited non-zero or could not be started."""

    kind = "engine_error"

    def __init__(self, message: str, diagnostic_tail: str = "") -> None:
        super().__init__(message)
        self.diagnostic_tail = diagnostic_tail

    def as_dict(self) -> dict[str, str]:
        payload = super().as_dict()
        if self.diagnostic_tail:
            payload["diagnostic_tail"] = self.diagnostic_tail
        return payload


class EngineNotFoundError(EngineError):
    kind = "engine_not_found"


class EmptyOutput(MasteringError):
    kind = "empty_output"


class Cancelled(MasteringError):
    kind = "cancelled"


class Timeout(MasteringError):
    kind = "timeout"


class IngestError(MasteringError):
    """Source rejected before a job is created."""

    kind = "ingest_rejected"


class UnsupportedAudioFormatError(IngestError):
    kind = "unsupported_format"


class AudioFileTooLargeError(IngestError):
    kind = "file_too_large"


class InvalidJobTransition(RuntimeError):
    """Raised when code drives a job through an illegal state change."""
