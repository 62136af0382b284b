"""Audio decode adapter backed by pedalboard."""

from __future__ import annotations

from pathlib import Path

import numpy as np
from pedalboard.io import AudioFile


def load_audio_window(path: Path, max_seconds: float = 30.0) -> tuple[np.ndarray, float]:
    """Read up to ``max_seconds`` of audio centred on the middle of the file.

    Returns a ``(channels, frames)`` float32 array and the sample rate.
    """

    with AudioFile(str(path), "r") as audio_file:
        sample_rate = float(audio_file.samplerate)
        total_frames = int(audio_file.frames)
        window_frames = min(total_frames, int(max_seconds * sample_rate))
        start = max(0, (total_frames - window_frames) // 2)
        if start:
            audio_file.seek(start)
        return audio_file.read(window_frames), sample_rate
