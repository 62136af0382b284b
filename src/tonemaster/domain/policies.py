"""Render policies describing how each engine pass encodes its output."""

from __future__ import annotations

from dataclasses import dataclass

from tonemaster.mastering_options import OutputFormat


@dataclass(frozen=True, slots=True)
class RenderPolicy:
    """Codec, sample rate and channel layout of one rendered artifact."""

    policy_id: str
    codec: str
    sample_rate_hz: int
    extension: str
    channel_count: int | None = None
    extra_args: tuple[str, ...] = ()
    policy_version: str = "v1"

    def encoder_args(self) -> tuple[str, ...]:
        args = ["-c:a", self.codec, "-ar", str(self.sample_rate_hz)]
        if self.channel_count is not None:
            args.extend(["-ac", str(self.channel_count)])
        args.extend(self.extra_args)
        return tuple(args)


INTERMEDIATE_RENDER = RenderPolicy(
    policy_id="intermediate-pcm24-48k",
    codec="pcm_s24le",
    sample_rate_hz=48000,
    extension="wav",
)
WAV_MASTER_RENDER = RenderPolicy(
    policy_id="master-wav-pcm24-48k",
    codec="pcm_s24le",
    sample_rate_hz=48000,
    extension="wav",
)
MP3_MASTER_RENDER = RenderPolicy(
    policy_id="master-mp3-320k",
    codec="libmp3lame",
    sample_rate_hz=44100,
    extension="mp3",
    channel_count=2,
    extra_args=("-b:a", "320k", "-map_metadata", "0", "-id3v2_version", "3"),
)


def render_policy_for(output_format: OutputFormat) -> RenderPolicy:
    if output_format is OutputFormat.MP3:
        return MP3_MASTER_RENDER
    return WAV_MASTER_RENDER
