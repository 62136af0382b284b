"""Domain layer: value objects, job lifecycle, events and render policies."""

from .events import (
    ChainBuilt,
    DomainEvent,
    JobStateChanged,
    LoudnessMeasurementDegraded,
    MasteringCompleted,
    MasteringFailed,
    PassCompleted,
    SourceAnalyzed,
)
from .models import (
    AudioAnalysis,
    CompressorSettings,
    EqBand,
    EqSettings,
    Improvements,
    JobState,
    LimiterSettings,
    LoudnessMeasurement,
    MasteringJob,
    MasteringReport,
    MasteringSettings,
    MasteringSubmission,
    MediaInfo,
    SpectralEstimate,
    VolumeMeasurement,
)
from .policies import INTERMEDIATE_RENDER, MP3_MASTER_RENDER, WAV_MASTER_RENDER, RenderPolicy, render_policy_for

__all__ = [
    "DomainEvent",
    "JobStateChanged",
    "SourceAnalyzed",
    "LoudnessMeasurementDegraded",
    "ChainBuilt",
    "PassCompleted",
    "MasteringCompleted",
    "MasteringFailed",
    "AudioAnalysis",
    "CompressorSettings",
    "EqBand",
    "EqSettings",
    "Improvements",
    "JobState",
    "LimiterSettings",
    "LoudnessMeasurement",
    "MasteringJob",
    "MasteringReport",
    "MasteringSettings",
    "MasteringSubmission",
    "MediaInfo",
    "SpectralEstimate",
    "VolumeMeasurement",
    "RenderPolicy",
    "INTERMEDIATE_RENDER",
    "WAV_MASTER_RENDER",
    "MP3_MASTER_RENDER",
    "render_policy_for",
]
