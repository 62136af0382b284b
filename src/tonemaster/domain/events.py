"""Domain event contracts for mastering jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True, slots=True)
class DomainEvent:
    """Base domain event emitted by application services."""

    correlation_id: str
    payload_summary: dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))


@dataclass(frozen=True, slots=True)
class JobStateChanged(DomainEvent):
    """A job moved from one lifecycle state to the next."""


@dataclass(frozen=True, slots=True)
class SourceAnalyzed(DomainEvent):
    """Source (and reference, when present) tracks were analyzed."""


@dataclass(frozen=True, slots=True)
class LoudnessMeasurementDegraded(DomainEvent):
    """A loudness measurement fell back to default values."""


@dataclass(frozen=True, slots=True)
class ChainBuilt(DomainEvent):
    """The filter chain for the processing pass was serialized."""


@dataclass(frozen=True, slots=True)
class PassCompleted(DomainEvent):
    """One engine pass finished and wrote its artifact."""


@dataclass(frozen=True, slots=True)
class MasteringCompleted(DomainEvent):
    """The mastered artifact was verified and the report assembled."""


@dataclass(frozen=True, slots=True)
class MasteringFailed(DomainEvent):
    """Job execution failed; the workspace has been emptied."""
