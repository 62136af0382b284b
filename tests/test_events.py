from __future__ import annotations

import logging

from tonemaster.application.event_publisher import NullEventPublisher
from tonemaster.domain.events import JobStateChanged, MasteringFailed
from tonemaster.infrastructure.logging_event_publisher import LoggingEventPublisher


class RecordingPublisher:
    def __init__(self) -> None:
        self.events = []

    def publish(self, event) -> None:
        self.events.append(event)


def test_logging_publisher_emits_structured_record(caplog) -> None:
    event = JobStateChanged(correlation_id="job-7", payload_summary={"from": "queued", "to": "analyzing"})

    with caplog.at_level(logging.INFO, logger="tonemaster.events"):
        LoggingEventPublisher().publish(event)

    record = caplog.records[-1]
    assert record.getMessage() == "domain_event_emitted"
    assert record.event_name == "JobStateChanged"
    assert record.correlation_id == "job-7"
    assert record.payload_summary == {"from": "queued", "to": "analyzing"}
    assert record.occurred_at == event.occurred_at.isoformat()


def test_null_publisher_discards_events() -> None:
    NullEventPublisher().publish(MasteringFailed(correlation_id="job-8", payload_summary={}))


def test_events_carry_utc_timestamps() -> None:
    publisher = RecordingPublisher()

    publisher.publish(MasteringFailed(correlation_id="job-9", payload_summary={"stage": "processing"}))

    event = publisher.events[0]
    assert event.occurred_at.tzinfo is not None
    assert event.payload_summary["stage"] == "processing"
