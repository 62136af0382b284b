"""Application layer: use cases and ports."""

from .event_publisher import EventPublisher, NullEventPublisher
from .mastering_service import MasteringEngine

__all__ = ["EventPublisher", "NullEventPublisher", "MasteringEngine"]
