from admitlayer.event.generator import EventGenerator
from admitlayer.event.models import Event, EventType, ObjectReference, Reason, Source
from admitlayer.event.sink import (
    EventSink,
    HTTPEventSink,
    LoggingEventSink,
    RetryableSinkError,
)

__all__ = [
    "Event",
    "EventGenerator",
    "EventSink",
    "EventType",
    "HTTPEventSink",
    "LoggingEventSink",
    "ObjectReference",
    "Reason",
    "RetryableSinkError",
    "Source",
]
