from abc import ABC, abstractmethod
from collections.abc import Iterable

from docpipe.domain.events import (
    DocumentCancelled,
    DocumentDeadLettered,
    DocumentEvent,
    DocumentFailed,
    DocumentReset,
    DocumentUploaded,
    StageCompleted,
    StageFailed,
    StageStarted,
    StatusChanged,
)
from docpipe.logging.logger import Log


class BaseEventPublisher(ABC):
    """Contract for sinks that receive drained aggregate events."""

    @abstractmethod
    def publish(self, events: Iterable[DocumentEvent]) -> None:
        """Deliver events in the order they were raised."""


class LogEventPublisher(BaseEventPublisher):
    """Writes one log line per event."""

    def publish(self, events: Iterable[DocumentEvent]) -> None:
        for event in events:
            Log.info(describe_event(event))


def describe_event(event: DocumentEvent) -> str:
    match event:
        case DocumentUploaded():
            return (
                f"Document {event.document_id} uploaded: {event.file_name} "
                f"({event.mime_type}, {event.file_size} bytes)"
            )
        case StatusChanged():
            return (
                f"Document {event.document_id} status "
                f"{event.from_status.value} -> {event.to_status.value}"
            )
        case StageStarted():
            return (
                f"Document {event.document_id} {event.stage.value} started "
                f"(from {event.previous_status.value})"
            )
        case StageCompleted():
            return f"Document {event.document_id} {event.stage.value} completed"
        case StageFailed():
            return f"Document {event.document_id} {event.stage.value} failed: {event.reason}"
        case DocumentCancelled():
            return f"Document {event.document_id} cancelled (was {event.previous_status.value})"
        case DocumentFailed():
            return f"Document {event.document_id} marked failed (was {event.previous_status.value})"
        case DocumentDeadLettered():
            return (
                f"Document {event.document_id} moved to dead letter "
                f"(was {event.previous_status.value})"
            )
        case DocumentReset():
            return (
                f"Document {event.document_id} reset for retry "
                f"(was {event.previous_status.value})"
            )
    raise TypeError(f"Unknown document event: {type(event).__name__}")
