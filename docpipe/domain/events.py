"""Lifecycle events raised by the document aggregate.

Each event kind is its own frozen dataclass; ``DocumentEvent`` is the closed
union consumers match on.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from docpipe.domain.status import DocumentStatus, Stage


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DocumentUploaded:
    document_id: str
    file_name: str
    file_path: str
    mime_type: str
    file_size: int
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class StatusChanged:
    document_id: str
    from_status: DocumentStatus
    to_status: DocumentStatus
    stage: Stage | None
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class StageStarted:
    document_id: str
    stage: Stage
    previous_status: DocumentStatus
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class StageCompleted:
    document_id: str
    stage: Stage
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class StageFailed:
    document_id: str
    stage: Stage
    reason: str
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class DocumentCancelled:
    document_id: str
    previous_status: DocumentStatus
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class DocumentFailed:
    document_id: str
    previous_status: DocumentStatus
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class DocumentDeadLettered:
    document_id: str
    stage: Stage | None
    previous_status: DocumentStatus
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class DocumentReset:
    document_id: str
    previous_status: DocumentStatus
    occurred_at: datetime = field(default_factory=_now)


DocumentEvent = (
    DocumentUploaded
    | StatusChanged
    | StageStarted
    | StageCompleted
    | StageFailed
    | DocumentCancelled
    | DocumentFailed
    | DocumentDeadLettered
    | DocumentReset
)
