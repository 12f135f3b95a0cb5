from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from docpipe.config.settings import Settings
from docpipe.domain.status import PIPELINE_STAGES, Stage


class JobState(str, Enum):
    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


PENDING_STATES = frozenset({JobState.WAITING, JobState.DELAYED})
FINISHED_STATES = frozenset({JobState.COMPLETED, JobState.CANCELLED})


class FailureOutcome(str, Enum):
    RETRY_SCHEDULED = "retry_scheduled"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class JobOptions:
    """Retry policy attached to a job when it is enqueued."""

    attempts: int
    backoff_delay_ms: int


@dataclass
class JobRecord:
    """Represents a row from the document_jobs table."""

    id: int
    document_id: str
    file_path: str
    stage: Stage
    state: JobState
    attempts: int
    max_attempts: int
    backoff_delay_ms: int
    cancelled: bool = False
    error_message: str | None = None
    available_at: datetime | None = None
    locked_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def attempt_number(self) -> int:
        """One-based number of the delivery currently being processed."""
        return self.attempts + 1


@dataclass(frozen=True)
class CancelSummary:
    removed: int
    flagged: int


def compute_backoff(backoff_delay_ms: int, attempts: int) -> float:
    """Seconds to wait before the next delivery after ``attempts`` failures so far.

    Example:
        >>> compute_backoff(2000, 0)
        2.0
        >>> compute_backoff(2000, 2)
        8.0
    """
    return backoff_delay_ms * (2**attempts) / 1000


def stage_options_from_settings(settings: Settings) -> dict[Stage, JobOptions]:
    return {
        stage: JobOptions(
            attempts=getattr(settings, f"{stage.value}_max_attempts"),
            backoff_delay_ms=getattr(settings, f"{stage.value}_backoff_delay_ms"),
        )
        for stage in PIPELINE_STAGES
    }
