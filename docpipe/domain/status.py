"""Document lifecycle states and the table of legal transitions between them."""

from enum import Enum


class DocumentStatus(str, Enum):
    UPLOADED = "uploaded"
    QUEUED = "queued"

    PROCESSING_OCR = "processing_ocr"
    PROCESSING_VALIDATION = "processing_validation"
    PROCESSING_PERSISTENCE = "processing_persistence"

    OCR_COMPLETED = "ocr_completed"
    VALIDATION_COMPLETED = "validation_completed"
    COMPLETED = "completed"

    OCR_FAILED = "ocr_failed"
    VALIDATION_FAILED = "validation_failed"
    PERSISTENCE_FAILED = "persistence_failed"
    FAILED = "failed"

    CANCELLED = "cancelled"
    DEAD_LETTER = "dead_letter"


class Stage(str, Enum):
    """Pipeline stage a status belongs to."""

    OCR = "ocr"
    VALIDATION = "validation"
    PERSISTENCE = "persistence"
    COMPLETED = "completed"


PIPELINE_STAGES: tuple[Stage, ...] = (Stage.OCR, Stage.VALIDATION, Stage.PERSISTENCE)

_S = DocumentStatus

VALID_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    _S.UPLOADED: frozenset({_S.QUEUED, _S.FAILED}),
    _S.QUEUED: frozenset({_S.PROCESSING_OCR, _S.FAILED}),
    _S.PROCESSING_OCR: frozenset({_S.OCR_COMPLETED, _S.OCR_FAILED}),
    _S.OCR_COMPLETED: frozenset({_S.PROCESSING_VALIDATION, _S.FAILED}),
    _S.OCR_FAILED: frozenset({_S.PROCESSING_OCR, _S.FAILED, _S.DEAD_LETTER}),
    _S.PROCESSING_VALIDATION: frozenset({_S.VALIDATION_COMPLETED, _S.VALIDATION_FAILED}),
    _S.VALIDATION_COMPLETED: frozenset({_S.PROCESSING_PERSISTENCE, _S.FAILED}),
    _S.VALIDATION_FAILED: frozenset(
        {_S.PROCESSING_VALIDATION, _S.FAILED, _S.DEAD_LETTER}
    ),
    _S.PROCESSING_PERSISTENCE: frozenset({_S.COMPLETED, _S.PERSISTENCE_FAILED}),
    _S.PERSISTENCE_FAILED: frozenset(
        {_S.PROCESSING_PERSISTENCE, _S.FAILED, _S.DEAD_LETTER}
    ),
    _S.COMPLETED: frozenset(),
    _S.CANCELLED: frozenset(),
    # manual recovery
    _S.FAILED: frozenset({_S.QUEUED}),
    _S.DEAD_LETTER: frozenset({_S.QUEUED}),
}

INITIAL_STATUSES = frozenset({_S.UPLOADED, _S.QUEUED})
PROCESSING_STATUSES = frozenset(
    {_S.PROCESSING_OCR, _S.PROCESSING_VALIDATION, _S.PROCESSING_PERSISTENCE}
)
SUCCESS_STATUSES = frozenset({_S.OCR_COMPLETED, _S.VALIDATION_COMPLETED, _S.COMPLETED})
ERROR_STATUSES = frozenset(
    {_S.OCR_FAILED, _S.VALIDATION_FAILED, _S.PERSISTENCE_FAILED, _S.FAILED}
)
STAGE_FAILED_STATUSES = frozenset({_S.OCR_FAILED, _S.VALIDATION_FAILED, _S.PERSISTENCE_FAILED})
TERMINAL_STATUSES = frozenset({_S.COMPLETED, _S.FAILED, _S.CANCELLED, _S.DEAD_LETTER})

NON_CANCELLABLE_STATUSES = frozenset(
    {
        _S.COMPLETED,
        _S.FAILED,
        _S.OCR_FAILED,
        _S.VALIDATION_FAILED,
        _S.PERSISTENCE_FAILED,
        _S.DEAD_LETTER,
        _S.CANCELLED,
    }
)
RETRYABLE_STATUSES = ERROR_STATUSES | frozenset({_S.DEAD_LETTER, _S.CANCELLED})

_STAGE_BY_STATUS: dict[DocumentStatus, Stage] = {
    _S.PROCESSING_OCR: Stage.OCR,
    _S.OCR_COMPLETED: Stage.OCR,
    _S.OCR_FAILED: Stage.OCR,
    _S.PROCESSING_VALIDATION: Stage.VALIDATION,
    _S.VALIDATION_COMPLETED: Stage.VALIDATION,
    _S.VALIDATION_FAILED: Stage.VALIDATION,
    _S.PROCESSING_PERSISTENCE: Stage.PERSISTENCE,
    _S.PERSISTENCE_FAILED: Stage.PERSISTENCE,
    _S.COMPLETED: Stage.COMPLETED,
}


def is_valid_transition(from_status: DocumentStatus, to_status: DocumentStatus) -> bool:
    """Return True iff ``to_status`` is listed for ``from_status`` in the table.

    Example:
        >>> is_valid_transition(DocumentStatus.OCR_FAILED, DocumentStatus.PROCESSING_OCR)
        True
        >>> is_valid_transition(DocumentStatus.COMPLETED, DocumentStatus.QUEUED)
        False
    """
    return to_status in VALID_TRANSITIONS[from_status]


def valid_transitions_for(status: DocumentStatus) -> frozenset[DocumentStatus]:
    return VALID_TRANSITIONS[status]


def is_processing(status: DocumentStatus) -> bool:
    return status in PROCESSING_STATUSES


def is_terminal(status: DocumentStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_error(status: DocumentStatus) -> bool:
    return status in ERROR_STATUSES


def is_success(status: DocumentStatus) -> bool:
    return status in SUCCESS_STATUSES


def is_cancellable(status: DocumentStatus) -> bool:
    """Cancellation is refused once a document has completed, failed or been parked."""
    return status not in NON_CANCELLABLE_STATUSES


def is_retryable(status: DocumentStatus) -> bool:
    return status in RETRYABLE_STATUSES


def stage_of(status: DocumentStatus) -> Stage | None:
    """Map a status to its pipeline stage; None for initial and administrative states."""
    return _STAGE_BY_STATUS.get(status)


def next_stage(stage: Stage) -> Stage | None:
    """Return the stage that follows ``stage``; None after persistence."""
    if stage not in PIPELINE_STAGES:
        return None
    index = PIPELINE_STAGES.index(stage)
    if index + 1 < len(PIPELINE_STAGES):
        return PIPELINE_STAGES[index + 1]
    return None
