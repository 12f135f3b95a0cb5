"""Wires repositories, queue, capabilities, workers and the service together."""

from dataclasses import dataclass

from docpipe.archiving.storage_archiver import StorageArchiver
from docpipe.config.settings import Settings
from docpipe.database.locks import AdvisoryDocumentLock, BaseDocumentLock, ThreadDocumentLock
from docpipe.database.repositories.document_repository import (
    BaseDocumentRepository,
    DocumentRepository,
)
from docpipe.database.repositories.memory_document_repository import InMemoryDocumentRepository
from docpipe.domain.publisher import BaseEventPublisher, LogEventPublisher
from docpipe.domain.status import Stage
from docpipe.ocr.base import BaseOcrEngine
from docpipe.ocr.factory import OcrEngineFactory
from docpipe.queue.base import BaseStageQueue
from docpipe.queue.memory_queue import InMemoryStageQueue
from docpipe.queue.models import stage_options_from_settings
from docpipe.queue.postgres_queue import PostgresStageQueue
from docpipe.service.document_service import DocumentService
from docpipe.storage.base import BaseStorage
from docpipe.storage.local_storage import LocalFileStorage
from docpipe.validation.base import BaseValidator
from docpipe.validation.rule_validator import RuleValidator
from docpipe.worker.pool import WorkerPool
from docpipe.worker.stage_runner import StageRunner
from docpipe.worker.stages import OcrStage, PersistenceStage, PipelineStage, ValidationStage

BACKENDS = ("postgres", "memory")


@dataclass
class Container:
    settings: Settings
    repository: BaseDocumentRepository
    queue: BaseStageQueue
    lock: BaseDocumentLock
    storage: BaseStorage
    publisher: BaseEventPublisher
    ocr_engine: BaseOcrEngine
    validator: BaseValidator
    service: DocumentService

    def stages(self) -> dict[Stage, PipelineStage]:
        return {
            Stage.OCR: OcrStage(self.ocr_engine),
            Stage.VALIDATION: ValidationStage(self.validator),
            Stage.PERSISTENCE: PersistenceStage(StorageArchiver(self.storage)),
        }

    def build_runners(self) -> dict[Stage, StageRunner]:
        return {
            stage: StageRunner(
                pipeline_stage,
                self.repository,
                self.queue,
                self.lock,
                self.publisher,
                self.settings,
            )
            for stage, pipeline_stage in self.stages().items()
        }

    def build_worker_pool(self) -> WorkerPool:
        return WorkerPool(self.queue, self.build_runners(), self.settings)


def build_container(
    settings: Settings,
    storage: BaseStorage | None = None,
    ocr_engine: BaseOcrEngine | None = None,
    validator: BaseValidator | None = None,
) -> Container:
    """Build every collaborator for ``settings.backend``.

    The postgres backend expects ``init_pool`` to have been called. Storage,
    OCR engine and validator can be replaced, which tests use to inject
    failing capabilities.
    """
    backend = settings.backend.lower()
    options = stage_options_from_settings(settings)

    repository: BaseDocumentRepository
    queue: BaseStageQueue
    lock: BaseDocumentLock
    if backend == "postgres":
        repository = DocumentRepository()
        queue = PostgresStageQueue(options)
        lock = AdvisoryDocumentLock()
    elif backend == "memory":
        repository = InMemoryDocumentRepository()
        queue = InMemoryStageQueue(options)
        lock = ThreadDocumentLock()
    else:
        raise ValueError(f"Unknown backend '{backend}'. Choose from: {list(BACKENDS)}")

    storage = storage or LocalFileStorage(settings.storage_root)
    ocr_engine = ocr_engine or OcrEngineFactory.create(settings, storage)
    validator = validator or RuleValidator(
        min_text_length=settings.validation_min_text_length,
        min_confidence=settings.validation_min_confidence,
    )
    publisher = LogEventPublisher()
    service = DocumentService(repository, queue, storage, publisher, settings)

    return Container(
        settings=settings,
        repository=repository,
        queue=queue,
        lock=lock,
        storage=storage,
        publisher=publisher,
        ocr_engine=ocr_engine,
        validator=validator,
        service=service,
    )
