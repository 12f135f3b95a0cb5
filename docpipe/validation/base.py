from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from docpipe.domain.models import OcrResult
from docpipe.queue.cancellation import CancellationToken


@dataclass(frozen=True)
class ValidationOutput:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class BaseValidator(ABC):
    """Contract for document content validators.

    A document that breaks a rule yields ``is_valid=False``; ``ValidatorError``
    is reserved for the validator itself failing.
    """

    @abstractmethod
    def run(self, ocr_result: OcrResult, token: CancellationToken) -> ValidationOutput: ...
