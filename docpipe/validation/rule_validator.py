import re

from docpipe.domain.models import OcrResult
from docpipe.queue.cancellation import CancellationToken
from docpipe.validation.base import BaseValidator, ValidationOutput
from docpipe.validation.exceptions import ValidatorError

FINANCIAL_KEYWORDS = ("invoice", "receipt")
AMOUNT_MARKERS = ("$", "amount", "total")
_AMOUNT_PATTERN = re.compile(r"\d+[.,]\d{2}\b")


class RuleValidator(BaseValidator):
    """Checks extracted text against a fixed set of content rules.

    Rules:
        - text has at least ``min_text_length`` characters
        - confidence lies in [0, 1] and reaches ``min_confidence``
        - invoices and receipts mention an amount
    """

    def __init__(self, min_text_length: int = 10, min_confidence: float = 0.7) -> None:
        self._min_text_length = min_text_length
        self._min_confidence = min_confidence

    def run(self, ocr_result: OcrResult, token: CancellationToken) -> ValidationOutput:
        if not isinstance(ocr_result.extracted_text, str):
            raise ValidatorError("OCR result carries no text")

        errors: list[str] = []
        warnings: list[str] = []
        text = ocr_result.extracted_text

        if len(text.strip()) < self._min_text_length:
            errors.append("Document content too short")

        if not 0.0 <= ocr_result.confidence <= 1.0:
            errors.append(f"OCR confidence {ocr_result.confidence} outside [0, 1]")
        elif ocr_result.confidence < self._min_confidence:
            errors.append("OCR confidence below threshold")

        token.raise_if_cancelled()

        lowered = text.lower()
        if any(keyword in lowered for keyword in FINANCIAL_KEYWORDS):
            if not any(marker in lowered for marker in AMOUNT_MARKERS):
                errors.append("Missing amount information in financial document")
            elif not _AMOUNT_PATTERN.search(text):
                warnings.append("Amount label found without a numeric value")

        return ValidationOutput(is_valid=not errors, errors=errors, warnings=warnings)
