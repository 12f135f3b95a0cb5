from docpipe.config.settings import Settings
from docpipe.ocr.base import BaseOcrEngine
from docpipe.ocr.pdfplumber_engine import PdfPlumberOcrEngine
from docpipe.ocr.pymupdf_engine import PyMuPdfOcrEngine
from docpipe.ocr.simulated_engine import SimulatedOcrEngine
from docpipe.storage.base import BaseStorage


class OcrEngineFactory:
    """Creates the correct OCR engine based on settings."""

    ENGINES = ("simulated", "pdfplumber", "pymupdf")

    @classmethod
    def create(cls, settings: Settings, storage: BaseStorage) -> BaseOcrEngine:
        engine = settings.ocr_engine.lower()
        if engine == "simulated":
            return SimulatedOcrEngine(storage, settings.ocr_simulated_delay_seconds)
        if engine == "pdfplumber":
            return PdfPlumberOcrEngine(storage)
        if engine == "pymupdf":
            return PyMuPdfOcrEngine(storage)
        raise ValueError(f"Unknown OCR engine '{engine}'. Choose from: {list(cls.ENGINES)}")
