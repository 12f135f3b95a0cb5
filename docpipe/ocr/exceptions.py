class OcrError(Exception):
    """Raised when text extraction fails for any reason."""


class UnsupportedMimeTypeError(OcrError):
    """Raised when an engine cannot read the document's file type."""
