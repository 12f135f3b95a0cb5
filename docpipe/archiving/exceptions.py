class ArchiveError(Exception):
    """Raised when a document's file cannot be moved to permanent storage."""
